import httpx
import pytest
from backend.remy.dining import Coordinate
from backend.remy.errors import GeocodingUnavailable
from backend.remy.geocoding import LocalityResolver, NominatimGeocoder, canonical_locality

CDMX_HIT = {"lat": "19.4326", "lon": "-99.1332", "type": "administrative", "addresstype": "city"}
COUNTRY_HIT = {"lat": "23.6", "lon": "-102.5", "type": "administrative", "addresstype": "country"}


def geocoder_for(responses: dict[str, list], seen: list[str]) -> NominatimGeocoder:
    def handler(request: httpx.Request) -> httpx.Response:
        query = request.url.params["q"]
        seen.append(query)
        assert request.url.params["format"] == "jsonv2"
        assert request.url.params["limit"] == "1"
        return httpx.Response(200, json=responses.get(query, []))

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return NominatimGeocoder(client=client, base_url="https://geo.test")


@pytest.mark.parametrize(
    "raw,expected",
    [("CDMX", "Ciudad de México"), ("mexico city", "Ciudad de México"), ("DF", "Ciudad de México"),
     ("gdl", "Guadalajara"), ("Oaxaca", "Oaxaca"), ("", "")],
)
def test_canonical_locality(raw, expected):
    assert canonical_locality(raw) == expected


def test_resolves_alias_with_one_retry():
    seen: list[str] = []
    geocoder = geocoder_for({"Ciudad de México": [CDMX_HIT]}, seen)
    coordinate = LocalityResolver(geocoder).resolve("CDMX")
    assert coordinate == Coordinate(lat=19.4326, lon=-99.1332)
    assert seen == ["CDMX", "Ciudad de México"]


def test_sub_area_is_kept_on_retry():
    seen: list[str] = []
    geocoder = geocoder_for({"Roma Norte, Ciudad de México": [CDMX_HIT]}, seen)
    assert LocalityResolver(geocoder).resolve("cdmx", "Roma Norte") is not None
    assert seen == ["Roma Norte, cdmx", "Roma Norte, Ciudad de México"]


def test_no_retry_when_already_canonical():
    seen: list[str] = []
    geocoder = geocoder_for({}, seen)
    assert LocalityResolver(geocoder).resolve("Atlantis") is None
    assert seen == ["Atlantis"]


def test_country_level_match_is_too_coarse():
    seen: list[str] = []
    geocoder = geocoder_for({"Mexico": [COUNTRY_HIT]}, seen)
    assert LocalityResolver(geocoder).resolve("Mexico") is None
    assert len(seen) == 2


def test_transport_errors_become_absent():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="busy")

    geocoder = NominatimGeocoder(
        client=httpx.Client(transport=httpx.MockTransport(handler)), base_url="https://geo.test"
    )
    with pytest.raises(GeocodingUnavailable):
        geocoder.lookup("CDMX")
    assert LocalityResolver(geocoder).resolve("CDMX") is None


def test_malformed_payload_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    geocoder = NominatimGeocoder(
        client=httpx.Client(transport=httpx.MockTransport(handler)), base_url="https://geo.test"
    )
    with pytest.raises(GeocodingUnavailable):
        geocoder.lookup("CDMX")
