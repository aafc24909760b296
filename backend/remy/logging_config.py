"""structlog setup shared by the API process and the turn pipeline."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from .settings import APP_VERSION, settings
from .utils import request_id_ctx

SERVICE_NAME = "remy-chef"

# Libraries that log every upstream request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def add_request_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    request_id = request_id_ctx.get("")
    if request_id:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def add_service(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["service"] = SERVICE_NAME
    event_dict["environment"] = settings.SENTRY_ENVIRONMENT
    event_dict["version"] = APP_VERSION
    return event_dict


def _shared_processors(timestamp_fmt: str) -> list[Processor]:
    # Also applied to stdlib records, so conversation_id bound by the
    # controller reaches geocoder and Overpass log lines too.
    return [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        add_service,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=timestamp_fmt),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_structlog(json_logs: bool = False) -> None:
    """
    Route structlog and stdlib logging through one renderer on stdout.

    JSON lines unless ``DEBUG`` is set and ``json_logs`` is false, in which
    case a coloured console format is used.
    """
    as_json = json_logs or not settings.DEBUG
    shared = _shared_processors("iso" if as_json else "%Y-%m-%d %H:%M:%S")
    if as_json:
        render: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        render = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *render],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.INFO)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["SERVICE_NAME", "configure_structlog", "get_logger"]
