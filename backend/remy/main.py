import sentry_sdk
from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .api.routes import recommendation as recommendation_routes
from .controller import TurnController
from .health import health_checker
from .logging_config import configure_structlog, get_logger
from .metrics import PrometheusMiddleware, get_metrics
from .settings import APP_VERSION, settings
from .utils import add_cors, add_request_id_tracing

# Configure structured logging (must be done before any logging calls)
configure_structlog(json_logs=not settings.DEBUG)

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        release=settings.SENTRY_RELEASE or f"remy-chef@{APP_VERSION}",
        integrations=[FastApiIntegration()],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

app = FastAPI(
    title="Remy Chef",
    version=APP_VERSION,
    description="Turn-based dining concierge",
)
add_cors(app)
add_request_id_tracing(app)
app.add_middleware(PrometheusMiddleware)

app.include_router(recommendation_routes.router)

# Use structlog for structured logging
logger = get_logger(__name__)

# Load the curated dataset now; a malformed file stops the process here
recommendation_routes.get_controller()
logger.info("remy_started", version=APP_VERSION, nlu="llm" if settings.llm_enabled else "regex")


@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
def root():
    return f"remy-chef {APP_VERSION}"


@app.get("/health")
def health(controller: TurnController = Depends(recommendation_routes.get_controller)):
    """Return service health including upstream dependency state."""
    health_status = health_checker.check_all(controller)
    status_code = 200 if health_status["status"] == "healthy" else 503
    body = {
        "status": health_status["status"],
        "timestamp": health_status.get("timestamp"),
        "checks": health_status.get("checks", {}),
        "service": "remy-chef",
        "version": APP_VERSION,
    }
    return JSONResponse(content=body, status_code=status_code)


@app.get("/metrics")
def metrics():
    """Expose Prometheus metrics."""
    try:
        return get_metrics()
    except Exception:  # pragma: no cover
        logger.exception("Metrics export failed")
        raise HTTPException(status_code=503, detail="metrics unavailable")
