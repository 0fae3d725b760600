import time

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import get_settings
from .core.errors import (
    NotFoundError,
    StorefrontError,
    ValidationError,
)
from .core.logging import configure_logging, get_logger, get_trace_id
from .core.metrics import record_http_request
from .core.middleware import TraceIDMiddleware
from .core.tracing import (
    configure_tracing,
    instrument_fastapi,
    shutdown_tracing,
    get_trace_id_from_context,
    record_exception,
    set_span_status,
    StatusCode,
)
from .routes import admin, comments, health, metrics, orders, popular
from .services.popularity.cache import get_popularity_cache

settings = get_settings()

# JSON logs in containers, console output in development (LOG_JSON=false)
configure_logging(
    log_level=settings.log_level,
    service_name=settings.service_name,
    json_output=settings.log_json,
)

logger = get_logger(__name__)

configure_tracing(
    service_name=settings.service_name,
    otlp_endpoint=settings.otlp_endpoint,
    sampling_rate=settings.tracing_sampling_rate,
)

app = FastAPI(
    title="Bakery Storefront API",
    description="Storefront backend with popularity ranking",
    version="1.0.0"
)

# CORS for local dev; restrict in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(TraceIDMiddleware)

instrument_fastapi(app)


@app.on_event("startup")
async def startup_event():
    """Build the popularity cache so its configuration is logged up front."""
    logger.info("app_startup_started")
    cache = get_popularity_cache()
    logger.info(
        "app_startup_popularity_cache_ready",
        ttl_seconds=cache.ttl_seconds,
        recompute_timeout_seconds=cache.recompute_timeout_seconds,
    )
    logger.info("app_startup_completed")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("app_shutdown_started")
    shutdown_tracing()
    logger.info("app_shutdown_completed")


def _trace_id() -> str:
    return get_trace_id() or get_trace_id_from_context()


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    start_time = getattr(request.state, "start_time", time.time())
    trace_id = _trace_id()

    set_span_status(StatusCode.ERROR if exc.status_code >= 500 else StatusCode.OK, str(exc.detail))
    record_http_request(
        method=request.method,
        endpoint=request.url.path,
        status_code=exc.status_code,
        duration_seconds=time.time() - start_time,
    )
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )
    response = JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail, "trace_id": trace_id},
    )
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


@app.exception_handler(StorefrontError)
async def storefront_exception_handler(request: Request, exc: StorefrontError):
    """Map domain errors: validation -> 400, not found -> 404, store failures -> 500."""
    trace_id = _trace_id()
    if isinstance(exc, ValidationError):
        status_code, message = 400, str(exc)
    elif isinstance(exc, NotFoundError):
        status_code, message = 404, str(exc)
    else:
        status_code, message = 500, "Record store unavailable"
        record_exception(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "storefront_error",
        status_code=status_code,
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )
    response = JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "trace_id": trace_id},
    )
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    trace_id = _trace_id()

    record_exception(exc)
    set_span_status(StatusCode.ERROR, str(exc))

    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    response = JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error", "trace_id": trace_id},
    )
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(popular.router, prefix="/popular", tags=["Popular"])
# Path the storefront frontend calls
app.include_router(popular.router, prefix="/cakes/popular", include_in_schema=False)
app.include_router(orders.router, prefix="/orders", tags=["Orders"])
app.include_router(comments.router, prefix="/comments", tags=["Comments"])
app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])
