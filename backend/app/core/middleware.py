"""
Request context middleware.

For every request:
- reuse X-Trace-ID / X-Request-ID from the caller or mint a new trace id
- mint a request id
- bind both (and X-User-ID when sent) into the logging context
- record RED metrics and log request_started / request_completed
- echo X-Trace-ID and X-Request-ID on the response
"""
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging import (
    set_trace_id,
    set_request_id,
    set_user_id,
    generate_id,
    get_logger,
)
from .metrics import record_http_request
from .tracing import (
    get_trace_id_from_context,
    set_span_attribute,
    record_exception,
    set_span_status,
    StatusCode,
)

logger = get_logger(__name__)


def _format_otel_trace_id(otel_trace_id: str) -> str:
    """32 hex chars -> UUID layout, so log and header formats match."""
    if len(otel_trace_id) != 32:
        return otel_trace_id
    return (
        f"{otel_trace_id[0:8]}-{otel_trace_id[8:12]}-{otel_trace_id[12:16]}"
        f"-{otel_trace_id[16:20]}-{otel_trace_id[20:32]}"
    )


class TraceIDMiddleware(BaseHTTPMiddleware):
    """Bind trace/request ids to the logging context for each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Priority: X-Trace-ID > X-Request-ID > active OpenTelemetry span > new id
        trace_id = request.headers.get("X-Trace-ID") or request.headers.get("X-Request-ID")
        if not trace_id:
            otel_trace_id = get_trace_id_from_context()
            trace_id = _format_otel_trace_id(otel_trace_id) if otel_trace_id else generate_id()

        request_id = generate_id()
        user_id = request.headers.get("X-User-ID")

        set_trace_id(trace_id)
        set_request_id(request_id)
        if user_id:
            set_user_id(user_id)
            set_span_attribute("user.id", user_id)

        start_time = time.time()
        request.state.start_time = start_time
        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            query_params=dict(request.query_params),
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            record_exception(e)
            set_span_status(StatusCode.ERROR, str(e))
            record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=500,
                duration_seconds=process_time,
            )
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=int(process_time * 1000),
                exc_info=True,
            )
            raise
        finally:
            set_trace_id(None)
            set_request_id(None)
            set_user_id(None)

        process_time = time.time() - start_time
        record_http_request(
            method=request.method,
            endpoint=request.url.path,
            status_code=response.status_code,
            duration_seconds=process_time,
        )
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=int(process_time * 1000),
            trace_id=trace_id,
            request_id=request_id,
        )

        response.headers["X-Trace-ID"] = trace_id
        response.headers["X-Request-ID"] = request_id
        return response
