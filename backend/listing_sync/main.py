import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from listing_sync.api.response import exception_envelope
from listing_sync.api.v1.router import api_router
from listing_sync.core.config import get_settings
from listing_sync.core.errors import ListingSyncError
from listing_sync.core.logging_config import configure_logging
from listing_sync.core.metrics import render_metrics
from listing_sync.core.middleware import MetricsMiddleware, RequestLoggingMiddleware
from listing_sync.providers.errors import ProviderError

settings = get_settings()
configure_logging(log_level=settings.log_level, app_env=settings.app_env)
logger = logging.getLogger("listing_sync.api")


app = FastAPI(title=settings.app_name)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(MetricsMiddleware)
app.include_router(api_router, prefix=settings.api_v1_prefix)

if settings.metrics_enabled:
    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        payload, content_type = render_metrics()
        return Response(content=payload, media_type=content_type)


@app.get("/health", include_in_schema=False)
async def health() -> dict:
    return {"status": "ok"}


def _error_response(
    request: Request, status_code: int, message: str, code: str, details: dict | None = None
) -> JSONResponse:
    payload = exception_envelope(
        request=request, status_code=status_code, message=message, code=code, details=details
    )
    return JSONResponse(status_code=status_code, content=payload)


@app.exception_handler(ListingSyncError)
async def listing_sync_exception_handler(request: Request, exc: ListingSyncError) -> JSONResponse:
    details: dict[str, object] = {"reason_code": exc.reason_code}
    if getattr(exc, "missing_ids", None):
        details["missing_ids"] = exc.missing_ids
    return _error_response(request, exc.status_code, str(exc), exc.reason_code, details)


@app.exception_handler(ProviderError)
async def provider_exception_handler(request: Request, exc: ProviderError) -> JSONResponse:
    # Upstream failures surface as a bad gateway with the provider's classification.
    logger.warning("provider.request.failed", extra={"reason_code": exc.reason_code, "error": str(exc)})
    return _error_response(request, 502, str(exc), exc.error_code, exc.to_details())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        message = detail.get("message") if isinstance(detail.get("message"), str) else "Request failed"
        return _error_response(request, exc.status_code, message, f"http_{exc.status_code}", detail)
    message = detail if isinstance(detail, str) else "Request failed"
    return _error_response(request, exc.status_code, message, f"http_{exc.status_code}")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(request, 422, "Validation failed", "validation_error", {"errors": exc.errors()})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("http.unhandled_exception", exc_info=exc)
    return _error_response(request, 500, "Internal server error", "internal_server_error")
