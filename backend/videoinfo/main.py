from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from structlog.contextvars import bind_contextvars, reset_contextvars

from backend.videoinfo.api.routes import router
from backend.videoinfo.dependencies import (
    build_http_client,
    build_video_info_service,
    get_settings,
    get_telemetry,
)
from backend.videoinfo.logging_config import configure_application_logging
from backend.videoinfo.services.errors import (
    InvalidLinkError,
    InvalidVideoIdError,
    OutOfQuotaError,
    ProviderUnavailableError,
    UnsupportedServiceError,
    VideoInfoError,
)

_ERROR_STATUS_CODES: tuple[tuple[type[VideoInfoError], int, str], ...] = (
    (InvalidVideoIdError, 400, "invalid_video_id"),
    (InvalidLinkError, 400, "invalid_link"),
    (UnsupportedServiceError, 400, "unsupported_service"),
    (OutOfQuotaError, 503, "out_of_quota"),
    (ProviderUnavailableError, 502, "provider_unavailable"),
)


def health_check() -> dict[str, str]:
    return {"status": "ok"}


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_application_logging(settings)
    http_client = build_http_client(settings)
    app.state.video_info_service = build_video_info_service(
        settings,
        http_client,
        get_telemetry(),
    )
    try:
        yield
    finally:
        await http_client.aclose()


async def video_info_error_handler(request: Request, exc: Exception) -> Response:
    _ = request
    for error_type, status_code, code in _ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return JSONResponse(status_code=status_code, content={"code": code, "detail": str(exc)})
    return JSONResponse(status_code=500, content={"code": "internal_error", "detail": str(exc)})


def create_app() -> FastAPI:
    app = FastAPI(title="Video Info API", version="0.1.0", lifespan=app_lifespan)

    async def request_context_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        telemetry = get_telemetry()
        incoming_request_id = request.headers.get("X-Request-ID", "").strip()
        request_id = incoming_request_id or str(uuid4())
        context_tokens = bind_contextvars(
            http_request_id=request_id,
            http_method=request.method,
            http_path=request.url.path,
        )
        try:
            with telemetry.span(
                "http.request",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
            ) as span:
                response = await call_next(request)
                response.headers["X-Request-ID"] = request_id
                span.set(status_code=response.status_code)
                return response
        finally:
            reset_contextvars(**context_tokens)

    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(VideoInfoError, video_info_error_handler)
    app.include_router(router)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )
    return app


app = create_app()
