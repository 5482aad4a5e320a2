"""Main FastAPI application for the thinkrelay proxy."""

import logging
import socket
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.routes import chat_completions, health, list_models
from .config_loader import load_config
from .core import ProxyError, RelayRouter, build_error_response, set_router
from .logging import setup_logging
from .settings import RelaySettings

logger = logging.getLogger("thinkrelay")

HTTP_ERROR_CODES = {
    404: "not_found",
    405: "method_not_allowed",
}


async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    logger.error(
        f"{request.method} {request.url.path} failed: {exc.__class__.__name__}: {exc.message}"
    )
    return build_error_response(exc)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        message = f"Route {request.method} {request.url.path} not found"
    else:
        message = str(exc.detail)
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": message,
                "type": "invalid_request_error",
                "code": HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
            }
        },
        headers=getattr(exc, "headers", None),
    )


def load_settings(path: Optional[str] = None) -> RelaySettings:
    """Load and validate settings from the YAML config."""
    config = load_config(path)
    return RelaySettings.from_config(config).validate()


def create_app(settings: Optional[RelaySettings] = None) -> FastAPI:
    """Factory function to create the FastAPI application.

    Args:
        settings: Relay settings. Loaded from the config file when omitted.

    Returns:
        The configured FastAPI application instance.
    """
    if settings is None:
        settings = load_settings()
    setup_logging(settings.log_level)

    router = RelayRouter(settings)
    set_router(router)

    app = FastAPI(title="thinkrelay")
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ProxyError, proxy_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.post("/v1/chat/completions")(chat_completions)
    app.get("/v1/models")(list_models)
    app.get("/health")(health)

    @app.on_event("startup")
    async def startup_event():
        """Handle application startup."""
        logger.info("thinkrelay starting up...")
        logger.info("Configured bind address %s:%s", settings.host, settings.port)
        if settings.host == "0.0.0.0":
            hostname = socket.gethostname()
            logger.info("Reachable on local network at http://%s:%s", hostname, settings.port)
        logger.info("Upstream: %s%s", settings.api_base, settings.chat_path)
        logger.info(
            "Model routes: %s (default: %s)",
            dict(settings.model_routes),
            settings.default_model,
        )
        logger.info(
            "reasoning_display=%s thinking_mode=%s force_stream=%s",
            settings.reasoning_display,
            settings.thinking_mode,
            settings.force_stream,
        )

    logger.info("FastAPI application created")
    return app


__all__ = ["create_app", "load_settings"]
