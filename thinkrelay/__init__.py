"""thinkrelay - a reasoning-aware chat-completion relay

Accepts OpenAI-style chat-completion requests, forwards them to a single
upstream provider and translates buffered and streamed answers back,
optionally rendering the provider's reasoning channel inline.

This module provides:
- create_app: FastAPI application factory
- RelaySettings / load_config: configuration
- RelayRouter: the request pipeline

Example:
    >>> from thinkrelay import create_app
    >>> import uvicorn
    >>> uvicorn.run(create_app(), host="0.0.0.0", port=3000)
"""

from .config_loader import load_config
from .core import RelayRouter
from .logging import logger, setup_logging
from .main import create_app, load_settings
from .settings import RelaySettings

__all__ = [
    "create_app",
    "load_config",
    "load_settings",
    "logger",
    "RelayRouter",
    "RelaySettings",
    "setup_logging",
]
