"""API routes for the relay."""

from .chat import chat_completions
from .health import health
from .models import list_models

__all__ = [
    "chat_completions",
    "health",
    "list_models",
]
