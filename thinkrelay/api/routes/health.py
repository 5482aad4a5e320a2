"""Health endpoint."""

from ...core.registry import get_router


async def health() -> dict:
    """GET /health"""
    settings = get_router().settings
    return {
        "status": "ok",
        "service": "thinkrelay",
        "reasoning_display": settings.reasoning_display,
        "thinking_mode": settings.thinking_mode,
    }
