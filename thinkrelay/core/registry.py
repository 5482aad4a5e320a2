"""Router registry for breaking circular imports.

This module holds the relay router instance so that routes can import it
without importing the application module.
"""

from typing import Optional

from .router import RelayRouter

# Global router instance - set by create_app during initialization
router: Optional[RelayRouter] = None


def set_router(router_instance: Optional[RelayRouter]) -> None:
    """Set the global router instance."""
    global router
    router = router_instance


def get_router() -> RelayRouter:
    """Get the global router instance."""
    if router is None:
        raise RuntimeError("Router not initialized. Did you call set_router?")
    return router
