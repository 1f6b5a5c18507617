"""
Shared Dependencies for Routers

Lazy-loaded singletons to optimize cold start.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from storefront.cart import EngineClient


# ==================== LAZY SINGLETONS ====================

_engine_client: Optional["EngineClient"] = None


def get_engine_client() -> "EngineClient":
    """Get or create the shared EngineClient (lazy loaded)."""
    global _engine_client
    if _engine_client is None:
        from storefront.cart import EngineClient
        _engine_client = EngineClient()
    return _engine_client


# ==================== SHUTDOWN HELPERS ====================

async def shutdown_services():
    """Cleanly close singleton services (http clients, etc.)."""
    global _engine_client
    if _engine_client is not None:
        try:
            await _engine_client.aclose()
        finally:
            _engine_client = None
