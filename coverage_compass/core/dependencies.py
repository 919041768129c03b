"""
FastAPI dependency injection module for the Coverage Compass backend.

Key Dependencies Provided:
- get_settings_dependency: Returns the cached Settings singleton
- get_history_stores: Returns the history store pair created at startup
- SettingsDep: Type alias for injecting Settings into endpoints
- HistoryStoresDep: Type alias for injecting the history stores

The stores are created once in the application lifespan (PostgreSQL when
DATABASE_URL is configured, in-memory otherwise) and kept on `app.state`, so
endpoint handlers never reach for a module-level client.

Usage Examples:
    @router.get("/history/compliance")
    async def list_compliance(stores: HistoryStoresDep, settings: SettingsDep):
        return await stores.compliance.query(limit=settings.history_query_limit)

In tests, override with:
    app.dependency_overrides[get_history_stores] = lambda: stores
"""

from typing import Annotated

from fastapi import Depends, Request

from coverage_compass.core.config import Settings, get_settings
from coverage_compass.services.history import HistoryStores, create_history_stores


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so FastAPI's dependency override
    mechanism can swap it in tests.
    """
    return get_settings()


# =============================================================================
# History Store Dependency
# =============================================================================

def get_history_stores(request: Request) -> HistoryStores:
    """
    Return the history stores attached to the application.

    Falls back to fresh in-memory stores (and attaches them) when the
    application was started without the lifespan, e.g. in a bare TestClient.
    """
    stores = getattr(request.app.state, "history_stores", None)
    if stores is None:
        stores = create_history_stores()
        request.app.state.history_stores = stores
    return stores


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

# Usage: async def endpoint(settings: SettingsDep)
SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

# Usage: async def endpoint(stores: HistoryStoresDep)
HistoryStoresDep = Annotated[HistoryStores, Depends(get_history_stores)]
