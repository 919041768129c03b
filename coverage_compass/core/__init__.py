"""
Core infrastructure package for the Coverage Compass backend.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg
- FastAPI dependency injection utilities (coverage_compass.core.dependencies)

The dependencies module is imported directly by the API layer rather than
re-exported here, because it depends on the history service, which itself
builds on this package.

Usage Examples:
    from coverage_compass.core import get_settings, init_db, close_db
    settings = get_settings()
"""

from coverage_compass.core.config import Settings, get_settings
from coverage_compass.core.database import init_db, close_db, get_db_pool, is_db_configured


__all__ = [
    # Configuration
    'Settings',
    'get_settings',
    # Database
    'init_db',
    'close_db',
    'get_db_pool',
    'is_db_configured',
]
