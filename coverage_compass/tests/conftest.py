"""
Pytest Configuration and Shared Fixtures for Coverage Compass Tests.

This module provides fixtures for all backend tests:
- Row factories for All and category-sliced extracts
- A two-market, one-period sample selection with known coverage
- In-memory history stores
- Mock asyncpg pool for the PostgreSQL history adapter

Async tests run with pytest-asyncio (asyncio_mode = "auto", see pyproject.toml).
"""

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from coverage_compass.models import Dimension, HistoryKind, PerformanceRow
from coverage_compass.services.history import HistoryStores, InMemoryHistoryStore


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - scenario: worked examples with exact expected numbers
    """
    config.addinivalue_line(
        'markers',
        'scenario: worked examples with exact expected numbers'
    )


# ============================================================
# ROW FACTORIES
# ============================================================

def make_row(
    dimension: Dimension = Dimension.ALL,
    market: str = 'FR',
    year: int = 2025,
    month: int = 7,
    value: Optional[str] = None,
    media_cost: float = 0.0,
    impressions: float = 0.0,
    clicks: float = 0.0,
    iv: float = 0.0,
    nvwr: float = 0.0,
) -> PerformanceRow:
    """
    Build a PerformanceRow; `value` fills the dimension's categorical field.

    Example:
        make_row(Dimension.MODEL, value='X5', nvwr=10)
    """
    data: Dict[str, Any] = {
        'market': market,
        'year': year,
        'month': month,
        'dimension': dimension,
        'mediaCost': media_cost,
        'impressions': impressions,
        'clicks': clicks,
        'iv': iv,
        'nvwr': nvwr,
    }
    if dimension.field_name:
        data[dimension.field_name] = value
    return PerformanceRow(**data)


def uniform_row(
    dimension: Dimension,
    amount: float,
    market: str = 'FR',
    year: int = 2025,
    month: int = 7,
    value: Optional[str] = 'Mapped',
) -> PerformanceRow:
    """Row whose five metrics all equal `amount`."""
    return make_row(
        dimension, market=market, year=year, month=month, value=value,
        media_cost=amount, impressions=amount, clicks=amount, iv=amount, nvwr=amount,
    )


def full_coverage_rows(market: str = 'FR', year: int = 2025, month: int = 7, amount: float = 1000.0) -> List[PerformanceRow]:
    """All row plus one row per sliced dimension reproducing it exactly."""
    rows = [uniform_row(Dimension.ALL, amount, market, year, month, value=None)]
    for dimension in (
        Dimension.CHANNEL_NAME,
        Dimension.CHANNEL_TYPE,
        Dimension.CAMPAIGN_TYPE,
        Dimension.MODEL,
        Dimension.PHASE,
    ):
        rows.append(uniform_row(dimension, amount, market, year, month))
    return rows


# ============================================================
# SAMPLE DATA FIXTURES
# ============================================================

@pytest.fixture
def sample_rows() -> List[PerformanceRow]:
    """
    Two markets in 2025-07.

    FR: every dimension reproduces the All totals (1000 per metric).
    BE: All totals 500 per metric; Model only reproduces 300 of them
        (60% coverage), the other dimensions are complete.
    """
    rows = full_coverage_rows('FR')
    rows.append(uniform_row(Dimension.ALL, 500.0, 'BE', value=None))
    for dimension in (Dimension.CHANNEL_NAME, Dimension.CHANNEL_TYPE, Dimension.CAMPAIGN_TYPE, Dimension.PHASE):
        rows.append(uniform_row(dimension, 500.0, 'BE'))
    rows.append(uniform_row(Dimension.MODEL, 300.0, 'BE'))
    return rows


@pytest.fixture
def compliance_rows() -> List[PerformanceRow]:
    """
    Sliced rows for FR and BE in 2025-07 with known unmapped values.

    FR: 4 rows, 1 unmapped (Model 'Not Mapped') -> 75% compliance
    BE: 2 rows, all mapped -> 100% compliance
    """
    return [
        make_row(Dimension.ALL, 'FR', nvwr=100),
        make_row(Dimension.MODEL, 'FR', value='X5', nvwr=40),
        make_row(Dimension.MODEL, 'FR', value='Not Mapped', nvwr=10),
        make_row(Dimension.PHASE, 'FR', value='Awareness', nvwr=30),
        make_row(Dimension.CHANNEL_NAME, 'FR', value='Google', nvwr=20),
        make_row(Dimension.MODEL, 'BE', value='X3', nvwr=5),
        make_row(Dimension.CAMPAIGN_TYPE, 'BE', value='Brand', nvwr=5),
    ]


# ============================================================
# HISTORY STORE FIXTURES
# ============================================================

@pytest.fixture
def compliance_store() -> InMemoryHistoryStore:
    return InMemoryHistoryStore(HistoryKind.COMPLIANCE)


@pytest.fixture
def coverage_store() -> InMemoryHistoryStore:
    return InMemoryHistoryStore(HistoryKind.DIMENSION_COVERAGE)


@pytest.fixture
def history_stores(compliance_store, coverage_store) -> HistoryStores:
    return HistoryStores(compliance=compliance_store, dimension_coverage=coverage_store)


# ============================================================
# DATABASE MOCK FIXTURES
# ============================================================

@pytest.fixture
def mock_db_pool() -> AsyncMock:
    """
    Mock asyncpg pool whose acquire() yields a mock connection.

    Usage:
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetch.return_value = [{'market_code': 'FR', ...}]
    """
    pool = AsyncMock()

    conn = AsyncMock()
    conn.execute = AsyncMock(return_value='INSERT 0 1')
    conn.fetch = AsyncMock(return_value=[])

    # conn.transaction() is a sync call returning an async context manager
    transaction = AsyncMock()
    transaction.__aenter__ = AsyncMock(return_value=None)
    transaction.__aexit__ = AsyncMock(return_value=None)
    conn.transaction = Mock(return_value=transaction)

    acquire_context = AsyncMock()
    acquire_context.__aenter__ = AsyncMock(return_value=conn)
    acquire_context.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = Mock(return_value=acquire_context)

    pool.close = AsyncMock(return_value=None)

    return pool
