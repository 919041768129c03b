"""
Tests for the history stores.

Covers:
- In-memory upsert idempotence and query/trend ordering
- Key and type checks on write
- PostgreSQL adapter parameter binding and record mapping (mock pool)
- Storage failures surfacing as HistoryUnavailableError
- SQL generation for the history tables
"""

import json
from unittest.mock import AsyncMock, patch

import asyncpg
import pytest

from coverage_compass.models import (
    ComplianceSnapshot,
    Dimension,
    DimensionCoverageSnapshot,
    HistoryKind,
    SnapshotKey,
    UnmappedByField,
)
from coverage_compass.services.history import (
    HistoryUnavailableError,
    InMemoryHistoryStore,
    PostgresHistoryStore,
    create_history_stores,
    normalize_key,
)
from coverage_compass.sql import (
    COMPLIANCE_COLUMNS,
    COMPLIANCE_TABLE,
    DIMENSION_COVERAGE_TABLE,
    get_select_query,
    get_trend_query,
    get_upsert_query,
)


def compliance(market='FR', year=2025, month=7, pct=90.0) -> ComplianceSnapshot:
    return ComplianceSnapshot(market=market, year=year, month=month, compliancePct=pct)


def coverage(market='FR', year=2025, month=7, dimension=Dimension.MODEL, overall=95.0) -> DimensionCoverageSnapshot:
    return DimensionCoverageSnapshot(
        market=market, year=year, month=month, dimension=dimension, overallCoverage=overall,
    )


class TestNormalizeKey:

    def test_market_upper_and_dimension_plain(self):
        key = normalize_key(('fr ', '2025', 7, Dimension.MODEL))
        assert key == SnapshotKey('FR', 2025, 7, 'Model')

    def test_compliance_key_has_no_dimension(self):
        assert compliance().key == SnapshotKey('FR', 2025, 7, None)


class TestInMemoryStore:

    async def test_upsert_overwrites_same_key(self, compliance_store):
        await compliance_store.upsert(SnapshotKey('FR', 2025, 7), compliance(pct=80.0))
        await compliance_store.upsert(SnapshotKey('FR', 2025, 7), compliance(pct=85.5))

        stored = await compliance_store.query({'market': 'FR'})

        assert len(compliance_store) == 1
        assert len(stored) == 1
        assert stored[0].compliancePct == 85.5
        assert stored[0].updatedAt is not None

    async def test_query_most_recent_write_first(self, compliance_store):
        for month in (5, 7, 6):
            await compliance_store.upsert(SnapshotKey('FR', 2025, month), compliance(month=month))

        stored = await compliance_store.query()

        assert [snapshot.month for snapshot in stored] == [6, 7, 5]

    async def test_query_filters_and_limit(self, compliance_store):
        for market in ('FR', 'BE', 'NL'):
            await compliance_store.upsert(SnapshotKey(market, 2025, 7), compliance(market=market))
        await compliance_store.upsert(SnapshotKey('FR', 2025, 6), compliance(month=6))

        assert [s.market for s in await compliance_store.query({'month': 7}, limit=2)] == ['NL', 'BE']
        assert len(await compliance_store.query({'market': 'FR', 'year': 2025})) == 2
        assert await compliance_store.query({'market': 'DE'}) == []

    async def test_query_rejects_unknown_fields(self, compliance_store):
        with pytest.raises(ValueError):
            await compliance_store.query({'region': 'EU'})

    async def test_trend_newest_period_first(self, coverage_store):
        for year, month in ((2024, 12), (2025, 2), (2025, 1)):
            await coverage_store.upsert(
                SnapshotKey('FR', year, month, 'Model'), coverage(year=year, month=month),
            )
        await coverage_store.upsert(
            SnapshotKey('FR', 2025, 3, 'Phase'), coverage(month=3, dimension=Dimension.PHASE),
        )

        model_trend = await coverage_store.trend('fr', Dimension.MODEL, lookback_months=2)
        all_trend = await coverage_store.trend('FR')

        assert [(s.year, s.month) for s in model_trend] == [(2025, 2), (2025, 1)]
        assert [(s.year, s.month) for s in all_trend] == [(2025, 3), (2025, 2), (2025, 1), (2024, 12)]

    async def test_clear_returns_count(self, compliance_store):
        for month in (1, 2, 3):
            await compliance_store.upsert(SnapshotKey('FR', 2025, month), compliance(month=month))

        assert await compliance_store.clear() == 3
        assert await compliance_store.query() == []
        assert await compliance_store.clear() == 0

    async def test_key_mismatch_rejected(self, compliance_store):
        with pytest.raises(ValueError):
            await compliance_store.upsert(SnapshotKey('BE', 2025, 7), compliance(market='FR'))

    async def test_wrong_snapshot_type_rejected(self, compliance_store):
        with pytest.raises(TypeError):
            await compliance_store.upsert(SnapshotKey('FR', 2025, 7, 'Model'), coverage())

    def test_factory_without_pool_is_in_memory(self):
        stores = create_history_stores()
        assert isinstance(stores.compliance, InMemoryHistoryStore)
        assert stores.for_kind(HistoryKind.DIMENSION_COVERAGE).kind == HistoryKind.DIMENSION_COVERAGE


class TestPostgresStore:

    async def test_upsert_binds_columns_in_order(self, mock_db_pool):
        store = PostgresHistoryStore(HistoryKind.COMPLIANCE, mock_db_pool)
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        snapshot = compliance(pct=85.5).model_copy(update={'unmappedByField': UnmappedByField(model=2)})

        await store.upsert(SnapshotKey('FR', 2025, 7), snapshot)

        conn.execute.assert_awaited_once()
        query, *params = conn.execute.await_args.args
        assert 'ON CONFLICT (market_code, year, month)' in query
        assert params[:3] == ['FR', 2025, 7]
        assert len(params) == len(COMPLIANCE_COLUMNS)
        assert json.loads(params[-1])['model'] == 2
        conn.transaction.assert_called_once()

    async def test_query_maps_records(self, mock_db_pool):
        store = PostgresHistoryStore(HistoryKind.COMPLIANCE, mock_db_pool)
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetch.return_value = [{
            'market_code': 'FR', 'year': 2025, 'month': 6, 'month_name': 'June',
            'total_records': 10, 'mapped_records': 8, 'unmapped_records': 2,
            'compliance_percentage': 80.0, 'total_nvwr': 50.0, 'unmapped_nvwr': 5.0,
            'unmapped_nvwr_percentage': 10.0, 'unmapped_by_field': '{"model": 2}',
            'updated_at': None,
        }]

        stored = await store.query({'market': 'FR', 'month': 6}, limit=1)

        query, *params = conn.fetch.await_args.args
        assert params == ['FR', 6, 1]
        assert 'market_code = $1 AND month = $2' in query
        assert stored[0].compliancePct == 80.0
        assert stored[0].unmappedByField.model == 2

    async def test_trend_with_dimension(self, mock_db_pool):
        store = PostgresHistoryStore(HistoryKind.DIMENSION_COVERAGE, mock_db_pool)
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value

        await store.trend('fr', Dimension.CHANNEL_NAME, lookback_months=3)

        _, *params = conn.fetch.await_args.args
        assert params == ['FR', 'ChannelName', 3]

    async def test_clear_parses_command_tag(self, mock_db_pool):
        store = PostgresHistoryStore(HistoryKind.DIMENSION_COVERAGE, mock_db_pool)
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.execute.return_value = 'DELETE 3'

        assert await store.clear() == 3

    @pytest.mark.parametrize('error', [
        asyncpg.PostgresError('boom'),
        OSError('connection refused'),
    ])
    async def test_storage_errors_are_wrapped(self, mock_db_pool, error):
        store = PostgresHistoryStore(HistoryKind.COMPLIANCE, mock_db_pool)
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetch.side_effect = error

        with pytest.raises(HistoryUnavailableError):
            await store.query()

    async def test_unconfigured_database_is_unavailable(self):
        store = PostgresHistoryStore(HistoryKind.COMPLIANCE)
        with patch(
            'coverage_compass.services.history.get_db_pool',
            AsyncMock(side_effect=RuntimeError('DATABASE_URL is not configured')),
        ):
            with pytest.raises(HistoryUnavailableError):
                await store.upsert(SnapshotKey('FR', 2025, 7), compliance())


class TestHistoryQueries:

    def test_upsert_casts_jsonb(self):
        sql = get_upsert_query(COMPLIANCE_TABLE)
        assert f'${len(COMPLIANCE_COLUMNS)}::jsonb' in sql
        assert 'updated_at = NOW()' in sql

    def test_dimension_coverage_conflict_key(self):
        sql = get_upsert_query(DIMENSION_COVERAGE_TABLE)
        assert 'ON CONFLICT (market_code, year, month, dimension)' in sql
        assert 'dimension = EXCLUDED.dimension' not in sql

    def test_select_without_filters(self):
        sql = get_select_query(COMPLIANCE_TABLE, [])
        assert 'WHERE' not in sql
        assert 'LIMIT $1' in sql

    def test_select_rejects_unknown_field(self):
        with pytest.raises(ValueError):
            get_select_query(COMPLIANCE_TABLE, ['dimension'])

    def test_trend_query_parameters(self):
        assert 'LIMIT $2' in get_trend_query(COMPLIANCE_TABLE, with_dimension=False)
        assert 'LIMIT $3' in get_trend_query(DIMENSION_COVERAGE_TABLE, with_dimension=True)
