"""
Tests for period processing: snapshot writes, MoM across runs, failure
isolation between units, coverage checks and trends.
"""

import pytest

from coverage_compass.models import Dimension, HistoryKind, SnapshotKey
from coverage_compass.services.history import HistoryUnavailableError, InMemoryHistoryStore
from coverage_compass.services.processing import (
    check_compliance_coverage,
    get_dimension_coverage_trends,
    group_rows_by_unit,
    process_compliance_history,
    process_dimension_coverage_history,
)
from coverage_compass.tests.conftest import full_coverage_rows, make_row, uniform_row


class FailingStore(InMemoryHistoryStore):
    """In-memory store whose writes or reads fail for the given markets."""

    def __init__(self, kind, write_failures=(), read_failures=()):
        super().__init__(kind)
        self.write_failures = set(write_failures)
        self.read_failures = set(read_failures)

    async def upsert(self, key, snapshot):
        if snapshot.market in self.write_failures:
            raise HistoryUnavailableError('connection reset')
        return await super().upsert(key, snapshot)

    async def query(self, filters=None, limit=100):
        if (filters or {}).get('market') in self.read_failures:
            raise HistoryUnavailableError('connection reset')
        return await super().query(filters, limit)


class RecordingStore(InMemoryHistoryStore):
    """In-memory store that logs the order of reads and writes."""

    def __init__(self, kind):
        super().__init__(kind)
        self.calls = []

    async def upsert(self, key, snapshot):
        self.calls.append('upsert')
        return await super().upsert(key, snapshot)

    async def query(self, filters=None, limit=100):
        self.calls.append('query')
        return await super().query(filters, limit)


def model_rows(market, month, mapped, unmapped):
    rows = [make_row(Dimension.MODEL, market, month=month, value='X5', nvwr=1) for _ in range(mapped)]
    rows += [make_row(Dimension.MODEL, market, month=month, value='Not Mapped', nvwr=1) for _ in range(unmapped)]
    return rows


class TestGrouping:

    def test_units_sorted_by_key(self):
        rows = [make_row(market='FR', month=7), make_row(market='BE', month=8), make_row(market='BE', month=7)]
        assert list(group_rows_by_unit(rows)) == [('BE', 2025, 7), ('BE', 2025, 8), ('FR', 2025, 7)]


class TestComplianceProcessing:

    async def test_writes_one_snapshot_per_unit(self, compliance_rows, compliance_store):
        result = await process_compliance_history(compliance_rows, compliance_store)

        assert result.success is True
        assert [(unit.market, unit.snapshotsWritten) for unit in result.results] == [('BE', 1), ('FR', 1)]
        assert result.message == 'Processed 2/2 compliance units, 2 snapshots written'

        stored = await compliance_store.query({'market': 'FR'})
        assert stored[0].compliancePct == pytest.approx(75.0)
        assert stored[0].monthName == 'July'

    async def test_second_month_gets_mom(self, compliance_store):
        june = model_rows('FR', 6, mapped=8, unmapped=2)
        july = model_rows('FR', 7, mapped=9, unmapped=1)

        first = await process_compliance_history(june, compliance_store)
        second = await process_compliance_history(july, compliance_store)

        assert first.results[0].momAvailable is False
        assert second.results[0].momAvailable is True
        assert second.results[0].records == 10
        assert len(compliance_store) == 2

    async def test_previous_snapshots_read_before_any_write(self, compliance_rows):
        store = RecordingStore(HistoryKind.COMPLIANCE)

        await process_compliance_history(compliance_rows, store)

        assert store.calls == ['query', 'query', 'upsert', 'upsert']

    async def test_consecutive_months_in_one_upload_have_no_mom(self, compliance_store):
        june = model_rows('FR', 6, mapped=8, unmapped=2)
        july = model_rows('FR', 7, mapped=9, unmapped=1)

        together = await process_compliance_history(june + july, compliance_store)
        rerun = await process_compliance_history(july, compliance_store)

        assert [unit.momAvailable for unit in together.results] == [False, False]
        assert rerun.results[0].momAvailable is True
        assert len(compliance_store) == 2

    async def test_rerun_overwrites_snapshot(self, compliance_store):
        rows = model_rows('FR', 7, mapped=1, unmapped=1)
        await process_compliance_history(rows, compliance_store)
        await process_compliance_history(model_rows('FR', 7, mapped=2, unmapped=0), compliance_store)

        stored = await compliance_store.query()
        assert len(stored) == 1
        assert stored[0].compliancePct == 100.0

    async def test_store_failure_isolated_to_unit(self, compliance_rows):
        store = FailingStore(HistoryKind.COMPLIANCE, write_failures={'BE'})

        result = await process_compliance_history(compliance_rows, store)

        be, fr = result.results
        assert result.success is False
        assert be.success is False
        assert be.snapshotsWritten == 0
        assert 'snapshot not stored' in be.errors[0]
        assert fr.success is True
        assert len(store) == 1

    async def test_unreadable_history_disables_mom_only(self, compliance_rows):
        store = FailingStore(HistoryKind.COMPLIANCE, read_failures={'FR'})

        result = await process_compliance_history(compliance_rows, store)

        fr = next(unit for unit in result.results if unit.market == 'FR')
        assert fr.success is True
        assert fr.momAvailable is False
        assert fr.snapshotsWritten == 1
        assert 'previous snapshot unavailable' in fr.errors[0]

    async def test_unit_without_sliced_rows_fails(self, compliance_store):
        result = await process_compliance_history([make_row(Dimension.ALL, 'NL', nvwr=5)], compliance_store)
        assert result.success is False
        assert result.results[0].errors == ['no data']

    async def test_empty_rows(self, compliance_store):
        result = await process_compliance_history([], compliance_store)
        assert result.success is False
        assert result.results == []


class TestDimensionCoverageProcessing:

    async def test_snapshot_per_dimension(self, sample_rows, coverage_store):
        result = await process_dimension_coverage_history(sample_rows, coverage_store)

        assert result.success is True
        assert [unit.snapshotsWritten for unit in result.results] == [5, 5]

        be_model = await coverage_store.query({'market': 'BE', 'dimension': Dimension.MODEL})
        assert be_model[0].overallCoverage == pytest.approx(60.0)
        assert be_model[0].nvwrGap == pytest.approx(40.0)
        assert be_model[0].missingMediaCost == pytest.approx(200.0)
        assert be_model[0].allNvwr == pytest.approx(500.0)
        assert be_model[0].dimensionNvwr == pytest.approx(300.0)

    async def test_missing_dimension_is_skipped(self, coverage_store):
        rows = [row for row in full_coverage_rows('FR') if row.dimension != Dimension.PHASE]

        result = await process_dimension_coverage_history(rows, coverage_store)

        assert result.results[0].snapshotsWritten == 4
        assert await coverage_store.query({'dimension': Dimension.PHASE}) == []

    async def test_unit_without_all_rows_fails(self, coverage_store):
        rows = [uniform_row(Dimension.MODEL, 10.0, 'NL')]

        result = await process_dimension_coverage_history(rows, coverage_store)

        assert result.results[0].success is False
        assert len(coverage_store) == 0

    async def test_write_failures_recorded(self, sample_rows):
        store = FailingStore(HistoryKind.DIMENSION_COVERAGE, write_failures={'FR'})

        result = await process_dimension_coverage_history(sample_rows, store)

        be, fr = result.results
        assert be.success is True
        assert fr.success is False
        assert len(fr.errors) == 5


class TestCoverageCheckAndTrends:

    async def test_reports_missing_units(self, compliance_store, compliance_rows):
        await process_compliance_history([r for r in compliance_rows if r.market == 'FR'], compliance_store)

        check = await check_compliance_coverage(compliance_rows, compliance_store)

        assert check.hasData is True
        assert check.totalPeriods == 2
        assert check.coveredPeriods == 1
        assert check.missingPeriods == ['BE_2025_7']
        assert check.needsProcessing is True

    async def test_empty_rows_have_no_data(self, compliance_store):
        check = await check_compliance_coverage([], compliance_store)
        assert check.hasData is False
        assert check.needsProcessing is False

    async def test_unavailable_store_propagates(self, compliance_rows):
        store = FailingStore(HistoryKind.COMPLIANCE, read_failures={'FR'})
        with pytest.raises(HistoryUnavailableError):
            await check_compliance_coverage(compliance_rows, store)

    async def test_trends_newest_first(self, coverage_store):
        rows = []
        for month in (5, 6, 7):
            rows += full_coverage_rows('FR', 2025, month)
        await process_dimension_coverage_history(rows, coverage_store)

        trend = await get_dimension_coverage_trends(coverage_store, 'FR', Dimension.MODEL, months=2)

        assert [snapshot.month for snapshot in trend] == [7, 6]
        assert all(snapshot.key == SnapshotKey('FR', 2025, snapshot.month, 'Model') for snapshot in trend)
