"""
Tests for metric aggregation and per-metric coverage gaps.

Covers:
- Numeric coercion of missing and malformed cells
- Sums over PerformanceRows and raw mappings, with category predicates
- Coverage, gap, missing value and severity of a single metric
- Market and period selectors
"""

import math

import pytest

from coverage_compass.models import CoreMetric, Dimension, GapSeverity
from coverage_compass.services.aggregation import (
    aggregate_totals,
    parse_numeric,
    resolve_metric,
    sum_metric,
)
from coverage_compass.services.gaps import calculate_metric_gap, classify_severity
from coverage_compass.services.selection import (
    filter_rows,
    parse_period,
    previous_period,
    select_markets,
)
from coverage_compass.tests.conftest import make_row


class TestParseNumeric:
    """Metric cells never raise during coercion."""

    @pytest.mark.parametrize('raw,expected', [
        (None, 0.0),
        ('', 0.0),
        ('   ', 0.0),
        ('n/a', 0.0),
        ('1,234.5', 1234.5),
        (' 42 ', 42.0),
        (7, 7.0),
        (float('nan'), 0.0),
        (float('inf'), 0.0),
        (True, 0.0),
    ])
    def test_coercion(self, raw, expected):
        assert parse_numeric(raw) == expected

    def test_malformed_row_values_become_zero(self):
        row = make_row(Dimension.MODEL, value='X5')
        row = row.model_validate({**row.model_dump(), 'nvwr': 'not a number', 'clicks': None})
        assert row.nvwr == 0.0
        assert row.clicks == 0.0


class TestSumMetric:

    def test_empty_collection_sums_to_zero(self):
        assert sum_metric([], CoreMetric.NVWR) == 0.0

    def test_sums_performance_rows(self):
        rows = [make_row(nvwr=10), make_row(nvwr=32.5)]
        assert sum_metric(rows, CoreMetric.NVWR) == pytest.approx(42.5)

    def test_sums_raw_mappings_with_extract_headers(self):
        rows = [
            {'dimension': 'All', 'Media Cost': '1,000'},
            {'dimension': 'All', 'mediaCost': 250},
            {'dimension': 'All', 'Media Cost': None},
        ]
        assert sum_metric(rows, 'Media Cost') == pytest.approx(1250.0)

    def test_predicate_filters_on_dimension_value(self):
        rows = [
            make_row(Dimension.MODEL, value='X5', nvwr=30),
            make_row(Dimension.MODEL, value='X3', nvwr=70),
        ]
        assert sum_metric(rows, CoreMetric.NVWR, predicate=lambda value: value == 'X5') == pytest.approx(30.0)

    def test_predicate_on_mapping_rows(self):
        rows = [
            {'dimension': 'Channel Name', 'channelName': 'Google', 'nvwr': 5},
            {'dimension': 'ChannelName', 'channelName': 'Meta', 'nvwr': 7},
        ]
        assert sum_metric(rows, CoreMetric.NVWR, predicate=lambda value: value == 'Meta') == pytest.approx(7.0)

    def test_resolve_metric_accepts_names_and_labels(self):
        assert resolve_metric('nvwr') is CoreMetric.NVWR
        assert resolve_metric('Media Cost') is CoreMetric.MEDIA_COST
        with pytest.raises(ValueError):
            resolve_metric('revenue')

    def test_aggregate_totals(self):
        rows = [
            make_row(media_cost=100, impressions=1000, clicks=10, iv=3, nvwr=1),
            make_row(media_cost=50, impressions=500, clicks=5, iv=2, nvwr=1),
        ]
        totals = aggregate_totals(rows)
        assert totals.mediaCost == pytest.approx(150)
        assert totals.impressions == pytest.approx(1500)
        assert totals.clicks == pytest.approx(15)
        assert totals.iv == pytest.approx(5)
        assert totals.nvwr == pytest.approx(2)


class TestCalculateMetricGap:

    @pytest.mark.scenario
    def test_ninety_percent_coverage(self):
        gap = calculate_metric_gap(CoreMetric.NVWR, 1000, 900)
        assert gap.coveragePct == 90.0
        assert gap.coverageGapPct == 10.0
        assert gap.severity == GapSeverity.WARNING
        assert gap.missingValue == 100.0

    @pytest.mark.scenario
    def test_zero_all_total_is_full_coverage(self):
        gap = calculate_metric_gap(CoreMetric.NVWR, 0, 250)
        assert gap.coveragePct == 100.0
        assert gap.coverageGapPct == 0.0
        assert gap.missingValue == 0.0
        assert gap.severity == GapSeverity.OK

    def test_zero_all_and_zero_dimension(self):
        gap = calculate_metric_gap(CoreMetric.CLICKS, 0, 0)
        assert gap.coveragePct == 100.0

    def test_over_reporting_is_not_clamped(self):
        gap = calculate_metric_gap(CoreMetric.CLICKS, 100, 120)
        assert gap.coveragePct == 120.0
        assert gap.coverageGapPct == -20.0
        assert gap.severity == GapSeverity.OK

    def test_negative_totals_do_not_raise(self):
        gap = calculate_metric_gap(CoreMetric.MEDIA_COST, -100, 50)
        assert math.isfinite(gap.coveragePct)

    def test_coverage_rounded_to_two_decimals(self):
        gap = calculate_metric_gap(CoreMetric.IV, 3, 2)
        assert gap.coveragePct == 66.67
        assert gap.coverageGapPct == 33.33

    @pytest.mark.parametrize('dimension_total', [0, 1, 250.5, 999, 1000])
    def test_coverage_bounded_when_dimension_within_all(self, dimension_total):
        gap = calculate_metric_gap(CoreMetric.IMPRESSIONS, 1000, dimension_total)
        assert 0.0 <= gap.coveragePct <= 100.0


class TestClassifySeverity:

    @pytest.mark.parametrize('gap,expected', [
        (0.0, GapSeverity.OK),
        (9.99, GapSeverity.OK),
        (10.0, GapSeverity.WARNING),
        (20.0, GapSeverity.WARNING),
        (20.01, GapSeverity.CRITICAL),
        (100.0, GapSeverity.CRITICAL),
        (-5.0, GapSeverity.OK),
    ])
    def test_boundaries(self, gap, expected):
        assert classify_severity(gap) == expected


class TestSelection:

    def test_parse_period(self):
        assert parse_period('2025-07') == (2025, 7)
        assert parse_period('all-periods') is None
        assert parse_period(None) is None

    @pytest.mark.parametrize('bad', ['2025-13', 'July', '25-07', '2025/07'])
    def test_parse_period_rejects_malformed(self, bad):
        with pytest.raises(ValueError):
            parse_period(bad)

    def test_previous_period_wraps_year(self):
        assert previous_period(2025, 1) == (2024, 12)
        assert previous_period(2025, 7) == (2025, 6)

    def test_select_markets(self, sample_rows):
        assert select_markets(sample_rows, 'all') == ['BE', 'FR']
        assert select_markets(sample_rows, 'fr') == ['FR']

    def test_filter_rows(self, sample_rows):
        rows = filter_rows(sample_rows, dimension=Dimension.MODEL, markets=['BE'], period=(2025, 7))
        assert len(rows) == 1
        assert rows[0].nvwr == 300.0
        assert filter_rows(sample_rows, period=(2025, 8)) == []
