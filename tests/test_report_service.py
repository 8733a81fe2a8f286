"""Tests for the report modes and request resolution."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from feeder_models import DateRange
from feeder_store import InMemoryFeederStore
from report_engine import NO_FLAGS
from report_errors import InvalidRangeError, InvalidRequestError, NoDataError, NotFoundError, ReportError
from report_service import (
    build_daily_report,
    build_feeder_specific_report,
    build_monthly_report,
    build_range_report,
    daily_date_range,
    monthly_date_range,
    resolve_filters,
)


class TestDateWindows:
    """Tests for report date windows."""

    def test_daily_defaults_to_month_to_date(self):
        assert daily_date_range(today=date(2025, 3, 17)) == DateRange(date(2025, 3, 1), date(2025, 3, 17))

    def test_daily_on_first_of_month(self):
        assert daily_date_range(today=date(2025, 3, 1)) == DateRange(date(2025, 3, 1), date(2025, 3, 1))

    def test_specific_date_is_single_day(self):
        assert daily_date_range("2025-02-10T15:45:00Z") == DateRange(date(2025, 2, 10), date(2025, 2, 10))

    def test_specific_date_must_parse(self):
        with pytest.raises(InvalidRangeError):
            daily_date_range("not-a-date")

    def test_monthly_covers_calendar_month(self):
        assert monthly_date_range(2, 2024) == DateRange(date(2024, 2, 1), date(2024, 2, 29))
        assert monthly_date_range("12", "2025") == DateRange(date(2025, 12, 1), date(2025, 12, 31))

    @pytest.mark.parametrize("month, year", [(0, 2025), (13, 2025), (5, 1999), ("may", 2025)])
    def test_monthly_rejects_bad_input(self, month, year):
        with pytest.raises(InvalidRangeError):
            monthly_date_range(month, year)


class TestResolveFilters:
    """Tests for region / business hub name resolution."""

    def test_case_insensitive_exact_match(self, store):
        assert resolve_filters(store, region="nORTH", business_hub="ikeja") == ("r-north", "h-ikeja")

    def test_no_filters(self, store):
        assert resolve_filters(store) == (None, None)

    def test_partial_name_does_not_match(self, store):
        with pytest.raises(NotFoundError):
            resolve_filters(store, region="Nor")

    def test_unknown_business_hub(self, store):
        with pytest.raises(NotFoundError, match="Business Hub 'Nowhere' not found"):
            resolve_filters(store, business_hub="Nowhere")


class TestBuildDailyReport:
    """Tests for the daily / month-to-date report."""

    def test_month_to_date(self, store):
        report = build_daily_report(store, today=date(2025, 1, 3))

        assert report.days == (date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3))
        assert report.feeder_count == 3
        assert [r.feeder.id for r in report.bucket(NO_FLAGS)] == ["f-1", "f-3"]

    def test_specific_date(self, store):
        report = build_daily_report(store, specific_date="2025-01-02")

        assert report.days == (date(2025, 1, 2),)
        oregun = report.rows[1]
        assert oregun.days[0].nomination == 50
        assert oregun.days[0].actual == 100

    def test_no_feeders(self):
        with pytest.raises(NoDataError):
            build_daily_report(InMemoryFeederStore(), today=date(2025, 1, 3))

    def test_no_readings_still_builds(self, north, ikeja, feeders):
        store = InMemoryFeederStore(regions=[north], business_hubs=[ikeja], feeders=feeders)

        report = build_daily_report(store, today=date(2025, 1, 3))

        assert report.feeder_count == 3
        assert report.failed_checks_summary == ()

    def test_readings_fetched_once(self, store):
        spy = MagicMock(wraps=store.list_readings)
        store.list_readings = spy

        build_daily_report(store, today=date(2025, 1, 3))

        spy.assert_called_once_with(date(2025, 1, 1), date(2025, 1, 3))


class TestBuildRangeReport:
    """Tests for the arbitrary-range report."""

    def test_region_filter(self, store):
        report = build_range_report(store, "2025-01-01", "2025-01-03", region="south")

        assert [g.name for g in report.region_groups] == ["South"]
        assert [r.feeder.id for r in report.rows] == ["f-3"]

    def test_business_hub_filter(self, store):
        report = build_range_report(store, "2025-01-01", "2025-01-03", business_hub="IKEJA")
        assert [r.feeder.id for r in report.rows] == ["f-1", "f-2"]

    def test_unknown_region_is_not_found(self, store):
        with pytest.raises(NotFoundError, match="Region 'Atlantis' not found"):
            build_range_report(store, "2025-01-01", "2025-01-03", region="Atlantis")

    def test_filters_matching_nothing_is_no_data(self, store):
        # Both exist, but no feeder is in North and Lekki at once
        with pytest.raises(NoDataError):
            build_range_report(store, "2025-01-01", "2025-01-03", region="North", business_hub="Lekki")

    def test_inverted_range_is_rejected(self, store):
        with pytest.raises(InvalidRangeError):
            build_range_report(store, "2025-01-03", "2025-01-01")

    def test_missing_dates_are_rejected(self, store):
        with pytest.raises(InvalidRangeError, match="startDate is required"):
            build_range_report(store, None, "2025-01-01")

    def test_day_index_follows_range_start(self, store):
        report = build_range_report(store, "2025-01-02", "2025-01-03")
        alausa = report.rows[0]

        assert [d.nomination for d in alausa.days] == [100, 200]
        assert alausa.last_reading.day_index == 2


class TestOtherModes:
    """Tests for the monthly and feeder-specific modes."""

    def test_monthly_report(self, store):
        report = build_monthly_report(store, 1, 2025, region="North")

        assert len(report.days) == 31
        assert [r.feeder.id for r in report.rows] == ["f-1", "f-2"]

    def test_feeder_specific_report(self, store):
        report = build_feeder_specific_report(store, ["f-3", "f-1"], "2025-01-01", "2025-01-03")
        assert [r.feeder.id for r in report.rows] == ["f-1", "f-3"]

    def test_feeder_specific_requires_ids(self, store):
        with pytest.raises(InvalidRequestError) as exc_info:
            build_feeder_specific_report(store, [], "2025-01-01", "2025-01-03")

        assert isinstance(exc_info.value, ReportError)

    def test_feeder_specific_unknown_ids(self, store):
        with pytest.raises(NoDataError):
            build_feeder_specific_report(store, ["nope"], "2025-01-01", "2025-01-03")
