"""
Feeder Report Service
Resolves report requests (daily, range, monthly, feeder-specific) against a
feeder store, fetches one snapshot per request and assembles the report.
"""

import calendar
import logging
from datetime import date
from typing import Any, List, Optional, Tuple

from feeder_models import DateRange, to_utc_day, utc_today
from feeder_store import FeederStore, find_by_name
from report_engine import FeederReport, assemble_report
from report_errors import InvalidRangeError, InvalidRequestError, NoDataError, NotFoundError

logger = logging.getLogger(__name__)


# ============================================================================
# DATE WINDOWS
# ============================================================================

def parse_day(value: Any, label: str) -> date:
    """Parse a request date, raising InvalidRangeError on garbage."""
    if value is None or value == "":
        raise InvalidRangeError(f"{label} is required")
    try:
        return to_utc_day(value)
    except (TypeError, ValueError) as e:
        raise InvalidRangeError(f"{label} must be a valid date: {value!r}") from e


def daily_date_range(specific_date: Any = None, today: Optional[date] = None) -> DateRange:
    """
    Window for the daily report.

    A specific date reports that single day; otherwise the window runs from
    the 1st of the current UTC month through today.
    """
    if specific_date:
        day = parse_day(specific_date, "specificDate")
        return DateRange(day, day)

    today = today or utc_today()
    return DateRange(today.replace(day=1), today)


def monthly_date_range(month: Any, year: Any) -> DateRange:
    """Full calendar month window (1st through last day)."""
    try:
        month_num = int(month)
        year_num = int(year)
    except (TypeError, ValueError) as e:
        raise InvalidRangeError(f"month and year must be integers: {month!r}, {year!r}") from e

    if not 1 <= month_num <= 12:
        raise InvalidRangeError("month must be 1-12")
    if year_num < 2000:
        raise InvalidRangeError("year must be a valid year")

    last_day = calendar.monthrange(year_num, month_num)[1]
    return DateRange(date(year_num, month_num, 1), date(year_num, month_num, last_day))


def explicit_date_range(start_date: Any, end_date: Any) -> DateRange:
    date_range = DateRange(parse_day(start_date, "startDate"), parse_day(end_date, "endDate"))
    if date_range.is_inverted:
        raise InvalidRangeError(
            f"endDate {date_range.end.isoformat()} is before startDate {date_range.start.isoformat()}"
        )
    return date_range


# ============================================================================
# FILTER RESOLUTION
# ============================================================================

def resolve_filters(
    store: FeederStore,
    region: Optional[str] = None,
    business_hub: Optional[str] = None
) -> Tuple[Optional[str], Optional[str]]:
    """
    Turn region / business hub names into ids.

    Raises:
        NotFoundError: a named region or business hub does not exist
    """
    region_id = None
    business_hub_id = None

    if region:
        match = find_by_name(store.list_regions(), region)
        if match is None:
            raise NotFoundError(f"Region '{region}' not found")
        region_id = match.id

    if business_hub:
        match = find_by_name(store.list_business_hubs(), business_hub)
        if match is None:
            raise NotFoundError(f"Business Hub '{business_hub}' not found")
        business_hub_id = match.id

    return region_id, business_hub_id


# ============================================================================
# REPORT MODES
# ============================================================================

def _build(store: FeederStore, feeders: List, date_range: DateRange) -> FeederReport:
    logger.info(f"📅 Report window: {date_range.label()}")
    readings = store.list_readings(date_range.start, date_range.end)
    if not readings:
        logger.warning(f"⚠️ No readings recorded between {date_range.label()}")
    return assemble_report(feeders, readings, date_range.start, date_range.end)


def build_daily_report(
    store: FeederStore,
    specific_date: Any = None,
    today: Optional[date] = None
) -> FeederReport:
    """Month-to-date report for every feeder, or a single specific day."""
    date_range = daily_date_range(specific_date, today)

    feeders = store.list_feeders()
    if not feeders:
        raise NoDataError("No feeders found in the system")

    return _build(store, feeders, date_range)


def build_range_report(
    store: FeederStore,
    start_date: Any,
    end_date: Any,
    region: Optional[str] = None,
    business_hub: Optional[str] = None
) -> FeederReport:
    """
    Report over an explicit window, optionally filtered by region and/or hub.

    Raises:
        InvalidRangeError: missing, malformed or inverted dates
        NotFoundError: unknown region or business hub name
        NoDataError: the filters matched no feeders
    """
    date_range = explicit_date_range(start_date, end_date)
    return _build_filtered(store, date_range, region, business_hub)


def build_monthly_report(
    store: FeederStore,
    month: Any,
    year: Any,
    region: Optional[str] = None,
    business_hub: Optional[str] = None
) -> FeederReport:
    date_range = monthly_date_range(month, year)
    return _build_filtered(store, date_range, region, business_hub)


def build_feeder_specific_report(
    store: FeederStore,
    feeder_ids: List[str],
    start_date: Any,
    end_date: Any
) -> FeederReport:
    """Report restricted to an explicit list of feeder ids."""
    if not feeder_ids:
        raise InvalidRequestError("feederIds must be a non-empty list")

    date_range = explicit_date_range(start_date, end_date)
    feeders = store.list_feeders(feeder_ids=list(feeder_ids))
    if not feeders:
        raise NoDataError("No feeders found with the specified IDs")

    return _build(store, feeders, date_range)


def _build_filtered(
    store: FeederStore,
    date_range: DateRange,
    region: Optional[str],
    business_hub: Optional[str]
) -> FeederReport:
    region_id, business_hub_id = resolve_filters(store, region, business_hub)

    feeders = store.list_feeders(region_id=region_id, business_hub_id=business_hub_id)
    if not feeders:
        raise NoDataError("No feeders found with the specified criteria")

    return _build(store, feeders, date_range)
