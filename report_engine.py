"""
Feeder Performance Report Engine
Projects daily cumulative readings onto a date grid, computes nomination and
variance per feeder per day, and classifies feeders on their last reading.

Everything in this module is pure: inputs are treated as an immutable snapshot
and nothing is written back to the reading store.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from feeder_models import DateRange, Feeder, FeederReading, UNKNOWN_NAME

logger = logging.getLogger(__name__)


# ============================================================================
# ANALYSIS CATEGORIES
# ============================================================================

ACTUAL_REGRESSION = "Actual D-0 < Actual D-1"
UNDER_NOMINATION = "< 70% Nom"
OVER_NOMINATION = "> 130% Nom"
UNDER_DAILY_UPTAKE = "< 70% Daily Uptake"
OVER_DAILY_UPTAKE = "> 130% Daily Uptake"
POSITIVE_VARIANCE = "Positive Variance"
NO_FLAGS = "No Flags"
FAILED_CHECKS_SUMMARY = "Failed Checks Summary"

FAILED_CHECK_CATEGORIES = [
    ACTUAL_REGRESSION,
    UNDER_NOMINATION,
    OVER_NOMINATION,
    UNDER_DAILY_UPTAKE,
    OVER_DAILY_UPTAKE,
]

ROW_CATEGORIES = FAILED_CHECK_CATEGORIES + [POSITIVE_VARIANCE, NO_FLAGS]
ANALYSIS_CATEGORIES = ROW_CATEGORIES + [FAILED_CHECKS_SUMMARY]

LOWER_TOLERANCE = 0.7
UPPER_TOLERANCE = 1.3


# ============================================================================
# DATE RANGE EXPANSION
# ============================================================================

def expand_date_range(start: Any, end: Any) -> List[date]:
    """
    Expand an inclusive (start, end) pair into one UTC day per entry.

    Time-of-day on either bound is ignored. An inverted range yields an
    empty list.
    """
    return list(DateRange.of(start, end))


# ============================================================================
# NOMINATION
# ============================================================================

def nomination(feeder: Feeder, day_index: int) -> float:
    """Expected cumulative delivery ``day_index`` days into the reporting window."""
    return feeder.daily_energy_uptake * day_index


# ============================================================================
# VARIANCE
# ============================================================================

@dataclass(frozen=True)
class DayValues:
    """Nomination / actual / variance triple for one feeder on one day."""
    date: date
    nomination: float
    actual: float
    variance: float


@dataclass(frozen=True)
class LastReadingMetrics:
    """Metrics for the latest day in the window that has a stored reading."""
    date: date
    day_index: int
    actual: float
    nomination: float
    variance: float
    previous_day_actual: float


def group_readings_by_feeder(
    readings: Iterable[FeederReading],
    days: List[date]
) -> Dict[str, Dict[date, FeederReading]]:
    """
    Index readings by feeder id, then by day.

    Readings outside ``days`` are dropped. A later reading for the same
    (feeder, day) replaces an earlier one.
    """
    in_window = set(days)
    grouped: Dict[str, Dict[date, FeederReading]] = {}

    for reading in readings:
        if reading.date not in in_window:
            continue
        grouped.setdefault(reading.feeder_id, {})[reading.date] = reading

    return grouped


def carry_forward_actuals(
    days: List[date],
    readings_by_day: Mapping[date, FeederReading]
) -> List[float]:
    """
    Report-only actuals per day.

    A day without a reading repeats the previous day's computed actual (0
    before the first reading). The result is for display and must never be
    stored back as readings.
    """
    actuals = []
    previous = 0.0
    for day in days:
        reading = readings_by_day.get(day)
        actual = reading.cumulative_energy_consumption if reading is not None else previous
        actuals.append(actual)
        previous = actual
    return actuals


def compute_day_values(
    feeder: Feeder,
    days: List[date],
    readings_by_day: Mapping[date, FeederReading]
) -> List[DayValues]:
    """Nomination, carried-forward actual and variance for every day, in order."""
    actuals = carry_forward_actuals(days, readings_by_day)

    values = []
    for day_index, (day, actual) in enumerate(zip(days, actuals), start=1):
        nom = nomination(feeder, day_index)
        values.append(DayValues(date=day, nomination=nom, actual=actual, variance=actual - nom))
    return values


def last_reading_date(readings_by_day: Mapping[date, FeederReading]) -> Optional[date]:
    """Latest day with a stored reading, or None."""
    if not readings_by_day:
        return None
    return max(readings_by_day)


def last_reading_metrics(
    feeder: Feeder,
    days: List[date],
    readings_by_day: Mapping[date, FeederReading]
) -> Optional[LastReadingMetrics]:
    """
    Metrics used by the compliance checks.

    Uses the stored readings only: the actual is the last stored value and
    the previous-day actual is the stored value on the calendar day before it
    (0 when absent), not the carried-forward figure.
    """
    last_date = last_reading_date(readings_by_day)
    if last_date is None:
        return None

    day_index = days.index(last_date) + 1 if last_date in days else 0
    previous = readings_by_day.get(last_date - timedelta(days=1))
    previous_day_actual = previous.cumulative_energy_consumption if previous is not None else 0.0

    actual = readings_by_day[last_date].cumulative_energy_consumption
    nom = nomination(feeder, day_index)

    return LastReadingMetrics(
        date=last_date,
        day_index=day_index,
        actual=actual,
        nomination=nom,
        variance=actual - nom,
        previous_day_actual=previous_day_actual,
    )


# ============================================================================
# COMPLIANCE CLASSIFICATION
# ============================================================================

class ToleranceOutcome(Enum):
    """Where a measured value sits against the 70%-130% tolerance band."""
    UNDER = "under"
    WITHIN = "within"
    OVER = "over"


def tolerance_outcome(value: float, target: float) -> ToleranceOutcome:
    if value < LOWER_TOLERANCE * target:
        return ToleranceOutcome.UNDER
    if value > UPPER_TOLERANCE * target:
        return ToleranceOutcome.OVER
    return ToleranceOutcome.WITHIN


NOMINATION_CHECKS = {
    ToleranceOutcome.UNDER: UNDER_NOMINATION,
    ToleranceOutcome.OVER: OVER_NOMINATION,
}

DAILY_UPTAKE_CHECKS = {
    ToleranceOutcome.UNDER: UNDER_DAILY_UPTAKE,
    ToleranceOutcome.OVER: OVER_DAILY_UPTAKE,
}


@dataclass(frozen=True)
class Classification:
    """
    Outcome of the compliance checks for one feeder.

    ``evaluated`` is False when there was no usable reading (no reading in the
    window, or a zero/negative actual); such a feeder belongs to no category.
    The daily uptake outcome is None on the first day of the window.
    """
    evaluated: bool = False
    actual_regression: bool = False
    nomination_outcome: ToleranceOutcome = ToleranceOutcome.WITHIN
    daily_uptake_outcome: Optional[ToleranceOutcome] = None
    positive_variance: bool = False

    @property
    def failed_checks(self) -> List[str]:
        failed = []
        if self.actual_regression:
            failed.append(ACTUAL_REGRESSION)
        if self.nomination_outcome in NOMINATION_CHECKS:
            failed.append(NOMINATION_CHECKS[self.nomination_outcome])
        if self.daily_uptake_outcome in DAILY_UPTAKE_CHECKS:
            failed.append(DAILY_UPTAKE_CHECKS[self.daily_uptake_outcome])
        return failed

    @property
    def no_flags(self) -> bool:
        return self.evaluated and not self.failed_checks

    def categories(self) -> List[str]:
        """Every row category this classification routes a feeder into."""
        if not self.evaluated:
            return []
        categories = self.failed_checks
        if self.positive_variance:
            categories.append(POSITIVE_VARIANCE)
        if self.no_flags:
            categories.append(NO_FLAGS)
        return categories


NOT_EVALUATED = Classification()


def classify(feeder: Feeder, metrics: Optional[LastReadingMetrics]) -> Classification:
    """
    Run the compliance checks on a feeder's last-reading metrics.

    Args:
        feeder: Feeder supplying the daily energy uptake target
        metrics: Last-reading metrics, or None when the feeder has no reading

    Returns:
        Classification; NOT_EVALUATED for missing or non-positive actuals
    """
    if metrics is None or metrics.actual <= 0:
        return NOT_EVALUATED

    past_first_day = metrics.day_index > 1
    daily_uptake_outcome = None
    if past_first_day:
        daily_uptake_outcome = tolerance_outcome(
            metrics.actual - metrics.previous_day_actual,
            feeder.daily_energy_uptake
        )

    return Classification(
        evaluated=True,
        actual_regression=past_first_day and metrics.actual <= metrics.previous_day_actual,
        nomination_outcome=tolerance_outcome(metrics.actual, metrics.nomination),
        daily_uptake_outcome=daily_uptake_outcome,
        positive_variance=metrics.variance >= 0,
    )


# ============================================================================
# REPORT ASSEMBLY
# ============================================================================

@dataclass(frozen=True)
class ReportRow:
    """One feeder's row: static attributes, day triples and classification."""
    serial: int
    feeder: Feeder
    region_name: str
    business_hub_name: str
    days: Tuple[DayValues, ...]
    last_reading: Optional[LastReadingMetrics]
    classification: Classification

    @property
    def failed_checks(self) -> List[str]:
        return self.classification.failed_checks


@dataclass(frozen=True)
class RegionGroup:
    name: str
    rows: Tuple[ReportRow, ...]


@dataclass(frozen=True)
class FailedChecksEntry:
    region: str
    business_hub: str
    feeder_name: str
    date: date
    failed_checks: Tuple[str, ...]

    @property
    def failed_checks_text(self) -> str:
        return ", ".join(self.failed_checks)


@dataclass(frozen=True)
class FeederReport:
    """Structured report handed to a renderer."""
    date_range: DateRange
    days: Tuple[date, ...]
    region_groups: Tuple[RegionGroup, ...]
    buckets: Dict[str, Tuple[ReportRow, ...]] = field(default_factory=dict)
    failed_checks_summary: Tuple[FailedChecksEntry, ...] = ()

    @property
    def rows(self) -> List[ReportRow]:
        return [row for group in self.region_groups for row in group.rows]

    @property
    def feeder_count(self) -> int:
        return sum(len(group.rows) for group in self.region_groups)

    @property
    def title(self) -> str:
        return f"FEEDER PERFORMANCE TRACKER ({self.date_range.label()})"

    def bucket(self, category: str) -> Tuple[ReportRow, ...]:
        return self.buckets.get(category, ())


def group_feeders_by_region(feeders: Iterable[Feeder]) -> Dict[str, List[Feeder]]:
    """Partition feeders by region name, keeping first-seen region order."""
    groups: Dict[str, List[Feeder]] = {}
    for feeder in feeders:
        groups.setdefault(feeder.region_name or UNKNOWN_NAME, []).append(feeder)
    return groups


def assemble_report(
    feeders: Iterable[Feeder],
    readings: Iterable[FeederReading],
    start: Any,
    end: Any
) -> FeederReport:
    """
    Build the feeder performance report for an inclusive date window.

    Args:
        feeders: Feeders in display order (region, business hub, name)
        readings: All readings in the window, for any of the feeders
        start: First day of the window
        end: Last day of the window

    Returns:
        FeederReport with region groups, category buckets and the failed
        checks summary. Empty inputs or an inverted window produce an empty,
        well-formed report.
    """
    date_range = DateRange.of(start, end)
    days = expand_date_range(date_range.start, date_range.end)
    readings_by_feeder = group_readings_by_feeder(readings, days)

    buckets: Dict[str, List[ReportRow]] = {category: [] for category in ROW_CATEGORIES}
    failed_summary: List[FailedChecksEntry] = []
    region_groups: List[RegionGroup] = []
    serial = 1

    for region_name, region_feeders in group_feeders_by_region(feeders).items():
        rows = []
        for feeder in region_feeders:
            readings_by_day = readings_by_feeder.get(feeder.id, {})
            metrics = last_reading_metrics(feeder, days, readings_by_day)
            classification = classify(feeder, metrics)

            row = ReportRow(
                serial=serial,
                feeder=feeder,
                region_name=region_name,
                business_hub_name=feeder.business_hub_name or UNKNOWN_NAME,
                days=tuple(compute_day_values(feeder, days, readings_by_day)),
                last_reading=metrics,
                classification=classification,
            )
            rows.append(row)
            serial += 1

            for category in classification.categories():
                buckets[category].append(row)

            if classification.failed_checks:
                failed_summary.append(FailedChecksEntry(
                    region=region_name,
                    business_hub=row.business_hub_name,
                    feeder_name=feeder.name,
                    date=metrics.date,
                    failed_checks=tuple(classification.failed_checks),
                ))

        region_groups.append(RegionGroup(name=region_name, rows=tuple(rows)))

    logger.info(
        f"Assembled report for {serial - 1} feeders over {len(days)} days "
        f"({len(failed_summary)} with failed checks)"
    )

    return FeederReport(
        date_range=date_range,
        days=tuple(days),
        region_groups=tuple(region_groups),
        buckets={category: tuple(rows) for category, rows in buckets.items()},
        failed_checks_summary=tuple(failed_summary),
    )
