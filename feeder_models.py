"""
Feeder Tracker Domain Models
Regions, business hubs, feeders and their daily cumulative energy readings.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pandas as pd


UNKNOWN_NAME = "Unknown"


# ============================================================================
# DATE NORMALISATION
# ============================================================================

def to_utc_day(value: Any) -> date:
    """
    Normalise a date-like value to its UTC calendar day.

    Accepts ``date``, ``datetime`` (naive values are taken as UTC) and ISO
    strings. Time-of-day is discarded.
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return value

    ts = pd.Timestamp(value)
    if pd.isna(ts):
        raise ValueError(f"Not a valid date: {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC")
    return ts.date()


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


# ============================================================================
# ENTITIES
# ============================================================================

class Band(str, Enum):
    """Feeder service tiers (hours of supply per day)."""
    A20H = "A20H"
    B16H = "B16H"
    C12H = "C12H"
    D8H = "D8H"
    E4H = "E4H"


@dataclass(frozen=True)
class Region:
    id: str
    name: str

    @classmethod
    def from_api(cls, data: Dict) -> "Region":
        return cls(id=str(data.get("_id", "")), name=(data.get("name") or "").strip())


@dataclass(frozen=True)
class BusinessHub:
    id: str
    name: str
    region_id: str = ""

    @classmethod
    def from_api(cls, data: Dict) -> "BusinessHub":
        region_id, _ = _reference(data.get("region"))
        return cls(
            id=str(data.get("_id", "")),
            name=(data.get("name") or "").strip(),
            region_id=region_id,
        )


@dataclass(frozen=True)
class Feeder:
    """
    A metered distribution feeder.

    Region and business hub are stored independently on the feeder, so the
    region here need not be the hub's region. Display names are resolved by
    the catalog that supplies the feeder.
    """
    id: str
    name: str
    band: Band
    daily_energy_uptake: float
    monthly_delivery_plan: float
    previous_month_consumption: float = 0.0
    business_hub_id: str = ""
    region_id: str = ""
    business_hub_name: str = UNKNOWN_NAME
    region_name: str = UNKNOWN_NAME

    @classmethod
    def from_api(cls, data: Dict) -> "Feeder":
        """Build a feeder from a backend payload with populated hub/region refs."""
        hub_id, hub_name = _reference(data.get("businessHub"))
        region_id, region_name = _reference(data.get("region"))

        return cls(
            id=str(data["_id"]),
            name=(data.get("name") or "").strip(),
            band=Band(data.get("band")),
            daily_energy_uptake=_number(data.get("dailyEnergyUptake")),
            monthly_delivery_plan=_number(data.get("monthlyDeliveryPlan")),
            previous_month_consumption=_number(data.get("previousMonthConsumption")),
            business_hub_id=hub_id,
            region_id=region_id,
            business_hub_name=hub_name or UNKNOWN_NAME,
            region_name=region_name or UNKNOWN_NAME,
        )


@dataclass(frozen=True)
class ReadingHistoryEntry:
    """A superseded reading value kept for audit."""
    date: date
    cumulative_energy_consumption: float
    updated_at: Optional[datetime]
    updated_by: str = ""


@dataclass(frozen=True)
class FeederReading:
    """One feeder's cumulative energy counter as observed on one calendar day."""
    feeder_id: str
    date: date
    cumulative_energy_consumption: float
    recorded_by: str = ""
    history: Tuple[ReadingHistoryEntry, ...] = field(default_factory=tuple)

    def corrected(
        self,
        value: float,
        updated_by: str,
        updated_at: Optional[datetime] = None
    ) -> "FeederReading":
        """Return a copy holding ``value`` with the current value pushed into history."""
        entry = ReadingHistoryEntry(
            date=self.date,
            cumulative_energy_consumption=self.cumulative_energy_consumption,
            updated_at=updated_at or datetime.now(timezone.utc),
            updated_by=updated_by,
        )
        return replace(
            self,
            cumulative_energy_consumption=value,
            history=self.history + (entry,),
        )

    @classmethod
    def from_api(cls, data: Dict) -> "FeederReading":
        feeder_id, _ = _reference(data.get("feeder"))
        history = tuple(
            ReadingHistoryEntry(
                date=to_utc_day(h.get("date") or data["date"]),
                cumulative_energy_consumption=_number(h.get("cumulativeEnergyConsumption")),
                updated_at=pd.Timestamp(h["updatedAt"]).to_pydatetime() if h.get("updatedAt") else None,
                updated_by=str(h.get("updatedBy") or ""),
            )
            for h in data.get("history") or []
        )
        recorded_by, _ = _reference(data.get("recordedBy"))

        return cls(
            feeder_id=feeder_id,
            date=to_utc_day(data["date"]),
            cumulative_energy_consumption=_number(data.get("cumulativeEnergyConsumption")),
            recorded_by=recorded_by,
            history=history,
        )


@dataclass(frozen=True)
class DateRange:
    """Inclusive (start, end) pair of UTC calendar days."""
    start: date
    end: date

    @classmethod
    def of(cls, start: Any, end: Any) -> "DateRange":
        return cls(start=to_utc_day(start), end=to_utc_day(end))

    @property
    def is_inverted(self) -> bool:
        return self.end < self.start

    def __iter__(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def label(self) -> str:
        return f"{self.start.isoformat()} TO {self.end.isoformat()}"


# ============================================================================
# PAYLOAD HELPERS
# ============================================================================

def _reference(value: Any) -> Tuple[str, Optional[str]]:
    """Split a populated ({_id, name}) or bare id reference into (id, name)."""
    if isinstance(value, dict):
        return str(value.get("_id", "")), value.get("name")
    if value is None:
        return "", None
    return str(value), None


def _number(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    return float(value)


def sort_feeders(feeders: List[Feeder]) -> List[Feeder]:
    """Order feeders by region, then business hub, then name."""
    return sorted(
        feeders,
        key=lambda f: (f.region_name.lower(), f.business_hub_name.lower(), f.name.lower())
    )
