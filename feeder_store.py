"""
Feeder Store Collaborators
Supplies regions, business hubs, feeders and readings to the report engine,
either from the feeder tracker backend or from an in-memory snapshot.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

import api_client
from feeder_models import (
    BusinessHub,
    Feeder,
    FeederReading,
    Region,
    sort_feeders,
    to_utc_day,
)
from report_errors import UpstreamError

logger = logging.getLogger(__name__)


def find_by_name(items: Iterable[Any], name: str) -> Optional[Any]:
    """Case-insensitive exact match on ``.name``."""
    wanted = name.strip().casefold()
    for item in items:
        if item.name.casefold() == wanted:
            return item
    return None


class FeederStore:
    """Read interface the report service depends on."""

    def list_regions(self) -> List[Region]:
        raise NotImplementedError

    def list_business_hubs(self) -> List[BusinessHub]:
        raise NotImplementedError

    def list_feeders(
        self,
        region_id: Optional[str] = None,
        business_hub_id: Optional[str] = None,
        feeder_ids: Optional[List[str]] = None
    ) -> List[Feeder]:
        """Feeders matching every given filter, ordered by region, hub, name."""
        raise NotImplementedError

    def list_readings(self, start: date, end: date) -> List[FeederReading]:
        """All readings dated within [start, end], inclusive."""
        raise NotImplementedError


def _filter_feeders(
    feeders: Iterable[Feeder],
    region_id: Optional[str],
    business_hub_id: Optional[str],
    feeder_ids: Optional[List[str]]
) -> List[Feeder]:
    wanted_ids = set(feeder_ids) if feeder_ids is not None else None
    matched = [
        f for f in feeders
        if (region_id is None or f.region_id == region_id)
        and (business_hub_id is None or f.business_hub_id == business_hub_id)
        and (wanted_ids is None or f.id in wanted_ids)
    ]
    return sort_feeders(matched)


# ============================================================================
# IN-MEMORY STORE
# ============================================================================

class InMemoryFeederStore(FeederStore):
    """
    Snapshot-backed store.

    Holds at most one current reading per (feeder, day). Recording a second
    value for the same day replaces it and keeps the old one in history.
    """

    def __init__(
        self,
        regions: Optional[List[Region]] = None,
        business_hubs: Optional[List[BusinessHub]] = None,
        feeders: Optional[List[Feeder]] = None,
        readings: Optional[List[FeederReading]] = None
    ):
        self.regions = list(regions or [])
        self.business_hubs = list(business_hubs or [])
        self.feeders = list(feeders or [])
        self._readings: Dict[Tuple[str, date], FeederReading] = {}
        for reading in readings or []:
            self._readings[(reading.feeder_id, reading.date)] = reading

    def list_regions(self) -> List[Region]:
        return list(self.regions)

    def list_business_hubs(self) -> List[BusinessHub]:
        return list(self.business_hubs)

    def list_feeders(self, region_id=None, business_hub_id=None, feeder_ids=None) -> List[Feeder]:
        return _filter_feeders(self.feeders, region_id, business_hub_id, feeder_ids)

    def list_readings(self, start: date, end: date) -> List[FeederReading]:
        start_day, end_day = to_utc_day(start), to_utc_day(end)
        readings = [r for (_, day), r in self._readings.items() if start_day <= day <= end_day]
        return sorted(readings, key=lambda r: r.date)

    def get_reading(self, feeder_id: str, day: Any) -> Optional[FeederReading]:
        return self._readings.get((feeder_id, to_utc_day(day)))

    def record_reading(
        self,
        feeder_id: str,
        day: Any,
        value: float,
        recorded_by: str,
        at: Optional[datetime] = None
    ) -> FeederReading:
        """
        Create the day's reading, or correct it if one already exists.

        Args:
            feeder_id: Feeder the counter belongs to
            day: Calendar day of the observation
            value: Cumulative energy consumption
            recorded_by: User submitting the value
            at: Correction timestamp (defaults to now, UTC)

        Returns:
            The current reading after the write
        """
        key = (feeder_id, to_utc_day(day))
        existing = self._readings.get(key)

        if existing is None:
            reading = FeederReading(
                feeder_id=feeder_id,
                date=key[1],
                cumulative_energy_consumption=value,
                recorded_by=recorded_by,
            )
        else:
            reading = existing.corrected(value, updated_by=recorded_by, updated_at=at)
            logger.info(
                f"Corrected reading for feeder {feeder_id} on {key[1]}: "
                f"{existing.cumulative_energy_consumption} -> {value}"
            )

        self._readings[key] = reading
        return reading


# ============================================================================
# API STORE
# ============================================================================

class ApiFeederStore(FeederStore):
    """Store backed by the feeder tracker REST API."""

    def __init__(self, access_token: str):
        self.access_token = access_token

    def _call(self, what: str, func, *args) -> List[Dict]:
        try:
            payload = func(self.access_token, *args)
        except requests.RequestException as e:
            logger.error(f"❌ Failed to fetch {what}: {e}")
            raise UpstreamError(f"Failed to fetch {what}: {e}") from e

        if not isinstance(payload, list):
            raise UpstreamError(f"Unexpected {what} payload: expected a list")
        return payload

    def _parse(self, what: str, parser, payload: List[Dict]) -> List[Any]:
        try:
            return [parser(item) for item in payload]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise UpstreamError(f"Malformed {what} record: {e}") from e

    def list_regions(self) -> List[Region]:
        return self._parse("regions", Region.from_api, self._call("regions", api_client.get_regions))

    def list_business_hubs(self) -> List[BusinessHub]:
        payload = self._call("business hubs", api_client.get_business_hubs)
        return self._parse("business hubs", BusinessHub.from_api, payload)

    def list_feeders(self, region_id=None, business_hub_id=None, feeder_ids=None) -> List[Feeder]:
        params = {}
        if region_id is not None:
            params["region"] = region_id
        if business_hub_id is not None:
            params["businessHub"] = business_hub_id

        payload = self._call("feeders", api_client.get_feeders, params or None)
        feeders = self._parse("feeders", Feeder.from_api, payload)
        logger.info(f"✅ Found {len(feeders)} feeders")
        return _filter_feeders(feeders, region_id, business_hub_id, feeder_ids)

    def list_readings(self, start: date, end: date) -> List[FeederReading]:
        start_day, end_day = to_utc_day(start), to_utc_day(end)
        payload = self._call(
            "readings",
            api_client.get_feeder_readings,
            start_day.isoformat(),
            end_day.isoformat()
        )
        readings = self._parse("readings", FeederReading.from_api, payload)
        readings = [r for r in readings if start_day <= r.date <= end_day]
        logger.info(f"✅ Found {len(readings)} readings")
        return sorted(readings, key=lambda r: r.date)
