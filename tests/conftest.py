"""Shared fixtures for the feeder report tests."""

import os
import tempfile
from datetime import date

# Keep main's file handler out of the working tree
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "feeder_report_tests.log"))

import pytest

from feeder_models import Band, BusinessHub, Feeder, FeederReading, Region
from feeder_store import InMemoryFeederStore


def make_feeder(
    feeder_id: str,
    name: str,
    uptake: float = 100.0,
    region: Region = None,
    hub: BusinessHub = None,
    band: Band = Band.A20H,
) -> Feeder:
    region = region or Region(id="r-north", name="North")
    hub = hub or BusinessHub(id="h-ikeja", name="Ikeja", region_id=region.id)
    return Feeder(
        id=feeder_id,
        name=name,
        band=band,
        daily_energy_uptake=uptake,
        monthly_delivery_plan=uptake * 30,
        previous_month_consumption=uptake * 28,
        business_hub_id=hub.id,
        region_id=region.id,
        business_hub_name=hub.name,
        region_name=region.name,
    )


def reading(feeder_id: str, day: date, value: float) -> FeederReading:
    return FeederReading(
        feeder_id=feeder_id,
        date=day,
        cumulative_energy_consumption=value,
        recorded_by="u-1",
    )


@pytest.fixture
def north():
    return Region(id="r-north", name="North")


@pytest.fixture
def south():
    return Region(id="r-south", name="South")


@pytest.fixture
def ikeja(north):
    return BusinessHub(id="h-ikeja", name="Ikeja", region_id=north.id)


@pytest.fixture
def lekki(south):
    return BusinessHub(id="h-lekki", name="Lekki", region_id=south.id)


@pytest.fixture
def feeders(north, south, ikeja, lekki):
    """Three feeders across two regions, in display order."""
    return [
        make_feeder("f-1", "Alausa", uptake=100, region=north, hub=ikeja),
        make_feeder("f-2", "Oregun", uptake=50, region=north, hub=ikeja, band=Band.B16H),
        make_feeder("f-3", "Ajah", uptake=200, region=south, hub=lekki, band=Band.C12H),
    ]


@pytest.fixture
def readings():
    """Three days of readings (1-3 Jan 2025)."""
    return [
        # f-1 healthy: ~100/day
        reading("f-1", date(2025, 1, 1), 100),
        reading("f-1", date(2025, 1, 2), 200),
        reading("f-1", date(2025, 1, 3), 300),
        # f-2 stalls on the last day
        reading("f-2", date(2025, 1, 1), 50),
        reading("f-2", date(2025, 1, 2), 100),
        reading("f-2", date(2025, 1, 3), 100),
        # f-3 only reported on day 1
        reading("f-3", date(2025, 1, 1), 150),
    ]


@pytest.fixture
def store(north, south, ikeja, lekki, feeders, readings):
    return InMemoryFeederStore(
        regions=[north, south],
        business_hubs=[ikeja, lekki],
        feeders=feeders,
        readings=readings,
    )
