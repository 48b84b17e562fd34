"""
Pytest Configuration and Shared Fixtures for the NSSF Test Suite

This module provides fixtures for:
- A fresh in-memory configuration store per test
- Repository and engine construction
- Running coroutines from synchronous tests
- Common PLMN / TAI / S-NSSAI values
"""

import asyncio
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core_network.db import Database
from slice_selection.engine import SelectionEngine
from slice_selection.models import (
    PlmnId,
    SelectionContext,
    SliceConfiguration,
    Snssai,
    SubscribedSnssai,
    Tai,
    UeSubscription,
)
from slice_selection.repository import SliceRepository


# =============================================================================
# Common Values
# =============================================================================

HOME_PLMN = PlmnId(mcc="001", mnc="01")
VISITED_PLMN = PlmnId(mcc="310", mnc="260")
OTHER_PLMN = PlmnId(mcc="208", mnc="93")

TAI_1 = Tai(plmnId=HOME_PLMN, tac="000001")
TAI_2 = Tai(plmnId=HOME_PLMN, tac="000002")
VISITED_TAI = Tai(plmnId=VISITED_PLMN, tac="000001")

EMBB = Snssai(sst=1, sd="abcdef")
URLLC = Snssai(sst=2, sd="010203")
MIOT = Snssai(sst=3, sd="010203")
EMBB_NO_SD = Snssai(sst=1)

SUPI = "imsi-001010000000001"

# Tuesday 10:30
FIXED_TIME = datetime(2024, 1, 2, 10, 30)


def run(coro):
    """Run a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


def make_subscription(*snssais, default=None, supi=SUPI, plmn=HOME_PLMN) -> UeSubscription:
    default = default or []
    return UeSubscription(
        supi=supi,
        plmnId=plmn,
        subscribedSnssais=[
            SubscribedSnssai(subscribedSnssai=s, defaultIndication=s in default) for s in snssais
        ],
    )


def make_context(tai=TAI_1, home=HOME_PLMN, serving=None) -> SelectionContext:
    return SelectionContext(supi=SUPI, homePlmnId=home, tai=tai, servingPlmnId=serving)


async def add_slices(repository: SliceRepository, *snssais, plmn=HOME_PLMN, tai_list=None):
    for snssai in snssais:
        await repository.add_slice(SliceConfiguration(snssai=snssai, plmnId=plmn, taiList=tai_list))


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def database() -> Database:
    """In-memory store, isolated per test."""
    return Database(enabled=False)


@pytest.fixture
def repository(database) -> SliceRepository:
    return SliceRepository(database)


@pytest.fixture
def engine(repository) -> SelectionEngine:
    """Engine with a fixed clock so policy time windows are deterministic."""
    return SelectionEngine(repository, clock=lambda: FIXED_TIME)


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "engine: Tests for the slice selection engine flows"
    )
    config.addinivalue_line(
        "markers", "components: Tests for individual selection components"
    )
    config.addinivalue_line(
        "markers", "nrf: Tests for the NRF client and discovery"
    )
    config.addinivalue_line(
        "markers", "api: Tests for the Nnssf_NSSelection HTTP boundary"
    )
    config.addinivalue_line(
        "markers", "availability: Tests for the Nnssf_NSSAIAvailability service"
    )
