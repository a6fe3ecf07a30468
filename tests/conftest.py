"""Pytest configuration and shared fixtures."""

import pytest
import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tests.fixtures.test_inputs import (
    get_construction_only_scenario,
    get_empty_scenario,
    get_equity_only_scenario,
    get_hold_scenario,
    get_sell_scenario,
    get_site,
)


@pytest.fixture
def site():
    """Victorian site shared by all scenarios."""
    return get_site()


@pytest.fixture
def sell_scenario():
    """Townhouse sell scenario with a senior facility."""
    return get_sell_scenario()


@pytest.fixture
def hold_scenario():
    """Build-to-rent scenario linked to the sell scenario."""
    return get_hold_scenario()


@pytest.fixture
def equity_only_scenario():
    return get_equity_only_scenario()


@pytest.fixture
def empty_scenario():
    return get_empty_scenario()


@pytest.fixture
def construction_only_scenario():
    return get_construction_only_scenario()
