import asyncio
import inspect
import pathlib
import sys
from decimal import Decimal

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from margin_ledger.models import BrokerSettings, RateTier  # noqa: E402
from margin_ledger.rates import default_schwab_tiers  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used in the suite."""

    config.addinivalue_line("markers", "asyncio: mark test as running in an asyncio event loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            loop.run_until_complete(test_function(**pyfuncitem.funcargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


@pytest.fixture
def schwab_broker() -> BrokerSettings:
    return BrokerSettings(broker_name="Charles Schwab", tiers=default_schwab_tiers())


@pytest.fixture
def flat_broker() -> BrokerSettings:
    """Single 10% tier on a 360-day basis."""

    return BrokerSettings(broker_name="Flat", tiers=(RateTier(min_balance=Decimal("0"), apr=Decimal("0.10")),))
