import os
import pathlib
import sys
from decimal import Decimal

import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import synthstake`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from synthstake.assets import Bucket  # noqa: E402
from synthstake.config import ConfigManager  # noqa: E402
from synthstake.epoch import EpochClock  # noqa: E402
from synthstake.stake import StakeComponent  # noqa: E402

REAL = "resource_real_test"

SCENARIO_DIR = _REPO_ROOT / "scenarios"


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: long randomized accounting runs (skipped unless SYNTHSTAKE_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_slow = _env_flag('SYNTHSTAKE_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set SYNTHSTAKE_RUN_SLOW=1 to enable'))


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Every test starts from default configuration without SYNTHSTAKE_* overrides."""
    for key in list(os.environ):
        if key.startswith("SYNTHSTAKE_") and key != "SYNTHSTAKE_RUN_SLOW":
            monkeypatch.delenv(key, raising=False)
    ConfigManager.reset()
    yield
    ConfigManager.reset()


@pytest.fixture
def clock():
    return EpochClock()


@pytest.fixture
def component(clock):
    return StakeComponent(REAL, clock, unstake_delay=7)


@pytest.fixture
def real():
    """Factory for real-asset buckets."""
    def make(amount) -> Bucket:
        return Bucket(REAL, Decimal(str(amount)))
    return make
