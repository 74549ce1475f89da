import sys
from pathlib import Path

import pytest

# Ensure the src directory (for `geyser.*`) and this directory (for the shared
# test kit) are on the Python path before collection runs.
project_root = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(project_root / "src"))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from geyser.core.contracts.elastic_erc20 import ElasticToken  # noqa: E402
from geyser.core.distribution.token_geyser import TokenGeyser  # noqa: E402
from geyser_testkit import FOUNDER, OWNER, GeyserHarness, ManualClock, make_config  # noqa: E402


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def ampl():
    return ElasticToken(owner=OWNER)


@pytest.fixture
def make_harness(clock, ampl):
    def factory(staking_token_set: bool = True, **config_overrides) -> GeyserHarness:
        geyser = TokenGeyser(
            owner=OWNER,
            distribution_token=ampl,
            staking_token=ampl if staking_token_set else None,
            config=make_config(**config_overrides),
            founder=FOUNDER,
            time_provider=clock.now,
        )
        return GeyserHarness(clock, ampl, geyser)

    return factory


@pytest.fixture
def harness(make_harness):
    return make_harness()
