import pytest

from dao_node.dao_executor import DaoExecutor
from dao_node.dao_runtime.engine import DaoState, GovernanceEngine
from dao_node.dao_runtime.params import UNIT, GovernanceParams
from dao_node.dao_runtime.transfers import LedgerValueSink

OWNER = "@owner"
START = 1_700_000_000
WEEK = 7 * 24 * 60 * 60


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, t: int = START):
        self.t = int(t)

    def __call__(self) -> int:
        return self.t

    def advance(self, seconds: int) -> int:
        self.t += int(seconds)
        return self.t


class FailingSink:
    """Value sink whose every transfer is rejected."""

    def __init__(self):
        self.attempts = []

    def send(self, recipient, amount):
        self.attempts.append((recipient, amount))
        raise RuntimeError("recipient rejected transfer")


def units(x) -> int:
    """Whole/fractional units -> base units, e.g. units("0.15")."""
    whole, _, frac = str(x).partition(".")
    frac = (frac + "0" * 18)[:18]
    return int(whole or 0) * UNIT + int(frac or 0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return LedgerValueSink()


@pytest.fixture
def params():
    return GovernanceParams()


@pytest.fixture
def engine(clock, sink, params):
    """Fresh engine with the owner bootstrapped as first member."""
    state = DaoState.bootstrap(OWNER, params, clock())
    return GovernanceEngine(state, clock=clock, sink=sink)


@pytest.fixture
def executor(clock, sink):
    """Fresh in-memory executor per test."""
    return DaoExecutor(OWNER, clock=clock, sink=sink)
