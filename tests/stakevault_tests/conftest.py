import pytest

from stakevault.core.account_store import AccountStore
from stakevault.core.staking_ledger import StakingLedger
from stakevault.core.token_ledger import TokenLedger

OWNER = "0xOwner"
ALICE = "0xAlice"
BOB = "0xBob"

WINDOW_START = 1000
WINDOW_END = 2000
LOCK_DURATION = 500
ANNUAL_RATE = 10
POOL_FUNDING = 1_000_000_000
PRINCIPAL = 1_000_000


class ManualClock:
    """Deterministic time provider for ledger tests."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return ManualClock(WINDOW_START)


@pytest.fixture
def token():
    token = TokenLedger(name="Stake Token", symbol="STK", owner=OWNER)
    token.mint(OWNER, OWNER, 2 * POOL_FUNDING)
    token.mint(OWNER, ALICE, 10 * PRINCIPAL)
    token.mint(OWNER, BOB, 10 * PRINCIPAL)
    return token


@pytest.fixture
def store():
    return AccountStore()


@pytest.fixture
def ledger(token, store, clock):
    return StakingLedger(token, store, time_provider=clock)


@pytest.fixture
def pool(ledger):
    return ledger.initialize_pool(
        OWNER,
        start_time=WINDOW_START,
        end_time=WINDOW_END,
        lock_duration=LOCK_DURATION,
        annual_rate=ANNUAL_RATE,
        initial_funding=POOL_FUNDING,
    )
