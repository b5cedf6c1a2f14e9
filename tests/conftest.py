"""Global test fixtures for the oddsvault test suite."""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

import pytest

from oddsvault.core.config import MarketParameters, clear_config_cache
from oddsvault.core.token import InMemoryToken
from oddsvault.market.manager import RiskManager

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

OWNER = "owner"
ADJUDICATOR = "judge"
CREATOR = "creator"


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all ODDSVAULT_ environment variables."""
    for key in list(os.environ.keys()):
        if key.startswith("ODDSVAULT_"):
            monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Manually advanced clock injected wherever the engine reads time."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, when: datetime) -> None:
        self.now = when


@pytest.fixture
def clock():
    return FakeClock()


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def params():
    """Default market parameters, independent of the environment."""
    return MarketParameters()


@pytest.fixture
def token():
    return InMemoryToken()


@pytest.fixture
def manager(token, params, clock):
    return RiskManager(token, params, owner=OWNER, adjudicators=[ADJUDICATOR], clock=clock)


@pytest.fixture
def make_event(manager, token, clock):
    """Factory creating a funded event that opens in three hours and runs for two."""

    def _make(
        creator: str = CREATOR,
        outcomes=("A", "B"),
        collateral: int | None = None,
        open_in: timedelta = timedelta(hours=3),
        duration: timedelta = timedelta(hours=2),
    ):
        amount = collateral if collateral is not None else manager.required_collateral(creator)
        token.mint(creator, amount)
        token.approve(creator, manager.vault.account, amount)
        open_time = clock() + open_in
        return manager.create_event(creator, list(outcomes), open_time, open_time + duration, collateral)

    return _make


@pytest.fixture
def fund(token):
    """Mint tokens to a user and authorize an event (or vault) account to pull them."""

    def _fund(user: str, spender: str, amount: int = 1_000) -> str:
        token.mint(user, amount)
        token.approve(user, spender, amount)
        return user

    return _fund


@pytest.fixture
def past_close(clock):
    """Move the clock past an event's close time."""

    def _advance(ledger) -> None:
        clock.set(ledger.state.close_time + timedelta(minutes=1))

    return _advance


@pytest.fixture
def past_dispute_window(clock):
    """Move the clock past an event's dispute deadline."""

    def _advance(ledger) -> None:
        clock.set(ledger.dispute.deadline + timedelta(seconds=1))

    return _advance
