"""Tests for oddsvault.market.trust - clamped creator trust scores."""

from __future__ import annotations

import pytest

from oddsvault.core.config import MarketParameters
from oddsvault.core.exceptions import ArithmeticHazard, UnauthorizedError
from oddsvault.market.trust import INT256_MAX, INT256_MIN, TrustRegistry, check_int256

RM = "risk-manager"


@pytest.fixture
def registry(params):
    return TrustRegistry(params, owner=RM)


class TestScores:
    """Reading and initializing scores."""

    def test_unknown_creator_reads_default(self, registry):
        assert registry.score("alice") == 1
        assert not registry.is_known("alice")

    def test_initialize_materializes_default(self, registry):
        assert registry.initialize(RM, "alice") == 1
        assert registry.is_known("alice")

    def test_initialize_keeps_existing_score(self, registry):
        registry.initialize(RM, "alice")
        registry.increase(RM, "alice")
        assert registry.initialize(RM, "alice") == 2

    def test_exceeds_is_strict(self, registry):
        """The creation gate requires a score strictly above the threshold."""
        assert registry.exceeds("alice", 0)
        assert not registry.exceeds("alice", 1)


class TestIncrease:
    """Clean-release reward."""

    def test_increase_by_increment(self, registry):
        assert registry.increase(RM, "alice") == 2

    def test_clamped_at_max(self):
        registry = TrustRegistry(MarketParameters(trust_default=99), owner=RM)
        assert registry.increase(RM, "alice") == 100
        assert registry.increase(RM, "alice") == 100


class TestPenalize:
    """Overturned-outcome penalty."""

    def test_minimum_penalty_applies_to_small_scores(self, registry):
        """20% of 1 rounds to 0, so the minimum penalty of 5 applies."""
        assert registry.penalize(RM, "alice") == -4

    def test_proportional_penalty_for_large_scores(self):
        """20% of 80 is 16, larger than the minimum."""
        registry = TrustRegistry(MarketParameters(trust_default=80), owner=RM)
        assert registry.penalize(RM, "alice") == 64

    def test_clamped_at_min(self):
        registry = TrustRegistry(MarketParameters(trust_default=-98), owner=RM)
        assert registry.penalize(RM, "alice") == -100
        assert registry.penalize(RM, "alice") == -100

    def test_penalty_for_negative_score(self, registry):
        """Negative scores still lose at least the minimum penalty."""
        assert registry.penalty_for(-50) == 5


class TestAuthorization:
    """Only the owning manager mutates scores."""

    @pytest.mark.parametrize("operation", ["initialize", "increase", "penalize"])
    def test_non_owner_rejected(self, registry, operation):
        with pytest.raises(UnauthorizedError):
            getattr(registry, operation)("mallory", "alice")
        assert not registry.is_known("alice")


class TestInt256Guard:
    """Signed 256-bit range checks."""

    def test_boundaries_accepted(self):
        assert check_int256(INT256_MAX) == INT256_MAX
        assert check_int256(INT256_MIN) == INT256_MIN

    def test_out_of_range_rejected(self):
        with pytest.raises(ArithmeticHazard):
            check_int256(INT256_MAX + 1, "trust score")
        with pytest.raises(ArithmeticHazard):
            check_int256(INT256_MIN - 1)


def test_to_dict(registry):
    registry.initialize(RM, "alice")
    assert registry.to_dict() == {"scores": {"alice": 1}, "bounds": [-100, 100], "default": 1}
