"""Creator trust scores.

A creator's trust score is a signed integer that scales how much collateral
they must post and how much stake their events may carry. New creators start
at a small positive default. The score only moves on two occasions:

- clean collateral release: +trust_increment
- a dispute that overturns the creator's reported outcome:
  -max(trust_min_penalty, score x trust_penalty_bps / 10000)

Scores are clamped to [trust_min, trust_max], which bounds both excessive
privilege and permanent lockout.
"""

from __future__ import annotations

import logging
from typing import Any

from ..core.config import BPS_DENOMINATOR, MarketParameters
from ..core.exceptions import ArithmeticHazard, UnauthorizedError
from ..core.transactions import Transactional, transactional

logger = logging.getLogger(__name__)

# Scores are interchangeable with a signed 256-bit integer everywhere
INT256_MIN = -(2**255)
INT256_MAX = 2**255 - 1


def check_int256(value: int, name: str = "value") -> int:
    """Reject values a signed 256-bit integer cannot hold."""
    if not INT256_MIN <= value <= INT256_MAX:
        raise ArithmeticHazard(f"{name} {value} is outside the signed 256-bit range", details={name: str(value)})
    return value


class TrustRegistry(Transactional):
    """Per-creator clamped trust scores, mutated only by the owning manager."""

    _journal_fields = ("_scores",)

    def __init__(self, params: MarketParameters, owner: str):
        self.params = params
        self.owner = owner
        self._scores: dict[str, int] = {}

    def clamp(self, value: int) -> int:
        return max(self.params.trust_min, min(self.params.trust_max, value))

    def score(self, creator: str) -> int:
        """Current score; creators never seen before read as the default."""
        return self._scores.get(creator, self.params.trust_default)

    def is_known(self, creator: str) -> bool:
        return creator in self._scores

    def exceeds(self, creator: str, threshold: int) -> bool:
        return self.score(creator) > threshold

    def penalty_for(self, score: int) -> int:
        proportional = check_int256(score, "trust score") * self.params.trust_penalty_bps // BPS_DENOMINATOR
        return max(self.params.trust_min_penalty, proportional)

    @transactional
    def initialize(self, caller: str, creator: str) -> int:
        """Materialize the default score for a first-time creator."""
        self._require_owner(caller)
        if creator not in self._scores:
            self._scores[creator] = self.params.trust_default
            logger.debug("Initialized trust for %s at %d", creator, self.params.trust_default)
        return self._scores[creator]

    @transactional
    def increase(self, caller: str, creator: str) -> int:
        self._require_owner(caller)
        before = self.score(creator)
        after = self.clamp(check_int256(before + self.params.trust_increment, "trust score"))
        self._scores[creator] = after
        logger.info("Trust for %s increased %d -> %d", creator, before, after)
        return after

    @transactional
    def penalize(self, caller: str, creator: str) -> int:
        self._require_owner(caller)
        before = self.score(creator)
        after = self.clamp(check_int256(before - self.penalty_for(before), "trust score"))
        self._scores[creator] = after
        logger.warning("Trust for %s penalized %d -> %d", creator, before, after)
        return after

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise UnauthorizedError("Only the risk manager may change trust scores", caller=caller, required_role="manager")

    def to_dict(self) -> dict[str, Any]:
        return {
            "scores": dict(self._scores),
            "bounds": [self.params.trust_min, self.params.trust_max],
            "default": self.params.trust_default,
        }
