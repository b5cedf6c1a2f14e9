"""Outcome sources a creator can report from.

A creator may submit an outcome directly, or through a source that gives
bettors a guarantee about where the outcome came from:

1. ``CommitRevealSource``: before the event closes the creator commits
   H(outcome || salt); at submission time they reveal outcome and salt, and
   the reveal is checked against the commitment.
2. ``ExternalFeedSource``: the outcome is read from a trusted feed callable.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from ..core.exceptions import InvalidStateError, ValidationException
from .models import Clock, utc_now

logger = logging.getLogger(__name__)


@runtime_checkable
class OutcomeSource(Protocol):
    """Anything that can name the winning outcome index of an event."""

    def outcome_for(self, event_id: int) -> int: ...


def generate_salt() -> str:
    """Generate a secret salt for an outcome commitment."""
    return secrets.token_hex(32)


def compute_commitment_hash(outcome: int, salt: str) -> str:
    """Compute the commitment hash H(outcome || salt) as hex SHA256."""
    data = f"{outcome}:{salt}".encode()
    return hashlib.sha256(data).hexdigest()


@dataclass
class Commitment:
    """A creator's hidden commitment to an event outcome."""

    event_id: int
    commitment_hash: str
    committed_at: datetime
    revealed_outcome: int | None = None
    revealed_at: datetime | None = None

    @property
    def revealed(self) -> bool:
        return self.revealed_outcome is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "commitment_hash": self.commitment_hash,
            "committed_at": self.committed_at.isoformat(),
            "revealed_outcome": self.revealed_outcome,
            "revealed_at": self.revealed_at.isoformat() if self.revealed_at else None,
        }


class CommitRevealSource:
    """Outcome source backed by per-event hash commitments."""

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock
        self._commitments: dict[int, Commitment] = {}

    def commit(self, event_id: int, commitment_hash: str) -> Commitment:
        if event_id in self._commitments:
            raise InvalidStateError(f"Outcome for event {event_id} is already committed")
        if len(commitment_hash) != 64:
            raise ValidationException("Commitment must be a hex SHA256 digest", field="commitment_hash")
        commitment = Commitment(event_id=event_id, commitment_hash=commitment_hash, committed_at=self.clock())
        self._commitments[event_id] = commitment
        logger.info("Outcome committed for event %d", event_id)
        return commitment

    def reveal(self, event_id: int, outcome: int, salt: str) -> Commitment:
        """Reveal a committed outcome, verifying it against the stored hash."""
        commitment = self._commitments.get(event_id)
        if commitment is None:
            raise InvalidStateError(f"No outcome commitment for event {event_id}")
        if commitment.revealed:
            raise InvalidStateError(f"Outcome for event {event_id} was already revealed")
        if compute_commitment_hash(outcome, salt) != commitment.commitment_hash:
            logger.warning("Reveal for event %d does not match its commitment", event_id)
            raise ValidationException("Revealed outcome does not match the commitment", field="outcome", value=outcome)

        commitment.revealed_outcome = outcome
        commitment.revealed_at = self.clock()
        return commitment

    def commitment(self, event_id: int) -> Commitment | None:
        return self._commitments.get(event_id)

    def outcome_for(self, event_id: int) -> int:
        commitment = self._commitments.get(event_id)
        if commitment is None or commitment.revealed_outcome is None:
            raise InvalidStateError(f"Outcome for event {event_id} has not been revealed")
        return commitment.revealed_outcome


class ExternalFeedSource:
    """Outcome source that reads from a trusted feed.

    The feed returns the winning outcome index, or None while it has not
    reported yet.
    """

    def __init__(self, feed: Callable[[int], int | None], name: str = "external-feed"):
        self.feed = feed
        self.name = name

    def outcome_for(self, event_id: int) -> int:
        outcome = self.feed(event_id)
        if outcome is None:
            raise InvalidStateError(f"{self.name} has not reported an outcome for event {event_id}")
        return outcome
