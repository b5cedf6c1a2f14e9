"""Dispute contribution pool bookkeeping.

After a creator submits an outcome, bettors on the event may challenge it by
contributing stake to a pool. The pool's target is fixed at submission time
as a fraction of total staked. Reaching the target closes the contribution
window at once so adjudication is not held up. What happens to the pool
depends on the ruling:

- outcome changed: contributors get their contributions back (and claim the
  contributors' part of the forfeited collateral through the manager)
- outcome upheld, target met: pool split creator / protocol / burn
- outcome upheld, target never met: contributions refundable
- never ruled within the long-stop timeout: pool swept to the protocol

This module holds the pool state only; value transfers are issued by the
owning ``EventLedger``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..core.exceptions import InvalidStateError, UnauthorizedError
from .models import DisputeStatus


@dataclass
class DisputePool:
    """Contribution pool for one event."""

    target: int = 0
    deadline: datetime | None = None
    status: DisputeStatus = DisputeStatus.NONE
    reason: str = ""
    opened_by: str | None = None
    contributions: dict[str, int] = field(default_factory=dict)
    total: int = 0
    target_met: bool = False
    outcome_changed: bool = False
    refunded: set[str] = field(default_factory=set)
    pool_distributed: bool = False

    # -- window --------------------------------------------------------

    def open_window(self, deadline: datetime, target: int) -> None:
        self.deadline = deadline
        self.target = target

    def accepting(self, now: datetime) -> bool:
        """Whether contributions are accepted at ``now``."""
        if self.deadline is None or now >= self.deadline:
            return False
        return self.status in (DisputeStatus.NONE, DisputeStatus.OPEN)

    def close_window(self, now: datetime) -> None:
        if self.deadline is None or now < self.deadline:
            self.deadline = now

    @property
    def blocking(self) -> bool:
        """True while a dispute awaits a ruling; payouts and releases wait for it."""
        return self.status == DisputeStatus.OPEN

    @property
    def settled(self) -> bool:
        return self.status != DisputeStatus.OPEN

    # -- contributions -------------------------------------------------

    def add(self, contributor: str, amount: int, reason: str, now: datetime) -> bool:
        """Record a contribution; returns True if it made the pool reach its target."""
        if not self.accepting(now):
            raise InvalidStateError("Dispute window is closed", current_state=self.status.value)
        if self.status == DisputeStatus.NONE:
            self.status = DisputeStatus.OPEN
            self.reason = reason
            self.opened_by = contributor

        self.contributions[contributor] = self.contributions.get(contributor, 0) + amount
        self.total += amount

        if self.total >= self.target:
            self.target_met = True
            self.close_window(now)
            return True
        return False

    def contribution_of(self, contributor: str) -> int:
        return self.contributions.get(contributor, 0)

    @property
    def contributor_count(self) -> int:
        return sum(1 for amount in self.contributions.values() if amount > 0)

    # -- settlement ----------------------------------------------------

    def resolve(self, outcome_changed: bool, now: datetime) -> None:
        if self.status != DisputeStatus.OPEN:
            raise InvalidStateError("No open dispute to resolve", current_state=self.status.value)
        self.status = DisputeStatus.RESOLVED
        self.outcome_changed = outcome_changed
        self.close_window(now)

    def abandon(self) -> int:
        if self.status != DisputeStatus.OPEN:
            raise InvalidStateError("No open dispute to abandon", current_state=self.status.value)
        self.status = DisputeStatus.ABANDONED
        self.pool_distributed = True
        return self.total

    def take_refund(self, contributor: str) -> int:
        """Mark a contributor refunded and return the amount owed to them."""
        if self.status != DisputeStatus.RESOLVED:
            raise InvalidStateError("Dispute has not been ruled on", current_state=self.status.value)
        if not (self.outcome_changed or not self.target_met):
            raise InvalidStateError("Contributions to an upheld, fully funded dispute are not refundable")
        amount = self.contribution_of(contributor)
        if amount <= 0:
            raise UnauthorizedError("Only dispute contributors may be refunded", caller=contributor, required_role="contributor")
        if contributor in self.refunded:
            raise InvalidStateError(f"{contributor} was already refunded")
        self.refunded.add(contributor)
        return amount

    @property
    def refunded_total(self) -> int:
        return sum(self.contributions[c] for c in self.refunded)

    def take_pool(self) -> int:
        """Claim the whole pool for distribution after an upheld, fully funded dispute."""
        if self.status != DisputeStatus.RESOLVED or self.outcome_changed or not self.target_met:
            raise InvalidStateError("Pool is only distributed after an upheld, fully funded dispute")
        if self.pool_distributed:
            raise InvalidStateError("Dispute pool was already distributed")
        self.pool_distributed = True
        return self.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "target": self.target,
            "total": self.total,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "reason": self.reason,
            "opened_by": self.opened_by,
            "contributions": dict(self.contributions),
            "target_met": self.target_met,
            "outcome_changed": self.outcome_changed,
            "refunded": sorted(self.refunded),
            "pool_distributed": self.pool_distributed,
        }
