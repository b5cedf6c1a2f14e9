"""Collateral custody and the collateral-dependent stake ceiling.

Every event's creator posts collateral into the vault's custody account when
the event is created. The amount posted, scaled by the creator's trust score,
sets the event's stake ceiling:

    ceiling = collateral x multiplier x trust_factor_bps / 10000
    trust_factor_bps = max(floor, 10000 + score x step)

When an event settles cleanly the collateral is released back to the creator.
When a dispute overturns the creator's outcome it is forfeited and split into
three parts (contributors / protocol / burn). The contributors' part stays in
custody and is claimed pro-rata to each disputer's contribution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..core.config import BPS_DENOMINATOR, MarketParameters
from ..core.exceptions import (
    ArithmeticHazard,
    InvalidStateError,
    NotFoundError,
    TransferFailed,
    UnauthorizedError,
    ValidationException,
)
from ..core.token import TokenLedger, pull, send
from ..core.transactions import Transactional, transactional
from .models import CollateralStatus
from .trust import TrustRegistry, check_int256

logger = logging.getLogger(__name__)

UINT256_MAX = 2**256 - 1


def bet_limit(collateral_amount: int, trust_score: int, params: MarketParameters) -> int:
    """Compute the stake ceiling for a collateral amount and trust score.

    Args:
        collateral_amount: Collateral posted (non-negative).
        trust_score: Creator trust score.
        params: Market parameters supplying multiplier, step and floor.

    Returns:
        The ceiling, truncated toward zero.

    Raises:
        ArithmeticHazard: If the score or the result leaves the 256-bit range.
    """
    if collateral_amount < 0:
        raise ValidationException("Collateral cannot be negative", field="collateral_amount", value=collateral_amount)
    check_int256(trust_score, "trust score")

    factor_bps = BPS_DENOMINATOR + trust_score * params.trust_factor_step_bps
    factor_bps = max(params.trust_factor_floor_bps, factor_bps)

    ceiling = collateral_amount * params.bet_limit_multiplier * factor_bps // BPS_DENOMINATOR
    if ceiling > UINT256_MAX:
        raise ArithmeticHazard(
            "Stake ceiling exceeds the unsigned 256-bit range",
            details={"collateral_amount": collateral_amount, "trust_score": trust_score},
        )
    return ceiling


def split_three(amount: int, split_bps: tuple[int, int, int]) -> tuple[int, int, int]:
    """Split an amount by basis points; the third part absorbs rounding so parts sum exactly."""
    first = amount * split_bps[0] // BPS_DENOMINATOR
    second = amount * split_bps[1] // BPS_DENOMINATOR
    return first, second, amount - first - second


@dataclass
class CollateralRecord:
    """Custody record for one event's collateral."""

    event_id: int
    creator: str
    balance: int
    status: CollateralStatus = CollateralStatus.LOCKED
    posted: int = 0

    @property
    def locked(self) -> bool:
        return self.status == CollateralStatus.LOCKED

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "creator": self.creator,
            "balance": self.balance,
            "status": self.status.value,
            "locked": self.locked,
            "posted": self.posted,
        }


@dataclass
class ForfeitureRecord:
    """How forfeited collateral was split, and who has claimed their share."""

    event_id: int
    original: int
    contributors_share: int
    protocol_share: int
    burned: int
    claimed: dict[str, int] = field(default_factory=dict)

    @property
    def distributed(self) -> int:
        return sum(self.claimed.values())

    @property
    def remaining(self) -> int:
        return self.contributors_share - self.distributed

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "original": self.original,
            "contributors_share": self.contributors_share,
            "protocol_share": self.protocol_share,
            "burned": self.burned,
            "claimed": dict(self.claimed),
            "remaining": self.remaining,
        }


class CollateralVault(Transactional):
    """Custodies collateral per event. Mutated only by the owning risk manager."""

    _journal_fields = ("_records", "_forfeitures")
    _atomic_with = ("token",)

    def __init__(
        self,
        params: MarketParameters,
        token: TokenLedger,
        trust: TrustRegistry,
        owner: str,
        account: str = "collateral-vault",
    ):
        self.params = params
        self.token = token
        self.trust = trust
        self.owner = owner
        self.account = account
        self._records: dict[int, CollateralRecord] = {}
        self._forfeitures: dict[int, ForfeitureRecord] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def required_collateral(self, creator: str) -> int:
        """Collateral a creator must post for a new event.

        In ``fixed`` mode this is a constant. In ``reputation`` mode it shrinks
        linearly as trust approaches ``trust_max``:
        ``max_collateral x (1 - score / trust_max)``, floored at ``min_collateral``.
        """
        if self.params.collateral_mode == "fixed":
            return self.params.fixed_collateral

        score = check_int256(self.trust.score(creator), "trust score")
        scaled = self.params.max_collateral * (self.params.trust_max - score) // self.params.trust_max
        return max(self.params.min_collateral, scaled)

    def compute_bet_limit(self, creator: str, collateral_amount: int) -> int:
        return bet_limit(collateral_amount, self.trust.score(creator), self.params)

    def record(self, event_id: int) -> CollateralRecord:
        record = self._records.get(event_id)
        if record is None:
            raise NotFoundError("Collateral", str(event_id))
        return record

    def forfeiture(self, event_id: int) -> ForfeitureRecord | None:
        return self._forfeitures.get(event_id)

    def total_locked(self) -> int:
        return sum(r.balance for r in self._records.values() if r.locked)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @transactional
    def lock(self, caller: str, event_id: int, creator: str, amount: int) -> CollateralRecord:
        """Take custody of a creator's collateral for a new event."""
        self._require_owner(caller)
        if amount <= 0:
            raise ValidationException("Collateral must be positive", field="amount", value=amount)
        if event_id in self._records:
            raise InvalidStateError(f"Collateral already recorded for event {event_id}")
        self._check_funding(creator, amount)

        record = CollateralRecord(event_id=event_id, creator=creator, balance=amount, posted=amount)
        self._records[event_id] = record
        pull(self.token, self.account, creator, self.account, amount)

        logger.info("Locked %d collateral for event %d from %s", amount, event_id, creator)
        return record

    @transactional
    def top_up(self, caller: str, event_id: int, amount: int) -> int:
        """Add collateral to a locked record; returns the new balance."""
        self._require_owner(caller)
        if amount <= 0:
            raise ValidationException("Top-up must be positive", field="amount", value=amount)
        record = self.record(event_id)
        if not record.locked:
            raise InvalidStateError("Collateral is no longer locked", current_state=record.status.value)
        self._check_funding(record.creator, amount)

        record.balance += amount
        record.posted += amount
        pull(self.token, self.account, record.creator, self.account, amount)

        logger.info("Topped up event %d collateral by %d to %d", event_id, amount, record.balance)
        return record.balance

    @transactional
    def release(self, caller: str, event_id: int) -> int:
        """Return the full balance to the creator and unlock the record."""
        self._require_owner(caller)
        record = self._require_locked(event_id)

        amount = record.balance
        record.balance = 0
        record.status = CollateralStatus.RELEASED
        send(self.token, self.account, record.creator, amount)

        logger.info("Released %d collateral for event %d to %s", amount, event_id, record.creator)
        return amount

    @transactional
    def forfeit(self, caller: str, event_id: int) -> ForfeitureRecord:
        """Split a locked balance into contributors / protocol / burn shares.

        The protocol and burn shares are paid immediately; the contributors'
        share stays in custody for ``claim_forfeited_share``.
        """
        self._require_owner(caller)
        record = self._require_locked(event_id)

        original = record.balance
        contributors, protocol, burned = split_three(original, self.params.forfeit_split)
        forfeiture = ForfeitureRecord(
            event_id=event_id,
            original=original,
            contributors_share=contributors,
            protocol_share=protocol,
            burned=burned,
        )
        record.balance = 0
        record.status = CollateralStatus.FORFEITED
        self._forfeitures[event_id] = forfeiture

        send(self.token, self.account, self.params.fee_recipient, protocol)
        send(self.token, self.account, self.params.burn_address, burned)

        logger.warning(
            "Forfeited %d collateral for event %d (contributors=%d protocol=%d burned=%d)",
            original, event_id, contributors, protocol, burned,
        )
        return forfeiture

    @transactional
    def claim_forfeited_share(
        self,
        caller: str,
        event_id: int,
        contributor: str,
        contribution: int,
        total_contribution: int,
        contributor_count: int,
    ) -> int:
        """Pay a disputer their pro-rata part of the contributors' share.

        The last of ``contributor_count`` claimants receives whatever rounding
        left behind, so the share is always distributed in full.
        """
        self._require_owner(caller)
        forfeiture = self._forfeitures.get(event_id)
        if forfeiture is None:
            raise InvalidStateError(f"No forfeiture recorded for event {event_id}")
        if contributor in forfeiture.claimed:
            raise InvalidStateError(f"{contributor} already claimed a forfeited share")
        if contribution <= 0:
            raise UnauthorizedError("Only dispute contributors may claim", caller=contributor, required_role="contributor")
        if total_contribution <= 0:
            raise ArithmeticHazard("Total contribution is zero", details={"event_id": event_id})

        if len(forfeiture.claimed) + 1 >= contributor_count:
            amount = forfeiture.remaining
        else:
            amount = forfeiture.contributors_share * contribution // total_contribution
        forfeiture.claimed[contributor] = amount
        send(self.token, self.account, contributor, amount)

        logger.info("Paid forfeited share %d for event %d to %s", amount, event_id, contributor)
        return amount

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_funding(self, creator: str, amount: int) -> None:
        if self.token.balance_of(creator) < amount:
            raise TransferFailed(f"{creator} balance is below {amount}", sender=creator, amount=amount)
        if self.token.allowance(creator, self.account) < amount:
            raise TransferFailed(f"{creator} has not authorized {amount} for the vault", sender=creator, amount=amount)

    def _require_locked(self, event_id: int) -> CollateralRecord:
        record = self.record(event_id)
        if not record.locked:
            raise InvalidStateError("Collateral is no longer locked", current_state=record.status.value)
        return record

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise UnauthorizedError("Only the risk manager may move collateral", caller=caller, required_role="manager")
