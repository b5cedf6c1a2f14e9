"""Per-event stake ledger and lifecycle state machine.

One ``EventLedger`` exists per market. It owns the outcome stakes, the
per-user bet records, the dispute contribution pool and the payout
arithmetic. Value sits in the ledger's own custody account on the token
collaborator.

State machine (no transition is reversible):

    OPEN --submit_outcome--> RESOLVED --close--> CLOSED
    OPEN --cancel--> CANCELLED
    RESOLVED --resolve_dispute--> RESOLVED (winning outcome may change)

Payout for a winning bettor:

    loot = total_staked - winning_total
    fee = loot x fee_bps / 10000
    payout = stake + stake x (loot - fee) / winning_total

All divisions truncate toward zero; payouts are capped at the remaining
escrow so rounding can never overdraw the ledger.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..core.config import BPS_DENOMINATOR, MarketParameters
from ..core.exceptions import (
    ArithmeticHazard,
    CapacityExceeded,
    InvalidStateError,
    UnauthorizedError,
    ValidationException,
)
from ..core.token import TokenLedger, pull, send
from ..core.transactions import Transactional, transactional
from .collateral import split_three
from .dispute import DisputePool
from .models import Clock, DisputeStatus, EventStatus, FeeDistribution, PoolDistribution, utc_now

logger = logging.getLogger(__name__)


def validate_event_terms(
    outcomes: Sequence[str],
    open_time: datetime,
    close_time: datetime,
    now: datetime,
    params: MarketParameters,
) -> tuple[str, ...]:
    """Validate an event's outcome set and schedule.

    Returns:
        The outcome labels as an immutable tuple.

    Raises:
        ValidationException: On a bad outcome count, blank or duplicate
            labels, insufficient lead time, or close time not after open time.
    """
    labels = tuple(outcomes)
    if not params.min_outcomes <= len(labels) <= params.max_outcomes:
        raise ValidationException(
            f"Events need between {params.min_outcomes} and {params.max_outcomes} outcomes",
            field="outcomes",
            value=len(labels),
        )
    if any(not isinstance(label, str) or not label.strip() for label in labels):
        raise ValidationException("Outcome labels must be non-empty strings", field="outcomes")
    if len(set(labels)) != len(labels):
        raise ValidationException("Outcome labels must be unique", field="outcomes")
    if open_time < now + params.min_lead_time:
        raise ValidationException(
            f"Open time must be at least {params.min_lead_time} after creation",
            field="open_time",
            value=open_time.isoformat(),
        )
    if close_time <= open_time:
        raise ValidationException("Close time must be after open time", field="close_time", value=close_time.isoformat())
    return labels


def compute_payout(stake: int, winning_total: int, total_staked: int, fee_bps: int) -> int:
    """Proportional payout for ``stake`` on the winning outcome."""
    if winning_total <= 0:
        raise ArithmeticHazard("Winning outcome has no stake", details={"winning_total": winning_total})
    loot = total_staked - winning_total
    fee = loot * fee_bps // BPS_DENOMINATOR
    net_loot = loot - fee
    return stake + stake * net_loot // winning_total


@dataclass
class EventState:
    """Mutable state of one event. Nothing is ever deleted from it."""

    event_id: int
    creator: str
    outcomes: tuple[str, ...]
    open_time: datetime
    close_time: datetime
    created_at: datetime
    ceiling: int
    status: EventStatus = EventStatus.OPEN
    outcome_stakes: list[int] = field(default_factory=list)
    bets: dict[tuple[str, int], int] = field(default_factory=dict)
    user_totals: dict[str, int] = field(default_factory=dict)
    participants: set[str] = field(default_factory=set)
    total_staked: int = 0
    escrow: int = 0
    winning_outcome: int | None = None
    resolved_at: datetime | None = None
    closed_at: datetime | None = None
    cancelled_at: datetime | None = None
    has_claimed: set[str] = field(default_factory=set)
    payouts: dict[str, int] = field(default_factory=dict)
    fees_distributed: bool = False
    refund_all: bool = False
    dispute: DisputePool = field(default_factory=DisputePool)

    def __post_init__(self) -> None:
        if not self.outcome_stakes:
            self.outcome_stakes = [0] * len(self.outcomes)


class EventLedger(Transactional):
    """Stake ledger and state machine for a single event."""

    _journal_fields = ("state",)
    _atomic_with = ("token",)

    def __init__(
        self,
        state: EventState,
        *,
        manager: str,
        token: TokenLedger,
        params: MarketParameters,
        clock: Clock = utc_now,
    ):
        self.state = state
        self.manager = manager
        self.token = token
        self.params = params
        self.clock = clock

    @classmethod
    def create(
        cls,
        event_id: int,
        creator: str,
        outcomes: Sequence[str],
        open_time: datetime,
        close_time: datetime,
        ceiling: int,
        *,
        manager: str,
        token: TokenLedger,
        params: MarketParameters,
        clock: Clock = utc_now,
    ) -> EventLedger:
        """Validate terms and build an OPEN ledger with the vault-computed ceiling."""
        now = clock()
        labels = validate_event_terms(outcomes, open_time, close_time, now, params)
        if ceiling < 0:
            raise ValidationException("Ceiling cannot be negative", field="ceiling", value=ceiling)
        state = EventState(
            event_id=event_id,
            creator=creator,
            outcomes=labels,
            open_time=open_time,
            close_time=close_time,
            created_at=now,
            ceiling=ceiling,
        )
        logger.info("Created event %d by %s with %d outcomes, ceiling %d", event_id, creator, len(labels), ceiling)
        return cls(state, manager=manager, token=token, params=params, clock=clock)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def event_id(self) -> int:
        return self.state.event_id

    @property
    def account(self) -> str:
        """Custody account holding this event's stakes and dispute pool."""
        return f"event:{self.state.event_id}"

    @property
    def creator(self) -> str:
        return self.state.creator

    @property
    def status(self) -> EventStatus:
        return self.state.status

    @property
    def total_staked(self) -> int:
        return self.state.total_staked

    @property
    def ceiling(self) -> int:
        return self.state.ceiling

    @property
    def user_cap(self) -> int:
        return self.state.ceiling * self.params.user_cap_bps // BPS_DENOMINATOR

    @property
    def winning_outcome(self) -> int | None:
        return self.state.winning_outcome

    @property
    def dispute(self) -> DisputePool:
        return self.state.dispute

    @property
    def winning_total(self) -> int:
        if self.state.winning_outcome is None:
            return 0
        return self.state.outcome_stakes[self.state.winning_outcome]

    def outcome_stake(self, outcome: int) -> int:
        self._check_outcome(outcome)
        return self.state.outcome_stakes[outcome]

    def bet_of(self, user: str, outcome: int) -> int:
        return self.state.bets.get((user, outcome), 0)

    def user_total(self, user: str) -> int:
        return self.state.user_totals.get(user, 0)

    def has_claimed(self, user: str) -> bool:
        return user in self.state.has_claimed

    def is_participant(self, user: str) -> bool:
        return user in self.state.participants

    def dispute_settled(self, now: datetime | None = None) -> bool:
        """Outcome reported, no dispute pending and the dispute deadline has passed."""
        now = now or self.clock()
        dispute = self.state.dispute
        if self.state.status not in (EventStatus.RESOLVED, EventStatus.CLOSED):
            return False
        return dispute.settled and dispute.deadline is not None and now >= dispute.deadline

    def implied_odds(self) -> list[int]:
        """Each outcome's share of the pool in basis points."""
        total = self.state.total_staked
        if total == 0:
            return [0] * len(self.state.outcomes)
        return [stake * BPS_DENOMINATOR // total for stake in self.state.outcome_stakes]

    def preview_payout(self, user: str) -> int:
        """What ``claim_payout`` would pay ``user`` if the current winner stands."""
        if self.state.winning_outcome is None or self.winning_total == 0 or self.has_claimed(user):
            return 0
        stake = self.bet_of(user, self.state.winning_outcome)
        if stake == 0:
            return 0
        payout = compute_payout(stake, self.winning_total, self.state.total_staked, self.params.fee_bps)
        return min(payout, self.state.escrow)

    def to_dict(self) -> dict[str, Any]:
        s = self.state
        return {
            "event_id": s.event_id,
            "account": self.account,
            "creator": s.creator,
            "outcomes": list(s.outcomes),
            "open_time": s.open_time.isoformat(),
            "close_time": s.close_time.isoformat(),
            "created_at": s.created_at.isoformat(),
            "status": s.status.value,
            "ceiling": s.ceiling,
            "user_cap": self.user_cap,
            "outcome_stakes": list(s.outcome_stakes),
            "total_staked": s.total_staked,
            "escrow": s.escrow,
            "winning_outcome": s.winning_outcome,
            "resolved_at": s.resolved_at.isoformat() if s.resolved_at else None,
            "closed_at": s.closed_at.isoformat() if s.closed_at else None,
            "cancelled_at": s.cancelled_at.isoformat() if s.cancelled_at else None,
            "participants": len(s.participants),
            "claimed": len(s.has_claimed),
            "fees_distributed": s.fees_distributed,
            "refund_all": s.refund_all,
            "dispute": s.dispute.to_dict(),
        }

    # ------------------------------------------------------------------
    # Bettor operations
    # ------------------------------------------------------------------

    @transactional
    def place_bet(self, caller: str, outcome: int, amount: int) -> int:
        """Stake ``amount`` on ``outcome``; returns the caller's new stake on it."""
        s = self.state
        now = self.clock()
        self._require_status(EventStatus.OPEN)
        if now >= s.open_time:
            raise InvalidStateError("Betting closed at the event's open time", current_state=s.status.value)
        self._check_amount(amount)
        self._check_outcome(outcome)

        new_total = s.total_staked + amount
        if new_total > s.ceiling:
            raise CapacityExceeded("Bet would exceed the event's stake ceiling", limit=s.ceiling, attempted=new_total)
        new_user_total = self.user_total(caller) + amount
        if new_user_total > self.user_cap:
            raise CapacityExceeded("Bet would exceed the per-user cap", limit=self.user_cap, attempted=new_user_total)

        key = (caller, outcome)
        s.bets[key] = s.bets.get(key, 0) + amount
        s.user_totals[caller] = new_user_total
        s.outcome_stakes[outcome] += amount
        s.total_staked = new_total
        s.escrow += amount
        s.participants.add(caller)

        pull(self.token, self.account, caller, self.account, amount)

        logger.debug("Event %d: %s staked %d on outcome %d", s.event_id, caller, amount, outcome)
        return s.bets[key]

    @transactional
    def claim_payout(self, caller: str) -> int:
        """Pay a winning bettor their stake plus their share of the net losing pool."""
        s = self.state
        self._require_claimable()
        if caller in s.has_claimed:
            raise InvalidStateError(f"{caller} has already claimed", current_state=s.status.value)
        winning_total = self.winning_total
        if winning_total == 0:
            raise InvalidStateError("Nobody staked on the winning outcome; every bettor is refunded via withdraw_bet")
        stake = self.bet_of(caller, s.winning_outcome)
        if stake == 0:
            raise InvalidStateError(f"{caller} has no stake on the winning outcome")

        payout = min(compute_payout(stake, winning_total, s.total_staked, self.params.fee_bps), s.escrow)
        s.has_claimed.add(caller)
        s.payouts[caller] = payout
        s.escrow -= payout

        send(self.token, self.account, caller, payout)

        logger.info("Event %d: paid %d to %s", s.event_id, payout, caller)
        return payout

    @transactional
    def withdraw_bet(self, caller: str, outcome: int) -> int:
        """Refund the caller's exact stake on ``outcome``.

        Allowed once the event is cancelled, or once its outcome is settled
        with nobody having staked on the winner.
        """
        s = self.state
        self._check_outcome(outcome)
        if s.status == EventStatus.CANCELLED:
            pass
        elif self.dispute_settled() and self.winning_total == 0:
            pass
        else:
            raise InvalidStateError("Stakes are only refundable after cancellation or an unbacked outcome", current_state=s.status.value)

        key = (caller, outcome)
        amount = s.bets.get(key, 0)
        if amount == 0:
            raise InvalidStateError(f"{caller} has no stake on outcome {outcome} to withdraw")

        s.bets[key] = 0
        s.user_totals[caller] -= amount
        s.outcome_stakes[outcome] -= amount
        s.total_staked -= amount
        s.escrow -= amount
        if s.user_totals[caller] == 0:
            s.has_claimed.add(caller)

        send(self.token, self.account, caller, amount)

        logger.info("Event %d: refunded %d to %s on outcome %d", s.event_id, amount, caller, outcome)
        return amount

    @transactional
    def contribute_to_dispute(self, caller: str, reason: str, amount: int) -> bool:
        """Add stake to the dispute pool; returns True once the target is reached."""
        s = self.state
        now = self.clock()
        self._require_status(EventStatus.RESOLVED)
        if caller not in s.participants:
            raise UnauthorizedError("Only bettors on this event may dispute it", caller=caller, required_role="bettor")
        self._check_amount(amount)
        if amount < self.params.min_dispute_contribution:
            raise ValidationException(
                f"Dispute contributions must be at least {self.params.min_dispute_contribution}",
                field="amount",
                value=amount,
            )

        first = s.dispute.status == DisputeStatus.NONE
        reached = s.dispute.add(caller, amount, reason, now)
        pull(self.token, self.account, caller, self.account, amount)

        if first:
            logger.warning("Event %d: dispute opened by %s: %s", s.event_id, caller, reason)
        if reached:
            logger.warning(
                "Event %d: dispute target %d reached (%d contributed), window closed",
                s.event_id, s.dispute.target, s.dispute.total,
            )
        return reached

    @transactional
    def refund_dispute_contribution(self, caller: str) -> int:
        """Return a contribution after an overturned outcome or an unfunded, upheld dispute."""
        s = self.state
        amount = s.dispute.take_refund(caller)
        send(self.token, self.account, caller, amount)
        logger.info("Event %d: refunded dispute contribution %d to %s", s.event_id, amount, caller)
        return amount

    # ------------------------------------------------------------------
    # Creator operations
    # ------------------------------------------------------------------

    @transactional
    def submit_outcome(self, caller: str, outcome: int) -> None:
        """Report the winning outcome and open the dispute window."""
        s = self.state
        now = self.clock()
        if caller != s.creator:
            raise UnauthorizedError("Only the event creator may submit the outcome", caller=caller, required_role="creator")
        self._require_status(EventStatus.OPEN)
        if now < s.close_time:
            raise InvalidStateError("Outcome cannot be submitted before the event closes", current_state=s.status.value)
        self._check_outcome(outcome)

        s.winning_outcome = outcome
        s.status = EventStatus.RESOLVED
        s.resolved_at = now
        target = s.total_staked * self.params.dispute_target_bps // BPS_DENOMINATOR
        s.dispute.open_window(now + self.params.dispute_window, target)

        logger.info(
            "Event %d resolved to outcome %d (%s); dispute target %d until %s",
            s.event_id, outcome, s.outcomes[outcome], target, s.dispute.deadline.isoformat(),
        )

    # ------------------------------------------------------------------
    # Manager operations
    # ------------------------------------------------------------------

    @transactional
    def resolve_dispute(self, caller: str, final_outcome: int) -> bool:
        """Apply an adjudicator ruling; returns True if the winning outcome changed."""
        s = self.state
        self._require_manager(caller)
        self._check_outcome(final_outcome)
        if not s.dispute.blocking:
            raise InvalidStateError("No open dispute to resolve", current_state=s.dispute.status.value)

        changed = final_outcome != s.winning_outcome
        s.dispute.resolve(changed, self.clock())
        if changed:
            logger.warning("Event %d: dispute changed outcome %d -> %d", s.event_id, s.winning_outcome, final_outcome)
            s.winning_outcome = final_outcome
        else:
            logger.info("Event %d: dispute upheld outcome %d", s.event_id, final_outcome)
        return changed

    @transactional
    def cancel(self, caller: str) -> None:
        s = self.state
        now = self.clock()
        self._require_manager(caller)
        self._require_status(EventStatus.OPEN)
        if now >= s.open_time - self.params.cancel_buffer:
            raise InvalidStateError(
                f"Events can only be cancelled up to {self.params.cancel_buffer} before open time",
                current_state=s.status.value,
            )
        s.status = EventStatus.CANCELLED
        s.cancelled_at = now
        logger.info("Event %d cancelled with %d staked", s.event_id, s.total_staked)

    @transactional
    def close(self, caller: str) -> None:
        s = self.state
        now = self.clock()
        self._require_manager(caller)
        self._require_status(EventStatus.RESOLVED)
        if now < s.close_time:
            raise InvalidStateError("Event cannot be closed before its close time", current_state=s.status.value)
        if not self.dispute_settled(now):
            raise InvalidStateError("Event cannot be closed while its dispute window or a dispute is open")
        s.status = EventStatus.CLOSED
        s.closed_at = now
        logger.info("Event %d closed", s.event_id)

    @transactional
    def set_ceiling(self, caller: str, ceiling: int) -> int:
        """Raise the stake ceiling after a collateral top-up; it never shrinks."""
        s = self.state
        self._require_manager(caller)
        self._require_status(EventStatus.OPEN)
        s.ceiling = max(s.ceiling, ceiling)
        return s.ceiling

    @transactional
    def distribute_fees(self, caller: str, creator_recipient: str) -> FeeDistribution:
        """Pay out the fee on the losing pool, once.

        With no stake on the winning outcome there is no fee; the event
        switches to refund-all instead.
        """
        s = self.state
        self._require_manager(caller)
        if not self.dispute_settled():
            raise InvalidStateError("Fees are only paid once the outcome is settled", current_state=s.status.value)
        if s.fees_distributed:
            raise InvalidStateError("Fees were already distributed")

        s.fees_distributed = True
        result = FeeDistribution(event_id=s.event_id, creator_recipient=creator_recipient)
        winning_total = self.winning_total
        if winning_total == 0:
            s.refund_all = True
            result.refund_all = True
            logger.info("Event %d: no stake on the winning outcome, all bettors refundable", s.event_id)
            return result

        loot = s.total_staked - winning_total
        fee = min(loot * self.params.fee_bps // BPS_DENOMINATOR, s.escrow)
        creator_share = fee * self.params.creator_fee_share_bps // BPS_DENOMINATOR
        liquidity_share = fee * self.params.liquidity_fee_share_bps // BPS_DENOMINATOR
        protocol_share = fee - creator_share - liquidity_share
        s.escrow -= fee

        result.fee = fee
        result.creator_share = creator_share
        result.liquidity_share = liquidity_share
        result.protocol_share = protocol_share

        send(self.token, self.account, creator_recipient, creator_share)
        send(self.token, self.account, self.params.liquidity_recipient, liquidity_share)
        send(self.token, self.account, self.params.fee_recipient, protocol_share)

        logger.info(
            "Event %d: fee %d paid (creator=%d liquidity=%d protocol=%d)",
            s.event_id, fee, creator_share, liquidity_share, protocol_share,
        )
        return result

    @transactional
    def distribute_dispute_pool(self, caller: str) -> PoolDistribution:
        """Split the pool of an upheld, fully funded dispute creator / protocol / burn."""
        s = self.state
        self._require_manager(caller)
        total = s.dispute.take_pool()
        creator_share, protocol_share, burned = split_three(total, self.params.dispute_pool_split)

        send(self.token, self.account, s.creator, creator_share)
        send(self.token, self.account, self.params.fee_recipient, protocol_share)
        send(self.token, self.account, self.params.burn_address, burned)

        logger.info(
            "Event %d: dispute pool %d paid (creator=%d protocol=%d burned=%d)",
            s.event_id, total, creator_share, protocol_share, burned,
        )
        return PoolDistribution(
            event_id=s.event_id,
            total=total,
            creator_share=creator_share,
            protocol_share=protocol_share,
            burned=burned,
        )

    @transactional
    def abandon_dispute(self, caller: str) -> int:
        """Sweep a dispute nobody ruled on within the long-stop timeout to the protocol."""
        s = self.state
        self._require_manager(caller)
        dispute = s.dispute
        if not dispute.blocking:
            raise InvalidStateError("No open dispute to abandon", current_state=dispute.status.value)
        if self.clock() < dispute.deadline + self.params.dispute_long_stop:
            raise InvalidStateError("Dispute has not reached its long-stop timeout")

        swept = dispute.abandon()
        send(self.token, self.account, self.params.fee_recipient, swept)

        logger.warning("Event %d: abandoned dispute pool %d swept to protocol", s.event_id, swept)
        return swept

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _require_claimable(self) -> None:
        s = self.state
        if s.status not in (EventStatus.RESOLVED, EventStatus.CLOSED):
            raise InvalidStateError("Payouts open once the outcome is submitted", current_state=s.status.value)
        if s.dispute.blocking:
            raise InvalidStateError("Payouts are frozen while a dispute is open", current_state=s.dispute.status.value)
        if self.clock() < s.dispute.deadline:
            raise InvalidStateError("Payouts open after the dispute window", current_state=s.status.value)

    def _require_status(self, expected: EventStatus) -> None:
        if self.state.status != expected:
            raise InvalidStateError(
                f"Event {self.state.event_id} is {self.state.status.value}, expected {expected.value}",
                current_state=self.state.status.value,
            )

    def _require_manager(self, caller: str) -> None:
        if caller != self.manager:
            raise UnauthorizedError("Only the risk manager may do this", caller=caller, required_role="manager")

    def _check_outcome(self, outcome: int) -> None:
        if isinstance(outcome, bool) or not isinstance(outcome, int) or not 0 <= outcome < len(self.state.outcomes):
            raise ValidationException("Invalid outcome index", field="outcome", value=outcome)

    @staticmethod
    def _check_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationException("Amount must be a positive integer", field="amount", value=amount)
