"""Risk manager: event factory, dispute relay and fee distributor.

The risk manager is the only identity allowed to move collateral, change
trust scores, or call the manager-only operations of an ``EventLedger``. It
keeps an arena of every event it created, keyed by integer event id.

Creating an event:
1. Validate outcomes and schedule
2. Gate on the creator's trust score
3. Lock at least the required collateral in the vault
4. Build the ledger with the collateral-derived stake ceiling

Settling an event:
- Clean path: the creator claims collateral after the dispute deadline.
  Fees are paid (or refund-all is triggered), collateral is released and
  trust goes up by the fixed increment.
- Disputed path: an approved adjudicator rules. An overturned outcome
  forfeits the collateral, redirects the creator's fee share to the
  protocol and penalizes trust. An upheld outcome settles as the clean path
  and pays a fully funded dispute pool out to the creator.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from ..core.config import MarketParameters
from ..core.exceptions import InvalidStateError, NotFoundError, UnauthorizedError, ValidationException
from ..core.token import TokenLedger
from ..core.transactions import Transactional, atomic, transactional
from .collateral import CollateralVault
from .ledger import EventLedger, validate_event_terms
from .models import Clock, DisputeResolution, EventStatus, FeeDistribution, utc_now
from .oracle import OutcomeSource
from .trust import TrustRegistry

logger = logging.getLogger(__name__)


@runtime_checkable
class OutcomeListener(Protocol):
    """Collaborator told when an event reaches CLOSED or CANCELLED."""

    def notify_outcome(self, event_id: int) -> None: ...


class RiskManager(Transactional):
    """Creates events and routes collateral, fees and trust on settlement."""

    _journal_fields = ("_next_event_id",)
    _atomic_with = ("trust", "vault", "token")

    def __init__(
        self,
        token: TokenLedger,
        params: MarketParameters | None = None,
        *,
        owner: str,
        adjudicators: Iterable[str] = (),
        address: str = "risk-manager",
        vault_account: str = "collateral-vault",
        clock: Clock = utc_now,
    ):
        self.params = params or MarketParameters.from_settings()
        self.params.validate()
        self.token = token
        self.owner = owner
        self.adjudicators = frozenset(adjudicators)
        self.address = address
        self.clock = clock
        self.trust = TrustRegistry(self.params, owner=address)
        self.vault = CollateralVault(self.params, token, self.trust, owner=address, account=vault_account)
        self._events: dict[int, EventLedger] = {}
        self._creator_events: dict[str, list[int]] = {}
        self._listeners: list[OutcomeListener] = []
        self._next_event_id = 1

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_event(self, event_id: int) -> EventLedger:
        ledger = self._events.get(event_id)
        if ledger is None:
            raise NotFoundError("Event", str(event_id))
        return ledger

    def all_events(self) -> list[EventLedger]:
        return [self._events[i] for i in sorted(self._events)]

    def events_by_creator(self, creator: str) -> list[EventLedger]:
        return [self._events[i] for i in self._creator_events.get(creator, [])]

    def open_events(self) -> list[EventLedger]:
        """Open events, most trusted creators first."""
        open_ = [e for e in self._events.values() if e.status == EventStatus.OPEN]
        return sorted(open_, key=lambda e: (-self.trust.score(e.creator), e.event_id))

    def trust_score(self, creator: str) -> int:
        return self.trust.score(creator)

    def compute_bet_limit(self, creator: str, collateral_amount: int) -> int:
        return self.vault.compute_bet_limit(creator, collateral_amount)

    def required_collateral(self, creator: str) -> int:
        return self.vault.required_collateral(creator)

    def subscribe(self, listener: OutcomeListener) -> None:
        self._listeners.append(listener)

    def stats(self) -> dict[str, Any]:
        by_status: dict[str, int] = {status.value: 0 for status in EventStatus}
        for ledger in self._events.values():
            by_status[ledger.status.value] += 1
        return {
            "events": len(self._events),
            "by_status": by_status,
            "creators": len(self._creator_events),
            "collateral_locked": self.vault.total_locked(),
            "total_staked": sum(e.total_staked for e in self._events.values()),
        }

    # ------------------------------------------------------------------
    # Event creation and collateral
    # ------------------------------------------------------------------

    @transactional
    def create_event(
        self,
        caller: str,
        outcomes: Sequence[str],
        open_time: datetime,
        close_time: datetime,
        collateral_amount: int | None = None,
    ) -> EventLedger:
        """Lock collateral and open a new event for ``caller``.

        Args:
            caller: The creator.
            outcomes: Outcome labels.
            open_time: When betting stops and the real-world event starts.
            close_time: When the real-world event ends.
            collateral_amount: Collateral to post; defaults to the requirement.

        Returns:
            The new OPEN ledger.
        """
        validate_event_terms(outcomes, open_time, close_time, self.clock(), self.params)
        if not self.trust.exceeds(caller, self.params.trust_threshold):
            raise UnauthorizedError(
                f"Trust score {self.trust.score(caller)} does not exceed {self.params.trust_threshold}",
                caller=caller,
                required_role="trusted_creator",
            )
        required = self.vault.required_collateral(caller)
        amount = required if collateral_amount is None else collateral_amount
        if amount < required:
            raise ValidationException(
                f"Collateral {amount} is below the required {required}",
                field="collateral_amount",
                value=amount,
            )

        event_id = self._next_event_id
        self.trust.initialize(self.address, caller)
        self.vault.lock(self.address, event_id, caller, amount)
        ceiling = self.vault.compute_bet_limit(caller, amount)
        ledger = EventLedger.create(
            event_id,
            caller,
            outcomes,
            open_time,
            close_time,
            ceiling,
            manager=self.address,
            token=self.token,
            params=self.params,
            clock=self.clock,
        )

        self._next_event_id += 1
        self._events[event_id] = ledger
        self._creator_events.setdefault(caller, []).append(event_id)
        logger.info("Event %d registered for %s (collateral %d, ceiling %d)", event_id, caller, amount, ceiling)
        return ledger

    @transactional
    def top_up_collateral(self, caller: str, event_id: int, amount: int) -> int:
        """Post more collateral for an open event; returns the new ceiling."""
        ledger = self.get_event(event_id)
        self._require_creator(caller, ledger)
        if ledger.status != EventStatus.OPEN:
            raise InvalidStateError("Collateral can only be topped up while the event is open", current_state=ledger.status.value)

        with atomic(ledger):
            balance = self.vault.top_up(self.address, event_id, amount)
            ceiling = ledger.set_ceiling(self.address, self.vault.compute_bet_limit(caller, balance))
        logger.info("Event %d ceiling now %d after top-up", event_id, ceiling)
        return ceiling

    # ------------------------------------------------------------------
    # Outcome reporting
    # ------------------------------------------------------------------

    def submit_outcome(self, caller: str, event_id: int, outcome: int) -> None:
        self.get_event(event_id).submit_outcome(caller, outcome)

    def submit_outcome_from(self, caller: str, event_id: int, source: OutcomeSource) -> int:
        """Submit the outcome an ``OutcomeSource`` reports for the event."""
        ledger = self.get_event(event_id)
        outcome = source.outcome_for(event_id)
        ledger.submit_outcome(caller, outcome)
        return outcome

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    @transactional
    def claim_collateral(self, caller: str, event_id: int) -> int:
        """Release an event's collateral to its creator; returns the amount."""
        ledger = self.get_event(event_id)
        self._require_creator(caller, ledger)
        record = self.vault.record(event_id)
        if not record.locked:
            raise InvalidStateError("Collateral was already released or forfeited", current_state=record.status.value)

        with atomic(ledger):
            if ledger.status == EventStatus.CANCELLED:
                released = self.vault.release(self.address, event_id)
                self.trust.increase(self.address, ledger.creator)
            elif ledger.status in (EventStatus.RESOLVED, EventStatus.CLOSED):
                if not ledger.dispute_settled():
                    raise InvalidStateError("Collateral is held until the dispute window passes and any dispute is ruled on")
                _, released, _ = self._settle_clean(ledger)
            else:
                raise InvalidStateError("Collateral is locked while the event is open", current_state=ledger.status.value)
        return released

    @transactional
    def resolve_dispute_externally(self, caller: str, event_id: int, final_outcome: int) -> DisputeResolution:
        """Apply an adjudicator's ruling on a disputed event."""
        if caller not in self.adjudicators:
            raise UnauthorizedError("Only approved adjudicators may resolve disputes", caller=caller, required_role="adjudicator")
        ledger = self.get_event(event_id)
        trust_before = self.trust.score(ledger.creator)

        with atomic(ledger):
            changed = ledger.resolve_dispute(self.address, final_outcome)
            result = DisputeResolution(
                event_id=event_id,
                final_outcome=final_outcome,
                outcome_changed=changed,
                trust_before=trust_before,
                trust_after=trust_before,
            )
            if changed:
                if not ledger.state.fees_distributed:
                    result.fees = ledger.distribute_fees(self.address, creator_recipient=self.params.fee_recipient)
                if self.vault.record(event_id).locked:
                    result.collateral_forfeited = self.vault.forfeit(self.address, event_id).original
                result.trust_after = self.trust.penalize(self.address, ledger.creator)
            else:
                result.fees, result.collateral_released, result.trust_after = self._settle_clean(ledger)
                if ledger.dispute.target_met:
                    result.pool = ledger.distribute_dispute_pool(self.address)

        logger.info(
            "Event %d dispute ruled by %s: outcome %d (changed=%s), trust %d -> %d",
            event_id, caller, final_outcome, changed, trust_before, result.trust_after,
        )
        return result

    @transactional
    def claim_forfeited_share(self, caller: str, event_id: int) -> int:
        """Pay a disputer their part of an event's forfeited collateral."""
        ledger = self.get_event(event_id)
        dispute = ledger.dispute
        return self.vault.claim_forfeited_share(
            self.address,
            event_id,
            caller,
            dispute.contribution_of(caller),
            dispute.total,
            dispute.contributor_count,
        )

    @transactional
    def sweep_abandoned_dispute(self, caller: str, event_id: int) -> int:
        """Collect a dispute pool nobody ruled on within the long-stop timeout."""
        if caller != self.owner:
            raise UnauthorizedError("Only the protocol owner may sweep abandoned disputes", caller=caller, required_role="owner")
        ledger = self.get_event(event_id)
        with atomic(ledger):
            return ledger.abandon_dispute(self.address)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def cancel_event(self, caller: str, event_id: int) -> None:
        """Cancel an event before it opens, then notify listeners."""
        self._cancel(caller, event_id)
        self._notify(event_id)

    def close_event(self, caller: str, event_id: int) -> None:
        """Close a settled event, then notify listeners."""
        self._close(caller, event_id)
        self._notify(event_id)

    @transactional
    def _cancel(self, caller: str, event_id: int) -> None:
        ledger = self.get_event(event_id)
        self._require_creator_or_owner(caller, ledger)
        with atomic(ledger):
            ledger.cancel(self.address)

    @transactional
    def _close(self, caller: str, event_id: int) -> None:
        ledger = self.get_event(event_id)
        self._require_creator_or_owner(caller, ledger)
        with atomic(ledger):
            ledger.close(self.address)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _settle_clean(self, ledger: EventLedger) -> tuple[FeeDistribution | None, int, int]:
        """Pay fees, release collateral and reward the creator for an upheld outcome."""
        fees = None
        if not ledger.state.fees_distributed:
            fees = ledger.distribute_fees(self.address, creator_recipient=ledger.creator)
        released = self.vault.release(self.address, ledger.event_id)
        trust_after = self.trust.increase(self.address, ledger.creator)
        return fees, released, trust_after

    def _notify(self, event_id: int) -> None:
        # Runs after the transition committed; a listener cannot undo it.
        for listener in list(self._listeners):
            try:
                listener.notify_outcome(event_id)
            except Exception:
                logger.exception("Listener %r failed on event %d", listener, event_id)

    def _require_creator(self, caller: str, ledger: EventLedger) -> None:
        if caller != ledger.creator:
            raise UnauthorizedError("Only the event creator may do this", caller=caller, required_role="creator")

    def _require_creator_or_owner(self, caller: str, ledger: EventLedger) -> None:
        if caller not in (ledger.creator, self.owner):
            raise UnauthorizedError("Only the event creator or protocol owner may do this", caller=caller, required_role="creator")
