"""Enums and result records shared by the market components."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class EventStatus(StrEnum):
    OPEN = "open"
    RESOLVED = "resolved"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class DisputeStatus(StrEnum):
    NONE = "none"  # No contribution yet
    OPEN = "open"  # Contributions received, awaiting adjudication
    RESOLVED = "resolved"  # Adjudicator ruled
    ABANDONED = "abandoned"  # Swept after the long-stop timeout


class CollateralStatus(StrEnum):
    LOCKED = "locked"
    RELEASED = "released"
    FORFEITED = "forfeited"


@dataclass
class FeeDistribution:
    """How the fee on an event's losing pool was paid out."""

    event_id: int
    fee: int = 0
    creator_share: int = 0
    liquidity_share: int = 0
    protocol_share: int = 0
    creator_recipient: str = ""
    refund_all: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "fee": self.fee,
            "creator_share": self.creator_share,
            "liquidity_share": self.liquidity_share,
            "protocol_share": self.protocol_share,
            "creator_recipient": self.creator_recipient,
            "refund_all": self.refund_all,
        }


@dataclass
class PoolDistribution:
    """How a dispute contribution pool was paid out after an upheld outcome."""

    event_id: int
    total: int
    creator_share: int
    protocol_share: int
    burned: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "total": self.total,
            "creator_share": self.creator_share,
            "protocol_share": self.protocol_share,
            "burned": self.burned,
        }


@dataclass
class DisputeResolution:
    """Result of an adjudicator ruling relayed through the risk manager."""

    event_id: int
    final_outcome: int
    outcome_changed: bool
    trust_before: int
    trust_after: int
    collateral_released: int = 0
    collateral_forfeited: int = 0
    fees: FeeDistribution | None = None
    pool: PoolDistribution | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "final_outcome": self.final_outcome,
            "outcome_changed": self.outcome_changed,
            "trust_before": self.trust_before,
            "trust_after": self.trust_after,
            "collateral_released": self.collateral_released,
            "collateral_forfeited": self.collateral_forfeited,
            "fees": self.fees.to_dict() if self.fees else None,
            "pool": self.pool.to_dict() if self.pool else None,
        }
