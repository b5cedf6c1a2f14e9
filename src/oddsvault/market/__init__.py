"""Market components: ledgers, collateral, trust, disputes and outcome sources."""

from .collateral import CollateralRecord, CollateralVault, ForfeitureRecord, bet_limit, split_three
from .dispute import DisputePool
from .ledger import EventLedger, EventState, compute_payout, validate_event_terms
from .manager import OutcomeListener, RiskManager
from .models import (
    CollateralStatus,
    DisputeResolution,
    DisputeStatus,
    EventStatus,
    FeeDistribution,
    PoolDistribution,
    utc_now,
)
from .oracle import (
    CommitRevealSource,
    Commitment,
    ExternalFeedSource,
    OutcomeSource,
    compute_commitment_hash,
    generate_salt,
)
from .trust import TrustRegistry, check_int256

__all__ = [
    # Orchestration
    "RiskManager",
    "OutcomeListener",
    # Ledger
    "EventLedger",
    "EventState",
    "compute_payout",
    "validate_event_terms",
    # Collateral
    "CollateralRecord",
    "CollateralVault",
    "ForfeitureRecord",
    "bet_limit",
    "split_three",
    # Disputes
    "DisputePool",
    # Trust
    "TrustRegistry",
    "check_int256",
    # Outcome sources
    "CommitRevealSource",
    "Commitment",
    "ExternalFeedSource",
    "OutcomeSource",
    "compute_commitment_hash",
    "generate_salt",
    # Models
    "CollateralStatus",
    "DisputeResolution",
    "DisputeStatus",
    "EventStatus",
    "FeeDistribution",
    "PoolDistribution",
    "utc_now",
]
