# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Oddsvault Contributors

"""Oddsvault - peer-to-peer prediction-market settlement engine.

Creators post collateral to open events with a fixed set of outcomes;
bettors stake on outcomes and winners split the losing pool pro rata,
less a protocol fee. After the creator reports an outcome there is a
dispute window in which bettors may challenge it by staking into a
dispute pool; an approved adjudicator rules, and the creator's collateral
and trust score follow the ruling.

Architecture:
  RiskManager (event factory, dispute relay, fee distributor)
    -> CollateralVault (custody, stake ceiling, forfeiture)
    -> TrustRegistry (clamped per-creator scores)
    -> EventLedger (per-event stakes, lifecycle, payouts, dispute pool)
  All value moves through a TokenLedger collaborator.

Every public mutating operation is all-or-nothing and rejects re-entry.
"""

__version__ = "0.1.0"

from . import (
    core as core,
    market as market,
)
