"""Core configuration - centralized config for the oddsvault package.

All environment-based configuration should flow through this module.
This provides a single source of truth and consistent defaults.

Usage:
    from oddsvault.core.config import get_config, MarketParameters
    config = get_config()
    params = MarketParameters.from_settings(config)
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigException

BPS_DENOMINATOR = 10_000
BURN_ADDRESS = "0x000000000000000000000000000000000000dEaD"


class EngineSettings(BaseSettings):
    """Configuration settings for the settlement engine.

    Settings can be configured via environment variables with the
    ODDSVAULT_ prefix. Fractions are integer basis points.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="ODDSVAULT_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="ODDSVAULT_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="ODDSVAULT_LOG_FILE",
    )

    # ==========================================================================
    # EVENT SCHEDULE SETTINGS
    # ==========================================================================

    min_outcomes: int = Field(
        default=2,
        description="Minimum number of outcomes per event",
        validation_alias="ODDSVAULT_MIN_OUTCOMES",
    )
    max_outcomes: int = Field(
        default=12,
        description="Maximum number of outcomes per event",
        validation_alias="ODDSVAULT_MAX_OUTCOMES",
    )
    min_lead_time_seconds: int = Field(
        default=2 * 3600,
        description="Minimum time between event creation and its open time",
        validation_alias="ODDSVAULT_MIN_LEAD_TIME_SECONDS",
    )
    cancel_buffer_seconds: int = Field(
        default=3600,
        description="Cancellation must happen at least this long before open time",
        validation_alias="ODDSVAULT_CANCEL_BUFFER_SECONDS",
    )

    # ==========================================================================
    # DISPUTE SETTINGS
    # ==========================================================================

    dispute_window_seconds: int = Field(
        default=3600,
        description="Length of the dispute window after outcome submission",
        validation_alias="ODDSVAULT_DISPUTE_WINDOW_SECONDS",
    )
    dispute_long_stop_seconds: int = Field(
        default=7 * 24 * 3600,
        description="Time after the dispute deadline before an unresolved dispute counts as abandoned",
        validation_alias="ODDSVAULT_DISPUTE_LONG_STOP_SECONDS",
    )
    dispute_target_bps: int = Field(
        default=1000,
        description="Dispute contribution target as a fraction of total staked",
        validation_alias="ODDSVAULT_DISPUTE_TARGET_BPS",
    )
    min_dispute_contribution: int = Field(
        default=1,
        description="Smallest accepted dispute contribution",
        validation_alias="ODDSVAULT_MIN_DISPUTE_CONTRIBUTION",
    )

    # ==========================================================================
    # FEE AND CAP SETTINGS
    # ==========================================================================

    fee_bps: int = Field(
        default=1000,
        description="Protocol fee taken from the losing pool",
        validation_alias="ODDSVAULT_FEE_BPS",
    )
    creator_fee_share_bps: int = Field(
        default=4000,
        description="Share of the fee paid to the event creator",
        validation_alias="ODDSVAULT_CREATOR_FEE_SHARE_BPS",
    )
    liquidity_fee_share_bps: int = Field(
        default=1000,
        description="Share of the fee paid to the liquidity recipient",
        validation_alias="ODDSVAULT_LIQUIDITY_FEE_SHARE_BPS",
    )
    user_cap_bps: int = Field(
        default=1000,
        description="Per-user stake cap as a fraction of the event ceiling",
        validation_alias="ODDSVAULT_USER_CAP_BPS",
    )

    # ==========================================================================
    # SPLIT SETTINGS (contributors-or-creator / protocol / burn)
    # ==========================================================================

    forfeit_contributors_bps: int = Field(default=8000, validation_alias="ODDSVAULT_FORFEIT_CONTRIBUTORS_BPS")
    forfeit_protocol_bps: int = Field(default=1000, validation_alias="ODDSVAULT_FORFEIT_PROTOCOL_BPS")
    forfeit_burn_bps: int = Field(default=1000, validation_alias="ODDSVAULT_FORFEIT_BURN_BPS")
    dispute_pool_creator_bps: int = Field(default=8000, validation_alias="ODDSVAULT_DISPUTE_POOL_CREATOR_BPS")
    dispute_pool_protocol_bps: int = Field(default=1000, validation_alias="ODDSVAULT_DISPUTE_POOL_PROTOCOL_BPS")
    dispute_pool_burn_bps: int = Field(default=1000, validation_alias="ODDSVAULT_DISPUTE_POOL_BURN_BPS")

    # ==========================================================================
    # TRUST SETTINGS
    # ==========================================================================

    trust_default: int = Field(default=1, validation_alias="ODDSVAULT_TRUST_DEFAULT")
    trust_min: int = Field(default=-100, validation_alias="ODDSVAULT_TRUST_MIN")
    trust_max: int = Field(default=100, validation_alias="ODDSVAULT_TRUST_MAX")
    trust_increment: int = Field(default=1, validation_alias="ODDSVAULT_TRUST_INCREMENT")
    trust_min_penalty: int = Field(default=5, validation_alias="ODDSVAULT_TRUST_MIN_PENALTY")
    trust_penalty_bps: int = Field(
        default=2000,
        description="Penalty as a fraction of the current score, if larger than the minimum",
        validation_alias="ODDSVAULT_TRUST_PENALTY_BPS",
    )
    trust_threshold: int = Field(
        default=-10,
        description="Creators must have a trust score strictly above this to create events",
        validation_alias="ODDSVAULT_TRUST_THRESHOLD",
    )

    # ==========================================================================
    # COLLATERAL SETTINGS
    # ==========================================================================

    collateral_mode: str = Field(
        default="fixed",
        description="Collateral requirement: 'fixed' or 'reputation'",
        validation_alias="ODDSVAULT_COLLATERAL_MODE",
    )
    fixed_collateral: int = Field(default=100, validation_alias="ODDSVAULT_FIXED_COLLATERAL")
    min_collateral: int = Field(default=10, validation_alias="ODDSVAULT_MIN_COLLATERAL")
    max_collateral: int = Field(default=1000, validation_alias="ODDSVAULT_MAX_COLLATERAL")
    bet_limit_multiplier: int = Field(
        default=10,
        description="Stake ceiling per unit of collateral at neutral trust",
        validation_alias="ODDSVAULT_BET_LIMIT_MULTIPLIER",
    )
    trust_factor_step_bps: int = Field(
        default=100,
        description="Change in the ceiling trust factor per trust point",
        validation_alias="ODDSVAULT_TRUST_FACTOR_STEP_BPS",
    )
    trust_factor_floor_bps: int = Field(
        default=2500,
        description="Lowest trust factor applied to the ceiling",
        validation_alias="ODDSVAULT_TRUST_FACTOR_FLOOR_BPS",
    )

    # ==========================================================================
    # RECIPIENTS
    # ==========================================================================

    fee_recipient: str = Field(default="protocol-treasury", validation_alias="ODDSVAULT_FEE_RECIPIENT")
    liquidity_recipient: str = Field(default="liquidity-pool", validation_alias="ODDSVAULT_LIQUIDITY_RECIPIENT")
    burn_address: str = Field(default=BURN_ADDRESS, validation_alias="ODDSVAULT_BURN_ADDRESS")


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: EngineSettings | None = None


def get_config() -> EngineSettings:
    """Get the global configuration instance.

    Returns:
        The singleton EngineSettings instance.
    """
    global _config
    if _config is None:
        _config = EngineSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None


# ==========================================================================
# MARKET PARAMETERS
# ==========================================================================


@dataclass(frozen=True)
class MarketParameters:
    """Creation parameters shared by the components of one engine.

    This can be instantiated directly for testing or populated from
    EngineSettings via ``from_settings``.
    """

    min_outcomes: int = 2
    max_outcomes: int = 12
    min_lead_time: timedelta = timedelta(hours=2)
    cancel_buffer: timedelta = timedelta(hours=1)
    dispute_window: timedelta = timedelta(hours=1)
    dispute_long_stop: timedelta = timedelta(days=7)
    dispute_target_bps: int = 1000
    min_dispute_contribution: int = 1
    fee_bps: int = 1000
    creator_fee_share_bps: int = 4000
    liquidity_fee_share_bps: int = 1000
    user_cap_bps: int = 1000
    forfeit_split: tuple[int, int, int] = (8000, 1000, 1000)
    dispute_pool_split: tuple[int, int, int] = (8000, 1000, 1000)
    trust_default: int = 1
    trust_min: int = -100
    trust_max: int = 100
    trust_increment: int = 1
    trust_min_penalty: int = 5
    trust_penalty_bps: int = 2000
    trust_threshold: int = -10
    collateral_mode: str = "fixed"
    fixed_collateral: int = 100
    min_collateral: int = 10
    max_collateral: int = 1000
    bet_limit_multiplier: int = 10
    trust_factor_step_bps: int = 100
    trust_factor_floor_bps: int = 2500
    fee_recipient: str = "protocol-treasury"
    liquidity_recipient: str = "liquidity-pool"
    burn_address: str = BURN_ADDRESS

    @classmethod
    def from_settings(cls, settings: EngineSettings | None = None) -> MarketParameters:
        """Build parameters from settings (the global config if none given)."""
        s = settings or get_config()
        params = cls(
            min_outcomes=s.min_outcomes,
            max_outcomes=s.max_outcomes,
            min_lead_time=timedelta(seconds=s.min_lead_time_seconds),
            cancel_buffer=timedelta(seconds=s.cancel_buffer_seconds),
            dispute_window=timedelta(seconds=s.dispute_window_seconds),
            dispute_long_stop=timedelta(seconds=s.dispute_long_stop_seconds),
            dispute_target_bps=s.dispute_target_bps,
            min_dispute_contribution=s.min_dispute_contribution,
            fee_bps=s.fee_bps,
            creator_fee_share_bps=s.creator_fee_share_bps,
            liquidity_fee_share_bps=s.liquidity_fee_share_bps,
            user_cap_bps=s.user_cap_bps,
            forfeit_split=(s.forfeit_contributors_bps, s.forfeit_protocol_bps, s.forfeit_burn_bps),
            dispute_pool_split=(s.dispute_pool_creator_bps, s.dispute_pool_protocol_bps, s.dispute_pool_burn_bps),
            trust_default=s.trust_default,
            trust_min=s.trust_min,
            trust_max=s.trust_max,
            trust_increment=s.trust_increment,
            trust_min_penalty=s.trust_min_penalty,
            trust_penalty_bps=s.trust_penalty_bps,
            trust_threshold=s.trust_threshold,
            collateral_mode=s.collateral_mode,
            fixed_collateral=s.fixed_collateral,
            min_collateral=s.min_collateral,
            max_collateral=s.max_collateral,
            bet_limit_multiplier=s.bet_limit_multiplier,
            trust_factor_step_bps=s.trust_factor_step_bps,
            trust_factor_floor_bps=s.trust_factor_floor_bps,
            fee_recipient=s.fee_recipient,
            liquidity_recipient=s.liquidity_recipient,
            burn_address=s.burn_address,
        )
        params.validate()
        return params

    def validate(self) -> None:
        """Check internal consistency.

        Raises:
            ConfigException: Listing every offending field.
        """
        invalid: list[str] = []
        for f in fields(self):
            if f.name.endswith("_bps") and not 0 <= getattr(self, f.name) <= BPS_DENOMINATOR:
                invalid.append(f.name)
        if self.creator_fee_share_bps + self.liquidity_fee_share_bps > BPS_DENOMINATOR:
            invalid.append("creator_fee_share_bps")
        for name in ("forfeit_split", "dispute_pool_split"):
            split = getattr(self, name)
            if len(split) != 3 or any(part < 0 for part in split) or sum(split) != BPS_DENOMINATOR:
                invalid.append(name)
        if not 2 <= self.min_outcomes <= self.max_outcomes:
            invalid.append("min_outcomes")
        if not self.trust_min <= self.trust_default <= self.trust_max or self.trust_max <= 0:
            invalid.append("trust_default")
        if self.trust_increment < 0 or self.trust_min_penalty < 0:
            invalid.append("trust_increment")
        if self.collateral_mode not in ("fixed", "reputation"):
            invalid.append("collateral_mode")
        if self.min_collateral <= 0 or self.max_collateral < self.min_collateral or self.fixed_collateral <= 0:
            invalid.append("min_collateral")
        if self.bet_limit_multiplier <= 0:
            invalid.append("bet_limit_multiplier")
        if self.dispute_window <= timedelta(0) or self.min_dispute_contribution <= 0:
            invalid.append("dispute_window")

        if invalid:
            raise ConfigException(f"Invalid market parameters: {', '.join(invalid)}", invalid_fields=invalid)
