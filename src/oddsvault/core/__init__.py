"""oddsvault core - shared primitives for the settlement engine."""

from .config import (
    BPS_DENOMINATOR,
    BURN_ADDRESS,
    EngineSettings,
    MarketParameters,
    clear_config_cache,
    get_config,
)
from .exceptions import (
    ArithmeticHazard,
    CapacityExceeded,
    ConfigException,
    InvalidStateError,
    NotFoundError,
    OddsVaultException,
    ReentrancyError,
    TransferFailed,
    UnauthorizedError,
    ValidationException,
)
from .logging import (
    OperationLogger,
    configure_logging,
    correlation_context,
    operation_logger,
)
from .token import InMemoryToken, TokenLedger, pull, send
from .transactions import Transactional, atomic, transactional

__all__ = [
    # Config
    "BPS_DENOMINATOR",
    "BURN_ADDRESS",
    "EngineSettings",
    "MarketParameters",
    "clear_config_cache",
    "get_config",
    # Exceptions
    "ArithmeticHazard",
    "CapacityExceeded",
    "ConfigException",
    "InvalidStateError",
    "NotFoundError",
    "OddsVaultException",
    "ReentrancyError",
    "TransferFailed",
    "UnauthorizedError",
    "ValidationException",
    # Logging
    "OperationLogger",
    "configure_logging",
    "correlation_context",
    "operation_logger",
    # Token collaborator
    "InMemoryToken",
    "TokenLedger",
    "pull",
    "send",
    # Transactions
    "Transactional",
    "atomic",
    "transactional",
]
