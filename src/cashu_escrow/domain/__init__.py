"""Domain layer: phase order, error kinds and port shapes, with zero transport dependencies."""

from cashu_escrow.domain.enums import (
    TokenDirection,
    TradeMode,
    TradeOutcome,
    TradePhase,
)
from cashu_escrow.domain.exceptions import (
    EscrowError,
    InsufficientFundsError,
    InvalidContractError,
    MessageTimeoutError,
    PhaseConsumedError,
    ProtocolError,
    TokenParseError,
    TokenValidationError,
    TransportError,
    WalletError,
)
from cashu_escrow.domain.ports import (
    MessagingPort,
    Subscription,
    TokenPort,
    TradeDuties,
)
from cashu_escrow.domain.state_machine import TradeLifecycle

__all__ = [
    "TokenDirection",
    "TradeMode",
    "TradeOutcome",
    "TradePhase",
    "EscrowError",
    "InsufficientFundsError",
    "InvalidContractError",
    "MessageTimeoutError",
    "PhaseConsumedError",
    "ProtocolError",
    "TokenParseError",
    "TokenValidationError",
    "TransportError",
    "WalletError",
    "MessagingPort",
    "Subscription",
    "TokenPort",
    "TradeDuties",
    "TradeLifecycle",
]
