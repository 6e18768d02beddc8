"""Pydantic wire schemas."""

from cashu_escrow.schemas.contract import TradeContract
from cashu_escrow.schemas.registration import EscrowRegistration
from cashu_escrow.schemas.token import (
    EscrowSpendingCondition,
    EscrowToken,
    MintProofs,
    Proof,
)

__all__ = [
    "EscrowRegistration",
    "EscrowSpendingCondition",
    "EscrowToken",
    "MintProofs",
    "Proof",
    "TradeContract",
]
