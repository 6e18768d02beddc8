"""Simulated transport and wallet adapters for the protocol ports."""

from cashu_escrow.infrastructure.ecash import (
    SimulatedEcashWallet,
    SimulatedMint,
    generate_trade_pubkey,
)
from cashu_escrow.infrastructure.relay import (
    DirectMessage,
    InMemoryRelay,
    RelayMessenger,
    RelayNetwork,
    generate_identity,
)

__all__ = [
    "DirectMessage",
    "InMemoryRelay",
    "RelayMessenger",
    "RelayNetwork",
    "SimulatedEcashWallet",
    "SimulatedMint",
    "generate_identity",
    "generate_trade_pubkey",
]
