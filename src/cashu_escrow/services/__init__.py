"""Application services: the trade phase chain and its collaborators."""

from cashu_escrow.services.coordinator import SimulatedCoordinator, send_escrow_registration
from cashu_escrow.services.duties import PendingDuties, StaticDuties
from cashu_escrow.services.escrow_client import (
    DutiesFulfilledEscrowClient,
    InitEscrowClient,
    RegisteredEscrowClient,
    TokenExchangedEscrowClient,
)

__all__ = [
    "DutiesFulfilledEscrowClient",
    "InitEscrowClient",
    "PendingDuties",
    "RegisteredEscrowClient",
    "SimulatedCoordinator",
    "StaticDuties",
    "TokenExchangedEscrowClient",
    "send_escrow_registration",
]
