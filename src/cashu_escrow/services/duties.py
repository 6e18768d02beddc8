"""Duties strategies for the last phase of a trade.

What each side eventually has to do:
    - Seller: deliver the product or service plus a proof of delivery
      (oracle attestation), then await the buyer's release signature or
      escalate to the coordinator.
    - Buyer: sign the release once the proof is satisfactory, or dispute.

Release signatures, delivery proofs and disputes are not implemented, so
the default strategy reports the trade as PENDING.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cashu_escrow.domain.enums import TradeOutcome
from cashu_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from cashu_escrow.services.escrow_client import TokenExchangedEscrowClient

logger = get_logger(__name__)


class PendingDuties:
    """Default strategy: nothing delivered, nothing signed."""

    async def fulfil(self, phase: TokenExchangedEscrowClient) -> TradeOutcome:
        logger.info(
            "escrow.duties_pending",
            trade_mode=str(phase.trade_mode),
            escrow_id=phase.escrow_registration.escrow_id_hex,
        )
        return TradeOutcome.PENDING


class StaticDuties:
    """Returns a fixed outcome, for dry runs and tests."""

    def __init__(self, outcome: TradeOutcome) -> None:
        self._outcome = outcome

    async def fulfil(self, phase: TokenExchangedEscrowClient) -> TradeOutcome:
        return self._outcome
