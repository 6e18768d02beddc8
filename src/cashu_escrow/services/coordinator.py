"""Coordinator side of trade registration.

``send_escrow_registration`` is the coordinator's half of the wire
contract: one registration payload, sent separately to buyer and seller.
``SimulatedCoordinator`` wraps it with just enough matching logic to run
trades against the in-memory relay network.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING

from cashu_escrow.config import get_settings
from cashu_escrow.domain.exceptions import ProtocolError
from cashu_escrow.infrastructure.ecash import generate_trade_pubkey
from cashu_escrow.logging_config import get_logger
from cashu_escrow.schemas.contract import TradeContract
from cashu_escrow.schemas.registration import EscrowRegistration

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cashu_escrow.domain.ports import MessagingPort, Subscription

logger = get_logger(__name__)


async def send_escrow_registration(
    messenger: MessagingPort,
    receivers: Sequence[str],
    escrow_id: bytes,
    coordinator_escrow_pubkey: str,
    escrow_start_time: int | None = None,
) -> EscrowRegistration:
    """Send the same registration to each receiver and return it."""
    registration = EscrowRegistration(
        escrow_id_hex=escrow_id.hex(),
        coordinator_escrow_pubkey=coordinator_escrow_pubkey,
        escrow_start_time=escrow_start_time if escrow_start_time is not None else int(time.time()),
    )
    payload = registration.to_message()
    for receiver in receivers:
        await messenger.send(receiver, payload)

    logger.info(
        "coordinator.registration_sent",
        escrow_id=registration.escrow_id_hex,
        receivers=[r[:8] for r in receivers],
    )
    return registration


class SimulatedCoordinator:
    """Registers one trade: waits for both contracts, then replies to both sides."""

    def __init__(self, messenger: MessagingPort, escrow_pubkey: str | None = None) -> None:
        self._messenger = messenger
        self._escrow_pubkey = escrow_pubkey or generate_trade_pubkey()

    @property
    def escrow_pubkey(self) -> str:
        return self._escrow_pubkey

    async def start(self, timeout: float | None = None) -> asyncio.Task[EscrowRegistration]:
        """Arm the listener now and serve one registration in the background.

        The returned task resolves to the registration sent, or raises
        MessageTimeoutError / ProtocolError.
        """
        timeout = timeout if timeout is not None else get_settings().message_timeout_seconds
        stack = AsyncExitStack()
        subscription = await stack.enter_async_context(self._messenger.subscribe())
        return asyncio.create_task(self._serve(subscription, stack, timeout))

    async def _serve(
        self,
        subscription: Subscription,
        stack: AsyncExitStack,
        timeout: float,
    ) -> EscrowRegistration:
        async with stack:
            first = TradeContract.from_message(await subscription.next_message(timeout))
            logger.debug("coordinator.contract_received", amount=first.trade_amount_sat)
            second = TradeContract.from_message(await subscription.next_message(timeout))

        if first != second:
            raise ProtocolError("Buyer and seller submitted different contracts")
        if first.npubkey_coordinator != self._messenger.identity:
            raise ProtocolError("Contract names a different coordinator")

        escrow_id = hashlib.sha256(first.to_message().encode("utf-8")).digest()
        return await send_escrow_registration(
            self._messenger,
            receivers=(first.npubkey_buyer, first.npubkey_seller),
            escrow_id=escrow_id,
            coordinator_escrow_pubkey=self._escrow_pubkey,
        )
