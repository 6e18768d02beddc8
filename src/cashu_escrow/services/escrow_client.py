"""Escrow Client: the trade protocol as a chain of phase objects.

    InitEscrowClient
        .register_trade(messenger)        -> RegisteredEscrowClient
        .exchange_trade_token(messenger)  -> TokenExchangedEscrowClient
        .do_your_trade_duties(duties)     -> DutiesFulfilledEscrowClient

Each phase only exposes the operation valid in that phase and keeps a
reference to its predecessor. All phases of one trade share a
TradeLifecycle: an operation holds its phase for its whole run and fires
the next event only once it has fully succeeded. A phase that already
advanced, or whose operation is still running, therefore raises
PhaseConsumedError, while a phase whose operation failed stays where it
was and may be called again by the driver.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from cashu_escrow.config import get_settings
from cashu_escrow.domain.enums import TokenDirection, TradeMode, TradePhase
from cashu_escrow.domain.exceptions import (
    InvalidContractError,
    MessageTimeoutError,
    ProtocolError,
    TokenValidationError,
)
from cashu_escrow.domain.state_machine import TradeLifecycle
from cashu_escrow.logging_config import get_logger
from cashu_escrow.schemas.registration import EscrowRegistration
from cashu_escrow.services.duties import PendingDuties

if TYPE_CHECKING:
    from cashu_escrow.domain.enums import TradeOutcome
    from cashu_escrow.domain.ports import MessagingPort, TokenPort, TradeDuties
    from cashu_escrow.schemas.contract import TradeContract
    from cashu_escrow.schemas.token import EscrowToken

logger = get_logger(__name__)


class InitEscrowClient:
    """Initial phase: contract agreed, nothing sent yet."""

    def __init__(
        self,
        ecash_wallet: TokenPort,
        escrow_contract: TradeContract,
        trade_mode: TradeMode,
        message_timeout: float | None = None,
    ) -> None:
        """Create the first phase of a trade.

        Args:
            ecash_wallet: Wallet used to mint or validate the escrow token.
            escrow_contract: The agreed trade terms.
            trade_mode: Which side of the trade this client plays.
            message_timeout: Seconds to wait for any reply. Defaults to config.

        Raises:
            InvalidContractError: If the wallet's trade key is not this side's
                key in the contract.
        """
        expected_key = escrow_contract.ecash_key_for(trade_mode)
        if ecash_wallet.trade_pubkey != expected_key:
            raise InvalidContractError(
                f"Wallet trade key does not match the {trade_mode} ecash key of the contract"
            )
        self._ecash_wallet = ecash_wallet
        self._escrow_contract = escrow_contract
        self._trade_mode = trade_mode
        self._message_timeout = (
            message_timeout
            if message_timeout is not None
            else get_settings().message_timeout_seconds
        )
        self._lifecycle = TradeLifecycle()

    @property
    def ecash_wallet(self) -> TokenPort:
        return self._ecash_wallet

    @property
    def escrow_contract(self) -> TradeContract:
        return self._escrow_contract

    @property
    def trade_mode(self) -> TradeMode:
        return self._trade_mode

    @property
    def message_timeout(self) -> float:
        return self._message_timeout

    @property
    def lifecycle(self) -> TradeLifecycle:
        return self._lifecycle

    async def register_trade(self, messenger: MessagingPort) -> RegisteredEscrowClient:
        """Send the contract to the coordinator and wait for the registration.

        The same for buyer and seller. The listener is armed before the
        contract goes out, so a coordinator replying immediately is not missed.

        Raises:
            PhaseConsumedError: If this trade is already registered or registering.
            InvalidContractError: If the messenger is not this side's identity.
            TransportError: If the contract cannot be sent.
            MessageTimeoutError: If no registration arrives in time.
            ProtocolError: If the reply is not a registration.
        """
        with self._lifecycle.holding(TradePhase.INITIALIZED):
            escrow_registration = await self._register(messenger)
            self._lifecycle.advance("register")

        logger.info(
            "escrow.registered",
            escrow_id=escrow_registration.escrow_id_hex,
            trade_mode=str(self._trade_mode),
            start_time=escrow_registration.escrow_start_time,
        )
        return RegisteredEscrowClient(prev_state=self, escrow_registration=escrow_registration)

    async def _register(self, messenger: MessagingPort) -> EscrowRegistration:
        contract = self._escrow_contract
        if messenger.identity != contract.identity_for(self._trade_mode):
            raise InvalidContractError(
                f"Messenger identity is not the {self._trade_mode} identity of the contract"
            )

        coordinator = contract.npubkey_coordinator
        async with messenger.subscribe(sender=coordinator) as subscription:
            reply = asyncio.create_task(subscription.next_message(self._message_timeout))
            try:
                logger.debug("escrow.sending_contract", coordinator=coordinator[:8])
                await messenger.send(coordinator, contract.to_message())
            except BaseException:
                reply.cancel()
                await asyncio.gather(reply, return_exceptions=True)
                raise
            registration_message = await reply

        return EscrowRegistration.from_message(registration_message)


class RegisteredEscrowClient:
    """Coordinator has registered the trade; the token has not moved yet."""

    def __init__(
        self,
        prev_state: InitEscrowClient,
        escrow_registration: EscrowRegistration,
    ) -> None:
        if not isinstance(prev_state, InitEscrowClient):
            raise TypeError("RegisteredEscrowClient must follow an InitEscrowClient")
        self._prev_state = prev_state
        self._escrow_registration = escrow_registration

    @property
    def prev_state(self) -> InitEscrowClient:
        return self._prev_state

    @property
    def escrow_registration(self) -> EscrowRegistration:
        return self._escrow_registration

    @property
    def escrow_contract(self) -> TradeContract:
        return self._prev_state.escrow_contract

    @property
    def trade_mode(self) -> TradeMode:
        return self._prev_state.trade_mode

    @property
    def lifecycle(self) -> TradeLifecycle:
        return self._prev_state.lifecycle

    async def exchange_trade_token(self, messenger: MessagingPort) -> TokenExchangedEscrowClient:
        """Send (buyer) or receive and validate (seller) the escrow token."""
        with self.lifecycle.holding(TradePhase.REGISTERED):
            if self.trade_mode is TradeMode.BUYER:
                token = await self._send_trade_token(messenger)
                direction = TokenDirection.SENT
            else:
                token = await self._receive_and_validate_trade_token(messenger)
                direction = TokenDirection.RECEIVED
            self.lifecycle.advance("exchange_token")

        return TokenExchangedEscrowClient(prev_state=self, token=token, direction=direction)

    async def _send_trade_token(self, messenger: MessagingPort) -> EscrowToken:
        """Buyer side: mint the escrow token and send it to the seller."""
        contract = self.escrow_contract
        escrow_token = await self._prev_state.ecash_wallet.mint_escrow_token(
            contract, self._escrow_registration
        )
        encoded = escrow_token.encode()

        logger.debug("escrow.sending_token", token=encoded)
        await messenger.send(contract.npubkey_seller, encoded)

        logger.info(
            "escrow.token_sent",
            escrow_id=self._escrow_registration.escrow_id_hex,
            amount=escrow_token.amount,
        )
        return escrow_token

    async def _receive_and_validate_trade_token(self, messenger: MessagingPort) -> EscrowToken:
        """Seller side: wait for the buyer's token and check it is bound to this trade.

        The buyer may send as soon as its own registration lands, so the
        listener also picks up anything sent since the escrow started. That
        replay can include stale tokens from an earlier trade between the
        same two parties, so messages that do not validate are skipped until
        a good token arrives. If none does, the last rejection is raised, or
        MessageTimeoutError if nothing arrived at all.
        """
        contract = self.escrow_contract
        buyer = contract.npubkey_buyer
        timeout = self._prev_state.message_timeout
        wallet = self._prev_state.ecash_wallet
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        rejected: ProtocolError | TokenValidationError | None = None

        async with messenger.subscribe(
            sender=buyer, since=self._escrow_registration.escrow_start_time
        ) as subscription:
            while True:
                try:
                    message = await subscription.next_message(max(0.0, deadline - loop.time()))
                except MessageTimeoutError:
                    if rejected is not None:
                        raise rejected from None
                    raise MessageTimeoutError(timeout=timeout, sender=buyer) from None
                try:
                    escrow_token = await wallet.validate_escrow_token(
                        message, contract, self._escrow_registration
                    )
                except (ProtocolError, TokenValidationError) as exc:
                    logger.warning(
                        "escrow.token_skipped",
                        escrow_id=self._escrow_registration.escrow_id_hex,
                        code=exc.code,
                        error=exc.message,
                    )
                    rejected = exc
                    continue
                break

        logger.info(
            "escrow.token_received",
            escrow_id=self._escrow_registration.escrow_id_hex,
            amount=escrow_token.amount,
        )
        return escrow_token


class TokenExchangedEscrowClient:
    """The escrow token has been sent or received and validated."""

    def __init__(
        self,
        prev_state: RegisteredEscrowClient,
        token: EscrowToken,
        direction: TokenDirection,
    ) -> None:
        if not isinstance(prev_state, RegisteredEscrowClient):
            raise TypeError("TokenExchangedEscrowClient must follow a RegisteredEscrowClient")
        self._prev_state = prev_state
        self._token = token
        self._direction = direction

    @property
    def prev_state(self) -> RegisteredEscrowClient:
        return self._prev_state

    @property
    def token(self) -> EscrowToken:
        return self._token

    @property
    def direction(self) -> TokenDirection:
        return self._direction

    @property
    def escrow_registration(self) -> EscrowRegistration:
        return self._prev_state.escrow_registration

    @property
    def escrow_contract(self) -> TradeContract:
        return self._prev_state.escrow_contract

    @property
    def trade_mode(self) -> TradeMode:
        return self._prev_state.trade_mode

    @property
    def lifecycle(self) -> TradeLifecycle:
        return self._prev_state.lifecycle

    async def do_your_trade_duties(
        self,
        duties: TradeDuties | None = None,
    ) -> DutiesFulfilledEscrowClient:
        """Deliver the product (seller) or release the token (buyer).

        Delegates to a TradeDuties strategy; without one the outcome is PENDING.
        """
        with self.lifecycle.holding(TradePhase.TOKEN_EXCHANGED):
            strategy = duties if duties is not None else PendingDuties()
            outcome = await strategy.fulfil(self)
            self.lifecycle.advance("fulfil_duties")

        logger.info(
            "escrow.duties_done",
            escrow_id=self.escrow_registration.escrow_id_hex,
            outcome=str(outcome),
        )
        return DutiesFulfilledEscrowClient(prev_state=self, outcome=outcome)


class DutiesFulfilledEscrowClient:
    """Terminal phase."""

    def __init__(self, prev_state: TokenExchangedEscrowClient, outcome: TradeOutcome) -> None:
        if not isinstance(prev_state, TokenExchangedEscrowClient):
            raise TypeError("DutiesFulfilledEscrowClient must follow a TokenExchangedEscrowClient")
        self._prev_state = prev_state
        self._outcome = outcome

    @property
    def prev_state(self) -> TokenExchangedEscrowClient:
        return self._prev_state

    @property
    def outcome(self) -> TradeOutcome:
        return self._outcome

    @property
    def token(self) -> EscrowToken:
        return self._prev_state.token

    @property
    def lifecycle(self) -> TradeLifecycle:
        return self._prev_state.lifecycle
