"""Port Protocols.

Defines the capabilities the protocol phases consume. These are Protocols
(structural subtyping) so concrete transports and wallets don't need to
inherit from a base class; they just need to match the shape.

The domain layer imports nothing from any transport or wallet.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from cashu_escrow.domain.enums import TradeOutcome
    from cashu_escrow.schemas.contract import TradeContract
    from cashu_escrow.schemas.registration import EscrowRegistration
    from cashu_escrow.schemas.token import EscrowToken
    from cashu_escrow.services.escrow_client import TokenExchangedEscrowClient


@runtime_checkable
class Subscription(Protocol):
    """An armed listener for direct messages addressed to one identity."""

    async def next_message(self, timeout: float) -> str:
        """Wait for the next matching message.

        Raises:
            MessageTimeoutError: If nothing matching arrives within ``timeout``.
            TransportError: If the underlying channel fails.
        """
        ...


@runtime_checkable
class MessagingPort(Protocol):
    """Encrypted point-to-point messaging over an identity-addressed network.

    Concrete implementations:
        - infrastructure/relay.py  (RelayMessenger, in-memory relay network)
    """

    @property
    def identity(self) -> str:
        """Public key this messenger receives direct messages for."""
        ...

    async def send(self, recipient: str, payload: str) -> None:
        """Best-effort delivery of ``payload`` to ``recipient``.

        Raises:
            TransportError: If the message could not be published.
        """
        ...

    def subscribe(
        self,
        sender: str | None = None,
        since: float | None = None,
    ) -> AbstractAsyncContextManager[Subscription]:
        """Arm a listener on enter, release it on exit.

        Args:
            sender: Only accept messages from this identity. None accepts any sender.
            since: Also deliver stored messages published at or after this
                Unix time. None means live messages only.
        """
        ...

    async def receive(
        self,
        sender: str | None,
        timeout: float,
        since: float | None = None,
    ) -> str:
        """Subscribe, wait for exactly one matching message, release the subscription."""
        ...


@runtime_checkable
class TokenPort(Protocol):
    """Ecash wallet capability used by the token exchange phase.

    Concrete implementations:
        - infrastructure/ecash.py  (SimulatedEcashWallet)
    """

    @property
    def trade_pubkey(self) -> str:
        """This wallet's trade public key, as written into the contract."""
        ...

    async def mint_escrow_token(
        self,
        contract: TradeContract,
        registration: EscrowRegistration,
    ) -> EscrowToken:
        """Produce a token locked to the registration for ``contract.trade_amount_sat``.

        Raises:
            WalletError: If the token cannot be produced.
        """
        ...

    async def validate_escrow_token(
        self,
        raw_token: str,
        contract: TradeContract,
        registration: EscrowRegistration,
    ) -> EscrowToken:
        """Parse and check a received token against contract and registration.

        Raises:
            TokenParseError: If ``raw_token`` is not a token at all.
            TokenValidationError: If the token is not bound to this trade.
        """
        ...


@runtime_checkable
class TradeDuties(Protocol):
    """Strategy for the duties phase.

    Concrete implementations:
        - services/duties.py  (PendingDuties, StaticDuties)
    """

    async def fulfil(self, phase: TokenExchangedEscrowClient) -> TradeOutcome:
        """Carry out this party's duties and classify the result."""
        ...
