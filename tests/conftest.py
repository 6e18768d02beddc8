"""Shared test fixtures for the cashu-escrow test suite.

Provides:
    - Deterministic identities, wallets, contract and registration
    - An in-memory relay network with connected messengers per party
    - A "fast coordinator" that answers synchronously on delivery
    - Async test support via pytest-asyncio
"""

from __future__ import annotations

from collections.abc import Callable

import pytest
import pytest_asyncio

from cashu_escrow.infrastructure.ecash import SimulatedEcashWallet, SimulatedMint
from cashu_escrow.infrastructure.relay import (
    DirectMessage,
    InMemoryRelay,
    RelayMessenger,
    RelayNetwork,
)
from cashu_escrow.schemas.contract import TradeContract
from cashu_escrow.schemas.registration import EscrowRegistration

BUYER_ID = "b1" * 32
SELLER_ID = "5e" * 32
COORDINATOR_ID = "c0" * 32
RELAY_URL = "wss://relay.test"
MINT_URL = "http://mint.test"

# ---------------------------------------------------------------------------
# Ecash Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mint() -> SimulatedMint:
    return SimulatedMint(MINT_URL, keyset_secret=b"k" * 32)


@pytest.fixture
def buyer_wallet(mint: SimulatedMint) -> SimulatedEcashWallet:
    return SimulatedEcashWallet(mint, trade_pubkey="02" + "bb" * 32, balance=1000)


@pytest.fixture
def seller_wallet(mint: SimulatedMint) -> SimulatedEcashWallet:
    return SimulatedEcashWallet(mint, trade_pubkey="03" + "55" * 32)


# ---------------------------------------------------------------------------
# Domain Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_contract_data(
    buyer_wallet: SimulatedEcashWallet,
    seller_wallet: SimulatedEcashWallet,
) -> dict:
    """Return a valid contract creation data dict."""
    return {
        "trade_description": "Used road bike, 56cm frame",
        "trade_amount_sat": 100,
        "npubkey_seller": SELLER_ID,
        "npubkey_buyer": BUYER_ID,
        "npubkey_coordinator": COORDINATOR_ID,
        "time_limit": 3600,
        "seller_ecash_public_key": seller_wallet.trade_pubkey,
        "buyer_ecash_public_key": buyer_wallet.trade_pubkey,
    }


@pytest.fixture
def contract(sample_contract_data: dict) -> TradeContract:
    return TradeContract(**sample_contract_data)


@pytest.fixture
def registration() -> EscrowRegistration:
    return EscrowRegistration(
        escrow_id_hex="abc123",
        coordinator_escrow_pubkey="02" + "cc" * 32,
        escrow_start_time=1_700_000_000,
    )


# ---------------------------------------------------------------------------
# Relay Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def network() -> RelayNetwork:
    return RelayNetwork([RELAY_URL])


@pytest.fixture
def relay(network: RelayNetwork) -> InMemoryRelay:
    return network.get(RELAY_URL)


async def _connected(identity: str, network: RelayNetwork) -> RelayMessenger:
    messenger = RelayMessenger(identity=identity, network=network, relays=[RELAY_URL])
    await messenger.connect()
    return messenger


@pytest_asyncio.fixture
async def buyer_messenger(network: RelayNetwork) -> RelayMessenger:
    return await _connected(BUYER_ID, network)


@pytest_asyncio.fixture
async def seller_messenger(network: RelayNetwork) -> RelayMessenger:
    return await _connected(SELLER_ID, network)


@pytest_asyncio.fixture
async def coordinator_messenger(network: RelayNetwork) -> RelayMessenger:
    return await _connected(COORDINATOR_ID, network)


@pytest.fixture
def fast_coordinator(relay: InMemoryRelay) -> Callable[[str], None]:
    """Install a coordinator that replies inside the sender's publish call.

    Call the returned function with the reply payload. Any message addressed
    to the coordinator is answered before ``send`` even returns, which is the
    fastest a real coordinator could ever be.
    """

    def install(reply_payload: str) -> None:
        def on_message(message: DirectMessage) -> None:
            if message.recipient != COORDINATOR_ID:
                return
            relay.publish(
                DirectMessage(
                    sender=COORDINATOR_ID,
                    recipient=message.sender,
                    content=reply_payload,
                )
            )

        relay.add_listener(on_message)

    return install
