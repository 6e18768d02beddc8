"""Unit tests for the in-memory relay network and RelayMessenger."""

from __future__ import annotations

import asyncio

import pytest

from cashu_escrow.domain.exceptions import MessageTimeoutError, TransportError
from cashu_escrow.domain.ports import MessagingPort
from cashu_escrow.infrastructure.relay import RelayMessenger, RelayNetwork

BUYER_ID = "b1" * 32
SELLER_ID = "5e" * 32
COORDINATOR_ID = "c0" * 32


async def _messenger(identity: str, network: RelayNetwork, relays: list[str]) -> RelayMessenger:
    messenger = RelayMessenger(identity=identity, network=network, relays=relays)
    await messenger.connect()
    return messenger


class TestDelivery:
    def test_satisfies_messaging_port(self, network: RelayNetwork) -> None:
        messenger = RelayMessenger(identity=BUYER_ID, network=network, relays=[])
        assert isinstance(messenger, MessagingPort)

    @pytest.mark.asyncio
    async def test_direct_message_delivered(self, buyer_messenger, seller_messenger) -> None:
        async with seller_messenger.subscribe(sender=BUYER_ID) as subscription:
            await buyer_messenger.send(SELLER_ID, "hello")
            assert await subscription.next_message(timeout=1) == "hello"

    @pytest.mark.asyncio
    async def test_other_recipients_ignored(
        self, buyer_messenger, seller_messenger, coordinator_messenger
    ) -> None:
        async with seller_messenger.subscribe() as subscription:
            await buyer_messenger.send(COORDINATOR_ID, "not for the seller")
            with pytest.raises(MessageTimeoutError):
                await subscription.next_message(timeout=0.05)

    @pytest.mark.asyncio
    async def test_sender_filter(
        self, buyer_messenger, seller_messenger, coordinator_messenger
    ) -> None:
        async with seller_messenger.subscribe(sender=BUYER_ID) as subscription:
            await coordinator_messenger.send(SELLER_ID, "from coordinator")
            await buyer_messenger.send(SELLER_ID, "from buyer")
            assert await subscription.next_message(timeout=1) == "from buyer"

    @pytest.mark.asyncio
    async def test_messages_before_subscribe_not_delivered(
        self, buyer_messenger, seller_messenger
    ) -> None:
        await buyer_messenger.send(SELLER_ID, "too early")
        with pytest.raises(MessageTimeoutError):
            await seller_messenger.receive(BUYER_ID, timeout=0.05)

    @pytest.mark.asyncio
    async def test_since_replays_stored_messages(self, buyer_messenger, seller_messenger) -> None:
        await buyer_messenger.send(SELLER_ID, "stored")
        message = await seller_messenger.receive(BUYER_ID, timeout=1, since=0)
        assert message == "stored"


class TestMultipleRelays:
    @pytest.mark.asyncio
    async def test_duplicates_across_relays_dropped(self) -> None:
        network = RelayNetwork(["wss://a", "wss://b"])
        buyer = await _messenger(BUYER_ID, network, ["wss://a", "wss://b"])
        seller = await _messenger(SELLER_ID, network, ["wss://a", "wss://b"])

        async with seller.subscribe(sender=BUYER_ID) as subscription:
            await buyer.send(SELLER_ID, "once")
            assert await subscription.next_message(timeout=1) == "once"
            with pytest.raises(MessageTimeoutError):
                await subscription.next_message(timeout=0.05)

    @pytest.mark.asyncio
    async def test_one_shared_relay_is_enough(self) -> None:
        network = RelayNetwork(["wss://a", "wss://b", "wss://c"])
        buyer = await _messenger(BUYER_ID, network, ["wss://a", "wss://b"])
        seller = await _messenger(SELLER_ID, network, ["wss://b", "wss://c"])

        async with seller.subscribe() as subscription:
            await buyer.send(SELLER_ID, "via b")
            assert await subscription.next_message(timeout=1) == "via b"

    @pytest.mark.asyncio
    async def test_disjoint_relays_cannot_talk(self) -> None:
        network = RelayNetwork(["wss://a", "wss://b"])
        buyer = await _messenger(BUYER_ID, network, ["wss://a"])
        seller = await _messenger(SELLER_ID, network, ["wss://b"])

        async with seller.subscribe() as subscription:
            await buyer.send(SELLER_ID, "lost")
            with pytest.raises(MessageTimeoutError):
                await subscription.next_message(timeout=0.05)

    @pytest.mark.asyncio
    async def test_unknown_relays_skipped(self) -> None:
        network = RelayNetwork(["wss://a"])
        messenger = await _messenger(BUYER_ID, network, ["wss://gone", "wss://a"])
        assert messenger.is_connected


class TestTimeoutsAndCleanup:
    @pytest.mark.asyncio
    async def test_timeout_releases_subscription(self, seller_messenger, relay) -> None:
        with pytest.raises(MessageTimeoutError) as exc_info:
            await seller_messenger.receive(BUYER_ID, timeout=0.05)

        assert exc_info.value.sender == BUYER_ID
        assert seller_messenger.active_subscriptions == 0
        assert relay.listener_count == 0

    @pytest.mark.asyncio
    async def test_fresh_receive_after_timeout(self, buyer_messenger, seller_messenger) -> None:
        with pytest.raises(MessageTimeoutError):
            await seller_messenger.receive(BUYER_ID, timeout=0.05)

        waiter = asyncio.create_task(seller_messenger.receive(BUYER_ID, timeout=1))
        await asyncio.sleep(0)
        await buyer_messenger.send(SELLER_ID, "second try")
        assert await waiter == "second try"
        assert seller_messenger.active_subscriptions == 0

    @pytest.mark.asyncio
    async def test_subscription_released_on_error(self, seller_messenger) -> None:
        with pytest.raises(RuntimeError):
            async with seller_messenger.subscribe():
                assert seller_messenger.active_subscriptions == 1
                raise RuntimeError("boom")
        assert seller_messenger.active_subscriptions == 0


class TestTransportErrors:
    @pytest.mark.asyncio
    async def test_connect_without_reachable_relay(self, network: RelayNetwork) -> None:
        messenger = RelayMessenger(identity=BUYER_ID, network=network, relays=["wss://gone"])
        with pytest.raises(TransportError):
            await messenger.connect()

    @pytest.mark.asyncio
    async def test_send_when_disconnected(self, buyer_messenger) -> None:
        await buyer_messenger.disconnect()
        with pytest.raises(TransportError):
            await buyer_messenger.send(SELLER_ID, "hello")

    @pytest.mark.asyncio
    async def test_subscribe_when_disconnected(self, network: RelayNetwork) -> None:
        messenger = RelayMessenger(identity=BUYER_ID, network=network, relays=[])
        with pytest.raises(TransportError):
            await messenger.receive(None, timeout=0.05)

    @pytest.mark.asyncio
    async def test_empty_recipient(self, buyer_messenger) -> None:
        with pytest.raises(TransportError):
            await buyer_messenger.send("", "hello")
