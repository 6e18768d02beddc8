"""In-memory relay network implementing the MessagingPort.

Models the parts of a Nostr relay pool the escrow protocol relies on:
    - Messages are direct messages, addressed to one recipient identity.
    - A client publishes to every relay it is connected to.
    - A subscription listens on every connected relay and drops duplicates
      (the same message seen through two relays). By default it only sees
      messages published after it was armed, like a ``limit: 0`` filter;
      with ``since`` the relays first replay stored messages from that time.

Payload encryption is the transport's concern and is not modelled here.

Usage:
    network = RelayNetwork(["wss://relay.one", "wss://relay.two"])
    alice = RelayMessenger(identity=alice_pk, network=network)
    await alice.connect()
    async with alice.subscribe(sender=bob_pk) as sub:
        reply = await sub.next_message(timeout=10)
"""

from __future__ import annotations

import asyncio
import secrets
import time
import uuid
from collections.abc import AsyncIterator, Callable, Iterable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from cashu_escrow.config import get_settings
from cashu_escrow.domain.exceptions import MessageTimeoutError, TransportError
from cashu_escrow.logging_config import get_logger

logger = get_logger(__name__)


def generate_identity() -> str:
    """Return a fresh random 32-byte public key, hex encoded."""
    return secrets.token_hex(32)


@dataclass(frozen=True)
class DirectMessage:
    """A private direct message as stored by a relay."""

    sender: str
    recipient: str
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)


class InMemoryRelay:
    """A single relay: fans each published message out to its listeners.

    ``published`` keeps every message for ``since`` replays and is never
    pruned. A relay lives as long as one simulated run, so that is bounded
    by the run itself.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self.published: list[DirectMessage] = []
        self._listeners: dict[int, Callable[[DirectMessage], None]] = {}
        self._next_listener_id = 0

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def publish(self, message: DirectMessage) -> None:
        self.published.append(message)
        for listener in list(self._listeners.values()):
            listener(message)

    def add_listener(self, callback: Callable[[DirectMessage], None]) -> int:
        listener_id = self._next_listener_id
        self._next_listener_id += 1
        self._listeners[listener_id] = callback
        return listener_id

    def remove_listener(self, listener_id: int) -> None:
        self._listeners.pop(listener_id, None)


class RelayNetwork:
    """Registry of reachable relays, keyed by URL."""

    def __init__(self, urls: Iterable[str] = ()) -> None:
        self._relays: dict[str, InMemoryRelay] = {}
        for url in urls:
            self.add_relay(url)

    def add_relay(self, url: str) -> InMemoryRelay:
        relay = self._relays.get(url)
        if relay is None:
            relay = InMemoryRelay(url)
            self._relays[url] = relay
        return relay

    def get(self, url: str) -> InMemoryRelay | None:
        return self._relays.get(url)

    @property
    def urls(self) -> list[str]:
        return list(self._relays)


class RelaySubscription:
    """Listener armed on one or more relays for a single identity."""

    def __init__(self, identity: str, sender: str | None) -> None:
        self._identity = identity
        self._sender = sender
        self._queue: asyncio.Queue[DirectMessage] = asyncio.Queue()
        self._seen: set[str] = set()

    def deliver(self, message: DirectMessage) -> None:
        if message.recipient != self._identity:
            return
        if self._sender is not None and message.sender != self._sender:
            return
        if message.id in self._seen:
            return
        self._seen.add(message.id)
        self._queue.put_nowait(message)

    async def next_message(self, timeout: float) -> str:
        """Wait for the next matching message and return its content."""
        try:
            async with asyncio.timeout(timeout):
                message = await self._queue.get()
        except TimeoutError:
            raise MessageTimeoutError(timeout=timeout, sender=self._sender) from None
        return message.content


class RelayMessenger:
    """MessagingPort implementation over a RelayNetwork."""

    def __init__(
        self,
        identity: str,
        network: RelayNetwork,
        relays: Sequence[str] | None = None,
    ) -> None:
        """Initialize the messenger.

        Args:
            identity: Public key this messenger sends as and receives for.
            network: The relay network to connect into.
            relays: Relay URLs to use. Defaults to the configured relay list.
        """
        self._identity = identity
        self._network = network
        self._relay_urls = list(relays) if relays is not None else get_settings().relay_list
        self._relays: list[InMemoryRelay] = []
        self._active_subscriptions = 0

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def is_connected(self) -> bool:
        return bool(self._relays)

    @property
    def active_subscriptions(self) -> int:
        return self._active_subscriptions

    async def connect(self) -> None:
        """Connect to every configured relay the network knows about.

        Raises:
            TransportError: If none of the configured relays is reachable.
        """
        relays = []
        for url in self._relay_urls:
            relay = self._network.get(url)
            if relay is None:
                logger.warning("relay.unreachable", url=url, identity=self._identity[:8])
                continue
            relays.append(relay)
        if not relays:
            raise TransportError(f"None of {len(self._relay_urls)} configured relays is reachable")
        self._relays = relays
        logger.debug(
            "relay.connected",
            identity=self._identity[:8],
            relays=[relay.url for relay in relays],
        )

    async def disconnect(self) -> None:
        self._relays = []

    async def send(self, recipient: str, payload: str) -> None:
        if not self._relays:
            raise TransportError("Messenger is not connected to any relay")
        if not recipient:
            raise TransportError("Recipient identity must not be empty")

        message = DirectMessage(sender=self._identity, recipient=recipient, content=payload)
        for relay in self._relays:
            relay.publish(message)
        logger.debug(
            "relay.message_published",
            message_id=message.id,
            sender=self._identity[:8],
            recipient=recipient[:8],
            relays=len(self._relays),
        )

    @asynccontextmanager
    async def subscribe(
        self,
        sender: str | None = None,
        since: float | None = None,
    ) -> AsyncIterator[RelaySubscription]:
        if not self._relays:
            raise TransportError("Messenger is not connected to any relay")

        subscription = RelaySubscription(identity=self._identity, sender=sender)
        handles = [(relay, relay.add_listener(subscription.deliver)) for relay in self._relays]
        if since is not None:
            stored = [
                message
                for relay in self._relays
                for message in relay.published
                if message.created_at >= since
            ]
            for message in sorted(stored, key=lambda m: m.created_at):
                subscription.deliver(message)
        self._active_subscriptions += 1
        try:
            yield subscription
        finally:
            for relay, listener_id in handles:
                relay.remove_listener(listener_id)
            self._active_subscriptions -= 1

    async def receive(
        self,
        sender: str | None,
        timeout: float,
        since: float | None = None,
    ) -> str:
        async with self.subscribe(sender, since=since) as subscription:
            return await subscription.next_message(timeout)
