#!/usr/bin/env python3
"""cashu-escrow: End-to-End Simulation.

Runs buyer, seller and coordinator over an in-memory relay network with a
simulated mint. Three scenarios:

    Scenario 1: Happy Path
        - Both traders send the contract, the coordinator registers the trade
        - Buyer mints a 100 sat escrow token and sends it to the seller
        - Seller validates it -> both trades reach the duties phase

    Scenario 2: Rogue Coordinator
        - The coordinator hands buyer and seller different escrow ids
        - Buyer's token is bound to the wrong escrow for the seller
        - Seller rejects the token -> TokenValidationError, trade aborted

    Scenario 3: Silent Buyer
        - Buyer registers but never sends the token
        - Seller times out waiting -> MessageTimeoutError, trade aborted

Usage:
    uv run python simulation.py
    uv run python simulation.py --scenario 2
    uv run python simulation.py --scenario 3 --timeout 1
    APP_LOG_LEVEL=DEBUG LOG_JSON=true uv run python simulation.py
"""

from __future__ import annotations

import argparse
import asyncio
import hashlib
from dataclasses import dataclass

from cashu_escrow.config import get_settings
from cashu_escrow.logging_config import get_logger, setup_logging

setup_logging()
logger = get_logger("simulation")

from cashu_escrow.domain.enums import TradeMode  # noqa: E402
from cashu_escrow.domain.exceptions import EscrowError  # noqa: E402
from cashu_escrow.infrastructure.ecash import SimulatedEcashWallet, SimulatedMint  # noqa: E402
from cashu_escrow.infrastructure.relay import (  # noqa: E402
    RelayMessenger,
    RelayNetwork,
    generate_identity,
)
from cashu_escrow.orchestration.trade_flow import run_trade  # noqa: E402
from cashu_escrow.schemas.contract import TradeContract  # noqa: E402
from cashu_escrow.services.coordinator import (  # noqa: E402
    SimulatedCoordinator,
    send_escrow_registration,
)
from cashu_escrow.services.escrow_client import InitEscrowClient  # noqa: E402

TRADE_AMOUNT_SAT = 100


# ---------------------------------------------------------------------------
# World setup
# ---------------------------------------------------------------------------
@dataclass
class Party:
    """One participant: messaging identity plus (for traders) a wallet."""

    messenger: RelayMessenger
    wallet: SimulatedEcashWallet | None = None

    @property
    def identity(self) -> str:
        return self.messenger.identity


@dataclass
class World:
    network: RelayNetwork
    mint: SimulatedMint
    buyer: Party
    seller: Party
    coordinator: Party
    contract: TradeContract


async def build_world(buyer_balance: int = 1000) -> World:
    """Create relays, a mint, three connected parties and their contract."""
    settings = get_settings()
    network = RelayNetwork(settings.relay_list)
    mint = SimulatedMint(settings.mint_url)

    parties = []
    for wallet in (SimulatedEcashWallet(mint, balance=buyer_balance), SimulatedEcashWallet(mint), None):
        messenger = RelayMessenger(identity=generate_identity(), network=network)
        await messenger.connect()
        parties.append(Party(messenger=messenger, wallet=wallet))
    buyer, seller, coordinator = parties

    contract = TradeContract(
        trade_description="Used road bike, 56cm frame",
        trade_amount_sat=TRADE_AMOUNT_SAT,
        npubkey_seller=seller.identity,
        npubkey_buyer=buyer.identity,
        npubkey_coordinator=coordinator.identity,
        time_limit=settings.default_time_limit_seconds,
        seller_ecash_public_key=seller.wallet.trade_pubkey,
        buyer_ecash_public_key=buyer.wallet.trade_pubkey,
    )
    logger.info(
        "🤝 Contract agreed",
        amount=contract.trade_amount_sat,
        buyer=buyer.identity[:8],
        seller=seller.identity[:8],
        coordinator=coordinator.identity[:8],
    )
    return World(network, mint, buyer, seller, coordinator, contract)


def client_for(world: World, party: Party, mode: TradeMode, timeout: float) -> InitEscrowClient:
    return InitEscrowClient(
        ecash_wallet=party.wallet,
        escrow_contract=world.contract,
        trade_mode=mode,
        message_timeout=timeout,
    )


async def run_side(label: str, client: InitEscrowClient, party: Party) -> str:
    """Run one trader to the end and return a printable result."""
    try:
        result = await run_trade(client, party.messenger)
    except EscrowError as exc:
        return f"{label}: ABORTED at {client.lifecycle.status} ({exc.code}: {exc.message})"
    return f"{label}: {result.lifecycle.status}, outcome={result.outcome}, token={result.token.amount} sat"


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


def print_results(world: World, *lines: str) -> None:
    for line in lines:
        icon = "❌" if "ABORTED" in line else "✅"
        print(f"  {icon} {line}")
    print(f"  💰 Buyer wallet balance: {world.buyer.wallet.balance} sat")


# ===========================================================================
# Scenarios
# ===========================================================================
async def scenario_1_happy_path(timeout: float) -> None:
    banner("SCENARIO 1: Happy Path")
    world = await build_world()

    coordinator = SimulatedCoordinator(world.coordinator.messenger)
    registration_task = await coordinator.start(timeout=timeout)

    section("Trading")
    seller_line, buyer_line = await asyncio.gather(
        run_side("SELLER", client_for(world, world.seller, TradeMode.SELLER, timeout), world.seller),
        run_side("BUYER", client_for(world, world.buyer, TradeMode.BUYER, timeout), world.buyer),
    )
    registration = await registration_task

    section("Result")
    print(f"  🛡️  Escrow id: {registration.escrow_id_hex[:16]}...")
    print_results(world, buyer_line, seller_line)


async def _rogue_coordinator(world: World, timeout: float) -> None:
    """Collect both contracts, then give each trader a different escrow id."""
    messenger = world.coordinator.messenger
    async with messenger.subscribe() as subscription:
        for _ in range(2):
            await subscription.next_message(timeout)

    digest = hashlib.sha256(world.contract.to_message().encode("utf-8")).digest()
    escrow_key = "02" + digest.hex()
    await send_escrow_registration(messenger, [world.buyer.identity], digest, escrow_key)
    await send_escrow_registration(
        messenger, [world.seller.identity], hashlib.sha256(digest).digest(), escrow_key
    )
    logger.warning("😈 COORDINATOR: sent mismatched registrations")


async def scenario_2_rogue_coordinator(timeout: float) -> None:
    banner("SCENARIO 2: Rogue Coordinator (token bound to another escrow)")
    world = await build_world()

    rogue = asyncio.create_task(_rogue_coordinator(world, timeout))
    await asyncio.sleep(0)  # let the rogue arm its listener

    section("Trading")
    seller_line, buyer_line = await asyncio.gather(
        run_side("SELLER", client_for(world, world.seller, TradeMode.SELLER, timeout), world.seller),
        run_side("BUYER", client_for(world, world.buyer, TradeMode.BUYER, timeout), world.buyer),
    )
    await rogue

    section("Result")
    print_results(world, buyer_line, seller_line)


async def scenario_3_silent_buyer(timeout: float) -> None:
    banner("SCENARIO 3: Silent Buyer (seller times out)")
    world = await build_world()

    coordinator = SimulatedCoordinator(world.coordinator.messenger)
    registration_task = await coordinator.start(timeout=timeout)

    section("Trading")
    buyer = client_for(world, world.buyer, TradeMode.BUYER, timeout)
    seller = client_for(world, world.seller, TradeMode.SELLER, timeout)

    # The buyer registers but then walks away before sending the token.
    seller_line, _ = await asyncio.gather(
        run_side("SELLER", seller, world.seller),
        buyer.register_trade(world.buyer.messenger),
    )
    await registration_task
    logger.info("🔵 BUYER: registered, never sent the token")

    section("Result")
    print_results(world, "BUYER: REGISTERED, walked away", seller_line)


# ===========================================================================
# Main
# ===========================================================================
SCENARIOS = {
    1: scenario_1_happy_path,
    2: scenario_2_rogue_coordinator,
    3: scenario_3_silent_buyer,
}


async def run_all(timeout: float) -> None:
    """Run all scenarios sequentially."""
    print("\n" + "🚀" * 35)
    print("  CASHU ESCROW SIMULATION")
    print(f"  Relays: {len(get_settings().relay_list)} (in-memory)")
    print(f"  Message timeout: {timeout}s")
    print("🚀" * 35 + "\n")

    for scenario in SCENARIOS.values():
        await scenario(timeout)

    print("\n" + "=" * 70)
    print("  ✅ ALL SCENARIOS COMPLETED")
    print("=" * 70 + "\n")


async def run_scenario(num: int, timeout: float) -> None:
    """Run a specific scenario."""
    if num not in SCENARIOS:
        print(f"Unknown scenario {num}. Available: {', '.join(map(str, SCENARIOS))}")
        return
    await SCENARIOS[num](timeout)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="cashu-escrow simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1, 2, or 3). Default: run all.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=2.0,
        help="Seconds each party waits for a message.",
    )
    args = parser.parse_args()

    if args.scenario == 0:
        asyncio.run(run_all(timeout=args.timeout))
    else:
        asyncio.run(run_scenario(args.scenario, timeout=args.timeout))
