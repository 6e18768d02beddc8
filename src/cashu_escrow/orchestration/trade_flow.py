"""Trade flow driver: runs one client through every phase.

    register_trade -> exchange_trade_token -> do_your_trade_duties

The phases themselves never retry. Here each network-bound phase call is
wrapped in a tenacity policy that retries only transport failures and
timeouts, up to ``phase_retry_attempts`` tries. When a phase finally fails
the trade lifecycle is aborted and the error re-raised.

Usage:
    from cashu_escrow.orchestration.trade_flow import run_trade

    result = await run_trade(client, messenger)
    print(result.outcome)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

from structlog.contextvars import bound_contextvars
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cashu_escrow.config import Settings, get_settings
from cashu_escrow.domain.exceptions import (
    EscrowError,
    MessageTimeoutError,
    PhaseConsumedError,
    TransportError,
)
from cashu_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from cashu_escrow.domain.ports import MessagingPort, TradeDuties
    from cashu_escrow.services.escrow_client import (
        DutiesFulfilledEscrowClient,
        InitEscrowClient,
    )

logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (TransportError, MessageTimeoutError)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "trade.phase_retry",
        attempt=retry_state.attempt_number,
        error=str(exc),
    )


async def _run_phase(
    phase_name: str,
    call: Callable[[], Awaitable[T]],
    settings: Settings,
) -> T:
    """Run one phase call under the configured retry policy."""
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, settings.phase_retry_attempts)),
        wait=wait_exponential(
            multiplier=settings.phase_retry_min_wait_seconds,
            max=settings.phase_retry_max_wait_seconds,
        ),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=_log_retry,
        reraise=True,
    )
    with bound_contextvars(phase=phase_name):
        async for attempt in retrying:
            with attempt:
                result = await call()
    return result


async def run_trade(
    client: InitEscrowClient,
    messenger: MessagingPort,
    settings: Settings | None = None,
    duties: TradeDuties | None = None,
) -> DutiesFulfilledEscrowClient:
    """Drive a trade from registration to its duties outcome.

    Args:
        client: The initial phase of the trade.
        messenger: Connected messenger for this side's identity.
        settings: Retry policy source. Defaults to the cached settings.
        duties: Strategy for the duties phase. Defaults to PendingDuties.

    Returns:
        The terminal phase, carrying the TradeOutcome.

    Raises:
        EscrowError: Whatever the failing phase raised, after the trade is aborted.
        PhaseConsumedError: If another caller already drives this trade. The
            trade is left to that caller and not aborted.
    """
    settings = settings or get_settings()
    lifecycle = client.lifecycle

    with bound_contextvars(
        trade_mode=str(client.trade_mode),
        amount=client.escrow_contract.trade_amount_sat,
    ):
        try:
            registered = await _run_phase(
                "register_trade",
                lambda: client.register_trade(messenger),
                settings,
            )
            with bound_contextvars(escrow_id=registered.escrow_registration.escrow_id_hex):
                exchanged = await _run_phase(
                    "exchange_trade_token",
                    lambda: registered.exchange_trade_token(messenger),
                    settings,
                )
                fulfilled = await exchanged.do_your_trade_duties(duties)
        except EscrowError as exc:
            failed_at = lifecycle.status
            if isinstance(exc, PhaseConsumedError):
                # another caller owns the trade
                logger.warning("trade.phase_rejected", failed_at=failed_at, error=exc.message)
                raise
            if not lifecycle.is_finished:
                lifecycle.abort()
            logger.error(
                "trade.aborted",
                failed_at=failed_at,
                code=exc.code,
                error=exc.message,
            )
            raise

        logger.info("trade.finished", outcome=str(fulfilled.outcome))
    return fulfilled
