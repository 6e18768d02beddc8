"""Trade Lifecycle Guard.

Uses python-statemachine to enforce the linear phase order of one trade
flow. Every phase object of a trade shares a single TradeLifecycle; a phase
may run its operation only while the lifecycle sits in that phase's state,
and a successful operation fires the event that moves the lifecycle on.
That is what makes a used phase unusable: Python cannot move objects out of
scope, so the shared guard does it instead.

Transition table:
    INITIALIZED      -> REGISTERED        (register)
    REGISTERED       -> TOKEN_EXCHANGED   (exchange_token)
    TOKEN_EXCHANGED  -> DUTIES_FULFILLED  (fulfil_duties)
    INITIALIZED      -> ABORTED           (abort)
    REGISTERED       -> ABORTED           (abort)
    TOKEN_EXCHANGED  -> ABORTED           (abort)
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from cashu_escrow.domain.exceptions import PhaseConsumedError


class TradeLifecycle(StateMachine):
    """State machine that guards the phase order of a single trade.

    Usage:
        lifecycle = TradeLifecycle()
        lifecycle.register()   # transitions to REGISTERED
        lifecycle.status       # "REGISTERED"

    Phase operations go through ``holding`` and ``advance``:
        with lifecycle.holding(TradePhase.INITIALIZED):
            ...                          # network I/O
            lifecycle.advance("register")
    """

    # --- States ---
    INITIALIZED = State("INITIALIZED", initial=True)
    REGISTERED = State("REGISTERED")
    TOKEN_EXCHANGED = State("TOKEN_EXCHANGED")
    DUTIES_FULFILLED = State("DUTIES_FULFILLED", final=True)
    ABORTED = State("ABORTED", final=True)

    # --- Events / Transitions ---
    register = INITIALIZED.to(REGISTERED)
    exchange_token = REGISTERED.to(TOKEN_EXCHANGED)
    fulfil_duties = TOKEN_EXCHANGED.to(DUTIES_FULFILLED)

    abort = (
        INITIALIZED.to(ABORTED)
        | REGISTERED.to(ABORTED)
        | TOKEN_EXCHANGED.to(ABORTED)
    )

    def __init__(self) -> None:
        self._in_flight: str | None = None
        super().__init__()

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches TradePhase)."""
        return str(self.current_state_value)

    @property
    def is_finished(self) -> bool:
        return self.states_map[self.current_state_value].final

    def get_allowed_events(self) -> list[str]:
        """Return a list of event names that can fire from the current state."""
        return [event.name for event in self.allowed_events]

    def ensure_at(self, phase: str) -> None:
        """Raise PhaseConsumedError unless the trade sits at ``phase`` and no operation holds it."""
        if self.status != phase:
            raise PhaseConsumedError(phase=phase, current=self.status)
        if self._in_flight is not None:
            raise PhaseConsumedError(phase=phase, current=self.status, running=True)

    @contextmanager
    def holding(self, phase: str) -> Iterator[None]:
        """Hold ``phase`` for one operation so a concurrent caller is rejected."""
        self.ensure_at(phase)
        self._in_flight = phase
        try:
            yield
        finally:
            self._in_flight = None

    def advance(self, event_name: str) -> None:
        """Fire ``event_name``; raise PhaseConsumedError if the trade already moved on."""
        phase = self._in_flight or self.status
        try:
            self.send(event_name)
        except TransitionNotAllowed as err:
            raise PhaseConsumedError(phase=phase, current=self.status) from err
