"""Domain enumerations for the escrow trade client.

Framework-agnostic: no pydantic, no transport imports.
"""

import enum


class TradeMode(enum.StrEnum):
    """Which side of the trade this client plays.

    Fixed at client construction; selects the branch taken in the
    token exchange phase.
    """

    BUYER = "buyer"
    SELLER = "seller"


class TradePhase(enum.StrEnum):
    """Lifecycle states of a single trade flow.

    Transitions are enforced by TradeLifecycle.
    See domain/state_machine.py for the transition table.
    """

    INITIALIZED = "INITIALIZED"
    REGISTERED = "REGISTERED"
    TOKEN_EXCHANGED = "TOKEN_EXCHANGED"
    DUTIES_FULFILLED = "DUTIES_FULFILLED"
    ABORTED = "ABORTED"


class TokenDirection(enum.StrEnum):
    """Whether this client sent (buyer) or received (seller) the escrow token."""

    SENT = "sent"
    RECEIVED = "received"


class TradeOutcome(enum.StrEnum):
    """Terminal classification produced by the duties phase."""

    RELEASED = "released"
    DISPUTED = "disputed"
    PENDING = "pending"
