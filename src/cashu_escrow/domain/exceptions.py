"""Domain exceptions for the escrow trade client.

These exceptions are framework-agnostic. Every failed phase transition
raises one of them; the trade does not advance and nothing is retried here.
Retry, where wanted, is the driver's business (orchestration/trade_flow.py).
"""


class EscrowError(Exception):
    """Base exception for all escrow trade errors."""

    def __init__(self, message: str, code: str = "ESCROW_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Contract Errors ---


class InvalidContractError(EscrowError):
    """Raised when trade terms are malformed or contradictory.

    Example: buyer and seller share the same identity key.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="INVALID_CONTRACT")


# --- Messaging Errors ---


class TransportError(EscrowError):
    """Raised when sending or receiving fails at the messaging layer."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="TRANSPORT_ERROR")


class MessageTimeoutError(EscrowError):
    """Raised when no matching message arrives within the bound.

    This is an expected outcome, not a crash: callers may retry the
    whole phase call.
    """

    def __init__(self, timeout: float, sender: str | None = None) -> None:
        source = sender or "any sender"
        super().__init__(
            message=f"No message from {source} within {timeout}s",
            code="MESSAGE_TIMEOUT",
        )
        self.timeout = timeout
        self.sender = sender


class ProtocolError(EscrowError):
    """Raised when a delivered message is not the expected protocol payload."""

    def __init__(self, message: str, code: str = "PROTOCOL_ERROR") -> None:
        super().__init__(message=message, code=code)


class TokenParseError(ProtocolError):
    """Raised when a received token payload cannot be decoded at all."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="TOKEN_PARSE_ERROR")


# --- Wallet Errors ---


class WalletError(EscrowError):
    """Raised when the ecash wallet cannot mint the escrow token."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="WALLET_ERROR")


class InsufficientFundsError(WalletError):
    """Raised when the wallet balance does not cover the trade amount."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            message=f"Insufficient funds: required {required} sat, available {available} sat",
        )
        self.code = "INSUFFICIENT_FUNDS"
        self.required = required
        self.available = available


class TokenValidationError(EscrowError):
    """Raised when a parsed token is not bound to the agreed contract and registration."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message=message, code="TOKEN_VALIDATION_ERROR")
        self.details = details or {}


# --- Phase Errors ---


class PhaseConsumedError(EscrowError):
    """Raised when an operation is invoked on a phase that already advanced or is still running."""

    def __init__(self, phase: str, current: str, running: bool = False) -> None:
        if running:
            message = f"Phase {phase} is already running"
        else:
            message = f"Phase {phase} already consumed; trade is {current}"
        super().__init__(
            message=message,
            code="PHASE_CONSUMED",
        )
        self.phase = phase
        self.current = current
        self.running = running
