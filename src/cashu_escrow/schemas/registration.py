"""Escrow registration schema: the coordinator's reply to a contract."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cashu_escrow.domain.exceptions import ProtocolError
from cashu_escrow.schemas.common import HexStr


class EscrowRegistration(BaseModel):
    """Coordinator-issued record binding a trade to an escrow id and key.

    Wire format:
        {"escrow_id_hex": "...", "coordinator_escrow_pubkey": "...", "escrow_start_time": 1700000000}
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    escrow_id_hex: HexStr
    coordinator_escrow_pubkey: HexStr
    escrow_start_time: int = Field(..., ge=0, description="Unix timestamp, seconds")

    @property
    def escrow_id(self) -> bytes:
        return bytes.fromhex(self.escrow_id_hex)

    def to_message(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_message(cls, raw: str) -> EscrowRegistration:
        """Parse a registration message received over the wire.

        Raises:
            ProtocolError: If the payload is not a well-formed registration.
        """
        try:
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            raise ProtocolError(f"Not an escrow registration message: {exc}") from exc
