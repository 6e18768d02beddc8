"""Trade contract schema.

The contract is the agreed description of one trade. Its JSON form is sent
verbatim to the coordinator, so field declaration order is the wire order
and must not change.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from cashu_escrow.domain.enums import TradeMode
from cashu_escrow.domain.exceptions import InvalidContractError, ProtocolError
from cashu_escrow.schemas.common import HexStr


class TradeContract(BaseModel):
    """Immutable trade terms shared by buyer, seller and coordinator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    trade_description: str = Field(default="", max_length=5000)
    trade_amount_sat: int = Field(..., gt=0, description="Escrowed amount in sat")
    npubkey_seller: HexStr
    npubkey_buyer: HexStr
    npubkey_coordinator: HexStr
    time_limit: int = Field(
        default=86400,
        gt=0,
        description="Seconds after registration before the buyer may reclaim the token",
    )
    seller_ecash_public_key: HexStr
    buyer_ecash_public_key: HexStr

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
            raise InvalidContractError(f"Malformed trade contract fields: {fields}") from exc

    @model_validator(mode="after")
    def _check_distinct_parties(self) -> TradeContract:
        identities = {self.npubkey_buyer, self.npubkey_seller, self.npubkey_coordinator}
        if len(identities) != 3:
            raise InvalidContractError(
                "Buyer, seller and coordinator identities must be pairwise distinct"
            )
        if self.buyer_ecash_public_key == self.seller_ecash_public_key:
            raise InvalidContractError("Buyer and seller ecash keys must differ")
        return self

    def identity_for(self, mode: TradeMode) -> str:
        """Messaging identity of the given side of the trade."""
        if mode is TradeMode.BUYER:
            return self.npubkey_buyer
        return self.npubkey_seller

    def ecash_key_for(self, mode: TradeMode) -> str:
        """Ecash trade key of the given side of the trade."""
        if mode is TradeMode.BUYER:
            return self.buyer_ecash_public_key
        return self.seller_ecash_public_key

    def counterparty_of(self, mode: TradeMode) -> str:
        """Messaging identity of the other side of the trade."""
        if mode is TradeMode.BUYER:
            return self.npubkey_seller
        return self.npubkey_buyer

    def to_message(self) -> str:
        """Serialize to the JSON payload sent to the coordinator."""
        return self.model_dump_json()

    @classmethod
    def from_message(cls, raw: str) -> TradeContract:
        """Parse a contract message received over the wire.

        Raises:
            ProtocolError: If the payload is not a well-formed, consistent contract.
        """
        try:
            return cls.model_validate_json(raw)
        except (ValidationError, InvalidContractError) as exc:
            raise ProtocolError(f"Not a trade contract message: {exc}") from exc
