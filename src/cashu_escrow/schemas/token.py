"""Escrow token schemas.

Tokens follow the cashu V3 layout: a list of per-mint proof sets, encoded as
``cashuA`` + base64url(JSON). Each proof's secret is a well-known P2PK
secret whose tags lock it to one escrow registration.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cashu_escrow.domain.exceptions import TokenParseError

if TYPE_CHECKING:
    from cashu_escrow.schemas.contract import TradeContract
    from cashu_escrow.schemas.registration import EscrowRegistration

TOKEN_PREFIX = "cashuA"
SECRET_KIND = "P2PK"
ESCROW_REQUIRED_SIGS = 2


class Proof(BaseModel):
    """A single ecash proof: an amount, a secret and the mint's signature on it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    amount: int = Field(..., gt=0)
    id: str = Field(..., description="Keyset id of the signing mint key")
    secret: str
    c: str = Field(..., alias="C")


class MintProofs(BaseModel):
    model_config = ConfigDict(frozen=True)

    mint: str
    proofs: list[Proof]


class EscrowToken(BaseModel):
    """A bearer token, possibly spanning several mints (escrow tokens use one)."""

    model_config = ConfigDict(frozen=True)

    token: list[MintProofs]
    unit: str = "sat"
    memo: str | None = None

    @property
    def proofs(self) -> list[Proof]:
        return [proof for entry in self.token for proof in entry.proofs]

    @property
    def amount(self) -> int:
        return sum(proof.amount for proof in self.proofs)

    @property
    def mints(self) -> set[str]:
        return {entry.mint for entry in self.token}

    def encode(self) -> str:
        """Serialize to the opaque payload passed between traders."""
        raw = self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
        return TOKEN_PREFIX + base64.urlsafe_b64encode(raw).decode("ascii")

    @classmethod
    def decode(cls, payload: str) -> EscrowToken:
        """Parse an encoded token.

        Raises:
            TokenParseError: If the payload is not an encoded token.
        """
        payload = payload.strip()
        if not payload.startswith(TOKEN_PREFIX):
            raise TokenParseError(f"Token must start with '{TOKEN_PREFIX}'")
        body = payload[len(TOKEN_PREFIX):]
        body += "=" * (-len(body) % 4)  # senders may strip padding
        try:
            raw = base64.urlsafe_b64decode(body.encode("ascii"))
            return cls.model_validate_json(raw)
        except (binascii.Error, UnicodeError, ValueError) as exc:
            # pydantic's ValidationError is a ValueError too
            raise TokenParseError(f"Malformed token payload: {exc}") from exc


class EscrowSpendingCondition(BaseModel):
    """NUT-10 P2PK secret locking a proof to an escrow.

    ``data`` is the coordinator escrow key. Tags name both traders' keys and
    the escrow id, so a proof is only redeemable in the trade it was minted for.
    """

    model_config = ConfigDict(frozen=True)

    nonce: str
    data: str
    tags: list[list[str]] = Field(default_factory=list)

    @classmethod
    def for_escrow(
        cls,
        contract: TradeContract,
        registration: EscrowRegistration,
        nonce: str,
    ) -> EscrowSpendingCondition:
        locktime = registration.escrow_start_time + contract.time_limit
        return cls(
            nonce=nonce,
            data=registration.coordinator_escrow_pubkey,
            tags=[
                ["pubkeys", contract.buyer_ecash_public_key, contract.seller_ecash_public_key],
                ["n_sigs", str(ESCROW_REQUIRED_SIGS)],
                ["locktime", str(locktime)],
                ["refund", contract.buyer_ecash_public_key],
                ["sigflag", "SIG_ALL"],
                ["escrow_id", registration.escrow_id_hex],
            ],
        )

    def tag(self, name: str) -> list[str] | None:
        """Values of the first tag called ``name``, or None if absent."""
        for tag in self.tags:
            if tag and tag[0] == name:
                return tag[1:]
        return None

    def to_secret(self) -> str:
        body = {"nonce": self.nonce, "data": self.data, "tags": self.tags}
        return json.dumps([SECRET_KIND, body], separators=(",", ":"))

    @classmethod
    def from_secret(cls, secret: str) -> EscrowSpendingCondition:
        """Parse a proof secret.

        Raises:
            ValueError: If the secret is not a P2PK well-known secret.
        """
        try:
            kind, body = json.loads(secret)
        except (TypeError, ValueError) as exc:
            raise ValueError("secret is not a well-known secret") from exc
        if kind != SECRET_KIND or not isinstance(body, dict):
            raise ValueError(f"secret kind {kind!r} is not {SECRET_KIND}")
        try:
            return cls.model_validate(body)
        except ValidationError as exc:
            raise ValueError(f"malformed {SECRET_KIND} secret") from exc
