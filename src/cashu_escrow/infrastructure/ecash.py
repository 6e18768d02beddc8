"""Simulated ecash mint and wallet implementing the TokenPort.

The mint "signs" a proof secret with an HMAC under its keyset secret. That
stands in for blind signatures so tokens can be minted, moved and checked
end to end without a running mint. Everything above the signature, from
denominations and P2PK escrow secrets to the token encoding and binding
checks, follows the real token layout.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import TYPE_CHECKING

from cashu_escrow.domain.exceptions import InsufficientFundsError, TokenValidationError
from cashu_escrow.logging_config import get_logger
from cashu_escrow.schemas.token import (
    ESCROW_REQUIRED_SIGS,
    EscrowSpendingCondition,
    EscrowToken,
    MintProofs,
    Proof,
)

if TYPE_CHECKING:
    from cashu_escrow.schemas.contract import TradeContract
    from cashu_escrow.schemas.registration import EscrowRegistration

logger = get_logger(__name__)


def generate_trade_pubkey() -> str:
    """Return a random compressed-point-shaped public key (33 bytes, hex)."""
    return "02" + secrets.token_hex(32)


def split_amount(amount: int) -> list[int]:
    """Split an amount into power-of-two denominations, smallest first."""
    if amount <= 0:
        raise ValueError("amount must be positive")
    parts = []
    bit = 1
    while bit <= amount:
        if amount & bit:
            parts.append(bit)
        bit <<= 1
    return parts


class SimulatedMint:
    """A mint with one keyset that signs (amount, secret) pairs.

    Real keysets hold one key per denomination, so a signature is only valid
    for the amount it was issued for. Signing the amount with the secret
    gives the same property.
    """

    def __init__(self, url: str, keyset_secret: bytes | None = None) -> None:
        self.url = url
        self._keyset_secret = keyset_secret or secrets.token_bytes(32)
        self.keyset_id = "00" + hashlib.sha256(self._keyset_secret).hexdigest()[:14]

    def sign(self, amount: int, secret: str) -> str:
        message = f"{amount}:{secret}".encode("utf-8")
        return hmac.new(self._keyset_secret, message, hashlib.sha256).hexdigest()

    def verify(self, proof: Proof) -> bool:
        if proof.id != self.keyset_id:
            return False
        return hmac.compare_digest(self.sign(proof.amount, proof.secret), proof.c)


class SimulatedEcashWallet:
    """Balance-tracking wallet that mints and validates escrow tokens."""

    def __init__(
        self,
        mint: SimulatedMint,
        trade_pubkey: str | None = None,
        balance: int = 0,
    ) -> None:
        self._mint = mint
        self._trade_pubkey = trade_pubkey or generate_trade_pubkey()
        self._balance = balance

    @property
    def trade_pubkey(self) -> str:
        return self._trade_pubkey

    @property
    def mint_url(self) -> str:
        return self._mint.url

    @property
    def balance(self) -> int:
        return self._balance

    def fund(self, amount: int) -> None:
        """Credit the wallet, as if ``amount`` sat had been minted into it."""
        if amount <= 0:
            raise ValueError("amount must be positive")
        self._balance += amount

    async def mint_escrow_token(
        self,
        contract: TradeContract,
        registration: EscrowRegistration,
    ) -> EscrowToken:
        amount = contract.trade_amount_sat
        if amount > self._balance:
            raise InsufficientFundsError(required=amount, available=self._balance)

        proofs = []
        for denomination in split_amount(amount):
            condition = EscrowSpendingCondition.for_escrow(
                contract, registration, nonce=secrets.token_hex(32)
            )
            secret = condition.to_secret()
            proofs.append(
                Proof(
                    amount=denomination,
                    id=self._mint.keyset_id,
                    secret=secret,
                    c=self._mint.sign(denomination, secret),
                )
            )

        self._balance -= amount
        token = EscrowToken(
            token=[MintProofs(mint=self._mint.url, proofs=proofs)],
            memo=f"escrow {registration.escrow_id_hex[:16]}",
        )
        logger.info(
            "wallet.escrow_token_minted",
            escrow_id=registration.escrow_id_hex,
            amount=amount,
            proofs=len(proofs),
            balance=self._balance,
        )
        return token

    async def validate_escrow_token(
        self,
        raw_token: str,
        contract: TradeContract,
        registration: EscrowRegistration,
    ) -> EscrowToken:
        token = EscrowToken.decode(raw_token)
        self._check_binding(token, contract, registration)
        logger.info(
            "wallet.escrow_token_valid",
            escrow_id=registration.escrow_id_hex,
            amount=token.amount,
            token=raw_token,
        )
        return token

    def _check_binding(
        self,
        token: EscrowToken,
        contract: TradeContract,
        registration: EscrowRegistration,
    ) -> None:
        """Raise TokenValidationError unless every proof belongs to this trade."""
        if token.mints != {self._mint.url}:
            raise TokenValidationError(
                "Token was not issued by the trusted mint",
                details={"check": "mint", "mints": sorted(token.mints)},
            )

        proofs = token.proofs
        if not proofs:
            raise TokenValidationError("Token carries no proofs", details={"check": "proofs"})

        secrets_seen: set[str] = set()
        for index, proof in enumerate(proofs):
            if proof.secret in secrets_seen:
                raise TokenValidationError(
                    "Token carries the same proof twice",
                    details={"check": "duplicate_proof", "proof": index},
                )
            secrets_seen.add(proof.secret)

        for index, proof in enumerate(proofs):
            if not self._mint.verify(proof):
                raise TokenValidationError(
                    "Proof signature does not verify",
                    details={"check": "signature", "proof": index},
                )

        if token.amount != contract.trade_amount_sat:
            raise TokenValidationError(
                f"Token amount {token.amount} does not match contract amount "
                f"{contract.trade_amount_sat}",
                details={
                    "check": "amount",
                    "expected": contract.trade_amount_sat,
                    "actual": token.amount,
                },
            )

        expected_keys = {contract.buyer_ecash_public_key, contract.seller_ecash_public_key}
        for index, proof in enumerate(proofs):
            try:
                condition = EscrowSpendingCondition.from_secret(proof.secret)
            except ValueError as exc:
                raise TokenValidationError(
                    f"Proof is not escrow locked: {exc}",
                    details={"check": "spending_condition", "proof": index},
                ) from exc

            if condition.data != registration.coordinator_escrow_pubkey:
                raise TokenValidationError(
                    "Proof is not locked to the coordinator escrow key",
                    details={"check": "coordinator_escrow_pubkey", "proof": index},
                )
            if condition.tag("escrow_id") != [registration.escrow_id_hex]:
                raise TokenValidationError(
                    "Proof is bound to a different escrow",
                    details={
                        "check": "escrow_id",
                        "proof": index,
                        "expected": registration.escrow_id_hex,
                        "actual": condition.tag("escrow_id"),
                    },
                )
            pubkeys = condition.tag("pubkeys") or []
            if len(pubkeys) != 2 or set(pubkeys) != expected_keys:
                raise TokenValidationError(
                    "Proof does not name both traders' keys",
                    details={"check": "pubkeys", "proof": index},
                )
            if condition.tag("n_sigs") != [str(ESCROW_REQUIRED_SIGS)]:
                raise TokenValidationError(
                    "Proof does not require both signatures",
                    details={"check": "n_sigs", "proof": index},
                )
