"""Unit tests for the EscrowRegistration schema."""

from __future__ import annotations

import json

import pytest

from cashu_escrow.domain.exceptions import ProtocolError
from cashu_escrow.schemas.registration import EscrowRegistration


def test_parses_coordinator_payload() -> None:
    raw = json.dumps(
        {
            "escrow_id_hex": "ABC123",
            "coordinator_escrow_pubkey": "02" + "cc" * 32,
            "escrow_start_time": 1_700_000_000,
        }
    )
    registration = EscrowRegistration.from_message(raw)
    assert registration.escrow_id_hex == "abc123"
    assert registration.escrow_id == bytes.fromhex("abc123")
    assert registration.escrow_start_time == 1_700_000_000


def test_round_trip(registration: EscrowRegistration) -> None:
    assert EscrowRegistration.from_message(registration.to_message()) == registration


def test_missing_field_is_protocol_error() -> None:
    with pytest.raises(ProtocolError):
        EscrowRegistration.from_message('{"escrow_id_hex": "abc123"}')


def test_non_hex_escrow_id_is_protocol_error() -> None:
    raw = json.dumps(
        {
            "escrow_id_hex": "zzz999",
            "coordinator_escrow_pubkey": "02" + "cc" * 32,
            "escrow_start_time": 0,
        }
    )
    with pytest.raises(ProtocolError):
        EscrowRegistration.from_message(raw)


def test_contract_message_is_not_a_registration(contract) -> None:
    with pytest.raises(ProtocolError):
        EscrowRegistration.from_message(contract.to_message())


def test_plain_text_is_protocol_error() -> None:
    with pytest.raises(ProtocolError):
        EscrowRegistration.from_message("hello seller")
