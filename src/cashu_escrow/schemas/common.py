"""Shared field types for the wire schemas."""

from __future__ import annotations

from typing import Annotated

from pydantic import AfterValidator


def normalize_hex(value: str) -> str:
    """Validate a non-empty, even-length hex string and lowercase it."""
    value = value.strip().lower()
    if not value:
        raise ValueError("hex value must not be empty")
    if len(value) % 2:
        raise ValueError("hex value must have an even number of digits")
    try:
        bytes.fromhex(value)
    except ValueError as exc:
        raise ValueError(f"not a hex string: {value[:16]}") from exc
    return value


HexStr = Annotated[str, AfterValidator(normalize_hex)]
