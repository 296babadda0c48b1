"""Deterministic payment identifiers used as the treasury idempotency key."""
from __future__ import annotations

import hashlib

MAX_SEQUENCE = (1 << 64) - 1


def generate_payment_id(destination: str, sequence: int) -> bytes:
    """Return ``sha256(destination || uint64_be(sequence))``.

    The same STREAM destination and packet sequence always produce the same
    32-byte id, so a repeated payout is rejected on-chain instead of paid twice.
    """
    if sequence < 0 or sequence > MAX_SEQUENCE:
        raise ValueError(f"sequence must fit in an unsigned 64-bit integer: {sequence}")
    data = destination.encode("utf-8") + sequence.to_bytes(8, "big")
    return hashlib.sha256(data).digest()


def payment_id_hex(payment_id: bytes) -> str:
    return "0x" + payment_id.hex()
