"""Call data for the treasury ``payoutToUser(bytes32,address,uint256)`` function."""
from __future__ import annotations

from eth_abi import encode

# keccak256("payoutToUser(bytes32,address,uint256)")[:4]
PAYOUT_TO_USER_SELECTOR = bytes.fromhex("b77276d8")
PAYOUT_TO_USER_ARGS = ["bytes32", "address", "uint256"]

# Amounts are carried as uint64 upstream even though the slot is uint256.
MAX_PAYOUT_AMOUNT = (1 << 64) - 1


def encode_payout_call(payment_id: bytes, recipient: str, amount: int) -> str:
    """Return the unprefixed hex call data (selector + three 32-byte words)."""
    if len(payment_id) != 32:
        raise ValueError("payment_id must be 32 bytes")
    if amount < 0 or amount > MAX_PAYOUT_AMOUNT:
        raise ValueError(f"amount must fit in an unsigned 64-bit integer: {amount}")
    # Lowercase so eth_abi does not insist on an EIP-55 checksum.
    calldata = PAYOUT_TO_USER_SELECTOR + encode(
        PAYOUT_TO_USER_ARGS,
        [payment_id, recipient.lower(), int(amount)],
    )
    return calldata.hex()
