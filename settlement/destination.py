"""Decode Ethereum payout instructions embedded in STREAM destination addresses.

Expected layout::

    {prefix...}.eth.{chainId}.{asset}.{recipient}.{streamToken...}

e.g. ``test.receiver.eth.31337.EURC.0x70997970C51812dc3A010C7d01b50e0d17dc79C8.abc123``.
Most destinations are not payout destinations, so a mismatch is reported as
``None`` rather than an exception.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

PAYOUT_MARKER = "eth"
PAYOUT_SUBSTRING = f".{PAYOUT_MARKER}."
MIN_SEGMENTS = 7
MAX_UINT64 = (1 << 64) - 1

_DECIMAL_RE = re.compile(r"[0-9]+")


class ParseError(ValueError):
    pass


@dataclass(frozen=True)
class PayoutInstruction:
    chain_id: int
    asset_code: str
    recipient: str


def is_payout_destination(destination: str) -> bool:
    return PAYOUT_SUBSTRING in destination


def parse_destination(destination: str) -> Optional[PayoutInstruction]:
    parts = destination.split(".")
    if len(parts) < MIN_SEGMENTS:
        logger.debug("Destination too short for Ethereum payout: %s", destination)
        return None

    try:
        marker = parts.index(PAYOUT_MARKER)
    except ValueError:
        return None
    if marker + 3 >= len(parts):
        logger.debug("Invalid Ethereum destination format: %s", destination)
        return None

    raw_chain_id = parts[marker + 1]
    if not _DECIMAL_RE.fullmatch(raw_chain_id):
        return None
    chain_id = int(raw_chain_id)
    if chain_id > MAX_UINT64:
        return None

    recipient = parts[marker + 3]
    if not recipient.startswith("0x") or len(recipient) != 42:
        logger.debug("Invalid recipient address: %s", recipient)
        return None

    return PayoutInstruction(
        chain_id=chain_id,
        asset_code=parts[marker + 2],
        recipient=recipient,
    )
