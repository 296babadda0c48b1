"""Operator address lookup for the local-development (Anvil) accounts.

Transactions go out unsigned through ``eth_sendTransaction`` and rely on the node
having the operator account unlocked, so only the address is needed here. No
key derivation happens: known default keys map to their accounts and anything
else falls back to the first default account.
"""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

DEFAULT_OPERATOR_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

KNOWN_DEV_KEYS: dict[str, str] = {
    "ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80": DEFAULT_OPERATOR_ADDRESS,
    "59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d": "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
    "5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a804cdab365a": "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC",
}


def _normalize_key(private_key: str) -> str:
    key = private_key.strip()
    if key[:2] in ("0x", "0X"):
        key = key[2:]
    return key.lower()


def derive_operator_address(private_key: str) -> str:
    address = KNOWN_DEV_KEYS.get(_normalize_key(private_key))
    if address is None:
        logger.warning("Unknown operator private key, using default Anvil account %s", DEFAULT_OPERATOR_ADDRESS)
        return DEFAULT_OPERATOR_ADDRESS
    return address
