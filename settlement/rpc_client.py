"""Minimal async Ethereum JSON-RPC client (nonce, gas price, send transaction)."""
from __future__ import annotations

import logging
import re
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

ALREADY_PROCESSED = "already_processed"

# Geth/Anvil report contract reverts with code 3 ("execution reverted").
EXECUTION_REVERTED_CODE = 3
IDEMPOTENT_ERROR_FRAGMENTS = ("already processed", "revert")

MAX_UINT64 = (1 << 64) - 1

_HEX_RE = re.compile(r"[0-9a-fA-F]+")


class RpcError(RuntimeError):
    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


def parse_hex_quantity(value: Any) -> int:
    if not isinstance(value, str):
        raise RpcError(f"Expected hex quantity, got {value!r}")
    digits = value[2:] if value.startswith("0x") else value
    if not _HEX_RE.fullmatch(digits):
        raise RpcError(f"Invalid hex quantity {value!r}")
    quantity = int(digits, 16)
    if quantity > MAX_UINT64:
        raise RpcError(f"Hex quantity {value!r} exceeds 64 bits")
    return quantity


def is_idempotent_rejection(error: dict[str, Any]) -> bool:
    """True when a node error means the payout was already settled on-chain."""
    if error.get("code") == EXECUTION_REVERTED_CODE:
        return True
    message = str(error.get("message") or "")
    return any(fragment in message for fragment in IDEMPOTENT_ERROR_FRAGMENTS)


class JsonRpcClient:
    """Posts JSON-RPC 2.0 requests to a single endpoint.

    The underlying ``httpx.AsyncClient`` is shared by all concurrent callers and
    never mutated after construction. Failures are not retried here.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout_seconds: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint = endpoint
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, params: list[Any]) -> dict[str, Any]:
        request = {"jsonrpc": "2.0", "method": method, "params": params, "id": 1}
        try:
            response = await self._client.post(self.endpoint, json=request)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise RpcError(f"{method} request to {self.endpoint} failed: {exc}") from exc
        try:
            body = response.json()
        except ValueError as exc:
            raise RpcError(f"{method} returned invalid JSON (HTTP {response.status_code})") from exc
        if not isinstance(body, dict):
            raise RpcError(f"{method} returned invalid response")
        return body

    @staticmethod
    def _error_of(body: dict[str, Any]) -> Optional[dict[str, Any]]:
        error = body.get("error")
        if error is None:
            return None
        if isinstance(error, dict):
            return error
        return {"message": str(error)}

    async def _quantity(self, method: str, params: list[Any]) -> int:
        body = await self._call(method, params)
        error = self._error_of(body)
        if error is not None:
            raise RpcError(
                f"{method} failed: {error.get('message') or 'Unknown error'}",
                code=error.get("code"),
            )
        if "result" not in body:
            raise RpcError(f"No result in {method} response")
        return parse_hex_quantity(body["result"])

    async def fetch_nonce(self, address: str) -> int:
        return await self._quantity("eth_getTransactionCount", [address, "pending"])

    async def fetch_gas_price(self) -> int:
        return await self._quantity("eth_gasPrice", [])

    async def submit_transaction(
        self,
        *,
        sender: str,
        to: str,
        data: str,
        nonce: int,
        gas_limit: int,
        gas_price: int,
    ) -> str:
        """Send an unsigned transaction from an unlocked node account.

        Returns the transaction hash, or ``ALREADY_PROCESSED`` when the node
        rejects the call in a way that indicates a duplicate payout.
        """
        tx = {
            "from": sender,
            "to": to,
            "gas": hex(gas_limit),
            "gasPrice": hex(gas_price),
            "nonce": hex(nonce),
            "data": data,
        }
        body = await self._call("eth_sendTransaction", [tx])

        error = self._error_of(body)
        if error is not None:
            message = str(error.get("message") or "Unknown error")
            if is_idempotent_rejection(error):
                logger.info("Payment may have been already processed (idempotent): %s", message)
                return ALREADY_PROCESSED
            raise RpcError(f"RPC error: {message}", code=error.get("code"))

        tx_hash = body.get("result")
        if not isinstance(tx_hash, str) or not tx_hash:
            raise RpcError("No transaction hash in response")
        return tx_hash
