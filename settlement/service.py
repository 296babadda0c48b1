"""Treasury payouts for received STREAM payments."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from .calldata import encode_payout_call
from .config import PayoutConfig
from .destination import ParseError, parse_destination
from .keys import derive_operator_address
from .payment_id import generate_payment_id, payment_id_hex
from .rpc_client import JsonRpcClient

logger = logging.getLogger(__name__)


class ChainIdMismatchError(ParseError):
    pass


class PayoutService:
    def __init__(
        self,
        config: PayoutConfig,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self.rpc = JsonRpcClient(
            config.rpc_url,
            timeout_seconds=config.rpc_timeout_seconds,
            client=http_client,
        )
        self.operator_address = derive_operator_address(config.operator_private_key)

        logger.info(
            "Ethereum payout service initialized: treasury=%s chain_id=%s operator=%s",
            config.treasury_address,
            config.expected_chain_id,
            self.operator_address,
        )

    async def aclose(self) -> None:
        await self.rpc.aclose()

    async def execute_payout(self, destination: str, amount: int, sequence: int) -> str:
        """Pay ``amount`` to the recipient encoded in ``destination``.

        Returns the transaction hash, or ``ALREADY_PROCESSED`` when the treasury
        has already settled this ``(destination, sequence)`` pair.
        """
        instruction = parse_destination(destination)
        if instruction is None:
            raise ParseError(f"Failed to parse Ethereum destination: {destination}")

        if instruction.chain_id != self.config.expected_chain_id:
            if self.config.strict_chain_id:
                raise ChainIdMismatchError(
                    f"Chain ID mismatch: destination has {instruction.chain_id}, "
                    f"expected {self.config.expected_chain_id}"
                )
            logger.warning(
                "Chain ID mismatch: destination has %s, expected %s",
                instruction.chain_id,
                self.config.expected_chain_id,
            )

        payment_id = generate_payment_id(destination, sequence)
        logger.info(
            "Executing Ethereum payout: %s %s to %s (payment_id: %s)",
            amount,
            instruction.asset_code,
            instruction.recipient,
            payment_id_hex(payment_id),
        )
        data = "0x" + encode_payout_call(payment_id, instruction.recipient, amount)

        nonce_task = asyncio.ensure_future(self.rpc.fetch_nonce(self.operator_address))
        gas_price_task = asyncio.ensure_future(self.rpc.fetch_gas_price())
        try:
            nonce, gas_price = await asyncio.gather(nonce_task, gas_price_task)
        except BaseException:
            # no request may outlive a failed payout
            for task in (nonce_task, gas_price_task):
                task.cancel()
            await asyncio.gather(nonce_task, gas_price_task, return_exceptions=True)
            raise

        tx_hash = await self.rpc.submit_transaction(
            sender=self.operator_address,
            to=self.config.treasury_address,
            data=data,
            nonce=nonce,
            gas_limit=self.config.gas_limit,
            gas_price=gas_price,
        )
        logger.info("Payout transaction sent: %s", tx_hash)
        return tx_hash
