"""CLI entrypoint: trigger (or dry-decode) a single treasury payout."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional

from eth_abi.exceptions import EncodingError

from .calldata import encode_payout_call
from .config import ConfigError, load_payout_config
from .destination import ParseError, parse_destination
from .payment_id import generate_payment_id, payment_id_hex
from .rpc_client import ALREADY_PROCESSED, RpcError
from .service import PayoutService


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s:%(lineno)d | %(message)s",
        stream=sys.stdout,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Trigger a treasury payout for a STREAM destination.")
    parser.add_argument("--destination", required=True, help="STREAM destination address ({prefix}.eth.{chainId}...)")
    parser.add_argument("--amount", type=int, required=True, help="Amount in the asset's smallest unit")
    parser.add_argument("--sequence", type=int, default=0, help="STREAM packet sequence number")
    parser.add_argument("--rpc-url", default=None, help="Overrides ETHEREUM_RPC_URL")
    parser.add_argument("--treasury", default=None, help="Overrides TREASURY_ADDRESS")
    parser.add_argument("--private-key", default=None, help="Overrides OPERATOR_PRIVATE_KEY")
    parser.add_argument("--chain-id", type=int, default=None, help="Overrides CHAIN_ID")
    parser.add_argument(
        "--parse-only",
        action="store_true",
        default=False,
        help="Print the decoded instruction and call data without contacting the node",
    )
    return parser


def describe_payout(destination: str, amount: int, sequence: int) -> Dict[str, Any]:
    instruction = parse_destination(destination)
    if instruction is None:
        raise ParseError(f"Failed to parse Ethereum destination: {destination}")
    payment_id = generate_payment_id(destination, sequence)
    return {
        "chain_id": instruction.chain_id,
        "asset_code": instruction.asset_code,
        "recipient": instruction.recipient,
        "payment_id": payment_id_hex(payment_id),
        "data": "0x" + encode_payout_call(payment_id, instruction.recipient, amount),
    }


async def run_payout(service: PayoutService, destination: str, amount: int, sequence: int) -> str:
    try:
        return await service.execute_payout(destination, amount, sequence)
    finally:
        await service.aclose()


def main(argv: Optional[list[str]] = None) -> int:
    configure_logging()
    logger = logging.getLogger(__name__)
    args = build_parser().parse_args(argv)

    if args.parse_only:
        try:
            result = describe_payout(args.destination, args.amount, args.sequence)
        except (ParseError, ValueError, EncodingError) as exc:
            logger.error("%s", exc)
            return 1
        print(json.dumps(result, indent=2))
        return 0

    overrides = {
        "ethereum_rpc_url": args.rpc_url,
        "treasury_address": args.treasury,
        "operator_private_key": args.private_key,
        "chain_id": args.chain_id,
    }
    try:
        config = load_payout_config(**{key: value for key, value in overrides.items() if value is not None})
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1

    service = PayoutService(config)
    try:
        tx_hash = asyncio.run(run_payout(service, args.destination, args.amount, args.sequence))
    except (ParseError, RpcError, ValueError, EncodingError) as exc:
        logger.error("Ethereum payout failed: %s", exc)
        return 1

    print(json.dumps({"tx_hash": tx_hash, "already_processed": tx_hash == ALREADY_PROCESSED}))
    return 0


if __name__ == "__main__":
    sys.exit(main())
