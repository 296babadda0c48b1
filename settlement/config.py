"""Settings loader for the Ethereum payout service."""
from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_UINT64 = (1 << 64) - 1
DEFAULT_GAS_LIMIT = 100_000

REQUIRED_ENV = {
    "ethereum_rpc_url": "ETHEREUM_RPC_URL",
    "treasury_address": "TREASURY_ADDRESS",
    "operator_private_key": "OPERATOR_PRIVATE_KEY",
    "chain_id": "CHAIN_ID",
}


class ConfigError(RuntimeError):
    pass


class PayoutConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    rpc_url: str = Field(min_length=1)
    treasury_address: str = Field(min_length=1)
    operator_private_key: str = Field(min_length=1, repr=False)
    expected_chain_id: int = Field(ge=0, le=MAX_UINT64)
    gas_limit: int = Field(default=DEFAULT_GAS_LIMIT, gt=0)
    rpc_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    strict_chain_id: bool = False


class PayoutSettings(BaseSettings):
    ethereum_rpc_url: Optional[str] = None
    treasury_address: Optional[str] = None
    operator_private_key: Optional[str] = Field(default=None, repr=False)
    chain_id: Optional[int] = None

    payout_gas_limit: int = DEFAULT_GAS_LIMIT
    payout_rpc_timeout_seconds: Optional[float] = None
    payout_strict_chain_id: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("ethereum_rpc_url", "treasury_address", "operator_private_key", mode="before")
    @classmethod
    def blank_as_missing(cls, value):  # type: ignore[override]
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("chain_id", mode="before")
    @classmethod
    def parse_chain_id(cls, value):  # type: ignore[override]
        if value is None or isinstance(value, int):
            return value
        candidate = str(value).strip()
        if not candidate:
            return None
        if not re.fullmatch(r"[0-9]+", candidate):
            raise ValueError("CHAIN_ID must be an unsigned decimal integer")
        return int(candidate)

    @field_validator("chain_id")
    @classmethod
    def validate_chain_id(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not 0 <= value <= MAX_UINT64:
            raise ValueError("CHAIN_ID must fit in an unsigned 64-bit integer")
        return value

    @field_validator("treasury_address")
    @classmethod
    def validate_treasury_address(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        candidate = value.strip()
        if not re.fullmatch(r"0x[0-9a-fA-F]{40}", candidate):
            raise ValueError("TREASURY_ADDRESS must be a 42-character hex string")
        return candidate

    @field_validator("payout_gas_limit")
    @classmethod
    def validate_gas_limit(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Value must be positive")
        return value

    @field_validator("payout_rpc_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return value
        if value <= 0:
            raise ValueError("Value must be positive")
        return value

    def missing(self) -> list[str]:
        return [env for field, env in REQUIRED_ENV.items() if getattr(self, field) is None]

    def to_config(self) -> PayoutConfig:
        missing = self.missing()
        if missing:
            raise ConfigError(f"Ethereum payout not configured (missing: {', '.join(missing)})")
        return PayoutConfig(
            rpc_url=self.ethereum_rpc_url,
            treasury_address=self.treasury_address,
            operator_private_key=self.operator_private_key,
            expected_chain_id=self.chain_id,
            gas_limit=self.payout_gas_limit,
            rpc_timeout_seconds=self.payout_rpc_timeout_seconds,
            strict_chain_id=self.payout_strict_chain_id,
        )


def load_payout_config(**overrides) -> PayoutConfig:
    """Read the environment (and ``.env``) into a ``PayoutConfig``.

    Raises ``ConfigError`` when a required value is missing or invalid.
    """
    try:
        settings = PayoutSettings(**overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid Ethereum payout configuration: {exc}") from exc
    return settings.to_config()
