"""Holder for the (optional) payout service used by the STREAM receiver.

A ``PayoutRegistry`` is built once at startup and passed to whatever receives
STREAM packets. It is initialized at most once: either it ends up ``READY``
with a ``PayoutService`` or ``DISABLED`` because configuration is incomplete.
"""
from __future__ import annotations

import enum
import logging
import threading
from typing import Any, Optional

import httpx

from .config import ConfigError, PayoutConfig, load_payout_config
from .destination import is_payout_destination
from .service import PayoutService

logger = logging.getLogger(__name__)


class RegistryState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    DISABLED = "disabled"
    READY = "ready"


class PayoutRegistry:
    def __init__(self, *, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self._lock = threading.Lock()
        self._state = RegistryState.UNINITIALIZED
        self._service: Optional[PayoutService] = None
        self._http_client = http_client

    @property
    def state(self) -> RegistryState:
        return self._state

    @property
    def service(self) -> Optional[PayoutService]:
        return self._service

    def initialize(self, config: Optional[PayoutConfig]) -> bool:
        """Build the service from ``config`` (``None`` disables payouts).

        Returns True only for the call that performed the one-time transition.
        """
        with self._lock:
            if self._state is not RegistryState.UNINITIALIZED:
                return False
            if config is None:
                self._state = RegistryState.DISABLED
                return True
            try:
                self._service = PayoutService(config, http_client=self._http_client)
            except Exception as exc:
                logger.error("Failed to initialize Ethereum payout service: %s", exc)
                self._state = RegistryState.DISABLED
                return True
            self._state = RegistryState.READY
            logger.info("Ethereum payout service initialized successfully")
            return True

    def initialize_from_env(self, **overrides: Any) -> bool:
        try:
            config: Optional[PayoutConfig] = load_payout_config(**overrides)
        except ConfigError as exc:
            logger.debug("%s", exc)
            config = None
        return self.initialize(config)

    async def maybe_execute_payout(self, destination: str, amount: int, sequence: int) -> None:
        """Pay out for a received STREAM packet if the destination asks for it.

        Never raises: a failed payout must not fail the STREAM payment that
        already settled off-chain.
        """
        if not is_payout_destination(destination):
            return

        service = self._service
        if self._state is not RegistryState.READY or service is None:
            logger.debug("Ethereum payout service not initialized")
            return

        try:
            tx_hash = await service.execute_payout(destination, amount, sequence)
        except Exception as exc:
            logger.warning("Ethereum payout failed for %s: %s", destination, exc)
            return
        logger.info("Ethereum payout executed: tx=%s", tx_hash)

    async def aclose(self) -> None:
        if self._service is not None:
            await self._service.aclose()
