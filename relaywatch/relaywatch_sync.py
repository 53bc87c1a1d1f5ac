"""Synchronous relaywatch client."""

import asyncio
import concurrent.futures
import logging
from functools import wraps
from pathlib import Path
from typing import List, Optional, Union

from relaywatch.config import ConfigManager, RelayWatchConfig
from relaywatch.models import (
    BuilderBidsReceivedOptions, EpochWindow, PayloadDeliveredQueryOptions,
    QueryResult, RegistrationReport, RelayIdentity, SlotReport
)
from relaywatch.registry import RelayRegistry
from relaywatch.relaywatch import RelaySelection, RelayWatchAsync


def run_async(func):
    """Decorator to run async functions synchronously."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            # Try to get the current event loop
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop running, we can use asyncio.run()
            return asyncio.run(func(*args, **kwargs))
        else:
            # Loop is already running (e.g., in Jupyter)
            with concurrent.futures.ThreadPoolExecutor() as pool:
                future = pool.submit(asyncio.run, func(*args, **kwargs))
                return future.result()
    return wrapper


class RelayWatch:
    """Synchronous client for querying MEV-Boost relays about upcoming proposers.

    Every call runs in its own event loop with its own HTTP session, so the
    client can be used from plain scripts and notebooks alike.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        use_env_vars: bool = True,
        log_level: Optional[str] = None,
        config: Optional[RelayWatchConfig] = None
    ):
        """Initialize RelayWatch.

        Args:
            config_path: Path to configuration file
            use_env_vars: Use environment variables for config
            log_level: Logging level (default: from config)
            config: Ready configuration, bypassing file and environment loading
        """
        if config is None:
            config = ConfigManager(config_path, use_env_vars).load()
        self.config: RelayWatchConfig = config
        self.log_level = log_level
        self.logger = logging.getLogger(__name__)
        self.registry = RelayRegistry(config.relay.relay_endpoints, config.relay.aliases)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return None

    def _async_client(self) -> RelayWatchAsync:
        return RelayWatchAsync(config=self.config, log_level=self.log_level)

    def list_relays(self) -> List[RelayIdentity]:
        """Relays known to this client."""
        return self.registry.relays

    @run_async
    async def get_validators_for_current_and_next_epoch(
        self,
        relay: str,
        window: Optional[EpochWindow] = None
    ) -> QueryResult:
        async with self._async_client() as watch:
            return await watch.get_validators_for_current_and_next_epoch(relay, window)

    @run_async
    async def get_validator_registration(
        self,
        relay: str,
        pubkey: Union[str, bytes]
    ) -> QueryResult:
        async with self._async_client() as watch:
            return await watch.get_validator_registration(relay, pubkey)

    @run_async
    async def get_validator_registration_on_all_relays(
        self,
        pubkey: Union[str, bytes],
        relays: RelaySelection = None,
        timeout: Optional[float] = None
    ) -> RegistrationReport:
        async with self._async_client() as watch:
            return await watch.get_validator_registration_on_all_relays(pubkey, relays, timeout)

    @run_async
    async def get_validator_registration_for_all_slots(
        self,
        window: Optional[EpochWindow] = None,
        relays: RelaySelection = None,
        timeout: Optional[float] = None
    ) -> SlotReport:
        async with self._async_client() as watch:
            return await watch.get_validator_registration_for_all_slots(window, relays, timeout)

    @run_async
    async def get_vanilla_slots(
        self,
        window: Optional[EpochWindow] = None,
        relays: RelaySelection = None,
        timeout: Optional[float] = None
    ) -> List[int]:
        async with self._async_client() as watch:
            return await watch.get_vanilla_slots(window, relays, timeout)

    @run_async
    async def get_payload_delivered_bidtraces(
        self,
        relay: str,
        options: Optional[PayloadDeliveredQueryOptions] = None
    ) -> QueryResult:
        async with self._async_client() as watch:
            return await watch.get_payload_delivered_bidtraces(relay, options)

    @run_async
    async def get_builder_blocks_received(
        self,
        relay: str,
        options: Optional[BuilderBidsReceivedOptions] = None
    ) -> QueryResult:
        async with self._async_client() as watch:
            return await watch.get_builder_blocks_received(relay, options)
