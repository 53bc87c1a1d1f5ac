"""Async relaywatch client: which relays will build the upcoming blocks."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from relaywatch.aggregator import FanOutAggregator
from relaywatch.config import ConfigManager, RelayWatchConfig
from relaywatch.connectors.relay_client import RelayClient
from relaywatch.models import (
    BuilderBidsReceivedOptions, EpochWindow, PayloadDeliveredQueryOptions,
    QueryResult, RegistrationReport, RelayIdentity, SlotReport, normalize_pubkey
)
from relaywatch.normalizer import registrations_across_relays, slot_relay_map, vanilla_slots
from relaywatch.registry import RelayRegistry
from relaywatch.utils import current_and_next_epoch_window


RelaySelection = Union[None, str, Iterable[str]]


class RelayWatchAsync:
    """Async client for querying MEV-Boost relays about upcoming proposers."""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        use_env_vars: bool = True,
        log_level: Optional[str] = None,
        config: Optional[RelayWatchConfig] = None
    ):
        """Initialize RelayWatchAsync.

        Args:
            config_path: Path to configuration file
            use_env_vars: Use environment variables for config
            log_level: Logging level (default: from config)
            config: Ready configuration, bypassing file and environment loading
        """
        if config is None:
            config = ConfigManager(config_path, use_env_vars).load()
        self.config: RelayWatchConfig = config

        # Set up logging
        logging.basicConfig(
            level=getattr(logging, (log_level or config.log_level).upper()),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        self.logger = logging.getLogger(__name__)

        self.registry = RelayRegistry(
            config.relay.relay_endpoints,
            config.relay.aliases
        )
        self.aggregator = FanOutAggregator(
            timeout=config.relay.aggregate_timeout,
            max_concurrency=config.relay.max_concurrency
        )
        self._client: Optional[RelayClient] = None

    async def connect(self) -> None:
        """Open the shared relay HTTP session."""
        if self._client is None:
            self._client = RelayClient(self.config.relay)
            await self._client.connect()
            self.logger.debug(f"Relay client ready for {len(self.registry)} relays")

    async def close(self) -> None:
        """Close the relay HTTP session."""
        if self._client:
            await self._client.disconnect()
            self._client = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_connected(self) -> RelayClient:
        if self._client is None:
            await self.connect()
        return self._client

    def _default_window(self, window: Optional[EpochWindow]) -> EpochWindow:
        return window or current_and_next_epoch_window(self.config.network)

    def list_relays(self) -> List[RelayIdentity]:
        """Relays known to this client."""
        return self.registry.relays

    async def get_validators_for_current_and_next_epoch(
        self,
        relay: str,
        window: Optional[EpochWindow] = None
    ) -> QueryResult:
        """Validators one relay has registered for the current and next epoch.

        Args:
            relay: Relay name or single-relay alias
            window: Slot window to keep (default: none, everything the relay returns)
        """
        identity = self.registry.get(relay)
        client = await self._ensure_connected()
        return await client.query_validators(identity, window)

    async def get_validator_registration(
        self,
        relay: str,
        pubkey: Union[str, bytes]
    ) -> QueryResult:
        """Registration of ``pubkey`` at a single relay.

        Raises:
            InvalidInputError: Unknown relay or malformed pubkey
        """
        identity = self.registry.get(relay)
        pubkey = normalize_pubkey(pubkey)
        client = await self._ensure_connected()
        return await client.query_registration(identity, pubkey)

    async def get_validator_registration_on_all_relays(
        self,
        pubkey: Union[str, bytes],
        relays: RelaySelection = None,
        timeout: Optional[float] = None
    ) -> RegistrationReport:
        """Registration of ``pubkey`` at every selected relay.

        Args:
            pubkey: Validator public key
            relays: Relay names/aliases to query (default: all known relays)
            timeout: Deadline for the whole query (default: from config)

        Returns:
            Per-relay results plus the map of relays holding a registration
        """
        pubkey = normalize_pubkey(pubkey)
        identities = self.registry.resolve(relays)
        client = await self._ensure_connected()

        async def lookup(relay: RelayIdentity) -> QueryResult:
            return await client.query_registration(relay, pubkey)

        results = await self.aggregator.query_all_relays(identities, lookup, timeout)
        registrations = registrations_across_relays(pubkey, results)
        self.logger.info(
            f"{pubkey[:12]}... registered with {len(registrations)}/{len(results)} relays"
        )
        return RegistrationReport(pubkey=pubkey, results=results, registrations=registrations)

    async def get_validator_registration_for_all_slots(
        self,
        window: Optional[EpochWindow] = None,
        relays: RelaySelection = None,
        timeout: Optional[float] = None
    ) -> SlotReport:
        """Map every slot of the window to the relays its proposer registered with.

        Args:
            window: Slots to cover (default: current and next epoch by wall clock)
            relays: Relay names/aliases to query (default: all known relays)
            timeout: Deadline for the whole query (default: from config)

        Returns:
            Per-relay results plus the slot -> relay names map
        """
        window = self._default_window(window)
        identities = self.registry.resolve(relays)
        client = await self._ensure_connected()

        async def validators(relay: RelayIdentity) -> QueryResult:
            return await client.query_validators(relay, window)

        results = await self.aggregator.query_all_relays(identities, validators, timeout)
        return SlotReport(window=window, results=results, slots=slot_relay_map(results))

    async def get_vanilla_slots(
        self,
        window: Optional[EpochWindow] = None,
        relays: RelaySelection = None,
        timeout: Optional[float] = None
    ) -> List[int]:
        """Slots of the window for which no queried relay knows the proposer."""
        report = await self.get_validator_registration_for_all_slots(window, relays, timeout)
        if report.failures:
            self.logger.warning(
                f"Vanilla slots computed without {', '.join(sorted(report.failures))}; "
                f"some slots may be misclassified"
            )
        return vanilla_slots(report.slots, report.window)

    async def get_payload_delivered_bidtraces(
        self,
        relay: str,
        options: Optional[PayloadDeliveredQueryOptions] = None
    ) -> QueryResult:
        """Payloads a relay delivered to proposers, filtered by ``options``."""
        identity = self.registry.get(relay)
        client = await self._ensure_connected()
        return await client.query_delivered_payloads(identity, options)

    async def get_builder_blocks_received(
        self,
        relay: str,
        options: Optional[BuilderBidsReceivedOptions] = None
    ) -> QueryResult:
        """Builder submissions a relay received, filtered by ``options``."""
        identity = self.registry.get(relay)
        client = await self._ensure_connected()
        return await client.query_builder_blocks_received(identity, options)
