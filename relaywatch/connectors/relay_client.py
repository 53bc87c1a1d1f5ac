"""MEV-Boost relay client: one relay API call per invocation, typed outcomes."""

import asyncio
import json
import logging
from typing import Any, Dict, FrozenSet, Optional, Union

import aiohttp
from aiohttp import ClientTimeout
import backoff

from relaywatch.base import BaseConnector
from relaywatch.config import RelayConfig
from relaywatch.constants import (
    CHECK_VALIDATOR_REGISTRATION, GET_BUILDER_BLOCKS_RECEIVED,
    GET_DELIVERED_PAYLOADS, GET_VALIDATORS_ENDPOINT, NOT_REGISTERED_STATUSES
)
from relaywatch.exceptions import (
    DecodeError, ErrorKind, NotRegisteredError, RelayQueryError, TransportError
)
from relaywatch.models import (
    BuilderBidsReceivedOptions, BuilderBlockBidtrace,
    EpochWindow, PayloadBidtrace, PayloadDeliveredQueryOptions, QueryResult,
    RelayIdentity, normalize_pubkey
)
from relaywatch.normalizer import parse_model_list, parse_registration, parse_validator_entries


HEADERS = {
    'Accept': 'application/json',
    'Content-Type': 'application/json',
}


class RelayClient(BaseConnector):
    """Client for the MEV-Boost relay API.

    Each query method performs one logical request against one relay and
    returns a ``QueryResult``; transport, decode and not-registered outcomes
    are reported as failures instead of being raised. Only malformed input
    raises, before anything is sent.
    """

    def __init__(self, config: Optional[RelayConfig] = None):
        """Initialize relay client.

        Args:
            config: Relay configuration (uses defaults if not provided)
        """
        self.config = config or RelayConfig()
        self.logger = logging.getLogger(__name__)
        self._session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        """Initialize HTTP session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=100,
                limit_per_host=10
            )
            self._session = aiohttp.ClientSession(
                timeout=ClientTimeout(total=self.config.timeout),
                connector=connector,
                headers=HEADERS
            )
            self.logger.debug("Relay client session opened")

    async def disconnect(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self.logger.debug("Relay client session closed")
        self._session = None

    async def _request(
        self,
        relay: RelayIdentity,
        endpoint: str,
        params: Optional[Dict[str, str]] = None,
        not_registered_statuses: FrozenSet[int] = frozenset()
    ) -> Any:
        """Make a single HTTP GET to a relay and decode the JSON body.

        Raises:
            NotRegisteredError: Status is one of ``not_registered_statuses``
            TransportError: Timeout, connection failure or any other non-2xx status
            DecodeError: Body is not valid JSON
        """
        await self.connect()
        url = f"{relay.url}{endpoint}"
        self.logger.debug(f"GET {url} params={params}")

        try:
            async with self._session.get(
                url,
                params=params,
                timeout=ClientTimeout(total=self.config.timeout)
            ) as response:
                status = response.status
                body = await response.read()
        except asyncio.TimeoutError as e:
            raise TransportError(relay.name, f"timed out after {self.config.timeout}s") from e
        except aiohttp.ClientError as e:
            raise TransportError(relay.name, f"{type(e).__name__}: {e}") from e

        if status in not_registered_statuses:
            raise NotRegisteredError(relay.name, f"HTTP {status}")
        if not 200 <= status < 300:
            snippet = body[:200].decode('utf-8', errors='replace')
            raise TransportError(relay.name, f"HTTP {status}: {snippet}")

        try:
            return json.loads(body)
        except ValueError as e:
            raise DecodeError(relay.name, f"invalid JSON: {e}") from e

    async def _fetch(
        self,
        relay: RelayIdentity,
        endpoint: str,
        params: Optional[Dict[str, str]] = None,
        not_registered_statuses: FrozenSet[int] = frozenset()
    ) -> Any:
        """``_request`` with exponential backoff on transport errors.

        With the default ``max_tries`` of 1 exactly one request is made.
        """
        request = backoff.on_exception(
            backoff.expo,
            TransportError,
            max_tries=self.config.max_tries,
            max_time=self.config.timeout * self.config.max_tries * 2,
            logger=self.logger,
            giveup_log_level=logging.DEBUG
        )(self._request)
        return await request(relay, endpoint, params, not_registered_statuses)

    def _failure(self, relay: RelayIdentity, error: RelayQueryError) -> QueryResult:
        """Convert a relay error to a failed result, logging by severity."""
        if error.kind == ErrorKind.NOT_REGISTERED:
            self.logger.debug(f"{relay.name}: not registered ({error.message})")
        else:
            self.logger.warning(f"Request to {relay.name} failed ({error.kind.value}): {error.message}")
        return QueryResult.failure(relay.name, error.kind, error.message)

    async def query_validators(
        self,
        relay: RelayIdentity,
        window: Optional[EpochWindow] = None
    ) -> QueryResult:
        """Get registrations of validators proposing in the current and next epoch.

        Args:
            relay: Relay to query
            window: Slot window to keep; entries outside it are dropped

        Returns:
            Result carrying a (possibly empty) list of EpochValidatorEntry
        """
        try:
            payload = await self._fetch(relay, GET_VALIDATORS_ENDPOINT)
            entries = parse_validator_entries(payload, relay.name)
        except RelayQueryError as e:
            return self._failure(relay, e)

        if window is not None:
            kept = [entry for entry in entries if window.contains(entry.slot)]
            if len(kept) != len(entries):
                self.logger.debug(
                    f"{relay.name}: dropped {len(entries) - len(kept)} entries outside "
                    f"slots [{window.start_slot}, {window.end_slot})"
                )
            entries = kept

        self.logger.debug(f"{relay.name}: {len(entries)} scheduled validators")
        return QueryResult.success(relay.name, entries)

    async def query_registration(
        self,
        relay: RelayIdentity,
        pubkey: Union[str, bytes]
    ) -> QueryResult:
        """Check whether a validator is registered with a relay.

        Args:
            relay: Relay to query
            pubkey: 48-byte validator public key

        Returns:
            Result carrying the ValidatorRegistration, or a NOT_REGISTERED failure

        Raises:
            InvalidInputError: If the pubkey is malformed
        """
        pubkey = normalize_pubkey(pubkey)
        try:
            payload = await self._fetch(
                relay,
                CHECK_VALIDATOR_REGISTRATION,
                params={'pubkey': pubkey},
                not_registered_statuses=NOT_REGISTERED_STATUSES
            )
            registration = parse_registration(payload, relay.name)
            if registration.pubkey != pubkey:
                raise DecodeError(
                    relay.name,
                    f"registration is for {registration.pubkey}, requested {pubkey}"
                )
        except RelayQueryError as e:
            return self._failure(relay, e)

        return QueryResult.success(relay.name, registration)

    async def query_delivered_payloads(
        self,
        relay: RelayIdentity,
        options: Optional[PayloadDeliveredQueryOptions] = None
    ) -> QueryResult:
        """Get payloads the relay delivered to proposers.

        Args:
            relay: Relay to query
            options: Filters (slot, cursor, limit, block hash, pubkeys, order)

        Returns:
            Result carrying a list of PayloadBidtrace
        """
        options = options or PayloadDeliveredQueryOptions()
        try:
            payload = await self._fetch(relay, GET_DELIVERED_PAYLOADS, params=options.to_params())
            traces = parse_model_list(PayloadBidtrace, payload, relay.name)
        except RelayQueryError as e:
            return self._failure(relay, e)
        return QueryResult.success(relay.name, traces)

    async def query_builder_blocks_received(
        self,
        relay: RelayIdentity,
        options: Optional[BuilderBidsReceivedOptions] = None
    ) -> QueryResult:
        """Get block submissions the relay received from builders.

        Args:
            relay: Relay to query
            options: Filters (slot, block hash, block number, builder pubkey, limit)

        Returns:
            Result carrying a list of BuilderBlockBidtrace
        """
        options = options or BuilderBidsReceivedOptions()
        try:
            payload = await self._fetch(relay, GET_BUILDER_BLOCKS_RECEIVED, params=options.to_params())
            bids = parse_model_list(BuilderBlockBidtrace, payload, relay.name)
        except RelayQueryError as e:
            return self._failure(relay, e)
        return QueryResult.success(relay.name, bids)
