"""Tests for the relay client against local relay stubs."""

import asyncio

import pytest
from aiohttp import web

from relaywatch.config import RelayConfig
from relaywatch.connectors.relay_client import RelayClient
from relaywatch.constants import (
    CHECK_VALIDATOR_REGISTRATION, GET_BUILDER_BLOCKS_RECEIVED,
    GET_DELIVERED_PAYLOADS, GET_VALIDATORS_ENDPOINT
)
from relaywatch.exceptions import ErrorKind, InvalidInputError
from relaywatch.models import (
    BuilderBidsReceivedOptions, EpochWindow, PayloadDeliveredQueryOptions, RelayIdentity
)

from conftest import OTHER_PUBKEY, PUBKEY, registration_payload, validator_payload


def relay_at(url, name="flashbots"):
    return RelayIdentity(name=name, url=url)


def json_handler(payload, status=200, seen=None):
    async def handler(request):
        if seen is not None:
            seen.append(dict(request.query))
        return web.json_response(payload, status=status)
    return handler


def text_handler(body, status=200):
    async def handler(request):
        return web.Response(text=body, status=status)
    return handler


class TestRelayClientSession:
    """Test session lifecycle."""

    def test_initialization(self):
        client = RelayClient()
        assert client._session is None
        assert client.config.timeout == 5.0
        assert client.config.max_tries == 1

    @pytest.mark.asyncio
    async def test_context_manager(self):
        async with RelayClient() as client:
            assert client._session is not None
            session = client._session
        assert session.closed
        assert client._session is None


class TestQueryValidators:
    """Test the validators endpoint."""

    @pytest.mark.asyncio
    async def test_success(self, relay_stub):
        payload = [validator_payload(100, 7), validator_payload(101, 8)]
        async with relay_stub({GET_VALIDATORS_ENDPOINT: json_handler(payload)}) as url:
            async with RelayClient() as client:
                result = await client.query_validators(relay_at(url))

        assert result.ok
        assert result.relay == "flashbots"
        assert [(e.slot, e.validator_index) for e in result.value] == [(100, 7), (101, 8)]

    @pytest.mark.asyncio
    async def test_empty_list_is_success(self, relay_stub):
        """HTTP 200 with no validators is a success, not a failure."""
        async with relay_stub({GET_VALIDATORS_ENDPOINT: json_handler([])}) as url:
            async with RelayClient() as client:
                result = await client.query_validators(relay_at(url))

        assert result.ok
        assert result.value == []

    @pytest.mark.asyncio
    async def test_window_filter(self, relay_stub):
        payload = [validator_payload(slot) for slot in (95, 96, 159, 160)]
        async with relay_stub({GET_VALIDATORS_ENDPOINT: json_handler(payload)}) as url:
            async with RelayClient() as client:
                result = await client.query_validators(relay_at(url), EpochWindow.from_epoch(3))

        assert [e.slot for e in result.value] == [96, 159]

    @pytest.mark.asyncio
    async def test_not_found_is_transport(self, relay_stub):
        """Only the registration lookup treats 404 as not registered."""
        async with relay_stub({GET_VALIDATORS_ENDPOINT: json_handler({"code": 404}, status=404)}) as url:
            async with RelayClient() as client:
                result = await client.query_validators(relay_at(url))

        assert result.error == ErrorKind.TRANSPORT
        assert "HTTP 404" in result.detail

    @pytest.mark.asyncio
    async def test_wrong_shape(self, relay_stub):
        async with relay_stub({GET_VALIDATORS_ENDPOINT: json_handler({"validators": []})}) as url:
            async with RelayClient() as client:
                result = await client.query_validators(relay_at(url))

        assert result.error == ErrorKind.DECODE
        assert result.value is None


class TestQueryRegistration:
    """Test the single-pubkey registration lookup."""

    @pytest.mark.asyncio
    async def test_registered(self, relay_stub):
        seen = []
        handler = json_handler(registration_payload(), seen=seen)
        async with relay_stub({CHECK_VALIDATOR_REGISTRATION: handler}) as url:
            async with RelayClient() as client:
                result = await client.query_registration(relay_at(url), PUBKEY[2:].upper())

        assert result.ok
        assert result.value.pubkey == PUBKEY
        assert result.value.gas_limit == 30000000
        assert seen == [{"pubkey": PUBKEY}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 404])
    async def test_not_registered(self, relay_stub, status):
        """4xx 'no registration' answers are NOT_REGISTERED, not transport faults."""
        handler = json_handler({"code": status, "message": "no registration found"}, status=status)
        async with relay_stub({CHECK_VALIDATOR_REGISTRATION: handler}) as url:
            async with RelayClient() as client:
                result = await client.query_registration(relay_at(url), PUBKEY)

        assert result.error == ErrorKind.NOT_REGISTERED

    @pytest.mark.asyncio
    async def test_server_error(self, relay_stub):
        async with relay_stub({CHECK_VALIDATOR_REGISTRATION: text_handler("boom", status=502)}) as url:
            async with RelayClient() as client:
                result = await client.query_registration(relay_at(url), PUBKEY)

        assert result.error == ErrorKind.TRANSPORT
        assert "HTTP 502: boom" in result.detail

    @pytest.mark.asyncio
    async def test_invalid_json(self, relay_stub):
        async with relay_stub({CHECK_VALIDATOR_REGISTRATION: text_handler("{not json")}) as url:
            async with RelayClient() as client:
                result = await client.query_registration(relay_at(url), PUBKEY)

        assert result.error == ErrorKind.DECODE
        assert "invalid JSON" in result.detail

    @pytest.mark.asyncio
    async def test_schema_mismatch(self, relay_stub):
        async with relay_stub({CHECK_VALIDATOR_REGISTRATION: json_handler({"message": {}})}) as url:
            async with RelayClient() as client:
                result = await client.query_registration(relay_at(url), PUBKEY)

        assert result.error == ErrorKind.DECODE

    @pytest.mark.asyncio
    async def test_pubkey_mismatch(self, relay_stub):
        handler = json_handler(registration_payload(pubkey=OTHER_PUBKEY))
        async with relay_stub({CHECK_VALIDATOR_REGISTRATION: handler}) as url:
            async with RelayClient() as client:
                result = await client.query_registration(relay_at(url), PUBKEY)

        assert result.error == ErrorKind.DECODE
        assert OTHER_PUBKEY in result.detail

    @pytest.mark.asyncio
    async def test_timeout(self, relay_stub):
        async def slow(request):
            await asyncio.sleep(1.0)
            return web.json_response(registration_payload())

        async with relay_stub({CHECK_VALIDATOR_REGISTRATION: slow}) as url:
            async with RelayClient(RelayConfig(timeout=0.1)) as client:
                result = await client.query_registration(relay_at(url), PUBKEY)

        assert result.error == ErrorKind.TRANSPORT
        assert "timed out" in result.detail

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        async with RelayClient(RelayConfig(timeout=2)) as client:
            result = await client.query_registration(relay_at("http://127.0.0.1:1"), PUBKEY)

        assert result.error == ErrorKind.TRANSPORT

    @pytest.mark.asyncio
    async def test_invalid_pubkey_rejected_before_request(self, relay_stub):
        seen = []
        handler = json_handler(registration_payload(), seen=seen)
        async with relay_stub({CHECK_VALIDATOR_REGISTRATION: handler}) as url:
            async with RelayClient() as client:
                with pytest.raises(InvalidInputError):
                    await client.query_registration(relay_at(url), "0x1234")

        assert seen == []

    @pytest.mark.asyncio
    async def test_single_request_by_default(self, relay_stub):
        """No retries unless configured."""
        calls = []

        async def flaky(request):
            calls.append(request)
            return web.Response(text="unavailable", status=503)

        async with relay_stub({CHECK_VALIDATOR_REGISTRATION: flaky}) as url:
            async with RelayClient() as client:
                result = await client.query_registration(relay_at(url), PUBKEY)

        assert result.error == ErrorKind.TRANSPORT
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retry_on_transport_error(self, relay_stub):
        calls = []

        async def flaky(request):
            calls.append(request)
            if len(calls) == 1:
                return web.Response(text="unavailable", status=503)
            return web.json_response(registration_payload())

        async with relay_stub({CHECK_VALIDATOR_REGISTRATION: flaky}) as url:
            async with RelayClient(RelayConfig(max_tries=2)) as client:
                result = await client.query_registration(relay_at(url), PUBKEY)

        assert result.ok
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_not_registered_never_retried(self, relay_stub):
        calls = []

        async def missing(request):
            calls.append(request)
            return web.json_response({"code": 404}, status=404)

        async with relay_stub({CHECK_VALIDATOR_REGISTRATION: missing}) as url:
            async with RelayClient(RelayConfig(max_tries=3)) as client:
                result = await client.query_registration(relay_at(url), PUBKEY)

        assert result.error == ErrorKind.NOT_REGISTERED
        assert len(calls) == 1


class TestBidtraces:
    """Test the bid trace data endpoints."""

    @pytest.mark.asyncio
    async def test_delivered_payloads(self, relay_stub):
        seen = []
        payload = [{
            "slot": "8000000",
            "parent_hash": "0xabc",
            "block_hash": "0xdef",
            "builder_pubkey": "0x123",
            "proposer_pubkey": "0x456",
            "proposer_fee_recipient": "0x789",
            "gas_limit": "30000000",
            "gas_used": "12000000",
            "value": "1000000000000000000",
            "block_number": "18000000",
            "num_tx": "150",
        }]
        async with relay_stub({GET_DELIVERED_PAYLOADS: json_handler(payload, seen=seen)}) as url:
            async with RelayClient() as client:
                result = await client.query_delivered_payloads(
                    relay_at(url), PayloadDeliveredQueryOptions(slot=8000000, limit=5)
                )

        assert result.ok
        assert result.value[0].value == 10 ** 18
        assert seen == [{"slot": "8000000", "limit": "5"}]

    @pytest.mark.asyncio
    async def test_builder_blocks_received(self, relay_stub):
        payload = [{
            "slot": "8000000",
            "parent_hash": "0xabc",
            "block_hash": "0xdef",
            "builder_pubkey": "0x123",
            "proposer_pubkey": "0x456",
            "proposer_fee_recipient": "0x789",
            "gas_limit": "30000000",
            "gas_used": "12000000",
            "value": "5",
            "block_number": "18000000",
            "num_tx": "150",
            "timestamp": "1700000000",
            "timestamp_ms": "1700000000123",
            "optimistic_submission": True,
        }]
        async with relay_stub({GET_BUILDER_BLOCKS_RECEIVED: json_handler(payload)}) as url:
            async with RelayClient() as client:
                result = await client.query_builder_blocks_received(
                    relay_at(url), BuilderBidsReceivedOptions(slot=8000000)
                )

        assert result.ok
        assert result.value[0].timestamp_ms == 1700000000123
        assert result.value[0].optimistic_submission is True

    @pytest.mark.asyncio
    async def test_empty_bidtraces(self, relay_stub):
        async with relay_stub({GET_DELIVERED_PAYLOADS: json_handler([])}) as url:
            async with RelayClient() as client:
                result = await client.query_delivered_payloads(relay_at(url))

        assert result.ok
        assert result.value == []
