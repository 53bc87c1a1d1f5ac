"""Shared fixtures: sample relay payloads and local relay stubs."""

from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer


PUBKEY = "0x" + "ab" * 48
OTHER_PUBKEY = "0x" + "cd" * 48
FEE_RECIPIENT = "0x" + "aa" * 20
SIGNATURE = "0x" + "11" * 96


def registration_payload(
    pubkey: str = PUBKEY,
    fee_recipient: str = FEE_RECIPIENT,
    gas_limit: int = 30000000,
    timestamp: int = 1700000000
) -> Dict[str, Any]:
    """Signed registration as relays serve it (numbers as strings)."""
    return {
        "message": {
            "fee_recipient": fee_recipient,
            "gas_limit": str(gas_limit),
            "timestamp": str(timestamp),
            "pubkey": pubkey,
        },
        "signature": SIGNATURE,
    }


def validator_payload(slot: int, validator_index: int = 1, pubkey: str = PUBKEY) -> Dict[str, Any]:
    """One element of the /relay/v1/builder/validators response."""
    return {
        "slot": str(slot),
        "validator_index": str(validator_index),
        "entry": registration_payload(pubkey=pubkey),
    }


@asynccontextmanager
async def _relay_stub(routes: Dict[str, Callable[[web.Request], Awaitable[web.StreamResponse]]]):
    """Serve ``routes`` (path -> aiohttp handler) on a local port; yields the base URL."""
    app = web.Application()
    for path, handler in routes.items():
        app.router.add_get(path, handler)
    server = TestServer(app)
    await server.start_server()
    try:
        yield f"http://{server.host}:{server.port}"
    finally:
        await server.close()


@pytest.fixture
def relay_stub():
    """Factory for local relay stubs."""
    return _relay_stub
