"""External data connectors for relaywatch."""

from relaywatch.connectors.relay_client import RelayClient

__all__ = [
    'RelayClient',
]
