"""relaywatch - which MEV-Boost relays will build the upcoming beacon chain blocks."""

# Import the synchronous version by default for simplicity
from relaywatch.relaywatch_sync import RelayWatch
# Keep async version available for those who need it
from relaywatch.relaywatch import RelayWatchAsync
from relaywatch.aggregator import FanOutAggregator
from relaywatch.connectors.relay_client import RelayClient
from relaywatch.registry import RelayRegistry
from relaywatch.exceptions import (
    ErrorKind, RelayWatchError, InvalidInputError, AggregationCancelledError
)
from relaywatch.models import (
    Network, RelayIdentity, ValidatorRegistration, EpochValidatorEntry,
    EpochWindow, QueryResult, RegistrationReport, SlotReport,
    PayloadDeliveredQueryOptions, BuilderBidsReceivedOptions
)
from relaywatch.config import RelayWatchConfig, RelayConfig, ConfigManager

__version__ = "0.1.1"
__author__ = "relaywatch Contributors"

__all__ = [
    # Main classes
    "RelayWatch",  # Synchronous version (default)
    "RelayWatchAsync",  # Async version for advanced use
    "FanOutAggregator",
    "RelayClient",
    "RelayRegistry",

    # Errors
    "ErrorKind",
    "RelayWatchError",
    "InvalidInputError",
    "AggregationCancelledError",

    # Data models
    "Network",
    "RelayIdentity",
    "ValidatorRegistration",
    "EpochValidatorEntry",
    "EpochWindow",
    "QueryResult",
    "RegistrationReport",
    "SlotReport",
    "PayloadDeliveredQueryOptions",
    "BuilderBidsReceivedOptions",

    # Configuration
    "RelayWatchConfig",
    "RelayConfig",
    "ConfigManager",
]

# Module-level docstring for help()
__doc__ = """
relaywatch - Query MEV-Boost relays about upcoming block proposers

Quick Start:
    from relaywatch import RelayWatch

    with RelayWatch() as watch:
        # Which relays know the proposers of the current and next epoch?
        report = watch.get_validator_registration_for_all_slots()
        print(report.slots)

        # Slots most likely built by the proposer's own execution client
        print(watch.get_vanilla_slots())

Environment Variables:
    - RELAYWATCH_LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)
    - RELAYWATCH_NETWORK (mainnet, sepolia, holesky, hoodi)
    - RELAYWATCH_RELAY_TIMEOUT (seconds per relay request)
    - RELAYWATCH_AGGREGATE_TIMEOUT (seconds per multi-relay query)
    - RELAYWATCH_RELAYS (comma-separated name=url pairs)
"""
