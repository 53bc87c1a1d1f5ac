"""Beacon chain time helpers: wall clock to slot, epoch and query window."""

from datetime import datetime, timezone, timedelta
from typing import Optional, Union

from relaywatch.constants import SECONDS_PER_SLOT, SLOTS_PER_EPOCH
from relaywatch.models import EpochWindow, Network

# Network genesis times
NETWORK_GENESIS_TIMES = {
    Network.MAINNET: datetime(2020, 12, 1, 12, 0, 23, tzinfo=timezone.utc),
    Network.SEPOLIA: datetime(2022, 6, 20, 14, 0, 0, tzinfo=timezone.utc),
    Network.HOLESKY: datetime(2023, 9, 28, 12, 0, 0, tzinfo=timezone.utc),
    Network.HOODI: datetime(2025, 3, 17, 12, 10, 0, tzinfo=timezone.utc),
}


def _genesis(network: Union[str, Network]) -> datetime:
    try:
        return NETWORK_GENESIS_TIMES[Network(network)]
    except ValueError:
        raise ValueError(f"Unknown network: {network}") from None


def slot_to_timestamp(slot: int, network: Union[str, Network] = Network.MAINNET) -> datetime:
    """Convert a slot number to its corresponding timestamp.

    Args:
        slot: The slot number
        network: The network name (mainnet, sepolia, holesky, hoodi)

    Returns:
        The timestamp for the start of the slot

    Raises:
        ValueError: If network is not recognized
    """
    return _genesis(network) + timedelta(seconds=slot * SECONDS_PER_SLOT)


def timestamp_to_slot(
    timestamp: Union[datetime, int],
    network: Union[str, Network] = Network.MAINNET
) -> int:
    """Convert a timestamp to its corresponding slot number.

    Args:
        timestamp: The timestamp (datetime or unix timestamp)
        network: The network name

    Returns:
        The slot number

    Raises:
        ValueError: If network is not recognized or timestamp is before genesis
    """
    genesis = _genesis(network)

    if isinstance(timestamp, int):
        timestamp = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    elif timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    if timestamp < genesis:
        raise ValueError(f"Timestamp {timestamp} is before genesis time {genesis}")

    delta = timestamp - genesis
    return int(delta.total_seconds() // SECONDS_PER_SLOT)


def slot_to_epoch(slot: int) -> int:
    """Convert a slot number to its epoch number."""
    return slot // SLOTS_PER_EPOCH


def epoch_to_slot(epoch: int) -> int:
    """Convert an epoch number to its starting slot."""
    return epoch * SLOTS_PER_EPOCH


def current_slot(
    network: Union[str, Network] = Network.MAINNET,
    now: Optional[datetime] = None
) -> int:
    """Slot in progress at ``now`` (default: the current wall-clock time)."""
    return timestamp_to_slot(now or datetime.now(timezone.utc), network)


def current_and_next_epoch_window(
    network: Union[str, Network] = Network.MAINNET,
    now: Optional[datetime] = None
) -> EpochWindow:
    """Slot window of the current and next epoch, as served by relays.

    Args:
        network: The network name
        now: Reference time (default: the current wall-clock time)

    Returns:
        Half-open window starting at the first slot of the current epoch
    """
    return EpochWindow.from_epoch(slot_to_epoch(current_slot(network, now)), epochs=2)
