"""Tests for utility functions."""

import pytest
from datetime import datetime, timezone, timedelta

from relaywatch.constants import SECONDS_PER_SLOT, SLOTS_PER_EPOCH
from relaywatch.models import EpochWindow, Network
from relaywatch.utils import (
    NETWORK_GENESIS_TIMES,
    slot_to_timestamp, timestamp_to_slot,
    slot_to_epoch, epoch_to_slot,
    current_slot, current_and_next_epoch_window
)


GENESIS_TIME = NETWORK_GENESIS_TIMES[Network.MAINNET]


class TestConstants:
    """Test that constants have expected values."""

    def test_consensus_constants(self):
        assert SECONDS_PER_SLOT == 12
        assert SLOTS_PER_EPOCH == 32

    def test_network_genesis_times(self):
        """Every network has a timezone-aware genesis time."""
        assert set(NETWORK_GENESIS_TIMES) == set(Network)
        for genesis in NETWORK_GENESIS_TIMES.values():
            assert genesis.tzinfo == timezone.utc


class TestSlotTimestampConversion:
    """Test slot/timestamp conversion functions."""

    def test_slot_to_timestamp_mainnet(self):
        assert slot_to_timestamp(0) == GENESIS_TIME
        assert slot_to_timestamp(1) == GENESIS_TIME + timedelta(seconds=12)
        assert slot_to_timestamp(32) == GENESIS_TIME + timedelta(seconds=384)

    def test_slot_to_timestamp_other_networks(self):
        assert slot_to_timestamp(0, "sepolia") == NETWORK_GENESIS_TIMES[Network.SEPOLIA]
        assert slot_to_timestamp(10, Network.HOLESKY) == (
            NETWORK_GENESIS_TIMES[Network.HOLESKY] + timedelta(seconds=120)
        )

    def test_unknown_network(self):
        with pytest.raises(ValueError, match="Unknown network"):
            slot_to_timestamp(0, "ropsten")
        with pytest.raises(ValueError, match="Unknown network"):
            timestamp_to_slot(GENESIS_TIME, "ropsten")

    def test_timestamp_to_slot(self):
        assert timestamp_to_slot(GENESIS_TIME) == 0
        assert timestamp_to_slot(GENESIS_TIME + timedelta(seconds=11)) == 0
        assert timestamp_to_slot(GENESIS_TIME + timedelta(seconds=12)) == 1
        assert timestamp_to_slot(int(GENESIS_TIME.timestamp()) + 120) == 10

    def test_naive_timestamp_is_utc(self):
        naive = datetime(2020, 12, 1, 12, 0, 47)
        assert timestamp_to_slot(naive) == 2

    def test_before_genesis(self):
        with pytest.raises(ValueError, match="before genesis"):
            timestamp_to_slot(GENESIS_TIME - timedelta(seconds=1))

    def test_round_trip(self):
        for slot in (0, 1, 31, 32, 8_000_000):
            assert timestamp_to_slot(slot_to_timestamp(slot)) == slot


class TestEpochConversion:
    """Test slot/epoch conversion."""

    def test_slot_to_epoch(self):
        assert slot_to_epoch(0) == 0
        assert slot_to_epoch(31) == 0
        assert slot_to_epoch(32) == 1
        assert slot_to_epoch(8_000_000) == 250_000

    def test_epoch_to_slot(self):
        assert epoch_to_slot(0) == 0
        assert epoch_to_slot(1) == 32
        assert epoch_to_slot(250_000) == 8_000_000


class TestCurrentWindow:
    """Test wall-clock derived slot windows."""

    def test_current_slot(self):
        now = GENESIS_TIME + timedelta(seconds=12 * 100 + 5)
        assert current_slot(Network.MAINNET, now) == 100

    def test_current_and_next_epoch_window(self):
        """The window starts at the current epoch and spans two epochs."""
        now = slot_to_timestamp(8_000_010)

        window = current_and_next_epoch_window(Network.MAINNET, now)

        assert window == EpochWindow(start_slot=8_000_000, end_slot=8_000_064)
        assert window.contains(8_000_010)

    def test_default_is_wall_clock(self):
        window = current_and_next_epoch_window()
        assert window.contains(current_slot())
