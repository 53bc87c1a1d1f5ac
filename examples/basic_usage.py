"""Basic usage examples for the relaywatch library."""

import asyncio
from relaywatch import RelayWatch, RelayWatchAsync
from relaywatch.models import PayloadDeliveredQueryOptions
from relaywatch.normalizer import slot_relay_frame
from relaywatch.utils import current_and_next_epoch_window

# Replace with the validator to look up
PUBKEY = "0xa08d6a2a3a0f8d3e0c1ce04c1e5e7a3f7d1b0f21a8d2b3c6e3e2f7c6c1d40f6a6e9d1c4c3b2a1f0e9d8c7b6a5f4e3d2c"


async def upcoming_slots():
    """Which relays know the proposers of the current and next epoch."""
    async with RelayWatchAsync(use_env_vars=True) as watch:
        print("=== Upcoming Slots ===\n")

        report = await watch.get_validator_registration_for_all_slots()
        print(f"Window: slots {report.window.start_slot} to {report.window.end_slot - 1}")
        print(slot_relay_frame(report.slots, report.window).head(10))

        for name, result in sorted(report.failures.items()):
            print(f"  {name} did not answer: {result.error.value} ({result.detail})")

        vanilla = await watch.get_vanilla_slots(report.window)
        print(f"\n{len(vanilla)} slots likely built locally: {vanilla[:10]}...")


async def validator_registrations():
    """Where a single validator is registered, relay by relay."""
    async with RelayWatchAsync(use_env_vars=True) as watch:
        print("\n=== Validator Registrations ===\n")

        report = await watch.get_validator_registration_on_all_relays(PUBKEY, timeout=10)
        for name, registration in report.registrations.items():
            print(f"  {name}: fee recipient {registration.fee_recipient}, gas limit {registration.gas_limit}")
        print(f"Not registered with: {', '.join(report.unregistered) or 'none'}")

        # Only the bloxroute relays, through the group alias
        report = await watch.get_validator_registration_on_all_relays(PUBKEY, relays="bloxroute")
        print(f"bloxroute relays holding a registration: {list(report.registrations)}")


def sync_usage():
    """The synchronous client for scripts and notebooks."""
    print("\n=== Synchronous Client ===\n")

    with RelayWatch() as watch:
        for relay in watch.list_relays():
            print(f"  {relay.name:24} {relay.url}")

        window = current_and_next_epoch_window()
        result = watch.get_validators_for_current_and_next_epoch("flashbots", window)
        if result.ok:
            print(f"flashbots knows {len(result.value)} of {window.size} upcoming proposers")

        payloads = watch.get_payload_delivered_bidtraces(
            "ultrasound", PayloadDeliveredQueryOptions(limit=5)
        )
        if payloads.ok:
            for trace in payloads.value:
                print(f"  slot {trace.slot}: {trace.value / 1e18:.4f} ETH to {trace.proposer_fee_recipient}")


async def main():
    await upcoming_slots()
    await validator_registrations()


if __name__ == "__main__":
    asyncio.run(main())
    sync_usage()
