"""Registration normalization and merging of per-relay results."""

import logging
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Set, Type, TypeVar

import pandas as pd
from pydantic import BaseModel, ValidationError

from relaywatch.exceptions import DecodeError
from relaywatch.models import (
    EpochValidatorEntry, EpochWindow, QueryResult, ValidatorRegistration,
    normalize_pubkey
)


logger = logging.getLogger(__name__)

M = TypeVar('M', bound=BaseModel)

SlotRelayMap = Dict[int, FrozenSet[str]]


def _validation_summary(error: ValidationError) -> str:
    first = error.errors()[0]
    location = '.'.join(str(part) for part in first['loc']) or '<root>'
    return f"{error.error_count()} invalid field(s), first at {location}: {first['msg']}"


def parse_model(model: Type[M], raw: Any, relay: str) -> M:
    """Validate one raw JSON object into ``model``.

    Raises:
        DecodeError: If the object does not match the schema
    """
    if not isinstance(raw, dict):
        raise DecodeError(relay, f"expected a JSON object, got {type(raw).__name__}")
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise DecodeError(relay, f"{model.__name__}: {_validation_summary(e)}") from e


def parse_model_list(model: Type[M], raw: Any, relay: str) -> List[M]:
    """Validate a raw JSON array into a list of ``model``.

    Raises:
        DecodeError: If the body is not an array or any element is invalid
    """
    if not isinstance(raw, list):
        raise DecodeError(relay, f"expected a JSON array, got {type(raw).__name__}")
    return [parse_model(model, item, relay) for item in raw]


def parse_registration(raw: Any, relay: str) -> ValidatorRegistration:
    """Convert a relay's signed registration record into canonical form."""
    return parse_model(ValidatorRegistration, raw, relay)


def parse_validator_entries(raw: Any, relay: str) -> List[EpochValidatorEntry]:
    """Convert a relay's validators-endpoint body into canonical entries."""
    return parse_model_list(EpochValidatorEntry, raw, relay)


def registrations_across_relays(
    pubkey: str,
    results: Mapping[str, QueryResult]
) -> Dict[str, ValidatorRegistration]:
    """Collect the registrations relays reported for ``pubkey``.

    Only successful results are kept; relays that failed for any reason,
    including not having the validator registered, are absent. When relays
    disagree (e.g. different fee recipients) each relay's record is kept
    as reported.

    Args:
        pubkey: Validator public key the results were queried for
        results: Mapping of relay name to registration lookup result

    Returns:
        Mapping of relay name to registration, ordered by relay name
    """
    pubkey = normalize_pubkey(pubkey)
    registrations = {}

    for relay in sorted(results):
        result = results[relay]
        if not result.ok:
            continue
        registration = result.value
        if registration.pubkey != pubkey:
            logger.warning(f"Ignoring {relay} registration for unexpected pubkey {registration.pubkey}")
            continue
        registrations[relay] = registration

    return registrations


def slot_relay_map(results: Mapping[str, QueryResult]) -> SlotRelayMap:
    """Merge validators-endpoint results into a slot -> relay names map.

    Every entry of every successful result marks its relay for its slot.
    Slots no relay reported are absent; whether that means a vanilla block
    or an unknown is the caller's decision. Keys are in ascending slot order,
    so identical input always yields an identical map.
    """
    merged: Dict[int, Set[str]] = {}

    for relay, result in results.items():
        if not result.ok:
            continue
        for entry in result.value:
            merged.setdefault(entry.slot, set()).add(relay)

    return {slot: frozenset(merged[slot]) for slot in sorted(merged)}


def validators_for_slot(
    results: Mapping[str, QueryResult],
    slot: int
) -> Dict[str, EpochValidatorEntry]:
    """Which validator each relay reports as proposer for ``slot``."""
    proposers = {}

    for relay in sorted(results):
        result = results[relay]
        if not result.ok:
            continue
        for entry in result.value:
            if entry.slot == slot:
                proposers[relay] = entry
                break

    return proposers


def vanilla_slots(slot_map: Mapping[int, FrozenSet[str]], window: EpochWindow) -> List[int]:
    """Slots of ``window`` for which no relay reported a registered proposer."""
    return [slot for slot in window.slots() if not slot_map.get(slot)]


def slot_relay_frame(
    slot_map: Mapping[int, FrozenSet[str]],
    window: Optional[EpochWindow] = None
) -> pd.DataFrame:
    """Tabular view of a slot map.

    With a window, every slot of the window gets a row, including those no
    relay reported.
    """
    slots = list(window.slots()) if window else sorted(slot_map)
    rows = []
    for slot in slots:
        relays = sorted(slot_map.get(slot, ()))
        rows.append({
            'slot': slot,
            'relays': ','.join(relays),
            'relay_count': len(relays),
            'mev_boost': bool(relays),
        })
    return pd.DataFrame(rows, columns=['slot', 'relays', 'relay_count', 'mev_boost'])
