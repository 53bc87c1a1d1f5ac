"""Data models for relaywatch using Pydantic for validation and type safety."""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Generic, List, Optional, TypeVar, Union
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from relaywatch.constants import ADDRESS_LENGTH, MAX_BIDTRACE_LIMIT, PUBKEY_LENGTH, SLOTS_PER_EPOCH
from relaywatch.exceptions import ErrorKind, InvalidInputError


T = TypeVar('T')

HEX_PATTERN = re.compile(r'(?:[0-9a-fA-F]{2})*')


def _normalize_hex(value: Union[str, bytes], length: int, label: str) -> str:
    """Return ``value`` as lowercase 0x-prefixed hex of exactly ``length`` bytes."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == '0x':
            text = text[2:]
        if not HEX_PATTERN.fullmatch(text):
            raise InvalidInputError(f"{label} is not valid hex: {value!r}")
        raw = bytes.fromhex(text)
    else:
        raise InvalidInputError(
            f"{label} must be a hex string or bytes, got {type(value).__name__}"
        )

    if len(raw) != length:
        raise InvalidInputError(f"{label} must be {length} bytes, got {len(raw)}")
    return '0x' + raw.hex()


def normalize_pubkey(value: Union[str, bytes]) -> str:
    """Normalize a BLS public key (48 bytes) to lowercase 0x-hex.

    Args:
        value: Hex string (with or without 0x, any case) or raw bytes

    Returns:
        The canonical pubkey string

    Raises:
        InvalidInputError: If the value is not a 48-byte key
    """
    return _normalize_hex(value, PUBKEY_LENGTH, "pubkey")


def normalize_address(value: Union[str, bytes]) -> str:
    """Normalize a 20-byte execution address to lowercase 0x-hex."""
    return _normalize_hex(value, ADDRESS_LENGTH, "address")


class Network(str, Enum):
    """Supported networks."""
    MAINNET = "mainnet"
    SEPOLIA = "sepolia"
    HOLESKY = "holesky"
    HOODI = "hoodi"


class RelayIdentity(BaseModel):
    """A relay known to the registry."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    url: str
    pubkey: Optional[str] = None

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip('/')

    @field_validator('pubkey')
    @classmethod
    def validate_pubkey(cls, v: Optional[str]) -> Optional[str]:
        return normalize_pubkey(v) if v else None

    @classmethod
    def from_url(cls, name: str, url: str) -> 'RelayIdentity':
        """Build an identity from a MEV-boost style ``https://<pubkey>@host`` URL.

        The userinfo part is the relay's public key; it is moved to ``pubkey``
        and stripped from the URL used for requests.
        """
        parts = urlsplit(url.strip())
        userinfo, _, host = parts.netloc.rpartition('@')
        base = urlunsplit((parts.scheme, host, parts.path, '', ''))
        return cls(name=name, url=base, pubkey=userinfo or None)


class ValidatorRegistration(BaseModel):
    """A validator's registration as reported by one relay.

    A point-in-time claim by the relay, not a guarantee that the relay will
    build the validator's block.
    """
    model_config = ConfigDict(frozen=True)

    pubkey: str
    fee_recipient: str
    gas_limit: int = Field(..., ge=0)
    timestamp: int = Field(..., ge=0)
    signature: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def flatten_signed_message(cls, data: Any) -> Any:
        """Accept the relay wire form ``{"message": {...}, "signature": ...}``."""
        if isinstance(data, dict) and isinstance(data.get('message'), dict):
            flat = dict(data['message'])
            if 'signature' in data:
                flat['signature'] = data['signature']
            return flat
        return data

    @field_validator('pubkey', mode='before')
    @classmethod
    def validate_pubkey(cls, v: Any) -> str:
        return normalize_pubkey(v)

    @field_validator('fee_recipient', mode='before')
    @classmethod
    def validate_fee_recipient(cls, v: Any) -> str:
        return normalize_address(v)

    @field_validator('signature')
    @classmethod
    def lowercase_signature(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v.startswith(('0x', '0X')):
            raise ValueError("Signature must start with 0x")
        return v.lower()

    @property
    def registered_at(self) -> datetime:
        """Registration timestamp as an aware UTC datetime."""
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


class EpochValidatorEntry(BaseModel):
    """A proposer scheduled in the queried window, as reported by a relay."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    slot: int = Field(..., ge=0)
    validator_index: Optional[int] = Field(None, ge=0)
    registration: ValidatorRegistration = Field(..., alias='entry')

    @property
    def pubkey(self) -> str:
        return self.registration.pubkey


class EpochWindow(BaseModel):
    """Half-open slot range ``[start_slot, end_slot)``."""
    model_config = ConfigDict(frozen=True)

    start_slot: int = Field(..., ge=0)
    end_slot: int = Field(..., ge=0)

    @model_validator(mode='after')
    def check_bounds(self) -> 'EpochWindow':
        if self.start_slot >= self.end_slot:
            raise ValueError("Invalid slot window: start must be less than end")
        return self

    @classmethod
    def from_epoch(cls, epoch: int, epochs: int = 2) -> 'EpochWindow':
        """Window covering ``epochs`` consecutive epochs starting at ``epoch``.

        The default of two epochs matches what relays serve from the
        validators endpoint (current and next epoch).
        """
        if epoch < 0 or epochs < 1:
            raise InvalidInputError(f"Invalid epoch window: epoch={epoch}, epochs={epochs}")
        start = epoch * SLOTS_PER_EPOCH
        return cls(start_slot=start, end_slot=start + epochs * SLOTS_PER_EPOCH)

    @property
    def start_epoch(self) -> int:
        return self.start_slot // SLOTS_PER_EPOCH

    @property
    def size(self) -> int:
        return self.end_slot - self.start_slot

    def contains(self, slot: int) -> bool:
        return self.start_slot <= slot < self.end_slot

    def slots(self) -> range:
        return range(self.start_slot, self.end_slot)


class QueryResult(BaseModel, Generic[T]):
    """Outcome of one relay query: a value on success, an error kind otherwise."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    relay: str
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None

    @model_validator(mode='after')
    def check_outcome(self) -> 'QueryResult':
        if self.error is not None and self.value is not None:
            raise ValueError("A failed result cannot carry a value")
        return self

    @classmethod
    def success(cls, relay: str, value: T) -> 'QueryResult[T]':
        return cls(relay=relay, value=value)

    @classmethod
    def failure(cls, relay: str, error: ErrorKind, detail: Optional[str] = None) -> 'QueryResult[T]':
        return cls(relay=relay, error=error, detail=detail)

    @property
    def ok(self) -> bool:
        return self.error is None


class PayloadBidtrace(BaseModel):
    """Payload delivered by a relay to a proposer."""
    model_config = ConfigDict(frozen=True)

    slot: int = Field(..., ge=0)
    parent_hash: str
    block_hash: str
    builder_pubkey: str
    proposer_pubkey: str
    proposer_fee_recipient: str
    gas_limit: int = Field(..., ge=0)
    gas_used: int = Field(..., ge=0)
    value: int = Field(..., ge=0)  # Wei
    block_number: Optional[int] = Field(None, ge=0)
    num_tx: Optional[int] = Field(None, ge=0)

    @field_validator(
        'parent_hash', 'block_hash', 'builder_pubkey',
        'proposer_pubkey', 'proposer_fee_recipient'
    )
    @classmethod
    def lowercase_hex(cls, v: str) -> str:
        """Ensure hex values are lowercase."""
        return v.lower()


class BuilderBlockBidtrace(PayloadBidtrace):
    """Block submission received by a relay from a builder."""
    timestamp: Optional[int] = Field(None, ge=0)
    timestamp_ms: Optional[int] = Field(None, ge=0)
    optimistic_submission: Optional[bool] = None


class _BidtraceQueryOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    slot: Optional[int] = Field(None, ge=0)
    block_hash: Optional[str] = None
    block_number: Optional[int] = Field(None, ge=0)
    builder_pubkey: Optional[str] = None
    limit: Optional[int] = Field(None, ge=1, le=MAX_BIDTRACE_LIMIT)

    def to_params(self) -> Dict[str, str]:
        """Render the set filters as relay query parameters."""
        return {
            key: str(value)
            for key, value in self.model_dump(exclude_none=True).items()
        }


class PayloadDeliveredQueryOptions(_BidtraceQueryOptions):
    """Filters for the proposer_payload_delivered endpoint."""
    cursor: Optional[int] = Field(None, ge=0)
    proposer_pubkey: Optional[str] = None
    order_by: Optional[str] = Field(None, pattern="^-?value$")


class BuilderBidsReceivedOptions(_BidtraceQueryOptions):
    """Filters for the builder_blocks_received endpoint."""


class RegistrationReport(BaseModel):
    """Per-relay breakdown of a registration lookup for one pubkey."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    pubkey: str
    results: Dict[str, QueryResult]
    registrations: Dict[str, ValidatorRegistration]

    @property
    def unregistered(self) -> List[str]:
        """Relays that answered that the pubkey is not registered."""
        return sorted(
            name for name, result in self.results.items()
            if result.error == ErrorKind.NOT_REGISTERED
        )

    @property
    def failures(self) -> Dict[str, QueryResult]:
        """Relays that could not answer (anything but success or not registered)."""
        return {
            name: result for name, result in self.results.items()
            if not result.ok and result.error != ErrorKind.NOT_REGISTERED
        }


class SlotReport(BaseModel):
    """Per-relay breakdown plus the merged slot -> relays view for a window."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    window: EpochWindow
    results: Dict[str, QueryResult]
    slots: Dict[int, FrozenSet[str]]

    @property
    def failures(self) -> Dict[str, QueryResult]:
        return {name: result for name, result in self.results.items() if not result.ok}

    def relays_for_slot(self, slot: int) -> FrozenSet[str]:
        return self.slots.get(slot, frozenset())
