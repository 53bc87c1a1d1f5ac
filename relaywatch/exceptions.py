"""Error kinds and exception hierarchy for relaywatch."""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a failed relay query."""
    NOT_REGISTERED = "not_registered"
    TRANSPORT = "transport"
    DECODE = "decode"
    INVALID_INPUT = "invalid_input"
    INTERNAL = "internal"


class RelayWatchError(Exception):
    """Base class for all relaywatch errors."""


class InvalidInputError(RelayWatchError, ValueError):
    """Raised for queries no relay could meaningfully answer."""


class AggregationCancelledError(RelayWatchError):
    """Raised when a fan-out query is abandoned before every relay answered."""


class RelayQueryError(RelayWatchError):
    """Failure of a single relay call, tagged with its kind."""

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, relay: str, message: str):
        super().__init__(f"{relay}: {message}")
        self.relay = relay
        self.message = message


class NotRegisteredError(RelayQueryError):
    kind = ErrorKind.NOT_REGISTERED


class TransportError(RelayQueryError):
    kind = ErrorKind.TRANSPORT


class DecodeError(RelayQueryError):
    kind = ErrorKind.DECODE
