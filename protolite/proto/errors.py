"""Exception hierarchy for the protolite runtime.

Wire-level decode errors are unrecoverable for the buffer being decoded.
Callers are expected to drop the buffer (or connection) rather than retry.
"""


class ProtoliteError(RuntimeError):
    """Base exception for all protolite runtime errors."""


class SchemaError(ProtoliteError):
    """Raised when a message schema is invalid or a type cannot be resolved."""


class WireError(ProtoliteError):
    """Base exception for wire format errors."""


class EncodeError(WireError):
    """Raised when a value cannot be represented on the wire."""


class DecodeError(WireError):
    """Raised when wire bytes cannot be decoded."""


class MalformedVarintError(DecodeError):
    """Raised when a varint runs past 10 bytes or past the end of the buffer."""


class TruncatedMessageError(DecodeError):
    """Raised when a length-delimited region or message boundary is exceeded."""


class MissingFieldError(DecodeError):
    """Raised when a decoded message lacks a required field."""


class TypeMismatchError(ProtoliteError, TypeError):
    """Raised when a plain object's shape contradicts the message schema."""
