"""Error types for hedera-did.

Per-message problems (decode, validation) are recovered by the resolution
pipeline; configuration and transport problems reach the caller.
"""


class HederaDidError(Exception):
    """Base exception for hedera-did operations."""


class InvalidDIDError(HederaDidError):
    """DID string is structurally invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(f"DID string is invalid: {message}")


class ValidationError(HederaDidError):
    """Validation failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Validation error: {message}")


class UnsupportedKeyError(ValidationError):
    """Key length, prefix, curve or format is not supported."""


class DecodeError(HederaDidError):
    """Decoding of base64, JSON, multibase or JWK data failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Decode error: {message}")


class CodecMismatchError(DecodeError):
    """Stored multicodec prefix does not match the expected codec."""


class SerializationError(HederaDidError):
    """Serialization or canonicalization failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Serialization error: {message}")


class TransportError(HederaDidError):
    """Mirror node request failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(f"Transport error: {message}")
        self.status_code = status_code


class ConflictError(HederaDidError):
    """Log contents conflict with the document state being folded."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Conflict: {message}")


class InvalidSignatureError(HederaDidError):
    """Signature verification failed."""

    def __init__(self, message: str = "Signature verification failed") -> None:
        super().__init__(message)


class ResolutionCancelled(HederaDidError):
    """Resolution was cancelled before it finished."""
