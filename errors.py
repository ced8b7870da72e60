"""
errors.py
========
Error kinds raised by the authenticator core and the structured result type
returned to callers.

Every failure carries a ``kind`` string so the caller (the platform glue or
the demo loop in main.py) can record it against the originating request
without inspecting exception classes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

CRYPTO_PROVIDER_UNAVAILABLE = "CryptoProviderUnavailable"
KEY_IMPORT_FAILURE = "KeyImportFailure"
ENCODING_OVERFLOW = "EncodingOverflow"
NO_MATCHING_CREDENTIAL = "NoMatchingCredential"
STORE_UNAVAILABLE = "StoreUnavailable"
REQUEST_PARSE_ERROR = "RequestParseError"
UNKNOWN_CREDENTIAL = "UnknownCredential"


class AuthenticatorError(Exception):
    """Base class for all failures surfaced by the authenticator."""

    kind = "AuthenticatorError"


class CryptoProviderUnavailable(AuthenticatorError):
    """Key generation or signing cannot proceed. Fatal, never retried."""

    kind = CRYPTO_PROVIDER_UNAVAILABLE


class KeyImportFailure(AuthenticatorError):
    """Stored key material is malformed; the record is unusable until repaired."""

    kind = KEY_IMPORT_FAILURE


class EncodingOverflow(AuthenticatorError):
    """A value does not fit its fixed-width wire slot."""

    kind = ENCODING_OVERFLOW


class StoreUnavailable(AuthenticatorError):
    """The credential store could not be read or written."""

    kind = STORE_UNAVAILABLE


class RequestParseError(AuthenticatorError):
    kind = REQUEST_PARSE_ERROR


class UnknownCredential(AuthenticatorError):
    kind = UNKNOWN_CREDENTIAL


@dataclass
class OperationResult:
    """
    Success/failure envelope returned by the invocation entry points.

    - ok: True when ``value`` holds the operation output
    - kind: error kind (one of the module constants) when ok is False
    - message: human-readable failure description
    """

    ok: bool
    value: Any = None
    kind: Optional[str] = None
    message: str = ""
    error: Optional[AuthenticatorError] = None

    @classmethod
    def success(cls, value: Any) -> "OperationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: str, message: str) -> "OperationResult":
        return cls(ok=False, kind=kind, message=message)

    @classmethod
    def from_error(cls, error: AuthenticatorError) -> "OperationResult":
        return cls(ok=False, kind=error.kind, message=str(error), error=error)

    def unwrap(self) -> Any:
        """Return the value, or raise the failure as an exception."""
        if self.ok:
            return self.value
        if self.error is not None:
            raise self.error
        error = AuthenticatorError(self.message)
        error.kind = self.kind or AuthenticatorError.kind
        raise error
