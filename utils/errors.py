"""Exception hierarchy shared by the FIT codec, the Garmin clients and the sync driver."""

from typing import Optional

from config.settings import BODY_PREVIEW_CHARS


def preview(text, limit: int = BODY_PREVIEW_CHARS) -> str:
    """Return at most ``limit`` characters of a response body for error messages."""
    if text is None:
        return ""
    if isinstance(text, (bytes, bytearray)):
        text = text.decode("utf-8", errors="replace")
    return text[:limit]


class Whoosh2GarminError(Exception):
    """Base class for all errors raised by this project."""


# FIT files

class FitFileError(Whoosh2GarminError):
    """Raised when a FIT file cannot be processed."""


class DecodeError(FitFileError):
    """Raised when a file is unreadable or is not an activity file."""


class EncodeError(FitFileError):
    """Raised when a corrected activity cannot be written back."""


# Network

class TransportError(Whoosh2GarminError):
    """Raised on connection failures and exceeded deadlines."""


# SSO handshake

class AuthenticationError(Whoosh2GarminError):
    """Raised when the SSO handshake cannot produce a ticket."""


class ProtocolError(AuthenticationError):
    """Raised when an expected page structure is missing (upstream markup changed)."""


class InvalidCredentialsError(AuthenticationError):
    """Raised when the identity provider rejects the email/password pair."""


class UnsupportedAuthError(AuthenticationError):
    """Raised when the account requires multi-factor authentication."""


# Token exchange

class TokenError(Whoosh2GarminError):
    """Raised when OAuth credentials cannot be minted or exchanged."""


class ExchangeError(TokenError):
    """Raised on non-200 responses from the token endpoints."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(TokenError):
    """Raised when a token endpoint returns a malformed body."""


class CredentialCacheError(Whoosh2GarminError):
    """Raised when a cached credential document cannot be read or written."""


# Upload

class UploadError(Whoosh2GarminError):
    """Raised when an upload is rejected."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DuplicateError(UploadError):
    """The activity already exists upstream (HTTP 409).

    Not a failure from the caller's point of view: the file is synced.
    """


class LogicalUploadFailure(UploadError):
    """The upload was accepted at HTTP level but the import reported failures."""

    def __init__(self, message: str, failures=None, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message, status_code=status_code, body=body)
        self.failures = failures or []
