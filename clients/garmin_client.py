"""Garmin Connect client for uploading activity files."""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from clients.sso import AuthSession
from clients.token_store import TokenStore
from clients.tokens import TokenExchanger
from clients.transport import HttpResponse, RequestsTransport, Transport
from config.settings import (
    API_USER_AGENT,
    CONNECT_API_URL,
    GARMIN_DOMAIN,
    UPLOAD_PATH,
    UPLOAD_TIMEOUT_SECONDS,
)
from models.tokens import OAuth1Credential, OAuth2Credential
from utils.errors import (
    AuthenticationError,
    CredentialCacheError,
    DuplicateError,
    LogicalUploadFailure,
    TokenError,
    TransportError,
    UploadError,
    preview,
)

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"
    FAILED = "failed"


@dataclass
class UploadResult:
    """Successful upload response."""

    status_code: int
    file_path: Path
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def successes(self) -> list:
        result = self.body.get("detailedImportResult")
        if not isinstance(result, dict):
            return []
        return result.get("successes") or []


def classify_upload_response(status_code: int, body: str, file_path: Path) -> UploadResult:
    """Turn an upload response into a result or an exception.

    Raises:
        DuplicateError: HTTP 409, the activity already exists
        UploadError: Any other HTTP error
        LogicalUploadFailure: 2xx with a non-empty failures list
    """
    if status_code == 409:
        raise DuplicateError("Duplicate activity (already uploaded to Garmin)",
                             status_code=status_code, body=preview(body))
    if status_code >= 400:
        raise UploadError(f"Upload failed (HTTP {status_code}): {preview(body)}",
                          status_code=status_code, body=preview(body))

    try:
        payload = json.loads(body) if body else {}
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    result = payload.get("detailedImportResult")
    if not isinstance(result, dict):
        result = {}
    failures = result.get("failures") or []
    if failures:
        raise LogicalUploadFailure(f"Upload reported failures: {failures}",
                                   failures=failures, status_code=status_code,
                                   body=preview(body))

    return UploadResult(status_code=status_code, file_path=file_path, body=payload)


class GarminClient:
    """Client for authenticating with and uploading to Garmin Connect.

    Not safe for concurrent uploads: a token refresh replaces the shared
    OAuth2 credential and rewrites the cache. Give concurrent workers their
    own client and their own token directory.
    """

    def __init__(self, token_store: Optional[TokenStore] = None,
                 transport: Optional[Transport] = None,
                 domain: str = GARMIN_DOMAIN,
                 auth_session: Optional[AuthSession] = None,
                 exchanger: Optional[TokenExchanger] = None,
                 upload_timeout: float = UPLOAD_TIMEOUT_SECONDS):
        """Initialize Garmin client.

        Args:
            token_store: Credential cache (defaults to the app directory)
            transport: HTTP transport shared by all requests
            domain: Garmin domain, garmin.com or garmin.cn
        """
        self.token_store = token_store or TokenStore()
        self.transport = transport or RequestsTransport()
        self.domain = domain or "garmin.com"
        self.auth_session = auth_session or AuthSession(self.transport, domain=self.domain)
        self.exchanger = exchanger or TokenExchanger(self.transport)
        self.upload_timeout = upload_timeout

        self.oauth1: Optional[OAuth1Credential] = None
        self.oauth2: Optional[OAuth2Credential] = None
        self._failed = False

    @property
    def state(self) -> SessionState:
        if self._failed:
            return SessionState.FAILED
        if self.oauth1 is None or self.oauth2 is None:
            return SessionState.UNAUTHENTICATED
        if self.oauth2.expired():
            return SessionState.EXPIRED
        return SessionState.AUTHENTICATED

    def is_authenticated(self) -> bool:
        """Check if client holds a usable (possibly expired) session."""
        return self.state in (SessionState.AUTHENTICATED, SessionState.EXPIRED)

    def resume(self) -> bool:
        """Restore a cached session, refreshing OAuth2 if it has expired.

        Returns:
            True if a usable session was restored, False if a login is needed
        """
        cached = self.token_store.load()
        if cached is None:
            logger.info("No cached Garmin session")
            return False

        self.oauth1, self.oauth2 = cached
        if self.oauth1.domain:
            self.domain = self.oauth1.domain

        if not self.oauth2.expired():
            self._failed = False
            logger.info("Resumed cached Garmin session")
            return True

        logger.info("Cached session expired, refreshing")
        try:
            self.refresh()
        except (TokenError, TransportError, CredentialCacheError) as e:
            logger.warning(f"Failed to refresh cached session: {e}")
            self.oauth1 = None
            self.oauth2 = None
            return False
        self._failed = False
        return True

    def login(self, email: str, password: str):
        """Perform a fresh SSO login and cache both credentials.

        Raises:
            AuthenticationError: If the handshake fails
            TokenError: If the ticket cannot be exchanged
            TransportError: On network failure
        """
        try:
            sso = self.auth_session.login(email, password)
            oauth1 = self.exchanger.mint_oauth1(sso.consumer, sso.ticket, sso.domain)
            oauth2 = self.exchanger.exchange_oauth2(sso.consumer, oauth1, sso.domain)
        except (AuthenticationError, TokenError, TransportError):
            self._failed = True
            raise

        self.oauth1, self.oauth2 = oauth1, oauth2
        self.domain = sso.domain
        self._failed = False
        logger.info("Successfully authenticated with Garmin Connect")

        try:
            self.token_store.save_oauth1(oauth1)
            self.token_store.save_oauth2(oauth2)
        except CredentialCacheError as e:
            logger.warning(f"Could not cache tokens: {e}")

    def refresh(self):
        """Replace the OAuth2 credential using the cached OAuth1 token.

        Only the OAuth2 document of the cache is rewritten.
        """
        if self.oauth1 is None:
            raise TokenError("No OAuth1 credential to refresh from")
        self.oauth2 = self.exchanger.refresh(self.oauth1)
        try:
            self.token_store.save_oauth2(self.oauth2)
        except CredentialCacheError as e:
            logger.warning(f"Could not cache refreshed token: {e}")

    def upload(self, file_path: Union[str, Path]) -> UploadResult:
        """Upload a FIT file to Garmin Connect.

        An expired token is refreshed first. A 401 response triggers one
        refresh and one retry; the result of the retry is final.

        Raises:
            DuplicateError: The activity already exists (HTTP 409)
            LogicalUploadFailure: Garmin accepted the request but reported failures
            UploadError: Any other rejection, including a second 401
            TokenError: If a needed refresh fails
            TransportError: On network failure or timeout
        """
        file_path = Path(file_path)
        if self.oauth2 is None:
            raise UploadError("Not authenticated")

        if self.oauth2.expired():
            logger.info("Token expired, refreshing before upload")
            self.refresh()

        resp = self._send_upload(file_path)
        if resp.status_code == 401:
            logger.info("Token rejected, refreshing")
            self.refresh()
            resp = self._send_upload(file_path)

        result = classify_upload_response(resp.status_code, resp.text, file_path)
        logger.info(f"Uploaded {file_path.name}")
        return result

    def _upload_url(self) -> str:
        return CONNECT_API_URL.format(domain=self.domain) + UPLOAD_PATH

    def _send_upload(self, file_path: Path) -> HttpResponse:
        headers = {
            "Authorization": self.oauth2.bearer,
            "User-Agent": API_USER_AGENT,
            "DI-Backend": f"connectapi.{self.domain}",
            "NK": "NT",
        }
        try:
            with open(file_path, "rb") as f:
                return self.transport.send(
                    "POST",
                    self._upload_url(),
                    headers=headers,
                    files={"file": (file_path.name, f, "application/octet-stream")},
                    timeout=self.upload_timeout,
                )
        except OSError as e:
            raise UploadError(f"Cannot read {file_path}: {e}") from e
