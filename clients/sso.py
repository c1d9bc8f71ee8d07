"""Garmin SSO handshake.

Replays the sign-in sequence of the Garmin Connect mobile app:

1. fetch the shared OAuth consumer
2. GET /sso/embed to obtain session cookies
3. GET /sso/signin and scrape the CSRF token
4. POST the credentials to /sso/signin
5. check the page title of the result
6. scrape the one-time ticket from the embedded redirect

Cookies and the last resolved URL (sent as Referer) travel between steps in
an immutable :class:`SSOState`.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple

from requests.cookies import RequestsCookieJar

from clients.tokens import OAuthConsumer, fetch_consumer
from clients.transport import HttpResponse, RequestsTransport, Transport
from config.settings import AUTH_TIMEOUT_SECONDS, GARMIN_DOMAIN, SSO_BASE_URL, SSO_USER_AGENT
from utils.errors import (
    InvalidCredentialsError,
    ProtocolError,
    TransportError,
    UnsupportedAuthError,
    preview,
)

logger = logging.getLogger(__name__)

CSRF_RE = re.compile(r'name="_csrf"\s+value="(.+?)"')
TITLE_RE = re.compile(r'<title>(.+?)</title>')
TICKET_RE = re.compile(r'embed\?ticket=([^"]+)"')


@dataclass(frozen=True)
class SSOState:
    """Cookies and Referer carried from one handshake step to the next."""

    cookies: RequestsCookieJar
    last_url: Optional[str] = None


@dataclass(frozen=True)
class SSOTicket:
    """Outcome of a successful handshake."""

    ticket: str
    consumer: OAuthConsumer
    domain: str


class AuthSession:
    """Performs the cookie/CSRF/ticket SSO login against ``sso.<domain>``."""

    def __init__(self, transport: Optional[Transport] = None, domain: str = GARMIN_DOMAIN,
                 timeout: float = AUTH_TIMEOUT_SECONDS):
        self.transport = transport or RequestsTransport()
        self.domain = domain or "garmin.com"
        self.timeout = timeout

    @property
    def sso_base(self) -> str:
        return SSO_BASE_URL.format(domain=self.domain)

    @property
    def embed_url(self) -> str:
        return f"{self.sso_base}/sso/embed"

    @property
    def signin_url(self) -> str:
        return f"{self.sso_base}/sso/signin"

    def embed_params(self) -> Dict[str, str]:
        return {
            "id": "gauth-widget",
            "embedWidget": "true",
            "gauthHost": f"{self.sso_base}/sso",
        }

    def signin_params(self) -> Dict[str, str]:
        embed = self.embed_url
        return {
            "id": "gauth-widget",
            "embedWidget": "true",
            "gauthHost": embed,
            "service": embed,
            "source": embed,
            "redirectAfterAccountLoginUrl": embed,
            "redirectAfterAccountCreationUrl": embed,
        }

    def login(self, email: str, password: str) -> SSOTicket:
        """Run the full handshake and return the SSO ticket.

        Raises:
            TransportError: On network failure or a non-2xx response
            ProtocolError: If the CSRF token or ticket cannot be found
            UnsupportedAuthError: If the account requires MFA
            InvalidCredentialsError: If the credentials are rejected
        """
        consumer = fetch_consumer(self.transport, timeout=self.timeout)

        state = SSOState(cookies=RequestsCookieJar())
        _, state = self.open_embed(state)
        csrf, state = self.fetch_csrf(state)
        body, state = self.submit_credentials(state, email, password, csrf)
        self.check_title(body)
        ticket = self.extract_ticket(body)

        logger.info("SSO login succeeded, ticket obtained")
        return SSOTicket(ticket=ticket, consumer=consumer, domain=self.domain)

    def open_embed(self, state: SSOState) -> Tuple[str, SSOState]:
        """GET /sso/embed to establish session cookies (no Referer)."""
        return self._request("GET", self.embed_url, state, params=self.embed_params(),
                             use_referer=False)

    def fetch_csrf(self, state: SSOState) -> Tuple[str, SSOState]:
        """GET /sso/signin and return the CSRF token it embeds."""
        body, state = self._request("GET", self.signin_url, state,
                                    params=self.signin_params(), use_referer=True)
        match = CSRF_RE.search(body)
        if not match:
            raise ProtocolError("CSRF token not found in signin page")
        return match.group(1), state

    def submit_credentials(self, state: SSOState, email: str, password: str,
                           csrf: str) -> Tuple[str, SSOState]:
        """POST the sign-in form."""
        form = {
            "username": email,
            "password": password,
            "embed": "true",
            "_csrf": csrf,
        }
        return self._request("POST", self.signin_url, state, params=self.signin_params(),
                             data=form, use_referer=True)

    @staticmethod
    def check_title(body: str):
        """Classify the sign-in result by its page title."""
        match = TITLE_RE.search(body)
        if not match:
            raise InvalidCredentialsError("No title in sign-in response; login failed")
        title = match.group(1)
        if title == "Success":
            return
        if "MFA" in title:
            raise UnsupportedAuthError(
                "MFA is required but not supported. Disable MFA on the Garmin account and retry."
            )
        raise InvalidCredentialsError(f"Login failed: {title!r} (check credentials)")

    @staticmethod
    def extract_ticket(body: str) -> str:
        match = TICKET_RE.search(body)
        if not match:
            raise ProtocolError("Ticket not found in sign-in response")
        return match.group(1)

    def _request(self, method: str, url: str, state: SSOState, params=None, data=None,
                 use_referer: bool = False) -> Tuple[str, SSOState]:
        headers = {"User-Agent": SSO_USER_AGENT}
        if use_referer and state.last_url:
            headers["Referer"] = state.last_url
        if data is not None:
            headers["Content-Type"] = "application/x-www-form-urlencoded"

        resp: HttpResponse = self.transport.send(
            method,
            url,
            params=params,
            headers=headers,
            data=data,
            cookies=state.cookies,
            timeout=self.timeout,
        )
        if not resp.ok:
            raise TransportError(
                f"{method} {url} returned HTTP {resp.status_code}: {preview(resp.text)}"
            )
        return resp.text, replace(state, cookies=resp.cookies, last_url=resp.url)
