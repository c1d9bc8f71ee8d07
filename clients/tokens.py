"""OAuth1 / OAuth2 token exchange with the Garmin Connect API."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import parse_qs

from requests_oauthlib import OAuth1

from clients.transport import RequestsTransport, Transport
from config.settings import (
    AUTH_TIMEOUT_SECONDS,
    CONNECT_API_URL,
    EXCHANGE_PATH,
    GARMIN_DOMAIN,
    OAUTH_CONSUMER_URL,
    PREAUTHORIZED_PATH,
    SSO_BASE_URL,
    SSO_USER_AGENT,
)
from models.tokens import OAuth1Credential, OAuth2Credential
from utils.errors import ExchangeError, ParseError, preview

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OAuthConsumer:
    """Consumer key pair shared by every Garmin Connect mobile client."""

    consumer_key: str
    consumer_secret: str


def fetch_consumer(transport: Transport, timeout: float = AUTH_TIMEOUT_SECONDS) -> OAuthConsumer:
    """Download the public OAuth consumer key/secret.

    Raises:
        ExchangeError: On a non-200 response
        ParseError: If the document lacks the expected keys
    """
    resp = transport.send("GET", OAUTH_CONSUMER_URL, timeout=timeout)
    if resp.status_code != 200:
        raise ExchangeError(
            f"Consumer fetch HTTP {resp.status_code}: {preview(resp.text)}",
            status_code=resp.status_code,
        )
    try:
        data = resp.json()
        return OAuthConsumer(consumer_key=data["consumer_key"],
                             consumer_secret=data["consumer_secret"])
    except (ValueError, KeyError, TypeError) as e:
        raise ParseError(f"Malformed consumer document: {preview(resp.text)}") from e


class TokenExchanger:
    """Turns an SSO ticket into OAuth1 credentials and OAuth1 into OAuth2."""

    def __init__(self, transport: Optional[Transport] = None,
                 clock: Callable[[], float] = time.time,
                 timeout: float = AUTH_TIMEOUT_SECONDS):
        self.transport = transport or RequestsTransport()
        self.clock = clock
        self.timeout = timeout

    @staticmethod
    def api_base(domain: str) -> str:
        return CONNECT_API_URL.format(domain=domain)

    def mint_oauth1(self, consumer: OAuthConsumer, ticket: str,
                    domain: str = GARMIN_DOMAIN) -> OAuth1Credential:
        """Exchange a one-time SSO ticket for a long-lived OAuth1 token.

        The request is signed with the consumer only.

        Raises:
            ExchangeError: On a non-200 response
            ParseError: If the response lacks a token or secret
        """
        params = {
            "ticket": ticket,
            "login-url": f"{SSO_BASE_URL.format(domain=domain)}/sso/embed",
            "accepts-mfa-tokens": "true",
        }
        auth = OAuth1(consumer.consumer_key, client_secret=consumer.consumer_secret)
        resp = self.transport.send(
            "GET",
            self.api_base(domain) + PREAUTHORIZED_PATH,
            params=params,
            headers={"User-Agent": SSO_USER_AGENT},
            auth=auth,
            timeout=self.timeout,
        )
        if resp.status_code != 200:
            raise ExchangeError(
                f"Preauthorized HTTP {resp.status_code}: {preview(resp.text)}",
                status_code=resp.status_code,
            )

        try:
            values = parse_qs(resp.text, keep_blank_values=True, strict_parsing=True)
        except ValueError as e:
            raise ParseError(f"Malformed OAuth1 response: {preview(resp.text)}") from e

        def first(key: str) -> Optional[str]:
            items = values.get(key)
            return items[0] if items else None

        token, secret = first("oauth_token"), first("oauth_token_secret")
        if not token or not secret:
            raise ParseError(f"OAuth1 response missing token or secret: {preview(resp.text)}")

        logger.debug("Minted OAuth1 token")
        return OAuth1Credential(
            oauth_token=token,
            oauth_token_secret=secret,
            mfa_token=first("mfa_token") or None,
            mfa_expiration_timestamp=first("mfa_expiration_timestamp") or None,
            domain=domain,
        )

    def exchange_oauth2(self, consumer: OAuthConsumer, oauth1: OAuth1Credential,
                        domain: Optional[str] = None) -> OAuth2Credential:
        """Exchange OAuth1 credentials for a fresh OAuth2 bearer token.

        Expiry timestamps are stamped from the time the response is received.

        Raises:
            ExchangeError: On a non-200 response
            ParseError: If the response is not the expected JSON document
        """
        domain = domain or oauth1.domain or GARMIN_DOMAIN
        auth = OAuth1(
            consumer.consumer_key,
            client_secret=consumer.consumer_secret,
            resource_owner_key=oauth1.oauth_token,
            resource_owner_secret=oauth1.oauth_token_secret,
        )
        data = {"mfa_token": oauth1.mfa_token} if oauth1.mfa_token else {}
        resp = self.transport.send(
            "POST",
            self.api_base(domain) + EXCHANGE_PATH,
            headers={
                "User-Agent": SSO_USER_AGENT,
                "Content-Type": "application/x-www-form-urlencoded",
            },
            data=data,
            auth=auth,
            timeout=self.timeout,
        )
        received_at = self.clock()
        if resp.status_code != 200:
            raise ExchangeError(
                f"Exchange HTTP {resp.status_code}: {preview(resp.text)}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
            credential = OAuth2Credential.from_exchange(payload, received_at)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ParseError(f"Malformed OAuth2 response: {preview(resp.text)}") from e

        logger.debug(f"Exchanged OAuth2 token, expires at {credential.expires_at}")
        return credential

    def refresh(self, oauth1: OAuth1Credential) -> OAuth2Credential:
        """Mint a new OAuth2 token from cached OAuth1 credentials."""
        consumer = fetch_consumer(self.transport, timeout=self.timeout)
        return self.exchange_oauth2(consumer, oauth1, oauth1.domain or GARMIN_DOMAIN)
