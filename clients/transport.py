"""HTTP transport used by the Garmin clients.

The SSO handshake, token exchange and upload all go through a
:class:`Transport` so they can run against canned responses in tests.
Cookies are passed in and handed back explicitly; the transport keeps no
session state between calls.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import requests
from requests.cookies import RequestsCookieJar

from utils.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class HttpResponse:
    """The parts of an HTTP response the clients look at."""

    status_code: int
    url: str
    content: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: RequestsCookieJar = field(default_factory=RequestsCookieJar)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        return json.loads(self.text)


class Transport:
    """Interface for sending one HTTP request."""

    def send(self, method: str, url: str, *,
             params: Optional[Dict[str, str]] = None,
             headers: Optional[Dict[str, str]] = None,
             data: Any = None,
             files: Optional[Dict[str, Any]] = None,
             cookies: Optional[RequestsCookieJar] = None,
             auth: Any = None,
             timeout: Optional[float] = None) -> HttpResponse:
        raise NotImplementedError


class RequestsTransport(Transport):
    """Transport backed by ``requests``.

    Each call runs in a throwaway session seeded with the given cookies, so
    cookies set along a redirect chain are returned with the response.
    """

    def send(self, method, url, *, params=None, headers=None, data=None, files=None,
             cookies=None, auth=None, timeout=None) -> HttpResponse:
        with requests.Session() as session:
            if cookies is not None:
                session.cookies.update(cookies)
            try:
                resp = session.request(
                    method,
                    url,
                    params=params,
                    headers=headers,
                    data=data,
                    files=files,
                    auth=auth,
                    timeout=timeout,
                    allow_redirects=True,
                )
            except requests.Timeout as e:
                raise TransportError(f"{method} {url} timed out after {timeout}s") from e
            except requests.RequestException as e:
                raise TransportError(f"{method} {url} failed: {e}") from e

            jar = RequestsCookieJar()
            jar.update(session.cookies)
            logger.debug(f"{method} {resp.url} -> HTTP {resp.status_code}")
            return HttpResponse(
                status_code=resp.status_code,
                url=resp.url,
                content=resp.content,
                headers=dict(resp.headers),
                cookies=jar,
            )
