import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import pytest
from requests.cookies import RequestsCookieJar

sys.path.insert(0, str(Path(__file__).parent.parent))

from clients.transport import HttpResponse, Transport


@dataclass
class SentRequest:
    method: str
    url: str
    kwargs: Dict[str, Any]

    @property
    def headers(self) -> Dict[str, str]:
        return self.kwargs.get('headers') or {}


class FakeTransport(Transport):
    """Replays canned responses in order and records every request."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def send(self, method, url, **kwargs):
        self.calls.append(SentRequest(method, url, kwargs))
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def build_response(status_code=200, body='', url='https://example.invalid/', cookies=None):
    jar = RequestsCookieJar()
    for name, value in (cookies or {}).items():
        jar.set(name, value, domain='sso.garmin.com', path='/')
    content = body.encode('utf-8') if isinstance(body, str) else body
    return HttpResponse(status_code=status_code, url=url, content=content, cookies=jar)


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def fake_transport():
    def factory(*responses):
        return FakeTransport(responses)
    return factory
