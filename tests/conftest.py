"""
Shared fixtures for the signing client tests.

HTTP is replaced by FakePlatform, installed in place of requests.request,
which serves canned responses per (method, path) and records every call.
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple

import pytest
import requests

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from signflow import (
    Mailbox,
    Session,
    SigningAPIClient,
    SigningConfig,
)

BASE_URL = 'https://api.test.local/v1'


def make_response(status_code: int = 200, json_data: Any = None, content: bytes = None) -> requests.Response:
    """Build a real requests.Response with the given body."""
    response = requests.Response()
    response.status_code = status_code
    response.encoding = 'utf-8'
    if json_data is not None:
        response._content = json.dumps(json_data).encode('utf-8')
        response.headers['Content-Type'] = 'application/json'
    else:
        response._content = content if content is not None else b''
    return response


class FakePlatform:
    """
    Stand-in for the platform's HTTP API.

    Each route holds a queue of responses (or exceptions to raise).
    The last queued item keeps being served once the others are used up.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []

    def add(self, method: str, path: str, *responses) -> None:
        self.routes.setdefault((method, path), []).extend(responses)

    def calls_to(self, method: str, path: str) -> List[Dict[str, Any]]:
        return [kw for m, p, kw in self.calls if m == method and p == path]

    def __call__(self, method, url, **kwargs):
        path = url[len(BASE_URL):].lstrip('/')
        self.calls.append((method, path, kwargs))

        queue = self.routes.get((method, path))
        if not queue:
            return make_response(404, {'error': f'no route for {method} {path}'})

        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def config():
    return SigningConfig(
        credential='test-token',
        base_url=BASE_URL,
        max_retries=3,
        retry_delay=0,
        poll_interval=1.0,
        poll_backoff=2.0,
        poll_max_interval=8.0,
    )


@pytest.fixture
def session(config):
    return Session.from_config(config)


@pytest.fixture
def platform(monkeypatch):
    fake = FakePlatform()
    monkeypatch.setattr('signflow.api_client.requests.request', fake)
    return fake


@pytest.fixture
def api(session, config, platform):
    return SigningAPIClient(session, config, sleep=lambda seconds: None)


@pytest.fixture
def mailbox():
    return Mailbox(mailbox_id='mb-1', email='sender@org.com', display_name='Sender')


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
