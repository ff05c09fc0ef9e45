"""Shared fixtures for 3Commas client tests."""

import hashlib
import hmac
import threading
from typing import Any, Optional
from unittest.mock import Mock, patch

import orjson
import pytest
import requests

from threecommas import ThreeCommasClient
from threecommas.config import ThreeCommasSettings

RealThread = threading.Thread


def expected_signature(secret: str, message: str) -> str:
    """Reference HMAC-SHA256 hex digest, computed independently of the signer."""
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def make_response(
    status: int = 200,
    body: Any = None,
    headers: Optional[dict] = None
) -> requests.Response:
    """Build a real requests.Response."""
    response = requests.Response()
    response.status_code = status
    if body is None:
        response._content = b""
    elif isinstance(body, bytes):
        response._content = body
    elif isinstance(body, str):
        response._content = body.encode("utf-8")
    else:
        response._content = orjson.dumps(body)
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    return response


@pytest.fixture
def settings():
    return ThreeCommasSettings(
        api_key=None,
        api_secret=None,
        forced_mode=None,
        enable_metrics=False,
        log_requests=False,
        _env_file=None,
    )


@pytest.fixture
def client(settings):
    """Client with key K / secret S and a stubbed HTTP session."""
    c = ThreeCommasClient(key="K", secrets="S", settings=settings)
    c.transport.session.request = Mock(return_value=make_response(200, {"ok": True}))
    yield c
    c.transport.close()


class FakeWebSocketApp:
    """
    Stand-in for websocket.WebSocketApp.

    run_forever() runs the next script from ``scripts`` (a callable taking
    the app) to simulate open / message / close events.
    """

    instances: list = []
    scripts: list = []

    def __init__(self, url, on_open=None, on_message=None, on_error=None, on_close=None):
        self.url = url
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self.sent = []
        self.closed = False
        type(self).instances.append(self)

    def run_forever(self, **kwargs):
        scripts = type(self).scripts
        if scripts:
            scripts.pop(0)(self)

    def send(self, data):
        self.sent.append(data)

    def close(self, **kwargs):
        self.closed = True


class FakeThread:
    """Records the socket loop instead of starting it; tests call run()."""

    instances: list = []

    def __init__(self, target=None, args=(), name=None, daemon=None):
        self.target = target
        self.args = args
        self.name = name
        self.started = False
        type(self).instances.append(self)

    def start(self):
        self.started = True

    def run(self):
        self.target(*self.args)

    def join(self, timeout=None):
        pass


@pytest.fixture
def fake_ws():
    """Patch the socket library and thread creation in the streaming module."""
    class App(FakeWebSocketApp):
        instances = []
        scripts = []

    class Thread(FakeThread):
        instances = []

    with patch("threecommas.api.streaming.websocket.WebSocketApp", App), \
            patch("threecommas.api.streaming.threading.Thread", Thread):
        App.threads = Thread.instances
        yield App
