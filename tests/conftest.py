"""Pytest fixtures and configuration for the apnpush test suite

This module provides:
1. An EC signing key for token authentication tests
2. Factory functions for receivers and notifications
3. ScriptedSender, an in-memory transport with per-token scripted results
4. A protocol factory wired with real collaborators and the scripted sender
"""
import asyncio
import json
from typing import Callable, Dict, List, Optional, Union

import pytest
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from apnpush.core.config import get_settings
from apnpush.push.encoder import PayloadEncoder
from apnpush.push.exception_factory import ExceptionFactory
from apnpush.push.models import Alert, Notification, Payload, Receiver, Request, Response
from apnpush.push.protocol import HttpProtocol
from apnpush.push.uri_factory import UriFactory
from apnpush.push.visitor import default_visitor_chain


TEST_TOPIC = "com.example.app"


# =============================================================================
# Factory Functions for Test Objects
# =============================================================================

def make_token(index: int) -> str:
    """64-character hex device token unique to ``index``."""
    return f"{index:064x}"


def make_receiver(index: int = 1, topic: str = TEST_TOPIC) -> Receiver:
    return Receiver(token=make_token(index), topic=topic)


def make_notification(body: str = "A person was detected at the front door", **overrides) -> Notification:
    """
    Factory function to create Notification instances for testing.

    Args:
        body: Alert body text
        **overrides: Any additional Notification fields

    Returns:
        Notification with an alert payload
    """
    payload = overrides.pop("payload", None) or Payload(
        alert=Alert(title="Front Door", body=body),
        sound="default",
    )
    return Notification(payload=payload, **overrides)


def token_from_url(url: str) -> str:
    return url.rsplit("/", 1)[-1]


def apns_error(status_code: int, reason: str, **fields) -> Response:
    body = {"reason": reason, **fields}
    return Response(status_code=status_code, content=json.dumps(body).encode())


# =============================================================================
# Fake transport
# =============================================================================

Script = Union[Response, Exception, Callable[[Request], Response]]


class ScriptedSender:
    """
    In-memory HTTP sender.

    Results are scripted per device token; unscripted tokens get 200. Each
    request waits ``delays[token]`` (or ``default_delay``) seconds before
    answering, which lets tests force out-of-order completion.

    Attributes:
        requests: Every request received, in arrival order
        in_flight: Requests currently awaiting a response
        max_in_flight: Highest in_flight value observed
    """

    def __init__(
        self,
        results: Optional[Dict[str, Script]] = None,
        delays: Optional[Dict[str, float]] = None,
        default_delay: float = 0.0,
        on_send: Optional[Callable[[Request], None]] = None,
    ):
        self.results = results or {}
        self.delays = delays or {}
        self.default_delay = default_delay
        self.on_send = on_send
        self.requests: List[Request] = []
        self.completed: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.open_calls = 0
        self.close_calls = 0

    async def open(self) -> None:
        self.open_calls += 1

    async def send(self, request: Request) -> Response:
        token = token_from_url(request.url)
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.on_send is not None:
                self.on_send(request)
            await asyncio.sleep(self.delays.get(token, self.default_delay))

            result = self.results.get(token)
            if isinstance(result, Exception):
                raise result
            if callable(result):
                return result(request)
            if result is None:
                return Response(status_code=200, headers={"apns-id": f"id-{token}"})
            return result
        finally:
            self.in_flight -= 1
            self.completed.append(token)

    async def close(self) -> None:
        self.close_calls += 1


class StaticAuthenticator:
    """Adds a fixed bearer token."""

    def __init__(self, token: str = "test-jwt"):
        self.token = token
        self.invalidated = 0

    def authenticate(self, request: Request) -> Request:
        return request.with_header("authorization", f"bearer {self.token}")

    def invalidate(self) -> None:
        self.invalidated += 1


class RecordingListener:
    """Reject listener that keeps every event it receives."""

    def __init__(self, name: str = "listener", journal: Optional[list] = None):
        self.name = name
        self.events = []
        self.journal = journal

    def on_reject(self, event) -> None:
        self.events.append(event)
        if self.journal is not None:
            self.journal.append((self.name, event.index))

    __call__ = on_reject


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; isolate each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def ec_private_key():
    return ec.generate_private_key(ec.SECP256R1(), default_backend())


@pytest.fixture
def key_pem(ec_private_key) -> bytes:
    return ec_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def key_file(tmp_path, key_pem) -> str:
    """Temporary .p8 key file."""
    path = tmp_path / "AuthKey_TEST.p8"
    path.write_bytes(key_pem)
    return str(path)


@pytest.fixture
def authenticator():
    return StaticAuthenticator()


@pytest.fixture
def make_protocol(authenticator):
    """Build an HttpProtocol around a sender with real collaborators."""

    def _make(sender, concurrency: int = 50, **overrides) -> HttpProtocol:
        collaborators = {
            "authenticator": authenticator,
            "http_sender": sender,
            "payload_encoder": PayloadEncoder(),
            "uri_factory": UriFactory(),
            "visitor": default_visitor_chain(),
            "exception_factory": ExceptionFactory(),
        }
        collaborators.update(overrides)
        return HttpProtocol(concurrency=concurrency, **collaborators)

    return _make
