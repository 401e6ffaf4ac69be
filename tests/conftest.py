"""Shared pytest fixtures."""
from __future__ import annotations

import threading
from typing import Any, List, Optional

import pytest

from sshterm.config import ClientConfig
from sshterm.errors import AuthError, TransportError
from sshterm.session import LiveSession
from sshterm.sink import MemorySink


class FakeTransport:
    """Stands in for WebSocketTransport; tests fire the callbacks by hand."""

    def __init__(self, url, on_open, on_message, on_error, on_close, verify_tls=True):
        self.url = url
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self.verify_tls = verify_tls
        self.sent: List[str] = []
        self.started = False
        self.closed = False

    def start(self) -> None:
        self.started = True

    def send(self, text: str) -> None:
        if self.closed:
            raise TransportError("closed")
        self.sent.append(text)

    def close(self) -> None:
        self.closed = True

    # helpers driving the session the way the reader thread would
    def open(self) -> None:
        self.on_open()

    def receive(self, message: Any) -> None:
        self.on_message(message)

    def fail(self, message: str = "boom") -> None:
        self.on_error(TransportError(message))
        self.on_close()


class FakeTickets:
    def __init__(self, tickets: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.tickets = list(tickets or ["T1"])
        self.error = error
        self.calls = 0
        self.gate: Optional[threading.Event] = None
        self.entered = threading.Event()

    def fetch(self) -> str:
        self.calls += 1
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        if len(self.tickets) > 1:
            return self.tickets.pop(0)
        return self.tickets[0]


@pytest.fixture
def client_config() -> ClientConfig:
    cfg = ClientConfig()
    cfg.TOKEN = "secret-token"
    return cfg


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink(cols=100, rows=30)


@pytest.fixture
def transports() -> List[FakeTransport]:
    return []


@pytest.fixture
def tickets() -> FakeTickets:
    return FakeTickets()


@pytest.fixture
def live(sink, tickets, client_config, transports) -> LiveSession:
    def factory(url, **callbacks):
        transport = FakeTransport(url, **callbacks)
        transports.append(transport)
        return transport

    session = LiveSession(sink, tickets, client_config, transport_factory=factory)
    yield session
    session.disconnect()


@pytest.fixture
def auth_error() -> AuthError:
    return AuthError("ticket request failed: 500")
