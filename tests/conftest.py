from __future__ import annotations

import asyncio
import json
import os
import socket
import tempfile
from pathlib import Path
from typing import Any

import pytest

# Configure the app before it is imported: a throwaway database and a fixed
# signing secret so tokens issued in tests verify.
os.environ.setdefault("DATABASE_PATH", str(Path(tempfile.mkdtemp(prefix="stickyboard-")) / "default.db"))
os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")
os.environ.setdefault("STATIC_DIR", str(Path(tempfile.gettempdir()) / "stickyboard-no-static"))

from fastapi.testclient import TestClient  # noqa: E402

from app.main import app  # noqa: E402
from app.room import hub  # noqa: E402
from app.store import NoteStore  # noqa: E402
from app.ws import SessionSendError  # noqa: E402


class NetworkBlockedError(RuntimeError):
    pass


def _blocked(*_args: Any, **_kwargs: Any) -> Any:
    raise NetworkBlockedError("Network access is disabled during tests.")


@pytest.fixture(autouse=True)
def _disable_network(monkeypatch: pytest.MonkeyPatch) -> None:
    """Prevent accidental outbound network calls in unit tests."""
    monkeypatch.setattr(socket, "create_connection", _blocked)
    monkeypatch.setattr(socket, "getaddrinfo", _blocked)


class FakeSession:
    """Stand-in for a websocket session that records the frames it is sent."""

    def __init__(self, name: str, *, fail: bool = False) -> None:
        self.label = name
        self.user_id = name
        self.fail = fail
        self.alive = True
        self.frames: list[str] = []
        self.closed_with: int | None = None
        self.on_send = None

    @property
    def events(self) -> list[dict]:
        return [json.loads(frame) for frame in self.frames]

    def events_of(self, kind: str) -> list[dict]:
        return [event for event in self.events if event["type"] == kind]

    async def send(self, frame: str) -> None:
        if self.on_send is not None:
            self.on_send()
        if self.fail or not self.alive:
            self.alive = False
            raise SessionSendError(f"{self.label} is gone")
        self.frames.append(frame)

    async def close(self, code: int = 1000) -> None:
        self.alive = False
        self.closed_with = code


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "notes.db")


@pytest.fixture
def run_with_store(db_path: str):
    """Run ``scenario(store)`` against a fresh store inside its own event loop."""

    def runner(scenario):
        async def main():
            store = NoteStore.from_path(db_path)
            await store.create_tables()
            try:
                return await scenario(store)
            finally:
                await store.dispose()

        return asyncio.run(main())

    return runner


@pytest.fixture
def client(db_path: str):
    hub.reset(NoteStore.from_path(db_path), error_acks=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_session():
    return FakeSession
