import asyncio
import logging
from typing import Dict, List, Optional

from fastapi import WebSocket

from app.config import settings
from app.protocol import encode_event
from schemas.events import OutboundEvent

logger = logging.getLogger("stickyboard.ws")


class SessionSendError(Exception):
    """Delivering a frame to one session failed."""


class Session:
    """One live websocket connection; the handle itself is the identity."""

    def __init__(self, websocket: WebSocket, *, user_id: str | None = None, send_timeout: float | None = None):
        self.websocket = websocket
        self.user_id = user_id
        self.send_timeout = send_timeout if send_timeout is not None else settings.SEND_TIMEOUT_SECONDS
        self.alive = True
        self._close_sent = False

    @property
    def label(self) -> str:
        client = getattr(self.websocket, "client", None)
        addr = f"{client.host}:{client.port}" if client else "-"
        return f"{addr}/{self.user_id or 'anon'}"

    async def send(self, frame: str) -> None:
        if not self.alive:
            raise SessionSendError("session closed")
        try:
            await asyncio.wait_for(self.websocket.send_text(frame), timeout=self.send_timeout)
        except Exception as exc:
            self.alive = False
            raise SessionSendError(f"{type(exc).__name__}: {exc}") from exc

    async def close(self, code: int = 1000) -> None:
        self.alive = False
        if self._close_sent:
            return
        self._close_sent = True
        try:
            await self.websocket.close(code=code)
        except Exception as exc:
            # 连接已断开时关闭会失败
            logger.debug("SESSION_CLOSE_FAILED session=%s error=%s", self.label, exc)


class SessionRegistry:
    """Live sessions of one room.

    Membership changes never await, so under the event loop they are atomic
    with respect to every other room operation. ``broadcast`` works on a copy
    of the membership taken when it is called.
    """

    def __init__(self):
        # dict 作为有序集合
        self._sessions: Dict[Session, None] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session) -> bool:
        return session in self._sessions

    def register(self, session: Session) -> None:
        self._sessions[session] = None

    def deregister(self, session: Session) -> bool:
        if session not in self._sessions:
            return False
        del self._sessions[session]
        return True

    def snapshot(self) -> List[Session]:
        return list(self._sessions)

    async def send(self, session: Session, event: OutboundEvent) -> bool:
        return await self._deliver(session, encode_event(event))

    async def broadcast(self, event: OutboundEvent, exclude: Optional[Session] = None) -> int:
        frame = encode_event(event)
        targets = [s for s in self.snapshot() if s is not exclude]
        if not targets:
            return 0
        results = await asyncio.gather(*(self._deliver(s, frame) for s in targets))
        return sum(1 for ok in results if ok)

    async def _deliver(self, session: Session, frame: str) -> bool:
        try:
            await session.send(frame)
            return True
        except SessionSendError as exc:
            logger.warning("SESSION_SEND_FAILED session=%s error=%s", session.label, exc)
            self.deregister(session)
            await session.close(code=1011)
            return False
