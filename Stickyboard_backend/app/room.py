"""Room coordinator: membership, durable writes and fan-out for one board.

Every mutating event goes through ``Room.apply``, which holds the room lock
while it performs the single store operation and broadcasts the confirmation.
Confirmations therefore leave the room in commit order, and a session that is
joining (also under the lock) sees either the snapshot before a write or the
snapshot plus its broadcast, never half of it.
"""

import asyncio
import logging
from typing import Dict, Optional

from app.config import settings
from app.protocol import DecodeError, decode_event
from app.store import NoteStore, StoreError, utcnow
from app.ws import Session, SessionRegistry
from schemas.events import (
    CreateNoteEvent,
    DeleteNoteEvent,
    ErrorEvent,
    InboundEvent,
    InitEvent,
    MoveNoteEvent,
    NoteCreatedEvent,
    NoteDeletedEvent,
    NoteMovedEvent,
    NoteUpdatedEvent,
    OutboundEvent,
    UpdateNoteEvent,
)
from schemas.notes import Note

logger = logging.getLogger("stickyboard.room")


class Room:
    def __init__(
        self,
        name: str,
        store: NoteStore,
        *,
        registry: Optional[SessionRegistry] = None,
        error_acks: bool = False,
    ):
        self.name = name
        self.store = store
        self.registry = registry if registry is not None else SessionRegistry()
        self.error_acks = error_acks
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self.registry)

    # ---------- 会话生命周期 ----------
    async def join(self, session: Session) -> bool:
        """Register ``session`` and send it the ``init`` snapshot.

        Returns False when the session could not be activated; it is then
        already removed from the room and closed.
        """
        async with self._lock:
            self.registry.register(session)
            try:
                notes = await self.store.list_all()
            except StoreError as exc:
                logger.error("SNAPSHOT_FAILED room=%s session=%s error=%s", self.name, session.label, exc)
                self.registry.deregister(session)
                await session.close(code=1011)
                return False
            if not await self.registry.send(session, InitEvent(notes=notes)):
                return False
        logger.info("SESSION_JOIN room=%s session=%s notes=%d peers=%d",
                    self.name, session.label, len(notes), len(self.registry) - 1)
        return True

    def leave(self, session: Session) -> None:
        if self.registry.deregister(session):
            logger.info("SESSION_LEAVE room=%s session=%s peers=%d", self.name, session.label, len(self.registry))
        session.alive = False

    # ---------- 事件处理 ----------
    async def receive(self, session: Session, raw: str | bytes) -> bool:
        """Decode one inbound frame from ``session`` and apply it."""
        try:
            event = decode_event(raw)
        except DecodeError as exc:
            logger.warning("FRAME_DROPPED room=%s session=%s error=%s", self.name, session.label, exc)
            return False
        if event is None:
            return False
        return await self.apply(session, event)

    async def apply(self, sender: Optional[Session], event: InboundEvent) -> bool:
        """Write ``event`` durably, then confirm it to every session but ``sender``.

        ``sender`` is None for server-originated changes, which reach everyone.
        """
        async with self._lock:
            try:
                confirmation = await self._commit(event)
            except StoreError as exc:
                logger.error("EVENT_FAILED room=%s type=%s id=%s session=%s error=%s",
                             self.name, event.type, event.id, sender.label if sender else "server", exc)
                if self.error_acks and sender is not None:
                    await self.registry.send(sender, ErrorEvent(code="store_error", event=event.type, id=event.id))
                return False
            delivered = await self.registry.broadcast(confirmation, exclude=sender)
        logger.debug("EVENT_APPLIED room=%s type=%s id=%s delivered=%d", self.name, event.type, event.id, delivered)
        return True

    async def _commit(self, event: InboundEvent) -> OutboundEvent:
        if isinstance(event, CreateNoteEvent):
            now = utcnow()
            fields = event.model_dump(exclude={"type"})
            await self.store.insert(Note(**fields, created_at=now, updated_at=now))
            return NoteCreatedEvent(**fields)
        if isinstance(event, UpdateNoteEvent):
            await self.store.update_content(event.id, event.content, utcnow())
            return NoteUpdatedEvent(id=event.id, content=event.content)
        if isinstance(event, MoveNoteEvent):
            await self.store.update_position(event.id, event.x, event.y, utcnow())
            return NoteMovedEvent(id=event.id, x=event.x, y=event.y)
        if isinstance(event, DeleteNoteEvent):
            await self.store.delete(event.id)
            return NoteDeletedEvent(id=event.id)
        raise TypeError(f"unsupported event: {event!r}")


class RoomHub:
    """Rooms keyed by name, all sharing one note store."""

    def __init__(self, store: NoteStore, *, error_acks: bool | None = None):
        self.store = store
        self.error_acks = settings.ROOM_ERROR_ACKS if error_acks is None else error_acks
        self._rooms: Dict[str, Room] = {}

    def get(self, name: str) -> Room:
        room = self._rooms.get(name)
        if room is None:
            room = Room(name, self.store, error_acks=self.error_acks)
            self._rooms[name] = room
        return room

    def reset(self, store: NoteStore, *, error_acks: bool | None = None) -> None:
        self.store = store
        if error_acks is not None:
            self.error_acks = error_acks
        self._rooms.clear()

    async def startup(self) -> None:
        await self.store.create_tables()

    async def shutdown(self) -> None:
        for room in list(self._rooms.values()):
            for session in room.registry.snapshot():
                room.leave(session)
                await session.close(code=1001)
        await self.store.dispose()


hub = RoomHub(NoteStore.from_path())
