import logging
from datetime import datetime, timezone
from typing import List

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from app.database import build_engine, build_session_factory, create_tables
from models.notes import StickyNote
from schemas.notes import Note

logger = logging.getLogger("stickyboard.store")


class StoreError(Exception):
    """A durable note operation failed (connectivity or constraint)."""


def utcnow() -> datetime:
    # SQLite 不保存时区，统一使用无时区的 UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class NoteStore:
    """Key-addressed CRUD over sticky notes backed by SQLAlchemy."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessions = build_session_factory(engine)

    @classmethod
    def from_path(cls, path: str | None = None) -> "NoteStore":
        return cls(build_engine(path))

    async def create_tables(self) -> None:
        try:
            await create_tables(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"create tables failed: {exc}") from exc

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def insert(self, note: Note) -> None:
        async with self._sessions() as session:
            session.add(StickyNote(**note.model_dump()))
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise StoreError(f"note {note.id} already exists") from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                raise StoreError(f"insert {note.id} failed: {exc}") from exc

    async def update_content(self, note_id: str, content: str, updated_at: datetime) -> int:
        stmt = (
            update(StickyNote)
            .where(StickyNote.id == note_id)
            .values(content=content, updated_at=updated_at)
        )
        return await self._execute(stmt, f"update content {note_id}")

    async def update_position(self, note_id: str, x: float, y: float, updated_at: datetime) -> int:
        stmt = (
            update(StickyNote)
            .where(StickyNote.id == note_id)
            .values(x=x, y=y, updated_at=updated_at)
        )
        return await self._execute(stmt, f"update position {note_id}")

    async def delete(self, note_id: str) -> int:
        return await self._execute(delete(StickyNote).where(StickyNote.id == note_id), f"delete {note_id}")

    async def get(self, note_id: str) -> Note | None:
        try:
            async with self._sessions() as session:
                row = (await session.execute(select(StickyNote).where(StickyNote.id == note_id))).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError(f"get {note_id} failed: {exc}") from exc
        return Note.model_validate(row) if row else None

    async def list_all(self) -> List[Note]:
        query = select(StickyNote).order_by(StickyNote.created_at.desc(), StickyNote.id.asc())
        try:
            async with self._sessions() as session:
                rows = (await session.execute(query)).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"list notes failed: {exc}") from exc
        return [Note.model_validate(row) for row in rows]

    async def _execute(self, stmt, action: str) -> int:
        # 返回受影响行数；id 不存在时为 0，不视为错误
        async with self._sessions() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                raise StoreError(f"{action} failed: {exc}") from exc
        if result.rowcount == 0:
            logger.debug("STORE_NOOP action=%s", action)
        return result.rowcount
