from fastapi import APIRouter, HTTPException

from app.config import settings
from app.room import hub
from app.store import StoreError
from schemas.events import DeleteNoteEvent
from schemas.notes import NoteListResponse

router = APIRouter()


@router.get("", response_model=NoteListResponse)
async def get_notes():
    try:
        notes = await hub.store.list_all()
    except StoreError as exc:
        raise HTTPException(status_code=503, detail="note store unavailable") from exc
    return NoteListResponse(notes=notes)


@router.delete("/{note_id}")
async def delete_note(note_id: str):
    # 服务端发起的删除，广播给房间内所有会话
    room = hub.get(settings.ROOM_NAME)
    if not await room.apply(None, DeleteNoteEvent(id=note_id)):
        raise HTTPException(status_code=503, detail="note store unavailable")
    return {"success": True}
