"""Wire events exchanged over the room websocket.

Inbound events are requests from a client to mutate the board; outbound
events are the snapshot sent on join and the confirmations fanned out to the
other sessions after a successful write.
"""

from pydantic import BaseModel, Field
from typing import Annotated, List, Literal, Optional, Union

from schemas.notes import Coordinate, Note, NoteId


# ---------- client -> server ----------
class CreateNoteEvent(BaseModel):
    type: Literal["create_note"] = "create_note"
    id: NoteId
    content: str
    x: Coordinate
    y: Coordinate
    color: str
    author: str


class UpdateNoteEvent(BaseModel):
    type: Literal["update_note"] = "update_note"
    id: NoteId
    content: str


class MoveNoteEvent(BaseModel):
    type: Literal["move_note"] = "move_note"
    id: NoteId
    x: Coordinate
    y: Coordinate


class DeleteNoteEvent(BaseModel):
    type: Literal["delete_note"] = "delete_note"
    id: NoteId


InboundEvent = Annotated[
    Union[CreateNoteEvent, UpdateNoteEvent, MoveNoteEvent, DeleteNoteEvent],
    Field(discriminator="type"),
]

INBOUND_EVENT_TYPES = frozenset({"create_note", "update_note", "move_note", "delete_note"})


# ---------- server -> client ----------
class InitEvent(BaseModel):
    type: Literal["init"] = "init"
    notes: List[Note]


class NoteCreatedEvent(BaseModel):
    type: Literal["note_created"] = "note_created"
    id: str
    content: str
    x: float
    y: float
    color: str
    author: str


class NoteUpdatedEvent(BaseModel):
    type: Literal["note_updated"] = "note_updated"
    id: str
    content: str


class NoteMovedEvent(BaseModel):
    type: Literal["note_moved"] = "note_moved"
    id: str
    x: float
    y: float


class NoteDeletedEvent(BaseModel):
    type: Literal["note_deleted"] = "note_deleted"
    id: str


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    code: str
    event: str
    id: Optional[str] = None


OutboundEvent = Union[
    InitEvent,
    NoteCreatedEvent,
    NoteUpdatedEvent,
    NoteMovedEvent,
    NoteDeletedEvent,
    ErrorEvent,
]
