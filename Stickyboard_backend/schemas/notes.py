from pydantic import BaseModel, Field, field_serializer
from datetime import datetime
from typing import Annotated, List

NoteId = Annotated[str, Field(min_length=1, max_length=128)]
Coordinate = Annotated[float, Field(allow_inf_nan=False)]


class NotePosition(BaseModel):
    x: Coordinate
    y: Coordinate


class NoteBase(NotePosition):
    content: str
    color: str
    author: str


class Note(NoteBase):
    id: NoteId
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @field_serializer("created_at", "updated_at", when_used="json")
    def _serialize_utc(self, value: datetime) -> str:
        # 数据库存储的是不带时区的 UTC 时间
        if value.tzinfo is None:
            return value.isoformat() + "Z"
        return value.isoformat()


class NoteListResponse(BaseModel):
    notes: List[Note]
