from sqlalchemy import Column, String, DateTime, Text, Float
from app.database import Base


class StickyNote(Base):
    __tablename__ = "sticky_notes"

    id = Column(String, primary_key=True)
    content = Column(Text, nullable=False, default="")
    x = Column(Float, nullable=False)
    y = Column(Float, nullable=False)
    color = Column(String, nullable=False)
    author = Column(String, nullable=False)
    # 时间由应用写入（UTC），创建时 created_at == updated_at
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
