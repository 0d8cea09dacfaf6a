from typing import Optional
from sqlalchemy import BigInteger, Text
from sqlmodel import SQLModel, Field

class VectorRecordBase(SQLModel):
    """Columns shared by every per-dimension chunk table."""
    id: Optional[int] = Field(default=None, primary_key=True)
    path: str = Field(index=True)
    mtime: int = Field(sa_type=BigInteger)  # source modification time, epoch ms
    content: str = Field(sa_type=Text)
