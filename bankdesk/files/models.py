from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import String, DateTime, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column
from bankdesk.shared.db import Base
import uuid

def _id32() -> str:
    return uuid.uuid4().hex

def _now() -> datetime:
    return datetime.now(timezone.utc)


class FileType(str, Enum):
    ID_PICTURE = "id-picture"
    DOCUMENT = "document"
    PROFILE_PICTURE = "profile-picture"


class StoredFile(Base):
    __tablename__ = "stored_files"
    __table_args__ = (Index("ix_stored_files_owner_type", "uploaded_by", "file_type"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_id32)

    # external reference handed to clients: {ownerId}-{epochMillis}{.ext}
    filename: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    original_name: Mapped[str] = mapped_column(String(255))
    content_type: Mapped[str] = mapped_column(String(127))
    size: Mapped[int] = mapped_column(Integer)

    uploaded_by: Mapped[int] = mapped_column(Integer, index=True)
    file_type: Mapped[str] = mapped_column(String(32))
    blob_ref: Mapped[str] = mapped_column(String(64), unique=True)

    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, index=True)
    last_accessed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
