import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Iterator, List, Optional, Tuple

from sqlalchemy import select, desc, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from bankdesk.files.models import FileType, StoredFile
from bankdesk.files.naming import parse_owner_id
from bankdesk.files.storage import BlobNotFound, BlobStore, LocalBlobStore
from bankdesk.shared.config import settings
from bankdesk.shared.errors import (
    ConflictError, DatabaseError, ExternalServiceError, NotFoundError, ValidationError,
)

logger = logging.getLogger(__name__)


def _type_value(file_type) -> str:
    return file_type.value if isinstance(file_type, FileType) else str(file_type)


class FileService:
    """
    Pairs the blob store with the ``stored_files`` registry. This is the only
    code path that touches either; callers pass the request's DB session.
    """

    def __init__(self, store: BlobStore):
        self.store = store

    def store_file(
        self,
        db: Session,
        data: bytes,
        *,
        filename: str,
        original_name: str,
        content_type: str,
        uploaded_by: int,
        file_type: FileType | str,
    ) -> StoredFile:
        if parse_owner_id(filename) != uploaded_by:
            raise ValidationError(f"Filename {filename!r} does not belong to user {uploaded_by}")
        if self.file_exists(db, filename):
            raise ConflictError(f"File {filename} already exists")

        try:
            blob_ref = self.store.write(data)
        except OSError as e:
            logger.exception("blob write failed for %s", filename)
            raise ExternalServiceError("Failed to store file") from e

        rec = StoredFile(
            filename=filename,
            original_name=original_name,
            content_type=content_type,
            size=len(data),
            uploaded_by=uploaded_by,
            file_type=_type_value(file_type),
            blob_ref=blob_ref,
        )
        try:
            db.add(rec)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            self._rollback_blob(blob_ref, filename)
            raise ConflictError(f"File {filename} already exists") from e
        except SQLAlchemyError as e:
            db.rollback()
            self._rollback_blob(blob_ref, filename)
            logger.exception("metadata insert failed for %s", filename)
            raise DatabaseError("Failed to store file") from e

        db.refresh(rec)
        logger.info("stored %s (%d bytes, blob %s) for user %s", filename, rec.size, blob_ref, uploaded_by)
        return rec

    def _rollback_blob(self, blob_ref: str, filename: str) -> None:
        try:
            logger.warning("metadata write failed, deleting blob %s for %s", blob_ref, filename)
            self.store.delete(blob_ref)
        except OSError:
            logger.exception("could not roll back blob %s, orphaned", blob_ref)

    def find_file(self, db: Session, filename: str) -> Optional[StoredFile]:
        return db.scalar(select(StoredFile).where(StoredFile.filename == filename))

    def file_exists(self, db: Session, filename: str) -> bool:
        return self.find_file(db, filename) is not None

    def get_file(self, db: Session, filename: str) -> Tuple[Iterator[bytes], StoredFile]:
        rec = self.find_file(db, filename)
        if not rec:
            raise NotFoundError("File not found")

        rec.last_accessed_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(rec)

        try:
            stream = self.store.open_read(rec.blob_ref)
        except BlobNotFound:
            logger.error("metadata for %s points at missing blob %s", filename, rec.blob_ref)
            raise NotFoundError("File not found")
        return stream, rec

    def delete_file(self, db: Session, filename: str) -> None:
        rec = self.find_file(db, filename)
        if not rec:
            return
        try:
            self.store.delete(rec.blob_ref)
        except OSError as e:
            logger.exception("blob delete failed for %s", filename)
            raise ExternalServiceError("Failed to delete file") from e
        try:
            db.delete(rec)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("failed to delete %s", filename)
            raise DatabaseError("Failed to delete file") from e
        logger.info("deleted %s", filename)

    def delete_user_file(
        self, db: Session, user_id: int, file_type: FileType | str, keep: Optional[str] = None,
    ) -> None:
        """Best-effort cleanup when a user's file of this category is replaced; never raises."""
        try:
            for rec in self.get_user_files(db, user_id, file_type):
                if rec.filename != keep:
                    self.delete_file(db, rec.filename)
        except Exception:
            logger.exception("cleanup of %s files for user %s failed", _type_value(file_type), user_id)

    def get_user_files(
        self, db: Session, user_id: int, file_type: FileType | str | None = None,
    ) -> List[StoredFile]:
        q = select(StoredFile).where(StoredFile.uploaded_by == user_id)
        if file_type:
            q = q.where(StoredFile.file_type == _type_value(file_type))
        q = q.order_by(desc(StoredFile.uploaded_at), desc(StoredFile.filename))
        return list(db.scalars(q).all())

    def get_file_stats(self, db: Session) -> dict:
        total_files, total_size = db.execute(
            select(func.count(StoredFile.id), func.coalesce(func.sum(StoredFile.size), 0))
        ).one()
        rows = db.execute(
            select(StoredFile.file_type, func.count(StoredFile.id), func.coalesce(func.sum(StoredFile.size), 0))
            .group_by(StoredFile.file_type)
            .order_by(StoredFile.file_type)
        ).all()
        return {
            "total_files": total_files,
            "total_size": int(total_size),
            "files_by_type": [
                {"type": t, "count": c, "total_size": int(s)} for t, c, s in rows
            ],
        }


@lru_cache
def get_file_service() -> FileService:
    """Process-wide service; override this dependency to swap the store in tests."""
    return FileService(LocalBlobStore(settings.blob_dir, settings.BLOB_CHUNK_SIZE))
