import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from bankdesk.auth.models import User
from bankdesk.files.models import FileType, StoredFile
from bankdesk.files.naming import build_stored_filename, extension_of
from bankdesk.files.service import FileService, get_file_service
from bankdesk.shared.auth import get_current_user
from bankdesk.shared.config import settings
from bankdesk.shared.db import SessionLocal, get_db
from bankdesk.shared.errors import ValidationError

logger = logging.getLogger(__name__)

READ_CHUNK = 1024 * 1024


@dataclass(frozen=True)
class UploadRule:
    field_name: str
    file_type: FileType
    allowed_types: frozenset[str]
    allowed_exts: frozenset[str]
    max_bytes: int
    type_error: str

    @property
    def size_error(self) -> str:
        return f"File size too large. Maximum size is {self.max_bytes // (1024 * 1024)}MB"


ID_PICTURE_RULE = UploadRule(
    field_name="idPicture",
    file_type=FileType.ID_PICTURE,
    allowed_types=frozenset({"image/jpeg", "image/jpg"}),
    allowed_exts=frozenset({".jpg", ".jpeg"}),
    max_bytes=settings.ID_PICTURE_MAX_BYTES,
    type_error="Only JPG and JPEG image files are allowed for ID pictures",
)


async def _read_limited(upload: UploadFile, limit: int) -> Optional[bytes]:
    """Read the whole part, or return None as soon as it exceeds ``limit``."""
    buf = bytearray()
    while True:
        chunk = await upload.read(READ_CHUNK)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > limit:
            return None
    return bytes(buf)


def _file_parts(form) -> list[tuple[str, UploadFile]]:
    return [(k, v) for k, v in form.multi_items() if isinstance(v, UploadFile)]


def upload_gate(rule: UploadRule):
    """
    Build a dependency that validates and stores a single multipart file.

    Returns the new ``StoredFile``, or None when the request carried no file
    (the route decides whether that is an error). The stored file is
    registered for cleanup if the request ultimately fails.
    """
    async def _dep(
        request: Request,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
        files: FileService = Depends(get_file_service),
    ) -> Optional[StoredFile]:
        try:
            form = await request.form()
        except MultiPartException as e:
            raise ValidationError(f"Upload error: {e.message}")
        except StarletteHTTPException as e:
            raise ValidationError(f"Upload error: {e.detail}")

        parts = _file_parts(form)
        if not parts:
            return None
        if any(name != rule.field_name for name, _ in parts):
            raise ValidationError(f'Unexpected field name. Use "{rule.field_name}" as field name')
        if len(parts) > 1:
            raise ValidationError("Too many files. Only one file is allowed")

        upload = parts[0][1]
        original_name = upload.filename or "upload"
        ext = extension_of(original_name)
        content_type = (upload.content_type or "").lower()
        if content_type not in rule.allowed_types or ext not in rule.allowed_exts:
            raise ValidationError(rule.type_error)

        data = await _read_limited(upload, rule.max_bytes)
        await upload.close()
        if data is None:
            raise ValidationError(rule.size_error)

        rec = await run_in_threadpool(
            files.store_file,
            db,
            data,
            filename=build_stored_filename(user.id, ext),
            original_name=original_name,
            content_type=content_type,
            uploaded_by=user.id,
            file_type=rule.file_type,
        )
        request.state.uploaded_file = rec.filename
        request.state.upload_service = files
        return rec

    return _dep


id_picture_upload = upload_gate(ID_PICTURE_RULE)


def _discard_upload(request: Request) -> None:
    name = getattr(request.state, "uploaded_file", None)
    files: Optional[FileService] = getattr(request.state, "upload_service", None)
    if name is None or files is None:
        return
    # the request session is closed by now
    try:
        with SessionLocal() as db:
            files.delete_file(db, name)
        logger.info("removed upload %s after failed request", name)
    except Exception:
        logger.exception("could not remove upload %s after failed request", name)


async def cleanup_failed_uploads(request: Request, call_next):
    """HTTP middleware: drop a file stored by the upload gate when the request fails."""
    try:
        response = await call_next(request)
    except Exception:
        await run_in_threadpool(_discard_upload, request)
        raise
    if response.status_code >= 400 and getattr(request.state, "uploaded_file", None):
        response.background = BackgroundTask(_discard_upload, request)
    return response
