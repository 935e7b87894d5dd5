import logging
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Iterator

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from starlette.responses import StreamingResponse

from bankdesk.auth.models import User
from bankdesk.auth.service import clear_file_references
from bankdesk.files.models import FileType
from bankdesk.files.policy import authorize_file
from bankdesk.files.schemas import FileStatsOut, StoredFileOut
from bankdesk.files.service import FileService, get_file_service
from bankdesk.shared.auth import get_current_user
from bankdesk.shared.config import settings
from bankdesk.shared.db import get_db
from bankdesk.shared.errors import NotFoundError
from bankdesk.shared.guard import require_capability
from bankdesk.shared.http import ok
from bankdesk.shared.roles import Capability

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/uploads", tags=["Uploads"])


def _http_date(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)


def _guarded(stream: Iterator[bytes], filename: str) -> Iterator[bytes]:
    # headers are already out by now; all we can do is log and drop the connection
    try:
        yield from stream
    except Exception:
        logger.exception("stream of %s failed mid-response", filename)
        raise


@router.get("/id-pictures/{filename}")
def serve_id_picture(
    filename: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    files: FileService = Depends(get_file_service),
):
    rec = files.find_file(db, filename)
    if not rec or rec.file_type != FileType.ID_PICTURE.value:
        raise NotFoundError("File not found")
    authorize_file(user, rec, "view")

    stream, rec = files.get_file(db, filename)
    headers = {
        "Content-Length": str(rec.size),
        "Content-Disposition": f'inline; filename="{rec.filename}"',
        "Cache-Control": f"private, max-age={settings.FILE_CACHE_MAX_AGE}",
        "Last-Modified": _http_date(rec.uploaded_at),
    }
    return StreamingResponse(_guarded(stream, filename), media_type=rec.content_type, headers=headers)


@router.get("/my-files")
def my_files(
    file_type: FileType | None = Query(None, alias="fileType"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    files: FileService = Depends(get_file_service),
):
    recs = files.get_user_files(db, user.id, file_type)
    items = [StoredFileOut.model_validate(r).model_dump(mode="json") for r in recs]
    return ok("Files retrieved", {"files": items, "count": len(items)})


@router.get("/stats")
def file_stats(
    _: User = Depends(require_capability(Capability.VIEW_FILE_STATS)),
    db: Session = Depends(get_db),
    files: FileService = Depends(get_file_service),
):
    stats = FileStatsOut.model_validate(files.get_file_stats(db))
    return ok("File statistics retrieved", stats.model_dump(by_alias=True))


@router.delete("/{filename}")
def delete_upload(
    filename: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    files: FileService = Depends(get_file_service),
):
    rec = files.find_file(db, filename)
    if not rec:
        raise NotFoundError("File not found")
    authorize_file(user, rec, "delete")

    files.delete_file(db, filename)
    clear_file_references(db, filename)
    return ok("File deleted successfully")
