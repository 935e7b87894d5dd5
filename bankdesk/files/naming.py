import time
from pathlib import PurePosixPath

def build_stored_filename(owner_id: int, extension: str, now_ms: int | None = None) -> str:
    """``{ownerId}-{epochMillis}{.ext}``; the format is a client-facing contract."""
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    ext = extension.lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return f"{owner_id}-{ts}{ext}"

def parse_owner_id(filename: str) -> int | None:
    head, sep, _ = filename.partition("-")
    if not sep or not head.isdigit():
        return None
    return int(head)

def extension_of(name: str) -> str:
    return PurePosixPath(name.replace("\\", "/")).suffix.lower()
