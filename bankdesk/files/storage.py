import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import Iterator, Protocol

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 255 * 1024
_CHUNK_SUFFIX = ".chunk"


class BlobNotFound(LookupError):
    pass


class BlobStore(Protocol):
    def write(self, data: bytes) -> str: ...
    def open_read(self, blob_ref: str) -> Iterator[bytes]: ...
    def delete(self, blob_ref: str) -> None: ...


def _check_ref(blob_ref: str) -> str:
    # refs are our own uuid hex; anything else never maps to a path
    if len(blob_ref) != 32 or not all(c in "0123456789abcdef" for c in blob_ref):
        raise BlobNotFound(blob_ref)
    return blob_ref


class LocalBlobStore:
    """
    Chunked, append-only blob storage on the local filesystem.

    Each blob is a directory ``<root>/<blob_ref>/`` of numbered chunk files.
    Chunks are written into a hidden temp directory first and renamed into
    place, so readers only ever see complete blobs. The root directory is
    created lazily on first use.
    """

    def __init__(self, root: Path | str, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.root = Path(root)
        self.chunk_size = chunk_size
        self._ready = False

    def _ensure_ready(self) -> None:
        if self._ready:
            return
        self.root.mkdir(parents=True, exist_ok=True)
        self._ready = True
        logger.info("blob store ready at %s", self.root)

    def _blob_dir(self, blob_ref: str) -> Path:
        return self.root / _check_ref(blob_ref)

    def write(self, data: bytes) -> str:
        self._ensure_ready()
        blob_ref = uuid.uuid4().hex
        tmp = self.root / f".tmp-{blob_ref}"
        tmp.mkdir()
        try:
            for n, start in enumerate(range(0, max(len(data), 1), self.chunk_size)):
                (tmp / f"{n:08d}{_CHUNK_SUFFIX}").write_bytes(data[start:start + self.chunk_size])
            os.replace(tmp, self.root / blob_ref)
        except OSError:
            shutil.rmtree(tmp, ignore_errors=True)
            raise
        return blob_ref

    def open_read(self, blob_ref: str) -> Iterator[bytes]:
        self._ensure_ready()
        folder = self._blob_dir(blob_ref)
        if not folder.is_dir():
            raise BlobNotFound(blob_ref)
        chunks = sorted(folder.glob(f"*{_CHUNK_SUFFIX}"))
        return self._iter_chunks(chunks)

    @staticmethod
    def _iter_chunks(chunks: list[Path]) -> Iterator[bytes]:
        for chunk in chunks:
            with chunk.open("rb") as fh:
                data = fh.read()
            if data:
                yield data

    def delete(self, blob_ref: str) -> None:
        self._ensure_ready()
        try:
            folder = self._blob_dir(blob_ref)
        except BlobNotFound:
            return
        if folder.is_dir():
            shutil.rmtree(folder)
