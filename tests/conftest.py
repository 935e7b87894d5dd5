"""
Pytest configuration and fixtures for backend tests.
"""
import os
import tempfile
import uuid
from typing import Generator, Iterator

# configure before the app (and its engine) is imported
os.environ["ENV"] = "test"
os.environ["DB_URL"] = "sqlite://"
os.environ.setdefault("STORAGE_DIR", tempfile.mkdtemp(prefix="bankdesk-test-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from bankdesk.auth.models import ApprovalStatus, User
from bankdesk.auth.service import _hash
from bankdesk.files.service import FileService, get_file_service
from bankdesk.files.storage import BlobNotFound
from bankdesk.main import app
from bankdesk.shared.auth import create_access_token
from bankdesk.shared.db import Base, SessionLocal, engine, get_db
from bankdesk.shared.roles import Role

PASSWORD = "Secret123!"
PASSWORD_HASH = _hash(PASSWORD)


class MemoryBlobStore:
    """In-process stand-in for the blob store."""

    def __init__(self, chunk_size: int = 64 * 1024):
        self.chunk_size = chunk_size
        self.blobs: dict[str, list[bytes]] = {}

    def write(self, data: bytes) -> str:
        ref = uuid.uuid4().hex
        self.blobs[ref] = [data[i:i + self.chunk_size] for i in range(0, len(data), self.chunk_size)]
        return ref

    def open_read(self, blob_ref: str) -> Iterator[bytes]:
        if blob_ref not in self.blobs:
            raise BlobNotFound(blob_ref)
        return iter(list(self.blobs[blob_ref]))

    def delete(self, blob_ref: str) -> None:
        self.blobs.pop(blob_ref, None)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def file_service(blob_store: MemoryBlobStore) -> FileService:
    return FileService(blob_store)


@pytest.fixture(scope="function")
def client(db_session: Session, file_service: FileService) -> Generator[TestClient, None, None]:
    """Test client with the DB session and file service swapped for test doubles."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_service] = lambda: file_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: Session):
    counter = {"n": 0}

    def _make(
        *,
        id: int | None = None,
        role: Role = Role.CUSTOMER,
        status: str = ApprovalStatus.PENDING.value,
        pending_branch_id: int | None = None,
        branch_id: int | None = None,
        rejection_reason: str | None = None,
        is_active: bool = True,
    ) -> User:
        counter["n"] += 1
        name = f"user{id or counter['n']}_{counter['n']}"
        u = User(
            id=id, username=name, email=f"{name}@example.com", password_hash=PASSWORD_HASH,
            first_name="Test", last_name="User", role=role.value, approval_status=status,
            pending_branch_id=pending_branch_id, branch_id=branch_id,
            rejection_reason=rejection_reason, is_active=is_active,
        )
        db_session.add(u)
        db_session.commit()
        db_session.refresh(u)
        return u

    return _make


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, role=user.role)}"}


def jpeg_bytes(size: int) -> bytes:
    head = b"\xff\xd8\xff\xe0"
    return head + b"\x00" * (size - len(head))
