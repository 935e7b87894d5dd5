# bankdesk/shared/config.py
from pathlib import Path
from pydantic import BaseModel
import os

ROOT = Path(__file__).resolve().parents[2]   # project root


class Settings(BaseModel):
    ENV: str = os.getenv("ENV", "dev")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str | None = os.getenv("LOG_FILE")

    # storage: SQLite + blobs live under ./storage/ unless overridden
    STORAGE_DIR: str = os.getenv("STORAGE_DIR", str(ROOT / "storage"))
    DB_URL: str | None = os.getenv("DB_URL")
    BLOB_DIR: str | None = os.getenv("BLOB_DIR")
    BLOB_CHUNK_SIZE: int = int(os.getenv("BLOB_CHUNK_SIZE", str(255 * 1024)))

    # uploads
    ID_PICTURE_MAX_BYTES: int = int(os.getenv("ID_PICTURE_MAX_BYTES", str(5 * 1024 * 1024)))
    FILE_CACHE_MAX_AGE: int = int(os.getenv("FILE_CACHE_MAX_AGE", "3600"))

    # JWT
    JWT_KEY: str = os.getenv("JWT_KEY", "dev-secret")
    JWT_ALG: str = os.getenv("JWT_ALG", "HS256")
    JWT_ISS: str | None = os.getenv("JWT_ISS")
    JWT_AUD: str | None = os.getenv("JWT_AUD")
    JWT_EXPIRE_MIN: int = int(os.getenv("JWT_EXPIRE_MIN", "60"))

    @property
    def is_dev(self) -> bool:
        return self.ENV == "dev"

    @property
    def database_url(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        return f"sqlite:///{(Path(self.STORAGE_DIR) / 'bankdesk.db').as_posix()}"

    @property
    def blob_dir(self) -> Path:
        return Path(self.BLOB_DIR) if self.BLOB_DIR else Path(self.STORAGE_DIR) / "blobs"

settings = Settings()
