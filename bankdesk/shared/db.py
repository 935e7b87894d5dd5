from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

from bankdesk.shared.config import settings

DB_URL = settings.database_url
_url = make_url(DB_URL)
_engine_kwargs: dict = {}

if _url.drivername.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
    if _url.database in (None, "", ":memory:"):
        # one shared connection, otherwise every checkout sees an empty database
        _engine_kwargs["poolclass"] = StaticPool
    else:
        Path(_url.database).parent.mkdir(parents=True, exist_ok=True)

engine = create_engine(DB_URL, **_engine_kwargs)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

class Base(DeclarativeBase):
    pass

# FastAPI dep
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
