from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

from bankdesk.shared.config import settings
from bankdesk.shared.db import Base, engine
from bankdesk.shared.errors import register_error_handlers
from bankdesk.shared.http import ok
from bankdesk.shared.logs import configure_logging, log_requests

# import models so they register with Base.metadata
from bankdesk.auth import models as auth_models  # noqa: F401
from bankdesk.files import models as files_models  # noqa: F401

# Routers Import
from bankdesk.auth.api import router as auth_router
from bankdesk.files.api import router as uploads_router
from bankdesk.files.upload import cleanup_failed_uploads

TAGS_METADATA = [
    {"name": "Auth", "description": "Registration, login, approval workflow, ID picture upload"},
    {"name": "Uploads", "description": "Stored file retrieval, listing, deletion and stats"},
    {"name": "Health", "description": "Service health"},
]

PUBLIC_PATHS = {"/api/v1/health", "/api/v1/auth/register", "/api/v1/auth/login"}


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    Base.metadata.create_all(bind=engine)
    yield


configure_logging()

app = FastAPI(
    title="bankdesk",
    version="1.0.0",
    description="Approval-gated identity document storage for the banking demo.",
    openapi_tags=TAGS_METADATA,
    lifespan=lifespan,
)

register_error_handlers(app)
app.middleware("http")(cleanup_failed_uploads)
app.middleware("http")(log_requests)


@app.get("/api/v1/health", tags=["Health"])
def health():
    return ok("API is running", {"timestamp": datetime.now(timezone.utc).isoformat(), "env": settings.ENV})


# --- Custom OpenAPI: add bearerAuth as the default security for non-public ops ---
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    schema.setdefault("components", {}).setdefault("securitySchemes", {})
    schema["components"]["securitySchemes"]["bearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }
    for path, ops in schema.get("paths", {}).items():
        if path in PUBLIC_PATHS:
            continue
        for op in ops.values():
            op.setdefault("security", [{"bearerAuth": []}])
    app.openapi_schema = schema
    return app.openapi_schema

# Routers
app.include_router(auth_router)
app.include_router(uploads_router)

app.openapi = custom_openapi
