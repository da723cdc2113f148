"""FastAPI application setup for the assistant knowledge base."""

from __future__ import annotations

from fastapi import FastAPI

from assistant_kb.api.dependencies import get_app_settings
from assistant_kb.api.routes_admin import router as admin_router
from assistant_kb.api.routes_ingest import router as ingest_router
from assistant_kb.api.routes_query import router as query_router
from assistant_kb.core.logging import configure_logging
from assistant_kb.db.sqlite import SQLiteDatabase

configure_logging()

app = FastAPI(
    title="Assistant Knowledge Base",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.include_router(ingest_router, prefix="", tags=["ingest"])
app.include_router(query_router, prefix="", tags=["query"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.on_event("startup")
async def startup() -> None:
    """Make sure the schema exists before the first request."""
    settings = get_app_settings()
    with SQLiteDatabase(settings.db_path) as db:
        db.ensure_schema()


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}
