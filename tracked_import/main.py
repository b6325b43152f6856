from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tracked_import.auth_router import router as auth_router
from tracked_import.config import settings
from tracked_import.database import close_database, init_database
from tracked_import.entities.router import router as entities_router
from tracked_import.exception_handlers import register_exception_handlers
from tracked_import.imports.router import router as imports_router
from tracked_import.logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await init_database()
    yield
    await close_database()


app = FastAPI(
    title="Tracked Import",
    description="Bulk record import with provenance-scoped cleanup",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(imports_router, prefix="/api/v1/imports", tags=["imports"])
app.include_router(entities_router, prefix="/api/v1/entities", tags=["entities"])


@app.get("/api/v1/health")
async def health():
    from tracked_import.database import check_health

    await check_health()
    return {"status": "healthy"}
