"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from sqlalchemy import text

from filevault.config import Settings, settings
from filevault.database import async_session, engine, get_db
from filevault.models import Base
from filevault.services.cipher import CipherUnit, KeyMaterial
from filevault.services.file_storage import LocalBlobStore
from filevault.services.metadata_repository import MetadataRepository
from filevault.services.storage_orchestrator import StorageOrchestrator
from filevault.services.tag_registry import TagRegistry

logger = logging.getLogger(__name__)


def load_key_material(config: Settings) -> KeyMaterial:
    """Build the process key from config. Refuses to start without one
    unless ALLOW_EPHEMERAL_KEY is set."""
    if config.ENCRYPTION_KEY:
        return KeyMaterial.from_hex(config.ENCRYPTION_KEY)
    if config.ALLOW_EPHEMERAL_KEY:
        logger.warning(
            "ENCRYPTION_KEY not set, using an ephemeral key. "
            "Files stored by this process become unreadable after restart."
        )
        return KeyMaterial.generate()
    raise RuntimeError("ENCRYPTION_KEY is not configured")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, build the storage engine. Any failure here aborts startup."""
    key_material = load_key_material(settings)

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception:
        logger.critical("Metadata store unreachable at startup")
        raise

    orchestrator = StorageOrchestrator(
        cipher=CipherUnit(key_material),
        blob_store=LocalBlobStore(settings.FILE_STORAGE_PATH),
        tag_registry=TagRegistry(async_session),
        repository=MetadataRepository(async_session),
        max_upload_bytes=settings.MAX_UPLOAD_BYTES,
    )
    app.state.orchestrator = orchestrator

    orphans = await orchestrator.find_orphaned_blobs()
    if orphans:
        logger.warning(f"Found {len(orphans)} blob(s) with no file record: {orphans}")
    missing = await orchestrator.find_missing_blobs()
    if missing:
        logger.error(f"Found {len(missing)} file record(s) with no blob: {missing}")

    logger.info("Connected to the database")

    yield

    await engine.dispose()


app = FastAPI(
    title="Encrypted File Vault API",
    version="1.0.0",
    description="Encrypted file storage with tag search.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", response_class=PlainTextResponse)
async def welcome():
    return "Welcome to online storage API"


@app.get("/api/health")
async def health_check():
    """Verify API and database connectivity."""
    try:
        async for db in get_db():
            await db.execute(text("SELECT 1"))
            return {"status": "ok", "database": "connected"}
    except Exception as e:
        return {"status": "error", "database": str(e)}


# Register routers
from filevault.routes.files import router as files_router
from filevault.routes.tags import router as tags_router
app.include_router(files_router)
app.include_router(tags_router)
