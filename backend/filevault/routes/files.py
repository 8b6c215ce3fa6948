"""Files API routes."""
from urllib.parse import quote

from fastapi import APIRouter, Depends, File as FastAPIFile, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response

from filevault.dependencies import get_orchestrator
from filevault.errors import (
    BlobReadError,
    BlobWriteError,
    DecryptionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from filevault.models.file_record import FileRecord
from filevault.schemas.file import FileResponse
from filevault.services.storage_orchestrator import StorageOrchestrator

router = APIRouter(prefix="/api/files", tags=["files"])

_VALIDATION_STATUS = {
    ValidationError.TOO_LARGE: 413,
    ValidationError.UNSUPPORTED_TYPE: 415,
}


@router.post("/upload", response_model=FileResponse, status_code=201)
async def upload_file(
    file: UploadFile = FastAPIFile(...),
    tags: str = Form(""),
    orchestrator: StorageOrchestrator = Depends(get_orchestrator),
):
    """Encrypt an uploaded file and record it with its tags."""
    # One byte past the limit is enough for the size check to reject it.
    contents = await file.read(orchestrator.max_upload_bytes + 1)
    try:
        record = await orchestrator.ingest(contents, file.filename, file.content_type, tags)
    except ValidationError as e:
        raise HTTPException(status_code=_VALIDATION_STATUS.get(e.reason, 400), detail=str(e))
    except BlobWriteError:
        raise HTTPException(status_code=503, detail="Failed to store file, try again later")
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to upload file")
    return _to_response(record)


@router.get("", response_model=list[FileResponse])
async def list_files(orchestrator: StorageOrchestrator = Depends(get_orchestrator)):
    """List all stored files."""
    try:
        records = await orchestrator.list_files()
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to retrieve files")
    return [_to_response(r) for r in records]


@router.get("/search", response_model=list[FileResponse])
async def search_files(
    q: str = Query("", description="Matches file names and tags, case-insensitive"),
    orchestrator: StorageOrchestrator = Depends(get_orchestrator),
):
    """Search files by name or tag. An empty query returns nothing."""
    try:
        records = await orchestrator.search(q)
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Search failed")
    return [_to_response(r) for r in records]


@router.get("/{stored_name}", response_model=FileResponse)
async def get_file_metadata(
    stored_name: str,
    orchestrator: StorageOrchestrator = Depends(get_orchestrator),
):
    """Get file metadata by stored name."""
    try:
        record = await orchestrator.describe(stored_name)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to retrieve file")
    return _to_response(record)


@router.get("/{stored_name}/download")
async def download_file(
    stored_name: str,
    orchestrator: StorageOrchestrator = Depends(get_orchestrator),
):
    """Decrypt and return a stored file."""
    try:
        mime_type, plaintext = await orchestrator.retrieve(stored_name)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    except (BlobReadError, DecryptionError, PersistenceError):
        raise HTTPException(status_code=500, detail="Failed to retrieve file")

    return Response(
        content=plaintext,
        media_type=mime_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(stored_name)}"},
    )


def _to_response(record: FileRecord) -> dict:
    """Convert SQLAlchemy model to response dict."""
    return {
        "id": str(record.id),
        "original_name": record.original_name,
        "stored_name": record.stored_name,
        "mime_type": record.mime_type,
        "size_bytes": record.size_bytes,
        "storage_path": record.storage_path,
        "tags": sorted(t.name for t in record.tags),
        "created_at": record.created_at,
    }
