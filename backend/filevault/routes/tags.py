"""Tags API routes."""
from fastapi import APIRouter, Depends, HTTPException

from filevault.dependencies import get_orchestrator
from filevault.errors import PersistenceError
from filevault.schemas.tag import TagResponse
from filevault.services.storage_orchestrator import StorageOrchestrator

router = APIRouter(prefix="/api/tags", tags=["tags"])


@router.get("", response_model=list[TagResponse])
async def list_tags(orchestrator: StorageOrchestrator = Depends(get_orchestrator)):
    """List all tags, for autocomplete."""
    try:
        tags = await orchestrator.tag_registry.list_all()
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to retrieve tags")
    return [{"id": t.id, "name": t.name, "created_at": t.created_at} for t in tags]
