"""FastAPI dependencies for the storage engine."""
from fastapi import Request

from filevault.services.storage_orchestrator import StorageOrchestrator


def get_orchestrator(request: Request) -> StorageOrchestrator:
    """The orchestrator built during application startup."""
    return request.app.state.orchestrator
