"""
Health check endpoints for the API.
"""
from fastapi import APIRouter, Depends
from typing import Dict, Any
from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError

from workflow_api.config import settings
from workflow_api.dependencies import get_registry, get_store
from workflow_api.domain.registry import NodeTypeRegistry
from workflow_api.storage.interface import WorkflowStore

router = APIRouter()

@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.
    Returns API status and version information.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT
    }

@router.get("/health/storage")
def storage_health(
    store: WorkflowStore = Depends(get_store),
    registry: NodeTypeRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """
    Check that the workflow store is readable and the registry is loaded.
    """
    try:
        workflow_count = len(store.list())
    except (OSError, SQLAlchemyError) as e:
        return {
            "status": "unhealthy",
            "timestamp": datetime.now().isoformat(),
            "error": str(e)
        }

    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "storage_type": settings.STORAGE_TYPE,
        "workflow_count": workflow_count,
        "node_type_count": len(registry.list_all()),
    }
