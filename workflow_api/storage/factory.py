from workflow_api.config import settings
from workflow_api.storage.interface import WorkflowStore
from workflow_api.storage.filesystem import FilesystemWorkflowStore


def get_workflow_store() -> WorkflowStore:
    """
    Factory function to create the appropriate store implementation
    based on settings.

    Returns:
        A workflow store (SQL database or filesystem)
    """
    # Determine which storage to use
    storage_type = settings.STORAGE_TYPE.lower()

    if storage_type == "database":
        from workflow_api.db.database import SessionLocal
        from workflow_api.storage.database import SqlWorkflowStore

        return SqlWorkflowStore(session_factory=SessionLocal)
    elif storage_type == "filesystem":
        return FilesystemWorkflowStore(base_dir=settings.WORKFLOW_STORAGE_DIR)
    else:
        raise ValueError(f"Unsupported STORAGE_TYPE: {settings.STORAGE_TYPE}")
