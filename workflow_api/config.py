from pydantic_settings import BaseSettings
from pathlib import Path

# Get the repository root directory (parent of the package directory)
REPO_ROOT = Path(__file__).parent.parent.absolute()

class Settings(BaseSettings):
    """Application settings."""

    # API settings
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_RELOAD: bool = True

    # Version and environment
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Storage settings
    STORAGE_TYPE: str = "filesystem"  # "filesystem" or "database"
    WORKFLOW_STORAGE_DIR: str = str(REPO_ROOT / "storage" / "workflows")

    # Database settings (only used if STORAGE_TYPE = "database")
    DATABASE_URL: str = f"sqlite:///{REPO_ROOT / 'storage' / 'workflows.db'}"

    class Config:
        env_file = ".env"

settings = Settings()
