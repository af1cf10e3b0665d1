from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuditConfig(BaseSettings):
    """Configuration for feed loading and validation runs.

    Automatically loads from environment variables and .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    db_path: str = Field(default="data/gtfs.db", alias="GTFS_AUDIT_DB_PATH")
    namespace: str = Field(default="", alias="GTFS_AUDIT_NAMESPACE")

    # Number of errors buffered before a batched insert.
    error_batch_size: int = Field(default=500, ge=1, alias="GTFS_AUDIT_ERROR_BATCH_SIZE")
    # Log progress every N trips during the shared trip pass.
    progress_interval: int = Field(default=100_000, ge=1, alias="GTFS_AUDIT_PROGRESS_INTERVAL")


@lru_cache
def get_config() -> AuditConfig:
    """Get audit configuration (cached singleton).

    Returns:
        AuditConfig with values from .env file or environment variables.
    """
    return AuditConfig()
