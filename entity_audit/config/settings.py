# entity_audit/config/settings.py

from functools import lru_cache
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EntityAuditSettings(BaseModel):
    """Per-entity audit switch and column exclusions."""

    enabled: bool = True
    ignored_columns: List[str] = Field(default_factory=list)


class AuditSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ENTITY_AUDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_name: str = "entity-audit"
    environment: Literal["dev", "test", "prod"] = "dev"
    debug: bool = False
    version: str = "0.1.0"

    # --- Audit store ---
    # None: audit rows are written through the audited session's own bind
    database_url: Optional[str] = None
    async_database_url: Optional[str] = None

    # --- Audit policy ---
    table_prefix: str = ""
    table_suffix: str = "_audit"
    ignored_columns: List[str] = Field(default_factory=list)
    entities: Dict[str, EntityAuditSettings] = Field(default_factory=dict)

    # --- Read side ---
    page_size: int = Field(50, ge=1)

    # --- Observability ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


@lru_cache
def get_settings() -> AuditSettings:
    return AuditSettings()
