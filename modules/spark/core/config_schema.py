"""
Configuration Schemas.

Pydantic models defining the expected structure of each YAML config file.
Used by AppConfig to validate configuration at load time. If a YAML file
has missing keys, wrong types, or unknown fields, a clear ValidationError
is raised at startup instead of a cryptic KeyError deep in application code.

Each top-level class corresponds to one file in config/settings/:
    ApplicationSchema  → application.yaml
    LoggingSchema      → logging.yaml
    FeaturesSchema     → features.yaml
    SyncSchema         → sync.yaml
    RemoteSchema       → remote.yaml
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _StrictBase(BaseModel):
    """Base with extra='forbid' so unknown YAML keys are caught immediately."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ApplicationSchema(_StrictBase):
    name: str
    version: str
    description: str
    environment: str


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool


class FileHandlerSchema(_StrictBase):
    enabled: bool
    path: str
    max_bytes: int
    backup_count: int


class HandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_StrictBase):
    level: str
    format: str
    handlers: HandlersSchema


# =============================================================================
# features.yaml
# =============================================================================


class FeaturesSchema(_StrictBase):
    auto_classify_tasks: bool = True
    auto_categorize: bool = True
    sync_error_events_enabled: bool = True


# =============================================================================
# sync.yaml
# =============================================================================


class ResilienceSchema(_StrictBase):
    retry_attempts: int = Field(default=3, ge=1)
    retry_wait_min_seconds: float = Field(default=0.5, ge=0)
    retry_wait_max_seconds: float = Field(default=5.0, ge=0)
    operation_timeout_seconds: float = Field(default=15.0, gt=0)
    breaker_fail_max: int = Field(default=5, ge=1)
    breaker_timeout_seconds: int = Field(default=30, ge=1)


class SemaphoresSchema(_StrictBase):
    remote_store: int = Field(default=8, ge=1)


class ConcurrencySchema(_StrictBase):
    semaphores: SemaphoresSchema = Field(default_factory=SemaphoresSchema)


class NotesSchema(_StrictBase):
    max_content_length: int = Field(default=10000, ge=1)
    default_category: str = "general"


class SyncSchema(_StrictBase):
    resilience: ResilienceSchema = Field(default_factory=ResilienceSchema)
    concurrency: ConcurrencySchema = Field(default_factory=ConcurrencySchema)
    notes: NotesSchema = Field(default_factory=NotesSchema)


# =============================================================================
# remote.yaml
# =============================================================================


class RemoteSchema(_StrictBase):
    backend: Literal["memory", "http"]
    base_url: str
    notes_path: str
    timeout_seconds: float
    poll_interval_seconds: float = Field(gt=0)
