"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="incident-service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    api_prefix: str = Field(default="/api", description="Prefix for all REST routes")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/incidents",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Authentication ==========
    jwt_secret: str = Field(
        default="change-me",
        description="Secret used to sign access tokens"
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_expires_minutes: int = Field(
        default=60,
        description="Access token lifetime in minutes",
        ge=1
    )

    # ========== Inference API ==========
    inference_api_key: Optional[str] = Field(
        default=None,
        description="Hosted inference API key (heuristic mode when unset)"
    )
    inference_base_url: str = Field(
        default="https://router.huggingface.co/hf-inference/models",
        description="Base URL of the hosted inference API"
    )
    embedding_model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="Model used for text embeddings"
    )
    classification_model: str = Field(
        default="facebook/bart-large-mnli",
        description="Model used for zero-shot classification"
    )
    text_generation_model: str = Field(
        default="mistralai/Mistral-7B-Instruct-v0.2",
        description="Model used for solution generation and summaries"
    )
    inference_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for every inference API call",
        ge=0.1,
        le=120
    )
    mock_inference: bool = Field(
        default=False,
        description="Use deterministic mock inference responses (no API calls)"
    )

    # ========== Triage Pipeline ==========
    embedding_dimension: int = Field(
        default=384,
        description="Embedding vector dimension",
        ge=8
    )
    embedding_cache_size: int = Field(
        default=1000,
        description="Entries kept before the embedding cache is flushed",
        ge=1
    )
    duplicate_threshold: float = Field(
        default=0.75,
        description="Minimum cosine similarity for a duplicate match",
        ge=0.0,
        le=1.0
    )
    solution_threshold: float = Field(
        default=0.6,
        description="Minimum cosine similarity for a resolved incident to suggest its solution",
        ge=0.0,
        le=1.0
    )
    anomaly_threshold: float = Field(
        default=0.45,
        description="Anomaly score above which an incident is flagged",
        ge=0.0,
        le=1.0
    )
    anomaly_window_days: int = Field(
        default=7,
        description="Days of recent incidents the anomaly score compares against",
        ge=1
    )

    # ========== Uploads ==========
    upload_dir: Path = Field(
        default=Path("uploads"),
        description="Directory where attachments are written"
    )
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Maximum attachment size in bytes",
        ge=1
    )

    # ========== Realtime ==========
    realtime_max_connections: int = Field(
        default=100,
        description="Maximum concurrent realtime clients",
        ge=1
    )
    realtime_queue_size: int = Field(
        default=50,
        description="Per-client outbound event queue size",
        ge=1
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @property
    def is_sqlite(self) -> bool:
        """SQLite engines do not accept pool sizing arguments."""
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Role(str):
    """User roles."""
    EMPLOYEE = "employee"
    RESPONDER = "responder"
    ADMIN = "admin"


class IncidentCategory(str):
    """Incident categories."""
    IT = "IT"
    HR = "HR"
    FACILITY = "Facility"


class RoutingCategory(str):
    """Categories a routing rule may target (superset of incident categories)."""
    IT = "IT"
    HR = "HR"
    FACILITY = "Facility"
    NETWORK = "Network"
    SOFTWARE = "Software"
    HARDWARE = "Hardware"
    OTHER = "Other"


class Severity(str):
    """Incident severity levels."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class IncidentStatus(str):
    """Incident lifecycle statuses."""
    OPEN = "Open"
    INVESTIGATING = "Investigating"
    RESOLVED = "Resolved"


class ActivityType(str):
    """Activity log entry types."""
    CREATED = "created"
    STATUS = "status"
    COMMENT = "comment"
    ATTACHMENT = "attachment"
    WATCH = "watch"
    ASSIGN = "assign"


class RealtimeEvent(str):
    """Events pushed over the realtime channel."""
    INCIDENT_CREATED = "incident:created"
    INCIDENT_UPDATED = "incident:updated"
    INCIDENT_ASSIGNED = "incident:assigned"
    COMMENT_ADDED = "comment:added"


# ========== Lists for validation ==========

VALID_ROLES = [Role.EMPLOYEE, Role.RESPONDER, Role.ADMIN]
PRIVILEGED_ROLES = [Role.RESPONDER, Role.ADMIN]
INCIDENT_CATEGORIES = [
    IncidentCategory.IT, IncidentCategory.HR, IncidentCategory.FACILITY
]
ROUTING_CATEGORIES = [
    RoutingCategory.IT, RoutingCategory.HR, RoutingCategory.FACILITY,
    RoutingCategory.NETWORK, RoutingCategory.SOFTWARE,
    RoutingCategory.HARDWARE, RoutingCategory.OTHER
]
SEVERITY_LEVELS = [
    Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL
]
VALID_STATUSES = [
    IncidentStatus.OPEN, IncidentStatus.INVESTIGATING, IncidentStatus.RESOLVED
]
ACTIVE_STATUSES = [IncidentStatus.OPEN, IncidentStatus.INVESTIGATING]
