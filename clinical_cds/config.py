"""
Clinical CDS Configuration Management
Handles all application settings using Pydantic Settings
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings with validation"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True
    )

    # Environment
    environment: str = Field(default="development", pattern="^(development|production|test)$")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # API Server
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000, ge=1, le=65535)
    api_workers: int = Field(default=4, ge=1, le=32)
    api_reload: bool = Field(default=True)

    # Persistence
    storage_backend: str = Field(default="memory", pattern="^(memory|redis|database)$")
    storage_history_key: str = Field(default="clinical-toolkit-cds-history")
    storage_audit_key: str = Field(default="clinical-toolkit-cds-audit")
    storage_max_retries: int = Field(default=3, ge=1, le=10)

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_max_connections: int = Field(default=50, ge=10, le=200)

    # Database
    database_url: str = Field(default="sqlite:///./clinical_cds.db")
    database_echo: bool = Field(default=False)

    # Retention
    history_retention_days: int = Field(default=90, ge=1, le=3650)
    audit_retention_days: Optional[int] = Field(default=None, ge=1, le=3650)

    # Celery
    celery_broker_url: str = Field(default="redis://localhost:6379/1")
    celery_result_backend: str = Field(default="redis://localhost:6379/2")
    celery_task_always_eager: bool = Field(default=False)
    retention_cleanup_hour: int = Field(default=2, ge=0, le=23)

    # Clinical Rules Engine
    running_alert_limit: int = Field(default=500, ge=1, le=100000)

    # Clinical Rules
    rules_enable_all: bool = Field(default=True)
    rules_drug_interaction: bool = Field(default=True)
    rules_contraindication: bool = Field(default=True)
    rules_vital_signs: bool = Field(default=True)
    rules_assessment_score: bool = Field(default=True)
    rules_preventive_care: bool = Field(default=True)

    # Security
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )
    cors_allow_credentials: bool = Field(default=True)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @model_validator(mode="after")
    def validate_retention(self) -> "Settings":
        """Audit evidence must not be pruned earlier than alert history"""
        if (
            self.audit_retention_days is not None
            and self.audit_retention_days < self.history_retention_days
        ):
            raise ValueError("audit_retention_days must be >= history_retention_days")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.environment == "development"

    @property
    def is_test(self) -> bool:
        """Check if running in test"""
        return self.environment == "test"

    def rule_category_enabled(self, category: str) -> bool:
        """Whether the rule group for a catalog category is switched on"""
        if not self.rules_enable_all:
            return False
        flag = "rules_" + category.replace("-", "_")
        return getattr(self, flag, True)


# Global settings instance
settings = Settings()
