"""
Credential Validator Configuration
Pydantic Settings for environment-based configuration.
Single source of truth for all app settings.
"""

from functools import lru_cache
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


DEFAULT_DICTIONARIES_DIR = Path(__file__).resolve().parent.parent / "dictionaries"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Use .env file for local development, env vars for production.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # App Identity
    # ==========================================================================
    app_name: str = "Credential Validator"
    app_version: str = "1.0.0"
    app_description: str = """
## Credential Validator - Graduation Request Document Review

Validates the academic documents attached to a graduation request.

### Key Features
- **Dictionary matching** - exact and fuzzy keyword cascade per document type
- **TyT extraction** - identity number, registration code, institution, program, date
- **Priority tiers** - concurrent review with per-tier deadlines
- **Complete records** - every response carries all output fields
"""
    debug: bool = False
    enable_docs: bool = True

    # ==========================================================================
    # Server
    # ==========================================================================
    host: str = "0.0.0.0"
    port: int = 8000

    # ==========================================================================
    # Dictionaries
    # ==========================================================================
    dictionaries_dir: Path = DEFAULT_DICTIONARIES_DIR
    min_dictionary_entries: int = 5  # Below this a file is merged with the built-in vocabulary
    preload_dictionaries: bool = True

    # ==========================================================================
    # Matching thresholds (empirically tuned, keep configurable)
    # ==========================================================================
    fuzzy_similarity_threshold: float = 0.75
    fuzzy_parts_ratio: float = 0.6
    fuzzy_substring_ratio: float = 0.6
    fuzzy_min_keyword_length: int = 6
    small_dictionary_size: int = 5

    # ==========================================================================
    # Processing
    # ==========================================================================
    tier_timeout_seconds: float = 30.0
    extraction_timeout_seconds: float = 25.0
    max_document_size_mb: int = 500
    max_concurrent_extractions: int = 4  # Worker threads busy parsing files at once
    accepted_url_hosts: str = "drive.google.com,docs.google.com"

    @field_validator("tier_timeout_seconds", "extraction_timeout_seconds")
    @classmethod
    def ensure_positive_timeout(cls, v: float) -> float:
        """Timeouts must leave room for at least one extraction call."""
        if v <= 0:
            raise ValueError("timeout must be greater than zero")
        return v

    @field_validator("fuzzy_similarity_threshold", "fuzzy_parts_ratio", "fuzzy_substring_ratio")
    @classmethod
    def ensure_ratio(cls, v: float) -> float:
        if not 0 < v <= 1:
            raise ValueError("ratio must be in (0, 1]")
        return v

    # ==========================================================================
    # Observability
    # ==========================================================================
    log_level: str = "INFO"
    log_json_format: bool = False
    log_file: str = ""

    # ==========================================================================
    # Deployment
    # ==========================================================================
    cors_origins: str = ""  # Comma-separated list of allowed origins. Leave empty for secure defaults.

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS origins into a list with secure defaults.
        - If explicit origins set: use those
        - If empty: restrict to localhost only
        """
        if self.cors_origins:
            if self.cors_origins == "*":
                return ["*"]
            return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

        return [
            "http://localhost:8000",
            "http://127.0.0.1:8000",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]

    @property
    def accepted_url_hosts_list(self) -> list[str]:
        """Parse accepted document hosts into a list."""
        return [host.strip().lower() for host in self.accepted_url_hosts.split(",") if host.strip()]

    @property
    def max_document_size_bytes(self) -> int:
        return self.max_document_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Use dependency injection: Depends(get_settings)
    """
    return Settings()
