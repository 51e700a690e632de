"""
Configuration management using Pydantic Settings
"""
import json
from functools import lru_cache
from pathlib import Path
from typing import Dict, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# config.py is at: claimdesk/core/config.py
# Project root is: claimdesk/core/../../
_current_file = Path(__file__).resolve()
_package_dir = _current_file.parent.parent
PROJECT_ROOT = _package_dir.parent
ENV_FILE = PROJECT_ROOT / ".env"
# Fallback: .env in the working directory
if not ENV_FILE.exists():
    ENV_FILE = Path.cwd() / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE, override=False)


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "claimdesk"
    app_env: str = Field(default="development", description="Application environment")

    # Remote API
    api_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the REST backend"
    )
    api_prefix: str = Field(default="/api/v1", description="Path prefix of every resource")
    page_limit: int = Field(default=100, ge=1, description="Default limit for list calls")
    request_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Request timeout; unset means no timeout beyond the network stack"
    )
    max_concurrent_requests: int = Field(
        default=5,
        ge=1,
        description="Connection pool size; bounds concurrent detail fetches"
    )

    # Storage
    storage_backend: Literal["remote", "local"] = Field(
        default="remote",
        description="'remote' uses the REST API, 'local' a JSON cache file"
    )
    local_cache_path: str = Field(
        default="data/claimdesk_cache.json",
        description="Path of the local JSON cache (relative to project root)"
    )
    notification_history_size: int = Field(default=50, ge=1)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="text",
        description="Log format: 'json' for structured logging, 'text' for plain text"
    )
    log_module_levels: Optional[str] = Field(
        default=None,
        description='Module-specific log levels (JSON string, e.g., {"claimdesk.services": "DEBUG"})'
    )
    log_file_enabled: bool = Field(default=False, description="Enable file logging")
    log_file_path: str = Field(
        default="logs/claimdesk.log",
        description="Path to log file (relative to project root)"
    )
    log_file_rotation: str = Field(
        default="midnight",
        description="Log file rotation: 'midnight' or 'W0'..'W6' (weekly)"
    )
    log_file_retention: int = Field(default=30, ge=1, description="Number of rotated files to keep")
    log_sensitive_data: bool = Field(
        default=False,
        description="Enable logging of sensitive data (passwords, tokens) - NOT RECOMMENDED"
    )

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoints are joined as base + prefix + path"""
        v = v.strip()
        if not v.startswith("http://") and not v.startswith("https://"):
            v = f"http://{v}"
        return v.rstrip("/")

    @field_validator("log_format")
    @classmethod
    def normalize_log_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v

    @property
    def api_root(self) -> str:
        """Base URL including the API prefix"""
        return f"{self.api_base_url}{self.api_prefix}"

    @property
    def cache_file(self) -> Path:
        """Resolved location of the local cache file"""
        path = Path(self.local_cache_path)
        if not path.is_absolute():
            path = PROJECT_ROOT / path
        return path

    @property
    def module_levels(self) -> Dict[str, str]:
        """Parse module-specific log levels, ignoring malformed input"""
        if not self.log_module_levels:
            return {}
        try:
            levels = json.loads(self.log_module_levels)
        except (json.JSONDecodeError, TypeError):
            return {}
        return levels if isinstance(levels, dict) else {}

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
