"""Application configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_PROMPTS_DIR = Path(__file__).parent / "prompts"

STDIO_MODE = "stdio"
HTTP_MODE = "http"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Transport
    mcp_mode: str = STDIO_MODE
    mcp_server_host: str = "0.0.0.0"
    mcp_server_port: int = 8080

    # ReportPortal
    rp_host: Optional[str] = None
    rp_api_token: Optional[str] = None
    rp_project: Optional[str] = None
    rp_connection_timeout: float = 30.0

    # Prompts
    rp_prompts_dir: Path = DEFAULT_PROMPTS_DIR

    log_level: str = "INFO"

    @field_validator("mcp_mode", mode="before")
    @classmethod
    def normalize_mode(cls, value: Optional[str]) -> str:
        return (value or STDIO_MODE).strip().lower()

    @field_validator("rp_host", "rp_api_token", "rp_project", mode="before")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("rp_host")
    @classmethod
    def validate_host(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.startswith(("http://", "https://")):
            raise ValueError("rp_host must be an http(s) URL")
        return value.rstrip("/") if value else value

    @property
    def is_http(self) -> bool:
        return self.mcp_mode == HTTP_MODE

    def validate_for_mode(self) -> "Settings":
        """Fail fast when the selected transport mode cannot be served."""
        if self.mcp_mode not in (STDIO_MODE, HTTP_MODE):
            raise ConfigurationError(
                f"unknown MCP_MODE {self.mcp_mode!r}, expected 'stdio' or 'http'"
            )
        if not self.rp_host:
            raise ConfigurationError("RP_HOST is required")
        if self.mcp_mode == STDIO_MODE and not self.rp_api_token:
            raise ConfigurationError(
                "RP_API_TOKEN is required for stdio mode "
                "(set the environment variable or pass --token)"
            )
        if self.mcp_mode == HTTP_MODE and self.rp_api_token:
            logger.warning(
                "RP_API_TOKEN is ignored in http mode, "
                "tokens must be sent per request in the Authorization header"
            )
        return self
