"""Runtime configuration loaded from the environment"""
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

DEFAULT_REPORTING_URL = "http://localhost:8080/api/reports"


class Settings(BaseModel):
    """Application settings"""

    reporting_base_url: str = DEFAULT_REPORTING_URL
    tunnel_token: str = "69420"
    request_timeout: Optional[float] = Field(default=None, gt=0)
    require_join_path: bool = True
    refresh_latency: float = Field(default=1.0, ge=0)
    log_level: str = "INFO"
    port: int = 8000
    storage_secret: str = "STORAGE_SECRET"

    @field_validator("request_timeout", mode="before")
    @classmethod
    def _empty_timeout(cls, value):
        # an empty variable means no local timeout
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("reporting_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """Build settings from environment variables (and a .env file if present)"""
        if dotenv:
            load_dotenv()

        env_map = {
            "reporting_base_url": "REPORTING_API_URL",
            "tunnel_token": "REPORTING_TUNNEL_TOKEN",
            "request_timeout": "REPORTING_TIMEOUT",
            "require_join_path": "REQUIRE_JOIN_PATH",
            "refresh_latency": "REFRESH_LATENCY",
            "log_level": "LOG_LEVEL",
            "port": "NICEGUI_PORT",
            "storage_secret": "NICEGUI_STORAGE_SECRET",
        }
        values = {field: os.environ[var] for field, var in env_map.items() if var in os.environ}
        return cls(**values)

    @property
    def reporting_configured(self) -> bool:
        return "REPORTING_API_URL" in os.environ or self.reporting_base_url != DEFAULT_REPORTING_URL
