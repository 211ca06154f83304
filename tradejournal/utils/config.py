from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    db_path: str = Field(default="data/journal.db", description="SQLite journal database path")

    jwt_secret: str = Field(default="secret", description="Signing secret for bearer tokens")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_expires_hours: int = Field(default=168, description="Bearer token lifetime in hours")

    recent_trades_limit: int = Field(default=10, description="Trades returned with dashboard metrics")
    default_page_size: int = Field(default=50, description="Default trade listing page size")
    max_page_size: int = Field(default=500, description="Largest accepted trade listing page size")

    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/journal.log", description="Log file path")

    host: str = Field(default="0.0.0.0", description="Bind address for the web server")
    port: int = Field(default=5000, description="Port for the web server")
    api_base_url: str = Field(default="http://localhost:5000", description="Journal API base URL for clients")
    request_timeout: float = Field(default=30.0, description="Client request timeout in seconds")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    global _settings
    _settings = Settings()
    return _settings
