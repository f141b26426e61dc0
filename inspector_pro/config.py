"""Application configuration loaded from config.yaml + environment variables."""

from __future__ import annotations

import yaml
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    return {}


_yaml = _load_yaml()


class MediaConfig(BaseSettings):
    backend: str = "local"  # local | s3
    base_dir: str = "data/media"
    public_base_url: str = "http://localhost:8000/media"
    s3_bucket: str = ""
    s3_region: str = ""


class PushConfig(BaseSettings):
    enabled: bool = False
    credentials_path: str = ""
    multicast_chunk_size: int = 500


class ReportsConfig(BaseSettings):
    max_images: int = 20
    upload_concurrency: int = 4


class SweeperConfig(BaseSettings):
    enabled: bool = True
    session_ttl: str = "7d"
    interval_ms: int = 86_400_000
    batch_size: int = 500


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///data/inspector.db"
    log_level: str = "INFO"
    media: MediaConfig = Field(default_factory=MediaConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    reports: ReportsConfig = Field(default_factory=ReportsConfig)
    sweeper: SweeperConfig = Field(default_factory=SweeperConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def get_settings() -> Settings:
    """Build Settings by merging YAML defaults with env overrides."""
    y = _yaml
    media = MediaConfig(**y.get("media", {}))
    push = PushConfig(**y.get("push", {}))
    reports = ReportsConfig(**y.get("reports", {}))
    sweeper = SweeperConfig(**y.get("sweeper", {}))
    db_url = y.get("database", {}).get("url", "sqlite+aiosqlite:///data/inspector.db")
    return Settings(
        database_url=db_url,
        log_level=y.get("log_level", "INFO"),
        media=media,
        push=push,
        reports=reports,
        sweeper=sweeper,
    )
