"""Configuration loader for the RIB processing pipeline."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


load_dotenv()


def _env(name: str, default: str) -> str:
    return os.environ.get(name, default)


@dataclass
class Settings:
    """Runtime settings loaded from environment variables."""

    database_url: str = field(default_factory=lambda: _env("DATABASE_URL", "sqlite:///data/ribeye.db"))
    results_dir: Path = field(default_factory=lambda: Path(_env("RESULTS_DIR", "results")))
    cache_dir: Path = field(default_factory=lambda: Path(_env("CACHE_DIR", "data/cache")))
    schema_file: Path = field(default_factory=lambda: Path(_env("SCHEMA_FILE", str(Path(__file__).with_name("schema.sql")))))
    broker_url: str = field(default_factory=lambda: _env("BROKER_URL", "https://api.broker.bgpkit.com/v3"))
    threads: int = field(default_factory=lambda: int(_env("THREADS", str(min(8, os.cpu_count() or 1)))))
    file_timeout: float = field(default_factory=lambda: float(_env("FILE_TIMEOUT", "3600")))
    storage_retries: int = field(default_factory=lambda: int(_env("STORAGE_RETRIES", "3")))
    retry_backoff: float = field(default_factory=lambda: float(_env("RETRY_BACKOFF", "1.0")))
    retention_days: int = field(default_factory=lambda: int(_env("RETENTION_DAYS", "30")))
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))

    def ensure_directories(self) -> None:
        """Create necessary local directories for data persistence."""
        self.results_dir.mkdir(parents=True, exist_ok=True)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        if self.database_url.startswith("sqlite:///") and not self.database_url.endswith(":memory:"):
            Path(self.database_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)


def get_settings() -> Settings:
    """Return a settings instance built from the current environment."""
    settings = Settings()
    settings.ensure_directories()
    return settings
