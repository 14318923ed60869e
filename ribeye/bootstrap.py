"""Helpers to bootstrap the result store schema."""
from __future__ import annotations

from pathlib import Path

from ribeye.config import Settings, get_settings
from ribeye.db import execute_sql_file, get_engine


def initialize_database(settings: Settings | None = None) -> None:
    """Create schema objects if they do not exist."""
    settings = settings or get_settings()
    schema_path = Path(settings.schema_file)
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_path}")

    execute_sql_file(get_engine(settings.database_url), str(schema_path))
