from __future__ import annotations

import pytest

from ribeye.bootstrap import initialize_database
from ribeye.config import Settings
from ribeye.db import get_engine
from ribeye.output import OutputWriter
from ribeye.store import ResultStore


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'ribeye.db'}",
        results_dir=tmp_path / "results",
        cache_dir=tmp_path / "cache",
        threads=2,
        file_timeout=0,
        storage_retries=2,
        retry_backoff=0,
        retention_days=0,
        log_level="DEBUG",
    )


@pytest.fixture
def store(settings):
    initialize_database(settings)
    return ResultStore(get_engine(settings.database_url), retries=1, backoff=0)


@pytest.fixture
def writer(settings):
    return OutputWriter(settings.results_dir, retries=2, backoff=0, sleep=lambda _: None)
