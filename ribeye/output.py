"""Atomic publication of daily aggregates as JSON artifacts."""
from __future__ import annotations

import bz2
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable

from ribeye.errors import PublishError
from ribeye.models import DailyAggregate
from ribeye.retry import with_retries

logger = logging.getLogger(__name__)

PLAIN_NAME = "latest.json"
COMPRESSED_NAME = "latest.json.bz2"


def render(aggregate: DailyAggregate) -> bytes:
    """Canonical serialization: identical aggregates give identical bytes."""
    document = {
        "processor": aggregate.processor,
        "date": aggregate.date.isoformat(),
        "sources": list(aggregate.sources),
        "skipped": aggregate.skipped,
        "data": aggregate.payload,
    }
    return (json.dumps(document, indent=2, sort_keys=True) + "\n").encode("utf-8")


def load_artifact(path: Path) -> dict[str, Any]:
    """Read back either artifact variant."""
    path = Path(path)
    raw = path.read_bytes()
    if path.suffix == ".bz2":
        raw = bz2.decompress(raw)
    return json.loads(raw.decode("utf-8"))


class OutputWriter:
    """Writes `<root>/<processor>/<date>/latest.json` and its bz2 twin."""

    def __init__(
        self,
        root: Path,
        *,
        retries: int = 3,
        backoff: float = 1.0,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.root = Path(root)
        self.retries = retries
        self.backoff = backoff
        self._sleep = sleep

    def directory(self, processor: str, day) -> Path:
        return self.root / processor / day.isoformat()

    def publish(self, aggregate: DailyAggregate) -> tuple[Path, Path]:
        """Write both variants; raises PublishError once retries are exhausted."""
        content = render(aggregate)
        target_dir = self.directory(aggregate.processor, aggregate.date)
        plain = target_dir / PLAIN_NAME
        compressed = target_dir / COMPRESSED_NAME

        def write() -> None:
            target_dir.mkdir(parents=True, exist_ok=True)
            _atomic_write(plain, content)
            _atomic_write(compressed, bz2.compress(content, 9))

        kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
        try:
            with_retries(
                write,
                attempts=self.retries,
                backoff=self.backoff,
                retry_on=(OSError,),
                what=f"publishing {plain}",
                **kwargs,
            )
        except OSError as exc:
            raise PublishError(f"cannot publish {aggregate.processor} for {aggregate.date}: {exc}") from exc

        logger.info("wrote %s and %s", plain, compressed)
        return plain, compressed


def _atomic_write(path: Path, data: bytes) -> None:
    """Write through a temp file in the same directory, then rename over."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
