"""Exception taxonomy shared by the ingestion pipeline."""
from __future__ import annotations


class RibeyeError(Exception):
    """Base class for every error raised by the pipeline."""


class DiscoveryError(RibeyeError):
    """The dump file listing could not be obtained; nothing can run."""


class DecodeError(RibeyeError):
    """A dump file could not be opened or its byte stream is malformed."""


class ProcessorError(RibeyeError):
    """A processor failed on a record; isolated to that processor and file."""

    def __init__(self, processor: str, message: str) -> None:
        super().__init__(f"{processor}: {message}")
        self.processor = processor


class UnknownProcessorError(RibeyeError):
    """A requested processor name is not part of the built-in set."""


class StorageError(RibeyeError):
    """Reading or writing checkpoints or artifacts failed."""


class PublishError(StorageError):
    """The final artifact write failed after all retries."""


class AggregationError(RibeyeError):
    """Persisted payloads for a date cannot be merged."""


class FileTimeoutError(RibeyeError):
    """Processing a single dump file exceeded its time limit."""
