"""
message-ingest: Bulk Sink Interface
"""
from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence


class BulkSink(ABC):
    """Base class for every bulk-write destination."""

    @abstractmethod
    def insert(self, rows: Sequence[Mapping[str, Any]]) -> None:
        """
        Write all rows in one call.
        Raises SinkError on any failure; no retry, batching or capping here.
        """
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        """Check whether the settings this sink needs are present."""
        ...

    @property
    def name(self) -> str:
        return self.__class__.__name__
