"""Base report sink interface."""

from abc import ABC, abstractmethod

from repocredit.pipeline.pivot import Table


class ReportSink(ABC):
    """Receives finished tables. Nothing is handed over for a failed table."""

    sink_name: str

    @abstractmethod
    def write(self, table: Table, section: str | None = None) -> None:
        """Persist one table under ``section`` (defaults to the table name)."""
        ...

    def close(self) -> None:
        return None
