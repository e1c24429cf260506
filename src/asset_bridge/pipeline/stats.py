"""Counters for one import run."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


def format_duration(seconds: int) -> str:
    """Format whole seconds as ``"1h 2m 3s"``, ``"4m 5s"`` or ``"6s"``."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


@dataclass
class ImportStats:
    """Mutable counters owned by exactly one orchestrator run."""

    total_received: int = 0
    total_processed: int = 0
    total_failed: int = 0
    record_types_processed: int = 0
    record_types_skipped: int = 0
    record_types_failed: int = 0
    start_time: datetime | None = None
    end_time: datetime | None = None

    def reset(self) -> None:
        self.total_received = 0
        self.total_processed = 0
        self.total_failed = 0
        self.record_types_processed = 0
        self.record_types_skipped = 0
        self.record_types_failed = 0
        self.start_time = None
        self.end_time = None

    def start(self) -> None:
        self.start_time = datetime.now(UTC)
        self.end_time = None

    def finish(self) -> None:
        self.end_time = datetime.now(UTC)

    @property
    def has_failures(self) -> bool:
        """Whether any batch or record type failed."""
        return self.total_failed > 0 or self.record_types_failed > 0

    @property
    def duration_seconds(self) -> int:
        if self.start_time is None:
            return 0
        end = self.end_time or datetime.now(UTC)
        return int((end - self.start_time).total_seconds())

    def format_duration(self) -> str:
        if self.start_time is None:
            return "N/A"
        return format_duration(self.duration_seconds)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "total_received": self.total_received,
            "total_processed": self.total_processed,
            "total_failed": self.total_failed,
            "record_types_processed": self.record_types_processed,
            "record_types_skipped": self.record_types_skipped,
            "record_types_failed": self.record_types_failed,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.format_duration(),
        }
