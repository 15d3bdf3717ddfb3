"""Domain entities for device removal.

These are pure domain objects with no infrastructure dependencies. They
represent what one batch produces: per-device records, progress events and
the batch summary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class RegistryType(str, Enum):
    """The two registries a serial is removed from, in processing order."""

    INTUNE = "Intune"  # Primary: managed device inventory
    AUTOPILOT = "Autopilot"  # Secondary: Windows provisioning identities


class RecordStatus(str, Enum):
    """Outcome of one device (or one empty lookup) in one registry."""

    MISSING = "Missing"  # Lookup found no match
    SUCCESS = "Success"  # Device deleted
    FAILURE = "Failure"  # Delete call failed
    ERROR = "Error"  # Lookup itself failed
    DRY_RUN = "Dry Run"  # Device matched, delete suppressed


# Progress-only status: the Autopilot stage was gated off for a serial
SKIPPED = "Skipped"


@dataclass(frozen=True)
class RegistryDevice:
    """A device returned by a registry lookup."""

    id: str
    operating_system: Optional[str] = None
    serial_number: Optional[str] = None

    def runs(self, platform: str) -> bool:
        """Case-insensitive operating system check."""
        if not self.operating_system:
            return False
        return self.operating_system.strip().lower() == platform.strip().lower()


@dataclass(frozen=True)
class DeviceRecord:
    """One row of the removal report. Never mutated once created."""

    serial: str
    registry: RegistryType
    status: RecordStatus
    id: str = ""
    operating_system: str = ""
    error: Optional[str] = None

    def to_dict(self) -> dict[str, str]:
        """Export row; key order is the report's column order."""
        return {
            "serial": self.serial,
            "id": self.id,
            "operatingSystem": self.operating_system,
            "type": self.registry.value,
            "status": self.status.value,
            "error": self.error or "",
        }


@dataclass(frozen=True)
class ProgressEvent:
    """Structured progress notification sent to a progress sink.

    Attributes:
        serial: Serial being processed
        stage: Registry the event relates to
        status: A RecordStatus value, or SKIPPED
        device_id: Registry device id, when the event concerns one device
        detail: Error message or other free text
    """

    serial: str
    stage: RegistryType
    status: str
    device_id: Optional[str] = None
    detail: Optional[str] = None

    @classmethod
    def for_record(cls, record: DeviceRecord) -> "ProgressEvent":
        return cls(
            serial=record.serial,
            stage=record.registry,
            status=record.status.value,
            device_id=record.id or None,
            detail=record.error,
        )


@dataclass
class BatchResult:
    """Result of one batch: every record, in submission order."""

    records: list[DeviceRecord] = field(default_factory=list)
    dry_run: bool = False
    serial_count: int = 0

    # Timing
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if not self.started_at or not self.completed_at:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def status_counts(self) -> dict[str, int]:
        """Number of records per status, every status present."""
        counts = {status.value: 0 for status in RecordStatus}
        for record in self.records:
            counts[record.status.value] += 1
        return counts

    @property
    def has_problems(self) -> bool:
        """True when any record failed or errored."""
        return any(
            r.status in (RecordStatus.FAILURE, RecordStatus.ERROR) for r in self.records
        )

    def rows(self) -> list[dict[str, str]]:
        return [record.to_dict() for record in self.records]

    def to_dict(self) -> dict:
        """Summary for logging and CLI output."""
        return {
            "dry_run": self.dry_run,
            "serials": self.serial_count,
            "records": len(self.records),
            "status_counts": self.status_counts,
            "duration_seconds": round(self.duration_seconds, 2),
        }
