"""Domain layer for device removal - entities and ports."""

from .entities import (
    SKIPPED,
    BatchResult,
    DeviceRecord,
    ProgressEvent,
    RecordStatus,
    RegistryDevice,
    RegistryType,
)
from .ports import IDeviceRegistry, IProgressSink

__all__ = [
    # Entities
    "BatchResult",
    "DeviceRecord",
    "ProgressEvent",
    "RecordStatus",
    "RegistryDevice",
    "RegistryType",
    "SKIPPED",
    # Ports
    "IDeviceRegistry",
    "IProgressSink",
]
