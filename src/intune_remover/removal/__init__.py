"""Bulk removal of devices from Intune and Windows Autopilot.

Layers:
    domain: entities (DeviceRecord, BatchResult, ...) and ports
    adapters: Graph registry, CSV export, serial loading, progress sinks
    use_cases: per-serial DeviceRemover and the batch RemoveDevicesUseCase
"""

from .domain import (
    BatchResult,
    DeviceRecord,
    ProgressEvent,
    RecordStatus,
    RegistryType,
)
from .use_cases import (
    DeviceRemover,
    RemoveDevicesUseCase,
    process_batch,
    process_batch_to_file,
    run_batch,
)

__all__ = [
    "BatchResult",
    "DeviceRecord",
    "ProgressEvent",
    "RecordStatus",
    "RegistryType",
    "DeviceRemover",
    "RemoveDevicesUseCase",
    "process_batch",
    "process_batch_to_file",
    "run_batch",
]
