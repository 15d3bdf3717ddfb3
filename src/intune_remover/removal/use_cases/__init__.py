"""Use cases for device removal."""

from ...config import DEFAULT_GATING_PLATFORM
from .remove_device import DeviceRemover
from .remove_devices import (
    RemoveDevicesUseCase,
    flatten_outcomes,
    normalize_serials,
    process_batch,
    process_batch_to_file,
    run_batch,
)

__all__ = [
    "DeviceRemover",
    "DEFAULT_GATING_PLATFORM",
    "RemoveDevicesUseCase",
    "flatten_outcomes",
    "normalize_serials",
    "run_batch",
    "process_batch",
    "process_batch_to_file",
]
