"""Bulk removal of devices from Microsoft Intune and Windows Autopilot.

Quick start:
    from intune_remover import load_connection_file, process_batch_to_file

    connection = load_connection_file("conn.json")
    path = await process_batch_to_file(["5CG1234ABC"], connection, dry_run=True)
"""

__version__ = "1.0.0"

from .config import ConnectionInfo, Settings, connection_from_env, load_connection_file
from .removal import (
    BatchResult,
    DeviceRecord,
    RecordStatus,
    RegistryType,
    process_batch,
    process_batch_to_file,
    run_batch,
)

__all__ = [
    "__version__",
    "ConnectionInfo",
    "Settings",
    "connection_from_env",
    "load_connection_file",
    "BatchResult",
    "DeviceRecord",
    "RecordStatus",
    "RegistryType",
    "process_batch",
    "process_batch_to_file",
    "run_batch",
]
