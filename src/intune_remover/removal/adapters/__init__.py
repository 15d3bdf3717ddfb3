"""Adapters implementing removal ports and file formats."""

from .csv_exporter import default_output_path, records_to_csv, write_csv
from .graph_registry import REGISTRY_ENDPOINTS, GraphDeviceRegistry
from .progress_sinks import CollectingProgressSink, LoggingProgressSink, NullProgressSink
from .serial_loader import DEFAULT_SERIAL_COLUMN, load_serial_numbers

__all__ = [
    "GraphDeviceRegistry",
    "REGISTRY_ENDPOINTS",
    "LoggingProgressSink",
    "CollectingProgressSink",
    "NullProgressSink",
    "records_to_csv",
    "write_csv",
    "default_output_path",
    "load_serial_numbers",
    "DEFAULT_SERIAL_COLUMN",
]
