"""Remove Device use case - the per-serial two-stage workflow.

Workflow for one serial:

    INTUNE STAGE (always)
    ├── Look up managed devices whose serial contains the value
    ├── No match  -> one Missing record, stop
    └── Per match -> Dry Run record, or delete -> Success / Failure

    GATE
    └── Continue only if an Intune match runs the gating platform
        (case-insensitive, "windows" by default)

    AUTOPILOT STAGE (gated)
    ├── Look up Autopilot identities whose serial contains the value
    ├── No match  -> one Missing record
    └── Per match -> Dry Run record, or delete -> Success / Failure

A failed lookup becomes a single Error record for that stage. A failed
Intune lookup leaves no matches, so the gate stays closed. Nothing raised by
the registry escapes ``remove``.
"""

import logging
from typing import Optional

from ...api.error_sanitizer import sanitize_error_message
from ...api.exceptions import DeleteError, QueryError, describe_error
from ...config import DEFAULT_GATING_PLATFORM
from ..domain.entities import (
    SKIPPED,
    DeviceRecord,
    ProgressEvent,
    RecordStatus,
    RegistryDevice,
    RegistryType,
)
from ..domain.ports import IDeviceRegistry, IProgressSink
from ..adapters.progress_sinks import NullProgressSink

logger = logging.getLogger(__name__)


class DeviceRemover:
    """Runs the Intune -> (gated) Autopilot workflow for one serial at a time.

    The remover holds no per-serial state, so one instance can serve every
    concurrent task of a batch.

    Example:
        remover = DeviceRemover(registry=GraphDeviceRegistry(client))
        records = await remover.remove("5CG1234ABC", dry_run=True)
    """

    def __init__(
        self,
        registry: IDeviceRegistry,
        sink: Optional[IProgressSink] = None,
        gating_platform: str = DEFAULT_GATING_PLATFORM,
    ):
        """Initialize the remover.

        Args:
            registry: Port used for lookups and deletes in both registries
            sink: Receives one event per record plus gate skips
            gating_platform: Operating system that opens the Autopilot stage
        """
        self.registry = registry
        self.sink = sink or NullProgressSink()
        self.gating_platform = gating_platform

    async def remove(self, serial: str, dry_run: bool = False) -> list[DeviceRecord]:
        """Process one serial through both stages.

        Args:
            serial: Serial number to remove
            dry_run: Look up only; never issue delete calls

        Returns:
            Ordered records: every Intune record, then any Autopilot records
        """
        records: list[DeviceRecord] = []

        matches = await self._process_stage(RegistryType.INTUNE, serial, dry_run, records)

        if self._gate_open(matches):
            await self._process_stage(RegistryType.AUTOPILOT, serial, dry_run, records)
        else:
            if any(record.status == RecordStatus.ERROR for record in records):
                detail = "Intune lookup failed"
            elif not matches:
                detail = "no Intune device"
            else:
                detail = f"no {self.gating_platform} device in Intune"
            logger.debug(f"Autopilot skipped for {serial}: {detail}")
            self._emit(
                ProgressEvent(
                    serial=serial,
                    stage=RegistryType.AUTOPILOT,
                    status=SKIPPED,
                    detail=detail,
                )
            )

        return records

    def _gate_open(self, matches: list[RegistryDevice]) -> bool:
        return any(device.runs(self.gating_platform) for device in matches)

    async def _process_stage(
        self,
        registry: RegistryType,
        serial: str,
        dry_run: bool,
        records: list[DeviceRecord],
    ) -> list[RegistryDevice]:
        """Look up and remove one serial in one registry.

        Appends this stage's records to ``records`` and returns the matches
        (empty when the lookup failed).
        """
        try:
            matches = await self.registry.find_by_serial(registry, serial)
        except Exception as e:
            error = QueryError(
                f"{registry.value} lookup failed for {serial}",
                serial=serial,
                registry=registry.value,
                cause=e,
            )
            logger.warning(f"{error.message}: {e}")
            self._record(
                records,
                DeviceRecord(
                    serial=serial,
                    registry=registry,
                    status=RecordStatus.ERROR,
                    error=sanitize_error_message(describe_error(error)),
                ),
            )
            return []

        if not matches:
            self._record(
                records,
                DeviceRecord(serial=serial, registry=registry, status=RecordStatus.MISSING),
            )
            return []

        for device in matches:
            self._record(records, await self._remove_match(registry, serial, device, dry_run))

        return matches

    async def _remove_match(
        self,
        registry: RegistryType,
        serial: str,
        device: RegistryDevice,
        dry_run: bool,
    ) -> DeviceRecord:
        operating_system = device.operating_system or ""

        if dry_run:
            logger.info(f"Dry run: would delete {registry.value} device {device.id} ({serial})")
            return DeviceRecord(
                serial=serial,
                registry=registry,
                status=RecordStatus.DRY_RUN,
                id=device.id,
                operating_system=operating_system,
            )

        try:
            await self.registry.delete_device(registry, device.id)
        except Exception as e:
            error = DeleteError(
                f"Deleting {registry.value} device {device.id} failed",
                serial=serial,
                registry=registry.value,
                device_id=device.id,
                cause=e,
            )
            logger.warning(f"{error.message}: {e}")
            return DeviceRecord(
                serial=serial,
                registry=registry,
                status=RecordStatus.FAILURE,
                id=device.id,
                operating_system=operating_system,
                error=sanitize_error_message(describe_error(error)),
            )

        return DeviceRecord(
            serial=serial,
            registry=registry,
            status=RecordStatus.SUCCESS,
            id=device.id,
            operating_system=operating_system,
        )

    def _record(self, records: list[DeviceRecord], record: DeviceRecord) -> None:
        records.append(record)
        self._emit(ProgressEvent.for_record(record))

    def _emit(self, event: ProgressEvent) -> None:
        try:
            self.sink.emit(event)
        except Exception as e:
            logger.warning(f"Progress sink failed for {event.serial}: {e}")
