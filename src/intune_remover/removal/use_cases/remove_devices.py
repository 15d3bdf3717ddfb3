"""Remove Devices use case - orchestrates one batch.

Workflow:
1. Validate the serial list (fatal ValidationError before anything else)
2. Acquire one token for the whole batch (fatal AuthenticationError)
3. Schedule one DeviceRemover task per serial, at most N in flight
4. Flatten per-serial record lists in submission order
5. Optionally write the result file

Only steps 1 and 2 can abort a batch. Every later failure is already a
record status by the time it reaches the aggregator.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from ...api.auth import TokenManager
from ...api.client import GraphClient, has_control_characters
from ...api.concurrency import DEFAULT_MAX_CONCURRENCY, ConcurrencyLimiter
from ...api.error_sanitizer import sanitize_error_message
from ...api.exceptions import ValidationError, describe_error
from ...config import DEFAULT_GATING_PLATFORM, ConnectionInfo, Settings
from ..adapters.csv_exporter import default_output_path, write_csv
from ..adapters.graph_registry import GraphDeviceRegistry
from ..domain.entities import BatchResult, DeviceRecord, RecordStatus, RegistryType
from ..domain.ports import IDeviceRegistry, IProgressSink
from .remove_device import DeviceRemover

logger = logging.getLogger(__name__)


def normalize_serials(serials: Iterable[str]) -> list[str]:
    """Strip serials and reject unusable input.

    Duplicates are kept: each occurrence gets its own records, in place.

    Raises:
        ValidationError: If the list is empty or an entry is blank, not text
            or holds control characters
    """
    normalized = []
    for position, serial in enumerate(serials, start=1):
        if not isinstance(serial, str):
            raise ValidationError(
                f"Serial #{position} is not text: {serial!r}",
                field="serials",
                details={"position": position},
            )
        value = serial.strip()
        if not value:
            # A blank contains() filter would match every device in the tenant
            raise ValidationError(
                f"Serial #{position} is blank",
                field="serials",
                details={"position": position},
            )
        if has_control_characters(value):
            raise ValidationError(
                f"Serial #{position} contains control characters",
                field="serials",
                details={
                    "position": position,
                    "value": value.encode("unicode_escape").decode("ascii"),
                },
            )
        normalized.append(value)

    if not normalized:
        raise ValidationError("No serial numbers supplied", field="serials")
    return normalized


def flatten_outcomes(
    serials: Sequence[str],
    outcomes: Sequence[Union[list[DeviceRecord], Exception]],
) -> list[DeviceRecord]:
    """Concatenate per-serial outcomes in submission order.

    An exception in a slot means the workflow itself broke for that serial;
    it is reported as one Intune Error record so every serial still appears.
    """
    records: list[DeviceRecord] = []
    for serial, outcome in zip(serials, outcomes):
        if isinstance(outcome, Exception):
            records.append(
                DeviceRecord(
                    serial=serial,
                    registry=RegistryType.INTUNE,
                    status=RecordStatus.ERROR,
                    error=sanitize_error_message(describe_error(outcome)),
                )
            )
        else:
            records.extend(outcome)
    return records


class RemoveDevicesUseCase:
    """Run the removal workflow over a list of serials.

    This use case depends only on ports, so it runs the same against Graph
    or an in-memory registry.

    Example:
        use_case = RemoveDevicesUseCase(
            registry=GraphDeviceRegistry(client),
            sink=LoggingProgressSink(),
        )
        result = await use_case.execute(["5CG1234ABC"], dry_run=True)
    """

    def __init__(
        self,
        registry: IDeviceRegistry,
        sink: Optional[IProgressSink] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        gating_platform: str = DEFAULT_GATING_PLATFORM,
    ):
        self.remover = DeviceRemover(
            registry=registry,
            sink=sink,
            gating_platform=gating_platform,
        )
        self.limiter = ConcurrencyLimiter(max_concurrent=max_concurrency)

    async def execute(self, serials: Iterable[str], dry_run: bool = False) -> BatchResult:
        """Process every serial and return the ordered result.

        Raises:
            ValidationError: If the serial list is unusable
        """
        serials = normalize_serials(serials)
        started_at = datetime.now(timezone.utc)
        mode = "dry run" if dry_run else "live"
        logger.info(
            f"Starting {mode} removal of {len(serials)} serial(s), "
            f"{self.limiter.max_concurrent} at a time"
        )

        tasks = [self._task_for(serial, dry_run) for serial in serials]
        outcomes = await self.limiter.run(tasks)

        result = BatchResult(
            records=flatten_outcomes(serials, outcomes),
            dry_run=dry_run,
            serial_count=len(serials),
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )
        logger.info(f"Finished processing all devices: {result.to_dict()}")
        return result

    def _task_for(self, serial: str, dry_run: bool):
        async def task() -> list[DeviceRecord]:
            return await self.remover.remove(serial, dry_run=dry_run)
        return task


# ============================================
# Batch Entry Points
# ============================================

async def run_batch(
    serials: Iterable[str],
    connection: ConnectionInfo,
    dry_run: bool = False,
    *,
    settings: Optional[Settings] = None,
    sink: Optional[IProgressSink] = None,
) -> BatchResult:
    """Authenticate once and run a whole batch against Graph.

    Raises:
        ValidationError: If the serial list is unusable (checked first)
        AuthenticationError: If the token cannot be obtained
    """
    settings = settings or Settings()
    serials = normalize_serials(serials)

    token_manager = TokenManager(
        tenant=connection.tenant,
        client_id=connection.client_id,
        client_secret=connection.client_secret,
        authority_url=settings.authority_url,
        scope=settings.graph_scope,
    )
    token = await token_manager.get_token()

    async with GraphClient(
        token,
        base_url=settings.graph_base_url,
        timeout_seconds=settings.request_timeout,
        max_connections=max(10, settings.max_concurrency * 2),
    ) as client:
        use_case = RemoveDevicesUseCase(
            registry=GraphDeviceRegistry(client),
            sink=sink,
            max_concurrency=settings.max_concurrency,
            gating_platform=settings.gating_platform,
        )
        return await use_case.execute(serials, dry_run=dry_run)


async def process_batch(
    serials: Iterable[str],
    connection: ConnectionInfo,
    dry_run: bool = False,
    *,
    settings: Optional[Settings] = None,
    sink: Optional[IProgressSink] = None,
) -> list[DeviceRecord]:
    """Run a batch and return its records in submission order."""
    result = await run_batch(serials, connection, dry_run, settings=settings, sink=sink)
    return result.records


async def process_batch_to_file(
    serials: Iterable[str],
    connection: ConnectionInfo,
    dry_run: bool = False,
    *,
    output_dir: Optional[Union[str, Path]] = None,
    settings: Optional[Settings] = None,
    sink: Optional[IProgressSink] = None,
) -> Path:
    """Run a batch, write the result CSV and return its path."""
    settings = settings or Settings()
    result = await run_batch(serials, connection, dry_run, settings=settings, sink=sink)
    path = default_output_path(output_dir or settings.output_dir, dry_run)
    return write_csv(path, result.rows())
