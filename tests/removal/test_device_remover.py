"""Tests for the per-serial removal workflow."""

import pytest

from intune_remover.api.exceptions import APIError
from intune_remover.removal.adapters.progress_sinks import CollectingProgressSink
from intune_remover.removal.domain.entities import (
    SKIPPED,
    DeviceRecord,
    RecordStatus,
    RegistryType,
)
from intune_remover.removal.use_cases.remove_device import DeviceRemover

INTUNE = RegistryType.INTUNE
AUTOPILOT = RegistryType.AUTOPILOT


@pytest.fixture
def sink():
    return CollectingProgressSink()


@pytest.fixture
def remover(registry, sink):
    return DeviceRemover(registry=registry, sink=sink)


def statuses(records):
    return [(r.registry, r.status) for r in records]


# ============================================
# Missing Devices
# ============================================

class TestMissing:
    """Serials unknown to Intune."""

    @pytest.mark.asyncio
    async def test_single_missing_record(self, remover, registry):
        records = await remover.remove("NOPE123")

        assert records == [
            DeviceRecord(serial="NOPE123", registry=INTUNE, status=RecordStatus.MISSING)
        ]
        # Gate closed: Autopilot never queried
        assert registry.lookups == [(INTUNE, "NOPE123")]

    @pytest.mark.asyncio
    async def test_missing_row_has_empty_columns(self, remover):
        records = await remover.remove("NOPE123")

        assert records[0].to_dict() == {
            "serial": "NOPE123",
            "id": "",
            "operatingSystem": "",
            "type": "Intune",
            "status": "Missing",
            "error": "",
        }

    @pytest.mark.asyncio
    async def test_autopilot_missing_after_windows_match(self, remover, registry):
        registry.add(INTUNE, "SN1", "i-1", "Windows")

        records = await remover.remove("SN1")

        assert statuses(records) == [
            (INTUNE, RecordStatus.SUCCESS),
            (AUTOPILOT, RecordStatus.MISSING),
        ]


# ============================================
# Live Removal
# ============================================

class TestLiveRemoval:
    """Deletes and their outcomes."""

    @pytest.mark.asyncio
    async def test_windows_device_removed_from_both(self, remover, registry):
        registry.add(INTUNE, "SN1", "i-1", "Windows")
        registry.add(AUTOPILOT, "SN1", "a-1")

        records = await remover.remove("SN1")

        assert statuses(records) == [
            (INTUNE, RecordStatus.SUCCESS),
            (AUTOPILOT, RecordStatus.SUCCESS),
        ]
        assert records[0].id == "i-1"
        assert records[0].operating_system == "Windows"
        assert records[1].id == "a-1"
        assert records[1].operating_system == ""
        assert registry.deleted == [(INTUNE, "i-1"), (AUTOPILOT, "a-1")]

    @pytest.mark.asyncio
    async def test_multiple_matches_each_get_a_record(self, remover, registry):
        registry.add(INTUNE, "SN1", "i-1", "Windows")
        registry.add(INTUNE, "SN1", "i-2", "Windows")
        registry.add(AUTOPILOT, "SN1", "a-1")

        records = await remover.remove("SN1")

        assert [(r.registry, r.id) for r in records] == [
            (INTUNE, "i-1"),
            (INTUNE, "i-2"),
            (AUTOPILOT, "a-1"),
        ]

    @pytest.mark.asyncio
    async def test_delete_failure_does_not_block_siblings(self, remover, registry):
        registry.add(INTUNE, "SN1", "i-1", "Windows")
        registry.add(INTUNE, "SN1", "i-2", "Windows")
        registry.add(AUTOPILOT, "SN1", "a-1")
        registry.fail_delete.add("i-1")

        records = await remover.remove("SN1")

        assert statuses(records) == [
            (INTUNE, RecordStatus.FAILURE),
            (INTUNE, RecordStatus.SUCCESS),
            (AUTOPILOT, RecordStatus.SUCCESS),
        ]
        assert records[0].error == "Forbidden: insufficient privileges"
        assert records[0].id == "i-1"
        assert (INTUNE, "i-2") in registry.deleted

    @pytest.mark.asyncio
    async def test_failed_windows_delete_still_opens_gate(self, remover, registry):
        registry.add(INTUNE, "SN1", "i-1", "Windows")
        registry.add(AUTOPILOT, "SN1", "a-1")
        registry.fail_delete.add("i-1")

        records = await remover.remove("SN1")

        assert statuses(records) == [
            (INTUNE, RecordStatus.FAILURE),
            (AUTOPILOT, RecordStatus.SUCCESS),
        ]


# ============================================
# Dry Run
# ============================================

class TestDryRun:
    """Lookups only, never deletes."""

    @pytest.mark.asyncio
    async def test_dry_run_records(self, remover, registry):
        registry.add(INTUNE, "SN1", "i-1", "Windows")
        registry.add(AUTOPILOT, "SN1", "a-1")

        records = await remover.remove("SN1", dry_run=True)

        assert statuses(records) == [
            (INTUNE, RecordStatus.DRY_RUN),
            (AUTOPILOT, RecordStatus.DRY_RUN),
        ]
        assert registry.deleted == []

    @pytest.mark.asyncio
    async def test_dry_run_missing_is_still_missing(self, remover):
        records = await remover.remove("NOPE", dry_run=True)
        assert statuses(records) == [(INTUNE, RecordStatus.MISSING)]


# ============================================
# Platform Gate
# ============================================

class TestGate:
    """Autopilot runs only after a match on the gating platform."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operating_system", ["Windows", "windows", "WINDOWS", " Windows "])
    async def test_gate_is_case_insensitive(self, remover, registry, operating_system):
        registry.add(INTUNE, "SN1", "i-1", operating_system)

        await remover.remove("SN1", dry_run=True)

        assert (AUTOPILOT, "SN1") in registry.lookups

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operating_system", ["iOS", "Android", "macOS", None, ""])
    async def test_non_windows_skips_autopilot(self, remover, registry, sink, operating_system):
        registry.add(INTUNE, "SN1", "i-1", operating_system)
        registry.add(AUTOPILOT, "SN1", "a-1")

        records = await remover.remove("SN1")

        assert statuses(records) == [(INTUNE, RecordStatus.SUCCESS)]
        assert (AUTOPILOT, "SN1") not in registry.lookups
        assert sink.events[-1].status == SKIPPED
        assert sink.events[-1].stage == AUTOPILOT
        assert sink.events[-1].detail == "no windows device in Intune"

    @pytest.mark.asyncio
    async def test_skip_detail_when_intune_missing(self, remover, sink):
        await remover.remove("SN1")

        assert sink.events[-1].status == SKIPPED
        assert sink.events[-1].detail == "no Intune device"

    @pytest.mark.asyncio
    async def test_skip_detail_when_intune_lookup_failed(self, remover, registry, sink):
        registry.fail_lookup.add((INTUNE, "SN1"))

        await remover.remove("SN1")

        assert sink.events[-1].status == SKIPPED
        assert sink.events[-1].detail == "Intune lookup failed"

    @pytest.mark.asyncio
    async def test_mixed_platforms_open_gate(self, remover, registry):
        registry.add(INTUNE, "SN1", "i-1", "iOS")
        registry.add(INTUNE, "SN1", "i-2", "Windows")

        records = await remover.remove("SN1", dry_run=True)

        assert statuses(records) == [
            (INTUNE, RecordStatus.DRY_RUN),
            (INTUNE, RecordStatus.DRY_RUN),
            (AUTOPILOT, RecordStatus.MISSING),
        ]

    @pytest.mark.asyncio
    async def test_custom_gating_platform(self, registry):
        registry.add(INTUNE, "SN1", "i-1", "macOS")
        remover = DeviceRemover(registry=registry, gating_platform="macos")

        await remover.remove("SN1", dry_run=True)

        assert (AUTOPILOT, "SN1") in registry.lookups


# ============================================
# Lookup Errors
# ============================================

class TestLookupErrors:
    """A failed lookup becomes one Error record for that stage."""

    @pytest.mark.asyncio
    async def test_intune_lookup_error(self, remover, registry):
        registry.fail_lookup.add((INTUNE, "SN1"))

        records = await remover.remove("SN1")

        assert statuses(records) == [(INTUNE, RecordStatus.ERROR)]
        assert records[0].error == "InternalServerError: lookup exploded"
        # No matches, so the gate stays closed
        assert (AUTOPILOT, "SN1") not in registry.lookups

    @pytest.mark.asyncio
    async def test_autopilot_lookup_error(self, remover, registry):
        registry.add(INTUNE, "SN1", "i-1", "Windows")
        registry.fail_lookup.add((AUTOPILOT, "SN1"))

        records = await remover.remove("SN1")

        assert statuses(records) == [
            (INTUNE, RecordStatus.SUCCESS),
            (AUTOPILOT, RecordStatus.ERROR),
        ]

    @pytest.mark.asyncio
    async def test_error_message_is_sanitized(self, remover, registry):
        class LeakyRegistry(type(registry)):
            async def find_by_serial(self, registry_type, serial):
                raise RuntimeError("upstream said Authorization: Bearer abc.def.ghi")

        leaky = DeviceRemover(registry=LeakyRegistry())

        records = await leaky.remove("SN1")

        assert "abc.def.ghi" not in records[0].error
        assert "[REDACTED]" in records[0].error

    @pytest.mark.asyncio
    async def test_delete_error_prose_kept(self, registry):
        message = (
            "Authorization failed for the request: caller lacks "
            "DeviceManagementManagedDevices.PrivilegedOperations"
        )

        class DenyingRegistry(type(registry)):
            async def delete_device(self, registry_type, device_id):
                raise APIError("DELETE failed", status_code=403, api_message=message)

        denying = DenyingRegistry()
        denying.add(INTUNE, "SN1", "i-1", "iOS")

        records = await DeviceRemover(registry=denying).remove("SN1")

        assert statuses(records) == [(INTUNE, RecordStatus.FAILURE)]
        assert records[0].error == message


# ============================================
# Progress Events
# ============================================

class TestProgressEvents:
    """One event per record, in record order."""

    @pytest.mark.asyncio
    async def test_event_per_record(self, remover, registry, sink):
        registry.add(INTUNE, "SN1", "i-1", "Windows")
        registry.add(AUTOPILOT, "SN1", "a-1")

        await remover.remove("SN1", dry_run=True)

        assert [(e.stage, e.status, e.device_id) for e in sink.events] == [
            (INTUNE, "Dry Run", "i-1"),
            (AUTOPILOT, "Dry Run", "a-1"),
        ]

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_break_workflow(self, registry):
        class BrokenSink(CollectingProgressSink):
            def emit(self, event):
                raise RuntimeError("sink down")

        registry.add(INTUNE, "SN1", "i-1", "Windows")
        remover = DeviceRemover(registry=registry, sink=BrokenSink())

        records = await remover.remove("SN1")

        assert statuses(records) == [
            (INTUNE, RecordStatus.SUCCESS),
            (AUTOPILOT, RecordStatus.MISSING),
        ]
