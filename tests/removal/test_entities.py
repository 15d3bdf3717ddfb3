"""Tests for removal domain entities."""

from datetime import datetime, timedelta, timezone

import pytest

from intune_remover.removal.domain.entities import (
    BatchResult,
    DeviceRecord,
    ProgressEvent,
    RecordStatus,
    RegistryDevice,
    RegistryType,
)


class TestRegistryDevice:

    @pytest.mark.parametrize("value,expected", [
        ("Windows", True),
        ("windows", True),
        ("iOS", False),
        (None, False),
    ])
    def test_runs(self, value, expected):
        assert RegistryDevice(id="d", operating_system=value).runs("windows") is expected


class TestDeviceRecord:

    def test_frozen(self):
        record = DeviceRecord(serial="SN1", registry=RegistryType.INTUNE, status=RecordStatus.MISSING)
        with pytest.raises(AttributeError):
            record.status = RecordStatus.SUCCESS

    def test_to_dict_key_order(self):
        record = DeviceRecord(
            serial="SN1",
            registry=RegistryType.AUTOPILOT,
            status=RecordStatus.DRY_RUN,
            id="a-1",
        )
        assert list(record.to_dict()) == ["serial", "id", "operatingSystem", "type", "status", "error"]
        assert record.to_dict()["type"] == "Autopilot"
        assert record.to_dict()["status"] == "Dry Run"


class TestProgressEvent:

    def test_for_record(self):
        record = DeviceRecord(
            serial="SN1",
            registry=RegistryType.INTUNE,
            status=RecordStatus.ERROR,
            error="boom",
        )
        event = ProgressEvent.for_record(record)

        assert event.status == "Error"
        assert event.device_id is None
        assert event.detail == "boom"


class TestBatchResult:

    def make(self):
        started = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
        return BatchResult(
            records=[
                DeviceRecord("SN1", RegistryType.INTUNE, RecordStatus.SUCCESS, id="i-1"),
                DeviceRecord("SN1", RegistryType.AUTOPILOT, RecordStatus.FAILURE, id="a-1", error="x"),
                DeviceRecord("SN2", RegistryType.INTUNE, RecordStatus.MISSING),
            ],
            serial_count=2,
            started_at=started,
            completed_at=started + timedelta(seconds=3.5),
        )

    def test_status_counts_include_every_status(self):
        assert self.make().status_counts == {
            "Missing": 1,
            "Success": 1,
            "Failure": 1,
            "Error": 0,
            "Dry Run": 0,
        }

    def test_has_problems(self):
        assert self.make().has_problems
        assert not BatchResult().has_problems

    def test_summary(self):
        summary = self.make().to_dict()
        assert summary["serials"] == 2
        assert summary["records"] == 3
        assert summary["duration_seconds"] == 3.5

    def test_duration_without_timing(self):
        assert BatchResult().duration_seconds == 0.0

    def test_rows(self):
        rows = self.make().rows()
        assert [row["serial"] for row in rows] == ["SN1", "SN1", "SN2"]
