"""Shared fixtures for removal tests."""

import asyncio

import pytest

from intune_remover.api.exceptions import APIError
from intune_remover.removal.domain.entities import RegistryDevice, RegistryType
from intune_remover.removal.domain.ports import IDeviceRegistry


class FakeRegistry(IDeviceRegistry):
    """In-memory registry keyed by (registry, serial).

    ``fail_lookup`` / ``fail_delete`` hold keys that raise instead of
    answering; ``delay`` maps a serial to seconds slept before its lookups.
    """

    def __init__(self):
        self.devices: dict[tuple[RegistryType, str], list[RegistryDevice]] = {}
        self.fail_lookup: set[tuple[RegistryType, str]] = set()
        self.fail_delete: set[str] = set()
        self.delay: dict[str, float] = {}
        self.lookups: list[tuple[RegistryType, str]] = []
        self.deleted: list[tuple[RegistryType, str]] = []

    def add(self, registry, serial, device_id, operating_system=None):
        self.devices.setdefault((registry, serial), []).append(
            RegistryDevice(id=device_id, operating_system=operating_system, serial_number=serial)
        )

    async def find_by_serial(self, registry, serial):
        self.lookups.append((registry, serial))
        await asyncio.sleep(self.delay.get(serial, 0))
        if (registry, serial) in self.fail_lookup:
            raise APIError(
                "GET failed",
                status_code=500,
                api_message="InternalServerError: lookup exploded",
            )
        return list(self.devices.get((registry, serial), []))

    async def delete_device(self, registry, device_id):
        if device_id in self.fail_delete:
            raise APIError(
                "DELETE failed",
                status_code=403,
                method="DELETE",
                api_message="Forbidden: insufficient privileges",
            )
        self.deleted.append((registry, device_id))


@pytest.fixture
def registry():
    return FakeRegistry()
