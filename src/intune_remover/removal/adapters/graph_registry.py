"""Microsoft Graph adapter for the device registry port.

Maps each RegistryType onto its Graph collection:

    Intune     -> /deviceManagement/managedDevices
    Autopilot  -> /deviceManagement/windowsAutopilotDeviceIdentities

Lookups use a substring ``contains(serialNumber,'...')`` filter, matching the
way serials are recorded in both registries (vendors pad or prefix them).
"""

import logging
from dataclasses import dataclass

from ...api.client import GraphClient, contains_filter
from ..domain.entities import RegistryDevice, RegistryType
from ..domain.ports import IDeviceRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryEndpoint:
    """Graph collection path and the properties selected from it."""

    path: str
    select: tuple[str, ...]


REGISTRY_ENDPOINTS: dict[RegistryType, RegistryEndpoint] = {
    RegistryType.INTUNE: RegistryEndpoint(
        path="/deviceManagement/managedDevices",
        select=("id", "operatingSystem", "serialNumber"),
    ),
    # Autopilot identities have no operatingSystem property
    RegistryType.AUTOPILOT: RegistryEndpoint(
        path="/deviceManagement/windowsAutopilotDeviceIdentities",
        select=("id", "serialNumber"),
    ),
}


class GraphDeviceRegistry(IDeviceRegistry):
    """IDeviceRegistry implementation backed by GraphClient."""

    def __init__(self, client: GraphClient):
        self.client = client

    async def find_by_serial(
        self,
        registry: RegistryType,
        serial: str,
    ) -> list[RegistryDevice]:
        endpoint = REGISTRY_ENDPOINTS[registry]
        params = {
            "$filter": contains_filter("serialNumber", serial),
            "$select": ",".join(endpoint.select),
        }

        items = await self.client.fetch_all(endpoint.path, params=params)
        logger.debug(f"{registry.value} lookup for {serial}: {len(items)} match(es)")

        return [
            RegistryDevice(
                id=str(item["id"]),
                operating_system=item.get("operatingSystem"),
                serial_number=item.get("serialNumber"),
            )
            for item in items
            if item.get("id")
        ]

    async def delete_device(self, registry: RegistryType, device_id: str) -> None:
        endpoint = REGISTRY_ENDPOINTS[registry]
        # Graph ids are GUIDs; anything else would change the request path
        if not device_id or "/" in device_id or "?" in device_id:
            raise ValueError(f"Refusing to delete invalid device id {device_id!r}")
        await self.client.delete(f"{endpoint.path}/{device_id}")
        logger.info(f"Deleted {registry.value} device {device_id}")
