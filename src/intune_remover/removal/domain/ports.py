"""Port interfaces for device removal.

These are abstract interfaces (ports) that define how the removal workflow
interacts with the outside world. Concrete implementations (adapters) are
provided in the adapters module.

This follows the Hexagonal Architecture pattern.
"""

from abc import ABC, abstractmethod

from .entities import ProgressEvent, RegistryDevice, RegistryType


class IDeviceRegistry(ABC):
    """Port for looking up and deleting devices in either registry."""

    @abstractmethod
    async def find_by_serial(
        self,
        registry: RegistryType,
        serial: str,
    ) -> list[RegistryDevice]:
        """Find devices whose serial number contains ``serial``.

        Args:
            registry: Registry to query
            serial: Serial number (substring match, escaped by the adapter)

        Returns:
            Matching devices, possibly empty

        Raises:
            RemoverError: If the lookup fails
        """
        ...

    @abstractmethod
    async def delete_device(self, registry: RegistryType, device_id: str) -> None:
        """Delete one device by registry id.

        Raises:
            RemoverError: If the delete fails
        """
        ...


class IProgressSink(ABC):
    """Port for progress observers (logging, UI, test collectors)."""

    @abstractmethod
    def emit(self, event: ProgressEvent) -> None:
        """Receive one progress event. Must not raise."""
        ...
