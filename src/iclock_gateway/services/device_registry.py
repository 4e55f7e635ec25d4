from datetime import datetime
from typing import List, Optional

from iclock_gateway.models.device import Device, DeviceStatus
from iclock_gateway.repositories import device_repo
from iclock_gateway.shared.exceptions import (
    DeviceAlreadyRegisteredError,
    DeviceNotFoundError,
    MissingSerialError,
)
from iclock_gateway.shared.logger import app_logger, log_category


def normalize_serial(serial_number: Optional[str]) -> str:
    return str(serial_number or "").strip().upper()


class DeviceRegistry:
    """
    Device identity and online/offline status.

    This is the gate every device request passes through: ``require`` turns a
    missing or unknown serial number into a ProtocolError before any other
    component runs.
    """

    def __init__(self, repository=None, config=None):
        self.repository = repository or device_repo
        self.config = config

    def lookup(self, serial_number: Optional[str]) -> Optional[Device]:
        serial_number = normalize_serial(serial_number)
        if not serial_number:
            return None
        return self.repository.get_by_serial_number(serial_number)

    def require(self, serial_number: Optional[str]) -> Device:
        """Return the registered device or raise MissingSerialError/DeviceNotFoundError"""
        normalized = normalize_serial(serial_number)
        if not normalized:
            raise MissingSerialError()

        device = self.repository.get_by_serial_number(normalized)
        if device is None:
            raise DeviceNotFoundError(normalized)
        return device

    def mark_online(self, serial_number: str, address: Optional[str] = None) -> None:
        """Set status online and refresh last-seen; the address only changes when one is given"""
        updates = {"status": DeviceStatus.ONLINE, "last_online": datetime.now()}
        if address:
            updates["device_ip"] = address

        self.repository.update(normalize_serial(serial_number), updates)

        if log_category(self.config, "database_operations"):
            app_logger.debug(f"[ICLOCK] Device {serial_number} marked online ({address})")

    def mark_offline(self, serial_number: str) -> bool:
        updated = self.repository.update(
            normalize_serial(serial_number), {"status": DeviceStatus.OFFLINE}
        )
        if updated:
            app_logger.info(f"[ICLOCK] Device {serial_number} marked offline")
        return updated

    def register(self, serial_number: str, device_name: Optional[str] = None,
                 address: Optional[str] = None) -> Device:
        """Administrative registration; the protocol flow never creates devices"""
        normalized = normalize_serial(serial_number)
        if not normalized:
            raise ValueError("serial_number is required")

        if self.repository.get_by_serial_number(normalized):
            raise DeviceAlreadyRegisteredError(
                f"Device with serial number '{normalized}' already exists"
            )

        device = self.repository.create(
            Device(
                serial_number=normalized,
                device_name=device_name or f"Device {normalized}",
                device_ip=address or None,
            )
        )
        app_logger.info(f"[ICLOCK] Device {normalized} registered as '{device.device_name}'")
        return device

    def list_devices(self) -> List[Device]:
        return self.repository.get_all()
