import pytest

from iclock_gateway.models.device import DeviceStatus
from iclock_gateway.shared.exceptions import (
    DeviceAlreadyRegisteredError,
    DeviceNotFoundError,
    MissingSerialError,
)


def test_register_upper_cases_serial(registry):
    device = registry.register(" abc123 ", device_name="Lobby")

    assert device.serial_number == "ABC123"
    assert device.status == DeviceStatus.PENDING
    assert device.device_name == "Lobby"


def test_register_rejects_duplicates(registry, device):
    with pytest.raises(DeviceAlreadyRegisteredError):
        registry.register("abc123")


def test_register_requires_serial(registry):
    with pytest.raises(ValueError):
        registry.register("  ")


def test_lookup_is_case_insensitive(registry, device):
    assert registry.lookup("abc123").id == device.id
    assert registry.lookup("") is None
    assert registry.lookup(None) is None


def test_require_raises_protocol_errors(registry, device):
    with pytest.raises(MissingSerialError) as missing:
        registry.require("")
    assert missing.value.status == 400
    assert missing.value.message == "ERROR: Missing device SN"

    with pytest.raises(DeviceNotFoundError) as unknown:
        registry.require("NOPE")
    assert unknown.value.status == 404
    assert unknown.value.message == "Device not found"


def test_mark_online_refreshes_address_and_last_seen(registry, device):
    registry.mark_online("abc123", "10.0.0.9")

    stored = registry.lookup(device.serial_number)
    assert stored.status == DeviceStatus.ONLINE
    assert stored.is_online
    assert stored.device_ip == "10.0.0.9"
    assert stored.last_online is not None


def test_mark_online_keeps_address_when_none_given(registry, device):
    registry.mark_online(device.serial_number, "")

    assert registry.lookup(device.serial_number).device_ip == "10.0.0.5"


def test_mark_offline(registry, device):
    registry.mark_online(device.serial_number)

    assert registry.mark_offline(device.serial_number) is True
    assert registry.lookup(device.serial_number).status == DeviceStatus.OFFLINE
    assert not registry.lookup(device.serial_number).is_online
    assert registry.mark_offline("UNKNOWN") is False


def test_list_devices(registry, device):
    registry.register("XYZ999")

    assert [d.serial_number for d in registry.list_devices()] == ["ABC123", "XYZ999"]
