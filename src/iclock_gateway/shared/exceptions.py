class GatewayError(Exception):
    """Base exception for gateway failures."""


class ProtocolError(GatewayError):
    """Raised when a device request cannot be attributed to a registered device.

    Carries the plain-text body and HTTP status the device receives.
    """

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.message = message
        self.status = status


class MissingSerialError(ProtocolError):
    def __init__(self):
        super().__init__("ERROR: Missing device SN", 400)


class DeviceNotFoundError(ProtocolError):
    def __init__(self, serial_number: str):
        super().__init__("Device not found", 404)
        self.serial_number = serial_number


class CommandError(GatewayError):
    """Raised by operator-side command actions (unknown id, retry cap, bad type)."""


class DeviceAlreadyRegisteredError(GatewayError):
    """Raised when registering a serial number that already exists."""
