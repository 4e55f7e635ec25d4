"""iClock (ZKTeco push) wire format helpers"""

from iclock_gateway.protocol import codec

__all__ = ["codec"]
