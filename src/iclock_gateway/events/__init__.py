from iclock_gateway.events.event_stream import EventStream, device_event_stream

__all__ = ["EventStream", "device_event_stream"]
