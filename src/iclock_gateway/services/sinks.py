"""Outbound "punch recorded" notifications"""

from abc import ABC, abstractmethod
from typing import Callable, List

from iclock_gateway.events.event_stream import EventStream, device_event_stream
from iclock_gateway.models.attendance import Punch


class AttendanceSink(ABC):
    @abstractmethod
    def punch_recorded(self, punch: Punch) -> None:
        raise NotImplementedError


class EventStreamSink(AttendanceSink):
    """Publish punches on the in-process event stream (feeds the SSE endpoint)"""

    def __init__(self, stream: EventStream = None):
        self.stream = stream or device_event_stream

    def punch_recorded(self, punch: Punch) -> None:
        event = {"type": "attendance"}
        event.update(punch.to_dict())
        self.stream.publish(event)


class CallableSink(AttendanceSink):
    def __init__(self, fn: Callable[[Punch], None]):
        self.fn = fn

    def punch_recorded(self, punch: Punch) -> None:
        self.fn(punch)


class CollectingSink(AttendanceSink):
    """Keeps every notification in memory"""

    def __init__(self):
        self.punches: List[Punch] = []

    def punch_recorded(self, punch: Punch) -> None:
        self.punches.append(punch)
