"""In-process broadcaster for punch notifications (consumed over Server-Sent Events)."""

import threading
import queue
import json
from typing import Dict, Any


class EventStream:
    """Thread-safe pub/sub: each subscriber gets a bounded queue of JSON payloads."""

    def __init__(self, max_queue_size: int = 100):
        self._subscribers: set[queue.Queue] = set()
        self._lock = threading.Lock()
        self._max_queue_size = max_queue_size

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> queue.Queue:
        q = queue.Queue(maxsize=self._max_queue_size)
        with self._lock:
            self._subscribers.add(q)
        return q

    def unsubscribe(self, subscriber: queue.Queue) -> None:
        """Safe to call more than once"""
        with self._lock:
            self._subscribers.discard(subscriber)

    def publish(self, event: Dict[str, Any]) -> None:
        """Fan an event out to every subscriber; slow subscribers lose their oldest event"""
        if not event:
            return

        payload = json.dumps(event, ensure_ascii=False, default=str)

        with self._lock:
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber.put_nowait(payload)
            except queue.Full:
                try:
                    subscriber.get_nowait()
                except queue.Empty:
                    pass
                try:
                    subscriber.put_nowait(payload)
                except queue.Full:
                    continue


device_event_stream = EventStream()
