import time
from queue import Empty

from flask import Blueprint, Response, stream_with_context

from iclock_gateway.events import device_event_stream
from iclock_gateway.shared.logger import app_logger

bp = Blueprint("iclock_events", __name__, url_prefix="/api/iclock")

HEARTBEAT_SECONDS = 25


@bp.route("/events")
def live_events():
    """
    SSE endpoint for real-time punch notifications published by the
    default attendance sink.
    """

    def event_generator():
        subscriber = device_event_stream.subscribe()
        yield "event: connected\ndata: Connection established\n\n"
        app_logger.info("[SSE] Client connected to /api/iclock/events")

        try:
            while True:
                try:
                    payload = subscriber.get(timeout=HEARTBEAT_SECONDS)
                    yield f"event: attendance\ndata: {payload}\n\n"
                except Empty:
                    yield f": keep-alive {int(time.time())}\n\n"
        except GeneratorExit:
            app_logger.info("[SSE] Client disconnected from /api/iclock/events")
        finally:
            device_event_stream.unsubscribe(subscriber)

    response = Response(
        stream_with_context(event_generator()), mimetype="text/event-stream"
    )
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    return response
