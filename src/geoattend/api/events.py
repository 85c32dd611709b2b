from queue import Empty

from flask import Blueprint, Response

from geoattend.events import attendance_event_stream
from geoattend.shared.logger import app_logger

bp = Blueprint('live_events', __name__, url_prefix='/')

HEARTBEAT_SECONDS = 5


@bp.route('/live-events')
def live_events():
    """
    SSE endpoint for real-time attendance events.
    Zone transitions, check-in/out, check-out confirmations, sync results
    and location errors all arrive here.
    """
    def event_stream():
        subscriber_queue = attendance_event_stream.subscribe()

        try:
            yield "event: connected\ndata: Connection established\n\n"
            app_logger.info("[SSE] Client connected to /live-events")

            while True:
                try:
                    data = subscriber_queue.get(timeout=HEARTBEAT_SECONDS)
                    yield f"event: attendance\ndata: {data}\n\n"
                except Empty:
                    # Keep-alive
                    yield "event: heartbeat\ndata: ping\n\n"
        except GeneratorExit:
            app_logger.info("[SSE] Client disconnected from /live-events")
        finally:
            attendance_event_stream.unsubscribe(subscriber_queue)

    return Response(event_stream(), mimetype="text/event-stream")
