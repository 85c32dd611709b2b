"""In-process broadcaster behind the /live-events SSE endpoint.

Every published event is encoded once as JSON and offered to each
subscriber queue. A slow subscriber loses its oldest events rather
than blocking the publisher.
"""

import itertools
import json
import queue
import threading
from datetime import datetime, timezone
from typing import Any, Dict


class EventStream:

    def __init__(self, max_queue_size: int = 100):
        self._subscribers: set = set()
        self._lock = threading.Lock()
        self._max_queue_size = max_queue_size
        self._ids = itertools.count(1)

    def subscribe(self) -> queue.Queue:
        subscriber = queue.Queue(maxsize=self._max_queue_size)
        with self._lock:
            self._subscribers.add(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: queue.Queue) -> None:
        with self._lock:
            self._subscribers.discard(subscriber)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event_type: str, data: Dict[str, Any] = None) -> None:
        if not event_type:
            return

        payload = json.dumps(
            {
                "id": next(self._ids),
                "type": event_type,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "data": data or {},
            },
            ensure_ascii=False,
            default=str,
        )

        with self._lock:
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            self._offer(subscriber, payload)

    @staticmethod
    def _offer(subscriber: queue.Queue, payload: str) -> None:
        while True:
            try:
                subscriber.put_nowait(payload)
                return
            except queue.Full:
                try:
                    subscriber.get_nowait()
                except queue.Empty:
                    # Drained by the consumer in between; retry the put
                    continue


attendance_event_stream = EventStream()
