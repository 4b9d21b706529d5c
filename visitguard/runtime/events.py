"""Per-session fan-out of visit events to SSE subscribers.

Publishing never blocks: each subscriber owns an unbounded queue and a
publish with no subscribers is dropped.
"""

import asyncio
import json
import time
from typing import Any

from visitguard.config.logger import get_logger

logger = get_logger(__name__)

DRUG_DETECTED = "drug_detected"
CLARIFICATION = "clarification"
CLARIFICATION_DISMISSED = "clarification_dismissed"
VISIT_FINALIZED = "visit_finalized"
VISIT_FAILED = "visit_failed"

TERMINAL_EVENTS = frozenset({VISIT_FINALIZED, VISIT_FAILED})


class EventHub:
    def __init__(self) -> None:
        self._subscribers: dict[str, set[asyncio.Queue]] = {}
        self._lock = asyncio.Lock()

    async def publish(self, session_id: str, event: str, data: dict[str, Any]) -> int:
        async with self._lock:
            queues = list(self._subscribers.get(session_id, set()))
        if not queues:
            return 0
        packet = {"event": event, "data": {**data, "sessionId": session_id, "ts": time.time()}}
        for q in queues:
            q.put_nowait(packet)
        logger.debug("[events] %s -> %s subscriber(s) session_id=%s", event, len(queues), session_id)
        return len(queues)

    async def subscribe(self, session_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        async with self._lock:
            self._subscribers.setdefault(session_id, set()).add(queue)
        return queue

    async def unsubscribe(self, session_id: str, queue: asyncio.Queue) -> None:
        async with self._lock:
            queues = self._subscribers.get(session_id)
            if not queues:
                return
            queues.discard(queue)
            if not queues:
                self._subscribers.pop(session_id, None)

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, ()))


async def next_event(queue: asyncio.Queue, timeout: float = 15.0) -> dict[str, Any] | None:
    try:
        return await asyncio.wait_for(queue.get(), timeout=timeout)
    except asyncio.TimeoutError:
        return None


def to_sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"
