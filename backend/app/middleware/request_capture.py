"""
Debug request capture.

Keeps the most recent requests per user in a bounded ring buffer so the
dashboard can show what a tracking client actually sent. One store lives on
``app.state.request_capture``; nothing here is module-global.
"""

import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from fastapi import Request

_CAPTURED_HEADERS = ("user-agent", "referer", "content-type", "x-correlation-id")


class RequestCaptureStore:
    """Per-user ring buffer of captured request summaries."""

    def __init__(self, limit: int = 100):
        self.limit = limit
        self._entries: Dict[str, Deque[Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def capture(self, user_id: str, entry: Dict[str, Any]) -> None:
        with self._lock:
            buf = self._entries.get(user_id)
            if buf is None:
                buf = deque(maxlen=self.limit)
                self._entries[user_id] = buf
            buf.append(entry)

    def recent(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Newest first."""
        with self._lock:
            items = list(self._entries.get(user_id, ()))
        items.reverse()
        if limit is not None:
            items = items[:limit]
        return items

    def clear(self, user_id: Optional[str] = None) -> None:
        with self._lock:
            if user_id is None:
                self._entries.clear()
            else:
                self._entries.pop(user_id, None)

    async def capture_request(self, request: Request, user_id: str, body: Any = None) -> None:
        self.capture(user_id, {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": request.method,
            "path": request.url.path,
            "query": dict(request.query_params),
            "headers": {h: request.headers.get(h) for h in _CAPTURED_HEADERS if request.headers.get(h)},
            "clientIp": client_ip(request),
            "body": body,
        })


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


def get_request_capture(request: Request) -> RequestCaptureStore:
    """FastAPI dependency returning the app-owned store."""
    return request.app.state.request_capture
