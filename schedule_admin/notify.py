"""
Notification layer: fire-and-forget user-visible error messages.
Messages are logged and queued; pages drain the queue when they render (flash messages).
"""
import logging
from collections import deque

logger = logging.getLogger(__name__)

# Bound the queue so an unattended client does not grow without limit
MAX_PENDING = 50


class Notifier:
    def __init__(self, max_pending: int = MAX_PENDING):
        self._pending: deque[str] = deque(maxlen=max_pending)

    def error(self, message: str) -> None:
        logger.info("Notify error: %s", message)
        self._pending.append(message)

    def drain(self) -> list[str]:
        """Return and forget all pending messages, oldest first."""
        messages = list(self._pending)
        self._pending.clear()
        return messages

    def __len__(self) -> int:
        return len(self._pending)
