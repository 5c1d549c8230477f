import logging
from typing import Any

from pydantic import BaseModel

from .channels import EventPublisher

logger = logging.getLogger(__name__)


class EventBuffer:
    """Collects realtime messages during a transaction and publishes them after commit.

    Publishing is best-effort. A failure is logged and never reaches the caller,
    whose database write has already committed.
    """

    def __init__(self, publisher: EventPublisher):
        self._publisher = publisher
        self._pending: list[tuple[str, dict[str, Any]]] = []

    def add(self, channel: str, message: BaseModel) -> None:
        self._pending.append((channel, message.model_dump(mode="json")))

    def publish_all(self) -> None:
        pending, self._pending = self._pending, []
        for channel, payload in pending:
            try:
                self._publisher.publish_sync(channel, payload)
            except Exception as e:
                logger.warning(f"Dropped realtime event on {channel}: {e}")

    def __len__(self) -> int:
        return len(self._pending)
