"""Persisted notifications, fanned out once the surrounding transaction commits."""

from sqlalchemy.orm import Session

from ridehail.db.repositories import NotificationRepository
from ridehail.db.utils import new_id
from ridehail.pubsub import CHANNEL_NOTIFICATIONS, EventBuffer, NotificationMessage

from .models import NotificationType


def notify(
    session: Session,
    events: EventBuffer,
    account_id: str,
    type: NotificationType,
    message: str,
    ride_id: str | None = None,
) -> None:
    record = NotificationRepository(session).create(
        notification_id=new_id(),
        account_id=account_id,
        type=type.value,
        message=message,
        ride_id=ride_id,
    )
    events.add(
        CHANNEL_NOTIFICATIONS,
        NotificationMessage(
            notification_id=record.notification_id,
            type=type.value,
            ride_id=ride_id,
            message=message,
            recipients=[account_id],
            timestamp=record.created_at.isoformat(),
        ),
    )
