"""Repositories for ride chat messages and account notifications."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..schema import Message, Notification


class MessageRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(
        self, message_id: str, ride_id: str, sender_id: str, receiver_id: str, body: str
    ) -> Message:
        message = Message(
            message_id=message_id,
            ride_id=ride_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            body=body,
            is_read=False,
        )
        self.session.add(message)
        self.session.flush()
        return message

    def get(self, message_id: str) -> Message | None:
        return self.session.get(Message, message_id)

    def list_for_ride(self, ride_id: str) -> list[Message]:
        """Messages in conversation order."""
        stmt = select(Message).where(Message.ride_id == ride_id).order_by(Message.created_at)
        return list(self.session.execute(stmt).scalars().all())


class NotificationRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        notification_id: str,
        account_id: str,
        type: str,
        message: str,
        ride_id: str | None = None,
    ) -> Notification:
        notification = Notification(
            notification_id=notification_id,
            account_id=account_id,
            type=type,
            ride_id=ride_id,
            message=message,
            is_read=False,
        )
        self.session.add(notification)
        self.session.flush()
        return notification

    def get(self, notification_id: str) -> Notification | None:
        return self.session.get(Notification, notification_id)

    def list_for_account(self, account_id: str, limit: int = 100) -> list[Notification]:
        """Newest first."""
        stmt = (
            select(Notification)
            .where(Notification.account_id == account_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())
