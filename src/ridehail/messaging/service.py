"""Per-ride chat between passenger and driver, and the notification inbox."""

import logging

from sqlalchemy.orm import Session, sessionmaker

from ridehail.core.exceptions import AuthorizationError, GuardViolationError, NotFoundError
from ridehail.db.repositories import MessageRepository, NotificationRepository, RideRepository
from ridehail.db.transaction import transaction
from ridehail.db.utils import new_id
from ridehail.pubsub import CHANNEL_RIDE_MESSAGES, EventBuffer, EventPublisher, RideMessageEvent
from ridehail.ride_logging import log_ride_context

from .models import MessageView, NotificationType, NotificationView, SendMessageRequest
from .notifications import notify

logger = logging.getLogger(__name__)


class MessagingService:
    def __init__(self, session_factory: sessionmaker[Session], publisher: EventPublisher):
        self._session_factory = session_factory
        self._publisher = publisher

    def send(self, sender_id: str, request: SendMessageRequest) -> MessageView:
        """Send a chat message to the other party of a ride that has a driver."""
        events = EventBuffer(self._publisher)
        with log_ride_context(request.ride_id), self._session_factory() as session, transaction(
            session
        ):
            ride = RideRepository(session).get(request.ride_id)
            if ride is None:
                raise NotFoundError("Ride not found", {"ride_id": request.ride_id})
            if not ride.is_party(sender_id):
                raise AuthorizationError("You are not part of this ride")
            if ride.driver_id is None:
                raise GuardViolationError("Ride has no driver to message yet")

            receiver_id = ride.driver_id if sender_id == ride.passenger_id else ride.passenger_id
            message = MessageRepository(session).create(
                message_id=new_id(),
                ride_id=ride.ride_id,
                sender_id=sender_id,
                receiver_id=receiver_id,
                body=request.body,
            )
            view = MessageView.model_validate(message)
            events.add(
                CHANNEL_RIDE_MESSAGES,
                RideMessageEvent(
                    message_id=view.message_id,
                    ride_id=view.ride_id,
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    body=view.body,
                    recipients=[receiver_id],
                    timestamp=view.created_at.isoformat(),
                ),
            )
            notify(
                session,
                events,
                receiver_id,
                NotificationType.NEW_MESSAGE,
                "You have a new message",
                ride_id=ride.ride_id,
            )

        events.publish_all()
        logger.debug(f"Message {view.message_id} sent on ride {view.ride_id}")
        return view

    def list_for_ride(self, account_id: str, ride_id: str) -> list[MessageView]:
        with self._session_factory() as session:
            ride = RideRepository(session).get(ride_id)
            if ride is None:
                raise NotFoundError("Ride not found", {"ride_id": ride_id})
            if not ride.is_party(account_id):
                raise AuthorizationError("You are not part of this ride")
            return [
                MessageView.model_validate(m)
                for m in MessageRepository(session).list_for_ride(ride_id)
            ]

    def mark_read(self, account_id: str, message_id: str) -> MessageView:
        with self._session_factory() as session, transaction(session):
            message = MessageRepository(session).get(message_id)
            if message is None:
                raise NotFoundError("Message not found", {"message_id": message_id})
            if message.receiver_id != account_id:
                raise AuthorizationError("Only the receiver can mark a message read")
            message.is_read = True
            session.flush()
            return MessageView.model_validate(message)

    def notifications(self, account_id: str) -> list[NotificationView]:
        with self._session_factory() as session:
            return [
                NotificationView.model_validate(n)
                for n in NotificationRepository(session).list_for_account(account_id)
            ]

    def mark_notification_read(self, account_id: str, notification_id: str) -> NotificationView:
        with self._session_factory() as session, transaction(session):
            notification = NotificationRepository(session).get(notification_id)
            if notification is None or notification.account_id != account_id:
                raise NotFoundError(
                    "Notification not found", {"notification_id": notification_id}
                )
            notification.is_read = True
            session.flush()
            return NotificationView.model_validate(notification)
