from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class NotificationType(str, Enum):
    RIDE_ACCEPTED = "ride_accepted"
    RIDE_STARTED = "ride_started"
    RIDE_CANCELLED = "ride_cancelled"
    RIDE_COMPLETED = "ride_completed"
    PAYMENT_RECEIVED = "payment_received"
    RATING_RECEIVED = "rating_received"
    NEW_MESSAGE = "new_message"


class SendMessageRequest(BaseModel):
    ride_id: str = Field(min_length=1)
    body: str = Field(min_length=1, max_length=1000)


class MessageView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    message_id: str
    ride_id: str
    sender_id: str
    receiver_id: str
    body: str
    is_read: bool
    created_at: datetime


class NotificationView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notification_id: str
    type: NotificationType
    ride_id: str | None
    message: str
    is_read: bool
    created_at: datetime
