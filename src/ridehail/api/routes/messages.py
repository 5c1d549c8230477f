from fastapi import APIRouter, status

from ridehail.api.dependencies import MessagingDep, PrincipalDep
from ridehail.messaging import MessageView, NotificationView, SendMessageRequest

router = APIRouter()


@router.post("", response_model=MessageView, status_code=status.HTTP_201_CREATED)
def send_message(
    body: SendMessageRequest, principal: PrincipalDep, messaging: MessagingDep
) -> MessageView:
    return messaging.send(principal.account_id, body)


@router.get("/notifications", response_model=list[NotificationView])
def notifications(principal: PrincipalDep, messaging: MessagingDep) -> list[NotificationView]:
    return messaging.notifications(principal.account_id)


@router.put("/notifications/{notification_id}/read", response_model=NotificationView)
def mark_notification_read(
    notification_id: str, principal: PrincipalDep, messaging: MessagingDep
) -> NotificationView:
    return messaging.mark_notification_read(principal.account_id, notification_id)


@router.get("/rides/{ride_id}", response_model=list[MessageView])
def ride_messages(ride_id: str, principal: PrincipalDep, messaging: MessagingDep) -> list[MessageView]:
    return messaging.list_for_ride(principal.account_id, ride_id)


@router.put("/{message_id}/read", response_model=MessageView)
def mark_message_read(
    message_id: str, principal: PrincipalDep, messaging: MessagingDep
) -> MessageView:
    return messaging.mark_read(principal.account_id, message_id)
