import logging
from collections import defaultdict
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from ridehail.api.rate_limit import ws_limiter
from ridehail.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

router = APIRouter()


def extract_token_and_protocol(websocket: WebSocket) -> tuple[str | None, str | None]:
    """Extract the bearer token and full protocol from Sec-WebSocket-Protocol.

    Expected format: bearer.<jwt>
    Returns: (token, full_protocol) - both needed for the handshake
    """
    protocol_header = websocket.headers.get("sec-websocket-protocol")
    if protocol_header:
        protocols = [p.strip() for p in protocol_header.split(",")]
        for protocol in protocols:
            if protocol.startswith("bearer."):
                return protocol.split(".", 1)[1], protocol
    return None, None


class ConnectionManager:
    """Tracks open sockets per account and routes messages to their recipients."""

    def __init__(self) -> None:
        self.connections: dict[str, set[WebSocket]] = defaultdict(set)

    async def connect(
        self, account_id: str, websocket: WebSocket, subprotocol: str | None = None
    ) -> None:
        await websocket.accept(subprotocol=subprotocol)
        self.connections[account_id].add(websocket)

    def disconnect(self, account_id: str, websocket: WebSocket) -> None:
        sockets = self.connections.get(account_id)
        if sockets is None:
            return
        sockets.discard(websocket)
        if not sockets:
            del self.connections[account_id]

    def connection_count(self) -> int:
        return sum(len(sockets) for sockets in self.connections.values())

    async def send_message(self, websocket: WebSocket, message: dict[str, Any]) -> None:
        if websocket.application_state == WebSocketState.CONNECTED:
            await websocket.send_json(message)

    async def deliver(self, message_type: str, payload: dict[str, Any]) -> int:
        """Send to every socket of every account in ``payload['recipients']``.

        Returns the number of sockets written to.
        """
        recipients = payload.get("recipients") or []
        data = {k: v for k, v in payload.items() if k != "recipients"}
        envelope = {"type": message_type, "data": data}

        sent = 0
        for account_id in set(recipients):
            for websocket in list(self.connections.get(account_id, ())):
                if websocket.application_state != WebSocketState.CONNECTED:
                    continue
                await self.send_message(websocket, envelope)
                sent += 1
        return sent


manager = ConnectionManager()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    token, subprotocol = extract_token_and_protocol(websocket)
    if not token:
        await websocket.close(code=1008)
        return

    try:
        principal = websocket.app.state.tokens.decode(token)
    except AuthenticationError:
        await websocket.close(code=1008)
        return

    if ws_limiter.is_limited(f"account:{principal.account_id}"):
        await websocket.close(code=1008)
        return

    await manager.connect(principal.account_id, websocket, subprotocol=subprotocol)
    logger.info(f"WebSocket opened for {principal.account_id} as {principal.role.value}")

    try:
        await manager.send_message(
            websocket,
            {
                "type": "connected",
                "data": {"account_id": principal.account_id, "role": principal.role.value},
            },
        )
        while True:
            await websocket.receive_text()

    except WebSocketDisconnect:
        manager.disconnect(principal.account_id, websocket)
