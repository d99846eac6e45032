"""
WebSocket bridge between viewers and the broadcast hub.
"""
import asyncio
import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from sms_dev.core.components import Components
from sms_dev.core.errors import SmsDevError
from sms_dev.core.logging import get_logger
from sms_dev.core.metrics import adjust_websocket_connections
from sms_dev.schemas.realtime import JoinPayload, ReplyPayload, WsInbound, WsOutbound
from sms_dev.services.broadcast import BroadcastHub, Subscriber

logger = get_logger(__name__)

router = APIRouter(tags=["Realtime"])


async def _forward_events(websocket: WebSocket, subscriber: Subscriber) -> None:
    """Drain the subscriber queue onto the socket; the only writer for this connection."""
    while True:
        event = await subscriber.next_event()
        await websocket.send_json(event.model_dump())


def _frame_text(message: dict) -> str:
    """Text payload of a received frame; the protocol has no binary frames."""
    text = message.get("text")
    if text is None:
        raise ValueError("binary frames are not supported")
    return text


def _handle_frame(hub: BroadcastHub, subscriber: Subscriber, frame: WsInbound) -> None:
    if frame.type == "conversation:join":
        payload = JoinPayload.model_validate(frame.data)
        hub.join(subscriber.id, payload.phoneNumber)
        subscriber.push(WsOutbound(type="conversation:joined", data={"phoneNumber": payload.phoneNumber}))
    elif frame.type == "conversation:leave":
        payload = JoinPayload.model_validate(frame.data)
        hub.leave(subscriber.id, payload.phoneNumber)
        subscriber.push(WsOutbound(type="conversation:left", data={"phoneNumber": payload.phoneNumber}))
    elif frame.type == "reply:send":
        payload = ReplyPayload.model_validate(frame.data)
        logger.info(
            "Reply received from virtual phone",
            extra={"extra_data": {"subscriber_id": subscriber.id, "to": payload.to}}
        )
        hub.submit_reply(payload.to, payload.from_, payload.body, origin=subscriber.id)
    elif frame.type == "ping":
        subscriber.push(WsOutbound(type="pong"))
    else:
        subscriber.push(WsOutbound(type="error", data={"message": f"Unknown event type: {frame.type}"}))


@router.websocket("/ws")
async def realtime(websocket: WebSocket) -> None:
    components: Components = websocket.app.state.components
    hub = components.hub
    
    await websocket.accept()
    subscriber = hub.connect()
    adjust_websocket_connections(1)
    subscriber.push(WsOutbound(type="connection:ready", data={"subscriberId": subscriber.id}))
    sender = asyncio.create_task(_forward_events(websocket, subscriber))
    
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            try:
                frame = WsInbound.model_validate(json.loads(_frame_text(message)))
                _handle_frame(hub, subscriber, frame)
            except (ValueError, PydanticValidationError) as exc:
                subscriber.push(WsOutbound(type="error", data={"message": f"Invalid frame: {exc}"}))
            except SmsDevError as exc:
                subscriber.push(WsOutbound(type="error", data={"message": exc.message, "kind": exc.kind}))
    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
        hub.disconnect(subscriber.id)
        adjust_websocket_connections(-1)
