import json
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError as SchemaValidationError

from pairchat.exceptions import AuthenticationError, ChatError
from pairchat.schemas.message import MessageResponse, SendMessageWebSocket, RoomAction
from pairchat.services.messaging import MessageService
from pairchat.websocket_manager import ConnectionManager, RelaySession
from pairchat.auth import get_user_from_token

logger = logging.getLogger(__name__)

router = APIRouter()

@router.websocket("/chat")
async def websocket_chat(websocket: WebSocket, token: str = None):
    """
    Authenticate once, then serve room actions until the client goes away.

    Messages are ``{"action": ..., "data": {...}}``; replies and room events
    are ``{"type": ..., ...}``.
    """
    database = websocket.app.state.db
    manager: ConnectionManager = websocket.app.state.relay

    async with database.session() as db:
        try:
            user = await get_user_from_token(token, db)
        except AuthenticationError as exc:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.detail)
            return
        user_id, username = user.id, user.username

    session = await manager.connect(websocket, user_id, username)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message_data = json.loads(data)
                action = message_data.get("action")
                payload = message_data.get("data") or {}
            except (json.JSONDecodeError, AttributeError):
                await manager.send_personal_message({"type": "error", "message": "Invalid JSON format"}, session)
                continue

            try:
                async with database.session() as db:
                    await handle_websocket_message(action, payload, session, MessageService(db, manager))
            except ChatError as exc:
                await manager.send_personal_message({"type": "error", "message": exc.detail}, session)
            except SchemaValidationError:
                await manager.send_personal_message({"type": "error", "message": "Invalid payload"}, session)
            except WebSocketDisconnect:
                raise
            except Exception:
                logger.exception(f"Error processing {action!r} from user {session.user_id}")
                await manager.send_personal_message({"type": "error", "message": "Internal server error"}, session)

    except WebSocketDisconnect:
        logger.debug(f"User {user_id} closed the socket")
    finally:
        await manager.disconnect(session)

async def handle_websocket_message(action: str, payload: dict, session: RelaySession, service: MessageService):
    manager = service.relay

    if action == "join":
        room = RoomAction(**payload)
        # rooms are only handed to members
        await service.ensure_member(room.chat_id, session.user_id)
        manager.join(session, room.chat_id)
        await manager.send_personal_message({"type": "joined", "data": {"chat_id": room.chat_id}}, session)

    elif action == "leave":
        room = RoomAction(**payload)
        manager.leave(session, room.chat_id)
        await manager.send_personal_message({"type": "left", "data": {"chat_id": room.chat_id}}, session)

    elif action == "send_message":
        message_data = SendMessageWebSocket(**payload)
        message = await service.append_message(message_data.chat_id, session.user_id, message_data.text)
        await manager.send_personal_message({
            "type": "message_sent",
            "data": MessageResponse.model_validate(message).model_dump(mode="json")
        }, session)

    elif action == "mark_read":
        room = RoomAction(**payload)
        await service.mark_read(room.chat_id, session.user_id)

    elif action == "ping":
        await manager.send_personal_message({"type": "pong"}, session)

    else:
        await manager.send_personal_message({"type": "error", "message": f"Unknown action: {action}"}, session)

