from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query
from ..auth import authenticate_token, bearer_token
from ..realtime import gateway
from ..ws_manager import ConnectionContext
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket('/chat')
async def chat_ws(websocket: WebSocket, token: str = Query(None)):
    token = token or bearer_token(websocket.headers.get('authorization'))
    user = await authenticate_token(token)
    if not user:
        logger.info({'msg': 'ws_rejected', 'client': str(websocket.client)})
        await websocket.close(code=1008)
        return

    ctx = ConnectionContext(websocket, user)
    manager = gateway.rooms
    await manager.connect(ctx)
    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except (ValueError, KeyError):
                await gateway.emit_error(ctx, 'Malformed frame')
                continue
            await gateway.dispatch(ctx, frame)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(ctx)
