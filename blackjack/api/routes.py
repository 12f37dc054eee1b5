from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from blackjack.api.deps import get_ops, get_store
from blackjack.api.models import InboundEvent, PlayerMeta, Reply, SessionFilter
from blackjack.errors import ErrorKind
from blackjack.handlers import ConnectionContext, dispatch, sweep_stale_sessions
from blackjack.session_ops import SessionOperations
from blackjack.session_store import SessionStore
from blackjack.settings import settings_from_env
from blackjack.websocket_hub import hub

logger = logging.getLogger(__name__)

router = APIRouter()


async def _release(ops: SessionOperations, connection_id: str) -> None:
    await hub.disconnect(connection_id)
    _, err = await ops.store.delete(SessionFilter(connection_id=connection_id))
    # No session is fine: the client may never have joined.
    if err and err.kind is not ErrorKind.not_found:
        logger.warning("could not drop session for connection %s: %s", connection_id, err)


@router.websocket("/ws")
async def player_ws(websocket: WebSocket, ops: SessionOperations = Depends(get_ops)) -> None:
    connection_id = await hub.connect(websocket)
    ctx = ConnectionContext(connection_id=connection_id)

    async def send(reply: Reply) -> None:
        await hub.send(connection_id, reply.to_payload())

    await hub.send(connection_id, {"type": "connected", "connection_id": connection_id})

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                event = InboundEvent.model_validate_json(raw)
            except ValidationError:
                await send(Reply.request_error(ErrorKind.invalid_event))
                continue
            await dispatch(event, ctx, ops=ops, send=send)
    except WebSocketDisconnect:
        await _release(ops, connection_id)
    except Exception:
        await _release(ops, connection_id)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/sessions", response_model=list[PlayerMeta])
async def list_sessions_route(game: str | None = None, store: SessionStore = Depends(get_store)) -> list[PlayerMeta]:
    sessions, err = await store.find(SessionFilter(game=game))
    if err:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=err.kind.value)
    return sessions


@router.post("/sessions/sweep")
async def sweep_route(force: bool = False, store: SessionStore = Depends(get_store)) -> dict[str, int]:
    """Drop sessions whose connection is not held by this process.

    With more than one replica, other processes hold live sockets this hub
    cannot see, so the sweep is refused unless `force` is passed.
    """

    replicas = settings_from_env().replicas
    if replicas > 1 and not force:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"sweep would drop sessions held by the other {replicas - 1} replica(s); pass force=true",
        )
    if replicas > 1:
        logger.warning("forced stale sweep with %d replicas configured", replicas)

    removed, err = await sweep_stale_sessions(store=store, live_connection_ids=await hub.live_connection_ids())
    if err:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=err.kind.value)
    return {"removed": removed}
