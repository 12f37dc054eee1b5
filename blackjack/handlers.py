from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from blackjack.api.models import (
    HandView,
    InboundEvent,
    PlayerMeta,
    Reply,
    SessionCreate,
    SessionFilter,
    SessionPatch,
)
from blackjack.errors import ErrorKind, InvalidEvent, InvalidGame, SessionError
from blackjack.result import guarded
from blackjack.session_ops import SessionOperations
from blackjack.session_store import SessionStore

logger = logging.getLogger(__name__)

Send = Callable[[Reply], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class ConnectionContext:
    connection_id: str


Handler = Callable[..., Awaitable[None]]


async def _fail(send: Send, err: SessionError) -> None:
    await send(Reply.request_error(err.kind))


@guarded
async def _seated_meta(ops: SessionOperations, connection_id: str) -> PlayerMeta:
    meta, err = await ops.store.get_meta(SessionFilter(connection_id=connection_id))
    if err:
        raise err
    if not meta.game:
        raise InvalidGame()
    return meta


async def hit_handler(event: InboundEvent, ctx: ConnectionContext, *, ops: SessionOperations, send: Send) -> None:
    user, err = await ops.store.get_meta(SessionFilter(connection_id=ctx.connection_id))

    # A missing session surfaces here as InvalidUser.
    if err:
        await _fail(send, err)
        return
    if not user.game:
        await send(Reply.request_error(ErrorKind.invalid_game))
        return

    await send(Reply.ok(user.model_dump(mode="json")))


async def join_handler(event: InboundEvent, ctx: ConnectionContext, *, ops: SessionOperations, send: Send) -> None:
    """Create the session for this connection, or move an existing one to `event.game`."""

    mine = SessionFilter(connection_id=ctx.connection_id)
    meta, err = await ops.store.get_meta(mine)
    if err is not None and err.kind is ErrorKind.invalid_user:
        session, err = await ops.store.create(SessionCreate(connection_id=ctx.connection_id, game=event.game))
        meta = session.meta() if session is not None else None
    elif err is None:
        meta, err = await ops.store.update(mine, SessionPatch(game=event.game))

    if err:
        await _fail(send, err)
        return
    await send(Reply.ok(meta.model_dump(mode="json")))


async def ready_handler(event: InboundEvent, ctx: ConnectionContext, *, ops: SessionOperations, send: Send) -> None:
    _, err = await _seated_meta(ops, ctx.connection_id)
    if err:
        await _fail(send, err)
        return

    meta, err = await ops.set_ready_state(ctx.connection_id, event.value)
    if err:
        await _fail(send, err)
        return
    await send(Reply.ok(meta.model_dump(mode="json")))


async def stand_handler(event: InboundEvent, ctx: ConnectionContext, *, ops: SessionOperations, send: Send) -> None:
    _, err = await _seated_meta(ops, ctx.connection_id)
    if err:
        await _fail(send, err)
        return

    meta, err = await ops.set_stand_state(SessionFilter(connection_id=ctx.connection_id), event.value)
    if err:
        await _fail(send, err)
        return
    await send(Reply.ok(meta.model_dump(mode="json")))


async def hand_handler(event: InboundEvent, ctx: ConnectionContext, *, ops: SessionOperations, send: Send) -> None:
    """Self view: the full hand, hidden card included, plus both totals."""

    mine = SessionFilter(connection_id=ctx.connection_id)
    meta, err = await ops.store.get_meta(mine)
    if err:
        await _fail(send, err)
        return

    cards, err = await ops.store.get_cards(mine, all=True)
    if err:
        await _fail(send, err)
        return

    sums, err = await ops.get_cards_sums(mine)
    if err:
        await _fail(send, err)
        return

    view = HandView(player_id=meta.id, cards=cards, sums=sums)
    await send(Reply.ok(view.model_dump(mode="json")))


async def peek_handler(event: InboundEvent, ctx: ConnectionContext, *, ops: SessionOperations, send: Send) -> None:
    """Opponent view: another player's hand at the same table, hidden card removed."""

    meta, err = await _seated_meta(ops, ctx.connection_id)
    if err:
        await _fail(send, err)
        return
    if not event.player_id:
        await _fail(send, InvalidEvent("peek requires player_id"))
        return

    cards, err = await ops.store.get_cards(SessionFilter(id=event.player_id, game=meta.game), all=False)
    if err:
        await _fail(send, err)
        return

    view = HandView(player_id=event.player_id, cards=cards)
    await send(Reply.ok(view.model_dump(mode="json")))


HANDLERS: dict[str, Handler] = {
    "join": join_handler,
    "hit": hit_handler,
    "ready": ready_handler,
    "stand": stand_handler,
    "hand": hand_handler,
    "peek": peek_handler,
}


async def dispatch(event: InboundEvent, ctx: ConnectionContext, *, ops: SessionOperations, send: Send) -> None:
    handler = HANDLERS.get(event.type)
    if handler is None:
        logger.debug("connection %s sent unknown event type %r", ctx.connection_id, event.type)
        await send(Reply.request_error(ErrorKind.invalid_event))
        return
    await handler(event, ctx, ops=ops, send=send)


@guarded
async def sweep_stale_sessions(*, store: SessionStore, live_connection_ids: set[str]) -> int:
    """Delete sessions whose connection is no longer held by the transport."""

    known, err = await store.list_connections()
    if err:
        raise err

    stale = set(known) - live_connection_ids
    if not stale:
        return 0

    removed, err = await store.purge_connections(stale)
    if err:
        raise err
    return removed
