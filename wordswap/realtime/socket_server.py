import logging

from pydantic import BaseModel, ValidationError
import socketio

from wordswap.core.config import get_settings
from wordswap.core.request_meta import extract_client_ip_from_environ
from wordswap.schemas.room import (
    JoinRoomRequest,
    LeaveRoomRequest,
    PlayerFinishedRequest,
    StartGameRequest,
    SubmitWordRequest,
)
from wordswap.services import session_rules
from wordswap.services.rate_limit_service import rate_limit_service
from wordswap.services.room_store import RoomPhase, RoomSession, room_store
from wordswap.services.session_rules import SessionRuleError

logger = logging.getLogger(__name__)

settings = get_settings()

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=settings.cors_origins)

_sid_to_username: dict[str, str] = {}
_username_to_sids: dict[str, set[str]] = {}


def _room_channel(room_code: str) -> str:
    return f"room:{room_code}"


def _handshake_username(auth: dict | None) -> str:
    value = (auth or {}).get("username") if isinstance(auth, dict) else None
    username = value.strip()[: settings.username_max_length] if isinstance(value, str) else ""
    return username or settings.anonymous_username


def _socket_rate_limit_key(scope: str, identifier: str) -> str:
    return f"ws:{scope}:{identifier or 'unknown'}"


def _is_socket_connect_allowed(client_ip: str) -> bool:
    if not settings.rate_limit_enabled:
        return True
    decision = rate_limit_service.check(
        _socket_rate_limit_key("connect", client_ip),
        limit=settings.websocket_connect_limit,
        window_seconds=settings.websocket_connect_window_seconds,
    )
    return decision.allowed


def _is_socket_event_allowed(sid: str, event_name: str) -> bool:
    if not settings.rate_limit_enabled:
        return True
    identifier = _sid_to_username.get(sid) or sid
    decision = rate_limit_service.check(
        _socket_rate_limit_key(f"event:{event_name}", identifier),
        limit=settings.websocket_event_limit,
        window_seconds=settings.websocket_event_window_seconds,
    )
    return decision.allowed


async def _socket_rate_limited_payload(sid: str, event_name: str) -> dict:
    logger.warning("Rate limited %s from %s", event_name, _sid_to_username.get(sid, sid))
    await sio.emit(
        "rate_limited",
        {"event": event_name, "message": "Too many requests. Slow down."},
        room=sid,
    )
    return {"ok": False, "error": "rate limit exceeded"}


def _register_presence(sid: str, username: str) -> None:
    _sid_to_username[sid] = username
    _username_to_sids.setdefault(username, set()).add(sid)


def _unregister_presence(sid: str) -> str | None:
    username = _sid_to_username.pop(sid, None)
    if not username:
        return None
    user_sids = _username_to_sids.get(username)
    if user_sids:
        user_sids.discard(sid)
        if len(user_sids) == 0:
            _username_to_sids.pop(username, None)
    return username


def _bind_username(sid: str, username: str) -> None:
    if _sid_to_username.get(sid) == username:
        return
    _unregister_presence(sid)
    _register_presence(sid, username)


async def _emit_error(sid: str, message: str) -> None:
    await sio.emit("error-message", message, room=sid)


async def _reject(sid: str, error: SessionRuleError) -> dict:
    message = str(error)
    await _emit_error(sid, message)
    return {"ok": False, "error": message}


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    return f"Invalid {location}: {first.get('msg', 'malformed value')}"


async def _parse_payload(sid: str, model: type[BaseModel], data) -> tuple[BaseModel | None, dict | None]:
    try:
        return model.model_validate(data if isinstance(data, dict) else {}), None
    except ValidationError as exc:
        message = _describe_validation_error(exc)
        await _emit_error(sid, message)
        return None, {"ok": False, "error": message}


def _ignored(event_name: str, room_code: str) -> dict:
    logger.debug("Ignoring %s for unknown room %s", event_name, room_code)
    return {"ok": True, "ignored": True}


async def _emit_room_data(session: RoomSession) -> None:
    await sio.emit("room-data", session_rules.room_snapshot(session), room=_room_channel(session.id))


async def _emit_progress(session: RoomSession) -> None:
    await sio.emit(
        "game-progress",
        session_rules.progress_snapshot(session),
        room=_room_channel(session.id),
    )


async def _emit_assignment(session: RoomSession, assigned_words: dict[str, str]) -> None:
    logger.info("All words submitted in %s, assigned circularly", session.id)
    await sio.emit(
        "all-words-submitted",
        {"assignedWords": dict(assigned_words)},
        room=_room_channel(session.id),
    )


async def _remove_player(room_code: str, username: str) -> bool:
    session = room_store.get(room_code)
    if not session:
        return False

    outcome = session_rules.leave(session, username)
    if not outcome.removed:
        return False
    logger.info("%s left room %s", username, session.id)

    if outcome.empty:
        room_store.delete(session.id)
        return True

    if outcome.host_changed:
        logger.info("Host of %s passed to %s", session.id, session.host)
    await _emit_room_data(session)
    await _emit_progress(session)
    if outcome.assigned_words is not None:
        await _emit_assignment(session, outcome.assigned_words)
    return True


@sio.event
async def connect(sid: str, environ: dict, auth: dict | None = None) -> bool:
    client_ip = extract_client_ip_from_environ(environ)
    if not _is_socket_connect_allowed(client_ip):
        logger.warning("Refusing connection from %s: rate limit exceeded", client_ip)
        return False

    username = _handshake_username(auth)
    _register_presence(sid, username)
    logger.info("[+] %s connected (%s)", username, sid)
    await sio.emit("system", {"message": "connected", "username": username}, room=sid)
    return True


@sio.event
async def disconnect(sid: str, reason: str | None = None) -> None:
    username = _unregister_presence(sid)
    if not username:
        return
    logger.info("[-] %s disconnected (%s, %s)", username, sid, reason or "unknown")
    if username in _username_to_sids:
        return

    for room_code in room_store.room_codes_for_user(username):
        await _remove_player(room_code, username)


@sio.on("join-room")
async def join_room(sid: str, data: dict | None = None) -> dict:
    if not _is_socket_event_allowed(sid, "join-room"):
        return await _socket_rate_limited_payload(sid, "join-room")
    payload, error = await _parse_payload(sid, JoinRoomRequest, data)
    if error:
        return error

    session, _ = room_store.get_or_create(payload.room_code, payload.username)
    phase_before = session.phase
    try:
        added = session_rules.join(session, payload.username)
    except SessionRuleError as exc:
        return await _reject(sid, exc)

    previous_username = _sid_to_username.get(sid)
    _bind_username(sid, payload.username)
    if previous_username and previous_username not in _username_to_sids:
        # renamed connection: the old name has no live connection left
        for room_code in room_store.room_codes_for_user(previous_username):
            await _remove_player(room_code, previous_username)
    await sio.enter_room(sid, _room_channel(session.id))
    logger.info("%s %s room %s", payload.username, "joined" if added else "rejoined", session.id)

    await _emit_room_data(session)
    await _emit_progress(session)
    if added and phase_before == RoomPhase.ASSIGNED:
        # the stored assignment was dropped, so the room is collecting again
        logger.info("Assignment in %s cleared by newcomer %s", session.id, payload.username)
        await sio.emit(
            "word-submitted",
            {
                "username": payload.username,
                "submittedCount": len(session.words),
                "totalCount": len(session.players),
            },
            room=_room_channel(session.id),
        )
    if not added and session.phase == RoomPhase.PLAYING:
        await sio.emit(
            "start-game",
            {"roomCode": session.id, "assignedWords": dict(session.assigned_words)},
            room=sid,
        )
    elif not added and session.phase == RoomPhase.ASSIGNED:
        await sio.emit("all-words-submitted", {"assignedWords": dict(session.assigned_words)}, room=sid)
    return {"ok": True, "room": session_rules.room_snapshot(session)}


@sio.on("submit-word")
async def submit_word(sid: str, data: dict | None = None) -> dict:
    if not _is_socket_event_allowed(sid, "submit-word"):
        return await _socket_rate_limited_payload(sid, "submit-word")
    payload, error = await _parse_payload(sid, SubmitWordRequest, data)
    if error:
        return error

    session = room_store.get(payload.room_code)
    if not session:
        return _ignored("submit-word", payload.room_code)
    try:
        outcome = session_rules.submit_word(session, payload.username, payload.word)
    except SessionRuleError as exc:
        return await _reject(sid, exc)
    if outcome is None:
        logger.debug("Ignoring word from non-member %s in %s", payload.username, session.id)
        return {"ok": True, "ignored": True}

    logger.info("%s submitted a word in %s", payload.username, session.id)
    await sio.emit(
        "word-submitted",
        {
            "username": outcome.username,
            "submittedCount": outcome.submitted_count,
            "totalCount": outcome.total_count,
        },
        room=_room_channel(session.id),
    )
    if outcome.assigned_words is not None:
        await _emit_assignment(session, outcome.assigned_words)
    return {"ok": True, "submittedCount": outcome.submitted_count, "totalCount": outcome.total_count}


@sio.on("start-game")
async def start_game(sid: str, data: dict | None = None) -> dict:
    if not _is_socket_event_allowed(sid, "start-game"):
        return await _socket_rate_limited_payload(sid, "start-game")
    payload, error = await _parse_payload(sid, StartGameRequest, data)
    if error:
        return error

    session = room_store.get(payload.room_code)
    if not session:
        return _ignored("start-game", payload.room_code)
    try:
        assigned_words = session_rules.start_game(session, requested_by=_sid_to_username.get(sid))
    except SessionRuleError as exc:
        return await _reject(sid, exc)

    await sio.emit(
        "start-game",
        {"roomCode": session.id, "assignedWords": assigned_words},
        room=_room_channel(session.id),
    )
    logger.info("Game started in room %s", session.id)
    return {"ok": True}


async def _record_result(sid: str, payload: PlayerFinishedRequest, event_name: str) -> dict:
    session = room_store.get(payload.room_code)
    if not session:
        return _ignored(event_name, payload.room_code)
    try:
        recorded = session_rules.record_result(session, payload.username, payload.success)
    except SessionRuleError as exc:
        return await _reject(sid, exc)
    if not recorded:
        logger.debug("Ignoring result from non-member %s in %s", payload.username, session.id)
        return {"ok": True, "ignored": True}

    await _emit_progress(session)
    return {"ok": True}


@sio.on("player-finished")
async def player_finished(sid: str, data: dict | None = None) -> dict:
    if not _is_socket_event_allowed(sid, "player-finished"):
        return await _socket_rate_limited_payload(sid, "player-finished")
    payload, error = await _parse_payload(sid, PlayerFinishedRequest, data)
    if error:
        return error
    return await _record_result(sid, payload, "player-finished")


@sio.on("player-failed")
async def player_failed(sid: str, data: dict | None = None) -> dict:
    if not _is_socket_event_allowed(sid, "player-failed"):
        return await _socket_rate_limited_payload(sid, "player-failed")
    payload, error = await _parse_payload(sid, PlayerFinishedRequest, data)
    if error:
        return error
    payload.success = False
    return await _record_result(sid, payload, "player-failed")


@sio.on("leave-room")
async def leave_room(sid: str, data: dict | None = None) -> dict:
    if not _is_socket_event_allowed(sid, "leave-room"):
        return await _socket_rate_limited_payload(sid, "leave-room")
    payload, error = await _parse_payload(sid, LeaveRoomRequest, data)
    if error:
        return error

    if not room_store.get(payload.room_code):
        return _ignored("leave-room", payload.room_code)
    removed = await _remove_player(payload.room_code, payload.username)
    if removed and _sid_to_username.get(sid) == payload.username:
        await sio.leave_room(sid, _room_channel(payload.room_code))
    return {"ok": True, "removed": removed}


def build_socket_app(api_app) -> socketio.ASGIApp:
    return socketio.ASGIApp(sio, other_asgi_app=api_app, socketio_path="socket.io")
