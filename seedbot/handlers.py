"""HTTP handlers for the admin API, match listings, message history and event intake."""

from __future__ import annotations

import dataclasses
import enum
import inspect
import json
import logging
import time
from datetime import date, datetime
from functools import partial
from typing import Any, Callable, Protocol, Sequence

from aiohttp import web

from seedbot.models import ChatMessage, DailyMatch, MatchPhase
from seedbot.workers import compute_phase

logger = logging.getLogger(__name__)

VALID_SCOPES = ("global", "league", "match")
DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 500

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})
_PHASE_RANK = {MatchPhase.LIVE: 0, MatchPhase.PREMATCH: 1}


class _KillSwitchService(Protocol):
    def set_kill_switch(self, scope: str, item_id: str, is_killed: bool) -> Any: ...

    def is_killed(self, scope: str, item_id: str) -> Any: ...


class _ShadowBanService(Protocol):
    def set(self, scope: str, item_id: str, enabled: bool) -> Any: ...

    def is_enabled(self, scope: str, item_id: str) -> Any: ...


class _MatchStore(Protocol):
    def get_all_today_matches(self) -> Sequence[DailyMatch]: ...


class _MessageRepository(Protocol):
    def get_message_history(self, match_id: str, limit: int) -> Sequence[ChatMessage]: ...


class _Producer(Protocol):
    def send_message(self, topic: str, value: bytes) -> tuple[int, int]: ...


async def _resolve(value: Any) -> Any:
    """Await the value when a service returned an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"cannot serialise {type(value).__name__}")


_dumps = partial(json.dumps, default=_to_jsonable, ensure_ascii=False)


def _json(data: Any, status: int = 200, headers: dict[str, str] | None = None) -> web.Response:
    return web.json_response(data, status=status, headers=headers, dumps=_dumps)


def _error(message: str, status: int, headers: dict[str, str] | None = None) -> web.Response:
    return _json({"error": message}, status=status, headers=headers)


def _parse_bool(raw: str) -> bool:
    if raw in _TRUE_WORDS:
        return True
    if raw in _FALSE_WORDS:
        return False
    raise ValueError(f"invalid boolean: {raw!r}")


def validate_scope_and_id(scope: str, item_id: str) -> None:
    """Raise ValueError unless scope is known and carries an id where one is needed."""
    if scope not in VALID_SCOPES:
        raise ValueError("scope must be global, league, or match")
    if scope in ("league", "match") and not item_id:
        raise ValueError(f"id is required for {scope} scope")


async def _read_scope_request(request: web.Request, flag: str) -> tuple[str, str, bool]:
    """Parse a JSON body holding scope, id and a boolean flag."""
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValueError("invalid request") from exc
    if not isinstance(body, dict):
        raise ValueError("invalid request")
    scope = body.get("scope") or ""
    item_id = body.get("id") or ""
    value = body.get(flag)
    if value is None:
        value = False
    if not isinstance(scope, str) or not isinstance(item_id, str) or not isinstance(value, bool):
        raise ValueError("invalid request")
    return scope, item_id, value


async def health(request: web.Request) -> web.Response:
    return web.Response(text="ok")


class AdminHandler:
    """Admin endpoints for the kill switch and shadow ban."""

    def __init__(
        self,
        kill_switch_service: _KillSwitchService,
        shadow_ban_service: _ShadowBanService | None = None,
    ) -> None:
        self.kill_switch_service = kill_switch_service
        self.shadow_ban_service = shadow_ban_service

    async def set_kill_switch(self, request: web.Request) -> web.Response:
        try:
            scope, item_id, is_killed = await _read_scope_request(request, "is_killed")
        except ValueError:
            return _error("invalid request", 400)
        try:
            validate_scope_and_id(scope, item_id)
        except ValueError as exc:
            return _error(str(exc), 400)
        try:
            await _resolve(self.kill_switch_service.set_kill_switch(scope, item_id, is_killed))
        except Exception as exc:
            logger.error("set kill switch failed: %s", exc)
            return _error("failed to set kill switch", 500)
        return _json(
            {
                "message": "kill switch updated",
                "scope": scope,
                "id": item_id,
                "status": "killed" if is_killed else "enabled",
            }
        )

    async def get_kill_switch(self, request: web.Request) -> web.Response:
        scope = request.query.get("scope", "")
        item_id = request.query.get("id", "")
        if not scope:
            return _error("scope is required", 400)
        try:
            validate_scope_and_id(scope, item_id)
        except ValueError as exc:
            return _error(str(exc), 400)
        try:
            killed = bool(await _resolve(self.kill_switch_service.is_killed(scope, item_id)))
        except Exception as exc:
            logger.error("get kill switch failed: %s", exc)
            return _error("failed to get kill switch status", 500)
        return _json({"scope": scope, "id": item_id, "is_killed": killed})

    async def set_shadow_ban(self, request: web.Request) -> web.Response:
        if self.shadow_ban_service is None:
            return _error("shadow ban service unavailable", 500)
        try:
            scope, item_id, enabled = await _read_scope_request(request, "enabled")
        except ValueError:
            return _error("invalid request", 400)
        try:
            validate_scope_and_id(scope, item_id)
        except ValueError as exc:
            return _error(str(exc), 400)
        try:
            await _resolve(self.shadow_ban_service.set(scope, item_id, enabled))
        except Exception as exc:
            logger.error("set shadow ban failed: %s", exc)
            return _error("failed to set shadow ban", 500)
        return _json({"scope": scope, "id": item_id, "enabled": enabled})

    async def get_shadow_ban(self, request: web.Request) -> web.Response:
        if self.shadow_ban_service is None:
            return _error("shadow ban service unavailable", 500)
        scope = request.query.get("scope", "")
        item_id = request.query.get("id", "")
        if not scope:
            return _error("scope is required", 400)
        try:
            validate_scope_and_id(scope, item_id)
        except ValueError as exc:
            return _error(str(exc), 400)
        try:
            enabled = bool(await _resolve(self.shadow_ban_service.is_enabled(scope, item_id)))
        except Exception as exc:
            logger.error("get shadow ban failed: %s", exc)
            return _error("failed to get shadow ban status", 500)
        return _json({"scope": scope, "id": item_id, "enabled": enabled})


class ActiveMatchesHandler:
    """Lists today's matches that are waiting, about to start or live."""

    def __init__(self, context_store: _MatchStore, clock: Callable[[], float] = time.time) -> None:
        self.context_store = context_store
        self._clock = clock

    async def list_matches(self, request: web.Request) -> web.Response:
        if request.method == "OPTIONS":
            return web.Response(status=204, headers=_CORS_HEADERS)
        try:
            matches = list(await _resolve(self.context_store.get_all_today_matches()))
        except Exception as exc:
            logger.error("load matches failed: %s", exc)
            return _error("failed to load matches", 500, headers=_CORS_HEADERS)

        include_waiting = True
        raw = request.query.get("include_waiting", "")
        if raw:
            try:
                include_waiting = _parse_bool(raw)
            except ValueError:
                pass

        now = self._clock()
        counts = {MatchPhase.WAITING: 0, MatchPhase.PREMATCH: 0, MatchPhase.LIVE: 0}
        items: list[dict[str, Any]] = []
        for match in matches:
            phase = compute_phase(match.match_time, now)
            if phase == MatchPhase.ENDED:
                continue
            if phase == MatchPhase.WAITING and not include_waiting:
                continue
            counts[phase] += 1
            items.append(
                {
                    "match_id": match.match_id,
                    "room_id": f"room-{match.match_id}",
                    "phase": phase,
                    "kickoff_at": int(match.match_time),
                    "home_team": match.home_team.short_name or match.home_team.name,
                    "away_team": match.away_team.short_name or match.away_team.name,
                    "league_name": match.competition.name,
                }
            )

        items.sort(key=lambda item: (_PHASE_RANK.get(item["phase"], 2), item["kickoff_at"]))
        return _json(
            {
                "count": len(items),
                "summary": {
                    "live": counts[MatchPhase.LIVE],
                    "prematch": counts[MatchPhase.PREMATCH],
                    "waiting": counts[MatchPhase.WAITING],
                },
                "matches": items,
            },
            headers=_CORS_HEADERS,
        )


class MessageHistoryHandler:
    """Returns stored bot messages for a match."""

    def __init__(self, message_repo: _MessageRepository) -> None:
        self.message_repo = message_repo

    async def list_messages(self, request: web.Request) -> web.Response:
        if request.method == "OPTIONS":
            return web.Response(status=204, headers=_CORS_HEADERS)
        match_id = request.query.get("match_id", "")
        if not match_id:
            return _error("match_id is required", 400, headers=_CORS_HEADERS)

        limit = DEFAULT_HISTORY_LIMIT
        raw = request.query.get("limit", "")
        if raw:
            try:
                parsed = int(raw)
            except ValueError:
                parsed = 0
            if parsed > 0:
                limit = min(parsed, MAX_HISTORY_LIMIT)

        try:
            messages = list(await _resolve(self.message_repo.get_message_history(match_id, limit)))
        except Exception as exc:
            logger.error("fetch message history failed: %s", exc)
            return _error("failed to fetch message history", 500, headers=_CORS_HEADERS)
        return _json(
            {"match_id": match_id, "count": len(messages), "messages": messages},
            headers=_CORS_HEADERS,
        )


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


class EventSenderHandler:
    """Forwards a raw JSON event body to the event topic."""

    def __init__(self, producer: _Producer, topic: str) -> None:
        self.producer = producer
        self.topic = topic

    async def send_event(self, request: web.Request) -> web.Response:
        try:
            body = await request.read()
        except Exception:
            return _error("failed to read body", 400)
        try:
            json.loads(body.decode("utf-8"), parse_constant=_reject_constant)
        except ValueError:
            return _error("invalid JSON", 400)
        try:
            partition, offset = await _resolve(self.producer.send_message(self.topic, body))
        except Exception as exc:
            logger.error("failed to send event: %s", exc)
            return _error(f"failed to send to kafka: {exc}", 500)
        logger.info("sent %d bytes partition=%d offset=%d", len(body), partition, offset)
        return _json({"ok": True, "partition": partition, "offset": offset, "bytes": len(body)})


def create_app(
    admin_handler: AdminHandler | None = None,
    active_matches_handler: ActiveMatchesHandler | None = None,
    message_history_handler: MessageHistoryHandler | None = None,
    event_sender_handler: EventSenderHandler | None = None,
    hub: Any = None,
) -> web.Application:
    """Build the web application with routes for every handler given."""
    app = web.Application()
    app.router.add_get("/health", health)
    if admin_handler is not None:
        app.router.add_post("/admin/kill-switch", admin_handler.set_kill_switch)
        app.router.add_get("/admin/kill-switch/status", admin_handler.get_kill_switch)
        app.router.add_post("/admin/shadow-ban", admin_handler.set_shadow_ban)
        app.router.add_get("/admin/shadow-ban/status", admin_handler.get_shadow_ban)
    if active_matches_handler is not None:
        app.router.add_get("/matches/active", active_matches_handler.list_matches)
        app.router.add_options("/matches/active", active_matches_handler.list_matches)
    if message_history_handler is not None:
        app.router.add_get("/messages/history", message_history_handler.list_messages)
        app.router.add_options("/messages/history", message_history_handler.list_messages)
    if event_sender_handler is not None:
        app.router.add_post("/events/send", event_sender_handler.send_event)
    if hub is not None:
        app.router.add_get("/ws", hub.handle_websocket)
    return app