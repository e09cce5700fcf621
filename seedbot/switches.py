"""Kill switches, shadow bans and room mappings backed by a key-value store."""

from __future__ import annotations

from typing import Any, Protocol

_SWITCH_TTL_SECONDS = 7 * 24 * 60 * 60
_SCOPES_WITH_ID = ("league", "match")


class _KeyValueStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: str, ex: int | None = None) -> Any: ...


def _as_text(value: Any) -> str | None:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode()
    return value


def _read_flag(store: _KeyValueStore, key: str) -> bool:
    return _as_text(store.get(key)) == "1"


def _write_flag(store: _KeyValueStore, key: str, enabled: bool) -> None:
    store.set(key, "1" if enabled else "0", ex=_SWITCH_TTL_SECONDS)


class KillSwitchService:
    """Stops bot output globally, per league or per match."""

    def __init__(self, store: _KeyValueStore) -> None:
        self._store = store

    @staticmethod
    def _key(scope: str, item_id: str) -> str:
        if scope == "global":
            return "killswitch:global"
        return f"killswitch:{scope}:{item_id}"

    def set_kill_switch(self, scope: str, item_id: str, is_killed: bool) -> None:
        _write_flag(self._store, self._key(scope, item_id), is_killed)

    def is_killed(self, scope: str, item_id: str) -> bool:
        """Return True when the global switch or the scoped switch is on."""
        if _read_flag(self._store, self._key("global", "")):
            return True
        if scope == "global":
            return False
        if scope in _SCOPES_WITH_ID:
            if not item_id:
                raise ValueError(f"{scope} id is required")
            return _read_flag(self._store, self._key(scope, item_id))
        raise ValueError(f"invalid scope: {scope}")


class ShadowBanService:
    """Ghost mode: messages are processed but never published."""

    def __init__(self, store: _KeyValueStore) -> None:
        self._store = store

    @staticmethod
    def _key(scope: str, item_id: str) -> str:
        if scope == "global":
            return "shadowban:global"
        return f"shadowban:{scope}:{item_id}"

    def set(self, scope: str, item_id: str, enabled: bool) -> None:
        _write_flag(self._store, self._key(scope, item_id), enabled)

    def is_enabled(self, scope: str, item_id: str) -> bool:
        return _read_flag(self._store, self._key(scope, item_id))

    def is_shadowed(self, match_id: str, league_id: str) -> bool:
        """Check global, then league, then match shadow bans."""
        if self.is_enabled("global", ""):
            return True
        if league_id and self.is_enabled("league", league_id):
            return True
        if match_id and self.is_enabled("match", match_id):
            return True
        return False


class RoomManager:
    """Keeps a stable chat room id for each match."""

    def __init__(self, store: _KeyValueStore) -> None:
        self._store = store

    def get_or_create(self, match_id: str) -> str:
        match_id = match_id.strip()
        if not match_id:
            raise ValueError("matchID is required")
        key = f"room:{match_id}"
        room_id = _as_text(self._store.get(key))
        if room_id:
            return room_id
        room_id = f"room-{match_id}"
        self._store.set(key, room_id)
        return room_id