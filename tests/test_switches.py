import pytest

from seedbot.switches import KillSwitchService, RoomManager, ShadowBanService


class FakeStore:
    def __init__(self, data=None):
        self.data = dict(data or {})
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value
        self.ttls[key] = ex


class BrokenStore:
    def get(self, key):
        raise ConnectionError("down")

    def set(self, key, value, ex=None):
        raise ConnectionError("down")


def test_kill_switch_global_key_and_ttl():
    store = FakeStore()
    KillSwitchService(store).set_kill_switch("global", "", True)
    assert store.data["killswitch:global"] == "1"
    assert store.ttls["killswitch:global"] == 7 * 24 * 60 * 60


def test_kill_switch_match_round_trip():
    store = FakeStore()
    service = KillSwitchService(store)
    service.set_kill_switch("match", "m1", True)
    assert service.is_killed("match", "m1") is True
    assert service.is_killed("match", "m2") is False
    service.set_kill_switch("match", "m1", False)
    assert service.is_killed("match", "m1") is False


def test_global_kill_overrides_every_scope():
    service = KillSwitchService(FakeStore({"killswitch:global": b"1"}))
    assert service.is_killed("league", "l1") is True
    assert service.is_killed("whatever", "") is True


def test_kill_switch_requires_id_and_valid_scope():
    service = KillSwitchService(FakeStore())
    with pytest.raises(ValueError):
        service.is_killed("league", "")
    with pytest.raises(ValueError):
        service.is_killed("match", "")
    with pytest.raises(ValueError):
        service.is_killed("bad", "x")
    assert service.is_killed("global", "") is False


def test_kill_switch_propagates_store_errors():
    with pytest.raises(ConnectionError):
        KillSwitchService(BrokenStore()).is_killed("global", "")


def test_shadow_ban_round_trip_and_key():
    store = FakeStore()
    service = ShadowBanService(store)
    service.set("league", "l9", True)
    assert store.data["shadowban:league:l9"] == "1"
    assert service.is_enabled("league", "l9") is True
    assert service.is_enabled("league", "other") is False


def test_is_shadowed_checks_each_scope():
    assert ShadowBanService(FakeStore({"shadowban:global": "1"})).is_shadowed("", "") is True
    assert ShadowBanService(FakeStore({"shadowban:league:l1": "1"})).is_shadowed("m1", "l1") is True
    assert ShadowBanService(FakeStore({"shadowban:match:m1": "1"})).is_shadowed("m1", "") is True
    assert ShadowBanService(FakeStore({"shadowban:match:m1": "0"})).is_shadowed("m1", "l1") is False


def test_is_shadowed_propagates_errors():
    with pytest.raises(ConnectionError):
        ShadowBanService(BrokenStore()).is_shadowed("m1", "l1")


def test_room_manager_creates_and_persists_mapping():
    store = FakeStore()
    manager = RoomManager(store)
    room_id = manager.get_or_create("  m7 ")
    assert room_id == f"room-{'m7'}"
    assert store.data["room:m7"] == room_id
    assert store.ttls["room:m7"] is None
    assert manager.get_or_create("m7") == room_id


def test_room_manager_returns_existing_mapping():
    manager = RoomManager(FakeStore({"room:m1": b"custom-room"}))
    assert manager.get_or_create("m1") == "custom-room"


def test_room_manager_rejects_blank_and_store_errors():
    with pytest.raises(ValueError):
        RoomManager(FakeStore()).get_or_create("   ")
    with pytest.raises(ConnectionError):
        RoomManager(BrokenStore()).get_or_create("m1")