import random

from seedbot.autoscaler import AutoScalerLogic, MaxBotsConfig, ScalerState


class FixedService:
    def __init__(self, cfg):
        self.cfg = cfg
        self.rooms = []

    def get_bot_config(self, room_id):
        self.rooms.append(room_id)
        return self.cfg


class FailingService:
    def get_bot_config(self, room_id):
        raise RuntimeError("unavailable")


def test_should_spawn_below_max():
    cfg = MaxBotsConfig(min_bots=1, max_bots=3, state=ScalerState.LOW)
    service = FixedService(cfg)
    spawn, used = AutoScalerLogic(service).should_spawn_bot("room-m1", 2)
    assert spawn is True
    assert used is cfg
    assert service.rooms == ["room-m1"]


def test_should_not_spawn_at_or_above_max():
    cfg = MaxBotsConfig(min_bots=1, max_bots=3)
    logic = AutoScalerLogic(FixedService(cfg))
    assert logic.should_spawn_bot("r", 3)[0] is False
    assert logic.should_spawn_bot("r", 4)[0] is False


def test_fallback_when_service_fails():
    logic = AutoScalerLogic(FailingService())
    spawn, cfg = logic.should_spawn_bot("r", 1)
    assert spawn is True
    assert (cfg.min_bots, cfg.max_bots) == (1, 2)
    assert logic.should_spawn_bot("r", 2)[0] is False


def test_random_bot_count_stays_in_range():
    logic = AutoScalerLogic(FixedService(None), rng=random.Random(42))
    cfg = MaxBotsConfig(min_bots=1, max_bots=3, state=ScalerState.LOW)
    counts = {logic.random_bot_count(cfg) for _ in range(200)}
    assert counts <= {1, 2, 3}
    assert min(counts) == 1
    assert max(counts) == 3


def test_random_bot_count_degenerate_range_returns_min():
    logic = AutoScalerLogic(FixedService(None))
    assert logic.random_bot_count(MaxBotsConfig(min_bots=4, max_bots=4)) == 4
    assert logic.random_bot_count(MaxBotsConfig(min_bots=5, max_bots=2)) == 5