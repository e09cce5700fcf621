"""Decides how many bots a room may run."""

from __future__ import annotations

import enum
import logging
import random
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


class ScalerState(str, enum.Enum):
    """Activity level of a room as reported by the scaler service."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __str__(self) -> str:
        return self.value


@dataclass
class MaxBotsConfig:
    min_bots: int = 0
    max_bots: int = 0
    state: ScalerState | None = None


class _AutoScalerService(Protocol):
    def get_bot_config(self, room_id: str) -> MaxBotsConfig: ...


class AutoScalerLogic:
    """Applies the scaler service's limits to bot spawning."""

    def __init__(self, scaler_service: _AutoScalerService, rng: random.Random | None = None) -> None:
        self.scaler_service = scaler_service
        self._rng = rng or random.Random()

    def should_spawn_bot(self, room_id: str, current_bot_count: int) -> tuple[bool, MaxBotsConfig]:
        """Return whether another bot may join and the limits that applied."""
        try:
            cfg = self.scaler_service.get_bot_config(room_id)
        except Exception as exc:
            logger.warning("get bot config failed room=%s: %s; using fallback", room_id, exc)
            return current_bot_count < 2, MaxBotsConfig(min_bots=1, max_bots=2)
        spawn = current_bot_count < cfg.max_bots
        logger.info(
            "room=%s state=%s bots %d/%d spawn=%s",
            room_id,
            cfg.state,
            current_bot_count,
            cfg.max_bots,
            spawn,
        )
        return spawn, cfg

    def random_bot_count(self, cfg: MaxBotsConfig) -> int:
        if cfg.max_bots <= cfg.min_bots:
            return cfg.min_bots
        return cfg.min_bots + self._rng.randint(0, cfg.max_bots - cfg.min_bots)