"""Background workers: the pre-match poller and the bot scaler."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Protocol, Sequence

from seedbot.autoscaler import AutoScalerLogic, MaxBotsConfig, ScalerState
from seedbot.models import ChatContext, ChatMessage, DailyMatch, MatchEvent, MatchPhase

logger = logging.getLogger(__name__)

MATCH_ENDED_THRESHOLD_SECONDS = 110 * 60
PREMATCH_WINDOW_SECONDS = 30 * 60
DEFAULT_SCALER_INTERVAL_SECONDS = 60.0
_SCALER_CHAT_WINDOW = 200


def compute_phase(match_time: int, now: datetime | float) -> MatchPhase:
    """Phase of a match given its kick-off unix time and the current time."""
    now_ts = int(now.timestamp() if isinstance(now, datetime) else now)
    diff = now_ts - int(match_time)
    if diff >= MATCH_ENDED_THRESHOLD_SECONDS:
        return MatchPhase.ENDED
    if diff >= 0:
        return MatchPhase.LIVE
    if diff >= -PREMATCH_WINDOW_SECONDS:
        return MatchPhase.PREMATCH
    return MatchPhase.WAITING


def count_recent_human_messages(messages: Iterable[ChatMessage]) -> int:
    return sum(1 for msg in messages if not msg.is_bot)


def _spawn_thread(task: Callable[[], None]) -> None:
    threading.Thread(target=task, daemon=True).start()


def _label(match: DailyMatch) -> str:
    return f"{match.match_id} [{match.home_team.short_name} vs {match.away_team.short_name}]"


class _MatchHandler(Protocol):
    def handle(self, event: MatchEvent) -> object: ...


class _PollerStore(Protocol):
    def get_all_today_matches(self) -> Sequence[DailyMatch]: ...

    def has_sent_prematch(self, match_id: str) -> bool: ...

    def get_recent_chat_window(self, room_id: str, limit: int) -> ChatContext: ...

    def mark_sent_prematch(self, match_id: str) -> None: ...


class _ScalerStore(Protocol):
    def get_all_today_matches(self) -> Sequence[DailyMatch]: ...

    def get_recent_chat_window(self, room_id: str, limit: int) -> ChatContext: ...


@dataclass
class PollSummary:
    """What one poll saw and which matches it handed to the handler."""

    waiting: int = 0
    prematch: int = 0
    live: int = 0
    ended: int = 0
    prematch_matches: list[str] = field(default_factory=list)
    live_matches: list[str] = field(default_factory=list)
    triggered: list[str] = field(default_factory=list)


@dataclass
class ScalerSummary:
    processed: int = 0
    prematch: int = 0
    live: int = 0
    total_active_users: int = 0


class PrematchPoller:
    """Scans today's matches and triggers the pre-match handler for upcoming ones."""

    def __init__(
        self,
        handler: _MatchHandler,
        interval: float,
        context_store: _PollerStore,
        clock: Callable[[], float] = time.time,
        spawn: Callable[[Callable[[], None]], None] | None = None,
    ) -> None:
        self.handler = handler
        self.interval = interval
        self._store = context_store
        self._clock = clock
        self._spawn = spawn or _spawn_thread

    def start(self, stop_event: threading.Event) -> None:
        """Poll now and then every interval until stop_event is set."""
        logger.info("prematch poller started, interval=%ss", self.interval)
        self.poll()
        while not stop_event.wait(self.interval):
            self.poll()
        logger.info("prematch poller stopped")

    def poll(self) -> PollSummary:
        summary = PollSummary()
        try:
            matches = list(self._store.get_all_today_matches())
        except Exception as exc:
            logger.error("scan matches failed: %s", exc)
            return summary
        if not matches:
            logger.warning("no matches found for today")
            return summary
        logger.info("loaded %d matches", len(matches))

        now = self._clock()
        for match in matches:
            phase = compute_phase(match.match_time, now)
            if phase == MatchPhase.PREMATCH:
                summary.prematch += 1
                summary.prematch_matches.append(_label(match))
            elif phase == MatchPhase.LIVE:
                summary.live += 1
                summary.live_matches.append(_label(match))
            elif phase == MatchPhase.ENDED:
                summary.ended += 1
            else:
                summary.waiting += 1

            if phase != MatchPhase.PREMATCH:
                continue
            if self._already_sent(match.match_id):
                continue

            event = MatchEvent(
                match_id=match.match_id,
                type="MATCH_UPCOMING",
                timestamp=int(self._clock()),
            )
            logger.info("prematch triggering handler match=%s", _label(match))
            summary.triggered.append(match.match_id)
            self._spawn(self._make_task(event, _label(match)))

        if summary.prematch_matches:
            logger.info("prematch matches: %s", ", ".join(summary.prematch_matches))
        if summary.live_matches:
            logger.info("live matches: %s", ", ".join(summary.live_matches))
            logger.info("waiting for live match events")
        logger.info(
            "phase summary waiting=%d prematch=%d live=%d ended=%d",
            summary.waiting,
            summary.prematch,
            summary.live,
            summary.ended,
        )
        return summary

    def _already_sent(self, match_id: str) -> bool:
        """True when the match was handled and its room already holds chat."""
        try:
            sent = self._store.has_sent_prematch(match_id)
        except Exception as exc:
            logger.warning("check sent failed match=%s: %s", match_id, exc)
            return True
        if not sent:
            return False
        try:
            chat = self._store.get_recent_chat_window(f"room-{match_id}", 1)
        except Exception as exc:
            logger.warning("check chat failed match=%s: %s", match_id, exc)
            return True
        if chat.raw_messages:
            logger.info("match=%s already sent prematch, skip", match_id)
            return True
        logger.info("stale sent marker found (no chat), retry match=%s", match_id)
        return False

    def _make_task(self, event: MatchEvent, label: str) -> Callable[[], None]:
        def task() -> None:
            try:
                self.handler.handle(event)
            except Exception as exc:
                logger.error("prematch handler failed match=%s: %s", event.match_id, exc)
                return
            try:
                self._store.mark_sent_prematch(event.match_id)
            except Exception as exc:
                logger.warning("mark sent failed match=%s: %s", event.match_id, exc)
                return
            logger.info("MATCH_UPCOMING handled and marked match=%s", label)

        return task


class ScalerWorker:
    """Periodically measures room activity for matches that are live or about to start."""

    def __init__(
        self,
        store: _ScalerStore,
        auto_scaler: AutoScalerLogic,
        interval: float = DEFAULT_SCALER_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.auto_scaler = auto_scaler
        self.interval = interval if interval > 0 else DEFAULT_SCALER_INTERVAL_SECONDS
        self._clock = clock

    def start(self, stop_event: threading.Event) -> None:
        logger.info("scaler started interval=%ss", self.interval)
        self.tick()
        while not stop_event.wait(self.interval):
            self.tick()
        logger.info("scaler stopped")

    def tick(self) -> ScalerSummary:
        summary = ScalerSummary()
        try:
            matches = list(self.store.get_all_today_matches())
        except Exception as exc:
            logger.error("scaler get matches failed: %s", exc)
            return summary

        now = self._clock()
        for match in matches:
            phase = compute_phase(match.match_time, now)
            if phase not in (MatchPhase.LIVE, MatchPhase.PREMATCH):
                continue
            summary.processed += 1
            if phase == MatchPhase.PREMATCH:
                summary.prematch += 1
            else:
                summary.live += 1

            try:
                chat = self.store.get_recent_chat_window(match.match_id, _SCALER_CHAT_WINDOW)
            except Exception:
                continue
            summary.total_active_users += count_recent_human_messages(chat.raw_messages)
            self.auto_scaler.random_bot_count(
                MaxBotsConfig(min_bots=1, max_bots=3, state=ScalerState.LOW)
            )

        if summary.processed:
            logger.info(
                "scaler matches=%d prematch=%d live=%d total_active_users=%d",
                summary.processed,
                summary.prematch,
                summary.live,
                summary.total_active_users,
            )
        return summary