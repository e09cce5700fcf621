"""Pre-match burst of bot messages sent shortly before kick-off."""

from __future__ import annotations

import logging
import random
import time
from datetime import datetime
from typing import Any, Callable, MutableSet, Protocol, TypeVar

from seedbot.models import (
    ChatContext,
    ChatMessage,
    ContextBundle,
    DailyMatch,
    DraftMessage,
    MatchEvent,
    MatchPhase,
    MatchState,
    Persona,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

BURST_SIZE = 5
BURST_INTERVAL_SECONDS = 10.0
PUBLISH_ATTEMPTS = 3
PUBLISH_RETRY_DELAY_SECONDS = 1.0
PREMATCH_EVENT_TYPE = "MATCH_UPCOMING"

_DEFAULT_PREMATCH_TEXT = "Cho xem trước trận nào!"


class _PrematchStore(Protocol):
    def get_match_by_id(self, match_id: str) -> DailyMatch | None: ...

    def set_match_state(self, match_id: str, state: MatchState) -> None: ...

    def push_chat_message(self, room_id: str, message: ChatMessage) -> None: ...


class _BundleBuilder(Protocol):
    def build_bundle(self, match_id: str, room_id: str) -> ContextBundle: ...


class _Generator(Protocol):
    def generate_message(self, bundle: ContextBundle, persona: Persona) -> DraftMessage: ...


class _Selector(Protocol):
    def select_persona(self, bundle: ContextBundle) -> Persona | None: ...

    def select_persona_allow_reuse(self, bundle: ContextBundle) -> Persona | None: ...


class _Publisher(Protocol):
    def publish(self, message: ChatMessage) -> None: ...


class _BotMessagePublisher(Protocol):
    def publish_bot_message(self, room_id: str, payload: dict[str, Any]) -> None: ...


class _RoomResolver(Protocol):
    def get_or_create(self, match_id: str) -> str: ...


class _MessageRepository(Protocol):
    def save_message(self, message: ChatMessage) -> None: ...


def retry_call(func: Callable[[], T], attempts: int, delay: float) -> T:
    """Call func up to attempts times, sleeping delay seconds between failures."""
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    for attempt in range(1, attempts):
        try:
            return func()
        except Exception as exc:
            logger.debug("attempt %d/%d failed: %s", attempt, attempts, exc)
            time.sleep(delay)
    return func()


def normalize_prematch_text(text: str) -> str:
    """Lower-case text and collapse runs of whitespace."""
    return " ".join(text.strip().lower().split())


def diversify_prematch_text(
    base: str,
    persona: Persona | None,
    idx: int,
    minutes_to_kickoff: int,
    used: MutableSet[str],
) -> str:
    """Return a variant of base not yet in used, and record it there."""
    text = base.strip() or _DEFAULT_PREMATCH_TEXT

    seed = ""
    if persona is not None and persona.profile.seed_phrases:
        seed = random.choice(persona.profile.seed_phrases).strip()

    if minutes_to_kickoff > 0:
        countdown = f"Con {minutes_to_kickoff} phut nua bong lan."
    else:
        countdown = "Sap den gio bong lan!"

    variants = [text]
    if seed:
        variants.append(f"{seed} {text}")
    variants.extend([f"{text} {countdown}", f"{countdown} {text}"])

    for candidate in variants:
        norm = normalize_prematch_text(candidate)
        if norm not in used:
            used.add(norm)
            return candidate

    fallback = f"{text} ({idx + 1})"
    used.add(normalize_prematch_text(fallback))
    return fallback


class PrematchHandler:
    """Sends a short burst of warm-up messages into a match room before kick-off."""

    def __init__(
        self,
        context_store: _PrematchStore,
        context_builder: _BundleBuilder,
        message_generator: _Generator,
        persona_selector: _Selector,
        publisher: _Publisher | None = None,
        mqtt_publisher: _BotMessagePublisher | None = None,
        room_manager: _RoomResolver | None = None,
        message_repo: _MessageRepository | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        publish_retry_delay: float = PUBLISH_RETRY_DELAY_SECONDS,
    ) -> None:
        if publisher is None and mqtt_publisher is None:
            raise ValueError("a publisher is required")
        self._store = context_store
        self._builder = context_builder
        self._generator = message_generator
        self._selector = persona_selector
        self._publisher = publisher
        self._mqtt = mqtt_publisher
        self._rooms = room_manager
        self._repo = message_repo
        self._clock = clock
        self._sleep = sleep
        self._retry_delay = publish_retry_delay

    def handle(self, event: MatchEvent) -> int:
        """Run the burst for the event's match and return how many messages went out."""
        match_id = event.match_id
        logger.info("prematch handling match=%s", match_id)

        daily = self._store.get_match_by_id(match_id)
        if daily is None:
            raise LookupError(f"match not found in daily store: {match_id}")

        room_id = f"room-{match_id}"
        state = MatchState(
            match_id=match_id,
            phase=MatchPhase.PREMATCH,
            match_time=daily.match_time,
            date=daily.date,
            room_id=room_id,
            minute=event.minute,
            home_team=daily.home_team,
            away_team=daily.away_team,
            competition=daily.competition,
            updated_at=int(self._clock()),
        )
        try:
            self._store.set_match_state(match_id, state)
        except Exception as exc:
            logger.warning("prematch set state failed (non-critical): %s", exc)

        if self._rooms is not None:
            try:
                room_id = self._rooms.get_or_create(match_id)
            except Exception as exc:
                logger.warning("prematch room get/create failed: %s", exc)

        used_texts: set[str] = set()
        published = 0
        for i in range(BURST_SIZE):
            step = f"[{i + 1}/{BURST_SIZE}]"
            minutes_to_kickoff = int((daily.match_time - self._clock()) / 60)
            if minutes_to_kickoff < 0:
                logger.info("prematch stop burst early (kickoff passed) match=%s", match_id)
                break

            try:
                bundle = self._builder.build_bundle(match_id, room_id)
            except Exception as exc:
                logger.warning("prematch bundle build failed %s: %s", step, exc)
                self._pause(i)
                continue
            if bundle is None:
                logger.warning("prematch bundle build returned nothing %s", step)
                self._pause(i)
                continue

            bundle.current_event = event
            bundle.match.phase = MatchPhase.PREMATCH
            bundle.match.home_team = daily.home_team
            bundle.match.away_team = daily.away_team
            bundle.match.match_id = match_id
            bundle.match.minute = -minutes_to_kickoff
            if bundle.chat is None:
                bundle.chat = ChatContext()

            persona = self._choose_persona(bundle, step)
            if persona is None:
                continue

            try:
                draft = self._generator.generate_message(bundle, persona)
            except Exception as exc:
                logger.warning("prematch generate failed %s: %s", step, exc)
                self._pause(i)
                continue

            draft.text = diversify_prematch_text(draft.text, persona, i, minutes_to_kickoff, used_texts)
            logger.info("prematch %s %s", step, draft.text)

            now = self._clock()
            message = ChatMessage(
                id=f"{match_id}-pre-{i + 1}-{time.time_ns()}",
                content=draft.text,
                timestamp=int(now),
                is_bot=True,
                persona=persona.id,
                match_id=match_id,
                room_id=room_id,
                event_type=PREMATCH_EVENT_TYPE,
                created_at=datetime.fromtimestamp(now),
            )

            try:
                self._publish(room_id, message, persona)
            except Exception as exc:
                logger.warning("prematch publish failed %s: %s", step, exc)
                self._pause(i)
                continue

            published += 1
            logger.info("prematch published %s match=%s", step, match_id)
            self._store.push_chat_message(room_id, message)
            if self._repo is not None:
                try:
                    self._repo.save_message(message)
                except Exception as exc:
                    logger.warning("prematch DB save failed %s: %s", step, exc)
            self._pause(i)

        logger.info(
            "prematch done match=%s [%s vs %s]",
            match_id,
            daily.home_team.short_name,
            daily.away_team.short_name,
        )
        return published

    def _choose_persona(self, bundle: ContextBundle, step: str) -> Persona | None:
        error: Exception | None = None
        try:
            persona = self._selector.select_persona(bundle)
        except Exception as exc:
            error = exc
            persona = None
        if persona is None:
            persona = self._selector.select_persona_allow_reuse(bundle)
            if persona is None:
                logger.warning("prematch persona error %s: %s", step, error)
                return None
            logger.info("prematch fallback persona=%s %s", persona.id, step)
        return persona

    def _publish(self, room_id: str, message: ChatMessage, persona: Persona) -> None:
        if self._mqtt is not None:
            payload = {
                "id": message.id,
                "match_id": message.match_id,
                "room_id": room_id,
                "user_id": persona.id,
                "content": message.content,
                "timestamp": message.timestamp,
                "is_bot": True,
                "persona_id": persona.id,
                "event_type": message.event_type,
            }
            self._mqtt.publish_bot_message(room_id, payload)
            return
        publisher = self._publisher
        assert publisher is not None
        retry_call(lambda: publisher.publish(message), PUBLISH_ATTEMPTS, self._retry_delay)

    def _pause(self, index: int) -> None:
        if index < BURST_SIZE - 1:
            self._sleep(BURST_INTERVAL_SECONDS)