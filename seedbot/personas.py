"""Persona selection for bot messages."""

from __future__ import annotations

import contextlib
import logging
import random
from pathlib import Path
from typing import Protocol, Sequence

import yaml

from seedbot.models import ContextBundle, Persona

logger = logging.getLogger(__name__)

_DEFAULT_COOLDOWN_SECONDS = 30


class NoPersonaError(LookupError):
    """Raised when no persona can be chosen for a context."""


class _PersonaStateService(Protocol):
    def get_last_persona(self, match_id: str) -> str: ...

    def is_on_cooldown(self, persona_id: str) -> bool: ...

    def set_cooldown(self, persona_id: str, seconds: int) -> None: ...

    def save_last_persona(self, match_id: str, persona_id: str) -> None: ...


def normalize_event_type(event_type: str) -> str:
    """Upper-case an event type and fold penalties and own goals into GOAL."""
    normalized = event_type.strip().upper()
    if normalized in ("PENALTY", "OWN_GOAL"):
        return "GOAL"
    return normalized


def is_persona_eligible(persona: Persona, event_type: str) -> bool:
    allowed = persona.policy.allowed_event_types
    return not allowed or event_type in allowed


def pick_weighted_random(candidates: Sequence[tuple[Persona, int]]) -> Persona:
    """Pick a persona with probability proportional to its score."""
    if not candidates:
        raise NoPersonaError("no candidates to pick from")
    total = sum(score for _, score in candidates)
    if total <= 0:
        return random.choice(list(candidates))[0]
    pick = random.randrange(total)
    cumulative = 0
    for persona, score in candidates:
        if score < 0:
            continue
        cumulative += score
        if pick < cumulative:
            return persona
    return candidates[0][0]


def load_personas(path: str | Path) -> list[Persona]:
    """Read a YAML list of personas."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("persona file must hold a list of personas")
    return [Persona.from_dict(entry) for entry in data]


def _event_type_of(bundle: ContextBundle) -> str:
    event_type = bundle.current_event.type
    if not event_type and bundle.match.events:
        event_type = bundle.match.events[0].type
    return event_type


class PersonaSelector:
    """Chooses which persona speaks next in a match room."""

    def __init__(self, state_service: _PersonaStateService, personas: Sequence[Persona]) -> None:
        self._state = state_service
        self.personas = list(personas)

    @classmethod
    def from_file(cls, state_service: _PersonaStateService, path: str | Path) -> "PersonaSelector":
        return cls(state_service, load_personas(path))

    def select_persona(self, bundle: ContextBundle) -> Persona:
        """Select a persona, recording its cooldown and the match's last speaker."""
        event_type = _event_type_of(bundle)
        if not event_type:
            raise NoPersonaError("no event type for persona selection")
        persona_event_type = normalize_event_type(event_type)
        match_id = bundle.match.match_id
        last_persona = self._state.get_last_persona(match_id)

        candidates: list[tuple[Persona, int]] = []
        filtered = {"event": 0, "cooldown": 0, "repeat": 0, "score": 0}
        for persona in self.personas:
            if persona_event_type and not is_persona_eligible(persona, persona_event_type):
                filtered["event"] += 1
                continue
            if self._state.is_on_cooldown(persona.id):
                filtered["cooldown"] += 1
                continue
            if last_persona == persona.id:
                filtered["repeat"] += 1
                continue
            score = self.calculate_persona_score(persona, bundle)
            if score <= 0:
                filtered["score"] += 1
                continue
            candidates.append((persona, score))

        if not candidates:
            logger.warning(
                "no persona candidate: match=%s event=%s total=%d filtered=%s",
                match_id,
                persona_event_type,
                len(self.personas),
                filtered,
            )
            fallback = self._find_fallback_persona()
            if fallback is None:
                raise NoPersonaError(
                    f"no eligible persona found: event={event_type} "
                    f"normalized={persona_event_type} total_personas={len(self.personas)}"
                )
            logger.info("fallback persona selected: %s", fallback.id)
            return fallback

        logger.info(
            "persona candidates=%d total=%d filtered=%s last=%s event=%s",
            len(candidates),
            len(self.personas),
            filtered,
            last_persona,
            persona_event_type,
        )
        selected = pick_weighted_random(candidates)
        cooldown = selected.policy.cooldown_seconds
        if cooldown <= 0:
            cooldown = _DEFAULT_COOLDOWN_SECONDS
        with contextlib.suppress(Exception):
            self._state.set_cooldown(selected.id, cooldown)
        with contextlib.suppress(Exception):
            self._state.save_last_persona(match_id, selected.id)
        logger.info("persona selected=%s cooldown=%ds", selected.id, cooldown)
        return selected

    def select_persona_allow_reuse(self, bundle: ContextBundle) -> Persona | None:
        """Pick any eligible persona, ignoring cooldowns and repeats."""
        event_type = _event_type_of(bundle)
        if not event_type:
            return None
        persona_event_type = normalize_event_type(event_type)
        eligible = [
            (persona, max(self.calculate_persona_score(persona, bundle), 1))
            for persona in self.personas
            if is_persona_eligible(persona, persona_event_type)
        ]
        if not eligible:
            return None
        return pick_weighted_random(eligible)

    def calculate_persona_score(self, persona: Persona, bundle: ContextBundle) -> int:
        score = persona.policy.weight_base
        tone = persona.profile.tone
        event_type = normalize_event_type(_event_type_of(bundle))

        if event_type == "GOAL":
            if tone == "hype":
                score += 20
            if bundle.current_event.minute >= 85:
                score += 10
        elif event_type == "RED_CARD":
            if tone == "analyst":
                score += 20
        elif event_type == "SUBSTITUTION":
            if tone == "calm":
                score += 5

        mood = bundle.current_event.type
        if mood == "excited":
            if tone in ("hype", "funny"):
                score += 15
        elif mood in ("negative", "angry"):
            if tone in ("calm", "analyst"):
                score += 15
        return score

    def _find_fallback_persona(self) -> Persona | None:
        for persona in self.personas:
            try:
                if self._state.is_on_cooldown(persona.id):
                    continue
            except Exception:
                continue
            return persona
        return None