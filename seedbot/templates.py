"""Template selection and placeholder rendering."""

from __future__ import annotations

import logging
import random
import threading
from typing import Any, Iterable, Mapping, Protocol, Sequence

from seedbot.models import ContextBundle, MatchPhase, Persona, Template

logger = logging.getLogger(__name__)


class _TemplateRepository(Protocol):
    def get_all_templates(self) -> Iterable[Template]: ...


def _range(value: Any) -> tuple[int, int] | None:
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return int(float(value[0])), int(float(value[1]))
    return None


def check_conditions(conditions: Mapping[str, Any] | None, bundle: ContextBundle) -> bool:
    """Return True when the match satisfies a template's minute and score conditions."""
    if not conditions:
        return True
    minute_range = _range(conditions.get("minute_range"))
    if minute_range is not None:
        low, high = minute_range
        if not low <= bundle.match.minute <= high:
            return False
    score_range = _range(conditions.get("score_diff"))
    if score_range is not None:
        low, high = score_range
        diff = abs(bundle.match.home_score - bundle.match.away_score)
        if not low <= diff <= high:
            return False
    return True


class TemplateLoader:
    """Caches templates from a repository and picks one for a context."""

    def __init__(self, repo: _TemplateRepository, rng: random.Random | None = None) -> None:
        self._repo = repo
        self._rng = rng or random.Random()
        self._lock = threading.RLock()
        self._cache: list[Template] = []
        try:
            self.load_all()
        except Exception as exc:  # the bot still runs on LLM/fallback text
            logger.warning("failed to load templates: %s", exc)

    def load_all(self) -> None:
        templates = list(self._repo.get_all_templates())
        with self._lock:
            self._cache = templates
        logger.info("loaded %d templates", len(templates))

    def _candidates(self, bundle: ContextBundle, persona: Persona) -> list[Template]:
        phase = bundle.match.phase
        event_type = bundle.current_event.type
        return [
            t
            for t in self._cache
            if t.enabled
            and t.phase == phase
            and (not t.lang or t.lang in persona.profile.language)
            and (not t.persona_id or t.persona_id == persona.id)
            and (not t.event_type or t.event_type == event_type)
            and check_conditions(t.conditions, bundle)
        ]

    def get_matching_template(self, bundle: ContextBundle, persona: Persona) -> Template | None:
        """Pick a template for the bundle, or None when nothing matches."""
        with self._lock:
            candidates = self._candidates(bundle, persona)
            total = len(self._cache)
        if not candidates:
            logger.info(
                "no template match: total=%d phase=%s event=%s persona=%s languages=%s",
                total,
                bundle.match.phase,
                bundle.current_event.type,
                persona.id,
                persona.profile.language,
            )
            return None
        if bundle.match.phase == MatchPhase.PREMATCH:
            return self._pick_weighted(candidates)
        return self._pick_best(candidates)

    def _pick_best(self, candidates: Sequence[Template]) -> Template:
        top_priority = max(t.priority for t in candidates)
        return self._rng.choice([t for t in candidates if t.priority == top_priority])

    def _pick_weighted(self, candidates: Sequence[Template]) -> Template:
        total_weight = sum(t.priority for t in candidates)
        if total_weight == 0:
            return self._rng.choice(list(candidates))
        pick = self._rng.randrange(total_weight)
        current = 0
        for template in candidates:
            current += template.priority
            if pick < current:
                return template
        return candidates[-1]


class TemplateRenderer:
    """Fills {{placeholder}} fields of a template from the match context."""

    def render(self, template_text: str, bundle: ContextBundle) -> str:
        match = bundle.match
        home_team = match.home_team.short_name or match.home_team.name
        away_team = match.away_team.short_name or match.away_team.name

        if not match.events:
            return (
                template_text.replace("{{home_team}}", home_team)
                .replace("{{away_team}}", away_team)
            )

        event = match.events[0]
        team_name = event.home_team if event.position == 1 else event.away_team
        replacements = [
            ("{{player}}", event.player_name),
            ("{{player_name}}", event.player_name),
            ("{{time}}", str(event.minute)),
            ("{{minute}}", str(event.minute)),
            ("{{position}}", str(event.position)),
            ("{{home_score}}", str(event.home_score)),
            ("{{away_score}}", str(event.away_score)),
            ("{{score}}", f"{event.home_score}-{event.away_score}"),
            ("{{team}}", team_name),
            ("{{home_team}}", event.home_team or home_team),
            ("{{away_team}}", event.away_team or away_team),
            ("{{in_player}}", event.in_player_name),
            ("{{out_player}}", event.out_player_name),
        ]
        text = template_text
        for placeholder, value in replacements:
            text = text.replace(placeholder, value)
        return text