import random

import pytest

from seedbot.models import (
    ContextBundle,
    MatchEvent,
    MatchState,
    Persona,
    PersonaPolicy,
    PersonaProfile,
)
from seedbot.personas import (
    NoPersonaError,
    PersonaSelector,
    is_persona_eligible,
    load_personas,
    normalize_event_type,
    pick_weighted_random,
)


class FakeState:
    def __init__(self, last="", on_cooldown=(), fail_last=False):
        self.last = last
        self.on_cooldown = set(on_cooldown)
        self.fail_last = fail_last
        self.cooldowns = {}
        self.saved = {}

    def get_last_persona(self, match_id):
        if self.fail_last:
            raise RuntimeError("state unavailable")
        return self.last

    def is_on_cooldown(self, persona_id):
        return persona_id in self.on_cooldown

    def set_cooldown(self, persona_id, seconds):
        self.cooldowns[persona_id] = seconds

    def save_last_persona(self, match_id, persona_id):
        self.saved[match_id] = persona_id


def make_persona(pid, tone="", weight=10, cooldown=0, allowed=()):
    return Persona(
        id=pid,
        profile=PersonaProfile(tone=tone, language=["vi"]),
        policy=PersonaPolicy(
            weight_base=weight, cooldown_seconds=cooldown, allowed_event_types=list(allowed)
        ),
    )


def goal_bundle(minute=10, match_id="m1"):
    return ContextBundle(
        match=MatchState(match_id=match_id),
        current_event=MatchEvent(match_id=match_id, type="GOAL", minute=minute),
    )


@pytest.mark.parametrize(
    "raw,expected",
    [("penalty", "GOAL"), (" own_goal ", "GOAL"), ("red_card", "RED_CARD"), ("GOAL", "GOAL")],
)
def test_normalize_event_type(raw, expected):
    assert normalize_event_type(raw) == expected


def test_is_persona_eligible():
    assert is_persona_eligible(make_persona("a"), "GOAL") is True
    assert is_persona_eligible(make_persona("a", allowed=["RED_CARD"]), "GOAL") is False
    assert is_persona_eligible(make_persona("a", allowed=["GOAL"]), "GOAL") is True


def test_pick_weighted_random_single_candidate():
    persona = make_persona("only")
    assert pick_weighted_random([(persona, 3)]) is persona


def test_pick_weighted_random_skips_zero_weight():
    zero = make_persona("zero")
    heavy = make_persona("heavy")
    random.seed(7)
    picks = {pick_weighted_random([(zero, 0), (heavy, 5)]).id for _ in range(50)}
    assert picks == {"heavy"}


def test_pick_weighted_random_all_zero_picks_a_candidate():
    a, b = make_persona("a"), make_persona("b")
    for _ in range(20):
        assert pick_weighted_random([(a, 0), (b, 0)]).id in {"a", "b"}


def test_pick_weighted_random_empty_raises():
    with pytest.raises(NoPersonaError):
        pick_weighted_random([])


def test_select_requires_event_type():
    selector = PersonaSelector(FakeState(), [make_persona("p1")])
    with pytest.raises(NoPersonaError):
        selector.select_persona(ContextBundle())


def test_select_skips_last_persona_and_records_state():
    state = FakeState(last="p1")
    selector = PersonaSelector(state, [make_persona("p1"), make_persona("p2")])
    for _ in range(10):
        chosen = selector.select_persona(goal_bundle())
        assert chosen.id == "p2"
    assert state.cooldowns == {"p2": 30}
    assert state.saved == {"m1": "p2"}


def test_select_uses_persona_cooldown():
    state = FakeState()
    selector = PersonaSelector(state, [make_persona("p1", cooldown=120)])
    chosen = selector.select_persona(goal_bundle())
    assert chosen.id == "p1"
    assert state.cooldowns["p1"] == 120


def test_select_filters_by_allowed_event():
    state = FakeState()
    personas = [make_persona("cards", allowed=["RED_CARD"]), make_persona("goals", allowed=["GOAL"])]
    selector = PersonaSelector(state, personas)
    assert selector.select_persona(goal_bundle()).id == "goals"


def test_select_all_on_cooldown_raises():
    state = FakeState(on_cooldown={"p1", "p2"})
    selector = PersonaSelector(state, [make_persona("p1"), make_persona("p2")])
    with pytest.raises(NoPersonaError):
        selector.select_persona(goal_bundle())


def test_select_falls_back_to_repeat_persona_without_recording():
    state = FakeState(last="p1")
    selector = PersonaSelector(state, [make_persona("p1")])
    assert selector.select_persona(goal_bundle()).id == "p1"
    assert state.cooldowns == {}
    assert state.saved == {}


def test_select_zero_score_falls_back():
    state = FakeState()
    selector = PersonaSelector(state, [make_persona("quiet", tone="calm", weight=0)])
    assert selector.select_persona(goal_bundle()).id == "quiet"
    assert state.cooldowns == {}


def test_select_propagates_state_errors():
    selector = PersonaSelector(FakeState(fail_last=True), [make_persona("p1")])
    with pytest.raises(RuntimeError):
        selector.select_persona(goal_bundle())


def test_allow_reuse_ignores_cooldown_and_repeat():
    state = FakeState(last="p1", on_cooldown={"p1"})
    selector = PersonaSelector(state, [make_persona("p1", weight=0)])
    chosen = selector.select_persona_allow_reuse(goal_bundle())
    assert chosen is not None and chosen.id == "p1"


def test_allow_reuse_without_event_or_eligible_returns_none():
    selector = PersonaSelector(FakeState(), [make_persona("p1", allowed=["RED_CARD"])])
    assert selector.select_persona_allow_reuse(ContextBundle()) is None
    assert selector.select_persona_allow_reuse(goal_bundle()) is None


def test_score_prefers_hype_on_goal_and_late_goals():
    selector = PersonaSelector(FakeState(), [])
    hype = make_persona("h", tone="hype")
    plain = make_persona("n", tone="plain")
    assert selector.calculate_persona_score(hype, goal_bundle()) > selector.calculate_persona_score(
        plain, goal_bundle()
    )
    assert selector.calculate_persona_score(plain, goal_bundle(minute=85)) > selector.calculate_persona_score(
        plain, goal_bundle(minute=84)
    )


def test_score_penalty_counts_as_goal():
    selector = PersonaSelector(FakeState(), [])
    hype = make_persona("h", tone="hype")
    penalty = ContextBundle(current_event=MatchEvent(type="penalty", minute=10))
    assert selector.calculate_persona_score(hype, penalty) == selector.calculate_persona_score(
        hype, goal_bundle()
    )


def test_score_base_without_bonus():
    selector = PersonaSelector(FakeState(), [])
    persona = make_persona("p", tone="plain", weight=7)
    bundle = ContextBundle(current_event=MatchEvent(type="CORNER"))
    assert selector.calculate_persona_score(persona, bundle) == 7


def test_load_personas_and_from_file(tmp_path):
    path = tmp_path / "personas.yaml"
    path.write_text(
        "- id: fan1\n"
        "  name: Fan One\n"
        "  profile:\n"
        "    tone: hype\n"
        "    language: [vi, en]\n"
        "  policy:\n"
        "    weight_base: 5\n"
        "    allowed_event_types: [GOAL]\n",
        encoding="utf-8",
    )
    personas = load_personas(path)
    assert [p.id for p in personas] == ["fan1"]
    assert personas[0].profile.language == ["vi", "en"]
    assert personas[0].policy.weight_base == 5
    selector = PersonaSelector.from_file(FakeState(), path)
    assert selector.select_persona(goal_bundle()).id == "fan1"


def test_load_personas_empty_and_invalid(tmp_path):
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert load_personas(empty) == []
    bad = tmp_path / "bad.yaml"
    bad.write_text("id: x\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_personas(bad)


def test_from_file_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        PersonaSelector.from_file(FakeState(), tmp_path / "missing.yaml")