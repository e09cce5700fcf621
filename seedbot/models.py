"""Domain data types shared across the seeding bot."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping


class MatchPhase(str, enum.Enum):
    """Lifecycle phase of a match relative to kick-off."""

    WAITING = "waiting"
    PREMATCH = "prematch"
    LIVE = "live"
    ENDED = "ended"

    def __str__(self) -> str:
        return self.value


class Sentiment(str, enum.Enum):
    """Overall mood of the chat audience."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"

    def __str__(self) -> str:
        return self.value


class ReplyType(str, enum.Enum):
    """How a bot reply was produced."""

    SKIP = "skip"
    QUICK = "quick"
    QUALITY = "quality"

    def __str__(self) -> str:
        return self.value


class ReplyPriority(str, enum.Enum):
    """Urgency of a bot reply."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __str__(self) -> str:
        return self.value


@dataclass
class Team:
    name: str = ""
    short_name: str = ""


@dataclass
class Competition:
    id: str = ""
    name: str = ""


@dataclass
class MatchEvent:
    """A single match event such as a goal, card or substitution."""

    match_id: str = ""
    type: str = ""
    league_id: str = ""
    position: int = 0
    minute: int = 0
    add_time: int = 0
    home_score: int = 0
    away_score: int = 0
    player_name: str = ""
    in_player_name: str = ""
    out_player_name: str = ""
    team_side: str = ""
    home_team: str = ""
    away_team: str = ""
    timestamp: int = 0


@dataclass
class CompactEvent:
    """A condensed event as kept in the recent-events history."""

    type: str = ""
    team_side: str = ""
    minute: int = 0
    add_time: int = 0
    home_score: int = 0
    away_score: int = 0
    player_name: str = ""


@dataclass
class ChatMessage:
    id: str = ""
    content: str = ""
    timestamp: int = 0
    is_bot: bool = False
    persona: str = ""
    match_id: str = ""
    room_id: str = ""
    event_type: str = ""
    created_at: datetime | None = None


@dataclass
class ChatContext:
    raw_messages: list[ChatMessage] = field(default_factory=list)
    last_message_time: int = 0
    last_persona_used: str = ""
    last_message_hashes: list[str] = field(default_factory=list)
    last_bot_messages: list[str] = field(default_factory=list)


@dataclass
class MatchState:
    match_id: str = ""
    room_id: str = ""
    phase: MatchPhase | None = None
    match_time: int = 0
    date: str = ""
    minute: int = 0
    home_score: int = 0
    away_score: int = 0
    home_team: Team = field(default_factory=Team)
    away_team: Team = field(default_factory=Team)
    competition: Competition = field(default_factory=Competition)
    events: list[MatchEvent] = field(default_factory=list)
    updated_at: int = 0


@dataclass
class DailyMatch:
    """A scheduled match from the daily fixture list."""

    match_id: str = ""
    match_time: int = 0
    date: str = ""
    home_team: Team = field(default_factory=Team)
    away_team: Team = field(default_factory=Team)
    competition: Competition = field(default_factory=Competition)


@dataclass
class AudienceSignal:
    sentiment: Sentiment = Sentiment.NEUTRAL
    chat_velocity: float = 0.0
    dominant_team: str = "none"
    hot_topics: list[str] = field(default_factory=list)


@dataclass
class ContextBundle:
    """Everything known about a match and its room at generation time."""

    match: MatchState = field(default_factory=MatchState)
    recent_events: list[CompactEvent] = field(default_factory=list)
    chat: ChatContext = field(default_factory=ChatContext)
    current_event: MatchEvent = field(default_factory=MatchEvent)
    audience: AudienceSignal = field(default_factory=AudienceSignal)


@dataclass
class PersonaProfile:
    tone: str = ""
    language: list[str] = field(default_factory=list)
    seed_phrases: list[str] = field(default_factory=list)


@dataclass
class PersonaPolicy:
    weight_base: int = 0
    cooldown_seconds: int = 0
    allowed_event_types: list[str] = field(default_factory=list)


def _str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


@dataclass
class Persona:
    id: str = ""
    name: str = ""
    profile: PersonaProfile = field(default_factory=PersonaProfile)
    policy: PersonaPolicy = field(default_factory=PersonaPolicy)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Persona":
        """Build a persona from a parsed YAML/JSON mapping."""
        if not isinstance(data, Mapping):
            raise ValueError("persona entry must be a mapping")
        profile = data.get("profile") or {}
        policy = data.get("policy") or {}
        if not isinstance(profile, Mapping) or not isinstance(policy, Mapping):
            raise ValueError("persona profile and policy must be mappings")
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            profile=PersonaProfile(
                tone=str(profile.get("tone") or ""),
                language=_str_list(profile.get("language")),
                seed_phrases=_str_list(profile.get("seed_phrases")),
            ),
            policy=PersonaPolicy(
                weight_base=int(policy.get("weight_base") or 0),
                cooldown_seconds=int(policy.get("cooldown_seconds") or 0),
                allowed_event_types=_str_list(policy.get("allowed_event_types")),
            ),
        )


@dataclass
class Template:
    id: str = ""
    text: str = ""
    lang: str = ""
    phase: MatchPhase | None = None
    persona_id: str = ""
    event_type: str = ""
    priority: int = 0
    enabled: bool = True
    conditions: dict[str, Any] = field(default_factory=dict)


@dataclass
class DraftMessage:
    text: str = ""
    match_id: str = ""
    event_type: str = ""
    persona_id: str = ""
    meta: dict[str, str] = field(default_factory=dict)
    created_at: datetime | None = None


@dataclass
class UserMessage:
    content: str = ""
    match_id: str = ""
    room_id: str = ""
    user_id: str = ""


@dataclass
class DetectIntent:
    sentiment: str = "neutral"
    language: str = "vi"
    team_bias: str = "none"
    main_topic: list[str] = field(default_factory=list)
    requires_reply: bool = False


@dataclass
class BotReply:
    text: str = ""
    reply_type: ReplyType = ReplyType.SKIP
    priority: ReplyPriority = ReplyPriority.LOW
    confidence: float = 0.0
    persona_id: str = ""
    intent: DetectIntent | None = None
    meta: dict[str, str] = field(default_factory=dict)
    generated_at: datetime | None = None
    latency_ms: int = 0


@dataclass
class LLMResponse:
    text: str = ""
    language: str = ""