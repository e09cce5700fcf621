# seedbot

`seedbot` holds the building blocks of a bot that keeps live football chat
rooms lively. It classifies the day's matches by how close they are to
kick-off, chooses which persona should speak, picks and fills message
templates, sends a short burst of warm-up messages before kick-off, and
exposes an aiohttp API for operators to stop or silence the bot.

Storage, publishing and message generation are supplied by the caller: the
classes take plain objects with the methods they need (for example a store
with `get(key)` and `set(key, value, ex=None)`, which a redis-py client
satisfies).

## Modules

- **`seedbot.models`** – dataclasses for the bot's data: `MatchEvent`,
  `CompactEvent`, `MatchState`, `DailyMatch`, `ChatMessage`, `ChatContext`,
  `AudienceSignal`, `ContextBundle`, `Persona` (with `PersonaProfile` and
  `PersonaPolicy`), `Template`, `DraftMessage`, `UserMessage`,
  `DetectIntent`, `BotReply`, `LLMResponse`, plus the enums `MatchPhase`,
  `Sentiment`, `ReplyType` and `ReplyPriority`. `Persona.from_dict` builds a
  persona from a parsed YAML or JSON mapping.
- **`seedbot.switches`** – `KillSwitchService` (stop the bot globally, per
  league or per match), `ShadowBanService` (keep working but skip external
  publishing) and `RoomManager` (a stable `room-<match_id>` room for each
  match). Switch flags are stored as `"1"`/`"0"` with a seven-day expiry.
- **`seedbot.templates`** – `TemplateLoader` caches templates from a
  repository (`get_all_templates()`) and `get_matching_template` picks one by
  phase, language, persona, event type and the `minute_range` / `score_diff`
  conditions checked by `check_conditions`. Outside the prematch phase the
  highest-priority templates win; in the prematch phase priority acts as a
  weight. `TemplateRenderer.render` fills `{{player}}`, `{{player_name}}`,
  `{{time}}`, `{{minute}}`, `{{position}}`, `{{home_score}}`,
  `{{away_score}}`, `{{score}}`, `{{team}}`, `{{home_team}}`,
  `{{away_team}}`, `{{in_player}}` and `{{out_player}}`.
- **`seedbot.autoscaler`** – `AutoScalerLogic.should_spawn_bot` asks a scaler
  service for a `MaxBotsConfig` and falls back to a limit of two bots when the
  service fails; `random_bot_count` draws a count between the configured
  minimum and maximum.
- **`seedbot.personas`** – `PersonaSelector` scores personas against the
  current event, skips those on cooldown or that spoke last, and records the
  choice; `select_persona_allow_reuse` ignores cooldowns and repeats.
  `load_personas` (and `PersonaSelector.from_file`) reads a YAML list of
  personas. `NoPersonaError` is raised when nobody can be chosen.
- **`seedbot.prematch`** – `PrematchHandler.handle` sends up to five
  distinct messages, ten seconds apart, into a match room before kick-off and
  returns how many were published. `diversify_prematch_text`,
  `normalize_prematch_text` and `retry_call` are usable on their own.
- **`seedbot.workers`** – `PrematchPoller` triggers the pre-match handler for
  matches in the prematch window, and `ScalerWorker` measures room activity.
  Both run `start(stop_event)` until a `threading.Event` is set; `poll` and
  `tick` return summaries of a single pass. `compute_phase` classifies a
  kick-off time.
- **`seedbot.handlers`** – aiohttp handlers and `create_app`.

A persona file looks like this:

```yaml
- id: hype_fan
  name: Hype Fan
  profile:
    tone: hype
    language: [vi, en]
    seed_phrases: ["Let's go!"]
  policy:
    weight_base: 10
    cooldown_seconds: 30
    allowed_event_types: [GOAL, MATCH_UPCOMING]
```

## Match phases

`compute_phase(match_time, now)` takes a kick-off unix time and a unix time
or `datetime`:

| Time relative to kick-off          | Phase      |
|------------------------------------|------------|
| more than 30 minutes before        | waiting    |
| within 30 minutes before           | prematch   |
| from kick-off up to 110 minutes on | live       |
| 110 minutes or more after          | ended      |

## HTTP API

`create_app(admin_handler, active_matches_handler, message_history_handler,
event_sender_handler, hub)` returns an `aiohttp.web.Application`; each
argument is optional and adds its routes only when given.

| Method       | Path                        | Handler                                  |
|--------------|-----------------------------|------------------------------------------|
| GET          | `/health`                   | `health` (plain `ok`)                    |
| POST         | `/admin/kill-switch`        | `AdminHandler.set_kill_switch`           |
| GET          | `/admin/kill-switch/status` | `AdminHandler.get_kill_switch`           |
| POST         | `/admin/shadow-ban`         | `AdminHandler.set_shadow_ban`            |
| GET          | `/admin/shadow-ban/status`  | `AdminHandler.get_shadow_ban`            |
| GET, OPTIONS | `/matches/active`           | `ActiveMatchesHandler.list_matches`      |
| GET, OPTIONS | `/messages/history`         | `MessageHistoryHandler.list_messages`    |
| POST         | `/events/send`              | `EventSenderHandler.send_event`          |
| GET          | `/ws`                       | `hub.handle_websocket`                   |

Admin endpoints take a `scope` of `global`, `league` or `match`; `league`
and `match` also need an `id`. `validate_scope_and_id` applies the same rule:

```python
from seedbot.handlers import validate_scope_and_id

validate_scope_and_id("global", "")      # accepted
validate_scope_and_id("match", "m123")   # accepted
validate_scope_and_id("match", "")       # raises ValueError
```

`/matches/active` drops ended matches, accepts `include_waiting=false`, and
sorts live matches first, then prematch, then waiting, each by kick-off time.
`/messages/history` needs `match_id` and takes a `limit` (default 50, at most
500). `/events/send` checks that the body is JSON and hands it to a producer's
`send_message(topic, value)`.

## Small helpers

```python
from seedbot.prematch import normalize_prematch_text
from seedbot.workers import compute_phase

normalize_prematch_text("  Kick  off   SOON ")   # "kick off soon"
compute_phase(1_000_000, 1_000_000)              # MatchPhase.LIVE
```

## What this package does not do

- It has no command-line program and no server start-up: you build the
  application with `create_app` and run it yourself.
- It ships no storage, Redis client, message repository, event-stream
  consumer or publisher; those are objects you pass in.
- It does not generate message text, build context bundles, detect user
  intent or answer users. `PrematchHandler` needs a context builder, a
  message generator and a persona selector passed to it.
- It ships no WebSocket hub: the `hub` argument of `create_app` is any object
  with a `handle_websocket(request)` coroutine.

## Tests

The test suite uses pytest and pytest-asyncio, available through the `test`
extra:

```
pip install -e ".[test]"
pytest
```