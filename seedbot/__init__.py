"""Building blocks for a match-aware chat seeding bot: models, switches, templates, personas, workers and HTTP handlers."""

__version__ = "0.1.0"