"""Player hangars, tank shop and simulated matches for a tank battle game, stored in SQLite."""

__version__ = "0.1.0"

__all__ = ["cli", "db", "hangar", "matches", "players"]