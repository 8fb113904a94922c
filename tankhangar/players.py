"""Players: schema, queries, statistics and sorting."""

from __future__ import annotations

import random
import sqlite3
from dataclasses import dataclass
from enum import Enum, IntEnum
from graphlib import TopologicalSorter
from os import PathLike
from typing import Any, Iterable, Sequence

from .db import DatabaseError, import_from_csv, is_table_empty, transaction

MAX_LOGIN_LENGTH = 32
START_CURRENCY = 30000

_STATUSES = ("online", "in_game", "offline")
_LOGIN_PREFIXES = ("player", "gamer", "pro", "newbie", "legend")
_LOGIN_SUFFIXES = ("123", "X", "99", "007", "42", "GH", "TM")


class SortOrder(IntEnum):
    ASC = 0
    DESC = 1


class SortCriteria(Enum):
    BY_ID = "player_id"
    BY_RATING = "rating"
    BY_DAMAGE = "total_damage"
    BY_DESTROYED_VEHICLES = "destroyed_vehicles"
    BY_CURRENCY_AMOUNT = "currency_amount"


class GamesStatCriteria(Enum):
    BY_WINS = "wins"
    BY_LOSSES = "losses"
    BY_DRAWS = "draws"


class PlayerExistsError(DatabaseError):
    """Raised when a login is already taken."""


@dataclass
class Player:
    player_id: int
    login: str
    status: str
    currency_amount: int = 0
    total_damage: int = 0
    destroyed_vehicles: int = 0

    @property
    def rating(self) -> int:
        return int(self.total_damage / 1000) + self.destroyed_vehicles * 10


@dataclass
class GamesStat:
    player_id: int
    login: str
    wins: int = 0
    losses: int = 0
    draws: int = 0


@dataclass
class PlayerTechStats:
    player_id: int
    login: str
    total_damage: int = 0
    destroyed_vehicles: int = 0


def _query(conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()) -> list:
    try:
        return conn.execute(sql, params).fetchall()
    except sqlite3.Error as exc:
        raise DatabaseError(f"query failed: {exc}") from exc


def create_players_table(conn: sqlite3.Connection) -> None:
    """Create the players table if it does not exist."""
    _query(
        conn,
        "CREATE TABLE IF NOT EXISTS players ("
        "player_id INTEGER PRIMARY KEY AUTOINCREMENT,"
        "login VARCHAR(50) UNIQUE NOT NULL,"
        "status VARCHAR(20) NOT NULL CHECK (status IN ('online', 'in_game', "
        "'offline')),"
        "currency_amount INTEGER DEFAULT 0,"
        "total_damage INTEGER DEFAULT 0,"
        "destroyed_vehicles INTEGER DEFAULT 0"
        ")",
    )


def _dependent_tables(conn: sqlite3.Connection, root: str) -> list[str]:
    """Tables reachable from root through foreign keys, children first."""
    tables = [
        row[0]
        for row in _query(
            conn,
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "AND name NOT LIKE 'sqlite_%'",
        )
    ]
    references: dict[str, set[str]] = {}
    for table in tables:
        for fk in _query(conn, f'PRAGMA foreign_key_list("{table}")'):
            parent = fk[2]
            if parent != table:
                references.setdefault(parent, set()).add(table)

    closure = {root}
    pending = [root]
    while pending:
        for child in references.get(pending.pop(), ()):
            if child not in closure:
                closure.add(child)
                pending.append(child)

    graph = {
        table: {child for child in references.get(table, ()) if child in closure}
        for table in closure
    }
    return list(TopologicalSorter(graph).static_order())


def clear_players_table(conn: sqlite3.Connection) -> None:
    """Empty players and every table depending on it, restarting ids."""
    with transaction(conn):
        tables = _dependent_tables(conn, "players")
        for table in tables:
            conn.execute(f'DELETE FROM "{table}"')
        has_sequence = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE name = 'sqlite_sequence'"
        ).fetchone()
        if has_sequence:
            conn.executemany(
                "DELETE FROM sqlite_sequence WHERE name = ?",
                [(table,) for table in tables],
            )


def fill_players_table(
    conn: sqlite3.Connection, file_path: str | PathLike[str] = "assets/players.csv"
) -> int:
    """Load players from CSV when the table is empty; return rows loaded."""
    if not is_table_empty(conn, "players"):
        return 0
    return import_from_csv(conn, "players", file_path)


def insert_random_players(
    conn: sqlite3.Connection, count: int, rng: random.Random | None = None
) -> list[str]:
    """Insert count players with random data; return their logins."""
    rng = rng or random.Random()
    logins = []
    with transaction(conn):
        for _ in range(count):
            prefix = _LOGIN_PREFIXES[rng.randrange(len(_LOGIN_PREFIXES))]
            suffix = _LOGIN_SUFFIXES[rng.randrange(len(_LOGIN_SUFFIXES))]
            login = f"{prefix}_{suffix}_{rng.randrange(1000)}"
            status = _STATUSES[rng.randrange(len(_STATUSES))]
            whole = rng.randrange(10000)
            cents = rng.randrange(100)
            currency = whole + (1 if cents >= 50 else 0)
            damage = rng.randrange(100000)
            vehicles = rng.randrange(500)
            conn.execute(
                "INSERT INTO players (login, status, currency_amount, "
                "total_damage, destroyed_vehicles) VALUES (?, ?, ?, ?, ?)",
                (login, status, currency, damage, vehicles),
            )
            logins.append(login)
    return logins


def get_player_vehicles(conn: sqlite3.Connection, login: str) -> str:
    """Return a text table of the vehicles in a player's hangar."""
    rows = _query(
        conn,
        "SELECT p.player_id, h.tank_id, ti.type, m.mod_id, h.game_points "
        "FROM players p "
        "JOIN hangars h ON h.player_id = p.player_id "
        "JOIN tanks t ON t.tank_id = h.tank_id "
        "JOIN tank_info ti ON t.data_id = ti.data_id "
        "JOIN modifications m ON t.mod_id = m.mod_id "
        "WHERE p.login = ?",
        (login,),
    )
    if not rows:
        return f"No vehicles found for player: {login}\n"

    def line(*cells: Any) -> str:
        widths = (8, 12, 15, 10)
        return "| " + " | ".join(
            f"{cell!s:<{width}}" for cell, width in zip(cells, widths)
        ) + " |"

    lines = [f"Player ID: {rows[0][0]}", line("Tank ID", "Type", "Modification", "Points")]
    lines.extend(line(*row[1:]) for row in rows)
    return "\n".join(lines) + "\n"


def fetch_all_players(conn: sqlite3.Connection) -> list[Player]:
    """Return every player in table order."""
    rows = _query(
        conn,
        "SELECT player_id, login, status, currency_amount, total_damage, "
        "destroyed_vehicles FROM players",
    )
    return [
        Player(
            player_id=int(pid),
            login=login,
            status=status,
            currency_amount=int(float(currency or 0)),
            total_damage=int(damage or 0),
            destroyed_vehicles=int(destroyed or 0),
        )
        for pid, login, status, currency, damage, destroyed in rows
    ]


def _sorted(items: Iterable[Any], attribute: str, order: SortOrder | int) -> list:
    return sorted(
        items,
        key=lambda item: getattr(item, attribute),
        reverse=SortOrder(order) is SortOrder.DESC,
    )


def sort_players(
    players: Iterable[Player], criteria: SortCriteria, order: SortOrder | int
) -> list[Player]:
    """Return the players sorted by the given criterion."""
    return _sorted(players, SortCriteria(criteria).value, order)


def create_player(conn: sqlite3.Connection, login: str) -> int:
    """Register a new online player with the starting balance; return its id."""
    if not login or len(login) > MAX_LOGIN_LENGTH:
        raise ValueError("invalid login length")
    with transaction(conn):
        existing = conn.execute(
            "SELECT player_id FROM players WHERE login = ?", (login,)
        ).fetchone()
        if existing:
            raise PlayerExistsError(f"player with login '{login}' already exists")
        cursor = conn.execute(
            "INSERT INTO players (login, status, currency_amount) "
            "VALUES (?, 'online', ?)",
            (login, START_CURRENCY),
        )
        return int(cursor.lastrowid)


def get_player_stats(conn: sqlite3.Connection) -> list[GamesStat]:
    """Return wins, losses and draws of every player, ordered by id."""
    rows = _query(
        conn,
        "SELECT p.player_id, p.login, "
        "COUNT(CASE WHEN (part.team = 1 AND m.result = 1) OR "
        "(part.team = 2 AND m.result = 2) THEN 1 END) AS wins, "
        "COUNT(CASE WHEN (part.team = 1 AND m.result = 2) OR "
        "(part.team = 2 AND m.result = 1) THEN 1 END) AS losses, "
        "COUNT(CASE WHEN m.result = 0 THEN 1 END) AS draws "
        "FROM players p "
        "LEFT JOIN participants part ON p.player_id = part.player_id "
        "LEFT JOIN matches m ON part.participant_id IN (m.participant1, "
        "m.participant2, m.participant3, m.participant4, m.participant5, "
        "m.participant6) "
        "GROUP BY p.player_id, p.login "
        "ORDER BY p.player_id",
    )
    return [GamesStat(int(r[0]), r[1], int(r[2]), int(r[3]), int(r[4])) for r in rows]


def sort_player_stats(
    stats: Iterable[GamesStat], criteria: GamesStatCriteria, order: SortOrder | int
) -> list[GamesStat]:
    """Return the game statistics sorted by the given criterion."""
    return _sorted(stats, GamesStatCriteria(criteria).value, order)


def get_tech_level_stats(conn: sqlite3.Connection, tier: int) -> list[PlayerTechStats]:
    """Return damage and kills per player on tanks of one tier, most damage first."""
    rows = _query(
        conn,
        "SELECT p.player_id, p.login, "
        "COALESCE(SUM(part.damage_dealt), 0) AS total_damage, "
        "COALESCE(SUM(part.kills), 0) AS destroyed_vehicles "
        "FROM players p "
        "LEFT JOIN participants part ON p.player_id = part.player_id "
        "LEFT JOIN hangars h ON part.hangar_id = h.hangar_id "
        "LEFT JOIN tanks t ON h.tank_id = t.tank_id "
        "LEFT JOIN tank_info ti ON t.data_id = ti.data_id "
        "WHERE ti.tier = ? "
        "GROUP BY p.player_id, p.login "
        "ORDER BY total_damage DESC",
        (int(tier),),
    )
    return [PlayerTechStats(int(r[0]), r[1], int(r[2]), int(r[3])) for r in rows]


def sort_tech_stats(
    stats: Iterable[PlayerTechStats], criteria: SortCriteria, order: SortOrder | int
) -> list[PlayerTechStats]:
    """Sort by damage or destroyed vehicles; other criteria keep the order."""
    criteria = SortCriteria(criteria)
    if criteria not in (SortCriteria.BY_DAMAGE, SortCriteria.BY_DESTROYED_VEHICLES):
        return list(stats)
    return _sorted(stats, criteria.value, order)