"""Matches: matchmaking, simulated results and match history."""

from __future__ import annotations

import random
import sqlite3
from dataclasses import dataclass
from typing import Any, Sequence

from .db import DatabaseError, transaction

PLAYERS_PER_MATCH = 6
TEAM_SIZE = 3
MATCH_DURATION_SECONDS = 30
MIN_TIER = 1
MAX_TIER = 5

_RESULT_MULTIPLIERS = {"draw": 1.0, "win": 1.5, "loss": 0.5}
_PARTICIPANT_COLUMNS = ", ".join(
    f"participant{n}" for n in range(1, PLAYERS_PER_MATCH + 1)
)


class MatchError(DatabaseError):
    """Raised when a match cannot be created or looked up."""


@dataclass
class Match:
    match_id: int
    start_time: str
    result: int
    tech_level: int
    participant_ids: tuple[int, ...]


def _rows(conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()) -> list:
    try:
        return conn.execute(sql, params).fetchall()
    except sqlite3.Error as exc:
        raise DatabaseError(f"query failed: {exc}") from exc


def create_participants_table(conn: sqlite3.Connection) -> None:
    """Create the participants table if it does not exist."""
    _rows(
        conn,
        "CREATE TABLE IF NOT EXISTS participants ("
        "participant_id INTEGER PRIMARY KEY AUTOINCREMENT,"
        "player_id INT NOT NULL REFERENCES players(player_id),"
        "hangar_id INT NOT NULL REFERENCES hangars(hangar_id),"
        "is_killed BOOLEAN NOT NULL DEFAULT 0,"
        "damage_dealt INT NOT NULL CHECK(damage_dealt >= 0),"
        "kills INT NOT NULL CHECK(kills >= 0),"
        "team INT NOT NULL CHECK(team IN (1, 2)))",
    )


def create_matches_table(conn: sqlite3.Connection) -> None:
    """Create the matches table if it does not exist."""
    participants = ",".join(
        f"participant{n} INT NOT NULL REFERENCES participants(participant_id)"
        for n in range(1, PLAYERS_PER_MATCH + 1)
    )
    _rows(
        conn,
        "CREATE TABLE IF NOT EXISTS matches ("
        "match_id INTEGER PRIMARY KEY AUTOINCREMENT,"
        "start_time TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,"
        "result INT NOT NULL CHECK(result IN (-1, 0, 1, 2)),"
        "tech_level INT NOT NULL CHECK(tech_level BETWEEN 1 AND 10),"
        f"{participants})",
    )


def _pick_candidates(
    conn: sqlite3.Connection,
    tier: int,
    count: int,
    rng: random.Random,
    exclude_player: int | None = None,
) -> list[tuple[int, int]]:
    """Pick (player_id, hangar_id) of count distinct online players at a tier."""
    sql = (
        "SELECT p.player_id, p.login, h.hangar_id FROM players p "
        "JOIN hangars h ON p.player_id = h.player_id "
        "JOIN tanks t ON h.tank_id = t.tank_id "
        "JOIN tank_info ti ON t.data_id = ti.data_id "
        "WHERE p.status = 'online' AND h.status = 'operational' AND ti.tier = ?"
    )
    params: list[Any] = [tier]
    if exclude_player is not None:
        sql += " AND p.player_id != ?"
        params.append(exclude_player)
    sql += " ORDER BY p.login, h.hangar_id"

    by_login: dict[str, list[tuple[int, int]]] = {}
    for player_id, login, hangar_id in _rows(conn, sql, params):
        by_login.setdefault(login, []).append((int(player_id), int(hangar_id)))

    picks = [rng.choice(options) for _, options in sorted(by_login.items())]
    rng.shuffle(picks)
    if len(picks) < count:
        raise MatchError(f"not enough players for tech level {tier}")
    return picks[:count]


def _insert_participant(
    conn: sqlite3.Connection, player_id: int, hangar_id: int, team: int
) -> int:
    cursor = conn.execute(
        "INSERT INTO participants "
        "(player_id, hangar_id, is_killed, damage_dealt, kills, team) "
        "VALUES (?, ?, 0, 0, 0, ?)",
        (player_id, hangar_id, team),
    )
    return int(cursor.lastrowid)


def _insert_match(
    conn: sqlite3.Connection, tech_level: int, participants: Sequence[int]
) -> int:
    placeholders = ", ".join("?" for _ in participants)
    cursor = conn.execute(
        f"INSERT INTO matches (start_time, result, tech_level, {_PARTICIPANT_COLUMNS}) "
        f"VALUES (datetime('now'), -1, ?, {placeholders})",
        (tech_level, *participants),
    )
    return int(cursor.lastrowid)


def _create_match(
    conn: sqlite3.Connection, tech_level: int, picks: Sequence[tuple[int, int]]
) -> int:
    with transaction(conn):
        participants = []
        for index, (player_id, hangar_id) in enumerate(picks):
            team = 1 if index < TEAM_SIZE else 2
            participants.append(_insert_participant(conn, player_id, hangar_id, team))
            conn.execute(
                "UPDATE players SET status = 'in_game' WHERE player_id = ?",
                (player_id,),
            )
        return _insert_match(conn, tech_level, participants)


def find_and_create_match(
    conn: sqlite3.Connection, rng: random.Random | None = None
) -> int:
    """Start a match at the tier with the most available players; return its id."""
    rng = rng or random.Random()
    rows = _rows(
        conn,
        "SELECT ti.tier, COUNT(DISTINCT p.login) AS unique_players "
        "FROM players p "
        "JOIN hangars h ON p.player_id = h.player_id "
        "JOIN tanks t ON h.tank_id = t.tank_id "
        "JOIN tank_info ti ON t.data_id = ti.data_id "
        "WHERE p.status = 'online' AND h.status = 'operational' "
        "GROUP BY ti.tier "
        "HAVING COUNT(DISTINCT p.login) >= ? "
        "ORDER BY unique_players DESC, ti.tier "
        "LIMIT 1",
        (PLAYERS_PER_MATCH,),
    )
    if not rows:
        raise MatchError("no tier has enough available players")
    tier = int(rows[0][0])
    picks = _pick_candidates(conn, tier, PLAYERS_PER_MATCH, rng)
    return _create_match(conn, tier, picks)


def create_match_with_tech_level(
    conn: sqlite3.Connection, tech_level: int, rng: random.Random | None = None
) -> int:
    """Start a match at the given tier; return its id."""
    if not MIN_TIER <= tech_level <= MAX_TIER:
        raise ValueError(
            f"invalid tech level: {tech_level}. Must be between "
            f"{MIN_TIER}-{MAX_TIER}"
        )
    rng = rng or random.Random()
    picks = _pick_candidates(conn, tech_level, PLAYERS_PER_MATCH, rng)
    return _create_match(conn, tech_level, picks)


def generate_match_for_player(
    conn: sqlite3.Connection,
    login: str,
    tank_id: int,
    rng: random.Random | None = None,
) -> int:
    """Start a match for a player on one of their tanks; return the match id."""
    rng = rng or random.Random()
    with transaction(conn):
        row = conn.execute(
            "SELECT p.player_id, h.hangar_id, ti.tier FROM players p "
            "JOIN hangars h ON p.player_id = h.player_id "
            "JOIN tanks t ON h.tank_id = t.tank_id "
            "JOIN tank_info ti ON t.data_id = ti.data_id "
            "WHERE p.login = ? AND h.tank_id = ? AND h.status = 'operational'",
            (login, tank_id),
        ).fetchone()
        if row is None:
            raise MatchError("player/tank validation failed")
        player_id, hangar_id, tech_level = (int(value) for value in row)

        participants = [_insert_participant(conn, player_id, hangar_id, 1)]
        others = _pick_candidates(
            conn, tech_level, PLAYERS_PER_MATCH - 1, rng, exclude_player=player_id
        )
        for index, (other_id, other_hangar) in enumerate(others):
            team = 1 if index < TEAM_SIZE - 1 else 2
            participants.append(
                _insert_participant(conn, other_id, other_hangar, team)
            )

        match_id = _insert_match(conn, tech_level, participants)
        conn.executemany(
            "UPDATE players SET status = 'in_game' WHERE player_id = ("
            "SELECT player_id FROM participants WHERE participant_id = ?)",
            [(participant,) for participant in participants],
        )
        return match_id


def distribute_kills(
    total_kills: int, player_count: int, rng: random.Random | None = None
) -> list[int]:
    """Spread total_kills randomly over player_count players."""
    rng = rng or random.Random()
    kills = [0] * player_count
    for _ in range(total_kills):
        kills[rng.randrange(player_count)] += 1
    return kills


def process_completed_matches(
    conn: sqlite3.Connection, rng: random.Random | None = None
) -> list[int]:
    """Settle matches in progress for longer than the match duration.

    Results, damage and kills are drawn at random; players are paid and
    set back online, tanks gain points and may need repair.
    Returns the ids of the settled matches.
    """
    rng = rng or random.Random()
    rows = _rows(
        conn,
        f"SELECT match_id, tech_level, {_PARTICIPANT_COLUMNS} FROM matches "
        "WHERE result = -1 AND start_time < datetime('now', ?) "
        "ORDER BY match_id",
        (f"-{MATCH_DURATION_SECONDS} seconds",),
    )

    settled = []
    for match_id, _tech_level, *participants in rows:
        with transaction(conn):
            result = rng.randrange(3)
            team1_kills = rng.randrange(4)
            team2_kills = rng.randrange(4)
            kills_by_slot = distribute_kills(team1_kills, TEAM_SIZE, rng)
            kills_by_slot += distribute_kills(team2_kills, TEAM_SIZE, rng)

            for slot, participant in enumerate(participants):
                team = 1 if slot < TEAM_SIZE else 2
                kills = kills_by_slot[slot]
                killed = 0 if kills > 0 else rng.randrange(2)
                damage = 500 + rng.randrange(4501) + kills * 500

                conn.execute(
                    "UPDATE participants SET damage_dealt = ?, kills = ?, "
                    "is_killed = ? WHERE participant_id = ?",
                    (damage, kills, killed, participant),
                )

                if result == 0:
                    multiplier = _RESULT_MULTIPLIERS["draw"]
                elif team == result:
                    multiplier = _RESULT_MULTIPLIERS["win"]
                else:
                    multiplier = _RESULT_MULTIPLIERS["loss"]
                currency = int((damage + kills * 1000) * multiplier)

                conn.execute(
                    "UPDATE players SET currency_amount = currency_amount + ?, "
                    "status = 'online', total_damage = total_damage + ?, "
                    "destroyed_vehicles = destroyed_vehicles + ? "
                    "WHERE player_id = (SELECT player_id FROM participants "
                    "WHERE participant_id = ?)",
                    (currency, damage, kills, participant),
                )

                damaged = killed > 0 or rng.randrange(100) < 30
                status_clause = "status = 'needs_repair', " if damaged else ""
                conn.execute(
                    f"UPDATE hangars SET {status_clause}"
                    "game_points = game_points + ? "
                    "WHERE hangar_id = (SELECT hangar_id FROM participants "
                    "WHERE participant_id = ?)",
                    (damage // 100, participant),
                )

            conn.execute(
                "UPDATE matches SET result = ? WHERE match_id = ?",
                (result, match_id),
            )
        settled.append(int(match_id))
    return settled


def fetch_all_matches(conn: sqlite3.Connection) -> list[Match]:
    """Return every match, most recent first."""
    rows = _rows(
        conn,
        "SELECT match_id, strftime('%Y-%m-%d %H:%M:%S', start_time), result, "
        f"tech_level, {_PARTICIPANT_COLUMNS} FROM matches "
        "ORDER BY start_time DESC, match_id DESC",
    )
    return [
        Match(
            match_id=int(match_id),
            start_time=start_time or "",
            result=int(result),
            tech_level=int(tech_level),
            participant_ids=tuple(int(p) for p in participants),
        )
        for match_id, start_time, result, tech_level, *participants in rows
    ]


def get_nickname_by_participant_id(
    conn: sqlite3.Connection, participant_id: int
) -> str | None:
    """Return the login of a participant, or None if there is none."""
    rows = _rows(
        conn,
        "SELECT pl.login FROM participants pa "
        "JOIN players pl ON pa.player_id = pl.player_id "
        "WHERE pa.participant_id = ?",
        (participant_id,),
    )
    return rows[0][0] if rows else None


def get_last_match_result(conn: sqlite3.Connection, login: str) -> int | None:
    """Return the result of the player's latest match, or None if they have none."""
    player = _rows(conn, "SELECT player_id FROM players WHERE login = ?", (login,))
    if not player:
        raise MatchError(f"player '{login}' not found")
    player_id = int(player[0][0])
    rows = _rows(
        conn,
        "SELECT m.result FROM matches m WHERE EXISTS ("
        "SELECT 1 FROM participants pa WHERE pa.player_id = ? "
        f"AND pa.participant_id IN ({_PARTICIPANT_COLUMNS})) "
        "ORDER BY m.start_time DESC, m.match_id DESC LIMIT 1",
        (player_id,),
    )
    return int(rows[0][0]) if rows else None