"""Hangars and tanks: schema, the shop, repairs and sales."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from os import PathLike
from typing import Any, Sequence

from .db import DatabaseError, import_from_csv, is_table_empty, transaction

MODIFICATIONS = (1, 2, 3)
_PRICE_PER_TIER = 2000
_POINTS_PER_TIER = 200

_TRUE_WORDS = ("t", "true", "1", "y", "yes", "on")


class HangarError(DatabaseError):
    """Raised when a hangar operation cannot be carried out."""


class PlayerNotFoundError(HangarError):
    """Raised when no player has the given login."""


class TankNotFoundError(HangarError):
    """Raised when no tank matches the given id and modification."""


class NotEnoughCurrencyError(HangarError):
    """Raised when the player's balance does not cover the cost."""


class NotEnoughPointsError(HangarError):
    """Raised when the player lacks the game points a tank requires."""


class TankAlreadyOwnedError(HangarError):
    """Raised when the tank is already in the player's hangar."""


@dataclass
class TankInfo:
    tank_id: int
    tier: int
    country: str
    type: str
    mod_id: int
    price: int
    required_points: int
    hangar_status: str = ""
    game_points: int = 0
    hangar_id: int | None = None


def _rows(conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()) -> list:
    try:
        return conn.execute(sql, params).fetchall()
    except sqlite3.Error as exc:
        raise DatabaseError(f"query failed: {exc}") from exc


def create_hangars_table(conn: sqlite3.Connection) -> None:
    """Create the hangars table if it does not exist."""
    _rows(
        conn,
        "CREATE TABLE IF NOT EXISTS hangars ("
        "hangar_id INTEGER PRIMARY KEY AUTOINCREMENT,"
        "player_id INT NOT NULL REFERENCES players(player_id) ON DELETE CASCADE,"
        "tank_id INT NOT NULL REFERENCES tanks(tank_id),"
        "game_points INT NOT NULL DEFAULT 0,"
        "status VARCHAR(20) NOT NULL CHECK(status IN ('operational', "
        "'needs_repair')),"
        "is_sold BOOLEAN NOT NULL DEFAULT 0,"
        "UNIQUE(player_id, tank_id))",
    )


def create_modifications_table(conn: sqlite3.Connection) -> None:
    """Create the modifications table if it does not exist."""
    _rows(
        conn,
        "CREATE TABLE IF NOT EXISTS modifications ("
        "mod_id INTEGER PRIMARY KEY AUTOINCREMENT)",
    )


def create_tank_info_table(conn: sqlite3.Connection) -> None:
    """Create the tank_info table if it does not exist."""
    _rows(
        conn,
        "CREATE TABLE IF NOT EXISTS tank_info ("
        "data_id INTEGER PRIMARY KEY AUTOINCREMENT,"
        "country VARCHAR(50) NOT NULL CHECK (country IN "
        "('USSR', 'USA', 'GERMANY')),"
        "type VARCHAR(50) NOT NULL CHECK(type IN "
        "('light', 'medium', 'heavy', 'TD', 'SPG')),"
        "tier INT NOT NULL CHECK(tier BETWEEN 1 AND 5))",
    )


def create_tanks_table(conn: sqlite3.Connection) -> None:
    """Create the tanks table if it does not exist."""
    _rows(
        conn,
        "CREATE TABLE IF NOT EXISTS tanks ("
        "tank_id INTEGER PRIMARY KEY AUTOINCREMENT,"
        "data_id INT NOT NULL REFERENCES tank_info(data_id),"
        "mod_id INT NOT NULL REFERENCES modifications(mod_id),"
        "price INT NOT NULL,"
        "required_points INT NOT NULL,"
        "UNIQUE(data_id, mod_id))",
    )


def fill_modifications_table(
    conn: sqlite3.Connection,
    file_path: str | PathLike[str] = "assets/modifications.csv",
) -> int:
    """Load modifications from CSV when the table is empty; return rows loaded."""
    if not is_table_empty(conn, "modifications"):
        return 0
    return import_from_csv(conn, "modifications", file_path)


def fill_tank_info_table(
    conn: sqlite3.Connection,
    file_path: str | PathLike[str] = "assets/tank_info.csv",
) -> int:
    """Load tank descriptions from CSV when the table is empty; return rows loaded."""
    if not is_table_empty(conn, "tank_info"):
        return 0
    return import_from_csv(conn, "tank_info", file_path)


def fill_hangars_table(
    conn: sqlite3.Connection,
    file_path: str | PathLike[str] = "assets/hangars.csv",
) -> int:
    """Load hangars from CSV when the table is empty; return rows loaded.

    Textual booleans in the is_sold column are stored as 0 or 1.
    """
    if not is_table_empty(conn, "hangars"):
        return 0
    with transaction(conn):
        loaded = import_from_csv(conn, "hangars", file_path)
        placeholders = ", ".join("?" for _ in _TRUE_WORDS)
        conn.execute(
            "UPDATE hangars SET is_sold = CASE WHEN "
            f"lower(CAST(is_sold AS TEXT)) IN ({placeholders}) THEN 1 ELSE 0 END",
            _TRUE_WORDS,
        )
    return loaded


def modification_price(tier: int, mod_id: int) -> tuple[int, int]:
    """Return (price, required points) of a tank of the given tier and modification."""
    base_price = tier * _PRICE_PER_TIER
    base_points = tier * _POINTS_PER_TIER
    if mod_id == 1:
        return base_price, 0
    if mod_id == 2:
        return round(base_price * 2.5), round(base_points * 2.5)
    if mod_id == 3:
        return base_price * 5, base_points * 5
    raise ValueError(f"unknown modification: {mod_id}")


def fill_tanks_table(conn: sqlite3.Connection) -> int:
    """Create every modification of every tank when the table is empty.

    Returns the number of tanks inserted.
    """
    if not is_table_empty(conn, "tanks"):
        return 0
    inserted = 0
    with transaction(conn):
        rows = conn.execute(
            "SELECT data_id, tier FROM tank_info ORDER BY data_id"
        ).fetchall()
        for data_id, tier in rows:
            for mod_id in MODIFICATIONS:
                price, points = modification_price(int(tier), mod_id)
                conn.execute(
                    "INSERT INTO tanks (data_id, mod_id, price, required_points) "
                    "VALUES (?, ?, ?, ?)",
                    (data_id, mod_id, price, points),
                )
                inserted += 1
    return inserted


def get_player_tanks(conn: sqlite3.Connection, login: str) -> list[TankInfo]:
    """Return the unsold tanks in the player's hangar."""
    rows = _rows(
        conn,
        "SELECT h.tank_id, ti.tier, ti.country, h.status, ti.type, m.mod_id, "
        "h.game_points, t.price, t.required_points, h.hangar_id "
        "FROM players p "
        "JOIN hangars h ON h.player_id = p.player_id "
        "JOIN tanks t ON t.tank_id = h.tank_id "
        "JOIN tank_info ti ON t.data_id = ti.data_id "
        "JOIN modifications m ON t.mod_id = m.mod_id "
        "WHERE p.login = ? AND h.is_sold = 0",
        (login,),
    )
    return [
        TankInfo(
            tank_id=int(tank_id),
            tier=int(tier),
            country=country,
            type=kind,
            mod_id=int(mod_id),
            price=int(price),
            required_points=int(required),
            hangar_status=status,
            game_points=int(points),
            hangar_id=int(hangar_id),
        )
        for tank_id, tier, country, status, kind, mod_id, points, price, required,
        hangar_id in rows
    ]


def _balance(conn: sqlite3.Connection, player_id: int) -> int:
    row = conn.execute(
        "SELECT currency_amount FROM players WHERE player_id = ?", (player_id,)
    ).fetchone()
    return int(row[0])


def repair_tank(
    conn: sqlite3.Connection, login: str, hangar_id: int, cost: int
) -> int:
    """Repair a hangar tank for the given cost; return the new balance."""
    with transaction(conn):
        row = conn.execute(
            "SELECT p.player_id, p.currency_amount FROM players p "
            "JOIN hangars h ON p.player_id = h.player_id "
            "WHERE p.login = ? AND h.hangar_id = ?",
            (login, hangar_id),
        ).fetchone()
        if row is None:
            raise HangarError(f"hangar {hangar_id} of '{login}' not found")
        player_id, balance = int(row[0]), int(row[1] or 0)
        if balance < cost:
            raise NotEnoughCurrencyError(
                f"repair costs {cost}, balance is {balance}"
            )
        conn.execute(
            "UPDATE players SET currency_amount = currency_amount - ? "
            "WHERE login = ?",
            (cost, login),
        )
        conn.execute(
            "UPDATE hangars SET status = 'operational' "
            "WHERE hangar_id = ? AND player_id = ?",
            (hangar_id, player_id),
        )
        return _balance(conn, player_id)


def sell_tank(
    conn: sqlite3.Connection, login: str, hangar_id: int, price: int
) -> int:
    """Sell a hangar tank for the given price; return the new balance."""
    if price < 0:
        raise ValueError(f"invalid price value: {price}")
    with transaction(conn):
        row = conn.execute(
            "SELECT h.player_id FROM hangars h "
            "JOIN players p ON h.player_id = p.player_id "
            "WHERE h.hangar_id = ? AND p.login = ? AND h.is_sold = 0",
            (hangar_id, login),
        ).fetchone()
        if row is None:
            raise HangarError("ownership check failed")
        player_id = int(row[0])
        conn.execute(
            "UPDATE hangars SET is_sold = 1, status = 'needs_repair' "
            "WHERE hangar_id = ?",
            (hangar_id,),
        )
        conn.execute(
            "UPDATE players SET currency_amount = currency_amount + ? "
            "WHERE player_id = ?",
            (price, player_id),
        )
        return _balance(conn, player_id)


_AVAILABLE_QUERY = (
    "WITH player_tanks AS ("
    "  SELECT t.data_id, t.mod_id, h.game_points, ti.tier, ti.country, "
    "         ti.type, h.is_sold "
    "  FROM hangars h "
    "  JOIN tanks t ON h.tank_id = t.tank_id "
    "  JOIN tank_info ti ON t.data_id = ti.data_id "
    "  JOIN players p ON h.player_id = p.player_id "
    "  WHERE p.login = ?"
    "), "
    "available_tanks AS ("
    "  SELECT t.tank_id, t.data_id, t.mod_id, t.price, t.required_points, "
    "         ti.country, ti.type, ti.tier "
    "  FROM tanks t "
    "  JOIN tank_info ti ON t.data_id = ti.data_id "
    "  WHERE ti.tier = 1 AND t.mod_id = 1 "
    "    AND NOT EXISTS ("
    "      SELECT 1 FROM player_tanks pt "
    "      WHERE pt.data_id = t.data_id AND pt.is_sold = 0) "
    "  UNION ALL "
    "  SELECT t.tank_id, t.data_id, t.mod_id, t.price, t.required_points, "
    "         ti.country, ti.type, ti.tier "
    "  FROM tanks t "
    "  JOIN tank_info ti ON t.data_id = ti.data_id "
    "  JOIN player_tanks pt ON t.data_id = pt.data_id "
    "  WHERE t.mod_id = pt.mod_id + 1 "
    "  UNION ALL "
    "  SELECT t.tank_id, t.data_id, t.mod_id, t.price, t.required_points, "
    "         ti.country, ti.type, ti.tier "
    "  FROM tanks t "
    "  JOIN tank_info ti ON t.data_id = ti.data_id "
    "  JOIN player_tanks pt ON ti.country = pt.country "
    "    AND ti.type = pt.type AND ti.tier = pt.tier + 1 "
    "  WHERE pt.mod_id = 3 AND t.mod_id = 1 "
    "    AND pt.game_points >= t.required_points"
    ") "
    "SELECT tank_id, data_id, mod_id, price, required_points, country, type, tier "
    "FROM available_tanks ORDER BY country, tier, mod_id"
)


def get_available_tanks(conn: sqlite3.Connection, login: str) -> list[TankInfo]:
    """Return the tanks the player may buy next, by country, tier and modification."""
    rows = _rows(conn, _AVAILABLE_QUERY, (login,))
    return [
        TankInfo(
            tank_id=int(tank_id),
            tier=int(tier),
            country=country,
            type=kind,
            mod_id=int(mod_id),
            price=int(price),
            required_points=int(required),
        )
        for tank_id, _data_id, mod_id, price, required, country, kind, tier in rows
    ]


def buy_tank(conn: sqlite3.Connection, login: str, tank_id: int, mod_id: int) -> int:
    """Buy a tank into the player's hangar; return its hangar id."""
    with transaction(conn):
        player = conn.execute(
            "SELECT player_id, currency_amount FROM players WHERE login = ?",
            (login,),
        ).fetchone()
        if player is None:
            raise PlayerNotFoundError(f"no player with login '{login}'")
        player_id, balance = int(player[0]), int(player[1] or 0)

        tank = conn.execute(
            "SELECT price, required_points, data_id FROM tanks "
            "WHERE tank_id = ? AND mod_id = ?",
            (tank_id, mod_id),
        ).fetchone()
        if tank is None:
            raise TankNotFoundError(f"no tank {tank_id} with modification {mod_id}")
        price, required_points, data_id = (int(value) for value in tank)

        if balance < price:
            raise NotEnoughCurrencyError(f"tank costs {price}, balance is {balance}")

        points = conn.execute(
            "SELECT h.game_points FROM hangars h "
            "JOIN tanks t ON h.tank_id = t.tank_id "
            "WHERE h.player_id = ? AND t.data_id = ? "
            "ORDER BY t.mod_id DESC LIMIT 1",
            (player_id, data_id),
        ).fetchone()
        if points is not None and int(points[0]) < required_points:
            raise NotEnoughPointsError(
                f"tank requires {required_points} points, player has {points[0]}"
            )

        existing = conn.execute(
            "SELECT hangar_id, is_sold FROM hangars "
            "WHERE player_id = ? AND tank_id = ?",
            (player_id, tank_id),
        ).fetchone()
        if existing is not None:
            if not existing[1]:
                raise TankAlreadyOwnedError(f"tank {tank_id} is already owned")
            conn.execute(
                "UPDATE hangars SET is_sold = 0, game_points = 0, "
                "status = 'operational' WHERE player_id = ? AND tank_id = ?",
                (player_id, tank_id),
            )
            hangar_id = int(existing[0])
        else:
            cursor = conn.execute(
                "INSERT INTO hangars (player_id, tank_id, game_points, status) "
                "VALUES (?, ?, 0, 'operational')",
                (player_id, tank_id),
            )
            hangar_id = int(cursor.lastrowid)

        conn.execute(
            "UPDATE players SET currency_amount = currency_amount - ? "
            "WHERE player_id = ?",
            (price, player_id),
        )
        return hangar_id


def repair_cost(price: int) -> int:
    """Cost of repairing a tank bought for the given price."""
    return price // 4


def sell_price(price: int) -> int:
    """Amount paid for selling a tank bought for the given price."""
    return price // 5 * 4