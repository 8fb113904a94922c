"""Command line entry point: prepare the database and report on it."""

from __future__ import annotations

import argparse
import sqlite3
import sys
from os import PathLike
from pathlib import Path
from typing import Sequence

from .db import DatabaseError, connect
from .hangar import (
    create_hangars_table,
    create_modifications_table,
    create_tank_info_table,
    create_tanks_table,
    fill_hangars_table,
    fill_modifications_table,
    fill_tank_info_table,
    fill_tanks_table,
)
from .matches import create_matches_table, create_participants_table
from .players import create_players_table, fill_players_table, get_player_vehicles

DEFAULT_DATABASE = "tankhangar.db"
DEFAULT_ASSETS = "assets"

_SCHEMA = (
    create_players_table,
    create_modifications_table,
    create_tank_info_table,
    create_tanks_table,
    create_hangars_table,
    create_participants_table,
    create_matches_table,
)


def create_schema(conn: sqlite3.Connection) -> None:
    """Create every table the game needs, parents before children."""
    for create in _SCHEMA:
        create(conn)


def fill_tables(
    conn: sqlite3.Connection, assets_dir: str | PathLike[str] = DEFAULT_ASSETS
) -> dict[str, int]:
    """Load the starting data into empty tables.

    Returns the number of rows added to each table; tables that already
    hold data are left alone and report zero.
    """
    assets = Path(assets_dir)
    loaded: dict[str, int] = {}
    loaded["players"] = fill_players_table(conn, assets / "players.csv")
    loaded["tank_info"] = fill_tank_info_table(conn, assets / "tank_info.csv")
    loaded["modifications"] = fill_modifications_table(
        conn, assets / "modifications.csv"
    )
    loaded["tanks"] = fill_tanks_table(conn)
    loaded["hangars"] = fill_hangars_table(conn, assets / "hangars.csv")
    return loaded


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tankhangar",
        description="Prepare the tank hangar database and show player vehicles.",
    )
    parser.add_argument(
        "--db", default=DEFAULT_DATABASE, help="database file (default: %(default)s)"
    )
    parser.add_argument(
        "--assets",
        default=DEFAULT_ASSETS,
        help="directory holding the CSV starting data (default: %(default)s)",
    )
    parser.add_argument(
        "--vehicles",
        metavar="LOGIN",
        action="append",
        default=[],
        help="print the vehicles of a player; may be repeated",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Connect, create and fill the tables, then print the requested reports."""
    args = _parse_args(argv)

    try:
        conn = connect(args.db)
    except DatabaseError as exc:
        print(f"Error while connecting to the database: {exc}", file=sys.stderr)
        print("Error: Connection failed", file=sys.stderr)
        return 1

    try:
        print("Connection Established")
        print(f"Database: {args.db}")
        create_schema(conn)
        fill_tables(conn, args.assets)
        for login in args.vehicles:
            sys.stdout.write(get_player_vehicles(conn, login))
    except DatabaseError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        conn.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())