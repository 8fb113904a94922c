# tankhangar

`tankhangar` keeps the persistent state of a small tank battle game in an
SQLite database. It covers players, their hangars, a tank shop with three
modifications per vehicle, and six-player matches that are simulated and then
settled. It uses only the standard library.

## Modules

- `tankhangar.db` provides `connect(path)`, which opens a database with
  foreign keys enforced. It also has the `transaction(conn)` context manager,
  which commits on success and rolls back on error, and `is_table_empty` and
  `import_from_csv`. The CSV loader skips the header line, maps columns by
  position and stores empty fields as NULL. Database failures raise
  `DatabaseError`.
- `tankhangar.players` handles players.
  - `create_player` registers an online player with a balance of 30000. The
    login must be 1 to 32 characters long, or `ValueError` is raised. A login
    that is already taken raises `PlayerExistsError`.
  - `fetch_all_players` returns `Player` objects. A player's `rating` is
    `total_damage / 1000`, truncated, plus ten per destroyed vehicle.
  - `sort_players`, `sort_player_stats` and `sort_tech_stats` return new
    sorted lists. They take a `SortCriteria` or `GamesStatCriteria` and a
    `SortOrder` (`ASC` or `DESC`).
  - `get_player_stats` counts wins, losses and draws.
  - `get_tech_level_stats(conn, tier)` sums damage and kills on tanks of one
    tier.
  - `get_player_vehicles` returns a text table of a player's hangar.
  - `insert_random_players` and `clear_players_table` are also here.
    `clear_players_table` empties players and every table that depends on
    them, and restarts the ids.
- `tankhangar.hangar` handles tanks and the shop.
  - `get_player_tanks` and `get_available_tanks` return `TankInfo` objects.
    A new player is offered the tier 1 base models. The next modification of
    an owned tank becomes available after that. After modification 3, the
    next tier of the same country and type becomes available once the player
    has enough game points.
  - `buy_tank` returns the hangar id. `repair_tank` and `sell_tank` return the
    new balance.
  - `repair_cost(price)` is a quarter of the price. `sell_price(price)` is
    four fifths of it, rounded down to a multiple of four.
  - `modification_price(tier, mod_id)` gives `(price, required_points)`.
  - `fill_tanks_table` generates all three modifications of every tank in
    `tank_info`.
- `tankhangar.matches` handles matchmaking.
  - `find_and_create_match` picks the tier with the most available players.
  - `create_match_with_tech_level` works at tiers 1 to 5. Any other tier
    raises `ValueError`.
  - `generate_match_for_player` builds a match around one player's tank.
  - All three put six distinct online players with operational tanks into
    two teams of three.
  - `process_completed_matches` settles matches that started more than 30
    seconds ago. It draws the result, damage and kills at random, pays the
    players and sets them back online, and adds game points to the tanks. A
    tank is left needing repair if it was destroyed, and with a 30% chance
    otherwise. It returns the ids of the settled matches.
  - `fetch_all_matches`, `get_nickname_by_participant_id` and
    `get_last_match_result` read the results back. A match result is 1 or 2
    for the winning team, 0 for a draw and -1 while in progress.
    `get_last_match_result` returns `None` when the player has no matches.
- `tankhangar.cli` provides `create_schema(conn)`, `fill_tables(conn,
  assets_dir)` and the command line entry point `main`.

Failed operations raise exceptions. The hangar functions raise
`PlayerNotFoundError`, `TankNotFoundError`, `NotEnoughCurrencyError`,
`NotEnoughPointsError` and `TankAlreadyOwnedError`, all derived from
`HangarError`. Matchmaking raises `MatchError`. Both `HangarError` and
`MatchError` derive from `DatabaseError`.

Functions that involve chance take an `rng` argument. Pass a seeded
`random.Random` to make their outcomes repeatable.

## Command line

```
tankhangar [--db FILE] [--assets DIR] [--vehicles LOGIN ...]
```

The command works in four steps:

1. It opens the database file (default `tankhangar.db`) and creates every
   missing table.
2. It fills each empty table from `players.csv`, `tank_info.csv`,
   `modifications.csv` and `hangars.csv` in the assets directory (default
   `assets`).
3. It generates the tank catalogue.
4. For each `--vehicles LOGIN`, it prints that player's vehicles.

It exits with status 1 on a database error.

## Library use

```python
from tankhangar.db import connect
from tankhangar.cli import create_schema, fill_tables
from tankhangar.players import (
    create_player, fetch_all_players, sort_players, SortCriteria, SortOrder,
)
from tankhangar.hangar import (
    get_available_tanks, buy_tank, get_player_tanks,
    repair_cost, sell_price, NotEnoughCurrencyError,
)

conn = connect("game.db")
create_schema(conn)
fill_tables(conn, "assets")

create_player(conn, "NewCommander")

offer = get_available_tanks(conn, "NewCommander")[0]
try:
    buy_tank(conn, "NewCommander", offer.tank_id, offer.mod_id)
except NotEnoughCurrencyError:
    print("Not enough currency amount!")

for tank in get_player_tanks(conn, "NewCommander"):
    print(tank.tank_id, tank.tier, tank.country, tank.type,
          "repair:", repair_cost(tank.price), "sell:", sell_price(tank.price))

players = sort_players(fetch_all_players(conn), SortCriteria.BY_RATING, SortOrder.DESC)
```

## What it does not do

There is no graphical or interactive interface. Logging in, browsing tables,
and buying, selling, repairing or playing are all done by calling the library
functions. The command only prepares the database and prints vehicle
listings.

Matches are not played in real time. Nothing settles them automatically
either: call `process_completed_matches` yourself.

No CSV starting data ships with the package. Supply your own assets
directory.