import pytest

from tankhangar.db import connect
from tankhangar.hangar import (
    HangarError,
    NotEnoughCurrencyError,
    NotEnoughPointsError,
    PlayerNotFoundError,
    TankAlreadyOwnedError,
    TankNotFoundError,
    buy_tank,
    create_hangars_table,
    create_modifications_table,
    create_tank_info_table,
    create_tanks_table,
    fill_hangars_table,
    fill_modifications_table,
    fill_tank_info_table,
    fill_tanks_table,
    get_available_tanks,
    get_player_tanks,
    modification_price,
    repair_cost,
    repair_tank,
    sell_price,
    sell_tank,
)
from tankhangar.players import create_player, create_players_table


@pytest.fixture
def conn(tmp_path):
    c = connect()
    create_players_table(c)
    create_modifications_table(c)
    create_tank_info_table(c)
    create_tanks_table(c)
    create_hangars_table(c)
    mods = tmp_path / "modifications.csv"
    mods.write_text("mod_id\n1\n2\n3\n")
    info = tmp_path / "tank_info.csv"
    info.write_text(
        "data_id,country,type,tier\n"
        "1,USSR,light,1\n"
        "2,USA,medium,1\n"
        "3,USSR,light,2\n"
    )
    fill_modifications_table(c, mods)
    fill_tank_info_table(c, info)
    fill_tanks_table(c)
    yield c
    c.close()


def _tank_id(conn, data_id, mod_id):
    return conn.execute(
        "SELECT tank_id FROM tanks WHERE data_id = ? AND mod_id = ?",
        (data_id, mod_id),
    ).fetchone()[0]


def _balance(conn, login):
    return conn.execute(
        "SELECT currency_amount FROM players WHERE login = ?", (login,)
    ).fetchone()[0]


def _count(conn, table):
    return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def test_modification_price_base():
    assert modification_price(1, 1) == (2000, 0)


def test_modification_price_invariants():
    base_price, _ = modification_price(2, 1)
    mid_price, mid_points = modification_price(2, 2)
    top_price, top_points = modification_price(2, 3)
    assert top_price == 5 * base_price
    assert base_price < mid_price < top_price
    assert 0 < mid_points < top_points
    assert modification_price(2, 1)[0] == 2 * modification_price(1, 1)[0]


def test_modification_price_unknown_mod():
    with pytest.raises(ValueError):
        modification_price(1, 4)


def test_fill_tanks_creates_every_modification(conn):
    assert _count(conn, "tanks") == _count(conn, "tank_info") * _count(
        conn, "modifications"
    )
    assert fill_tanks_table(conn) == 0


def test_tank_prices_follow_modification_price(conn):
    rows = conn.execute(
        "SELECT ti.tier, t.mod_id, t.price, t.required_points FROM tanks t "
        "JOIN tank_info ti ON t.data_id = ti.data_id"
    ).fetchall()
    assert rows
    for tier, mod_id, price, points in rows:
        assert (price, points) == modification_price(tier, mod_id)


def test_fill_tables_skip_when_not_empty(conn, tmp_path):
    path = tmp_path / "other.csv"
    path.write_text("mod_id\n9\n")
    assert fill_modifications_table(conn, path) == 0
    assert fill_tank_info_table(conn, path) == 0


def test_new_player_sees_tier_one_base_tanks(conn):
    create_player(conn, "alpha")
    available = get_available_tanks(conn, "alpha")
    assert {t.tank_id for t in available} == {
        _tank_id(conn, 1, 1),
        _tank_id(conn, 2, 1),
    }
    assert all(t.tier == 1 and t.mod_id == 1 for t in available)
    assert [t.country for t in available] == sorted(t.country for t in available)


def test_buy_tank_adds_to_hangar_and_charges(conn):
    create_player(conn, "alpha")
    start = _balance(conn, "alpha")
    tank_id = _tank_id(conn, 1, 1)
    hangar_id = buy_tank(conn, "alpha", tank_id, 1)
    tanks = get_player_tanks(conn, "alpha")
    assert [t.tank_id for t in tanks] == [tank_id]
    assert tanks[0].hangar_id == hangar_id
    assert tanks[0].hangar_status == "operational"
    assert tanks[0].game_points == 0
    assert _balance(conn, "alpha") == start - tanks[0].price


def test_buy_tank_twice_is_rejected(conn):
    create_player(conn, "alpha")
    tank_id = _tank_id(conn, 1, 1)
    buy_tank(conn, "alpha", tank_id, 1)
    balance = _balance(conn, "alpha")
    with pytest.raises(TankAlreadyOwnedError):
        buy_tank(conn, "alpha", tank_id, 1)
    assert _balance(conn, "alpha") == balance


def test_buy_tank_unknown_player(conn):
    with pytest.raises(PlayerNotFoundError):
        buy_tank(conn, "nobody", _tank_id(conn, 1, 1), 1)


def test_buy_tank_unknown_tank(conn):
    create_player(conn, "alpha")
    with pytest.raises(TankNotFoundError):
        buy_tank(conn, "alpha", _tank_id(conn, 1, 1), 2)


def test_buy_tank_not_enough_currency(conn):
    create_player(conn, "alpha")
    conn.execute("UPDATE players SET currency_amount = 0 WHERE login = 'alpha'")
    with pytest.raises(NotEnoughCurrencyError):
        buy_tank(conn, "alpha", _tank_id(conn, 1, 1), 1)
    assert get_player_tanks(conn, "alpha") == []


def test_buy_tank_not_enough_points(conn):
    create_player(conn, "alpha")
    buy_tank(conn, "alpha", _tank_id(conn, 1, 1), 1)
    with pytest.raises(NotEnoughPointsError):
        buy_tank(conn, "alpha", _tank_id(conn, 1, 2), 2)
    assert len(get_player_tanks(conn, "alpha")) == 1


def test_available_after_purchase_offers_next_modification(conn):
    create_player(conn, "alpha")
    buy_tank(conn, "alpha", _tank_id(conn, 1, 1), 1)
    ids = {t.tank_id for t in get_available_tanks(conn, "alpha")}
    assert _tank_id(conn, 1, 2) in ids
    assert _tank_id(conn, 1, 1) not in ids
    assert _tank_id(conn, 2, 1) in ids


def test_full_upgrade_unlocks_next_tier(conn):
    create_player(conn, "alpha")
    next_tier = _tank_id(conn, 3, 1)
    buy_tank(conn, "alpha", _tank_id(conn, 1, 1), 1)
    assert next_tier not in {t.tank_id for t in get_available_tanks(conn, "alpha")}
    conn.execute("UPDATE hangars SET game_points = 10000")
    buy_tank(conn, "alpha", _tank_id(conn, 1, 2), 2)
    conn.execute("UPDATE hangars SET game_points = 10000")
    buy_tank(conn, "alpha", _tank_id(conn, 1, 3), 3)
    available = get_available_tanks(conn, "alpha")
    unlocked = [t for t in available if t.tank_id == next_tier]
    assert len(unlocked) == 1
    assert unlocked[0].tier == 2


def test_sell_tank_credits_and_removes(conn):
    create_player(conn, "alpha")
    hangar_id = buy_tank(conn, "alpha", _tank_id(conn, 1, 1), 1)
    tank = get_player_tanks(conn, "alpha")[0]
    before = _balance(conn, "alpha")
    after = sell_tank(conn, "alpha", hangar_id, sell_price(tank.price))
    assert after == before + sell_price(tank.price)
    assert _balance(conn, "alpha") == after
    assert get_player_tanks(conn, "alpha") == []


def test_sold_tank_can_be_bought_again(conn):
    create_player(conn, "alpha")
    tank_id = _tank_id(conn, 1, 1)
    hangar_id = buy_tank(conn, "alpha", tank_id, 1)
    conn.execute("UPDATE hangars SET game_points = 50")
    sell_tank(conn, "alpha", hangar_id, 0)
    assert buy_tank(conn, "alpha", tank_id, 1) == hangar_id
    tanks = get_player_tanks(conn, "alpha")
    assert [(t.tank_id, t.game_points, t.hangar_status) for t in tanks] == [
        (tank_id, 0, "operational")
    ]


def test_sell_tank_negative_price(conn):
    create_player(conn, "alpha")
    hangar_id = buy_tank(conn, "alpha", _tank_id(conn, 1, 1), 1)
    with pytest.raises(ValueError):
        sell_tank(conn, "alpha", hangar_id, -1)


def test_sell_tank_of_other_player_fails(conn):
    create_player(conn, "alpha")
    create_player(conn, "beta")
    hangar_id = buy_tank(conn, "alpha", _tank_id(conn, 1, 1), 1)
    with pytest.raises(HangarError):
        sell_tank(conn, "beta", hangar_id, 100)
    assert len(get_player_tanks(conn, "alpha")) == 1


def test_repair_tank(conn):
    create_player(conn, "alpha")
    hangar_id = buy_tank(conn, "alpha", _tank_id(conn, 1, 1), 1)
    conn.execute("UPDATE hangars SET status = 'needs_repair'")
    tank = get_player_tanks(conn, "alpha")[0]
    before = _balance(conn, "alpha")
    cost = repair_cost(tank.price)
    assert repair_tank(conn, "alpha", hangar_id, cost) == before - cost
    assert get_player_tanks(conn, "alpha")[0].hangar_status == "operational"


def test_repair_tank_not_enough_currency_rolls_back(conn):
    create_player(conn, "alpha")
    hangar_id = buy_tank(conn, "alpha", _tank_id(conn, 1, 1), 1)
    conn.execute("UPDATE hangars SET status = 'needs_repair'")
    conn.execute("UPDATE players SET currency_amount = 0")
    with pytest.raises(NotEnoughCurrencyError):
        repair_tank(conn, "alpha", hangar_id, 1)
    assert get_player_tanks(conn, "alpha")[0].hangar_status == "needs_repair"
    assert _balance(conn, "alpha") == 0


def test_repair_unknown_hangar(conn):
    create_player(conn, "alpha")
    with pytest.raises(HangarError):
        repair_tank(conn, "alpha", 999, 0)


def test_repair_cost_and_sell_price():
    assert repair_cost(8000) == 2000
    assert sell_price(2500) == 2000
    assert sell_price(7) <= 7


def test_fill_hangars_table_reads_textual_booleans(conn, tmp_path):
    player_id = create_player(conn, "alpha")
    sold = _tank_id(conn, 1, 1)
    kept = _tank_id(conn, 2, 1)
    path = tmp_path / "hangars.csv"
    path.write_text(
        "hangar_id,player_id,tank_id,game_points,status,is_sold\n"
        f"1,{player_id},{sold},10,operational,true\n"
        f"2,{player_id},{kept},20,needs_repair,false\n"
    )
    assert fill_hangars_table(conn, path) == 2
    tanks = get_player_tanks(conn, "alpha")
    assert [(t.tank_id, t.game_points, t.hangar_status) for t in tanks] == [
        (kept, 20, "needs_repair")
    ]
    assert fill_hangars_table(conn, path) == 0