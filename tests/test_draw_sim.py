import random

import pytest

from paimeng.accounts import KeyValueStore
from paimeng.draw_pool import DrawPool, DrawUserInfo, DrawUserStore, PoolRepository, PoolType
from paimeng.draw_sim import (
    Drawer,
    Item,
    get_float_rate,
    random_choice,
    random_star,
    random_zero_one,
    simulate_once,
    simulate_repeatedly,
)


class FixedRng:
    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value

    def randrange(self, stop):
        return 0


def make_pool(pool_type=PoolType.NORMAL):
    return DrawPool(
        type=pool_type,
        limit5=["L5"],
        limit4=["L4"],
        normal5_character=["C5"],
        normal5_weapon=["W5"],
        normal4=["N4"],
        normal3=["N3"],
    )


def test_item_str():
    assert str(Item(4, "A")) == "A\n★★★★"


def test_get_float_rate():
    assert get_float_rate({}, 5) == 1.1
    assert get_float_rate({1: 50.0}, 0) == pytest.approx(0.5)


def test_random_star():
    assert random_star(1.0, 1.0, FixedRng(0.0)) == 5
    assert random_star(1.0, 0.0, FixedRng(0.9)) == 4
    assert random_star(0.0, 0.0, FixedRng(0.0)) == 3
    assert random_star(0.2, 0.1, FixedRng(0.1)) == 4
    assert random_star(0.2, 0.1, FixedRng(0.25)) == 5
    assert random_star(0.2, 0.1, FixedRng(0.5)) == 3


def test_random_choice_and_zero_one():
    assert random_choice([], FixedRng(0.0)) == ""
    assert random_choice(["a", "b"], FixedRng(0.0)) == "a"
    assert random_zero_one(0.5, FixedRng(0.4)) is True
    assert random_zero_one(0.5, FixedRng(0.5)) is False


def test_simulate_repeatedly_none_pool():
    assert simulate_repeatedly(None, 10, DrawUserInfo(), FixedRng(0.0)) == []


def test_normal_pity_invariants():
    rng = random.Random(7)
    user = DrawUserInfo()
    items = simulate_repeatedly(make_pool(), 500, user, rng)
    assert len(items) == 500
    gap5 = 0
    for item in items:
        gap5 = 0 if item.star == 5 else gap5 + 1
        assert gap5 < 90
        assert item.name in {"N3", "N4", "C5", "W5"}
        assert {3: "N3", 4: "N4"}.get(item.star, item.name) == item.name


def test_three_star_increments_counters():
    user = DrawUserInfo()
    item = simulate_once(make_pool(), user, FixedRng(0.99))
    assert item == Item(3, "N3")
    assert (user.last4, user.last5) == (1, 1)


def test_character_guaranteed_up_after_loss():
    user = DrawUserInfo(c_last5=89, c5_last_up=1)
    item = simulate_once(make_pool(PoolType.CHARACTER), user, FixedRng(0.99))
    assert item == Item(5, "L5")
    assert user.c_last5 == 0
    assert user.c5_last_up == 0


def test_character_loses_fifty_fifty():
    user = DrawUserInfo(c_last5=89)
    item = simulate_once(make_pool(PoolType.CHARACTER), user, FixedRng(0.99))
    assert item == Item(5, "C5")
    assert user.c5_last_up == 1


def test_weapon_four_star_up_rate():
    user = DrawUserInfo(w_last4=9)
    item = simulate_once(make_pool(PoolType.WEAPON), user, FixedRng(0.7))
    assert item == Item(4, "L4")
    assert user.w_last4 == 0
    user = DrawUserInfo(w_last4=9)
    item = simulate_once(make_pool(PoolType.WEAPON), user, FixedRng(0.8))
    assert item == Item(4, "N4")
    assert user.w4_last_up == 1


@pytest.fixture
def drawer(tmp_path):
    repo = PoolRepository(tmp_path / "pool")
    repo.save_pools(PoolType.NORMAL, [make_pool()])
    repo.save_pools(PoolType.CHARACTER, [make_pool(PoolType.CHARACTER)])
    kv = KeyValueStore(tmp_path / "kv.db")
    users = DrawUserStore(kv)
    yield Drawer(repo, users, random.Random(1)), users
    kv.close()


def test_draw_too_many(drawer):
    d, _ = drawer
    assert d.draw_cards(1, 81, "") == ["抽的太多啦，少来点"]


def test_draw_unknown_pool(drawer):
    d, _ = drawer
    assert d.draw_cards(1, 1, "武器") == ["没有这个祈愿欸"]
    assert d.draw_cards(1, 1, "123") == ["没有这个祈愿欸"]


def test_draw_single_default_pool(drawer):
    d, users = drawer
    result = d.draw_cards(5, 1, "")
    assert len(result) == 1
    assert result[0].split("\n")[0] in {"N3", "N4", "C5", "W5"}
    info = users.get(5)
    assert info.last5 <= 1 and (info.last4, info.last5) != (0, 0)


def test_draw_ten_saves_counters(drawer):
    d, users = drawer
    items_text, tip = d.draw_cards(9, 10, "角色")
    assert items_text.count("\n") == 20
    info = users.get(9)
    assert tip == f"距离上次4★：{info.c_last4}\n距离上次5★：{info.c_last5}"
    assert info.last4 == 0 and info.last5 == 0