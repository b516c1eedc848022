"""Wish simulation: star rates with pity, and the draw command itself."""

from __future__ import annotations

import logging
import random
import re
import threading
from dataclasses import dataclass
from typing import Protocol

from paimeng.draw_pool import DrawPool, DrawUserInfo, DrawUserStore, PoolRepository, PoolType

log = logging.getLogger(__name__)

MAX_DRAWS = 80
_POOL_NAME_RE = re.compile(r"([^0-9]+)[0-9]*")


class _Rng(Protocol):
    def random(self) -> float: ...

    def randrange(self, stop: int) -> int: ...


def _build_tables() -> tuple[dict[int, float], ...]:
    nc5 = {0: 0.60, 74: 6.60}
    for i in range(1, 91):
        if i < 74:
            nc5[i] = nc5[0]
        elif i > 74:
            nc5[i] = nc5[i - 1] + 6.0
    nc4 = {0: 5.10, 9: 56.10, 10: 100.0, 11: 100.0}
    for i in range(1, 9):
        nc4[i] = nc4[0]
    w5 = {0: 0.70, 63: 7.70}
    for i in range(1, 81):
        if i < 63:
            w5[i] = w5[0]
        elif i > 63:
            w5[i] = w5[i - 1] + 7.0
    w4 = {0: 6.0, 8: 66.0, 9: 96.0, 10: 100.0, 11: 100.0}
    for i in range(1, 8):
        w4[i] = w4[0]
    return nc5, nc4, w5, w4


_PERCENT_NC5, _PERCENT_NC4, _PERCENT_W5, _PERCENT_W4 = _build_tables()


@dataclass
class Item:
    star: int
    name: str

    def __str__(self) -> str:
        return f"{self.name}\n" + "★" * self.star


def get_float_rate(table: dict[int, float], last: int) -> float:
    """Chance of the next draw given ``last`` draws without one; 1.1 (certain) past the table."""
    rate = table.get(last + 1)
    if rate is None:
        return 1.1
    return rate / 100.0


def random_star(rate_of_4: float, rate_of_5: float, rng: _Rng) -> int:
    if rate_of_5 >= 1:
        return 5
    if rate_of_4 >= 1:
        return 4
    total = rate_of_4 + rate_of_5
    if total >= 1:
        rate_of_4, rate_of_5 = rate_of_4 / total, rate_of_5 / total
    rate_of_5 = rate_of_4 + rate_of_5
    r = rng.random()
    if r < rate_of_4:
        return 4
    if r < rate_of_5:
        return 5
    return 3


def random_choice(names: list[str], rng: _Rng) -> str:
    if not names:
        return ""
    return names[rng.randrange(len(names))]


def random_zero_one(rate_true: float, rng: _Rng) -> bool:
    return rng.random() < rate_true


def _simulate_normal(pool: DrawPool, user: DrawUserInfo, rng: _Rng) -> Item:
    star = random_star(
        get_float_rate(_PERCENT_NC4, user.last4), get_float_rate(_PERCENT_NC5, user.last5), rng
    )
    user.last4 += 1
    user.last5 += 1
    name = ""
    if star == 3:
        name = random_choice(pool.normal3, rng)
    elif star == 4:
        user.last4 = 0
        name = random_choice(pool.normal4, rng)
    elif star == 5:
        user.last5 = 0
        if random_zero_one(0.5, rng):
            name = random_choice(pool.normal5_weapon, rng)
        else:
            name = random_choice(pool.normal5_character, rng)
    return Item(star, name)


def _simulate_character(pool: DrawPool, user: DrawUserInfo, rng: _Rng) -> Item:
    star = random_star(
        get_float_rate(_PERCENT_NC4, user.c_last4), get_float_rate(_PERCENT_NC5, user.c_last5), rng
    )
    user.c_last4 += 1
    user.c_last5 += 1
    name = ""
    if star == 3:
        name = random_choice(pool.normal3, rng)
    elif star == 4:
        user.c_last4 = 0
        if user.c4_last_up > 0 or random_zero_one(0.5, rng):
            name = random_choice(pool.limit4, rng)
            user.c4_last_up = 0
        else:
            name = random_choice(pool.normal4, rng)
            user.c4_last_up += 1
    elif star == 5:
        user.c_last5 = 0
        if user.c5_last_up > 0 or random_zero_one(0.5, rng):
            name = random_choice(pool.limit5, rng)
            user.c5_last_up = 0
        else:
            name = random_choice(pool.normal5_character, rng)
            user.c5_last_up += 1
    return Item(star, name)


def _simulate_weapon(pool: DrawPool, user: DrawUserInfo, rng: _Rng) -> Item:
    star = random_star(
        get_float_rate(_PERCENT_W4, user.w_last4), get_float_rate(_PERCENT_W5, user.w_last5), rng
    )
    user.w_last4 += 1
    user.w_last5 += 1
    name = ""
    if star == 3:
        name = random_choice(pool.normal3, rng)
    elif star == 4:
        user.w_last4 = 0
        if user.w4_last_up > 0 or random_zero_one(0.75, rng):
            name = random_choice(pool.limit4, rng)
            user.w4_last_up = 0
        else:
            name = random_choice(pool.normal4, rng)
            user.w4_last_up += 1
    elif star == 5:
        user.w_last5 = 0
        if user.w5_last_up > 0 or random_zero_one(0.75, rng):
            name = random_choice(pool.limit5, rng)
            user.w5_last_up = 0
        else:
            name = random_choice(pool.normal5_weapon, rng)
            user.w5_last_up += 1
    return Item(star, name)


def simulate_once(pool: DrawPool, user: DrawUserInfo, rng: _Rng) -> Item:
    """Draw one item from ``pool``, updating the user's counters."""
    if pool.type == PoolType.CHARACTER:
        return _simulate_character(pool, user, rng)
    if pool.type == PoolType.WEAPON:
        return _simulate_weapon(pool, user, rng)
    return _simulate_normal(pool, user, rng)


def simulate_repeatedly(
    pool: DrawPool | None, num: int, user: DrawUserInfo, rng: _Rng
) -> list[Item]:
    if pool is None:
        return []
    return [simulate_once(pool, user, rng) for _ in range(num)]


class Drawer:
    """Runs draw requests for users, one at a time per user."""

    def __init__(
        self, repository: PoolRepository, users: DrawUserStore, rng: _Rng | None = None
    ) -> None:
        self._repository = repository
        self._users = users
        self._rng = rng if rng is not None else random.Random()
        self._guard = threading.Lock()
        self._busy: set[int] = set()

    def draw_cards(self, user_id: int, num: int, name: str) -> list[str]:
        """Draw ``num`` items from the pool called ``name``; return the reply texts."""
        with self._guard:
            if user_id in self._busy:
                return ["有正在进行的抽卡哦，稍等一下嘛"]
            self._busy.add(user_id)
        try:
            return self._draw(user_id, num, name)
        finally:
            with self._guard:
                self._busy.discard(user_id)

    def _draw(self, user_id: int, num: int, name: str) -> list[str]:
        if num > MAX_DRAWS:
            return ["抽的太多啦，少来点"]
        if not name:
            name = PoolType.NORMAL.prefix()
        match = _POOL_NAME_RE.search(name)
        if match is None:
            return ["没有这个祈愿欸"]
        pool = next(
            (p for p in self._repository.load_pools_by_prefix(match.group(1)) if p.name == name),
            None,
        )
        if pool is None:
            return ["没有这个祈愿欸"]
        user = self._users.get(user_id)
        items = simulate_repeatedly(pool, num, user, self._rng)
        if not items:
            return []
        try:
            self._users.put(user_id, user)
        except Exception as exc:  # the draw result is still shown
            log.error("saving draw info of %s failed: %s", user_id, exc)
        if len(items) == 1:
            return [str(items[0])]
        if pool.type == PoolType.CHARACTER:
            last4, last5 = user.c_last4, user.c_last5
        elif pool.type == PoolType.WEAPON:
            last4, last5 = user.w_last4, user.w_last5
        else:
            last4, last5 = user.last4, user.last5
        tip = f"距离上次4★：{last4}\n距离上次5★：{last5}"
        return ["".join(f"{item}\n" for item in items), tip]