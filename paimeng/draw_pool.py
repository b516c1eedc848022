"""Wish pool definitions, their storage, and per-user draw counters."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum
from os import PathLike
from pathlib import Path
from typing import Any

from paimeng.accounts import KeyValueStore

_DRAW_USER_KEY_PREFIX = "genshin_draw.u"

_OPTIONAL_LISTS = ("limit5", "limit4", "normal5_character", "normal5_weapon")


class PoolType(IntEnum):
    NORMAL = 0
    CHARACTER = 1
    WEAPON = 2

    def prefix(self) -> str:
        """The pool name prefix used for this type."""
        return _POOL_PREFIXES[self]


_POOL_PREFIXES = {
    PoolType.NORMAL: "常驻",
    PoolType.CHARACTER: "角色",
    PoolType.WEAPON: "武器",
}


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


@dataclass
class DrawPool:
    name: str = ""
    type: int = PoolType.NORMAL
    end_timestamp: int = 0
    title: str = ""
    pic_url: str = ""
    limit5: list[str] = field(default_factory=list)
    limit4: list[str] = field(default_factory=list)
    normal5_character: list[str] = field(default_factory=list)
    normal5_weapon: list[str] = field(default_factory=list)
    normal4: list[str] = field(default_factory=list)
    normal3: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready mapping; empty optional lists are left out."""
        data: dict[str, Any] = {
            "name": self.name,
            "type": int(self.type),
            "end_timestamp": self.end_timestamp,
            "title": self.title,
            "pic_url": self.pic_url,
        }
        for key in _OPTIONAL_LISTS:
            values = getattr(self, key)
            if values:
                data[key] = list(values)
        data["normal4"] = list(self.normal4)
        data["normal3"] = list(self.normal3)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DrawPool:
        raw_type = data.get("type", 0)
        try:
            pool_type: int = PoolType(int(raw_type))
        except (TypeError, ValueError):
            pool_type = int(raw_type) if isinstance(raw_type, int) else PoolType.NORMAL
        return cls(
            name=str(data.get("name") or ""),
            type=pool_type,
            end_timestamp=int(data.get("end_timestamp") or 0),
            title=str(data.get("title") or ""),
            pic_url=str(data.get("pic_url") or ""),
            limit5=_str_list(data.get("limit5")),
            limit4=_str_list(data.get("limit4")),
            normal5_character=_str_list(data.get("normal5_character")),
            normal5_weapon=_str_list(data.get("normal5_weapon")),
            normal4=_str_list(data.get("normal4")),
            normal3=_str_list(data.get("normal3")),
        )


_USER_FIELDS = {
    "last4": "Last4",
    "last5": "Last5",
    "c_last4": "CLast4",
    "c_last5": "CLast5",
    "c4_last_up": "C4LastUp",
    "c5_last_up": "C5LastUp",
    "w_last4": "WLast4",
    "w_last5": "WLast5",
    "w4_last_up": "W4LastUp",
    "w5_last_up": "W5LastUp",
}


@dataclass
class DrawUserInfo:
    """Pity counters of one user, per pool kind."""

    last4: int = 0
    last5: int = 0
    c_last4: int = 0
    c_last5: int = 0
    c4_last_up: int = 0
    c5_last_up: int = 0
    w_last4: int = 0
    w_last5: int = 0
    w4_last_up: int = 0
    w5_last_up: int = 0

    def to_dict(self) -> dict[str, int]:
        return {key: getattr(self, attr) for attr, key in _USER_FIELDS.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DrawUserInfo:
        values = {}
        for attr, key in _USER_FIELDS.items():
            try:
                values[attr] = int(data.get(key) or 0)
            except (TypeError, ValueError):
                values[attr] = 0
        return cls(**values)


class PoolRepository:
    """Pools stored as one JSON file per pool type."""

    def __init__(self, directory: str | PathLike[str]) -> None:
        self.directory = Path(directory)

    def _path(self, prefix: str) -> Path:
        return self.directory / f"{prefix}.json"

    def save_pools(self, pool_type: int, pools: list[DrawPool]) -> None:
        """Name the pools after their type and write them to disk."""
        try:
            prefix = PoolType(pool_type).prefix()
        except ValueError:
            raise ValueError("no such pool type") from None
        for number, pool in enumerate(pools, start=1):
            pool.name = prefix
            if len(pools) > 1:
                pool.name += str(number)
        self.directory.mkdir(parents=True, exist_ok=True)
        text = json.dumps([pool.to_dict() for pool in pools], ensure_ascii=False, indent="\t")
        self._path(prefix).write_text(text, encoding="utf-8")

    def load_pools_by_prefix(self, prefix: str) -> list[DrawPool]:
        """Pools of the type named ``prefix``; empty when none are stored."""
        if not prefix:
            return []
        try:
            data = json.loads(self._path(prefix).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return []
        if not isinstance(data, list):
            return []
        return [DrawPool.from_dict(item) for item in data if isinstance(item, dict)]

    def load_pools(self, pool_type: int) -> list[DrawPool]:
        try:
            prefix = PoolType(pool_type).prefix()
        except ValueError:
            return []
        return self.load_pools_by_prefix(prefix)


class DrawUserStore:
    """Keeps each user's draw counters in a key/value store."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get(self, user_id: int) -> DrawUserInfo:
        raw = self._store.get(f"{_DRAW_USER_KEY_PREFIX}{user_id}")
        if raw is None:
            return DrawUserInfo()
        try:
            data = json.loads(raw)
        except ValueError:
            return DrawUserInfo()
        return DrawUserInfo.from_dict(data) if isinstance(data, dict) else DrawUserInfo()

    def put(self, user_id: int, info: DrawUserInfo) -> None:
        self._store.put(f"{_DRAW_USER_KEY_PREFIX}{user_id}", json.dumps(info.to_dict()))


def _add_months(moment: datetime, months: int) -> datetime:
    total = moment.month - 1 + months
    first = moment.replace(year=moment.year + total // 12, month=total % 12 + 1, day=1)
    return first + timedelta(days=moment.day - 1)


def display_single_pool(pool: DrawPool, now: datetime | None = None) -> list[tuple[str, str]]:
    """Describe a current pool as ``(kind, value)`` segments; kinds are text and image."""
    if now is None:
        now = datetime.now().astimezone()
    if pool.end_timestamp <= int(now.timestamp()):
        return []
    segments: list[tuple[str, str]] = [("text", pool.title + "\n")]
    if pool.pic_url:
        segments.append(("image", pool.pic_url))
    segments.append(("text", "\n卡池名：" + pool.name))
    if _add_months(now, 2).timestamp() > pool.end_timestamp:
        end = datetime.fromtimestamp(pool.end_timestamp, now.tzinfo)
        segments.append(("text", "\n结束时间：" + end.strftime("%Y-%m-%d %H:%M")))
    if pool.limit5:
        segments.append(("text", "\nUP 5★：" + "、".join(pool.limit5)))
    if pool.limit4:
        segments.append(("text", "\nUP 4★：" + "、".join(pool.limit4)))
    return segments