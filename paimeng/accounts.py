"""Persistent key/value storage and per-user game account bindings."""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterator
from os import PathLike

COOKIE_KEY_PREFIX = "genshin_cookie.u"
UID_KEY_PREFIX = "genshin_uid.u"

ACCOUNT_USAGE = """如何绑定米游社cookie和原神uid：
	原神绑定cookie [你的cookie]：cookie是重要信息，请务必在私聊中使用
	原神绑定uid [你的uid]
如何解绑：
	使用上述命令，不填参数([你的cookie]和[你的uid])即可"""

_MIN_COOKIE_LENGTH = 10
_MIN_UID_LENGTH = 5


class KeyValueStore:
    """A small ordered key/value store backed by SQLite."""

    def __init__(self, path: str | PathLike[str]) -> None:
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        with self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value BLOB NOT NULL)"
            )

    def get(self, key: str) -> bytes | None:
        """Return the value stored under ``key``, or None when absent."""
        with self._lock:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return None if row is None else bytes(row[0])

    def put(self, key: str, value: bytes | str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        if isinstance(value, str):
            value = value.encode("utf-8")
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def items_with_prefix(self, prefix: str) -> Iterator[tuple[str, bytes]]:
        """Yield ``(key, value)`` pairs whose key starts with ``prefix``, in key order."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT key, value FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        for key, value in rows:
            yield key, bytes(value)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> KeyValueStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class AccountError(Exception):
    """Raised when a user has not bound a usable cookie or uid."""


def cookie_initial_tips() -> str:
    """Instructions shown to a user who has not bound an account yet."""
    return (
        "如何获取cookie或uid:\n"
        "获取方法1、下载APP 应急食品\n"
        "\tcookie详细获取方法：打开应急食品 进入工具 进入管理米游社账号 添加账号 "
        "（登录你的账号） 长按你登录成功的账号即可复制\n"
        "获取方法2、适用于有基础的同学\n"
        "\t打开米游社原神社区网页版 登录后按F12，点击源代码禁用调试后，"
        "点击控制台输入document.cookie复制输出的内容即可\n"
        + ACCOUNT_USAGE
    )


class AccountStore:
    """Reads and writes the cookie and uid a user has bound."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def _get_string(self, key: str) -> str:
        raw = self._store.get(key)
        if raw is None:
            return ""
        try:
            value = json.loads(raw)
        except ValueError:
            return ""
        return value if isinstance(value, str) else ""

    def _put_string(self, key: str, value: str) -> None:
        self._store.put(key, json.dumps(value))

    def get_cookie(self, user_id: int) -> str:
        return self._get_string(f"{COOKIE_KEY_PREFIX}{user_id}")

    def get_uid(self, user_id: int) -> str:
        return self._get_string(f"{UID_KEY_PREFIX}{user_id}")

    def put_cookie(self, user_id: int, cookie: str) -> None:
        self._put_string(f"{COOKIE_KEY_PREFIX}{user_id}", cookie)

    def put_uid(self, user_id: int, uid: str) -> None:
        self._put_string(f"{UID_KEY_PREFIX}{user_id}", uid)

    def uid_and_cookie(self, user_id: int) -> tuple[str, str]:
        """Return ``(uid, cookie)`` or raise AccountError with a user-facing hint."""
        cookie = self.get_cookie(user_id)
        uid = self.get_uid(user_id)
        if len(cookie.encode("utf-8")) <= _MIN_COOKIE_LENGTH:
            raise AccountError("cookie设置失败\n" + cookie_initial_tips())
        if len(uid.encode("utf-8")) <= _MIN_UID_LENGTH:
            raise AccountError("uid设置失败\n" + cookie_initial_tips())
        return uid, cookie