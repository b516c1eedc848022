"""Daily sign-in: one-off sign, auto-sign settings and the scheduled run."""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from paimeng import mihoyo
from paimeng.accounts import COOKIE_KEY_PREFIX, UID_KEY_PREFIX, AccountStore, KeyValueStore
from paimeng.mihoyo import MihoyoError

log = logging.getLogger(__name__)

EVENT_KEY_PREFIX = "genshin_eventfrom.u"
_ALL_PREFIX = "genshin_"
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def _parse_int(text: str) -> int:
    return int(text) if _INTEGER_RE.fullmatch(text) else 0


@dataclass
class EventFrom:
    """Where auto sign-in was turned on, and whether it is on."""

    is_from_group: bool = False
    from_id: str = ""
    qq: str = ""
    auto: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "IsFromGroup": self.is_from_group,
            "FromId": self.from_id,
            "qq": self.qq,
            "Auto": self.auto,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventFrom:
        return cls(
            is_from_group=bool(data.get("IsFromGroup")),
            from_id=str(data.get("FromId") or ""),
            qq=str(data.get("qq") or ""),
            auto=bool(data.get("Auto")),
        )


@dataclass
class SignUser:
    id: str
    uid: str = ""
    cookie: str = ""
    event_from: EventFrom = field(default_factory=EventFrom)


@dataclass
class PushTarget:
    """A message to push to friends and/or groups, optionally mentioning a user."""

    text: str
    friends: list[int] = field(default_factory=list)
    groups: list[int] = field(default_factory=list)
    at: int | None = None


def sign(uid: str, cookie: str) -> str:
    """Sign in for role ``uid`` and return a report.

    Raises MihoyoError carrying a user-facing message when the sign-in fails.
    """
    try:
        role = mihoyo.get_user_game_role_by_uid(cookie, uid)
    except MihoyoError as exc:
        raise MihoyoError("获取原神角色失败") from exc
    head = f"UID:{role.uid}, 昵称:{role.nickname}\n"
    try:
        mihoyo.sign(cookie, role)
    except MihoyoError as exc:
        raise MihoyoError(head + "米游社签到失败") from exc
    msg = head + "米游社签到成功"
    try:
        state = mihoyo.get_sign_state_info(cookie, role)
    except MihoyoError as exc:
        log.warning("getting sign state failed: %s", exc)
        return msg
    msg += f"\n已连续签到{state.total_sign_day}天"
    try:
        awards = mihoyo.get_sign_awards_list()
    except MihoyoError as exc:
        log.warning("getting sign awards failed: %s", exc)
        return msg
    if 1 <= state.total_sign_day <= len(awards):
        award = awards[state.total_sign_day - 1]
        msg += f"\n今天获得{award.count}个{award.name}"
    return msg


def _load_string(raw: bytes) -> str:
    try:
        value = json.loads(raw)
    except ValueError:
        return ""
    return value if isinstance(value, str) else ""


def _load_event(raw: bytes) -> EventFrom:
    try:
        data = json.loads(raw)
    except ValueError:
        return EventFrom()
    return EventFrom.from_dict(data) if isinstance(data, dict) else EventFrom()


class SignService:
    """Auto sign-in settings stored next to the account bindings."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._accounts = AccountStore(store)

    def get_event_from(self, user_id: int) -> EventFrom | None:
        """The stored auto sign-in setting, or None when there is none."""
        raw = self._store.get(f"{EVENT_KEY_PREFIX}{user_id}")
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        return EventFrom.from_dict(data) if isinstance(data, dict) else None

    def put_event_from(self, user_id: int, event: EventFrom) -> None:
        self._store.put(f"{EVENT_KEY_PREFIX}{user_id}", json.dumps(event.to_dict()))

    def set_auto_event(self, enabled: bool, group_id: int, user_id: int) -> str:
        """Turn auto sign-in on or off; ``group_id`` 0 means a private chat."""
        from_group = group_id != 0
        event = EventFrom(
            is_from_group=from_group,
            from_id=str(group_id) if from_group else str(user_id),
            qq=str(user_id),
            auto=enabled,
        )
        self.put_event_from(user_id, event)
        return "定时签到已打开" if enabled else "定时签到已关闭"

    def collect_users(self) -> dict[str, SignUser]:
        """Every user with a stored cookie, uid or auto sign-in setting."""
        users: dict[str, SignUser] = {}
        for key, value in self._store.items_with_prefix(_ALL_PREFIX):
            if key.startswith(COOKIE_KEY_PREFIX):
                name = key[len(COOKIE_KEY_PREFIX):]
                users.setdefault(name, SignUser(id=name)).cookie = _load_string(value)
            elif key.startswith(UID_KEY_PREFIX):
                name = key[len(UID_KEY_PREFIX):]
                users.setdefault(name, SignUser(id=name)).uid = _load_string(value)
            elif key.startswith(EVENT_KEY_PREFIX):
                name = key[len(EVENT_KEY_PREFIX):]
                users.setdefault(name, SignUser(id=name)).event_from = _load_event(value)
        return users

    def account_summary(self, user_id: int) -> str:
        """What the user has bound and whether auto sign-in is on."""
        uid = self._accounts.get_uid(user_id)
        lines = ["原神UID: " + uid if _byte_len(uid) >= 5 else "尚未绑定有效UID"]
        cookie = self._accounts.get_cookie(user_id)
        lines.append("已绑定米游社cookie" if _byte_len(cookie) >= 10 else "尚未绑定有效cookie")
        event = self.get_event_from(user_id)
        if event is not None and event.auto:
            lines.append("已开启米游社自动签到")
        else:
            lines.append("尚未开启米游社自动签到")
        return "\n".join(lines)

    def auto_sign(
        self,
        allow_group: bool = False,
        signer: Callable[[str, str], str] | None = None,
    ) -> list[PushTarget]:
        """Sign in for every user who turned auto sign-in on; return what to push."""
        do_sign = signer if signer is not None else sign
        targets: list[PushTarget] = []
        for name, user in self.collect_users().items():
            if (
                not user.event_from.auto
                or _byte_len(user.uid) <= 5
                or _byte_len(user.cookie) <= 10
            ):
                continue
            try:
                msg = do_sign(user.uid, user.cookie)
            except MihoyoError as exc:
                log.warning("auto sign (id=%s, uid=%s) failed: %s", user.id, user.uid, exc)
                time.sleep(1)
                continue
            log.info("auto sign succeeded: %s", msg)
            qq = _parse_int(name)
            if user.event_from.is_from_group:
                if allow_group:
                    targets.append(
                        PushTarget(text=msg, groups=[_parse_int(user.event_from.from_id)], at=qq)
                    )
            else:
                targets.append(PushTarget(text=msg, friends=[qq]))
            time.sleep(2)
        return targets