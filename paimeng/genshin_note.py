"""Real-time note (resin, realm currency, expeditions) shown as text."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta

from paimeng.mihoyo import (
    GameRole,
    GenshinDailyNote,
    MihoyoError,
    get_genshin_daily_note,
    get_user_game_role_by_uid,
)

log = logging.getLogger(__name__)

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def _parse_seconds(text: str) -> int | None:
    if not _INTEGER_RE.fullmatch(text):
        return None
    return int(text)


def add_time(now: datetime, seconds: int) -> str:
    """The moment ``seconds`` after ``now``, as month, day, hour and minute."""
    after = now + timedelta(seconds=seconds)
    return f"{after.month}月{after.day}日 {after.hour:02d}时{after.minute:02d}分"


def count_down_display(seconds: int) -> str:
    """A remaining duration in days, hours, minutes or seconds."""
    if seconds > 86400:
        return (
            f"{seconds // 86400}天{(seconds % 86400) // 3600}小时{(seconds % 3600) // 60}分"
        )
    if seconds > 3600:
        return f"{seconds // 3600}小时{(seconds % 3600) // 60}分"
    if seconds > 60:
        return f"{seconds // 60}分"
    return f"{seconds}秒"


def display_time(now: datetime, duration: str, finish_tip: str, show_left: bool) -> str:
    """Describe when a recovery of ``duration`` seconds finishes."""
    seconds = _parse_seconds(duration)
    if seconds is None or seconds <= 0:
        return "已" + finish_tip
    if not show_left:
        return f"将在{add_time(now, seconds)}{finish_tip}"
    return f"距{finish_tip}还有: {count_down_display(seconds)}"


def format_note(
    role: GameRole,
    uid: str,
    note: GenshinDailyNote,
    now: datetime | None = None,
    show_left: bool = False,
) -> str:
    """Render a daily note as a text message."""
    if now is None:
        now = datetime.now()
    return (
        f"角色:{role.nickname}(UID {uid})\n"
        f"[树脂:{note.current_resin}/{note.max_resin}]\n"
        f"({display_time(now, note.resin_recovery_time, '回满', show_left)})\n"
        f"[洞天宝钱:{note.current_home_coin}/{note.max_home_coin}]\n"
        f"({display_time(now, note.home_coin_recovery_time, '回满', show_left)})\n"
        f"[派遣{note.current_expedition_num}/{note.max_expedition_num}]"
    )


def query(uid: str, cookie: str, show_left: bool = False) -> tuple[str, GenshinDailyNote]:
    """Fetch the note of role ``uid``; return the text and the note.

    Raises MihoyoError with a user-facing message when a request fails.
    """
    try:
        role = get_user_game_role_by_uid(cookie, uid)
    except MihoyoError as exc:
        log.warning("getting role %s failed: %s", uid, exc)
        raise MihoyoError("获取角色信息失败") from exc
    try:
        note = get_genshin_daily_note(cookie, uid, role.region)
    except MihoyoError as exc:
        log.warning("getting daily note of %s failed: %s", uid, exc)
        raise MihoyoError("获取当前便签失败") from exc
    return format_note(role, uid, note, datetime.now(), show_left), note