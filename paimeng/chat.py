"""Custom question/answer storage and the built-in chat replies."""

from __future__ import annotations

import random
import re
import sqlite3
import threading
from collections.abc import Iterable
from os import PathLike
from typing import Any, Protocol

from paimeng.dialogues import GLOBAL_GROUP, DialoguesMap

DEFAULT_DO_NOT_KNOW = "{nickname}不知道哦"

_SELF_QUESTIONS = frozenset({"你是谁", "是谁", "你是什么", "是什么", "自我介绍"})
_CQ_IMAGE_RE = re.compile(r"\[CQ:image((?:,[^\]]*)?)\]")


class _Rng(Protocol):
    def randrange(self, stop: int) -> int: ...


def _image_keep_file(match: re.Match[str]) -> str:
    for part in match.group(1).split(",")[1:]:
        key, _, value = part.partition("=")
        if key == "file":
            return f"[CQ:image,file={value}]"
    return "[CQ:image,file=]"


def _preprocess_question(text: str) -> str:
    """Reduce image codes in a question to their file field only."""
    if "[CQ:image" not in text:
        return text
    return _CQ_IMAGE_RE.sub(_image_keep_file, text)


class DialogueStore:
    """Custom dialogues per group in SQLite, falling back to file dialogues."""

    def __init__(self, path: str | PathLike[str], files: DialoguesMap | None = None) -> None:
        self._files = files
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        with self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS group_chat_dialogues ("
                "group_id INTEGER NOT NULL, question TEXT NOT NULL, answer TEXT, "
                "PRIMARY KEY (group_id, question))"
            )

    def set_dialogue(self, group_id: int, question: str, answer: str) -> None:
        """Add a dialogue or replace the answer of an existing one."""
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO group_chat_dialogues (group_id, question, answer) VALUES (?, ?, ?) "
                "ON CONFLICT(group_id, question) DO UPDATE SET answer = excluded.answer",
                (group_id, question, answer),
            )

    def delete_dialogue(self, group_id: int, question: str) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "DELETE FROM group_chat_dialogues WHERE group_id = ? AND question IN (?, ?)",
                (group_id, question, _preprocess_question(question)),
            )

    def get_dialogue(
        self, group_id: int, question: str, rng: _Rng | None = None
    ) -> str | None:
        """The stored answer, else a random answer from the file dialogues."""
        with self._lock:
            row = self._conn.execute(
                "SELECT answer FROM group_chat_dialogues WHERE group_id = ? AND question = ?",
                (group_id, question),
            ).fetchone()
        if row is not None:
            return row[0] or ""
        if self._files is None:
            return None
        return self._files.random_answer(group_id, question, rng)

    def all_questions(self, group_id: int) -> list[str]:
        """Sorted questions usable in the group, global ones included."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT question FROM group_chat_dialogues WHERE group_id = ? OR group_id = ?",
                (group_id, GLOBAL_GROUP),
            ).fetchall()
        return sorted({row[0] for row in rows})

    def question_at(self, group_id: int, index: int) -> str:
        """The ``index``-th question of :meth:`all_questions`, or "" when out of range."""
        questions = self.all_questions(group_id)
        if 0 <= index < len(questions):
            return questions[index]
        return ""

    def diy_dialogue(
        self, group_id: int, question: str, rng: _Rng | None = None
    ) -> str | None:
        """Answer a question from the group's dialogues first, then the global ones."""
        if not question:
            return None
        if group_id != GLOBAL_GROUP:
            answer = self.get_dialogue(group_id, question, rng)
            if answer:
                return answer
        return self.get_dialogue(GLOBAL_GROUP, question, rng)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> DialogueStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def who_are_you(question: str, self_intro: str) -> str | None:
    """The self introduction when asked who the bot is."""
    return self_intro if question in _SELF_QUESTIONS else None


def plugin_name_reply(
    question: str, plugin_names: Iterable[str], bot_name: str, is_private: bool
) -> str | None:
    """A hint on asking for help when the question is a plugin's name."""
    if question not in set(plugin_names):
        return None
    prefix = "" if is_private else bot_name
    return (
        f"这是{bot_name}的一个功能名哟，想知道这个功能怎么使用的话，请说：\n"
        f"{prefix}帮助 {question}"
    )


def i_do_not_know(options: Any, bot_name: str, rng: _Rng | None = None) -> str:
    """A random "I don't know" reply; ``options`` is one string or a list of them."""
    if isinstance(options, str):
        choices = [options]
    elif isinstance(options, (list, tuple)):
        choices = [str(option) for option in options]
    else:
        choices = []
    if not choices:
        choices = [DEFAULT_DO_NOT_KNOW]
    chooser = rng if rng is not None else random
    return choices[chooser.randrange(len(choices))].replace("{nickname}", bot_name)