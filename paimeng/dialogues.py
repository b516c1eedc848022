"""Question/answer collections loaded from dialogue files."""

from __future__ import annotations

import json
import logging
import re
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Protocol

log = logging.getLogger(__name__)

MAX_FILE_SIZE = 1024 * 1024 * 1024
GLOBAL_GROUP = 0

_QUESTION_PREFIXES = ("Q:", "q:", "Q：", "q：")
_ANSWER_PREFIXES = ("A:", "a:", "A：", "a：")
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


class _Rng(Protocol):
    def randrange(self, stop: int) -> int: ...


class DialogueFileError(Exception):
    """Raised when a dialogue file cannot be read or parsed."""


def _merge_unique(*lists: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for values in lists:
        for value in values:
            seen.setdefault(value, None)
    return list(seen)


@dataclass
class _RegexDialogue:
    pattern: re.Pattern[str]
    answers: list[str]

    def answers_for(self, question: str) -> list[str]:
        """Answers with ``{reg[i]}`` replaced by the i-th group matched in ``question``."""
        match = self.pattern.search(question)
        if match is None or not match.groups():
            return self.answers
        answers = list(self.answers)
        for number, group in enumerate(match.groups(), start=1):
            key = f"{{reg[{number}]}}"
            answers = [answer.replace(key, group or "") for answer in answers]
        return answers


def merge_maps(*args: Mapping[str, list[str]] | None) -> dict[str, list[str]]:
    """Merge question maps; answers of a shared question are joined without repeats."""
    merged: dict[str, list[str]] = {}
    for mapping in args:
        if mapping is None:
            continue
        for question, answers in mapping.items():
            if question in merged:
                merged[question] = _merge_unique(merged[question], answers)
            else:
                merged[question] = list(answers)
    return merged


class DialoguesCollection:
    """Exact-match and regular-expression questions with their answers."""

    def __init__(
        self,
        full: Mapping[str, list[str]] | None = None,
        regs: Iterable[tuple[str | re.Pattern[str], list[str]]] | None = None,
    ) -> None:
        self.full: dict[str, list[str]] = {q: list(a) for q, a in (full or {}).items()}
        self._regs: list[_RegexDialogue] = []
        for pattern, answers in regs or ():
            compiled = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)
            self._regs.append(_RegexDialogue(compiled, list(answers)))

    @property
    def regs(self) -> list[tuple[str, list[str]]]:
        """The regular-expression questions as ``(pattern, answers)`` pairs."""
        return [(reg.pattern.pattern, list(reg.answers)) for reg in self._regs]

    def __len__(self) -> int:
        return len(self.full) + len(self._regs)

    def load(self, question: str) -> list[str] | None:
        """Answers to ``question``: an exact match first, then the first matching pattern."""
        if question in self.full:
            return self.full[question]
        for reg in self._regs:
            if reg.pattern.search(question):
                return reg.answers_for(question)
        return None

    def auto_separate_reg(self) -> None:
        """Move questions written as ``/pattern/`` into the regular-expression list."""
        for question, answers in list(self.full.items()):
            if len(question) >= 3 and question.startswith("/") and question.endswith("/"):
                try:
                    pattern = re.compile(question[1:-1])
                except re.error as exc:
                    raise DialogueFileError(f"正则{question}不符合规范：{exc}") from exc
                self._regs.append(_RegexDialogue(pattern, answers))
                del self.full[question]

    def merge(self, other: DialoguesCollection | None) -> None:
        """Merge another collection into this one."""
        if other is None:
            return
        self.full = merge_maps(self.full, other.full)
        for reg in other._regs:
            same = next(
                (mine for mine in self._regs if mine.pattern.pattern == reg.pattern.pattern), None
            )
            if same is not None:
                same.answers = _merge_unique(same.answers, reg.answers)
            else:
                self._regs.append(_RegexDialogue(reg.pattern, list(reg.answers)))

    def copy(self) -> DialoguesCollection:
        result = DialoguesCollection(self.full)
        result._regs = [_RegexDialogue(r.pattern, list(r.answers)) for r in self._regs]
        return result


class DialoguesMap:
    """Dialogue collections per group; group 0 holds the global ones."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._collections: dict[int, DialoguesCollection] = {}

    def load(self, group_id: int, question: str) -> list[str] | None:
        with self._lock:
            collection = self._collections.get(group_id)
            if collection is None:
                return None
            return collection.load(question)

    def clear(self) -> None:
        with self._lock:
            self._collections.clear()

    def merge(self, group_id: int, collection: DialoguesCollection) -> None:
        with self._lock:
            existing = self._collections.get(group_id)
            if existing is None:
                self._collections[group_id] = collection.copy()
            else:
                existing.merge(collection)

    def random_answer(
        self, group_id: int, question: str, rng: _Rng | None = None
    ) -> str | None:
        """One answer to ``question`` picked at random, or None."""
        answers = self.load(group_id, question)
        if not answers:
            return None
        chooser = rng if rng is not None else _default_rng()
        return answers[chooser.randrange(len(answers))]


def _default_rng() -> _Rng:
    import random

    return random.Random()


def _prefix_len(line: str, prefixes: Iterable[str]) -> int:
    for prefix in prefixes:
        if line.startswith(prefix):
            return len(prefix)
    return 0


def parse_dialogues_text(content: str | bytes) -> DialoguesCollection:
    """Parse ``Q:``/``A:`` lines; each answer belongs to the latest question."""
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    result: dict[str, list[str]] = {}
    current = ""
    for index, line in enumerate(content.split("\n")):
        q_len = _prefix_len(line, _QUESTION_PREFIXES)
        if q_len:
            current = line[q_len:].strip()
            if not current:
                raise DialogueFileError(f"第{index}行: 问句长度为0")
            continue
        a_len = _prefix_len(line, _ANSWER_PREFIXES)
        if a_len:
            if not current:
                raise DialogueFileError(f"第{index}行: 没有所对应的问句")
            answer = line[a_len:].strip()
            if not answer:
                raise DialogueFileError(f"第{index}行: 答句长度为0")
            result.setdefault(current, []).append(answer)
    return DialoguesCollection(result)


def parse_dialogues_json(content: str | bytes) -> DialoguesCollection:
    """Parse a JSON object mapping each question to a list of answers."""
    try:
        data = json.loads(content)
    except ValueError as exc:
        raise DialogueFileError(str(exc)) from exc
    if not isinstance(data, dict):
        raise DialogueFileError("JSON问答集必须为对象")
    result: dict[str, list[str]] = {}
    for question, answers in data.items():
        if answers is None:
            answers = []
        if not isinstance(answers, list) or not all(isinstance(a, str) for a in answers):
            raise DialogueFileError(f"问句{question}的答句必须为字符串数组")
        result[question] = answers
    return DialoguesCollection(result)


def parse_dialogues_file(filename: str | PathLike[str]) -> DialoguesCollection:
    """Parse a dialogue file in JSON or ``Q:``/``A:`` text form."""
    path = Path(filename)
    try:
        if path.stat().st_size >= MAX_FILE_SIZE:
            raise DialogueFileError("文件过大(>1GB)")
        content = path.read_bytes()
    except OSError as exc:
        raise DialogueFileError(str(exc)) from exc
    if not content:
        return DialoguesCollection()
    first = content[:1]
    if first == b"{":
        collection = parse_dialogues_json(content)
    elif first in (b"Q", b"q"):
        collection = parse_dialogues_text(content)
    else:
        raise DialogueFileError("文件格式错误或暂不支持")
    collection.auto_separate_reg()
    return collection


def _group_ids(filename: str) -> list[int]:
    stem = filename.split(".", 1)[0]
    ids = [int(part) for part in _merge_unique(stem.split(",")) if _INTEGER_RE.fullmatch(part)]
    return ids or [GLOBAL_GROUP]


def load_dialogues_from_dir(dialogues: DialoguesMap, directory: str | PathLike[str]) -> int:
    """Reload ``dialogues`` from every file under ``directory``; return how many loaded.

    A file named ``123,456.txt`` applies to groups 123 and 456; other names apply globally.
    """
    dialogues.clear()
    log.info("reloading dialogue files, previous dialogues cleared")
    root = Path(directory)
    if not root.is_dir():
        return 0
    loaded = 0
    for path in sorted(p for p in root.rglob("*") if p.is_file()):
        ids = _group_ids(path.name)
        try:
            collection = parse_dialogues_file(path)
        except DialogueFileError as exc:
            log.warning("parsing dialogue file %s failed: %s", path, exc)
            continue
        for group_id in ids:
            dialogues.merge(group_id, collection)
        loaded += 1
        log.info("loaded %d dialogues for groups %s from %s", len(collection), ids, path)
    return loaded


def preprocess_file_answer(answer: str, bot_name: str, nickname: str, user_id: int) -> str:
    """Fill in ``{bot}``, ``{nickname}`` and ``{id}`` and turn ``\\n`` into line breaks."""
    return (
        answer.replace("{bot}", bot_name)
        .replace("{nickname}", nickname)
        .replace("{id}", str(user_id))
        .replace("\\n", "\n")
    )