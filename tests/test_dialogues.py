import random

import pytest

from paimeng.dialogues import (
    DialogueFileError,
    DialoguesCollection,
    DialoguesMap,
    load_dialogues_from_dir,
    merge_maps,
    parse_dialogues_file,
    parse_dialogues_json,
    parse_dialogues_text,
    preprocess_file_answer,
)


def test_parse_text_collects_answers():
    dc = parse_dialogues_text("Q: 你好\nA: 你好呀\na：嗨\nq：再见\nA:拜拜\n")
    assert dc.load("你好") == ["你好呀", "嗨"]
    assert dc.load("再见") == ["拜拜"]
    assert len(dc) == 2


def test_parse_text_ignores_other_lines():
    dc = parse_dialogues_text("Q:a\n# comment\nA:b")
    assert dc.full == {"a": ["b"]}


@pytest.mark.parametrize(
    "content, message",
    [
        ("Q:   \nA:x", "问句长度为0"),
        ("A:x", "没有所对应的问句"),
        ("Q:x\nA:  ", "答句长度为0"),
    ],
)
def test_parse_text_errors(content, message):
    with pytest.raises(DialogueFileError, match=message):
        parse_dialogues_text(content)


def test_parse_json():
    dc = parse_dialogues_json('{"hi": ["hello", "hey"]}')
    assert dc.load("hi") == ["hello", "hey"]


def test_parse_json_rejects_bad_values():
    with pytest.raises(DialogueFileError):
        parse_dialogues_json('{"hi": 3}')


def test_auto_separate_reg_and_group_replacement():
    dc = DialoguesCollection({"/我叫(.+)/": ["你好{reg[1]}"], "x": ["y"]})
    dc.auto_separate_reg()
    assert "/我叫(.+)/" not in dc.full
    assert dc.regs == [("我叫(.+)", ["你好{reg[1]}"])]
    assert dc.load("我叫派蒙") == ["你好派蒙"]
    assert dc.load("x") == ["y"]
    assert dc.load("nothing") is None


def test_auto_separate_reg_invalid():
    dc = DialoguesCollection({"/(/": ["a"]})
    with pytest.raises(DialogueFileError, match="不符合规范"):
        dc.auto_separate_reg()


def test_exact_match_wins_over_regex():
    dc = DialoguesCollection({"abc": ["exact"]}, [("a.c", ["regex"])])
    assert dc.load("abc") == ["exact"]
    assert dc.load("axc") == ["regex"]


def test_merge_maps_deduplicates():
    merged = merge_maps({"a": ["1", "2"]}, None, {"a": ["2", "3"], "b": ["4"]})
    assert merged == {"a": ["1", "2", "3"], "b": ["4"]}


def test_collection_merge_regexes():
    first = DialoguesCollection({"q": ["a"]}, [("x+", ["1"])])
    second = DialoguesCollection({"q": ["b"]}, [("x+", ["1", "2"]), ("y", ["3"])])
    first.merge(second)
    assert first.load("q") == ["a", "b"]
    assert first.regs == [("x+", ["1", "2"]), ("y", ["3"])]


def test_dialogues_map_merge_and_clear():
    dm = DialoguesMap()
    dm.merge(5, DialoguesCollection({"q": ["a"]}))
    dm.merge(5, DialoguesCollection({"q": ["b"]}))
    assert dm.load(5, "q") == ["a", "b"]
    assert dm.load(6, "q") is None
    dm.clear()
    assert dm.load(5, "q") is None


def test_random_answer_is_one_of_answers():
    dm = DialoguesMap()
    dm.merge(0, DialoguesCollection({"q": ["a", "b", "c"]}))
    rng = random.Random(1)
    for _ in range(10):
        assert dm.random_answer(0, "q", rng) in {"a", "b", "c"}
    assert dm.random_answer(0, "none", rng) is None


def test_parse_file_formats(tmp_path):
    text_file = tmp_path / "a.txt"
    text_file.write_text("Q:/(\\d+)号/\nA:第{reg[1]}个", encoding="utf-8")
    assert parse_dialogues_file(text_file).load("3号") == ["第3个"]

    empty = tmp_path / "empty.txt"
    empty.write_bytes(b"")
    assert len(parse_dialogues_file(empty)) == 0

    bad = tmp_path / "bad.txt"
    bad.write_text("hello", encoding="utf-8")
    with pytest.raises(DialogueFileError, match="文件格式错误"):
        parse_dialogues_file(bad)

    with pytest.raises(DialogueFileError):
        parse_dialogues_file(tmp_path / "missing.txt")


def test_load_from_dir_assigns_groups(tmp_path):
    (tmp_path / "0.txt").write_text("Q:g\nA:global", encoding="utf-8")
    (tmp_path / "11,22.json").write_text('{"h": ["group"]}', encoding="utf-8")
    (tmp_path / "broken.txt").write_text("nope", encoding="utf-8")
    dm = DialoguesMap()
    dm.merge(99, DialoguesCollection({"old": ["x"]}))
    assert load_dialogues_from_dir(dm, tmp_path) == 2
    assert dm.load(0, "g") == ["global"]
    assert dm.load(11, "h") == ["group"]
    assert dm.load(22, "h") == ["group"]
    assert dm.load(0, "h") is None
    assert dm.load(99, "old") is None


def test_load_from_missing_dir(tmp_path):
    dm = DialoguesMap()
    assert load_dialogues_from_dir(dm, tmp_path / "nope") == 0


def test_preprocess_file_answer():
    result = preprocess_file_answer("{bot}叫{nickname}({id})\\n好", "派蒙", "旅行者", 42)
    assert result == "派蒙叫旅行者(42)\n好"