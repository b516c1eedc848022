import random

import pytest

from paimeng.chat import DialogueStore, i_do_not_know, plugin_name_reply, who_are_you
from paimeng.dialogues import DialoguesCollection, DialoguesMap


@pytest.fixture
def store():
    with DialogueStore(":memory:") as s:
        yield s


def test_set_and_get(store):
    store.set_dialogue(1, "hi", "hello")
    assert store.get_dialogue(1, "hi") == "hello"
    assert store.get_dialogue(2, "hi") is None


def test_set_replaces_answer(store):
    store.set_dialogue(1, "hi", "hello")
    store.set_dialogue(1, "hi", "hey")
    assert store.get_dialogue(1, "hi") == "hey"


def test_delete(store):
    store.set_dialogue(1, "hi", "hello")
    store.delete_dialogue(1, "hi")
    assert store.get_dialogue(1, "hi") is None


def test_delete_matches_reduced_image_question(store):
    store.set_dialogue(1, "[CQ:image,file=a.jpg]", "pic")
    store.delete_dialogue(1, "[CQ:image,file=a.jpg,url=http://example.com/a.jpg]")
    assert store.get_dialogue(1, "[CQ:image,file=a.jpg]") is None


def test_all_questions_sorted_and_unique(store):
    store.set_dialogue(1, "b", "x")
    store.set_dialogue(0, "a", "x")
    store.set_dialogue(0, "b", "y")
    store.set_dialogue(2, "c", "z")
    assert store.all_questions(1) == ["a", "b"]
    assert store.question_at(1, 1) == "b"
    assert store.question_at(1, 2) == ""
    assert store.question_at(1, -1) == ""


def test_diy_dialogue_prefers_group(store):
    store.set_dialogue(0, "q", "global")
    store.set_dialogue(5, "q", "group")
    assert store.diy_dialogue(5, "q") == "group"
    assert store.diy_dialogue(6, "q") == "global"
    assert store.diy_dialogue(5, "") is None


def test_falls_back_to_files():
    files = DialoguesMap()
    files.merge(0, DialoguesCollection({"f": ["from file"]}))
    with DialogueStore(":memory:", files) as s:
        assert s.diy_dialogue(3, "f", random.Random(0)) == "from file"
        s.set_dialogue(0, "f", "from db")
        assert s.diy_dialogue(3, "f") == "from db"


def test_who_are_you():
    assert who_are_you("你是谁", "intro") == "intro"
    assert who_are_you("自我介绍", "intro") == "intro"
    assert who_are_you("天气", "intro") is None


def test_plugin_name_reply():
    private = plugin_name_reply("聊天", ["聊天", "复读"], "派蒙", True)
    assert private == "这是派蒙的一个功能名哟，想知道这个功能怎么使用的话，请说：\n帮助 聊天"
    group = plugin_name_reply("聊天", ["聊天"], "派蒙", False)
    assert group.endswith("\n派蒙帮助 聊天")
    assert plugin_name_reply("other", ["聊天"], "派蒙", True) is None


def test_i_do_not_know_default():
    assert i_do_not_know(None, "派蒙") == "派蒙不知道哦"
    assert i_do_not_know([], "派蒙") == "派蒙不知道哦"


def test_i_do_not_know_choices():
    rng = random.Random(3)
    for _ in range(10):
        assert i_do_not_know(["{nickname}?", "嗯"], "派蒙", rng) in {"派蒙?", "嗯"}
    assert i_do_not_know("{nickname}!", "派蒙") == "派蒙!"