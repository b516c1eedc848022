# paimeng

Building blocks for a group-chat bot, usable from any chat framework:

- **Custom dialogues** (`paimeng.dialogues`, `paimeng.chat`): question/answer
  sets loaded from text or JSON files, regular-expression questions with
  `{reg[i]}` substitution, per-group dialogues kept in SQLite
  (`DialogueStore`), and the built-in replies `who_are_you`,
  `plugin_name_reply` and `i_do_not_know`.
- **Game accounts** (`paimeng.accounts`, `paimeng.mihoyo`): a small SQLite
  key/value store, a user's game cookie and UID, game role lookup, the daily
  note and the daily check-in requests.
- **Daily note and check-in** (`paimeng.genshin_note`, `paimeng.genshin_sign`):
  `query` fetches the daily note and formats it as text; `sign` checks in once
  and reports the result; `SignService` stores each user's auto check-in
  setting and `auto_sign` checks in for every user who switched it on,
  returning a list of `PushTarget` messages to deliver.
- **Wish simulation** (`paimeng.draw_pool`, `paimeng.draw_sim`): wish banners
  stored as JSON (`PoolRepository`), pity counters per user (`DrawUserStore`),
  and single or multi-pull wishes (`Drawer.draw_cards`, at most 80 at a time).

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Dialogue files

A text dialogue file holds questions and answers line by line. A question may
have several answers; one of them is picked at random. A question written as
`/.../` is a regular expression, and `{reg[1]}`, `{reg[2]}`, … in its answers
stand for the matched groups. `preprocess_file_answer` fills in `{bot}`,
`{nickname}` and `{id}` and turns `\n` into line breaks.

```
Q: hello
A: hi there
A: hello, {nickname}
Q: /^I like (.+)$/
A: {bot} likes {reg[1]} too
```

A JSON dialogue file maps each question to a list of answers (regular
expressions written as `/.../` work here too):

```json
{"hello": ["hi there", "hello!"]}
```

The file name lists the groups a file applies to, separated by commas; `0`, or
a name without group numbers, means every group (for example `0.txt` or
`1001,1002.json`).

```python
from paimeng.dialogues import DialoguesMap, load_dialogues_from_dir

dialogues = DialoguesMap()
load_dialogues_from_dir(dialogues, "data/dialogues")
print(dialogues.load(0, "hello"))
```

Dialogues added at run time live in SQLite and fall back to the file
dialogues:

```python
from paimeng.chat import DialogueStore

with DialogueStore("data/chat.db", dialogues) as store:
    store.set_dialogue(1001, "ping", "pong")
    print(store.diy_dialogue(1001, "ping"))
    print(store.all_questions(1001))
```

## Game accounts

```python
from paimeng.accounts import AccountError, AccountStore, KeyValueStore

store = KeyValueStore("data/bot.db")
accounts = AccountStore(store)
accounts.put_cookie(10001, "placeholder")
accounts.put_uid(10001, "100000001")

try:
    uid, cookie = accounts.uid_and_cookie(10001)
except AccountError as exc:
    print(exc)
finally:
    store.close()
```

Network requests in `paimeng.mihoyo`, `paimeng.genshin_note` and
`paimeng.genshin_sign` raise `MihoyoError` on failure.

## Wish simulation

```python
import random

from paimeng.accounts import KeyValueStore
from paimeng.draw_pool import DrawUserStore, PoolRepository
from paimeng.draw_sim import Drawer

store = KeyValueStore("data/bot.db")
drawer = Drawer(PoolRepository("data/genshin/pool"), DrawUserStore(store), random.Random())
result = drawer.draw_cards(10001, 10, "常驻")
```

`draw_cards` returns the reply texts: the drawn items and, for more than one
pull, how many pulls since the last 4★ and 5★.

## What the package does not do

- It does not connect to any chat platform, parse commands or send messages;
  the caller passes questions in and delivers the returned texts and
  `PushTarget` lists.
- It does not schedule anything: call `SignService.auto_sign` from your own
  scheduler.
- It does not render images; the daily note, check-in report and wish results
  are plain text.
- It does not download banner data or character pictures; wish banners must be
  saved with `PoolRepository.save_pools`.
- It has no video-site subscription or push support.