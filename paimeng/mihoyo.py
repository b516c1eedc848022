"""Client for the game record, role and daily sign-in web APIs."""

from __future__ import annotations

import hashlib
import random
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import requests

ACT_ID = "e202009291139501"
REQUEST_TIMEOUT = 60

_ROLES_URL = "https://api-takumi.mihoyo.com/binding/api/getUserGameRolesByCookie?game_biz=hk4e_cn"
_DAILY_NOTE_URL = (
    "https://api-takumi-record.mihoyo.com/game_record/app/genshin/api/dailyNote"
    "?server={server}&role_id={uid}"
)
_SIGN_URL = "https://api-takumi.mihoyo.com/event/bbs_sign_reward/sign"
_SIGN_INFO_URL = (
    "https://api-takumi.mihoyo.com/event/bbs_sign_reward/info?act_id={act}&region={region}&uid={uid}"
)
_SIGN_HOME_URL = f"https://api-takumi.mihoyo.com/event/bbs_sign_reward/home?act_id={ACT_ID}"

_DESKTOP_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) miHoYoBBS/2.11.1"
_RECORD_REFERER = "https://webstatic.mihoyo.com/app/community-game-records/index.html?v=6"
_SIGN_UA = (
    "Mozilla/5.0 (Linux; Android 5.1.1; f103 Build/LYZ28N; wv) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Version/4.0 Chrome/52.0.2743.100 Safari/537.36 miHoYoBBS/2.3.0"
)
_SIGN_REFERER = (
    "https://webstatic.mihoyo.com/bbs/event/signin-ys/index.html?bbs_auth_required=true"
    f"&act_id={ACT_ID}&utm_source=bbs&utm_medium=mys&utm_campaign=icon"
)
_HOME_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 13_2_3 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) miHoYoBBS/2.11.1"
)

_DS_APP_TYPE = "5"
_DS_SALT = "xV8v4Qu54lUKrEYFZkJhB8cuOh9Asafs"
_DS_APP_VERSION = "2.11.1"
_SIGN_DS_SALT = "h8w582wxwgqvahcdkpvdhbh2w9casgfl"
_SIGN_DS_APP_VERSION = "2.3.0"
_ALREADY_SIGNED = -5003


class MihoyoError(Exception):
    """Raised when a request fails or the service reports an error."""


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return 0


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


@dataclass
class MiyoResponse:
    retcode: int
    message: str
    data: Any = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> MiyoResponse:
        return cls(
            retcode=_as_int(payload.get("retcode")),
            message=_as_str(payload.get("message")),
            data=payload.get("data"),
        )


class MiyoRequest:
    """One request to the service, with its own headers."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.headers: dict[str, str] = {"Accept": "application/json"}

    def set_header(self, key: str, value: str) -> None:
        self.headers[key] = value

    def _do(self, method: str, body: Any = None) -> MiyoResponse:
        try:
            resp = requests.request(
                method,
                self.url,
                headers=self.headers,
                json=body,
                timeout=REQUEST_TIMEOUT,
            )
            payload = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise MihoyoError(str(exc)) from exc
        if not isinstance(payload, dict):
            raise MihoyoError("unexpected response body")
        return MiyoResponse.from_dict(payload)

    def execute(self) -> Any:
        """GET the URL and return the ``data`` part; raise on a non-zero retcode."""
        response = self._do("GET")
        if response.retcode != 0:
            raise MihoyoError(f"errcode: {response.retcode}, errmsg: {response.message}")
        return response.data

    def post(self, data: Any) -> MiyoResponse:
        """POST ``data`` as JSON and return the whole response."""
        return self._do("POST", data)


@dataclass
class GameRole:
    uid: str
    nickname: str
    region: str
    region_name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameRole:
        return cls(
            uid=_as_str(data.get("game_uid")),
            nickname=_as_str(data.get("nickname")),
            region=_as_str(data.get("region")),
            region_name=_as_str(data.get("region_name")),
        )


@dataclass
class GameRoleExpedition:
    avatar_side_icon: str
    status: str
    remained_time: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameRoleExpedition:
        return cls(
            avatar_side_icon=_as_str(data.get("avatar_side_icon")),
            status=_as_str(data.get("status")),
            remained_time=_as_str(data.get("remained_time")),
        )


@dataclass
class GenshinDailyNote:
    current_resin: int = 0
    max_resin: int = 0
    resin_recovery_time: str = ""
    finished_task_num: int = 0
    total_task_num: int = 0
    extra_task_reward_received: bool = False
    remain_resin_discount_num: int = 0
    resin_discount_num_limit: int = 0
    current_expedition_num: int = 0
    max_expedition_num: int = 0
    expeditions: list[GameRoleExpedition] = field(default_factory=list)
    current_home_coin: int = 0
    max_home_coin: int = 0
    home_coin_recovery_time: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GenshinDailyNote:
        expeditions = data.get("expeditions") or []
        return cls(
            current_resin=_as_int(data.get("current_resin")),
            max_resin=_as_int(data.get("max_resin")),
            resin_recovery_time=_as_str(data.get("resin_recovery_time")),
            finished_task_num=_as_int(data.get("finished_task_num")),
            total_task_num=_as_int(data.get("total_task_num")),
            extra_task_reward_received=bool(data.get("is_extra_task_reward_received")),
            remain_resin_discount_num=_as_int(data.get("remain_resin_discount_num")),
            resin_discount_num_limit=_as_int(data.get("resin_discount_num_limit")),
            current_expedition_num=_as_int(data.get("current_expedition_num")),
            max_expedition_num=_as_int(data.get("max_expedition_num")),
            expeditions=[GameRoleExpedition.from_dict(_as_dict(e)) for e in expeditions],
            current_home_coin=_as_int(data.get("current_home_coin")),
            max_home_coin=_as_int(data.get("max_home_coin")),
            home_coin_recovery_time=_as_str(data.get("home_coin_recovery_time")),
        )


@dataclass
class SignState:
    today: str = ""
    total_sign_day: int = 0
    is_sign: bool = False
    is_sub: bool = False
    month_first: bool = False
    first_bind: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SignState:
        return cls(
            today=_as_str(data.get("today")),
            total_sign_day=_as_int(data.get("total_sign_day")),
            is_sign=bool(data.get("is_sign")),
            is_sub=bool(data.get("is_sub")),
            month_first=bool(data.get("month_first")),
            first_bind=bool(data.get("first_bind")),
        )


@dataclass
class SignAward:
    name: str
    count: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SignAward:
        return cls(name=_as_str(data.get("name")), count=_as_int(data.get("cnt")))


def _record_request(url: str, cookie: str) -> MiyoRequest:
    request = MiyoRequest(url)
    request.set_header("User-Agent", _DESKTOP_UA)
    request.set_header("Referer", _RECORD_REFERER)
    request.set_header("Cookie", cookie)
    request.set_header("X-Requested-With", "com.mihoyo.hyperion")
    return request


def get_user_game_roles(cookie: str) -> list[GameRole]:
    """Return the game roles bound to the account behind ``cookie``."""
    data = _as_dict(_record_request(_ROLES_URL, cookie).execute())
    roles = [GameRole.from_dict(_as_dict(item)) for item in data.get("list") or []]
    if not roles:
        raise MihoyoError("没有找到绑定的角色")
    return roles


def get_user_game_role_by_uid(cookie: str, uid: str) -> GameRole:
    """Return the bound role whose uid is ``uid``."""
    for role in get_user_game_roles(cookie):
        if role.uid == uid:
            return role
    raise MihoyoError("没有找到UID为" + uid + "的角色")


def to_hex_digest(text: str) -> str:
    """Hex MD5 digest of ``text``."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def get_ds(url: str, data: str) -> tuple[str, str, str]:
    """Return ``(client type, app version, DS)`` for a record API request."""
    timestamp = int(time.time())
    rand = random.randrange(100000, 200000)
    parts = url.split("?")
    query = "&".join(sorted(parts[1].split("&"))) if len(parts) == 2 else ""
    digest = to_hex_digest(f"salt={_DS_SALT}&t={timestamp}&r={rand}&b={data}&q={query}")
    return _DS_APP_TYPE, _DS_APP_VERSION, f"{timestamp},{rand},{digest}"


def rand_string(length: int, seed: int) -> str:
    """A string of ``length`` characters from 0-9a-z, fixed by ``seed``."""
    rng = random.Random(seed)
    chars = []
    for _ in range(length):
        b = rng.randrange(36)
        if b > 9:
            b += 39
        chars.append(chr(b + 48))
    return "".join(chars)


def get_sign_ds() -> tuple[str, str, str]:
    """Return ``(client type, app version, DS)`` for the sign-in request."""
    timestamp = int(time.time())
    rand = rand_string(6, timestamp)
    digest = to_hex_digest(f"salt={_SIGN_DS_SALT}&t={timestamp}&r={rand}")
    return _DS_APP_TYPE, _SIGN_DS_APP_VERSION, f"{timestamp},{rand},{digest}"


def get_genshin_daily_note(cookie: str, uid: str, server: str) -> GenshinDailyNote:
    """Fetch the real-time note (resin, coins, expeditions) of a role."""
    request = _record_request(_DAILY_NOTE_URL.format(server=server, uid=uid), cookie)
    app_type, app_version, ds = get_ds(request.url, "")
    request.set_header("x-rpc-client_type", app_type)
    request.set_header("x-rpc-app_version", app_version)
    request.set_header("DS", ds)
    return GenshinDailyNote.from_dict(_as_dict(request.execute()))


def sign(cookie: str, role: GameRole) -> None:
    """Perform the daily sign-in; an already-signed day counts as success."""
    body = {"act_id": ACT_ID, "region": role.region, "uid": role.uid}
    request = MiyoRequest(_SIGN_URL)
    request.set_header("User-Agent", _SIGN_UA)
    request.set_header("Referer", _SIGN_REFERER)
    request.set_header("Accept-Encoding", "gzip, deflate")
    request.set_header("Cookie", cookie)
    request.set_header("x-rpc-device_id", str(uuid.uuid4()))
    app_type, app_version, ds = get_sign_ds()
    request.set_header("x-rpc-client_type", app_type)
    request.set_header("x-rpc-app_version", app_version)
    request.set_header("DS", ds)
    response = request.post(body)
    if response.retcode in (0, _ALREADY_SIGNED):
        return
    raise MihoyoError(f"sign response code={response.retcode}, message={response.message}")


def get_sign_state_info(cookie: str, role: GameRole) -> SignState:
    """Fetch the sign-in state of a role for the current month."""
    url = _SIGN_INFO_URL.format(act=ACT_ID, region=role.region, uid=role.uid)
    return SignState.from_dict(_as_dict(_record_request(url, cookie).execute()))


def get_sign_awards_list() -> list[SignAward]:
    """Fetch this month's sign-in rewards, one per day."""
    request = MiyoRequest(_SIGN_HOME_URL)
    request.set_header("x-rpc-app_version", "2.11.1")
    request.set_header("User-Agent", _HOME_UA)
    request.set_header("Referer", "https://webstatic.mihoyo.com/")
    request.set_header("x-rpc-client_type", "5")
    data = _as_dict(request.execute())
    return [SignAward.from_dict(_as_dict(item)) for item in data.get("awards") or []]