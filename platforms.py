# platforms.py
# Presence normalization and the web-only detection rule

import traceback
from typing import Iterable, List, Set

WEB = "web"
PLATFORM_NAMES = ("desktop", "mobile", "web")


def _status_value_to_str(val) -> str:
    if val is None:
        return "offline"
    s = str(val)
    if not s:
        return "offline"
    return s.lower()


def _platform_for_key(key: str):
    key = str(key).lower()
    if "web" in key:
        return "web"
    if "mobile" in key or "phone" in key or "android" in key or "ios" in key:
        return "mobile"
    if "desktop" in key or "pc" in key:
        return "desktop"
    return None


def _collect_client_status(cs, platforms: Set[str]):
    if not cs:
        return
    if isinstance(cs, dict):
        for k, v in cs.items():
            name = _platform_for_key(k)
            if name and _status_value_to_str(v) != "offline":
                platforms.add(name)
        return
    for k in PLATFORM_NAMES:
        v = getattr(cs, k, None)
        if v is not None and _status_value_to_str(v) != "offline":
            platforms.add(k)


def get_member_platforms(member) -> List[str]:
    """Client surfaces the member is currently connected from, sorted."""
    try:
        platforms: Set[str] = set()
        # discord.py exposes per-surface status on Member directly
        for attr, name in (("desktop_status", "desktop"), ("mobile_status", "mobile"), ("web_status", "web")):
            val = getattr(member, attr, None)
            if val is not None and _status_value_to_str(val) != "offline":
                platforms.add(name)
        _collect_client_status(getattr(member, "client_status", None), platforms)
        presence = getattr(member, "presence", None)
        if presence is not None:
            _collect_client_status(getattr(presence, "client_status", None), platforms)
        return sorted(platforms)
    except (AttributeError, TypeError) as e:
        print("get_member_platforms error:", e)
        traceback.print_exc()
        return []


def is_web_only(platforms: Iterable[str]) -> bool:
    platforms = list(platforms or [])
    return len(platforms) == 1 and platforms[0] == WEB
