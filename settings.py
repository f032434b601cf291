# settings.py
# Process environment for the web client detector

import os
import json
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv


def _int_env(name: str, default: int = 0) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"settings: {name}={raw!r} is not an integer, using {default}")
        return default


def _admin_role_ids(raw: Optional[str]) -> List[int]:
    # Normalize admin role ids to ints, skipping anything unparsable
    try:
        values = json.loads(raw or "[]") or []
    except ValueError:
        print("settings: ADMIN_ROLE_IDS is not valid JSON, ignoring it")
        return []
    ids: List[int] = []
    for rid in values:
        try:
            ids.append(int(rid))
        except (TypeError, ValueError):
            pass
    return ids


@dataclass
class Settings:
    bot_token: Optional[str] = None
    client_id: Optional[str] = None
    guild_id: int = 0
    verify_channel_id: int = 0
    sus_chat_channel_id: int = 0
    sus_log_channel_id: int = 0
    sus_role_name: str = "Sus"
    admin_role_ids: List[int] = field(default_factory=list)
    process_delay_ms: int = 800
    command_prefix: str = "!"
    notify_timezone: str = "Asia/Beirut"
    config_path: str = "config.json"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            bot_token=os.getenv("BOT_TOKEN"),
            client_id=os.getenv("CLIENT_ID"),
            guild_id=_int_env("GUILD_ID"),
            verify_channel_id=_int_env("VERIFY_CHANNEL_ID"),
            sus_chat_channel_id=_int_env("SUS_CHAT_CHANNEL_ID"),
            sus_log_channel_id=_int_env("SUS_LOG_CHANNEL_ID"),
            sus_role_name=os.getenv("SUS_ROLE_NAME", "Sus"),
            admin_role_ids=_admin_role_ids(os.getenv("ADMIN_ROLE_IDS")),
            process_delay_ms=_int_env("PROCESS_DELAY_MS", 800),
            command_prefix=os.getenv("COMMAND_PREFIX", "!"),
            notify_timezone=os.getenv("NOTIFY_TIMEZONE", "Asia/Beirut"),
            config_path=os.getenv("CONFIG_PATH", "config.json"),
        )

    def missing_required(self) -> List[str]:
        """Names of the variables the bot cannot start without."""
        missing = []
        if not self.bot_token:
            missing.append("BOT_TOKEN")
        if not self.client_id:
            missing.append("CLIENT_ID")
        if not self.guild_id:
            missing.append("GUILD_ID")
        return missing
