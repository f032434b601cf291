# config_store.py
# Persistent bot configuration (config.json), write-through on every change

import asyncio
import json
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

VERIFICATION_METHODS = ("button", "word", "math")
CHALLENGE_METHODS = ("word", "math")


@dataclass
class Config:
    sus_role_id: Optional[int] = None
    verify_message_id: Optional[int] = None
    admin_prompt_message_id: Optional[int] = None
    verification_methods: List[str] = field(default_factory=lambda: ["button"])
    autoscan_enabled: bool = False
    process_delay_ms: int = 800
    daily_scan_cron: str = "0 0 * * *"
    log_channel_id: Optional[int] = None
    periodic_notify_enabled: bool = True
    periodic_notify_cron: str = "0,30 * * * *"
    periodic_notify_max_per_run: int = 2000
    periodic_notify_pace_ms: int = 1200
    periodic_mention_delete_seconds: int = 30

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], defaults: "Config" = None) -> "Config":
        base = (defaults or cls()).to_dict()
        known = {f.name for f in fields(cls)}
        base.update({k: v for k, v in (data or {}).items() if k in known})
        cfg = cls(**base)
        cfg.verification_methods = normalize_methods(cfg.verification_methods) or list(
            (defaults or cls()).verification_methods
        )
        return cfg

    def challenge_methods(self) -> List[str]:
        return [m for m in self.verification_methods if m in CHALLENGE_METHODS]


def normalize_methods(methods) -> List[str]:
    """Keep known method names in their canonical order, dropping duplicates."""
    if not isinstance(methods, (list, tuple, set)):
        return []
    wanted = {str(m).lower() for m in methods}
    return [m for m in VERIFICATION_METHODS if m in wanted]


class ConfigStore:
    """
    Owns the single Config instance for the process.

    Every mutation goes through update(), which applies the changes and
    persists the file while holding one lock, so concurrent admin commands
    cannot lose each other's writes.
    """

    def __init__(self, path, defaults: Config = None):
        self.path = Path(path)
        self.defaults = defaults or Config()
        self.config = Config.from_dict({}, self.defaults)
        self._lock = asyncio.Lock()

    def load(self) -> Config:
        try:
            if self.path.exists():
                raw = json.loads(self.path.read_text())
                self.config = Config.from_dict(raw, self.defaults)
            else:
                self.config = Config.from_dict({}, self.defaults)
        except (OSError, ValueError, TypeError) as e:
            print("Failed to load config, using defaults:", e)
            self.config = Config.from_dict({}, self.defaults)
        # write back so new default keys land in the file
        self.save()
        return self.config

    def save(self):
        try:
            self.path.write_text(json.dumps(self.config.to_dict(), indent=2))
        except OSError as e:
            print("Failed to save config:", e)

    async def update(self, **changes) -> Config:
        known = {f.name for f in fields(Config)}
        unknown = set(changes) - known
        if unknown:
            raise KeyError(f"unknown config field(s): {', '.join(sorted(unknown))}")
        if "verification_methods" in changes:
            methods = normalize_methods(changes["verification_methods"])
            if not methods:
                raise ValueError("at least one verification method is required")
            changes["verification_methods"] = methods
        async with self._lock:
            for key, value in changes.items():
                setattr(self.config, key, value)
            self.save()
        return self.config
