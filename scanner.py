# scanner.py
# Scanning members for platform usage

import asyncio
import csv
import datetime
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import discord

from discord_utils import TRANSIENT_ERRORS, resolve_member, utcnow
from platforms import get_member_platforms, is_web_only

DURATIONS = {
    "last_hour": datetime.timedelta(hours=1),
    "last_day": datetime.timedelta(days=1),
    "last_week": datetime.timedelta(days=7),
    "last_month": datetime.timedelta(days=30),
}
BULK_REPORT_HEADER = "user | server nickname | id | mention | platform(s)"
INLINE_REPORT_LIMIT = 300


class ScanFilterError(ValueError):
    """Raised for a duration or timestamp the scanner cannot use."""


def parse_timestamp(value: str) -> datetime.datetime:
    try:
        ts = datetime.datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        raise ScanFilterError(f"Invalid ISO timestamp: {value!r}") from None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=datetime.timezone.utc)
    return ts


@dataclass
class ScanFilter:
    member: Optional[discord.Member] = None
    duration: Optional[str] = None
    start: Optional[datetime.datetime] = None
    end: Optional[datetime.datetime] = None

    @classmethod
    def build(cls, member=None, duration: str = None, start: str = None, end: str = None) -> "ScanFilter":
        if duration:
            duration = duration.strip().lower()
            if duration not in DURATIONS:
                raise ScanFilterError(f"Unknown duration {duration!r}; use one of {', '.join(DURATIONS)}")
        return cls(
            member=member,
            duration=duration or None,
            start=parse_timestamp(start) if start else None,
            end=parse_timestamp(end) if end else None,
        )

    @property
    def has_window(self) -> bool:
        return bool(self.duration or self.start or self.end)

    def includes(self, joined_at: Optional[datetime.datetime], now: datetime.datetime) -> bool:
        if not self.has_window:
            return True
        if joined_at is None:
            return False
        if joined_at.tzinfo is None:
            joined_at = joined_at.replace(tzinfo=datetime.timezone.utc)
        if self.duration and joined_at < now - DURATIONS[self.duration]:
            return False
        if self.start and joined_at < self.start:
            return False
        if self.end and joined_at > self.end:
            return False
        return True


@dataclass
class BulkScanRow:
    member_id: int
    tag: str
    display_name: str
    platforms: List[str] = field(default_factory=list)
    joined_at: Optional[datetime.datetime] = None

    @classmethod
    def from_member(cls, member) -> "BulkScanRow":
        return cls(
            member_id=member.id,
            tag=str(member),
            display_name=member.display_name,
            platforms=get_member_platforms(member),
            joined_at=member.joined_at,
        )

    @property
    def joined_iso(self) -> str:
        return self.joined_at.isoformat() if self.joined_at else ""

    def format(self) -> str:
        return f"{self.tag} | {self.display_name} | {self.member_id} | <@{self.member_id}> | {', '.join(self.platforms)}"


def matched_suspects(rows: Iterable[BulkScanRow]) -> List[BulkScanRow]:
    return [r for r in rows if is_web_only(r.platforms)]


def format_bulk_report(rows: List[BulkScanRow]) -> str:
    body = "\n".join(r.format() for r in rows)
    return f"Bulk scan completed ({len(rows)} members):\n{BULK_REPORT_HEADER}\n{body}"


def create_csv_for_scan(rows: List[BulkScanRow], directory: str = ".") -> str:
    fname = Path(directory) / f"scan_{int(utcnow().timestamp())}.csv"
    with open(fname, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["userId", "tag", "displayName", "platforms", "joinedAt"])
        for r in rows:
            writer.writerow([r.member_id, r.tag, r.display_name, "|".join(r.platforms), r.joined_iso])
    return str(fname)


class BulkScanner:
    def __init__(self, restrictions, config_store, clock: Callable[[], datetime.datetime] = utcnow,
                 sleep=asyncio.sleep):
        self.restrictions = restrictions
        self.config_store = config_store
        self.clock = clock
        self._sleep = sleep

    async def _members(self, guild) -> List[discord.Member]:
        cached = list(getattr(guild, "members", []) or [])
        if len(cached) > 1:
            print(f"perform_scan: using cached guild.members (count={len(cached)})")
            return cached
        print("perform_scan: guild.members cache empty or small; fetching members via API.")
        try:
            return [m async for m in guild.fetch_members(limit=None)]
        except (discord.HTTPException, *TRANSIENT_ERRORS) as e:
            print("perform_scan: fetch_members failed:", e)
            return cached

    async def scan(self, guild, scan_filter: ScanFilter = None) -> List[BulkScanRow]:
        scan_filter = scan_filter or ScanFilter()
        if scan_filter.member is not None:
            return [BulkScanRow.from_member(scan_filter.member)]

        rows: List[BulkScanRow] = []
        now = self.clock()
        for m in await self._members(guild):
            if m.bot:
                continue
            if not scan_filter.includes(m.joined_at, now):
                continue
            try:
                rows.append(BulkScanRow.from_member(m))
            except (AttributeError, TypeError) as exc:
                print("perform_scan: error processing member", getattr(m, "id", "<unknown>"), exc)
                traceback.print_exc()
        print(f"perform_scan: complete, matched rows={len(rows)}")
        return rows

    async def restrict_suspects(self, guild, rows: Iterable[BulkScanRow], reason: str = "Marked via scan applySus") -> int:
        """Restrict every web-only row, pausing ``process_delay_ms`` between members."""
        delay = self.config_store.config.process_delay_ms / 1000.0
        count = 0
        for row in matched_suspects(rows):
            member = await resolve_member(guild, row.member_id)
            if member is None:
                continue
            await self.restrictions.restrict(member, reason=reason)
            count += 1
            if delay > 0:
                await self._sleep(delay)
        return count

    async def run_autoscan(self, guild) -> int:
        """Daily autoscan: restrict web-only members who joined in the last day."""
        if not self.config_store.config.autoscan_enabled:
            return 0
        rows = await self.scan(guild, ScanFilter(duration="last_day"))
        count = await self.restrict_suspects(guild, rows, reason="Detected web-only by daily autoscan")
        print(f"autoscan: scanned {len(rows)} member(s), queued {count} for Sus")
        return count
