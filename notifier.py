# notifier.py
# Periodic reminder for members still holding the Sus role

import asyncio
from typing import List

import discord

from discord_utils import TRANSIENT_ERRORS, delete_later, resolve_channel, with_retries

MESSAGE_BUDGET = 1900
REMINDER_SUFFIX = " Please complete verification to regain access. Click **Verify** below."


def pack_mentions(mentions: List[str], budget: int = MESSAGE_BUDGET) -> List[str]:
    """
    Greedily join mentions with spaces into as few messages as possible,
    none longer than ``budget`` characters.
    """
    messages: List[str] = []
    current = ""
    for mention in mentions:
        candidate = f"{current} {mention}" if current else mention
        if len(candidate) > budget and current:
            messages.append(current)
            current = mention
        else:
            current = candidate
    if current:
        messages.append(current)
    return messages


class PeriodicNotifier:
    def __init__(self, config_store, audit, verify_channel_id: int, sleep=asyncio.sleep):
        self.config_store = config_store
        self.audit = audit
        self.verify_channel_id = verify_channel_id
        self._sleep = sleep

    async def _load_members(self, guild):
        # presences come with the gateway chunk, not with REST fetches
        try:
            if not getattr(guild, "chunked", True):
                await guild.chunk()
        except (discord.HTTPException, *TRANSIENT_ERRORS) as e:
            print("periodic_notifier: member chunk failed, using cache:", e)

    async def run(self, guild) -> int:
        """Mention every restricted member once; returns how many were mentioned."""
        config = self.config_store.config
        if not config.periodic_notify_enabled or guild is None:
            return 0
        role = guild.get_role(config.sus_role_id) if config.sus_role_id else None
        if role is None:
            return 0
        await self._load_members(guild)
        suspects = [m for m in role.members if not m.bot]
        if not suspects:
            return 0

        limit = config.periodic_notify_max_per_run
        await self.audit.append(guild, f"Periodic notifier: found {len(suspects)} Sus members. Will mention up to {limit} this run.")
        mentions = [f"<@{m.id}>" for m in suspects[:limit]]
        messages = pack_mentions(mentions, MESSAGE_BUDGET - len(REMINDER_SUFFIX))

        ch = await resolve_channel(guild, self.verify_channel_id)
        if ch is None or not hasattr(ch, "send"):
            print("periodic_notifier: verify channel not available")
            await self.audit.append(guild, "Periodic notifier queued 0 mention(s): verify channel not available.")
            return 0
        ttl = config.periodic_mention_delete_seconds
        pace = config.periodic_notify_pace_ms / 1000.0
        for i, text in enumerate(messages):
            if i and pace > 0:
                await self._sleep(pace)
            try:
                # build mention strings but disable allowed_mentions to avoid pings
                sent = await with_retries(lambda: ch.send(f"{text}{REMINDER_SUFFIX}", allowed_mentions=discord.AllowedMentions.none()))
            except (discord.HTTPException, *TRANSIENT_ERRORS) as e:
                print("periodic_notifier send error:", e)
                continue
            if ttl and ttl > 0:
                delete_later(sent, ttl)
        await self.audit.append(guild, f"Periodic notifier queued {len(mentions)} mention(s) in {len(messages)} message(s).")
        return len(mentions)
