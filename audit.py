# audit.py
# Logging helper (non-notifying): audit records go to the log channel,
# or to the console when no log channel is configured.

from typing import Iterable, Optional

import discord

from discord_utils import TRANSIENT_ERRORS, resolve_channel, with_retries


def format_user_block(member, platforms: Iterable[str] = ()) -> str:
    platforms = list(platforms or [])
    return "\n".join([
        f"User: {member}",
        f"Server Nickname: {member.display_name}",
        f"ID: {member.id}",
        f"Mention: <@{member.id}>",
        f"Platform(s): {', '.join(platforms) if platforms else 'offline'}",
    ])


def split_message(text: str, limit: int = 1900):
    """Split ``text`` on line boundaries into pieces of at most ``limit`` chars."""
    chunks, current = [], ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


class AuditLog:
    def __init__(self, config_store, fallback_channel_id: int = 0):
        self.config_store = config_store
        self.fallback_channel_id = fallback_channel_id

    @property
    def channel_id(self) -> Optional[int]:
        return self.config_store.config.log_channel_id or self.fallback_channel_id or None

    async def append(self, guild: discord.Guild, text: str, csv_path: str = None):
        channel_id = self.channel_id
        if not channel_id or guild is None:
            print("[LOG]", text)
            return
        ch = await resolve_channel(guild, channel_id)
        if ch is None or not hasattr(ch, "send"):
            print("[LOG] channel not available, fallback to console:", text)
            return
        try:
            # disable allowed_mentions to avoid accidental pings
            for chunk in split_message(text):
                await with_retries(lambda: ch.send(content=chunk, allowed_mentions=discord.AllowedMentions.none()))
            if csv_path:
                await with_retries(lambda: ch.send(file=discord.File(csv_path), allowed_mentions=discord.AllowedMentions.none()))
        except (discord.HTTPException, OSError, *TRANSIENT_ERRORS) as e:
            print("Failed to send log:", e)
            print("[LOG]", text)
