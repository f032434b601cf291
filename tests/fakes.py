"""
Web Client Detector - Test Doubles
==================================

Lightweight stand-ins for the discord objects the components touch.
"""

import datetime
from unittest.mock import AsyncMock, MagicMock

import discord


GUILD_ID = 100000000000000001
VERIFY_CHANNEL_ID = 200000000000000001
SUS_CHAT_CHANNEL_ID = 200000000000000002
LOG_CHANNEL_ID = 200000000000000003
SUS_ROLE_ID = 300000000000000001
BOT_USER_ID = 400000000000000001


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime.datetime(2024, 6, 1, 12, 0, tzinfo=datetime.timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += datetime.timedelta(**kwargs)


class FakeRole:
    def __init__(self, role_id, name="Sus"):
        self.id = role_id
        self.name = name
        self.members = []
        self.mention = f"<@&{role_id}>"


def make_message(message_id=1, author_id=BOT_USER_ID, content=""):
    message = MagicMock()
    message.id = message_id
    message.content = content
    message.author = MagicMock()
    message.author.id = author_id
    message.delete = AsyncMock()
    message.edit = AsyncMock()
    return message


def make_channel(channel_id=VERIFY_CHANNEL_ID):
    channel = MagicMock()
    channel.id = channel_id
    channel.mention = f"<#{channel_id}>"
    channel.sent = []

    async def send(*args, **kwargs):
        msg = make_message(message_id=len(channel.sent) + 1000, content=args[0] if args else kwargs.get("content", ""))
        channel.sent.append(msg)
        return msg

    channel.send = AsyncMock(side_effect=send)
    channel.set_permissions = AsyncMock()
    return channel


def make_guild(roles=(), channels=()):
    guild = MagicMock()
    guild.id = GUILD_ID
    guild.owner_id = 1
    guild.roles = list(roles)
    guild.members = []
    guild.chunked = True
    guild.channels = list(channels)
    guild.get_role = MagicMock(side_effect=lambda rid: next((r for r in guild.roles if r.id == rid), None))
    guild.get_channel = MagicMock(side_effect=lambda cid: next((c for c in guild.channels if c.id == cid), None))

    def get_member(mid):
        return next((m for m in guild.members if m.id == mid), None)

    async def fetch_member(mid):
        member = get_member(mid)
        if member is None:
            raise discord.NotFound(MagicMock(status=404, reason="Not Found"), "Unknown Member")
        return member

    guild.get_member = MagicMock(side_effect=get_member)
    guild.fetch_member = AsyncMock(side_effect=fetch_member)
    return guild


def make_member(member_id, guild, platforms=("desktop",), roles=None, bot=False, joined_at=None, name=None):
    member = MagicMock()
    member.id = member_id
    member.guild = guild
    member.bot = bot
    member.roles = list(roles or [])
    member.joined_at = joined_at
    member.display_name = f"Nick{member_id}"
    member.mention = f"<@{member_id}>"
    member.__str__.return_value = name or f"user{member_id}"
    for surface in ("desktop", "mobile", "web"):
        setattr(member, f"{surface}_status", "online" if surface in platforms else "offline")
    member.client_status = None
    member.presence = None

    async def add_roles(role, reason=None):
        member.roles.append(role)

    async def remove_roles(role, reason=None):
        member.roles[:] = [r for r in member.roles if r.id != role.id]

    member.add_roles = AsyncMock(side_effect=add_roles)
    member.remove_roles = AsyncMock(side_effect=remove_roles)
    guild.members.append(member)
    return member
