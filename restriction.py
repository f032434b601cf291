# restriction.py
# Add/remove the Sus role through the action queue, with audit records
# and the self-deleting moderation mention.

import asyncio
import datetime
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import discord

from audit import format_user_block
from discord_utils import TRANSIENT_ERRORS, delete_later, resolve_channel, spawn, utcnow, with_retries
from platforms import get_member_platforms

MENTION_TEXT = "<@{user_id}> Please complete verification to regain access. Click **Verify** below."


@dataclass
class RestrictionRecord:
    member_id: int
    is_restricted: bool
    reason: str
    last_transition_at: datetime.datetime


class RestrictionStateManager:
    """
    Owns restricted/unrestricted status for members.

    The Sus role on the member is the only source of truth: the role list is
    read again inside every queued action right before the platform call, so
    redundant triggers never produce a second add or remove.
    """

    def __init__(self, config_store, queue, audit, verify_channel_id: int = 0,
                 sus_chat_channel_id: int = 0, role_name: str = "Sus",
                 clock: Callable[[], datetime.datetime] = utcnow):
        self.config_store = config_store
        self.queue = queue
        self.audit = audit
        self.verify_channel_id = verify_channel_id
        self.sus_chat_channel_id = sus_chat_channel_id
        self.role_name = role_name
        self.clock = clock
        self.records: Dict[int, RestrictionRecord] = {}

    @property
    def role_id(self) -> Optional[int]:
        return self.config_store.config.sus_role_id

    def is_restricted(self, member) -> bool:
        role_id = self.role_id
        if not role_id or member is None:
            return False
        return any(r.id == role_id for r in member.roles)

    def record_for(self, member_id: int) -> Optional[RestrictionRecord]:
        return self.records.get(member_id)

    def _record(self, member_id: int, restricted: bool, reason: str):
        self.records[member_id] = RestrictionRecord(member_id, restricted, reason, self.clock())

    async def _refresh(self, member):
        try:
            return await with_retries(lambda: member.guild.fetch_member(member.id))
        except (discord.HTTPException, *TRANSIENT_ERRORS) as e:
            print(f"Could not refresh member {member.id}, using cached copy:", repr(e))
            return member

    def _role_for(self, guild):
        return guild.get_role(self.role_id) or discord.Object(id=self.role_id)

    def _watch(self, future: asyncio.Future, guild, member, action: str):
        def done(f: asyncio.Future):
            if f.cancelled():
                return
            exc = f.exception()
            if exc is not None:
                print(f"Failed to {action} {member} ({member.id}):", repr(exc))
                spawn(self.audit.append(guild, f"⚠️ Failed to {action} {member} (ID {member.id}): {exc}"))
        future.add_done_callback(done)
        return future

    # -------------------------
    # restrict
    # -------------------------
    async def restrict(self, member, reason: str = "Marked Sus") -> Optional[asyncio.Future]:
        if not self.role_id:
            print("restrict: no Sus role configured, skipping", member)
            return None
        if self.is_restricted(member):
            await self.audit.append(
                member.guild,
                f"User already Sus:\n{format_user_block(member, get_member_platforms(member))}\nAction: {reason}",
            )
            return None
        future = self.queue.enqueue(lambda: self._add_role(member, reason))
        return self._watch(future, member.guild, member, "mark Sus")

    async def _add_role(self, member, reason: str) -> bool:
        guild = member.guild
        snapshot = get_member_platforms(member)
        current = await self._refresh(member)
        if self.is_restricted(current):
            print(f"restrict: {member} already holds the Sus role, nothing to do")
            await self.audit.append(
                guild,
                f"User already Sus:\n{format_user_block(member, get_member_platforms(current) or snapshot)}\nAction: {reason}",
            )
            return False
        await current.add_roles(self._role_for(guild), reason=reason)
        self._record(member.id, True, reason)
        platforms = get_member_platforms(current) or snapshot
        await self.audit.append(guild, f"{format_user_block(member, platforms)}\nAction: {reason}")
        await self.send_immediate_mention(guild, member.id)
        return True

    async def send_immediate_mention(self, guild, user_id: int):
        """
        Post a moderation-visible mention in the verify channel that removes
        itself after ``periodic_mention_delete_seconds``. A TTL of zero or
        less disables the notice. The mention does not ping the user.
        """
        ttl = self.config_store.config.periodic_mention_delete_seconds
        if not ttl or ttl <= 0:
            return None
        ch = await resolve_channel(guild, self.verify_channel_id)
        if ch is None or not hasattr(ch, "send"):
            return None
        try:
            sent = await with_retries(lambda: ch.send(
                MENTION_TEXT.format(user_id=user_id),
                allowed_mentions=discord.AllowedMentions.none(),
            ))
        except (discord.HTTPException, *TRANSIENT_ERRORS) as e:
            print("send_immediate_mention error:", repr(e))
            return None
        delete_later(sent, ttl)
        return sent

    # -------------------------
    # unrestrict
    # -------------------------
    async def unrestrict(self, member, actor=None, reason: str = "Verified") -> Optional[asyncio.Future]:
        if not self.role_id or not self.is_restricted(member):
            return None
        future = self.queue.enqueue(lambda: self._remove_role(member, actor, reason))
        return self._watch(future, member.guild, member, "remove Sus from")

    async def _remove_role(self, member, actor, reason: str) -> bool:
        guild = member.guild
        current = await self._refresh(member)
        if not self.is_restricted(current):
            print(f"unrestrict: {member} no longer holds the Sus role, nothing to do")
            await self.audit.append(
                guild,
                f"User already verified:\n{format_user_block(member, get_member_platforms(current))}\nAction: {reason}",
            )
            return False
        by = actor if actor else "system"
        await current.remove_roles(self._role_for(guild), reason=f"{reason} by {by}")
        self._record(member.id, False, reason)
        by_mention = f"<@{actor.id}>" if actor else "system"
        await self.audit.append(
            guild,
            f"✅\n{format_user_block(member, get_member_platforms(member))}\nAction: {reason} by {by_mention}",
        )
        return True

    # -------------------------
    # role bootstrap
    # -------------------------
    async def ensure_role(self, guild):
        """
        Find or create the Sus role, remember its id, and hide every channel
        from it except the verify and sus-chat channels.
        """
        role = guild.get_role(self.role_id) if self.role_id else None
        if role is None:
            role = discord.utils.get(guild.roles, name=self.role_name)
        if role is None:
            try:
                role = await guild.create_role(name=self.role_name, reason="Create Sus role for verification")
            except discord.HTTPException as e:
                print("Could not create Sus role:", e)
                return None
        if self.role_id != role.id:
            await self.config_store.update(sus_role_id=role.id)

        allowed = {self.verify_channel_id, self.sus_chat_channel_id}
        for ch in guild.channels:
            try:
                if ch.id in allowed:
                    await ch.set_permissions(role, view_channel=True, send_messages=True)
                else:
                    await ch.set_permissions(role, view_channel=False)
            except discord.HTTPException as e:
                print(f"ensure_role: could not set overwrites on {ch}:", e)
        return role
