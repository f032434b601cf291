# setup_wizard.py
# Interactive setup flow and the persistent verify prompt

import asyncio
import datetime
import enum
import secrets
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import discord

from config_store import normalize_methods
from discord_utils import TRANSIENT_ERRORS, resolve_channel, safe_interaction_reply, spawn, utcnow, with_retries

SETUP_TIMEOUT = 120
CUSTOM_ID_PREFIX = "setup"
HISTORY_PAGE_SIZE = 100
HISTORY_MAX_PAGES = 5
INIT_SETUP_CUSTOM_ID = "init_setup"


def build_persistent_verify_text(methods: List[str]) -> str:
    return "\n".join([
        "**Server verification — click Verify below to begin**",
        "",
        "You were placed into verification. Don’t worry — verifying will restore access if this was a mistake.",
        "",
        "Please click **Verify** in this channel and follow the private instructions to regain access.",
        "",
        f"Methods enabled: {', '.join(methods)}",
    ])


class SetupState(enum.Enum):
    AWAITING_SELECTION = "awaiting_selection"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    APPLIED = "applied"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


OPEN_STATES = (SetupState.AWAITING_SELECTION, SetupState.AWAITING_CONFIRMATION)


@dataclass
class SetupSession:
    session_id: str
    owner_id: int
    channel_id: int
    expires_at: datetime.datetime
    selected: List[str] = field(default_factory=list)
    state: SetupState = SetupState.AWAITING_SELECTION
    message: Optional[discord.Message] = None

    def custom_id(self, action: str) -> str:
        return f"{CUSTOM_ID_PREFIX}:{self.session_id}:{action}"

    @property
    def is_open(self) -> bool:
        return self.state in OPEN_STATES

    def is_expired(self, now: datetime.datetime) -> bool:
        return now >= self.expires_at

    def select(self, values) -> List[str]:
        if not self.is_open:
            raise RuntimeError(f"cannot select methods in state {self.state.value}")
        self.selected = normalize_methods(values)
        self.state = SetupState.AWAITING_CONFIRMATION if self.selected else SetupState.AWAITING_SELECTION
        return self.selected


def parse_custom_id(custom_id: str) -> Optional[Tuple[str, str]]:
    parts = (custom_id or "").split(":")
    if len(parts) != 3 or parts[0] != CUSTOM_ID_PREFIX:
        return None
    return parts[1], parts[2]


class SetupWizard:
    """
    Short-lived, single-admin setup sessions.

    Each session's controls carry its id in their custom ids, so incoming
    component interactions are routed to exactly one session. Interactions
    from anyone other than the session owner are dropped without a reply.
    """

    def __init__(self, config_store, restrictions, verify_channel_id: int,
                 bot_user_id: Callable[[], int], prompt_view_factory: Callable[[], discord.ui.View],
                 clock: Callable[[], datetime.datetime] = utcnow, timeout: float = SETUP_TIMEOUT):
        self.config_store = config_store
        self.restrictions = restrictions
        self.verify_channel_id = verify_channel_id
        self.bot_user_id = bot_user_id
        self.prompt_view_factory = prompt_view_factory
        self.clock = clock
        self.timeout = timeout
        self.sessions: Dict[str, SetupSession] = {}

    # -------------------------
    # session lifecycle
    # -------------------------
    def _build_view(self, session: SetupSession) -> discord.ui.View:
        select = discord.ui.Select(
            custom_id=session.custom_id("select"),
            placeholder="Select verification methods",
            min_values=1,
            max_values=3,
            options=[
                discord.SelectOption(label="Quick Verify Button", value="button", description="One-click verify (fast)"),
                discord.SelectOption(label="Per-user typed word", value="word", description="User types generated word (modal)"),
                discord.SelectOption(label="Math problem", value="math", description="User solves math problem (modal)"),
            ],
        )
        view = discord.ui.View(timeout=self.timeout)
        view.add_item(select)
        view.add_item(discord.ui.Button(label="Confirm", custom_id=session.custom_id("confirm"), style=discord.ButtonStyle.success))
        view.add_item(discord.ui.Button(label="Cancel", custom_id=session.custom_id("cancel"), style=discord.ButtonStyle.secondary))
        return view

    async def start(self, owner, channel) -> SetupSession:
        session = SetupSession(
            session_id=secrets.token_hex(6),
            owner_id=owner.id,
            channel_id=channel.id,
            expires_at=self.clock() + datetime.timedelta(seconds=self.timeout),
        )
        session.message = await channel.send(
            content=f"{owner}, choose verification method(s) to enable.",
            view=self._build_view(session),
        )
        self.sessions[session.session_id] = session
        spawn(self._expire_later(session), name=f"setup-timeout-{session.session_id}")
        return session

    async def _expire_later(self, session: SetupSession):
        await asyncio.sleep(self.timeout)
        self.expire(session)

    def expire(self, session: SetupSession):
        # the wizard message is left as-is on timeout
        if session.is_open:
            session.state = SetupState.TIMED_OUT
            self.sessions.pop(session.session_id, None)
            print(f"setup session {session.session_id} timed out")

    def _close(self, session: SetupSession, state: SetupState):
        session.state = state
        self.sessions.pop(session.session_id, None)

    async def handle_interaction(self, interaction: discord.Interaction) -> bool:
        """Route a component interaction; False if it is not a setup control."""
        parsed = parse_custom_id((interaction.data or {}).get("custom_id", ""))
        if parsed is None:
            return False
        session_id, action = parsed
        session = self.sessions.get(session_id)
        if session is None:
            await safe_interaction_reply(interaction, "This setup session expired or was not found. Run `/setupverify` again.")
            return True
        if interaction.user.id != session.owner_id:
            return True
        if session.is_expired(self.clock()):
            self.expire(session)
            await safe_interaction_reply(interaction, "This setup session expired or was not found. Run `/setupverify` again.")
            return True

        if action == "select":
            selected = session.select((interaction.data or {}).get("values") or [])
            await interaction.response.edit_message(content=f"Selected: {', '.join(selected)}. Click Confirm to apply.")
        elif action == "confirm":
            if not session.selected:
                await safe_interaction_reply(interaction, "Please choose at least one method before confirming.")
                return True
            self._close(session, SetupState.APPLIED)
            await interaction.response.defer(ephemeral=True)
            await self.apply(interaction.guild, session.selected)
            await self._delete_wizard_message(session)
            await safe_interaction_reply(interaction, "Verification configured and previous bot messages removed. New persistent verify message created.")
        elif action == "cancel":
            self._close(session, SetupState.CANCELLED)
            await self._delete_wizard_message(session)
            await safe_interaction_reply(interaction, "Setup cancelled.")
        else:
            await safe_interaction_reply(interaction, "Unhandled component.")
        return True

    async def _delete_wizard_message(self, session: SetupSession):
        if session.message is None:
            return
        try:
            await session.message.delete()
        except discord.NotFound:
            pass
        except discord.HTTPException as e:
            print("Failed to delete setup message:", e)

    # -------------------------
    # applying configuration
    # -------------------------
    async def apply(self, guild, methods: List[str]):
        await self.config_store.update(
            verification_methods=methods,
            verify_message_id=None,
            admin_prompt_message_id=None,
        )
        await self.delete_bot_messages(guild)
        await self.restrictions.ensure_role(guild)
        return await self.post_persistent_prompt(guild)

    async def delete_bot_messages(self, guild) -> int:
        """Delete the bot's own messages in the verify channel, newest first."""
        ch = await resolve_channel(guild, self.verify_channel_id)
        if ch is None or not hasattr(ch, "history"):
            return 0
        bot_id = self.bot_user_id()
        deleted = 0
        before = None
        for _ in range(HISTORY_MAX_PAGES):
            try:
                page = [m async for m in ch.history(limit=HISTORY_PAGE_SIZE, before=before)]
            except (discord.HTTPException, *TRANSIENT_ERRORS) as e:
                print("delete_bot_messages: history fetch failed:", e)
                break
            if not page:
                break
            for m in page:
                if m.author and m.author.id == bot_id:
                    try:
                        await with_retries(m.delete)
                        deleted += 1
                    except discord.NotFound:
                        pass
                    except (discord.HTTPException, *TRANSIENT_ERRORS) as e:
                        print("delete_bot_messages: delete failed:", e)
            before = page[-1]
            if len(page) < HISTORY_PAGE_SIZE:
                break
        return deleted

    async def post_persistent_prompt(self, guild):
        ch = await resolve_channel(guild, self.verify_channel_id)
        if ch is None or not hasattr(ch, "send"):
            print("post_persistent_prompt: verify channel not available")
            return None
        methods = self.config_store.config.verification_methods
        try:
            msg = await with_retries(lambda: ch.send(build_persistent_verify_text(methods), view=self.prompt_view_factory()))
        except (discord.HTTPException, *TRANSIENT_ERRORS) as e:
            print("Failed to create verify message:", e)
            return None
        await self.config_store.update(verify_message_id=msg.id)
        return msg

    async def post_admin_prompt(self, guild, admin_role_ids: List[int]):
        """Ask admins to run setup; role mentions are shown but do not ping."""
        ch = await resolve_channel(guild, self.verify_channel_id)
        if ch is None or not hasattr(ch, "send"):
            print(f"send_admin_setup_prompt: verify channel (ID {self.verify_channel_id}) not available.")
            return None
        role_mentions = [guild.get_role(rid).mention for rid in admin_role_ids if guild.get_role(rid) is not None]
        mention_text = f"{' '.join(role_mentions)} " if role_mentions else ""
        view = discord.ui.View(timeout=None)
        view.add_item(discord.ui.Button(label="Configure Verification", custom_id=INIT_SETUP_CUSTOM_ID, style=discord.ButtonStyle.primary))
        try:
            sent = await with_retries(lambda: ch.send(
                content=f"{mention_text}Please configure verification for this server. Click **Configure Verification** or run `/setupverify` in this channel.",
                view=view,
                allowed_mentions=discord.AllowedMentions.none(),
            ))
        except (discord.HTTPException, *TRANSIENT_ERRORS) as e:
            print("send_admin_setup_prompt error:", repr(e))
            return None
        await self.config_store.update(admin_prompt_message_id=sent.id)
        return sent

    async def restore_prompt(self, guild, admin_role_ids: List[int]):
        """
        Startup check of the verify channel: refresh the persistent prompt
        text if it still exists, re-post it if its message is gone, or post
        the admin prompt when verification was never configured.
        """
        ch = await resolve_channel(guild, self.verify_channel_id)
        if ch is None:
            print(f"on_ready: verify channel (ID {self.verify_channel_id}) could not be found or fetched.")
            return None
        config = self.config_store.config
        if config.verify_message_id:
            try:
                existing = await with_retries(lambda: ch.fetch_message(config.verify_message_id), attempts=2)
            except (discord.HTTPException, *TRANSIENT_ERRORS):
                existing = None
            if existing is None:
                await self.delete_bot_messages(guild)
                return await self.post_persistent_prompt(guild)
            desired = build_persistent_verify_text(config.verification_methods)
            if existing.content != desired:
                try:
                    await existing.edit(content=desired, view=self.prompt_view_factory())
                except discord.HTTPException as e:
                    print("Failed to refresh verify message:", e)
            return existing
        if config.admin_prompt_message_id:
            try:
                return await ch.fetch_message(config.admin_prompt_message_id)
            except discord.HTTPException:
                pass
        return await self.post_admin_prompt(guild, admin_role_ids)
