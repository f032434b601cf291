# bot.py
# Web Client Detector

import os
import re
import sys
import asyncio
import traceback
from typing import Any, Dict, List, Optional

import aiocron
import pytz
import discord
from discord import app_commands
from discord.ext import commands

from settings import Settings
from config_store import Config, ConfigStore
from action_queue import RateLimitedActionQueue
from audit import AuditLog
from restriction import RestrictionStateManager
from challenges import ChallengeKey, ChallengeStore, SubmitOutcome, VerificationFlow, VerifyOutcome
from scanner import (
    DURATIONS,
    INLINE_REPORT_LIMIT,
    BulkScanner,
    ScanFilter,
    ScanFilterError,
    create_csv_for_scan,
    format_bulk_report,
    matched_suspects,
)
from notifier import PeriodicNotifier
from setup_wizard import INIT_SETUP_CUSTOM_ID, SetupWizard
from discord_utils import resolve_channel, resolve_member, safe_interaction_reply, spawn
from platforms import get_member_platforms, is_web_only

settings = Settings.from_env()

JOIN_GRACE_SECONDS = 2
ACTION_INTERVAL_SECONDS = 1.0
VIEW_TIMEOUT = 120
OPEN_MODAL_CUSTOM_ID = "open_verify_modal"
VERIFY_BUTTON_CUSTOM_ID = "verify_button"
ADMIN_ROLE_IDS_SET = set(settings.admin_role_ids)

intents = discord.Intents.default()
intents.members = True
intents.presences = True   # make sure this is enabled in Dev Portal
intents.message_content = True
intents.guilds = True

bot = commands.Bot(command_prefix=settings.command_prefix, intents=intents, help_command=None)

config_store = ConfigStore(
    settings.config_path,
    defaults=Config(process_delay_ms=settings.process_delay_ms, log_channel_id=settings.sus_log_channel_id or None),
)
action_queue = RateLimitedActionQueue(interval=ACTION_INTERVAL_SECONDS)
audit = AuditLog(config_store, fallback_channel_id=settings.sus_log_channel_id)
restrictions = RestrictionStateManager(
    config_store,
    action_queue,
    audit,
    verify_channel_id=settings.verify_channel_id,
    sus_chat_channel_id=settings.sus_chat_channel_id,
    role_name=settings.sus_role_name,
)
challenge_store = ChallengeStore()
verification = VerificationFlow(config_store, restrictions, challenge_store)
scanner = BulkScanner(restrictions, config_store)
notifier = PeriodicNotifier(config_store, audit, settings.verify_channel_id)
wizard = SetupWizard(
    config_store,
    restrictions,
    settings.verify_channel_id,
    bot_user_id=lambda: bot.user.id,
    prompt_view_factory=lambda: VerifyView(),
)

cron_jobs: Dict[str, Any] = {}


# -------------------------
# Admin detection helper
# -------------------------
def is_admin_member(member: discord.Member) -> bool:
    if not member:
        return False
    guild = getattr(member, "guild", None)
    if guild is not None and getattr(guild, "owner_id", None) == member.id:
        return True
    perms = getattr(member, "guild_permissions", None)
    if perms is not None and perms.administrator:
        return True
    return any(r.id in ADMIN_ROLE_IDS_SET for r in getattr(member, "roles", []))


async def invoking_member(interaction: discord.Interaction) -> Optional[discord.Member]:
    return await resolve_member(interaction.guild, interaction.user.id)


def log_channel_mention() -> str:
    return f"<#{audit.channel_id}>" if audit.channel_id else "the console log"


# -------------------------
# Argument parsing for prefix commands
# -------------------------
USER_ARG_RE = re.compile(r"^<@!?(\d{17,20})>$|^(\d{17,20})$")
CHANNEL_ARG_RE = re.compile(r"^<#(\d{17,20})>$|^(\d{17,20})$")


def parse_user_arg(token: str) -> Optional[int]:
    m = USER_ARG_RE.match(token.strip().strip("\\"))
    if not m:
        return None
    return int(m.group(1) or m.group(2))


def parse_channel_arg(token: str) -> Optional[int]:
    m = CHANNEL_ARG_RE.match(token.strip())
    if not m:
        return None
    return int(m.group(1) or m.group(2))


def parse_scan_args(args: List[str]) -> Dict[str, Any]:
    """
    ``!scan`` arguments: a user mention or id, a duration keyword,
    ``start=ISO`` / ``end=ISO`` bounds, and ``apply`` to offer marking
    matched users Sus.
    """
    parsed: Dict[str, Any] = {"member_id": None, "duration": None, "start": None, "end": None, "apply": False}
    for a in args:
        token = a.strip().strip("\\")
        lowered = token.lower()
        if lowered in ("apply", "--apply", "apply_sus"):
            parsed["apply"] = True
        elif lowered in DURATIONS:
            parsed["duration"] = lowered
        elif lowered.startswith("start="):
            parsed["start"] = token[len("start="):]
        elif lowered.startswith("end="):
            parsed["end"] = token[len("end="):]
        elif parse_user_arg(token) is not None:
            parsed["member_id"] = parse_user_arg(token)
        else:
            raise ScanFilterError(f"Unrecognised scan argument: {token!r}")
    return parsed


# -------------------------
# Interaction UIs
# -------------------------
class MarkSusView(discord.ui.View):
    def __init__(self, guild_id: int, target_id: int):
        super().__init__(timeout=VIEW_TIMEOUT)
        self.guild_id = guild_id
        self.target_id = target_id

    @discord.ui.button(label="Confirm — mark as Sus", style=discord.ButtonStyle.danger)
    async def confirm(self, interaction: discord.Interaction, button: discord.ui.Button):
        invoker = await invoking_member(interaction)
        if not is_admin_member(invoker):
            return await interaction.response.send_message("Only configured admins may confirm marking Sus.", ephemeral=True)
        target = await resolve_member(interaction.guild, self.target_id)
        if not target:
            return await interaction.response.send_message("Target member not found.", ephemeral=True)
        await restrictions.restrict(target, reason=f"Marked Sus via manual scan by {interaction.user}")
        await interaction.response.edit_message(content=f"✅ {target.mention} has been marked Sus and logged to {log_channel_mention()}.", view=None)
        self.stop()

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.secondary)
    async def cancel(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.edit_message(content="Cancelled — no action taken.", view=None)
        self.stop()


class ApplySusView(discord.ui.View):
    """Confirm-then-restrict-all for the web-only rows of a bulk scan."""

    def __init__(self, owner_id: int, rows):
        super().__init__(timeout=VIEW_TIMEOUT)
        self.owner_id = owner_id
        self.suspects = matched_suspects(rows)

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        # only the admin who ran the scan may press these
        return interaction.user.id == self.owner_id

    @discord.ui.button(label="Confirm apply Sus", style=discord.ButtonStyle.danger)
    async def confirm(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.edit_message(content=f"Applying Sus role to {len(self.suspects)} matched users (queued).", view=None)
        spawn(scanner.restrict_suspects(interaction.guild, self.suspects), name="apply-sus")
        await audit.append(interaction.guild, f"Applied Sus to {len(self.suspects)} users (queued) by {interaction.user}.")
        self.stop()

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.secondary)
    async def cancel(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.edit_message(content="Cancelled.", view=None)
        self.stop()


class VerifyView(discord.ui.View):
    def __init__(self):
        super().__init__(timeout=None)

    @discord.ui.button(label="Verify", style=discord.ButtonStyle.primary, custom_id=VERIFY_BUTTON_CUSTOM_ID)
    async def verify_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.defer(ephemeral=True)
        member = await invoking_member(interaction)
        if not member:
            return await interaction.followup.send("Could not fetch your member record.", ephemeral=True)
        outcome, challenge = await verification.request(member)
        if outcome is VerifyOutcome.NOT_RESTRICTED:
            return await interaction.followup.send("You are not marked for verification.", ephemeral=True)
        if outcome is VerifyOutcome.NO_METHODS:
            return await interaction.followup.send("No verification methods are enabled; contact an admin.", ephemeral=True)
        if outcome is VerifyOutcome.VERIFIED:
            return await interaction.followup.send("You have been verified. ✅", ephemeral=True)
        submit = discord.ui.Button(label="Submit Answer", custom_id=OPEN_MODAL_CUSTOM_ID, style=discord.ButtonStyle.primary)
        view = discord.ui.View()
        view.add_item(submit)
        await interaction.followup.send(
            f"🔒 **Private challenge** — {challenge.instructions()}\n\nClick **Submit Answer** to open the secure answer dialog. Your answer will be private and visible only to you.",
            view=view,
            ephemeral=True,
        )


SUBMIT_REPLIES = {
    SubmitOutcome.VERIFIED: "✅ Correct — you are verified and can now access the server.",
    SubmitOutcome.INCORRECT: "❌ Incorrect answer. Click **Submit Answer** to try again, or Verify for a new challenge.",
    SubmitOutcome.EXPIRED: "Challenge expired. Click Verify again to start a new one.",
    SubmitOutcome.NOT_FOUND: "No active challenge found or it expired. Click Verify again.",
    SubmitOutcome.NOT_RESTRICTED: "You are not currently marked Sus or are already verified.",
}


class VerifyModal(discord.ui.Modal, title="Enter your answer (private)"):
    answer = discord.ui.TextInput(label="Answer", style=discord.TextStyle.short, placeholder="Type your answer here", max_length=100)

    def __init__(self, label: str = "Answer"):
        super().__init__()
        self.answer.label = label

    async def on_submit(self, interaction: discord.Interaction):
        member = await invoking_member(interaction)
        if not member:
            return await interaction.response.send_message("Member record not found.", ephemeral=True)
        outcome = await verification.submit(member, self.answer.value)
        await interaction.response.send_message(SUBMIT_REPLIES[outcome], ephemeral=True)

    async def on_error(self, interaction: discord.Interaction, error: Exception):
        print("verify modal error:", repr(error))
        traceback.print_exception(type(error), error, error.__traceback__)
        await safe_interaction_reply(interaction, "An error occurred while processing your answer. Try again.")


# -------------------------
# Interaction event handler
# -------------------------
@bot.event
async def on_interaction(interaction: discord.Interaction):
    if interaction.type != discord.InteractionType.component:
        return
    cid = (interaction.data or {}).get("custom_id", "")
    try:
        if await wizard.handle_interaction(interaction):
            return

        if cid == OPEN_MODAL_CUSTOM_ID:
            challenge, _ = challenge_store.lookup(ChallengeKey(interaction.guild_id, interaction.user.id))
            if challenge is None:
                return await interaction.response.send_message("No active challenge found or it expired. Click Verify again.", ephemeral=True)
            return await interaction.response.send_modal(VerifyModal(label=challenge.modal_label()))

        if cid == INIT_SETUP_CUSTOM_ID:
            member = await invoking_member(interaction)
            if not is_admin_member(member):
                return await interaction.response.send_message("You are not allowed to configure verification.", ephemeral=True)
            await interaction.response.defer(ephemeral=True)
            verify_ch = await resolve_channel(interaction.guild, settings.verify_channel_id)
            if verify_ch is None:
                return await interaction.followup.send("Verify channel is not available.", ephemeral=True)
            await wizard.start(member, verify_ch)
    except discord.HTTPException as e:
        print("on_interaction error:", repr(e))
        traceback.print_exc()
        await safe_interaction_reply(interaction, "Temporary error occurred handling this interaction. Please try again.")


# -------------------------
# New member handling (auto-scan on join)
# -------------------------
@bot.event
async def on_member_join(member: discord.Member):
    """
    Quick auto-scan of a newly joined member.

    Waits a moment for presence to settle, re-fetches the member and, when
    the only connected client is web, marks them Sus.
    """
    if member.bot or member.guild.id != settings.guild_id:
        return
    await asyncio.sleep(JOIN_GRACE_SECONDS)
    if not restrictions.role_id:
        await restrictions.ensure_role(member.guild)
    fetched = member.guild.get_member(member.id) or member
    platforms = get_member_platforms(fetched)
    print(f"on_member_join: platforms for {member.id}: {platforms}")
    if is_web_only(platforms):
        await restrictions.restrict(fetched, reason="Detected web-only on join")


# -------------------------
# Scheduled jobs
# -------------------------
async def periodic_notifier():
    try:
        await notifier.run(bot.get_guild(settings.guild_id))
    except discord.HTTPException as e:
        print("Periodic notifier failed:", e)
        traceback.print_exc()


async def daily_autoscan():
    guild = bot.get_guild(settings.guild_id)
    if guild is None:
        return
    try:
        await scanner.run_autoscan(guild)
    except discord.HTTPException as e:
        print("Daily autoscan failed:", e)
        traceback.print_exc()


def schedule_jobs():
    cfg = config_store.config
    tz = pytz.timezone(settings.notify_timezone)
    if "notifier" not in cron_jobs and cfg.periodic_notify_enabled:
        cron_jobs["notifier"] = aiocron.crontab(cfg.periodic_notify_cron, func=periodic_notifier, tz=tz, start=True)
        print("Periodic notifier scheduled:", cfg.periodic_notify_cron)
    if "autoscan" not in cron_jobs:
        # the job itself checks autoscan_enabled, so toggling needs no reschedule
        cron_jobs["autoscan"] = aiocron.crontab(cfg.daily_scan_cron, func=daily_autoscan, tz=tz, start=True)
        print("Daily autoscan scheduled:", cfg.daily_scan_cron)


def start_jobs():
    try:
        schedule_jobs()
    except (ValueError, pytz.UnknownTimeZoneError) as e:
        print("Failed to schedule jobs:", e)
        traceback.print_exc()
    # one reminder pass right away, the cron takes over from there
    spawn(periodic_notifier(), name="startup-notifier")


# -------------------------
# Scan reporting
# -------------------------
async def report_bulk_scan(guild: discord.Guild, rows) -> str:
    if len(rows) <= INLINE_REPORT_LIMIT:
        await audit.append(guild, format_bulk_report(rows))
        return "Bulk scan complete and logged."
    csv_path = create_csv_for_scan(rows)
    try:
        await audit.append(guild, f"Bulk scan completed: {len(rows)} members — CSV attached. (Columns: userId,tag,displayName,platforms,joinedAt)", csv_path)
    finally:
        try:
            os.remove(csv_path)
        except OSError:
            pass
    return "Bulk scan complete and CSV uploaded to the log channel."


def describe_single_row(row) -> str:
    platforms_text = ", ".join(row.platforms) or "offline/no-presence"
    return f"Platforms for {row.tag}: {platforms_text}\nID: {row.member_id}\nJoined: {row.joined_iso or 'unknown'}"


# -------------------------
# Events & startup
# -------------------------
def _loop_exception_handler(loop, context):
    # log and keep running
    print("Unhandled asyncio error:", context.get("message"))
    exc = context.get("exception")
    if exc is not None:
        traceback.print_exception(type(exc), exc, exc.__traceback__)


async def setup_hook():
    asyncio.get_running_loop().set_exception_handler(_loop_exception_handler)
    bot.add_view(VerifyView())

bot.setup_hook = setup_hook


@bot.event
async def on_error(event_method, *args, **kwargs):
    print(f"Unhandled error in {event_method}:")
    traceback.print_exc()


@bot.event
async def on_ready():
    print(f"Logged in as {bot.user} (id: {bot.user.id})")
    action_queue.start()
    challenge_store.start_sweeper()
    guild = bot.get_guild(settings.guild_id)
    if not guild:
        print("Bot not in configured guild. Check GUILD_ID.")
        return
    await restrictions.ensure_role(guild)
    await wizard.restore_prompt(guild, settings.admin_role_ids)
    start_jobs()
    cfg = config_store.config
    print("Ready — verification methods:", cfg.verification_methods, "autoscan:", cfg.autoscan_enabled)


# -------------------------
# Prefix commands handler
# -------------------------
def prefix_help() -> str:
    p = settings.command_prefix
    return (
        "Available prefix commands:\n"
        f"- `{p}ping` — quick ping test\n"
        f"- `{p}setlog #channel` — set log channel (admin)\n"
        f"- `{p}scan [options]` — scan members (admin). Examples:\n"
        f"    - `{p}scan` (bulk scan)\n"
        f"    - `{p}scan last_day` (filter by join time)\n"
        f"    - `{p}scan start=2024-01-01T00:00 end=2024-01-31T23:59` (explicit window)\n"
        f"    - `{p}scan @user` (single user)\n"
        f"    - `{p}scan last_day apply` (scan + offer to mark web-only as Sus)\n"
        f"- `{p}setupverify` — open interactive setup (admin, run in verify channel)\n"
        f"- `{p}verifyuser @user` / `{p}unsus @user` — manually remove Sus (admin)\n"
        f"- `{p}autoscan on|off` — toggle autoscan (admin)\n"
    )


@bot.event
async def on_message(message: discord.Message):
    if message.author.bot or not message.guild or not message.content:
        return
    content = message.content.lstrip()
    if not content.startswith(settings.command_prefix):
        return
    args = content[len(settings.command_prefix):].split()
    if not args:
        return
    cmd, args = args[0].lower(), args[1:]

    try:
        await handle_prefix_command(message, cmd, args)
    except discord.HTTPException as e:
        print(f"prefix command {cmd} failed:", repr(e))
        traceback.print_exc()


async def handle_prefix_command(message: discord.Message, cmd: str, args: List[str]):
    guild = message.guild
    if cmd == "help":
        return await message.reply(prefix_help())
    if cmd == "ping":
        return await message.channel.send("pong")
    if cmd not in ("setlog", "unsus", "verifyuser", "autoscan", "setupverify", "scan"):
        return

    member = await resolve_member(guild, message.author.id)
    if not is_admin_member(member):
        return await message.reply("Only configured admin roles may run this command.")

    if cmd == "setlog":
        if not args:
            return await message.reply(f"Usage: {settings.command_prefix}setlog #channel or {settings.command_prefix}setlog CHANNEL_ID")
        cid = parse_channel_arg(args[0])
        if not cid:
            return await message.reply("Invalid channel mention or ID.")
        ch = await resolve_channel(guild, cid)
        if not ch or not hasattr(ch, "send"):
            return await message.reply("Channel not found or not text-based.")
        await config_store.update(log_channel_id=cid)
        return await message.reply(f"Log channel updated to {ch.mention}")

    if cmd in ("unsus", "verifyuser"):
        target = message.mentions[0] if message.mentions else None
        if target is None and args and parse_user_arg(args[0]):
            target = await resolve_member(guild, parse_user_arg(args[0]))
        if not target:
            return await message.reply(f"Mention a user: {settings.command_prefix}unsus @user")
        target = await resolve_member(guild, target.id) or target
        await restrictions.unrestrict(target, actor=message.author, reason="Manual unsus via prefix command")
        return await message.reply(f"Removed Sus role (if present) from <@{target.id}>. Logged to {log_channel_mention()}.")

    if cmd == "autoscan":
        action = args[0].lower() if args else None
        if action not in ("on", "off"):
            return await message.reply(f"Usage: {settings.command_prefix}autoscan on|off")
        cfg = await config_store.update(autoscan_enabled=(action == "on"))
        return await message.reply(f"Auto-scan is now {'ENABLED' if cfg.autoscan_enabled else 'DISABLED'}.")

    if cmd == "setupverify":
        verify_ch = await resolve_channel(guild, settings.verify_channel_id)
        if verify_ch is None or verify_ch.id != message.channel.id:
            return await message.reply(f"Run this command inside the configured verify channel (ID {settings.verify_channel_id}).")
        await message.reply("Opening interactive setup in this channel...")
        await wizard.start(member, verify_ch)
        return

    if cmd == "scan":
        try:
            opts = parse_scan_args(args)
            target = None
            if opts["member_id"]:
                target = await resolve_member(guild, opts["member_id"])
                if target is None:
                    return await message.reply("Member not found.")
            scan_filter = ScanFilter.build(member=target, duration=opts["duration"], start=opts["start"], end=opts["end"])
        except ScanFilterError as e:
            return await message.reply(str(e))

        if target is not None:
            row = (await scanner.scan(guild, scan_filter))[0]
            if is_web_only(row.platforms):
                return await message.reply(f"User {target.mention} appears to be web-only. Mark as Sus?", view=MarkSusView(guild.id, target.id))
            return await message.reply(describe_single_row(row))

        await message.reply("Starting bulk scan. This may take time. Results will be posted to the log channel.")
        async with message.channel.typing():
            rows = await scanner.scan(guild, scan_filter)
        if not rows:
            return await message.reply("No members matched the criteria.")
        await message.reply(await report_bulk_scan(guild, rows))
        if opts["apply"]:
            view = ApplySusView(message.author.id, rows)
            await message.reply(f"Found {len(view.suspects)} matched users. Click Confirm to mark them Sus (operation is queued).", view=view)


# -------------------------
# Slash commands: /setupverify, /setlog, /verifyuser, /autoscan, /scan
# -------------------------
async def require_admin(interaction: discord.Interaction) -> Optional[discord.Member]:
    member = await invoking_member(interaction)
    if not is_admin_member(member):
        await interaction.response.send_message("Only configured admins can run this command.", ephemeral=True)
        return None
    return member


@bot.tree.command(name="setupverify", description="Interactive setup for verification (run in the verify channel)")
async def setupverify(interaction: discord.Interaction):
    member = await require_admin(interaction)
    if not member:
        return
    verify_ch = await resolve_channel(interaction.guild, settings.verify_channel_id)
    if verify_ch is None or verify_ch.id != interaction.channel_id:
        return await interaction.response.send_message(f"Run this command inside the configured verify channel (ID {settings.verify_channel_id}).", ephemeral=True)
    await interaction.response.send_message("Opening interactive setup in this channel...", ephemeral=True)
    await wizard.start(member, verify_ch)


@bot.tree.command(name="setlog", description="Set the channel where verification & sus logs should be sent.")
@app_commands.describe(channel="Text channel to use as logs")
async def setlog(interaction: discord.Interaction, channel: discord.TextChannel):
    if not await require_admin(interaction):
        return
    await config_store.update(log_channel_id=channel.id)
    await interaction.response.send_message(f"Log channel set to {channel.mention}", ephemeral=True)


@bot.tree.command(name="verifyuser", description="Manually verify (remove Sus role) from a user.")
@app_commands.describe(member="Member to verify")
async def verifyuser(interaction: discord.Interaction, member: discord.Member):
    if not await require_admin(interaction):
        return
    await restrictions.unrestrict(member, actor=interaction.user, reason="Manual verify via command")
    await interaction.response.send_message(f"Removed Sus role (if present) from {member.mention}. Logged to the log channel.", ephemeral=True)


@bot.tree.command(name="autoscan", description="Enable or disable automatic daily scanning.")
@app_commands.describe(action="on or off")
@app_commands.choices(action=[app_commands.Choice(name="on", value="on"), app_commands.Choice(name="off", value="off")])
async def autoscan(interaction: discord.Interaction, action: str):
    if not await require_admin(interaction):
        return
    cfg = await config_store.update(autoscan_enabled=(action.lower() == "on"))
    await interaction.response.send_message(f"Auto-scan is now {'ENABLED' if cfg.autoscan_enabled else 'DISABLED'}.", ephemeral=True)


@bot.tree.command(name="scan", description="Scan members for platform usage.")
@app_commands.describe(member="Check one member only", duration="Quick filter by join time", start="Start ISO timestamp", end="End ISO timestamp", apply_sus="If true, ask to mark matched users Sus")
@app_commands.choices(duration=[app_commands.Choice(name=d, value=d) for d in DURATIONS])
async def scan_interaction(interaction: discord.Interaction, member: discord.Member = None, duration: str = None, start: str = None, end: str = None, apply_sus: bool = False):
    if not await require_admin(interaction):
        return
    await interaction.response.defer(ephemeral=True)

    target = await resolve_member(interaction.guild, member.id) if member else None
    if member and target is None:
        return await interaction.followup.send("Member not found.", ephemeral=True)
    try:
        scan_filter = ScanFilter.build(member=target, duration=duration, start=start, end=end)
    except ScanFilterError as e:
        return await interaction.followup.send(str(e), ephemeral=True)

    rows = await scanner.scan(interaction.guild, scan_filter)
    if target:
        row = rows[0]
        if is_web_only(row.platforms):
            return await interaction.followup.send(f"User {target.mention} appears to be web-only. Mark as Sus?", view=MarkSusView(interaction.guild.id, target.id), ephemeral=True)
        return await interaction.followup.send(describe_single_row(row), ephemeral=True)

    if not rows:
        return await interaction.followup.send("No members matched the criteria.", ephemeral=True)
    await interaction.followup.send(await report_bulk_scan(interaction.guild, rows), ephemeral=True)
    if apply_sus:
        view = ApplySusView(interaction.user.id, rows)
        await interaction.followup.send(f"Found {len(view.suspects)} matched users. Click Confirm to mark them Sus (operation is queued).", view=view, ephemeral=True)


# -------------------------
# Start
# -------------------------
def main():
    missing = settings.missing_required()
    if missing:
        print(f"ERROR: {', '.join(missing)} must be set in .env")
        sys.exit(1)
    config_store.load()
    bot.run(settings.bot_token)


if __name__ == "__main__":
    main()
