# discord_utils.py
# Small helpers shared by the bot components: retries, channel lookup,
# interaction replies and fire-and-forget timers.

import asyncio
import datetime
import traceback
from typing import Any, Awaitable, Callable, Optional, Set

import discord

# Connect/read timeouts are the only failures worth retrying
TRANSIENT_ERRORS = (asyncio.TimeoutError, TimeoutError, ConnectionError)

RETRY_ATTEMPTS = 3
RETRY_BASE_DELAY = 1.0
RETRY_FACTOR = 1.6

_background_tasks: Set[asyncio.Task] = set()


def backoff_delay(attempt: int, base_delay: float = RETRY_BASE_DELAY) -> float:
    return base_delay * (RETRY_FACTOR ** attempt)


async def with_retries(
    fn: Callable[[], Awaitable[Any]],
    attempts: int = RETRY_ATTEMPTS,
    base_delay: float = RETRY_BASE_DELAY,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Any:
    """
    Call ``fn()`` and await it, retrying transient failures.

    ``fn`` must build a fresh awaitable on every call. Non-transient errors
    propagate immediately; after ``attempts`` transient failures the last
    one is raised.
    """
    last_err: Optional[BaseException] = None
    for attempt in range(attempts):
        try:
            return await fn()
        except TRANSIENT_ERRORS as e:
            last_err = e
            if attempt + 1 >= attempts:
                break
            delay = backoff_delay(attempt, base_delay)
            print(f"Transient error (attempt {attempt + 1}): {e!r}. Retrying in {delay:.2f}s...")
            await sleep(delay)
    raise last_err


def spawn(coro, name: str = None) -> asyncio.Task:
    """Run ``coro`` in the background, keeping a reference until it finishes."""
    task = asyncio.create_task(coro, name=name)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    task.add_done_callback(_report_task_failure)
    return task


def _report_task_failure(task: asyncio.Task):
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        print(f"Background task {task.get_name()} failed:", repr(exc))
        traceback.print_exception(type(exc), exc, exc.__traceback__)


async def _delete_after(message, delay: float):
    await asyncio.sleep(delay)
    try:
        await message.delete()
    except discord.NotFound:
        # already gone
        pass
    except discord.HTTPException as e:
        print("Failed to delete message:", e)


def delete_later(message, delay: float) -> Optional[asyncio.Task]:
    """Schedule deletion of ``message`` after ``delay`` seconds."""
    if message is None:
        return None
    return spawn(_delete_after(message, delay), name=f"delete-{getattr(message, 'id', '?')}")


async def resolve_channel(guild: discord.Guild, channel_id: int):
    """Cached lookup first, then a REST fetch with retries. None if unavailable."""
    if not channel_id:
        return None
    ch = guild.get_channel(channel_id)
    if ch is not None:
        return ch
    try:
        return await with_retries(lambda: guild.fetch_channel(channel_id))
    except (discord.HTTPException, *TRANSIENT_ERRORS) as e:
        print(f"resolve_channel: channel {channel_id} not available:", repr(e))
        return None


async def resolve_member(guild: discord.Guild, member_id: int):
    member = guild.get_member(member_id)
    if member is not None:
        return member
    try:
        return await with_retries(lambda: guild.fetch_member(member_id))
    except (discord.HTTPException, *TRANSIENT_ERRORS) as e:
        print(f"resolve_member: member {member_id} not available:", repr(e))
        return None


async def safe_interaction_reply(interaction: discord.Interaction, content: str = None, **kwargs):
    """
    Reply to an interaction whatever its acknowledgement state is:
    first response if nothing was sent yet, a followup otherwise.
    """
    if interaction is None:
        return
    kwargs.setdefault("ephemeral", True)
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content, **kwargs)
        else:
            await interaction.response.send_message(content, **kwargs)
    except discord.HTTPException as e:
        print("safe_interaction_reply failed:", repr(e))
        try:
            await interaction.followup.send("Temporary error. Please try again.", ephemeral=True)
        except discord.HTTPException:
            pass


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)
