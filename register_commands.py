# register_commands.py
# Registers the guild slash commands over the Discord REST API.
#
#   python register_commands.py           uses CLIENT_ID from .env
#   python register_commands.py --force   discovers the application id from BOT_TOKEN

from __future__ import annotations
import os, sys
from dotenv import load_dotenv
import requests

API_ROOT = "https://discord.com/api/v10"
OPTION_STRING, OPTION_BOOLEAN, OPTION_USER, OPTION_CHANNEL = 3, 5, 6, 7
DURATION_CHOICES = ["last_hour", "last_day", "last_week", "last_month"]

COMMANDS = [
    {
        "name": "setupverify",
        "description": "Interactive setup for verification (run in the verify channel)",
    },
    {
        "name": "setlog",
        "description": "Set the channel where verification & sus logs should be sent.",
        "options": [
            {"name": "channel", "description": "Text channel to use as logs", "type": OPTION_CHANNEL, "required": True},
        ],
    },
    {
        "name": "verifyuser",
        "description": "Manually verify (remove Sus role) from a user.",
        "options": [
            {"name": "member", "description": "Member to verify", "type": OPTION_USER, "required": True},
        ],
    },
    {
        "name": "autoscan",
        "description": "Enable or disable automatic daily scanning.",
        "options": [
            {
                "name": "action",
                "description": "on or off",
                "type": OPTION_STRING,
                "required": True,
                "choices": [{"name": v, "value": v} for v in ("on", "off")],
            },
        ],
    },
    {
        "name": "scan",
        "description": "Scan members for platform usage. Optionally restrict them as Sus after confirmation.",
        "options": [
            {"name": "member", "description": "Check one member only", "type": OPTION_USER, "required": False},
            {
                "name": "duration",
                "description": "Quick filter by join time",
                "type": OPTION_STRING,
                "required": False,
                "choices": [{"name": d, "value": d} for d in DURATION_CHOICES],
            },
            {"name": "start", "description": "Start ISO timestamp", "type": OPTION_STRING, "required": False},
            {"name": "end", "description": "End ISO timestamp", "type": OPTION_STRING, "required": False},
            {"name": "apply_sus", "description": "If true, ask to mark matched users Sus", "type": OPTION_BOOLEAN, "required": False},
        ],
    },
]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bot {token}", "Content-Type": "application/json"}


def discover_application_id(token: str) -> str:
    r = requests.get(f"{API_ROOT}/users/@me", headers=auth_headers(token), timeout=15)
    if r.status_code != 200:
        print(f"Failed to fetch /users/@me: {r.status_code} {r.text}")
        print("Common causes: wrong BOT_TOKEN, token revoked, or network issue.")
        sys.exit(1)
    me = r.json()
    print("Bot user id (application id) discovered:", me.get("id"))
    return me.get("id")


def commands_url(app_id: str, guild_id: str) -> str:
    return f"{API_ROOT}/applications/{app_id}/guilds/{guild_id}/commands"


def show_existing(url: str, headers: dict):
    r = requests.get(url, headers=headers, timeout=15)
    if r.status_code != 200:
        print("Failed to fetch existing commands:", r.status_code, r.text)
        return
    cmds = r.json()
    if not cmds:
        print("No guild application commands currently registered.")
        return
    print("Existing guild commands:")
    for c in cmds:
        print(f" - {c.get('name')} (id: {c.get('id')})")


def register_all(url: str, headers: dict):
    print("Registering / overwriting guild commands (bulk PUT)...")
    r = requests.put(url, headers=headers, json=COMMANDS, timeout=15)
    if r.status_code not in (200, 201):
        print("Failed to register commands:", r.status_code, r.text)
        sys.exit(1)
    print("Success. Registered commands:")
    for c in r.json():
        print(f" - {c.get('name')} (id: {c.get('id')})")


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    force = "--force" in argv
    load_dotenv()
    token = os.getenv("BOT_TOKEN")
    guild_id = os.getenv("GUILD_ID")
    client_id = os.getenv("CLIENT_ID")
    if not token or not guild_id or (not force and not client_id):
        needed = "BOT_TOKEN and GUILD_ID" if force else "BOT_TOKEN, CLIENT_ID and GUILD_ID"
        print(f"ERROR: {needed} must be set in your .env")
        sys.exit(1)

    app_id = discover_application_id(token) if force else client_id
    url = commands_url(app_id, guild_id)
    headers = auth_headers(token)
    print("== SHOW EXISTING ==")
    show_existing(url, headers)
    print("\nThis script will now replace guild commands with the commands defined here.")
    register_all(url, headers)
    print("\nDone. Slash commands should appear in your server shortly (usually instantly).")


if __name__ == "__main__":
    main()
