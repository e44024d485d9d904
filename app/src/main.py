#!/usr/bin/env python3
import os
import sys
import discord
import logging
from typing import Optional

sys.path.append(os.path.dirname(os.path.realpath(__file__)))

from linkdrop.constants import (
    BOT_INVITE_URL,
    BOT_NAME,
    CONFIG,
    COOLDOWN_MS,
    DISCORD_BOT_TOKEN,
    DISCORD_GUILD_ID,
    LINKS_FILE,
    LOG_WEBHOOK_URL,
    MAX_LINKS,
    MESSAGES,
    PERSIST_TIMEOUT_SEC,
    STORAGE_BACKEND,
    STORE_SETTINGS,
    WINDOW_TEXT,
)
from linkdrop.infra.logging import logger, log_event, AuditLog
from linkdrop.allocator import LinkAllocator
from linkdrop.catalog import load_catalog
from linkdrop.state import load_state
from linkdrop.storage.factory import build_store
from linkdrop.discord.client import LinkDropClient
from linkdrop.discord.views import LinkButtonView
from linkdrop.event import (
    handle_draw_request,
    post_link_embed,
    relay_direct_message,
)


logging.basicConfig(
    format="[%(asctime)s] [%(filename)s:%(lineno)d] %(message)s", level=logging.INFO
)

intents = discord.Intents.default()
intents.guilds = True
intents.dm_messages = True
intents.message_content = True  # DM本文をログへ転送
intents.members = False
intents.typing = False

# catalog is fixed for the process lifetime; a missing file aborts startup
catalog = load_catalog(LINKS_FILE)
store = build_store(STORAGE_BACKEND, **STORE_SETTINGS)
audit = AuditLog(LOG_WEBHOOK_URL)

client = LinkDropClient(
    resources=[store, audit],
    intents=intents,
    activity=discord.Game(name=CONFIG.presence.activity) if CONFIG.presence.activity else None,
    status=discord.Status(CONFIG.presence.status),
)
tree = discord.app_commands.CommandTree(client)
guild = discord.Object(id=DISCORD_GUILD_ID)
allocator: Optional[LinkAllocator] = None
link_view: Optional[LinkButtonView] = None


def _emoji_text() -> str:
    if not MESSAGES.emoji_id:
        return ""
    emoji = client.get_emoji(MESSAGES.emoji_id)
    return str(emoji) if emoji else ""


async def on_link_button(interaction: discord.Interaction):
    await handle_draw_request(
        interaction,
        allocator=allocator,
        messages=MESSAGES,
        audit=audit,
        window_text=WINDOW_TEXT,
        emoji=_emoji_text(),
    )


@client.event
async def setup_hook():
    global allocator, link_view
    state = await load_state(store, timeout=max(PERSIST_TIMEOUT_SEC, 10))
    allocator = LinkAllocator(
        catalog=catalog,
        state=state,
        store=store,
        max_links=MAX_LINKS,
        cooldown_ms=COOLDOWN_MS,
        persist_timeout=PERSIST_TIMEOUT_SEC,
    )
    link_view = LinkButtonView(on_link_button, label=MESSAGES.button_label, emoji_id=MESSAGES.emoji_id)
    client.add_view(link_view)
    try:
        await tree.sync(guild=guild)
        log_event("commands_synced", guild_id=DISCORD_GUILD_ID)
    except discord.HTTPException as e:
        logger.error(f"Failed to register commands: {e}")


@client.event
async def on_ready():
    log_event("login", user=str(client.user), bot=BOT_NAME, invite_url=BOT_INVITE_URL)
    log_event(
        "allocator_ready",
        backend=STORAGE_BACKEND,
        catalog=len(catalog),
        users=len(allocator.state) if allocator else 0,
        max_links=MAX_LINKS,
        window=WINDOW_TEXT,
    )


@client.event
async def on_message(message: discord.Message):
    try:
        await relay_direct_message(message, audit)
    except Exception as e:
        logger.exception(e)


# /sendlinkembed
@tree.command(name="sendlinkembed", description="Sends a link embed with a button", guild=guild)
@discord.app_commands.default_permissions(administrator=True)
@discord.app_commands.checks.has_permissions(administrator=True)
@discord.app_commands.checks.bot_has_permissions(send_messages=True)
@discord.app_commands.checks.bot_has_permissions(embed_links=True)
async def sendlinkembed_command(int: discord.Interaction):
    await post_link_embed(
        int,
        view=link_view,
        messages=MESSAGES,
        audit=audit,
        max_links=MAX_LINKS,
        window_text=WINDOW_TEXT,
    )


client.run(DISCORD_BOT_TOKEN, log_handler=None)
