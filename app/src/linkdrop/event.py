import discord
from linkdrop.allocator import LinkAllocator, DrawRefused, CooldownActive, CatalogExhausted
from linkdrop.core.base import Messages
from linkdrop.discord.views import LinkButtonView, build_link_embed
from linkdrop.infra.logging import logger, log_event, AuditLog


def describe_refusal(error: DrawRefused, messages: Messages, max_links: int, window_text: str) -> str:
    if isinstance(error, CooldownActive):
        return messages.cooldown.format(max_links=max_links, window=window_text, wait=error.wait_text)
    if isinstance(error, CatalogExhausted):
        return messages.exhausted
    return str(error)


async def _reply_failure(interaction: discord.Interaction, text: str):
    try:
        if interaction.response.is_done():
            await interaction.edit_original_response(content=text)
        else:
            await interaction.response.send_message(text, ephemeral=True)
    except discord.HTTPException as e:
        logger.warning(f"[draw] failure reply not delivered error={e}")


async def handle_draw_request(
    interaction: discord.Interaction,
    allocator: LinkAllocator,
    messages: Messages,
    audit: AuditLog,
    window_text: str,
    emoji: str = "",
) -> bool:
    """Button click: draw a link and DM it. Returns True when the DM went out."""
    user = interaction.user
    user_id = str(user.id)
    try:
        await interaction.response.defer(ephemeral=True, thinking=True)
        await audit.send(f"🔘 Button clicked by {user} ({user_id})")

        try:
            issued = await allocator.draw(user_id)
        except DrawRefused as e:
            reason = describe_refusal(e, messages, allocator.max_links, window_text)
            await interaction.edit_original_response(content=f"❌ {reason}")
            await audit.send(f"↩️ Replied to {user} with error: {reason}")
            return False

        dm_content = messages.direct_message.format(emoji=emoji, link=issued.item).strip()
        try:
            await user.send(dm_content)
        except discord.HTTPException as e:
            # the draw stays consumed, nothing is rolled back
            log_event("dm_failed", user_id=user_id, status=getattr(e, "status", None))
            logger.warning(f"[draw] direct message to {user_id} failed error={e}")
            await interaction.edit_original_response(content=messages.delivery_failed)
            await audit.send(f"⚠️ Could not DM {user} ({user_id}), link was still issued")
            return False
        await audit.send(f"✉️ Sent DM to {user}: \"{dm_content}\"")

        remaining = issued.remaining_in_window
        reply = messages.success.format(
            remaining=remaining,
            plural="" if remaining == 1 else "s",
            window=window_text,
        )
        await interaction.edit_original_response(content=reply)
        await audit.send(f"↩️ Replied to {user}: \"{reply}\"")
        return True
    except Exception as e:
        logger.exception(e)
        await _reply_failure(interaction, messages.failure)
        return False


async def post_link_embed(
    interaction: discord.Interaction,
    view: LinkButtonView,
    messages: Messages,
    audit: AuditLog,
    max_links: int,
    window_text: str,
):
    """/sendlinkembed: post the generator embed with its button in the current channel."""
    try:
        embed = build_link_embed(messages, max_links, window_text)
        await interaction.response.send_message(embed=embed, view=view)
        log_event("link_embed_posted", user_id=interaction.user.id, channel_id=getattr(interaction.channel, "id", None))
        await audit.send(f"↩️ sendlinkembed used by {interaction.user}")
    except Exception as e:
        logger.exception(e)
        await _reply_failure(interaction, f"Failed to post embed {str(e)}")


async def relay_direct_message(message: discord.Message, audit: AuditLog) -> bool:
    """Mirror DMs sent to the bot into the audit log."""
    if message.author.bot or message.guild is not None:
        return False
    content = message.content or "[embed/attachment]"
    await audit.send(f"📩 DM received from {message.author} ({message.author.id}):\n{content}")
    return True


__all__ = ["handle_draw_request", "post_link_embed", "relay_direct_message", "describe_refusal"]
