import discord
from typing import Awaitable, Callable, Optional
from linkdrop.core.base import Messages

BUTTON_CUSTOM_ID = "linkdrop_button"

ClickHandler = Callable[[discord.Interaction], Awaitable[object]]


def button_emoji(emoji_id: Optional[int]) -> Optional[discord.PartialEmoji]:
    if not emoji_id:
        return None
    return discord.PartialEmoji(name="linkdrop", id=emoji_id)


def build_link_embed(messages: Messages, max_links: int, window_text: str) -> discord.Embed:
    return discord.Embed(
        title=messages.embed_title,
        description=messages.embed_description.format(max_links=max_links, window=window_text),
        color=discord.Color.blurple(),
    )


class LinkButtonView(discord.ui.View):
    """Persistent view carrying the draw button.

    timeout=None plus a fixed custom_id lets discord.py route clicks on
    embeds posted before the last restart.
    """

    def __init__(self, on_click: ClickHandler, label: str, emoji_id: Optional[int] = None):
        super().__init__(timeout=None)
        self._on_click = on_click
        button = discord.ui.Button(
            style=discord.ButtonStyle.primary,
            label=label,
            emoji=button_emoji(emoji_id),
            custom_id=BUTTON_CUSTOM_ID,
        )
        button.callback = self._callback
        self.add_item(button)

    async def _callback(self, interaction: discord.Interaction):
        await self._on_click(interaction)


__all__ = ["LinkButtonView", "build_link_embed", "button_emoji", "BUTTON_CUSTOM_ID"]
