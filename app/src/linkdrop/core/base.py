from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Messages:
    embed_title: str = "Link Generator"
    embed_description: str = (
        "Click the button below to receive a link in your DMs.\n\n"
        "*Limited to {max_links} links per {window}.*"
    )
    button_label: str = "Get a link"
    # custom emoji id shown on the button and in the DM, optional
    emoji_id: Optional[int] = None
    success: str = "✅ Check your DMs! You have {remaining} link{plural} remaining for the next {window}."
    cooldown: str = "You have already received {max_links} links in the last {window}. Please try again in {wait}."
    exhausted: str = "You have already received all available links. Please check back later."
    delivery_failed: str = (
        "⚠️ I couldn't send you a DM. Enable direct messages from server members "
        "in your privacy settings. This link still counts toward your limit."
    )
    direct_message: str = "{emoji} Here's your new [link]({link}) Do not share it {emoji}"
    failure: str = "Something went wrong, please try again later."


@dataclass(frozen=True)
class Presence:
    activity: str = ""
    status: str = "online"


@dataclass(frozen=True)
class Config:
    name: str
    max_links: int
    cooldown_minutes: int
    storage: str
    catalog_file: str = "links.txt"
    persist_timeout_sec: float = 5.0
    presence: Presence = field(default_factory=Presence)
    messages: Messages = field(default_factory=Messages)

    @property
    def cooldown_ms(self) -> int:
        return self.cooldown_minutes * 60 * 1000

    @property
    def window_text(self) -> str:
        hours, minutes = divmod(self.cooldown_minutes, 60)
        if minutes:
            return f"{self.cooldown_minutes} minutes"
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
