"""
Embed helpers for x402bot replies.
"""
from __future__ import annotations
import discord

COLORS = {
    "info": 0x3498DB,        # Blue - informational messages
    "success": 0x2ECC71,     # Green - linked / active
    "warning": 0xF39C12,     # Orange - expired / nothing linked
    "error": 0xE74C3C,       # Red - failures
    "neutral": 0x9B59B6,     # Purple - default
    "market": 0xFFD700,      # Gold - products
}


def create_embed(
    description: str,
    title: str | None = None,
    color: str | int = "neutral",
    thumbnail: str | None = None,
    author: str | None = None,
    fields: list[dict] | None = None,
    footer: str | None = None,
) -> discord.Embed:
    """
    Create a standardized x402bot embed.

    Args:
        description: The embed description
        title: Optional embed title
        color: Color name (from COLORS) or hex int
        thumbnail: Optional thumbnail URL
        author: Optional author line (the bot name)
        fields: List of field dicts with 'name', 'value', and optional 'inline'
        footer: Optional footer text
    """
    if isinstance(color, str):
        embed_color = COLORS.get(color, COLORS["neutral"])
    else:
        embed_color = color

    embed = discord.Embed(title=title, description=description, color=embed_color)

    if author:
        embed.set_author(name=author)
    if thumbnail:
        embed.set_thumbnail(url=thumbnail)

    if fields:
        for field in fields:
            embed.add_field(
                name=field.get("name", ""),
                value=field.get("value", ""),
                inline=field.get("inline", False)
            )

    if footer:
        embed.set_footer(text=footer)

    return embed


def success_embed(desc: str, title: str | None = None) -> discord.Embed:
    return create_embed(description=desc, title=title, color="success")


def error_embed(desc: str, title: str | None = None) -> discord.Embed:
    return create_embed(description=desc, title=title, color="error")


def warning_embed(desc: str, title: str | None = None) -> discord.Embed:
    return create_embed(description=desc, title=title, color="warning")
