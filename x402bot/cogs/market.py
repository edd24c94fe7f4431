from __future__ import annotations

import discord
from discord.ext import commands
from discord import app_commands

from ..core.utility import fmt, fmt_base_units
from ..utils.embed_utils import create_embed

MAX_LISTED = 25


class Market(commands.Cog):
    """Read-only view of the product catalog."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @app_commands.command(name="products", description="Browse the marketplace.")
    async def products(self, interaction: discord.Interaction):
        items = await self.bot.market.list_products()
        if not items:
            embed = create_embed("No products listed yet.", color="info")
            return await interaction.response.send_message(embed=embed, ephemeral=True)

        lines = []
        for p in items[:MAX_LISTED]:
            stock = f"{fmt(p.stock)} left" if p.stock > 0 else "sold out"
            lines.append(f"**{p.title}** · `{p.id}` · **{fmt_base_units(p.price_base)} USDC** ({stock})")
        if len(items) > MAX_LISTED:
            lines.append(f"... and {len(items) - MAX_LISTED} more")
        embed = create_embed("\n".join(lines), title="Marketplace", color="market")
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="product", description="Show one product.")
    @app_commands.describe(sku="Product id")
    async def product(self, interaction: discord.Interaction, sku: str):
        p = await self.bot.market.get_product(sku.strip())
        if not p:
            embed = create_embed("That product isn't available.", color="warning")
            return await interaction.response.send_message(embed=embed, ephemeral=True)

        fields = [
            {"name": "Price", "value": f"{fmt_base_units(p.price_base)} USDC", "inline": True},
            {"name": "Stock", "value": fmt(p.stock) if p.stock > 0 else "Sold out", "inline": True},
            {"name": "Sold", "value": fmt(p.sold), "inline": True},
            {"name": "Delivery", "value": "Shipped" if p.is_physical else "Digital", "inline": True},
        ]
        embed = create_embed(
            p.description or "No description.",
            title=p.title,
            color="market",
            thumbnail=p.image_url,
            fields=fields,
            footer=f"SKU {p.id}",
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)


async def setup(bot: commands.Bot):
    await bot.add_cog(Market(bot))
