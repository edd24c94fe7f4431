from __future__ import annotations

import discord
from discord.ext import commands
from discord import app_commands

from ..core.utility import fmt_secs
from ..utils.embed_utils import create_embed, success_embed, warning_embed, error_embed
from ..utils.validation import is_solana_address

NO_WALLET = "No wallet linked yet. Use `/link wallet:<address>`."


class Account(commands.Cog):
    """Wallet linking and access status."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def _linked_wallet(self, interaction: discord.Interaction) -> str | None:
        row = await self.bot.identities.find_by_external(interaction.user.id)
        return row.wallet if row else None

    @app_commands.command(name="help", description="How to link a wallet and check access.")
    async def help_cmd(self, interaction: discord.Interaction):
        name = self.bot.cfg.get("bot", "name", default="X4A Facilitator")
        desc = (
            f"Welcome to **{name}**\n\n"
            "`/link wallet:<address>` link your Solana wallet to this account\n"
            "`/status` check whether your access is active and the time left\n"
            "`/tier` show your current tier and expiry\n"
            "`/products` browse the marketplace\n\n"
            "After you pay on the site, your access is granted to the linked wallet."
        )
        await interaction.response.send_message(embed=create_embed(desc, color="info", author=name), ephemeral=True)

    @app_commands.command(name="link", description="Link your Solana wallet to this account.")
    @app_commands.describe(wallet="Your wallet public key")
    async def link(self, interaction: discord.Interaction, wallet: str):
        wallet = wallet.strip()
        if not is_solana_address(wallet):
            embed = error_embed("That does not look like a valid Solana address.")
            return await interaction.response.send_message(embed=embed, ephemeral=True)

        await self.bot.identities.resolve_identity(wallet, interaction.user.id, replace=True)

        desc = f"Linked ✅\nWallet: `{wallet}`\nNow pay on the site and your access will show up here."
        await interaction.response.send_message(embed=success_embed(desc), ephemeral=True)

    @app_commands.command(name="status", description="Check whether your access is active.")
    async def status(self, interaction: discord.Interaction):
        wallet = await self._linked_wallet(interaction)
        if not wallet:
            return await interaction.response.send_message(embed=warning_embed(NO_WALLET), ephemeral=True)

        st = await self.bot.ledger.status_for(wallet)
        if not st.active:
            desc = f"No active plan for `{wallet}`.\nUse the site to purchase a tier."
            return await interaction.response.send_message(embed=warning_embed(desc), ephemeral=True)

        desc = (
            f"✅ Active\n"
            f"Tier: **{st.tier}**\n"
            f"Expires: <t:{st.expires_at}:R> (~{fmt_secs(st.seconds_left)})\n"
            f"Wallet: `{wallet}`"
        )
        await interaction.response.send_message(embed=success_embed(desc), ephemeral=True)

    @app_commands.command(name="tier", description="Show your current tier and time left.")
    async def tier(self, interaction: discord.Interaction):
        wallet = await self._linked_wallet(interaction)
        if not wallet:
            return await interaction.response.send_message(embed=warning_embed(NO_WALLET), ephemeral=True)

        st = await self.bot.ledger.status_for(wallet)
        if not st.active:
            embed = warning_embed("No active plan. Buy a tier on the site.")
            return await interaction.response.send_message(embed=embed, ephemeral=True)

        desc = f"Current tier: **{st.tier}**\nTime left: ~{fmt_secs(st.seconds_left)}"
        await interaction.response.send_message(embed=create_embed(desc, color="info"), ephemeral=True)


class Whoami(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @app_commands.command(name="whoami", description="Show your platform user id.")
    async def whoami(self, interaction: discord.Interaction):
        embed = create_embed(f"Your user ID: `{interaction.user.id}`", color="info")
        await interaction.response.send_message(embed=embed, ephemeral=True)


async def setup(bot: commands.Bot):
    await bot.add_cog(Account(bot))
    if bot.cfg.get("bot", "admin_commands", default=False):
        await bot.add_cog(Whoami(bot))
