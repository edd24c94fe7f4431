from __future__ import annotations

import asyncio
import os
import sys
import traceback
import discord
from discord.ext import commands
from discord import app_commands

from .core.config import Config
from .core.db import Database
from .core.entitlements import EntitlementLedger
from .core.errors import StoreUnavailableError
from .core.identity import IdentityStore
from .core.marketplace import Marketplace

BOT_DIR = os.path.dirname(os.path.abspath(__file__))

COGS = [
    "x402bot.cogs.account",   # /help, /link, /status, /tier, /whoami
    "x402bot.cogs.market",    # /products, /product
]

SEPARATOR = "=" * 60

DEFAULT_CONFIG_TEMPLATE = """token: "{token}"

# Guilds to sync slash commands to. Leave empty to sync globally.
guilds: [{guild_ids}]

bot:
  name: "{name}"
  admin_commands: {admin}

data:
  dir: "data"
  filename: "x402.db"
"""


def _print_section(title: str = ""):
    """Print a section separator with optional title."""
    print(f"\n{SEPARATOR}")
    if title:
        print(title)
        print(SEPARATOR)


def _print_list(items: list, max_items: int = 10, prefix: str = "  "):
    """Print a list with truncation."""
    for item in items[:max_items]:
        print(f"{prefix}- {item}")
    if len(items) > max_items:
        print(f"{prefix}... and {len(items) - max_items} more")


class X402Bot(commands.Bot):
    def __init__(self, cfg: Config, db: Database):
        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=discord.Intents.default(),
        )
        self.cfg = cfg
        self.db = db
        self.identities = IdentityStore(db)
        self.ledger = EntitlementLedger(db, self.identities)
        self.market = Marketplace(db)
        self._commands_synced = False
        self.tree.on_error = self.on_app_command_error

    async def setup_hook(self):
        """Open the store, create the schema and load cogs."""
        _print_section(f"Initializing {self.cfg.get('bot', 'name', default='x402bot')}...")

        try:
            await self.db.connect()
            print("✓ Database connected")
            await self.db.migrate()
            print("✓ Database schema ready")
        except StoreUnavailableError as e:
            print(f"✗ Database error during setup: {e}")
            traceback.print_exc()
            raise

        loaded_count = 0
        failed_count = 0
        for ext in COGS:
            if ext in self.extensions:
                continue
            try:
                await self.load_extension(ext)
                loaded_count += 1
                print(f"✓ Loaded: {ext}")
            except Exception as e:
                failed_count += 1
                print(f"✗ Failed to load {ext}: {e}")
                traceback.print_exc()

        _print_section(f"Extensions: {loaded_count} loaded, {failed_count} failed")

    async def _sync_commands(self):
        all_commands = [cmd.qualified_name for cmd in self.tree.walk_commands()]
        _print_section(f"Commands in tree before sync: {len(all_commands)}")
        _print_list(all_commands, max_items=20)

        guild_ids = self.cfg.guild_ids()
        if not guild_ids:
            try:
                synced = await self.tree.sync()
                print(f"✓ Synced {len(synced)} global commands")
            except discord.HTTPException as e:
                print(f"✗ Global sync failed: {e}")
            self._commands_synced = True
            return

        bot_guild_ids = {g.id for g in self.guilds}
        for gid in guild_ids:
            if gid not in bot_guild_ids:
                print(f"⚠ Warning: Bot is not in guild {gid}")
                continue
            guild_obj = discord.Object(id=gid)
            self.tree.copy_global_to(guild=guild_obj)
            try:
                synced = await self.tree.sync(guild=guild_obj)
                print(f"✓ Synced {len(synced)} commands to guild {gid}")
            except discord.HTTPException as e:
                print(f"✗ HTTP Error {e.status} syncing guild {gid}: {e}")
        self._commands_synced = True

    async def on_ready(self):
        _print_section()
        print(f"Bot is ready! Logged in as {self.user} (ID: {self.user.id})")
        print(f"Connected to {len(self.guilds)} guild(s)")
        if not self._commands_synced:
            await self._sync_commands()

    async def on_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        """Global error handler for app commands."""
        original = getattr(error, "original", error)
        print(f"Unhandled command error: {error}")
        traceback.print_exception(type(original), original, original.__traceback__)
        message = "An error occurred while executing this command."

        try:
            if interaction.response.is_done():
                await interaction.followup.send(message, ephemeral=True)
            else:
                await interaction.response.send_message(message, ephemeral=True)
        except discord.HTTPException:
            pass

    async def close(self):
        await super().close()
        await self.db.close()


def _write_config_from_env(config_path: str):
    _print_section("config.yml not found. Attempting to create from environment variables...")

    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        print("ERROR: config.yml file not found and DISCORD_BOT_TOKEN not set!")
        print(SEPARATOR)
        print(f"Expected location: {config_path}")
        print("\nTo fix this:")
        print("1. Create config.yml (see config.example.yml), OR")
        print("2. Set DISCORD_BOT_TOKEN (and optionally DISCORD_GUILDS) in the environment")
        print(SEPARATOR)
        sys.exit(1)

    guild_ids = ", ".join(g.strip() for g in os.getenv("DISCORD_GUILDS", "").split(",") if g.strip())
    content = DEFAULT_CONFIG_TEMPLATE.format(
        token=token,
        guild_ids=guild_ids,
        name=os.getenv("X402_BOT_NAME", "X4A Facilitator"),
        admin="true" if os.getenv("X402_ADMIN_COMMANDS") else "false",
    )
    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(content)
        print(f"✓ Created config.yml from environment variables at {config_path}")
    except OSError as e:
        print(f"✗ Failed to create config.yml: {e}")
        sys.exit(1)


async def main():
    config_path = os.getenv("X402_CONFIG") or os.path.join(BOT_DIR, "config.yml")
    if not os.path.exists(config_path):
        _write_config_from_env(config_path)

    cfg = Config.load(config_path)

    token = cfg.get("token")
    if not token or token == "PUT_YOUR_BOT_TOKEN_HERE":
        _print_section("ERROR: Bot token not configured!")
        print("Please set your bot token in config.yml")
        sys.exit(1)

    discord.utils.setup_logging()

    db = Database(cfg.db_path(os.path.dirname(os.path.abspath(config_path))))
    bot = X402Bot(cfg, db)

    max_retries = 5
    for attempt in range(max_retries):
        try:
            await bot.start(token)
            break
        except StoreUnavailableError as e:
            print(f"ERROR: store unavailable, cannot continue: {e}")
            sys.exit(1)
        except discord.HTTPException as e:
            if e.status == 429 and attempt < max_retries - 1:
                wait_time = 5 * (2 ** attempt)  # 5, 10, 20, 40 seconds
                print(f"Rate limited (429). Waiting {wait_time} seconds before retry ({attempt + 1}/{max_retries})...")
                await asyncio.sleep(wait_time)
                continue
            raise
        except discord.LoginFailure as e:
            print(f"ERROR: Discord Login Failure: {e}")
            print("Please check your bot token in config.yml or DISCORD_BOT_TOKEN environment variable.")
            sys.exit(1)


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nBot shutdown requested by user")


if __name__ == "__main__":
    run()
