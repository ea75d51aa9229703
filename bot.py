import logging
import os
from typing import Optional
import discord
from discord.ext import commands
from dotenv import load_dotenv

import config
from logging_config import setup_logging
from models.leaderboard import format_leaderboard
from models.scoring import load_scoring_config
from services.ocr_client import VisionOCRClient
from services.result_processor import ResultProcessor
from services.result_store import ResultStore, ScrimNotFoundError
from services.session_store import MatchSessionStore
from services.team_registry import RegistrationError, TeamRegistry, format_team_list

# Load environment variables
load_dotenv()

# Configuration
DISCORD_TOKEN = os.getenv('DISCORD_TOKEN')
VISION_API_KEY = os.getenv('VISION_API_KEY')
DATABASE_PATH = os.getenv('DATABASE_PATH', config.DEFAULT_DATABASE_PATH)
LOG_LEVEL = os.getenv('LOG_LEVEL', config.DEFAULT_LOG_LEVEL)

logger = logging.getLogger('scrimbot.bot')


def is_image_attachment(attachment: discord.Attachment) -> bool:
    """Check if an attachment looks like a screenshot."""
    if attachment.content_type and attachment.content_type.startswith('image/'):
        return True
    return attachment.filename.lower().endswith(config.IMAGE_EXTENSIONS)


def is_staff(ctx: commands.Context) -> bool:
    """Staff commands need a server channel and Manage Server."""
    if ctx.guild is None:
        raise commands.NoPrivateMessage()
    if not ctx.permissions.manage_guild:
        raise commands.MissingPermissions(['manage_guild'])
    return True


class ScrimCommands(commands.Cog):
    """Scrim registration, result entry and leaderboard commands."""

    def __init__(self, bot: 'ScrimBot'):
        self.bot = bot

    async def cog_command_error(self, ctx: commands.Context, error: commands.CommandError):
        original = getattr(error, 'original', error)
        if isinstance(original, (RegistrationError, ScrimNotFoundError)):
            await ctx.reply(f'❌ {original}')
        elif isinstance(error, commands.MissingPermissions):
            await ctx.reply('❌ Need Manage Server.')
        elif isinstance(error, commands.NoPrivateMessage):
            await ctx.reply('❌ Use this command in a server channel.')
        elif isinstance(error, (commands.BadArgument, commands.MissingRequiredArgument)):
            await ctx.reply(f'❌ {error}')
        else:
            logger.error(f'Command {ctx.command} failed: {original}', exc_info=original)
            await ctx.reply('❌ Something went wrong, check the bot logs.')

    # Scrim management

    @commands.group(name='scrim', invoke_without_command=True)
    @commands.check(is_staff)
    async def scrim(self, ctx: commands.Context):
        await ctx.reply('Usage: `!scrim create|open|close|scoring|clear ...`')

    @scrim.command(name='create')
    @commands.check(is_staff)
    async def scrim_create(self, ctx: commands.Context, min_slot: int, max_slot: int, *, name: str):
        if min_slot < 1 or max_slot < min_slot:
            raise commands.BadArgument('Slot range must satisfy 1 <= min <= max.')
        scrim = self.bot.store.create_scrim(ctx.guild.id, name, min_slot, max_slot)
        await ctx.reply(f'✅ Created scrim **{scrim.name}** (ID {scrim.id}, slots {min_slot}-{max_slot}).')

    @scrim.command(name='open')
    @commands.check(is_staff)
    async def scrim_open(self, ctx: commands.Context, scrim_id: int):
        self.bot.store.get_scrim(scrim_id, ctx.guild.id)
        self.bot.registry.set_registration_open(scrim_id, True)
        await ctx.reply(f'🟢 Registration for scrim {scrim_id} is open.')

    @scrim.command(name='close')
    @commands.check(is_staff)
    async def scrim_close(self, ctx: commands.Context, scrim_id: int):
        self.bot.store.get_scrim(scrim_id, ctx.guild.id)
        self.bot.registry.set_registration_open(scrim_id, False)
        await ctx.reply(f'🔴 Registration for scrim {scrim_id} is closed.')

    @scrim.command(name='scoring')
    @commands.check(is_staff)
    async def scrim_scoring(self, ctx: commands.Context, scrim_id: int, *, scoring_json: str = ''):
        self.bot.store.get_scrim(scrim_id, ctx.guild.id)
        scoring = load_scoring_config(scoring_json.strip('`'))
        self.bot.store.set_scoring_config(scrim_id, scoring)
        await ctx.reply(f'✅ Scoring for scrim {scrim_id}: `{scoring.to_json()}`')

    @scrim.command(name='clear')
    @commands.check(is_staff)
    async def scrim_clear(self, ctx: commands.Context, scrim_id: int):
        self.bot.store.get_scrim(scrim_id, ctx.guild.id)
        removed = self.bot.store.clear_results(scrim_id)
        await ctx.reply(f'🧹 Cleared {removed} result(s) from scrim {scrim_id}.')

    # Registration

    @commands.command(name='register')
    @commands.guild_only()
    async def register(self, ctx: commands.Context, scrim_id: int, team_tag: str, *, team_name: str):
        self.bot.store.get_scrim(scrim_id, ctx.guild.id)
        team = self.bot.registry.register(scrim_id, ctx.author.id, team_name, team_tag)
        await ctx.reply(f'✅ Registered **{team.team_name}** [{team.team_tag}] in slot #{team.slot}.')

    @commands.command(name='unregister')
    @commands.guild_only()
    async def unregister(self, ctx: commands.Context, scrim_id: int):
        self.bot.store.get_scrim(scrim_id, ctx.guild.id)
        if self.bot.registry.unregister(scrim_id, ctx.author.id):
            await ctx.reply('✅ Your team was removed.')
        else:
            await ctx.reply("❌ You don't have a team in this scrim.")

    @commands.command(name='confirm')
    @commands.guild_only()
    async def confirm(self, ctx: commands.Context, scrim_id: int):
        self.bot.store.get_scrim(scrim_id, ctx.guild.id)
        team = self.bot.registry.confirm(scrim_id, ctx.author.id)
        await ctx.reply(f'✅ Slot #{team.slot} confirmed for **{team.team_tag}**.')

    @commands.command(name='teams')
    @commands.guild_only()
    async def teams(self, ctx: commands.Context, scrim_id: int):
        scrim = self.bot.store.get_scrim(scrim_id, ctx.guild.id)
        await ctx.send(format_team_list(scrim, self.bot.store.teams(scrim_id)))

    @commands.command(name='kick')
    @commands.check(is_staff)
    async def kick(self, ctx: commands.Context, scrim_id: int, slot: int):
        self.bot.store.get_scrim(scrim_id, ctx.guild.id)
        if self.bot.registry.remove_slot(scrim_id, slot):
            await ctx.reply(f'✅ Slot #{slot} is free again.')
        else:
            await ctx.reply(f'❌ Slot #{slot} is already empty.')

    # Screenshot batches

    @commands.group(name='ocr', invoke_without_command=True)
    @commands.check(is_staff)
    async def ocr(self, ctx: commands.Context):
        await ctx.reply('Usage: `!ocr start <scrim_id> <game>`, then post screenshots, then `!ocr done`')

    @ocr.command(name='start')
    @commands.check(is_staff)
    async def ocr_start(self, ctx: commands.Context, scrim_id: int, game: int):
        self.bot.store.get_scrim(scrim_id, ctx.guild.id)
        if game < 1:
            raise commands.BadArgument('Game must be 1 or higher.')
        self.bot.sessions.begin(ctx.channel.id, scrim_id, game, started_by=ctx.author.id)
        await ctx.reply(f'📸 Collecting screenshots for scrim {scrim_id}, game {game}. Send `!ocr done` when finished.')

    @ocr.command(name='done')
    @commands.check(is_staff)
    async def ocr_done(self, ctx: commands.Context):
        if self.bot.ocr_client is None:
            await ctx.reply('❌ OCR is not configured (VISION_API_KEY missing).')
            return
        session = self.bot.sessions.finish(ctx.channel.id)
        if session is None:
            await ctx.reply('❌ No screenshot batch is open in this channel.')
            return
        if not session.images:
            await ctx.reply('❌ No screenshots were collected.')
            return

        async with ctx.typing():
            report = await self.bot.processor.process_batch(session.scrim_id, session.game, session.images)

        lines = [f'✅ Game {report.game}: {report.rows_written} row(s) written from {len(report.outcomes)} screenshot(s).']
        if report.failed:
            lines.append(f'⚠️ {report.failed} screenshot(s) failed, enter those rows with `!result`.')
        await ctx.reply('\n'.join(lines))

    @ocr.command(name='cancel')
    @commands.check(is_staff)
    async def ocr_cancel(self, ctx: commands.Context):
        session = self.bot.sessions.finish(ctx.channel.id)
        if session is None:
            await ctx.reply('❌ No screenshot batch is open in this channel.')
        else:
            await ctx.reply(f'🗑️ Dropped {len(session.images)} screenshot(s).')

    # Manual results

    @commands.command(name='result')
    @commands.check(is_staff)
    async def result(self, ctx: commands.Context, scrim_id: int, game: int, place: int, team_tag: str, kills: int = 0):
        self.bot.store.get_scrim(scrim_id, ctx.guild.id)
        written = self.bot.processor.submit_manual_results(
            scrim_id, game, [{'place': place, 'team_tag': team_tag, 'kills': kills}]
        )
        if written:
            await ctx.reply(f'✅ Game {game}: #{place} {team_tag.upper()} with {max(kills, 0)} kill(s) saved.')
        else:
            await ctx.reply(f'❌ Place must be 1-{config.MANUAL_MAX_PLACE} and a tag is required.')

    @commands.command(name='deletegame')
    @commands.check(is_staff)
    async def delete_game(self, ctx: commands.Context, scrim_id: int, game: int):
        self.bot.store.get_scrim(scrim_id, ctx.guild.id)
        removed = self.bot.store.delete_game(scrim_id, game)
        await ctx.reply(f'🧹 Removed {removed} result(s) for game {game}.')

    @commands.command(name='leaderboard')
    @commands.guild_only()
    async def leaderboard(self, ctx: commands.Context, scrim_id: int):
        scrim = self.bot.store.get_scrim(scrim_id, ctx.guild.id)
        entries = self.bot.processor.leaderboard(scrim_id)
        await ctx.send(format_leaderboard(entries, scrim.name))


class ScrimBot(commands.Bot):
    """Discord bot for running scrim lobbies and scoring match results."""

    def __init__(self, store: ResultStore, ocr_client: Optional[VisionOCRClient] = None):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True

        super().__init__(command_prefix=config.COMMAND_PREFIX, intents=intents)

        # Initialize data and services
        self.store = store
        self.ocr_client = ocr_client
        self.sessions = MatchSessionStore()
        self.registry = TeamRegistry(self.store)
        self.processor = ResultProcessor(self.store, self.ocr_client)

    async def setup_hook(self):
        """Called when the bot is starting up."""
        await self.add_cog(ScrimCommands(self))

    async def on_ready(self):
        """Called when bot is fully logged in and ready."""
        logger.info(f'{self.user} has connected to Discord!')
        logger.info(f'Bot is in {len(self.guilds)} guild(s)')

    async def on_message(self, message: discord.Message):
        """Handle new messages."""
        if message.author.bot:
            return

        await self.collect_screenshots(message)

        await self.process_commands(message)

    async def collect_screenshots(self, message: discord.Message):
        """Add images from the batch starter or Manage Server members to the channel's open batch."""
        session = self.sessions.get(message.channel.id)
        if not message.attachments or session is None:
            return
        permissions = getattr(message.author, 'guild_permissions', None)
        if not session.accepts_from(message.author.id) and not (permissions and permissions.manage_guild):
            return

        collected = 0
        for attachment in message.attachments:
            if is_image_attachment(attachment) and self.sessions.collect(message.channel.id, attachment.url):
                collected += 1

        if collected:
            try:
                await message.add_reaction('📥')
            except discord.Forbidden:
                logger.warning('Bot lacks permission to add reactions')
            except discord.HTTPException as e:
                logger.warning(f'Error adding reaction: {e}')

    async def close(self):
        if self.ocr_client is not None:
            await self.ocr_client.close()
        self.store.close()
        await super().close()


def main():
    """Main entry point."""
    setup_logging(level=getattr(logging, LOG_LEVEL.upper(), logging.INFO))

    if not DISCORD_TOKEN:
        logger.error("DISCORD_TOKEN environment variable not set!")
        logger.error("Please create a .env file with your Discord bot token.")
        return

    ocr_client = None
    if VISION_API_KEY:
        ocr_client = VisionOCRClient(VISION_API_KEY)
    else:
        logger.warning("VISION_API_KEY not set, screenshot scoring is disabled")

    bot = ScrimBot(ResultStore(DATABASE_PATH), ocr_client)

    try:
        bot.run(DISCORD_TOKEN, log_handler=None)
    except discord.LoginFailure:
        logger.error("Invalid Discord token! Please check your DISCORD_TOKEN in the .env file.")


if __name__ == "__main__":
    main()
