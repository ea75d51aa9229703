"""Tests for command permissions and screenshot batch handling in the bot."""

import asyncio
from types import SimpleNamespace

import discord
import pytest
from discord.ext import commands

from bot import ScrimBot, ScrimCommands, is_staff

STAFF_COMMANDS = {'scrim', 'ocr', 'kick', 'result', 'deletegame'}


class FakeContext:
    """Collects replies for a command run in one channel."""

    def __init__(self, channel_id, author_id=20):
        self.channel = SimpleNamespace(id=channel_id)
        self.author = SimpleNamespace(id=author_id)
        self.replies = []

    async def reply(self, content):
        self.replies.append(content)


def screenshot_message(channel_id, author_id, permissions):
    attachment = SimpleNamespace(content_type='image/png', filename='shot.png', url='https://cdn.example.com/shot.png')
    reactions = []

    async def add_reaction(emoji):
        reactions.append(emoji)

    author = SimpleNamespace(id=author_id, bot=False, guild_permissions=permissions)
    message = SimpleNamespace(author=author, channel=SimpleNamespace(id=channel_id),
                              attachments=[attachment], add_reaction=add_reaction)
    return message, reactions


@pytest.fixture
def bot(store):
    return ScrimBot(store)


class TestStaffChecks:
    """Tests for Manage Server gating of staff commands."""

    def test_every_staff_command_checked(self, bot):
        """Test staff groups and each of their subcommands carry the staff check."""
        checked = set()
        for command in ScrimCommands(bot).walk_commands():
            root = command.root_parent or command
            if root.name in STAFF_COMMANDS:
                assert is_staff in command.checks, command.qualified_name
                checked.add(command.qualified_name)
        assert {'scrim clear', 'scrim scoring', 'scrim create', 'ocr start', 'ocr done', 'kick'} <= checked

    def test_public_commands_unchecked(self, bot):
        """Test player commands don't need Manage Server."""
        cog = ScrimCommands(bot)
        for name in ('register', 'confirm', 'teams', 'leaderboard'):
            command = next(c for c in cog.walk_commands() if c.name == name)
            assert is_staff not in command.checks

    def test_requires_guild(self):
        """Test the staff check refuses direct messages."""
        ctx = SimpleNamespace(guild=None, permissions=discord.Permissions.all())
        with pytest.raises(commands.NoPrivateMessage):
            is_staff(ctx)

    def test_requires_manage_guild(self):
        """Test the staff check refuses members without Manage Server."""
        ctx = SimpleNamespace(guild=object(), permissions=discord.Permissions.none())
        with pytest.raises(commands.MissingPermissions):
            is_staff(ctx)
        ctx.permissions = discord.Permissions(manage_guild=True)
        assert is_staff(ctx)


class TestScreenshotBatch:
    """Tests for collecting and finishing screenshot batches."""

    def test_done_without_ocr_keeps_batch(self, bot, scrim):
        """Test finishing while OCR isn't configured leaves the screenshots in place."""
        bot.sessions.begin(7, scrim.id, 1, started_by=20)
        bot.sessions.collect(7, 'shot.png')
        cog = ScrimCommands(bot)
        ctx = FakeContext(7)

        asyncio.run(cog.ocr_done.callback(cog, ctx))

        assert 'not configured' in ctx.replies[0]
        assert bot.sessions.get(7).images == ['shot.png']

    def test_starter_screenshots_collected(self, bot, scrim):
        """Test images from the member who started the batch are collected."""
        bot.sessions.begin(7, scrim.id, 1, started_by=20)
        message, reactions = screenshot_message(7, 20, discord.Permissions.none())
        asyncio.run(bot.collect_screenshots(message))
        assert bot.sessions.get(7).images == ['https://cdn.example.com/shot.png']
        assert reactions == ['📥']

    def test_other_member_screenshots_ignored(self, bot, scrim):
        """Test images from a member without Manage Server are left out of someone else's batch."""
        bot.sessions.begin(7, scrim.id, 1, started_by=20)
        message, reactions = screenshot_message(7, 99, discord.Permissions.none())
        asyncio.run(bot.collect_screenshots(message))
        assert bot.sessions.get(7).images == []
        assert reactions == []

    def test_staff_screenshots_collected(self, bot, scrim):
        """Test another Manage Server member can add to an open batch."""
        bot.sessions.begin(7, scrim.id, 1, started_by=20)
        message, _ = screenshot_message(7, 99, discord.Permissions(manage_guild=True))
        asyncio.run(bot.collect_screenshots(message))
        assert len(bot.sessions.get(7).images) == 1
