"""
Weekly scrim interest poll.

Posts the poll once a week (POLL_WEEKDAY at POLL_HOUR_UTC). In testing mode
the poll is posted once as soon as the bot is ready instead.
"""

import datetime
import logging

from discord.ext import commands, tasks

from config import POLL_HOUR_UTC, POLL_WEEKDAY, TESTING_MODE
from services.errors import ChannelUnavailable

logger = logging.getLogger("scrim_bot.commands.scrim_poll")

POLL_TIME = datetime.time(hour=POLL_HOUR_UTC, tzinfo=datetime.timezone.utc)


class PollCog(commands.Cog):
    """Owns the weekly poll schedule."""

    def __init__(self, bot: commands.Bot, testing: bool = TESTING_MODE, poll_weekday: int = POLL_WEEKDAY):
        self.bot = bot
        self.testing = testing
        self.poll_weekday = poll_weekday
        self._posted_test_poll = False
        if not testing:
            self.weekly_poll.start()

    def cog_unload(self):
        self.weekly_poll.cancel()

    @property
    def orchestrator(self):
        return getattr(self.bot, "orchestrator", None)

    async def post_poll(self) -> bool:
        if self.orchestrator is None:
            logger.warning("Orchestrator not initialized; poll not posted")
            return False
        try:
            poll = await self.orchestrator.open_poll()
        except ChannelUnavailable as exc:
            logger.error(f"Failed to post weekly poll: {exc}")
            return False
        logger.info(f"Weekly poll {poll.poll_id} posted")
        return True

    @tasks.loop(time=POLL_TIME)
    async def weekly_poll(self):
        """Runs daily at POLL_HOUR_UTC; only posts on the poll weekday."""
        today = datetime.datetime.now(datetime.timezone.utc).weekday()
        if today != self.poll_weekday:
            return
        await self.post_poll()

    @weekly_poll.before_loop
    async def before_weekly_poll(self):
        await self.bot.wait_until_ready()
        logger.info(f"Weekly poll scheduled for weekday {self.poll_weekday} at {POLL_TIME.isoformat()}")

    @commands.Cog.listener()
    async def on_ready(self):
        if self.testing and not self._posted_test_poll:
            self._posted_test_poll = True
            logger.info("Testing mode: posting poll immediately")
            await self.post_poll()


async def setup(bot: commands.Bot):
    await bot.add_cog(PollCog(bot))
