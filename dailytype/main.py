from __future__ import annotations

import logging
import sys

import discord
from discord.ext import commands, tasks
from dotenv import load_dotenv

from .commands import register_commands
from .config import Config, load_config
from .dates import is_rollover_minute, local_day_key, utc_now
from .db import Database
from .errors import SentenceUnavailableError, StoreError, StoreUnavailableError
from .plays import ActivePlay
from .reporter import Reporter
from .sentences import DailySentenceService, QuoteSentenceProvider, SentenceProvider

ROTATION_META_KEY = "last_sentence_rotation_day"


class DailyTypingBot(commands.Bot):
    def __init__(self, config: Config, db: Database, provider: SentenceProvider) -> None:
        intents = discord.Intents.none()
        intents.guilds = True
        intents.guild_messages = True
        intents.message_content = True

        super().__init__(command_prefix="!", intents=intents)

        self.config = config
        self.db = db
        self.sentences = DailySentenceService(db, provider)
        self.reporter = Reporter(db, config.timezone)
        self.plays: dict[str, ActivePlay] = {}

        self.logger = logging.getLogger("daily-typing-bot")

    async def setup_hook(self) -> None:
        # Register slash commands, make sure today has a sentence, then start the midnight loop.
        register_commands(self)
        await self.tree.sync(guild=discord.Object(id=self.config.guild_id))
        await self._ensure_sentence(local_day_key(self.config.timezone))
        self.rotation_loop.start()

    async def on_ready(self) -> None:
        self.logger.info("Connected as %s (%s)", self.user, self.user.id if self.user else "unknown")

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return

        play = self.plays.get(str(message.author.id))
        if play is None or message.channel.id != play.channel_id:
            return

        await play.feed(message.content, message.created_at)

        # Keep attempts out of the channel so others can't copy them.
        try:
            await message.delete()
        except discord.HTTPException:
            self.logger.debug("Could not delete attempt message %s", message.id)

    def forget_play(self, play: ActivePlay) -> None:
        user_id = play.coordinator.user_id
        if self.plays.get(user_id) is play:
            del self.plays[user_id]

    async def _ensure_sentence(self, day_key: str) -> bool:
        try:
            await self.sentences.ensure(day_key)
        except (SentenceUnavailableError, StoreError):
            self.logger.exception("Failed to prepare sentence for %s", day_key)
            return False
        return True

    @tasks.loop(seconds=30)
    async def rotation_loop(self) -> None:
        now = utc_now()
        tz = self.config.timezone

        # The loop runs every 30s; only rotate during the 00:00 local minute.
        if not is_rollover_minute(tz, now):
            return

        day_key = local_day_key(tz, now)
        try:
            # Guard against a second run inside the same 00:00 minute window.
            if self.db.get_meta(ROTATION_META_KEY) == day_key:
                return
        except StoreError:
            self.logger.warning("Could not read rotation marker", exc_info=True)
            return

        self.logger.info("Rotating daily sentence for %s", day_key)
        if not await self._ensure_sentence(day_key):
            return

        try:
            self.db.set_meta(ROTATION_META_KEY, day_key)
        except StoreError:
            self.logger.warning("Could not persist rotation marker for %s", day_key, exc_info=True)

    @rotation_loop.before_loop
    async def before_rotation_loop(self) -> None:
        await self.wait_until_ready()

    async def close(self) -> None:
        if self.rotation_loop.is_running():
            self.rotation_loop.cancel()
        for play in list(self.plays.values()):
            play.cancel()
        self.plays.clear()
        self.db.close()
        await super().close()


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main() -> None:
    load_dotenv()
    configure_logging()

    config = load_config()
    try:
        db = Database(config.db_path)
        db.initialize()
    except StoreUnavailableError:
        logging.getLogger("daily-typing-bot").critical("Leaderboard store unavailable, exiting", exc_info=True)
        sys.exit(1)

    provider = QuoteSentenceProvider(
        config.quote_api_url,
        word_count=config.sentence_word_count,
        max_attempts=config.sentence_max_attempts,
    )
    bot = DailyTypingBot(config=config, db=db, provider=provider)
    bot.run(config.discord_token)


if __name__ == "__main__":
    main()
