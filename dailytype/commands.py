import discord

from .coordinator import ChallengeCoordinator, Phase, validate_username
from .dates import local_day_key, seconds_until_rollover, utc_now
from .errors import SentenceUnavailableError, StoreError
from .plays import ActivePlay
from .reporter import format_seconds


def register_commands(bot):
    """Register all slash commands on the bot. Called once during setup."""
    guild_scope = discord.Object(id=bot.config.guild_id)

    def in_configured_guild(interaction):
        return interaction.guild is not None and interaction.guild.id == bot.config.guild_id

    @bot.tree.command(name="play", description="Start today's typing challenge", guild=guild_scope)
    @discord.app_commands.describe(username="Name shown on the leaderboard (6-20 letters, numbers, _ or -)")
    async def play(interaction, username: str):
        if not in_configured_guild(interaction):
            await interaction.response.send_message("This command can only be used in the configured server.", ephemeral=True)
            return

        try:
            username = validate_username(username)
        except ValueError as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return

        user_id = str(interaction.user.id)
        existing = bot.plays.get(user_id)
        if existing is not None and existing.active:
            await interaction.response.send_message("You already have a challenge open.", ephemeral=True)
            return

        coordinator = ChallengeCoordinator(
            bot.db,
            user_id,
            username,
            bot.config.timezone,
            poll_interval_seconds=bot.config.leaderboard_poll_seconds,
            max_submit_attempts=bot.config.submit_max_attempts,
        )
        play_session = ActivePlay(
            coordinator,
            interaction,
            tick_seconds=bot.config.tick_seconds,
            timeout_seconds=bot.config.play_timeout_seconds,
            on_finish=bot.forget_play,
        )

        if coordinator.connect() is Phase.VIEWING:
            await interaction.response.send_message(play_session.render(), ephemeral=True)
            # Keep the board live until the play timeout.
            bot.plays[user_id] = play_session
            play_session.start(utc_now())
            return

        # Composing a missing sentence can take a few upstream requests.
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            target = await bot.sentences.ensure(coordinator.day_key)
        except (SentenceUnavailableError, StoreError):
            bot.logger.exception("Could not load sentence for %s", coordinator.day_key)
            await interaction.edit_original_response(content="Today's sentence isn't ready yet. Try again in a minute.")
            return

        coordinator.begin(target)
        await interaction.edit_original_response(content=play_session.render())
        bot.plays[user_id] = play_session
        play_session.start(utc_now())

    @bot.tree.command(name="leaderboard", description="Show today's leaderboard", guild=guild_scope)
    @discord.app_commands.describe(page="Page number, starting at 1")
    async def leaderboard(interaction, page: int = 1):
        if not in_configured_guild(interaction):
            await interaction.response.send_message("This command can only be used in the configured server.", ephemeral=True)
            return

        content = bot.reporter.build_today_content(page=page - 1, now_utc=utc_now())
        await interaction.response.send_message(content, ephemeral=True)

    @bot.tree.command(name="status", description="Show challenge status and time until the next sentence", guild=guild_scope)
    async def status(interaction):
        now = utc_now()
        tz = bot.config.timezone
        day_key = local_day_key(tz, now)

        try:
            played = bot.db.has_played(day_key, str(interaction.user.id))
            has_sentence = bot.db.get_sentence(day_key) is not None
        except StoreError:
            bot.logger.warning("Status read failed for %s", day_key, exc_info=True)
            played = False
            has_sentence = False

        lines = [
            "Daily typing challenge: online",
            f"Timezone: `{tz.key}`",
            f"Today: `{day_key}`",
            f"Sentence published: `{'yes' if has_sentence else 'not yet'}`",
            f"You played today: `{'yes' if played else 'no'}`",
            f"Next challenge in: `{format_seconds(seconds_until_rollover(tz, now))}`",
        ]
        await interaction.response.send_message("\n".join(lines), ephemeral=True)
