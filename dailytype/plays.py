from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

import discord
from discord.ext import tasks

from .coordinator import ChallengeCoordinator, Phase, short_user_id
from .dates import utc_now
from .models import SubmitResult
from .reporter import build_leaderboard_content, build_typing_content


class ActivePlay:
    """One player's connection: an interaction message plus a tick loop.

    Discord hands over a whole attempt per message, so each message replaces
    the previous attempt and the clock runs from when the sentence was shown.
    """

    def __init__(
        self,
        coordinator: ChallengeCoordinator,
        interaction: discord.Interaction,
        *,
        tick_seconds: int,
        timeout_seconds: int,
        on_finish: Callable[[ActivePlay], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.interaction = interaction
        self.channel_id = interaction.channel_id
        self.timeout = timedelta(seconds=timeout_seconds)
        self.on_finish = on_finish
        self.logger = logger or logging.getLogger(__name__)

        self.shown_at: datetime | None = None
        self._last_render: datetime | None = None
        self.loop = tasks.loop(seconds=tick_seconds)(self._step)
        self.loop.after_loop(self._after_loop)

    @property
    def active(self) -> bool:
        return self.loop.is_running() and not self.coordinator.closed

    def start(self, shown_at: datetime | None = None) -> None:
        self.shown_at = shown_at or utc_now()
        self.loop.start()

    def cancel(self) -> None:
        if self.loop.is_running():
            self.loop.cancel()
        self.coordinator.close()

    def render(self, now: datetime | None = None) -> str:
        coordinator = self.coordinator
        if coordinator.phase is Phase.VIEWING:
            header = self._result_line()
            board = build_leaderboard_content(
                coordinator.day_key or "",
                coordinator.leaderboard,
                coordinator.seconds_until_next_challenge(now),
            )
            return f"{header}\n\n{board}" if header else board

        session = coordinator.session
        if session is None:
            return "Loading today's sentence..."
        if coordinator.phase is Phase.SUBMITTING:
            return f"Finished at **{session.wpm} WPM**. Saving your score..."
        return build_typing_content(session.target, session.overlay(), session.wpm)

    async def feed(self, text: str, received_at: datetime) -> None:
        coordinator = self.coordinator
        session = coordinator.session
        if session is None or coordinator.phase is not Phase.PLAYING:
            return

        while session.typed and coordinator.handle_backspace():
            pass
        for ch in text:
            coordinator.handle_keystroke(ch, now=self.shown_at)
        coordinator.tick(received_at)
        await self.refresh(received_at)

    async def refresh(self, now: datetime | None = None) -> None:
        self._last_render = now or utc_now()
        try:
            await self.interaction.edit_original_response(content=self.render(now))
        except discord.HTTPException:
            self.logger.warning(
                "Could not update challenge message for user=%s",
                short_user_id(self.coordinator.user_id),
                exc_info=True,
            )

    async def _step(self) -> None:
        now = utc_now()
        if self.shown_at is not None and now - self.shown_at >= self.timeout:
            self.logger.info("Play session timed out: user=%s", short_user_id(self.coordinator.user_id))
            self.coordinator.close()
            self.loop.stop()
            return

        changed = self.coordinator.tick(now)
        if changed or self._viewing_refresh_due(now):
            await self.refresh(now)

    async def _after_loop(self) -> None:
        self.coordinator.close()
        self.on_finish(self)

    def _viewing_refresh_due(self, now: datetime) -> bool:
        if self.coordinator.phase is not Phase.VIEWING:
            return False
        if self._last_render is None:
            return True
        return now - self._last_render >= self.coordinator.poll_interval

    def _result_line(self) -> str:
        coordinator = self.coordinator
        if coordinator.submit_failed:
            return "Your score could not be saved right now. Sorry about that."
        if coordinator.session is None:
            return "You've already played today's challenge."
        if coordinator.submit_result is SubmitResult.ALREADY_SUBMITTED:
            return "A score for you was already on today's board; it was kept."
        return f"Challenge complete: **{coordinator.wpm} WPM**."
