"""
Navigation with bounded retries and page recreation.

A failed goto can leave the page handle closed or torn. Retrying on the
same handle then fails forever, so before every retry we check the handle
and ask the session for a fresh, fully configured page if it's gone.

    ATTEMPTING -> SUCCEEDED
    ATTEMPTING -> FAILED -> [RECREATING ->] ATTEMPTING -> ...
    FAILED (no attempts left) -> EXHAUSTED
"""

import asyncio
import enum
import logging

from tales_analyzer.errors import NavigationError

logger = logging.getLogger(__name__)


class RetryState(str, enum.Enum):
    ATTEMPTING = "attempting"
    FAILED = "failed"
    RECREATING = "recreating"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class RetryPolicy:
    def __init__(
        self,
        session,
        max_attempts: int = 5,
        delay_seconds: float = 10.0,
        wait_until: str = "networkidle",
        sleep=asyncio.sleep,
        logger=logger,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.session = session
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds
        self.wait_until = wait_until
        self._sleep = sleep
        self.log = logger
        self.history: list[RetryState] = []
        # Page handle in use by the last navigate() call, so callers can close
        # a recreated page even when navigation ultimately fails.
        self.current_page = None

    @classmethod
    def from_settings(cls, session, settings, **kwargs) -> "RetryPolicy":
        return cls(
            session,
            max_attempts=settings.retry_max_attempts,
            delay_seconds=settings.retry_delay_seconds,
            wait_until=settings.navigation_wait_until,
            **kwargs,
        )

    def _enter(self, state: RetryState) -> RetryState:
        self.history.append(state)
        return state

    async def navigate(self, page, url: str):
        """
        Load url, retrying up to max_attempts times.
        Returns the page that finally loaded it (may be a recreated one).
        Raises NavigationError once attempts are exhausted.
        """
        self.history = []
        self.current_page = page
        remaining = self.max_attempts
        last_error = None
        state = self._enter(RetryState.ATTEMPTING)

        while True:
            if state is RetryState.ATTEMPTING:
                attempt = self.max_attempts - remaining + 1
                try:
                    await page.goto(url, wait_until=self.wait_until)
                    self._enter(RetryState.SUCCEEDED)
                    if attempt > 1:
                        self.log.info(f"Loaded {url} on attempt {attempt}")
                    return page
                except Exception as e:
                    last_error = e
                    remaining -= 1
                    self.log.warning(
                        f"Navigation to {url} failed (attempt {attempt}/{self.max_attempts}): {e}"
                    )
                    state = self._enter(RetryState.FAILED)

            elif state is RetryState.FAILED:
                if remaining <= 0:
                    self._enter(RetryState.EXHAUSTED)
                    raise NavigationError(url, self.max_attempts, str(last_error)) from last_error
                await self._sleep(self.delay_seconds)
                if self._page_unusable(page):
                    state = self._enter(RetryState.RECREATING)
                else:
                    state = self._enter(RetryState.ATTEMPTING)

            elif state is RetryState.RECREATING:
                self.log.info(f"Page handle closed, opening a fresh page for {url}")
                page = await self.session.open_page()
                self.current_page = page
                state = self._enter(RetryState.ATTEMPTING)

    @staticmethod
    def _page_unusable(page) -> bool:
        try:
            return page.is_closed()
        except Exception:
            return True
