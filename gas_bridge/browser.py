from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional

from playwright.async_api import Browser, BrowserContext, async_playwright

from gas_bridge.errors import CoreError, ErrorCode
from gas_bridge.json_logger import JsonLogger, log_event

__all__ = ["BrowserState", "SharedBrowserManager", "shared_browser", "shutdown"]


class BrowserState(str, Enum):
    ABSENT = "absent"
    LAUNCHING = "launching"
    LIVE = "live"
    DISCONNECTED = "disconnected"


class SharedBrowserManager:
    """Own the single browser process shared by every login and dashboard fetch.

    ``acquire`` launches lazily and reuses the running browser while its
    display mode matches. Concurrent callers during a launch all await the
    same launch task, so at most one browser process exists at a time.
    """

    def __init__(
        self,
        *,
        playwright_factory: Callable[[], Any] = async_playwright,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self._playwright_factory = playwright_factory
        self._logger = logger
        self._playwright: Any = None
        self._browser: Browser | None = None
        self._headless: bool | None = None
        self._launch_task: asyncio.Task[Browser] | None = None
        self._disconnected = False

    @property
    def state(self) -> BrowserState:
        if self._launch_task is not None and not self._launch_task.done():
            return BrowserState.LAUNCHING
        if self._browser is not None and self._browser.is_connected():
            return BrowserState.LIVE
        if self._disconnected:
            return BrowserState.DISCONNECTED
        return BrowserState.ABSENT

    @property
    def headless(self) -> bool | None:
        return self._headless if self.state is BrowserState.LIVE else None

    def attach_logger(self, logger: JsonLogger) -> None:
        self._logger = logger

    def _log(self, *, status: str = "ok", message: str, **fields: Any) -> None:
        if self._logger is not None:
            log_event(logger=self._logger, phase="browser", status=status, message=message, **fields)

    async def acquire(self, headless: bool) -> Browser:
        while True:
            browser = self._browser
            if browser is not None and browser.is_connected() and self._headless == headless:
                return browser

            task = self._launch_task
            if task is None:
                task = asyncio.ensure_future(self._launch(headless))
                self._launch_task = task
            launched = await asyncio.shield(task)
            if self._headless == headless and launched.is_connected():
                return launched

    async def _launch(self, headless: bool) -> Browser:
        stale = self._browser
        if stale is not None:
            self._browser = None
            if stale.is_connected():
                self._log(
                    message="Display mode changed; relaunching shared browser",
                    live_headless=self._headless,
                    requested_headless=headless,
                )
                await self._close_quietly(stale)

        try:
            if self._playwright is None:
                self._playwright = await self._playwright_factory().start()
            browser = await self._playwright.chromium.launch(headless=headless)
        except Exception as exc:
            self._reset()
            self._log(status="error", message="Shared browser launch failed", headless=headless, error=str(exc))
            raise CoreError(ErrorCode.LAUNCH_FAILED, f"Browser launch failed: {exc}") from exc
        finally:
            self._launch_task = None

        self._browser = browser
        self._headless = headless
        self._disconnected = False
        browser.on("disconnected", lambda _browser: self._on_disconnected(browser))
        self._log(message="Launched shared browser", headless=headless)
        return browser

    def _on_disconnected(self, browser: Browser) -> None:
        if self._browser is not browser:
            return
        self._browser = None
        self._headless = None
        self._disconnected = True
        self._log(status="warn", message="Shared browser disconnected")

    def _reset(self) -> None:
        self._browser = None
        self._headless = None
        self._launch_task = None

    async def _close_quietly(self, browser: Browser) -> None:
        try:
            await browser.close()
        except Exception as exc:
            self._log(status="warn", message="Ignoring error while closing shared browser", error=str(exc))

    async def release_all(self) -> None:
        task = self._launch_task
        if task is not None:
            with contextlib.suppress(Exception):
                await asyncio.shield(task)

        browser = self._browser
        playwright = self._playwright
        self._playwright = None
        try:
            if browser is not None:
                await browser.close()
                self._log(message="Closed shared browser")
        finally:
            self._reset()
            self._disconnected = False
            if playwright is not None:
                await playwright.stop()

    @asynccontextmanager
    async def browsing_context(self, headless: bool) -> AsyncIterator[BrowserContext]:
        """Yield a fresh isolated context that is closed on every exit path."""

        browser = await self.acquire(headless)
        context = await browser.new_context()
        try:
            yield context
        finally:
            with contextlib.suppress(Exception):
                await context.close()


shared_browser = SharedBrowserManager()


async def shutdown() -> None:
    await shared_browser.release_all()
