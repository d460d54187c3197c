from __future__ import annotations

import logging
import time
from contextlib import AbstractContextManager, ExitStack
from typing import Protocol

from playwright.sync_api import Browser, BrowserContext, Error as PlaywrightError, Page, Playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from restockwatch.models import RenderSettings

LOG = logging.getLogger(__name__)


class RenderError(RuntimeError):
    pass


class RenderTimeout(RenderError):
    pass


class RenderFailure(RenderError):
    pass


class PageRenderer(Protocol):
    def render(self, url: str, ready_selector: str, settle_delay: float, timeout: float) -> str:
        ...


class PlaywrightPageRenderer(AbstractContextManager["PlaywrightPageRenderer"]):
    """Headless Chromium that returns the outer HTML of one container element."""

    blocked_resource_types = {"image", "media", "font"}
    launch_args = ["--disable-gpu", "--no-sandbox", "--disable-dev-shm-usage"]

    def __init__(self, settings: RenderSettings | None = None) -> None:
        self.settings = settings or RenderSettings()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    def __enter__(self) -> "PlaywrightPageRenderer":
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.settings.headless,
                args=self.launch_args,
            )
            self._context = self._browser.new_context(user_agent=self.settings.user_agent)
            self._context.route("**/*", self._route_filter)
        except PlaywrightError as exc:
            self.__exit__(None, None, None)
            raise RenderFailure(f"browser launch failed: {exc}") from exc
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        context, browser, playwright = self._context, self._browser, self._playwright
        self._context = self._browser = self._playwright = None
        # unwinds in reverse: context, then browser, then driver, even if an earlier close raises
        with ExitStack() as stack:
            if playwright:
                stack.callback(playwright.stop)
            if browser:
                stack.callback(browser.close)
            if context:
                stack.callback(context.close)

    def _route_filter(self, route) -> None:  # type: ignore[no-untyped-def]
        if route.request.resource_type in self.blocked_resource_types:
            route.abort()
            return
        route.continue_()

    def _new_page(self) -> Page:
        if not self._context:
            raise RuntimeError("renderer context is not initialized")
        return self._context.new_page()

    def render(self, url: str, ready_selector: str, settle_delay: float, timeout: float) -> str:
        """Navigate, wait ``settle_delay`` seconds, wait for ``ready_selector`` and return its outer HTML.

        ``timeout`` bounds the whole call, not each step.
        """
        deadline = time.monotonic() + timeout

        def remaining_ms() -> float:
            left = deadline - time.monotonic()
            if left <= 0:
                raise RenderTimeout(
                    f"headless browser timeout after {timeout:g}s waiting for container {ready_selector!r}"
                )
            return left * 1000

        page = self._new_page()
        try:
            LOG.info("rendering url=%s container=%s", url, ready_selector)
            page.goto(url, wait_until="domcontentloaded", timeout=remaining_ms())
            page.wait_for_timeout(min(settle_delay * 1000, remaining_ms()))
            element = page.wait_for_selector(ready_selector, state="visible", timeout=remaining_ms())
            if element is None:
                raise RenderFailure(f"container {ready_selector!r} not found")
            html = element.evaluate("node => node.outerHTML")
        except PlaywrightTimeoutError as exc:
            raise RenderTimeout(
                f"headless browser timeout after {timeout:g}s waiting for container {ready_selector!r}"
            ) from exc
        except PlaywrightError as exc:
            raise RenderFailure(f"page render failed (waited for {ready_selector!r}): {exc}") from exc
        finally:
            page.close()

        LOG.info("container visible; retrieved html length=%d", len(html))
        return html
