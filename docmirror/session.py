"""
Rendered Session
================
The only component that talks to a browser.

``RenderedSession`` is the async surface the tree and page stages consume:
navigate, query, click, read attributes, poll with a timeout, and run the
visibility probe. ``PlaywrightSession`` implements it on a single Chromium
page; ``open_session()`` acquires that page for a whole run and always
tears it down.

Playwright errors never leak past this module: they are translated into the
``docmirror.errors`` taxonomy so callers can tell a stale handle from a
timeout from a failed navigation.

This module does NOT know about trees, menus or files.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeout

from .errors import (
    ElementNotFound,
    NavigationError,
    SessionError,
    StaleNodeReference,
    WaitTimeout,
)
from .run_config import MirrorConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Visibility probe
# ---------------------------------------------------------------------------
# Rebuilds the region matched by the selector keeping only rendered-visible
# elements (not display:none, not visibility:hidden, not [hidden], non-zero
# box). Attributes are copied verbatim. Returns null if nothing matches.
VISIBILITY_PROBE_JS = r"""
(selector) => {
    const region = document.querySelector(selector);
    if (!region) return null;

    const isVisible = (el) => {
        if (el.hidden) return false;
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden') return false;
        const rect = el.getBoundingClientRect();
        return rect.width > 0 || rect.height > 0;
    };

    const rebuild = (node) => {
        if (node.nodeType === Node.TEXT_NODE) {
            return document.createTextNode(node.textContent);
        }
        if (node.nodeType !== Node.ELEMENT_NODE || !isVisible(node)) {
            return null;
        }
        const copy = document.createElement(node.tagName.toLowerCase());
        for (const attr of node.attributes) {
            try { copy.setAttribute(attr.name, attr.value); } catch (e) { /* invalid name */ }
        }
        for (const child of node.childNodes) {
            const rebuilt = rebuild(child);
            if (rebuilt) copy.appendChild(rebuilt);
        }
        return copy;
    };

    const result = rebuild(region);
    return result ? result.outerHTML : '';
}
"""


Predicate = Callable[[], Awaitable[Any]]


class RenderedSession(ABC):
    """
    Async rendered-page session.

    Elements returned by ``find_element(s)`` are opaque handles; they go stale
    when the page navigates or re-renders and must then be looked up again.
    """

    poll_interval: float = 0.25

    @property
    @abstractmethod
    def url(self) -> str:
        """URL of the currently loaded document."""

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Load *url*. Raises ``NavigationError``."""

    @abstractmethod
    async def find_elements(self, selector: str, root: Any = None) -> List[Any]:
        """All matches under *root* (or the document). Empty list if none."""

    @abstractmethod
    async def click(self, element: Any) -> None:
        """Click *element*. Raises ``StaleNodeReference`` if it is detached."""

    @abstractmethod
    async def get_attribute(self, element: Any, name: str) -> Optional[str]:
        """Attribute value or None."""

    @abstractmethod
    async def outer_html(self, element: Any) -> str:
        """Serialized markup of *element* including itself."""

    @abstractmethod
    async def execute_visibility_probe(self, selector: str) -> str:
        """Markup of the visible part of the region matched by *selector*."""

    async def find_element(self, selector: str, root: Any = None) -> Any:
        """First match under *root*. Raises ``ElementNotFound``."""
        matches = await self.find_elements(selector, root)
        if not matches:
            raise ElementNotFound(f"No element matches {selector!r}")
        return matches[0]

    async def wait_until(
        self,
        predicate: Predicate,
        timeout: float,
        *,
        message: str = "condition",
    ) -> Any:
        """
        Poll *predicate* until it returns a truthy value, then return it.

        ``ElementNotFound`` from the predicate counts as "not yet"; any other
        error propagates immediately. Raises ``WaitTimeout`` once *timeout*
        seconds have elapsed.
        """
        deadline = time.monotonic() + timeout
        while True:
            try:
                value = await predicate()
            except ElementNotFound:
                value = None
            if value:
                return value
            if time.monotonic() >= deadline:
                raise WaitTimeout(f"Timed out after {timeout:.1f}s waiting for {message}")
            await asyncio.sleep(self.poll_interval)


def _translate(exc: PlaywrightError, action: str) -> SessionError:
    """Map a Playwright error onto the docmirror taxonomy."""
    msg = str(exc).splitlines()[0] if str(exc) else type(exc).__name__
    lowered = msg.lower()
    if "not attached" in lowered or "detached" in lowered:
        return StaleNodeReference(f"{action}: {msg}")
    if isinstance(exc, PlaywrightTimeout):
        return WaitTimeout(f"{action}: {msg}")
    return SessionError(f"{action}: {msg}")


class PlaywrightSession(RenderedSession):
    """``RenderedSession`` backed by one Playwright ``Page``."""

    def __init__(self, page: Page, config: MirrorConfig):
        self.page = page
        self.config = config
        self.poll_interval = config.poll_interval_s

    @property
    def url(self) -> str:
        return self.page.url

    async def navigate(self, url: str) -> None:
        try:
            response = await self.page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.config.navigation_timeout_s * 1000,
            )
        except PlaywrightError as e:
            raise NavigationError(f"{url}: {str(e).splitlines()[0]}") from e
        if response is not None and response.status >= 400:
            raise NavigationError(f"{url}: HTTP {response.status}")

    async def find_elements(self, selector: str, root: Any = None) -> List[Any]:
        scope = root if root is not None else self.page
        try:
            return await scope.query_selector_all(selector)
        except PlaywrightError as e:
            raise _translate(e, f"query {selector!r}") from e

    async def click(self, element: Any) -> None:
        try:
            await element.click(timeout=self.config.click_timeout_s * 1000)
            return
        except PlaywrightTimeout:
            # Obscured or off-screen tree items still respond to a DOM click
            logger.debug("Pointer click timed out, falling back to element.click()")
        except PlaywrightError as e:
            raise _translate(e, "click") from e
        try:
            await element.evaluate("el => el.click()")
        except PlaywrightError as e:
            raise _translate(e, "click") from e

    async def get_attribute(self, element: Any, name: str) -> Optional[str]:
        try:
            return await element.get_attribute(name)
        except PlaywrightError as e:
            raise _translate(e, f"read {name!r}") from e

    async def outer_html(self, element: Any) -> str:
        try:
            return await element.evaluate("el => el.outerHTML")
        except PlaywrightError as e:
            raise _translate(e, "read outerHTML") from e

    async def execute_visibility_probe(self, selector: str) -> str:
        try:
            html = await self.page.evaluate(VISIBILITY_PROBE_JS, selector)
        except PlaywrightError as e:
            raise _translate(e, "visibility probe") from e
        if html is None:
            raise ElementNotFound(f"No element matches {selector!r}")
        return html


@asynccontextmanager
async def open_session(config: MirrorConfig) -> AsyncIterator[PlaywrightSession]:
    """
    Launch Chromium and yield a ``PlaywrightSession`` for the whole run.

    Page, context, browser and driver are closed in ``finally`` whatever
    happens inside the block.
    """
    playwright = await async_playwright().start()
    browser = None
    context = None
    try:
        browser = await playwright.chromium.launch(
            headless=config.headless,
            args=[
                '--disable-gpu',
                '--no-sandbox',
                '--disable-dev-shm-usage',
            ],
        )
        context = await browser.new_context(
            user_agent=config.user_agent,
            viewport={
                'width': config.viewport_width,
                'height': config.viewport_height,
            },
            locale='en-US',
        )
        page = await context.new_page()
        logger.info(f"Playwright browser initialized (headless={config.headless})")
        yield PlaywrightSession(page, config)
    finally:
        if context is not None:
            try:
                await context.close()
            except PlaywrightError as e:
                logger.debug(f"Context close failed: {e}")
        if browser is not None:
            try:
                await browser.close()
            except PlaywrightError as e:
                logger.debug(f"Browser close failed: {e}")
        try:
            await playwright.stop()
        except PlaywrightError as e:
            logger.debug(f"Playwright stop failed: {e}")
        logger.info("Playwright browser closed")
