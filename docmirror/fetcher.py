"""
Page Fetcher
============
Downloads the visible main content of every retained link.

For each link: navigate → wait for the content region → visibility probe →
sanitize → write ``pages/<filename>``. A failing page is logged and skipped;
it never stops the batch. A fixed delay follows every attempt.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable, Optional

from .content import sanitize_content
from .errors import PageFetchError, SessionError
from .models import FetchReport, RetainedLink, SanitizedPage
from .run_config import MirrorConfig
from .session import RenderedSession

logger = logging.getLogger(__name__)


class PageFetcher:
    """
    Sequential page downloader bound to one rendered session.

    Usage::

        fetcher = PageFetcher(session, config)
        report = await fetcher.fetch_all(links, config.pages_dir)
    """

    def __init__(
        self,
        session: RenderedSession,
        config: MirrorConfig,
        should_stop: Optional[Callable[[], bool]] = None,
        progress_callback: Optional[Callable] = None,
    ):
        self.session = session
        self.config = config
        self._should_stop = should_stop or (lambda: False)
        self._progress_callback = progress_callback

    async def fetch_all(self, links: Iterable[RetainedLink], pages_dir: Path) -> FetchReport:
        """Fetch every link in order; returns saved pages and failures."""
        links = list(links)
        pages_dir = Path(pages_dir)
        pages_dir.mkdir(parents=True, exist_ok=True)
        report = FetchReport()

        for index, link in enumerate(links, 1):
            if self._should_stop():
                report.cancelled = True
                logger.info(f"Stop requested — {len(links) - index + 1} pages left unfetched")
                break
            logger.info(f"[Page {index}/{len(links)}] {link.url}")
            try:
                page = await self.fetch_page(link, pages_dir)
                report.saved.append(page)
            except PageFetchError as e:
                report.failures.append({
                    'url': link.url,
                    'label': link.label,
                    'error': e.reason,
                })
                logger.error(f"Failed to fetch {link.url}: {e.reason}")
            finally:
                if self._progress_callback:
                    self._progress_callback(index, len(links), link.url)
            await asyncio.sleep(self.config.page_delay_s)

        logger.info(
            f"Pages fetched: {len(report.saved)} saved, {len(report.failures)} failed"
        )
        return report

    async def fetch_page(self, link: RetainedLink, pages_dir: Path) -> SanitizedPage:
        """
        Download, sanitize and write one page.

        Raises:
            PageFetchError: navigation, content wait, extraction or write failed.
        """
        selector = self.config.content_selector
        try:
            await self.session.navigate(link.url)
            await self.session.wait_until(
                lambda: self.session.find_element(selector),
                self.config.structural_timeout_s,
                message=f"content region {selector!r}",
            )
            visible = await self.session.execute_visibility_probe(selector)
        except SessionError as e:
            raise PageFetchError(link.url, str(e), link.label) from e

        if not visible:
            logger.warning(f"No visible content in {selector!r} on {link.url}")

        html = sanitize_content(
            visible,
            back_href=self.config.back_href,
            removed_region_ids=self.config.removed_region_ids,
            feedback_selector=self.config.feedback_selector,
        )
        page = SanitizedPage(link=link, filename=link.filename, html=html)

        # Names are not disambiguated: a later link with the same name wins.
        target = Path(pages_dir) / page.filename
        try:
            target.write_text(page.html, encoding="utf-8")
        except OSError as e:
            raise PageFetchError(link.url, f"write {target}: {e}", link.label) from e
        logger.debug(f"Saved {target}")
        return page
