"""
Mirror Pipeline
===============
Run-to-completion orchestration of one mirror run.

    navigate root → wait for TOC → locate tree → expand → re-locate →
    sanitize menu → write index.html → fetch pages → rewrite links → verify

The rendered session is acquired once and released unconditionally.
Failures are reported through logs and ``MirrorResult.status``; ``mirror()``
never raises (cancellation of the surrounding task excepted).
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from .errors import LinkRewriteError, NavigationNotFound, WaitTimeout
from .fetcher import PageFetcher
from .menu import build_index_document, extract_links, sanitize_menu
from .models import MirrorResult
from .rewriter import rewrite_index, verify_output
from .run_config import MirrorConfig
from .session import RenderedSession, open_session
from .tree import TreeExpander, locate_navigation

logger = logging.getLogger(__name__)


class DocMirror:
    """
    Offline mirror builder for a tree-navigated documentation site.

    Usage::

        config = MirrorConfig(base_url="https://learn.example.com/docs",
                              output_base_path="out")
        result = DocMirror(config).run()

    ``session_factory`` is an async context manager factory taking the
    config; it defaults to the Playwright-backed ``open_session``.
    """

    def __init__(self, config: MirrorConfig, session_factory: Optional[Callable] = None):
        self.config = config
        self._session_factory = session_factory or open_session
        self._stop_requested = False
        self._progress_callback: Optional[Callable] = None

    def set_progress_callback(self, callback: Callable) -> None:
        """Set callback: callback(pages_done, pages_total, current_url)"""
        self._progress_callback = callback

    def stop(self) -> None:
        """Request a graceful stop of the current (or next) run; files already written are kept."""
        self._stop_requested = True
        logger.info("Stop requested")

    def _should_stop(self) -> bool:
        return self._stop_requested

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(self) -> MirrorResult:
        """Sync wrapper — run the async pipeline from synchronous code."""
        return asyncio.run(self.mirror())

    async def mirror(self) -> MirrorResult:
        cfg = self.config
        result = MirrorResult(base_url=cfg.base_url)
        start = time.time()

        logger.info("=" * 65)
        logger.info("MIRROR STARTED")
        logger.info(f"Base URL: {cfg.base_url}")
        logger.info(f"Output:   {cfg.output_dir}")
        logger.info("=" * 65)

        try:
            async with self._session_factory(cfg) as session:
                await self._run_pipeline(session, result)
        except NavigationNotFound as e:
            result.status = "navigation_not_found"
            result.errors.append(str(e))
            logger.error(f"Navigation tree not found — nothing written: {e}")
        except Exception as e:
            result.status = "failed"
            result.errors.append(f"{type(e).__name__}: {e}")
            logger.error(f"Mirror run failed: {e}", exc_info=True)
        finally:
            # A stop() issued before or during this run applies to it only.
            self._stop_requested = False

        result.stats = self._build_stats(result, time.time() - start)
        logger.info("=" * 65)
        logger.info(f"MIRROR FINISHED — status: {result.status}")
        logger.info("=" * 65)
        return result

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run_pipeline(self, session: RenderedSession, result: MirrorResult) -> None:
        cfg = self.config
        root_url = cfg.base_url

        await session.navigate(root_url)
        try:
            await session.wait_until(
                lambda: session.find_element(cfg.toc_selector),
                cfg.structural_timeout_s,
                message="table of contents",
            )
        except WaitTimeout as e:
            raise NavigationNotFound(f"Table of contents never appeared: {e}") from e

        container = await locate_navigation(session, root_url, cfg)
        expander = TreeExpander(session, cfg, should_stop=self._should_stop)
        result.expansion = await expander.expand(container)
        if result.expansion.cancelled:
            result.status = "cancelled"
            return

        # Expansion re-rendered the tree; never reuse its handles.
        container = await locate_navigation(session, root_url, cfg)
        menu_html = sanitize_menu(
            await session.outer_html(container),
            root_url,
            base_url=session.url,
            query_marker=cfg.query_marker,
        )

        cfg.output_dir.mkdir(parents=True, exist_ok=True)
        cfg.index_path.write_text(build_index_document(menu_html, root_url), encoding="utf-8")
        result.index_path = cfg.index_path
        result.pages_dir = cfg.pages_dir
        logger.info(f"Navigation saved to {cfg.index_path}")

        result.links = extract_links(menu_html, root_url)
        logger.info(f"{len(result.links)} pages to download")
        fetcher = PageFetcher(
            session, cfg,
            should_stop=self._should_stop,
            progress_callback=self._progress_callback,
        )
        result.fetch = await fetcher.fetch_all(result.links, cfg.pages_dir)

        try:
            result.rewrite = rewrite_index(
                cfg.index_path, root_url, pages_dirname=cfg.pages_dirname
            )
        except LinkRewriteError as e:
            result.errors.append(str(e))
            logger.error(f"Link rewrite failed — navigation links stay remote: {e}")

        if result.rewrite is not None:
            result.broken_links = verify_output(cfg.index_path)

        if result.fetch.cancelled:
            result.status = "cancelled"
        elif result.rewrite is None or result.broken_links or result.fetch.failures:
            result.status = "incomplete"
        else:
            result.status = "completed"

    @staticmethod
    def _build_stats(result: MirrorResult, elapsed: float) -> dict:
        return {
            'nodes_expanded': result.expansion.expanded,
            'nodes_failed': len(result.expansion.failures),
            'tree_depth': result.expansion.max_depth,
            'links_found': len(result.links),
            'pages_saved': len(result.fetch.saved),
            'pages_failed': len(result.fetch.failures),
            'links_rewritten': result.rewrite.rewritten if result.rewrite else 0,
            'links_left_remote': len(result.rewrite.left_remote) if result.rewrite else 0,
            'broken_links': len(result.broken_links),
            'elapsed_time': elapsed,
        }
