"""
Navigation Tree
===============
Locate the site's navigation tree and expand every collapsed node in it.

Responsibilities:
  1. **locate_navigation** — pick the tree whose first entry links to the root URL
  2. **TreeExpander**      — depth-first expansion of lazily rendered children

The widget re-renders items as they expand, which detaches previously held
handles. Nodes are therefore carried as ``TreeNode(node_id, handle)`` and
looked up again by id before every use that follows a click.

This module does NOT own the session lifecycle or page navigation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional

from .errors import (
    ElementNotFound,
    ExpansionTimeout,
    NavigationNotFound,
    StaleNodeReference,
    WaitTimeout,
)
from .models import ExpansionFailure, ExpansionReport, TreeNode
from .run_config import MirrorConfig
from .session import RenderedSession
from .utils import class_tokens, id_selector, is_under_root, resolve_href

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Locator
# ---------------------------------------------------------------------------

async def locate_navigation(
    session: RenderedSession,
    root_url: str,
    config: MirrorConfig,
) -> Any:
    """
    Return the candidate list container whose first item links under *root_url*.

    The table-of-contents region usually holds several nested lists; the one
    we want is the first whose first ``li > a`` targets the root. Candidates
    that fail lookup, went stale, or do not qualify are skipped.

    Raises:
        NavigationNotFound: no candidate qualifies.
    """
    candidates = await session.find_elements(config.candidate_selector)
    logger.debug(f"Scanning {len(candidates)} candidate navigation lists")

    for index, candidate in enumerate(candidates):
        try:
            first_item = await session.find_element("li", root=candidate)
            anchor = await session.find_element("a", root=first_item)
            href = resolve_href(await session.get_attribute(anchor, "href"), session.url)
        except (ElementNotFound, StaleNodeReference) as e:
            logger.debug(f"Candidate #{index} skipped: {e}")
            continue
        if is_under_root(href, root_url):
            logger.info(f"Navigation tree found (candidate #{index}, first link {href})")
            return candidate

    logger.error("No matching table of contents found")
    raise NavigationNotFound(f"No navigation tree links to {root_url}")


# ---------------------------------------------------------------------------
# Expander
# ---------------------------------------------------------------------------

class TreeExpander:
    """
    Recursively expand every collapsed node below a container.

    Per item: click → wait for the expanded class → wait for a child list →
    recurse → fixed delay. Any failure in the first four steps is logged,
    recorded in the report, and the item's subtree is left collapsed; the
    sibling loop carries on. Every wait is bounded, so an item whose state
    never flips costs one timeout and nothing more.
    """

    def __init__(
        self,
        session: RenderedSession,
        config: MirrorConfig,
        should_stop: Optional[Callable[[], bool]] = None,
    ):
        self.session = session
        self.config = config
        self._should_stop = should_stop or (lambda: False)

    async def expand(self, container: Any) -> ExpansionReport:
        """Expand everything below *container*; returns what happened."""
        report = ExpansionReport()
        await self._expand_container(container, 0, report)
        logger.info(
            f"Tree expansion finished: {report.expanded} expanded, "
            f"{len(report.failures)} failed, max depth {report.max_depth}"
        )
        return report

    # ------------------------------------------------------------------
    # Recursion
    # ------------------------------------------------------------------

    async def _expand_container(
        self, container: Any, depth: int, report: ExpansionReport
    ) -> None:
        nodes = await self._collapsed_children(container)
        if not nodes:
            return
        report.max_depth = max(report.max_depth, depth)
        logger.info(f"Found {len(nodes)} non-expanded items at depth {depth}")

        for node in nodes:
            if self._should_stop():
                report.cancelled = True
                logger.info("Stop requested — abandoning tree expansion")
                return
            try:
                child_container = await self._expand_node(node)
                report.expanded += 1
                await self._expand_container(child_container, depth + 1, report)
            except Exception as e:
                report.failures.append(ExpansionFailure(node.node_id, depth, str(e)))
                logger.warning(f"Error expanding tree item {node.node_id!r}: {e}")
            if report.cancelled:
                return
            await asyncio.sleep(self.config.expand_delay_s)

    async def _collapsed_children(self, container: Any) -> List[TreeNode]:
        """Direct child items that are collapsed and have an expander control."""
        selector = (
            f":scope > {self.config.tree_item_selector}"
            f":not(.{self.config.expanded_class})"
        )
        nodes = []
        for item in await self.session.find_elements(selector, root=container):
            expanders = await self.session.find_elements(
                f":scope > {self.config.expander_selector}", root=item
            )
            if not expanders:
                continue  # leaf
            node_id = await self.session.get_attribute(item, "id")
            nodes.append(TreeNode(node_id=node_id or None, handle=item))
        return nodes

    # ------------------------------------------------------------------
    # One node
    # ------------------------------------------------------------------

    async def _expand_node(self, node: TreeNode) -> Any:
        """Expand *node* and return its (freshly resolved) child container."""
        item = await self._resolve(node)

        if not await self._has_expanded_class(item):
            logger.debug(f"Expanding item {node.node_id!r}")
            await self.session.click(await self._click_target(item))
            await self._wait(
                lambda: self._resolved_is_expanded(node),
                f"item {node.node_id!r} to expand",
            )

        return await self._wait(
            lambda: self._child_container(node),
            f"children of item {node.node_id!r}",
        )

    async def _wait(self, predicate, message: str) -> Any:
        try:
            return await self.session.wait_until(
                predicate, self.config.structural_timeout_s, message=message
            )
        except WaitTimeout as e:
            raise ExpansionTimeout(str(e)) from e

    async def _resolve(self, node: TreeNode) -> Any:
        """Fresh handle for *node*; falls back to the held one when it has no id."""
        if not node.node_id:
            return node.handle
        return await self.session.find_element(id_selector(node.node_id))

    async def _has_expanded_class(self, item: Any) -> bool:
        classes = class_tokens(await self.session.get_attribute(item, "class"))
        return self.config.expanded_class in classes

    # Poll predicates: a node re-rendered between lookup and read is simply
    # looked up again on the next poll. Without an id there is nothing to
    # look up, so staleness is final.

    async def _resolved_is_expanded(self, node: TreeNode) -> bool:
        try:
            return await self._has_expanded_class(await self._resolve(node))
        except StaleNodeReference:
            if not node.node_id:
                raise
            return False

    async def _child_container(self, node: TreeNode) -> Any:
        try:
            item = await self._resolve(node)
            children = await self.session.find_elements(
                self.config.child_container_selector, root=item
            )
        except StaleNodeReference:
            if not node.node_id:
                raise
            return None
        return children[0] if children else None

    async def _click_target(self, item: Any) -> Any:
        expanders = await self.session.find_elements(
            f":scope > {self.config.expander_selector}", root=item
        )
        return expanders[0] if expanders else item
