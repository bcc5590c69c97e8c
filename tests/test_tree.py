"""
Tests for tree.py — navigation locating and recursive expansion.

Covers:
  1. Candidate scanning and root-URL matching in locate_navigation
  2. Depth-first expansion of lazily rendered children
  3. Per-item failure isolation (timeouts, stale handles, missing children)
  4. Cancellation between siblings
"""

import asyncio

import pytest

from docmirror.errors import NavigationNotFound
from docmirror.tree import TreeExpander, locate_navigation

ROOT = "https://learn.example.com/docs"


def _load(session, url=ROOT):
    asyncio.run(session.navigate(url))
    return session


async def _locate_and_expand(session, config, should_stop=None):
    container = await locate_navigation(session, config.base_url, config)
    return await TreeExpander(session, config, should_stop=should_stop).expand(container)


# ====================================================================
# 1. Locator
# ====================================================================

class TestLocateNavigation:

    def test_finds_tree_whose_first_link_is_under_root(self, toc, make_session, make_config):
        session = _load(make_session({ROOT: toc.page(toc.leaf("n1", ROOT, "Overview"))}))
        container = asyncio.run(locate_navigation(session, ROOT, make_config()))
        assert container.tag.name == "ul"
        assert container.tag.find("a")["href"] == ROOT

    def test_skips_candidates_from_other_products(self, make_session, make_config):
        """The first list links elsewhere; the second one is ours."""
        html = (
            '<ul class="tree table-of-contents"><li>'
            '<ul id="other"><li><a href="https://learn.example.com/azure">Azure</a></li></ul>'
            '<ul id="ours"><li><a href="https://learn.example.com/docs/start">Start</a></li></ul>'
            '</li></ul>'
        )
        session = _load(make_session({ROOT: html}))
        container = asyncio.run(locate_navigation(session, ROOT, make_config()))
        assert container.tag["id"] == "ours"

    def test_skips_candidates_without_items_or_links(self, make_session, make_config):
        html = (
            '<ul class="tree table-of-contents"><li>'
            '<ul id="empty"></ul>'
            '<ul id="nolink"><li><span>Heading</span></li></ul>'
            '<ul id="ours"><li><a href="https://learn.example.com/docs">Docs</a></li></ul>'
            '</li></ul>'
        )
        session = _load(make_session({ROOT: html}))
        container = asyncio.run(locate_navigation(session, ROOT, make_config()))
        assert container.tag["id"] == "ours"

    def test_relative_hrefs_resolved_against_page_url(self, make_session, make_config):
        html = (
            '<ul class="tree table-of-contents"><li>'
            '<ul id="ours"><li><a href="/docs/start">Start</a></li></ul>'
            '</li></ul>'
        )
        session = _load(make_session({ROOT: html}))
        container = asyncio.run(locate_navigation(session, ROOT, make_config()))
        assert container.tag["id"] == "ours"

    def test_no_match_raises_navigation_not_found(self, make_session, make_config):
        html = (
            '<ul class="tree table-of-contents"><li>'
            '<ul><li><a href="https://elsewhere.example.com/">Elsewhere</a></li></ul>'
            '</li></ul>'
        )
        session = _load(make_session({ROOT: html}))
        with pytest.raises(NavigationNotFound):
            asyncio.run(locate_navigation(session, ROOT, make_config()))


# ====================================================================
# 2. Expansion
# ====================================================================

class TestTreeExpansion:

    def test_reveals_nested_lazy_children(self, toc, make_session, make_config):
        page = toc.page(
            toc.leaf("overview", ROOT, "Overview"),
            toc.branch("guides", "Guides"),
        )
        lazy = {
            "guides": toc.group(
                toc.leaf("intro", f"{ROOT}/guides/intro", "Intro"),
                toc.branch("advanced", "Advanced"),
            ),
            "advanced": toc.group(toc.leaf("tuning", f"{ROOT}/guides/tuning", "Tuning")),
        }
        session = _load(make_session({ROOT: page}, lazy_children=lazy))
        report = asyncio.run(_locate_and_expand(session, make_config()))

        assert report.expanded == 2
        assert report.failures == []
        assert report.max_depth == 1
        assert session.soup.find("a", href=f"{ROOT}/guides/tuning") is not None
        assert session.collapsed_ids() == []

    def test_leaves_are_never_clicked(self, toc, make_session, make_config):
        page = toc.page(toc.leaf("overview", ROOT, "Overview"), toc.leaf("faq", f"{ROOT}/faq", "FAQ"))
        session = _load(make_session({ROOT: page}))
        report = asyncio.run(_locate_and_expand(session, make_config()))
        assert report.expanded == 0
        assert session.clicks == []

    def test_already_expanded_items_are_not_enumerated(self, toc, make_session, make_config):
        page = toc.page(toc.leaf("overview", ROOT, "Overview"))
        session = _load(make_session({ROOT: page}))
        asyncio.run(_locate_and_expand(session, make_config()))
        assert "toc-top" not in session.clicks

    def test_slow_rendering_is_waited_for(self, toc, make_session, make_config):
        page = toc.page(toc.leaf("overview", ROOT, "Overview"), toc.branch("guides", "Guides"))
        lazy = {"guides": toc.group(toc.leaf("intro", f"{ROOT}/guides/intro", "Intro"))}
        session = _load(make_session({ROOT: page}, lazy_children=lazy, render_ticks=8))
        report = asyncio.run(_locate_and_expand(session, make_config(structural_timeout_s=1.0)))
        assert report.expanded == 1
        assert report.failures == []

    def test_branch_with_own_link_is_expanded(self, toc, make_session, make_config):
        page = toc.page(
            toc.leaf("overview", ROOT, "Overview"),
            toc.branch("api", "API", href=f"{ROOT}/api"),
        )
        lazy = {"api": toc.group(toc.leaf("client", f"{ROOT}/api/client", "Client"))}
        session = _load(make_session({ROOT: page}, lazy_children=lazy))
        report = asyncio.run(_locate_and_expand(session, make_config()))
        assert report.expanded == 1
        assert session.soup.find("a", href=f"{ROOT}/api/client") is not None


# ====================================================================
# 3. Failure isolation
# ====================================================================

class TestExpansionFailures:

    def _page(self, toc):
        return toc.page(
            toc.leaf("overview", ROOT, "Overview"),
            toc.branch("stuck", "Stuck"),
            toc.branch("broken", "Broken"),
            toc.branch("childless", "Childless"),
            toc.branch("good", "Good"),
        )

    def _lazy(self, toc):
        return {
            "stuck": toc.group(toc.leaf("s1", f"{ROOT}/s1", "S1")),
            "broken": toc.group(toc.leaf("b1", f"{ROOT}/b1", "B1")),
            "childless": toc.group(toc.leaf("c1", f"{ROOT}/c1", "C1")),
            "good": toc.group(toc.leaf("g1", f"{ROOT}/g1", "G1")),
        }

    def test_failed_items_are_recorded_and_siblings_continue(self, toc, make_session, make_config):
        session = _load(make_session(
            {ROOT: self._page(toc)},
            lazy_children=self._lazy(toc),
            stuck={"stuck"}, broken={"broken"}, childless={"childless"},
        ))
        report = asyncio.run(_locate_and_expand(session, make_config(structural_timeout_s=0.05)))

        assert sorted(report.failed_ids) == ["broken", "childless", "stuck"]
        assert report.expanded == 1
        assert session.soup.find("a", href=f"{ROOT}/g1") is not None
        assert session.soup.find("a", href=f"{ROOT}/s1") is None

    def test_no_silent_collapse(self, toc, make_session, make_config):
        """Every item still collapsed after expansion has a recorded failure."""
        session = _load(make_session(
            {ROOT: self._page(toc)},
            lazy_children=self._lazy(toc),
            stuck={"stuck"}, broken={"broken"},
        ))
        report = asyncio.run(_locate_and_expand(session, make_config(structural_timeout_s=0.05)))
        assert set(session.collapsed_ids()) <= set(report.failed_ids)
        assert session.collapsed_ids() != []

    def test_failures_logged_as_warnings(self, toc, make_session, make_config, caplog):
        session = _load(make_session(
            {ROOT: toc.page(toc.leaf("overview", ROOT, "Overview"), toc.branch("stuck", "Stuck"))},
            stuck={"stuck"},
        ))
        with caplog.at_level("WARNING", logger="docmirror.tree"):
            asyncio.run(_locate_and_expand(session, make_config(structural_timeout_s=0.05)))
        assert any("stuck" in r.getMessage() and r.levelname == "WARNING" for r in caplog.records)

    def test_timeout_failure_names_the_wait(self, toc, make_session, make_config):
        session = _load(make_session(
            {ROOT: toc.page(toc.leaf("overview", ROOT, "Overview"), toc.branch("stuck", "Stuck"))},
            stuck={"stuck"},
        ))
        report = asyncio.run(_locate_and_expand(session, make_config(structural_timeout_s=0.05)))
        assert "to expand" in report.failures[0].error


# ====================================================================
# 4. Cancellation
# ====================================================================

class TestExpansionCancellation:

    def test_stop_checked_before_each_sibling(self, toc, make_session, make_config):
        page = toc.page(
            toc.leaf("overview", ROOT, "Overview"),
            toc.branch("a", "A"),
            toc.branch("b", "B"),
        )
        lazy = {
            "a": toc.group(toc.leaf("a1", f"{ROOT}/a1", "A1")),
            "b": toc.group(toc.leaf("b1", f"{ROOT}/b1", "B1")),
        }
        session = _load(make_session({ROOT: page}, lazy_children=lazy))
        report = asyncio.run(
            _locate_and_expand(session, make_config(), should_stop=lambda: len(session.clicks) >= 1)
        )
        assert report.cancelled is True
        assert session.clicks == ["a"]
