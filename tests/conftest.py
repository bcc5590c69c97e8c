"""
Shared fixtures: an in-memory rendered session and config factories.

``FakeSession`` keeps a BeautifulSoup DOM per loaded URL and simulates the
behaviour of a client-rendered tree widget:

  - clicking an item's expander schedules a re-render that only lands after
    a few more DOM queries (asynchronous rendering);
  - the re-render replaces the item element with a fresh copy carrying the
    expanded class and its lazily loaded child list, so every handle held on
    the old element goes stale;
  - ``stuck`` items never flip to expanded, ``childless`` items flip but
    never grow a child list, ``broken`` items raise a stale-handle error
    when clicked;
  - ``failing_urls`` raise a navigation error.
"""

import copy
from contextlib import asynccontextmanager

import pytest
from bs4 import BeautifulSoup

from docmirror.errors import ElementNotFound, NavigationError, StaleNodeReference
from docmirror.run_config import MirrorConfig
from docmirror.session import RenderedSession

ROOT = "https://learn.example.com/docs"


class FakeElement:
    def __init__(self, tag):
        self.tag = tag

    def __repr__(self):
        return f"<FakeElement {self.tag.name} id={self.tag.get('id')!r}>"


class FakeSession(RenderedSession):
    def __init__(
        self,
        pages,
        *,
        lazy_children=None,
        render_ticks=1,
        stuck=(),
        childless=(),
        broken=(),
        failing_urls=(),
        expanded_class="is-expanded",
    ):
        self.pages = dict(pages)
        self.lazy_children = dict(lazy_children or {})
        self.render_ticks = render_ticks
        self.stuck = set(stuck)
        self.childless = set(childless)
        self.broken = set(broken)
        self.failing_urls = set(failing_urls)
        self.expanded_class = expanded_class
        self.poll_interval = 0.002

        self.soup = None
        self._url = ""
        self._pending = {}
        self.navigations = []
        self.clicks = []
        self.opened = False
        self.closed = False

    # -- helpers -----------------------------------------------------------

    def _lookup(self, url):
        if url in self.pages:
            return self.pages[url]
        return self.pages.get(url.split("?", 1)[0])

    def _check(self, element):
        tag = element.tag
        if tag is self.soup:
            return tag
        if not any(parent is self.soup for parent in tag.parents):
            raise StaleNodeReference(f"{element!r} is not attached to the DOM")
        return tag

    def _tick(self):
        for item_id, remaining in list(self._pending.items()):
            if remaining > 0:
                self._pending[item_id] = remaining - 1
                continue
            del self._pending[item_id]
            self._render_expanded(item_id)

    def _render_expanded(self, item_id):
        old = self.soup.find(id=item_id)
        if old is None:
            return
        new = copy.copy(old)
        new["class"] = list(old.get("class", [])) + [self.expanded_class]
        child_html = self.lazy_children.get(item_id)
        if child_html and item_id not in self.childless:
            fragment = BeautifulSoup(child_html, "html.parser")
            new.append(fragment.find("ul"))
        old.replace_with(new)

    def collapsed_ids(self):
        """Ids of items that still have an expander but are not expanded."""
        ids = []
        for item in self.soup.select("li.tree-item"):
            if self.expanded_class in item.get("class", []):
                continue
            if item.find(class_="tree-expander", recursive=False):
                ids.append(item.get("id"))
        return ids

    # -- RenderedSession ---------------------------------------------------

    @property
    def url(self):
        return self._url

    async def navigate(self, url):
        self.navigations.append(url)
        if url in self.failing_urls:
            raise NavigationError(f"{url}: net::ERR_CONNECTION_RESET")
        html = self._lookup(url)
        if html is None:
            raise NavigationError(f"{url}: HTTP 404")
        self._url = url
        self._pending.clear()
        self.soup = BeautifulSoup(html, "html.parser")

    async def find_elements(self, selector, root=None):
        self._tick()
        scope = self._check(root) if root is not None else self.soup
        return [FakeElement(tag) for tag in scope.select(selector)]

    async def click(self, element):
        tag = self._check(element)
        item = tag if tag.name == "li" else tag.find_parent("li")
        item_id = item.get("id")
        self.clicks.append(item_id)
        if item_id in self.broken:
            raise StaleNodeReference(f"item {item_id!r} was re-rendered before the click")
        if item_id in self.stuck:
            return
        self._pending[item_id] = self.render_ticks

    async def get_attribute(self, element, name):
        self._tick()
        value = self._check(element).get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    async def outer_html(self, element):
        self._tick()
        return str(self._check(element))

    async def execute_visibility_probe(self, selector):
        self._tick()
        region = self.soup.select_one(selector)
        if region is None:
            raise ElementNotFound(f"No element matches {selector!r}")
        clone = copy.copy(region)
        for hidden in clone.select('[hidden], [style*="display:none"], [style*="display: none"]'):
            if not hidden.decomposed:
                hidden.decompose()
        return str(clone)


class TocMarkup:
    """Builders for tree-widget markup in the shape the expander expects."""

    root = ROOT

    @staticmethod
    def leaf(node_id, href, label):
        return f'<li class="tree-item" id="{node_id}"><a class="tree-link" href="{href}">{label}</a></li>'

    @staticmethod
    def branch(node_id, label, href=None):
        link = f'<a class="tree-link" href="{href}">{label}</a>' if href else ""
        return (
            f'<li class="tree-item" id="{node_id}">'
            f'<span class="tree-expander" aria-expanded="false">{label}</span>{link}</li>'
        )

    @staticmethod
    def group(*items):
        return '<ul class="tree-group">' + "".join(items) + "</ul>"

    @classmethod
    def page(cls, *items, main="<h1>Docs home</h1>"):
        return (
            '<html><body><nav>'
            '<ul class="tree table-of-contents">'
            '<li class="tree-item is-expanded" id="toc-top">'
            '<span class="tree-expander" aria-expanded="true">Docs</span>'
            f'{cls.group(*items)}'
            '</li></ul></nav>'
            f'<main id="main" class="content">{main}</main>'
            '</body></html>'
        )

    @staticmethod
    def content(title, body="", extra=""):
        return (
            '<html><body>'
            '<div id="article-header"><span>Breadcrumbs</span></div>'
            f'<main id="main" class="content"><h1 class="title">{title}</h1>'
            f'<p style="color:red">{body}</p>'
            '<div id="ms--inline-notifications">Banner</div>'
            '<p style="display:none">hidden text</p>'
            '<section class="feedback-section"><button>Yes</button></section>'
            f'{extra}</main>'
            '</body></html>'
        )


@pytest.fixture
def toc():
    return TocMarkup


@pytest.fixture
def make_session():
    """Factory: make_session(pages, **behaviour) -> FakeSession."""
    return FakeSession


@pytest.fixture
def make_config(tmp_path):
    """Factory for a fast MirrorConfig writing under tmp_path."""
    def _make(**overrides):
        values = dict(
            base_url=ROOT,
            output_base_path=str(tmp_path / "mirror"),
            structural_timeout_s=0.1,
            poll_interval_s=0.002,
            expand_delay_s=0,
            page_delay_s=0,
        )
        values.update(overrides)
        return MirrorConfig(**values)
    return _make


@pytest.fixture
def factory_for():
    """Wrap a FakeSession into a session factory usable by DocMirror."""
    def _wrap(session):
        @asynccontextmanager
        async def _factory(config):
            session.opened = True
            try:
                yield session
            finally:
                session.closed = True
        return _factory
    return _wrap
