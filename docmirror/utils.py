"""
Utility Functions
HTML parsing, href resolution and URL helpers shared by the sanitizers.
"""

import logging
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

BS_PARSER = "lxml"


def parse_html(html: str) -> BeautifulSoup:
    """Parse markup with the parser every sanitizer shares."""
    return BeautifulSoup(html or "", BS_PARSER)


def resolve_href(href: Optional[str], base_url: Optional[str]) -> str:
    """
    Resolve a (possibly relative) href against *base_url*.

    Returns "" for missing hrefs so callers can treat them as non-matching.
    """
    if not href:
        return ""
    href = href.strip()
    if base_url:
        return urljoin(base_url, href)
    return href


def is_under_root(href: Optional[str], root_url: str) -> bool:
    """Plain prefix test: does *href* start with the site root URL?"""
    return bool(href) and bool(root_url) and href.startswith(root_url)


def append_query_marker(url: str, marker: str) -> str:
    """
    Append *marker* (e.g. ``pivots=cli``) to the query string of *url*.

    Uses ``&`` when a query already exists, ``?`` otherwise. A fragment stays
    at the end of the URL.
    """
    if not marker:
        return url
    parts = urlsplit(url)
    query = f"{parts.query}&{marker}" if parts.query else marker
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def id_selector(element_id: str) -> str:
    """CSS attribute selector matching an exact ``id`` (ids may not be valid CSS idents)."""
    escaped = element_id.replace("\\", "\\\\").replace('"', '\\"')
    return f'[id="{escaped}"]'


def class_tokens(value) -> list:
    """Normalise a ``class`` attribute (str or list) into its tokens."""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [token for item in value for token in str(item).split()]
    return str(value).split()
