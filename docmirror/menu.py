"""
Menu Sanitizer
Turns the expanded navigation tree into a minimal list of in-site links.
"""

import html
import logging
from typing import List, Optional

from bs4 import Tag

from .models import RetainedLink
from .utils import append_query_marker, is_under_root, parse_html, resolve_href

logger = logging.getLogger(__name__)

INDEX_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
</head>
<body>
{menu}
</body>
</html>
"""


def link_label(anchor: Tag) -> str:
    """
    Display label of an anchor: its text with whitespace collapsed.

    Both the download pass and the link-rewrite pass derive filenames from
    this, so it must stay the single definition of "label".
    """
    return " ".join(anchor.get_text(" ").split())


def _direct_link(item: Tag) -> Optional[Tag]:
    return item.find("a", recursive=False)


def _menu_root(soup) -> Optional[Tag]:
    body = soup.body
    if body is None:
        return None
    for child in body.children:
        if isinstance(child, Tag):
            return child
    return None


def sanitize_menu(
    menu_html: str,
    root_url: str,
    *,
    base_url: Optional[str] = None,
    query_marker: str = "pivots=cli",
) -> str:
    """
    Reduce the expanded tree markup to bare nested lists of in-site links.

    1. Resolve hrefs against *base_url* (defaults to *root_url*).
    2. Remove every ``li`` whose direct link targets something outside
       *root_url*. Items without a direct link (or whose link has no href)
       are containers and stay. Any other off-root anchor left over is
       unwrapped to plain text.
    3. Drop every attribute except ``href`` on anchors, which gets the query
       marker appended.
    """
    soup = parse_html(menu_html)
    base = base_url or root_url

    for anchor in soup.find_all("a", href=True):
        anchor["href"] = resolve_href(anchor["href"], base)

    pruned = 0
    for item in soup.find_all("li"):
        if item.decomposed:
            continue
        link = _direct_link(item)
        if link is None or not link.has_attr("href"):
            continue
        if not is_under_root(link["href"], root_url):
            item.decompose()
            pruned += 1

    for anchor in soup.find_all("a"):
        if anchor.has_attr("href") and not is_under_root(anchor["href"], root_url):
            anchor.unwrap()

    for element in soup.find_all(True):
        href = element.get("href") if element.name == "a" else None
        element.attrs = {}
        if href:
            element["href"] = append_query_marker(href, query_marker)

    root = _menu_root(soup)
    result = str(root) if root is not None else ""
    logger.info(f"Menu sanitized: {pruned} off-site entries pruned, "
                f"{len(soup.find_all('a', href=True))} links kept")
    return result


def extract_links(menu_html: str, root_url: str) -> List[RetainedLink]:
    """Ordered, de-duplicated ``RetainedLink`` list for every in-site anchor."""
    soup = parse_html(menu_html)
    links = []
    seen = set()
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not is_under_root(href, root_url):
            continue
        link = RetainedLink(url=href, label=link_label(anchor))
        if link in seen:
            continue
        seen.add(link)
        links.append(link)
    return links


def build_index_document(menu_html: str, title: str) -> str:
    """Wrap the sanitized menu in a minimal UTF-8 HTML page."""
    return INDEX_TEMPLATE.format(title=html.escape(title), menu=menu_html)
