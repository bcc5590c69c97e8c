"""
Content Sanitizer
Strips page chrome and every attribute from downloaded page content.
"""

import logging
from typing import Iterable, Optional

from bs4 import NavigableString

from .run_config import DEFAULT_REMOVED_REGION_IDS
from .utils import parse_html

logger = logging.getLogger(__name__)

BACK_LINK_TEXT = "Back to menu"
DEFAULT_FEEDBACK_SELECTOR = "#feedback-section, .feedback-section"
NOISE_TAGS = ("button", "form")
PRESERVE_WHITESPACE_TAGS = ("pre", "textarea")


def _remove(element) -> bool:
    if element.decomposed:
        return False
    element.decompose()
    return True


def _collapse_whitespace(soup) -> None:
    """Reduce every whitespace-only text run outside <pre> to a single newline."""
    soup.smooth()
    for text in soup.find_all(string=True):
        if type(text) is not NavigableString or not text or text.strip() or text == "\n":
            continue
        if text.find_parent(PRESERVE_WHITESPACE_TAGS):
            continue
        text.replace_with("\n")


def sanitize_content(
    html: str,
    *,
    back_href: str = "../index.html",
    removed_region_ids: Optional[Iterable[str]] = None,
    feedback_selector: str = DEFAULT_FEEDBACK_SELECTOR,
    back_link: bool = True,
) -> str:
    """
    Clean the visible-content markup of one page.

    1. Remove the named regions (header, metadata, live-region announcers,
       additional resources, inline notifications).
    2. Remove feedback sections, buttons and forms.
    3. Strip every attribute from every element.
    4. Append a "Back to menu" link to ``main``, else ``body``, else the root.

    Whitespace left behind by removed elements is collapsed, so steps 1-3
    are idempotent. Step 4 is not: running this twice with
    ``back_link=True`` appends a second link, so callers sanitize once.
    """
    soup = parse_html(html)
    region_ids = DEFAULT_REMOVED_REGION_IDS if removed_region_ids is None else removed_region_ids

    removed = 0
    for region_id in region_ids:
        for element in soup.find_all(id=region_id):
            removed += _remove(element)
    if feedback_selector:
        for element in soup.select(feedback_selector):
            removed += _remove(element)
    for element in soup.find_all(NOISE_TAGS):
        removed += _remove(element)

    for element in soup.find_all(True):
        element.attrs = {}
    _collapse_whitespace(soup)

    if back_link:
        block = soup.new_tag("p")
        anchor = soup.new_tag("a", href=back_href)
        anchor.string = BACK_LINK_TEXT
        block.append(anchor)
        container = soup.find("main") or soup.body or soup
        container.append(block)

    logger.debug(f"Content sanitized: {removed} noise elements removed")
    return str(soup)
