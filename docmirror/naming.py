"""
File Namer
==========
Deterministic mapping from a navigation link to its local page filename.

``page_filename(url, label)`` is a pure function of the URL path tail and the
link label. It is called once when a page is downloaded and again when the
navigation file is rewritten, and both calls must agree.
"""

import re
from urllib.parse import urlsplit

FALLBACK_LABEL = "page"
FALLBACK_SEGMENT = "index"
MAX_LABEL_LENGTH = 50

# Characters no portable filesystem accepts, plus the ones that would break a
# relative href or a shell command line.
_UNSAFE_CHARS_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f &%]')


def _replace_unsafe(text: str) -> str:
    return _UNSAFE_CHARS_RE.sub("_", text)


def clean_label(label: str) -> str:
    """Filesystem-safe, at most 50-character form of a link label."""
    if not label or not label.strip():
        label = FALLBACK_LABEL
    cleaned = _replace_unsafe(label).lstrip(".")[:MAX_LABEL_LENGTH]
    return cleaned or FALLBACK_LABEL


def last_path_segment(url: str) -> str:
    """Last non-empty path segment of *url*, or ``index`` for a bare host."""
    segments = [s for s in urlsplit(url or "").path.split("/") if s]
    return segments[-1] if segments else FALLBACK_SEGMENT


def page_filename(url: str, label: str) -> str:
    """
    Local filename for the page behind *url*, labelled *label*.

    >>> page_filename("https://x/y/z", "")
    'page_z.html'
    """
    segment = _replace_unsafe(last_path_segment(url))
    return f"{clean_label(label)}_{segment}.html"
