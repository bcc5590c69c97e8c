"""
Index Link Rewriter
===================
Post-pass over the saved navigation file.

Every in-site href is replaced by ``pages/<filename>`` where the filename is
recomputed with ``page_filename(href, label)``, the same call the fetcher
made when it wrote the page. Links whose page file is missing (the download
failed) keep their remote href so the navigation file never points at a file
that does not exist.
"""

import logging
from pathlib import Path
from typing import List
from urllib.parse import unquote, urlsplit

from .errors import LinkRewriteError
from .menu import link_label
from .models import RewriteReport
from .naming import page_filename
from .utils import is_under_root, parse_html

logger = logging.getLogger(__name__)


def rewrite_index(
    index_path: Path,
    root_url: str,
    *,
    pages_dirname: str = "pages",
) -> RewriteReport:
    """
    Point the navigation file's in-site links at the downloaded pages.

    Raises:
        LinkRewriteError: the file could not be read or written.
    """
    index_path = Path(index_path)
    pages_dir = index_path.parent / pages_dirname
    try:
        original = index_path.read_text(encoding="utf-8")
    except OSError as e:
        raise LinkRewriteError(f"Cannot read {index_path}: {e}") from e

    soup = parse_html(original)
    report = RewriteReport()
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if not is_under_root(href, root_url):
            continue
        filename = page_filename(href, link_label(anchor))
        if not (pages_dir / filename).is_file():
            report.left_remote.append(href)
            logger.warning(f"No downloaded page for {href} — link left remote")
            continue
        anchor["href"] = f"{pages_dirname}/{filename}"
        report.rewritten += 1

    try:
        index_path.write_text(str(soup), encoding="utf-8")
    except OSError as e:
        raise LinkRewriteError(f"Cannot write {index_path}: {e}") from e

    logger.info(
        f"Navigation links rewritten: {report.rewritten} local, "
        f"{len(report.left_remote)} left remote"
    )
    return report


def _is_local(href: str) -> bool:
    parts = urlsplit(href)
    return not parts.scheme and not parts.netloc and bool(parts.path)


def verify_output(index_path: Path) -> List[str]:
    """
    Local hrefs in the navigation file that do not resolve to an existing file.

    An empty list means the output tree is consistent.
    """
    index_path = Path(index_path)
    soup = parse_html(index_path.read_text(encoding="utf-8"))
    broken = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if not _is_local(href):
            continue
        target = index_path.parent / unquote(urlsplit(href).path)
        if not target.is_file():
            broken.append(href)
    if broken:
        logger.error(f"{len(broken)} navigation links point at missing files")
    return broken
