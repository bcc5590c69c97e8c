"""
Mirror Data Model
Immutable work units and the per-stage reports the pipeline produces.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .naming import page_filename


@dataclass(frozen=True)
class RetainedLink:
    """A navigation entry under the site root: the unit of download work."""
    url: str
    label: str

    @property
    def filename(self) -> str:
        return page_filename(self.url, self.label)


@dataclass(frozen=True)
class SanitizedPage:
    """Cleaned content of one downloaded page. Written once, never mutated."""
    link: RetainedLink
    filename: str
    html: str


@dataclass
class TreeNode:
    """
    A live tree-item handle paired with its DOM ``id``.

    The handle goes stale whenever the widget re-renders, so after any click
    the node is looked up again by ``node_id``.
    """
    node_id: Optional[str]
    handle: Any


@dataclass
class ExpansionFailure:
    node_id: Optional[str]
    depth: int
    error: str


@dataclass
class ExpansionReport:
    expanded: int = 0
    failures: List[ExpansionFailure] = field(default_factory=list)
    max_depth: int = 0
    cancelled: bool = False

    @property
    def failed_ids(self) -> List[Optional[str]]:
        return [f.node_id for f in self.failures]


@dataclass
class FetchReport:
    saved: List[SanitizedPage] = field(default_factory=list)
    failures: List[Dict[str, str]] = field(default_factory=list)
    cancelled: bool = False

    @property
    def saved_filenames(self) -> List[str]:
        return [p.filename for p in self.saved]


@dataclass
class RewriteReport:
    rewritten: int = 0
    left_remote: List[str] = field(default_factory=list)


@dataclass
class MirrorResult:
    """Outcome of one mirror run. ``status`` is the run's verdict."""
    base_url: str
    status: str = "pending"
    index_path: Optional[Path] = None
    pages_dir: Optional[Path] = None
    links: List[RetainedLink] = field(default_factory=list)
    expansion: ExpansionReport = field(default_factory=ExpansionReport)
    fetch: FetchReport = field(default_factory=FetchReport)
    rewrite: Optional[RewriteReport] = None
    broken_links: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return self.status == "completed"

    def to_dict(self) -> dict:
        return {
            'base_url': self.base_url,
            'status': self.status,
            'index_path': str(self.index_path) if self.index_path else None,
            'links': len(self.links),
            'pages_saved': len(self.fetch.saved),
            'pages_failed': len(self.fetch.failures),
            'nodes_expanded': self.expansion.expanded,
            'nodes_failed': len(self.expansion.failures),
            'links_rewritten': self.rewrite.rewritten if self.rewrite else 0,
            'broken_links': list(self.broken_links),
            'errors': list(self.errors),
            'stats': dict(self.stats),
        }
