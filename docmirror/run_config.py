"""
Mirror Run Configuration
========================
Single source of truth for every docmirror default and runtime limit.

The CLI populates it from flags and environment variables (a ``.env`` file
is loaded by ``__main__`` before this module is consulted); every pipeline
component receives it explicitly through its constructor.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import ConfigError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical defaults: the ONLY place these numbers live
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "structural_timeout_s": 10.0,     # tree / content-region waits
    "navigation_timeout_s": 30.0,     # page.goto timeout
    "click_timeout_s": 1.5,
    "poll_interval_s": 0.25,
    "expand_delay_s": 0.2,            # after every tree item
    "page_delay_s": 0.3,              # after every page download
    "headless": True,
    "viewport_width": 1920,
    "viewport_height": 1080,
    "user_agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
    # Tree widget
    "toc_selector": "ul.tree.table-of-contents",
    "candidate_selector": "ul.tree.table-of-contents ul",
    "tree_item_selector": "li.tree-item",
    "expander_selector": ".tree-expander",
    "child_container_selector": "ul",
    "expanded_class": "is-expanded",
    # Pages
    "content_selector": "main",
    "query_marker": "pivots=cli",
    "feedback_selector": "#feedback-section, .feedback-section",
    "index_filename": "index.html",
    "pages_dirname": "pages",
}

DEFAULT_REMOVED_REGION_IDS: Tuple[str, ...] = (
    "article-header",
    "article-metadata",
    "ms--live-region-polite",
    "ms--live-region-assertive",
    "ms--additional-resources",
    "ms--inline-notifications",
)

ENV_BASE_URL = "DOCMIRROR_BASE_URL"
ENV_OUTPUT_BASE_PATH = "DOCMIRROR_OUTPUT_BASE_PATH"
ENV_HEADLESS = "DOCMIRROR_HEADLESS"


def _env_flag(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


@dataclass
class MirrorConfig:
    """
    Configuration consumed by every mirror component.

    Populate via:
        - ``MirrorConfig(base_url=..., output_base_path=...)`` (code / tests)
        - ``MirrorConfig.from_env()``                          (environment)
        - ``MirrorConfig.from_cli_args(args)``                 (``__main__``)
    """

    # ---- Required ----
    base_url: str = ""
    output_base_path: str = ""

    # ---- Timing ----
    structural_timeout_s: float = _DEFAULTS["structural_timeout_s"]
    navigation_timeout_s: float = _DEFAULTS["navigation_timeout_s"]
    click_timeout_s: float = _DEFAULTS["click_timeout_s"]
    poll_interval_s: float = _DEFAULTS["poll_interval_s"]
    expand_delay_s: float = _DEFAULTS["expand_delay_s"]
    page_delay_s: float = _DEFAULTS["page_delay_s"]

    # ---- Browser ----
    headless: bool = _DEFAULTS["headless"]
    viewport_width: int = _DEFAULTS["viewport_width"]
    viewport_height: int = _DEFAULTS["viewport_height"]
    user_agent: str = _DEFAULTS["user_agent"]

    # ---- Tree widget ----
    toc_selector: str = _DEFAULTS["toc_selector"]
    candidate_selector: str = _DEFAULTS["candidate_selector"]
    tree_item_selector: str = _DEFAULTS["tree_item_selector"]
    expander_selector: str = _DEFAULTS["expander_selector"]
    child_container_selector: str = _DEFAULTS["child_container_selector"]
    expanded_class: str = _DEFAULTS["expanded_class"]

    # ---- Pages ----
    content_selector: str = _DEFAULTS["content_selector"]
    query_marker: str = _DEFAULTS["query_marker"]
    feedback_selector: str = _DEFAULTS["feedback_selector"]
    removed_region_ids: List[str] = field(
        default_factory=lambda: list(DEFAULT_REMOVED_REGION_IDS)
    )
    index_filename: str = _DEFAULTS["index_filename"]
    pages_dirname: str = _DEFAULTS["pages_dirname"]

    # -----------------------------------------------------------------------
    # Derived paths
    # -----------------------------------------------------------------------
    @property
    def output_dir(self) -> Path:
        return Path(self.output_base_path)

    @property
    def index_path(self) -> Path:
        return self.output_dir / self.index_filename

    @property
    def pages_dir(self) -> Path:
        return self.output_dir / self.pages_dirname

    @property
    def back_href(self) -> str:
        """Relative href from a page file back to the navigation file."""
        return f"../{self.index_filename}"

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_env(cls, environ=None, **overrides) -> "MirrorConfig":
        """Build config from ``DOCMIRROR_*`` environment variables."""
        env = os.environ if environ is None else environ
        cfg = cls(
            base_url=env.get(ENV_BASE_URL, ""),
            output_base_path=env.get(ENV_OUTPUT_BASE_PATH, ""),
            headless=_env_flag(env.get(ENV_HEADLESS), _DEFAULTS["headless"]),
        )
        for key, value in overrides.items():
            if value is not None:
                setattr(cfg, key, value)
        return cfg

    @classmethod
    def from_cli_args(cls, args, environ=None) -> "MirrorConfig":
        """Build config from an argparse Namespace, falling back to the environment."""
        return cls.from_env(
            environ,
            base_url=getattr(args, "base_url", None),
            output_base_path=getattr(args, "output", None),
            structural_timeout_s=getattr(args, "timeout", None),
            expand_delay_s=getattr(args, "expand_delay", None),
            page_delay_s=getattr(args, "page_delay", None),
            headless=False if getattr(args, "headed", False) else None,
        )

    def validate(self) -> "MirrorConfig":
        """Raise ``ConfigError`` if a required value is missing or malformed."""
        if not self.base_url:
            raise ConfigError(f"BaseUrl is required (flag or {ENV_BASE_URL})")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigError(f"BaseUrl must be an http(s) URL: {self.base_url!r}")
        if not self.output_base_path:
            raise ConfigError(
                f"OutputBasePath is required (--output or {ENV_OUTPUT_BASE_PATH})"
            )
        if self.structural_timeout_s <= 0:
            raise ConfigError("structural timeout must be positive")
        if self.expand_delay_s < 0 or self.page_delay_s < 0:
            raise ConfigError("delays must not be negative")
        return self

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self) -> None:
        """Emit a structured summary to the logger."""
        logger.info("=" * 60)
        logger.info("MIRROR RUN CONFIG")
        logger.info("=" * 60)
        logger.info(f"  Base URL:         {self.base_url}")
        logger.info(f"  Output:           {self.output_dir}")
        logger.info(f"  Headless:         {self.headless}")
        logger.info(f"  Wait Timeout:     {self.structural_timeout_s}s")
        logger.info(f"  Expand Delay:     {self.expand_delay_s}s per item")
        logger.info(f"  Page Delay:       {self.page_delay_s}s per page")
        logger.info(f"  Query Marker:     {self.query_marker}")
        logger.info("=" * 60)
