"""
docmirror
Offline mirror builder for documentation sites behind a lazily rendered
navigation tree.

CLI Usage:
    python -m docmirror <base_url> -o <output_dir> [options]

    Options:
        --timeout        Structural wait timeout in seconds (default: 10)
        --expand-delay   Delay after each tree item (default: 0.2)
        --page-delay     Delay after each page download (default: 0.3)
        --headed         Show the browser window
"""

from .errors import (
    ConfigError,
    ElementNotFound,
    ExpansionTimeout,
    LinkRewriteError,
    MirrorError,
    NavigationError,
    NavigationNotFound,
    PageFetchError,
    SessionError,
    StaleNodeReference,
    WaitTimeout,
)
from .run_config import MirrorConfig
from .models import RetainedLink, SanitizedPage, MirrorResult
from .naming import page_filename
from .menu import sanitize_menu, extract_links
from .content import sanitize_content
from .rewriter import rewrite_index, verify_output
from .session import RenderedSession, PlaywrightSession, open_session
from .tree import TreeExpander, locate_navigation
from .fetcher import PageFetcher
from .mirror import DocMirror

__all__ = [
    'DocMirror',
    'MirrorConfig',
    'MirrorResult',
    # Pipeline stages
    'locate_navigation',
    'TreeExpander',
    'sanitize_menu',
    'extract_links',
    'PageFetcher',
    'sanitize_content',
    'page_filename',
    'rewrite_index',
    'verify_output',
    # Session
    'RenderedSession',
    'PlaywrightSession',
    'open_session',
    # Models
    'RetainedLink',
    'SanitizedPage',
    # Errors
    'MirrorError',
    'ConfigError',
    'SessionError',
    'ElementNotFound',
    'StaleNodeReference',
    'NavigationError',
    'WaitTimeout',
    'ExpansionTimeout',
    'NavigationNotFound',
    'PageFetchError',
    'LinkRewriteError',
]

__version__ = '1.0.0'
