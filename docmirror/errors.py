"""
Error Taxonomy
==============
Typed failures raised across the mirror pipeline.

Only ``NavigationNotFound`` (and ``ConfigError`` at startup) end a run.
Everything else is caught close to where it happens and demoted to a
logged skip-and-continue.
"""

from typing import Optional


class MirrorError(Exception):
    """Base class for every docmirror failure."""


class ConfigError(MirrorError):
    """Required configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Rendered-session failures
# ---------------------------------------------------------------------------

class SessionError(MirrorError):
    """The rendered session failed to perform an operation."""


class ElementNotFound(SessionError):
    """A selector matched nothing."""


class StaleNodeReference(SessionError):
    """A held element handle is no longer attached to the live DOM."""


class NavigationError(SessionError):
    """The session could not load a URL."""


class WaitTimeout(SessionError):
    """A polling wait did not observe its condition in time."""


class ExpansionTimeout(WaitTimeout):
    """A tree node did not report expanded, or grew no children, in time."""


# ---------------------------------------------------------------------------
# Pipeline failures
# ---------------------------------------------------------------------------

class NavigationNotFound(MirrorError):
    """No candidate tree on the page links to the root URL."""


class PageFetchError(MirrorError):
    """A single page could not be fetched, extracted or written."""

    def __init__(self, url: str, reason: str, label: Optional[str] = None):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason
        self.label = label


class LinkRewriteError(MirrorError):
    """The saved navigation file could not be re-read or re-written."""
