#!/usr/bin/env python3
"""
docmirror CLI
=============
Build an offline mirror of a tree-navigated documentation site.

Configuration flows through ``MirrorConfig``: flags override environment
variables (``DOCMIRROR_BASE_URL``, ``DOCMIRROR_OUTPUT_BASE_PATH``,
``DOCMIRROR_HEADLESS``), which may come from a ``.env`` file.

Run with: python -m docmirror https://learn.example.com/docs -o mirror
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigError
from .mirror import DocMirror
from .run_config import MirrorConfig

logger = logging.getLogger(__name__)


def _load_env() -> None:
    """Load ``.env`` from the project root, else from the working directory."""
    env_path = Path(__file__).resolve().parent.parent / '.env'
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='docmirror',
        description='Offline mirror of a documentation site with a collapsible navigation tree',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m docmirror https://learn.microsoft.com/en-us/aspnet/core/blazor -o blazor-docs
  DOCMIRROR_BASE_URL=https://learn.example.com/docs python -m docmirror -o out
  python -m docmirror https://learn.example.com/docs -o out --headed --timeout 20
        """
    )
    parser.add_argument('base_url', nargs='?', help='Site root URL (or DOCMIRROR_BASE_URL)')
    parser.add_argument('-o', '--output', type=str,
                        help='Output directory (or DOCMIRROR_OUTPUT_BASE_PATH)')
    parser.add_argument('--timeout', type=float,
                        help='Structural wait timeout in seconds (default: 10)')
    parser.add_argument('--expand-delay', type=float,
                        help='Delay after each tree item in seconds (default: 0.2)')
    parser.add_argument('--page-delay', type=float,
                        help='Delay after each page in seconds (default: 0.3)')
    parser.add_argument('--headed', action='store_true', help='Show the browser window')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return parser


def print_summary(result) -> None:
    """Print mirror summary."""
    stats = result.stats
    print("\n" + "=" * 65)
    print("MIRROR COMPLETE" if result.complete else f"MIRROR ENDED ({result.status})")
    print("=" * 65)
    print(f"  Tree nodes expanded: {stats.get('nodes_expanded', 0)}")
    if stats.get('nodes_failed', 0) > 0:
        print(f"  Tree nodes failed:   {stats.get('nodes_failed', 0)}")
    print(f"  Links found:         {stats.get('links_found', 0)}")
    print(f"  Pages saved:         {stats.get('pages_saved', 0)}")
    print(f"  Failed pages:        {stats.get('pages_failed', 0)}")
    print(f"  Links rewritten:     {stats.get('links_rewritten', 0)}")
    if stats.get('links_left_remote', 0) > 0:
        print(f"  Links left remote:   {stats.get('links_left_remote', 0)}")
    if stats.get('broken_links', 0) > 0:
        print(f"  Broken local links:  {stats.get('broken_links', 0)}")
    print(f"  Total time:          {stats.get('elapsed_time', 0):.1f}s")
    if result.index_path:
        print(f"  Navigation:          {result.index_path}")
    print("=" * 65)


def main(argv=None) -> int:
    """Parse argv, build MirrorConfig, run. Returns the process exit code."""
    _load_env()
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        cfg = MirrorConfig.from_cli_args(args).validate()
    except ConfigError as e:
        parser.error(str(e))

    cfg.log_summary()
    mirror = DocMirror(cfg)
    try:
        result = mirror.run()
    except KeyboardInterrupt:
        print("\nInterrupted — files already written are kept.")
        return 0
    print_summary(result)
    return 0


if __name__ == '__main__':
    sys.exit(main())
