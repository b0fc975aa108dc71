#!/usr/bin/env python3
"""Print the path of a random image from a directory tree or an RSS/Atom feed.

Directories are scanned recursively (with the file list cached for a few
hours); feeds are mirrored into a local directory first. Images smaller
than --min-width x --min-height are skipped when their size can be read.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

IMAGEPICK_HOME = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(IMAGEPICK_HOME))

from imagepick.config import VERSION, load_settings  # noqa: E402
from imagepick.errors import ImagePickError  # noqa: E402
from imagepick.resolver import pick_image  # noqa: E402

logger = logging.getLogger("imagepick")

_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imagepick",
        description="Print the path of a random image from a directory or an RSS/Atom feed.",
    )
    parser.add_argument("target", nargs="?", help="Directory, or http://, https:// or feed:// URL.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (repeat for debug).")
    parser.add_argument("--config", default=None, help="YAML settings file.")
    parser.add_argument("--state-dir", default=None, help="Where the file list cache and feed mirrors live.")
    parser.add_argument("--min-width", type=int, default=None, help="Minimum image width (default: 255).")
    parser.add_argument("--min-height", type=int, default=None, help="Minimum image height (default: 255).")
    parser.add_argument(
        "--cache",
        dest="use_cache",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Reuse the cached file list / feed mirror (default: on).",
    )
    parser.add_argument(
        "--spotlight",
        dest="use_spotlight",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="List directories via the macOS Spotlight index (default: off).",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def main(argv: list[str]) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=_LEVELS[min(int(args.verbose), len(_LEVELS) - 1)],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if not args.target:
        parser.print_usage(sys.stderr)
        logger.error("no directory or URL given")
        return 2

    settings = load_settings(
        config_path=Path(args.config).expanduser() if args.config else None,
        state_dir=args.state_dir,
        min_width=args.min_width,
        min_height=args.min_height,
        use_cache=args.use_cache,
        use_spotlight=args.use_spotlight,
    )

    try:
        path = pick_image(args.target, settings)
    except ImagePickError as e:
        logger.error("%s", e)
        return e.exit_code

    print(path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
