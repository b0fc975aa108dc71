"""Zero-arg CLI wrapper for the console_scripts entry point.

The script's ``main(argv)`` accepts ``sys.argv[1:]``.  The wrapper here
adapts that signature to the zero-arg callable that setuptools
console_scripts expects.
"""
from __future__ import annotations

import sys


def imagepick() -> None:
    from scripts.random_image import main
    raise SystemExit(main(sys.argv[1:]))
