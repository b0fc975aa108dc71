from __future__ import annotations

import logging
import os
import random
from typing import Callable, Sequence

from imagepick.errors import NoImagesError
from imagepick.image_size import image_file_size

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 50

# Files whose header we cannot read (TIFF, XPM, truncated downloads, ...)
# are accepted rather than filtered out.
ACCEPT_UNKNOWN_DIMENSIONS = True


def accept_unknown_dimensions(path: str) -> bool:
    """Fail-open policy for images whose size cannot be determined."""
    logger.debug("%s: unknown size, accepting", path)
    return ACCEPT_UNKNOWN_DIMENSIONS


def _is_large_enough(path: str, min_width: int, min_height: int) -> bool:
    try:
        os.stat(path)
        size = image_file_size(path)
    except OSError as e:
        logger.info("%s: %s", path, e.strerror or e)
        return False

    if size is None:
        return accept_unknown_dimensions(path)

    width, height = size
    if width >= min_width and height >= min_height:
        return True
    logger.info("%s: too small (%dx%d < %dx%d)", path, width, height, min_width, min_height)
    return False


def select_image(
    candidates: Sequence[str],
    *,
    min_width: int,
    min_height: int,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    rng: random.Random | None = None,
    on_exhausted: Callable[[], None] | None = None,
) -> str:
    """Draw random candidates until one is at least min_width x min_height.

    After *max_attempts* misses, *on_exhausted* is called (so a stale file
    list can be dropped) and NoImagesError is raised.
    """
    if not candidates:
        raise NoImagesError("no image files found")

    rng = rng or random.Random()
    for attempt in range(1, max_attempts + 1):
        path = candidates[rng.randrange(len(candidates))]
        if _is_large_enough(path, min_width, min_height):
            logger.info("picked %s (attempt %d of %d candidates)", path, attempt, len(candidates))
            return path

    if on_exhausted is not None:
        on_exhausted()
    raise NoImagesError(
        f"no image of at least {min_width}x{min_height} in {max_attempts} tries "
        f"({len(candidates)} candidates)"
    )
