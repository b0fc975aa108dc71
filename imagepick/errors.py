from __future__ import annotations


class ImagePickError(RuntimeError):
    """Fatal error: the run cannot produce an image path.

    `exit_code` is what the command-line entry point returns.
    """

    exit_code = 1


class UsageError(ImagePickError):
    """Missing or invalid argument, or a target that does not exist."""

    exit_code = 2


class NoImagesError(ImagePickError):
    """No usable image: empty source, empty feed, or selection exhausted."""


class FeedError(NoImagesError):
    """The feed could not be fetched, discovered, or parsed."""


class CacheError(ImagePickError):
    """A cache or marker file could not be opened, locked, or written."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path
