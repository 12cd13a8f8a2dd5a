"""Error taxonomy shared by the version resolution and rewrite helpers.

Library code raises these typed errors; the command-line entry point turns
them into a single terminal message naming the stage that failed.
"""

from __future__ import annotations

__all__ = [
    "CheckFailedError",
    "FetchError",
    "MalformedInputError",
    "ResolutionError",
    "RewriteError",
    "UnsupportedSourceError",
    "VersionManagerError",
]


class VersionManagerError(Exception):
    """Base class for every failure raised by the version manager."""

    stage = "version manager"


class ResolutionError(VersionManagerError):
    """Raised when a version mapping cannot be produced."""

    stage = "resolution"


class FetchError(ResolutionError):
    """Raised when a remote resource cannot be retrieved."""

    def __init__(
        self, locator: str, reason: str, *, status_code: int | None = None
    ) -> None:
        self.locator = locator
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"failed to fetch {locator}: {reason}")


class MalformedInputError(ResolutionError):
    """Raised when fetched text does not match the shape of its source kind."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"malformed {source}: {reason}")


class UnsupportedSourceError(VersionManagerError, ValueError):
    """Raised when a caller asks for a source kind that does not exist."""


class RewriteError(VersionManagerError):
    """Raised when the manifest being rewritten cannot be deserialised."""

    stage = "rewrite"

    def __init__(self, message: str, *, excerpt: list[str] | None = None) -> None:
        self.excerpt = excerpt or []
        if self.excerpt:
            indented = "\n".join(f"    {line}" for line in self.excerpt)
            message = f"{message}\n\nManifest excerpt:\n{indented}"
        super().__init__(message)


class CheckFailedError(VersionManagerError):
    """Raised by the command surface when check mode finds outdated entries."""

    stage = "check"

    def __init__(self, message: str = "Dependencies are not up to date") -> None:
        super().__init__(message)
