"""
Exception hierarchy for npm-version-tree.

Every error raised while building a tree carries a trail of ``name#range``
frames so the message surfaced to the caller names the exact dependency
path that failed.
"""

from typing import List, Optional, Sequence, Tuple

TRAIL_SEPARATOR = " → "


class VersionTreeError(Exception):
    """Base class for all version tree errors."""

    def __init__(self, message: str, trail: Sequence[str] = ()):
        self.message = message
        self.trail: Tuple[str, ...] = tuple(trail)
        super().__init__(self._render())

    def _render(self) -> str:
        return TRAIL_SEPARATOR.join([*self.trail, self.message])

    def __str__(self) -> str:
        return self._render()

    def within(self, frame: str) -> "VersionTreeError":
        """
        Return a copy of this error with ``frame`` prepended to its trail.

        The copy keeps the concrete class and all extra attributes, so the
        kind of failure is unchanged as it travels up the recursion.
        """
        wrapped = self.__class__.__new__(self.__class__)
        wrapped.__dict__.update(self.__dict__)
        wrapped.trail = (frame, *self.trail)
        wrapped.args = (wrapped._render(),)
        return wrapped


class InputError(VersionTreeError, ValueError):
    """Invalid argument passed to a public entry point."""


class ManifestError(InputError):
    """The local manifest file is missing, unreadable or malformed."""

    def __init__(self, message: str, path: Optional[str] = None, trail: Sequence[str] = ()):
        self.path = path
        super().__init__(message, trail)


class RegistryError(VersionTreeError):
    """A single registry request failed."""

    def __init__(
        self,
        message: str,
        package_name: Optional[str] = None,
        status_code: Optional[int] = None,
        trail: Sequence[str] = (),
    ):
        self.package_name = package_name
        self.status_code = status_code
        super().__init__(message, trail)


class PackageNotFoundError(RegistryError):
    """The registry does not know the requested package."""


class FetchError(VersionTreeError):
    """Package metadata could not be fetched after all retry attempts."""

    def __init__(
        self,
        package_name: str,
        cause: Optional[BaseException] = None,
        attempts: int = 0,
        trail: Sequence[str] = (),
    ):
        self.package_name = package_name
        self.cause = cause
        self.attempts = attempts
        message = f"Failed to fetch metadata for {package_name}"
        if attempts:
            message += f" after {attempts} attempt{'s' if attempts != 1 else ''}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message, trail)


class ResolutionError(VersionTreeError):
    """No published version satisfies the requested range or tag."""

    def __init__(
        self,
        package_name: str,
        range: str,
        available: Sequence[str],
        trail: Sequence[str] = (),
    ):
        self.package_name = package_name
        self.range = range
        self.available: List[str] = list(available)
        message = (
            f"Version not found: {package_name}#{range}. "
            f"Use one of: {', '.join(self.available)}."
        )
        super().__init__(message, trail)
