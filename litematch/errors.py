"""Exceptions raised while matching and grouping soundings.

Every error raised by this package derives from `MatchupError`. The concrete
classes also derive from the closest built-in exception so callers that only
care about, e.g., `OSError` or `LookupError` can still catch them.
"""

from __future__ import annotations

from pathlib import Path


class MatchupError(Exception):
    """Base class for matchup errors, optionally tied to a file."""

    def __init__(self, message: str, file: str | Path | None = None):
        self.message = message
        self.file = Path(file) if file is not None else None
        super().__init__(str(self))

    def __str__(self):
        if self.file is None:
            return self.message
        return f"{self.message} [file: {self.file}]"

    def with_file(self, file: str | Path) -> "MatchupError":
        """Attach `file` to this error (returns self for `raise err.with_file(...)`)."""
        self.file = Path(file)
        self.args = (str(self),)
        return self


class MissingColumnError(MatchupError, LookupError):
    """A required variable is absent from a source file."""

    def __init__(self, varname: str, file: str | Path | None = None):
        self.varname = varname
        super().__init__(f"No variable named '{varname}'", file=file)


class MissingGroupError(MatchupError, LookupError):
    """A required netCDF group is absent from a file."""

    def __init__(self, grpname: str, file: str | Path | None = None):
        self.grpname = grpname
        super().__init__(f"No group named '{grpname}'", file=file)


class ShapeOrTypeError(MatchupError, TypeError):
    """A variable exists but has the wrong rank or data type."""


class IOFailureError(MatchupError, OSError):
    """Opening, reading or writing a file failed."""


class InternalConsistencyError(MatchupError, RuntimeError):
    """An invariant guaranteed by this package was violated (a bug, not bad input)."""

    def __init__(self, message: str, file: str | Path | None = None):
        super().__init__(f"Internal error in matchup code, cause: {message}", file=file)


class FileLimitError(MatchupError, ValueError):
    """Too many source files to address with a one-byte file index."""


class MultipleMatchupErrors(MatchupError):
    """Aggregate of the failures from a batch of matchups."""

    def __init__(self, errors: list[tuple[str, BaseException]]):
        self.errors = list(errors)
        lines = [f"{len(self.errors)} matchup(s) failed:"]
        lines.extend(f"  - {context}: {type(err).__name__}: {err}" for context, err in self.errors)
        super().__init__("\n".join(lines))
