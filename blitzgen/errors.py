"""Exceptions raised by the blitzgen generation pipeline.

Every fatal failure derives from ``ScaffoldError`` so the CLI can report it
with a single handler.  Non-fatal conditions (template drift, failed
bootstrap steps) are never raised; they are recorded and printed instead.
"""

from __future__ import annotations

from pathlib import Path


class ScaffoldError(Exception):
    """Base class for failures that abort project generation."""


class FetchError(ScaffoldError):
    """Raised when the template snapshot cannot be downloaded or extracted."""

    def __init__(self, message: str, *, source: str = "") -> None:
        self.source = source
        super().__init__(f"{message} ({source})" if source else message)


class ManifestParseError(ScaffoldError):
    """Raised when a manifest file is not a well-formed JSON object."""

    def __init__(self, file_path: str, message: str) -> None:
        self.file_path = file_path
        super().__init__(f"Cannot parse {file_path}: {message}")


class TargetDirectoryError(ScaffoldError):
    """Raised when the target directory cannot be used for generation."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")
