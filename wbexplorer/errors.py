"""Exception hierarchy shared by the pipeline, the metadata CLI and the explorer.

Every error raised on purpose derives from ``WBExplorerError`` so the CLI can
report it with a readable message and a non-zero exit status without catching
programming errors by accident.
"""

from typing import Iterable


class WBExplorerError(Exception):
    """Base exception for all project errors."""


class InputError(WBExplorerError):
    """Raised when the source file is missing or unreadable."""


class MissingColumn(InputError):
    """Raised when the source header lacks one of the required columns."""

    def __init__(self, columns: Iterable[str]) -> None:
        self.columns = list(columns)
        super().__init__(f"Source file is missing required column(s): {', '.join(self.columns)}")


class WriteFailure(WBExplorerError):
    """Raised when the output directory or an output file cannot be written."""


class FilenameCollision(WBExplorerError):
    """Raised when two distinct (country, series) keys sanitize to one filename."""

    def __init__(self, filename: str, first: tuple, second: tuple) -> None:
        self.filename = filename
        self.first = first
        self.second = second
        super().__init__(
            f"Filename {filename} would be shared by {first[0]}/{first[1]} and {second[0]}/{second[1]}"
        )


class MetadataIntegrityError(WBExplorerError):
    """Raised when the index references a code missing from a lookup table."""


class FetchError(WBExplorerError):
    """Raised when a file cannot be retrieved from the static host."""

    def __init__(self, url: str, message: str, status_code=None) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {message}")
