"""Deterministic, URL-safe filenames for country/series data files."""

import re
from typing import Dict, Tuple

from wbexplorer.errors import FilenameCollision

_UNSAFE = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def sanitize_filename(value: str) -> str:
    """Lowercase ``value`` and reduce it to ``[a-z0-9-]``.

    Punctuation is dropped rather than replaced, so ``NY.GDP.PCAP.KD`` becomes
    ``nygdppcapkd``. Whitespace runs turn into a single hyphen and the result
    never starts or ends with one.
    """

    cleaned = _UNSAFE.sub("", value.lower())
    cleaned = _WHITESPACE.sub("-", cleaned)
    cleaned = _HYPHENS.sub("-", cleaned)
    return cleaned.strip("-")


def create_filename(country_code: str, series_code: str) -> str:
    return f"{sanitize_filename(country_code)}-{sanitize_filename(series_code)}.csv"


class FilenameRegistry:
    """Track which (country, series) key owns each generated filename."""

    def __init__(self) -> None:
        self._owners: Dict[str, Tuple[str, str]] = {}

    def register(self, country_code: str, series_code: str) -> str:
        filename = create_filename(country_code, series_code)
        key = (country_code, series_code)
        owner = self._owners.setdefault(filename, key)
        if owner != key:
            raise FilenameCollision(filename, owner, key)
        return filename

    def __len__(self) -> int:
        return len(self._owners)

    def __contains__(self, filename: object) -> bool:
        return filename in self._owners
