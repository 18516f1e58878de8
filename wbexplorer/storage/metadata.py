"""Read-only queries over the normalized lookup tables.

``WorldBankMetadata`` is loaded once from a split directory (or built from
parsed rows, as the explorer does) and never mutated afterwards; callers pass
the instance around instead of relying on module-level state.
"""

import csv
import logging
import os
from collections import Counter
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Tuple

from wbexplorer.config import config
from wbexplorer.errors import InputError, MetadataIntegrityError
from wbexplorer.transform.filenames import create_filename

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Country:
    code: str
    name: str


@dataclass(frozen=True)
class Series:
    code: str
    name: str


@dataclass(frozen=True)
class IndexEntry:
    country_code: str
    series_code: str


@dataclass(frozen=True)
class DatasetStats:
    total_countries: int
    total_series: int
    total_files: int
    avg_series_per_country: float


def _read_table(path: str) -> List[dict]:
    try:
        with open(path, newline="", encoding="utf-8-sig") as f:
            return list(csv.DictReader(f))
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise InputError(f"Could not read metadata file {path}: {exc}") from exc


def _code_name_pairs(rows: Iterable[Mapping[str, str]], code_col: str, name_col: str) -> List[Tuple[str, str]]:
    pairs = []
    for row in rows:
        code = (row.get(code_col) or "").strip()
        if code:
            pairs.append((code, row.get(name_col) or ""))
    return pairs


def _index_pairs(rows: Iterable[Mapping[str, str]]) -> List[Tuple[str, str]]:
    pairs = []
    for row in rows:
        country = (row.get(config.COUNTRY_CODE_COL) or "").strip()
        series = (row.get(config.SERIES_CODE_COL) or "").strip()
        if country and series:
            pairs.append((country, series))
    return pairs


class WorldBankMetadata:
    def __init__(
        self,
        countries: Iterable[Tuple[str, str]],
        series: Iterable[Tuple[str, str]],
        index: Iterable[Tuple[str, str]],
    ) -> None:
        self._countries = MappingProxyType({code: Country(code, name) for code, name in countries})
        self._series = MappingProxyType({code: Series(code, name) for code, name in series})
        self._index = tuple(IndexEntry(c, s) for c, s in index)

    @classmethod
    def load(cls, metadata_dir: str) -> "WorldBankMetadata":
        """Load ``_countries.csv``, ``_series.csv`` and ``_index.csv``."""

        countries = _code_name_pairs(
            _read_table(os.path.join(metadata_dir, config.COUNTRIES_FILE)),
            config.COUNTRY_CODE_COL,
            config.COUNTRY_NAME_COL,
        )
        series = _code_name_pairs(
            _read_table(os.path.join(metadata_dir, config.SERIES_FILE)),
            config.SERIES_CODE_COL,
            config.SERIES_NAME_COL,
        )
        index = _index_pairs(_read_table(os.path.join(metadata_dir, config.INDEX_FILE)))
        logger.debug(
            "Loaded metadata from %s: %s countries, %s series, %s index entries",
            metadata_dir,
            len(countries),
            len(series),
            len(index),
        )
        return cls(countries, series, index)

    @property
    def countries(self) -> Mapping[str, Country]:
        return self._countries

    @property
    def series(self) -> Mapping[str, Series]:
        return self._series

    @property
    def index(self) -> Tuple[IndexEntry, ...]:
        return self._index

    def get_country(self, country_code: str) -> Optional[Country]:
        return self._countries.get(country_code)

    def get_series(self, series_code: str) -> Optional[Series]:
        return self._series.get(series_code)

    @staticmethod
    def get_filename(country_code: str, series_code: str) -> str:
        return create_filename(country_code, series_code)

    def get_series_for_country(self, country_code: str) -> List[Tuple[Series, str]]:
        """All series with a data file for ``country_code``.

        Raises :class:`MetadataIntegrityError` if the index names a series
        missing from the series table.
        """

        found = []
        for entry in self._index:
            if entry.country_code != country_code:
                continue
            found.append((self._require_series(entry.series_code), self.get_filename(country_code, entry.series_code)))
        return found

    def get_countries_for_series(self, series_code: str) -> List[Tuple[Country, str]]:
        found = []
        for entry in self._index:
            if entry.series_code != series_code:
                continue
            found.append((self._require_country(entry.country_code), self.get_filename(entry.country_code, series_code)))
        return found

    def search_countries(self, term: str) -> List[Country]:
        needle = term.lower()
        return [c for c in self._countries.values() if needle in c.name.lower() or needle in c.code.lower()]

    def search_series(self, term: str) -> List[Series]:
        needle = term.lower()
        return [s for s in self._series.values() if needle in s.name.lower() or needle in s.code.lower()]

    def get_stats(self) -> DatasetStats:
        total_countries = len(self._countries)
        avg = round(len(self._index) / total_countries, 1) if total_countries else 0.0
        return DatasetStats(
            total_countries=total_countries,
            total_series=len(self._series),
            total_files=len(self._index),
            avg_series_per_country=avg,
        )

    def _require_country(self, code: str) -> Country:
        country = self.get_country(code)
        if country is None:
            raise MetadataIntegrityError(f"Country not found: {code}")
        return country

    def _require_series(self, code: str) -> Series:
        series = self.get_series(code)
        if series is None:
            raise MetadataIntegrityError(f"Series not found: {code}")
        return series

    def top_countries_by_series(self, limit: int = 10) -> List[Tuple[Country, int]]:
        counts = Counter(entry.country_code for entry in self._index)
        return [(self._require_country(code), count) for code, count in counts.most_common(limit)]

    def top_series_by_countries(self, limit: int = 10) -> List[Tuple[Series, int]]:
        counts = Counter(entry.series_code for entry in self._index)
        return [(self._require_series(code), count) for code, count in counts.most_common(limit)]
