"""Turn the wide World Bank export into per-(country, series) records.

The export has one row per country/series and one column per year labelled
``"1960 [YR1960]"``. This module streams it once with ``csv.DictReader`` and
keeps a record per ``(country_code, series_code)`` key in memory; writing is
left to :mod:`wbexplorer.storage.csv_storage`.
"""

import csv
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from wbexplorer.config import config
from wbexplorer.errors import InputError, MissingColumn

logger = logging.getLogger(__name__)

Point = Tuple[int, Optional[float]]
RecordKey = Tuple[str, str]

_YEAR_COLUMN = re.compile(config.YEAR_COLUMN_PATTERN)
_YEAR = re.compile(r"\d{4}")


def detect_year_columns(headers: Iterable[str]) -> List[str]:
    return [header for header in headers if _YEAR_COLUMN.search(header)]


def validate_headers(headers: Optional[Sequence[str]]) -> None:
    """Fail fast when the header row lacks a required column."""

    present = set(headers or ())
    missing = [col for col in config.REQUIRED_COLUMNS if col not in present]
    if missing:
        raise MissingColumn(missing)


def year_of(column: str) -> Optional[int]:
    match = _YEAR.search(column)
    return int(match.group(0)) if match else None


def parse_value(raw: Optional[str]) -> Optional[float]:
    """Parse one cell of a year column.

    ``""`` and ``".."`` mean "no data" and map to ``None``. Anything that is
    not a number comes back as ``NaN`` so callers can drop the point.
    """

    if raw is None:
        return None
    text = raw.strip()
    if text == "" or text == config.MISSING_SENTINEL:
        return None
    # float() accepts "1_000"; the export never uses digit separators.
    if "_" in text:
        return math.nan
    try:
        return float(text)
    except ValueError:
        return math.nan


def is_dropped(value: Optional[float]) -> bool:
    return value is not None and not math.isfinite(value)


@dataclass
class SourceRow:
    """One validated observation group from the export."""

    country_name: str
    country_code: str
    series_name: str
    series_code: str
    yearly_data: Dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> RecordKey:
        return (self.country_code, self.series_code)

    @classmethod
    def from_csv_row(cls, row: Mapping[str, Optional[str]], year_columns: Sequence[str]) -> "SourceRow":
        return cls(
            country_name=(row.get(config.COUNTRY_NAME_COL) or "").strip(),
            country_code=(row.get(config.COUNTRY_CODE_COL) or "").strip(),
            series_name=(row.get(config.SERIES_NAME_COL) or "").strip(),
            series_code=(row.get(config.SERIES_CODE_COL) or "").strip(),
            yearly_data={col: row.get(col) or "" for col in year_columns},
        )

    def merged_with(self, newer: "SourceRow") -> "SourceRow":
        """Return ``newer`` with gaps filled from this row.

        Names and every year the newer row reports come from ``newer``; a year
        it leaves blank keeps the older value.
        """

        yearly = dict(self.yearly_data)
        for col, raw in newer.yearly_data.items():
            if parse_value(raw) is not None or col not in yearly:
                yearly[col] = raw
        return SourceRow(
            country_name=newer.country_name,
            country_code=newer.country_code,
            series_name=newer.series_name,
            series_code=newer.series_code,
            yearly_data=yearly,
        )

    def to_points(self) -> List[Point]:
        """Narrow this row into ``(year, value)`` points sorted by year.

        Unparseable values are dropped; missing ones stay as ``None``.
        """

        points: Dict[int, Optional[float]] = {}
        for col, raw in self.yearly_data.items():
            year = year_of(col)
            if year is None:
                continue
            value = parse_value(raw)
            if is_dropped(value):
                logger.debug("Dropping unparseable value %r for %s/%s in %s", raw, self.country_code, self.series_code, col)
                continue
            points[year] = value
        return sorted(points.items())


@dataclass
class TransformResult:
    records: Dict[RecordKey, SourceRow]
    year_columns: List[str]
    row_count: int


def transform_rows(
    rows: Iterable[Mapping[str, Optional[str]]],
    headers: Optional[Sequence[str]],
    progress_every: int = config.ROW_PROGRESS_INTERVAL,
) -> TransformResult:
    """Collect ``rows`` into one record per (country, series) key."""

    validate_headers(headers)
    year_columns = detect_year_columns(headers or ())
    if year_columns:
        logger.info("Found %s year columns from %s to %s", len(year_columns), year_columns[0], year_columns[-1])
    else:
        logger.warning("No year columns found in header")

    records: Dict[RecordKey, SourceRow] = {}
    row_count = 0
    for raw_row in rows:
        row_count += 1
        if progress_every and row_count % progress_every == 0:
            logger.info("Processed %s rows...", row_count)
        row = SourceRow.from_csv_row(raw_row, year_columns)
        if not row.country_code or not row.series_code:
            # Export footers ("Data from database: ...") have no codes.
            logger.debug("Skipping row %s without country/series code", row_count)
            continue
        previous = records.get(row.key)
        records[row.key] = previous.merged_with(row) if previous else row
    return TransformResult(records=records, year_columns=year_columns, row_count=row_count)


def read_source(path: str, progress_every: int = config.ROW_PROGRESS_INTERVAL) -> TransformResult:
    """Stream the export at ``path`` through :func:`transform_rows`."""

    logger.info("Starting to process %s...", path)
    try:
        with open(path, newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            return transform_rows(reader, reader.fieldnames, progress_every=progress_every)
    except FileNotFoundError as exc:
        raise InputError(f"Input file not found: {path}") from exc
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise InputError(f"Could not read {path}: {exc}") from exc
