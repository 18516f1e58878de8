import csv
import logging
import os
from typing import Iterable, List, Optional, Sequence, Tuple

from wbexplorer.config import config
from wbexplorer.errors import WriteFailure
from wbexplorer.transform.filenames import create_filename
from wbexplorer.transform.wide_to_narrow import Point, SourceRow

logger = logging.getLogger(__name__)

CodeName = Tuple[str, str]


def format_value(value: Optional[float]) -> str:
    """Render a data value for the ``Value`` column; missing is empty."""

    if value is None:
        return ""
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def estimate_savings(country_count: int, series_count: int, index_count: int) -> int:
    """Rough percentage saved by normalizing names out of every row."""

    original = index_count * (50 + 50 + 100 + 50)
    if original == 0:
        return 0
    normalized = country_count * 100 + series_count * 150 + index_count * 20
    return round((1 - normalized / original) * 100)


README_TEMPLATE = """# Optimized World Bank Data Structure

## File Organization

This directory contains World Bank data split into individual CSV files, with a normalized metadata structure.

### Data Files
- **Pattern**: `{{country-code}}-{{series-code}}.csv`
- **Example**: `arg-nygdppcapkd.csv` (Argentina GDP per capita)
- **Content**: `Year,Value` rows for one country-series combination; `Value` is empty when missing

### Metadata Files

#### `{countries}`
Lookup table for all countries: `Country Code`, `Country Name`.

#### `{series}`
Lookup table for all data series: `Series Code`, `Series Name`.

#### `{index}`
Every available country-series combination: `Country Code`, `Series Code`.

## Filenames

Codes are lowercased and everything outside `[a-z0-9]`, whitespace and `-` is removed,
so `ARG` + `NY.GDP.PCAP.KD` becomes `arg-nygdppcapkd.csv`.

## Usage Examples

```bash
grep "^ARG," {index}        # all series for a country
grep "NY.GDP" {index}       # all countries with GDP data
wbexplorer filename ARG,NY.GDP.PCAP.KD
```
"""


class CSVStorage:
    """Writer for the normalized split layout.

    Every ``OSError`` is re-raised as :class:`WriteFailure`; files already
    written are left in place.
    """

    def __init__(self, output_dir: str) -> None:
        self.output_dir = output_dir
        self._prepare_output_dir()

    def _prepare_output_dir(self) -> None:
        if os.path.isdir(self.output_dir):
            return
        try:
            os.makedirs(self.output_dir, exist_ok=True)
        except OSError as exc:
            raise WriteFailure(f"Cannot create output directory {self.output_dir}: {exc}") from exc
        logger.info("Created output directory: %s", self.output_dir)

    def path(self, filename: str) -> str:
        return os.path.join(self.output_dir, filename)

    def _write_csv(self, filename: str, header: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
        path = self.path(filename)
        try:
            with open(path, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f, lineterminator="\n")
                writer.writerow(header)
                writer.writerows(rows)
        except OSError as exc:
            raise WriteFailure(f"Failed to write {path}: {exc}") from exc
        return path

    def write_entity(self, row: SourceRow, filename: Optional[str] = None) -> str:
        """Write the narrow ``Year,Value`` file for one country/series record."""

        points: List[Point] = row.to_points()
        return self._write_csv(
            filename or create_filename(row.country_code, row.series_code),
            config.DATA_HEADER,
            ((str(year), format_value(value)) for year, value in points),
        )

    def write_countries(self, countries: Iterable[CodeName]) -> int:
        records = sorted(countries)
        self._write_csv(config.COUNTRIES_FILE, (config.COUNTRY_CODE_COL, config.COUNTRY_NAME_COL), records)
        return len(records)

    def write_series(self, series: Iterable[CodeName]) -> int:
        records = sorted(series)
        self._write_csv(config.SERIES_FILE, (config.SERIES_CODE_COL, config.SERIES_NAME_COL), records)
        return len(records)

    def write_index(self, entries: Iterable[Tuple[str, str]]) -> int:
        records = sorted(set(entries))
        self._write_csv(config.INDEX_FILE, (config.COUNTRY_CODE_COL, config.SERIES_CODE_COL), records)
        return len(records)

    def write_metadata(self, records: Iterable[SourceRow]) -> Tuple[int, int, int]:
        """Write the three lookup tables from the full set of records.

        Must run after every record is known; a later duplicate code keeps the
        name it was last seen with.
        """

        countries = {}
        series = {}
        index = []
        for row in records:
            countries[row.country_code] = row.country_name
            series[row.series_code] = row.series_name
            index.append(row.key)
        counts = (
            self.write_countries(countries.items()),
            self.write_series(series.items()),
            self.write_index(index),
        )
        logger.info("Countries lookup: %s (%s entries)", self.path(config.COUNTRIES_FILE), counts[0])
        logger.info("Series lookup: %s (%s entries)", self.path(config.SERIES_FILE), counts[1])
        logger.info("File index: %s (%s entries)", self.path(config.INDEX_FILE), counts[2])
        logger.info("Estimated space savings: %s%%", estimate_savings(*counts))
        return counts

    def write_readme(self) -> str:
        path = self.path(config.README_FILE)
        content = README_TEMPLATE.format(
            countries=config.COUNTRIES_FILE,
            series=config.SERIES_FILE,
            index=config.INDEX_FILE,
        )
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as exc:
            raise WriteFailure(f"Failed to write {path}: {exc}") from exc
        logger.info("Created documentation: %s", path)
        return path
