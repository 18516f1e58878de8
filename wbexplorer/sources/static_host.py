"""Read the split layout back from a static file host.

Files are addressed as ``{base_url}/{filename}``. Every parsed result goes
through a :class:`~wbexplorer.cache.QueryCache` keyed by filename, and
multi-country requests fan out over a thread pool.
"""

import csv
import io
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from wbexplorer.cache import QueryCache
from wbexplorer.config import config
from wbexplorer.errors import FetchError, WBExplorerError
from wbexplorer.sources.base import fetch_text
from wbexplorer.storage.metadata import Country, Series
from wbexplorer.transform.filenames import create_filename
from wbexplorer.transform.wide_to_narrow import Point, is_dropped, parse_value

logger = logging.getLogger(__name__)


@dataclass
class CountrySeriesData:
    """One country's slice of a multi-country comparison.

    ``data`` is empty and ``error`` is set when that country's file could not
    be fetched.
    """

    country: Country
    series_code: str
    data: List[Point] = field(default_factory=list)
    error: Optional[str] = None


def parse_data_csv(text: str) -> List[Point]:
    """Parse a ``Year,Value`` file into points sorted by year."""

    points = {}
    for row in csv.DictReader(io.StringIO(text.strip())):
        raw_year = (row.get("Year") or "").strip()
        if not raw_year.isdecimal():
            logger.debug("Skipping data row without a valid year: %s", row)
            continue
        value = parse_value(row.get("Value"))
        if is_dropped(value):
            continue
        points[int(raw_year)] = value
    return sorted(points.items())


def parse_lookup_csv(text: str, code_col: str, name_col: str) -> List[Tuple[str, str]]:
    pairs = []
    for row in csv.DictReader(io.StringIO(text.strip())):
        code = (row.get(code_col) or "").strip()
        if code:
            pairs.append((code, (row.get(name_col) or "").strip()))
    return pairs


class StaticHostSource:
    """Fetch lookup tables and per-country data files over HTTP."""

    def __init__(
        self,
        base_url: str = config.DATA_BASE_URL,
        cache: Optional[QueryCache] = None,
        max_workers: int = config.MAX_FETCH_WORKERS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.cache = cache if cache is not None else QueryCache()
        self.max_workers = max_workers

    def url_for(self, filename: str) -> str:
        return f"{self.base_url}/{filename}"

    def _get_text(self, filename: str) -> str:
        result = fetch_text(self.url_for(filename))
        if not result.ok or result.payload_text is None:
            raise FetchError(result.url, result.error or "empty response", result.status_code)
        return result.payload_text

    def _get_lookup(self, filename: str, load: Callable[[], Any]) -> Any:
        return self.cache.get(
            ("lookup", filename),
            load,
            stale_seconds=config.LOOKUP_CACHE_STALE_SECONDS,
            gc_seconds=config.LOOKUP_CACHE_GC_SECONDS,
        )

    def fetch_countries(self) -> List[Country]:
        def load() -> List[Country]:
            text = self._get_text(config.COUNTRIES_FILE)
            pairs = parse_lookup_csv(text, config.COUNTRY_CODE_COL, config.COUNTRY_NAME_COL)
            return [Country(code, name) for code, name in pairs]

        return self._get_lookup(config.COUNTRIES_FILE, load)

    def fetch_series(self) -> List[Series]:
        def load() -> List[Series]:
            text = self._get_text(config.SERIES_FILE)
            pairs = parse_lookup_csv(text, config.SERIES_CODE_COL, config.SERIES_NAME_COL)
            return [Series(code, name) for code, name in pairs]

        return self._get_lookup(config.SERIES_FILE, load)

    def fetch_country_series(self, country_code: str, series_code: str) -> List[Point]:
        filename = create_filename(country_code, series_code)

        def load() -> List[Point]:
            text = self._get_text(filename)
            try:
                return parse_data_csv(text)
            except (ValueError, csv.Error) as exc:
                raise FetchError(self.url_for(filename), f"unreadable data file: {exc}") from exc

        return self.cache.get(("data", filename), load)

    def _fetch_one(self, country: Country, series_code: str) -> CountrySeriesData:
        try:
            points = self.fetch_country_series(country.code, series_code)
        except WBExplorerError as exc:
            logger.warning("No data for %s/%s: %s", country.code, series_code, exc)
            return CountrySeriesData(country=country, series_code=series_code, error=str(exc))
        return CountrySeriesData(country=country, series_code=series_code, data=points)

    def fetch_multi_country(
        self,
        country_codes: Sequence[str],
        series_code: str,
        countries: Optional[Mapping[str, Country]] = None,
    ) -> List[CountrySeriesData]:
        """Fetch ``series_code`` for every country concurrently.

        The result has one entry per requested code, in request order. A
        failed fetch yields an entry with no data instead of failing the batch.
        """

        if not country_codes:
            return []
        lookup = countries or {}
        targets = [lookup.get(code) or Country(code, code) for code in country_codes]
        logger.info("Fetching %s for %s countries", series_code, len(targets))
        workers = max(1, min(self.max_workers, len(targets)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._fetch_one, country, series_code) for country in targets]
            return [future.result() for future in futures]
