"""Selection state for the explorer and the projections derived from it.

Everything here is UI-toolkit agnostic so the dashboard stays a thin layer of
widgets. ``ExplorerState`` tags each fetch with a generation number; results
carrying an older tag than the current selection are discarded.
"""

import threading
from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from wbexplorer.config import config
from wbexplorer.sources.static_host import CountrySeriesData
from wbexplorer.storage.metadata import Country

Row = List[object]

# Changing these invalidates fetched data; chart type, year and display mode
# are pure presentation.
_DATA_FIELDS = ("countries", "series")


@dataclass(frozen=True)
class Selection:
    countries: Tuple[str, ...] = tuple(config.DEFAULT_COUNTRIES)
    series: str = config.DEFAULT_SERIES
    chart_type: str = config.DEFAULT_CHART_TYPE
    compare_year: int = config.DEFAULT_COMPARE_YEAR
    display_mode: str = config.DEFAULT_DISPLAY_MODE

    def countries_to_fetch(self) -> Tuple[str, ...]:
        seen = {}
        for code in self.countries:
            seen.setdefault(code, None)
        return tuple(seen)

    @property
    def has_data_request(self) -> bool:
        return bool(self.countries) and bool(self.series)


class ExplorerState:
    """Current selection plus the last results that matched it."""

    def __init__(self, selection: Optional[Selection] = None) -> None:
        self._lock = threading.Lock()
        self._selection = selection or Selection()
        self._generation = 0
        self._results: Optional[List[CountrySeriesData]] = None

    @property
    def selection(self) -> Selection:
        with self._lock:
            return self._selection

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def results(self) -> Optional[List[CountrySeriesData]]:
        with self._lock:
            return self._results

    def update(self, **changes) -> int:
        """Apply user changes and return the (possibly new) generation tag."""

        if "countries" in changes:
            changes["countries"] = tuple(changes["countries"])
        if changes.get("chart_type", config.CHART_TYPES[0]) not in config.CHART_TYPES:
            raise ValueError(f"Unknown chart type: {changes['chart_type']}")
        if changes.get("display_mode", config.DISPLAY_MODES[0]) not in config.DISPLAY_MODES:
            raise ValueError(f"Unknown display mode: {changes['display_mode']}")
        with self._lock:
            updated = replace(self._selection, **changes)
            if any(getattr(updated, name) != getattr(self._selection, name) for name in _DATA_FIELDS):
                self._generation += 1
                self._results = None
            self._selection = updated
            return self._generation

    def begin_fetch(self) -> Tuple[int, Selection]:
        """Snapshot the tag and selection a fetch is issued for."""

        with self._lock:
            return self._generation, self._selection

    def apply_results(self, tag: int, results: List[CountrySeriesData]) -> bool:
        """Store ``results`` unless the selection moved on since ``tag``."""

        with self._lock:
            if tag != self._generation:
                return False
            self._results = list(results)
            return True

    def relabel(self, countries: Mapping[str, Country]) -> int:
        """Attach display names to the stored results and start a new generation.

        Fetches issued before the names were known are discarded when they land,
        so they cannot overwrite the relabelled results.
        """

        with self._lock:
            self._generation += 1
            if self._results is not None:
                self._results = [
                    replace(item, country=countries.get(item.country.code, item.country)) for item in self._results
                ]
            return self._generation


def available_years(results: Sequence[CountrySeriesData]) -> List[int]:
    """Distinct years across all results, most recent first."""

    return sorted({year for item in results for year, _ in item.data}, reverse=True)


def resolve_compare_year(requested: int, years: Sequence[int]) -> Optional[int]:
    if requested in years:
        return requested
    return max(years) if years else None


def _value_map(item: CountrySeriesData) -> Dict[int, Optional[float]]:
    return dict(item.data)


def chart_series(results: Sequence[CountrySeriesData]) -> Tuple[List[int], List[Tuple[str, List[Optional[float]]]]]:
    """Align every country's values on the years where any country has data.

    Gaps stay ``None`` so line charts do not connect across missing years.
    """

    years = sorted({year for item in results for year, value in item.data if value is not None})
    lines = []
    for item in results:
        values = _value_map(item)
        lines.append((item.country.name, [values.get(year) for year in years]))
    return years, lines


def bar_values(results: Sequence[CountrySeriesData], year: Optional[int]) -> List[Tuple[str, Optional[float]]]:
    return [(item.country.name, _value_map(item).get(year) if year is not None else None) for item in results]


def long_table(results: Sequence[CountrySeriesData]) -> Tuple[List[str], List[Row]]:
    """One row per country-year."""

    header = ["Country", "Code", "Year", "Value"]
    rows: List[Row] = []
    for item in results:
        for year, value in sorted(item.data):
            rows.append([item.country.name, item.country.code, year, value])
    return header, rows


def wide_table_by_year(results: Sequence[CountrySeriesData]) -> Tuple[List[str], List[Row]]:
    """Years as rows, one column per country."""

    years = sorted({year for item in results for year, _ in item.data})
    maps = [_value_map(item) for item in results]
    header = ["Year"] + [item.country.name for item in results]
    rows: List[Row] = [[year] + [values.get(year) for values in maps] for year in years]
    return header, rows


def wide_table_by_country(results: Sequence[CountrySeriesData]) -> Tuple[List[str], List[Row]]:
    """Countries as rows, one column per year."""

    years = sorted({year for item in results for year, _ in item.data})
    header = ["Country"] + [str(year) for year in years]
    rows: List[Row] = []
    for item in results:
        values = _value_map(item)
        rows.append([item.country.name] + [values.get(year) for year in years])
    return header, rows


def summary_table(results: Sequence[CountrySeriesData]) -> Tuple[List[str], List[Row]]:
    """Latest value, latest year and number of years with data per country."""

    header = ["Country", "Latest Value", "Latest Year", "Data Points"]
    rows: List[Row] = []
    for item in results:
        valid = [(year, value) for year, value in item.data if value is not None]
        if valid:
            year, value = max(valid)
            rows.append([item.country.name, value, year, f"{len(valid)} years"])
        else:
            rows.append([item.country.name, "No data", "N/A", "0 years"])
    return header, rows
