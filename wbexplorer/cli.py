"""
Command-line interface for the World Bank splitter.

Subcommands split a wide export into the normalized layout and query the
resulting lookup tables:

    wbexplorer run <input-file> [output-directory]
    wbexplorer stats [--dir D]
    wbexplorer country <code-or-search> [--dir D]
    wbexplorer series <code-or-search> [--dir D]
    wbexplorer filename <country,series>
    wbexplorer analyze [--dir D]
"""

import argparse
import logging
import os
import sys
from typing import List, Optional, Sequence

from wbexplorer.config import config
from wbexplorer.errors import WBExplorerError
from wbexplorer.pipeline import split_worldbank_data
from wbexplorer.storage.metadata import WorldBankMetadata
from wbexplorer.transform.filenames import create_filename

LIST_LIMIT = 10
SAMPLE_COUNTRIES = 15
SAMPLE_SERIES = 10


def _print_limited(lines: List[str], limit: int = LIST_LIMIT) -> None:
    for line in lines[:limit]:
        print(f"  - {line}")
    if len(lines) > limit:
        print(f"  ... and {len(lines) - limit} more")


def cmd_run(args: argparse.Namespace) -> int:
    """Split the source export into per-country/series files."""
    summary = split_worldbank_data(args.input_file, args.output_dir)
    print(f"Successfully split dataset into {summary.files_written} files!")
    print(f"Output directory: {summary.output_dir}")
    print(f"Countries: {summary.countries}, series: {summary.series}, index entries: {summary.index_entries}")
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    stats = WorldBankMetadata.load(args.dir).get_stats()
    print("Dataset Statistics:")
    print(f"  Total countries: {stats.total_countries}")
    print(f"  Total series: {stats.total_series}")
    print(f"  Total files: {stats.total_files}")
    print(f"  Avg series per country: {stats.avg_series_per_country}")
    return 0


def cmd_country(args: argparse.Namespace) -> int:
    """Show one country's series, or search countries by name."""
    metadata = WorldBankMetadata.load(args.dir)
    country = metadata.get_country(args.term.upper())
    if country:
        print(f"Country: {country.name} ({country.code})")
        series = metadata.get_series_for_country(country.code)
        print(f"Available series: {len(series)}")
        _print_limited([f"{s.name} -> {filename}" for s, filename in series])
        return 0
    matches = metadata.search_countries(args.term)
    print(f'Found {len(matches)} countries matching "{args.term}":')
    for c in matches:
        print(f"  - {c.name} ({c.code})")
    return 0


def cmd_series(args: argparse.Namespace) -> int:
    """Show which countries carry a series, or search series by name."""
    metadata = WorldBankMetadata.load(args.dir)
    series = metadata.get_series(args.term.upper())
    if series:
        print(f"Series: {series.name} ({series.code})")
        countries = metadata.get_countries_for_series(series.code)
        print(f"Available for {len(countries)} countries")
        _print_limited([f"{c.name} -> {filename}" for c, filename in countries])
        return 0
    matches = metadata.search_series(args.term)
    print(f'Found {len(matches)} series matching "{args.term}":')
    for s in matches:
        print(f"  - {s.name} ({s.code})")
    return 0


def cmd_filename(args: argparse.Namespace) -> int:
    parts = [p.strip() for p in args.codes.split(",")]
    if len(parts) != 2 or not all(parts):
        print("Please provide both country and series codes: country,series", file=sys.stderr)
        return 1
    print(f"Filename: {create_filename(parts[0], parts[1])}")
    return 0


def cmd_analyze(args: argparse.Namespace) -> int:
    """Summarize coverage: which countries and series have the most files."""
    metadata = WorldBankMetadata.load(args.dir)
    stats = metadata.get_stats()
    print("Dataset Summary:")
    print(f"  Total countries: {stats.total_countries}")
    print(f"  Total data series: {stats.total_series}")
    print(f"  Total combinations: {stats.total_countries * stats.total_series} (theoretical)")
    print(f"  Actual files: {stats.total_files}")
    print(f"\nTop {args.top} countries by number of data series:")
    for rank, (country, count) in enumerate(metadata.top_countries_by_series(args.top), start=1):
        print(f"  {rank}. {country.name}: {count} series")
    print(f"\nTop {args.top} most common data series:")
    for rank, (series, count) in enumerate(metadata.top_series_by_countries(args.top), start=1):
        print(f"  {rank}. {series.name}: {count} countries")
    print("\nSample countries available:")
    for name in sorted(c.name for c in metadata.countries.values())[:SAMPLE_COUNTRIES]:
        print(f"  - {name}")
    print("\nSample data series available:")
    for name in sorted(s.name for s in metadata.series.values())[:SAMPLE_SERIES]:
        print(f"  - {name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wbexplorer",
        description="Split World Bank exports and query the normalized metadata",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Split a wide export into per-country/series files")
    run.add_argument("input_file", help="World Bank CSV export")
    run.add_argument("output_dir", nargs="?", default=config.DEFAULT_OUTPUT_DIR, help="Output directory")
    run.set_defaults(func=cmd_run)

    def add_dir(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--dir", default=config.DEFAULT_OUTPUT_DIR, help="Directory holding the split metadata")

    stats = subparsers.add_parser("stats", help="Print dataset statistics")
    add_dir(stats)
    stats.set_defaults(func=cmd_stats)

    country = subparsers.add_parser("country", help="Look up a country code or search names")
    country.add_argument("term")
    add_dir(country)
    country.set_defaults(func=cmd_country)

    series = subparsers.add_parser("series", help="Look up a series code or search names")
    series.add_argument("term")
    add_dir(series)
    series.set_defaults(func=cmd_series)

    filename = subparsers.add_parser("filename", help="Print the data filename for country,series")
    filename.add_argument("codes", help="e.g. ARG,NY.GDP.PCAP.KD")
    filename.set_defaults(func=cmd_filename)

    analyze = subparsers.add_parser("analyze", help="Coverage summary of the split dataset")
    analyze.add_argument("--top", type=int, default=LIST_LIMIT)
    add_dir(analyze)
    analyze.set_defaults(func=cmd_analyze)
    return parser


def configure_logging(verbose: bool = False) -> None:
    level_name = "DEBUG" if verbose else os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    try:
        return args.func(args)
    except WBExplorerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
