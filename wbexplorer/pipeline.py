"""Orchestration of the one-shot split job: read, register filenames, write."""

import logging
import os
from dataclasses import dataclass

from wbexplorer.config import config
from wbexplorer.errors import InputError
from wbexplorer.storage.csv_storage import CSVStorage
from wbexplorer.transform.filenames import FilenameRegistry
from wbexplorer.transform.wide_to_narrow import read_source

logger = logging.getLogger(__name__)


@dataclass
class SplitSummary:
    rows_read: int
    files_written: int
    countries: int
    series: int
    index_entries: int
    output_dir: str


def split_worldbank_data(
    input_file: str,
    output_dir: str = config.DEFAULT_OUTPUT_DIR,
    file_progress_every: int = config.FILE_PROGRESS_INTERVAL,
    row_progress_every: int = config.ROW_PROGRESS_INTERVAL,
) -> SplitSummary:
    """Split ``input_file`` into per-country/series files under ``output_dir``.

    The whole export is materialized in memory before anything is written so
    filename collisions are detected up front and the lookup tables see every
    entity. Errors propagate; a partially written directory is left as is.
    """

    if not os.path.isfile(input_file):
        raise InputError(f"Input file not found: {input_file}")

    result = read_source(input_file, progress_every=row_progress_every)
    records = result.records
    logger.info("Finished reading %s rows. Creating %s individual files...", result.row_count, len(records))

    registry = FilenameRegistry()
    filenames = {key: registry.register(*key) for key in records}

    storage = CSVStorage(output_dir)
    file_count = 0
    for key, row in records.items():
        storage.write_entity(row, filenames[key])
        file_count += 1
        if file_progress_every and file_count % file_progress_every == 0:
            logger.info("Created %s/%s files...", file_count, len(records))

    countries, series, index_entries = storage.write_metadata(records.values())
    storage.write_readme()
    logger.info("Successfully split dataset into %s files in %s", file_count, output_dir)
    return SplitSummary(
        rows_read=result.row_count,
        files_written=file_count,
        countries=countries,
        series=series,
        index_entries=index_entries,
        output_dir=output_dir,
    )
