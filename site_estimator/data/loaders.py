"""
Cell export loading.

Reads the bulk cell export (MLS / OpenCelliD column layout) in chunks as
raw string records, and applies the radio type / network filter before
records reach the parser. No value conversion happens here.
"""
import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

import pandas as pd

from site_estimator.utils.exceptions import DataLoadError
from site_estimator.utils.logging_config import get_logger

logger = get_logger(__name__)

# Header row of the export; the parser works on positions
EXPORT_COLUMNS = [
    "radio", "mcc", "net", "area", "cell", "unit", "lon", "lat", "range",
    "samples", "changeable", "created", "updated", "averageSignal",
]

DEFAULT_CHUNK_SIZE = 200000

# Lines are read whole and split with the csv module; the separator never
# occurs in an export line
LINE_COLUMN = "line"
LINE_SEPARATOR = "\x1f"


@dataclass
class RecordFilter:
    """
    Which raw records to pass to the parser.

    Filters compare raw text, before any parsing. ``None`` disables a filter.

    Example:
        >>> RecordFilter(radio_types=['LTE'], mcc=['234'])
    """
    radio_types: Optional[Sequence[str]] = ("LTE",)
    mcc: Optional[Sequence[str]] = None
    mnc: Optional[Sequence[str]] = None

    def accepts(self, record: Sequence[str]) -> bool:
        if not record:
            return False
        if self.radio_types is not None and record[0] not in self.radio_types:
            return False
        if self.mcc is not None and (len(record) < 2 or record[1] not in self.mcc):
            return False
        if self.mnc is not None and (len(record) < 3 or record[2] not in self.mnc):
            return False
        return True


def _is_header(record: Sequence[str]) -> bool:
    return bool(record) and record[0].strip().lower() == EXPORT_COLUMNS[0]


def _split_lines(lines: Iterable[str]) -> List[List[str]]:
    """
    Split raw lines into fields, keeping each row's original width.

    Each line is split on its own, so an unbalanced quote damages only the
    line it is on.
    """
    return [next(csv.reader([line]), []) for line in lines]


def read_cell_export(
    file_path: Path,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    has_header: bool = True,
) -> Iterator[List[List[str]]]:
    """
    Read a cell export as chunks of raw string records.

    pandas streams the file line by line (so compressed exports such as
    .gz and .zip work) and each line is split with the csv module. Every
    field is kept as text, empty cells stay "" and short rows stay short,
    so record width checks happen in the parser.

    Args:
        file_path: Path to the export CSV
        chunk_size: Records per chunk
        has_header: If True, drop a leading header row (first field 'radio')

    Yields:
        Lists of records, each a list of string fields

    Raises:
        DataLoadError: If the file is missing or cannot be read

    Example:
        >>> for chunk in read_cell_export(Path("MLS-full-cell-export.csv.gz")):
        ...     result = parse_records(filter_records(chunk, RecordFilter()))
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise DataLoadError(f"Cell export not found: {file_path}")

    logger.info("loading_cell_export", path=str(file_path), chunk_size=chunk_size)

    total = 0
    first_chunk = True
    try:
        reader = pd.read_csv(
            file_path,
            header=None,
            names=[LINE_COLUMN],
            sep=LINE_SEPARATOR,
            quoting=csv.QUOTE_NONE,
            dtype=str,
            keep_default_na=False,
            na_filter=False,
            compression="infer",
            chunksize=chunk_size,
        )
        with reader:
            for chunk in reader:
                records = _split_lines(chunk[LINE_COLUMN].tolist())
                if first_chunk:
                    if has_header and records and _is_header(records[0]):
                        records = records[1:]
                    first_chunk = False
                total += len(records)
                yield records
    except pd.errors.EmptyDataError:
        logger.warning("cell_export_empty", path=str(file_path))
        return
    except (OSError, csv.Error, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise DataLoadError(f"Failed to read cell export {file_path}: {e}") from e

    logger.info("cell_export_loaded", path=str(file_path), records=total)


def filter_records(records: Iterable[Sequence[str]], record_filter: RecordFilter) -> List[Sequence[str]]:
    """
    Keep the records accepted by ``record_filter``.

    Args:
        records: Raw records
        record_filter: Radio type / network filter

    Returns:
        Accepted records, in input order
    """
    return [record for record in records if record_filter.accepts(record)]
