"""Reading of the FastQ pairs and writing of the results"""
import gzip
import zlib
from itertools import islice, zip_longest
from pathlib import Path

import polars as pl

from fb_qc.errors import FormatError
from fb_qc.constants import (
    FEATURE_NAME_COLUMN,
    SEQUENCE_COLUMN,
    ACCEPTED_COLUMN,
    COUNT_COLUMN,
    OUTCOMES,
    UNKNOWN_NAME,
)

GZIP_MAGIC = b"\x1f\x8b"


def check_file(file_str) -> Path:
    """Check that a file exists and return it as a Path

    Args:
        file_str (str): Path to the file

    Returns:
        Path: The file path
    """
    file_path = Path(file_str)
    if not file_path.is_file():
        raise SystemExit(f"[ERROR] File {file_str} not found. Exiting")
    return file_path


def open_maybe_gzip(file_path):
    """Open a plain or gzipped text file for reading"""
    with open(file_path, "rb") as raw_file:
        magic = raw_file.read(2)
    if magic == GZIP_MAGIC:
        return gzip.open(file_path, "rt")
    return open(file_path, "rt", encoding="utf-8")


def get_read_paths(read1_path: str, read2_path: str) -> tuple[list[Path], list[Path]]:
    """Splits up comma-separated lists of read files

    Args:
        read1_path (str): Comma-separated paths to Read1 files
        read2_path (str): Comma-separated paths to Read2 files

    Returns:
        tuple[list[Path], list[Path]]: Read1 and Read2 paths, pair by pair
    """
    read1_paths = read1_path.split(",")
    read2_paths = read2_path.split(",")
    if len(read1_paths) != len(read2_paths):
        raise SystemExit(
            f"[ERROR] Unequal number of read1 ({len(read1_paths)}) and "
            f"read2 ({len(read2_paths)}) files provided.\nExiting"
        )
    return (
        [check_file(path) for path in read1_paths],
        [check_file(path) for path in read2_paths],
    )


def read_sequences(fastq_file, file_path):
    """Yield the sequence line of every 4 line record of a FastQ file

    Blank lines are only allowed at the end of the file.

    Args:
        fastq_file (file): Open FastQ file
        file_path (Path): Path used in error messages

    Raises:
        FormatError: If a record is truncated, has no sequence line, is
            followed by records after blank lines or cannot be decoded
    """
    record_index = 0
    try:
        while True:
            record = list(islice(fastq_file, 4))
            if not record:
                return
            if not any(line.strip() for line in record):
                if any(line.strip() for line in fastq_file):
                    raise FormatError(
                        "Blank lines between FastQ records", file_path, record_index
                    )
                return
            if len(record) < 4:
                raise FormatError("Truncated FastQ record", file_path, record_index)
            if not record[0].startswith("@") or not record[2].startswith("+"):
                raise FormatError(
                    "Malformed FastQ record, expected header, sequence, '+' and quality lines",
                    file_path,
                    record_index,
                )
            yield record[1].rstrip()
            record_index += 1
    except (EOFError, OSError, UnicodeDecodeError, zlib.error) as err:
        raise FormatError(
            f"Could not decode FastQ record ({err})", file_path, record_index
        ) from err


class ReadPairSource:
    """Iterates once over (cell code, barcode) pairs of synchronized FastQ files.

    Positions follow the command line convention: the cell code spans the
    1-based bases `cb_first` to `cb_last` of read1, the barcode starts after
    `barcode_start` bases of read2.

    Args:
        read1_paths (list): Read1 files, carrying the cell codes
        read2_paths (list): Read2 files, carrying the barcodes
        cb_first (int): First base of the cell code
        cb_last (int): Last base of the cell code
        barcode_start (int): Bases of read2 before the barcode
        barcode_length (int): Barcode length
        first_n (int | None): Stop after this many read pairs
    """

    def __init__(
        self,
        read1_paths: list,
        read2_paths: list,
        cb_first: int,
        cb_last: int,
        barcode_start: int,
        barcode_length: int,
        first_n: int | None = None,
    ):
        self.read_paths = list(zip(read1_paths, read2_paths))
        self.cell_code_slice = slice(cb_first - 1, cb_last)
        self.cell_code_length = cb_last - cb_first + 1
        self.barcode_slice = slice(barcode_start, barcode_start + barcode_length)
        self.barcode_length = barcode_length
        self.first_n = first_n
        self.n_records = 0
        self.r1_too_short = 0
        self.r2_too_short = 0
        self._started = False

    def __iter__(self):
        if self._started:
            raise RuntimeError("Read pairs can only be iterated once. Open a new source.")
        self._started = True
        return self._pairs()

    def _pairs(self):
        for read1_path, read2_path in self.read_paths:
            with open_maybe_gzip(read1_path) as read1_file, open_maybe_gzip(
                read2_path
            ) as read2_file:
                for record_index, (read1, read2) in enumerate(
                    zip_longest(
                        read_sequences(read1_file, read1_path),
                        read_sequences(read2_file, read2_path),
                    )
                ):
                    if read1 is None or read2 is None:
                        raise FormatError(
                            "Read1 and Read2 hold different numbers of records",
                            read1_path if read1 is None else read2_path,
                            record_index,
                        )
                    if self.first_n is not None and self.n_records >= self.first_n:
                        return
                    self.n_records += 1
                    cell_code = read1[self.cell_code_slice]
                    if len(cell_code) < self.cell_code_length:
                        self.r1_too_short += 1
                        continue
                    barcode = read2[self.barcode_slice]
                    if len(barcode) < self.barcode_length:
                        self.r2_too_short += 1
                        continue
                    yield cell_code.upper(), barcode.upper()


def print_matches(result_table: pl.DataFrame, aggregator, n_reads: int):
    """Print the result table and the outcome of every examined read

    Args:
        result_table (pl.DataFrame): See `processing.build_result_table`
        aggregator (Aggregator): Counts of the run
        n_reads (int): Number of examined read pairs
    """
    with pl.Config(tbl_rows=-1, tbl_hide_dataframe_shape=True):
        print(result_table)
    outcomes = ", ".join(
        f"{outcome}: {aggregator.outcomes[outcome]:,}" for outcome in OUTCOMES
    )
    print(outcomes)
    print(f"Examined {n_reads:,} reads in {aggregator.n_cells:,} cells")


def print_unknown(summaries: dict, aggregator, top_unknowns: int):
    """Print the summary of the unknown barcodes and the most frequent ones

    Args:
        summaries (dict): Summary per feature name
        aggregator (Aggregator): Counts of the run
        top_unknowns (int): Number of unmapped sequences to print
    """
    unknown = summaries.get(UNKNOWN_NAME)
    if unknown is None:
        print(f"{UNKNOWN_NAME}: no positive cells")
    else:
        print(
            f"{UNKNOWN_NAME}: {unknown.reads:,} reads in {unknown.cells:,} cells, "
            f"{unknown.reads_per_cell:.1f} reads per cell"
        )
    for sequence, count in aggregator.unmapped.most_common(top_unknowns):
        print(f"\t{sequence}\t{count}")


def write_accepted_csv(result_table: pl.DataFrame, outfile):
    """Write the accepted features as a feature_name,sequence csv

    Args:
        result_table (pl.DataFrame): See `processing.build_result_table`
        outfile (str): Path of the csv file
    """
    (
        result_table.filter(pl.col(ACCEPTED_COLUMN))
        .select(FEATURE_NAME_COLUMN, SEQUENCE_COLUMN)
        .sort(FEATURE_NAME_COLUMN)
        .write_csv(outfile)
    )


def write_unmapped(aggregator, top_unknowns: int, outfile):
    """
    Writes a list of top unmapped sequences

    Args:
        aggregator (Aggregator): Counts holding the unmapped sequences
        top_unknowns (int): Number of unmapped sequences to output
        outfile (str): Path of the output file
    """
    top_unmapped = aggregator.unmapped.most_common(top_unknowns)

    with open(outfile, "w", encoding="utf-8") as unknown_file:
        unknown_file.write(f"{SEQUENCE_COLUMN},{COUNT_COLUMN}\n")
        for sequence, count in top_unmapped:
            unknown_file.write(f"{sequence},{count}\n")
