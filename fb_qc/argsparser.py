"""Functions for argument parsing
"""

import re
from argparse import ArgumentParser, ArgumentTypeError, RawTextHelpFormatter
from importlib.metadata import PackageNotFoundError, version

# pylint: disable=no-name-in-module
from multiprocess import cpu_count

from fb_qc.constants import (
    BARCODE_START_TRIM,
    BATCH_SIZE,
    CELL_CODE_FIRST_BASE,
    CELL_CODE_LAST_BASE,
    DEFAULT_IGNORE,
    DEFAULT_MIN_CELLS,
    DEFAULT_MIN_READS,
)


def get_package_version():
    """Return package version

    Returns:
        str: Package version as string
    """
    try:
        return version("FB-QC")
    except PackageNotFoundError:
        return "unknown"


def batch_size_limit(batch_size: str) -> int:
    """Validates batch_size limits"""
    max_size = 2147483647
    try:
        batch_value = int(batch_size)
    except ValueError:
        raise ArgumentTypeError("Batch size must be an int")
    if batch_value < 1 or batch_value > max_size:
        raise ArgumentTypeError(
            "Argument must be < " + str(max_size) + " and > " + str(1)
        )
    return batch_value


def parse_ignore_list(ignore: str) -> frozenset:
    """Parse a comma-separated list of barcode sequences to ignore"""
    sequences = frozenset(
        sequence.strip().upper() for sequence in ignore.split(",") if sequence.strip()
    )
    for sequence in sequences:
        if not re.match("^[ATGCN]+$", sequence):
            raise ArgumentTypeError(f"Ignored barcode {sequence} is not made of ATGCN")
    return sequences


def thread_default() -> int:
    """
    Set number of threads default.

    """
    max_cpu = cpu_count()

    if max_cpu > 4:
        return 4
    elif max_cpu == 4:
        return 3
    else:
        return 1


def get_args() -> ArgumentParser:
    """
    Get args.
    """

    parser = ArgumentParser(
        prog="FB-QC",
        formatter_class=RawTextHelpFormatter,
        description=(
            "This package counts feature barcodes per cell from paired fastq "
            "files and reports which barcodes pass the filters. Version {}".format(
                get_package_version()
            )
        ),
    )

    # REQUIRED INPUTS group.
    inputs = parser.add_argument_group("Inputs", description="Required input files.")
    inputs.add_argument(
        "-R1",
        "--read1",
        dest="read1_path",
        required=True,
        help=(
            "The path of Read1 holding the cell codes, or a comma-separated list of\n"
            "paths to all Read1 files (E.g. A1.fq.gz,B1.fq.gz,..."
        ),
    )
    inputs.add_argument(
        "-R2",
        "--read2",
        dest="read2_path",
        required=True,
        help=(
            "The path of Read2 holding the feature barcodes, or a comma-separated list of\n"
            "paths to all Read2 files (E.g. A2.fq.gz,B2.fq.gz,..."
        ),
    )
    inputs.add_argument(
        "-t",
        "--tags",
        "--csv",
        dest="tags",
        required=True,
        help=(
            "The path to the csv file containing the feature\n"
            "barcodes as well as their respective names.\n\n"
            "Requires feature_name (or name) and sequence in the header\n\n"
            "Example of a feature barcode file structure:\n\n"
            "\tfeature_name,sequence\n"
            "\tFirst_tag_name,ATGCGATGCGATGCG\n"
            "\tSecond_tag_name,GTCATGGTCATGGTC"
        ),
    )
    inputs.add_argument(
        "-wl",
        "--whitelist",
        dest="whitelist",
        required=False,
        default=None,
        help=("A list of valid cell codes, one per line. Plain or gz format."),
    )

    # BARCODES group.
    barcodes = parser.add_argument_group(
        "Barcodes",
        description=(
            "Positions of the cell codes and feature barcodes. If your\n"
            "cell codes are the first 16 bases of Read1 and the feature barcodes\n"
            "start after 10 bases of Read2, this is the input you need:\n"
            "\t-cbf 1 -cbl 16 -trim 10"
        ),
    )
    barcodes.add_argument(
        "-cbf",
        "--cell_barcode_first_base",
        dest="cb_first",
        required=False,
        type=int,
        default=CELL_CODE_FIRST_BASE,
        help=("Postion of the first base of your cell codes."),
    )
    barcodes.add_argument(
        "-cbl",
        "--cell_barcode_last_base",
        dest="cb_last",
        required=False,
        type=int,
        default=CELL_CODE_LAST_BASE,
        help=("Postion of the last base of your cell codes."),
    )
    barcodes.add_argument(
        "-trim",
        "--start-trim",
        dest="start_trim",
        required=False,
        type=int,
        default=BARCODE_START_TRIM,
        help=("Number of bases to discard from read2 before the feature barcode."),
    )

    # FILTERS group.
    filters = parser.add_argument_group(
        "Filters", description=("Thresholds for the reported feature barcodes.")
    )
    filters.add_argument(
        "-b",
        "--min-reads",
        dest="min_reads",
        required=False,
        type=int,
        default=DEFAULT_MIN_READS,
        help=(
            "Minimum barcode reads per cell code.\n"
            "Only count the barcodes found more than B times for a cell code."
        ),
    )
    filters.add_argument(
        "-c",
        "--min-cells",
        dest="min_cells",
        required=False,
        type=int,
        default=DEFAULT_MIN_CELLS,
        help=(
            "Minimum number of cells having an accepted barcode.\n"
            "Only output the barcodes found in more than C cells."
        ),
    )
    filters.add_argument(
        "-r",
        "--reads-per-cell",
        dest="reads_per_cell",
        required=False,
        type=float,
        default=None,
        help=(
            "Only output the barcodes that on average have more than R reads\n"
            "per positive cell."
        ),
    )
    filters.add_argument(
        "-x",
        "--ignore",
        dest="ignore",
        required=False,
        type=parse_ignore_list,
        default=DEFAULT_IGNORE,
        help=("Comma-separated list of barcodes to ignore."),
    )
    filters.add_argument(
        "-a",
        "--approximate",
        dest="approximate",
        required=False,
        action="store_true",
        default=False,
        help=(
            "Approximate matching.\n"
            "Count the barcodes within a Levenshtein distance of 2 of a single reference."
        ),
    )
    filters.add_argument(
        "-u",
        "--unknown",
        dest="unknown",
        required=False,
        action="store_true",
        default=False,
        help=(
            "Count unknown.\n"
            "Count the barcodes not matching the reference and summarize them at the end."
        ),
    )

    # Parallel group.
    parallel = parser.add_argument_group(
        "Parallelization options",
        description=("Options for performance on parallelization"),
    )
    parallel.add_argument(
        "-T",
        "--threads",
        required=False,
        type=int,
        dest="n_threads",
        default=thread_default(),
        help=("How many processes are to be used for matching the reads"),
    )
    parallel.add_argument(
        "-C",
        "--batch_size",
        required=False,
        type=batch_size_limit,
        dest="batch_size",
        default=BATCH_SIZE,
        help=("How many read pairs should be sent to a child process at a time"),
    )

    # Global group
    parser.add_argument(
        "-n",
        "--first_n",
        required=False,
        type=int,
        dest="first_n",
        default=None,
        help=("Select N reads to run on instead of all."),
    )
    parser.add_argument(
        "-o",
        "--output",
        required=False,
        type=str,
        default=None,
        dest="outfile",
        help=("Write the accepted barcodes to this csv file, ready for cellranger."),
    )
    parser.add_argument(
        "-um",
        "--unmapped-tags",
        required=False,
        type=str,
        dest="unmapped_file",
        default=None,
        help=("Write table of unknown barcodes to file. Requires --unknown."),
    )
    parser.add_argument(
        "-ut",
        "--unknown-top-tags",
        required=False,
        dest="unknowns_top",
        type=int,
        default=100,
        help=("Top n unmapped barcodes."),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"FB-QC v{get_package_version()}",
        help="Print version number.",
    )
    return parser
