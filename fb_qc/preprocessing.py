"""Sets of functions to load and validate the run inputs"""

from itertools import combinations

import Levenshtein
import polars as pl

from fb_qc.errors import LoadError
from fb_qc.io import check_file, open_maybe_gzip
from fb_qc.constants import (
    FEATURE_NAME_COLUMN,
    FEATURE_REFERENCE_NAME_COLUMN,
    FEATURE_REFERENCE_ID_COLUMN,
    SEQUENCE_COLUMN,
    REQUIRED_TAGS_HEADER,
    STRIP_CHARS,
    UNKNOWN_NAME,
)

ATGC_PATTERN = "^[ATGC]{1,}$"


def check_equi_length(df: pl.DataFrame, column_name: str, filename: str):
    """Check that all the sequences in the specified column of a polars DataFrame are the same length.

    Args:
        df (pl.DataFrame): The DataFrame containing the sequences.
        column_name (str): The name of the column containing the sequences.
        filename (str): File the sequences come from.

    Raises:
        LoadError: If the sequences have different lengths.

    """
    lengths = df[column_name].str.len_chars().unique().sort().to_list()
    if len(lengths) > 1:
        raise LoadError(
            f"Sequences in the {column_name} column of {filename} have "
            f"different lengths: {lengths}. All sequences must be the same length."
        )


def check_sequence_pattern(
    df: pl.DataFrame,
    pattern: str,
    column_name: str,
    file_type: str,
    expected_pattern: str,
    filename: str,
) -> None:
    """Check that a column of a polars df matches a given pattern and raise if not

    Args:
        df (pl.DataFrame): Df holding the info to be tested
        pattern (str): Regex pattern to be tested
        column_name (str): Which column to test
        file_type (str): File type for the error raised
        expected_pattern (str): Human readable pattern to be raised
        filename (str): File the sequences come from

    Raises:
        LoadError: If some sequences don't match
    """
    offending = df.filter(~pl.col(column_name).str.contains(pattern))
    if not offending.is_empty():
        sequences_str = "\n".join(offending.get_column(column_name).head(10).to_list())
        raise LoadError(
            f"Some sequences in the {file_type} file are not only composed "
            f"of {expected_pattern} in the column: {column_name}. "
            f"Here are the first ones:\n{sequences_str}\nFilepath: {filename}"
        )


def check_duplicates(df: pl.DataFrame, column_name: str, file_type: str, filename: str):
    """Raise if a column holds the same value more than once

    Args:
        df (pl.DataFrame): Df holding the values
        column_name (str): Which column to test
        file_type (str): File type for the error raised
        filename (str): File the values come from

    Raises:
        LoadError: If duplicates are found
    """
    duplicated = df.filter(pl.col(column_name).is_duplicated())
    if not duplicated.is_empty():
        duplicated_str = ", ".join(
            duplicated.get_column(column_name).unique(maintain_order=True).to_list()
        )
        raise LoadError(
            f"The {file_type} file at {filename} holds duplicated "
            f"{column_name} values: {duplicated_str}"
        )


def parse_tags_csv(file_name: str) -> pl.DataFrame:
    """Reads the TAGs from a CSV file. Checks that the header contains
    necessary strings and if sequences are made of ATGC

    The expected file format has a header with "sequence" and "feature_name".
    Order doesn't matter. A 10x feature reference, which uses "name"
    instead of "feature_name", is accepted as well.
    When its names repeat, the unique "id" column names the features.
    e.g. file content
        sequence,feature_name
        GTCAACTCTTTAGCG,Hashtag_1
        TGATGGCCTATTGGG,Hashtag_2
        TTCCGCCTCTCTTTG,Hashtag_3

    Args:
        file_name (str): file path as a string

    Returns:
        pl.DataFrame: polars dataframe with the feature_name and sequence columns

    Raises:
        LoadError: If the file is malformed
    """
    file_path = check_file(file_name)
    try:
        data_pl = pl.read_csv(file_path, infer_schema_length=0)
    except pl.exceptions.PolarsError as err:
        raise LoadError(f"Could not parse the tags file at {file_path}: {err}") from err

    if (
        FEATURE_NAME_COLUMN not in data_pl.columns
        and FEATURE_REFERENCE_NAME_COLUMN in data_pl.columns
    ):
        name_column = FEATURE_REFERENCE_NAME_COLUMN
        if (
            FEATURE_REFERENCE_ID_COLUMN in data_pl.columns
            and data_pl[FEATURE_REFERENCE_NAME_COLUMN].is_duplicated().any()
        ):
            print(
                f"[WARNING] The feature reference at {file_path} repeats some names. "
                f"Features are reported by their {FEATURE_REFERENCE_ID_COLUMN} instead."
            )
            name_column = FEATURE_REFERENCE_ID_COLUMN
        data_pl = data_pl.rename({name_column: FEATURE_NAME_COLUMN})
    set_diff = set(REQUIRED_TAGS_HEADER).difference(data_pl.columns)
    if len(set_diff) != 0:
        set_diff_str = " AND ".join(sorted(set_diff))
        raise LoadError(
            f"The header of the tags file at {file_path} "
            f"is missing the following header(s) {set_diff_str}"
        )

    data_pl = data_pl.select(REQUIRED_TAGS_HEADER).with_columns(
        pl.col(FEATURE_NAME_COLUMN).str.strip_chars(),
        pl.col(SEQUENCE_COLUMN).str.strip_chars().str.to_uppercase(),
    )
    if data_pl.is_empty():
        raise LoadError(f"The tags file at {file_path} holds no tags.")
    for column in REQUIRED_TAGS_HEADER:
        if data_pl.filter(
            pl.col(column).is_null() | (pl.col(column) == "")
        ).height:
            raise LoadError(
                f"Column {column} is missing a value. Please fix the CSV file at {file_path}."
            )
    if data_pl.filter(pl.col(FEATURE_NAME_COLUMN) == UNKNOWN_NAME).height:
        raise LoadError(
            f"'{UNKNOWN_NAME}' is a reserved feature name. Please rename it in {file_path}."
        )
    check_sequence_pattern(
        df=data_pl,
        pattern=ATGC_PATTERN,
        column_name=SEQUENCE_COLUMN,
        file_type="tags",
        expected_pattern="ATGC",
        filename=file_name,
    )
    for column in REQUIRED_TAGS_HEADER:
        check_duplicates(
            df=data_pl, column_name=column, file_type="tags", filename=file_name
        )
    check_equi_length(df=data_pl, column_name=SEQUENCE_COLUMN, filename=file_name)
    return data_pl


def check_tags(tags_pl: pl.DataFrame, maximum_distance: int) -> int:
    """Evaluates the distance between the TAGs based on the `maximum distance`
    used for approximate matching.

    Reads close to two TAGs that are within `maximum_distance` of each other
    can only be resolved as ambiguous, so such pairs are reported.

    Args:
        tags_pl (pl.DataFrame): Parsed tags
        maximum_distance (int): The Levenshtein radius used for approximate matching

    Returns:
        int: the length of the TAGs
    """
    offending_pairs = []
    for (name_a, tag_a), (name_b, tag_b) in combinations(
        tags_pl.select(FEATURE_NAME_COLUMN, SEQUENCE_COLUMN).iter_rows(), 2
    ):
        # pylint: disable=no-member
        distance = Levenshtein.distance(tag_a, tag_b)
        if distance <= maximum_distance:
            offending_pairs.append([name_a, name_b, distance])
    if offending_pairs:
        print(
            "[WARNING] Some TAGs are within the approximate matching distance "
            "of each other.\nReads close to them will be counted as ambiguous.\n\n"
            "Offending case(s):\n"
        )
        for pair in offending_pairs:
            print(f"\t{pair[0]}\n\t{pair[1]}\n\tDistance = {pair[2]}\n")
    return tags_pl[SEQUENCE_COLUMN].str.len_chars().max()


def parse_whitelist(filename: str, barcode_length: int | None = None) -> pl.DataFrame:
    """Reads a whitelist of cell codes, one per line.

    The function accepts plain or gzipped files and even 10X style
    barcodes with the `-1` at the end of each barcode.

    Args:
        filename (str): Whitelist file.
        barcode_length (int | None): Expected length of the cell codes.

    Returns:
        pl.DataFrame: The cell codes in a single sequence column.

    Raises:
        LoadError: If the whitelist is empty or holds invalid or duplicated codes
    """
    file_path = check_file(filename)
    with open_maybe_gzip(file_path) as whitelist_file:
        cell_codes = [
            cell_code.strip(STRIP_CHARS).upper()
            for cell_code in whitelist_file
            if cell_code.strip()
        ]
    if not cell_codes:
        raise LoadError(f"The whitelist at {file_path} is empty.")
    whitelist_df = pl.DataFrame({SEQUENCE_COLUMN: cell_codes}, schema={SEQUENCE_COLUMN: pl.String})
    check_sequence_pattern(
        df=whitelist_df,
        pattern=ATGC_PATTERN,
        column_name=SEQUENCE_COLUMN,
        file_type="whitelist",
        expected_pattern="ATGC",
        filename=filename,
    )
    check_duplicates(
        df=whitelist_df,
        column_name=SEQUENCE_COLUMN,
        file_type="whitelist",
        filename=filename,
    )
    check_equi_length(df=whitelist_df, column_name=SEQUENCE_COLUMN, filename=filename)
    if barcode_length is not None and len(cell_codes[0]) != barcode_length:
        raise LoadError(
            f"Cell codes in {filename} are {len(cell_codes[0])}bp long "
            f"but the cell code positions select {barcode_length}bp."
        )
    return whitelist_df


class CellCodeFilter:
    """Accepts the cell codes of a whitelist, or every cell code without one."""

    def __init__(self, cell_codes=None):
        self.cell_codes = None if cell_codes is None else frozenset(cell_codes)

    @classmethod
    def from_path(cls, filename: str | None, barcode_length: int | None = None):
        if filename is None:
            return cls()
        whitelist_df = parse_whitelist(filename, barcode_length=barcode_length)
        return cls(whitelist_df.get_column(SEQUENCE_COLUMN).to_list())

    def accepts(self, cell_code: str) -> bool:
        return self.cell_codes is None or cell_code in self.cell_codes

    def __len__(self):
        return 0 if self.cell_codes is None else len(self.cell_codes)
