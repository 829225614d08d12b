"""Counting and filtering of the mapped reads"""
from collections import Counter
from dataclasses import dataclass

import polars as pl

from fb_qc.constants import (
    FEATURE_NAME_COLUMN,
    SEQUENCE_COLUMN,
    READS_COLUMN,
    CELLS_COLUMN,
    READS_PER_CELL_COLUMN,
    ACCEPTED_COLUMN,
    UNKNOWN_NAME,
)


@dataclass
class BarcodeSummary:
    """Reads and positive cells of one feature"""

    cells: int = 0
    reads: int = 0

    @property
    def reads_per_cell(self) -> float:
        if self.cells == 0:
            return 0.0
        return self.reads / self.cells


class Aggregator:
    """Owns the per cell, per feature read counts of a run.

    Besides the count table, it tallies the outcome of every read pair and,
    when unknown barcodes are counted, the unmapped sequences.
    """

    def __init__(self):
        self.cells = {}
        self.outcomes = Counter()
        self.unmapped = Counter()

    def increment(self, cell_code: str, feature_name: str):
        cell = self.cells.get(cell_code)
        if cell is None:
            cell = self.cells[cell_code] = Counter()
        cell[feature_name] += 1

    def tally(self, outcome: str):
        self.outcomes[outcome] += 1

    def add_unmapped(self, sequence: str):
        self.unmapped[sequence] += 1

    def merge(self, other: "Aggregator") -> "Aggregator":
        """Add the counts of another aggregator to this one.

        Args:
            other (Aggregator): Counts from another shard

        Returns:
            Aggregator: self
        """
        for cell_code, features in other.cells.items():
            cell = self.cells.get(cell_code)
            if cell is None:
                self.cells[cell_code] = Counter(features)
            else:
                cell.update(features)
        self.outcomes.update(other.outcomes)
        self.unmapped.update(other.unmapped)
        return self

    @property
    def n_cells(self) -> int:
        return len(self.cells)

    def count(self, cell_code: str, feature_name: str) -> int:
        cell = self.cells.get(cell_code)
        return 0 if cell is None else cell[feature_name]

    def total(self, feature_name: str) -> int:
        return sum(cell[feature_name] for cell in self.cells.values())

    def summaries(self, min_reads: int) -> dict[str, BarcodeSummary]:
        """Summarise every feature over the cells holding more than `min_reads` of it.

        Args:
            min_reads (int): A cell is positive for a feature above this count

        Returns:
            dict[str, BarcodeSummary]: Summary per feature name
        """
        result = {}
        for cell in self.cells.values():
            for feature_name, count in cell.items():
                if count > min_reads:
                    summary = result.get(feature_name)
                    if summary is None:
                        summary = result[feature_name] = BarcodeSummary()
                    summary.cells += 1
                    summary.reads += count
        return result


def select(
    summaries: dict[str, BarcodeSummary],
    min_cells: int,
    reads_per_cell: float | None = None,
) -> set[str]:
    """Find the features that pass the cell and reads per cell thresholds

    Args:
        summaries (dict): Summary per feature name, see `Aggregator.summaries`
        min_cells (int): Features need more positive cells than this
        reads_per_cell (float | None): Features need more reads per positive cell than this

    Returns:
        set[str]: Accepted feature names
    """
    return {
        feature_name
        for feature_name, summary in summaries.items()
        if summary.cells > min_cells
        and (reads_per_cell is None or summary.reads_per_cell > reads_per_cell)
    }


def build_result_table(
    summaries: dict[str, BarcodeSummary],
    sequences: dict[str, str],
    min_cells: int,
    reads_per_cell: float | None = None,
) -> pl.DataFrame:
    """Create the result table of the reference features with at least one positive cell

    Args:
        summaries (dict): Summary per feature name
        sequences (dict): Sequence per reference feature name
        min_cells (int): Minimum number of positive cells
        reads_per_cell (float | None): Minimum reads per positive cell

    Returns:
        pl.DataFrame: One row per feature, most reads first
    """
    reference_summaries = {
        feature_name: summary
        for feature_name, summary in summaries.items()
        if feature_name != UNKNOWN_NAME and summary.cells > 0
    }
    accepted = select(reference_summaries, min_cells, reads_per_cell)
    rows = [
        (
            feature_name,
            sequences[feature_name],
            summary.reads,
            summary.cells,
            summary.reads_per_cell,
            feature_name in accepted,
        )
        for feature_name, summary in reference_summaries.items()
    ]
    return pl.DataFrame(
        rows,
        schema={
            FEATURE_NAME_COLUMN: pl.String,
            SEQUENCE_COLUMN: pl.String,
            READS_COLUMN: pl.Int64,
            CELLS_COLUMN: pl.Int64,
            READS_PER_CELL_COLUMN: pl.Float64,
            ACCEPTED_COLUMN: pl.Boolean,
        },
        orient="row",
    ).sort([READS_COLUMN, FEATURE_NAME_COLUMN], descending=[True, False])
