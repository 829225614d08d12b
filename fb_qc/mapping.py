"""Mapping module. Holds all code related to mapping reads to the reference panel
"""
from collections import defaultdict

import polars as pl
from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

from fb_qc.errors import LoadError
from fb_qc.preprocessing import CellCodeFilter, parse_tags_csv
from fb_qc.processing import Aggregator
from fb_qc.constants import (
    FEATURE_NAME_COLUMN,
    SEQUENCE_COLUMN,
    UNKNOWN_NAME,
    MAX_DISTANCE,
    EXACT,
    APPROXIMATE,
    AMBIGUOUS,
    NO_MATCH,
    IGNORED,
    NOT_WHITELISTED,
)


class ReferencePanel:
    """Barcode sequences and their feature names, indexed for exact and
    approximate lookup.

    Args:
        tags_df (pl.DataFrame): Parsed tags, see `parse_tags_csv`
    """

    def __init__(self, tags_df: pl.DataFrame):
        self.tags_df = tags_df
        self.names = dict(
            tags_df.select(
                pl.col(SEQUENCE_COLUMN).str.to_uppercase(), FEATURE_NAME_COLUMN
            ).iter_rows()
        )
        self.sequences = {name: sequence for sequence, name in self.names.items()}
        if not len(self.names) == len(self.sequences) == tags_df.height:
            raise LoadError(
                "Tag sequences and feature names must be unique within the panel."
            )
        # Candidates for approximate matching, grouped by sequence length
        self.by_length = defaultdict(list)
        for sequence in self.names:
            self.by_length[len(sequence)].append(sequence)

    @classmethod
    def from_csv(cls, file_name: str) -> "ReferencePanel":
        return cls(parse_tags_csv(file_name))

    def __len__(self):
        return len(self.names)

    @property
    def sequence_length(self) -> int:
        return max(self.by_length)

    def lookup_exact(self, sequence: str) -> str | None:
        return self.names.get(sequence)

    def find_approximate(
        self, sequence: str, max_distance: int = MAX_DISTANCE
    ) -> list[tuple[str, int]]:
        """Find all the reference entries within `max_distance` edits of a sequence.

        Only entries whose length allows a distance within the radius are
        compared, and the Levenshtein computation stops as soon as the
        radius is exceeded.

        Args:
            sequence (str): Sequence to look up
            max_distance (int): Maximum Levenshtein distance allowed

        Returns:
            list[tuple[str, int]]: Feature names and distances, closest first
        """
        hits = []
        for length in range(len(sequence) - max_distance, len(sequence) + max_distance + 1):
            candidates = self.by_length.get(length)
            if not candidates:
                continue
            for choice, distance, _ in process.extract(
                sequence,
                candidates,
                scorer=Levenshtein.distance,
                score_cutoff=max_distance,
                limit=None,
            ):
                hits.append((self.names[choice], distance))
        return sorted(hits, key=lambda hit: hit[1])

    def lookup_approximate(
        self, sequence: str, max_distance: int = MAX_DISTANCE
    ) -> str | None:
        """Resolve a sequence to the only reference entry within `max_distance`.

        Returns:
            str | None: The feature name, `UNKNOWN_NAME` when several entries
                are within the radius, None when none is.
        """
        hits = self.find_approximate(sequence, max_distance)
        if not hits:
            return None
        if len(hits) > 1:
            return UNKNOWN_NAME
        return hits[0][0]


class MatchEngine:
    """Resolves read pairs to feature names and records them in an Aggregator.

    Args:
        panel (ReferencePanel): Reference barcodes
        cell_filter (CellCodeFilter): Accepted cell codes
        ignore (frozenset): Barcode sequences never matched
        approximate (bool): Allow approximate matching after an exact miss
        count_unknown (bool): Count unresolved barcodes under `UNKNOWN_NAME`
        max_distance (int): Levenshtein radius for approximate matching
    """

    def __init__(
        self,
        panel: ReferencePanel,
        cell_filter: CellCodeFilter | None = None,
        ignore=frozenset(),
        approximate: bool = False,
        count_unknown: bool = False,
        max_distance: int = MAX_DISTANCE,
    ):
        self.panel = panel
        self.cell_filter = cell_filter if cell_filter is not None else CellCodeFilter()
        self.ignore = frozenset(sequence.upper() for sequence in ignore)
        self.approximate = approximate
        self.count_unknown = count_unknown
        self.max_distance = max_distance

    def resolve(self, cell_code: str, barcode: str) -> tuple[str, str | None]:
        """Return the outcome of a read pair and the feature name it resolves to.

        The name is None when the pair is discarded.
        """
        if not self.cell_filter.accepts(cell_code):
            return NOT_WHITELISTED, None
        if barcode in self.ignore:
            return IGNORED, None
        name = self.panel.lookup_exact(barcode)
        if name is not None:
            return EXACT, name
        if self.approximate:
            name = self.panel.lookup_approximate(barcode, self.max_distance)
            if name == UNKNOWN_NAME:
                return AMBIGUOUS, UNKNOWN_NAME
            if name is not None:
                return APPROXIMATE, name
        return NO_MATCH, UNKNOWN_NAME

    def count(self, pairs, aggregator: Aggregator | None = None) -> Aggregator:
        """Resolve every (cell code, barcode) pair and count it.

        Args:
            pairs (iterable): (cell code, barcode) tuples
            aggregator (Aggregator | None): Counts to update, a new one if None

        Returns:
            Aggregator: The updated counts
        """
        if aggregator is None:
            aggregator = Aggregator()
        for cell_code, barcode in pairs:
            outcome, name = self.resolve(cell_code, barcode)
            aggregator.tally(outcome)
            if name == UNKNOWN_NAME:
                if self.count_unknown:
                    aggregator.increment(cell_code, UNKNOWN_NAME)
                    aggregator.add_unmapped(barcode)
            elif name is not None:
                aggregator.increment(cell_code, name)
        return aggregator
