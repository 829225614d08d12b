from pathlib import Path

import pytest
import polars as pl

from fb_qc import mapping
from fb_qc.errors import LoadError
from fb_qc.preprocessing import CellCodeFilter
from fb_qc.constants import (
    FEATURE_NAME_COLUMN,
    SEQUENCE_COLUMN,
    UNKNOWN_NAME,
    EXACT,
    APPROXIMATE,
    AMBIGUOUS,
    NO_MATCH,
    IGNORED,
    NOT_WHITELISTED,
)

DATA_DIR = Path(__file__).parent / "test_data"


@pytest.fixture
def parsed_tags():
    return pl.DataFrame(
        {
            FEATURE_NAME_COLUMN: ["feature1", "feature2", "feature3"],
            SEQUENCE_COLUMN: ["AAAAAAAAAA", "AAAAACCCCC", "GGGGGGGGGG"],
        }
    )


@pytest.fixture
def panel(parsed_tags):
    return mapping.ReferencePanel(parsed_tags)


def test_panel_from_csv():
    panel = mapping.ReferencePanel.from_csv(str(DATA_DIR / "tags" / "pass" / "correct.csv"))
    assert len(panel) == 3
    assert panel.sequence_length == 15
    assert panel.sequences["Hashtag_2"] == "TGATGGCCTATTGGG"


def test_panel_from_failing_csv():
    with pytest.raises(LoadError):
        mapping.ReferencePanel.from_csv(
            str(DATA_DIR / "tags" / "fail" / "duplicated_sequence.csv")
        )


def test_panel_rejects_duplicated_sequences():
    tags = pl.DataFrame(
        {
            FEATURE_NAME_COLUMN: ["feature1", "feature2"],
            SEQUENCE_COLUMN: ["ACGTACGT", "acgtacgt"],
        }
    )
    with pytest.raises(LoadError):
        mapping.ReferencePanel(tags)


def test_lookup_exact(panel):
    assert panel.lookup_exact("AAAAACCCCC") == "feature2"
    assert panel.lookup_exact("AAAAACCCCA") is None


def test_lookup_approximate_distance_two(panel):
    # Two substitutions from GGGGGGGGGG, far from the others
    assert panel.lookup_approximate("GGGGTTGGGG") == "feature3"


def test_lookup_approximate_with_indel(panel):
    assert panel.lookup_approximate("GGGGGGGGGT") == "feature3"
    # One G deleted
    assert panel.find_approximate("GGGGGGGGG") == [("feature3", 1)]


def test_lookup_approximate_too_far(panel):
    assert panel.lookup_approximate("GGGTTTGGGG") is None


def test_lookup_approximate_ambiguous():
    tags = pl.DataFrame(
        {
            FEATURE_NAME_COLUMN: ["left", "right"],
            SEQUENCE_COLUMN: ["AAAACCCC", "AATTCCCC"],
        }
    )
    ambiguous_panel = mapping.ReferencePanel(tags)
    # Distance 1 from both entries
    assert ambiguous_panel.lookup_approximate("AAATCCCC") == UNKNOWN_NAME
    # Distance 2 from both entries
    tied = mapping.ReferencePanel(
        pl.DataFrame(
            {
                FEATURE_NAME_COLUMN: ["left", "right"],
                SEQUENCE_COLUMN: ["AAAAAAAA", "CCAAAACC"],
            }
        )
    )
    assert sorted(tied.find_approximate("CAAAAAAC")) == [("left", 2), ("right", 2)]
    assert tied.lookup_approximate("CAAAAAAC") == UNKNOWN_NAME


def test_exact_match_takes_precedence(panel):
    # AAAAAAAACC is two substitutions from feature1 and three from feature2
    engine = mapping.MatchEngine(panel, approximate=True)
    assert engine.resolve("CELL", "AAAAACCCCC") == (EXACT, "feature2")
    assert engine.resolve("CELL", "AAAAAAAACC") == (APPROXIMATE, "feature1")


def test_exact_match_wins_over_close_entry():
    close_panel = mapping.ReferencePanel(
        pl.DataFrame(
            {
                FEATURE_NAME_COLUMN: ["feature1", "feature2"],
                SEQUENCE_COLUMN: ["AAAAAAAA", "AAAAAAAT"],
            }
        )
    )
    engine = mapping.MatchEngine(close_panel, approximate=True)
    assert engine.resolve("CELL", "AAAAAAAT") == (EXACT, "feature2")


def test_resolve_outcomes(panel):
    engine = mapping.MatchEngine(
        panel,
        cell_filter=CellCodeFilter(["CELL1"]),
        ignore=frozenset(["cccccccccc"]),
        approximate=False,
    )
    assert engine.resolve("CELL2", "AAAAAAAAAA") == (NOT_WHITELISTED, None)
    assert engine.resolve("CELL1", "CCCCCCCCCC") == (IGNORED, None)
    assert engine.resolve("CELL1", "AAAAAAAAAA") == (EXACT, "feature1")
    assert engine.resolve("CELL1", "GGGGTTGGGG") == (NO_MATCH, UNKNOWN_NAME)


def test_resolve_ambiguous():
    tags = pl.DataFrame(
        {
            FEATURE_NAME_COLUMN: ["left", "right"],
            SEQUENCE_COLUMN: ["AAAACCCC", "AATTCCCC"],
        }
    )
    engine = mapping.MatchEngine(mapping.ReferencePanel(tags), approximate=True)
    assert engine.resolve("CELL", "AAATCCCC") == (AMBIGUOUS, UNKNOWN_NAME)


def test_count_without_unknown(panel):
    engine = mapping.MatchEngine(panel)
    pairs = [
        ("CELL1", "AAAAAAAAAA"),
        ("CELL1", "AAAAAAAAAA"),
        ("CELL2", "AAAAACCCCC"),
        ("CELL2", "TTTTTTTTTT"),
    ]
    aggregator = engine.count(pairs)
    assert aggregator.count("CELL1", "feature1") == 2
    assert aggregator.count("CELL2", "feature2") == 1
    assert aggregator.count("CELL2", UNKNOWN_NAME) == 0
    assert aggregator.outcomes[EXACT] == 3
    assert aggregator.outcomes[NO_MATCH] == 1
    assert not aggregator.unmapped


def test_count_with_unknown(panel):
    engine = mapping.MatchEngine(panel, count_unknown=True)
    pairs = [("CELL1", "TTTTTTTTTT"), ("CELL1", "TTTTTTTTTT"), ("CELL2", "ACACACACAC")]
    aggregator = engine.count(pairs)
    assert aggregator.count("CELL1", UNKNOWN_NAME) == 2
    assert aggregator.count("CELL2", UNKNOWN_NAME) == 1
    assert aggregator.unmapped.most_common(1) == [("TTTTTTTTTT", 2)]


def test_whitelist_rejected_cells_are_never_counted(panel):
    engine = mapping.MatchEngine(
        panel, cell_filter=CellCodeFilter(["CELL1"]), count_unknown=True
    )
    pairs = [("CELL1", "AAAAAAAAAA"), ("CELL2", "AAAAAAAAAA"), ("CELL2", "TTTTTTTTTT")]
    aggregator = engine.count(pairs)
    assert "CELL2" not in aggregator.cells
    assert aggregator.total("feature1") == 1
    assert aggregator.outcomes[NOT_WHITELISTED] == 2


def test_conservation_of_reads(panel):
    engine = mapping.MatchEngine(panel, approximate=True, count_unknown=True)
    pairs = [
        (f"CELL{i % 7}", sequence)
        for i, sequence in enumerate(
            ["AAAAAAAAAA", "AAAAACCCCC", "GGGGGGGGGG", "GGGGTTGGGG", "TTTTTTTTTT"] * 20
        )
    ]
    resolved = [engine.resolve(cell_code, barcode)[1] for cell_code, barcode in pairs]
    aggregator = engine.count(pairs)
    for feature_name in ["feature1", "feature2", "feature3", UNKNOWN_NAME]:
        assert aggregator.total(feature_name) == resolved.count(feature_name)
