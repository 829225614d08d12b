from pathlib import Path

import pytest
import polars as pl

from fb_qc import pipeline
from fb_qc.errors import FormatError
from fb_qc.io import ReadPairSource
from fb_qc.mapping import MatchEngine, ReferencePanel
from fb_qc.preprocessing import CellCodeFilter
from fb_qc.processing import build_result_table
from fb_qc.constants import (
    FEATURE_NAME_COLUMN,
    SEQUENCE_COLUMN,
    EXACT,
    APPROXIMATE,
    NO_MATCH,
    IGNORED,
    NOT_WHITELISTED,
)

DATA_DIR = Path(__file__).parent / "test_data"
FASTQ_DIR = DATA_DIR / "fastq"


@pytest.fixture
def panel():
    return ReferencePanel.from_csv(str(DATA_DIR / "tags" / "pass" / "correct.csv"))


@pytest.fixture
def cell_filter():
    return CellCodeFilter.from_path(str(DATA_DIR / "whitelists" / "correct.txt"))


def make_source(read2="correct_R2.fastq.gz"):
    return ReadPairSource(
        read1_paths=[FASTQ_DIR / "correct_R1.fastq.gz"],
        read2_paths=[FASTQ_DIR / read2],
        cb_first=1,
        cb_last=16,
        barcode_start=10,
        barcode_length=15,
    )


def test_run_with_whitelist(panel, cell_filter):
    engine = MatchEngine(
        panel,
        cell_filter=cell_filter,
        ignore=frozenset(["GGGGGGGGGGGGGGG"]),
    )
    aggregator = pipeline.run(make_source(), engine, batch_size=3)
    assert aggregator.outcomes == {
        EXACT: 16,
        NOT_WHITELISTED: 2,
        IGNORED: 1,
        NO_MATCH: 1,
    }
    assert "TTTTTTTTTTTTTTTT" not in aggregator.cells
    assert aggregator.count("AAACCCAAGAAACACT", "Hashtag_1") == 7
    assert aggregator.count("AAACCCAAGAAACCAT", "Hashtag_1") == 6
    assert aggregator.count("AAACCCAAGAAACCAT", "Hashtag_2") == 3


def test_run_approximate_without_whitelist(panel):
    engine = MatchEngine(
        panel, ignore=frozenset(["GGGGGGGGGGGGGGG"]), approximate=True
    )
    aggregator = pipeline.run(make_source(), engine, batch_size=7)
    assert aggregator.outcomes[EXACT] == 18
    assert aggregator.outcomes[APPROXIMATE] == 1
    assert aggregator.outcomes[NO_MATCH] == 0
    assert aggregator.count("AAACCCAAGAAACACT", "Hashtag_2") == 1
    assert aggregator.count("TTTTTTTTTTTTTTTT", "Hashtag_1") == 2


def test_run_result_table(panel, cell_filter):
    engine = MatchEngine(panel, cell_filter=cell_filter)
    aggregator = pipeline.run(make_source(), engine)
    result = build_result_table(
        aggregator.summaries(min_reads=5), panel.sequences, min_cells=1
    )
    assert result.select(FEATURE_NAME_COLUMN, SEQUENCE_COLUMN).rows() == [
        ("Hashtag_1", "GTCAACTCTTTAGCG")
    ]
    assert result.row(0, named=True)["cells"] == 2
    assert result.row(0, named=True)["reads_per_cell"] == 6.5
    assert result.row(0, named=True)["accepted"] is True


def test_multi_process_run_matches_single_process(panel):
    engine = MatchEngine(panel, approximate=True, count_unknown=True)
    single = pipeline.run(make_source(), engine, n_threads=1, batch_size=4)
    sharded = pipeline.run(make_source(), engine, n_threads=2, batch_size=4)
    assert sharded.cells == single.cells
    assert sharded.outcomes == single.outcomes
    assert sharded.unmapped == single.unmapped


def test_format_error_is_raised_by_run(panel):
    engine = MatchEngine(panel)
    with pytest.raises(FormatError):
        pipeline.run(make_source(read2="desync_R2.fastq"), engine, batch_size=5)


def test_observers_are_notified_per_batch(panel):
    calls = []
    engine = MatchEngine(panel)
    pipeline.run(
        make_source(),
        engine,
        batch_size=8,
        observers=[lambda aggregator, n_pairs: calls.append(n_pairs)],
    )
    assert calls == [8, 16, 20]


def test_reader_stops_when_counting_fails(panel):
    closed = []

    def pairs():
        try:
            for _ in range(10_000):
                yield ("AAACCCAAGAAACACT", "GTCAACTCTTTAGCG")
        finally:
            closed.append(True)

    def failing_observer(aggregator, n_pairs):
        raise RuntimeError("observer failed")

    with pytest.raises(RuntimeError, match="observer failed"):
        pipeline.run(
            pairs(), MatchEngine(panel), batch_size=1, observers=[failing_observer]
        )
    assert closed == [True]


def test_progress_printer(capsys):
    printer = pipeline.ProgressPrinter(every=10)
    engine = MatchEngine(
        ReferencePanel(
            pl.DataFrame({FEATURE_NAME_COLUMN: ["Ab1"], SEQUENCE_COLUMN: ["AAAA"]})
        )
    )
    aggregator = engine.count([("C1", "AAAA")] * 12)
    printer(aggregator, 5)
    assert capsys.readouterr().out == ""
    printer(aggregator, 12)
    out = capsys.readouterr().out
    assert "Processed 12 read pairs" in out
    assert "Mapped: 12" in out
    printer(aggregator, 15)
    assert capsys.readouterr().out == ""
