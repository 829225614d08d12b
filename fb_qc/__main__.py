#!/usr/bin/env python3
"""
Command line entry point of FB-QC
"""
import sys
import time

from fb_qc import (
    argsparser,
    constants,
    io,
    mapping,
    pipeline,
    preprocessing,
    processing,
)
from fb_qc.errors import FormatError, LoadError


def main():
    """Main"""
    start_time = time.time()
    parser = argsparser.get_args()
    if not sys.argv[1:]:
        parser.print_help(file=sys.stderr)
        sys.exit(2)

    # Parse arguments.
    args = parser.parse_args()
    if args.cb_first < 1 or args.cb_last < args.cb_first:
        sys.exit(
            f"[ERROR] Invalid cell code positions {args.cb_first}-{args.cb_last}. Exiting"
        )
    if args.unmapped_file is not None and not args.unknown:
        print("[WARNING] --unmapped-tags is only written with --unknown.")

    # Load the reference panel and whitelist before touching any read.
    try:
        panel = mapping.ReferencePanel.from_csv(args.tags)
        if args.approximate:
            preprocessing.check_tags(panel.tags_df, constants.MAX_DISTANCE)
        cell_filter = preprocessing.CellCodeFilter.from_path(
            args.whitelist, barcode_length=args.cb_last - args.cb_first + 1
        )
    except LoadError as err:
        sys.exit(f"[ERROR] {err}\nExiting the application.")
    print(f"Loaded {len(panel)} feature barcodes")
    if args.whitelist is not None:
        print(f"Loaded {len(cell_filter):,} whitelisted cell codes")

    # Identify input file(s)
    read1_paths, read2_paths = io.get_read_paths(args.read1_path, args.read2_path)
    if len(read1_paths) != 1:
        print(f"Detected {len(read1_paths)} pairs of files to run on.")
    source = io.ReadPairSource(
        read1_paths=read1_paths,
        read2_paths=read2_paths,
        cb_first=args.cb_first,
        cb_last=args.cb_last,
        barcode_start=args.start_trim,
        barcode_length=panel.sequence_length,
        first_n=args.first_n,
    )
    engine = mapping.MatchEngine(
        panel=panel,
        cell_filter=cell_filter,
        ignore=args.ignore,
        approximate=args.approximate,
        count_unknown=args.unknown,
    )
    try:
        aggregator = pipeline.run(
            pairs=source,
            engine=engine,
            n_threads=args.n_threads,
            batch_size=args.batch_size,
            observers=[pipeline.ProgressPrinter()],
        )
    except FormatError as err:
        sys.exit(f"[ERROR] {err}\nExiting the application.")
    if source.r1_too_short or source.r2_too_short:
        print(
            f"[WARNING] Skipped {source.r1_too_short:,} read1 and "
            f"{source.r2_too_short:,} read2 sequences too short for the barcode positions."
        )

    summaries = aggregator.summaries(args.min_reads)
    result_table = processing.build_result_table(
        summaries=summaries,
        sequences=panel.sequences,
        min_cells=args.min_cells,
        reads_per_cell=args.reads_per_cell,
    )
    io.print_matches(result_table, aggregator, source.n_records)
    if args.unknown:
        io.print_unknown(summaries, aggregator, args.unknowns_top)
        if args.unmapped_file is not None:
            io.write_unmapped(aggregator, args.unknowns_top, args.unmapped_file)

    if args.outfile is not None:
        io.write_accepted_csv(result_table, args.outfile)
        print(f"Accepted barcodes written to {args.outfile}")
    print(f"Run time: {time.time() - start_time:.1f} seconds")


if __name__ == "__main__":
    main()
