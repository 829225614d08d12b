# Tags input
FEATURE_NAME_COLUMN = "feature_name"
SEQUENCE_COLUMN = "sequence"
REQUIRED_TAGS_HEADER = [FEATURE_NAME_COLUMN, SEQUENCE_COLUMN]
# 10x feature reference files name the feature column "name"
FEATURE_REFERENCE_NAME_COLUMN = "name"
# and key the features by "id"
FEATURE_REFERENCE_ID_COLUMN = "id"
UNKNOWN_NAME = "unknown"
STRIP_CHARS = '"0123456789- \t\n'

# Result table
READS_COLUMN = "reads"
CELLS_COLUMN = "cells"
READS_PER_CELL_COLUMN = "reads_per_cell"
ACCEPTED_COLUMN = "accepted"
COUNT_COLUMN = "count"

# Match outcomes
EXACT = "exact"
APPROXIMATE = "approximate"
AMBIGUOUS = "ambiguous"
NO_MATCH = "no_match"
IGNORED = "ignored"
NOT_WHITELISTED = "not_whitelisted"
OUTCOMES = [EXACT, APPROXIMATE, AMBIGUOUS, NO_MATCH, IGNORED, NOT_WHITELISTED]

# Defaults
MAX_DISTANCE = 2
DEFAULT_IGNORE = "GGGGGGGGGGGGGGG,CCTAATGGTCCAGAC"
DEFAULT_MIN_READS = 5
DEFAULT_MIN_CELLS = 5
CELL_CODE_FIRST_BASE = 1
CELL_CODE_LAST_BASE = 16
BARCODE_START_TRIM = 10
BATCH_SIZE = 100_000
PROGRESS_EVERY = 500_000
