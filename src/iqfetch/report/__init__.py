"""Row flattening and CSV persistence."""

from iqfetch.report.csv_writer import write_csv
from iqfetch.report.flatten import flatten_violations
from iqfetch.report.types import CSV_HEADERS, FlatRow

__all__ = ["CSV_HEADERS", "FlatRow", "flatten_violations", "write_csv"]
