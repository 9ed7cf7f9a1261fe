"""Atomic CSV writer for flattened policy violation rows."""

from __future__ import annotations

import contextlib
import csv
import logging
import os
import tempfile
from collections.abc import Iterator, Sequence
from pathlib import Path

from iqfetch.errors import ReportWriteError
from iqfetch.report.types import CSV_HEADERS, FlatRow

REPORT_FILE_MODE = 0o644


@contextlib.contextmanager
def _step(name: str, path: Path, logger: logging.Logger) -> Iterator[None]:
    try:
        yield
    except OSError as exc:
        logger.error("CSV write step failed", extra={"step": name, "path": str(path), "error": str(exc)})
        raise ReportWriteError(name, path, exc) from exc


def _remove_quietly(path: Path) -> None:
    with contextlib.suppress(OSError):
        path.unlink()


def write_csv(path: Path, rows: Sequence[FlatRow], logger: logging.Logger | None = None) -> None:
    """Write ``rows`` to ``path`` so readers see either the old file or the complete new one.

    Rows are written to a temp file beside ``path``, fsynced, then renamed
    over the destination. Row numbers start at 1 in the order given.

    Raises:
        ReportWriteError: Naming the step that failed. The temp file is
            removed; the destination is untouched unless the rename happened.
    """
    logger = logger or logging.getLogger(__name__)
    directory = path.parent

    logger.debug("Preparing output directory", extra={"dir": str(directory)})
    with _step("prepare output dir", directory, logger):
        directory.mkdir(parents=True, exist_ok=True)

    with _step("create temp file", directory, logger):
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".csv")
    tmp_path = Path(tmp_name)
    logger.debug("Created temp file", extra={"tmp": str(tmp_path)})

    try:
        with _step("open temp file", tmp_path, logger):
            handle = os.fdopen(fd, "w", encoding="utf-8", newline="")
    except ReportWriteError:
        with contextlib.suppress(OSError):
            os.close(fd)
        _remove_quietly(tmp_path)
        raise

    try:
        writer = csv.writer(handle, lineterminator="\n")
        with _step("write header", tmp_path, logger):
            writer.writerow(CSV_HEADERS)
        with _step("write rows", tmp_path, logger):
            for number, row in enumerate(rows, start=1):
                writer.writerow(row.to_record(number))
        with _step("flush csv", tmp_path, logger):
            handle.flush()
        with _step("fsync temp", tmp_path, logger):
            os.fsync(handle.fileno())
        with _step("close temp", tmp_path, logger):
            handle.close()
        with _step("atomic rename", path, logger):
            os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            handle.close()
        _remove_quietly(tmp_path)
        raise

    with _step("chmod", path, logger):
        os.chmod(path, REPORT_FILE_MODE)

    logger.info("CSV file written", extra={"path": str(path), "rows": len(rows)})
