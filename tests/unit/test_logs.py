from __future__ import annotations

import io
import logging
from pathlib import Path

from iqfetch.obs.logs import LOGGER_NAME, KeyValueFormatter, configure_logging


def test_configure_logging_writes_to_stream_and_file(tmp_path: Path) -> None:
    stream = io.StringIO()
    log_file = tmp_path / "logs" / "app.log"

    logger = configure_logging(log_file, stream=stream)
    logging.getLogger(f"{LOGGER_NAME}.report").info("Report written", extra={"path": "/tmp/r.csv", "rows": 3})
    for handler in logger.handlers:
        handler.flush()

    line = stream.getvalue().strip()
    assert "level=INFO" in line
    assert "msg='Report written'" in line
    assert "path=/tmp/r.csv" in line
    assert "rows=3" in line
    assert "Report written" in log_file.read_text(encoding="utf-8")


def test_configure_logging_is_idempotent(tmp_path: Path) -> None:
    configure_logging(tmp_path / "a.log", stream=io.StringIO())
    logger = configure_logging(tmp_path / "a.log", stream=io.StringIO())

    assert len(logger.handlers) == 2


def test_formatter_quotes_values_with_spaces() -> None:
    record = logging.LogRecord(LOGGER_NAME, logging.WARNING, __file__, 1, "fallback", (), None)
    record.org_id = "org with space"

    rendered = KeyValueFormatter().format(record)

    assert "org_id='org with space'" in rendered
