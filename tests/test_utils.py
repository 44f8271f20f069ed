# tests/test_utils.py
"""Test utilities, logging and validation helpers"""

import logging
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from gmusic.core.exceptions import ArgumentError
from gmusic.utils.helpers import (
    chunks, datetime_to_micros, ensure_http_scheme, is_guid, micros_to_datetime,
    random_alnum, to_bool, to_int
)
from gmusic.utils.logger import (
    ColoredFormatter, ConsoleMessageFilter, get_current_log_file, get_logger,
    log_timing, parse_size, setup_logging, track_fetch
)
from gmusic.utils.validation import is_blank, require_argument, require_ids


class TestHelpers:
    """Test helper functions"""

    def test_micros_conversion(self):
        moment = datetime(2024, 3, 1, 12, 0, 0, 250000, tzinfo=timezone.utc)

        micros = datetime_to_micros(moment)

        assert micros == 1709294400250000
        assert micros_to_datetime(str(micros)) == moment

    def test_missing_watermark_is_zero(self):
        assert datetime_to_micros(None) == 0
        assert datetime_to_micros(datetime(1960, 1, 1, tzinfo=timezone.utc)) == 0
        assert micros_to_datetime("0") is None

    def test_naive_datetime_is_utc(self):
        assert datetime_to_micros(datetime(1970, 1, 1, 0, 0, 1)) == 1_000_000

    def test_lenient_numbers(self):
        assert to_int("42") == 42
        assert to_int("4.0") == 4
        assert to_int(None) == 0
        assert to_int("n/a", default=-1) == -1
        assert to_bool("true") and to_bool(1) and not to_bool("false")

    def test_is_guid(self):
        assert is_guid("0123456789abcdef0123456789ABCDEF")
        assert is_guid("01234567-89ab-cdef-0123-456789abcdef")
        assert is_guid("{01234567-89ab-cdef-0123-456789abcdef}")
        assert not is_guid("Tabc123")
        assert not is_guid(None)

    def test_ensure_http_scheme(self):
        assert ensure_http_scheme("//lh3/art") == "http://lh3/art"
        assert ensure_http_scheme("https://lh3/art") == "https://lh3/art"

    def test_chunks(self):
        assert list(chunks(range(5), 2)) == [[0, 1], [2, 3], [4]]

    def test_random_alnum(self):
        value = random_alnum(12)
        assert len(value) == 12 and value.isalnum()


class TestValidation:
    """Test argument validation"""

    def test_require_argument(self):
        assert require_argument([], 'ids', 'op') == []
        with pytest.raises(ArgumentError) as excinfo:
            require_argument(None, 'ids', 'op')
        assert "ids" in str(excinfo.value)
        assert isinstance(excinfo.value, ValueError)

    def test_require_ids(self):
        assert require_ids(("a", "", None, "b"), 'ids', 'op') == ["a", "b"]
        with pytest.raises(ArgumentError):
            require_ids("ab", 'ids', 'op')

    def test_is_blank(self):
        assert is_blank(None) and is_blank("") and is_blank("  ")
        assert not is_blank("x")


class TestLogging:
    """Test logging setup"""

    def test_parse_size(self):
        assert parse_size("10MB") == 10 * 1024 ** 2
        assert parse_size("500 kb") == 500 * 1024
        with pytest.raises(ValueError):
            parse_size("lots")

    def test_console_filter(self):
        console_filter = ConsoleMessageFilter()

        def record(level, **extra):
            entry = logging.LogRecord('gmusic.test', level, __file__, 1, "msg", None, None)
            entry.__dict__.update(extra)
            return entry

        assert console_filter.filter(record(logging.WARNING))
        assert console_filter.filter(record(logging.INFO, console_output=True))
        assert not console_filter.filter(record(logging.INFO))
        assert not console_filter.filter(record(logging.DEBUG))

    def test_colored_formatter(self):
        record = logging.LogRecord('gmusic.test', logging.WARNING, __file__, 1, "careful", None, None)

        assert ColoredFormatter(use_colors=False).format(record) == "careful"
        colored = ColoredFormatter(use_colors=True).format(record)
        assert "careful" in colored and colored != "careful"

    def test_file_logging(self, temp_dir):
        log_file = temp_dir / "logs" / "gmusic.log"
        try:
            setup_logging(level="DEBUG", log_file=str(log_file), console_output=False)
            get_logger("gmusic.test").warning("written to file")

            assert get_current_log_file() == log_file
            for handler in logging.getLogger('gmusic').handlers:
                handler.flush()
            assert "written to file" in log_file.read_text(encoding="utf-8")
        finally:
            setup_logging(console_output=False)

    def test_logger_has_console_info(self):
        assert callable(get_logger("gmusic.test").console_info)

    def test_fetch_progress(self, caplog):
        progress = track_fetch("gmusic.test", "Fetching trackfeed")

        with caplog.at_level(logging.DEBUG, logger="gmusic.test"):
            progress.start()
            progress.page(100)
            progress.page(150)
            progress.done("150 items in 2 page(s)")

        messages = [r.getMessage() for r in caplog.records]
        assert progress.pages == 2
        assert any("Fetching trackfeed: started" in m for m in messages)
        assert any("page 2, 150 items" in m for m in messages)
        assert any("150 items in 2 page(s)" in m for m in messages)

    def test_fetch_progress_failure(self, caplog):
        progress = track_fetch("gmusic.test", "Fetching trackfeed")

        with caplog.at_level(logging.WARNING, logger="gmusic.test"):
            progress.failed("page 2 could not be decoded", ValueError("bad"))

        assert "page 2 could not be decoded: bad" in caplog.records[-1].getMessage()

    def test_log_timing_keeps_result_and_errors(self):
        @log_timing
        def double(x):
            if x < 0:
                raise ValueError("negative")
            return x * 2

        assert double(4) == 8
        assert double.__name__ == "double"
        with pytest.raises(ValueError):
            double(-1)

    def test_fetch_progress_bar_is_created_and_closed(self, monkeypatch):
        bar_factory = Mock()
        monkeypatch.setattr('gmusic.utils.logger.tqdm', bar_factory)
        progress = track_fetch("gmusic.test", "Fetching trackfeed", show_progress=True)

        progress.start()
        progress.page(100)
        progress.page(200)
        progress.done()

        bar_factory.assert_called_once()
        bar = bar_factory.return_value
        assert bar.update.call_count == 2
        bar.close.assert_called_once()

    def test_no_bar_without_show_progress(self, monkeypatch):
        bar_factory = Mock()
        monkeypatch.setattr('gmusic.utils.logger.tqdm', bar_factory)

        progress = track_fetch("gmusic.test", "Fetching trackfeed")
        progress.page(1)
        progress.close()

        bar_factory.assert_not_called()
