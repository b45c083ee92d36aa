"""Tests for progress sinks."""

import io
import logging

from sendreceive.sync.progress import (
    ConsoleProgress,
    LoggingProgress,
    MultiProgress,
    NullProgress,
    ProgressSink,
    StringProgress,
)


class TestStringProgress:
    def test_accumulates_lines_with_prefixes(self):
        progress = StringProgress()

        progress.write_message("one")
        progress.write_warning("two")
        progress.write_error("three")
        progress.set_percent(40)

        assert progress.text == "one\nWARNING: two\nERROR: three"
        assert progress.percent == 40


class TestConsoleProgress:
    def test_writes_to_stream(self):
        stream = io.StringIO()
        progress = ConsoleProgress(stream)

        progress.write_message("hello")
        progress.write_warning("careful")
        progress.write_error("broken")

        assert stream.getvalue() == "hello\nWarning: careful\nError: broken\n"


class TestLoggingProgress:
    def test_routes_to_logger(self, caplog):
        progress = LoggingProgress(logging.getLogger("test.progress"))

        with caplog.at_level(logging.INFO, logger="test.progress"):
            progress.write_message("hello")
            progress.write_warning("careful")

        assert [(r.levelname, r.message) for r in caplog.records] == [
            ("INFO", "hello"),
            ("WARNING", "careful"),
        ]


class TestMultiProgress:
    def test_broadcasts(self):
        first, second = StringProgress(), StringProgress()
        multi = MultiProgress(first)
        multi.add(second)

        multi.write_message("hi")
        multi.set_percent(100)

        assert first.text == second.text == "hi"
        assert second.percent == 100
        assert len(multi) == 2

    def test_remove(self):
        sink = StringProgress()
        multi = MultiProgress(sink)

        multi.remove(sink)
        multi.remove(sink)
        multi.write_message("hi")

        assert sink.text == ""
        assert len(multi) == 0

    def test_broken_sink_is_skipped(self, caplog):
        class Broken(NullProgress):
            def write_message(self, text):
                raise RuntimeError("boom")

        good = StringProgress()
        multi = MultiProgress(Broken(), good)

        multi.write_message("hi")

        assert good.text == "hi"
        assert "boom" in caplog.text


class TestProtocol:
    def test_sinks_satisfy_protocol(self):
        for sink in (NullProgress(), StringProgress(), ConsoleProgress(), LoggingProgress()):
            assert isinstance(sink, ProgressSink)
