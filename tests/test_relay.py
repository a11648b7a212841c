"""Tests for the output relay thread feeding the pager."""

from __future__ import annotations

import io
import os
import unittest

from fwatch.relay import END_OF_OUTPUT_LINE, OutputRelay


class ListPager:
    def __init__(self) -> None:
        self.appended: list[tuple[str, int | None]] = []

    def append(self, line: str, generation: int | None = None) -> None:
        self.appended.append((line, generation))


class BrokenStream(io.RawIOBase):
    def __init__(self) -> None:
        self.calls = 0

    def readline(self, size: int = -1) -> bytes:
        self.calls += 1
        if self.calls == 1:
            return b"partial\n"
        raise OSError(5, "Input/output error")


class OutputRelayTests(unittest.TestCase):
    def test_lines_are_relayed_then_end_marker(self) -> None:
        pager = ListPager()
        stream = io.BytesIO(b"one\ntwo\r\nthree")

        OutputRelay(stream, pager, generation=3).run()

        self.assertEqual(
            pager.appended,
            [("one", 3), ("two", 3), ("three", 3), (END_OF_OUTPUT_LINE, 3)],
        )
        self.assertTrue(stream.closed)

    def test_invalid_utf8_is_replaced_not_fatal(self) -> None:
        pager = ListPager()

        OutputRelay(io.BytesIO(b"caf\xe9\n"), pager).run()

        self.assertEqual(pager.appended[0], ("caf\ufffd", None))
        self.assertEqual(pager.appended[-1][0], END_OF_OUTPUT_LINE)

    def test_read_error_appends_error_line_and_stops(self) -> None:
        pager = ListPager()
        stream = BrokenStream()

        OutputRelay(stream, pager).run()

        lines = [line for line, _generation in pager.appended]
        self.assertEqual(lines[0], "partial")
        self.assertEqual(len(lines), 2)
        self.assertIn("error reading output", lines[1])
        self.assertNotIn(END_OF_OUTPUT_LINE, lines)
        self.assertEqual(stream.calls, 2)

    def test_background_thread_drains_pipe(self) -> None:
        read_fd, write_fd = os.pipe()
        pager = ListPager()
        relay = OutputRelay(os.fdopen(read_fd, "rb"), pager)
        relay.start()
        os.write(write_fd, b"hello\nworld\n")
        os.close(write_fd)

        relay.join(timeout=5)

        self.assertEqual(
            [line for line, _generation in pager.appended],
            ["hello", "world", END_OF_OUTPUT_LINE],
        )


if __name__ == "__main__":
    unittest.main()
