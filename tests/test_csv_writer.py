"""
Tests for CSVWriterThread.

Tests cover:
- Header writing for tail point and bout tables
- Tab delimited output
- Flushing of pending rows on shutdown
- Row order under rapid enqueueing
"""

import csv
import math

from fish_kinematics.core.movement_analysis import BOUT_HEADER, Bout
from fish_kinematics.data.csv_writer import TAIL_POINT_HEADER, CSVWriterThread


def read_rows(path, delimiter=","):
    with open(path, "r", newline="") as f:
        return list(csv.reader(f, delimiter=delimiter))


class TestCSVWriterThread:
    """Test suite for CSVWriterThread."""

    def test_header_only(self, tmp_path):
        """Stopping an idle writer leaves only the header."""
        path = tmp_path / "tail.csv"
        writer = CSVWriterThread(str(path), header=TAIL_POINT_HEADER)
        writer.start()
        writer.stop()
        writer.join(timeout=2)

        assert read_rows(path) == [TAIL_POINT_HEADER]

    def test_without_header(self, tmp_path):
        path = tmp_path / "rows.csv"
        writer = CSVWriterThread(str(path))
        assert writer.header == []
        writer.enqueue([1, 2, 3])
        writer.start()
        writer.stop()
        writer.join(timeout=2)

        assert read_rows(path) == [["1", "2", "3"]]

    def test_tail_point_rows(self, tmp_path):
        """Undetermined segments are written with NaN angle and empty pixel."""
        path = tmp_path / "tail.csv"
        writer = CSVWriterThread(str(path), header=TAIL_POINT_HEADER)
        writer.start()
        writer.enqueue([0, 0, -12.4, 16.0, 96, 45])
        writer.enqueue([0, 1, math.nan, 32.0, "", ""])
        writer.stop()
        writer.join(timeout=2)

        rows = read_rows(path)
        assert rows[1] == ["0", "0", "-12.4", "16.0", "96", "45"]
        assert rows[2] == ["0", "1", "nan", "32.0", "", ""]
        assert writer.rows_written == 2

    def test_tab_delimited_bouts(self, tmp_path):
        path = tmp_path / "bouts.tsv"
        writer = CSVWriterThread(str(path), header=BOUT_HEADER, delimiter="\t")
        writer.start()
        writer.enqueue(Bout(1, 3, 4, 22.0, 9.0).to_row())
        writer.stop()
        writer.join(timeout=2)

        with open(path, "r") as f:
            lines = f.read().splitlines()
        assert lines == ["Start\tPeak\tEnd\tDisplacement\tPeakSpeed", "1\t3\t4\t22.0\t9.0"]

    def test_pending_rows_flushed_on_stop(self, tmp_path):
        path = tmp_path / "tail.csv"
        writer = CSVWriterThread(str(path), header=TAIL_POINT_HEADER)
        writer.start()
        num_rows = 500
        for i in range(num_rows):
            writer.enqueue([i, i % 5, i * 0.2, 10.0, i, i])
        writer.stop()
        writer.join(timeout=5)

        rows = read_rows(path)
        assert len(rows) == num_rows + 1
        for i in range(num_rows):
            assert rows[i + 1][0] == str(i)

    def test_queue_drained_after_run(self, tmp_path):
        path = tmp_path / "rows.csv"
        writer = CSVWriterThread(str(path))
        writer.enqueue([1, 2, 3])
        assert not writer.queue.empty()

        writer.start()
        writer.stop()
        writer.join(timeout=2)
        assert writer.queue.empty()
        assert writer.f.closed
