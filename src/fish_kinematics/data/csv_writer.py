"""
Asynchronous delimited-text writing for tail points and bouts.
"""

import csv
import logging
import queue
import threading

logger = logging.getLogger(__name__)

TAIL_POINT_HEADER = ["FrameID", "Segment", "Angle", "Radius", "X", "Y"]


class CSVWriterThread(threading.Thread):
    """
    Background writer for rows produced by an acquisition or analysis loop.

    Rows are queued by the producer and written by this thread, so file I/O
    never stalls per-frame processing. Remaining rows are flushed after `stop`.

    Args:
        path (str): Output file path
        header (list, optional): Column names written as the first row
        delimiter (str): Field delimiter, "," for CSV or "\\t" for TSV
    """

    def __init__(self, path: str, header=None, delimiter=","):
        super().__init__(daemon=True)
        self.csv_path = path
        self.header = header or []
        self.queue = queue.Queue()
        self._stop_requested = False
        self.rows_written = 0

        self.f = open(self.csv_path, "w", newline="")
        self.writer = csv.writer(self.f, delimiter=delimiter)
        if self.header:
            self.writer.writerow(self.header)

    def run(self):
        """Write queued rows until stopped and the queue is drained."""
        try:
            while not self._stop_requested or not self.queue.empty():
                try:
                    row = self.queue.get(timeout=0.3)
                except queue.Empty:
                    continue
                self.writer.writerow(row)
                self.rows_written += 1
                self.queue.task_done()
        finally:
            self.f.flush()
            self.f.close()
            logger.debug(f"Wrote {self.rows_written} rows to {self.csv_path}")

    def enqueue(self, row):
        """Add a row to the write queue."""
        self.queue.put(row)

    def stop(self):
        """Signal the thread to finish once the queue is empty."""
        self._stop_requested = True

