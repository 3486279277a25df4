"""Read what a server log gained since the last look.

Used to attach server side diagnostics to a failed request, or to fetch
the mails the application logged instead of sending them.
"""
import io
import logging
import os

from apitest.config import get_settings

logger = logging.getLogger(__name__)


class TailCursor(object):
    """Read position in a growing log file.

    Only complete lines are returned: a line still being written is kept
    for the next read. There is no handling of log rotation.
    """

    def __init__(self, path):
        self.path = path
        self.offset = 0
        self._fp = None
        self._open(at_end=True)

    def __str__(self):
        return f"path: {self.path}, offset: {self.offset}"

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _open(self, at_end):
        try:
            self._fp = open(self.path, "rb")
        except FileNotFoundError:
            logger.debug("log file %s does not exist yet", self.path)
            return
        if at_end:
            self.offset = self._fp.seek(0, io.SEEK_END)

    def read(self):
        if self._fp is None:
            # created after start: everything in it is new
            self._open(at_end=False)
            if self._fp is None:
                return ""
        self._fp.seek(self.offset)
        data = self._fp.read()
        end = data.rfind(b"\n")
        if end < 0:
            return ""
        complete = data[:end + 1]
        self.offset += len(complete)
        return complete.decode("utf-8", errors="replace")

    def close(self):
        if self._fp is not None:
            self._fp.close()
            self._fp = None


def tail_log_start(log_path=None):
    """Start monitoring a log file, from its current end."""
    if log_path is None:
        log_path = get_settings().log_path
    return TailCursor(os.fspath(log_path))


def tail_log_read(tail):
    """Return all content written to the log file since the last read."""
    return tail.read()
