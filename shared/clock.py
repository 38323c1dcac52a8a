"""
Revision clock for ShiftSync.

Every ``updatedAt`` stamp in the local store comes from here. Stamps are
wall-clock milliseconds, optionally corrected by an NTP offset so devices
with drifting clocks still order their edits sensibly under last-write-wins.
"""

import threading
import time
from typing import Callable, Optional

import ntplib

from shared.logging_config import get_store_logger

logger = get_store_logger()


class RevisionClock:
    """Millisecond clock that never goes backwards within a process.

    ``now()`` returns ``max(wall_clock + offset, last_stamp)``. The offset is
    zero until :meth:`calibrate` succeeds against an NTP server.
    """

    def __init__(self, ntp_server: str = "", time_source: Callable[[], float] = time.time):
        self.ntp_server = ntp_server
        self._time_source = time_source
        self._offset_ms = 0
        self._last = 0
        self._lock = threading.Lock()

    @property
    def offset_ms(self) -> int:
        return self._offset_ms

    def now(self) -> int:
        with self._lock:
            stamp = int(self._time_source() * 1000) + self._offset_ms
            if stamp < self._last:
                stamp = self._last
            self._last = stamp
            return stamp

    def observe(self, revision: int) -> None:
        """Move forward to a revision stamped elsewhere so later stamps never sort before it"""
        with self._lock:
            if revision > self._last:
                self._last = int(revision)

    def calibrate(self, timeout: float = 2) -> Optional[int]:
        """Measure the local clock offset against the configured NTP server.

        Returns the offset in milliseconds, or None when no server is
        configured or it could not be reached (the previous offset is kept).
        """
        if not self.ntp_server:
            return None
        try:
            client = ntplib.NTPClient()
            response = client.request(self.ntp_server, version=3, timeout=timeout)
        except (ntplib.NTPException, OSError) as e:
            logger.warning(f"NTP calibration against {self.ntp_server} failed: {e}")
            return None

        self._offset_ms = int(round(response.offset * 1000))
        logger.info(f"Revision clock offset set to {self._offset_ms}ms from {self.ntp_server}")
        return self._offset_ms
