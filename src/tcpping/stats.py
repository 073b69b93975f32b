"""
Round-trip statistics

Each answered probe yields a RoundTripRecord with three timestamps:

    host_a  - probe left the pitcher
    host_b  - probe reached the catcher
    rtt     - echo fully read back at the pitcher

From these the aggregator derives, once per second, the round trip time and
the A->B / B->A segment times. The segment values are only meaningful when
the clocks on both hosts are reasonably synchronised.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

import numpy as np

logger = logging.getLogger('Statistics')


@dataclass(frozen=True)
class RoundTripRecord:
    """Timing of a single answered probe (all values in epoch milliseconds)"""
    message_id: int
    host_a_timestamp: int
    host_b_timestamp: int
    rtt_timestamp: int

    @property
    def rtt(self) -> int:
        return self.rtt_timestamp - self.host_a_timestamp

    @property
    def a_to_b(self) -> int:
        return self.host_b_timestamp - self.host_a_timestamp

    @property
    def b_to_a(self) -> int:
        return self.rtt_timestamp - self.host_b_timestamp


@dataclass(frozen=True)
class StatsReport:
    """Result of one aggregation window"""
    window_count: int
    messages_sent: int
    max_rtt: Optional[int] = None
    avg_rtt: Optional[int] = None
    avg_a_to_b: Optional[int] = None
    avg_b_to_a: Optional[int] = None
    created: datetime = field(default_factory=datetime.now)

    def describe(self) -> List[str]:
        """Human readable report lines"""
        lines = [
            f"********************** {self.created.strftime('%H:%M:%S')} **********************",
            f"Total number of messages sent so far: {self.messages_sent}",
            f"Number of messages received in the previous second: {self.window_count}",
        ]
        if self.window_count:
            lines.append(f"Max RTT: {self.max_rtt} ms, Avg RTT: {self.avg_rtt} ms, "
                         f"Avg A->B: {self.avg_a_to_b} ms, Avg B->A: {self.avg_b_to_a} ms")
        return lines


def _truncated_mean(total: int, count: int) -> int:
    # integer division rounding toward zero, segments can be negative with clock skew
    quotient = abs(total) // count
    return quotient if total >= 0 else -quotient


class StatisticsAggregator:
    """
    Collects RoundTripRecords from the probing thread and turns them into a
    StatsReport once per window.

    record() and flush() may run concurrently; flush() itself is expected to
    have a single caller at a time.
    """

    def __init__(self, message_counter: Optional[Callable[[], int]] = None):
        self._window: List[RoundTripRecord] = []
        self._lock = threading.Lock()
        self._message_counter = message_counter or (lambda: 0)

        # Running maximum over the whole run, None until the first answer
        self.max_rtt: Optional[int] = None

        # Every record flushed so far, kept for export
        self.history: List[RoundTripRecord] = []

    def record(self, rec: RoundTripRecord) -> None:
        with self._lock:
            self._window.append(rec)

    def pending(self) -> int:
        """Number of records waiting for the next flush"""
        with self._lock:
            return len(self._window)

    def flush(self) -> StatsReport:
        with self._lock:
            window, self._window = self._window, []
        messages_sent = self._message_counter()

        if not window:
            return StatsReport(window_count=0, messages_sent=messages_sent, max_rtt=self.max_rtt)

        self.history.extend(window)

        stamps = np.array([(r.host_a_timestamp, r.host_b_timestamp, r.rtt_timestamp)
                           for r in window], dtype=np.int64)
        host_a, host_b, rtt_ts = stamps[:, 0], stamps[:, 1], stamps[:, 2]
        rtt = rtt_ts - host_a
        a_to_b = host_b - host_a
        b_to_a = rtt_ts - host_b

        window_max = int(rtt.max())
        if self.max_rtt is None or window_max > self.max_rtt:
            self.max_rtt = window_max

        count = len(window)
        report = StatsReport(
            window_count=count,
            messages_sent=messages_sent,
            max_rtt=self.max_rtt,
            avg_rtt=_truncated_mean(int(rtt.sum()), count),
            avg_a_to_b=_truncated_mean(int(a_to_b.sum()), count),
            avg_b_to_a=_truncated_mean(int(b_to_a.sum()), count),
        )
        logger.debug(f"Flushed {count} records, running max RTT {self.max_rtt} ms")
        return report
