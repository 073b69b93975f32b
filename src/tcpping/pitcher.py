"""
Pitcher: generates ping packets over one TCP connection and reports round
trip statistics every second.

Three activities share the connection while pinging:

    emitter  - every period: send a probe, wait (bounded) for its echo
    reporter - every second: flush and log the statistics window
    stopper  - once, after the run duration: final report, stop the others
"""

import logging
import socket
import threading
import time
from typing import List, Optional

from tcpping.config import DRAIN_GRACE, PitcherConfig
from tcpping.errors import TCPPingError, TransportError
from tcpping.framing import read_frame
from tcpping.protocol import decode_echo_header, encode_handshake, encode_probe, now_millis
from tcpping.stats import RoundTripRecord, StatisticsAggregator, StatsReport

logger = logging.getLogger('Pitcher')

REPORT_INTERVAL = 1.0  # seconds


class Pitcher:
    """
    Generates ping packets at the configured rate and measures the round
    trip time of each one.
    """

    def __init__(self, config: PitcherConfig):
        self.config = config

        self._message_id = 0
        self._id_lock = threading.Lock()
        self.aggregator = StatisticsAggregator(message_counter=lambda: self.message_id)
        self.reports: List[StatsReport] = []
        self._report_lock = threading.Lock()

        # Shared cancellation token, plus a socket pair to wake a blocked echo wait
        self._stop = threading.Event()
        self._wake_r: Optional[socket.socket] = None
        self._wake_w: Optional[socket.socket] = None

        self.sock: Optional[socket.socket] = None
        # bytes of a cut-off echo still to be read off the stream
        self._stale_bytes = 0
        self.failure: Optional[Exception] = None
        self._threads: List[threading.Thread] = []
        self._emitter: Optional[threading.Thread] = None
        self._stopper: Optional[threading.Thread] = None

    @property
    def message_id(self) -> int:
        """Id of the last probe sent (0 before the first one)"""
        return self._message_id

    def _next_message_id(self) -> int:
        with self._id_lock:
            self._message_id += 1
            return self._message_id

    def stop(self) -> None:
        """Stop all activities; an in-flight echo wait is abandoned"""
        if self._stop.is_set():
            return
        self._stop.set()
        if self._wake_w is not None:
            try:
                self._wake_w.send(b'x')
            except OSError as e:
                logger.debug(f"Could not wake the emitter: {e}")

    def connect(self) -> None:
        """Open the connection to the catcher (Connecting state)"""
        try:
            self.sock = socket.create_connection((self.config.host, self.config.port),
                                                 timeout=self.config.connect_timeout)
        except OSError as e:
            raise TransportError(
                f"cannot connect to {self.config.host}:{self.config.port}: {e}") from e
        # reads are bounded by select(), writes may block
        self.sock.settimeout(None)
        self.sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        logger.info(f"Connected to {self.config.host}:{self.config.port}")

    def _send_handshake(self) -> None:
        try:
            self.sock.sendall(encode_handshake(self.config.size))
        except OSError as e:
            raise TransportError(f"sending handshake failed: {e}") from e
        logger.debug(f"Announced packet size of {self.config.size} bytes")

    def _skip_stale_bytes(self, deadline: float) -> bool:
        """Discard the tail of an echo that was cut off by an earlier deadline"""
        while self._stale_bytes:
            data = read_frame(self.sock, self._stale_bytes, deadline - time.monotonic(),
                              interrupt=self._wake_r)
            if not data:
                return False
            self._stale_bytes -= len(data)
            logger.debug(f"Discarded {len(data)} bytes of an earlier echo")
        return True

    def _await_echo(self, message_id: int) -> bytes:
        """
        Read echoes until the one for message_id arrives or the echo timeout
        expires. Late echoes of earlier probes are dropped on the way.
        """
        size = self.config.size
        deadline = time.monotonic() + self.config.echo_timeout
        while True:
            if not self._skip_stale_bytes(deadline):
                return b''
            data = read_frame(self.sock, size, deadline - time.monotonic(), interrupt=self._wake_r)
            if len(data) != size:
                # the rest of this frame is still owed by the stream
                if data:
                    self._stale_bytes = size - len(data)
                return data
            echoed_id = decode_echo_header(data)[0]
            if 0 < echoed_id < message_id:
                logger.info(f"Discarding late response for message {echoed_id}")
                continue
            return data

    def ping_once(self) -> Optional[RoundTripRecord]:
        """
        Send one probe and wait for its echo.

        Returns:
            The recorded RoundTripRecord, or None on timeout / size or id mismatch

        Raises:
            TransportError, MalformedPacket
        """
        if self._stop.is_set():
            return None
        size = self.config.size
        message_id = self._next_message_id()
        probe = encode_probe(message_id, now_millis(), size)

        try:
            self.sock.sendall(probe)
        except OSError as e:
            raise TransportError(f"sending message {message_id} failed: {e}") from e

        data = self._await_echo(message_id)
        rtt_timestamp = now_millis()
        logger.debug(f"Read {len(data)} bytes")

        if self._stop.is_set() and len(data) != size:
            logger.debug(f"Stopped while waiting for response to message {message_id}")
            return None
        if not data:
            logger.info(f"Did not receive response for message {message_id}")
            return None
        if len(data) != size:
            logger.warning(f"Received {len(data)}, expected {size} bytes for message {message_id}")
            return None

        echoed_id, host_a, host_b = decode_echo_header(data)
        logger.debug(f"Received message {echoed_id}: host A {host_a}, host B {host_b}, RTT {rtt_timestamp}")
        if echoed_id != message_id:
            logger.warning(f"Echo carries message id {echoed_id}, expected {message_id}, dropped")
            return None

        rec = RoundTripRecord(echoed_id, host_a, host_b, rtt_timestamp)
        self.aggregator.record(rec)
        return rec

    def report(self) -> StatsReport:
        """Flush the current window and log it"""
        with self._report_lock:
            rep = self.aggregator.flush()
            self.reports.append(rep)
        for line in rep.describe():
            logger.info(line)
        return rep

    def _emit_loop(self) -> None:
        period = self.config.period
        next_run = time.monotonic()
        try:
            while not self._stop.is_set():
                self.ping_once()
                # fixed rate: a late probe is followed immediately by the next one
                next_run += period
                if self._stop.wait(max(0.0, next_run - time.monotonic())):
                    break
        except (TCPPingError, OSError) as e:
            if not self._stop.is_set():
                logger.critical(f"Pinging aborted: {e}")
                self.failure = e
                self.stop()

    def _report_loop(self) -> None:
        next_run = time.monotonic() + REPORT_INTERVAL
        while not self._stop.wait(max(0.0, next_run - time.monotonic())):
            self.report()
            next_run += REPORT_INTERVAL

    def _stop_after_duration(self) -> None:
        self._stop.wait(self.config.duration)
        self.stop()
        # let the emitter record an echo that was already complete
        self._emitter.join(timeout=self.config.echo_timeout)
        self.report()

    def _start(self, name: str, target) -> threading.Thread:
        thread = threading.Thread(target=target, name=name, daemon=True)
        self._threads.append(thread)
        thread.start()
        return thread

    def start_pitching(self) -> bool:
        """
        Run one complete measurement: connect, announce the packet size,
        ping for the configured duration, then close the connection.

        Returns:
            True if the run completed without a fatal error
        """
        self._stop.clear()
        self._wake_r, self._wake_w = socket.socketpair()
        try:
            self.connect()
            self._send_handshake()

            logger.info(f"Pinging {self.config.host}:{self.config.port} with {self.config.size} byte "
                        f"packets, {self.config.mps} msg/s for {self.config.duration:g} s")
            self._emitter = self._start('emitter', self._emit_loop)
            self._start('reporter', self._report_loop)
            self._stopper = self._start('stopper', self._stop_after_duration)

            # Draining
            deadline = time.monotonic() + self.config.duration + DRAIN_GRACE
            for thread in self._threads:
                if thread is self._stopper:
                    continue
                thread.join(timeout=max(0.0, deadline - time.monotonic()))
                if thread.is_alive():
                    logger.warning(f"Activity '{thread.name}' did not finish in time")
            # the stopper owns the final flush and may wait out a full echo timeout for the emitter
            stopper_deadline = deadline + self.config.echo_timeout
            self._stopper.join(timeout=max(0.0, stopper_deadline - time.monotonic()))
            if self._stopper.is_alive():
                logger.warning("Activity 'stopper' did not finish in time")
        except TCPPingError as e:
            logger.critical(f"Pitcher failed: {e}")
            self.failure = e
        finally:
            self.stop()
            if self.sock is not None:
                self.sock.close()
            self._wake_r.close()
            self._wake_w.close()
            self._wake_r = self._wake_w = None
            logger.info(f"Pitcher finished, {self.message_id} messages sent")

        return self.failure is None
