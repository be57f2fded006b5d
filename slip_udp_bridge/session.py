"""
Bridge session: one open serial device pumped to and from the UDP endpoint.

A session runs three worker threads (serial -> UDP, UDP -> serial and a
stats reporter) that share a cancellation event. Whichever worker exits first,
for any reason, stops the session: the event is set, the device is closed
and the remaining workers leave at their next loop iteration. Shutdown latency
is therefore bounded by one I/O wait (serial read timeout, socket receive
timeout or the stats interval), not instantaneous.
"""

from __future__ import annotations

import itertools
import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

import serial

from .comm import Comm
from .stats import Counters, format_report
from .udp import UdpEndpoint

_logger = logging.getLogger(__name__)

_session_ids = itertools.count(1)


class SessionState(Enum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class BridgeSession:
    """
    Bridges one serial device to the shared UDP endpoint until either side fails.

    Args:
        comm: Opened serial device; the session owns it and closes it
        endpoint: Opened UDP endpoint; shared, never closed by the session
        counters: Cumulative counters updated by the pump threads
        verbose: Report throughput every stats_interval when true
        stats_interval: Seconds between stats reports
    """

    def __init__(self, comm: Comm, endpoint: UdpEndpoint, counters: Counters, *,
                 verbose: bool = False, stats_interval: float = 1.0) -> None:
        self.comm = comm
        self.endpoint = endpoint
        self.counters = counters
        self.verbose = verbose
        self.stats_interval = stats_interval
        self.session_id = next(_session_ids)
        self.state = SessionState.STARTING

        self._cancel = threading.Event()
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._threads: List[threading.Thread] = []
        self._live_workers = 0

    @property
    def connected(self) -> bool:
        """True while the session is running and nothing has asked it to stop."""
        return self.state is SessionState.RUNNING and not self._cancel.is_set()

    def start(self) -> None:
        """Launch the pump and stats threads."""
        workers = [
            ("serial-to-udp", self._serial_to_udp),
            ("udp-to-serial", self._udp_to_serial),
            ("stats", self._report_stats),
        ]
        with self._lock:
            if self.state is SessionState.STOPPED and not self._threads:
                # stopped before it ever ran
                return
            if self.state is not SessionState.STARTING:
                raise RuntimeError(f"session {self.session_id} already started")
            self._live_workers = len(workers)
            self._threads = [
                threading.Thread(target=self._run_worker, args=(name, target),
                                 name=f"bridge-{self.session_id}-{name}", daemon=True)
                for name, target in workers
            ]
            self.state = SessionState.RUNNING
        for thread in self._threads:
            thread.start()
        _logger.info("Session %d started on %s", self.session_id, self.comm.port)

    def stop(self) -> None:
        """
        Ask every worker to exit and close the serial device.
        Idempotent; may be called from any thread, including the workers.
        """
        with self._lock:
            if self.state in (SessionState.STOPPING, SessionState.STOPPED):
                return
            never_started = self.state is SessionState.STARTING
            self.state = SessionState.STOPPED if never_started else SessionState.STOPPING
            self._cancel.set()
        self.comm.close()
        if never_started:
            self._stopped.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every worker has exited.
        Returns:
            bool: True if the session is stopped, False on timeout
        """
        return self._stopped.wait(timeout)

    def _run_worker(self, name: str, target: Callable[[], None]) -> None:
        try:
            target()
        except (serial.SerialException, OSError):
            if not self._cancel.is_set():
                _logger.exception("Session %d: I/O failure in %s", self.session_id, name)
        except Exception:
            _logger.exception("Session %d: unexpected error in %s", self.session_id, name)
        finally:
            self.stop()
            with self._lock:
                self._live_workers -= 1
                done = self._live_workers == 0
                if done:
                    self.state = SessionState.STOPPED
            if done:
                _logger.info("Session %d stopped", self.session_id)
                self._stopped.set()

    def _serial_to_udp(self) -> None:
        while not self._cancel.is_set():
            for frame in self.comm.read():
                self.endpoint.send(frame)
                self.counters.record_sent(len(frame))
                _logger.debug("serial -> udp: %d bytes", len(frame))

    def _udp_to_serial(self) -> None:
        while not self._cancel.is_set():
            payload = self.endpoint.receive()
            if payload is None:
                continue
            if self._cancel.is_set():
                _logger.debug("Session %d: dropping %d byte datagram after stop", self.session_id, len(payload))
                break
            written = self.comm.write(payload)
            self.counters.record_received(written)
            _logger.debug("udp -> serial: %d bytes (%d encoded)", len(payload), written)

    def _report_stats(self) -> None:
        last = self.counters.snapshot()
        while not self._cancel.wait(self.stats_interval):
            if not self.verbose:
                continue
            now = self.counters.snapshot()
            for line in format_report(now, now - last, self.stats_interval):
                _logger.info(line)
            last = now
