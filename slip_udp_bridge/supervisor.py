from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import serial

from .comm import Comm
from .config import BridgeConfig
from .discovery import locate_device
from .session import BridgeSession
from .stats import Counters
from .udp import UdpEndpoint

_logger = logging.getLogger(__name__)


class Supervisor:
    """
    Keeps a bridge session alive across device churn.

    While no session is active the supervisor looks for the device every
    `retry_interval` seconds; once found and opened it starts a session and
    waits for it to end, then goes back to looking. The UDP endpoint and the
    counters are shared by every session.
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        endpoint: Optional[UdpEndpoint] = None,
        counters: Optional[Counters] = None,
        locator: Callable = locate_device,
        comm_factory: Callable[..., Comm] = Comm,
        sleep: Optional[Callable[[float], object]] = None,
    ) -> None:
        self.config = config
        self.endpoint = endpoint if endpoint is not None else UdpEndpoint(
            config.receive_host, config.receive_port, config.target_host, config.target_port,
            groups=config.groups, timeout=config.receive_timeout,
        )
        self.counters = counters if counters is not None else Counters()
        self.session: Optional[BridgeSession] = None
        self._locator = locator
        self._comm_factory = comm_factory
        self._shutdown = threading.Event()
        self._sleep = sleep if sleep is not None else self._shutdown.wait

    @property
    def running(self) -> bool:
        return not self._shutdown.is_set()

    def _open_device(self, port: str) -> Optional[Comm]:
        comm = self._comm_factory(
            port,
            baudrate=self.config.baudrate,
            timeout=self.config.read_timeout,
            write_timeout=self.config.write_timeout,
        )
        try:
            comm.open()
        except (serial.SerialException, OSError) as exc:
            comm.close()
            _logger.error("Unable to open: %s (%s)", port, exc)
            return None
        return comm

    def connect(self) -> Optional[BridgeSession]:
        """
        Locate and open the device, then start a session on it.
        Returns:
            The running session, or None if the supervisor was stopped first
        """
        while self.running:
            info = self._locator(self.config.serial_device, self.config.identifiers)
            comm = self._open_device(info.device) if info is not None else None
            if comm is None:
                self._sleep(self.config.retry_interval)
                continue

            session = BridgeSession(
                comm, self.endpoint, self.counters,
                verbose=self.config.verbose > 0,
                stats_interval=self.config.stats_interval,
            )
            self.session = session
            if not self.running:
                # stop() raced with the open
                session.stop()
                return None
            _logger.info("OK! Starting the proxy.")
            session.start()
            return session
        return None

    def run(self) -> None:
        """
        Bridge until stop() is called.
        Raises:
            OSError: If the UDP endpoint cannot be set up
        """
        if not self.endpoint.is_open:
            self.endpoint.open()
        try:
            while self.running:
                session = self.connect()
                if session is None:
                    break
                session.wait()
                if self.running:
                    _logger.warning("Lost connection to the serial device. Trying to re-locate it...")
        finally:
            if self.session is not None:
                self.session.stop()
                self.session.wait(timeout=max(self.config.receive_timeout or 0.0, self.config.read_timeout) + 1.0)
            self.endpoint.close()

    def stop(self) -> None:
        """Request shutdown; the active session is stopped too."""
        self._shutdown.set()
        if self.session is not None:
            self.session.stop()
