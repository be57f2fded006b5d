from __future__ import annotations

import ipaddress
import logging
import socket
import struct
from typing import Iterable, Optional, Tuple

_logger = logging.getLogger(__name__)

MAX_DATAGRAM: int = 65535
DEFAULT_RECEIVE_TIMEOUT: float = 0.5


def _is_multicast(host: str) -> bool:
    try:
        return ipaddress.ip_address(host).is_multicast
    except ValueError:
        return False


class UdpEndpoint:
    """
    The UDP side of the bridge: one socket bound to the receive address,
    sending every datagram to a fixed target address.

    The endpoint outlives serial sessions; only the serial side is reopened
    on reconnect.
    """

    def __init__(self, receive_host: str, receive_port: int, target_host: str, target_port: int, *,
                 groups: Iterable[str] = (), timeout: Optional[float] = DEFAULT_RECEIVE_TIMEOUT) -> None:
        self.receive_address: Tuple[str, int] = (receive_host, int(receive_port))
        self.target_address: Tuple[str, int] = (target_host, int(target_port))
        self.groups = list(groups)
        self.timeout = timeout
        self._sock: Optional[socket.socket] = None

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def open(self) -> None:
        """
        Bind the receive socket and join any multicast groups.
        Raises:
            OSError: If the address cannot be bound or a group cannot be joined
        """
        host, port = self.receive_address
        groups = list(self.groups)
        if _is_multicast(host):
            groups.insert(0, host)
            host = ""

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            for group in groups:
                mreq = struct.pack("4s4s", socket.inet_aton(group), socket.inet_aton("0.0.0.0"))
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
                _logger.info("Joined multicast group %s", group)
            if hasattr(socket, "SIO_UDP_CONNRESET"):
                # Windows: an ICMP port-unreachable for an earlier sendto must not fail recvfrom
                sock.ioctl(socket.SIO_UDP_CONNRESET, False)
            sock.settimeout(self.timeout)
        except OSError:
            sock.close()
            raise
        self._sock = sock
        _logger.info("Listening on %s:%d, forwarding to %s:%d",
                     self.receive_address[0], self.bound_port, *self.target_address)

    @property
    def bound_port(self) -> int:
        """Actual local port (useful when binding to port 0)."""
        if self._sock is None:
            return self.receive_address[1]
        return self._sock.getsockname()[1]

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def __enter__(self) -> "UdpEndpoint":
        if not self.is_open:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _socket(self) -> socket.socket:
        if self._sock is None:
            raise OSError("UDP endpoint is not open")
        return self._sock

    def send(self, payload: bytes) -> int:
        """Send one datagram to the target address."""
        return self._socket().sendto(payload, self.target_address)

    def receive(self) -> Optional[bytes]:
        """
        Wait for one datagram from any source.
        Returns:
            bytes or None: The payload, or None if the receive timeout expired
        """
        try:
            payload, _addr = self._socket().recvfrom(MAX_DATAGRAM)
        except socket.timeout:
            return None
        except ConnectionResetError:
            _logger.debug("Target %s:%d is not listening", *self.target_address)
            return None
        return payload
