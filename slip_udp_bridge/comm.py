from __future__ import annotations

import logging
from typing import Optional, List
import serial
from .slip import SLIP, DEFAULT_MAX_FRAME_LEN

_logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE: int = 115200
DEFAULT_READ_TIMEOUT: float = 0.1


class Comm:
    """
    Serial device handle for the bridge.
    Uses SLIP framing so datagram boundaries survive the byte stream.
    Features:
        - Opens any pyserial port name or URL (e.g. loop://)
        - Reads whatever is waiting, bounded by the read timeout
        - Decoder state persists across reads for the lifetime of the handle
    """

    _serial: serial.Serial
    _slip: SLIP

    def __init__(self, port: str, baudrate: int = DEFAULT_BAUDRATE, timeout: float = DEFAULT_READ_TIMEOUT, *,
                 write_timeout: Optional[float] = None, max_frame_len: int = DEFAULT_MAX_FRAME_LEN,
                 **serial_kwargs) -> None:
        """
        Create a (not yet opened) handle for a serial port.
        Args:
            port (str): Serial port name or pyserial URL
            baudrate (int): Baud rate
            timeout (float): Read timeout in seconds
            write_timeout (float, optional): Write timeout in seconds, None blocks
            max_frame_len (int): Maximum decoded frame length
            serial_kwargs: Additional serial.Serial arguments
        """
        self.port = port
        self._serial = serial.serial_for_url(port, baudrate=baudrate, timeout=timeout,
                                             write_timeout=write_timeout, do_not_open=True, **serial_kwargs)
        self._slip = SLIP(max_frame_len=max_frame_len)

    @property
    def is_open(self) -> bool:
        return bool(self._serial.is_open)

    def open(self) -> None:
        """
        Open the serial port.
        Raises:
            serial.SerialException: If the device is missing, busy or not permitted
        """
        self._serial.open()
        self._slip.reset()
        _logger.debug("Opened %s", self.port)

    def close(self) -> None:
        """
        Close the serial port. Safe to call more than once.
        """
        try:
            self._serial.close()
        except (serial.SerialException, OSError):
            _logger.debug("Error while closing %s", self.port, exc_info=True)

    def __enter__(self) -> "Comm":
        """
        Enter context manager, opening the port if needed.
        """
        if not self.is_open:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        """
        Exit context manager, closes serial port.
        """
        self.close()

    def write(self, payload: bytes) -> int:
        """
        Write one payload to the device as a single SLIP frame.
        Args:
            payload (bytes): Opaque payload, every byte is kept
        Returns:
            int: Number of encoded bytes written
        """
        frame = self._slip.encode(bytes(payload))
        written = self._serial.write(frame)
        return len(frame) if written is None else written

    def read(self) -> List[bytes]:
        """
        Read the bytes available on the device and decode them.

        Blocks for at most the read timeout waiting for the first byte.
        Returns:
            List[bytes]: Frames completed by this read (may be empty)
        """
        n = self._serial.in_waiting or 1
        chunk = self._serial.read(n)
        if not chunk:
            return []
        return self._slip.decode(chunk)
