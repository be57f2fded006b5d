from __future__ import annotations

import logging
from typing import List, Final

_logger = logging.getLogger(__name__)

# largest payload an IPv4 UDP datagram can carry
DEFAULT_MAX_FRAME_LEN: int = 65507


class SLIP:
    """
    Implements SLIP (RFC 1055) framing for serial communication.
    Features:
        - Escapes END and ESC inside the payload
        - Wraps every frame in a leading and trailing END
        - Decodes frames incrementally across arbitrarily sized reads
    Args:
        max_frame_len (int): Maximum decoded frame length
    """
    END: Final[int] = 0xC0
    ESC: Final[int] = 0xDB
    ESC_END: Final[int] = 0xDC
    ESC_ESC: Final[int] = 0xDD

    def __init__(self, max_frame_len: int = DEFAULT_MAX_FRAME_LEN):
        """
        Initialize SLIP framing handler.
        Args:
            max_frame_len (int): Frames growing past this are dropped
        """
        self.max_frame_len = max_frame_len
        self._buf = bytearray()
        self._esc = False
        self._overflow = False

    @staticmethod
    def encode(payload: bytes) -> bytes:
        """
        Encode payload into a SLIP frame.
        Args:
            payload (bytes): Data to encode
        Returns:
            bytes: END + escaped payload + END
        """
        frame = bytearray()
        frame.append(SLIP.END)
        for b in payload:
            if b == SLIP.END:
                frame.append(SLIP.ESC)
                frame.append(SLIP.ESC_END)
            elif b == SLIP.ESC:
                frame.append(SLIP.ESC)
                frame.append(SLIP.ESC_ESC)
            else:
                frame.append(b)
        frame.append(SLIP.END)
        return bytes(frame)

    def decode(self, data: bytes) -> List[bytes]:
        """
        Decode SLIP frames from incoming data.

        Partial frames and a pending escape are kept until the next call.
        Empty frames (redundant END bytes) are never returned.
        Args:
            data (bytes): Incoming serial data
        Returns:
            List[bytes]: Completed frames, in arrival order
        """
        out: List[bytes] = []
        for b in data:
            if self._esc:
                if b == SLIP.ESC_END:
                    b = SLIP.END
                elif b == SLIP.ESC_ESC:
                    b = SLIP.ESC
                # anything else passes through as a literal
                self._esc = False
            elif b == SLIP.ESC:
                self._esc = True
                continue
            elif b == SLIP.END:
                if self._overflow:
                    self._overflow = False
                elif self._buf:
                    out.append(bytes(self._buf))
                self._buf.clear()
                continue

            if self._overflow:
                continue
            if len(self._buf) < self.max_frame_len:
                self._buf.append(b)
            else:
                _logger.warning("Dropping frame longer than %d bytes", self.max_frame_len)
                self._buf.clear()
                self._overflow = True
        return out

    def reset(self) -> None:
        """
        Discard any partially received frame.
        """
        self._buf.clear()
        self._esc = False
        self._overflow = False


def encode(payload: bytes) -> bytes:
    """Encode one payload as a complete SLIP frame."""
    return SLIP.encode(payload)


def decode(data: bytes) -> List[bytes]:
    """Decode all complete frames in `data` using a fresh decoder."""
    return SLIP().decode(data)


# Module-level aliases
END = SLIP.END
ESC = SLIP.ESC
ESC_END = SLIP.ESC_END
ESC_ESC = SLIP.ESC_ESC
