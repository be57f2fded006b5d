"""
Serial device discovery.

Finds the bridged device either by its exact system name or, when no name is
given, by looking for a known board name in the port's USB descriptors.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple
from serial.tools import list_ports  # type: ignore
from serial.tools.list_ports_common import ListPortInfo  # type: ignore

_logger = logging.getLogger(__name__)

DEFAULT_IDENTIFIERS: Tuple[str, ...] = ("Teensy", "Arduino")


def get_available_ports() -> List[ListPortInfo]:
    """Get list of available serial ports on the current platform."""
    return sorted(list_ports.comports(), key=lambda info: info.device)


def _descriptive_name(info: ListPortInfo) -> str:
    """Join the human readable fields pyserial reports for a port."""
    fields = (info.description, info.product, info.manufacturer)
    return " ".join(f for f in fields if f and f != "n/a")


def _matches_name(info: ListPortInfo, device: str) -> bool:
    wanted = device.lower()
    return any(n is not None and n.lower() == wanted for n in (info.name, info.device))


def locate_device(device: Optional[str] = None,
                  identifiers: Iterable[str] = DEFAULT_IDENTIFIERS) -> Optional[ListPortInfo]:
    """
    Look for the serial device to bridge.

    Args:
        device: System name (e.g. 'ttyACM0', 'COM3') or device path to match
            exactly, ignoring case. If None, match by identifiers instead.
        identifiers: Substrings of the port description that mark a known board

    Returns:
        Port info of the first match, or None if nothing matches yet
    """
    ports = get_available_ports()

    if device is None:
        needles = [i.lower() for i in identifiers]
        _logger.info("Looking for a known device (%s)...", ", ".join(identifiers))
        for info in ports:
            name = _descriptive_name(info)
            if any(n in name.lower() for n in needles):
                _logger.info("Found one at: %s (%s)", info.name, name)
                return info
    else:
        _logger.info("Looking for device %s", device)
        for info in ports:
            if _matches_name(info, device):
                _logger.info("Found %s (%s)", info.name, _descriptive_name(info))
                return info

    _logger.info("Nothing found yet (available: %s)", ", ".join(p.device for p in ports) or "none")
    return None
