"""SLIP UDP Bridge package.

Bridges SLIP framed traffic between a USB-serial MCU (via pyserial) and UDP.
"""

__all__ = [
    "BridgeConfig",
    "BridgeSession",
    "Comm",
    "Counters",
    "SLIP",
    "Supervisor",
    "UdpEndpoint",
    "get_available_ports",
    "locate_device",
]

from .comm import Comm
from .config import BridgeConfig
from .discovery import get_available_ports, locate_device
from .session import BridgeSession
from .slip import SLIP
from .stats import Counters
from .supervisor import Supervisor
from .udp import UdpEndpoint

__version__ = "0.1.0"
