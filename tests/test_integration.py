from __future__ import annotations

import os
from unittest import mock

import pytest

import serial  # type: ignore

from slip_udp_bridge.comm import Comm
from slip_udp_bridge.session import BridgeSession
from slip_udp_bridge.stats import CounterSnapshot, Counters
from slip_udp_bridge.udp import UdpEndpoint

from fakes import udp_peer, wait_until


@pytest.fixture
def peer():
    sock = udp_peer()
    yield sock
    sock.close()


@pytest.fixture
def endpoint(peer):
    ep = UdpEndpoint("127.0.0.1", 0, "127.0.0.1", peer.getsockname()[1], timeout=0.05)
    ep.open()
    yield ep
    ep.close()


def _run_session(comm, endpoint, counters):
    session = BridgeSession(comm, endpoint, counters)
    session.start()
    return session


def test_loopback_device_end_to_end(peer, endpoint) -> None:
    """A datagram crosses the serial wire SLIP-encoded and comes back intact."""
    counters = Counters()
    comm = Comm("loop://", timeout=0.01)
    comm.open()
    with mock.patch.object(comm._serial, "write", wraps=comm._serial.write) as wire:
        session = _run_session(comm, endpoint, counters)
        try:
            peer.sendto(b"\x01\x02\xc0\x03", ("127.0.0.1", endpoint.bound_port))
            payload, _ = peer.recvfrom(65535)
        finally:
            session.stop()
            assert session.wait(2.0)

    wire.assert_called_once_with(bytes.fromhex("C0 01 02 DB DC 03 C0"))
    assert payload == b"\x01\x02\xc0\x03"
    assert wait_until(lambda: counters.snapshot().messages_sent == 1)
    assert counters.snapshot() == CounterSnapshot(
        messages_sent=1, bytes_sent=4, messages_received=1, bytes_received=7)
    assert not comm.is_open


@pytest.mark.parametrize(
    "payload",
    [
        b"/ping\x00\x00\x00,\x00\x00\x00",     # OSC message without arguments
        bytes([0xC0, 0xDB, 0xDC, 0xDD] * 16),  # nothing but SLIP specials
        bytes(i % 256 for i in range(1400)),   # MTU sized counting pattern
    ],
)
def test_loopback_payloads(peer, endpoint, payload) -> None:
    comm = Comm("loop://", timeout=0.01)
    comm.open()
    session = _run_session(comm, endpoint, Counters())
    try:
        peer.sendto(payload, ("127.0.0.1", endpoint.bound_port))
        rx, _ = peer.recvfrom(65535)
    finally:
        session.stop()
        session.wait(2.0)
    assert rx == payload


@pytest.fixture(scope="module")
def hardware_port():
    """Serial port of a device that echoes SLIP frames, from SLIP_BRIDGE_DEVICE."""
    port = os.environ.get("SLIP_BRIDGE_DEVICE")
    if not port:
        pytest.skip("SLIP_BRIDGE_DEVICE not set; no echo device to test against")
    return port


def test_hardware_echo(hardware_port, peer, endpoint) -> None:
    try:
        comm = Comm(hardware_port, timeout=0.05)
        comm.open()
    except serial.SerialException as e:  # type: ignore
        pytest.skip(f"Unable to open serial port '{hardware_port}': {e}")
    session = _run_session(comm, endpoint, Counters())
    try:
        peer.sendto(b"/echo\x00\x00\x00", ("127.0.0.1", endpoint.bound_port))
        rx, _ = peer.recvfrom(65535)
    finally:
        session.stop()
        session.wait(2.0)
    assert rx == b"/echo\x00\x00\x00"
