from __future__ import annotations

import unittest
from unittest import mock

import serial  # type: ignore

from slip_udp_bridge.comm import Comm
from slip_udp_bridge.slip import encode

from fakes import FakeSerial, fake_comm


class TestComm(unittest.TestCase):
    def test_constructor_does_not_open(self):
        fake = FakeSerial()
        with mock.patch("slip_udp_bridge.comm.serial.serial_for_url", return_value=fake) as factory:
            comm = Comm("/dev/ttyACM0", baudrate=9600, timeout=0.2)
        factory.assert_called_once_with(
            "/dev/ttyACM0", baudrate=9600, timeout=0.2, write_timeout=None, do_not_open=True)
        self.assertFalse(comm.is_open)
        self.assertEqual(fake.open_calls, 0)

    def test_open_failure_propagates(self):
        comm = fake_comm(FakeSerial(fail_open=True))
        with self.assertRaises(serial.SerialException):
            comm.open()
        self.assertFalse(comm.is_open)

    def test_context_manager_opens_and_closes(self):
        fake = FakeSerial()
        with fake_comm(fake) as comm:
            self.assertTrue(comm.is_open)
        self.assertFalse(fake.is_open)
        self.assertEqual(fake.close_calls, 1)

    def test_close_twice_is_harmless(self):
        fake = FakeSerial()
        comm = fake_comm(fake)
        comm.open()
        comm.close()
        comm.close()
        self.assertFalse(comm.is_open)

    def test_write_sends_one_encoded_frame(self):
        fake = FakeSerial()
        with fake_comm(fake) as comm:
            written = comm.write(b"\x01\x02\xc0\x03")
        self.assertEqual(bytes(fake.written), bytes.fromhex("C0 01 02 DB DC 03 C0"))
        self.assertEqual(written, 7)

    def test_write_keeps_first_byte(self):
        fake = FakeSerial()
        with fake_comm(fake) as comm:
            comm.write(b"/osc")
        self.assertEqual(bytes(fake.written), encode(b"/osc"))

    def test_read_returns_frames_across_calls(self):
        fake = FakeSerial()
        frame = encode(b"\x01\x02\xc0\x03")
        with fake_comm(fake) as comm:
            fake.feed(frame[:3])
            self.assertEqual(comm.read(), [])
            fake.feed(frame[3:] + encode(b"next"))
            self.assertEqual(comm.read(), [b"\x01\x02\xc0\x03", b"next"])

    def test_read_timeout_returns_nothing(self):
        with fake_comm(FakeSerial(timeout=0.01)) as comm:
            self.assertEqual(comm.read(), [])

    def test_read_on_closed_port_raises(self):
        comm = fake_comm(FakeSerial())
        with self.assertRaises(serial.SerialException):
            comm.read()

    def test_loop_url(self):
        with Comm("loop://", timeout=0.05) as comm:
            comm.write(b"ping")
            frames = []
            for _ in range(10):
                frames.extend(comm.read())
                if frames:
                    break
        self.assertEqual(frames, [b"ping"])


if __name__ == "__main__":
    unittest.main()
