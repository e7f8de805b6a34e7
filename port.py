"""
Serial link handling
--------------------
Opens the device fixed at 8N1 with no hardware or software flow control,
changes the baud rate on the fly, and puts the line back exactly as it was
found when the tool exits.
"""

import os
import termios
from typing import List, Optional

import serial

from console import Console

# Per-read timeout; lets the reader thread notice cancellation promptly.
READ_TIMEOUT = 0.1


def open_port(device: str, baud: int, timeout: float = READ_TIMEOUT) -> serial.Serial:
    return serial.Serial(
        port=device,
        baudrate=baud,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE,
        timeout=timeout,
        xonxoff=False,
        rtscts=False,
        dsrdtr=False,
    )


class SerialLink:
    """The opened port plus the line settings it had before we touched it."""

    def __init__(self, device: str, console: Optional[Console] = None):
        self.device = device
        self.console = console or Console()
        self.serial: Optional[serial.Serial] = None
        self.saved_attrs: Optional[List] = None
        self.rate: Optional[int] = None
        self.restore_count = 0

    def open(self, baud: int) -> None:
        """Snapshot the line, then open it through pyserial. Raises on failure."""
        # pyserial reprograms the line as soon as it opens, so the original
        # settings are read through a second descriptor that stays open until
        # pyserial holds the port (closing the last descriptor may hang up).
        fd = os.open(self.device, os.O_RDWR | os.O_NOCTTY | os.O_NONBLOCK)
        try:
            self.saved_attrs = self.snapshot(fd)
            self.serial = open_port(self.device, baud)
        finally:
            os.close(fd)
        self.rate = baud

    @staticmethod
    def snapshot(fd: int) -> Optional[List]:
        try:
            return termios.tcgetattr(fd)
        except termios.error:
            return None  # not a terminal device, nothing to put back

    def apply(self, rate: int) -> bool:
        """Program input and output speed. Failures keep the previous rate."""
        try:
            self.serial.baudrate = rate
            self.serial.reset_input_buffer()
        except (serial.SerialException, ValueError, OSError) as e:
            self.console.warn(f"Could not switch {self.device} to {rate} baud: {e}")
            return False
        self.rate = rate
        return True

    def read(self) -> bytes:
        """Whatever is buffered, or wait up to READ_TIMEOUT for a single byte."""
        return self.serial.read(self.serial.in_waiting or 1)

    def restore(self) -> None:
        """Put the original line settings back and close the port."""
        if self.serial is None:
            return
        self.restore_count += 1
        try:
            if self.saved_attrs is not None:
                termios.tcsetattr(self.serial.fileno(), termios.TCSANOW, self.saved_attrs)
        except (termios.error, serial.SerialException, OSError) as e:
            self.console.warn(f"Could not restore settings on {self.device}: {e}")
        finally:
            self.serial.close()
            self.serial = None
