"""
Operator keyboard
-----------------
Manual mode reads single keystrokes, so the console is switched to
non-canonical, no-echo input for the session and restored on exit.
"""

import os
import select
import sys
import termios
import threading
import tty
from typing import Callable, List, Optional, TextIO

POLL_INTERVAL = 0.1


class TerminalModes:
    """Saved console line settings; restore() puts them back once."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stdin
        self.fd: Optional[int] = None
        self.saved: Optional[List] = None

    def save(self) -> bool:
        if not self.stream.isatty():
            return False
        self.fd = self.stream.fileno()
        self.saved = termios.tcgetattr(self.fd)
        return True

    def cbreak(self) -> None:
        """Key-at-a-time input without echo. Ctrl+C still interrupts."""
        if self.saved is None and not self.save():
            return
        tty.setcbreak(self.fd, termios.TCSANOW)

    def restore(self) -> None:
        if self.saved is None:
            return
        try:
            termios.tcsetattr(self.fd, termios.TCSANOW, self.saved)
        finally:
            self.saved = None


class KeyReader:
    """Background thread handing raw keystroke bytes to a callback."""

    def __init__(self, on_key: Callable[[bytes], None], stop: threading.Event,
                 stream: Optional[TextIO] = None):
        self.on_key = on_key
        self.stop = stop
        self.stream = stream if stream is not None else sys.stdin
        self.thread = threading.Thread(target=self.run, name="baudrate-keys", daemon=True)

    def start(self) -> None:
        self.thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self.thread.is_alive():
            self.thread.join(timeout)

    def run(self) -> None:
        fd = self.stream.fileno()
        while not self.stop.is_set():
            ready, _, _ = select.select([fd], [], [], POLL_INTERVAL)
            if not ready:
                continue
            data = os.read(fd, 16)
            if not data:
                return  # stdin closed
            self.on_key(data)
