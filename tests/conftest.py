import io
import threading
import time

import pytest

from console import Console
from rates import CandidateTable


class FakeLink:
    """Stands in for SerialLink; serves scripted chunks and counts restores."""

    def __init__(self, chunks=(), device="/dev/ttyFAKE0"):
        self.device = device
        self.chunks = list(chunks)
        self.applied = []
        self.restore_count = 0
        self.opened_at = None
        self.open_error = None
        self.drained = threading.Event()

    def open(self, baud):
        if self.open_error is not None:
            raise self.open_error
        self.opened_at = baud

    def apply(self, rate):
        self.applied.append(rate)
        return True

    def read(self):
        if self.chunks:
            item = self.chunks.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        self.drained.set()
        time.sleep(0.01)
        return b""

    def restore(self):
        self.restore_count += 1


class FakeTimer:
    def __init__(self, period, on_expire):
        self.period = period
        self.on_expire = on_expire
        self.arm_count = 0
        self.cancel_count = 0
        self.armed = False

    def arm(self):
        self.arm_count += 1
        self.armed = True

    def cancel(self):
        self.cancel_count += 1
        self.armed = False

    def fire(self):
        self.armed = False
        self.on_expire()


class FakeTerminal:
    def __init__(self):
        self.save_count = 0
        self.cbreak_count = 0
        self.restore_count = 0

    def save(self):
        self.save_count += 1
        return True

    def cbreak(self):
        self.cbreak_count += 1

    def restore(self):
        self.restore_count += 1


class FakeKeyReader:
    def __init__(self, on_key, stop):
        self.on_key = on_key
        self.stop = stop
        self.started = False

    def start(self):
        self.started = True

    def join(self, timeout=None):
        pass


class IdleThread:
    """Thread that never runs its target; lets tests drive the reader by hand."""

    def __init__(self, target=None, name=None, daemon=None):
        self.target = target

    def start(self):
        pass

    def join(self, timeout=None):
        pass

    def is_alive(self):
        return False


class UnstartableThread(IdleThread):
    def start(self):
        raise RuntimeError("can't start new thread")


@pytest.fixture()
def table() -> CandidateTable:
    return CandidateTable([(2400, "2400"), (9600, "9600"), (115200, "115200")])


@pytest.fixture()
def console() -> Console:
    return Console(verbose=True, stream=io.StringIO())


@pytest.fixture()
def terminal() -> FakeTerminal:
    return FakeTerminal()
