"""
Baud rate detection engine
--------------------------
Two threads cooperate:

  * the reader thread pulls bytes off the serial link, scores them for
    readable text (auto mode) and forwards them for echo;
  * the control loop on the main thread owns the candidate index and reacts
    to timer ticks, keystrokes and the reader's verdict.

They only talk through a queue of events. Rate changes and byte scoring are
serialized by one lock so bytes read across a rate switch never count towards
the new rate.
"""

import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import serial

from console import Console
from port import READ_TIMEOUT
from rates import DEFAULT_RATES, Candidate, CandidateTable
from scorer import DEFAULT_THRESHOLD, TextScorer
from terminal import KeyReader, TerminalModes

DEFAULT_DEVICE = "/dev/ttyUSB0"
DEFAULT_WAIT_PERIOD = 5.0
DEFAULT_CONFIG_DIR = "/etc/minicom"

# How long shutdown waits for the reader to notice the stop request.
JOIN_GRACE = 1.0


class ReaderStartError(RuntimeError):
    pass


# ----------------------------- Data Models ----------------------------------

@dataclass(frozen=True)
class Options:
    device: str = DEFAULT_DEVICE
    manual: bool = False
    verbose: bool = True
    prompt: bool = True
    wait_period: float = DEFAULT_WAIT_PERIOD
    threshold: int = DEFAULT_THRESHOLD
    name: Optional[str] = None
    launch_minicom: bool = False
    config_dir: str = DEFAULT_CONFIG_DIR
    wrap: bool = True


class EventKind(Enum):
    TIMEOUT = "timeout"
    KEY = "key"
    DATA = "data"
    DETECTED = "detected"
    INTERRUPT = "interrupt"
    READER_FAILED = "reader_failed"


@dataclass(frozen=True)
class Event:
    kind: EventKind
    data: bytes = b""
    error: Optional[BaseException] = None


class State(Enum):
    IDLE = "idle"
    PROBING = "probing"
    LISTENING = "listening"
    DETECTED = "detected"
    SHUTTING_DOWN = "shutting_down"


@dataclass
class DetectionState:
    current_index: int
    manual: bool
    timeout_count: int = 0


@dataclass(frozen=True)
class DetectionResult:
    candidate: Candidate
    detected: bool
    timeout_count: int
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RateGuard:
    """Shared between the control loop and the reader.

    generation is bumped under lock on every rate change; confirmed is set
    under lock by the reader once text has been seen at the current rate.
    """
    lock: threading.Lock = field(default_factory=threading.Lock)
    generation: int = 0
    confirmed: threading.Event = field(default_factory=threading.Event)


# ----------------------------- Timer ----------------------------------------

class CycleTimer:
    """One-shot timer that the control loop re-arms after every expiry."""

    def __init__(self, period: float, on_expire: Callable[[], None]):
        self.period = period
        self.on_expire = on_expire
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def arm(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.period, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self) -> None:
        with self._lock:
            if self._timer is threading.current_thread():
                self._timer = None
        self.on_expire()


# ----------------------------- Keys -----------------------------------------

class KeyDecoder:
    """Turns keystroke bytes into +1 / -1 / 0.

    u/U and the up arrow raise the rate, d/D and the down arrow lower it.
    Arrow keys arrive as ESC [ A / ESC [ B (or ESC O A / ESC O B), so the
    prefix bytes are swallowed instead of being read as keys of their own.
    """

    UP_KEYS = frozenset(b"uU")
    DOWN_KEYS = frozenset(b"dD")
    ARROWS = {ord("A"): 1, ord("B"): -1}

    def __init__(self):
        self._escape = 0

    def feed(self, byte: int) -> int:
        if self._escape == 1:
            self._escape = 0
            if byte in (ord("["), ord("O")):
                self._escape = 2
                return 0
        elif self._escape == 2:
            self._escape = 0
            return self.ARROWS.get(byte, 0)

        if byte == 0x1B:
            self._escape = 1
            return 0
        if byte in self.UP_KEYS:
            return 1
        if byte in self.DOWN_KEYS:
            return -1
        return 0


# ----------------------------- Reader ---------------------------------------

class ReaderTask:
    """Reads the link on a background thread and reports what it sees."""

    def __init__(self, link, guard: RateGuard, post: Callable[[Event], None],
                 stop: threading.Event, threshold: int = DEFAULT_THRESHOLD,
                 manual: bool = False, timer: Optional[CycleTimer] = None,
                 console: Optional[Console] = None,
                 thread_factory: Callable[..., threading.Thread] = threading.Thread):
        self.link = link
        self.guard = guard
        self.post = post
        self.stop = stop
        self.manual = manual
        self.timer = timer
        self.console = console or Console()
        self.scorer = TextScorer(threshold)
        self._scored_generation = -1
        self.thread = thread_factory(target=self.run, name="baudrate-reader", daemon=True)
        self.started = False

    def start(self) -> None:
        self.thread.start()
        self.started = True

    def join(self, timeout: Optional[float] = None) -> None:
        if self.started:
            self.thread.join(timeout)

    def is_alive(self) -> bool:
        return self.started and self.thread.is_alive()

    def run(self) -> None:
        failing = False
        while not self.stop.is_set():
            with self.guard.lock:
                generation = self.guard.generation
            try:
                data = self.link.read()
            except serial.SerialException as e:
                if not failing:
                    self.console.warn(f"Read error, retrying: {e}")
                failing = True
                self.stop.wait(READ_TIMEOUT)
                continue
            except Exception as e:
                self.post(Event(EventKind.READER_FAILED, error=e))
                return
            failing = False
            if not data:
                continue
            if self.manual:
                self.post(Event(EventKind.DATA, data))
                continue
            if self.classify(data, generation):
                return

    def classify(self, data: bytes, generation: int) -> bool:
        """Score one chunk read under `generation`; True once text is confirmed."""
        consumed = -1
        with self.guard.lock:
            if self.guard.generation != generation:
                # The rate changed while this chunk was in flight.
                self.scorer.reset()
                self._scored_generation = self.guard.generation
            else:
                if self._scored_generation != generation:
                    self.scorer.reset()
                    self._scored_generation = generation
                consumed = self.scorer.feed_bytes(data)
                if consumed >= 0:
                    self.guard.confirmed.set()

        if consumed < 0:
            self.post(Event(EventKind.DATA, data))
            return False
        if self.timer is not None:
            self.timer.cancel()
        self.post(Event(EventKind.DATA, data[:consumed]))
        self.post(Event(EventKind.DETECTED))
        return True


# ----------------------------- Controller -----------------------------------

class CycleController:
    """Owns the candidate index and drives the link through the candidates."""

    def __init__(self, options: Options, link, table: CandidateTable = DEFAULT_RATES,
                 console: Optional[Console] = None, terminal: Optional[TerminalModes] = None,
                 timer_factory: Callable[..., CycleTimer] = CycleTimer,
                 thread_factory: Callable[..., threading.Thread] = threading.Thread,
                 key_reader_factory: Callable[..., KeyReader] = KeyReader):
        self.options = options
        self.link = link
        self.table = table.with_policy(options.wrap)
        self.console = console or Console(verbose=options.verbose)
        self.terminal = terminal or TerminalModes()
        self.events: "queue.Queue[Event]" = queue.Queue()
        self.guard = RateGuard()
        self.stop = threading.Event()
        self.state = State.IDLE
        self.detection = DetectionState(current_index=self.table.default_index(), manual=options.manual)
        self.decoder = KeyDecoder()
        self.error: Optional[BaseException] = None
        self.cleanup_count = 0
        self._result: Optional[DetectionResult] = None

        self.timer: Optional[CycleTimer] = None
        if not self.detection.manual:
            self.timer = timer_factory(options.wait_period, lambda: self.post(Event(EventKind.TIMEOUT)))
        self.reader = ReaderTask(
            link, self.guard, self.post, self.stop,
            threshold=options.threshold, manual=self.detection.manual, timer=self.timer,
            console=self.console, thread_factory=thread_factory,
        )
        self.keys: Optional[KeyReader] = None
        if self.detection.manual:
            self.keys = key_reader_factory(lambda data: self.post(Event(EventKind.KEY, data)), self.stop)

    @property
    def current(self) -> Candidate:
        return self.table.at(self.detection.current_index)

    def post(self, event: Event) -> None:
        self.events.put(event)

    # -- lifecycle --

    def start(self) -> None:
        self.terminal.save()
        if self.detection.manual:
            self.terminal.cbreak()
            self.console.info("Press the up or down arrow keys to increase or decrease the baud rate.")
        else:
            self.console.info("Auto detecting baudrate.")
        self.console.info("Press Ctl+C to quit.")

        self.switch(self.detection.current_index)

        try:
            self.reader.start()
            if self.keys is not None:
                self.keys.start()
        except RuntimeError as e:
            raise ReaderStartError(str(e)) from e

        if self.detection.manual:
            self.state = State.LISTENING
        else:
            self.state = State.PROBING
            self.timer.arm()

    def run(self) -> DetectionResult:
        """Start, process events until done, and always clean up exactly once."""
        try:
            self.start()
            while self.state in (State.PROBING, State.LISTENING):
                try:
                    event = self.events.get(timeout=READ_TIMEOUT)
                except queue.Empty:
                    continue
                self.handle(event)
        except ReaderStartError as e:
            self.error = e
            self.console.fail(f"Failed to start the serial reader: {e}")
        except KeyboardInterrupt:
            self.handle(Event(EventKind.INTERRUPT))
        finally:
            result = self.shutdown()
        return result

    def shutdown(self) -> DetectionResult:
        if self._result is not None:
            return self._result
        # Recorded first so a second Ctrl+C during the joins cannot re-enter.
        self._result = DetectionResult(
            candidate=self.current,
            detected=self.state is State.DETECTED,
            timeout_count=self.detection.timeout_count,
            error=self.error,
        )
        self.state = State.SHUTTING_DOWN
        self.cleanup_count += 1

        try:
            if self.timer is not None:
                self.timer.cancel()
            self.stop.set()
            self.reader.join(JOIN_GRACE)
            if self.reader.is_alive():
                self.console.warn("Serial reader did not stop in time")
            if self.keys is not None:
                self.keys.join(JOIN_GRACE)
        finally:
            try:
                self.link.restore()
            finally:
                self.terminal.restore()

        self.console.banner(f"Detected baud rate: {self.current.label} baud")
        return self._result

    # -- events --

    def handle(self, event: Event) -> None:
        kind = event.kind
        if kind is EventKind.DATA:
            self.console.echo(event.data)
        elif kind is EventKind.TIMEOUT:
            if self.state is State.PROBING:
                self.on_timeout()
        elif kind is EventKind.KEY:
            if self.state is State.LISTENING:
                self.on_keys(event.data)
        elif kind is EventKind.DETECTED:
            if self.state is State.PROBING:
                if self.timer is not None:
                    self.timer.cancel()
                self.state = State.DETECTED
        elif kind is EventKind.INTERRUPT:
            self.state = State.SHUTTING_DOWN
        elif kind is EventKind.READER_FAILED:
            self.error = event.error
            self.console.fail(f"Serial reader stopped: {event.error}")
            self.state = State.SHUTTING_DOWN

    def on_timeout(self) -> None:
        index = self.table.step(self.detection.current_index, -1)
        if not self.switch(index):
            return  # text was confirmed first; the verdict is already queued
        self.detection.timeout_count += 1
        self.timer.arm()

    def on_keys(self, data: bytes) -> None:
        for byte in data:
            delta = self.decoder.feed(byte)
            if not delta:
                continue
            index = self.table.step(self.detection.current_index, delta)
            if index != self.detection.current_index:
                self.switch(index)

    def switch(self, index: int) -> bool:
        """Move to index and reprogram the link. Refused once text is confirmed."""
        with self.guard.lock:
            if self.guard.confirmed.is_set():
                return False
            self.detection.current_index = index
            self.link.apply(self.table.at(index).rate)
            self.guard.generation += 1
        self.console.banner(f"Serial baud rate set to: {self.current.label}")
        return True
