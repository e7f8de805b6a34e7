"""
Operator console output
-----------------------
Colored status lines and the framed banners printed while probing.
Everything goes to stderr so stdout stays free for the minicom config.
"""

import sys
from typing import Optional, TextIO

from colorama import Fore, Style, init as colorama_init

DELIM = "@" * 67
CENTER_PADDING = " " * 18


# ----------------------------- Utilities ------------------------------------

def color(s: str, c: str) -> str:
    return c + s + Style.RESET_ALL


def ok(s: str) -> str:
    return color("OK  ", Fore.GREEN) + s


def warn(s: str) -> str:
    return color("WARN", Fore.YELLOW) + " " + s


def fail(s: str) -> str:
    return color("FAIL", Fore.RED) + " " + s


def info(s: str) -> str:
    return color("INFO", Fore.CYAN) + " " + s


def banner(text: str) -> str:
    return f"\n\n{DELIM}\n{CENTER_PADDING}{text}\n{DELIM}\n\n"


# ----------------------------- Console --------------------------------------

class Console:
    """Writes status text and echoed serial bytes; quiet mode keeps only warnings and failures."""

    def __init__(self, verbose: bool = True, stream: Optional[TextIO] = None):
        self.verbose = verbose
        self.stream = stream if stream is not None else sys.stderr

    @staticmethod
    def setup() -> None:
        colorama_init()

    def _write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def info(self, s: str) -> None:
        if self.verbose:
            self._write(info(s) + "\n")

    def ok(self, s: str) -> None:
        if self.verbose:
            self._write(ok(s) + "\n")

    def warn(self, s: str) -> None:
        self._write(warn(s) + "\n")

    def fail(self, s: str) -> None:
        self._write(fail(s) + "\n")

    def plain(self, s: str) -> None:
        if self.verbose:
            self._write(s)

    def banner(self, text: str) -> None:
        if self.verbose:
            self._write(color(banner(text), Style.BRIGHT))

    def echo(self, data: bytes) -> None:
        # Raw bytes when the stream has a binary buffer, latin-1 otherwise so nothing is lost.
        buf = getattr(self.stream, "buffer", None)
        if buf is not None:
            self.stream.flush()
            buf.write(data)
            buf.flush()
        else:
            self._write(data.decode("latin-1"))
