"""
Candidate baud rates
--------------------
Only the most common rates are listed to keep the number of guesses low.
Probing starts at the last (highest) entry and walks downwards.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Tuple


@dataclass(frozen=True)
class Candidate:
    rate: int
    label: str


class CandidateTable:
    """Fixed, ordered ring of candidate rates."""

    def __init__(self, entries: Iterable[Tuple[int, str]], wrap: bool = True):
        self._entries: Tuple[Candidate, ...] = tuple(Candidate(int(r), str(l)) for r, l in entries)
        if not self._entries:
            raise ValueError("candidate table must not be empty")
        self.wrap = wrap

    def size(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self._entries)

    def at(self, index: int) -> Candidate:
        if not 0 <= index < len(self._entries):
            raise IndexError(f"candidate index {index} out of range 0..{len(self._entries) - 1}")
        return self._entries[index]

    def default_index(self) -> int:
        return len(self._entries) - 1

    def step(self, index: int, delta: int) -> int:
        """Move index by delta, wrapping past either end or clamping to it."""
        last = len(self._entries) - 1
        target = index + delta
        if self.wrap:
            # Past the top restarts at the bottom and vice versa.
            if target > last:
                return 0
            if target < 0:
                return last
            return target
        return max(0, min(last, target))

    def with_policy(self, wrap: bool) -> "CandidateTable":
        return CandidateTable(((c.rate, c.label) for c in self._entries), wrap=wrap)


DEFAULT_RATES = CandidateTable([
    (2400, "2400"),
    (4800, "4800"),
    (9600, "9600"),
    (19200, "19200"),
    (38400, "38400"),
    (57600, "57600"),
    (115200, "115200"),
])


def format_rates(table: CandidateTable = DEFAULT_RATES) -> str:
    lines = [f"{c.label:>6} baud" for c in table]
    return "\n" + "\n".join(lines) + "\n\n"
