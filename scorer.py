"""
Readable-text heuristic
-----------------------
At the right baud rate a console or log line arrives as a long unbroken run of
printable ASCII that contains whitespace, punctuation and vowels. At the wrong
rate the stream is peppered with non-printable bytes, so a single one of those
throws away everything gathered for the current run.
"""

DEFAULT_THRESHOLD = 25

WHITESPACE = frozenset(b" \r\n")
PUNCTUATION = frozenset(b".,;:!?")
VOWELS = frozenset(b"aeiouAEIOU")


def is_printable(byte: int) -> bool:
    return 0x20 <= byte <= 0x7E or byte in (0x0A, 0x0D)


class TextScorer:
    """Scores a byte stream one byte at a time."""

    def __init__(self, threshold: int = DEFAULT_THRESHOLD):
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        self.threshold = threshold
        self.reset()

    def reset(self) -> None:
        self.consecutive_ascii = 0
        self.whitespace_seen = False
        self.punctuation_seen = False
        self.vowel_seen = False

    @property
    def confirmed(self) -> bool:
        return (
            self.consecutive_ascii >= self.threshold
            and self.whitespace_seen
            and self.punctuation_seen
            and self.vowel_seen
        )

    def feed(self, byte: int) -> bool:
        """Account for one byte and return the current verdict."""
        if not is_printable(byte):
            self.reset()
            return False

        self.consecutive_ascii += 1
        if byte in WHITESPACE:
            self.whitespace_seen = True
        elif byte in PUNCTUATION:
            self.punctuation_seen = True
        elif byte in VOWELS:
            self.vowel_seen = True
        return self.confirmed

    def feed_bytes(self, data: bytes) -> int:
        """Feed data in order; return how many bytes were consumed when text got confirmed, else -1."""
        for i, byte in enumerate(data):
            if self.feed(byte):
                return i + 1
        return -1
