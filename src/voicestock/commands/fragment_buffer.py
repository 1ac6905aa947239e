"""Buffer for transcribed fragments awaiting a complete command."""

import re

_TO_NUMBER_PATTERN = re.compile(r"\bto\s+\d+\b")
_BARE_AMOUNT_PATTERN = re.compile(r"^\d+\s+\w+\.?$")
_TO_AMOUNT_PATTERN = re.compile(r"^to\s+\d+\s+\w+\.?$")


class FragmentBuffer:
    """Accumulate final transcript fragments into one working string.

    The buffer does no interpretation; the caller decides when to
    re-interpret the whole buffer rather than the latest fragment.
    """

    def __init__(self) -> None:
        self._buffer = ""

    def add(self, text: str) -> None:
        """Append a fragment. Blank fragments are accepted and ignored."""
        if not text or not text.strip():
            return

        fragment = text.strip()
        self._buffer = f"{self._buffer} {fragment}" if self._buffer else fragment

    def current(self) -> str:
        """Return the buffered text without clearing it."""
        return self._buffer

    def clear(self) -> None:
        self._buffer = ""

    @staticmethod
    def looks_like_set_start(text: str) -> bool:
        """True for "set the X" style openings that lack a "to N" target."""
        lower = text.lower().strip()
        return (
            lower.startswith(("set ", "update "))
            and " to " not in lower
            and not _TO_NUMBER_PATTERN.search(lower)
        )

    @staticmethod
    def looks_like_set_continuation(text: str) -> bool:
        """True for "to 30 sleeves" or "30 sleeves" style continuations."""
        lower = text.lower().strip()
        return (
            lower.startswith("to ")
            or _BARE_AMOUNT_PATTERN.match(lower) is not None
            or _TO_AMOUNT_PATTERN.match(lower) is not None
        )
