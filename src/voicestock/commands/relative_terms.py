"""Detection of ellipsis cues that lean on earlier commands."""

from collections.abc import Iterable

from voicestock.config import DEFAULT_RELATIVE_TERMS


class RelativeTermDetector:
    """Case-insensitive substring match against a fixed vocabulary.

    A hit is advisory: it signals that context-based completion is worth
    attempting, but merging never depends on it.
    """

    def __init__(self, terms: Iterable[str] = DEFAULT_RELATIVE_TERMS) -> None:
        self.terms: tuple[str, ...] = tuple(term.lower() for term in terms)

    def matches(self, fragment: str) -> list[str]:
        """Return the vocabulary terms found in the fragment."""
        lower = fragment.lower()
        return [term for term in self.terms if term in lower]

    def detect(self, fragment: str) -> bool:
        lower = fragment.lower()
        return any(term in lower for term in self.terms)
