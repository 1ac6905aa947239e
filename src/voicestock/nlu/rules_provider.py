"""Rule-based NLU provider.

This is the default implementation used in CI and dev environments. It
doesn't require any external dependencies or API keys, and it deliberately
returns partial extractions ("add 5 pounds of", "coffee", "5 more") so the
accumulator and context enhancer can finish them.
"""

import logging
import re
from typing import Any

from voicestock.commands.session_context import ContextEntry, RecentCommand

logger = logging.getLogger(__name__)

NUMBER_WORDS = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4,
    "five": 5, "six": 6, "seven": 7, "eight": 8, "nine": 9,
    "ten": 10, "eleven": 11, "twelve": 12, "thirteen": 13,
    "fourteen": 14, "fifteen": 15, "sixteen": 16, "seventeen": 17,
    "eighteen": 18, "nineteen": 19, "twenty": 20,
}

UNIT_ALIASES = {
    # Weight
    "lb": "pounds", "lbs": "pounds", "pound": "pounds", "pounds": "pounds",
    "kg": "kilograms", "kilo": "kilograms", "kilos": "kilograms",
    "kilogram": "kilograms", "kilograms": "kilograms",
    "g": "grams", "gram": "grams", "grams": "grams",
    "oz": "ounces", "ounce": "ounces", "ounces": "ounces",
    # Volume
    "gal": "gallons", "gallon": "gallons", "gallons": "gallons",
    "l": "liters", "liter": "liters", "liters": "liters", "litre": "liters", "litres": "liters",
    "ml": "milliliters", "milliliter": "milliliters", "milliliters": "milliliters",
    "cup": "cups", "cups": "cups",
    "quart": "quarts", "quarts": "quarts", "pint": "pints", "pints": "pints",
    # Containers and counts
    "box": "boxes", "boxes": "boxes",
    "bag": "bags", "bags": "bags",
    "bottle": "bottles", "bottles": "bottles",
    "case": "cases", "cases": "cases",
    "carton": "cartons", "cartons": "cartons",
    "piece": "pieces", "pieces": "pieces", "pcs": "pieces",
    "unit": "units", "units": "units",
    "pack": "packs", "packs": "packs", "package": "packs", "packages": "packs",
    "container": "containers", "containers": "containers",
    "packet": "packets", "packets": "packets",
    "jar": "jars", "jars": "jars",
    "sleeve": "sleeves", "sleeves": "sleeves",
    "stack": "stacks", "stacks": "stacks",
    "roll": "rolls", "rolls": "rolls",
    "sheet": "sheets", "sheets": "sheets",
    "can": "cans", "cans": "cans",
    "dozen": "dozen",
}

# Phrase -> action; longer phrases first so "take out" wins over "take"
ACTION_PHRASES: list[tuple[str, str]] = sorted(
    [
        ("add", "add"), ("adding", "add"), ("added", "add"), ("increase", "add"),
        ("put", "add"), ("restock", "add"), ("refill", "add"), ("order", "add"),
        ("buy", "add"), ("bring", "add"),
        ("remove", "remove"), ("removing", "remove"), ("take", "remove"),
        ("take out", "remove"), ("took", "remove"), ("use", "remove"), ("used", "remove"),
        ("subtract", "remove"), ("discard", "remove"), ("reduce", "remove"),
        ("decrease", "remove"), ("drop", "remove"),
        ("set", "set"), ("update", "set"), ("change", "set"), ("adjust", "set"),
        ("we have", "set"), ("there is", "set"), ("there are", "set"), ("we've got", "set"),
    ],
    key=lambda pair: len(pair[0]),
    reverse=True,
)

_QTY = r"(\d+(?:\.\d+)?|" + "|".join(NUMBER_WORDS) + r")"
_ACTION_PATTERN = re.compile(
    r"^(?:please\s+|can you\s+|could you\s+)?("
    + "|".join(re.escape(phrase) for phrase, _ in ACTION_PHRASES)
    + r")\b\s*(.*)$"
)
_UNDO_PATTERN = re.compile(r"^(?:undo|revert last|revert the last)\b")
_SET_TO_PATTERN = re.compile(r"^(.+?)\s+to\s+" + _QTY + r"\s+(\w+)(?:\s+of\s+.*)?$")
_AMOUNT_OF_PATTERN = re.compile(r"^(?:to\s+)?" + _QTY + r"\s+(?:more\s+)?(\w+)\s+of\b\s*(.*)$")
_TO_AMOUNT_PATTERN = re.compile(r"^to\s+" + _QTY + r"\s+(\w+)$")
_MORE_PATTERN = re.compile(r"^" + _QTY + r"\s+(?:more|another|extra|additional)(?:\s+(\w+))?$")
_AMOUNT_PATTERN = re.compile(r"^" + _QTY + r"(?:\s+(.+))?$")
_HAS_QTY_PATTERN = re.compile(r"\b" + _QTY + r"\b")
_SPLIT_PATTERN = re.compile(r"\s*,\s*|\s+and\s+")

_LEADING_FILLER = re.compile(r"^(?:(?:the|some|a|an|more|of|any|extra|please)\s+)+")
_TRAILING_FILLER = re.compile(r"(?:\s+(?:please|too|as well|again))+$")

# Confidence reported when the whole command was stated in one fragment
FULL_MATCH_CONFIDENCE = 0.95


def parse_quantity(text: str) -> float | None:
    """Parse a digit string or a number word (up to twenty)."""
    if text in NUMBER_WORDS:
        return NUMBER_WORDS[text]
    try:
        value = float(text)
    except ValueError:
        return None
    return int(value) if value.is_integer() else value


def normalize_unit(unit: str) -> str:
    """Map a unit alias to its standard plural name."""
    unit = unit.lower().strip()
    return UNIT_ALIASES.get(unit, unit)


def clean_item(item: str) -> str:
    """Strip filler words and punctuation around an item name."""
    item = item.lower().strip(" .,!?")
    item = _LEADING_FILLER.sub("", item)
    item = _TRAILING_FILLER.sub("", item)
    return re.sub(r"\s+", " ", item).strip(" .,!?")


def _split_action(segment: str) -> tuple[str, str]:
    match = _ACTION_PATTERN.match(segment)
    if not match:
        return "", segment
    phrase, rest = match.groups()
    action = next(action for p, action in ACTION_PHRASES if p == phrase)
    return action, rest.strip()


def _command(
    action: str,
    item: str = "",
    quantity: float | None = None,
    unit: str = "",
    confidence: float | None = None,
) -> dict[str, Any]:
    command: dict[str, Any] = {
        "action": action,
        "item": item,
        "quantity": quantity,
        "unit": unit,
    }
    if confidence is not None:
        command["confidence"] = confidence
    return command


def parse_segment(segment: str, default_action: str = "") -> dict[str, Any] | None:
    """Extract one (possibly partial) command from a single phrase.

    Returns None when nothing usable was said.
    """
    segment = segment.lower().strip(" .,!?")
    if not segment:
        return None

    if _UNDO_PATTERN.match(segment):
        return _command("undo", confidence=FULL_MATCH_CONFIDENCE)

    action, rest = _split_action(segment)
    action = action or default_action

    if not rest:
        return _command(action) if action else None

    # "set the paper cups to 30 sleeves"
    if action in ("set", ""):
        match = _SET_TO_PATTERN.match(rest)
        if match and not rest.startswith("to "):
            item, qty, unit = match.groups()
            return _command(
                "set", clean_item(item), parse_quantity(qty), normalize_unit(unit),
                FULL_MATCH_CONFIDENCE,
            )

    # "5 pounds of coffee", "5 pounds of" (item still to come)
    match = _AMOUNT_OF_PATTERN.match(rest)
    if match:
        qty, unit, item = match.groups()
        item = clean_item(item)
        if item and not action:
            # A bare "30 gallons of milk" states a stock level
            action = "set"
        return _command(
            action, item, parse_quantity(qty), normalize_unit(unit),
            FULL_MATCH_CONFIDENCE if item and action else None,
        )

    # "to 30 sleeves" continues an earlier "set the ..."
    match = _TO_AMOUNT_PATTERN.match(rest)
    if match:
        qty, unit = match.groups()
        return _command(action, "", parse_quantity(qty), normalize_unit(unit))

    # "5 more", "5 more gallons"
    match = _MORE_PATTERN.match(rest)
    if match:
        qty, unit = match.groups()
        return _command(action, "", parse_quantity(qty), normalize_unit(unit or ""))

    # "30 sleeves", "5 apples"
    match = _AMOUNT_PATTERN.match(rest)
    if match:
        qty, remainder = match.groups()
        words = (remainder or "").split(maxsplit=1)
        if words and words[0] in UNIT_ALIASES:
            unit = normalize_unit(words[0])
            item = clean_item(words[1]) if len(words) > 1 else ""
        else:
            unit, item = "", clean_item(remainder or "")
        return _command(action, item, parse_quantity(qty), unit)

    # "set the 16 ounce paper cups" names the item; the amount follows later
    item = clean_item(rest)
    if not item:
        return _command(action) if action else None
    return _command(action, item)


class RuleBasedNLUProvider:
    """Deterministic pattern-matching extractor.

    Multi-item phrases ("30 gallons of milk and 20 boxes of tea") are split on
    commas and "and" only when more than one part carries a quantity, so item
    names such as "salt and pepper" survive.
    """

    async def extract(
        self,
        fragment: str,
        conversation_history: list[ContextEntry],
        recent_commands: list[RecentCommand],
    ) -> list[dict[str, Any]]:
        return self.parse(fragment)

    def parse(self, fragment: str) -> list[dict[str, Any]]:
        """Parse a fragment into raw command objects."""
        text = fragment.lower().strip(" .,!?")
        if not text:
            return []

        parts = [p for p in _SPLIT_PATTERN.split(text) if p]
        if sum(1 for p in parts if _HAS_QTY_PATTERN.search(p)) < 2:
            parts = [text]

        commands: list[dict[str, Any]] = []
        action = ""
        for part in parts:
            command = parse_segment(part, default_action=action)
            if command is None:
                continue
            # Later parts of a list inherit the first part's action
            action = action or command["action"]
            commands.append(command)

        logger.debug("Rule-based extraction produced %d command(s)", len(commands))
        return commands
