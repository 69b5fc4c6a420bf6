import re
from typing import Iterable

from .kana import to_hiragana
from .structured import TaskKind

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WHITESPACE = re.compile(r"\s+")


def normalize_meaning(text: str) -> str:
    """Lowercase and drop everything except ASCII letters and digits."""
    return _NON_ALNUM.sub("", text.lower())


def normalize_reading(text: str) -> str:
    """Transliterate to hiragana and drop whitespace."""
    return _WHITESPACE.sub("", to_hiragana(text))


def normalize(text: str, kind: TaskKind) -> str:
    if kind is TaskKind.MEANING:
        return normalize_meaning(text)
    return normalize_reading(text)


def is_acceptable(raw_input: str, acceptable_answers: Iterable[str], kind: TaskKind) -> bool:
    """
    Check a typed answer against the accepted answers for a task.

    Matching is deliberately lenient: meanings ignore case and punctuation
    ("Dog!!" matches "dog"), readings may be typed in romaji or katakana
    ("kyou" matches "きょう").

    Args:
        raw_input: The text the user typed.
        acceptable_answers: Meanings or readings accepted for the subject.
        kind: Whether the task asks for the meaning or the reading.

    Returns:
        True if the normalized input equals any normalized accepted answer.
    """
    answer = normalize(raw_input, kind)
    if not answer:
        return False
    return any(normalize(candidate, kind) == answer for candidate in acceptable_answers)
