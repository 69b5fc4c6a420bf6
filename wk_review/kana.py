"""
Romaji to hiragana transliteration.

Converts Latin phonetic spelling (Hepburn with a few Kunrei spellings) into
hiragana and folds any katakana into hiragana, so that reading answers can be
compared in a single script.

The conversion runs in fixed stages:
  1. lowercase
  2. katakana -> hiragana (fixed code point offset)
  3. runs of a doubled consonant -> っ + consonant ("kitte" -> "きって")
  4. longest-match-first table lookup (digraphs, then irregular syllables,
     then the regular consonant+vowel grid and bare vowels)
  5. leftover "n" not followed by a vowel or "y" -> ん
Anything not in the tables (digits, punctuation, whitespace, kanji) is left
untouched, which makes the function idempotent on its own output.
"""

import re
from typing import Dict

KATAKANA_START = 0x30A1  # ァ
KATAKANA_END = 0x30F6  # ヶ
KATAKANA_OFFSET = 0x60  # ア (U+30A2) - あ (U+3042)

SOKUON = "っ"
HATSUON = "ん"

# Three and four letter sequences, matched before anything shorter.
DIGRAPHS: Dict[str, str] = {
    "kya": "きゃ", "kyu": "きゅ", "kyo": "きょ",
    "gya": "ぎゃ", "gyu": "ぎゅ", "gyo": "ぎょ",
    "sha": "しゃ", "shi": "し", "shu": "しゅ", "she": "しぇ", "sho": "しょ",
    "cha": "ちゃ", "chi": "ち", "chu": "ちゅ", "che": "ちぇ", "cho": "ちょ",
    "tsu": "つ",
    "nya": "にゃ", "nyu": "にゅ", "nyo": "にょ",
    "hya": "ひゃ", "hyu": "ひゅ", "hyo": "ひょ",
    "bya": "びゃ", "byu": "びゅ", "byo": "びょ",
    "pya": "ぴゃ", "pyu": "ぴゅ", "pyo": "ぴょ",
    "mya": "みゃ", "myu": "みゅ", "myo": "みょ",
    "rya": "りゃ", "ryu": "りゅ", "ryo": "りょ",
    "jya": "じゃ", "jyu": "じゅ", "jyo": "じょ",
    "xtsu": "っ", "ltsu": "っ",
}

# Two letter syllables that break the consonant+vowel grid.
IRREGULAR: Dict[str, str] = {
    "fu": "ふ", "hu": "ふ",
    "ji": "じ", "zi": "じ",
    "ja": "じゃ", "ju": "じゅ", "jo": "じょ", "je": "じぇ",
    "si": "し", "ti": "ち", "tu": "つ",
    "di": "ぢ", "du": "づ",
    "wo": "を",
    "n'": "ん",
}

VOWELS: Dict[str, str] = {
    "a": "あ", "i": "い", "u": "う", "e": "え", "o": "お",
}

# One row per consonant, in a/i/u/e/o order; "_" marks a gap in the grid.
_ROWS: Dict[str, str] = {
    "k": "かきくけこ",
    "g": "がぎぐげご",
    "s": "さしすせそ",
    "z": "ざじずぜぞ",
    "t": "たちつてと",
    "d": "だぢづでど",
    "n": "なにぬねの",
    "h": "はひふへほ",
    "b": "ばびぶべぼ",
    "p": "ぱぴぷぺぽ",
    "m": "まみむめも",
    "y": "や_ゆ_よ",
    "r": "らりるれろ",
    "w": "わ___を",
}

REGULAR: Dict[str, str] = {
    consonant + vowel: kana
    for consonant, row in _ROWS.items()
    for vowel, kana in zip("aiueo", row)
    if kana != "_"
}

# Later tables win on key clashes, so irregular spellings override the grid.
_TABLE: Dict[str, str] = {**VOWELS, **REGULAR, **IRREGULAR, **DIGRAPHS}
_MAX_KEY = max(len(key) for key in _TABLE)

# A whole run collapses to one っ, absorbing a っ already in front of it.
_DOUBLE_CONSONANT = re.compile(r"っ?([b-df-hj-mp-tv-z])\1+")
_BARE_N = re.compile(r"n(?![aeiouy'])")
# While typing, a trailing "n" may still become な/に/... on the next keystroke.
_BARE_N_LIVE = re.compile(r"n(?![aeiouy']|$)")


def katakana_to_hiragana(text: str) -> str:
    """Fold katakana characters into their hiragana equivalents."""
    return "".join(
        chr(ord(ch) - KATAKANA_OFFSET) if KATAKANA_START <= ord(ch) <= KATAKANA_END else ch
        for ch in text
    )


def _apply_table(text: str) -> str:
    out = []
    i = 0
    while i < len(text):
        for size in range(min(_MAX_KEY, len(text) - i), 0, -1):
            kana = _TABLE.get(text[i:i + size])
            if kana is not None:
                out.append(kana)
                i += size
                break
        else:
            out.append(text[i])
            i += 1
    return "".join(out)


def to_hiragana(text: str, live: bool = False) -> str:
    """
    Transliterate romaji (and katakana) into hiragana.

    Args:
        text: Raw input, any case, possibly mixed with kana.
        live: Set while the user is still typing. A trailing "n" is kept as
            a letter so the next keystroke can still complete "na", "ni", ...

    Returns:
        The converted string. Characters outside the tables pass through.
    """
    result = katakana_to_hiragana(text.lower())
    result = _DOUBLE_CONSONANT.sub(SOKUON + r"\1", result)
    result = _apply_table(result)
    pattern = _BARE_N_LIVE if live else _BARE_N
    return pattern.sub(HATSUON, result)
