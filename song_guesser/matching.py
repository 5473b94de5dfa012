"""Free-text answer matching against canonical track titles."""

import re

from .config import MATCH_THRESHOLD

# Each bracket kind is closed by its own partner; contents are usually annotations like "(Remix)".
_BRACKETED = re.compile(r"\[.*?\]|\(.*?\)|\{.*?\}")
# Word characters are ASCII only, so accented letters drop out; whitespace stays Unicode-aware.
_NON_WORD = re.compile(r"[^A-Za-z0-9_\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Lower-case, drop bracketed annotations and punctuation, collapse spaces."""
    cleaned = _BRACKETED.sub("", text.lower())
    # Unpaired brackets left over here are punctuation and go with the rest.
    cleaned = _NON_WORD.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def _words_overlap(guess_word: str, canonical_words: list[str]) -> bool:
    return any(word in guess_word or guess_word in word for word in canonical_words)


def word_overlap_ratio(guess: str, canonical_title: str) -> float:
    """Share of guess words contained in (or containing) a title word, over the longer word list."""
    guess_words = normalize(guess).split()
    canonical_words = normalize(canonical_title).split()
    if not guess_words or not canonical_words:
        return 0.0

    matched = sum(1 for word in guess_words if _words_overlap(word, canonical_words))
    return matched / max(len(guess_words), len(canonical_words))


def is_match(guess: str, canonical_title: str) -> bool:
    """Decide whether a typed guess names the canonical title."""
    if normalize(guess) == normalize(canonical_title):
        return True
    return word_overlap_ratio(guess, canonical_title) >= MATCH_THRESHOLD
