"""Ingredient text normalization."""
import re

DESCRIPTOR_RE = re.compile(
    r"\b(fresh|organic|free\s?range|extra|large|small|medium|chopped|diced|sliced)\b",
    re.IGNORECASE,
)
NON_WORD_RE = re.compile(r"[^\w\s]")
WHITESPACE_RE = re.compile(r"\s+")
TOKEN_RE = re.compile(r"[a-z0-9]+")

STOP_WORDS = frozenset({"the", "a", "an", "and", "or", "of", "with", "in", "for", "to"})


def normalize_ingredient(ingredient: str) -> str:
    """Lower-case, drop punctuation and descriptor words, collapse whitespace."""
    if not ingredient or not isinstance(ingredient, str):
        return ""
    text = ingredient.lower().strip()
    text = NON_WORD_RE.sub("", text)
    text = WHITESPACE_RE.sub(" ", text)
    text = DESCRIPTOR_RE.sub("", text)
    return WHITESPACE_RE.sub(" ", text).strip()


def remove_stop_words(text: str) -> str:
    return " ".join(word for word in text.split(" ") if word and word.lower() not in STOP_WORDS)


def tokenize(text: str) -> list[str]:
    """Lower-cased alphanumeric tokens."""
    return TOKEN_RE.findall((text or "").lower())
