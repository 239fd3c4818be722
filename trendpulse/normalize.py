"""Canonical topic keys, stable topic hashes, and text helpers.

Two names that normalize to the same key are treated as the same topic when
merging across sources. Normalization is deliberately lossy: no stemming, no
locale rules, no camel-case splitting ("#ElonMusk" -> "elonmusk").
"""

import re

_NON_WORD = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")
_HASHTAG = re.compile(r"#\w+")

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193
HASH_WIDTH = 8

STOPWORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "from", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "this", "that", "these", "those", "i",
    "you", "he", "she", "it", "we", "they", "what", "which", "who", "when",
    "where", "why", "how", "all", "each", "every", "both", "few", "more",
    "most", "other", "some", "such", "no", "not", "only", "own", "same", "so",
    "than", "too", "very", "just", "also", "now", "new", "after", "says",
    "said", "over", "into", "about", "get", "got", "his", "her", "its",
    "their", "my", "your", "our", "them", "there", "here", "then",
}


def normalize_topic(name: str) -> str:
    """Canonical comparison key for a topic or hashtag.

    Lowercase, strip a single leading '#', drop anything that is not a letter,
    digit or whitespace, collapse whitespace runs, trim.
    """
    if not name:
        return ""
    key = name.strip().lower()
    if key.startswith("#"):
        key = key[1:]
    key = _NON_WORD.sub("", key)
    return _WHITESPACE.sub(" ", key).strip()


def hash_topic(name: str) -> str:
    """Stable storage key: 32-bit FNV-1a over the UTF-8 canonical key, as 8 hex digits."""
    h = FNV_OFFSET_BASIS
    for byte in normalize_topic(name).encode("utf-8"):
        h ^= byte
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return format(h, f"0{HASH_WIDTH}x")


def extract_hashtags(text: str) -> list[str]:
    """Unique, lower-cased #hashtags in order of first appearance."""
    seen = []
    for match in _HASHTAG.findall(text or ""):
        tag = match.lower()
        if tag not in seen:
            seen.append(tag)
    return seen


def significant_words(text: str, extra_stopwords: frozenset = frozenset()) -> list[str]:
    """Unique title terms that might be topics (length >= 4, not a stopword)."""
    words = _WHITESPACE.split(re.sub(r"[^\w\s]", " ", (text or "").lower()))
    out = []
    for w in words:
        if len(w) < 4 or w in STOPWORDS or w in extra_stopwords:
            continue
        if w not in out:
            out.append(w)
    return out
