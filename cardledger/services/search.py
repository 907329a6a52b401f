"""
Card name normalization for search.

Card names in the dataset mix typographic and ASCII punctuation, and users
type whichever is on their keyboard. Matching happens on two forms:

- normalized: lowercased, every apostrophe-like glyph mapped to ', every
  dash-like glyph mapped to -
- fuzzy: the normalized form with apostrophes, hyphens and whitespace removed,
  so "Han's" also matches "Hans"
"""

import re

_APOSTROPHES = re.compile("[‘’‚‛′`´']")
_DASHES = re.compile("[–—―]")
_FUZZY_STRIP = re.compile(r"['\-\s]")

EXACT_MATCH = 1
FUZZY_MATCH = 2


def normalize_search_string(text: str) -> str:
    """Lowercase and unify apostrophe and dash glyphs."""
    text = _APOSTROPHES.sub("'", text.lower())
    return _DASHES.sub("-", text)


def fuzzy_search_string(text: str) -> str:
    """Normalized form with apostrophes, hyphens and whitespace stripped."""
    return _FUZZY_STRIP.sub("", normalize_search_string(text))


def match_priority(card_name: str, query: str) -> int | None:
    """
    How well `card_name` matches `query`.

    Returns EXACT_MATCH when the normalized query is a substring of the
    normalized name, FUZZY_MATCH when only the fuzzy forms match, and None
    when the name does not match at all.
    """
    normalized_query = normalize_search_string(query)
    if normalized_query in normalize_search_string(card_name):
        return EXACT_MATCH

    fuzzy_query = fuzzy_search_string(query)
    if fuzzy_query and fuzzy_query in fuzzy_search_string(card_name):
        return FUZZY_MATCH

    return None
