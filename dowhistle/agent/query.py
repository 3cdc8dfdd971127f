"""Coordinate search grammar.

    query    := ... coord ... coord ...        (order-free, both required)
    coord    := LAT_KW sep? NUMBER | LON_KW sep? NUMBER
    LAT_KW   := "latitude" | "lat"
    LON_KW   := "longitude" | "lon" | "lng" | "long"
    sep      := ":" | "="
    NUMBER   := signed decimal

Anything else in the text is scanned for a category keyword. A coordinate
keyword not followed by a number is ignored, so text with malformed values
does not parse as a search.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_TOKEN_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)|[A-Za-z]+|\S")
_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")

LATITUDE_KEYWORDS = frozenset({"latitude", "lat"})
LONGITUDE_KEYWORDS = frozenset({"longitude", "lon", "lng", "long"})
_SEPARATORS = frozenset({":", "="})

CATEGORY_KEYWORDS = frozenset({
    # food
    "restaurant", "burger", "pizza", "biryani", "dosa", "sushi", "sandwich",
    "coffee", "cafe", "tea", "bakery", "dessert", "juice", "chinese",
    # services
    "plumber", "electrician", "carpenter", "mechanic", "salon", "laundry",
    "tailor", "pharmacy", "grocery", "doctor", "hotel", "taxi", "cab", "ride",
})
# Searching for these means "anything to eat": run the search unfiltered
GENERIC_KEYWORDS = frozenset({"restaurant"})


@dataclass(frozen=True)
class SearchQuery:
    latitude: float
    longitude: float
    keyword: str = ""


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text)


def _number_after(tokens: list[str], i: int) -> float | None:
    """Parse the number following the keyword at tokens[i], skipping one separator."""
    j = i + 1
    if j < len(tokens) and tokens[j] in _SEPARATORS:
        j += 1
    if j >= len(tokens) or not _NUMBER_RE.fullmatch(tokens[j]):
        return None
    try:
        return float(tokens[j])
    except ValueError:
        return None


def _category(word: str) -> str | None:
    """Map a word (plural forms included) onto the category vocabulary."""
    if word in CATEGORY_KEYWORDS:
        return word
    if word.endswith("ies") and word[:-3] + "y" in CATEGORY_KEYWORDS:
        return word[:-3] + "y"
    if word.endswith("es") and word[:-2] in CATEGORY_KEYWORDS:
        return word[:-2]
    if word.endswith("s") and word[:-1] in CATEGORY_KEYWORDS:
        return word[:-1]
    return None


def extract_keyword(tokens: list[str]) -> str:
    """Earliest specific category keyword; generic restaurant terms give ""."""
    for token in tokens:
        category = _category(token.lower())
        if category and category not in GENERIC_KEYWORDS:
            return category
    return ""


def parse_search_query(text: str) -> SearchQuery | None:
    """Return a SearchQuery when text carries a valid latitude and longitude."""
    tokens = tokenize(text)
    latitude: float | None = None
    longitude: float | None = None

    for i, token in enumerate(tokens):
        word = token.lower()
        if word in LATITUDE_KEYWORDS and latitude is None:
            latitude = _number_after(tokens, i)
        elif word in LONGITUDE_KEYWORDS and longitude is None:
            longitude = _number_after(tokens, i)

    if latitude is None or longitude is None:
        return None
    if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
        return None

    return SearchQuery(latitude=latitude, longitude=longitude, keyword=extract_keyword(tokens))
