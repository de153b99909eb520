"""Slug generation utilities for product url keys.

This module turns product names and skus into URL-safe, deterministic url
keys with Unicode support.

Key Features:
- Unicode normalization (NFD decomposition)
- ASCII transliteration
- Deterministic output (same input always gives same url key)
- Reversible enough to stay human-readable (not hash-based)

Examples:
    >>> create_url_key("Blue T-Shirt (XL)")
    'blue-t-shirt-xl'

    >>> create_url_key("Crème Brûlée Set")
    'creme-brulee-set'

    >>> create_url_key("TS_001/b")
    'ts-001-b'
"""

import re
import unicodedata

# Ligatures and letters that NFD does not decompose into ASCII
_SPECIAL_CHARACTERS = {
    "ß": "ss",
    "æ": "ae",
    "Æ": "AE",
    "ø": "o",
    "Ø": "O",
    "œ": "oe",
    "Œ": "OE",
    "ł": "l",
    "Ł": "L",
    "đ": "d",
    "Đ": "D",
    "&": " and ",
}


def create_url_key(text: str) -> str:
    """Generate a url key from free text (a product name or sku).

    Algorithm:
        1. Replace letters that have no ASCII decomposition ("ß" -> "ss")
        2. Normalize Unicode to NFD (decompose accented characters)
        3. Encode to ASCII, ignoring non-ASCII characters
        4. Convert to lowercase
        5. Replace every run of non-alphanumeric characters with one hyphen
        6. Strip leading/trailing hyphens

    Args:
        text: Text to convert

    Returns:
        URL-safe url key (lowercase, alphanumeric + hyphens only). Empty when
        the text has no usable characters.

    Examples:
        >>> create_url_key("All-Purpose Flour 25 lb")
        'all-purpose-flour-25-lb'

        >>> create_url_key("    Extra  Spaces   ")
        'extra-spaces'

        >>> create_url_key("100% Cotton")
        '100-cotton'
    """
    if not text:
        return ""

    for character, replacement in _SPECIAL_CHARACTERS.items():
        text = text.replace(character, replacement)

    normalized = unicodedata.normalize("NFD", text)
    url_key = normalized.encode("ascii", "ignore").decode("ascii")
    url_key = url_key.lower()

    # "blue t-shirt (xl)" -> "blue-t-shirt-xl-"
    url_key = re.sub(r"[^a-z0-9]+", "-", url_key)

    return url_key.strip("-")
