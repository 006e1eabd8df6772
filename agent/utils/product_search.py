"""
Flexible product matching for stock lookups.

"cimento cp 2" matches "Cimento CP-II 50kg": every query token must appear in
the product name or SKU, and the digit "2" also matches the roman "ii".
"""

import re
import unicodedata


def normalize_search_text(text: str) -> list[str]:
    """Lowercase, strip accents, split on whitespace, hyphens and slashes."""
    text = unicodedata.normalize("NFKD", (text or "").lower())
    text = "".join(char for char in text if not unicodedata.combining(char))
    text = re.sub(r"[-/]", " ", text)
    return text.split()


def product_matches_search(query: str, name: str, sku: str = "") -> bool:
    """Return True when every token of query is found in the product name/SKU."""
    tokens = normalize_search_text(query)
    if not tokens:
        return True

    product_tokens = normalize_search_text(" ".join(part for part in (name, sku) if part))
    product_text = " ".join(product_tokens)
    token_set = set(product_tokens)

    for token in tokens:
        if token in token_set or token in product_text:
            continue
        if token == "2" and ("ii" in token_set or "ii" in product_text):
            continue
        return False
    return True
