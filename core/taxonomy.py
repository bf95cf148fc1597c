"""
taxonomy.py
------------
Spending category taxonomy lookup layer.

Loads the category keyword table and the seeded merchant mappings from
config.yaml. Used by text feature extraction and by the rule-based
categorizer. Taxonomy updates happen in config.yaml, not in code.
"""

import re
from typing import Dict, Optional

from config.config_loader import get_category_keywords, get_merchant_mappings

_NON_WORD_RE = re.compile(r"[^\w]")


def extract_merchant_token(description: str | None) -> Optional[str]:
    """
    First whitespace-separated word of a description, lowercased, with
    non-word characters removed. None when nothing is left.
    """
    if not description:
        return None
    words = description.lower().split()
    if not words:
        return None
    token = _NON_WORD_RE.sub("", words[0])
    return token or None


def extract_merchant_name(description: str | None) -> str:
    """
    First lowercased word of a description, kept verbatim. Used for grouping
    merchant history; 'unknown' when there is no description.
    """
    if not description:
        return "unknown"
    words = description.lower().split()
    return words[0] if words else "unknown"


class CategoryTaxonomy:
    """
    Keyword lookup from free text -> per-category hit counts.

    Built once at init from the config keyword table. Read-only after that.
    """

    def __init__(self, keywords: Dict[str, list[str]] | None = None):
        source = keywords if keywords is not None else get_category_keywords()
        self._keywords: Dict[str, tuple[str, ...]] = {
            category: tuple(k.lower() for k in words) for category, words in source.items()
        }

    @property
    def categories(self) -> list[str]:
        return list(self._keywords.keys())

    def keywords_for(self, category: str) -> tuple[str, ...]:
        return self._keywords.get(category, ())

    def match_counts(self, text: str | None) -> Dict[str, int]:
        """Number of keywords of each category that occur (as substrings) in text."""
        lowered = (text or "").lower()
        return {
            category: sum(1 for keyword in words if keyword in lowered)
            for category, words in self._keywords.items()
        }

    def default_merchant_mappings(self) -> Dict[str, str]:
        """Fresh copy of the seeded merchant -> category table."""
        return {str(k).lower(): v for k, v in get_merchant_mappings().items()}

    def __len__(self) -> int:
        return len(self._keywords)

    def __repr__(self) -> str:
        return f"CategoryTaxonomy(categories={self.categories})"
