"""Did-you-mean field suggestions by edit distance."""

import logging
from typing import Iterable

from .errors import BuildBetterMCPError

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3


def levenshtein(a: str, b: str) -> int:
    """Classic Levenshtein edit distance."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def rank(candidates: Iterable[str], name: str, max_distance: int = 3, limit: int = MAX_SUGGESTIONS) -> list[str]:
    """
    Rank candidate names by case-insensitive distance to `name`.

    Exact matches (distance 0) are excluded. Ties keep candidate order.

    Args:
        candidates: Existing names, in schema order
        name: Misspelled or missing name
        max_distance: Largest distance still suggested
        limit: Maximum number of suggestions

    Returns:
        Up to `limit` names, closest first
    """
    target = name.lower()
    scored = []
    for candidate in candidates:
        d = levenshtein(candidate.lower(), target)
        if 0 < d <= max_distance:
            scored.append((d, candidate))
    scored.sort(key=lambda item: item[0])
    return [candidate for _, candidate in scored[:limit]]


def suggest(resolver, type_name: str, field_name: str, max_distance: int = 3) -> list[str]:
    """
    Suggest existing fields of `type_name` close to `field_name`.

    Lookup failures yield [] since suggestions are only a diagnostic aid.
    """
    try:
        fields = resolver.fields(type_name)
    except BuildBetterMCPError as e:
        logger.debug("No suggestions for %s.%s: %s", type_name, field_name, e)
        return []
    return rank([f.name for f in fields], field_name, max_distance=max_distance)
