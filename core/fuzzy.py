"""
Field-weighted approximate text matching.

Scores a query against the text fields of a product:
- Per field: a substring hit is perfect; otherwise the best normalized
  Levenshtein distance (rapidfuzz) against the whole field, each word,
  and each run of words as long as the query
- Across fields: weighted geometric mean, so the name dominates but a
  strong description or category hit can still pull a product in

All scores use the 0 = perfect, 1 = no match convention.
"""

import math
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from rapidfuzz.distance import Levenshtein

from core.context import ProductRecord
from config.weights import FIELD_WEIGHTS, EDIT_DISTANCE_RATIO


# A perfect field score would zero out the geometric mean; clamp to this
_SCORE_FLOOR = 0.001

_WORD_PATTERN = re.compile(r"\w+")


def normalize_text(text: Optional[str]) -> str:
    """Lower-case and collapse whitespace."""
    if not text:
        return ""
    return " ".join(str(text).lower().split())


def split_words(text: str) -> list[str]:
    """Split normalized text into words (letters, digits, underscore)."""
    return _WORD_PATTERN.findall(text)


def _word_runs(words: list[str], size: int) -> list[str]:
    return [" ".join(words[i:i + size]) for i in range(len(words) - size + 1)]


def field_score(query: str, text: str) -> float:
    """
    Distance score of a query against one field.

    Comparisons are length-aware: a short piece of the field never
    scores well against a longer query.

    Args:
        query: Normalized query
        text: Normalized field text

    Returns:
        Score in [0, 1], 1.0 for an empty field
    """
    if not query or not text:
        return 1.0
    if query in text:
        return 0.0

    words = split_words(text)
    targets = {text, *words}
    query_size = len(split_words(query))
    if query_size > 1:
        targets.update(_word_runs(words, query_size))

    best = 1.0
    for target in targets:
        max_len = max(len(query), len(target))
        best = min(best, levenshtein_distance(query, target) / max_len)
    return best


def _product_fields(product: ProductRecord) -> dict[str, str]:
    return {
        "name": normalize_text(product.name),
        "description": normalize_text(product.description),
        "category": normalize_text(product.category_text),
    }


@dataclass
class FuzzyHit:
    """A product scored by the weighted matcher."""
    position: int
    product: ProductRecord
    score: float
    matched_field: str


class WeightedFieldMatcher:
    """
    Field-weighted approximate matcher.

    Example:
        >>> matcher = WeightedFieldMatcher(fields=("name",))
        >>> hits = matcher.search("carot", enumerate(catalog), threshold=0.45, limit=10)
    """

    def __init__(
        self,
        weights: Optional[dict[str, float]] = None,
        fields: Optional[Iterable[str]] = None,
    ):
        """
        Args:
            weights: Field name -> relative weight (defaults to FIELD_WEIGHTS)
            fields: Fields to consider (defaults to every weighted field)
        """
        weights = dict(weights or FIELD_WEIGHTS)
        if fields is not None:
            weights = {f: weights[f] for f in fields}

        total = sum(weights.values())
        if total <= 0:
            raise ValueError("field weights must sum to a positive number")

        # Exponents of the weighted geometric mean
        self.norm_weights = {f: w / total for f, w in weights.items()}

    def score(self, query: str, product: ProductRecord) -> tuple[float, str]:
        """
        Score a product against a normalized query.

        Returns:
            (score, field) where field is the best-matching field
        """
        texts = _product_fields(product)

        log_total = 0.0
        best_field = None
        best_field_score = 2.0

        for name, weight in self.norm_weights.items():
            s = field_score(query, texts.get(name, ""))
            if s < best_field_score:
                best_field_score = s
                best_field = name
            log_total += weight * math.log(max(s, _SCORE_FLOOR))

        combined = math.exp(log_total)
        # exp(log(floor)) can land a hair above the floor; a perfect
        # single-field hit must still read as 0
        if combined <= _SCORE_FLOOR or math.isclose(combined, _SCORE_FLOOR):
            combined = 0.0
        return min(combined, 1.0), best_field

    def search(
        self,
        query: str,
        candidates: Iterable[tuple[int, ProductRecord]],
        threshold: float,
        limit: Optional[int] = None,
    ) -> list[FuzzyHit]:
        """
        Score candidates and keep the best ones.

        Args:
            query: Normalized query
            candidates: (catalog position, product) pairs
            threshold: Accept scores at or below this
            limit: Keep at most this many hits (None = all)

        Returns:
            Hits sorted by score, ties in catalog order
        """
        hits = []
        for position, product in candidates:
            score, matched_field = self.score(query, product)
            if score <= threshold:
                hits.append(FuzzyHit(position, product, score, matched_field))

        hits.sort(key=lambda h: (h.score, h.position))
        if limit is not None:
            hits = hits[:limit]
        return hits


# =============================================================================
# Edit distance
# =============================================================================

def levenshtein_distance(a: str, b: str, score_cutoff: Optional[int] = None) -> int:
    """
    Minimum single-character insertions, deletions or substitutions.

    With score_cutoff, any distance above it comes back as score_cutoff + 1.
    """
    return Levenshtein.distance(a, b, score_cutoff=score_cutoff)


def max_allowed_distance(query: str, target: str, ratio: float = EDIT_DISTANCE_RATIO) -> int:
    """floor(ratio * max(len(query), len(target)))"""
    return math.floor(ratio * max(len(query), len(target)))


def edit_distance_score(
    query: str,
    name: str,
    ratio: float = EDIT_DISTANCE_RATIO,
) -> Optional[float]:
    """
    Typo-tolerant comparison of a query with a product name.

    The query is compared with the whole name and with each word of it,
    so "carot" reaches "Fresh Carrots" through "carrots". A target is
    accepted when its distance is within max_allowed_distance.

    Score conversion: similarity = 1 - distance / max_len, where max_len is
    max(len(query), len(target)); the returned score is 1 - similarity,
    i.e. distance / max_len, so 0 is a perfect match like everywhere else.

    Args:
        query: Normalized query
        name: Normalized product name
        ratio: Allowed distance as a fraction of the longer string

    Returns:
        Best accepted score, or None if no target is close enough
    """
    if not query or not name:
        return None

    targets = [name]
    for word in split_words(name):
        if word != name:
            targets.append(word)

    best = None
    for target in targets:
        max_len = max(len(query), len(target))
        allowed = max_allowed_distance(query, target, ratio)
        distance = levenshtein_distance(query, target, score_cutoff=allowed)
        if distance > allowed:
            continue
        score = distance / max_len
        if best is None or score < best:
            best = score

    return best
