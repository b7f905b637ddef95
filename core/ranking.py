"""
Result ranking for the farm shop engine.

Orders match results from any pipeline stage into one list:
- Ascending score (0 = best)
- Ties keep catalog order, so the shop's curated ordering survives
- Exact/substring results are never truncated; fuzzy and edit-distance
  results are capped
"""

from typing import Iterable, List

from core.context import MatchResult
from config.weights import MAX_FUZZY_RESULTS


class ResultRanker:
    """
    Ranks match results by score.

    Example:
        >>> ranker = ResultRanker(max_fuzzy_results=5)
        >>> ranked = ranker.rank(results)
        >>> ranker.match_quality(ranked[0].score)
        'exact'
    """

    # Upper score bound (inclusive) for each quality label
    QUALITY_BANDS = [
        (0.0, "exact"),
        (0.2, "strong"),
        (0.45, "fair"),
    ]

    def __init__(self, max_fuzzy_results: int = MAX_FUZZY_RESULTS):
        self.max_fuzzy_results = max_fuzzy_results

    def rank(self, results: Iterable[MatchResult]) -> List[MatchResult]:
        """
        Sort results by score, then catalog position.

        Args:
            results: Match results from the pipeline

        Returns:
            Ranked list; fuzzy results capped to max_fuzzy_results
        """
        ranked = []
        fuzzy_kept = 0

        # sorted() is stable, position only matters for equal scores
        for result in sorted(results, key=lambda r: (r.score, r.position)):
            if result.stage.is_fuzzy:
                if fuzzy_kept >= self.max_fuzzy_results:
                    continue
                fuzzy_kept += 1
            ranked.append(result)

        return ranked

    def match_quality(self, score: float) -> str:
        """
        Label a score for logging and display.

        Returns:
            "exact", "strong", "fair" or "weak"
        """
        for bound, label in self.QUALITY_BANDS:
            if score <= bound:
                return label
        return "weak"


def rank(results: Iterable[MatchResult], max_fuzzy_results: int = MAX_FUZZY_RESULTS) -> List[MatchResult]:
    """Rank results with a default ResultRanker."""
    return ResultRanker(max_fuzzy_results).rank(results)
