"""
Search strategies for the farm shop engine.

Implements a cascading text match with short-circuiting stages:
- Stage 1: Exact name
- Stage 2: Whole word in name
- Stage 3: Substring in name
- Stage 4: Substring in description
- Stage 5: Weighted fuzzy, name only
- Stage 6: Weighted fuzzy, all fields
- Stage 7: Edit distance against the name and its words

A stage only runs when every earlier stage came back empty. Queries
shorter than two characters stop after stage 4.

Includes deduplication and hands results to the ranker.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from core.context import (
    FilterCriteria,
    MatchResult,
    MatchStage,
    ProductRecord,
    SearchResult,
)
from core.filters import CatalogFilter
from core.fuzzy import WeightedFieldMatcher, edit_distance_score, normalize_text
from core.product_validator import ensure_catalog, is_matchable
from core.ranking import ResultRanker
from core.structured_logging import get_logger
from config.weights import (
    ALL_FIELDS_FUZZY_THRESHOLD,
    DESCRIPTION_MATCH_SCORE,
    EDIT_DISTANCE_RATIO,
    FIELD_WEIGHTS,
    MAX_FUZZY_RESULTS,
    MIN_FUZZY_QUERY_LENGTH,
    NAME_FUZZY_THRESHOLD,
    NAME_MATCH_SCORE,
)

# Module-level logger
_logger = get_logger("core.search")


@dataclass
class SearchConfig:
    """
    Configuration for search behavior.

    Attributes:
        threshold: Name-only fuzzy stage accepts scores <= this
        score_cutoff: All-fields fuzzy stage accepts scores <= this
        prefer_name_matches: Run description substring as its own, later
            stage (True) or merge it with the name substring stage (False)
        max_fuzzy_results: Cap on fuzzy/edit-distance results
        edit_distance_ratio: Allowed edit distance as a fraction of length
        min_fuzzy_query_length: Shorter queries skip stages 5-7
        field_weights: Relative field weights for fuzzy matching
        enable_deduplication: Remove duplicate product ids
    """
    threshold: float = NAME_FUZZY_THRESHOLD
    score_cutoff: float = ALL_FIELDS_FUZZY_THRESHOLD
    prefer_name_matches: bool = True
    max_fuzzy_results: int = MAX_FUZZY_RESULTS
    edit_distance_ratio: float = EDIT_DISTANCE_RATIO
    min_fuzzy_query_length: int = MIN_FUZZY_QUERY_LENGTH
    field_weights: dict = field(default_factory=lambda: dict(FIELD_WEIGHTS))
    enable_deduplication: bool = True


class SearchStrategy:
    """
    Implements the cascading match pipeline.

    Example:
        strategy = SearchStrategy()
        result = strategy.search(catalog, "carot")
        # Returns: SearchResult with ranked matches and the stage used
        print(result.stage, [p.name for p in result.products()])
    """

    def __init__(self, config: Optional[SearchConfig] = None):
        """
        Initialize search strategy.

        Args:
            config: Search configuration (uses defaults if None)
        """
        self.config = config or SearchConfig()
        self.ranker = ResultRanker(self.config.max_fuzzy_results)
        self.catalog_filter = CatalogFilter()
        self._name_matcher = WeightedFieldMatcher(self.config.field_weights, fields=("name",))
        self._all_fields_matcher = WeightedFieldMatcher(self.config.field_weights)

    def search(
        self,
        catalog,
        query: Optional[str],
        criteria: Optional[FilterCriteria] = None,
        session_id: Optional[str] = None,
    ) -> SearchResult:
        """
        Filter the catalog, match the query and rank the results.

        Args:
            catalog: Ordered sequence of ProductRecord
            query: Free-text query (empty = every filtered product)
            criteria: Optional filter criteria
            session_id: Session identifier passed to the filter log

        Returns:
            SearchResult with ranked matches and the stage that produced them
        """
        filters_used = criteria.to_dict() if criteria is not None else {}
        filtered = self.catalog_filter.apply(catalog, criteria, session_id)

        stage, results = self._run_stages(filtered, query)
        ranked = self.ranker.rank(results)

        return SearchResult(
            matches=ranked,
            stage=stage,
            query=normalize_text(query),
            total_count=len(results),
            filters_used=filters_used,
        )

    def match(self, catalog, query: Optional[str]) -> list[MatchResult]:
        """
        Run the match pipeline over an already filtered catalog.

        Args:
            catalog: Ordered sequence of ProductRecord
            query: Free-text query

        Returns:
            Accepted results of the first stage that matched anything
        """
        _, results = self._run_stages(catalog, query)
        return results

    # === Stage Driver ===

    def _run_stages(self, catalog, query: Optional[str]) -> tuple[MatchStage, list[MatchResult]]:
        ensure_catalog(catalog)

        if query is None:
            query = ""
        if not isinstance(query, str):
            raise TypeError(f"query must be a string, got {type(query).__name__}")

        q = normalize_text(query)

        if not q:
            return MatchStage.PASS_THROUGH, [
                MatchResult(p, NAME_MATCH_SCORE, "name", MatchStage.PASS_THROUGH, pos)
                for pos, p in enumerate(catalog)
            ]

        candidates = [(pos, p) for pos, p in enumerate(catalog) if is_matchable(p)]

        stages = [
            (MatchStage.EXACT, self._exact_stage),
            (MatchStage.WHOLE_WORD, self._whole_word_stage),
        ]
        if self.config.prefer_name_matches:
            stages.append((MatchStage.NAME_SUBSTRING, self._name_substring_stage))
            stages.append((MatchStage.DESCRIPTION_SUBSTRING, self._description_substring_stage))
        else:
            stages.append((MatchStage.NAME_SUBSTRING, self._any_substring_stage))

        if len(q) >= self.config.min_fuzzy_query_length:
            stages.extend([
                (MatchStage.FUZZY_NAME, self._fuzzy_name_stage),
                (MatchStage.FUZZY_ALL_FIELDS, self._fuzzy_all_fields_stage),
                (MatchStage.EDIT_DISTANCE, self._edit_distance_stage),
            ])

        for stage, run in stages:
            results = run(q, candidates)

            _logger.debug(
                f"Stage {stage.value}: {len(results)} products",
                extra={
                    "event": f"search_stage_{stage.value}",
                    "query": q,
                    "stage": stage.value,
                    "products_found": len(results),
                }
            )

            if results:
                if self.config.enable_deduplication:
                    results = self._deduplicate(results)
                if stage.is_fuzzy:
                    # Cap after dedupe so repeated ids do not take up slots
                    results = results[:self.config.max_fuzzy_results]
                return stage, results

        return MatchStage.NONE, []

    # === Exact / Substring Stages ===

    def _exact_stage(self, q, candidates) -> list[MatchResult]:
        return [
            MatchResult(p, NAME_MATCH_SCORE, "name", MatchStage.EXACT, pos)
            for pos, p in candidates
            if normalize_text(p.name) == q
        ]

    def _whole_word_stage(self, q, candidates) -> list[MatchResult]:
        # Lookarounds instead of \b so queries with punctuation still anchor
        pattern = re.compile(r"(?<!\w)" + re.escape(q) + r"(?!\w)")
        return [
            MatchResult(p, NAME_MATCH_SCORE, "name", MatchStage.WHOLE_WORD, pos)
            for pos, p in candidates
            if pattern.search(normalize_text(p.name))
        ]

    def _name_substring_stage(self, q, candidates) -> list[MatchResult]:
        return [
            MatchResult(p, NAME_MATCH_SCORE, "name", MatchStage.NAME_SUBSTRING, pos)
            for pos, p in candidates
            if q in normalize_text(p.name)
        ]

    def _description_substring_stage(self, q, candidates) -> list[MatchResult]:
        return [
            MatchResult(p, DESCRIPTION_MATCH_SCORE, "description", MatchStage.DESCRIPTION_SUBSTRING, pos)
            for pos, p in candidates
            if q in normalize_text(p.description)
        ]

    def _any_substring_stage(self, q, candidates) -> list[MatchResult]:
        results = []
        for pos, p in candidates:
            if q in normalize_text(p.name):
                results.append(MatchResult(p, NAME_MATCH_SCORE, "name", MatchStage.NAME_SUBSTRING, pos))
            elif q in normalize_text(p.description):
                results.append(
                    MatchResult(p, DESCRIPTION_MATCH_SCORE, "description", MatchStage.NAME_SUBSTRING, pos)
                )
        return results

    # === Approximate Stages ===

    def _fuzzy_name_stage(self, q, candidates) -> list[MatchResult]:
        hits = self._name_matcher.search(q, candidates, self.config.threshold)
        return [
            MatchResult(h.product, h.score, h.matched_field, MatchStage.FUZZY_NAME, h.position)
            for h in hits
        ]

    def _fuzzy_all_fields_stage(self, q, candidates) -> list[MatchResult]:
        hits = self._all_fields_matcher.search(q, candidates, self.config.score_cutoff)
        return [
            MatchResult(h.product, h.score, h.matched_field, MatchStage.FUZZY_ALL_FIELDS, h.position)
            for h in hits
        ]

    def _edit_distance_stage(self, q, candidates) -> list[MatchResult]:
        results = []
        for pos, p in candidates:
            score = edit_distance_score(q, normalize_text(p.name), self.config.edit_distance_ratio)
            if score is not None:
                results.append(MatchResult(p, score, "name", MatchStage.EDIT_DISTANCE, pos))

        results.sort(key=lambda r: (r.score, r.position))
        return results

    # === Result Processing ===

    def _deduplicate(self, results: list[MatchResult]) -> list[MatchResult]:
        """
        Remove results whose product id was already seen.

        Args:
            results: Results of one stage (may repeat an id)

        Returns:
            Results with the first occurrence of each id kept
        """
        seen = set()
        unique = []

        for result in results:
            if result.product.id not in seen:
                seen.add(result.product.id)
                unique.append(result)

        return unique


def match(catalog, query: Optional[str], config: Optional[SearchConfig] = None) -> list[MatchResult]:
    """Run the match pipeline with a default or given configuration."""
    return SearchStrategy(config).match(catalog, query)
