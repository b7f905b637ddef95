"""
Entry points for the farm shop engine.

Coordinates the flow: catalog filter → match pipeline → ranker for
search, and the recommendation engine for "customers also bought".

The module-level functions are pure and take snapshots directly.
ShopEngine wires them to providers (zero-argument callables returning the
current catalog and co-purchase table) and adds request logging.
"""

import random
from dataclasses import dataclass
from typing import Callable, Optional

from core.context import FilterCriteria, ProductRecord, SearchResult
from core.recommend import RecommendationEngine, cart_product_ids, make_rng
from core.search import SearchConfig, SearchStrategy
from core.structured_logging import LogContext, Timer, log_recommendation, log_search
from config.settings import EngineConfig
from config.weights import DEFAULT_RECOMMENDATION_COUNT


def run_search(
    catalog,
    query: Optional[str],
    criteria: Optional[FilterCriteria] = None,
    config: Optional[SearchConfig] = None,
) -> SearchResult:
    """
    Search a catalog snapshot and keep the stage metadata.

    Args:
        catalog: Ordered sequence of ProductRecord
        query: Free-text query (empty = every filtered product)
        criteria: Optional filter criteria
        config: Match options

    Returns:
        SearchResult with ranked matches
    """
    return SearchStrategy(config).search(catalog, query, criteria)


def search(
    catalog,
    query: Optional[str],
    criteria: Optional[FilterCriteria] = None,
    config: Optional[SearchConfig] = None,
) -> list[tuple[ProductRecord, float]]:
    """
    Search a catalog snapshot.

    Returns:
        Ranked (product, score) pairs, score 0 = perfect
    """
    return run_search(catalog, query, criteria, config).items()


def recommend(
    cart,
    catalog,
    co_occurrence=None,
    k: int = DEFAULT_RECOMMENDATION_COUNT,
    rng: Optional[random.Random] = None,
) -> list[ProductRecord]:
    """
    Recommend up to k products for a cart snapshot.

    Returns:
        Distinct products from the catalog, none of them in the cart
    """
    return RecommendationEngine().recommend(cart, catalog, co_occurrence, k, rng)


@dataclass
class EngineProviders:
    """
    Snapshot providers supplied by the surrounding application.

    Each provider is called once per engine call and must return a fresh
    snapshot; refresh and caching policy belong to the provider.
    """
    catalog: Callable[[], list]
    co_occurrence: Callable[[], dict] = dict


class ShopEngine:
    """
    Search and recommendation over provider-supplied snapshots.

    Example:
        engine = ShopEngine(
            catalog_provider=lambda: catalog,
            co_occurrence_provider=lambda: table,
            config=EngineConfig(k=4, shuffle_policy="per_session"),
        )
        hits = engine.search("carot")
        picks = engine.recommend(cart, session_id="abc123")
    """

    def __init__(
        self,
        catalog_provider: Callable[[], list],
        co_occurrence_provider: Optional[Callable[[], dict]] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.providers = EngineProviders(
            catalog=catalog_provider,
            co_occurrence=co_occurrence_provider or dict,
        )
        self.config = config or EngineConfig()
        self.strategy = SearchStrategy(self.config.search_config())
        self.recommender = RecommendationEngine(self.config.k)

    def run_search(
        self,
        query: Optional[str],
        criteria: Optional[FilterCriteria] = None,
        session_id: Optional[str] = None,
    ) -> SearchResult:
        """
        Search the current catalog.

        Args:
            query: Free-text query
            criteria: Filter criteria (configured defaults if None)
            session_id: Session identifier for logging

        Returns:
            SearchResult with ranked matches
        """
        if criteria is None:
            criteria = self.config.filter_criteria()

        with LogContext(session_id) as ctx:
            ctx.log_request("search", query=query)
            with Timer() as timer:
                catalog = self.providers.catalog()
                result = self.strategy.search(catalog, query, criteria, ctx.session_id)

            log_search(
                session_id=ctx.session_id,
                query=result.query,
                stage=result.stage.value,
                products_found=len(result.matches),
                search_time_ms=timer.elapsed_ms,
                filters=result.filters_used,
                product_ids=[m.product.id for m in result.matches],
                catalog_size=len(catalog),
                match_quality=(
                    self.strategy.ranker.match_quality(result.matches[0].score)
                    if result.matches else None
                ),
            )
            ctx.log_done("search", products_found=len(result.matches))

        return result

    def search(
        self,
        query: Optional[str],
        criteria: Optional[FilterCriteria] = None,
        session_id: Optional[str] = None,
    ) -> list[tuple[ProductRecord, float]]:
        """Search the current catalog, returning (product, score) pairs."""
        return self.run_search(query, criteria, session_id).items()

    def recommend(
        self,
        cart,
        session_id: Optional[str] = None,
        k: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> list[ProductRecord]:
        """
        Recommend products for a cart.

        Without an injected rng, the configured shuffle policy decides
        whether the random passes are stable for the session or fresh.

        Args:
            cart: CartSnapshot
            session_id: Session identifier (seeds per-session shuffling)
            k: Number of recommendations (configured k if None)
            rng: Injected random source

        Returns:
            At most k distinct products, none of them in the cart
        """
        if rng is None:
            rng = make_rng(self.config.shuffle_policy, self.config.seed, session_id)

        with LogContext(session_id) as ctx:
            ctx.log_request("recommend", k=k or self.recommender.k)
            with Timer() as timer:
                catalog = self.providers.catalog()
                table = self.providers.co_occurrence()
                trace = self.recommender.recommend_with_trace(cart, catalog, table, k, rng)

            log_recommendation(
                session_id=ctx.session_id,
                cart_size=len(cart_product_ids(cart)),
                k=k or self.recommender.k,
                product_ids=[p.id for p in trace.products],
                sources=trace.count_by_source(),
                recommend_time_ms=timer.elapsed_ms,
                shuffle_policy=self.config.shuffle_policy.value,
            )
            ctx.log_done("recommend", products_shown=len(trace.products))

        return trace.products
