# itinerary_core/search_engine.py
import asyncio
import hashlib
import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .cache_manager import CacheManager, search_key
from .data_models import (Activity, ExpandedQuery, IndexedActivity, IntelligentSearchResult, SearchContext,
                          SearchMetadata, SignalScores)
from .embeddings import EmbeddingProvider, vector_similarity
from .index_manager import SearchIndexManager, catalog_signature
from .peak_hours import TrafficProvider
from .query_processor import QueryProcessor
from .relevance_signals import contextual_score, diversity_score, fuzzy_score, negative_term_penalty, temporal_score
from .search_optimizer import generate_search_optimization, optimize_search_results
from .settings import AppSettings
from .text_processor import generate_ngrams

logger = logging.getLogger(__name__)

STRONG_SIGNAL = 0.5

SIGNAL_LABELS = {
    'semantic': 'Query terms found in the activity',
    'vector': 'Semantically similar description',
    'fuzzy': 'Close textual match',
    'contextual': 'Fits your trip context',
    'temporal': 'Good time to visit',
    'diversity': 'Adds variety to the results',
}


def semantic_score(tokens: Sequence[str], indexed: IndexedActivity) -> float:
    """Share of raw query tokens present in the activity's indexed tokens."""
    if not tokens:
        return 0.0
    return sum(1 for token in tokens if token in indexed.tokens) / len(tokens)


def confidence_for(scores: SignalScores) -> float:
    strong = sum(1 for value in scores.signals().values() if value >= STRONG_SIGNAL)
    return min(1.0, scores.composite + 0.05 * strong)


def top_reasons(scores: SignalScores, weights: Mapping[str, float],
                factors: Mapping[str, List[str]]) -> List[str]:
    contributions = sorted(
        ((scores.signals()[name] * weights.get(name, 0.0), order, name)
         for order, name in enumerate(SignalScores.SIGNALS)),
        key=lambda item: (-item[0], item[1]),
    )
    reasons = []
    for contribution, _, name in contributions[:2]:
        if contribution <= 0:
            break
        detail = factors.get(name)
        reason = f"{SIGNAL_LABELS[name]} ({getattr(scores, name):.2f})"
        if detail:
            reason += f": {detail[0]}"
        reasons.append(reason)
    return reasons


class IntelligentSearchEngine:
    """
    Multi-signal ranking over one catalog.

    Candidates come from the inverted index (or from category / time-slot
    filters for an empty query, or the whole catalog when nothing matches).
    Each candidate gets six signals in [0, 1] combined with fixed weights;
    vector and traffic inputs are optional and degrade to neutral when absent.
    """

    def __init__(self,
                 index: Optional[SearchIndexManager] = None,
                 query_processor: Optional[QueryProcessor] = None,
                 embedding_provider: Optional[EmbeddingProvider] = None,
                 traffic_provider: Optional[TrafficProvider] = None,
                 settings: Optional[AppSettings] = None,
                 cache: Optional[CacheManager] = None):
        settings = settings or AppSettings()
        self.index = index or SearchIndexManager()
        self.query_processor = query_processor or QueryProcessor()
        self.embedding_provider = embedding_provider
        self.traffic_provider = traffic_provider
        self.weights: Dict[str, float] = settings.signal_weights()
        self.max_results = settings.max_results
        self.min_similarity = settings.min_similarity_threshold
        self.cache = cache

    def ensure_index(self, activities: Sequence[Activity]) -> None:
        if self.index.signature != catalog_signature(activities):
            self.index.build_index(activities)

    async def search(self, query: str, context: SearchContext,
                     activities: Sequence[Activity]) -> List[IntelligentSearchResult]:
        if not activities:
            return []
        self.ensure_index(activities)

        query = (query or '').strip()
        plan = self._optimization_plan(query, context)
        tokens = list(plan.query_expansion.tokens)
        candidates = self._candidates(plan.query_expansion, context)

        query_vector, vector_note = await self._query_vector(query)
        activity_vectors = await asyncio.gather(*(self._activity_vector(c.activity) for c in candidates))
        temporal = await asyncio.gather(
            *(temporal_score(c, context, self.traffic_provider) for c in candidates))

        partial: List[Tuple[IndexedActivity, SignalScores, Dict[str, List[str]]]] = []
        for indexed, activity_vector, (temporal_value, temporal_factors) in zip(candidates, activity_vectors, temporal):
            contextual_value, context_factors = contextual_score(query, indexed, context)
            multiplier, negative_factors = negative_term_penalty(indexed, plan.query_expansion.negative_terms)
            contextual_value *= multiplier
            context_factors += negative_factors
            scores = SignalScores(
                semantic=semantic_score(tokens, indexed),
                vector=vector_similarity(query_vector, activity_vector),
                fuzzy=fuzzy_score(query, indexed),
                contextual=contextual_value,
                temporal=temporal_value,
            )
            factors = {'contextual': context_factors, 'temporal': temporal_factors}
            if vector_note:
                factors['vector'] = [vector_note]
            partial.append((indexed, scores, factors))

        # Diversity depends on what ranks above, so rank on the other signals first
        partial.sort(key=lambda item: (-item[1].weighted_sum(self.weights), item[0].position))

        accepted: List[IndexedActivity] = []
        ranked: List[Tuple[IndexedActivity, IntelligentSearchResult]] = []
        for indexed, scores, factors in partial:
            scores.diversity, factors['diversity'] = diversity_score(indexed, accepted)
            scores.composite = min(scores.weighted_sum(self.weights), 1.0)
            accepted.append(indexed)

            reasoning = top_reasons(scores, self.weights, factors)
            if vector_note and vector_note not in reasoning:
                reasoning.append(vector_note)
            metadata = SearchMetadata(
                search_query=query,
                matched_terms=[t for t in plan.query_expansion.expanded if t in indexed.tokens],
                context_factors=factors['contextual'],
                temporal_factors=factors['temporal'],
            )
            ranked.append((indexed, IntelligentSearchResult(
                activity=indexed.activity, scores=scores, reasoning=reasoning, metadata=metadata)))

        ranked.sort(key=lambda item: (-item[1].scores.composite, item[0].position))
        results = optimize_search_results([r for _, r in ranked], plan, context, self.weights)

        final = []
        for result in results:
            if result.scores.composite < self.min_similarity:
                continue
            result.confidence = confidence_for(result.scores)
            final.append(result)
            if len(final) >= self.max_results:
                break

        logger.debug("Search %r: %d candidates, %d results", query, len(candidates), len(final))
        return final

    def _optimization_plan(self, query: str, context: SearchContext):
        analysis = self.cache.analysis if self.cache else None
        key = 'analysis_' + search_key(query, context)
        if analysis is not None:
            cached = analysis.get(key)
            if cached is not None:
                return cached
        plan = generate_search_optimization(query, context, self.query_processor)
        if analysis is not None:
            analysis.set(key, plan, tags=CacheManager.LAYER_TAGS['analysis'])
        return plan

    def _candidates(self, expansion: ExpandedQuery, context: SearchContext) -> List[IndexedActivity]:
        if expansion.tokens:
            # Synonyms and related terms widen recall; bigrams of the raw tokens keep phrase hits
            terms = list(expansion.expanded) + generate_ngrams(list(expansion.tokens), 2)
            found = self.index.search_by_terms(terms)
            if found:
                return found
            return self.index.all_activities()

        # No usable terms: fall back to what the trip context asks for
        seen: Dict[int, IndexedActivity] = {}
        for interest in context.interests:
            for indexed in self.index.filter_by_category(interest):
                seen.setdefault(indexed.position, indexed)
        slot = context.time_of_day if context.time_of_day != 'anytime' else 'flexible'
        for indexed in self.index.filter_by_time_slot(slot):
            seen.setdefault(indexed.position, indexed)
        return list(seen.values()) or self.index.all_activities()

    async def _query_vector(self, query: str) -> Tuple[Optional[np.ndarray], Optional[str]]:
        if self.embedding_provider is None:
            return None, 'Vector similarity unavailable: no embedding provider'
        if not query:
            return None, None
        try:
            vector = await self.embedding_provider.embed(query)
        except Exception as exc:
            logger.warning("Query embedding failed: %s", exc)
            return None, 'Vector similarity unavailable: embedding lookup failed'
        if vector is None:
            return None, 'Vector similarity unavailable: no embedding for query'
        return vector, None

    async def _activity_vector(self, activity: Activity) -> Optional[np.ndarray]:
        if self.embedding_provider is None:
            return None
        text = activity.text
        key = 'embedding_' + hashlib.md5(text.encode('utf-8')).hexdigest()
        layer = self.cache.embeddings if self.cache else None
        if layer is not None:
            cached = layer.get(key)
            if cached is not None:
                return cached
        try:
            vector = await self.embedding_provider.embed(text)
        except Exception as exc:
            logger.warning("Embedding failed for %s: %s", activity.title, exc)
            return None
        if vector is not None and layer is not None:
            layer.set(key, vector, tags=CacheManager.LAYER_TAGS['embeddings'])
        return vector
