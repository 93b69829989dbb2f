# itinerary_core/search_optimizer.py
import logging
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence

from .data_models import IntelligentSearchResult, QueryIntent, SearchContext, SearchOptimization
from .index_manager import CATEGORY_THRESHOLD, TAG_CATEGORIES, calculate_category_scores
from .query_processor import QueryProcessor

logger = logging.getLogger(__name__)

INTEREST_BOOST = 0.15
INTENT_BOOST = 0.10
WEATHER_BOOST = 0.10
TIME_OF_DAY_BOOST = 0.05

INTENT_CATEGORIES: Dict[str, str] = {
    'cultural': 'culture',
    'culinary': 'food',
    'adventure': 'adventure',
    'shopping': 'shopping',
    'nightlife': 'nightlife',
    'relaxation': 'relaxation',
    'scenic': 'nature',
    'photography': 'nature',
}

WEATHER_CATEGORIES: Dict[str, tuple] = {
    'rainy': ('culture', 'shopping'),
    'sunny': ('nature', 'adventure'),
    'clear': ('nature', 'adventure'),
    'cold': ('food', 'culture'),
}

TIME_OF_DAY_CATEGORIES: Dict[str, tuple] = {
    'morning': ('nature',),
    'evening': ('nightlife', 'food'),
}


def _add_boost(boosts: Dict[str, float], category: str, amount: float) -> None:
    boosts[category] = round(boosts.get(category, 0.0) + amount, 4)


def _filter_recommendations(intent: QueryIntent, context: SearchContext) -> List[str]:
    recommendations = []
    if intent.confidence > 0.7:
        recommendations.append(f"Filter by {intent.primary} activities")
    if intent.entities.time_references:
        recommendations.append(f"Filter by {intent.entities.time_references[0]} availability")
    if intent.entities.preferences:
        recommendations.append(f"Apply {', '.join(intent.entities.preferences)} filters")
    if context.weather_condition != 'clear':
        recommendations.append(f"Filter by {context.weather_condition}-appropriate activities")
    if context.group_size > 4:
        recommendations.append('Filter by group-friendly activities')
    if not recommendations:
        recommendations.append(f"Optimize for {context.time_of_day} activities")
        recommendations.append(f"Filter by {', '.join(context.interests) or 'general'} interests")
    return recommendations


def generate_search_optimization(query: str, context: SearchContext,
                                 processor: Optional[QueryProcessor] = None) -> SearchOptimization:
    """
    Bundles intent, query expansion and a category -> additive boost map for
    a (query, context) pair. The plan is a plain value and safe to cache.
    """
    processor = processor or QueryProcessor()
    intent = processor.analyze_intent(query)
    expansion = processor.expand_query(query, intent)

    boosts: Dict[str, float] = {}
    for interest in context.interests:
        label = interest.lower()
        _add_boost(boosts, TAG_CATEGORIES.get(label, label), INTEREST_BOOST)

    category = INTENT_CATEGORIES.get(intent.primary)
    if category and intent.confidence > 0:
        _add_boost(boosts, category, INTENT_BOOST)

    for category in WEATHER_CATEGORIES.get(context.weather_condition, ()):
        _add_boost(boosts, category, WEATHER_BOOST)
    for category in TIME_OF_DAY_CATEGORIES.get(context.time_of_day, ()):
        _add_boost(boosts, category, TIME_OF_DAY_BOOST)

    return SearchOptimization(
        query_expansion=expansion,
        intent=intent,
        contextual_boosts=boosts,
        filter_recommendations=tuple(_filter_recommendations(intent, context)),
    )


def optimize_search_results(results: Sequence[IntelligentSearchResult], plan: SearchOptimization,
                            context: SearchContext,
                            weights: Mapping[str, float]) -> List[IntelligentSearchResult]:
    """
    Adds each matching category boost to scores.contextual, recomputes the
    composite and re-sorts. Equal composites keep their incoming order.
    """
    optimized = []
    for result in results:
        category_scores = calculate_category_scores(result.activity)
        scores = replace(result.scores)
        reasoning = list(result.reasoning)

        for category, boost in plan.contextual_boosts.items():
            if category_scores.get(category, 0.0) >= CATEGORY_THRESHOLD:
                scores.contextual = min(scores.contextual + boost, 1.0)
                reasoning.append(f"Contextual boost: {category} (+{boost:.2f})")

        scores.composite = min(scores.weighted_sum(weights), 1.0)
        optimized.append(replace(result, scores=scores, reasoning=reasoning))

    # list.sort is stable, so ties keep the incoming order
    optimized.sort(key=lambda r: -r.scores.composite)
    logger.debug("Re-ranked %d results for %s (%d boosts)",
                 len(optimized), context.time_of_day, len(plan.contextual_boosts))
    return optimized
