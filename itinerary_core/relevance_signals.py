# itinerary_core/relevance_signals.py
"""
Per-candidate relevance signals other than the token and vector ones.

Every scorer returns (score, factors): a value in [0, 1] and the short
human-readable reasons that produced it. Factors end up in the result's
metadata and, for the strongest signals, in its reasoning.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from fuzzywuzzy import fuzz

from .data_models import IndexedActivity, SearchContext
from .peak_hours import CongestionLevel, TrafficProvider, is_peak_hours, next_low_traffic_time

logger = logging.getLogger(__name__)

INTEREST_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    'nature & scenery': ('nature', 'scenery', 'view', 'mountain', 'park', 'garden', 'outdoor', 'landscape', 'scenic'),
    'food & culinary': ('food', 'eat', 'restaurant', 'cuisine', 'dining', 'taste', 'local', 'delicacy', 'market'),
    'culture & arts': ('culture', 'art', 'museum', 'heritage', 'history', 'traditional', 'gallery', 'craft'),
    'shopping & local finds': ('shop', 'market', 'buy', 'souvenir', 'local', 'handicraft', 'store', 'mall'),
    'adventure': ('adventure', 'hiking', 'trail', 'climb', 'explore', 'trek', 'outdoor', 'activity'),
}

WEATHER_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    'rainy': ('indoor', 'covered', 'shelter', 'mall', 'museum', 'gallery'),
    'sunny': ('outdoor', 'park', 'garden', 'view', 'hiking', 'trail'),
    'clear': ('outdoor', 'park', 'garden', 'view', 'hiking', 'trail'),
    'cold': ('warm', 'indoor', 'hot', 'cozy', 'shelter'),
    'cloudy': ('flexible', 'indoor', 'outdoor', 'covered'),
}

TIME_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    'morning': ('sunrise', 'early', 'fresh', 'quiet', 'peaceful'),
    'afternoon': ('lunch', 'busy', 'active', 'warm'),
    'evening': ('sunset', 'dinner', 'night', 'romantic', 'calm'),
}

TRAFFIC_ADJUSTMENTS: Dict[CongestionLevel, float] = {
    CongestionLevel.LOW: 0.3,
    CongestionLevel.MODERATE: 0.1,
    CongestionLevel.HIGH: -0.2,
    CongestionLevel.SEVERE: -0.4,
}

# Tag occurrences after which a tag counts as fully represented
TAG_SATURATION = 3

# Each unwanted term found costs 20% of the contextual score, at most half of it
NEGATIVE_TERM_PENALTY = 0.2
MIN_NEGATIVE_MULTIPLIER = 0.5


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(value, high))


def fuzzy_score(query: str, indexed: IndexedActivity) -> float:
    """Typo-tolerant match of the query against title (full weight) and description (0.7)."""
    text = (query or '').strip().lower()
    if not text:
        return 0.0
    title_ratio = fuzz.partial_ratio(text, indexed.activity.title.lower())
    description_ratio = fuzz.token_set_ratio(text, indexed.activity.description.lower()) * 0.7
    return max(title_ratio, description_ratio) / 100.0


def _budget_score(description: str, budget: str) -> float:
    if budget == 'budget':
        if 'free' in description:
            return 1.0
        return 0.3 if '₱' in description and '₱1' not in description else 0.7
    if budget == 'mid-range':
        return 0.8
    if budget == 'luxury':
        return 1.0 if 'premium' in description or 'luxury' in description else 0.6
    return 0.5


def _group_score(description: str, tags: Sequence[str], group_size: int) -> float:
    lowered_tags = {tag.lower() for tag in tags}
    if group_size == 1:
        return 1.0 if 'solo' in description or 'solo-friendly' in lowered_tags else 0.7
    if group_size == 2:
        return 1.0 if 'couple' in description or 'romantic' in lowered_tags else 0.8
    if group_size <= 5:
        return 1.0 if 'family-friendly' in lowered_tags else 0.8
    return 1.0 if 'group-friendly' in lowered_tags or 'group' in description else 0.6


def contextual_score(query: str, indexed: IndexedActivity, context: SearchContext) -> Tuple[float, List[str]]:
    activity = indexed.activity
    query_lower = (query or '').lower()
    title = activity.title.lower()
    description = activity.description.lower()
    tags = [tag.lower() for tag in activity.tags]
    factors: List[str] = []
    score = 0.0

    for interest in context.interests:
        keywords = INTEREST_KEYWORDS.get(interest.lower(), ())
        hits = [k for k in keywords if k in query_lower or k in title or k in description]
        if hits:
            score += len(hits) / len(keywords) * 0.3
            factors.append(f"Interest match: {interest} ({len(hits)} keywords)")

    weather_keywords = WEATHER_KEYWORDS.get(context.weather_condition, ())
    weather_hits = [k for k in weather_keywords if k in description or any(k in tag for tag in tags)]
    if weather_hits:
        score += len(weather_hits) / len(weather_keywords) * 0.2
        factors.append(f"Weather appropriate: {context.weather_condition} ({len(weather_hits)} matches)")

    time_keywords = TIME_KEYWORDS.get(context.time_of_day, ())
    time_hits = [k for k in time_keywords if k in title or k in description]
    if time_hits:
        score += len(time_hits) / len(time_keywords) * 0.15
        factors.append(f"Time relevance: {context.time_of_day} ({len(time_hits)} matches)")

    budget = _budget_score(description, context.budget)
    score += budget * 0.2
    if budget > 0:
        factors.append(f"Budget appropriate: {context.budget}")

    group = _group_score(description, activity.tags, context.group_size)
    score += group * 0.15
    if group > 0:
        factors.append(f"Group size appropriate: {context.group_size} people")

    return _clamp(score), factors


def negative_term_penalty(indexed: IndexedActivity, negative_terms: Sequence[str]) -> Tuple[float, List[str]]:
    """Multiplier for the contextual score when the activity mentions terms the query wants to avoid."""
    text = f"{indexed.activity.title} {indexed.activity.description}".lower()
    matches = [term for term in negative_terms if term in text]
    if not matches:
        return 1.0, []
    multiplier = max(MIN_NEGATIVE_MULTIPLIER, 1 - NEGATIVE_TERM_PENALTY * len(matches))
    return multiplier, [f"Negative term penalty: {', '.join(matches)}"]


def _time_alignment(time_slot: str, time_of_day: str) -> float:
    if time_of_day == 'anytime' or time_slot == 'flexible':
        return 0.7
    return 1.0 if time_slot == time_of_day else 0.3


def _duration_score(days: int) -> float:
    if days == 1:
        return 0.8
    if days == 2:
        return 0.9
    return 1.0 if days >= 3 else 0.7


async def temporal_score(indexed: IndexedActivity, context: SearchContext,
                         traffic: Optional[TrafficProvider] = None) -> Tuple[float, List[str]]:
    """
    Peak-hours alignment at context.current_time, adjusted by live congestion
    when a traffic provider is configured and the activity has coordinates.
    A failing provider only loses its adjustment.
    """
    activity = indexed.activity
    factors: List[str] = []
    score = 0.0

    if traffic is not None and activity.coordinates:
        try:
            level = await traffic.congestion(activity, context.current_time)
        except Exception as exc:
            logger.warning("Traffic data unavailable for %s: %s", activity.title, exc)
            factors.append('Traffic data unavailable - using peak hours only')
            level = None
        if level is not None:
            score += TRAFFIC_ADJUSTMENTS.get(CongestionLevel(level), 0.0)
            factors.append(f"Traffic: {CongestionLevel(level).value}")

    if activity.peak_hours:
        if is_peak_hours(activity.peak_hours, context.current_time):
            score -= 0.3
            factors.append('Currently in peak hours')
            factors.append(next_low_traffic_time(activity.peak_hours, context.current_time))
        else:
            score += 0.4
            factors.append('Currently outside peak hours')
    else:
        score += 0.2
        factors.append('No peak hour restrictions')

    alignment = _time_alignment(indexed.time_slot, context.time_of_day)
    score += alignment * 0.3
    if alignment > 0.5:
        factors.append(f"Good time alignment: {context.time_of_day}")

    duration = _duration_score(context.duration)
    score += duration * 0.3
    if duration > 0.5:
        factors.append(f"Duration appropriate: {context.duration} days")

    return _clamp(score), factors


def diversity_score(indexed: IndexedActivity, accepted: Sequence[IndexedActivity]) -> Tuple[float, List[str]]:
    """Penalizes tags and time slots already represented among the accepted results."""
    factors: List[str] = []
    tags = {tag.lower() for tag in indexed.activity.tags}

    tag_counts: Dict[str, int] = {}
    for other in accepted:
        for tag in {t.lower() for t in other.activity.tags} & tags:
            tag_counts[tag] = tag_counts.get(tag, 0) + 1

    if tags:
        saturation = sum(min(tag_counts.get(tag, 0), TAG_SATURATION) for tag in tags) / (len(tags) * TAG_SATURATION)
    else:
        saturation = 0.0
    score = 1.0 - saturation
    if saturation == 0:
        factors.append('High tag diversity')
    elif tag_counts:
        factors.append(f"Some tag overlap: {len(tag_counts)} tags")

    slot_count = sum(1 for other in accepted if other.time_slot == indexed.time_slot)
    if slot_count == 0:
        score *= 1.1
        factors.append(f"New time slot: {indexed.time_slot}")
    elif slot_count > 2:
        score *= 0.8
        factors.append(f"Overused time slot: {indexed.time_slot}")

    return _clamp(score, 0.1, 1.0), factors
