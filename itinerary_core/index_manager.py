# itinerary_core/index_manager.py
"""
Inverted index over the activity catalog.

The index maps every expanded token and bigram of an activity's title,
description and tags to the catalog positions that contain it. Alongside it
sit per-activity category scores, an inferred time slot and a popularity
score, plus category / time-slot / tag lookup tables used for filtering.
"""
import logging
import math
import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .data_models import Activity, IndexedActivity
from .text_processor import expand_tokens, generate_ngrams, tokenize

logger = logging.getLogger(__name__)

# Keyword table for category scoring; a category's tag labels count as keywords too
CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    'nature': ('nature', 'park', 'garden', 'mountain', 'view', 'scenic', 'outdoor', 'trail', 'lake', 'pine'),
    'culture': ('museum', 'heritage', 'history', 'historic', 'traditional', 'art', 'culture', 'cathedral', 'village'),
    'food': ('food', 'restaurant', 'cuisine', 'dining', 'eat', 'taste', 'delicacies', 'cafe', 'treats'),
    'shopping': ('shop', 'market', 'buy', 'store', 'souvenir', 'mall', 'handicrafts', 'retail'),
    'adventure': ('adventure', 'hiking', 'trail', 'climb', 'explore', 'trek', 'horseback', 'staircase'),
    'relaxation': ('peaceful', 'quiet', 'calm', 'serene', 'relaxing', 'refreshing', 'lush'),
    'nightlife': ('night', 'evening', 'bar', 'music', 'nightlife'),
}

TAG_CATEGORIES: Dict[str, str] = {
    'nature & scenery': 'nature',
    'culture & arts': 'culture',
    'food & culinary': 'food',
    'shopping & local finds': 'shopping',
    'adventure': 'adventure',
}

# Minimum category score for an activity to be listed under that category
CATEGORY_THRESHOLD = 0.1

_TIME_PATTERN = re.compile(r'(\d{1,2})(?::(\d{2}))?\s*(am|pm)', re.IGNORECASE)
_FAMOUS_KEYWORDS = ('famous', 'popular', 'must-see', 'iconic', 'landmark', 'premier')


def calculate_category_scores(activity: Activity) -> Dict[str, float]:
    """Scores each category 0-1 from tag and keyword overlap with the activity text."""
    text_tokens = set(tokenize(f"{activity.title} {activity.description}"))
    tag_categories = {TAG_CATEGORIES.get(tag.lower()) for tag in activity.tags}

    scores: Dict[str, float] = {}
    for category, keywords in CATEGORY_KEYWORDS.items():
        hits = sum(1 for keyword in keywords if keyword in text_tokens)
        score = 0.0
        if hits:
            score = min(hits / len(keywords) + 0.1, 1.0)
        if category in tag_categories:
            score = min(score + 0.6, 1.0)
        scores[category] = round(score, 4)
    return scores


def parse_clock(text: str) -> Optional[int]:
    """'9:30 PM' -> minutes since midnight, None when no clock time is found."""
    match = _TIME_PATTERN.search(text)
    if not match:
        return None
    hour = int(match.group(1)) % 12
    minute = int(match.group(2) or 0)
    if match.group(3).lower() == 'pm':
        hour += 12
    return hour * 60 + minute


def determine_time_slot(display_window: str) -> str:
    """Infers morning / afternoon / evening / flexible from a display window string."""
    window = (display_window or '').lower()
    if not window or '24 hours' in window or 'anytime' in window:
        return 'flexible'
    if 'night' in window or 'evening' in window:
        return 'evening'

    times = [parse_clock(part) for part in re.split(r'[–—-]', window)]
    opening = times[0] if times else None
    closing = times[1] if len(times) > 1 else None
    if opening is None:
        if 'morning' in window:
            return 'morning'
        if 'afternoon' in window:
            return 'afternoon'
        return 'flexible'

    if closing is not None:
        span = (closing - opening) % (24 * 60)
        if span >= 10 * 60:
            return 'flexible'
    if opening >= 17 * 60:
        return 'evening'
    if opening >= 12 * 60:
        return 'afternoon'
    return 'morning'


def calculate_popularity(activity: Activity) -> float:
    description = activity.description.lower()
    score = 0.5
    if 'free' in description:
        score += 0.1
    score += 0.1 * sum(1 for keyword in _FAMOUS_KEYWORDS if keyword in description)
    if 'center' in description or 'central' in description:
        score += 0.1
    # Positive reviews/descriptions push popularity up, negative ones down
    score += 0.2 * activity.sentiment_score
    return max(0.0, min(score, 1.0))


@dataclass
class _IndexState:
    activities: List[IndexedActivity] = field(default_factory=list)
    by_title: Dict[str, IndexedActivity] = field(default_factory=dict)
    token_index: Dict[str, List[int]] = field(default_factory=dict)
    category_index: Dict[str, List[int]] = field(default_factory=dict)
    time_slot_index: Dict[str, List[int]] = field(default_factory=dict)
    tag_index: Dict[str, List[int]] = field(default_factory=dict)
    signature: Tuple[str, ...] = ()
    built_at: float = 0.0


class SearchIndexManager:
    """Owns one inverted index; rebuilds replace it atomically."""

    def __init__(self):
        self._state = _IndexState()

    @property
    def is_built(self) -> bool:
        return bool(self._state.activities)

    @property
    def signature(self) -> Tuple[str, ...]:
        return self._state.signature

    def build_index(self, activities: Sequence[Activity]) -> None:
        """
        Indexes the catalog. The new index is assembled on the side and swapped
        in with a single assignment, so readers never see a half-built index.
        """
        started = time.perf_counter()
        state = _IndexState(signature=catalog_signature(activities))

        for position, activity in enumerate(activities):
            base_tokens = tokenize(f"{activity.title} {activity.description}")
            tag_tokens = tokenize(' '.join(activity.tags))
            tokens = frozenset(expand_tokens(base_tokens + tag_tokens))
            ngrams = frozenset(generate_ngrams(base_tokens, 2))

            indexed = IndexedActivity(
                activity=activity,
                position=position,
                tokens=tokens,
                ngrams=ngrams,
                category_scores=calculate_category_scores(activity),
                time_slot=determine_time_slot(activity.time),
                popularity=calculate_popularity(activity),
            )
            state.activities.append(indexed)
            state.by_title[activity.title] = indexed

            for term in tokens | ngrams:
                state.token_index.setdefault(term, []).append(position)
            for category, score in indexed.category_scores.items():
                if score >= CATEGORY_THRESHOLD:
                    state.category_index.setdefault(category, []).append(position)
            state.time_slot_index.setdefault(indexed.time_slot, []).append(position)
            for tag in activity.tags:
                state.tag_index.setdefault(tag.lower(), []).append(position)

        state.built_at = time.time()
        self._state = state
        logger.info("Search index built in %.1fms for %d activities (%d terms)",
                    (time.perf_counter() - started) * 1000, len(state.activities), len(state.token_index))

    def search_by_tokens(self, query: str, limit: Optional[int] = None) -> List[IndexedActivity]:
        """
        Ranks activities by accumulated token-hit weight. Rare tokens weigh more
        (inverse document frequency); ties keep catalog order.
        """
        tokens = tokenize(query)
        return self.search_by_terms(expand_tokens(tokens) + generate_ngrams(tokens, 2), limit)

    def search_by_terms(self, terms: Sequence[str], limit: Optional[int] = None) -> List[IndexedActivity]:
        """Same weighting as search_by_tokens over already-normalized terms and bigrams."""
        state = self._state
        if not state.activities:
            return []

        total = len(state.activities)

        weights: Dict[int, float] = {}
        for term in dict.fromkeys(terms):
            postings = state.token_index.get(term)
            if not postings:
                continue
            idf = math.log(1 + total / len(postings))
            for position in postings:
                weights[position] = weights.get(position, 0.0) + idf

        ranked = sorted(weights.items(), key=lambda item: (-item[1], item[0]))
        if limit is not None:
            ranked = ranked[:limit]
        return [state.activities[position] for position, _ in ranked]

    def filter_by_category(self, category: str) -> List[IndexedActivity]:
        category = category.lower()
        category = TAG_CATEGORIES.get(category, category)
        positions = self._state.category_index.get(category, [])
        matches = [self._state.activities[p] for p in positions]
        return sorted(matches, key=lambda a: (-a.category_scores.get(category, 0.0), a.position))

    def filter_by_time_slot(self, time_slot: str) -> List[IndexedActivity]:
        positions = self._state.time_slot_index.get(time_slot.lower(), [])
        matches = [self._state.activities[p] for p in positions]
        return sorted(matches, key=lambda a: (-a.popularity, a.position))

    def filter_by_tags(self, tags: Sequence[str]) -> List[IndexedActivity]:
        positions = set()
        for tag in tags:
            positions.update(self._state.tag_index.get(tag.lower(), []))
        matches = [self._state.activities[p] for p in positions]
        return sorted(matches, key=lambda a: (-a.popularity, a.position))

    def get_activity(self, title: str) -> Optional[IndexedActivity]:
        return self._state.by_title.get(title)

    def all_activities(self) -> List[IndexedActivity]:
        return list(self._state.activities)

    def index_stats(self) -> Dict[str, object]:
        state = self._state
        return {
            'total_activities': len(state.activities),
            'total_terms': len(state.token_index),
            'total_categories': len(state.category_index),
            'total_tags': len(state.tag_index),
            'last_indexed': state.built_at,
        }


def catalog_signature(activities: Sequence[Activity]) -> Tuple[str, ...]:
    return tuple(activity.title for activity in activities)
