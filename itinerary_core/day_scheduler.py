# itinerary_core/day_scheduler.py
"""
Greedy interval packing of ranked activities into a day.

Each day starts as one free interval [start_time, end_time). Activities are
taken best-first; each goes into the free interval closest to one of its
category's preferred start times (or the first that fits), and the placed
span plus the break after it is cut out of the free list. Activities that do
not fit anywhere are dropped.
"""
import hashlib
import json
import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .cache_manager import LRUCache
from .data_models import Activity, ScheduledActivity, ScheduleOptions
from .settings import AppSettings

logger = logging.getLogger(__name__)

Interval = Tuple[int, int]

DEFAULT_BASE_SCORE = 0.5
VECTOR_WEIGHT = 0.7

# Tag label -> scheduling category, first match wins
TAG_SCHEDULE_CATEGORIES: Dict[str, str] = {
    'food & culinary': 'Food',
    'nature & scenery': 'Nature',
    'culture & arts': 'Culture',
    'shopping & local finds': 'Shopping',
    'adventure': 'Nature',
    'nightlife': 'Nightlife',
}

# (keywords, minutes); the category and the description are both searched
DURATION_RULES: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (('food', 'restaurant', 'café', 'cafe', 'dining'), 90),
    (('museum',), 120),
    (('park', 'nature'), 120),
    (('shopping', 'market', 'shop'), 90),
    (('tour',), 180),
)
DEFAULT_DURATION = 60

PERIODS = ('Morning', 'Afternoon', 'Evening')


def time_to_minutes(value: str) -> int:
    hours, minutes = value.split(':')
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def activity_category(activity: Activity) -> Optional[str]:
    if activity.category:
        return activity.category
    for tag in activity.tags:
        category = TAG_SCHEDULE_CATEGORIES.get(tag.lower())
        if category:
            return category
    return None


def estimate_activity_duration(activity: Activity) -> int:
    """Explicit hint when present, else a keyword-based guess in minutes."""
    if activity.duration_minutes:
        return activity.duration_minutes
    category = (activity_category(activity) or '').lower()
    description = activity.description.lower()
    for keywords, minutes in DURATION_RULES:
        if any(keyword in category or keyword in description for keyword in keywords):
            return minutes
    return DEFAULT_DURATION


def find_best_interval(duration: int, free: Sequence[Interval],
                       preferred: Sequence[str] = ()) -> Optional[Interval]:
    fitting = [interval for interval in free if interval[1] - interval[0] >= duration]
    if not fitting:
        return None

    if preferred:
        targets = [time_to_minutes(t) for t in preferred]
        # min() keeps the earliest interval on equal distance
        start, _ = min(fitting, key=lambda iv: min(abs(target - iv[0]) for target in targets))
        return start, start + duration

    start, _ = fitting[0]
    return start, start + duration


def remove_interval(free: Sequence[Interval], start: int, end: int, break_duration: int) -> List[Interval]:
    """Cuts [start, end + break) out of the free list, keeping the leftovers."""
    blocked_until = end + break_duration
    remaining = []
    for free_start, free_end in free:
        if free_end <= start or free_start >= blocked_until:
            remaining.append((free_start, free_end))
            continue
        if free_start < start:
            remaining.append((free_start, start))
        if free_end > blocked_until:
            remaining.append((blocked_until, free_end))
    return remaining


def combined_scores(activities: Sequence[Activity],
                    vector_scores: Optional[Mapping[str, float]] = None) -> Dict[str, float]:
    scores = {}
    for activity in activities:
        base = activity.relevance_score if activity.relevance_score is not None else DEFAULT_BASE_SCORE
        if vector_scores and activity.title in vector_scores:
            scores[activity.title] = VECTOR_WEIGHT * vector_scores[activity.title] + (1 - VECTOR_WEIGHT) * base
        else:
            scores[activity.title] = base
    return scores


def group_activities_by_period(scheduled: Sequence[ScheduledActivity]) -> Dict[str, List[ScheduledActivity]]:
    periods: Dict[str, List[ScheduledActivity]] = {period: [] for period in PERIODS}
    for item in scheduled:
        hour = time_to_minutes(item.start_time) // 60
        if hour < 12:
            periods['Morning'].append(item)
        elif hour < 18:
            periods['Afternoon'].append(item)
        else:
            periods['Evening'].append(item)
    return periods


def distribute_across_days(ranked: Sequence[Activity], days: int, per_day: int) -> List[List[Activity]]:
    """Round-robins the ranked list into day buckets so every day gets strong picks."""
    buckets: List[List[Activity]] = [[] for _ in range(max(days, 0))]
    if not buckets:
        return buckets
    seen = set()
    slot = 0
    for activity in ranked:
        if activity.title in seen:
            continue
        if slot >= days * per_day:
            break
        seen.add(activity.title)
        buckets[slot % days].append(activity)
        slot += 1
    return buckets


def _digest(payload) -> str:
    encoded = json.dumps(payload, sort_keys=True, separators=(',', ':'))
    return hashlib.sha1(encoded.encode('utf-8')).hexdigest()


class DayScheduler:
    """Schedules days and keeps recent results in its own short-lived LRU cache."""

    def __init__(self, settings: Optional[AppSettings] = None, cache: Optional[LRUCache] = None):
        settings = settings or AppSettings()
        self.default_options = ScheduleOptions(
            start_time=settings.day_start,
            end_time=settings.day_end,
            break_duration=settings.break_duration,
            max_activities_per_day=settings.max_activities_per_day,
        )
        self.cache = cache or LRUCache(
            max_size=settings.cache_max_size,
            default_ttl=settings.scheduler_cache_ttl,
            max_entries=settings.scheduler_cache_entries,
            name='scheduler',
        )

    def _day_key(self, activities: Sequence[Activity], options: ScheduleOptions,
                 scores: Mapping[str, float]) -> str:
        entries = [(a.title, activity_category(a), round(scores[a.title], 4), a.duration_minutes)
                   for a in activities]
        return 'day_' + _digest({'activities': entries, 'options': options.cache_fields()})

    def schedule_activities_for_day(self, activities: Sequence[Activity],
                                    options: Optional[ScheduleOptions] = None,
                                    vector_scores: Optional[Mapping[str, float]] = None) -> List[ScheduledActivity]:
        options = options or self.default_options
        scores = combined_scores(activities, vector_scores)

        key = self._day_key(activities, options, scores)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        # Best score first; among equals food before the rest, then shorter visits
        ordered = sorted(
            activities,
            key=lambda a: (-scores[a.title], activity_category(a) != 'Food', estimate_activity_duration(a)),
        )

        free: List[Interval] = [(time_to_minutes(options.start_time), time_to_minutes(options.end_time))]
        placed: List[ScheduledActivity] = []
        placed_titles = set()
        for activity in ordered:
            if len(placed) >= options.max_activities_per_day:
                break
            if activity.title in placed_titles:
                continue

            category = activity_category(activity)
            duration = estimate_activity_duration(activity)
            interval = find_best_interval(duration, free, options.preferred_times.get(category or '', ()))
            if interval is None:
                logger.debug("No free interval of %d min for %s, dropped", duration, activity.title)
                continue

            start, end = interval
            placed.append(ScheduledActivity(
                activity=activity,
                start_time=minutes_to_time(start),
                end_time=minutes_to_time(end),
                category=category,
            ))
            placed_titles.add(activity.title)
            free = remove_interval(free, start, end, options.break_duration)

        placed.sort(key=lambda item: time_to_minutes(item.start_time))
        # Cached as a tuple; callers always get a fresh list
        self.cache.set(key, tuple(placed))
        return placed

    def schedule_multi_day_itinerary(self, activities_by_day: Sequence[Sequence[Activity]],
                                     options: Optional[ScheduleOptions] = None,
                                     vector_scores: Optional[Mapping[str, float]] = None
                                     ) -> List[List[ScheduledActivity]]:
        """
        Schedules each day bucket in order. A title placed on one day is removed
        from later buckets, so it appears at most once in the itinerary.
        """
        options = options or self.default_options
        key = self._itinerary_key(activities_by_day, options, vector_scores)

        cached = self.cache.get(key)
        if cached is not None:
            try:
                return self._reconstruct(cached, activities_by_day)
            except ValueError as exc:
                logger.warning("Cached itinerary could not be reconstructed, rescheduling: %s", exc)

        days: List[List[ScheduledActivity]] = []
        used = set()
        for bucket in activities_by_day:
            remaining = [a for a in bucket if a.title not in used]
            day = self.schedule_activities_for_day(remaining, options, vector_scores) if remaining else []
            used.update(item.title for item in day)
            days.append(day)

        self.cache.set(key, tuple(tuple(day) for day in days))
        return days

    def _itinerary_key(self, activities_by_day: Sequence[Sequence[Activity]], options: ScheduleOptions,
                       vector_scores: Optional[Mapping[str, float]]) -> str:
        flat = [[(a.title, activity_category(a), a.relevance_score, a.duration_minutes) for a in day]
                for day in activities_by_day]
        vector_hash = _digest(sorted((vector_scores or {}).items()))[:16]
        return 'multiday_' + _digest({'days': flat, 'options': options.cache_fields(), 'vectors': vector_hash})

    @staticmethod
    def _reconstruct(cached: Sequence[Sequence[ScheduledActivity]],
                     activities_by_day: Sequence[Sequence[Activity]]) -> List[List[ScheduledActivity]]:
        if len(cached) != len(activities_by_day):
            raise ValueError(f"expected {len(activities_by_day)} days, cache holds {len(cached)}")
        days = []
        for index, (day, bucket) in enumerate(zip(cached, activities_by_day)):
            titles = {a.title for a in bucket}
            if any(item.title not in titles for item in day):
                raise ValueError(f"day {index + 1} does not match its activity bucket")
            days.append(list(day))
        return days
