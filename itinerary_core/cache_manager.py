# itinerary_core/cache_manager.py
"""
In-process LRU caches for search results, activity lists, embeddings and
query analyses.

Each LRUCache is bounded by entry count and by an estimated payload size
(twice the length of its JSON encoding). Entries expire after their TTL and
are dropped lazily on access or by purge_expired().
"""
import asyncio
import dataclasses
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Generic, Iterable, List, Optional, Sequence, TypeVar

import numpy as np

from .data_models import SearchContext
from .settings import AppSettings

logger = logging.getLogger(__name__)

T = TypeVar('T')

WARMUP_QUERIES = (
    'beautiful places baguio',
    'food restaurants baguio',
    'nature scenic views',
    'adventure hiking trails',
    'cultural heritage sites',
    'shopping markets baguio',
)


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return str(value)


def estimate_size(value: Any) -> int:
    """Rough in-memory footprint: two bytes per character of the JSON encoding."""
    return len(json.dumps(value, default=_json_default)) * 2


@dataclass
class CacheEntry(Generic[T]):
    data: T
    timestamp: float
    ttl: float
    size: int
    tags: FrozenSet[str] = frozenset()
    access_count: int = 1
    last_accessed: float = 0.0

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    entries: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': round(self.hit_rate, 4),
            'entries': self.entries,
            'size': self.size,
            'evictions': self.evictions,
        }


class LRUCache(Generic[T]):
    """
    Size- and count-bounded cache. When either bound would be exceeded the
    least recently used entries are evicted until the new entry fits.
    """

    def __init__(self, max_size: int, default_ttl: float, max_entries: int,
                 name: str = 'cache', clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._access_order: Dict[str, int] = {}
        self._access_counter = 0
        self._current_size = 0
        self._stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def size(self) -> int:
        return self._current_size

    def set(self, key: str, value: T, ttl: Optional[float] = None, tags: Iterable[str] = ()) -> bool:
        """Stores value; returns False when the payload alone exceeds max_size."""
        size = estimate_size(value)
        if size > self.max_size:
            logger.debug("%s: payload of %d bytes exceeds max size, not cached", self.name, size)
            return False

        self.delete(key)
        self._ensure_capacity(size)

        now = self._clock()
        self._entries[key] = CacheEntry(
            data=value,
            timestamp=now,
            ttl=self.default_ttl if ttl is None else ttl,
            size=size,
            tags=frozenset(tags),
            last_accessed=now,
        )
        self._touch(key)
        self._current_size += size
        return True

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None

        now = self._clock()
        if entry.is_expired(now):
            self.delete(key)
            self._stats.misses += 1
            return None

        entry.access_count += 1
        entry.last_accessed = now
        self._touch(key)
        self._stats.hits += 1
        return entry.data

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def delete(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._access_order.pop(key, None)
        self._current_size -= entry.size
        return True

    def clear(self) -> None:
        """Drops every entry. Hit/miss/eviction counters survive; see reset_stats()."""
        self._entries.clear()
        self._access_order.clear()
        self._access_counter = 0
        self._current_size = 0

    def reset_stats(self) -> None:
        self._stats = CacheStats()

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            self.delete(key)
        return len(expired)

    def keys(self) -> List[str]:
        return list(self._entries)

    def stats(self) -> CacheStats:
        return dataclasses.replace(self._stats, entries=len(self._entries), size=self._current_size)

    def _touch(self, key: str) -> None:
        self._access_order[key] = self._access_counter
        self._access_counter += 1

    def _ensure_capacity(self, incoming: int) -> None:
        while self._entries and (len(self._entries) >= self.max_entries
                                 or self._current_size + incoming > self.max_size):
            victim = min(self._access_order, key=self._access_order.__getitem__)
            self.delete(victim)
            self._stats.evictions += 1
            logger.debug("%s: evicted %s", self.name, victim[:24])


def search_key(query: str, context: SearchContext) -> str:
    """Deterministic key; interest order and dict field order do not matter."""
    payload = {
        'query': (query or '').strip().lower(),
        'interests': sorted(i.lower() for i in context.interests),
        'weather': context.weather_condition,
        'time_of_day': context.time_of_day,
        'budget': context.budget,
        'group_size': context.group_size,
        'duration': context.duration,
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(',', ':'))
    return 'search_' + hashlib.md5(encoded.encode('utf-8')).hexdigest()


class CacheManager:
    """The four cache layers owned by one ItineraryCore."""

    LAYER_TAGS: Dict[str, FrozenSet[str]] = {
        'search': frozenset({'search', 'catalog'}),
        'activities': frozenset({'activities', 'catalog'}),
        'embeddings': frozenset({'embeddings'}),
        'analysis': frozenset({'analysis'}),
    }

    def __init__(self, settings: Optional[AppSettings] = None, clock: Callable[[], float] = time.monotonic):
        settings = settings or AppSettings()
        ttls = {
            'search': settings.search_cache_ttl,
            'activities': settings.activity_cache_ttl,
            'embeddings': settings.embedding_cache_ttl,
            'analysis': settings.analysis_cache_ttl,
        }
        self.layers: Dict[str, LRUCache] = {
            name: LRUCache(settings.cache_max_size, ttls[name], settings.cache_max_entries, name=name, clock=clock)
            for name in self.LAYER_TAGS
        }

    @property
    def search_results(self) -> LRUCache:
        return self.layers['search']

    @property
    def activities(self) -> LRUCache:
        return self.layers['activities']

    @property
    def embeddings(self) -> LRUCache:
        return self.layers['embeddings']

    @property
    def analysis(self) -> LRUCache:
        return self.layers['analysis']

    def get_search_results(self, query: str, context: SearchContext) -> Optional[Any]:
        return self.search_results.get(search_key(query, context))

    def cache_search_results(self, query: str, context: SearchContext, results: Any) -> bool:
        return self.search_results.set(search_key(query, context), results, tags=self.LAYER_TAGS['search'])

    def get_activities(self, filter_name: str) -> Optional[Any]:
        return self.activities.get(f"activities_{filter_name}")

    def cache_activities(self, filter_name: str, activities: Any) -> bool:
        return self.activities.set(f"activities_{filter_name}", activities, tags=self.LAYER_TAGS['activities'])

    def has(self, layer: str, key: str) -> bool:
        return self.layers[layer].has(key)

    def invalidate_by_tags(self, tags: Iterable[str]) -> List[str]:
        """Clears every layer whose tag set intersects tags; returns the cleared layer names."""
        wanted = set(tags)
        cleared = [name for name, layer_tags in self.LAYER_TAGS.items() if layer_tags & wanted]
        for name in cleared:
            self.layers[name].clear()
        if cleared:
            logger.info("Invalidated cache layers %s for tags %s", cleared, sorted(wanted))
        return cleared

    def purge_expired(self) -> int:
        return sum(layer.purge_expired() for layer in self.layers.values())

    def clear_all(self) -> None:
        for layer in self.layers.values():
            layer.clear()

    def reset_stats(self) -> None:
        for layer in self.layers.values():
            layer.reset_stats()

    def stats(self) -> Dict[str, Dict[str, float]]:
        return {name: layer.stats().to_dict() for name, layer in self.layers.items()}

    async def warmup_cache(self, search_fn: Callable[[str, SearchContext], Awaitable[Any]],
                           queries: Sequence[str] = WARMUP_QUERIES,
                           context: Optional[SearchContext] = None) -> int:
        """
        Runs search_fn for each warmup query and caches what comes back.
        A failing query is logged and skipped. Returns the number cached.
        """
        context = context or SearchContext(interests=('Nature & Scenery',), duration=2)
        outcomes = await asyncio.gather(*(search_fn(q, context) for q in queries), return_exceptions=True)

        warmed = 0
        for query, outcome in zip(queries, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Failed to warm up cache for query %r: %s", query, outcome)
                continue
            if self.cache_search_results(query, context, outcome):
                warmed += 1
        logger.info("Cache warmup completed (%d/%d queries)", warmed, len(queries))
        return warmed
