# itinerary_core/pipeline.py
"""
ItineraryCore: one index, one set of caches, one engine and one scheduler,
wired together for the HTTP layer and for tests. Nothing here is a module
global; create as many instances as needed.
"""
import copy
import logging
from dataclasses import replace
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .cache_manager import CacheManager
from .catalog import load_catalog
from .data_models import Activity, IntelligentSearchResult, ScheduledActivity, ScheduleOptions, SearchContext
from .day_scheduler import DayScheduler, distribute_across_days, group_activities_by_period
from .embeddings import EmbeddingProvider, TfidfEmbeddingProvider
from .index_manager import SearchIndexManager
from .peak_hours import StaticTrafficProvider, TrafficProvider
from .search_engine import IntelligentSearchEngine
from .settings import AppSettings, get_settings

logger = logging.getLogger(__name__)


class ItineraryCore:

    def __init__(self, settings: Optional[AppSettings] = None,
                 cache: Optional[CacheManager] = None,
                 embedding_provider: Optional[EmbeddingProvider] = None,
                 traffic_provider: Optional[TrafficProvider] = None,
                 scheduler: Optional[DayScheduler] = None):
        self.settings = settings or get_settings()
        self.cache = cache or CacheManager(self.settings)
        self.index = SearchIndexManager()
        self.embedding_provider = embedding_provider if embedding_provider is not None else TfidfEmbeddingProvider()
        self.traffic_provider = traffic_provider if traffic_provider is not None else StaticTrafficProvider()
        self.engine = IntelligentSearchEngine(
            index=self.index,
            embedding_provider=self.embedding_provider,
            traffic_provider=self.traffic_provider,
            settings=self.settings,
            cache=self.cache,
        )
        self.scheduler = scheduler or DayScheduler(self.settings)
        self.catalog: List[Activity] = []

    def load(self, activities: Optional[Sequence[Activity]] = None) -> int:
        """(Re)loads the catalog, rebuilds the index and drops every cached derivative of the old one."""
        self.catalog = list(activities) if activities is not None else load_catalog(self.settings.catalog_path)
        self.index.build_index(self.catalog)
        fit = getattr(self.embedding_provider, 'fit', None)
        if callable(fit):
            fit(self.catalog)
        self.cache.invalidate_by_tags({'catalog', 'embeddings', 'analysis'})
        return len(self.catalog)

    async def search(self, query: str, context: SearchContext,
                     catalog: Optional[Sequence[Activity]] = None) -> List[IntelligentSearchResult]:
        # Only searches over the loaded catalog are cached; the key does not cover the catalog
        if catalog is not None:
            return await self.engine.search(query, context, catalog)

        # The cache holds its own copy; every hit returns a fresh one
        cached = self.cache.get_search_results(query, context)
        if cached is not None:
            logger.debug("Search cache hit for %r", query)
            return copy.deepcopy(list(cached))
        results = await self.engine.search(query, context, self.catalog)
        self.cache.cache_search_results(query, context, tuple(copy.deepcopy(results)))
        return results

    def activities_by_category(self, category: str) -> List[Activity]:
        cached = self.cache.get_activities(f"category_{category.lower()}")
        if cached is not None:
            return list(cached)
        activities = [indexed.activity for indexed in self.index.filter_by_category(category)]
        self.cache.cache_activities(f"category_{category.lower()}", tuple(activities))
        return activities

    def schedule_day(self, activities: Sequence[Activity], options: Optional[ScheduleOptions] = None,
                     vector_scores: Optional[Mapping[str, float]] = None) -> List[ScheduledActivity]:
        return self.scheduler.schedule_activities_for_day(activities, options, vector_scores)

    def schedule_multi_day(self, activities_by_day: Sequence[Sequence[Activity]],
                           options: Optional[ScheduleOptions] = None,
                           vector_scores: Optional[Mapping[str, float]] = None) -> List[List[ScheduledActivity]]:
        return self.scheduler.schedule_multi_day_itinerary(activities_by_day, options, vector_scores)

    async def plan_itinerary(self, query: str, context: SearchContext,
                             options: Optional[ScheduleOptions] = None,
                             activities_per_day: int = 4) -> Dict[str, Any]:
        """
        Ranks the catalog for the request, spreads the best picks over
        context.duration days and schedules each day.
        """
        results = await self.search(query, context)

        # Carry the composite into the scheduler's base score
        ranked = [replace(r.activity, relevance_score=round(r.scores.composite, 4)) for r in results]
        vector_scores = {r.activity.title: r.scores.vector for r in results if r.scores.vector > 0}

        buckets = distribute_across_days(ranked, context.duration, activities_per_day)
        days = self.schedule_multi_day(buckets, options, vector_scores or None)

        start_date = context.current_time.date()
        itinerary = []
        for offset, day in enumerate(days):
            current_day = start_date + timedelta(days=offset)
            if not day:
                itinerary.append({'day': current_day.strftime('%Y-%m-%d'),
                                  'plan': [{'note': 'No activities could be scheduled for this day.'}]})
                continue
            itinerary.append({
                'day': current_day.strftime('%Y-%m-%d'),
                'plan': [item.to_dict() for item in day],
                'periods': {period: [item.title for item in items]
                            for period, items in group_activities_by_period(day).items()},
            })

        logger.info("Planned %d day(s) from %d ranked activities", len(itinerary), len(ranked))
        return {'itinerary': itinerary, 'ranked': [r.to_dict() for r in results[:activities_per_day * len(days)]]}

    def cache_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = self.cache.stats()
        stats['scheduler'] = self.scheduler.cache.stats().to_dict()
        stats['index'] = self.index.index_stats()
        return stats

    async def warmup(self) -> int:
        return await self.cache.warmup_cache(lambda query, context: self.engine.search(query, context, self.catalog))
