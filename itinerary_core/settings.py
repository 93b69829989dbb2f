# itinerary_core/settings.py
"""Application settings loaded from environment or .env."""
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Dict

import pytz
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CATALOG_PATH = Path(__file__).parent / 'data' / 'activities.csv'


class AppSettings(BaseSettings):
    catalog_path: Path = DEFAULT_CATALOG_PATH
    log_level: str = 'INFO'
    timezone: str = 'Asia/Manila'

    # Composite weights; must sum to 1.0
    semantic_weight: float = 0.25
    vector_weight: float = 0.20
    fuzzy_weight: float = 0.15
    contextual_weight: float = 0.20
    temporal_weight: float = 0.10
    diversity_weight: float = 0.10

    max_results: int = 50
    min_similarity_threshold: float = 0.05

    # Cache layers (sizes in bytes, TTLs in seconds)
    cache_max_size: int = 50 * 1024 * 1024
    cache_max_entries: int = 1000
    search_cache_ttl: float = 30 * 60
    activity_cache_ttl: float = 30 * 60
    embedding_cache_ttl: float = 60 * 60
    analysis_cache_ttl: float = 15 * 60

    # Day scheduler
    scheduler_cache_ttl: float = 10 * 60
    scheduler_cache_entries: int = 50
    day_start: str = '08:00'
    day_end: str = '21:00'
    break_duration: int = 30
    max_activities_per_day: int = 6

    model_config = SettingsConfigDict(env_file='.env', env_prefix='ITINERARY_', extra='ignore')

    def signal_weights(self) -> Dict[str, float]:
        return {
            'semantic': self.semantic_weight,
            'vector': self.vector_weight,
            'fuzzy': self.fuzzy_weight,
            'contextual': self.contextual_weight,
            'temporal': self.temporal_weight,
            'diversity': self.diversity_weight,
        }

    def local_now(self) -> datetime:
        """Wall-clock time in the configured timezone, naive like the peak-hour tables it is compared with."""
        return datetime.now(pytz.timezone(self.timezone)).replace(tzinfo=None)


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings()
