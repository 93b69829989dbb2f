# itinerary_core/data_models.py
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

TIME_SLOTS = ('morning', 'afternoon', 'evening', 'flexible')
TIMES_OF_DAY = ('morning', 'afternoon', 'evening', 'anytime')
BUDGET_TIERS = ('budget', 'mid-range', 'luxury')


@dataclass(frozen=True)
class Activity:
    """Catalog entry for a place or experience. Loaded once per process."""
    title: str                                        # unique within a catalog
    description: str
    tags: Tuple[str, ...] = ()                        # e.g. ('Nature & Scenery', 'Outdoor-Friendly')
    time: str = ''                                    # display window, e.g. '6:00 AM – 8:00 PM'
    duration_minutes: Optional[int] = None            # explicit visit length hint
    peak_hours: Optional[str] = None                  # e.g. '10 am - 11 am / 4 pm - 6 pm'
    coordinates: Optional[Tuple[float, float]] = None  # (latitude, longitude)
    category: Optional[str] = None                    # explicit scheduling category, e.g. 'Food'
    relevance_score: Optional[float] = None           # 0-1, carried over from ranking
    sentiment_score: float = 0.0                      # -1.0 to 1.0, description polarity

    @property
    def text(self) -> str:
        return f"{self.title} {self.description} {' '.join(self.tags)}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['tags'] = list(self.tags)
        data['coordinates'] = list(self.coordinates) if self.coordinates else None
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Activity':
        coords = data.get('coordinates')
        duration = data.get('duration_minutes')
        score = data.get('relevance_score')
        return cls(
            title=str(data['title']),
            description=str(data.get('description') or data.get('desc') or ''),
            tags=tuple(data.get('tags') or ()),
            time=str(data.get('time') or ''),
            duration_minutes=int(duration) if duration is not None else None,
            peak_hours=data.get('peak_hours') or data.get('peakHours'),
            coordinates=(float(coords[0]), float(coords[1])) if coords else None,
            category=data.get('category'),
            relevance_score=float(score) if score is not None else None,
            sentiment_score=float(data.get('sentiment_score') or 0.0),
        )


@dataclass(frozen=True)
class IndexedActivity:
    """Index-side view of an Activity. Replaced wholesale on every rebuild."""
    activity: Activity
    position: int                       # catalog order, used as the final tie-break
    tokens: FrozenSet[str]              # expanded unigrams of title + description + tags
    ngrams: FrozenSet[str]              # bigrams of the unexpanded tokens
    category_scores: Mapping[str, float]  # category -> 0..1
    time_slot: str                      # one of TIME_SLOTS
    popularity: float = 0.5             # 0..1

    @property
    def title(self) -> str:
        return self.activity.title


@dataclass(frozen=True)
class SearchContext:
    """Trip constraints that accompany a single search request."""
    interests: Tuple[str, ...] = ()       # e.g. ('Nature & Scenery', 'Food & Culinary')
    weather_condition: str = 'clear'      # clear | sunny | rainy | cloudy | cold
    time_of_day: str = 'anytime'          # one of TIMES_OF_DAY
    budget: str = 'mid-range'             # one of BUDGET_TIERS
    group_size: int = 2
    duration: int = 1                     # trip length in days
    current_time: datetime = field(default_factory=datetime.now)
    preferences: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]], now: Optional[datetime] = None) -> 'SearchContext':
        """
        Builds a context from loosely-typed input; bad fields fall back to defaults.
        now replaces a missing or unparseable current_time (default: local datetime.now()).
        """
        data = data or {}
        defaults = cls()

        interests = data.get('interests') or ()
        if isinstance(interests, str):
            interests = (interests,)

        time_of_day = str(data.get('time_of_day') or data.get('timeOfDay') or defaults.time_of_day).lower()
        if time_of_day not in TIMES_OF_DAY:
            time_of_day = defaults.time_of_day

        budget = str(data.get('budget') or defaults.budget).lower()
        if budget not in BUDGET_TIERS:
            budget = defaults.budget

        current_time = data.get('current_time') or data.get('currentTime')
        if isinstance(current_time, str):
            try:
                current_time = datetime.fromisoformat(current_time)
            except ValueError:
                current_time = None
        if not isinstance(current_time, datetime):
            current_time = now or datetime.now()

        preferences = data.get('preferences') or data.get('userPreferences') or {}

        return cls(
            interests=tuple(str(i) for i in interests),
            weather_condition=str(data.get('weather_condition') or data.get('weatherCondition')
                                  or defaults.weather_condition).lower(),
            time_of_day=time_of_day,
            budget=budget,
            group_size=_as_positive_int(data.get('group_size', data.get('groupSize')), defaults.group_size),
            duration=_as_positive_int(data.get('duration'), defaults.duration),
            current_time=current_time,
            preferences=dict(preferences) if isinstance(preferences, Mapping) else {},
        )


def _as_positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


@dataclass
class SignalScores:
    """
    Per-result relevance signals. Every signal is in [0, 1].

    Default weights (see settings.AppSettings):
        semantic   .25  share of query tokens found in the activity
        vector     .20  embedding cosine similarity (0 when unavailable)
        fuzzy      .15  typo-tolerant partial match on title/description
        contextual .20  interest / weather / time-of-day / budget / party fit
        temporal   .10  peak-hours and time-slot alignment
        diversity  .10  1.0 for unseen tags, lower when already well represented
    composite is the weighted sum of the six signals, also in [0, 1].
    """
    semantic: float = 0.0
    vector: float = 0.0
    fuzzy: float = 0.0
    contextual: float = 0.0
    temporal: float = 0.0
    diversity: float = 0.0
    composite: float = 0.0

    SIGNALS = ('semantic', 'vector', 'fuzzy', 'contextual', 'temporal', 'diversity')

    def signals(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in self.SIGNALS}

    def weighted_sum(self, weights: Mapping[str, float]) -> float:
        return sum(getattr(self, name) * weights.get(name, 0.0) for name in self.SIGNALS)


@dataclass
class SearchMetadata:
    search_query: str
    matched_terms: List[str] = field(default_factory=list)
    context_factors: List[str] = field(default_factory=list)
    temporal_factors: List[str] = field(default_factory=list)


@dataclass
class IntelligentSearchResult:
    """One ranked activity for one (query, context) pair. Created fresh per call."""
    activity: Activity
    scores: SignalScores
    reasoning: List[str] = field(default_factory=list)
    confidence: float = 0.0
    metadata: Optional[SearchMetadata] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'activity': self.activity.to_dict(),
            'scores': asdict(self.scores),
            'reasoning': list(self.reasoning),
            'confidence': round(self.confidence, 4),
            'metadata': asdict(self.metadata) if self.metadata else None,
        }


@dataclass(frozen=True)
class QueryEntities:
    activities: Tuple[str, ...] = ()
    locations: Tuple[str, ...] = ()
    time_references: Tuple[str, ...] = ()
    preferences: Tuple[str, ...] = ()


@dataclass(frozen=True)
class QueryIntent:
    primary: str
    secondary: Tuple[str, ...]
    confidence: float                 # 0..1, proportional to keyword overlap of the winning rule
    entities: QueryEntities
    sentiment: float = 0.0            # TextBlob polarity of the raw query


@dataclass(frozen=True)
class ExpandedQuery:
    original: str
    tokens: Tuple[str, ...]           # raw query tokens
    expanded: Tuple[str, ...]         # tokens + synonyms + related terms, de-duplicated
    synonyms: Tuple[str, ...]
    related_terms: Tuple[str, ...]
    negative_terms: Tuple[str, ...]


@dataclass(frozen=True)
class SearchOptimization:
    """Reusable boost/filter plan for a (query, context) pair."""
    query_expansion: ExpandedQuery
    intent: QueryIntent
    contextual_boosts: Mapping[str, float]   # category -> additive boost on scores.contextual
    filter_recommendations: Tuple[str, ...]


@dataclass(frozen=True)
class ScheduleOptions:
    start_time: str = '08:00'          # HH:MM
    end_time: str = '21:00'            # HH:MM
    break_duration: int = 30           # minutes kept free after each placement
    max_activities_per_day: int = 6
    preferred_times: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: {
        'Food': ('07:00', '12:00', '18:00'),  # breakfast, lunch, dinner
        'Nature': ('09:00', '15:00'),
        'Museum': ('10:00', '14:00'),
        'Culture': ('10:00', '14:00'),
        'Shopping': ('16:00',),
        'Nightlife': ('19:00',),
    })

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'ScheduleOptions':
        data = data or {}
        defaults = cls()
        preferred = data.get('preferred_times', data.get('preferredTimes'))
        return cls(
            start_time=str(data.get('start_time') or data.get('startTime') or defaults.start_time),
            end_time=str(data.get('end_time') or data.get('endTime') or defaults.end_time),
            break_duration=int(data.get('break_duration', data.get('breakDuration', defaults.break_duration))),
            max_activities_per_day=int(data.get('max_activities_per_day',
                                                data.get('maxActivitiesPerDay', defaults.max_activities_per_day))),
            preferred_times=({k: (v,) if isinstance(v, str) else tuple(v) for k, v in preferred.items()}
                             if isinstance(preferred, Mapping) else defaults.preferred_times),
        )

    def __post_init__(self):
        # A negative break would hand back time inside the activity just placed
        if self.break_duration < 0:
            object.__setattr__(self, 'break_duration', 0)

    def cache_fields(self) -> Dict[str, Any]:
        return {
            'start_time': self.start_time,
            'end_time': self.end_time,
            'break_duration': self.break_duration,
            'max_activities_per_day': self.max_activities_per_day,
            'preferred_times': {k: list(v) for k, v in sorted(self.preferred_times.items())},
        }


@dataclass(frozen=True)
class ScheduledActivity:
    """An activity placed on [start_time, end_time) of one day."""
    activity: Activity
    start_time: str                   # HH:MM
    end_time: str                     # HH:MM
    category: Optional[str] = None

    @property
    def title(self) -> str:
        return self.activity.title

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.activity.title,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'time': f"{self.start_time}-{self.end_time}",
            'category': self.category,
            'activity': self.activity.to_dict(),
        }
