import asyncio
from datetime import datetime

from itinerary_core.data_models import SearchContext
from itinerary_core.peak_hours import CongestionLevel
from itinerary_core.relevance_signals import (contextual_score, diversity_score, fuzzy_score, negative_term_penalty,
                                             temporal_score)

OFF_PEAK = datetime(2024, 6, 3, 14, 0)
IN_PEAK = datetime(2024, 6, 3, 10, 30)


class FailingTraffic:
    async def congestion(self, activity, moment):
        raise ConnectionError("feed down")


class FixedTraffic:
    def __init__(self, level):
        self.level = level

    async def congestion(self, activity, moment):
        return self.level


def test_fuzzy_score_tolerates_typos(built_index):
    burnham = built_index.get_activity("Burnham Park")

    assert fuzzy_score("burnam park", burnham) > 0.8
    assert fuzzy_score("", burnham) == 0.0
    assert fuzzy_score("BURNHAM", burnham) == 1.0


def test_contextual_score_rewards_matching_interests(built_index):
    museum = built_index.get_activity("Bencab Museum")
    culture = SearchContext(interests=('Culture & Arts',))
    nature = SearchContext(interests=('Nature & Scenery',))

    culture_score, factors = contextual_score("", museum, culture)
    nature_score, _ = contextual_score("", museum, nature)

    assert culture_score > nature_score
    assert any(f.startswith("Interest match: Culture & Arts") for f in factors)
    assert 0.0 <= culture_score <= 1.0


def test_temporal_score_prefers_off_peak(built_index):
    burnham = built_index.get_activity("Burnham Park")

    off_peak, off_factors = asyncio.run(temporal_score(burnham, SearchContext(current_time=OFF_PEAK)))
    in_peak, in_factors = asyncio.run(temporal_score(burnham, SearchContext(current_time=IN_PEAK)))

    assert off_peak > in_peak
    assert 'Currently outside peak hours' in off_factors
    assert 'Currently in peak hours' in in_factors


def test_temporal_score_survives_traffic_failure(built_index):
    burnham = built_index.get_activity("Burnham Park")
    context = SearchContext(current_time=OFF_PEAK)

    score, factors = asyncio.run(temporal_score(burnham, context, FailingTraffic()))
    baseline, _ = asyncio.run(temporal_score(burnham, context))

    assert score == baseline
    assert 'Traffic data unavailable - using peak hours only' in factors


def test_traffic_level_shifts_temporal_score(built_index):
    burnham = built_index.get_activity("Burnham Park")
    context = SearchContext(current_time=OFF_PEAK)

    low, _ = asyncio.run(temporal_score(burnham, context, FixedTraffic(CongestionLevel.LOW)))
    severe, _ = asyncio.run(temporal_score(burnham, context, FixedTraffic(CongestionLevel.SEVERE)))

    assert low > severe
    assert 0.0 <= severe <= low <= 1.0


def test_traffic_is_only_asked_for_activities_with_coordinates(built_index):
    museum = built_index.get_activity("Bencab Museum")

    _, factors = asyncio.run(temporal_score(museum, SearchContext(current_time=OFF_PEAK), FailingTraffic()))

    assert 'Traffic data unavailable - using peak hours only' not in factors


def test_diversity_penalizes_represented_tags_and_slots(built_index):
    wright = built_index.get_activity("Wright Park")
    trail = built_index.get_activity("Camp John Hay Yellow Trail")
    burnham = built_index.get_activity("Burnham Park")

    fresh, _ = diversity_score(wright, [])
    crowded, factors = diversity_score(wright, [trail, trail, trail])

    assert fresh == 1.0
    assert crowded == 0.1
    assert any(f.startswith("Overused time slot") for f in factors)
    assert 0.1 < diversity_score(wright, [burnham])[0] < 1.0


def test_in_peak_factors_say_when_to_come_back(built_index):
    burnham = built_index.get_activity("Burnham Park")

    _, factors = asyncio.run(temporal_score(burnham, SearchContext(current_time=IN_PEAK)))

    assert "Best to visit after 11:00 AM" in factors


def test_negative_terms_shrink_the_contextual_multiplier(built_index):
    market = built_index.get_activity("Baguio Night Market")
    museum = built_index.get_activity("Bencab Museum")

    multiplier, factors = negative_term_penalty(market, ('commercial', 'affordable', 'street', 'clothes'))

    assert multiplier == 0.5
    assert factors == ["Negative term penalty: affordable, street, clothes"]
    assert negative_term_penalty(market, ('affordable',))[0] == 0.8
    assert negative_term_penalty(museum, ('crowded', 'noisy')) == (1.0, [])
