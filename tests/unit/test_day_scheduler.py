import pytest

from itinerary_core.catalog import load_catalog
from itinerary_core.data_models import Activity, ScheduledActivity, ScheduleOptions
from itinerary_core.day_scheduler import (DayScheduler, activity_category, distribute_across_days,
                                          estimate_activity_duration, find_best_interval,
                                          group_activities_by_period, minutes_to_time, remove_interval,
                                          time_to_minutes)
from itinerary_core.settings import DEFAULT_CATALOG_PATH


def _activity(title, minutes=None, **kwargs):
    return Activity(title=title, description=kwargs.pop('description', ''), duration_minutes=minutes, **kwargs)


def _assert_no_overlap(day):
    spans = sorted((time_to_minutes(s.start_time), time_to_minutes(s.end_time)) for s in day)
    for (_, first_end), (second_start, _) in zip(spans, spans[1:]):
        assert first_end <= second_start


def test_activity_that_does_not_fit_is_dropped():
    options = ScheduleOptions(start_time="08:00", end_time="09:00")

    assert DayScheduler().schedule_activities_for_day([_activity("Long Tour", 90)], options) == []


def test_break_is_kept_between_activities():
    options = ScheduleOptions(start_time="08:00", end_time="12:00", break_duration=30)
    day = DayScheduler().schedule_activities_for_day([_activity("First", 60), _activity("Second", 60)], options)

    assert len(day) == 2
    first, second = day
    assert time_to_minutes(second.start_time) >= time_to_minutes(first.start_time) + 90


def test_interval_length_matches_estimated_duration():
    activities = [_activity("Museum Visit", description="A small museum"), _activity("Walk", 45)]
    day = DayScheduler().schedule_activities_for_day(activities)

    for item in day:
        length = time_to_minutes(item.end_time) - time_to_minutes(item.start_time)
        assert length == estimate_activity_duration(item.activity)


@pytest.mark.parametrize("options", [
    ScheduleOptions(),
    ScheduleOptions(start_time="09:00", end_time="14:00", break_duration=15),
    ScheduleOptions(start_time="06:00", end_time="22:00", break_duration=0, max_activities_per_day=12),
])
def test_no_overlapping_placements_for_real_catalog(options):
    catalog = load_catalog(DEFAULT_CATALOG_PATH)
    day = DayScheduler().schedule_activities_for_day(catalog, options)

    assert 0 < len(day) <= options.max_activities_per_day
    _assert_no_overlap(day)
    assert [s.start_time for s in day] == sorted(s.start_time for s in day)


def test_max_activities_per_day_is_respected():
    activities = [_activity(f"Stop {i}", 15) for i in range(10)]
    day = DayScheduler().schedule_activities_for_day(activities, ScheduleOptions(max_activities_per_day=3))

    assert len(day) == 3


def test_vector_scores_reorder_candidates():
    options = ScheduleOptions(start_time="08:00", end_time="09:00")
    activities = [_activity("Plain", 60), _activity("Similar", 60)]

    day = DayScheduler().schedule_activities_for_day(activities, options, {"Similar": 1.0})

    assert [s.title for s in day] == ["Similar"]


def test_food_wins_score_ties():
    options = ScheduleOptions(start_time="08:00", end_time="09:00", preferred_times={})
    activities = [
        _activity("Long Walk", 60),
        _activity("Short Walk", 30),
        _activity("Breakfast", 60, category="Food"),
    ]

    day = DayScheduler().schedule_activities_for_day(activities, options)

    assert day[0].title == "Breakfast"


def test_preferred_time_picks_closest_interval():
    assert find_best_interval(60, [(480, 600), (700, 900)], ('12:00',)) == (700, 760)
    assert find_best_interval(60, [(480, 600), (700, 900)]) == (480, 540)
    assert find_best_interval(300, [(480, 600), (700, 900)]) is None


def test_remove_interval_keeps_leftovers():
    assert remove_interval([(480, 1260)], 540, 600, 30) == [(480, 540), (630, 1260)]
    assert remove_interval([(480, 600), (700, 900)], 480, 600, 30) == [(700, 900)]


def test_results_are_cached():
    scheduler = DayScheduler()
    activities = [_activity("First", 60), _activity("Second", 60)]

    first = scheduler.schedule_activities_for_day(activities)
    second = scheduler.schedule_activities_for_day(activities)

    assert first == second
    assert scheduler.cache.stats().hits == 1


def test_multi_day_places_each_title_once():
    shared = _activity("Burnham Park", 60)
    buckets = [[shared, _activity("Museum", 60)], [shared, _activity("Market", 60)]]

    days = DayScheduler().schedule_multi_day_itinerary(buckets)

    titles = [s.title for day in days for s in day]
    assert len(titles) == len(set(titles))
    assert sorted(titles) == ["Burnham Park", "Market", "Museum"]
    for day in days:
        _assert_no_overlap(day)


def test_multi_day_falls_back_when_cached_plan_does_not_match():
    scheduler = DayScheduler()
    buckets = [[_activity("Museum", 60)], [_activity("Market", 60)]]
    options = scheduler.default_options
    scheduler.cache.set(scheduler._itinerary_key(buckets, options, None), [[]])

    days = scheduler.schedule_multi_day_itinerary(buckets)

    assert [[s.title for s in day] for day in days] == [["Museum"], ["Market"]]


def test_multi_day_reuses_cached_plan():
    scheduler = DayScheduler()
    buckets = [[_activity("Museum", 60)], [_activity("Market", 60)]]

    first = scheduler.schedule_multi_day_itinerary(buckets)
    second = scheduler.schedule_multi_day_itinerary(buckets)

    assert first == second


def test_group_activities_by_period():
    day = [
        ScheduledActivity(_activity("Breakfast"), "11:00", "11:59"),
        ScheduledActivity(_activity("Lunch"), "12:00", "13:00"),
        ScheduledActivity(_activity("Walk"), "17:30", "18:30"),
    ]

    periods = group_activities_by_period(day)

    assert list(periods) == ['Morning', 'Afternoon', 'Evening']
    assert [s.title for s in periods['Morning']] == ["Breakfast"]
    assert [s.title for s in periods['Afternoon']] == ["Lunch", "Walk"]
    assert periods['Evening'] == []


def test_estimate_activity_duration_keywords():
    assert estimate_activity_duration(_activity("X", 25)) == 25
    assert estimate_activity_duration(_activity("Cafe", description="A cozy cafe")) == 90
    assert estimate_activity_duration(_activity("Gallery", description="A museum of art")) == 120
    assert estimate_activity_duration(_activity("Green", tags=("Nature & Scenery",))) == 120
    assert estimate_activity_duration(_activity("Stalls", description="Weekend market")) == 90
    assert estimate_activity_duration(_activity("City", description="Guided walking tour")) == 180
    assert estimate_activity_duration(_activity("Statue")) == 60


def test_activity_category_prefers_explicit_value():
    assert activity_category(_activity("A", tags=("Culture & Arts", "Food & Culinary"))) == "Culture"
    assert activity_category(_activity("B", category="Nightlife", tags=("Food & Culinary",))) == "Nightlife"
    assert activity_category(_activity("C", tags=("Weather-Flexible",))) is None


def test_distribute_across_days_round_robins():
    ranked = [_activity(str(i)) for i in range(7)]

    buckets = distribute_across_days(ranked, days=3, per_day=2)

    assert [[a.title for a in day] for day in buckets] == [["0", "3"], ["1", "4"], ["2", "5"]]
    assert distribute_across_days(ranked, days=0, per_day=2) == []


def test_time_helpers():
    assert time_to_minutes("08:30") == 510
    assert minutes_to_time(510) == "08:30"
    assert minutes_to_time(time_to_minutes("21:05")) == "21:05"


def test_editing_a_returned_day_leaves_the_cache_intact():
    scheduler = DayScheduler()
    activities = [_activity("First", 60), _activity("Second", 60)]

    first = scheduler.schedule_activities_for_day(activities)
    first.clear()
    second = scheduler.schedule_activities_for_day(activities)
    second.pop()
    third = scheduler.schedule_activities_for_day(activities)

    assert [s.title for s in third] == ["First", "Second"]


def test_editing_a_returned_itinerary_leaves_the_cache_intact():
    scheduler = DayScheduler()
    buckets = [[_activity("Museum", 60)], [_activity("Market", 60)]]

    first = scheduler.schedule_multi_day_itinerary(buckets)
    first[0].clear()
    first.pop()
    second = scheduler.schedule_multi_day_itinerary(buckets)

    assert [[s.title for s in day] for day in second] == [["Museum"], ["Market"]]


def test_negative_break_is_treated_as_no_break():
    options = ScheduleOptions.from_dict({'startTime': '08:00', 'endTime': '12:00', 'breakDuration': -30})
    day = DayScheduler().schedule_activities_for_day([_activity("First", 60), _activity("Second", 60)], options)

    assert options.break_duration == 0
    assert [(s.start_time, s.end_time) for s in day] == [("08:00", "09:00"), ("09:00", "10:00")]
    _assert_no_overlap(day)


def test_single_preferred_time_string_is_one_time():
    options = ScheduleOptions.from_dict({'preferredTimes': {'Food': '12:00'}})

    assert options.preferred_times == {'Food': ('12:00',)}
    day = DayScheduler().schedule_activities_for_day([_activity("Lunch", 60, category="Food")], options)
    assert day[0].start_time == "08:00"
