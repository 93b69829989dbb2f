from datetime import datetime, timedelta

import pytest
import pytz

from itinerary_core.data_models import SearchContext
from itinerary_core.settings import AppSettings


def test_signal_weights_sum_to_one():
    assert sum(AppSettings().signal_weights().values()) == pytest.approx(1.0)


def test_local_now_follows_configured_timezone():
    manila = AppSettings(timezone='Asia/Manila').local_now()
    expected = datetime.now(pytz.timezone('Asia/Manila')).replace(tzinfo=None)

    assert manila.tzinfo is None
    assert abs(manila - expected) < timedelta(minutes=1)


def test_environment_overrides_defaults(monkeypatch):
    monkeypatch.setenv('ITINERARY_TIMEZONE', 'UTC')
    monkeypatch.setenv('ITINERARY_MAX_RESULTS', '7')

    settings = AppSettings()

    assert settings.timezone == 'UTC'
    assert settings.max_results == 7


def test_context_uses_supplied_clock_only_when_time_is_missing():
    now = datetime(2024, 6, 3, 15, 0)

    assert SearchContext.from_dict({}, now).current_time == now
    assert SearchContext.from_dict({'currentTime': 'not a date'}, now).current_time == now
    given = SearchContext.from_dict({'current_time': '2024-06-01T09:30:00'}, now)
    assert given.current_time == datetime(2024, 6, 1, 9, 30)
