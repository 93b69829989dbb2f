import pytest

from itinerary_core.api import create_app
from itinerary_core.pipeline import ItineraryCore
from itinerary_core.settings import AppSettings


@pytest.fixture
def client(sample_activities):
    core = ItineraryCore(AppSettings())
    core.load(sample_activities)
    app = create_app(core)
    app.config['TESTING'] = True
    return app.test_client()


def test_search_returns_ranked_results(client):
    response = client.post('/search', json={
        'query': 'Burnham Park',
        'context': {'interests': ['Nature & Scenery'], 'weatherCondition': 'sunny', 'timeOfDay': 'morning'},
    })

    assert response.status_code == 200
    results = response.get_json()['results']
    assert results[0]['activity']['title'] == 'Burnham Park'
    assert set(results[0]['scores']) >= {'semantic', 'vector', 'fuzzy', 'contextual', 'temporal',
                                         'diversity', 'composite'}


def test_search_over_request_catalog(client):
    response = client.post('/search', json={
        'query': 'ube jam',
        'catalog': [{'title': 'Good Shepherd Convent', 'description': 'Homemade ube jam.'}],
    })

    assert [r['activity']['title'] for r in response.get_json()['results']] == ['Good Shepherd Convent']


def test_malformed_json_is_rejected(client):
    response = client.post('/search', data='{not json', content_type='application/json')

    assert response.status_code == 400
    assert response.get_json()['error'].startswith('Invalid input data')


def test_schedule_day(client):
    response = client.post('/schedule/day', json={
        'activities': [
            {'title': 'Burnham Park', 'description': 'Central park.', 'duration_minutes': 60},
            {'title': 'Bencab Museum', 'description': 'Museum of art.', 'duration_minutes': 60},
        ],
        'options': {'startTime': '09:00', 'endTime': '12:00', 'breakDuration': 15},
        'vector_scores': {'Bencab Museum': 0.9},
    })

    schedule = response.get_json()['schedule']
    assert response.status_code == 200
    assert [item['title'] for item in schedule] == ['Bencab Museum', 'Burnham Park']
    assert schedule[0]['time'] == '09:00-10:00'


def test_schedule_day_rejects_bad_times(client):
    response = client.post('/schedule/day', json={
        'activities': [{'title': 'Burnham Park', 'description': ''}],
        'options': {'startTime': 'noon'},
    })

    assert response.status_code == 400


def test_schedule_multi_day(client):
    shared = {'title': 'Burnham Park', 'description': 'Central park.', 'duration_minutes': 60}
    response = client.post('/schedule/multi_day', json={
        'activities_by_day': [[shared], [shared, {'title': 'Wright Park', 'description': 'Pines.'}]],
    })

    days = response.get_json()['days']
    assert [[item['title'] for item in day] for day in days] == [['Burnham Park'], ['Wright Park']]


def test_generate_itinerary_uses_trip_dates(client):
    response = client.post('/generate_itinerary', json={
        'query': 'park',
        'start_date': '2024-06-01',
        'end_date': '2024-06-02',
        'context': {'interests': ['Nature & Scenery']},
    })

    assert response.status_code == 200
    assert [day['day'] for day in response.get_json()['itinerary']] == ['2024-06-01', '2024-06-02']


def test_generate_itinerary_rejects_reversed_dates(client):
    response = client.post('/generate_itinerary', json={'start_date': '2024-06-02', 'end_date': '2024-06-01'})

    assert response.status_code == 400


def test_activities_by_category(client):
    response = client.get('/activities?category=Culture%20%26%20Arts')

    assert [a['title'] for a in response.get_json()['activities']] == ['Bencab Museum']


def test_cache_stats(client):
    client.post('/search', json={'query': 'park'})
    client.post('/search', json={'query': 'park'})

    stats = client.get('/cache/stats').get_json()

    assert stats['search']['hits'] == 1
    assert stats['index']['total_activities'] == 6


@pytest.mark.parametrize("options", [
    {'breakDuration': -30},
    {'preferredTimes': {'Food': ['noon']}},
    {'preferredTimes': {'Food': '1230'}},
])
def test_schedule_day_rejects_bad_options(client, options):
    response = client.post('/schedule/day', json={
        'activities': [{'title': 'Good Shepherd Convent', 'description': '', 'category': 'Food'}],
        'options': options,
    })

    assert response.status_code == 400
    assert response.get_json()['error'].startswith('Invalid input data')


def test_schedule_day_accepts_single_preferred_time(client):
    response = client.post('/schedule/day', json={
        'activities': [{'title': 'Good Shepherd Convent', 'description': '', 'category': 'Food',
                        'duration_minutes': 60}],
        'options': {'startTime': '08:00', 'endTime': '14:00', 'preferredTimes': {'Food': '12:00'}},
    })

    assert response.status_code == 200
    assert [item['title'] for item in response.get_json()['schedule']] == ['Good Shepherd Convent']
