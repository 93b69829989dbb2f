import pytest

from itinerary_core.data_models import Activity
from itinerary_core.index_manager import SearchIndexManager


@pytest.fixture
def sample_activities():
    return [
        Activity(
            title="Burnham Park",
            description="Central park with a lake, boat rides, bike rentals, gardens, and open spaces. "
                        "Entrance Fee: Free.",
            tags=("Nature & Scenery",),
            time="24 Hours",
            duration_minutes=90,
            peak_hours="10 am - 11 am / 4 pm - 6 pm",
            coordinates=(16.4138, 120.5934),
        ),
        Activity(
            title="Wright Park",
            description="Tree-lined park with a reflecting pool; known for horseback riding. Entrance Fee: Free.",
            tags=("Nature & Scenery", "Adventure"),
            time="6:00 AM – 6:00 PM",
            duration_minutes=60,
            peak_hours="10:00 am - 12:00 pm",
        ),
        Activity(
            title="Bencab Museum",
            description="Museum featuring works of national artist Benedicto Cabrera and indigenous artifacts.",
            tags=("Culture & Arts",),
            time="9:00 AM – 6:00 PM",
            duration_minutes=90,
        ),
        Activity(
            title="Baguio Night Market",
            description="Evening market offering affordable clothes, accessories, and street food.",
            tags=("Shopping & Local Finds", "Food & Culinary"),
            time="9:00 PM – 2:00 AM",
            duration_minutes=90,
            peak_hours="9:00 pm - 10:00 pm",
        ),
        Activity(
            title="Good Shepherd Convent",
            description="Known for its homemade ube jam and other local treats made by nuns.",
            tags=("Food & Culinary",),
            time="8:00 AM – 5:00 PM",
            duration_minutes=45,
        ),
        Activity(
            title="Camp John Hay Yellow Trail",
            description="A scenic, easy trail offering a refreshing walk among pine trees.",
            tags=("Adventure", "Nature & Scenery"),
            time="8:00 AM - 6:00 PM",
            duration_minutes=120,
        ),
    ]


@pytest.fixture
def built_index(sample_activities):
    index = SearchIndexManager()
    index.build_index(sample_activities)
    return index
