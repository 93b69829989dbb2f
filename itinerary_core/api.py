# itinerary_core/api.py
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from flask import Flask, jsonify, request

from .data_models import Activity, ScheduleOptions, SearchContext
from .day_scheduler import time_to_minutes
from .pipeline import ItineraryCore
from .settings import get_settings

logger = logging.getLogger(__name__)


class InvalidRequest(ValueError):
    """Request body that cannot be turned into core inputs; answered with 400."""


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return data


def _activities(raw: Any, field_name: str = 'activities') -> List[Activity]:
    if not isinstance(raw, list):
        raise InvalidRequest(f"'{field_name}' must be a list of activities")
    try:
        return [Activity.from_dict(item) for item in raw]
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidRequest(f"Invalid activity in '{field_name}': {e}") from e


def _options(raw: Any) -> Optional[ScheduleOptions]:
    if raw is None:
        return None
    try:
        options = ScheduleOptions.from_dict(raw)
        for value in (options.start_time, options.end_time):
            time_to_minutes(value)
        for times in options.preferred_times.values():
            for value in times:
                time_to_minutes(value)
        break_duration = int(raw.get('break_duration', raw.get('breakDuration', 0)))
    except (TypeError, ValueError, AttributeError) as e:
        raise InvalidRequest(f"Invalid schedule options: {e}") from e
    if break_duration < 0:
        raise InvalidRequest(f"Invalid schedule options: break duration must not be negative, got {break_duration}")
    return options


def _vector_scores(raw: Any) -> Optional[Dict[str, float]]:
    if raw is None:
        return None
    try:
        return {str(title): float(score) for title, score in raw.items()}
    except (AttributeError, TypeError, ValueError) as e:
        raise InvalidRequest(f"'vector_scores' must map titles to numbers: {e}") from e


def _positive_int(raw: Any, default: int) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise InvalidRequest(f"Expected a positive integer, got {raw!r}") from e
    if value <= 0:
        raise InvalidRequest(f"Expected a positive integer, got {raw!r}")
    return value


def _trip_context(data: Dict[str, Any], now: datetime) -> SearchContext:
    """Context from the body; start_date/end_date (YYYY-MM-DD) set the trip length when given."""
    context = SearchContext.from_dict(data.get('context'), now)
    if data.get('start_date') and data.get('end_date'):
        try:
            start_date = datetime.strptime(data['start_date'], '%Y-%m-%d')
            end_date = datetime.strptime(data['end_date'], '%Y-%m-%d')
        except (TypeError, ValueError) as e:
            raise InvalidRequest(f"Invalid trip dates: {e}") from e
        if end_date < start_date:
            raise InvalidRequest("end_date must not be before start_date")
        context = replace(context, duration=(end_date - start_date).days + 1,
                          current_time=start_date.replace(hour=context.current_time.hour,
                                                          minute=context.current_time.minute))
    return context


def create_app(core: Optional[ItineraryCore] = None) -> Flask:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    if core is None:
        core = ItineraryCore(settings)
        core.load()

    app = Flask(__name__)
    app.config['ITINERARY_CORE'] = core

    @app.errorhandler(InvalidRequest)
    def invalid_request(e):
        logger.warning("Rejected %s %s: %s", request.method, request.path, e)
        return jsonify({"error": f"Invalid input data: {e}"}), 400

    @app.route('/search', methods=['POST'])
    async def search():
        data = _json_body()
        context = SearchContext.from_dict(data.get('context'), core.settings.local_now())
        catalog = _activities(data['catalog'], 'catalog') if 'catalog' in data else None
        results = await core.search(str(data.get('query') or ''), context, catalog)
        return jsonify({"results": [r.to_dict() for r in results]})

    @app.route('/schedule/day', methods=['POST'])
    def schedule_day():
        data = _json_body()
        activities = _activities(data.get('activities'))
        scheduled = core.schedule_day(activities, _options(data.get('options')), _vector_scores(data.get('vector_scores')))
        return jsonify({"schedule": [item.to_dict() for item in scheduled]})

    @app.route('/schedule/multi_day', methods=['POST'])
    def schedule_multi_day():
        data = _json_body()
        days = data.get('activities_by_day')
        if not isinstance(days, list):
            raise InvalidRequest("'activities_by_day' must be a list of activity lists")
        buckets = [_activities(day, 'activities_by_day') for day in days]
        scheduled = core.schedule_multi_day(buckets, _options(data.get('options')), _vector_scores(data.get('vector_scores')))
        return jsonify({"days": [[item.to_dict() for item in day] for day in scheduled]})

    @app.route('/generate_itinerary', methods=['POST'])
    async def generate_itinerary():
        data = _json_body()
        context = _trip_context(data, core.settings.local_now())
        plan = await core.plan_itinerary(
            str(data.get('query') or ''),
            context,
            _options(data.get('options')),
            activities_per_day=_positive_int(data.get('activities_per_day'), 4),
        )
        return jsonify(plan)

    @app.route('/activities', methods=['GET'])
    def activities():
        category = request.args.get('category', '')
        if not category:
            return jsonify({"activities": [a.to_dict() for a in core.catalog]})
        return jsonify({"activities": [a.to_dict() for a in core.activities_by_category(category)]})

    @app.route('/cache/stats', methods=['GET'])
    def cache_stats():
        return jsonify(core.cache_stats())

    return app


if __name__ == '__main__':
    create_app().run(debug=True)
