# itinerary_core/peak_hours.py
"""
Peak-hours parsing and the traffic/congestion provider interface.

Peak hours come from the catalog as free text, e.g.
"10 am - 11 am / 4 pm - 6 pm" or "Saturday & Sunday 6 am - 5 pm".
The live traffic feed is an external collaborator; StaticTrafficProvider
is the best-effort fallback built from the declared peak hours and a
static time-of-day table.
"""
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Protocol, Tuple

from .data_models import Activity

_RANGE_PATTERN = re.compile(
    r'(\d{1,2})(?::(\d{2}))?\s*(am|pm)\s*[-–]\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)',
    re.IGNORECASE,
)
_WEEKEND_WORDS = ('saturday', 'sunday', 'weekend')
_WEEKDAY_WORDS = ('weekday', 'monday', 'tuesday', 'wednesday', 'thursday', 'friday')


class CongestionLevel(str, Enum):
    LOW = 'LOW'
    MODERATE = 'MODERATE'
    HIGH = 'HIGH'
    SEVERE = 'SEVERE'


@dataclass(frozen=True)
class PeakPeriod:
    start: int                      # minutes since midnight
    end: int                        # minutes since midnight; may be < start when crossing midnight
    days: Tuple[int, ...] = ()      # datetime.weekday() values; empty means every day

    def contains(self, moment: datetime) -> bool:
        if self.days and moment.weekday() not in self.days:
            return False
        minute = moment.hour * 60 + moment.minute
        if self.start <= self.end:
            return self.start <= minute <= self.end
        return minute >= self.start or minute <= self.end


def _to_minutes(hour: str, minute: Optional[str], meridiem: str) -> int:
    value = int(hour) % 12
    if meridiem.lower() == 'pm':
        value += 12
    return value * 60 + int(minute or 0)


def parse_peak_hours(peak_hours: Optional[str]) -> List[PeakPeriod]:
    """Splits on '/' and parses each 'h[:mm] am - h[:mm] pm' range."""
    if not peak_hours:
        return []

    periods = []
    for chunk in peak_hours.split('/'):
        lowered = chunk.lower()
        days: Tuple[int, ...] = ()
        if any(word in lowered for word in _WEEKEND_WORDS):
            days = (5, 6)
        elif any(word in lowered for word in _WEEKDAY_WORDS):
            days = (0, 1, 2, 3, 4)

        match = _RANGE_PATTERN.search(lowered)
        if not match:
            continue
        start = _to_minutes(match.group(1), match.group(2), match.group(3))
        end = _to_minutes(match.group(4), match.group(5), match.group(6))
        periods.append(PeakPeriod(start=start, end=end, days=days))
    return periods


def is_peak_hours(peak_hours: Optional[str], moment: datetime) -> bool:
    return any(period.contains(moment) for period in parse_peak_hours(peak_hours))


def next_low_traffic_time(peak_hours: Optional[str], moment: datetime) -> str:
    """Human hint for when the current peak period ends, including periods past midnight."""
    for period in parse_peak_hours(peak_hours):
        if period.contains(moment):
            hour, mins = divmod(period.end, 60)
            suffix = 'PM' if hour >= 12 else 'AM'
            display_hour = hour % 12 or 12
            return f"Best to visit after {display_hour}:{mins:02d} {suffix}"
    return 'Available now'


# Static congestion by hour of day, used when no live feed is available
STATIC_CONGESTION: Tuple[Tuple[int, int, CongestionLevel], ...] = (
    (7, 9, CongestionLevel.HIGH),        # morning commute
    (11, 13, CongestionLevel.MODERATE),  # lunch
    (17, 19, CongestionLevel.HIGH),      # evening commute
)


def static_congestion(moment: datetime) -> CongestionLevel:
    for start_hour, end_hour, level in STATIC_CONGESTION:
        if start_hour <= moment.hour < end_hour:
            return level
    return CongestionLevel.LOW


class TrafficProvider(Protocol):
    async def congestion(self, activity: Activity, moment: datetime) -> Optional[CongestionLevel]:
        ...


class StaticTrafficProvider:
    """Congestion from the activity's declared peak hours, else the static hour table."""

    async def congestion(self, activity: Activity, moment: datetime) -> Optional[CongestionLevel]:
        if is_peak_hours(activity.peak_hours, moment):
            level = static_congestion(moment)
            return CongestionLevel.SEVERE if level is CongestionLevel.HIGH else CongestionLevel.HIGH
        return static_congestion(moment)
