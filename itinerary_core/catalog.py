# itinerary_core/catalog.py

import logging
import re
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd
from textblob import TextBlob

from .data_models import Activity

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ('title', 'description')
TAG_SEPARATOR = '|'

_DURATION_PATTERN = re.compile(
    r'est\.?\s*duration:\s*(?:(\d+)\s*hours?)?\s*(?:(\d+)\s*minutes?)?',
    re.IGNORECASE,
)


def parse_duration_hint(description: str) -> Optional[int]:
    """'Est. Duration: 1 Hour 30 Minutes' -> 90. None when the description has no hint."""
    match = _DURATION_PATTERN.search(description or '')
    if not match or not (match.group(1) or match.group(2)):
        return None
    return int(match.group(1) or 0) * 60 + int(match.group(2) or 0)


def apply_description_sentiment(df: pd.DataFrame) -> pd.DataFrame:
    """
    Adds a 'sentiment_score' column with the TextBlob polarity (-1.0 to 1.0)
    of each description.
    """
    df['description'] = df['description'].fillna('')
    df['sentiment_score'] = df['description'].apply(lambda x: TextBlob(str(x)).sentiment.polarity)
    return df


def _optional(value):
    return None if pd.isna(value) or value == '' else value


def catalog_from_frame(df: pd.DataFrame) -> List[Activity]:
    missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
    if missing:
        raise ValueError(f"Catalog is missing required columns: {', '.join(missing)}")

    df = df.copy()
    df['title'] = df['title'].fillna('').astype(str).str.strip()
    df = df[df['title'] != ''].copy()
    duplicated = df['title'].duplicated()
    if duplicated.any():
        logger.warning("Dropping %d duplicate catalog titles: %s",
                       int(duplicated.sum()), df.loc[duplicated, 'title'].tolist())
        df = df[~duplicated].copy()
    if 'sentiment_score' not in df.columns:
        df = apply_description_sentiment(df)

    activities = []
    for row in df.to_dict('records'):
        tags = _optional(row.get('tags'))
        latitude = _optional(row.get('latitude'))
        longitude = _optional(row.get('longitude'))
        duration = _optional(row.get('duration_minutes'))
        if duration is None:
            duration = parse_duration_hint(row['description'])

        activities.append(Activity(
            title=row['title'],
            description=str(row['description']),
            tags=tuple(t.strip() for t in str(tags).split(TAG_SEPARATOR) if t.strip()) if tags else (),
            time=str(_optional(row.get('time')) or ''),
            duration_minutes=int(duration) if duration is not None else None,
            peak_hours=_optional(row.get('peak_hours')),
            coordinates=(float(latitude), float(longitude)) if latitude is not None and longitude is not None else None,
            category=_optional(row.get('category')),
            sentiment_score=float(_optional(row.get('sentiment_score')) or 0.0),
        ))
    return activities


def load_catalog(path: Union[str, Path]) -> List[Activity]:
    """Reads the activity CSV. A missing file is an empty catalog, not an error."""
    path = Path(path)
    try:
        df = pd.read_csv(path)
    except FileNotFoundError:
        logger.warning("Catalog %s not found, continuing with an empty catalog", path)
        return []

    activities = catalog_from_frame(df)
    logger.info("Loaded %d activities from %s", len(activities), path)
    return activities
