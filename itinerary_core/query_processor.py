# itinerary_core/query_processor.py
"""
Lexical query analysis: intent classification, entity extraction and
query expansion. No language model is involved; everything here is driven
by the fixed tables below.
"""
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from textblob import TextBlob

from .data_models import ExpandedQuery, QueryEntities, QueryIntent
from .text_processor import expand_tokens, tokenize


@dataclass(frozen=True)
class IntentRule:
    label: str
    keywords: Tuple[str, ...]
    weight: float = 1.0


# Evaluated in order; on equal scores the earlier rule wins
INTENT_RULES: Tuple[IntentRule, ...] = (
    IntentRule('exploration', ('explore', 'discover', 'find', 'see', 'visit', 'sightseeing', 'places')),
    IntentRule('cultural', ('culture', 'cultural', 'history', 'traditional', 'heritage', 'museum', 'art', 'authentic')),
    IntentRule('culinary', ('eat', 'food', 'restaurant', 'cuisine', 'taste', 'dining', 'delicious', 'cafe')),
    IntentRule('adventure', ('adventure', 'exciting', 'thrilling', 'active', 'challenging', 'hike', 'hiking', 'trail')),
    IntentRule('shopping', ('shop', 'shopping', 'buy', 'market', 'souvenir', 'handicrafts', 'mall')),
    IntentRule('nightlife', ('night', 'nightlife', 'bar', 'party', 'music', 'evening')),
    IntentRule('relaxation', ('relax', 'chill', 'peaceful', 'quiet', 'calm', 'serene')),
    IntentRule('scenic', ('beautiful', 'scenic', 'view', 'views', 'panoramic', 'picturesque', 'stunning')),
    IntentRule('photography', ('photo', 'instagram', 'picture', 'photogenic', 'capture')),
)

DEFAULT_INTENT = 'exploration'
DEFAULT_CONFIDENCE = 0.3

ACTIVITY_NOUNS: Dict[str, Tuple[str, ...]] = {
    'park': ('garden', 'green', 'nature', 'outdoor'),
    'museum': ('gallery', 'art', 'exhibit'),
    'restaurant': ('food', 'dining', 'eat', 'cuisine'),
    'market': ('shopping', 'mall', 'store', 'buy'),
    'church': ('cathedral', 'chapel', 'shrine'),
    'mountain': ('hill', 'peak', 'climb', 'mt'),
    'trail': ('path', 'hike', 'trek', 'walkway'),
    'view': ('viewpoint', 'overlook', 'panorama', 'scenery'),
    'village': ('community', 'settlement'),
    'hotel': ('accommodation', 'lodging', 'resort', 'inn'),
}

LOCATION_GAZETTEER: Tuple[str, ...] = (
    'baguio', 'burnham', 'session road', 'camp john hay', 'mines view', 'wright park',
    'botanical garden', 'cathedral', 'mansion', 'tam-awan', 'la trinidad', 'kennon road',
    'mirador', 'kalugong',
)

TIME_REFERENCES: Dict[str, Tuple[str, ...]] = {
    'morning': ('morning', 'early', 'sunrise', 'dawn', 'breakfast'),
    'afternoon': ('afternoon', 'lunch', 'midday'),
    'evening': ('evening', 'sunset', 'night', 'dinner', 'late'),
    'weekend': ('weekend', 'saturday', 'sunday'),
    'weekday': ('weekday', 'monday', 'tuesday', 'wednesday', 'thursday', 'friday'),
}

PREFERENCE_CUES: Dict[str, Tuple[str, ...]] = {
    'budget-friendly': ('cheap', 'budget', 'affordable', 'free'),
    'luxury': ('luxury', 'premium', 'expensive', 'upscale'),
    'family-friendly': ('family', 'kids', 'children'),
    'romantic': ('romantic', 'couple', 'date'),
    'solo-friendly': ('solo', 'alone', 'myself'),
    'accessible': ('accessible', 'wheelchair', 'elderly'),
}

INTENT_RELATED_TERMS: Dict[str, Tuple[str, ...]] = {
    'exploration': ('sightseeing', 'attractions', 'landmark'),
    'cultural': ('heritage', 'museum', 'traditional'),
    'culinary': ('cuisine', 'restaurant', 'delicacies'),
    'adventure': ('outdoor', 'hiking', 'trail'),
    'shopping': ('market', 'souvenir', 'handicrafts'),
    'nightlife': ('night', 'evening', 'market'),
    'relaxation': ('peaceful', 'garden', 'quiet'),
    'scenic': ('viewpoint', 'panoramic', 'views'),
    'photography': ('scenic', 'viewpoint', 'iconic'),
}

ENTITY_RELATED_TERMS: Dict[str, Tuple[str, ...]] = {
    'park': ('outdoor', 'nature', 'walking'),
    'museum': ('art', 'history', 'culture'),
    'market': ('local', 'shopping', 'food'),
    'restaurant': ('cuisine', 'dining', 'taste'),
    'view': ('scenery', 'landscape', 'mountains'),
    'trail': ('hiking', 'nature', 'outdoor'),
    'church': ('architecture', 'history', 'peaceful'),
    'mountain': ('views', 'hiking', 'scenic'),
}

TIME_RELATED_TERMS: Dict[str, Tuple[str, ...]] = {
    'morning': ('fresh', 'sunrise', 'peaceful'),
    'afternoon': ('active', 'lunch'),
    'evening': ('dinner', 'night', 'romantic'),
    'weekend': ('family', 'popular'),
    'weekday': ('quiet', 'local'),
}

NEGATIVE_TERMS: Dict[str, Tuple[str, ...]] = {
    'relaxation': ('crowded', 'noisy', 'busy'),
    'adventure': ('boring', 'passive'),
    'cultural': ('commercial', 'touristy'),
    'scenic': ('industrial', 'construction'),
}


def _matches(text: str, words: Sequence[str], cues: Sequence[str]) -> List[str]:
    """Cues present in the query, either as a whole token or as a phrase."""
    word_set = set(words)
    return [cue for cue in cues if cue in word_set or (' ' in cue and cue in text)]


class QueryProcessor:
    """Stateless lexical analyzer for free-text activity queries."""

    def __init__(self, rules: Sequence[IntentRule] = INTENT_RULES):
        self.rules = tuple(rules)

    def analyze_intent(self, query: str) -> QueryIntent:
        text = (query or '').lower()
        words = text.replace('-', ' ').split() + tokenize(text)

        scored: List[Tuple[float, int, str]] = []
        for order, rule in enumerate(self.rules):
            hits = _matches(text, words, rule.keywords)
            if hits:
                overlap = len(hits) / len(rule.keywords)
                scored.append((min(overlap * rule.weight, 1.0), order, rule.label))

        # Highest overlap first, ties resolved by table order
        scored.sort(key=lambda item: (-item[0], item[1]))
        primary = scored[0][2] if scored else DEFAULT_INTENT
        confidence = scored[0][0] if scored else DEFAULT_CONFIDENCE

        entities = QueryEntities(
            activities=tuple(noun for noun, alts in ACTIVITY_NOUNS.items()
                             if _matches(text, words, (noun,) + alts)),
            locations=tuple(place for place in LOCATION_GAZETTEER if place in text),
            time_references=tuple(ref for ref, cues in TIME_REFERENCES.items() if _matches(text, words, cues)),
            preferences=tuple(pref for pref, cues in PREFERENCE_CUES.items() if _matches(text, words, cues)),
        )

        sentiment = TextBlob(query).sentiment.polarity if text.strip() else 0.0

        return QueryIntent(
            primary=primary,
            secondary=tuple(label for _, _, label in scored[1:3]),
            confidence=round(confidence, 4),
            entities=entities,
            sentiment=sentiment,
        )

    def expand_query(self, query: str, intent: QueryIntent) -> ExpandedQuery:
        """Raw tokens, their synonyms and the intent/entity related terms, de-duplicated."""
        tokens = tokenize(query)

        synonyms: Dict[str, None] = {}
        for token in expand_tokens(tokens):
            if token not in tokens:
                synonyms.setdefault(token)
        for noun in intent.entities.activities:
            for alt in ACTIVITY_NOUNS[noun]:
                if alt not in tokens:
                    synonyms.setdefault(alt)

        related: Dict[str, None] = {}
        if tokens:
            for term in INTENT_RELATED_TERMS.get(intent.primary, ()):
                related.setdefault(term)
        for noun in intent.entities.activities:
            for term in ENTITY_RELATED_TERMS.get(noun, ()):
                related.setdefault(term)
        for ref in intent.entities.time_references[:1]:
            for term in TIME_RELATED_TERMS.get(ref, ()):
                related.setdefault(term)

        negative = list(NEGATIVE_TERMS.get(intent.primary, ()))
        if intent.sentiment < 0:
            negative.extend(t for t in ('crowded', 'busy') if t not in negative)

        expanded: Dict[str, None] = dict.fromkeys(tokens)
        for term in list(synonyms) + list(related):
            expanded.setdefault(term)

        return ExpandedQuery(
            original=query,
            tokens=tuple(tokens),
            expanded=tuple(expanded),
            synonyms=tuple(synonyms),
            related_terms=tuple(related),
            negative_terms=tuple(negative),
        )
