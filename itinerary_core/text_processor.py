# itinerary_core/text_processor.py
import re
from typing import Dict, Iterable, List, Sequence

STOP_WORDS = frozenset([
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of', 'with', 'by',
    'is', 'are', 'was', 'were', 'be', 'been', 'being', 'have', 'has', 'had', 'do', 'does', 'did',
    'will', 'would', 'could', 'should', 'may', 'might', 'can', 'must', 'shall',
    'this', 'that', 'these', 'those', 'from', 'into', 'its', 'our', 'your', 'you', 'some', 'any',
])

# Fixed synonym table: token -> related tokens added on expansion
SYNONYMS: Dict[str, List[str]] = {
    'beautiful': ['scenic', 'stunning', 'picturesque', 'gorgeous'],
    'food': ['cuisine', 'dining', 'restaurant', 'eat', 'meal'],
    'view': ['scenery', 'vista', 'panorama', 'overlook', 'viewpoint'],
    'walk': ['stroll', 'hike', 'trek', 'trail', 'path'],
    'shop': ['market', 'store', 'buy', 'purchase', 'shopping'],
    'old': ['historic', 'heritage', 'traditional', 'ancient', 'vintage'],
    'fun': ['exciting', 'entertaining', 'enjoyable', 'amusing'],
    'quiet': ['peaceful', 'calm', 'serene', 'tranquil', 'relaxing'],
}

MIN_TOKEN_LENGTH = 3

_PUNCTUATION = re.compile(r'[^\w\s]')


def tokenize(text: str) -> List[str]:
    """
    Lower-cases text, strips punctuation and splits on whitespace.

    Tokens shorter than three characters and stop words are dropped, so the
    output of an empty or whitespace-only string is an empty list.
    """
    if not text:
        return []
    cleaned = _PUNCTUATION.sub(' ', text.lower())
    return [
        token for token in cleaned.split()
        if len(token) >= MIN_TOKEN_LENGTH and token not in STOP_WORDS
    ]


def expand_tokens(tokens: Iterable[str]) -> List[str]:
    """Unions each token with its synonyms, keeping first-seen order and no duplicates."""
    expanded: Dict[str, None] = {}
    for token in tokens:
        expanded.setdefault(token)
        for synonym in SYNONYMS.get(token, ()):
            expanded.setdefault(synonym)
    return list(expanded)


def generate_ngrams(tokens: Sequence[str], n: int = 2) -> List[str]:
    """Every contiguous run of n tokens joined by a space, in order."""
    if n <= 0:
        return []
    return [' '.join(tokens[i:i + n]) for i in range(len(tokens) - n + 1)]
