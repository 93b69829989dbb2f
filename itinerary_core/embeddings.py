# itinerary_core/embeddings.py
import logging
from typing import Optional, Protocol, Sequence

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from .data_models import Activity

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """text -> fixed-length vector. Returning None means 'no embedding available'."""

    async def embed(self, text: str) -> Optional[np.ndarray]:
        ...


class TfidfEmbeddingProvider:
    """
    Local stand-in for a hosted embedding model: a TF-IDF space fitted on the
    catalog text. Until fit() has run every embed() call returns None, which
    the search engine treats as a missing signal.
    """

    def __init__(self, max_features: int = 2000):
        self.max_features = max_features
        self._vectorizer: Optional[TfidfVectorizer] = None

    @property
    def is_fitted(self) -> bool:
        return self._vectorizer is not None

    def fit(self, activities: Sequence[Activity]) -> None:
        corpus = [activity.text for activity in activities]
        if not corpus:
            self._vectorizer = None
            return
        vectorizer = TfidfVectorizer(
            stop_words='english',
            ngram_range=(1, 2),
            min_df=1,
            max_features=self.max_features,
        )
        try:
            vectorizer.fit(corpus)
        except ValueError as exc:
            # Raised when the corpus is nothing but stop words
            logger.warning("Embedding vocabulary could not be built: %s", exc)
            self._vectorizer = None
            return
        self._vectorizer = vectorizer
        logger.info("Fitted TF-IDF embeddings on %d documents (%d features)",
                    len(corpus), len(vectorizer.vocabulary_))

    async def embed(self, text: str) -> Optional[np.ndarray]:
        if self._vectorizer is None or not text:
            return None
        return self._vectorizer.transform([text]).toarray()[0]


def vector_similarity(query_vector: Optional[np.ndarray], activity_vector: Optional[np.ndarray]) -> float:
    """Cosine similarity clipped to [0, 1]; 0 when either side is missing or mismatched."""
    if query_vector is None or activity_vector is None:
        return 0.0
    if query_vector.shape != activity_vector.shape or not query_vector.any() or not activity_vector.any():
        return 0.0
    similarity = cosine_similarity(query_vector.reshape(1, -1), activity_vector.reshape(1, -1))[0][0]
    return float(max(0.0, min(similarity, 1.0)))
