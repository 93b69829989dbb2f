import pytest

from itinerary_core.text_processor import STOP_WORDS, expand_tokens, generate_ngrams, tokenize


def test_tokenize_lowercases_and_strips_punctuation():
    assert tokenize("The Burnham Park, a LAKE!") == ['burnham', 'park', 'lake']


@pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
def test_tokenize_empty_input_gives_no_tokens(text):
    assert tokenize(text) == []


@pytest.mark.parametrize("text", [
    "Central park with a lake, boat rides, bike rentals, gardens, and open spaces.",
    "Is it OK to go at 9:00 AM? We'd love the views!!",
    "Neo-Gothic cathedral with twin spires; offers panoramic city views.",
    "an of to be it",
])
def test_tokenize_is_pure_and_filters_short_and_stop_words(text):
    first = tokenize(text)

    assert first == tokenize(text)
    for token in first:
        assert token == token.lower()
        assert len(token) >= 3
        assert token not in STOP_WORDS


def test_expand_tokens_adds_synonyms_once_in_order():
    expanded = expand_tokens(['quiet', 'quiet', 'park'])

    assert expanded == ['quiet', 'peaceful', 'calm', 'serene', 'tranquil', 'relaxing', 'park']


def test_expand_tokens_does_not_duplicate_existing_synonym():
    assert expand_tokens(['scenic', 'beautiful']).count('scenic') == 1


def test_generate_ngrams():
    assert generate_ngrams(['mines', 'view', 'park'], 2) == ['mines view', 'view park']
    assert generate_ngrams(['mines', 'view', 'park'], 3) == ['mines view park']
    assert generate_ngrams(['mines'], 2) == []
    assert generate_ngrams(['mines'], 0) == []
