import numpy as np
import pytest

from connectin_rec.genres import DEFAULT_VOCABULARY, GenreVocabulary
from connectin_rec.vectors import cosine_similarity, vectorize


def test_vocabulary_order_defines_positions():
    vocab = GenreVocabulary({10: "Ten", 20: "Twenty", 30: "Thirty"})

    assert len(vocab) == 3
    assert vocab.index_of(20) == 1
    assert vocab.index_of(99) is None
    assert vocab.name_of(30) == "Thirty"
    assert vocab.name_at(0) == "Ten"
    assert 10 in vocab and 99 not in vocab


def test_vocabulary_rejects_duplicate_ids():
    with pytest.raises(ValueError):
        GenreVocabulary([1, 2, 1])


def test_default_vocabulary_is_reference_table():
    assert len(DEFAULT_VOCABULARY) == 19
    assert DEFAULT_VOCABULARY.ids[0] == 28
    assert DEFAULT_VOCABULARY.name_of(878) == "Science Fiction"


def test_vectorize_marks_known_genres_and_ignores_unknown():
    vocab = GenreVocabulary([1, 2, 3])

    vector = vectorize({2, 99}, vocab)

    assert vector.tolist() == [0.0, 1.0, 0.0]


def test_vectorize_length_follows_vocabulary():
    assert vectorize([], GenreVocabulary([7])).shape == (1,)
    assert vectorize([28, 35]).shape == (len(DEFAULT_VOCABULARY),)
    assert vectorize([28, 28]).sum() == 1.0


def test_cosine_similarity_basics():
    a = np.array([1.0, 0.0, 1.0])
    b = np.array([1.0, 1.0, 0.0])

    assert cosine_similarity(a, a) == pytest.approx(1.0)
    assert cosine_similarity(a, b) == pytest.approx(0.5)
    assert cosine_similarity(np.array([1.0, 0.0]), np.array([0.0, 1.0])) == 0.0


def test_cosine_similarity_is_symmetric():
    rng = np.random.default_rng(7)
    for _ in range(50):
        a = rng.random(19)
        b = rng.random(19)
        assert cosine_similarity(a, b) == cosine_similarity(b, a)


def test_cosine_similarity_zero_vector_is_zero():
    zero = np.zeros(4)

    assert cosine_similarity(np.array([1.0, 2.0, 0.0, 3.0]), zero) == 0.0
    assert cosine_similarity(zero, np.array([1.0, 0.0, 0.0, 0.0])) == 0.0
    assert cosine_similarity(zero, zero) == 0.0


def test_cosine_similarity_length_mismatch_is_a_caller_bug():
    with pytest.raises(ValueError):
        cosine_similarity(np.ones(3), np.ones(4))
