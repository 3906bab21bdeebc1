import numpy as np
import pytest

from connectin_rec.genres import DEFAULT_VOCABULARY, GenreVocabulary
from connectin_rec.profile import build_profile, describe_profile


def test_empty_history_gives_zero_profile():
    profile = build_profile([])

    assert profile.shape == (len(DEFAULT_VOCABULARY),)
    assert not profile.any()


def test_profile_is_mean_of_genre_vectors(make_movie):
    vocab = GenreVocabulary([1, 2, 3])
    watched = [
        make_movie(10, genres={1, 2}),
        make_movie(11, genres={2}),
        make_movie(12, genres={2, 3}),
        make_movie(13, genres={}),
    ]

    profile = build_profile(watched, vocab)

    assert profile.tolist() == pytest.approx([0.25, 0.75, 0.25])


def test_profile_components_stay_in_unit_interval(make_movie):
    rng = np.random.default_rng(3)
    ids = list(DEFAULT_VOCABULARY.ids) + [4242]
    for trial in range(20):
        watched = [
            make_movie(i, genres=set(rng.choice(ids, size=rng.integers(0, 5), replace=False)))
            for i in range(rng.integers(1, 15))
        ]
        profile = build_profile(watched)
        assert profile.min() >= 0.0
        assert profile.max() <= 1.0


def test_profile_is_zero_only_for_empty_history(make_movie):
    assert build_profile([make_movie(1, genres={28})]).any()


def test_profiles_comparable_across_history_sizes(make_movie):
    short = [make_movie(1, genres={28})]
    long = [make_movie(i, genres={28}) for i in range(2, 12)]

    assert build_profile(short).tolist() == build_profile(long).tolist()


def test_build_profile_does_not_mutate_input(make_movie):
    watched = [make_movie(1, genres={28}), make_movie(2, genres={35})]
    snapshot = list(watched)

    build_profile(watched)

    assert watched == snapshot


def test_describe_profile_lists_strongest_genres(make_movie):
    watched = [
        make_movie(1, genres={28, 12}),
        make_movie(2, genres={28}),
    ]

    top = describe_profile(build_profile(watched), top_k=5)

    assert top == [("Action", 1.0), ("Adventure", 0.5)]
    assert describe_profile(build_profile([])) == []
