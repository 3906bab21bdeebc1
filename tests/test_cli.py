import json
import logging
import sys
from types import SimpleNamespace

import pytest

from connectin_rec import cli
from connectin_rec.exceptions import NotLoggedInError
from connectin_rec.models import Movie


def test_validate_username():
    assert cli._validate_username("Alice_99") == "alice_99"
    # Sanitized to lowercase alphanumeric/underscore/hyphen
    assert cli._validate_username("Bad Name!") == "badname"
    with pytest.raises(ValueError):
        cli._validate_username("!!!")


def test_main_dispatches_to_subcommand(monkeypatch):
    called = {}

    def fake_suggest(args):
        called["command"] = args.command
        called["limit"] = args.limit
        called["format"] = args.format

    monkeypatch.setattr(cli, "cmd_suggest_users", fake_suggest)
    monkeypatch.setattr(sys, "argv", ["prog", "suggest-users", "alice", "--limit", "3", "--format", "json"])

    cli.main()

    assert called == {"command": "suggest-users", "limit": 3, "format": "json"}


def test_cli_parses_log_args(monkeypatch):
    captured = {}

    def fake_log(args):
        captured.update(vars(args))

    monkeypatch.setattr(cli, "cmd_log", fake_log)
    monkeypatch.setattr(
        sys,
        "argv",
        ["prog", "log", "alice", "603", "--title", "The Matrix", "--genres", "28", "878", "--rating", "4.5"],
    )

    cli.main()

    assert captured["movie_id"] == 603
    assert captured["genres"] == [28, 878]
    assert captured["rating"] == 4.5
    assert captured["popularity"] == 0.0


def _seed(db):
    alice = db.create_user("a@example.com", "alice", user_id="u-a")
    bob = db.create_user("b@example.com", "bob", user_id="u-b")
    db.create_user("c@example.com", "carol", user_id="u-c")
    db.log_movie(alice.id, Movie(id=1, title="Die Hard", genre_ids=[28]))
    db.log_movie(alice.id, Movie(id=2, title="Airplane!", genre_ids=[35]))
    db.log_movie(bob.id, Movie(id=3, title="Speed", genre_ids=[28]))
    db.log_movie(bob.id, Movie(id=4, title="Hot Shots!", genre_ids=[35]))
    return alice, bob


def test_recommended_movies_uses_history_and_candidate_pool(fresh_cli):
    cli_mod, db = fresh_cli
    alice, _ = _seed(db)
    requested = {}

    def candidate_pool(pages):
        requested["pages"] = pages
        return [
            Movie(id=1, title="Die Hard", genre_ids=[28], popularity=900),
            Movie(id=5, title="Big Doc", genre_ids=[99], popularity=500),
            Movie(id=6, title="Rush Hour", genre_ids=[28, 35], popularity=100),
        ]

    recs = cli_mod.recommended_movies(alice.id, SimpleNamespace(candidate_pool=candidate_pool), top_n=5, pages=2)

    assert requested["pages"] == 2
    assert [r.movie.id for r in recs] == [6, 5]
    assert recs[0].score == pytest.approx(0.7 + 0.03)


def test_recommended_movies_empty_history_and_missing_user(fresh_cli):
    cli_mod, db = fresh_cli
    db.create_user("n@example.com", "newbie", user_id="u-n")

    def candidate_pool(pages):
        raise AssertionError("catalog should not be queried")

    assert cli_mod.recommended_movies("u-n", SimpleNamespace(candidate_pool=candidate_pool)) == []
    with pytest.raises(NotLoggedInError):
        cli_mod.recommended_movies("", SimpleNamespace(candidate_pool=candidate_pool))


def test_friend_suggestions_ranks_stored_users(fresh_cli):
    cli_mod, db = fresh_cli
    alice, bob = _seed(db)

    suggestions = cli_mod.friend_suggestions(alice.id)

    assert [s.user_id for s in suggestions] == [bob.id]
    assert suggestions[0].display_name == "bob"
    assert suggestions[0].similarity == pytest.approx(0.6)
    assert suggestions[0].shared_movies == 0
    with pytest.raises(NotLoggedInError):
        cli_mod.friend_suggestions("")


def test_suggest_users_command_outputs_json(fresh_cli, monkeypatch, caplog):
    cli_mod, db = fresh_cli
    _seed(db)
    caplog.set_level(logging.INFO, logger="connectin_rec.cli")
    monkeypatch.setattr(sys, "argv", ["prog", "suggest-users", "alice", "--format", "json"])

    cli_mod.main()

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload == [{"user_id": "u-b", "username": "bob", "similarity": 0.6, "shared_movies": 0}]


def test_log_and_profile_commands(fresh_cli, monkeypatch, caplog):
    cli_mod, db = fresh_cli
    db.create_user("d@example.com", "dana", user_id="u-d")
    caplog.set_level(logging.INFO, logger="connectin_rec.cli")

    monkeypatch.setattr(sys, "argv", ["prog", "log", "dana", "27205", "--title", "Inception", "--genres", "28", "878"])
    cli_mod.main()
    monkeypatch.setattr(sys, "argv", ["prog", "profile", "dana"])
    cli_mod.main()

    assert [log.movie_id for log in db.get_user_movie_logs("u-d")] == [27205]
    messages = [r.getMessage() for r in caplog.records]
    assert any("Action" in m and "100%" in m for m in messages)
    assert any("Science Fiction" in m for m in messages)


def test_unknown_user_exits_non_zero(fresh_cli, monkeypatch):
    cli_mod, _ = fresh_cli
    monkeypatch.setattr(sys, "argv", ["prog", "history", "ghost"])

    with pytest.raises(SystemExit) as excinfo:
        cli_mod.main()

    assert excinfo.value.code == 1


def test_duplicate_username_exits_non_zero(fresh_cli, monkeypatch):
    cli_mod, db = fresh_cli
    db.create_user("a@example.com", "alice", user_id="u-a")
    monkeypatch.setattr(sys, "argv", ["prog", "add-user", "alice"])

    with pytest.raises(SystemExit) as excinfo:
        cli_mod.main()

    assert excinfo.value.code == 1
    assert [u.username for u in db.list_users()] == ["alice"]


def test_popular_command_outputs_movie_records_as_json(monkeypatch, caplog):
    class FakeCatalog:
        def __enter__(self):
            return self

        def __exit__(self, *exc_info):
            pass

        def popular(self, page):
            return [
                Movie(id=603, title="The Matrix", genre_ids=[878, 28], popularity=80.5,
                      poster_path="/m.jpg", release_date="1999-03-31"),
                Movie(id=13, title="Forrest Gump", genre_ids=[18], popularity=60.0),
            ]

    monkeypatch.setattr(cli, "TmdbClient", FakeCatalog)
    monkeypatch.setattr(sys, "argv", ["prog", "popular", "--limit", "1", "--format", "json"])
    caplog.set_level(logging.INFO, logger="connectin_rec.cli")

    cli.main()

    payload = json.loads(caplog.records[-1].getMessage())
    assert len(payload) == 1
    assert payload[0]["id"] == 603
    assert payload[0]["genre_ids"] == [28, 878]
    assert payload[0]["release_date"] == "1999-03-31"
    assert payload[0]["score"] == 80.5
    assert payload[0]["genres"] == ["Action", "Science Fiction"]
    assert payload[0]["poster"] == "https://image.tmdb.org/t/p/w500/m.jpg"
