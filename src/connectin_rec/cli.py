import argparse
import atexit
import json
import logging
import re
import sqlite3

from .catalog import TmdbClient
from .config import (
    DEFAULT_CANDIDATE_PAGES,
    FEED_TOP_N_MOVIES,
    FEED_TOP_N_USERS,
    PROFILE_TOP_GENRES,
)
from .database import (
    init_db, close_pool, create_user, get_user_by_username, log_movie,
    get_user_movie_logs, load_other_users_with_movies,
)
from .exceptions import ConnectInError, NotLoggedInError
from .feature_weights import RecommenderWeights, load_recommender_weights
from .genres import DEFAULT_VOCABULARY
from .models import Movie, ScoredMovie, UserSimilarity, movies_from_logs
from .profile import build_profile, describe_profile
from .recommender import ContentRecommender, CollaborativeRecommender

logger = logging.getLogger(__name__)

# Register cleanup on exit
atexit.register(close_pool)


def _validate_username(username: str) -> str:
    """
    Sanitize a username.
    Returns lowercased alphanumeric + underscores/hyphens only.
    Raises ValueError if nothing usable remains.
    """
    sanitized = re.sub(r'[^a-z0-9_-]', '', username.lower())
    if not sanitized:
        raise ValueError(f"Invalid username: {username!r}")
    if sanitized != username.lower():
        logger.warning(f"Username '{username}' sanitized to '{sanitized}'")
    return sanitized


def _load_weights(path: str | None = None) -> RecommenderWeights:
    return load_recommender_weights(path) or RecommenderWeights()


def recommended_movies(
    user_id: str,
    catalog: TmdbClient,
    top_n: int = FEED_TOP_N_MOVIES,
    weights: RecommenderWeights | None = None,
    pages: int = DEFAULT_CANDIDATE_PAGES,
) -> list[ScoredMovie]:
    """
    Home-feed recommendations for a stored user.

    Users with no logged movies get an empty feed.
    """
    if not user_id:
        raise NotLoggedInError("A user is required for recommendations")

    watched = movies_from_logs(get_user_movie_logs(user_id))
    if not watched:
        return []

    candidates = catalog.candidate_pool(pages=pages)
    return ContentRecommender(DEFAULT_VOCABULARY, weights).recommend(watched, candidates, top_n)


def friend_suggestions(
    user_id: str,
    top_n: int = FEED_TOP_N_USERS,
    weights: RecommenderWeights | None = None,
) -> list[UserSimilarity]:
    """Other stored users with similar taste to ``user_id``."""
    if not user_id:
        raise NotLoggedInError("A user is required for friend suggestions")

    current = movies_from_logs(get_user_movie_logs(user_id))
    if not current:
        return []

    others = load_other_users_with_movies(user_id)
    return CollaborativeRecommender(DEFAULT_VOCABULARY, weights).suggest_users(current, others, top_n)


def _genre_names(movie: Movie) -> list[str]:
    return [DEFAULT_VOCABULARY.name_of(g) for g in sorted(movie.genre_ids)]


def _output_movies(scored: list[ScoredMovie], output_format: str, heading: str) -> None:
    if output_format == 'json':
        output = [
            {
                **s.movie.to_dict(),
                "score": round(s.score, 4),
                "genres": _genre_names(s.movie),
                "poster": s.movie.full_poster_path,
            }
            for s in scored
        ]
        logger.info(json.dumps(output, indent=2))
        return

    logger.info(f"\n{heading}:")
    for i, s in enumerate(scored, 1):
        year = f" ({s.movie.release_date[:4]})" if s.movie.release_date else ""
        logger.info(f"{i}. {s.movie.title}{year} - Score: {s.score:.3f}")
        if s.movie.genre_ids:
            logger.info(f"   Genres: {', '.join(_genre_names(s.movie))}")


def _output_users(suggestions: list[UserSimilarity], output_format: str, heading: str) -> None:
    if output_format == 'json':
        output = [
            {
                "user_id": s.user_id,
                "username": s.display_name,
                "similarity": round(s.similarity, 4),
                "shared_movies": s.shared_movies,
            }
            for s in suggestions
        ]
        logger.info(json.dumps(output, indent=2))
        return

    logger.info(f"\n{heading}:")
    for i, s in enumerate(suggestions, 1):
        logger.info(f"{i}. {s.display_name}: {s.similarity:.0%} match ({s.shared_movies} shared movies)")


def cmd_add_user(args: argparse.Namespace) -> None:
    """Create a user profile."""
    init_db()
    username = _validate_username(args.username)
    email = args.email or f"{username}@example.com"
    try:
        user = create_user(email=email, username=username, bio=args.bio)
    except sqlite3.IntegrityError as e:
        raise ValueError(f"Username '{username}' is already taken") from e
    logger.info(f"Created user {user.username} ({user.id})")


def cmd_log(args: argparse.Namespace) -> None:
    """Record that a user watched a movie."""
    init_db()
    user = get_user_by_username(_validate_username(args.username))
    movie = Movie(
        id=args.movie_id,
        title=args.title or f"Movie {args.movie_id}",
        genre_ids=args.genres or [],
        popularity=args.popularity,
    )
    unknown = sorted(g for g in movie.genre_ids if g not in DEFAULT_VOCABULARY)
    if unknown:
        logger.warning(f"Genre ids {unknown} are not in the vocabulary and will not affect scoring")

    log = log_movie(user.id, movie, rating=args.rating)
    logger.info(f"Logged '{log.title}' for {user.username} at {log.watched_date}")


def cmd_history(args: argparse.Namespace) -> None:
    """List a user's logged movies."""
    init_db()
    user = get_user_by_username(_validate_username(args.username))
    logs = get_user_movie_logs(user.id)
    if not logs:
        logger.info(f"{user.username} has not logged any movies yet.")
        return

    logger.info(f"\nWatch history for {user.username} ({len(logs)} entries):")
    for log in logs[-args.limit:]:
        rating = f" - rated {log.rating:g}" if log.rating is not None else ""
        logger.info(f"  {log.watched_date[:10]}  {log.title}{rating}")


def cmd_profile(args: argparse.Namespace) -> None:
    """Show a user's genre taste profile."""
    init_db()
    user = get_user_by_username(_validate_username(args.username))
    watched = movies_from_logs(get_user_movie_logs(user.id))
    if not watched:
        logger.error(f"No movies logged for '{user.username}'. Run: connectin-rec log {user.username} MOVIE_ID")
        return

    profile = build_profile(watched)
    logger.info(f"\nTaste profile for {user.username} ({len(watched)} movies)")
    for name, affinity in describe_profile(profile, top_k=args.limit):
        bar = "#" * int(round(affinity * 20))
        logger.info(f"  {name:<16} {bar} ({affinity:.0%})")


def cmd_search(args: argparse.Namespace) -> None:
    """Search the catalog."""
    with TmdbClient() as catalog:
        movies = catalog.search(args.query, page=args.page)
    _output_movies([ScoredMovie(m, m.popularity) for m in movies], args.format, f"Results for '{args.query}'")


def cmd_popular(args: argparse.Namespace) -> None:
    """List popular or top-rated catalog movies."""
    with TmdbClient() as catalog:
        fetch = catalog.top_rated if args.top_rated else catalog.popular
        movies = fetch(page=args.page)
    heading = "Top rated movies" if args.top_rated else "Popular movies"
    _output_movies([ScoredMovie(m, m.popularity) for m in movies[:args.limit]], args.format, heading)


def cmd_recommend(args: argparse.Namespace) -> None:
    """Recommend unseen movies to a user."""
    init_db()
    user = get_user_by_username(_validate_username(args.username))
    weights = _load_weights(args.weights)

    with TmdbClient() as catalog:
        recs = recommended_movies(user.id, catalog, top_n=args.limit, weights=weights, pages=args.pages)

    if not recs:
        logger.info(f"No recommendations for {user.username} yet. Log a few movies first.")
        return
    _output_movies(recs, args.format, f"Top {len(recs)} recommendations for {user.username}")


def cmd_suggest_users(args: argparse.Namespace) -> None:
    """Suggest other users with similar taste."""
    init_db()
    user = get_user_by_username(_validate_username(args.username))
    suggestions = friend_suggestions(user.id, top_n=args.limit, weights=_load_weights(args.weights))

    if not suggestions:
        logger.info(f"\nNo users with similar taste to {user.username} found.")
        return
    _output_users(suggestions, args.format, f"People {user.username} might know")


def main():
    parser = argparse.ArgumentParser(description="ConnectIn movie recommender")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    add_user_parser = subparsers.add_parser("add-user", help="Create a user profile")
    add_user_parser.add_argument("username", help="Username")
    add_user_parser.add_argument("--email", help="Email address")
    add_user_parser.add_argument("--bio", help="Short bio")
    add_user_parser.set_defaults(func=cmd_add_user)

    log_parser = subparsers.add_parser("log", help="Log a watched movie")
    log_parser.add_argument("username", help="Username")
    log_parser.add_argument("movie_id", type=int, help="TMDb movie id")
    log_parser.add_argument("--title", help="Movie title")
    log_parser.add_argument("--genres", type=int, nargs="+", help="TMDb genre ids")
    log_parser.add_argument("--popularity", type=float, default=0.0, help="Catalog popularity")
    log_parser.add_argument("--rating", type=float, help="Your rating")
    log_parser.set_defaults(func=cmd_log)

    history_parser = subparsers.add_parser("history", help="Show a user's watch history")
    history_parser.add_argument("username", help="Username")
    history_parser.add_argument("--limit", type=int, default=50, help="Most recent entries to show")
    history_parser.set_defaults(func=cmd_history)

    profile_parser = subparsers.add_parser("profile", help="Show a user's taste profile")
    profile_parser.add_argument("username", help="Username")
    profile_parser.add_argument("--limit", type=int, default=PROFILE_TOP_GENRES, help="Genres to show")
    profile_parser.set_defaults(func=cmd_profile)

    search_parser = subparsers.add_parser("search", help="Search the movie catalog")
    search_parser.add_argument("query", help="Search text")
    search_parser.add_argument("--page", type=int, default=1, help="Result page")
    search_parser.add_argument("--format", choices=['text', 'json'], default='text', help="Output format")
    search_parser.set_defaults(func=cmd_search)

    popular_parser = subparsers.add_parser("popular", help="List popular movies")
    popular_parser.add_argument("--top-rated", action="store_true", help="List top rated instead")
    popular_parser.add_argument("--page", type=int, default=1, help="Result page")
    popular_parser.add_argument("--limit", type=int, default=20, help="Movies to show")
    popular_parser.add_argument("--format", choices=['text', 'json'], default='text', help="Output format")
    popular_parser.set_defaults(func=cmd_popular)

    rec_parser = subparsers.add_parser("recommend", help="Recommend movies for a user")
    rec_parser.add_argument("username", help="Username")
    rec_parser.add_argument("--limit", type=int, default=FEED_TOP_N_MOVIES, help="Number of recommendations")
    rec_parser.add_argument("--pages", type=int, default=DEFAULT_CANDIDATE_PAGES,
                            help="Catalog pages per source to draw candidates from")
    rec_parser.add_argument("--weights", help="JSON file overriding hybrid weights")
    rec_parser.add_argument("--format", choices=['text', 'json'], default='text', help="Output format")
    rec_parser.set_defaults(func=cmd_recommend)

    suggest_parser = subparsers.add_parser("suggest-users", help="Find users with similar taste")
    suggest_parser.add_argument("username", help="Username")
    suggest_parser.add_argument("--limit", type=int, default=FEED_TOP_N_USERS, help="Number of suggestions")
    suggest_parser.add_argument("--weights", help="JSON file overriding hybrid weights")
    suggest_parser.add_argument("--format", choices=['text', 'json'], default='text', help="Output format")
    suggest_parser.set_defaults(func=cmd_suggest_users)

    args = parser.parse_args()

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        args.func(args)
    except (ConnectInError, ValueError) as e:
        logger.error(str(e))
        raise SystemExit(1)


if __name__ == "__main__":
    main()
