import sqlite3
import json
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from .config import DB_PATH
from .exceptions import UserNotFoundError
from .models import Movie, MovieLog, User

logger = logging.getLogger(__name__)


class ConnectionPool:
    """
    Thread-safe SQLite connection pool.

    - One connection per thread (SQLite threading requirement)
    - Explicit transaction nesting tracking
    """

    def __init__(self, db_path, max_size: int = 50):
        self._db_path = db_path
        self._max_size = max_size

        self._lock = threading.Lock()
        self._connections: dict[int, sqlite3.Connection] = {}
        self._transaction_depth: dict[int, int] = {}  # Track nested transactions

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout = 5000")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _cleanup_dead_threads(self):
        alive_threads = {t.ident for t in threading.enumerate()}
        for thread_id in set(self._connections) - alive_threads:
            conn = self._connections.pop(thread_id)
            self._transaction_depth.pop(thread_id, None)
            conn.close()
            logger.debug(f"Cleaned up connection for dead thread {thread_id}")

    def get_connection(self) -> sqlite3.Connection:
        """Get a connection for the current thread, creating if necessary."""
        thread_id = threading.get_ident()

        with self._lock:
            conn = self._connections.get(thread_id)
            if conn is None:
                if len(self._connections) >= self._max_size:
                    self._cleanup_dead_threads()
                    if len(self._connections) >= self._max_size:
                        raise RuntimeError(
                            f"Connection pool exhausted ({self._max_size} connections). "
                            f"Possible connection leak or too many threads."
                        )

                conn = self._create_connection()
                self._connections[thread_id] = conn
                self._transaction_depth[thread_id] = 0
                logger.debug(f"Created connection for thread {thread_id} (pool size: {len(self._connections)})")
            return conn

    def get_transaction_depth(self) -> int:
        return self._transaction_depth.get(threading.get_ident(), 0)

    def increment_transaction_depth(self):
        thread_id = threading.get_ident()
        with self._lock:
            self._transaction_depth[thread_id] = self._transaction_depth.get(thread_id, 0) + 1

    def decrement_transaction_depth(self):
        thread_id = threading.get_ident()
        with self._lock:
            depth = self._transaction_depth.get(thread_id, 1)
            self._transaction_depth[thread_id] = max(0, depth - 1)

    def close_all(self):
        """Close all connections (call on application shutdown)."""
        with self._lock:
            for thread_id, conn in list(self._connections.items()):
                try:
                    conn.close()
                except sqlite3.Error as e:
                    logger.warning(f"Error closing connection for thread {thread_id}: {e}")

            self._connections.clear()
            self._transaction_depth.clear()
            logger.debug("Connection pool closed")


# Global pool instance
_pool: ConnectionPool | None = None
_pool_lock = threading.Lock()


def init_db() -> None:
    DB_PATH.parent.mkdir(exist_ok=True, parents=True)
    with get_db() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                email TEXT NOT NULL,
                username TEXT NOT NULL UNIQUE,
                avatar_url TEXT,
                bio TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS movie_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
                movie_id INTEGER NOT NULL,
                title TEXT,
                genre_ids TEXT,     -- JSON list of TMDb genre ids
                poster_path TEXT,
                watched_date TEXT NOT NULL,
                rating REAL
            );

            CREATE INDEX IF NOT EXISTS idx_movie_logs_user ON movie_logs(user_id);
            CREATE INDEX IF NOT EXISTS idx_movie_logs_movie ON movie_logs(movie_id);
        """)


def _get_pool() -> ConnectionPool:
    """Get or create the global connection pool."""
    global _pool
    if _pool is None:
        with _pool_lock:
            if _pool is None:
                DB_PATH.parent.mkdir(exist_ok=True, parents=True)
                _pool = ConnectionPool(DB_PATH)
    return _pool


@contextmanager
def get_db(read_only: bool = False):
    """
    Get database connection with proper transaction handling.

    Args:
        read_only: If True, skip commit on exit (optimization for read operations)

    Handles nested calls correctly:
    - Only the outermost context commits/rollbacks
    - Inner contexts are no-ops for transaction control
    """
    pool = _get_pool()
    conn = pool.get_connection()

    is_outermost = pool.get_transaction_depth() == 0
    pool.increment_transaction_depth()

    try:
        yield conn

        if is_outermost and not read_only:
            conn.commit()

    except Exception:
        if is_outermost:
            conn.rollback()
        raise

    finally:
        pool.decrement_transaction_depth()


def close_pool():
    """Close the connection pool. Call on application shutdown."""
    global _pool
    if _pool is not None:
        _pool.close_all()
        _pool = None


def load_json(val):
    """Safely load JSON from db field."""
    if not val:
        return []
    if isinstance(val, list):
        return val
    try:
        return json.loads(val)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Failed to parse JSON '{str(val)[:50]}...': {e}")
        return []


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row['id'],
        email=row['email'],
        username=row['username'],
        avatar_url=row['avatar_url'],
        bio=row['bio'],
    )


def _row_to_log(row: sqlite3.Row) -> MovieLog:
    return MovieLog(
        id=row['id'],
        user_id=row['user_id'],
        movie_id=row['movie_id'],
        title=row['title'] or "",
        genre_ids=[int(g) for g in load_json(row['genre_ids'])],
        poster_path=row['poster_path'],
        watched_date=row['watched_date'],
        rating=row['rating'],
    )


def create_user(email: str, username: str, user_id: str | None = None,
                avatar_url: str | None = None, bio: str | None = None) -> User:
    """Insert a profile row. Raises sqlite3.IntegrityError if the username is taken."""
    user = User(
        id=user_id or str(uuid.uuid4()),
        email=email,
        username=username,
        avatar_url=avatar_url,
        bio=bio,
    )
    with get_db() as conn:
        conn.execute(
            "INSERT INTO profiles (id, email, username, avatar_url, bio) VALUES (?, ?, ?, ?, ?)",
            (user.id, user.email, user.username, user.avatar_url, user.bio),
        )
    logger.debug(f"Created profile {user.username} ({user.id})")
    return user


def get_user(user_id: str) -> User:
    with get_db(read_only=True) as conn:
        row = conn.execute("SELECT * FROM profiles WHERE id = ?", (user_id,)).fetchone()
    if row is None:
        raise UserNotFoundError(f"No profile with id '{user_id}'")
    return _row_to_user(row)


def get_user_by_username(username: str) -> User:
    with get_db(read_only=True) as conn:
        row = conn.execute("SELECT * FROM profiles WHERE username = ?", (username,)).fetchone()
    if row is None:
        raise UserNotFoundError(f"No profile named '{username}'")
    return _row_to_user(row)


def list_users(exclude_id: str | None = None) -> list[User]:
    with get_db(read_only=True) as conn:
        rows = conn.execute(
            "SELECT * FROM profiles WHERE id IS NOT ? ORDER BY created_at, username",
            (exclude_id,),
        ).fetchall()
    return [_row_to_user(row) for row in rows]


def log_movie(user_id: str, movie: Movie, rating: float | None = None,
              watched_date: str | None = None) -> MovieLog:
    """Record a watch event for a user. Every call adds a new entry."""
    log = MovieLog(
        user_id=user_id,
        movie_id=movie.id,
        title=movie.title,
        genre_ids=sorted(movie.genre_ids),
        poster_path=movie.poster_path,
        watched_date=watched_date or datetime.now().isoformat(),
        rating=rating,
    )
    with get_db() as conn:
        cursor = conn.execute(
            """
            INSERT INTO movie_logs (user_id, movie_id, title, genre_ids, poster_path, watched_date, rating)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (log.user_id, log.movie_id, log.title, json.dumps(log.genre_ids),
             log.poster_path, log.watched_date, log.rating),
        )
        log.id = cursor.lastrowid
    return log


def get_user_movie_logs(user_id: str) -> list[MovieLog]:
    """All logs for a user in the order they were recorded."""
    with get_db(read_only=True) as conn:
        rows = conn.execute(
            "SELECT * FROM movie_logs WHERE user_id = ? ORDER BY id",
            (user_id,),
        ).fetchall()
    return [_row_to_log(row) for row in rows]


def load_other_users_with_movies(user_id: str) -> list[tuple[User, list[Movie]]]:
    """
    Every other user that has logged at least one movie, with their movies.

    Users are returned in profile order so downstream ranking is reproducible.
    """
    with get_db(read_only=True) as conn:
        rows = conn.execute(
            "SELECT * FROM movie_logs WHERE user_id != ? ORDER BY id",
            (user_id,),
        ).fetchall()

    logs_by_user: dict[str, list[MovieLog]] = {}
    for row in rows:
        log = _row_to_log(row)
        logs_by_user.setdefault(log.user_id, []).append(log)

    return [
        (user, [log.to_movie() for log in logs_by_user[user.id]])
        for user in list_users(exclude_id=user_id)
        if user.id in logs_by_user
    ]
