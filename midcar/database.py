"""MidCar Database Module.

Connection pool, cursor helpers and the in-memory TTL cache used by
repositories and services across all modules.
"""
import os
import time
import logging
import threading
from decimal import Decimal
from functools import wraps

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

# Thread-safe lock for cache operations
_cache_lock = threading.RLock()

logger = logging.getLogger('midcar.database')

# PostgreSQL connection - DATABASE_URL is required
DATABASE_URL = os.environ.get('DATABASE_URL')

if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required. Set it to your PostgreSQL connection string.")

_connection_pool = None
_pool_lock = threading.Lock()

POOL_MIN_CONN = int(os.environ.get('DB_POOL_MIN_CONN', '2'))
POOL_MAX_CONN = int(os.environ.get('DB_POOL_MAX_CONN', '8'))
POOL_GETCONN_TIMEOUT = int(os.environ.get('DB_POOL_TIMEOUT', '10'))


def _get_pool():
    """Get or create the connection pool (lazy initialization, thread-safe)."""
    global _connection_pool
    if _connection_pool is None:
        with _pool_lock:
            if _connection_pool is None:
                _connection_pool = pool.ThreadedConnectionPool(
                    minconn=POOL_MIN_CONN,
                    maxconn=POOL_MAX_CONN,
                    dsn=DATABASE_URL,
                    keepalives=1,
                    keepalives_idle=30,
                    keepalives_interval=10,
                    keepalives_count=5,
                    connect_timeout=5,
                )
                logger.info(f'Connection pool created: min={POOL_MIN_CONN}, max={POOL_MAX_CONN}')
    return _connection_pool


def _getconn_with_timeout(timeout=None):
    """Get a connection from the pool, failing after `timeout` seconds.

    ThreadedConnectionPool.getconn() raises immediately when the pool is
    exhausted, so retry until the deadline passes.
    """
    if timeout is None:
        timeout = POOL_GETCONN_TIMEOUT
    deadline = time.time() + timeout
    while True:
        try:
            return _get_pool().getconn()
        except pool.PoolError:
            if time.time() >= deadline:
                raise psycopg2.OperationalError(
                    f"Connection pool exhausted, timed out after {timeout}s waiting for a connection"
                )
            time.sleep(0.1)


def get_db():
    """Get PostgreSQL database connection from pool.

    Validates connection health before returning. If connection is stale
    (closed by server), it's discarded and a fresh one is obtained.
    Retries up to 3 times to handle multiple stale connections in pool.
    """
    max_retries = 3
    last_error = None

    for attempt in range(max_retries):
        conn = _getconn_with_timeout()

        try:
            with conn.cursor() as cur:
                cur.execute('SELECT 1')
            conn.rollback()
            conn.autocommit = True
            return conn
        except (psycopg2.OperationalError, psycopg2.InterfaceError, psycopg2.DatabaseError) as e:
            last_error = e
            logger.warning(f'Stale connection discarded (attempt {attempt + 1}/{max_retries}): {e}')
            try:
                _get_pool().putconn(conn, close=True)
            except Exception as put_error:
                logger.debug(f'Failed to close stale connection: {put_error}')

    raise psycopg2.OperationalError(f"Failed to get valid connection after {max_retries} attempts: {last_error}")


def release_db(conn):
    """Return connection to pool, closing it if it is broken."""
    if conn and _connection_pool:
        try:
            if conn.closed:
                _connection_pool.putconn(conn, close=True)
                return
            conn.autocommit = False
            _connection_pool.putconn(conn)
        except Exception as e:
            logger.warning(f'Failed to return connection to pool, closing it: {e}')
            try:
                _connection_pool.putconn(conn, close=True)
            except Exception:
                logger.debug('Connection already detached from pool')


_ping_cache = {'ok': False, 'ts': 0}


def ping_db():
    """Ping the database. Successful results are cached for 5 seconds.

    Returns True if successful, False otherwise.
    """
    now = time.time()
    if _ping_cache['ok'] and (now - _ping_cache['ts']) < 5:
        return True

    try:
        conn = get_db()
        try:
            with conn.cursor() as cur:
                cur.execute('SELECT 1')
            _ping_cache['ok'] = True
            _ping_cache['ts'] = now
            return True
        finally:
            release_db(conn)
    except Exception as e:
        logger.warning(f'Database ping failed: {e}')
        _ping_cache['ok'] = False
        return False


def get_cursor(conn):
    """Get cursor with dict row factory."""
    return conn.cursor(cursor_factory=RealDictCursor)


def init_db():
    """Create tables, indexes and seed data when the schema is missing.

    Called once at application startup (never on import) so that tests and
    tooling can import repositories without a live database.
    """
    conn = get_db()
    cursor = get_cursor(conn)
    try:
        cursor.execute("""
            SELECT EXISTS (
                SELECT FROM information_schema.tables
                WHERE table_schema = 'public' AND table_name = 'vehicles'
            )
        """)
        if cursor.fetchone()['exists']:
            logger.info('Database schema already initialized, skipping init_db()')
            return

        from migrations.init_schema import create_schema
        create_schema(conn, cursor)
        conn.commit()
        logger.info('Database schema initialized successfully')
    finally:
        release_db(conn)


def dict_from_row(row):
    """Convert database row to dictionary with JSON-friendly values.

    Dates and datetimes become ISO strings, NUMERIC values become floats.
    """
    if row is None:
        return None
    result = dict(row)
    for key, value in result.items():
        if hasattr(value, 'isoformat'):
            result[key] = value.isoformat()
        elif isinstance(value, Decimal):
            result[key] = float(value)
    return result


# ============== CACHE UTILITIES ==============

def is_cache_valid(cache_entry: dict) -> bool:
    """Check if a cache entry is still inside its time window."""
    with _cache_lock:
        if cache_entry.get('data') is None:
            return False
        return (time.time() - cache_entry.get('timestamp', 0)) < cache_entry.get('ttl', 300)


def set_cache_data(cache_dict: dict, data, key: str = 'data'):
    """Thread-safe setter for cache data with timestamp update."""
    with _cache_lock:
        cache_dict[key] = data
        cache_dict['timestamp'] = time.time()


def create_cache(ttl: int = 300) -> dict:
    """Create a new cache dictionary with specified TTL."""
    return {
        'data': None,
        'timestamp': 0,
        'ttl': ttl
    }


def cached(ttl: int = 300):
    """Memoize a function's result per argument tuple for `ttl` seconds.

    None results are not stored, and expired keys are dropped whenever a
    new result is stored. The wrapped function gains `.invalidate()` which
    drops every entry, and `.cache` exposing the per-key entries.

    Usage:
        @cached(ttl=60)
        def get_brands():
            ...

        get_brands.invalidate()
    """
    def decorator(func):
        entries = {}

        @wraps(func)
        def wrapper(*args, **kwargs):
            key = (args, tuple(sorted(kwargs.items())))
            with _cache_lock:
                entry = entries.get(key)
                if entry is not None and is_cache_valid(entry):
                    return entry['data']
            result = func(*args, **kwargs)
            if result is None:
                return result
            entry = create_cache(ttl)
            set_cache_data(entry, result)
            with _cache_lock:
                for stale in [k for k, e in entries.items() if not is_cache_valid(e)]:
                    del entries[stale]
                entries[key] = entry
            return result

        def invalidate():
            with _cache_lock:
                entries.clear()

        wrapper.invalidate = invalidate
        wrapper.cache = entries
        return wrapper
    return decorator
