import psycopg2
from psycopg2.extras import RealDictCursor
import logging

from app.config import get_database_url

logger = logging.getLogger(__name__)


# -------------------------------------------------
# DB CONNECTION (LAZY, SAFE)
# -------------------------------------------------
def get_db() -> psycopg2.extensions.connection:
    """
    Returns a new PostgreSQL connection with dict rows.
    Caller is responsible for closing it.
    DATABASE_URL is read on first use so the pricing core
    can be imported and tested without a database.
    """
    database_url = get_database_url()
    try:
        conn = psycopg2.connect(
            database_url,
            cursor_factory=RealDictCursor,
            sslmode="require",
            connect_timeout=5,
        )
        return conn

    except Exception as e:
        logger.exception(f"❌ Database connection failed → {e}")
        raise RuntimeError("Database connection failed") from e


def fetch_all(sql: str, params: tuple = ()) -> list:
    """
    Runs a read-only query and returns every row as a dict.
    """
    conn = get_db()
    try:
        cur = conn.cursor()
        cur.execute(sql, params)
        rows = cur.fetchall()
        cur.close()
        return [dict(row) for row in rows]
    finally:
        conn.close()
