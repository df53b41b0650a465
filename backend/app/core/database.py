"""
Conexión a base de datos PostgreSQL

Centraliza el acceso psycopg2 usado por el document store:
- Conexiones con RealDictCursor (filas como diccionarios)
- Reintentos con backoff exponencial ante fallas SSL/conexión
- Esquema de la tabla de documentos

Author: TM3
Updated: 2026-02-10
"""
import time
import logging

import psycopg2
from psycopg2.extras import RealDictCursor

from .config import settings
from .exceptions import ConfigError

logger = logging.getLogger(__name__)


DOCUMENTS_SCHEMA = """
    CREATE TABLE IF NOT EXISTS documents (
        collection  TEXT        NOT NULL,
        doc_id      TEXT        NOT NULL,
        data        JSONB       NOT NULL DEFAULT '{}'::jsonb,
        created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (collection, doc_id)
    )
"""


def _get_database_url(database_url: str = None) -> str:
    database_url = database_url or settings.DATABASE_URL
    if not database_url:
        raise ConfigError("DATABASE_URL not configured")
    return database_url


def get_db_connection_with_retry(max_retries=3, retry_delay=1.0, database_url=None,
                                 cursor_factory=None):
    """
    Get a psycopg2 connection with automatic retry on SSL/connection failures

    This function handles intermittent connection issues by:
    - Retrying failed connections up to max_retries times
    - Adding exponential backoff between retries
    - Logging connection attempts for debugging

    Args:
        max_retries: Maximum number of connection attempts (default: 3)
        retry_delay: Initial delay between retries in seconds (default: 1.0)
        database_url: Override for settings.DATABASE_URL
        cursor_factory: Optional psycopg2 cursor factory (e.g. RealDictCursor)

    Returns:
        psycopg2 connection object

    Raises:
        psycopg2.OperationalError: If all retry attempts fail
    """
    database_url = _get_database_url(database_url)
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database connection attempt {attempt}/{max_retries}")
            if cursor_factory is not None:
                conn = psycopg2.connect(database_url, cursor_factory=cursor_factory)
            else:
                conn = psycopg2.connect(database_url)

            # Test connection with a simple query
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.close()

            logger.debug(f"Database connection successful on attempt {attempt}")
            return conn

        except psycopg2.OperationalError as e:
            last_error = e
            error_msg = str(e)

            # Check if it's an SSL connection error
            if "SSL connection has been closed unexpectedly" in error_msg:
                logger.warning(f"SSL connection error on attempt {attempt}/{max_retries}: {error_msg}")
            else:
                logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {error_msg}")

            # Don't retry on last attempt
            if attempt < max_retries:
                # Exponential backoff
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)
            else:
                logger.error(f"All {max_retries} connection attempts failed")
                raise last_error

    raise last_error if last_error else Exception("Connection failed after all retries")


def get_db_connection_dict_with_retry(max_retries=3, retry_delay=1.0, database_url=None):
    """
    Same as get_db_connection_with_retry but rows come back as dicts.

    Example:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()
        cursor.execute("SELECT data FROM documents WHERE collection = %s", ("salesOrders",))
        rows = cursor.fetchall()  # Returns list of dicts
        cursor.close()
        conn.close()
    """
    return get_db_connection_with_retry(
        max_retries=max_retries,
        retry_delay=retry_delay,
        database_url=database_url,
        cursor_factory=RealDictCursor,
    )


def init_documents_table(database_url: str = None) -> None:
    """Create the documents table if it does not exist yet"""
    conn = get_db_connection_with_retry(database_url=database_url)
    cursor = conn.cursor()
    try:
        cursor.execute(DOCUMENTS_SCHEMA)
        conn.commit()
        logger.info("documents table ready")
    finally:
        cursor.close()
        conn.close()
