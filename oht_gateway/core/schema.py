"""
Database Schema Management Module

This module handles database initialization, schema validation, and migrations.
For CRUD operations, see core/database.py
"""

import sqlite3

# Import database module to use DB_FILE and get_connection dynamically
# This ensures monkeypatching in tests works correctly
import oht_gateway.core.database as db

DB_VERSION = 2  # Increment when schema changes (remote mapping unique index in v2)


def get_connection():
    """Get a database connection using the database module's DB_FILE."""
    return db.get_connection()


def get_db_version() -> int:
    """Get current database version."""
    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT version FROM db_version LIMIT 1")
            row = cursor.fetchone()
            return row[0] if row else 0
    except sqlite3.OperationalError:
        return 0


def set_db_version(version: int):
    """Set database version."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("CREATE TABLE IF NOT EXISTS db_version (version INTEGER)")
        cursor.execute("DELETE FROM db_version")
        cursor.execute("INSERT INTO db_version (version) VALUES (?)", (version,))
        conn.commit()


def create_tables():
    """Create every table that does not exist yet."""
    with get_connection() as conn:
        cursor = conn.cursor()

        cursor.execute("""
        CREATE TABLE IF NOT EXISTS jobs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            label TEXT,
            source_language TEXT NOT NULL,
            target_language TEXT NOT NULL,
            state TEXT NOT NULL DEFAULT 'unprocessed',
            notes TEXT,
            expertise TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            changed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """)

        cursor.execute("""
        CREATE TABLE IF NOT EXISTS job_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            job_id INTEGER NOT NULL,
            label TEXT,
            state TEXT NOT NULL DEFAULT 'active',
            source_data TEXT NOT NULL,
            translated_data TEXT,
            changed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (job_id) REFERENCES jobs (id) ON DELETE CASCADE
        )
        """)

        cursor.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            job_id INTEGER NOT NULL,
            job_item_id INTEGER,
            message TEXT NOT NULL,
            severity TEXT NOT NULL DEFAULT 'status',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (job_id) REFERENCES jobs (id) ON DELETE CASCADE
        )
        """)

        # remote_identifier_1 is the OHT project id, remote_identifier_2 the resource uuid
        cursor.execute("""
        CREATE TABLE IF NOT EXISTS remote_mappings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            job_id INTEGER NOT NULL,
            job_item_id INTEGER NOT NULL,
            remote_identifier_1 TEXT,
            remote_identifier_2 TEXT,
            word_count INTEGER DEFAULT 0,
            remote_data TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (job_item_id) REFERENCES job_items (id) ON DELETE CASCADE
        )
        """)

        cursor.execute("""
        CREATE TABLE IF NOT EXISTS app_config (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """)

        conn.commit()


def initialize_database():
    """
    Initializes the database and creates the tables.

    A file without a recorded version (empty, or left behind by an
    interrupted first start) is set up from scratch.
    """
    from oht_gateway.logger import get_logger
    logger = get_logger(__name__)

    current_version = get_db_version() if db.DB_FILE.exists() else 0
    if current_version >= DB_VERSION:
        return
    if current_version > 0:
        migrate_database(current_version, DB_VERSION)
        return

    create_tables()
    ensure_database_indexes()
    set_db_version(DB_VERSION)
    logger.info(f"Database created at {db.DB_FILE}")


def ensure_database_indexes():
    """
    Create lookup indexes and the one-mapping-per-remote-project constraint.
    Safe to call repeatedly.
    """
    from oht_gateway.logger import get_logger
    logger = get_logger(__name__)

    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_job_items_job ON job_items (job_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_messages_job ON messages (job_id, job_item_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_remote_mappings_job ON remote_mappings (job_id)")
            cursor.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_remote_mappings_unique
                ON remote_mappings (job_item_id, remote_identifier_1)
            """)
            conn.commit()
    except Exception as e:
        logger.error(f"Failed to ensure database indexes: {e}")
        raise


def migrate_database(from_version: int, to_version: int):
    """Migrate database from one version to another."""
    from oht_gateway.logger import get_logger
    logger = get_logger(__name__)

    logger.info(f"Migrating database from version {from_version} to {to_version}")

    # Tables missing from an older file are created empty
    create_tables()

    if from_version < 2:
        # v2: unique (job_item_id, remote_identifier_1); drop duplicates first, keeping the oldest
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                DELETE FROM remote_mappings
                WHERE id NOT IN (
                    SELECT MIN(id) FROM remote_mappings
                    GROUP BY job_item_id, remote_identifier_1
                )
            """)
            removed = cursor.rowcount
            conn.commit()
        if removed:
            logger.warning(f"Removed {removed} duplicate remote mappings during migration")
        ensure_database_indexes()

    set_db_version(to_version)
    logger.info("Database migration complete")
