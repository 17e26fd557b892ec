"""
Database CRUD Operations Module

This module handles all database CRUD operations for:
- Jobs
- Job items
- Messages
- Remote mappings
- App Config

For schema management and migrations, see core/schema.py
"""

import json
import sqlite3
from pathlib import Path
from typing import Optional, List, Dict, Any

DB_FILE = Path(__file__).parent.parent.parent / "gateway.db"


def get_connection():
    """Get a database connection."""
    conn = sqlite3.connect(DB_FILE)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def _row_to_dict(row: Optional[sqlite3.Row], json_fields: tuple = ()) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    record = dict(row)
    for field in json_fields:
        raw = record.get(field)
        record[field] = json.loads(raw) if raw else {}
    return record


# ============================================================
# Job CRUD Operations
# ============================================================

def create_job(source_language: str, target_language: str, label: str = "",
               notes: str = "", expertise: str = "") -> int:
    """Create a new job in the unprocessed state."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO jobs (label, source_language, target_language, notes, expertise)
            VALUES (?, ?, ?, ?, ?)
        """, (label, source_language, target_language, notes, expertise))
        conn.commit()
        return cursor.lastrowid


def get_job_by_id(job_id: int) -> Optional[Dict[str, Any]]:
    """Get a job by ID."""
    with get_connection() as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM jobs WHERE id = ?", (job_id,))
        return _row_to_dict(cursor.fetchone())


def get_jobs_by_state(state: str) -> List[Dict[str, Any]]:
    """Get all jobs currently in the given state."""
    with get_connection() as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM jobs WHERE state = ? ORDER BY id", (state,))
        return [dict(row) for row in cursor.fetchall()]


def update_job_state(job_id: int, state: str):
    """Update the state of a job."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            UPDATE jobs SET state = ?, changed_at = CURRENT_TIMESTAMP
            WHERE id = ?
        """, (state, job_id))
        conn.commit()


def update_job_settings(job_id: int, notes: str = None, expertise: str = None):
    """Update checkout settings of a job."""
    with get_connection() as conn:
        cursor = conn.cursor()
        updates = []
        params = []

        if notes is not None:
            updates.append("notes = ?")
            params.append(notes)
        if expertise is not None:
            updates.append("expertise = ?")
            params.append(expertise)

        if updates:
            params.append(job_id)
            cursor.execute(f"UPDATE jobs SET {', '.join(updates)} WHERE id = ?", params)
            conn.commit()


# ============================================================
# Job Item CRUD Operations
# ============================================================

def create_job_item(job_id: int, source_data: Dict[str, str], label: str = "") -> int:
    """Create a job item holding the source texts keyed by data key."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO job_items (job_id, label, source_data)
            VALUES (?, ?, ?)
        """, (job_id, label, json.dumps(source_data, ensure_ascii=False)))
        conn.commit()
        return cursor.lastrowid


def get_job_item_by_id(item_id: int) -> Optional[Dict[str, Any]]:
    """Get a job item by ID."""
    with get_connection() as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM job_items WHERE id = ?", (item_id,))
        return _row_to_dict(cursor.fetchone(), ("source_data", "translated_data"))


def get_items_for_job(job_id: int) -> List[Dict[str, Any]]:
    """Get all items of a job in creation order."""
    with get_connection() as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM job_items WHERE job_id = ? ORDER BY id", (job_id,))
        return [_row_to_dict(row, ("source_data", "translated_data")) for row in cursor.fetchall()]


def save_translated_data(item_id: int, translated_data: Dict[str, str], state: str = None):
    """
    Store the translation of a job item.

    The previous translation is replaced, so importing the same content
    twice leaves the item unchanged.
    """
    with get_connection() as conn:
        cursor = conn.cursor()
        if state is not None:
            cursor.execute("""
                UPDATE job_items SET translated_data = ?, state = ?, changed_at = CURRENT_TIMESTAMP
                WHERE id = ?
            """, (json.dumps(translated_data, ensure_ascii=False), state, item_id))
        else:
            cursor.execute("""
                UPDATE job_items SET translated_data = ?, changed_at = CURRENT_TIMESTAMP
                WHERE id = ?
            """, (json.dumps(translated_data, ensure_ascii=False), item_id))
        conn.commit()


def update_job_item_state(item_id: int, state: str):
    """Update the state of a job item."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            UPDATE job_items SET state = ?, changed_at = CURRENT_TIMESTAMP
            WHERE id = ?
        """, (state, item_id))
        conn.commit()


# ============================================================
# Message Operations
# ============================================================

def add_message(job_id: int, message: str, severity: str = "status",
                job_item_id: int = None) -> int:
    """Append a host-visible message to a job or one of its items."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO messages (job_id, job_item_id, message, severity)
            VALUES (?, ?, ?, ?)
        """, (job_id, job_item_id, message, severity))
        conn.commit()
        return cursor.lastrowid


def get_messages(job_id: int, job_item_id: int = None) -> List[Dict[str, Any]]:
    """Get messages of a job, optionally restricted to one item."""
    with get_connection() as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()
        if job_item_id is None:
            cursor.execute("SELECT * FROM messages WHERE job_id = ? ORDER BY id", (job_id,))
        else:
            cursor.execute("""
                SELECT * FROM messages WHERE job_id = ? AND job_item_id = ? ORDER BY id
            """, (job_id, job_item_id))
        return [dict(row) for row in cursor.fetchall()]


# ============================================================
# Remote Mapping Operations
# ============================================================

def create_remote_mapping(job_id: int, job_item_id: int, remote_identifier_1: str,
                          remote_identifier_2: str, word_count: int = 0,
                          remote_data: Dict[str, Any] = None) -> int:
    """
    Create a remote mapping.

    Raises sqlite3.IntegrityError when the item is already mapped to the
    same remote project.
    """
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO remote_mappings
                (job_id, job_item_id, remote_identifier_1, remote_identifier_2, word_count, remote_data)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (job_id, job_item_id, remote_identifier_1, remote_identifier_2, word_count,
              json.dumps(remote_data or {})))
        conn.commit()
        return cursor.lastrowid


def get_remote_mappings_for_job(job_id: int) -> List[Dict[str, Any]]:
    """Get all remote mappings of a job."""
    with get_connection() as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM remote_mappings WHERE job_id = ? ORDER BY id", (job_id,))
        return [_row_to_dict(row, ("remote_data",)) for row in cursor.fetchall()]


def get_remote_mappings_for_item(job_item_id: int) -> List[Dict[str, Any]]:
    """Get all remote mappings of a job item."""
    with get_connection() as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM remote_mappings WHERE job_item_id = ? ORDER BY id", (job_item_id,))
        return [_row_to_dict(row, ("remote_data",)) for row in cursor.fetchall()]


# ============================================================
# App Config Operations
# ============================================================

def get_app_config(key: str) -> Optional[str]:
    """Get app config value by key."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT value FROM app_config WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row[0] if row else None


def set_app_config(key: str, value: str):
    """Set app config value."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO app_config (key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = CURRENT_TIMESTAMP
        """, (key, value))
        conn.commit()
