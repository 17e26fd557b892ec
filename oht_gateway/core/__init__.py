"""
Core module - host-side persistence and document conversion

This module provides:
- database: CRUD operations for jobs, items, messages, remote mappings, config
- schema: Database initialization and migrations
- store: Gateway collaborator adapters over the database
- xliff: XLIFF export/import of job item content
"""

from oht_gateway.core.database import (
    DB_FILE,
    get_connection,
    # Job operations
    create_job,
    get_job_by_id,
    get_jobs_by_state,
    update_job_state,
    update_job_settings,
    # Job item operations
    create_job_item,
    get_job_item_by_id,
    get_items_for_job,
    save_translated_data,
    update_job_item_state,
    # Message operations
    add_message,
    get_messages,
    # Remote mapping operations
    create_remote_mapping,
    get_remote_mappings_for_job,
    get_remote_mappings_for_item,
    # App config operations
    get_app_config,
    set_app_config,
)

from oht_gateway.core.schema import (
    DB_VERSION,
    get_db_version,
    set_db_version,
    create_tables,
    initialize_database,
    migrate_database,
)
