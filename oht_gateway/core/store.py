"""
Gateway collaborators backed by the SQLite database.

SqliteJobStore and SqliteMappingStore implement the JobStore and
MappingStore protocols of oht_gateway.gateway.host.
"""

import sqlite3
from typing import Any, Dict, List, Optional

from oht_gateway.core import database as db
from oht_gateway.logger import get_logger
from oht_gateway.gateway.errors import ErrorKind, GatewayError
from oht_gateway.gateway.models import (
    ITEM_ACTIVE,
    ITEM_REVIEW,
    JOB_ACTIVE,
    JOB_REJECTED,
    Job,
    JobItem,
    RemoteMapping,
)

logger = get_logger(__name__)


class SqliteJobStore:
    def get_job(self, job_id: int) -> Optional[Job]:
        row = db.get_job_by_id(job_id)
        return Job.from_row(row) if row else None

    def get_job_item(self, item_id: int) -> Optional[JobItem]:
        if item_id is None:
            return None
        row = db.get_job_item_by_id(item_id)
        return JobItem.from_row(row) if row else None

    def get_items(self, job: Job) -> List[JobItem]:
        return [JobItem.from_row(row) for row in db.get_items_for_job(job.id)]

    def add_item_message(self, item: JobItem, message: str, severity: str = "status") -> None:
        db.add_message(item.job_id, message, severity, job_item_id=item.id)

    def add_job_message(self, job: Job, message: str, severity: str = "status") -> None:
        db.add_message(job.id, message, severity)

    def mark_submitted(self, job: Job, message: str) -> None:
        db.update_job_state(job.id, JOB_ACTIVE)
        db.add_message(job.id, message, "status")
        job.state = JOB_ACTIVE

    def mark_rejected(self, job: Job, message: str) -> None:
        db.update_job_state(job.id, JOB_REJECTED)
        db.add_message(job.id, message, "error")
        job.state = JOB_REJECTED

    def add_translated_data(self, job: Job, data: Dict[int, Dict[str, Any]]) -> None:
        """Overwrite the translation of every item in data that belongs to the job."""
        for item_id, translated in data.items():
            row = db.get_job_item_by_id(item_id)
            if not row or row["job_id"] != job.id:
                logger.warning("Ignoring translation for job item %s: not part of job %s", item_id, job.id)
                continue
            state = ITEM_REVIEW if row["state"] == ITEM_ACTIVE else None
            db.save_translated_data(item_id, translated, state=state)


class SqliteMappingStore:
    def create_mapping(self, mapping: RemoteMapping) -> RemoteMapping:
        try:
            mapping.id = db.create_remote_mapping(
                job_id=mapping.job_id,
                job_item_id=mapping.job_item_id,
                remote_identifier_1=mapping.remote_project_id,
                remote_identifier_2=mapping.remote_resource_uuid,
                word_count=mapping.word_count,
                remote_data={"credits": str(mapping.credits)},
            )
        except sqlite3.IntegrityError:
            raise GatewayError(
                f"Job item {mapping.job_item_id} is already mapped to OHT project {mapping.remote_project_id}",
                ErrorKind.VALIDATION,
            )
        return mapping

    def load_by_job(self, job_id: int) -> List[RemoteMapping]:
        return [RemoteMapping.from_row(row) for row in db.get_remote_mappings_for_job(job_id)]

    def load_by_item(self, job_item_id: int) -> List[RemoteMapping]:
        return [RemoteMapping.from_row(row) for row in db.get_remote_mappings_for_item(job_item_id)]
