"""
Retrieval Reconciler

Fetches finished translations from OHT and hands them to the host, either
for the resource named in a webhook or by polling every remote mapping of
a job.

Failures here are cheap: a later poll can fetch the same resource again.
So an error on one resource or mapping is recorded on the item and the
loop moves on.
"""

from typing import Iterable, Optional

from oht_gateway.logger import get_logger
from oht_gateway.gateway.client import OhtClient
from oht_gateway.gateway.errors import ErrorKind, GatewayError
from oht_gateway.gateway.host import DocumentConverter, JobStore, MappingStore
from oht_gateway.gateway.models import Job, JobItem, RetrievalOutcome

logger = get_logger(__name__)

XML_PROLOGUE = b"<?xml"
UTF8_BOM = b"\xef\xbb\xbf"

MESSAGE_RECEIVED = "The translation has been received."
MESSAGE_UPDATED = "The translation has been updated."


def is_translation_document(payload: bytes) -> bool:
    """
    Whether a downloaded payload is an XML document.

    OHT's download endpoint sometimes answers 200 with a JSON error body
    (seen on sandbox for unknown resource uuids); those must not be imported.
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    if not payload:
        return False
    if payload.startswith(UTF8_BOM):
        payload = payload[len(UTF8_BOM):]
    return payload.lstrip().startswith(XML_PROLOGUE)


class RetrievalReconciler:
    """Downloads, checks and imports translated resources."""

    def __init__(self, client: OhtClient, converter: DocumentConverter, jobs: JobStore,
                 mappings: MappingStore):
        self.client = client
        self.converter = converter
        self.jobs = jobs
        self.mappings = mappings

    def retrieve(self, resource_uuids: Iterable[str], job_item: JobItem,
                 remote_project_id: Optional[str] = None) -> RetrievalOutcome:
        """
        Download each resource and import the ones that are real translations.

        Errors are recorded on the item and do not stop the remaining uuids.
        """
        outcome = RetrievalOutcome()
        job = self.jobs.get_job(job_item.job_id)

        for resource_uuid in resource_uuids:
            try:
                if job is None:
                    raise GatewayError(f"Job {job_item.job_id} not found", ErrorKind.NOT_FOUND)

                payload = self.client.download_resource(resource_uuid, remote_project_id)
                if not is_translation_document(payload):
                    logger.warning("Skipping OHT resource %s for job item %s: not a translation document",
                                   resource_uuid, job_item.id)
                    outcome.skipped.append(resource_uuid)
                    continue

                data = self._parse(payload, resource_uuid)

                # State decides the message, so read it right before importing
                current = self.jobs.get_job_item(job_item.id) or job_item
                was_active = current.is_active
                self.jobs.add_translated_data(job, data)
                self.jobs.add_item_message(current, MESSAGE_RECEIVED if was_active else MESSAGE_UPDATED)
                outcome.delivered.append(resource_uuid)
                logger.info("Imported OHT resource %s for job item %s", resource_uuid, job_item.id)
            except GatewayError as e:
                logger.warning("Could not get translation %s for job item %s: %s",
                               resource_uuid, job_item.id, e)
                outcome.errors.append(e)
                self.jobs.add_item_message(
                    job_item, f"Could not get translation from OHT. Message error: {e}", "error")

        return outcome

    def _parse(self, payload: bytes, resource_uuid: str):
        try:
            return self.converter.import_translation(payload)
        except ValueError as e:
            raise GatewayError(f"Could not parse OHT resource {resource_uuid}: {e}", ErrorKind.REMOTE)

    def reconcile(self, job: Job) -> bool:
        """
        Poll OHT for every remote mapping of a job.

        Returns:
            True if any mapping produced an error. Only a transport failure
            while fetching project details stops the sweep early.
        """
        had_errors = False

        for mapping in self.mappings.load_by_job(job.id):
            job_item = self.jobs.get_job_item(mapping.job_item_id)
            if job_item is None:
                logger.warning("Remote mapping %s points to missing job item %s",
                               mapping.id, mapping.job_item_id)
                had_errors = True
                continue

            if not mapping.remote_project_id:
                had_errors = True
                self.jobs.add_item_message(job_item, "Could not retrieve project information.", "error")
                continue

            try:
                project = self.client.get_project_details(mapping.remote_project_id)
            except GatewayError as e:
                if e.kind is ErrorKind.TRANSPORT:
                    logger.error("Could not pull translation resources for job %s: %s", job.id, e)
                    self.jobs.add_job_message(job, "Could not pull translation resources.", "error")
                    return True
                had_errors = True
                self.jobs.add_item_message(
                    job_item, f"Could not retrieve project information: {e}", "error")
                continue

            if not project.translation_uuids:
                had_errors = True
                self.jobs.add_item_message(job_item, "Could not retrieve translation resources.", "error")
                continue

            outcome = self.retrieve(project.translation_uuids, job_item, project.project_id)
            had_errors = had_errors or outcome.had_errors

        return had_errors
