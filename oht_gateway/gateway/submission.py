"""
Submission Orchestrator

Sends the items of a job to OHT one by one:
1. Export the item to XLIFF
2. Upload it as a file resource
3. Create a translation project for the resource
4. Record the remote mapping
5. Leave a message on the item

Submissions are not transactional across items. When item k fails, the
items before it keep their mappings (OHT has already charged for them)
and the remaining items are not sent. Nothing is retried here: a retry
could create a second project and charge the account twice.
"""

from typing import Optional

from oht_gateway.logger import get_logger
from oht_gateway.gateway import callback
from oht_gateway.gateway.client import OhtClient
from oht_gateway.gateway.errors import ErrorKind, GatewayError
from oht_gateway.gateway.host import DocumentConverter, JobStore, MappingStore
from oht_gateway.gateway.languages import LanguageMapper
from oht_gateway.gateway.models import Job, JobItem, RemoteMapping, SubmissionReport

logger = get_logger(__name__)


class SubmissionOrchestrator:
    """Runs the per-item outbound pipeline for a job."""

    def __init__(self, client: OhtClient, mapper: LanguageMapper, converter: DocumentConverter,
                 jobs: JobStore, mappings: MappingStore, callback_secret: str,
                 callback_url: Optional[str] = None):
        self.client = client
        self.mapper = mapper
        self.converter = converter
        self.jobs = jobs
        self.mappings = mappings
        self.callback_secret = callback_secret
        self.callback_url = callback_url

    def submit(self, job: Job, resubmit: bool = False) -> SubmissionReport:
        """
        Submit every item of a job.

        Items that already have a remote mapping are skipped unless
        resubmit is set; sending them again is a host decision.

        Returns:
            SubmissionReport with the mappings created and, if the run
            stopped early, the error and the item it stopped at.
        """
        report = SubmissionReport(job_id=job.id)

        try:
            source_language = self.mapper.require_remote(job.source_language)
            target_language = self.mapper.require_remote(job.target_language)
        except GatewayError as e:
            report.error = e
            return report

        items = self.jobs.get_items(job)
        logger.info("Submitting job %s to OHT: %s items, %s -> %s",
                    job.id, len(items), source_language, target_language)

        for item in items:
            if not resubmit and self.mappings.load_by_item(item.id):
                logger.info("Job item %s already has an OHT project, skipping", item.id)
                report.skipped.append(item.id)
                continue

            try:
                mapping = self._submit_item(job, item, source_language, target_language)
            except GatewayError as e:
                logger.error("Submission of job %s stopped at item %s: %s", job.id, item.id, e)
                report.error = e
                report.failed_item_id = item.id
                break

            report.mappings.append(mapping)

        return report

    def _submit_item(self, job: Job, item: JobItem, source_language: str,
                     target_language: str) -> RemoteMapping:
        try:
            xliff = self.converter.export_item(job, item)
        except ValueError as e:
            raise GatewayError(f"Could not export job item {item.id}: {e}", ErrorKind.VALIDATION)

        name = f"JobID_{job.id}_JobItemID_{item.id}_{source_language}_{target_language}"
        resource_uuid = self.client.upload_file_resource(xliff, name)
        logger.debug("Uploaded job item %s as OHT resource %s", item.id, resource_uuid)

        project = self.client.new_translation_project(
            item.id,
            source_language,
            target_language,
            resource_uuid,
            callback_token=callback.compute_token(item.id, self.callback_secret),
            callback_url=self.callback_url,
            notes=job.notes or None,
            expertise=job.expertise or None,
        )

        # OHT is the source of truth for word count and credits
        mapping = self.mappings.create_mapping(RemoteMapping(
            job_id=job.id,
            job_item_id=item.id,
            remote_project_id=project.project_id,
            remote_resource_uuid=resource_uuid,
            word_count=project.word_count,
            credits=project.credits,
        ))

        self.jobs.add_item_message(
            item,
            f"OHT Project ID {project.project_id} created. "
            f"{project.credits} credits reduced from your account.",
        )
        logger.info("Created OHT project %s for job item %s (%s words, %s credits)",
                    project.project_id, item.id, project.word_count, project.credits)
        return mapping
