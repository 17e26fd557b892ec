"""
Checkout helpers shown to the user before and after submission.

Expertise options, price quotes, account balance and project comments.
Apart from posting a comment, these are advisory: when OHT fails the
error is logged and an empty result is returned.
"""

from typing import Any, Dict, List

from oht_gateway.logger import get_logger
from oht_gateway.gateway.client import OhtClient
from oht_gateway.gateway.errors import ErrorKind, GatewayError
from oht_gateway.gateway.host import DocumentConverter, JobStore, MappingStore
from oht_gateway.gateway.languages import LanguageMapper
from oht_gateway.gateway.models import Job, JobItem

logger = get_logger(__name__)


class CheckoutService:
    def __init__(self, client: OhtClient, mapper: LanguageMapper, converter: DocumentConverter,
                 jobs: JobStore, mappings: MappingStore):
        self.client = client
        self.mapper = mapper
        self.converter = converter
        self.jobs = jobs
        self.mappings = mappings

    def get_expertise(self, job: Job) -> Dict[str, str]:
        """Expertise options for the job's language pair, keyed by code."""
        try:
            return self.client.get_expertise(
                self.mapper.require_remote(job.source_language),
                self.mapper.require_remote(job.target_language),
            )
        except GatewayError as e:
            logger.warning("Could not fetch OHT expertise for job %s: %s", job.id, e)
            return {}

    def get_quotation(self, job: Job) -> Dict[str, Any]:
        """
        Price quote for the whole job.

        Uploads the job as a single resource; that resource is only used
        for the quote.
        """
        items = self.jobs.get_items(job)
        try:
            source_language = self.mapper.require_remote(job.source_language)
            target_language = self.mapper.require_remote(job.target_language)
            xliff = self.converter.export_job(job, items)
            resource_uuid = self.client.upload_file_resource(
                xliff, f"JobID_{job.id}_{source_language}_{target_language}")
            return self.client.get_quotation(
                [resource_uuid],
                sum(item.word_count for item in items),
                source_language,
                target_language,
                expertise=job.expertise or None,
            )
        except (GatewayError, ValueError) as e:
            logger.warning("Could not get OHT quotation for job %s: %s", job.id, e)
            return {}

    def get_account_details(self) -> Dict[str, Any]:
        try:
            return self.client.get_account_details()
        except GatewayError as e:
            logger.warning("Could not fetch OHT account details: %s", e)
            return {}

    def get_supported_language_pairs(self) -> List[Dict[str, str]]:
        try:
            return self.client.get_supported_language_pairs()
        except GatewayError as e:
            logger.warning("Could not fetch OHT language pairs: %s", e)
            return []

    def _project_id_for(self, item: JobItem) -> str:
        for mapping in reversed(self.mappings.load_by_item(item.id)):
            if mapping.remote_project_id:
                return mapping.remote_project_id
        raise GatewayError(f"Job item {item.id} has no OHT project", ErrorKind.NOT_FOUND)

    def get_comments(self, item: JobItem) -> List[Dict[str, Any]]:
        try:
            return self.client.get_project_comments(self._project_id_for(item))
        except GatewayError as e:
            logger.warning("Could not fetch OHT comments for job item %s: %s", item.id, e)
            return []

    def add_comment(self, item: JobItem, content: str) -> Any:
        """
        Post a comment on the item's OHT project.

        Raises:
            GatewayError: NOT_FOUND when the item was never submitted, or
                any client error.
        """
        project_id = self._project_id_for(item)
        result = self.client.add_project_comment(project_id, content)
        self.jobs.add_item_message(item, f"Comment added to OHT project {project_id}.")
        return result
