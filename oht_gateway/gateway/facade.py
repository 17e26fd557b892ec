"""
Gateway Facade

The entry points the host calls:
- submit(job): send a job to OHT and mark it submitted or rejected
- reconcile(job): poll OHT for the translations of a job
- handle_notification(fields): process one OHT webhook call

No GatewayError escapes these methods; failures end up as messages on
the job or item, or in the returned result objects.

Reconciliation is serialized per job. Webhook handling takes the same
per-job lock, so deliveries for one project are processed in order.
Distinct jobs can be reconciled in parallel with reconcile_many().
"""

import threading
from contextlib import contextmanager
from concurrent.futures import ThreadPoolExecutor
from typing import ContextManager, Dict, Iterable, Iterator, Mapping, Optional, Union

from oht_gateway.config import GatewaySettings
from oht_gateway.logger import get_logger
from oht_gateway.gateway import callback
from oht_gateway.gateway.checkout import CheckoutService
from oht_gateway.gateway.client import OhtClient
from oht_gateway.gateway.errors import ErrorKind, GatewayError
from oht_gateway.gateway.host import DocumentConverter, JobStore, MappingStore
from oht_gateway.gateway.languages import LanguageMapper, SupportedLanguageCache
from oht_gateway.gateway.models import Job, NotificationResult, RemoteCredential, SubmissionReport
from oht_gateway.gateway.retrieval import RetrievalReconciler
from oht_gateway.gateway.submission import SubmissionOrchestrator

logger = get_logger(__name__)

NEW_RESOURCES_EVENT = "project.resources.new"
TRANSLATION_RESOURCE = "translation"

MESSAGE_SUBMITTED = "Job has been successfully submitted for translation."
MESSAGE_REJECTED = "Job has been rejected with following error: {error}"


class JobLocks:
    """
    One lock per job id. Owned by whoever outlives individual gateways.

    A job's lock is dropped once nobody holds or waits for it, so the
    registry only holds jobs that are being worked on.
    """

    def __init__(self):
        self._locks: Dict[int, threading.Lock] = {}
        self._users: Dict[int, int] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, job_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(job_id)
            if lock is None:
                lock = self._locks[job_id] = threading.Lock()
            self._users[job_id] = self._users.get(job_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[job_id] -= 1
                if not self._users[job_id]:
                    del self._users[job_id]
                    del self._locks[job_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class Gateway:
    """Composes the client, mapper, authenticator, orchestrator and reconciler."""

    def __init__(self, settings: GatewaySettings, converter: DocumentConverter, jobs: JobStore,
                 mappings: MappingStore, client: Optional[OhtClient] = None,
                 languages_cache: Optional[SupportedLanguageCache] = None,
                 job_locks: Optional[JobLocks] = None):
        self.settings = settings
        self.jobs = jobs
        self.mappings = mappings
        self.client = client or OhtClient(
            RemoteCredential(settings.public_key, settings.secret_key, settings.use_sandbox),
            timeout=settings.timeout,
            debug=settings.debug,
        )
        self.mapper = LanguageMapper(settings.remote_languages_mappings)
        self.languages_cache = languages_cache if languages_cache is not None else SupportedLanguageCache()

        self.submission = SubmissionOrchestrator(
            self.client, self.mapper, converter, jobs, mappings,
            callback_secret=settings.callback_secret,
            callback_url=settings.callback_url,
        )
        self.retrieval = RetrievalReconciler(self.client, converter, jobs, mappings)
        self.checkout = CheckoutService(self.client, self.mapper, converter, jobs, mappings)

        self.job_locks = job_locks if job_locks is not None else JobLocks()

    def close(self):
        self.client.close()

    def _job_lock(self, job_id: int) -> ContextManager[None]:
        return self.job_locks.hold(job_id)

    def _resolve_job(self, job: Union[Job, int]) -> Optional[Job]:
        if isinstance(job, Job):
            return job
        return self.jobs.get_job(job)

    def check_available(self) -> Optional[GatewayError]:
        """None when the gateway can talk to OHT, the configuration error otherwise."""
        if not self.settings.is_available:
            return GatewayError("OHT translator is not available. Make sure it is properly configured.",
                                ErrorKind.VALIDATION)
        if not self.settings.callback_secret:
            return GatewayError("OHT callback secret is not configured.", ErrorKind.VALIDATION)
        return None

    # --------------------------------------------------------
    # Outbound
    # --------------------------------------------------------

    def submit(self, job: Union[Job, int], resubmit: bool = False) -> SubmissionReport:
        """Submit a job and mark it submitted or rejected."""
        resolved = self._resolve_job(job)
        if resolved is None:
            job_id = job.id if isinstance(job, Job) else job
            logger.warning("Job %s not found for submission", job_id)
            return SubmissionReport(job_id=job_id,
                                    error=GatewayError(f"Job {job_id} not found", ErrorKind.NOT_FOUND))

        error = self.check_available()
        if error is not None:
            report = SubmissionReport(job_id=resolved.id, error=error)
        else:
            with self._job_lock(resolved.id):
                report = self.submission.submit(resolved, resubmit=resubmit)

        if report.ok:
            self.jobs.mark_submitted(resolved, MESSAGE_SUBMITTED)
        else:
            logger.error("Job %s has been rejected with following error: %s", resolved.id, report.error)
            self.jobs.mark_rejected(resolved, MESSAGE_REJECTED.format(error=report.error))
        return report

    # --------------------------------------------------------
    # Polling
    # --------------------------------------------------------

    def reconcile(self, job: Union[Job, int]) -> bool:
        """Poll OHT for one job. Returns True if anything went wrong."""
        resolved = self._resolve_job(job)
        if resolved is None:
            logger.warning("Job %s not found for reconciliation", job)
            return True

        with self._job_lock(resolved.id):
            had_errors = self.retrieval.reconcile(resolved)
        logger.info("Reconciled job %s (errors: %s)", resolved.id, had_errors)
        return had_errors

    def reconcile_many(self, job_ids: Iterable[int], max_workers: int = 4) -> Dict[int, bool]:
        """Reconcile distinct jobs in parallel. Returns had_errors per job id."""
        unique_ids = list(dict.fromkeys(job_ids))
        if not unique_ids:
            return {}

        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(unique_ids)))) as executor:
            results = executor.map(self.reconcile, unique_ids)
            return dict(zip(unique_ids, results))

    # --------------------------------------------------------
    # Inbound
    # --------------------------------------------------------

    def handle_notification(self, fields: Mapping[str, str]) -> NotificationResult:
        """
        Process one webhook call from OHT.

        Events other than new translation resources are accepted without
        doing anything. A bad token or an unknown job item is refused with
        a not-found class result.
        """
        if (fields.get("event") != NEW_RESOURCES_EVENT
                or fields.get("resource_type") != TRANSLATION_RESOURCE):
            logger.debug("Ignoring OHT notification %s/%s", fields.get("event"), fields.get("resource_type"))
            return NotificationResult(handled=False)

        raw_item_id = fields.get(callback.FIELD_JOB_ITEM_ID)
        if not callback.verify(raw_item_id, self.settings.callback_secret, fields.get(callback.FIELD_TOKEN)):
            logger.warning("Wrong call for submitting translation for job item %s", raw_item_id)
            return NotificationResult(error=GatewayError(
                f"Invalid callback token for job item {raw_item_id}", ErrorKind.AUTH))

        job_item = self.jobs.get_job_item(callback.parse_job_item_id(raw_item_id))
        if job_item is None:
            logger.warning("OHT notification for unknown job item %s", raw_item_id)
            return NotificationResult(error=GatewayError(
                f"Job item {raw_item_id} not found", ErrorKind.NOT_FOUND))

        resource_uuid = fields.get("resource_uuid")
        if not resource_uuid:
            logger.warning("OHT notification for job item %s names no resource", raw_item_id)
            return NotificationResult(error=GatewayError(
                "Notification does not name a resource", ErrorKind.NOT_FOUND))

        with self._job_lock(job_item.job_id):
            outcome = self.retrieval.retrieve([resource_uuid], job_item, fields.get("project_id") or None)
        return NotificationResult(handled=True, outcome=outcome)

    # --------------------------------------------------------
    # Discovery
    # --------------------------------------------------------

    def supported_languages(self) -> Dict[str, str]:
        return self.languages_cache.get(self.client)
