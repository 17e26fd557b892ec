"""
Host collaborator interfaces.

The gateway reaches the host only through these protocols. The SQLite
implementations live in oht_gateway.core.store and oht_gateway.core.xliff.

Precondition on JobStore.add_translated_data: importing the same content
twice must overwrite, not duplicate. Webhook retries and polling can
deliver one translation more than once.
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol

from oht_gateway.gateway.models import Job, JobItem, RemoteMapping


class DocumentConverter(Protocol):
    def export_item(self, job: Job, item: JobItem) -> str:
        """Serialize one job item of a job into an interchange document."""
        ...

    def export_job(self, job: Job, items: Iterable[JobItem]) -> str:
        ...

    def import_translation(self, content: bytes) -> Dict[int, Dict[str, Any]]:
        """Parse a translated document into {job_item_id: {data_key: text}}."""
        ...


class JobStore(Protocol):
    def get_job(self, job_id: int) -> Optional[Job]:
        ...

    def get_job_item(self, item_id: int) -> Optional[JobItem]:
        ...

    def get_items(self, job: Job) -> List[JobItem]:
        ...

    def add_item_message(self, item: JobItem, message: str, severity: str = "status") -> None:
        ...

    def add_job_message(self, job: Job, message: str, severity: str = "status") -> None:
        ...

    def mark_submitted(self, job: Job, message: str) -> None:
        ...

    def mark_rejected(self, job: Job, message: str) -> None:
        ...

    def add_translated_data(self, job: Job, data: Dict[int, Dict[str, Any]]) -> None:
        """Store translations; active items move to review."""
        ...


class MappingStore(Protocol):
    def create_mapping(self, mapping: RemoteMapping) -> RemoteMapping:
        ...

    def load_by_job(self, job_id: int) -> List[RemoteMapping]:
        ...

    def load_by_item(self, job_item_id: int) -> List[RemoteMapping]:
        ...
