"""
Gateway Data Classes

Records exchanged between the gateway components and the host:
- Remote side: credentials, resources, projects, mappings
- Host side: jobs and job items
- Component outcomes: submission reports, retrieval outcomes, notification results
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from oht_gateway.gateway.errors import GatewayError

# Job states
JOB_UNPROCESSED = "unprocessed"
JOB_ACTIVE = "active"
JOB_REJECTED = "rejected"
JOB_FINISHED = "finished"

# Job item states
ITEM_ACTIVE = "active"
ITEM_REVIEW = "review"
ITEM_ACCEPTED = "accepted"
ITEM_ABORTED = "aborted"


def to_decimal(value: Any) -> Decimal:
    """Convert a provider number (int, float or string) to Decimal, 0 when unusable."""
    if value is None or value == "":
        return Decimal(0)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)


def to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class RemoteCredential:
    """OHT key pair plus environment flag."""
    public_key: str
    secret_key: str
    use_sandbox: bool = False


@dataclass
class RemoteProject:
    """An OHT translation project as returned by project creation or details."""
    project_id: str
    word_count: int = 0
    credits: Decimal = Decimal(0)
    status: Optional[str] = None
    translation_uuids: Optional[List[str]] = None

    @classmethod
    def from_results(cls, results: Dict[str, Any]) -> "RemoteProject":
        resources = results.get("resources") or {}
        raw = resources.get("translations") if isinstance(resources, dict) else None
        # A single resource may come back as a bare uuid
        if isinstance(raw, str):
            raw = [raw]
        translations = [str(uuid) for uuid in raw if uuid] if isinstance(raw, list) else None
        if not translations:
            translations = None
        return cls(
            project_id=str(results.get("project_id", "")),
            word_count=to_int(results.get("wordcount")),
            credits=to_decimal(results.get("credits")),
            status=results.get("project_status") or results.get("status"),
            translation_uuids=translations,
        )


@dataclass
class RemoteMapping:
    """Link between a local job item and the OHT project created for it."""
    job_item_id: int
    remote_project_id: Optional[str]
    remote_resource_uuid: Optional[str]
    word_count: int = 0
    credits: Decimal = Decimal(0)
    job_id: Optional[int] = None
    id: Optional[int] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "RemoteMapping":
        remote_data = row.get("remote_data") or {}
        return cls(
            id=row.get("id"),
            job_id=row.get("job_id"),
            job_item_id=row["job_item_id"],
            remote_project_id=row.get("remote_identifier_1"),
            remote_resource_uuid=row.get("remote_identifier_2"),
            word_count=to_int(row.get("word_count")),
            credits=to_decimal(remote_data.get("credits")),
        )


@dataclass
class Job:
    id: int
    source_language: str
    target_language: str
    state: str = JOB_UNPROCESSED
    notes: str = ""
    expertise: str = ""
    label: str = ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Job":
        return cls(
            id=row["id"],
            source_language=row["source_language"],
            target_language=row["target_language"],
            state=row.get("state") or JOB_UNPROCESSED,
            notes=row.get("notes") or "",
            expertise=row.get("expertise") or "",
            label=row.get("label") or "",
        )


@dataclass
class JobItem:
    id: int
    job_id: int
    state: str = ITEM_ACTIVE
    label: str = ""
    source_data: Dict[str, str] = field(default_factory=dict)
    translated_data: Dict[str, str] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.state == ITEM_ACTIVE

    @property
    def word_count(self) -> int:
        return sum(len(str(text).split()) for text in self.source_data.values())

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "JobItem":
        return cls(
            id=row["id"],
            job_id=row["job_id"],
            state=row.get("state") or ITEM_ACTIVE,
            label=row.get("label") or "",
            source_data=row.get("source_data") or {},
            translated_data=row.get("translated_data") or {},
        )


@dataclass
class SubmissionReport:
    """What one submit() call did: mappings created, items skipped, and the halting error if any."""
    job_id: int
    mappings: List[RemoteMapping] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    error: Optional[GatewayError] = None
    failed_item_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def total_credits(self) -> Decimal:
        return sum((m.credits for m in self.mappings), Decimal(0))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "ok": self.ok,
            "submitted": [
                {
                    "job_item_id": m.job_item_id,
                    "project_id": m.remote_project_id,
                    "resource_uuid": m.remote_resource_uuid,
                    "word_count": m.word_count,
                    "credits": str(m.credits),
                }
                for m in self.mappings
            ],
            "skipped": list(self.skipped),
            "error": self.error.to_dict() if self.error else None,
            "failed_item_id": self.failed_item_id,
        }


@dataclass
class RetrievalOutcome:
    delivered: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[GatewayError] = field(default_factory=list)

    @property
    def had_errors(self) -> bool:
        return bool(self.errors)


@dataclass
class NotificationResult:
    """Outcome of one inbound webhook call."""
    handled: bool = False
    error: Optional[GatewayError] = None
    outcome: Optional[RetrievalOutcome] = None

    @property
    def status_code(self) -> int:
        if self.error is not None and self.error.is_inbound_rejection:
            return 404
        return 200
