"""Shared fixtures: in-memory host collaborators and a scripted OHT API."""

import itertools
import os
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qs

# Must be set before oht_gateway configures its loggers
os.environ.setdefault("OHT_GATEWAY_LOG_MODE", "info")

import httpx
import pytest

from oht_gateway.config import GatewaySettings
from oht_gateway.core import database
from oht_gateway.core.schema import initialize_database
from oht_gateway.core.xliff import XliffConverter
from oht_gateway.gateway import Gateway
from oht_gateway.gateway.client import OhtClient
from oht_gateway.gateway.errors import ErrorKind, GatewayError
from oht_gateway.gateway.models import (
    ITEM_ACTIVE,
    ITEM_REVIEW,
    JOB_ACTIVE,
    JOB_REJECTED,
    Job,
    JobItem,
    RemoteCredential,
    RemoteMapping,
)

CALLBACK_SECRET = "test-callback-secret"
CALLBACK_URL = "https://host.example/oht/callback"


# ============================================================
# OHT responses
# ============================================================

def ok(results: Any) -> httpx.Response:
    return httpx.Response(200, json={"status": {"code": 0, "msg": "ok"}, "errors": [], "results": results})


def status_error(code: int, msg: str, http_status: int = 400) -> httpx.Response:
    return httpx.Response(http_status, json={"status": {"code": code, "msg": msg}, "errors": [], "results": []})


def remote_errors(*errors: str) -> httpx.Response:
    return httpx.Response(200, json={"status": {"code": 0, "msg": "ok"}, "errors": list(errors), "results": []})


def form(request: httpx.Request) -> Dict[str, str]:
    """Decode a urlencoded POST body (first value per key)."""
    return {key: values[0] for key, values in parse_qs(request.content.decode("utf-8")).items()}


def translated_xliff(translations: Dict[int, Dict[str, str]]) -> bytes:
    """A translated XLIFF document as OHT would deliver it."""
    units = "".join(
        f'<trans-unit id="{item_id}][{key}"><source>src</source><target>{text}</target></trans-unit>'
        for item_id, data in translations.items()
        for key, text in data.items()
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<xliff version="1.2" xmlns="urn:oasis:names:tc:xliff:document:1.2">'
        f'<file source-language="en" target-language="de" datatype="plaintext"><body>{units}</body></file>'
        '</xliff>'
    ).encode("utf-8")


Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeOht:
    """Answers client requests from a route table and records every request."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Route] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, response: Route) -> None:
        self.routes[(method, path)] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.split("/api/2/", 1)[-1]
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(500, text="unrouted")
        if callable(route):
            return route(request)
        return route

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path.split("/api/2/", 1)[-1] == path
        ]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    # Common scripted behaviour

    def accept_uploads(self, prefix: str = "res") -> None:
        counter = itertools.count(1)
        self.on("POST", "resources/file", lambda request: ok([f"{prefix}-{next(counter)}"]))

    def accept_projects(self, start: int = 1000, credits: str = "1.5", wordcount: int = 3) -> None:
        counter = itertools.count(start)
        self.on("POST", "projects/translation", lambda request: ok({
            "project_id": str(next(counter)),
            "wordcount": wordcount,
            "credits": credits,
        }))


# ============================================================
# In-memory host collaborators
# ============================================================

class FakeJobStore:
    def __init__(self):
        self.jobs: Dict[int, Job] = {}
        self.items: Dict[int, JobItem] = {}
        self.item_messages: List[Tuple[int, str, str]] = []
        self.job_messages: List[Tuple[int, str, str]] = []
        self.imports: List[Dict[int, Dict[str, Any]]] = []

    def add(self, job: Job, *items: JobItem) -> Job:
        self.jobs[job.id] = job
        for item in items:
            self.items[item.id] = item
        return job

    def get_job(self, job_id: int) -> Optional[Job]:
        return self.jobs.get(job_id)

    def get_job_item(self, item_id: int) -> Optional[JobItem]:
        return self.items.get(item_id)

    def get_items(self, job: Job) -> List[JobItem]:
        return [item for item in self.items.values() if item.job_id == job.id]

    def add_item_message(self, item: JobItem, message: str, severity: str = "status") -> None:
        self.item_messages.append((item.id, message, severity))

    def add_job_message(self, job: Job, message: str, severity: str = "status") -> None:
        self.job_messages.append((job.id, message, severity))

    def mark_submitted(self, job: Job, message: str) -> None:
        job.state = JOB_ACTIVE
        self.job_messages.append((job.id, message, "status"))

    def mark_rejected(self, job: Job, message: str) -> None:
        job.state = JOB_REJECTED
        self.job_messages.append((job.id, message, "error"))

    def add_translated_data(self, job: Job, data: Dict[int, Dict[str, Any]]) -> None:
        self.imports.append(data)
        for item_id, translated in data.items():
            item = self.items.get(item_id)
            if item is None or item.job_id != job.id:
                continue
            item.translated_data = dict(translated)
            if item.state == ITEM_ACTIVE:
                item.state = ITEM_REVIEW

    def messages_for(self, item_id: int) -> List[str]:
        return [message for mid, message, _ in self.item_messages if mid == item_id]


class FakeMappingStore:
    def __init__(self):
        self.mappings: List[RemoteMapping] = []

    def create_mapping(self, mapping: RemoteMapping) -> RemoteMapping:
        for existing in self.mappings:
            if (existing.job_item_id, existing.remote_project_id) == (mapping.job_item_id, mapping.remote_project_id):
                raise GatewayError("duplicate mapping", ErrorKind.VALIDATION)
        mapping.id = len(self.mappings) + 1
        self.mappings.append(mapping)
        return mapping

    def load_by_job(self, job_id: int) -> List[RemoteMapping]:
        return [m for m in self.mappings if m.job_id == job_id]

    def load_by_item(self, job_item_id: int) -> List[RemoteMapping]:
        return [m for m in self.mappings if m.job_item_id == job_item_id]


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def oht():
    return FakeOht()


@pytest.fixture
def client(oht):
    oht_client = OhtClient(RemoteCredential("pub-key", "sec-key", use_sandbox=True), transport=oht.transport)
    yield oht_client
    oht_client.close()


@pytest.fixture
def jobs():
    return FakeJobStore()


@pytest.fixture
def mappings():
    return FakeMappingStore()


@pytest.fixture
def settings():
    return GatewaySettings(
        public_key="pub-key",
        secret_key="sec-key",
        use_sandbox=True,
        callback_url=CALLBACK_URL,
        callback_secret=CALLBACK_SECRET,
    )


@pytest.fixture
def gateway(settings, client, jobs, mappings):
    return Gateway(settings, XliffConverter(), jobs, mappings, client=client)


@pytest.fixture
def job(jobs):
    """An English to German job with two items."""
    return jobs.add(
        Job(id=1, source_language="en", target_language="de", notes="Keep it short"),
        JobItem(id=11, job_id=1, label="Title", source_data={"title": "Hello world"}),
        JobItem(id=12, job_id=1, label="Body", source_data={"body": "Good morning", "footer": "Bye"}),
    )


@pytest.fixture
def db_file(tmp_path, monkeypatch):
    """Fresh SQLite database for the duration of a test."""
    path = tmp_path / "gateway.db"
    monkeypatch.setattr(database, "DB_FILE", path)
    initialize_database()
    return path
