"""Tests for job submission to OHT."""

from decimal import Decimal

from conftest import CALLBACK_SECRET, CALLBACK_URL, form, ok, status_error
from oht_gateway.config import GatewaySettings
from oht_gateway.core.xliff import XliffConverter
from oht_gateway.gateway import Gateway, callback
from oht_gateway.gateway.errors import ErrorKind
from oht_gateway.gateway.models import JOB_ACTIVE, JOB_REJECTED, Job, JobItem


class TestSubmissionOrchestrator:
    """Per-item upload, project creation and mapping."""

    def test_submits_every_item(self, oht, gateway, job, jobs, mappings):
        oht.accept_uploads()
        oht.accept_projects(start=1000, credits="1.5")

        report = gateway.submission.submit(job)

        assert report.ok
        assert [m.job_item_id for m in report.mappings] == [11, 12]
        assert [m.remote_project_id for m in mappings.mappings] == ["1000", "1001"]
        assert [m.remote_resource_uuid for m in mappings.mappings] == ["res-1", "res-2"]
        assert report.total_credits == Decimal("3.0")
        assert jobs.messages_for(11) == ["OHT Project ID 1000 created. 1.5 credits reduced from your account."]

    def test_project_request_fields(self, oht, gateway, job):
        oht.accept_uploads()
        oht.accept_projects()

        gateway.submission.submit(job)

        upload = oht.calls("POST", "resources/file")[0]
        assert b'filename="JobID_1_JobItemID_11_en-us_de-de.xliff"' in upload.content
        assert b"Hello world" in upload.content

        sent = form(oht.calls("POST", "projects/translation")[0])
        assert sent["source_language"] == "en-us"
        assert sent["target_language"] == "de-de"
        assert sent["sources"] == "res-1"
        assert sent["custom0"] == "11"
        assert sent["custom1"] == callback.compute_token(11, CALLBACK_SECRET)
        assert sent["callback_url"] == CALLBACK_URL
        assert sent["notes"] == "Keep it short"

    def test_stops_at_first_failure(self, oht, gateway, jobs, mappings):
        job = jobs.add(
            Job(id=2, source_language="en", target_language="fr"),
            JobItem(id=21, job_id=2, source_data={"a": "one"}),
            JobItem(id=22, job_id=2, source_data={"b": "two"}),
            JobItem(id=23, job_id=2, source_data={"c": "three"}),
        )
        oht.accept_uploads()
        responses = iter([
            ok({"project_id": "500", "wordcount": 1, "credits": "0.5"}),
            status_error(102, "Missing parameter"),
        ])
        oht.on("POST", "projects/translation", lambda request: next(responses))

        report = gateway.submission.submit(job)

        assert not report.ok
        assert report.error.kind is ErrorKind.VALIDATION
        assert report.failed_item_id == 22
        assert [m.job_item_id for m in mappings.mappings] == [21]
        # Item 23 was never uploaded
        assert len(oht.calls("POST", "resources/file")) == 2

    def test_unsupported_language_sends_nothing(self, oht, gateway, jobs):
        job = jobs.add(
            Job(id=3, source_language="en", target_language="tlh"),
            JobItem(id=31, job_id=3, source_data={"a": "one"}),
        )

        report = gateway.submission.submit(job)

        assert report.error.kind is ErrorKind.VALIDATION
        assert report.failed_item_id is None
        assert oht.requests == []

    def test_export_failure_is_validation(self, oht, gateway, jobs):
        job = jobs.add(
            Job(id=4, source_language="en", target_language="de"),
            JobItem(id=41, job_id=4, source_data={}),
        )

        report = gateway.submission.submit(job)

        assert report.error.kind is ErrorKind.VALIDATION
        assert report.failed_item_id == 41
        assert oht.requests == []

    def test_mapped_items_are_skipped(self, oht, gateway, job, mappings):
        oht.accept_uploads()
        oht.accept_projects()
        gateway.submission.submit(job)
        sent = len(oht.requests)

        report = gateway.submission.submit(job)

        assert report.ok
        assert report.skipped == [11, 12]
        assert report.mappings == []
        assert len(oht.requests) == sent

    def test_resubmit_creates_new_projects(self, oht, gateway, job, mappings):
        oht.accept_uploads()
        oht.accept_projects()
        gateway.submission.submit(job)

        report = gateway.submission.submit(job, resubmit=True)

        assert report.ok
        assert len(report.mappings) == 2
        assert len(mappings.mappings) == 4


class TestGatewaySubmit:
    """Job state handling around a submission."""

    def test_success_marks_job_submitted(self, oht, gateway, job, jobs):
        oht.accept_uploads()
        oht.accept_projects()

        report = gateway.submit(job.id)

        assert report.ok
        assert job.state == JOB_ACTIVE
        assert (1, "Job has been successfully submitted for translation.", "status") in jobs.job_messages

    def test_failure_marks_job_rejected(self, oht, gateway, job, jobs):
        oht.accept_uploads()
        oht.on("POST", "projects/translation", status_error(104, "Not enough credits"))

        report = gateway.submit(job)

        assert not report.ok
        assert job.state == JOB_REJECTED
        job_id, message, severity = jobs.job_messages[-1]
        assert message.startswith("Job has been rejected with following error: ")
        assert "#104 Not enough credits" in message
        assert severity == "error"

    def test_unknown_job(self, gateway, jobs):
        report = gateway.submit(99)

        assert report.error.kind is ErrorKind.NOT_FOUND
        assert jobs.job_messages == []

    def test_unconfigured_gateway_rejects_without_calls(self, oht, client, job, jobs, mappings):
        settings = GatewaySettings(public_key="YOUR_API_KEY_HERE", secret_key="", callback_secret=CALLBACK_SECRET)
        unconfigured = Gateway(settings, XliffConverter(), jobs, mappings, client=client)

        report = unconfigured.submit(job)

        assert report.error.kind is ErrorKind.VALIDATION
        assert job.state == JOB_REJECTED
        assert oht.requests == []

    def test_single_item_records_provider_numbers(self, oht, gateway, jobs, mappings):
        job = jobs.add(
            Job(id=5, source_language="en", target_language="de"),
            JobItem(id=51, job_id=5, source_data={"title": "Hello world"}),
        )
        oht.on("POST", "resources/file", ok(["uuid-51"]))
        oht.on("POST", "projects/translation", ok({"project_id": "P1", "wordcount": 120, "credits": 5}))

        report = gateway.submit(job)

        assert report.ok
        assert [
            (m.job_item_id, m.remote_project_id, m.remote_resource_uuid, m.word_count, m.credits)
            for m in mappings.mappings
        ] == [(51, "P1", "uuid-51", 120, Decimal(5))]
        assert job.state == JOB_ACTIVE
        assert jobs.job_messages == [(5, "Job has been successfully submitted for translation.", "status")]
        assert jobs.messages_for(51) == ["OHT Project ID P1 created. 5 credits reduced from your account."]

    def test_invalid_language_rejects_without_mapping(self, oht, gateway, job, jobs, mappings):
        oht.accept_uploads()
        oht.on("POST", "projects/translation", status_error(7, "invalid language"))

        report = gateway.submit(job)

        assert report.error.kind is ErrorKind.VALIDATION
        assert report.failed_item_id == 11
        assert job.state == JOB_REJECTED
        _, message, severity = jobs.job_messages[-1]
        assert "invalid language" in message
        assert severity == "error"
        assert mappings.mappings == []
        assert len(oht.calls("POST", "projects/translation")) == 1
