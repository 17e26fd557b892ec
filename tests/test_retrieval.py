"""Tests for downloading and importing translations."""

import httpx

from conftest import ok, status_error, translated_xliff
from oht_gateway.gateway.errors import ErrorKind
from oht_gateway.gateway.models import ITEM_ACCEPTED, ITEM_REVIEW, RemoteMapping
from oht_gateway.gateway.retrieval import (
    MESSAGE_RECEIVED,
    MESSAGE_UPDATED,
    is_translation_document,
)


def map_item(mappings, job_item_id, project_id, job_id=1):
    mappings.create_mapping(RemoteMapping(
        job_id=job_id,
        job_item_id=job_item_id,
        remote_project_id=project_id,
        remote_resource_uuid=f"res-{job_item_id}",
    ))


class TestDocumentSniffing:
    def test_xml_declaration(self):
        assert is_translation_document(b'<?xml version="1.0"?><xliff/>')

    def test_bom_and_leading_whitespace(self):
        assert is_translation_document(b'\xef\xbb\xbf\n  <?xml version="1.0"?><xliff/>')

    def test_json_error_body(self):
        assert not is_translation_document(b'{"status": {"code": 404, "msg": "not found"}}')

    def test_empty(self):
        assert not is_translation_document(b"")

    def test_xml_without_declaration(self):
        assert not is_translation_document(b"<xliff/>")


class TestRetrieve:
    def test_imports_translation(self, oht, gateway, job, jobs):
        oht.on("GET", "resources/t-1/download",
               httpx.Response(200, content=translated_xliff({11: {"title": "Hallo Welt"}})))
        item = jobs.get_job_item(11)

        outcome = gateway.retrieval.retrieve(["t-1"], item, "1000")

        assert outcome.delivered == ["t-1"]
        assert not outcome.had_errors
        assert item.translated_data == {"title": "Hallo Welt"}
        assert item.state == ITEM_REVIEW
        assert jobs.messages_for(11) == [MESSAGE_RECEIVED]
        assert oht.requests[0].url.params["project_id"] == "1000"

    def test_second_delivery_is_an_update(self, oht, gateway, job, jobs):
        oht.on("GET", "resources/t-1/download",
               httpx.Response(200, content=translated_xliff({11: {"title": "Hallo Welt"}})))
        item = jobs.get_job_item(11)

        gateway.retrieval.retrieve(["t-1"], item)
        gateway.retrieval.retrieve(["t-1"], item)

        assert item.translated_data == {"title": "Hallo Welt"}
        assert jobs.messages_for(11) == [MESSAGE_RECEIVED, MESSAGE_UPDATED]

    def test_accepted_item_gets_update_message(self, oht, gateway, job, jobs):
        oht.on("GET", "resources/t-1/download",
               httpx.Response(200, content=translated_xliff({11: {"title": "Hallo"}})))
        item = jobs.get_job_item(11)
        item.state = ITEM_ACCEPTED

        gateway.retrieval.retrieve(["t-1"], item)

        assert item.state == ITEM_ACCEPTED
        assert jobs.messages_for(11) == [MESSAGE_UPDATED]

    def test_json_payload_skipped(self, oht, gateway, job, jobs, caplog):
        oht.on("GET", "resources/t-1/download", httpx.Response(200, json={"status": {"code": 0}}))
        item = jobs.get_job_item(11)

        outcome = gateway.retrieval.retrieve(["t-1"], item)

        assert outcome.skipped == ["t-1"]
        assert outcome.delivered == []
        assert jobs.imports == []
        assert "not a translation document" in caplog.text

    def test_error_does_not_stop_other_resources(self, oht, gateway, job, jobs):
        oht.on("GET", "resources/t-1/download", httpx.Response(502, text="Bad Gateway"))
        oht.on("GET", "resources/t-2/download",
               httpx.Response(200, content=translated_xliff({11: {"title": "Hallo"}})))
        item = jobs.get_job_item(11)

        outcome = gateway.retrieval.retrieve(["t-1", "t-2"], item)

        assert outcome.delivered == ["t-2"]
        assert [e.kind for e in outcome.errors] == [ErrorKind.TRANSPORT]
        messages = jobs.messages_for(11)
        assert messages[0].startswith("Could not get translation from OHT. Message error: ")
        assert messages[1] == MESSAGE_RECEIVED

    def test_unparsable_document_is_remote(self, oht, gateway, job, jobs):
        oht.on("GET", "resources/t-1/download", httpx.Response(200, content=b'<?xml version="1.0"?><xliff'))
        item = jobs.get_job_item(11)

        outcome = gateway.retrieval.retrieve(["t-1"], item)

        assert [e.kind for e in outcome.errors] == [ErrorKind.REMOTE]
        assert item.translated_data == {}


class TestReconcile:
    def test_polls_every_mapping(self, oht, gateway, job, jobs, mappings):
        map_item(mappings, 11, "1000")
        map_item(mappings, 12, "1001")
        oht.on("GET", "projects/1000", ok({"resources": {"translations": ["t-11"]}}))
        oht.on("GET", "projects/1001", ok({"resources": {"translations": ["t-12"]}}))
        oht.on("GET", "resources/t-11/download",
               httpx.Response(200, content=translated_xliff({11: {"title": "Hallo Welt"}})))
        oht.on("GET", "resources/t-12/download",
               httpx.Response(200, content=translated_xliff({12: {"body": "Guten Morgen", "footer": "Tschüss"}})))

        assert gateway.retrieval.reconcile(job) is False

        assert jobs.get_job_item(11).translated_data == {"title": "Hallo Welt"}
        assert jobs.get_job_item(12).translated_data == {"body": "Guten Morgen", "footer": "Tschüss"}

    def test_project_without_translations(self, oht, gateway, job, jobs, mappings):
        map_item(mappings, 11, "1000")
        oht.on("GET", "projects/1000", ok({"project_status": "in_progress", "resources": {"sources": ["a"]}}))

        assert gateway.retrieval.reconcile(job) is True
        assert jobs.messages_for(11) == ["Could not retrieve translation resources."]

    def test_mapping_without_project(self, oht, gateway, job, jobs, mappings):
        map_item(mappings, 11, None)

        assert gateway.retrieval.reconcile(job) is True
        assert jobs.messages_for(11) == ["Could not retrieve project information."]
        assert oht.requests == []

    def test_validation_error_moves_on(self, oht, gateway, job, jobs, mappings):
        map_item(mappings, 11, "1000")
        map_item(mappings, 12, "1001")
        oht.on("GET", "projects/1000", status_error(301, "Project not found", http_status=404))
        oht.on("GET", "projects/1001", ok({"resources": {"translations": ["t-12"]}}))
        oht.on("GET", "resources/t-12/download",
               httpx.Response(200, content=translated_xliff({12: {"body": "Guten Morgen"}})))

        assert gateway.retrieval.reconcile(job) is True
        assert jobs.get_job_item(12).translated_data == {"body": "Guten Morgen"}
        assert jobs.messages_for(11)[0].startswith("Could not retrieve project information: ")

    def test_transport_error_stops_sweep(self, oht, gateway, job, jobs, mappings):
        map_item(mappings, 11, "1000")
        map_item(mappings, 12, "1001")
        oht.on("GET", "projects/1000", httpx.Response(503, text="Service Unavailable"))

        assert gateway.retrieval.reconcile(job) is True
        assert jobs.job_messages == [(1, "Could not pull translation resources.", "error")]
        assert oht.calls("GET", "projects/1001") == []

    def test_no_mappings(self, oht, gateway, job):
        assert gateway.retrieval.reconcile(job) is False
        assert oht.requests == []
