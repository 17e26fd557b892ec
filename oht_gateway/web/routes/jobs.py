"""Job management API routes - creation, submission, reconciliation and checkout."""

from __future__ import annotations

from typing import Any, Dict, List

from flask import Blueprint, jsonify, request

from oht_gateway.core import database as db
from oht_gateway.logger import get_logger
from oht_gateway.gateway import GatewayError
from oht_gateway.gateway.errors import ErrorKind
from oht_gateway.gateway.models import JobItem
from oht_gateway.web.services import get_gateway

jobs_bp = Blueprint("jobs", __name__)
items_bp = Blueprint("items", __name__)
logger = get_logger(__name__)


def _error_status(error: GatewayError) -> int:
    if error.kind is ErrorKind.NOT_FOUND:
        return 404
    if error.kind is ErrorKind.TRANSPORT:
        return 502
    return 400


def _job_payload(job_id: int) -> Dict[str, Any]:
    job = db.get_job_by_id(job_id)
    items = db.get_items_for_job(job_id)
    mappings = db.get_remote_mappings_for_job(job_id)
    messages = db.get_messages(job_id)
    return {
        "job": job,
        "items": items,
        "remote_mappings": mappings,
        "messages": messages,
    }


def _validate_items(items: Any) -> List[Dict[str, Any]] | str:
    if not isinstance(items, list) or not items:
        return "'items' must be a non-empty list"
    validated = []
    for index, item in enumerate(items):
        data = item.get("data") if isinstance(item, dict) else None
        if not isinstance(data, dict) or not data:
            return f"Item {index} needs a non-empty 'data' object"
        if not all(isinstance(k, str) and k and isinstance(v, str) for k, v in data.items()):
            return f"Item {index} data must map keys to strings"
        validated.append({"label": str(item.get("label") or ""), "data": data})
    return validated


@jobs_bp.post("")
def create_job():
    """Create a job with its items."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    source_language = data.get("source_language")
    target_language = data.get("target_language")

    if not source_language or not target_language:
        return jsonify({"error": "'source_language' and 'target_language' are required"}), 400
    if source_language == target_language:
        return jsonify({"error": "Source and target language must differ"}), 400

    items = _validate_items(data.get("items"))
    if isinstance(items, str):
        return jsonify({"error": items}), 400

    job_id = db.create_job(
        source_language=source_language,
        target_language=target_language,
        label=str(data.get("label") or ""),
        notes=str(data.get("notes") or ""),
        expertise=str(data.get("expertise") or ""),
    )
    for item in items:
        db.create_job_item(job_id, item["data"], label=item["label"])

    logger.info("Job %s created with %s items (%s -> %s)", job_id, len(items), source_language, target_language)
    return jsonify(_job_payload(job_id)), 201


@jobs_bp.get("/<int:job_id>")
def get_job(job_id: int):
    """Return a job with its items, mappings and messages."""
    if not db.get_job_by_id(job_id):
        logger.warning("Job %s not found", job_id)
        return jsonify({"error": "Job not found"}), 404
    return jsonify(_job_payload(job_id))


@jobs_bp.post("/<int:job_id>/submit")
def submit_job(job_id: int):
    """Submit a job to OHT. Optional body: notes, expertise, resubmit."""
    if not db.get_job_by_id(job_id):
        return jsonify({"error": "Job not found"}), 404

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    notes = data.get("notes")
    expertise = data.get("expertise")
    if notes is not None or expertise is not None:
        db.update_job_settings(
            job_id,
            notes=str(notes) if notes is not None else None,
            expertise=str(expertise) if expertise is not None else None,
        )

    report = get_gateway().submit(job_id, resubmit=bool(data.get("resubmit", False)))
    payload = {"report": report.to_dict(), **_job_payload(job_id)}
    if report.error is not None:
        return jsonify(payload), _error_status(report.error)
    return jsonify(payload)


@jobs_bp.post("/<int:job_id>/reconcile")
def reconcile_job(job_id: int):
    """Poll OHT for translations of a job."""
    if not db.get_job_by_id(job_id):
        return jsonify({"error": "Job not found"}), 404

    had_errors = get_gateway().reconcile(job_id)
    return jsonify({"job_id": job_id, "had_errors": had_errors, **_job_payload(job_id)})


@jobs_bp.get("/<int:job_id>/checkout")
def checkout_info(job_id: int):
    """Expertise options, price quote and account balance for a job."""
    gateway = get_gateway()
    job = gateway.jobs.get_job(job_id)
    if job is None:
        return jsonify({"error": "Job not found"}), 404

    quote = request.args.get("quote", "1") != "0"
    return jsonify({
        "job_id": job_id,
        "expertise": gateway.checkout.get_expertise(job),
        "quotation": gateway.checkout.get_quotation(job) if quote else {},
        "account": gateway.checkout.get_account_details(),
    })


def _load_item(item_id: int) -> JobItem | None:
    return get_gateway().jobs.get_job_item(item_id)


@items_bp.get("/<int:item_id>/comments")
def list_comments(item_id: int):
    item = _load_item(item_id)
    if item is None:
        return jsonify({"error": "Job item not found"}), 404
    return jsonify({"job_item_id": item_id, "comments": get_gateway().checkout.get_comments(item)})


@items_bp.post("/<int:item_id>/comments")
def add_comment(item_id: int):
    item = _load_item(item_id)
    if item is None:
        return jsonify({"error": "Job item not found"}), 404

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    content = str(data.get("content") or "").strip()
    if not content:
        return jsonify({"error": "'content' is required"}), 400

    try:
        result = get_gateway().checkout.add_comment(item, content)
    except GatewayError as e:
        logger.warning("Could not add comment for job item %s: %s", item_id, e)
        return jsonify(e.to_dict()), _error_status(e)
    return jsonify({"job_item_id": item_id, "result": result}), 201
