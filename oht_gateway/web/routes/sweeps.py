"""Reconciliation sweep API routes."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, jsonify, request

import oht_gateway.config as config
from oht_gateway.core import database as db
from oht_gateway.logger import get_logger
from oht_gateway.gateway.models import JOB_ACTIVE
from oht_gateway.web.services import get_gateway
from oht_gateway.web.tasks import create_sweep, get_sweep

sweeps_bp = Blueprint("sweeps", __name__)
logger = get_logger(__name__)


@sweeps_bp.post("")
def start_sweep():
    """
    Start polling OHT for a set of jobs.

    Body (optional): job_ids (defaults to every submitted job), background.
    """
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    job_ids = data.get("job_ids")

    if job_ids is None:
        job_ids = [job["id"] for job in db.get_jobs_by_state(JOB_ACTIVE)]
    elif not isinstance(job_ids, list) or not all(
        isinstance(job_id, int) and not isinstance(job_id, bool) for job_id in job_ids
    ):
        return jsonify({"error": "'job_ids' must be a list of integers"}), 400

    max_workers = config.load_config().get("sweep_workers", config.DEFAULT_SWEEP_WORKERS)
    sweep = create_sweep(
        get_gateway(),
        job_ids,
        max_workers=max_workers,
        background=bool(data.get("background", True)),
    )
    return jsonify({"sweep": sweep.to_dict()}), 202


@sweeps_bp.get("/<sweep_id>")
def sweep_status(sweep_id: str):
    sweep = get_sweep(sweep_id)
    if sweep is None:
        logger.warning("Sweep %s not found", sweep_id)
        return jsonify({"error": "Sweep not found"}), 404
    return jsonify({"sweep": sweep.to_dict()})
