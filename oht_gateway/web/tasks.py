"""
Background reconciliation sweeps over host-supplied jobs.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from oht_gateway.logger import get_logger
from oht_gateway.gateway import Gateway

logger = get_logger(__name__)


@dataclass
class SweepState:
    """In-memory representation of a reconciliation sweep."""

    sweep_id: str
    job_ids: List[int] = field(default_factory=list)
    max_workers: int = 4
    state: str = "pending"  # pending|running|completed|failed
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    results: Dict[int, bool] = field(default_factory=dict)  # job id -> had errors
    error: Optional[str] = None

    @property
    def had_errors(self) -> bool:
        return any(self.results.values())

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        # JSON object keys must be strings
        payload["results"] = {str(job_id): had_errors for job_id, had_errors in self.results.items()}
        payload["had_errors"] = self.had_errors
        return payload


_sweeps: Dict[str, SweepState] = {}
# Gateways used by sweeps that have not finished, by sweep id
_sweep_gateways: Dict[str, Gateway] = {}
_sweeps_lock = threading.Lock()
_SWEEP_RETENTION_SECONDS = 600  # Retain sweep info for 10 minutes after completion


def create_sweep(gateway: Gateway, job_ids: List[int], max_workers: int = 4,
                 background: bool = True) -> SweepState:
    """
    Register a sweep over the given jobs and run it.

    Args:
        gateway: Gateway used to reconcile each job.
        job_ids: Jobs to poll; duplicates are reconciled once.
        max_workers: Upper bound on jobs reconciled in parallel.
        background: Run on a daemon thread (default) or inline.

    Returns:
        SweepState for the new sweep (already registered).
    """
    sweep = SweepState(
        sweep_id=uuid.uuid4().hex,
        job_ids=list(dict.fromkeys(job_ids)),
        max_workers=max_workers,
    )

    with _sweeps_lock:
        _cleanup_sweeps_locked()
        _sweeps[sweep.sweep_id] = sweep
        _sweep_gateways[sweep.sweep_id] = gateway

    logger.info("Reconciliation sweep %s created for %s jobs", sweep.sweep_id, len(sweep.job_ids))

    if not background:
        _run_sweep(gateway, sweep)
        return sweep

    thread = threading.Thread(
        target=_run_sweep,
        args=(gateway, sweep),
        name=f"oht-sweep-{sweep.sweep_id}",
        daemon=True,
    )
    thread.start()
    return sweep


def get_sweep(sweep_id: str) -> Optional[SweepState]:
    """Fetch a sweep by ID (if still retained)."""
    with _sweeps_lock:
        sweep = _sweeps.get(sweep_id)
        if sweep and sweep.finished_at and (time.time() - sweep.finished_at) > _SWEEP_RETENTION_SECONDS:
            _sweeps.pop(sweep_id, None)
            return None
        return sweep


def is_gateway_busy(gateway: Gateway) -> bool:
    """Whether an unfinished sweep is still using the gateway."""
    with _sweeps_lock:
        return any(used is gateway for used in _sweep_gateways.values())


def _run_sweep(gateway: Gateway, sweep: SweepState):
    """Worker function executed in a background thread."""
    sweep.state = "running"
    sweep.started_at = time.time()
    try:
        results = gateway.reconcile_many(sweep.job_ids, max_workers=sweep.max_workers)
        with _sweeps_lock:
            sweep.results = results
            sweep.state = "completed"
            sweep.finished_at = time.time()
        logger.info("Reconciliation sweep %s finished (jobs=%s, with errors=%s)",
                    sweep.sweep_id, len(results), sum(1 for v in results.values() if v))
    except Exception as exc:
        sweep.error = f"{type(exc).__name__}: {exc}"
        sweep.state = "failed"
        sweep.finished_at = time.time()
        logger.exception("Reconciliation sweep %s failed: %s", sweep.sweep_id, sweep.error)
    finally:
        with _sweeps_lock:
            _sweep_gateways.pop(sweep.sweep_id, None)


def _cleanup_sweeps_locked():
    """Remove finished sweeps that exceeded retention period (call with lock held)."""
    now = time.time()
    expired = [
        sweep_id
        for sweep_id, sweep in _sweeps.items()
        if sweep.finished_at and (now - sweep.finished_at) > _SWEEP_RETENTION_SECONDS
    ]
    for sweep_id in expired:
        _sweeps.pop(sweep_id, None)
