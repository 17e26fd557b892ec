"""Tests for background reconciliation sweeps."""

import threading
import time

import pytest

from oht_gateway.web import tasks


class RecordingGateway:
    def __init__(self, results=None, error=None):
        self.results = results or {}
        self.error = error
        self.calls = []

    def reconcile_many(self, job_ids, max_workers=4):
        self.calls.append((list(job_ids), max_workers))
        if self.error:
            raise self.error
        return {job_id: self.results.get(job_id, False) for job_id in job_ids}


class BlockingGateway(RecordingGateway):
    def __init__(self, release):
        super().__init__()
        self.release = release

    def reconcile_many(self, job_ids, max_workers=4):
        self.release.wait(5)
        return super().reconcile_many(job_ids, max_workers)


class TestSweeps:
    def test_inline_sweep_completes(self):
        gateway = RecordingGateway(results={2: True})

        sweep = tasks.create_sweep(gateway, [1, 2, 1], max_workers=2, background=False)

        assert sweep.state == "completed"
        assert gateway.calls == [([1, 2], 2)]
        assert sweep.results == {1: False, 2: True}
        assert sweep.had_errors
        assert tasks.get_sweep(sweep.sweep_id) is sweep

    def test_failed_sweep_records_error(self):
        sweep = tasks.create_sweep(RecordingGateway(error=RuntimeError("db locked")), [1], background=False)

        assert sweep.state == "failed"
        assert sweep.error == "RuntimeError: db locked"
        assert sweep.finished_at is not None

    def test_background_sweep(self):
        sweep = tasks.create_sweep(RecordingGateway(), [5])

        deadline = time.time() + 5
        while sweep.state in ("pending", "running") and time.time() < deadline:
            time.sleep(0.01)

        assert sweep.state == "completed"
        assert sweep.results == {5: False}

    def test_to_dict_uses_string_keys(self):
        sweep = tasks.create_sweep(RecordingGateway(), [7], background=False)

        payload = sweep.to_dict()

        assert payload["results"] == {"7": False}
        assert payload["had_errors"] is False
        assert payload["state"] == "completed"

    def test_unknown_sweep(self):
        assert tasks.get_sweep("missing") is None

    def test_expired_sweep_dropped(self):
        sweep = tasks.create_sweep(RecordingGateway(), [1], background=False)
        sweep.finished_at -= 3600

        assert tasks.get_sweep(sweep.sweep_id) is None

    def test_gateway_busy_until_sweep_finishes(self):
        release = threading.Event()
        gateway = BlockingGateway(release)

        sweep = tasks.create_sweep(gateway, [1])
        assert tasks.is_gateway_busy(gateway)
        assert not tasks.is_gateway_busy(RecordingGateway())

        release.set()
        deadline = time.time() + 5
        while tasks.is_gateway_busy(gateway) and time.time() < deadline:
            time.sleep(0.01)

        assert not tasks.is_gateway_busy(gateway)
        assert sweep.state == "completed"

    def test_inline_sweep_releases_gateway(self):
        gateway = RecordingGateway()

        tasks.create_sweep(gateway, [1], background=False)

        assert not tasks.is_gateway_busy(gateway)


@pytest.fixture(autouse=True)
def clear_sweeps():
    yield
    with tasks._sweeps_lock:
        tasks._sweeps.clear()
        tasks._sweep_gateways.clear()
