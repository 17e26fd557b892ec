"""Per-application gateway wiring."""

from __future__ import annotations

import threading

from flask import Flask, current_app

from oht_gateway.config import load_settings
from oht_gateway.core.store import SqliteJobStore, SqliteMappingStore
from oht_gateway.core.xliff import XliffConverter
from oht_gateway.gateway import Gateway
from oht_gateway.gateway.client import OhtClient
from oht_gateway.gateway.facade import JobLocks
from oht_gateway.gateway.languages import SupportedLanguageCache
from oht_gateway.gateway.models import RemoteCredential
from oht_gateway.web.tasks import is_gateway_busy

_gateway_lock = threading.Lock()


def init_services(app: Flask, transport=None) -> None:
    """Attach the objects that live as long as the app."""
    app.extensions["oht_language_cache"] = SupportedLanguageCache()
    app.extensions["oht_job_locks"] = JobLocks()
    app.extensions["oht_transport"] = transport
    app.extensions["oht_gateway"] = None
    app.extensions["oht_retired_gateways"] = []


def get_gateway() -> Gateway:
    """Gateway for the current app, built from the stored settings on first use."""
    app = current_app
    with _gateway_lock:
        gateway = app.extensions.get("oht_gateway")
        if gateway is None:
            settings = load_settings()
            client = OhtClient(
                RemoteCredential(settings.public_key, settings.secret_key, settings.use_sandbox),
                timeout=settings.timeout,
                debug=settings.debug,
                transport=app.extensions.get("oht_transport"),
            )
            gateway = Gateway(
                settings,
                XliffConverter(),
                SqliteJobStore(),
                SqliteMappingStore(),
                client=client,
                languages_cache=app.extensions["oht_language_cache"],
                job_locks=app.extensions["oht_job_locks"],
            )
            app.extensions["oht_gateway"] = gateway
        return gateway


def reset_gateway() -> None:
    """
    Drop the current gateway so the next request picks up new settings.

    A dropped gateway is closed on a later reset, once no sweep uses it,
    so requests still running on it can finish.
    """
    with _gateway_lock:
        retired = current_app.extensions["oht_retired_gateways"]
        for old in list(retired):
            if not is_gateway_busy(old):
                old.close()
                retired.remove(old)

        current = current_app.extensions.get("oht_gateway")
        if current is not None:
            retired.append(current)
        current_app.extensions["oht_gateway"] = None
