"""Web application package for the OHT gateway."""

from flask import Flask

from oht_gateway.config import initialize_app


def create_app(transport=None) -> Flask:
    """
    Application factory.

    ``transport`` is handed to the OHT HTTP client; tests pass an
    ``httpx.MockTransport`` here.
    """
    initialize_app()

    from .app import build_app  # Import here to avoid circular imports

    return build_app(transport=transport)


__all__ = ["create_app"]
