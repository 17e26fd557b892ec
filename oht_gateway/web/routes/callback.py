"""OHT webhook endpoint."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from oht_gateway.logger import get_logger
from oht_gateway.web.services import get_gateway

callback_bp = Blueprint("callback", __name__)
logger = get_logger(__name__)


@callback_bp.route("/callback", methods=["GET", "POST"])
def oht_callback():
    """
    Receive an OHT notification.

    OHT posts form fields; query parameters are accepted too. Anything that
    is not a translation delivery is acknowledged with an empty 200.
    """
    fields = request.values.to_dict()
    result = get_gateway().handle_notification(fields)

    if result.status_code == 404:
        return jsonify({"error": "Not found"}), 404

    if result.handled and result.outcome is not None:
        logger.debug("OHT notification for job item %s: delivered=%s skipped=%s errors=%s",
                     fields.get("custom0"), len(result.outcome.delivered),
                     len(result.outcome.skipped), len(result.outcome.errors))
    return "", 200
