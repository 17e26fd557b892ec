"""Settings management API routes."""

from __future__ import annotations

import copy
from typing import Any, Dict

from flask import Blueprint, jsonify, request

import oht_gateway.config as config
from oht_gateway.logger import get_logger, refresh_log_mode
from oht_gateway.web.services import get_gateway, reset_gateway

settings_bp = Blueprint("settings", __name__)
logger = get_logger(__name__)

# Settings that are never echoed back to the client
HIDDEN_KEYS = ("callback_secret",)


def _public_config(current: Dict[str, Any]) -> Dict[str, Any]:
    public = copy.deepcopy(current)
    oht = public.get("oht", {})
    for key in HIDDEN_KEYS:
        oht[key] = bool(oht.get(key))
    return public


@settings_bp.get("/")
def get_settings():
    """Return current configuration; the callback secret is reported as set or not."""
    current = config.load_config()
    settings = config.GatewaySettings.from_config(current)
    logger.debug("Settings retrieved")
    return jsonify({
        "config": _public_config(current),
        "meta": {
            "available": settings.is_available,
            "log_modes": config.LOG_MODES,
            "callback_route": config.CALLBACK_ROUTE,
        },
    })


@settings_bp.put("/")
def update_settings():
    """Update configuration. Provider keys are merged into the stored ones."""
    data = request.get_json(silent=True)
    if not data or "config" not in data or not isinstance(data["config"], dict):
        return jsonify({"error": "Missing 'config' in request body"}), 400

    new_config = data["config"]
    current = config.load_config()

    merged = copy.deepcopy(current)
    for key, value in new_config.items():
        if key == "oht" and isinstance(value, dict):
            # The secret can only be rotated explicitly with a non-empty string
            oht_update = {
                k: v for k, v in value.items()
                if k not in HIDDEN_KEYS or (isinstance(v, str) and v)
            }
            merged["oht"].update(oht_update)
        else:
            merged[key] = value

    validation_error = config.validate_settings(merged)
    if validation_error:
        return jsonify({"error": validation_error}), 400

    try:
        config.save_config(merged)
    except Exception as e:
        logger.error(f"Failed to save settings: {e}")
        return jsonify({"error": "Failed to save settings"}), 500

    refresh_log_mode()
    reset_gateway()
    logger.info("Settings updated")
    return jsonify({"config": _public_config(merged)})


@settings_bp.get("/account")
def account_details():
    """OHT account details (credits balance)."""
    return jsonify({"account": get_gateway().checkout.get_account_details()})


@settings_bp.get("/languages")
def languages():
    """Local to OHT language mapping plus what OHT reports as supported."""
    gateway = get_gateway()
    return jsonify({
        "mapping": gateway.mapper.as_dict(),
        "supported": gateway.supported_languages(),
        "pairs": gateway.checkout.get_supported_language_pairs(),
    })
