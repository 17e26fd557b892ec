import copy
import json
import secrets
from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from oht_gateway.core import database as db
from oht_gateway.core.schema import initialize_database
from oht_gateway.logger import get_logger

logger = get_logger(__name__)

# Provider constants
PRODUCTION_URL = "https://api.onehourtranslation.com/api"
SANDBOX_URL = "https://sandbox.onehourtranslation.com/api"
API_VERSION = "2"

PLACEHOLDER_KEY = "YOUR_API_KEY_HERE"
CALLBACK_ROUTE = "/oht/callback"

LOG_MODES = ["off", "info", "debug"]

DEFAULT_SWEEP_WORKERS = 4

# Default configuration template
DEFAULT_CONFIG = {
    "oht": {
        "api_public_key": PLACEHOLDER_KEY,
        "api_secret_key": PLACEHOLDER_KEY,
        "use_sandbox": True,
        "callback_url": "http://localhost:5500" + CALLBACK_ROUTE,
        "callback_secret": "",
        "timeout": {
            "connect": 10,
            "read": 60,
            "write": 60,
            "pool": 10
        },
        "debug": False,
        "remote_languages_mappings": {}
    },
    "sweep_workers": DEFAULT_SWEEP_WORKERS,
    "log_mode": "info"
}


@dataclass(frozen=True)
class GatewaySettings:
    """Connection and callback settings handed to the gateway at construction."""
    public_key: str
    secret_key: str
    use_sandbox: bool = False
    callback_url: Optional[str] = None
    callback_secret: str = ""
    timeout: Any = 60
    debug: bool = False
    remote_languages_mappings: Dict[str, str] = field(default_factory=dict)

    @property
    def is_available(self) -> bool:
        """Both API keys are set to something other than the placeholder."""
        return all(
            key and key != PLACEHOLDER_KEY
            for key in (self.public_key, self.secret_key)
        )

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "GatewaySettings":
        oht = config.get("oht", {})
        return cls(
            public_key=oht.get("api_public_key", ""),
            secret_key=oht.get("api_secret_key", ""),
            use_sandbox=bool(oht.get("use_sandbox", False)),
            callback_url=oht.get("callback_url") or None,
            callback_secret=oht.get("callback_secret", ""),
            timeout=oht.get("timeout", 60),
            debug=bool(oht.get("debug", False)),
            remote_languages_mappings=dict(oht.get("remote_languages_mappings") or {}),
        )


def validate_settings(config: Dict[str, Any]) -> Optional[str]:
    """
    Validate a configuration dict.

    Returns:
        An error message, or None when the configuration is usable.
    """
    oht = config.get("oht")
    if not isinstance(oht, dict):
        return "Missing 'oht' settings"

    for key in ("api_public_key", "api_secret_key"):
        if key in oht and not isinstance(oht[key], str):
            return f"'{key}' must be a string"

    callback_url = oht.get("callback_url")
    if callback_url and not str(callback_url).startswith(("http://", "https://")):
        return "'callback_url' must be an absolute http(s) URL"

    timeout = oht.get("timeout")
    if timeout is not None:
        values = timeout.values() if isinstance(timeout, dict) else [timeout]
        for value in values:
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                return "'timeout' values must be positive numbers"

    mappings = oht.get("remote_languages_mappings")
    if mappings is not None:
        if not isinstance(mappings, dict) or not all(
            isinstance(k, str) and isinstance(v, str) and k and v for k, v in mappings.items()
        ):
            return "'remote_languages_mappings' must map local codes to OHT codes"

    log_mode = config.get("log_mode")
    if log_mode is not None and log_mode not in LOG_MODES:
        return f"'log_mode' must be one of {', '.join(LOG_MODES)}"

    workers = config.get("sweep_workers")
    if workers is not None and (not isinstance(workers, int) or isinstance(workers, bool) or workers < 1):
        return "'sweep_workers' must be a positive integer"

    return None


def _default_config() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_CONFIG)


def initialize_app():
    """
    Initialize the application.
    Creates the database, stores the default configuration if none exists
    and makes sure a callback secret has been generated.
    """
    logger.info("Initializing application...")

    initialize_database()
    logger.info("Database initialized")

    config = load_config()
    if not config.get("oht", {}).get("callback_secret"):
        config.setdefault("oht", {})["callback_secret"] = secrets.token_hex(32)
        save_config(config)
        logger.info("Generated callback secret")

    logger.info("Application initialization complete")


def load_config() -> Dict[str, Any]:
    """Load the configuration from database, merged over the defaults."""
    config = _default_config()
    try:
        config_json = db.get_app_config('config')
    except Exception as e:
        logger.error(f"Failed to load config from database: {e}")
        logger.warning("Using default configuration")
        return config

    if not config_json:
        logger.info("No config in database, using defaults")
        return config

    try:
        stored = json.loads(config_json)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse config from database: {e}")
        logger.warning("Using default configuration")
        return config

    for key, value in stored.items():
        if key == "oht" and isinstance(value, dict):
            config["oht"].update(value)
        else:
            config[key] = value
    logger.debug("Configuration loaded from database")
    return config


def save_config(config: Dict[str, Any]):
    """Save the configuration to database."""
    try:
        config_json = json.dumps(config, ensure_ascii=False)
        db.set_app_config('config', config_json)
        logger.info("Configuration saved to database")
    except Exception as e:
        logger.error(f"Failed to save config to database: {e}")
        raise


def load_settings() -> GatewaySettings:
    """Build the gateway settings value object from the stored configuration."""
    return GatewaySettings.from_config(load_config())
