"""
Callback token computation and verification.

OHT echoes two custom fields back on every webhook: custom0 carries the
local job item id and custom1 the token computed here at submission time.
The webhook endpoint is otherwise public, so this check is its only
authentication.
"""

import hashlib
import hmac
from typing import Any, Optional

# Webhook field names
FIELD_JOB_ITEM_ID = "custom0"
FIELD_TOKEN = "custom1"


def parse_job_item_id(raw: Any) -> Optional[int]:
    """Positive integer job item id, or None for anything else."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None
    text = str(raw).strip()
    if not text.isdigit() or not text.isascii():
        return None
    value = int(text)
    return value if value > 0 else None


def compute_token(job_item_id: int, secret: str) -> str:
    """Hex HMAC-SHA256 of the decimal item id keyed by the callback secret."""
    if not secret:
        raise ValueError("Callback secret is not configured")
    return hmac.new(
        secret.encode("utf-8"),
        str(int(job_item_id)).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify(job_item_id: Any, secret: str, presented_token: Any) -> bool:
    """
    Check a presented token against the item id.

    Any missing or malformed input is a rejection.
    """
    item_id = parse_job_item_id(job_item_id)
    if item_id is None or not secret:
        return False
    if not isinstance(presented_token, str) or not presented_token:
        return False
    expected = compute_token(item_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), presented_token.encode("utf-8"))
