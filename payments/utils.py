import hashlib
import hmac
import logging
import re
import secrets

from django.utils import timezone

logger = logging.getLogger(__name__)

MAC_FIELDS = ["payment_id", "payment_request_id", "status"]


def generate_order_id(prefix="ORD"):
    # e.g. ORD_1760000000000_9F2A11C3; millisecond timestamp keeps ids sortable in logs
    ts = int(timezone.now().timestamp() * 1000)
    return f"{prefix}_{ts}_{secrets.token_hex(4).upper()}"


def digits_only(value) -> str:
    return re.sub(r"\D", "", str(value or ""))


def compute_mac(values, secret: str) -> str:
    msg = "|".join("" if v is None else str(v) for v in values).encode()
    return hmac.new(secret.encode(), msg, hashlib.sha1).hexdigest()


def verify_mac(payload: dict, secret: str, received_mac: str, fields_in_mac=MAC_FIELDS) -> bool:
    """
    Rebuild the webhook MAC from ``fields_in_mac`` (in order, pipe-joined)
    and compare it with ``received_mac``.

    With no ``secret`` configured there is nothing to check against, so the
    payload is treated as valid and a warning is logged.
    """

    if not secret:
        logger.warning("No Instamojo salt configured; skipping webhook MAC verification")
        return True

    expected = compute_mac([payload.get(k) for k in fields_in_mac], secret)
    return hmac.compare_digest(expected, (received_mac or "").strip())
