import json
import logging

import requests
from requests import RequestException

from ..errors import (
    GatewayAuthError,
    GatewayError,
    GatewayRequestError,
    GatewayTimeout,
    GatewayUnreachable,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


def _headers(cfg: dict) -> dict:
    return {
        "X-Api-Key": cfg.get("API_KEY", ""),
        "X-Auth-Token": cfg.get("AUTH_TOKEN", ""),
        "Content-Type": "application/json",
    }


def _url(cfg: dict, path: str) -> str:
    base = cfg.get("API_URL") or ""
    if not base:
        raise GatewayError("Instamojo API URL not configured.")
    return base.rstrip("/") + "/" + path.lstrip("/")


def _provider_message(data) -> str:
    msg = data.get("message") if isinstance(data, dict) else None
    if isinstance(msg, dict):
        # field errors come back as {"field": ["reason", ...]}
        parts = []
        for field, reasons in msg.items():
            reasons = reasons if isinstance(reasons, list) else [reasons]
            parts.append(f"{field}: {', '.join(str(r) for r in reasons)}")
        return "; ".join(parts)
    return str(msg) if msg else ""


def _send(method: str, url: str, cfg: dict, **kwargs):
    timeout = cfg.get("TIMEOUT") or DEFAULT_TIMEOUT
    try:
        resp = requests.request(method, url, headers=_headers(cfg), timeout=timeout, **kwargs)
    except requests.Timeout as e:
        logger.error("Instamojo request timed out: %s %s", method, url)
        raise GatewayTimeout("Connection to Instamojo timed out. Please try again.") from e
    except requests.ConnectionError as e:
        logger.error("Cannot reach Instamojo at %s: %s", url, e)
        raise GatewayUnreachable(
            "Cannot connect to Instamojo API. Enable TEST_MODE in .env for testing."
        ) from e
    except RequestException as e:
        raise GatewayError(f"Gateway request failed: {e}") from e

    try:
        data = resp.json()
    except ValueError:
        data = {"raw": resp.text}

    if 200 <= resp.status_code < 300:
        return data

    logger.error(
        "Instamojo returned HTTP %s for %s %s: %s",
        resp.status_code, method, url, json.dumps(data)[:800],
    )
    if resp.status_code == 401:
        raise GatewayAuthError("Invalid Instamojo credentials. Check your API Key and Auth Token.")
    if 400 <= resp.status_code < 500:
        raise GatewayRequestError(_provider_message(data) or "Invalid payment request data")
    raise GatewayError(_provider_message(data) or f"Instamojo API error (HTTP {resp.status_code})")


def create_payment_request(cfg: dict, *, purpose, amount, buyer_name, email, phone) -> dict:
    """POST payment-requests/ and return the provider's ``payment_request`` object."""
    if not (cfg.get("API_KEY") and cfg.get("AUTH_TOKEN")):
        raise GatewayAuthError(
            "Instamojo credentials not configured. Set TEST_MODE=true in .env or add valid credentials."
        )
    payload = {
        "purpose": purpose,
        "amount": amount,
        "buyer_name": buyer_name,
        "email": email,
        "phone": phone,
        "redirect_url": cfg.get("REDIRECT_URL", ""),
        "webhook": cfg.get("WEBHOOK_URL", ""),
        "send_email": True,
        "send_sms": False,
        "allow_repeated_payments": False,
    }
    url = _url(cfg, "payment-requests/")
    logger.info(
        "Creating Instamojo payment request: amount=%s buyer=%s redirect=%s webhook=%s",
        amount, buyer_name, payload["redirect_url"], payload["webhook"],
    )
    data = _send("POST", url, cfg, json=payload)
    request_obj = data.get("payment_request") if isinstance(data, dict) else None
    if not data.get("success") or not request_obj:
        logger.error("Instamojo returned unsuccessful response: %s", json.dumps(data)[:800])
        raise GatewayError("Failed to create payment request")
    return request_obj


def get_payment(cfg: dict, payment_request_id: str, payment_id: str) -> dict:
    """GET payment-requests/<request>/<payment>/ (read-only)."""
    url = _url(cfg, f"payment-requests/{payment_request_id}/{payment_id}/")
    return _send("GET", url, cfg)
