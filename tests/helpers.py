"""Helpers for building signed webhook deliveries in tests."""

import hashlib
import hmac
import json
import time

WEBHOOK_SECRET = "whsec_test123456789"


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header for a payload."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def encode_event(body: dict) -> bytes:
    """Serialize an event body the way Stripe sends it."""
    return json.dumps(body).encode()
