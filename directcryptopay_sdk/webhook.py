"""
Webhook signature verification.

The backend signs every webhook with the merchant's secret and sends::

    X-DCP-Signature: t=<unix seconds>,v1=<hex HMAC-SHA256(secret, "<t>.<raw body>")>

Verify against the exact bytes received; re-serialising the JSON body changes
the signed payload.
"""
import hashlib
import hmac
import json
import logging
import re
import time
from typing import Any, Dict, Optional, Union

from .exceptions import VerificationFailure
from .models import WebhookEnvelope

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-DCP-Signature"
DEFAULT_TOLERANCE_SECONDS = 300

_TIMESTAMP_RE = re.compile(r"^(0|[1-9]\d{0,14})$", re.ASCII)
_SIGNATURE_RE = re.compile(r"^[0-9a-f]+$", re.ASCII)

Body = Union[bytes, bytearray, str]


def _as_bytes(value: Body) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def parse_signature_header(signature_header: Optional[str], raw_body: Body = b"") -> Optional[WebhookEnvelope]:
    """
    Parse ``t=...,v1=...`` into a WebhookEnvelope.

    Args:
        signature_header: Header value as received
        raw_body: Body the header claims to authenticate

    Returns:
        WebhookEnvelope, or None if the header is missing or malformed
    """
    if not signature_header or not isinstance(signature_header, str):
        return None

    fields: Dict[str, str] = {}
    for part in signature_header.split(","):
        key, sep, value = part.strip().partition("=")
        if not sep:
            return None
        # First occurrence wins
        fields.setdefault(key.strip(), value.strip())

    timestamp, signature = fields.get("t"), fields.get("v1")
    if not timestamp or not signature:
        return None
    if not _TIMESTAMP_RE.match(timestamp) or not _SIGNATURE_RE.match(signature):
        return None

    return WebhookEnvelope(timestamp=int(timestamp), signature=signature, raw_body=_as_bytes(raw_body))


def _hmac_hex(secret: Union[str, bytes], payload: bytes) -> str:
    return hmac.new(_as_bytes(secret), payload, hashlib.sha256).hexdigest()


def compute_signature(raw_body: Body, secret: Union[str, bytes], timestamp: int) -> str:
    """
    Lowercase hex HMAC-SHA256 of ``"{timestamp}.{raw_body}"`` keyed by ``secret``.
    """
    envelope = WebhookEnvelope(timestamp=int(timestamp), signature="", raw_body=_as_bytes(raw_body))
    return _hmac_hex(secret, envelope.signed_payload())


def build_signature_header(raw_body: Body, secret: Union[str, bytes], timestamp: Optional[int] = None) -> str:
    """
    Produce a signature header the way the backend does (for tests and
    local webhook simulators).
    """
    if timestamp is None:
        timestamp = int(time.time())
    return f"t={int(timestamp)},v1={compute_signature(raw_body, secret, timestamp)}"


def verify_webhook_signature(
    raw_body: Body,
    signature_header: Optional[str],
    secret: Union[str, bytes],
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[float] = None
) -> bool:
    """
    Check that a webhook was signed with ``secret`` recently enough.

    Args:
        raw_body: Exact request body bytes (a str is encoded as UTF-8)
        signature_header: The signature header value
        secret: Shared webhook secret
        tolerance_seconds: Largest accepted difference between the signing
            time and ``now``
        now: Current unix time (defaults to time.time())

    Returns:
        True only if the signature matches and the timestamp is within the
        tolerance window. Never raises.
    """
    try:
        if not secret:
            return False
        envelope = parse_signature_header(signature_header, raw_body)
        if envelope is None:
            logger.debug("Rejecting webhook: missing or malformed signature header")
            return False

        expected = _hmac_hex(secret, envelope.signed_payload())
        # Constant time, and False (not an error) on length mismatch
        signature_ok = hmac.compare_digest(expected.encode("ascii"), envelope.signature.encode("ascii"))

        current = time.time() if now is None else now
        fresh = abs(current - envelope.timestamp) <= tolerance_seconds

        if not fresh:
            logger.debug(f"Rejecting webhook: timestamp {envelope.timestamp} outside {tolerance_seconds}s window")
        if not signature_ok:
            logger.debug("Rejecting webhook: signature mismatch")
        return signature_ok and fresh
    except Exception as e:
        logger.debug(f"Rejecting webhook: {type(e).__name__}")
        return False


class WebhookVerifier:
    """
    Verifier bound to one webhook secret.
    """

    def __init__(self, secret: Union[str, bytes], tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS):
        if not secret:
            raise ValueError("A webhook secret is required")
        self._secret = secret
        self.tolerance_seconds = tolerance_seconds

    def __repr__(self) -> str:
        return f"WebhookVerifier(secret=[REDACTED], tolerance_seconds={self.tolerance_seconds})"

    def verify(self, raw_body: Body, signature_header: Optional[str], now: Optional[float] = None) -> bool:
        return verify_webhook_signature(
            raw_body, signature_header, self._secret, self.tolerance_seconds, now=now
        )

    def construct_event(
        self,
        raw_body: Body,
        signature_header: Optional[str],
        now: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Verify a webhook and decode its JSON body.

        Raises:
            VerificationFailure: If the signature or timestamp is rejected, or
                the body is not a JSON object
        """
        if not self.verify(raw_body, signature_header, now=now):
            raise VerificationFailure("Webhook signature verification failed")
        try:
            event = json.loads(_as_bytes(raw_body))
        except ValueError as e:
            raise VerificationFailure(f"Webhook body is not valid JSON: {e}") from e
        if not isinstance(event, dict):
            raise VerificationFailure("Webhook body must be a JSON object")
        return event
