"""
Tests for webhook signature verification.
"""
import json
import logging
import time
from unittest import mock

import pytest

from directcryptopay_sdk.exceptions import VerificationFailure
from directcryptopay_sdk.models import WebhookEnvelope
from directcryptopay_sdk.webhook import (
    verify_webhook_signature, parse_signature_header, compute_signature,
    build_signature_header, WebhookVerifier, DEFAULT_TOLERANCE_SECONDS
)

SECRET = "test_secret_123"
BODY = b'{"event":"payment.confirmed","payment_id":"pay_123"}'
NOW = 1_700_000_000


def test_compute_signature_matches_hmac_sha256():
    """The signed payload is "<t>.<body>" keyed by the secret."""
    import hashlib
    import hmac

    expected = hmac.new(SECRET.encode(), f"{NOW}.".encode() + BODY, hashlib.sha256).hexdigest()
    assert compute_signature(BODY, SECRET, NOW) == expected
    assert len(expected) == 64


def test_payment_succeeded_scenario():
    body = b'{"event":"payment.succeeded","data":{"id":"pi_test"}}'
    now = int(time.time())

    good = build_signature_header(body, "test_secret_123", timestamp=now)
    forged = build_signature_header(body, "wrong_secret", timestamp=now)

    assert verify_webhook_signature(body, good, "test_secret_123") is True
    assert verify_webhook_signature(body, forged, "test_secret_123") is False


def test_valid_signature_accepted():
    header = build_signature_header(BODY, SECRET, timestamp=NOW)
    assert verify_webhook_signature(BODY, header, SECRET, now=NOW) is True


def test_valid_signature_with_current_time():
    """Without an explicit clock the current time is used."""
    header = build_signature_header(BODY, SECRET)
    assert verify_webhook_signature(BODY, header, SECRET) is True


def test_str_body_is_encoded_as_utf8():
    body = '{"note":"café"}'
    header = build_signature_header(body.encode("utf-8"), SECRET, timestamp=NOW)
    assert verify_webhook_signature(body, header, SECRET, now=NOW) is True


def test_wrong_secret_rejected():
    header = build_signature_header(BODY, SECRET, timestamp=NOW)
    assert verify_webhook_signature(BODY, header, "wrong_secret", now=NOW) is False


def test_tampered_body_rejected():
    header = build_signature_header(BODY, SECRET, timestamp=NOW)
    tampered = BODY.replace(b"pay_123", b"pay_124")
    assert verify_webhook_signature(tampered, header, SECRET, now=NOW) is False


def test_reserialized_body_rejected():
    """Verification is over the exact bytes, not the JSON value."""
    header = build_signature_header(BODY, SECRET, timestamp=NOW)
    reserialized = json.dumps(json.loads(BODY), indent=2).encode()
    assert verify_webhook_signature(reserialized, header, SECRET, now=NOW) is False


def test_expired_timestamp_rejected():
    """A correctly signed webhook from 10 minutes ago is outside the 5 minute window."""
    old = NOW - 600
    header = build_signature_header(BODY, SECRET, timestamp=old)
    assert verify_webhook_signature(BODY, header, SECRET, tolerance_seconds=300, now=NOW) is False


def test_future_timestamp_rejected():
    header = build_signature_header(BODY, SECRET, timestamp=NOW + 600)
    assert verify_webhook_signature(BODY, header, SECRET, now=NOW) is False


def test_tolerance_boundary_is_inclusive():
    header = build_signature_header(BODY, SECRET, timestamp=NOW - DEFAULT_TOLERANCE_SECONDS)
    assert verify_webhook_signature(BODY, header, SECRET, now=NOW) is True

    header = build_signature_header(BODY, SECRET, timestamp=NOW - DEFAULT_TOLERANCE_SECONDS - 1)
    assert verify_webhook_signature(BODY, header, SECRET, now=NOW) is False


def test_custom_tolerance():
    header = build_signature_header(BODY, SECRET, timestamp=NOW - 600)
    assert verify_webhook_signature(BODY, header, SECRET, tolerance_seconds=900, now=NOW) is True


@pytest.mark.parametrize("header", [
    None,
    "",
    "garbage",
    "t=,v1=",
    f"v1={'a' * 64}",
    f"t={NOW}",
    f"t=abc,v1={'a' * 64}",
    f"t=-5,v1={'a' * 64}",
    f"t=0{NOW},v1={'a' * 64}",
    f"t={NOW},v1=not-hex",
    f"t={NOW},v1={'A' * 64}",
    f"t={NOW};v1={'a' * 64}",
])
def test_malformed_headers_rejected(header):
    assert verify_webhook_signature(BODY, header, SECRET, now=NOW) is False


def test_empty_secret_rejected():
    header = build_signature_header(BODY, SECRET, timestamp=NOW)
    assert verify_webhook_signature(BODY, header, "", now=NOW) is False


def test_empty_body_can_be_signed():
    header = build_signature_header(b"", SECRET, timestamp=NOW)
    assert verify_webhook_signature(b"", header, SECRET, now=NOW) is True


def test_truncated_signature_rejected():
    header = build_signature_header(BODY, SECRET, timestamp=NOW)
    assert verify_webhook_signature(BODY, header[:-2], SECRET, now=NOW) is False


def test_non_string_header_does_not_raise():
    assert verify_webhook_signature(BODY, 12345, SECRET, now=NOW) is False  # type: ignore[arg-type]


def test_header_parts_may_be_reordered_and_padded():
    signature = compute_signature(BODY, SECRET, NOW)
    header = f" v1={signature} , t={NOW} "
    assert verify_webhook_signature(BODY, header, SECRET, now=NOW) is True


def test_first_occurrence_of_a_key_wins():
    signature = compute_signature(BODY, SECRET, NOW)
    assert verify_webhook_signature(
        BODY, f"t={NOW},v1={signature},v1={'0' * 64}", SECRET, now=NOW
    ) is True
    assert verify_webhook_signature(
        BODY, f"t={NOW},v1={'0' * 64},v1={signature}", SECRET, now=NOW
    ) is False


def test_unknown_keys_are_ignored():
    signature = compute_signature(BODY, SECRET, NOW)
    header = f"t={NOW},v0=deadbeef,v1={signature}"
    assert verify_webhook_signature(BODY, header, SECRET, now=NOW) is True


def test_parse_signature_header():
    envelope = parse_signature_header(f"t={NOW},v1=abc123", BODY)
    assert envelope is not None
    assert envelope.timestamp == NOW
    assert envelope.signature == "abc123"
    assert envelope.raw_body == BODY
    assert envelope.signed_payload() == f"{NOW}.".encode() + BODY


def test_signature_covers_envelope_payload():
    envelope = parse_signature_header(build_signature_header(BODY, SECRET, timestamp=NOW), BODY)
    import hashlib
    import hmac

    expected = hmac.new(SECRET.encode(), envelope.signed_payload(), hashlib.sha256).hexdigest()
    assert envelope.signature == expected
    with mock.patch.object(WebhookEnvelope, "signed_payload", return_value=b"other"):
        assert verify_webhook_signature(BODY, f"t={NOW},v1={expected}", SECRET, now=NOW) is False


def test_parse_signature_header_rejects_part_without_equals():
    assert parse_signature_header(f"t={NOW},v1=abc,junk") is None


def test_rejection_is_logged_at_debug(caplog):
    caplog.set_level(logging.DEBUG, logger="directcryptopay_sdk.webhook")
    header = build_signature_header(BODY, SECRET, timestamp=NOW)
    verify_webhook_signature(BODY, header, "wrong_secret", now=NOW)
    assert "signature mismatch" in caplog.text
    assert SECRET not in caplog.text


class TestWebhookVerifier:
    """Tests for the secret-bound verifier."""

    def test_requires_secret(self):
        with pytest.raises(ValueError):
            WebhookVerifier("")

    def test_repr_hides_secret(self):
        verifier = WebhookVerifier(SECRET)
        assert SECRET not in repr(verifier)
        assert "REDACTED" in repr(verifier)

    def test_verify(self):
        verifier = WebhookVerifier(SECRET, tolerance_seconds=60)
        header = build_signature_header(BODY, SECRET, timestamp=NOW - 30)
        assert verifier.verify(BODY, header, now=NOW) is True
        header = build_signature_header(BODY, SECRET, timestamp=NOW - 90)
        assert verifier.verify(BODY, header, now=NOW) is False

    def test_construct_event(self):
        verifier = WebhookVerifier(SECRET)
        header = build_signature_header(BODY, SECRET, timestamp=int(time.time()))
        event = verifier.construct_event(BODY, header)
        assert event == {"event": "payment.confirmed", "payment_id": "pay_123"}

    def test_construct_event_bad_signature(self):
        verifier = WebhookVerifier(SECRET)
        header = build_signature_header(BODY, "other", timestamp=NOW)
        with pytest.raises(VerificationFailure) as exc_info:
            verifier.construct_event(BODY, header, now=NOW)
        assert "verification failed" in str(exc_info.value)

    def test_construct_event_invalid_json(self):
        verifier = WebhookVerifier(SECRET)
        body = b"not json"
        header = build_signature_header(body, SECRET, timestamp=NOW)
        with pytest.raises(VerificationFailure) as exc_info:
            verifier.construct_event(body, header, now=NOW)
        assert "not valid JSON" in str(exc_info.value)

    def test_construct_event_requires_object(self):
        verifier = WebhookVerifier(SECRET)
        body = b"[1, 2, 3]"
        header = build_signature_header(body, SECRET, timestamp=NOW)
        with pytest.raises(VerificationFailure):
            verifier.construct_event(body, header, now=NOW)
