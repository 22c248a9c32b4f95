#!/usr/bin/env python3
"""
Example of verifying DirectCryptoPay webhooks.

Pass a raw body and signature header to check a real delivery, or run it
without arguments to sign and verify a sample event locally.
"""
import argparse
import json
import os
import sys

from directcryptopay_sdk import WebhookVerifier, VerificationFailure, build_signature_header, SIGNATURE_HEADER


def main():
    """Run the example."""
    parser = argparse.ArgumentParser(description="Verify a DirectCryptoPay webhook.")
    parser.add_argument("--body-file", help="File holding the exact request body")
    parser.add_argument("--signature", help=f"Value of the {SIGNATURE_HEADER} header")
    parser.add_argument(
        "--tolerance",
        help="Accepted clock skew in seconds",
        type=int,
        default=300
    )
    args = parser.parse_args()

    secret = os.environ.get("DCP_WEBHOOK_SECRET")
    if not secret:
        print("ERROR: DCP_WEBHOOK_SECRET environment variable is required")
        return 1

    if args.body_file:
        with open(args.body_file, "rb") as f:
            raw_body = f.read()
        signature = args.signature
    else:
        raw_body = json.dumps({"event": "payment.confirmed", "payment_id": "pay_example"}).encode()
        signature = build_signature_header(raw_body, secret)
        print(f"{SIGNATURE_HEADER}: {signature}")

    verifier = WebhookVerifier(secret, tolerance_seconds=args.tolerance)
    try:
        event = verifier.construct_event(raw_body, signature)
    except VerificationFailure as e:
        print(f"Rejected: {e}")
        return 1

    print(f"Verified event: {json.dumps(event, indent=2)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
