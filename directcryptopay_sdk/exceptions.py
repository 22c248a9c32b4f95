"""
Exceptions for the DirectCryptoPay SDK.
"""
from typing import Optional


class DirectCryptoPayError(Exception):
    """Base exception for all SDK errors."""
    pass


class ConfigError(DirectCryptoPayError):
    """Raised when the SDK is misconfigured or used before init()."""
    pass


class FetchFailure(DirectCryptoPayError):
    """Raised when a backend lookup (tool, intent, payment, status) fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class WalletRejection(DirectCryptoPayError):
    """Raised when the user declines a connect or signature request."""
    pass


class ChainMismatch(DirectCryptoPayError):
    """Raised when the wallet cannot be moved to the required chain."""

    def __init__(self, message: str, required_chain_id: Optional[int] = None):
        self.required_chain_id = required_chain_id
        super().__init__(message)


class PaymentRejected(DirectCryptoPayError):
    """Raised when the backend reports a submitted payment as failed."""
    pass


class PollingTimeout(DirectCryptoPayError):
    """Raised when a payment stays pending past the polling budget."""
    pass


class VerificationFailure(DirectCryptoPayError):
    """Raised by construct_event() when a webhook cannot be authenticated."""
    pass


class InvalidTransitionError(DirectCryptoPayError):
    """Raised when the state machine is asked to take an edge it does not have."""
    pass
