"""
BackendClient - HTTP client for the DirectCryptoPay API.
"""
import logging
import urllib.parse
from typing import Dict, Any, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .exceptions import FetchFailure
from .models import (
    ToolMetadata, PaymentIntent, SubmittedPayment,
    SubmitPaymentResponse, PaymentStatusRecord
)

M = TypeVar("M", bound=BaseModel)


class BackendClient:
    """
    Client for the public payment endpoints of the DirectCryptoPay API.

    Every failure (transport error, non-2xx status, unparseable body) is
    raised as :class:`FetchFailure`.
    """

    def __init__(
        self,
        api_url: str,
        retry_count: int = 3,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the BackendClient

        Args:
            api_url: Base URL of the API (e.g., "https://api.directcryptopay.com")
            retry_count: Number of retries for idempotent requests
            timeout: Timeout for HTTP requests in seconds
            session: Optional pre-configured requests session
            logger: Optional logger instance
        """
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

        if session is None:
            session = requests.Session()
            # Only idempotent GETs are retried
            retries = Retry(
                total=retry_count,
                backoff_factor=0.5,
                status_forcelist=[500, 502, 503, 504],
                allowed_methods=["GET"],
                raise_on_status=False,
                connect=retry_count,
                read=retry_count,
            )
            session.mount("http://", HTTPAdapter(max_retries=retries))
            session.mount("https://", HTTPAdapter(max_retries=retries))
        self.session = session

    def _url(self, *parts: str) -> str:
        quoted = "/".join(urllib.parse.quote(str(p), safe="") for p in parts)
        return f"{self.api_url}/{quoted}"

    def _request(
        self,
        method: str,
        url: str,
        what: str,
        model: Type[M],
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> M:
        self.logger.debug(f"{method} {url}")
        try:
            response = self.session.request(
                method,
                url,
                json=json_body,
                headers=headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            self.logger.error(f"Failed to {what}: {e}")
            raise FetchFailure(f"Failed to {what}: {e}") from e

        if response.status_code >= 400:
            reason = response.reason or response.text[:200]
            self.logger.error(f"Failed to {what}: HTTP {response.status_code} {reason}")
            raise FetchFailure(
                f"Failed to {what}: HTTP {response.status_code} {reason}".rstrip(),
                status_code=response.status_code
            )

        content_type = response.headers.get('Content-Type', '')
        if 'application/json' not in content_type:
            self.logger.warning(f"Unexpected Content-Type: {content_type} (expected application/json)")

        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            self.logger.error(f"Invalid response while trying to {what}: {e}")
            raise FetchFailure(
                f"Failed to {what}: invalid response body (HTTP {response.status_code})",
                status_code=response.status_code
            ) from e

    def fetch_tool(self, tool_id: str) -> ToolMetadata:
        """
        Fetch the public description of a payment tool.

        Raises:
            FetchFailure: If the lookup fails
        """
        return self._request(
            "GET",
            self._url("payment-tools", "public", tool_id),
            "fetch payment tool",
            ToolMetadata
        )

    def create_intent(self, tool_id: str, token_symbol: str) -> PaymentIntent:
        """
        Ask the backend for a signed payment intent for the chosen token.

        Raises:
            FetchFailure: If the intent cannot be created
        """
        intent = self._request(
            "POST",
            self._url("payment-tools", "public", tool_id, "create-intent"),
            "create intent",
            PaymentIntent,
            json_body={"selectedToken": token_symbol}
        )
        self.logger.info(f"Created payment intent {intent.id} for tool {tool_id} ({token_symbol})")
        return intent

    def submit_payment(self, payment: SubmittedPayment) -> SubmitPaymentResponse:
        """
        Report a broadcast transaction to the backend.

        Raises:
            FetchFailure: If the submission fails
        """
        result = self._request(
            "POST",
            self._url("payments"),
            "submit payment",
            SubmitPaymentResponse,
            json_body=payment.to_request_body(),
            headers={"X-Tool-Id": payment.tool_id}
        )
        self.logger.info(f"Submitted payment {result.payment_id} for tx {payment.tx_hash}")
        return result

    def get_payment_status(self, payment_id: str, tool_id: str) -> PaymentStatusRecord:
        """
        Fetch the backend's current view of a submitted payment.

        Raises:
            FetchFailure: If the lookup fails
        """
        return self._request(
            "GET",
            self._url("payments", payment_id),
            "get payment status",
            PaymentStatusRecord,
            headers={"X-Tool-Id": tool_id}
        )

    def close(self) -> None:
        self.session.close()
