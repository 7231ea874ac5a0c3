"""
Email gateway client for delivering invoice reminders via HTTP gateway.

Uses HMAC-SHA256 signature for request authentication. The gateway owns
templates and rendering; this client only ships the figures.
"""

import hashlib
import hmac
import json
import logging

import requests

from core.documents import DocumentPayload
from core.models import ReminderNotice

logger = logging.getLogger(__name__)


class EmailGatewayError(Exception):
    """Raised when email gateway request fails."""


class EmailGatewayClient:
    """Send emails via HTTP gateway with HMAC signature verification."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str, timeout_seconds: float = 10):
        """
        Initialize with gateway credentials.

        Args:
            gateway_url: Full URL to the email gateway endpoint
            api_key: API key for X-API-Key header
            hmac_secret: Secret for HMAC-SHA256 signature
            timeout_seconds: Request timeout

        Raises:
            ValueError: If any credential is empty
        """
        if not gateway_url:
            raise ValueError("gateway_url is required")
        if not api_key:
            raise ValueError("api_key is required")
        if not hmac_secret:
            raise ValueError("hmac_secret is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret
        self.timeout_seconds = timeout_seconds

    def sign(self, payload_json: str) -> str:
        """HMAC-SHA256 hex digest of the serialized payload."""
        return hmac.new(
            self.hmac_secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def _sign_and_send(self, payload: dict) -> None:
        """
        Sign payload with HMAC and send to gateway.

        Raises:
            EmailGatewayError: On any failure
        """
        payload_json = json.dumps(payload, separators=(",", ":"))

        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": self.sign(payload_json),
        }

        try:
            response = requests.post(
                self.gateway_url,
                data=payload_json,
                headers=headers,
                timeout=self.timeout_seconds,
            )
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}")

        try:
            response_data = response.json()
        except (json.JSONDecodeError, requests.exceptions.JSONDecodeError):
            logger.error(f"Email gateway returned invalid JSON: {response.text}")
            raise EmailGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not response_data.get("success"):
            error_msg = response_data.get("message", "Unknown error")
            logger.error(f"Email gateway error: {error_msg}")
            raise EmailGatewayError(f"Gateway error: {error_msg}")

    def send_reminder(self, to: str, notice: ReminderNotice, document: DocumentPayload) -> None:
        """
        Request rendering and delivery of a payment reminder.

        Args:
            to: Recipient email address
            notice: Reminder figures (level, fee, interest, totals)
            document: Line items for the attached reminder document

        Raises:
            ValueError: If recipient is empty
            EmailGatewayError: On gateway failure
        """
        if not to:
            raise ValueError("Recipient address is required")

        payload = {
            "type": "payment_reminder",
            "email": to,
            "subject": f"{notice.title} - {notice.invoice_number}",
            "reminder": notice.model_dump(mode="json"),
            "document": document.model_dump(mode="json"),
        }
        self._sign_and_send(payload)
        logger.info(f"Reminder {notice.level.name} for invoice {notice.invoice_number} sent to {to}")
