"""
HTTP email transport.

Delivers one message by POSTing JSON to EMAIL_API_URL (an email-sending
edge function or provider relay). Delivery problems are reported as an
unsuccessful SendResult so the email step can apply its fallback policy.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from app.config import Settings, get_settings
from integrations.base import MessageTransport, SendResult, TrackingFlags

logger = structlog.get_logger(__name__)


class HttpEmailTransport(MessageTransport):
    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"content-type": "application/json"}
            if self.settings.EMAIL_API_TOKEN:
                headers["authorization"] = f"Bearer {self.settings.EMAIL_API_TOKEN}"
            self._client = httpx.AsyncClient(
                headers=headers,
                timeout=httpx.Timeout(self.settings.EMAIL_TIMEOUT_SECONDS),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send_message(
        self,
        to: str,
        subject: str,
        body: str,
        tracking: TrackingFlags,
        lead_id: Optional[str] = None,
    ) -> SendResult:
        if not self.settings.email_transport_configured:
            return SendResult(success=False, error="Email transport not configured")

        payload: Dict[str, Any] = {
            "to_email": to,
            "subject": subject,
            "html_body": body,
            "track_opens": tracking.opens,
            "track_clicks": tracking.clicks,
        }
        if lead_id:
            payload["lead_id"] = lead_id

        try:
            response = await self._get_client().post(self.settings.EMAIL_API_URL, json=payload)
        except httpx.TimeoutException:
            logger.warning("Email send timed out", lead_id=lead_id)
            return SendResult(success=False, error="Email provider timeout")
        except httpx.HTTPError as e:
            logger.warning("Email send failed", lead_id=lead_id, error=str(e))
            return SendResult(success=False, error=str(e) or type(e).__name__)

        data = self._json(response)
        if response.is_success and data.get("success", True):
            message_id = data.get("message_id") or data.get("messageId") or data.get("id")
            logger.info("Email sent", lead_id=lead_id, message_id=message_id)
            return SendResult(success=True, message_id=message_id)

        error = data.get("error") or f"HTTP {response.status_code}"
        logger.warning("Email provider rejected message", lead_id=lead_id, error=error)
        return SendResult(success=False, error=str(error))

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
