"""
Outbox Transport

Delivers one outbox message to the configured webhook endpoint.
Without an endpoint every send is a logged success and no network call is made.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from notification_service.config import settings

logger = structlog.get_logger(__name__)


class OutboxDeliveryError(Exception):
    """Delivery attempt failed. The message text is stored on the outbox row."""


class WebhookTransport:
    """
    POSTs outbox messages as JSON to a webhook.

    Request body: {id, tenantId, recipient, templateId, payload}
    Headers: X-Outbox-Id, and Authorization: Bearer <token> when a token is set.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None
    ):
        self.url = (url or "").strip()
        self.token = (token or "").strip()
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls) -> "WebhookTransport":
        return cls(
            url=settings.outbox_webhook_url,
            token=settings.outbox_webhook_token,
            timeout=settings.outbox_webhook_timeout_seconds,
        )

    @property
    def log_only(self) -> bool:
        return not self.url

    def send(
        self,
        outbox_id: str,
        recipient: str,
        tenant_id: Optional[str],
        template_id: str,
        payload: Optional[Dict[str, Any]]
    ) -> None:
        """
        Deliver a single message.

        Raises:
            OutboxDeliveryError: blank recipient, network error, timeout or non-2xx
        """
        if not (recipient or "").strip():
            raise OutboxDeliveryError("Outbox recipient is required.")

        if self.log_only:
            logger.info(
                "outbox_log_delivery",
                reason="no_webhook_configured",
                outbox_id=outbox_id,
                template_id=template_id,
                recipient=recipient
            )
            return

        headers = {
            "Content-Type": "application/json",
            "X-Outbox-Id": outbox_id,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        body = {
            "id": outbox_id,
            "tenantId": tenant_id,
            "recipient": recipient,
            "templateId": template_id,
            "payload": payload,
        }

        try:
            if self._client is not None:
                response = self._client.post(self.url, json=body, headers=headers, timeout=self.timeout)
            else:
                with httpx.Client() as client:
                    response = client.post(self.url, json=body, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise OutboxDeliveryError(f"Webhook delivery timed out after {self.timeout}s: {e}") from e
        except httpx.HTTPError as e:
            raise OutboxDeliveryError(f"Webhook delivery error: {e}") from e

        if not response.is_success:
            details = response.text.strip()
            raise OutboxDeliveryError(
                f"Webhook delivery failed ({response.status_code}): {details or response.reason_phrase}"
            )

        logger.info(
            "outbox_webhook_delivered",
            outbox_id=outbox_id,
            template_id=template_id,
            status=response.status_code
        )
