"""WhatsApp Cloud API client implementing the Notifier port."""

import logging
from datetime import date

import httpx

from leadintake.application.errors import RemoteIntegrationError
from leadintake.infrastructure.config import WhatsAppSettings
from leadintake.infrastructure.phone import whatsapp_number

logger = logging.getLogger(__name__)


class WhatsAppNotifier:
    """Sends the templated booking confirmation. One request per call, no retry."""

    def __init__(
        self, settings: WhatsAppSettings, *, client: httpx.Client | None = None
    ) -> None:
        self._settings = settings
        self._client = client or httpx.Client(timeout=settings.timeout)

    def close(self) -> None:
        self._client.close()

    def build_message(
        self,
        to: str,
        name: str,
        categories: list[str],
        event_date: date | None,
        venue: str | None,
    ) -> dict:
        template: dict = {
            "name": self._settings.template_name,
            "language": {"code": self._settings.language_code},
        }
        if self._settings.template_params:
            values = [
                name,
                ", ".join(categories),
                event_date.isoformat() if event_date else "-",
                venue or "-",
            ]
            template["components"] = [
                {
                    "type": "body",
                    "parameters": [{"type": "text", "text": v} for v in values],
                }
            ]
        return {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "template",
            "template": template,
        }

    def send_confirmation(
        self,
        phone_number: str,
        name: str,
        categories: list[str],
        event_date: date | None,
        venue: str | None,
    ) -> None:
        s = self._settings
        if not s.access_token or not s.phone_number_id:
            raise RemoteIntegrationError("WhatsApp credentials are not configured")
        try:
            to = whatsapp_number(phone_number, s.default_region)
        except ValueError as e:
            raise RemoteIntegrationError(str(e)) from e
        message = self.build_message(to, name, categories, event_date, venue)
        url = f"{s.base_url}/{s.phone_number_id}/messages"
        try:
            response = self._client.post(
                url,
                json=message,
                headers={"Authorization": f"Bearer {s.access_token}"},
                timeout=s.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RemoteIntegrationError(
                f"WhatsApp API returned {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise RemoteIntegrationError(f"WhatsApp request failed: {e}") from e
        logger.info("WhatsApp template %s sent to %s", s.template_name, to)
