"""Pipedrive REST v1 client implementing the CrmGateway port.

One HTTP request per method, bounded by the configured timeout and never
retried here. Every failure (transport, timeout, non-2xx, unreadable body,
``success: false``, missing token) is raised as RemoteIntegrationError.
"""

import logging
from datetime import date
from decimal import Decimal

import httpx

from leadintake.application.errors import RemoteIntegrationError
from leadintake.infrastructure.config import PipedriveSettings

logger = logging.getLogger(__name__)


class PipedriveGateway:
    """Creates and updates Pipedrive persons and deals."""

    def __init__(
        self, settings: PipedriveSettings, *, client: httpx.Client | None = None
    ) -> None:
        self._settings = settings
        self._client = client or httpx.Client(timeout=settings.timeout)

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, body: dict) -> dict:
        """Send one request; return the response's ``data`` object."""
        if not self._settings.api_token:
            raise RemoteIntegrationError("Pipedrive API token is not configured")
        url = f"{self._settings.base_url}/api/v1/{path}"
        try:
            response = self._client.request(
                method,
                url,
                params={"api_token": self._settings.api_token},
                json=body,
                timeout=self._settings.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise RemoteIntegrationError(
                f"Pipedrive {method} {path} returned {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise RemoteIntegrationError(f"Pipedrive {method} {path} failed: {e}") from e
        except ValueError as e:
            raise RemoteIntegrationError(
                f"Pipedrive {method} {path} returned an unreadable body"
            ) from e
        if not isinstance(payload, dict) or payload.get("success") is False:
            raise RemoteIntegrationError(f"Pipedrive {method} {path} was rejected: {payload}")
        data = payload.get("data")
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _id_of(data: dict, what: str) -> str:
        remote_id = data.get("id")
        if remote_id is None:
            raise RemoteIntegrationError(f"Pipedrive {what} response has no id")
        return str(remote_id)

    def create_contact(self, name: str, phone_number: str) -> str:
        body = {"name": name, "phone": phone_number}
        if self._settings.org_id is not None:
            body["org_id"] = self._settings.org_id
        if self._settings.field_person_source:
            body[self._settings.field_person_source] = self._settings.person_source_option
        person_id = self._id_of(self._request("POST", "persons", body), "person")
        logger.info("Created Pipedrive person %s for %s", person_id, name)
        return person_id

    def create_deal(self, contact_ref: str, title: str, value: Decimal) -> str:
        body = {
            "title": title,
            "value": int(value or 0),
            "currency": self._settings.currency,
            "person_id": contact_ref,
            "status": "open",
        }
        if self._settings.pipeline_id is not None:
            body["pipeline_id"] = self._settings.pipeline_id
        if self._settings.org_id is not None:
            body["org_id"] = self._settings.org_id
        if self._settings.field_deal_source:
            body[self._settings.field_deal_source] = self._settings.deal_source_option
        deal_id = self._id_of(self._request("POST", "deals", body), "deal")
        logger.info("Created Pipedrive deal %s (%s) for person %s", deal_id, title, contact_ref)
        return deal_id

    def update_deal_fields(
        self,
        remote_deal_id: str,
        category: str,
        event_date: date | None,
        venue: str | None,
        full_name: str,
        budget: Decimal | None,
    ) -> None:
        s = self._settings
        body: dict = {"title": f"{full_name} - {category}"}
        if s.field_event_type:
            body[s.field_event_type] = category
        if s.field_event_date and event_date is not None:
            body[s.field_event_date] = event_date.isoformat()
        if s.field_venue:
            body[s.field_venue] = venue
        if s.field_deal_source:
            body[s.field_deal_source] = s.deal_source_option
        if s.field_full_name:
            body[s.field_full_name] = full_name
        if budget is not None:
            body["value"] = int(budget)
        self._request("PUT", f"deals/{remote_deal_id}", body)
        logger.info("Updated Pipedrive deal %s custom fields", remote_deal_id)

    def rename_person(self, remote_contact_id: str, new_name: str) -> None:
        self._request("PUT", f"persons/{remote_contact_id}", {"name": new_name})
        logger.info("Renamed Pipedrive person %s to %s", remote_contact_id, new_name)
