"""Settings read from the environment (.env is loaded by the entry points)."""

import os
from dataclasses import dataclass


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _env_int(name: str) -> int | None:
    raw = _env(name)
    return int(raw) if raw else None


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    return float(raw) if raw else default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = _env(name).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Neo4jSettings:
    uri: str = "bolt://localhost:7687"
    user: str = "neo4j"
    password: str = "password"

    @classmethod
    def from_env(cls) -> "Neo4jSettings":
        return cls(
            uri=_env("NEO4J_URI", cls.uri),
            user=_env("NEO4J_USER", cls.user),
            password=_env("NEO4J_PASSWORD", cls.password),
        )


@dataclass(frozen=True)
class PipedriveSettings:
    """Pipedrive API access plus the account-specific custom field keys (hashes)."""

    api_token: str = ""
    base_url: str = "https://api.pipedrive.com"
    org_id: int | None = None
    pipeline_id: int | None = None
    currency: str = "USD"
    timeout: float = 10.0
    field_event_type: str = ""
    field_event_date: str = ""
    field_venue: str = ""
    field_deal_source: str = ""
    field_full_name: str = ""
    field_person_source: str = ""
    # Option id of "TBS Landing Page" in the deal-source dropdown.
    deal_source_option: int = 105
    person_source_option: str = "Website"

    @classmethod
    def from_env(cls) -> "PipedriveSettings":
        return cls(
            api_token=_env("PIPEDRIVE_API_TOKEN"),
            base_url=_env("PIPEDRIVE_BASE_URL", cls.base_url).rstrip("/"),
            org_id=_env_int("PIPEDRIVE_ORG_ID"),
            pipeline_id=_env_int("PIPEDRIVE_PIPELINE_ID"),
            currency=_env("PIPEDRIVE_CURRENCY", cls.currency),
            timeout=_env_float("PIPEDRIVE_TIMEOUT", cls.timeout),
            field_event_type=_env("PIPEDRIVE_FIELD_EVENT_TYPE"),
            field_event_date=_env("PIPEDRIVE_FIELD_EVENT_DATE"),
            field_venue=_env("PIPEDRIVE_FIELD_VENUE"),
            field_deal_source=_env("PIPEDRIVE_FIELD_DEAL_SOURCE"),
            field_full_name=_env("PIPEDRIVE_FIELD_FULL_NAME"),
            field_person_source=_env("PIPEDRIVE_FIELD_PERSON_SOURCE"),
        )


@dataclass(frozen=True)
class WhatsAppSettings:
    base_url: str = "https://graph.facebook.com/v18.0"
    phone_number_id: str = ""
    access_token: str = ""
    template_name: str = "hello_world"
    language_code: str = "en_US"
    template_params: bool = False
    default_region: str | None = None
    timeout: float = 10.0

    @classmethod
    def from_env(cls) -> "WhatsAppSettings":
        return cls(
            base_url=_env("WHATSAPP_BASE_URL", cls.base_url).rstrip("/"),
            phone_number_id=_env("WHATSAPP_PHONE_NUMBER_ID"),
            access_token=_env("WHATSAPP_ACCESS_TOKEN"),
            template_name=_env("WHATSAPP_TEMPLATE_NAME", cls.template_name),
            language_code=_env("WHATSAPP_LANGUAGE_CODE", cls.language_code),
            template_params=_env_bool("WHATSAPP_TEMPLATE_PARAMS"),
            default_region=default_phone_region(),
            timeout=_env_float("WHATSAPP_TIMEOUT", cls.timeout),
        )


def default_phone_region() -> str | None:
    """Region used to parse numbers written without a country code (e.g. "IN")."""
    return _env("DEFAULT_PHONE_REGION").upper() or None


def storage_backend() -> str:
    """"neo4j" (default) or "memory"."""
    return _env("LEADINTAKE_STORAGE", "neo4j").lower()
