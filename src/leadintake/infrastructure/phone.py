"""Phone number normalization: E.164 for storage and deduplication, digits for WhatsApp."""

import re

import phonenumbers


def normalize_phone(raw: str, default_region: str | None = None) -> str | None:
    """Parse and return E.164 form of the number, or None if invalid.

    Use default_region when the input has no leading + (e.g. "93046 83214"
    with default_region "IN" for India). If the number already includes a
    country code, default_region is ignored.
    """
    if not raw or not str(raw).strip():
        return None
    raw = str(raw).strip()
    try:
        parsed = phonenumbers.parse(raw, default_region)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_valid_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def whatsapp_number(raw: str, default_region: str | None = None) -> str:
    """Country code + national number, digits only (e.g. 919304683214).

    Falls back to stripping non-digits when the number does not parse.
    Raises ValueError when nothing usable is left.
    """
    e164 = normalize_phone(raw, default_region)
    if e164:
        return e164.lstrip("+")
    digits = re.sub(r"\D", "", raw or "")
    if not digits:
        raise ValueError("Phone number cannot be empty.")
    return digits
