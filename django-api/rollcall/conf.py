"""App settings, read from the ``ROLLCALL`` dict in Django settings."""

from typing import Any

from django.conf import settings

DEFAULTS: dict[str, Any] = {
    "AVAILABILITY_CACHE_TTL": 30,
    "CREDENTIAL_RENDERER": "rollcall.credentials.QRCodeRenderer",
    "TOKEN_BYTES": 32,
}


def get_setting(name: str) -> Any:
    return getattr(settings, "ROLLCALL", {}).get(name, DEFAULTS[name])
