"""Credential payload codec and renderers.

Entry payload: ``{"registrationId", "eventId", "volunteerId"}``.
Exit payload: ``{"exitToken"}`` only, so a leaked exit code says nothing about
whose registration it was.

Renderers turn an encoded payload into something a phone can display and a
scanner can read. They hold no state that the attendance protocol relies on.
"""

import base64
import io
from abc import ABC, abstractmethod
from typing import Any

import orjson
import qrcode
from django.utils.module_loading import import_string

from rollcall.conf import get_setting
from rollcall.domain import Registration
from rollcall.domain.errors import InvalidOrExpiredCredentialError


def entry_payload(registration: Registration) -> dict[str, str]:
    return {
        "registrationId": str(registration.id),
        "eventId": str(registration.event_id),
        "volunteerId": registration.volunteer_id,
    }


def exit_payload(token: str) -> dict[str, str]:
    return {"exitToken": token}


def encode_payload(payload: dict[str, Any]) -> bytes:
    return orjson.dumps(payload)


def decode_payload(data: str | bytes | dict[str, Any], *required: str) -> dict[str, Any]:
    """Parse a scanned payload.

    Raises:
        InvalidOrExpiredCredentialError: If the data is not a JSON object
            carrying every required key.
    """
    if isinstance(data, dict):
        payload = data
    else:
        try:
            payload = orjson.loads(data)
        except orjson.JSONDecodeError:
            raise InvalidOrExpiredCredentialError() from None
    if not isinstance(payload, dict) or any(not payload.get(key) for key in required):
        raise InvalidOrExpiredCredentialError()
    return payload


class CredentialRenderer(ABC):
    """Encodes credential payloads into a scannable reference."""

    @abstractmethod
    def render(self, payload: bytes) -> str:
        ...

    def discard(self, ref: str) -> None:
        """Release whatever render() produced. Nothing to do by default."""


class QRCodeRenderer(CredentialRenderer):
    """Renders payloads as PNG QR codes inlined in a ``data:`` URI."""

    def __init__(self, box_size: int = 10, border: int = 2) -> None:
        self.box_size = box_size
        self.border = border

    def render(self, payload: bytes) -> str:
        code = qrcode.QRCode(box_size=self.box_size, border=self.border)
        code.add_data(payload)
        code.make(fit=True)
        image = code.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        image.save(buffer)
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"


class PayloadRenderer(CredentialRenderer):
    """Returns the JSON payload text itself, for clients that draw their own codes."""

    def render(self, payload: bytes) -> str:
        return payload.decode("utf-8")


def get_renderer() -> CredentialRenderer:
    return import_string(get_setting("CREDENTIAL_RENDERER"))()
