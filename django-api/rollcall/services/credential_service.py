"""Entry/exit credential lifecycle.

At most one kind is live per registration: the entry credential until
check-in, the exit credential from check-in until check-out.
"""

import secrets

import structlog
from django.utils import timezone

from rollcall.credentials import CredentialRenderer, encode_payload, entry_payload, exit_payload
from rollcall.domain import Credential, CredentialKind, Registration, RegistrationId
from rollcall.stores.interfaces import CredentialStore

logger = structlog.get_logger(__name__)


class CredentialService:
    """Issues, rotates and revokes single-use tokens."""

    def __init__(self, store: CredentialStore, renderer: CredentialRenderer, token_bytes: int = 32) -> None:
        self._store = store
        self._renderer = renderer
        self._token_bytes = token_bytes

    def _issue(self, registration: Registration, kind: CredentialKind, payload: dict) -> Credential:
        try:
            image_ref = self._renderer.render(encode_payload(payload))
        except Exception:
            # The token is what counts; the image can be rendered again later.
            logger.warning("credential_render_failed", registration_id=str(registration.id), kind=kind.value, exc_info=True)
            image_ref = None
        credential = self._store.add(
            Credential(
                token=payload.get("exitToken") or secrets.token_urlsafe(self._token_bytes),
                kind=kind,
                registration_id=registration.id,
                payload=payload,
                image_ref=image_ref,
                issued_at=timezone.now(),
            )
        )
        logger.info("credential_issued", registration_id=str(registration.id), kind=kind.value)
        return credential

    def issue_entry(self, registration: Registration) -> Credential:
        return self._issue(registration, CredentialKind.ENTRY, entry_payload(registration))

    def issue_exit(self, registration: Registration) -> Credential:
        token = secrets.token_urlsafe(self._token_bytes)
        return self._issue(registration, CredentialKind.EXIT, exit_payload(token))

    def live(self, registration_id: RegistrationId, kind: CredentialKind) -> Credential | None:
        return self._store.live_for_registration(registration_id, kind)

    def resolve(self, token: str) -> Credential | None:
        return self._store.get_by_token(token)

    def rotate_to_exit(self, registration: Registration) -> Credential:
        """Retire the entry credential and hand out the exit credential."""
        self._retire(registration.id)
        return self.issue_exit(registration)

    def consume_exit(self, registration: Registration) -> None:
        self._retire(registration.id)

    def revoke_all(self, registration: Registration) -> None:
        self._retire(registration.id)

    def _retire(self, registration_id: RegistrationId) -> None:
        """Consume every live credential of a registration; failures are logged."""
        try:
            consumed = self._store.consume_all(registration_id, timezone.now())
        except Exception:
            logger.error("credential_retire_failed", registration_id=str(registration_id), exc_info=True)
            return
        for credential in consumed:
            logger.info("credential_consumed", registration_id=str(registration_id), kind=credential.kind.value)
            self._discard(credential)

    def _discard(self, credential: Credential) -> None:
        if not credential.image_ref:
            return
        try:
            self._renderer.discard(credential.image_ref)
        except Exception:
            logger.warning(
                "credential_discard_failed",
                registration_id=str(credential.registration_id),
                kind=credential.kind.value,
                exc_info=True,
            )
