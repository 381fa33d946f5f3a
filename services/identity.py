import logging
from dataclasses import dataclass
from typing import Optional

from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from services.errors import InvalidCredential

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


class IdentityVerifier:
    def verify(self, credential: str) -> Identity:
        raise NotImplementedError


class GoogleIdentityVerifier(IdentityVerifier):
    """Checks a Google Sign-In ID token against our OAuth client id."""

    def __init__(self, client_id: Optional[str]):
        self.client_id = client_id
        self._request = google_requests.Request()

    def verify(self, credential: str) -> Identity:
        if not self.client_id:
            raise InvalidCredential("Google sign-in is not configured")
        try:
            claims = id_token.verify_oauth2_token(credential, self._request, self.client_id)
        except ValueError as exc:
            log.info("Rejected Google credential: %s", exc)
            raise InvalidCredential()

        email = claims.get("email")
        if not email or not claims.get("email_verified", False):
            raise InvalidCredential("Google account email is not verified")
        return Identity(email=email.strip().lower(), name=claims.get("name"), picture=claims.get("picture"))


def identity_from_config(config) -> IdentityVerifier:
    return GoogleIdentityVerifier(config.get("GOOGLE_CLIENT_ID"))
