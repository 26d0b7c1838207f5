import os
from dataclasses import dataclass
from typing import Optional

from utils.config import AUTH_HEADER


@dataclass(slots=True)
class CredentialProvider:
    """
    Holds the session token issued by the authentication service.

    The provider is passed explicitly into the API client; a missing token
    is a normal state (not logged in yet), not an error.
    """
    token: Optional[str] = None
    header_name: str = AUTH_HEADER

    @property
    def has_token(self) -> bool:
        return bool(self.token and self.token.strip())

    def auth_headers(self) -> dict[str, str]:
        if not self.has_token:
            return {}
        return {self.header_name: self.token.strip()}

    @classmethod
    def from_env(cls, var_name: str = "MAIL_RELAY_TOKEN") -> "CredentialProvider":
        return cls(token=os.getenv(var_name) or None)
