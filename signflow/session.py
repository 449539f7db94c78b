"""
Session / Auth Manager

Holds the bearer credential and produces the headers every outbound
request carries. There is no token refresh: tokens are long-lived and
issued manually from the platform's developer settings.
"""

import logging
from typing import Dict, Optional

from .config import SigningConfig
from .exceptions import AuthError

logger = logging.getLogger(__name__)


class Session:
    """
    Bearer credential holder injected into the API client.

    Sessions are independent objects, so several may be used
    side by side in one process. Read-only once configured.
    """

    def __init__(self, credential: Optional[str] = None):
        self._credential: Optional[str] = None
        if credential is not None:
            self.configure(credential)

    @classmethod
    def from_config(cls, config: SigningConfig) -> 'Session':
        """Create a session configured with the config's credential, if any."""
        return cls(config.credential)

    def configure(self, credential: str) -> None:
        """
        Store the bearer credential for the lifetime of this session.

        Raises:
            AuthError: If the credential is empty
        """
        if not credential or not credential.strip():
            raise AuthError("Credential must be a non-empty token")
        self._credential = credential.strip()
        logger.debug("Session credential configured")

    @property
    def is_configured(self) -> bool:
        return self._credential is not None

    @property
    def credential(self) -> str:
        """The configured credential; raises AuthError if none was set."""
        if self._credential is None:
            raise AuthError(
                "No credential configured. Call Session.configure() or set SIGNFLOW_API_TOKEN."
            )
        return self._credential

    def auth_headers(self) -> Dict[str, str]:
        """Get request headers with auth."""
        return {
            'Authorization': f"Bearer {self.credential}",
            'Accept': 'application/json',
        }
