"""
Mailbox Resolver

Looks up the mailbox (user or organizational inbox) the client acts as.
"""

import logging
from typing import List, Optional

from .api_client import SigningAPIClient
from .exceptions import NotFound
from .types import Mailbox

logger = logging.getLogger(__name__)


class MailboxResolver:
    """
    Resolves the acting mailbox for a session.

    The platform returns mailboxes in a stable order; the first one is
    the default. Lookups have no side effects and are safe to retry.
    """

    def __init__(self, api: SigningAPIClient):
        self.api = api
        self._default: Optional[Mailbox] = None

    def list_mailboxes(self) -> List[Mailbox]:
        """List mailboxes owned by the authenticated identity."""
        return [Mailbox.from_dict(item) for item in self.api.list_mailboxes()]

    def resolve_default_mailbox(self, refresh: bool = False) -> Mailbox:
        """
        Resolve the mailbox to act as.

        Args:
            refresh: Ignore the cached result and ask the platform again

        Returns:
            The first mailbox in the platform's ordering

        Raises:
            NotFound: If the identity owns no mailboxes
        """
        if self._default is not None and not refresh:
            return self._default

        mailboxes = self.list_mailboxes()
        if not mailboxes:
            raise NotFound("No mailboxes available for the configured credential")

        self._default = mailboxes[0]
        logger.info(f"Resolved default mailbox {self._default.mailbox_id}")
        return self._default

    def get_mailbox(self, mailbox_id: str) -> Mailbox:
        """Get a mailbox by id, raising NotFound if the identity does not own it."""
        for mailbox in self.list_mailboxes():
            if mailbox.mailbox_id == str(mailbox_id):
                return mailbox
        raise NotFound(f"Mailbox {mailbox_id} not found")
