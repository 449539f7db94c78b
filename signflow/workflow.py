"""
Signing Workflow

Wires the session, API client and workflow components together:

    workflow = SigningWorkflow(SigningConfig.from_env())
    ref = workflow.upload(pdf_bytes)
    envelope_id = workflow.build_and_submit(TemplateSendStrategy([ref], fields, roles, bindings))
    result = workflow.collect(envelope_id, timeout=3600)
    if result.archive:
        ...
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .api_client import SigningAPIClient
from .config import SigningConfig
from .mailbox import MailboxResolver
from .package_builder import PackageBuilder
from .poller import StatusPoller
from .session import Session
from .submitter import EnvelopeSubmitter
from .types import DocumentReference, EnvelopeStatus, FieldStrategy, Mailbox

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SigningResult:
    """Final outcome of an envelope; `archive` is only set when completed."""
    envelope_id: str
    status: EnvelopeStatus
    archive: Optional[bytes] = None

    @property
    def is_completed(self) -> bool:
        return self.status is EnvelopeStatus.COMPLETED


class SigningWorkflow:
    """Facade over the mailbox resolver, builder, submitter and poller."""

    def __init__(
        self,
        config: Optional[SigningConfig] = None,
        session: Optional[Session] = None,
        api: Optional[SigningAPIClient] = None,
        poller: Optional[StatusPoller] = None
    ):
        self.config = config or SigningConfig.from_env()
        self.session = session or Session.from_config(self.config)
        self.api = api or SigningAPIClient(self.session, self.config)
        self.mailboxes = MailboxResolver(self.api)
        self.builder = PackageBuilder(self.api)
        self.submitter = EnvelopeSubmitter(self.api)
        self.poller = poller or StatusPoller(self.api, self.config)

    @property
    def mailbox(self) -> Mailbox:
        """The acting mailbox, resolved on first use."""
        return self.mailboxes.resolve_default_mailbox()

    def upload(
        self,
        file_bytes: bytes,
        field_strategy: FieldStrategy = FieldStrategy.KEEP,
        file_name: str = "document.pdf"
    ) -> DocumentReference:
        return self.builder.upload_document(self.mailbox, file_bytes, field_strategy, file_name)

    def build_and_submit(self, strategy, force: bool = False) -> str:
        """
        Submit with a TemplateSendStrategy or QuickSendStrategy.

        Pass force=True to send again after reconciling an unknown outcome.

        Returns:
            Envelope id
        """
        return strategy.build_and_submit(self.submitter, self.mailbox, force=force)

    def collect(
        self,
        envelope_id: str,
        timeout: float,
        cancel_event: Optional[threading.Event] = None
    ) -> Optional[SigningResult]:
        """
        Wait for a terminal status and download the archive if completed.

        Returns:
            SigningResult, or None if polling was cancelled before a terminal status.
            Once a result is returned the poller no longer tracks the envelope.

        Raises:
            PollTimeout: If the envelope is still pending at the deadline
        """
        status = self.poller.wait_for_terminal(
            envelope_id, self.mailbox, timeout, cancel_event=cancel_event
        )
        if status is None or not status.is_terminal:
            return None

        archive = None
        if status.is_success:
            archive = self.poller.fetch_signed_result(envelope_id, self.mailbox)
        else:
            logger.info(f"Envelope {envelope_id} ended as {status.value}")
        self.poller.forget(envelope_id)
        return SigningResult(envelope_id=envelope_id, status=status, archive=archive)
