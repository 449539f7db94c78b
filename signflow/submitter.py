"""
Envelope Submitter

Sends signature packages to the platform and returns envelope ids.

Submission creates the envelope and notifies signers in a single call,
so it is never retried. A timeout after the request went out surfaces
as UnknownOutcomeError; use find_recent_envelopes() to reconcile before
sending again.
"""

import hashlib
import logging
import threading
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple, Union

from .api_client import SigningAPIClient
from .descriptors import DescriptorWriter
from .exceptions import PreconditionError, UnknownOutcomeError, ValidationError
from .package_builder import DEFAULT_SUBJECT, PackageBuilder
from .types import (
    DocumentReference,
    FieldPlacement,
    Mailbox,
    QuickSendRecipient,
    RecipientBinding,
    Role,
    SignaturePackage,
)

logger = logging.getLogger(__name__)

FileInput = Union[bytes, Tuple[str, bytes]]


class EnvelopeSubmitter:
    """
    Submits packages (template two-phase send) or raw files (quick-send).

    Remembers which packages and quick-sends it has already sent, or tried
    to send with an unknown outcome, and refuses to send them again unless
    forced. Use forget() or clear() to release entries in long-lived
    processes.
    """

    def __init__(self, api: SigningAPIClient):
        self.api = api
        self._lock = threading.Lock()
        self._submitted: Dict[Hashable, Optional[str]] = {}

    def submit(self, mailbox: Mailbox, package: SignaturePackage, force: bool = False) -> str:
        """
        Create an envelope from a signature package.

        Args:
            mailbox: Sending mailbox
            package: Package built by PackageBuilder.build_package
            force: Send even if this package was already sent from this submitter

        Returns:
            The platform-assigned envelope id

        Raises:
            PreconditionError: If the package was already submitted (or its
                earlier submission has an unknown outcome) and force is False
            UnknownOutcomeError: If the request may have reached the platform
                without a confirmed response
        """
        template_text = DescriptorWriter.template_descriptor(package.template)
        envelope_text = DescriptorWriter.envelope_descriptor(package.envelope)

        def send() -> str:
            result = self.api.send_template(
                mailbox.mailbox_id, template_text, envelope_text, subject=package.subject
            )
            return self._envelope_id(result, mailbox, package.subject)

        envelope_id = self._guarded(package, force, send)
        logger.info(f"Envelope {envelope_id} created from mailbox {mailbox.mailbox_id}")
        return envelope_id

    def quick_send(
        self,
        mailbox: Mailbox,
        files: Sequence[FileInput],
        recipients: Sequence[QuickSendRecipient],
        subject: Optional[str] = None,
        message: Optional[str] = None,
        force: bool = False
    ) -> str:
        """
        Send raw files to a flat recipient list without descriptors.

        The platform places one signature field per signer. Same
        non-idempotent contract and duplicate guard as submit(): the same
        files, recipients, subject and message are not sent twice from this
        mailbox unless forced.

        Args:
            files: File bytes, or (file name, bytes) pairs
            recipients: Recipients in notification order
            force: Send even if the same quick-send was already sent

        Raises:
            ValidationError: If there are no files, no recipients or no signer
            PreconditionError: If the same quick-send was already sent and force is False
        """
        named_files = self._named_files(files)
        recipients = list(recipients)

        if not recipients:
            raise ValidationError("Quick-send needs at least one recipient")
        for recipient in recipients:
            if not recipient.contact:
                raise ValidationError("Quick-send recipient has an empty contact")
        if not any(r.is_signer for r in recipients):
            raise ValidationError("Quick-send needs at least one signer")

        key = (
            'quick-send',
            mailbox.mailbox_id,
            tuple((name, hashlib.sha256(content).hexdigest()) for name, content in named_files),
            tuple(recipients),
            subject,
            message,
        )

        def send() -> str:
            result = self.api.quick_send(
                mailbox.mailbox_id, named_files, recipients, subject=subject, message=message
            )
            return self._envelope_id(result, mailbox, subject)

        envelope_id = self._guarded(key, force, send)
        logger.info(
            f"Quick-send envelope {envelope_id} created with "
            f"{len(named_files)} file(s) and {len(recipients)} recipient(s)"
        )
        return envelope_id

    def find_recent_envelopes(
        self,
        mailbox: Mailbox,
        subject: Optional[str] = None,
        limit: int = 20
    ) -> List[Dict[str, Any]]:
        """
        List recent envelopes of a mailbox, optionally matching a subject.

        Used to reconcile after UnknownOutcomeError before sending again.
        """
        envelopes = self.api.list_envelopes(mailbox.mailbox_id, limit=limit)
        if subject is None:
            return envelopes
        return [e for e in envelopes if e.get('subject') == subject]

    def forget(self, package: SignaturePackage) -> None:
        """Stop guarding a package, e.g. once its envelope has been collected."""
        with self._lock:
            self._submitted.pop(package, None)

    def clear(self) -> None:
        """Forget every recorded submission, quick-sends included."""
        with self._lock:
            self._submitted.clear()

    def _guarded(self, key: Hashable, force: bool, send: Callable[[], str]) -> str:
        """Run a non-idempotent send at most once per key."""
        self._claim(key, force)
        try:
            envelope_id = send()
        except UnknownOutcomeError:
            # Claim stays pending until the caller reconciles.
            raise
        except Exception:
            with self._lock:
                self._submitted.pop(key, None)
            raise

        with self._lock:
            self._submitted[key] = envelope_id
        return envelope_id

    def _claim(self, key: Hashable, force: bool) -> None:
        with self._lock:
            if key in self._submitted and not force:
                envelope_id = self._submitted[key]
                if envelope_id:
                    raise PreconditionError(
                        f"Already submitted as envelope {envelope_id}"
                    )
                raise PreconditionError(
                    "An earlier identical submission has an unknown outcome; "
                    "reconcile with find_recent_envelopes() or pass force=True"
                )
            self._submitted[key] = None

    @staticmethod
    def _named_files(files: Sequence[FileInput]) -> List[Tuple[str, bytes]]:
        named = []
        for index, item in enumerate(files, 1):
            if isinstance(item, tuple):
                name, content = item
            else:
                name, content = f"document-{index}.pdf", item
            if not content:
                raise ValidationError(f"Cannot send empty file '{name}'", field=name)
            named.append((name, content))
        if not named:
            raise ValidationError("Quick-send needs at least one file")
        return named

    @staticmethod
    def _envelope_id(result: Dict[str, Any], mailbox: Mailbox, subject: Optional[str]) -> str:
        envelope_id = None
        if isinstance(result, dict):
            envelope_id = result.get('id') or result.get('envelope_id')
        if not envelope_id:
            raise UnknownOutcomeError(
                "Platform accepted the submission but returned no envelope id",
                mailbox_id=mailbox.mailbox_id,
                subject=subject
            )
        return str(envelope_id)


class TemplateSendStrategy:
    """Builds a package from placements, roles and bindings, then submits it."""

    def __init__(
        self,
        document_references: Sequence[DocumentReference],
        field_placements: Sequence[FieldPlacement],
        roles: Sequence[Role],
        recipient_bindings: Sequence[RecipientBinding],
        subject: str = DEFAULT_SUBJECT,
        message: str = "",
        builder: Optional[PackageBuilder] = None
    ):
        self.document_references = list(document_references)
        self.field_placements = list(field_placements)
        self.roles = list(roles)
        self.recipient_bindings = list(recipient_bindings)
        self.subject = subject
        self.message = message
        self.builder = builder or PackageBuilder()

    def build(self) -> SignaturePackage:
        return self.builder.build_package(
            self.document_references,
            self.field_placements,
            self.roles,
            self.recipient_bindings,
            subject=self.subject,
            message=self.message,
        )

    def build_and_submit(self, submitter: EnvelopeSubmitter, mailbox: Mailbox, force: bool = False) -> str:
        # Validation happens before any network call.
        package = self.build()
        return submitter.submit(mailbox, package, force=force)


class QuickSendStrategy:
    """Sends raw files to a flat recipient list."""

    def __init__(
        self,
        files: Sequence[FileInput],
        recipients: Sequence[QuickSendRecipient],
        subject: Optional[str] = None,
        message: Optional[str] = None
    ):
        self.files = list(files)
        self.recipients = list(recipients)
        self.subject = subject
        self.message = message

    def build_and_submit(self, submitter: EnvelopeSubmitter, mailbox: Mailbox, force: bool = False) -> str:
        return submitter.quick_send(
            mailbox, self.files, self.recipients,
            subject=self.subject, message=self.message, force=force
        )
