"""
signflow

Client-side orchestration for a remote document-signing platform:
resolve the acting mailbox, upload documents, build and validate a
signature package, submit it, poll the envelope and download the
signed archive.

Usage:
    from signflow import (
        SigningConfig, Session, SigningAPIClient, MailboxResolver,
        PackageBuilder, EnvelopeSubmitter, StatusPoller
    )

    config = SigningConfig.from_env()
    api = SigningAPIClient(Session.from_config(config), config)
    mailbox = MailboxResolver(api).resolve_default_mailbox()

    builder = PackageBuilder(api)
    ref = builder.upload_document(mailbox, pdf_bytes)
    package = builder.build_package([ref], fields, roles, bindings)
    envelope_id = EnvelopeSubmitter(api).submit(mailbox, package)

    poller = StatusPoller(api, config)
    if poller.wait_for_terminal(envelope_id, mailbox, timeout=3600).is_success:
        archive = poller.fetch_signed_result(envelope_id, mailbox)
"""

from .types import (
    DocumentReference,
    EnvelopeDescriptor,
    EnvelopeState,
    EnvelopeStatus,
    FieldKind,
    FieldPlacement,
    FieldStrategy,
    Geometry,
    Mailbox,
    PackageDocument,
    QuickSendRecipient,
    RecipientBinding,
    Role,
    RoleKind,
    SignaturePackage,
    TemplateDescriptor,
)

from .exceptions import (
    AuthError,
    ConfigurationError,
    NotFound,
    PollTimeout,
    PreconditionError,
    SigningAPIError,
    SigningError,
    TransientError,
    UnknownOutcomeError,
    ValidationError,
)

from .config import SigningConfig
from .session import Session
from .api_client import SigningAPIClient
from .mailbox import MailboxResolver
from .package_builder import PackageBuilder
from .descriptors import DescriptorWriter, verify_role_consistency
from .submitter import EnvelopeSubmitter, QuickSendStrategy, TemplateSendStrategy
from .poller import StatusPoller
from .loader import PackageDefinition, PackageDefinitionLoader
from .workflow import SigningResult, SigningWorkflow

__all__ = [
    # Types
    'DocumentReference',
    'EnvelopeDescriptor',
    'EnvelopeState',
    'EnvelopeStatus',
    'FieldKind',
    'FieldPlacement',
    'FieldStrategy',
    'Geometry',
    'Mailbox',
    'PackageDocument',
    'QuickSendRecipient',
    'RecipientBinding',
    'Role',
    'RoleKind',
    'SignaturePackage',
    'TemplateDescriptor',

    # Exceptions
    'AuthError',
    'ConfigurationError',
    'NotFound',
    'PollTimeout',
    'PreconditionError',
    'SigningAPIError',
    'SigningError',
    'TransientError',
    'UnknownOutcomeError',
    'ValidationError',

    # Services
    'SigningConfig',
    'Session',
    'SigningAPIClient',
    'MailboxResolver',
    'PackageBuilder',
    'DescriptorWriter',
    'verify_role_consistency',
    'EnvelopeSubmitter',
    'TemplateSendStrategy',
    'QuickSendStrategy',
    'StatusPoller',
    'PackageDefinition',
    'PackageDefinitionLoader',
    'SigningResult',
    'SigningWorkflow',
]
