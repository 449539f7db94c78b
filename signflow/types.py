"""
Signing Client Type Definitions

Dataclasses and enums for mailboxes, uploaded documents, field
placements, roles, recipient bindings and envelopes.
Value types are immutable; collections are stored as tuples.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import SigningAPIError


class FieldKind(Enum):
    """Interactive element kinds that can be overlaid on a page."""
    SIGNATURE = "signature"
    DATE = "date"
    TEXT = "text"


class RoleKind(Enum):
    """Participant slot kinds in a signing workflow."""
    SENDER = "sender"
    ASSIGNEE = "assignee"
    VIEWER = "viewer"
    CC = "cc"


class FieldStrategy(Enum):
    """How pre-existing form fields in an uploaded file are handled."""
    KEEP = "keep"
    DELETE = "delete"


class EnvelopeStatus(Enum):
    """Envelope lifecycle states reported by the platform."""
    DRAFT = "draft"
    SENT = "sent"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    DECLINED = "declined"
    VOIDED = "voided"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        """Terminal states never transition again."""
        return self in _TERMINAL_STATUSES

    @property
    def is_success(self) -> bool:
        return self is EnvelopeStatus.COMPLETED

    @classmethod
    def parse(cls, value: Any) -> 'EnvelopeStatus':
        """
        Map a platform status string to an EnvelopeStatus.

        Accepts the spellings the platform uses interchangeably
        ("in_progress", "inprogress", "IN-PROGRESS").
        """
        if isinstance(value, cls):
            return value
        normalized = str(value or '').strip().lower().replace('_', '-')
        if normalized == 'inprogress':
            normalized = 'in-progress'
        try:
            return cls(normalized)
        except ValueError:
            raise SigningAPIError(f"Unknown envelope status: {value!r}")


_TERMINAL_STATUSES = frozenset({
    EnvelopeStatus.COMPLETED,
    EnvelopeStatus.DECLINED,
    EnvelopeStatus.VOIDED,
    EnvelopeStatus.EXPIRED,
})


@dataclass(frozen=True)
class Mailbox:
    """An identity (user or organizational inbox) that sends envelopes."""
    mailbox_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Mailbox':
        """Create a Mailbox from the platform's JSON representation."""
        return cls(
            mailbox_id=str(data['id']),
            email=data.get('email'),
            display_name=data.get('name') or data.get('display_name'),
        )


@dataclass(frozen=True)
class DocumentReference:
    """
    An uploaded file known to the platform.

    Attributes:
        document_id: Platform-assigned identifier
        content_hash: SHA-256 of the uploaded bytes (hex)
        name: File name given at upload time
    """
    document_id: str
    content_hash: str
    name: Optional[str] = None


@dataclass(frozen=True)
class Geometry:
    """Bounding box in page-relative units."""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class FieldPlacement:
    """
    One interactive element placed on a document page.

    Attributes:
        kind: What the recipient fills in
        page: 0-based page index
        role_id: Role that fills the field
        geometry: Where on the page the field sits
        document_id: Target document; None means the first document of the package
        name: Optional field label
    """
    kind: FieldKind
    page: int
    role_id: str
    geometry: Geometry
    document_id: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class Role:
    """A named participant slot. Lower order is notified first."""
    role_id: str
    order: int
    kind: RoleKind


@dataclass(frozen=True)
class RecipientBinding:
    """
    Binds a role to a concrete contact.

    Attributes:
        role_id: The role being bound
        contact: Mailbox id or email address
        is_signer: Whether the recipient signs
        use_eink_signature: Whether the recipient signs with handwritten-style input
        name: Optional display name
    """
    role_id: str
    contact: str
    is_signer: bool = False
    use_eink_signature: bool = False
    name: Optional[str] = None


@dataclass(frozen=True)
class QuickSendRecipient:
    """A flat recipient for quick-send; the platform lays out the fields."""
    contact: str
    is_signer: bool = False
    use_eink_signature: bool = False
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to platform API format."""
        data = {
            'contact': self.contact,
            'signer': self.is_signer,
            'eink': self.use_eink_signature,
        }
        if self.name:
            data['name'] = self.name
        return data


@dataclass(frozen=True)
class PackageDocument:
    """A document reference paired with the fields placed on it."""
    reference: DocumentReference
    fields: Tuple[FieldPlacement, ...] = ()


@dataclass(frozen=True)
class TemplateDescriptor:
    """Documents, field placements and role declarations of a package."""
    documents: Tuple[PackageDocument, ...]
    roles: Tuple[Role, ...]

    def role_ids(self) -> List[str]:
        return [r.role_id for r in self.roles]


@dataclass(frozen=True)
class EnvelopeDescriptor:
    """Subject, message and role-to-recipient bindings of a package."""
    subject: str
    message: str
    bindings: Tuple[RecipientBinding, ...]

    def role_ids(self) -> List[str]:
        return [b.role_id for b in self.bindings]


@dataclass(frozen=True)
class SignaturePackage:
    """
    The declarative bundle the builder produces and the submitter consumes.

    Exists only in memory; the platform assigns an identity only to the
    envelope created from it.
    """
    template: TemplateDescriptor
    envelope: EnvelopeDescriptor

    @property
    def documents(self) -> Tuple[PackageDocument, ...]:
        return self.template.documents

    @property
    def roles(self) -> Tuple[Role, ...]:
        return self.template.roles

    @property
    def bindings(self) -> Tuple[RecipientBinding, ...]:
        return self.envelope.bindings

    @property
    def subject(self) -> str:
        return self.envelope.subject

    @property
    def message(self) -> str:
        return self.envelope.message

    def role_ids(self) -> List[str]:
        return self.template.role_ids()

    def binding_for(self, role_id: str) -> Optional[RecipientBinding]:
        """Get the recipient bound to a role."""
        return next((b for b in self.bindings if b.role_id == role_id), None)

    def signer_bindings(self) -> List[RecipientBinding]:
        return [b for b in self.bindings if b.is_signer]


@dataclass(frozen=True)
class EnvelopeState:
    """
    A status observation of an envelope.

    `raw` keeps whatever else the platform reported alongside the status.
    """
    envelope_id: str
    status: EnvelopeStatus
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, envelope_id: str, data: Dict[str, Any]) -> 'EnvelopeState':
        return cls(
            envelope_id=str(data.get('id') or envelope_id),
            status=EnvelopeStatus.parse(data.get('status')),
            raw=dict(data),
        )
