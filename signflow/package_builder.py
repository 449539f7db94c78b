"""
Document Package Builder

Uploads documents and assembles validated signature packages from
document references, field placements, roles and recipient bindings.

Usage:
    builder = PackageBuilder(api)
    ref = builder.upload_document(mailbox, pdf_bytes, FieldStrategy.DELETE)
    package = builder.build_package(
        [ref],
        [FieldPlacement(FieldKind.SIGNATURE, 0, 'signer1', Geometry(0.1, 0.8, 0.3, 0.05))],
        [Role('signer1', 1, RoleKind.ASSIGNEE)],
        [RecipientBinding('signer1', 'alice@example.com', is_signer=True)],
    )
"""

import hashlib
import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence

from .api_client import SigningAPIClient
from .descriptors import DescriptorWriter, verify_role_consistency
from .exceptions import SigningAPIError, ValidationError
from .types import (
    DocumentReference,
    EnvelopeDescriptor,
    FieldPlacement,
    FieldStrategy,
    Mailbox,
    PackageDocument,
    RecipientBinding,
    Role,
    RoleKind,
    SignaturePackage,
    TemplateDescriptor,
)

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Please sign this document"


class PackageBuilder:
    """
    Builds signature packages.

    Uploading needs the API client; building is pure and local and
    never touches the network.
    """

    def __init__(self, api: Optional[SigningAPIClient] = None):
        self.api = api

    def upload_document(
        self,
        mailbox: Mailbox,
        file_bytes: bytes,
        field_strategy: FieldStrategy = FieldStrategy.KEEP,
        file_name: str = "document.pdf"
    ) -> DocumentReference:
        """
        Upload a file and return its reference.

        Args:
            mailbox: Mailbox the document is uploaded to
            file_bytes: Raw file content
            field_strategy: Keep or strip form fields already in the file
            file_name: Name shown to recipients

        Returns:
            DocumentReference with the platform id and hash (the local sha256
            if the platform returns none)

        Raises:
            ValidationError: If the file is empty
            SigningAPIError: If the platform returns no document id
        """
        if not file_bytes:
            raise ValidationError(f"Cannot upload empty file '{file_name}'", field=file_name)
        if self.api is None:
            raise ValueError("PackageBuilder needs an API client to upload documents")

        local_hash = hashlib.sha256(file_bytes).hexdigest()
        result = self.api.upload_document(
            mailbox.mailbox_id, file_name, file_bytes, FieldStrategy(field_strategy)
        )

        document_id = result.get('id') or result.get('document_id')
        if not document_id:
            raise SigningAPIError(f"Upload of '{file_name}' returned no document id")

        # The platform's hash identifies the stored file; it may differ from
        # ours when fields were stripped or another digest is used.
        remote_hash = result.get('hash') or result.get('content_hash')
        if not remote_hash:
            logger.debug(f"Upload of {file_name} returned no hash; using local sha256")
        elif str(remote_hash).lower() != local_hash:
            logger.debug(f"Upload of {file_name} stored as hash {remote_hash} (local sha256 {local_hash})")

        reference = DocumentReference(
            document_id=str(document_id),
            content_hash=str(remote_hash) if remote_hash else local_hash,
            name=file_name,
        )
        logger.info(f"Uploaded {file_name} as document {reference.document_id}")
        return reference

    def build_package(
        self,
        document_references: Sequence[DocumentReference],
        field_placements: Sequence[FieldPlacement],
        roles: Sequence[Role],
        recipient_bindings: Sequence[RecipientBinding],
        subject: str = DEFAULT_SUBJECT,
        message: str = ""
    ) -> SignaturePackage:
        """
        Validate inputs and assemble a signature package.

        Checks run in order and the first failure is raised:
            - package structure (documents present, unique roles, sane placements)
            - every field placement's role is declared
            - every role has exactly one recipient binding
            - at least one assignee role is bound to a signer

        Raises:
            ValidationError: Identifying the first offending role or field
        """
        documents = list(document_references)
        placements = list(field_placements)
        roles = list(roles)
        bindings = list(recipient_bindings)

        self._validate_structure(documents, placements, roles)
        self._validate_placement_roles(placements, roles)
        bindings_by_role = self._validate_bindings(roles, bindings)
        self._validate_signers(roles, bindings_by_role)

        if not any(r.kind is RoleKind.SENDER for r in roles):
            logger.warning("Package declares no sender role")

        ordered_roles = sorted(roles, key=lambda r: r.order)
        template = TemplateDescriptor(
            documents=self._pair_documents(documents, placements),
            roles=tuple(ordered_roles),
        )
        envelope = EnvelopeDescriptor(
            subject=subject,
            message=message,
            bindings=tuple(bindings_by_role[r.role_id] for r in ordered_roles),
        )

        verify_role_consistency(
            DescriptorWriter.template_descriptor(template),
            DescriptorWriter.envelope_descriptor(envelope),
        )

        logger.debug(
            f"Built package with {len(documents)} document(s), "
            f"{len(placements)} field(s), {len(roles)} role(s)"
        )
        return SignaturePackage(template=template, envelope=envelope)

    @staticmethod
    def _validate_structure(
        documents: List[DocumentReference],
        placements: List[FieldPlacement],
        roles: List[Role]
    ) -> None:
        if not documents:
            raise ValidationError("A package needs at least one document")

        role_counts = Counter(r.role_id for r in roles)
        for role in roles:
            if not role.role_id:
                raise ValidationError("Role identifiers must not be empty")
            if role_counts[role.role_id] > 1:
                raise ValidationError(f"Duplicate role '{role.role_id}'", role_id=role.role_id)

        document_ids = {d.document_id for d in documents}
        if len(document_ids) != len(documents):
            raise ValidationError("A document is referenced more than once")

        for placement in placements:
            label = placement.name or placement.kind.value
            if placement.document_id is not None and placement.document_id not in document_ids:
                raise ValidationError(
                    f"Field '{label}' targets unknown document '{placement.document_id}'",
                    role_id=placement.role_id,
                    field=label
                )
            if placement.page < 0:
                raise ValidationError(
                    f"Field '{label}' has negative page index {placement.page}",
                    role_id=placement.role_id,
                    field=label
                )
            geometry = placement.geometry
            if geometry.x < 0 or geometry.y < 0 or geometry.width <= 0 or geometry.height <= 0:
                raise ValidationError(
                    f"Field '{label}' has invalid geometry {geometry}",
                    role_id=placement.role_id,
                    field=label
                )

    @staticmethod
    def _validate_placement_roles(placements: List[FieldPlacement], roles: List[Role]) -> None:
        """Validate that fields reference declared roles."""
        role_ids = {r.role_id for r in roles}
        for placement in placements:
            if placement.role_id not in role_ids:
                label = placement.name or placement.kind.value
                raise ValidationError(
                    f"Field '{label}' references unknown role '{placement.role_id}'. "
                    f"Available roles: {sorted(role_ids)}",
                    role_id=placement.role_id,
                    field=label
                )

    @staticmethod
    def _validate_bindings(
        roles: List[Role],
        bindings: List[RecipientBinding]
    ) -> Dict[str, RecipientBinding]:
        role_ids = {r.role_id for r in roles}
        bindings_by_role: Dict[str, RecipientBinding] = {}

        for binding in bindings:
            if binding.role_id not in role_ids:
                raise ValidationError(
                    f"Recipient '{binding.contact}' is bound to undeclared role '{binding.role_id}'",
                    role_id=binding.role_id
                )
            if binding.role_id in bindings_by_role:
                raise ValidationError(
                    f"Role '{binding.role_id}' has more than one recipient binding",
                    role_id=binding.role_id
                )
            if not binding.contact:
                raise ValidationError(
                    f"Role '{binding.role_id}' is bound to an empty contact",
                    role_id=binding.role_id
                )
            bindings_by_role[binding.role_id] = binding

        for role in roles:
            if role.role_id not in bindings_by_role:
                raise ValidationError(
                    f"Role '{role.role_id}' has no recipient binding",
                    role_id=role.role_id
                )

        return bindings_by_role

    @staticmethod
    def _validate_signers(roles: List[Role], bindings_by_role: Dict[str, RecipientBinding]) -> None:
        for role in roles:
            if role.kind is RoleKind.ASSIGNEE and bindings_by_role[role.role_id].is_signer:
                return
        raise ValidationError("A package needs at least one assignee role bound to a signer")

    @staticmethod
    def _pair_documents(
        documents: List[DocumentReference],
        placements: List[FieldPlacement]
    ) -> tuple:
        """Group placements under their documents; untargeted ones go to the first."""
        first_id = documents[0].document_id
        fields_by_document: Dict[str, List[FieldPlacement]] = {}
        for placement in placements:
            target = placement.document_id or first_id
            fields_by_document.setdefault(target, []).append(placement)

        return tuple(
            PackageDocument(reference=d, fields=tuple(fields_by_document.get(d.document_id, [])))
            for d in documents
        )
