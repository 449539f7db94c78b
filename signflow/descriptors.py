"""
Descriptor Serialization

Serializes the typed template and envelope descriptors into the YAML
documents the platform's two-phase send endpoint expects, and parses
them back for consistency checks.

Template descriptor:
    schema_version: '1.0'
    documents:
      - id: <document id>
        hash: <content hash>
        fields:
          - {kind: signature, page: 0, role: signer1, x: .., y: .., width: .., height: ..}
    roles:
      - {id: signer1, order: 1, kind: assignee}

Envelope descriptor:
    schema_version: '1.0'
    subject: ...
    message: ...
    recipients:
      - {role: signer1, contact: alice@example.com, signer: true, eink: false}
"""

from typing import Any, Dict, List

import yaml

from .exceptions import ValidationError
from .types import (
    EnvelopeDescriptor,
    FieldPlacement,
    PackageDocument,
    RecipientBinding,
    Role,
    TemplateDescriptor,
)

SCHEMA_VERSION = '1.0'


class DescriptorWriter:
    """Builds descriptor dict trees and dumps them with yaml.safe_dump."""

    @classmethod
    def template_descriptor(cls, template: TemplateDescriptor) -> str:
        """Serialize documents, field placements and roles."""
        doc = {
            'schema_version': SCHEMA_VERSION,
            'documents': [cls._document(d) for d in template.documents],
            'roles': [cls._role(r) for r in template.roles],
        }
        return cls._dump(doc)

    @classmethod
    def envelope_descriptor(cls, envelope: EnvelopeDescriptor) -> str:
        """Serialize subject, message and role-to-recipient bindings."""
        doc = {
            'schema_version': SCHEMA_VERSION,
            'subject': envelope.subject,
            'message': envelope.message,
            'recipients': [cls._recipient(b) for b in envelope.bindings],
        }
        return cls._dump(doc)

    @classmethod
    def _document(cls, document: PackageDocument) -> Dict[str, Any]:
        ref = document.reference
        data = {'id': ref.document_id, 'hash': ref.content_hash}
        if ref.name:
            data['name'] = ref.name
        data['fields'] = [cls._field(f) for f in document.fields]
        return data

    @classmethod
    def _field(cls, placement: FieldPlacement) -> Dict[str, Any]:
        geometry = placement.geometry
        data = {
            'kind': placement.kind.value,
            'page': placement.page,
            'role': placement.role_id,
            'x': geometry.x,
            'y': geometry.y,
            'width': geometry.width,
            'height': geometry.height,
        }
        if placement.name:
            data['name'] = placement.name
        return data

    @classmethod
    def _role(cls, role: Role) -> Dict[str, Any]:
        return {'id': role.role_id, 'order': role.order, 'kind': role.kind.value}

    @classmethod
    def _recipient(cls, binding: RecipientBinding) -> Dict[str, Any]:
        data = {
            'role': binding.role_id,
            'contact': binding.contact,
            'signer': binding.is_signer,
            'eink': binding.use_eink_signature,
        }
        if binding.name:
            data['name'] = binding.name
        return data

    @staticmethod
    def _dump(doc: Dict[str, Any]) -> str:
        return yaml.safe_dump(doc, sort_keys=False, default_flow_style=False, allow_unicode=True)


def parse_template_descriptor(text: str) -> Dict[str, Any]:
    """Parse a serialized template descriptor."""
    return _parse(text, 'template', required=('documents', 'roles'))


def parse_envelope_descriptor(text: str) -> Dict[str, Any]:
    """Parse a serialized envelope descriptor."""
    return _parse(text, 'envelope', required=('recipients',))


def _parse(text: str, kind: str, required) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid {kind} descriptor: {e}")
    if not isinstance(data, dict):
        raise ValidationError(f"Invalid {kind} descriptor: expected a mapping")
    for key in required:
        if not isinstance(data.get(key), list):
            raise ValidationError(f"Invalid {kind} descriptor: missing '{key}' list")
    return data


def verify_role_consistency(template_text: str, envelope_text: str) -> None:
    """
    Check that both descriptors agree on role identifiers.

    The platform rejects a send whose template references a role the
    envelope does not bind, or whose envelope binds an undeclared role.

    Raises:
        ValidationError: Naming the first mismatched role
    """
    template = parse_template_descriptor(template_text)
    envelope = parse_envelope_descriptor(envelope_text)

    declared: List[str] = [r.get('id') for r in template['roles']]
    bound: List[str] = [r.get('role') for r in envelope['recipients']]

    for document in template['documents']:
        for field in document.get('fields') or []:
            role_id = field.get('role')
            if role_id not in declared:
                raise ValidationError(
                    f"Template field references undeclared role '{role_id}'",
                    role_id=role_id,
                    field=field.get('name')
                )
            if role_id not in bound:
                raise ValidationError(
                    f"Template field references role '{role_id}' with no envelope recipient",
                    role_id=role_id,
                    field=field.get('name')
                )

    for role_id in declared:
        if role_id not in bound:
            raise ValidationError(f"Role '{role_id}' has no envelope recipient", role_id=role_id)
    for role_id in bound:
        if role_id not in declared:
            raise ValidationError(f"Envelope binds undeclared role '{role_id}'", role_id=role_id)
