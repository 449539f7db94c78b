"""
Package Definition Loader

Loads, validates, and caches signature package definitions from YAML.
A definition declares roles, default recipients and field placements;
the documents themselves are supplied when the package is built.

Example definition:

    schema_version: '1.0'
    slug: consulting-agreement
    subject: Please sign the consulting agreement
    roles:
      - {role_id: sender, order: 0, kind: sender, contact: legal@org.com}
      - {role_id: client, order: 1, kind: assignee, signer: true}
    fields:
      - {kind: signature, role_id: client, page: 2, x: 0.1, y: 0.8, width: 0.3, height: 0.05}
      - {kind: date, role_id: client, page: 2, x: 0.5, y: 0.8, width: 0.2, height: 0.05}
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

import jsonschema
import yaml

from .exceptions import ConfigurationError, ValidationError
from .package_builder import DEFAULT_SUBJECT, PackageBuilder
from .types import (
    DocumentReference,
    FieldKind,
    FieldPlacement,
    Geometry,
    RecipientBinding,
    Role,
    RoleKind,
    SignaturePackage,
)

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).parent / 'schema'


@dataclass(frozen=True)
class RoleDefinition:
    """
    A role with its default recipient.

    Attributes:
        role_id: Identifier used by field placements
        order: Routing order
        kind: Role kind
        contact: Default contact; may be supplied at build time instead
        name: Default display name
        signer: Whether the recipient signs
        eink: Whether the recipient signs with handwritten-style input
    """
    role_id: str
    order: int
    kind: RoleKind
    contact: Optional[str] = None
    name: Optional[str] = None
    signer: bool = False
    eink: bool = False


@dataclass(frozen=True)
class FieldDefinition:
    """A field placement; `document` indexes the documents given at build time."""
    kind: FieldKind
    role_id: str
    page: int
    document: int
    geometry: Geometry
    name: Optional[str] = None


@dataclass(frozen=True)
class PackageDefinition:
    """A reusable, validated package layout loaded from YAML."""
    schema_version: str
    slug: str
    name: str
    subject: str
    message: str
    roles: tuple
    fields: tuple

    def get_role(self, role_id: str) -> Optional[RoleDefinition]:
        return next((r for r in self.roles if r.role_id == role_id), None)

    def get_fields_for_role(self, role_id: str) -> List[FieldDefinition]:
        return [f for f in self.fields if f.role_id == role_id]

    def get_role_ids(self) -> List[str]:
        return [r.role_id for r in self.roles]

    def build(
        self,
        builder: PackageBuilder,
        documents: Sequence[DocumentReference],
        contacts: Optional[Mapping[str, str]] = None,
        subject: Optional[str] = None,
        message: Optional[str] = None
    ) -> SignaturePackage:
        """
        Build a signature package from this definition.

        Args:
            builder: Builder that validates and assembles the package
            documents: Uploaded documents, indexed by each field's `document`
            contacts: Role id -> contact overrides for the defaults in the file
            subject: Overrides the definition's subject
            message: Overrides the definition's message

        Raises:
            ValidationError: If a field points past the given documents, or
                the builder rejects the package (e.g. a role without contact)
        """
        documents = list(documents)
        contacts = dict(contacts or {})

        placements = []
        for field_def in self.fields:
            if field_def.document >= len(documents):
                raise ValidationError(
                    f"Field '{field_def.name or field_def.kind.value}' targets document "
                    f"#{field_def.document} but only {len(documents)} document(s) were given",
                    role_id=field_def.role_id,
                    field=field_def.name
                )
            placements.append(FieldPlacement(
                kind=field_def.kind,
                page=field_def.page,
                role_id=field_def.role_id,
                geometry=field_def.geometry,
                document_id=documents[field_def.document].document_id,
                name=field_def.name,
            ))

        roles = [Role(r.role_id, r.order, r.kind) for r in self.roles]

        bindings = []
        for role_def in self.roles:
            contact = contacts.get(role_def.role_id) or role_def.contact
            if not contact:
                # Left unbound; the builder reports the role.
                continue
            bindings.append(RecipientBinding(
                role_id=role_def.role_id,
                contact=contact,
                is_signer=role_def.signer,
                use_eink_signature=role_def.eink,
                name=role_def.name,
            ))

        return builder.build_package(
            documents,
            placements,
            roles,
            bindings,
            subject=subject or self.subject,
            message=self.message if message is None else message,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PackageDefinition':
        """
        Create a PackageDefinition from a parsed YAML dict.

        Roles without an explicit order get their position in the list.
        """
        roles = []
        for index, role_data in enumerate(data.get('roles', [])):
            roles.append(RoleDefinition(
                role_id=role_data['role_id'],
                order=role_data.get('order', index),
                kind=RoleKind(role_data['kind']),
                contact=role_data.get('contact'),
                name=role_data.get('name'),
                signer=role_data.get('signer', False),
                eink=role_data.get('eink', False),
            ))

        fields = []
        for field_data in data.get('fields', []):
            fields.append(FieldDefinition(
                kind=FieldKind(field_data['kind']),
                role_id=field_data['role_id'],
                page=field_data.get('page', 0),
                document=field_data.get('document', 0),
                geometry=Geometry(
                    x=float(field_data['x']),
                    y=float(field_data['y']),
                    width=float(field_data['width']),
                    height=float(field_data['height']),
                ),
                name=field_data.get('name'),
            ))

        return cls(
            schema_version=data['schema_version'],
            slug=data['slug'],
            name=data.get('name', data['slug']),
            subject=data.get('subject', DEFAULT_SUBJECT),
            message=data.get('message', ''),
            roles=tuple(roles),
            fields=tuple(fields),
        )


class PackageDefinitionLoader:
    """
    Loads package definitions and caches them by slug.

    Usage:
        loader = PackageDefinitionLoader()
        loader.load_directory('definitions/')
        definition = loader.get_or_raise('consulting-agreement')
    """

    def __init__(self, schema_dir: Path = SCHEMA_DIR):
        self.schema_dir = Path(schema_dir)
        self._definitions: Dict[str, PackageDefinition] = {}
        self._schemas: Dict[str, dict] = {}
        self._load_schemas()

    def _load_schemas(self) -> None:
        """Load JSON schemas for validation."""
        if not self.schema_dir.exists():
            raise ConfigurationError(f"Schema directory not found: {self.schema_dir}")

        for schema_file in self.schema_dir.glob('v*.json'):
            version = schema_file.stem  # e.g., "v1.0"
            self._schemas[version] = json.loads(schema_file.read_text(encoding='utf-8'))
            logger.debug(f"Loaded schema: {version}")

    def _get_schema(self, version: str) -> dict:
        schema_key = f"v{version}"
        if schema_key not in self._schemas:
            raise ConfigurationError(f"Unknown schema version: {version}")
        return self._schemas[schema_key]

    def load_string(self, yaml_content: str, source: str = '<string>') -> PackageDefinition:
        """Parse and validate one definition without caching it."""
        try:
            raw = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"{source}: YAML syntax error: {e}")

        if not raw:
            raise ConfigurationError(f"{source}: Empty package definition")
        if not isinstance(raw, dict):
            raise ConfigurationError(f"{source}: Package definition must be a mapping")

        schema = self._get_schema(str(raw.get('schema_version', '1.0')))
        try:
            jsonschema.validate(raw, schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"{source}: Schema validation failed: {e.message}")

        self._validate_references(raw, source)
        return PackageDefinition.from_dict(raw)

    def load_file(self, path) -> PackageDefinition:
        """Load one definition file and cache it by slug."""
        path = Path(path)
        definition = self.load_string(path.read_text(encoding='utf-8'), source=path.name)
        if definition.slug in self._definitions:
            raise ConfigurationError(
                f"{path.name}: Duplicate slug '{definition.slug}' (already defined in another file)"
            )
        self._definitions[definition.slug] = definition
        logger.debug(f"Loaded package definition: {definition.slug}")
        return definition

    def load_directory(self, directory) -> List[PackageDefinition]:
        """
        Load every *.yml / *.yaml file in a directory.

        Raises:
            ConfigurationError: Listing every invalid file
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise ConfigurationError(f"Definitions directory not found: {directory}")

        errors = []
        loaded = []
        yaml_files = sorted(list(directory.glob('*.yml')) + list(directory.glob('*.yaml')))

        for yaml_file in yaml_files:
            try:
                loaded.append(self.load_file(yaml_file))
            except ConfigurationError as e:
                errors.append(str(e))

        if errors:
            error_msg = "Package definition errors:\n" + "\n".join(f"  - {e}" for e in errors)
            logger.error(error_msg)
            raise ConfigurationError(error_msg)

        logger.info(f"Loaded {len(loaded)} package definition(s) from {directory}")
        return loaded

    @staticmethod
    def _validate_references(raw: dict, source: str) -> None:
        """Validate that fields reference declared roles and role ids are unique."""
        role_ids = [r['role_id'] for r in raw.get('roles', [])]
        if len(role_ids) != len(set(role_ids)):
            duplicates = {k for k in role_ids if role_ids.count(k) > 1}
            raise ConfigurationError(f"{source}: Duplicate role_ids: {sorted(duplicates)}")

        known: Set[str] = set(role_ids)
        for field in raw.get('fields', []):
            if field['role_id'] not in known:
                raise ConfigurationError(
                    f"{source}: Field '{field.get('name', field['kind'])}' references unknown role "
                    f"'{field['role_id']}'. Available roles: {sorted(known)}"
                )

    def validate_yaml_content(self, yaml_content: str) -> List[str]:
        """
        Validate YAML content without caching it.

        Returns:
            List of validation error messages (empty if valid)
        """
        try:
            self.load_string(yaml_content)
        except ConfigurationError as e:
            return [str(e)]
        return []

    def get(self, slug: str) -> Optional[PackageDefinition]:
        return self._definitions.get(slug)

    def get_or_raise(self, slug: str) -> PackageDefinition:
        definition = self.get(slug)
        if not definition:
            raise ConfigurationError(f"Unknown package definition: {slug}")
        return definition

    def all_slugs(self) -> List[str]:
        return list(self._definitions.keys())

    def clear(self) -> None:
        """Clear all cached definitions."""
        self._definitions.clear()
