# prax/services/validator.py
"""Schema validation service."""

import logging
from typing import Optional

from prax.config import get_settings
from prax.models import (
    Attribute,
    EnumDef,
    Field,
    FieldTypeKind,
    Model,
    PolicyCommand,
    ReferentialAction,
    ScalarType,
    Schema,
    ServerGroupStrategy,
    ValueKind,
)
from prax.utils.exceptions import SchemaValidationError, ValidationIssue

logger = logging.getLogger("prax.validator")


RELATION_ARGS = frozenset({"name", "fields", "references", "onDelete", "onUpdate"})

# Field attributes that are plain flags
FLAG_ATTRIBUTES = frozenset({"id", "auto", "unique", "index", "updated_at"})

# Literal kinds accepted by @default for each scalar type
DEFAULT_KINDS = {
    ScalarType.INT: {ValueKind.INT},
    ScalarType.BIG_INT: {ValueKind.INT},
    ScalarType.FLOAT: {ValueKind.INT, ValueKind.FLOAT},
    ScalarType.DECIMAL: {ValueKind.INT, ValueKind.FLOAT, ValueKind.STRING},
    ScalarType.BOOLEAN: {ValueKind.BOOLEAN},
    ScalarType.STRING: {ValueKind.STRING},
    ScalarType.DATE_TIME: {ValueKind.STRING},
    ScalarType.DATE: {ValueKind.STRING},
    ScalarType.TIME: {ValueKind.STRING},
    ScalarType.JSON: {ValueKind.STRING, ValueKind.ARRAY, ValueKind.INT, ValueKind.FLOAT, ValueKind.BOOLEAN},
    ScalarType.BYTES: {ValueKind.STRING},
    ScalarType.UUID: {ValueKind.STRING},
    ScalarType.CUID: {ValueKind.STRING},
    ScalarType.CUID2: {ValueKind.STRING},
    ScalarType.NANO_ID: {ValueKind.STRING},
    ScalarType.ULID: {ValueKind.STRING},
}


class SchemaValidator:
    """Checks a parsed schema and resolves its field types.

    Every problem is collected before anything is raised, so a single run
    reports all of them.
    """

    def __init__(self, strict: Optional[bool] = None):
        """Initialize the validator.

        Args:
            strict: Raise on problems. Defaults to ``Settings.strict_validation``.
        """
        self.strict = get_settings().strict_validation if strict is None else strict

    def validate(self, schema: Schema) -> Schema:
        """Validate a schema.

        Args:
            schema: The parsed schema. Field types naming enums or composite
                types are resolved in place.

        Returns:
            The same schema.

        Raises:
            SchemaValidationError: With every problem found, in strict mode.
        """
        issues = self.collect(schema)
        if issues:
            if self.strict:
                logger.info("Schema validation failed with %d error(s)", len(issues))
                raise SchemaValidationError(issues)
            for issue in issues:
                logger.warning("Schema validation: %s", issue.message)
        else:
            logger.info("Schema validated: %s", schema)
        return schema

    def collect(self, schema: Schema) -> list[ValidationIssue]:
        """Resolve field types and return every problem found."""
        issues: list[ValidationIssue] = []
        self._check_names(schema, issues)
        self._resolve_types(schema, issues)
        for model in schema.models.values():
            self._check_model(schema, model, issues)
        for view in schema.views.values():
            for field in view.fields.values():
                self._check_field_attributes(schema, view.name, field, issues)
            self._check_block_attributes(view.name, view.fields, view.attributes, issues)
        for composite in schema.composite_types.values():
            for field in composite.fields.values():
                self._check_field_attributes(schema, composite.name, field, issues)
        for enum in schema.enums.values():
            self._check_enum(enum, issues)
        self._check_policies(schema, issues)
        self._check_server_groups(schema, issues)
        return issues

    # === Names ===

    def _check_names(self, schema: Schema, issues: list[ValidationIssue]) -> None:
        for dup in schema.duplicates:
            issues.append(ValidationIssue(
                f"duplicate {dup.kind} '{dup.name}'", entity=dup.name, span=dup.span
            ))

        seen: dict[str, str] = {}
        namespaces = (
            ("model", schema.models),
            ("enum", schema.enums),
            ("type", schema.composite_types),
            ("view", schema.views),
        )
        for kind, mapping in namespaces:
            for name, item in mapping.items():
                if name in seen:
                    issues.append(ValidationIssue(
                        f"{kind} '{name}' conflicts with {seen[name]} '{name}'",
                        entity=name,
                        span=item.span,
                    ))
                else:
                    seen[name] = kind

    # === Type resolution ===

    def _resolve_types(self, schema: Schema, issues: list[ValidationIssue]) -> None:
        containers = [
            *schema.models.values(),
            *schema.views.values(),
            *schema.composite_types.values(),
        ]
        for container in containers:
            for field in container.fields.values():
                field_type = field.field_type
                if field_type.kind not in (FieldTypeKind.MODEL, FieldTypeKind.ENUM, FieldTypeKind.COMPOSITE):
                    continue
                name = field_type.name
                if name in schema.enums:
                    field_type.kind = FieldTypeKind.ENUM
                elif name in schema.composite_types:
                    field_type.kind = FieldTypeKind.COMPOSITE
                elif name in schema.models or name in schema.views:
                    field_type.kind = FieldTypeKind.MODEL
                else:
                    issues.append(ValidationIssue(
                        f"field '{container.name}.{field.name}' has unknown type '{name}'",
                        entity=f"{container.name}.{field.name}",
                        span=field.span,
                    ))

    # === Models ===

    def _check_model(self, schema: Schema, model: Model, issues: list[ValidationIssue]) -> None:
        id_fields = model.id_fields()
        block_id = model.get_attribute("id")
        if id_fields and block_id:
            issues.append(ValidationIssue(
                f"model '{model.name}' declares both @id fields and @@id",
                entity=model.name,
                span=model.span,
            ))
        elif not id_fields and not block_id:
            issues.append(ValidationIssue(
                f"model '{model.name}' has no primary key",
                entity=model.name,
                span=model.span,
            ))

        for field in model.fields.values():
            if field.is_id() and field.is_relation():
                issues.append(ValidationIssue(
                    f"@id is not allowed on relation field '{model.name}.{field.name}'",
                    entity=f"{model.name}.{field.name}",
                    span=field.span,
                ))
            self._check_field_attributes(schema, model.name, field, issues)
            self._check_relation(schema, model, field, issues)

        self._check_block_attributes(model.name, model.fields, model.attributes, issues)

    def _check_field_attributes(
        self,
        schema: Schema,
        owner: str,
        field: Field,
        issues: list[ValidationIssue]
    ) -> None:
        entity = f"{owner}.{field.name}"
        scalar = field.field_type.scalar if field.field_type.is_scalar else None
        for attr in field.attributes:
            if attr.name in FLAG_ATTRIBUTES and attr.args:
                issues.append(ValidationIssue(
                    f"@{attr.name} on '{entity}' takes no arguments",
                    entity=entity,
                    span=attr.span,
                ))
            if attr.name == "map":
                self._check_single_string(attr, f"@map on '{entity}'", entity, issues)
            elif attr.name == "default":
                self._check_default(schema, entity, field, attr, issues)
            elif attr.name == "auto" and scalar not in (ScalarType.INT, ScalarType.BIG_INT):
                issues.append(ValidationIssue(
                    f"@auto on '{entity}' requires an Int or BigInt field",
                    entity=entity,
                    span=attr.span,
                ))
            elif attr.name == "updated_at" and scalar != ScalarType.DATE_TIME:
                issues.append(ValidationIssue(
                    f"@updated_at on '{entity}' requires a DateTime field",
                    entity=entity,
                    span=attr.span,
                ))

    def _check_single_string(
        self,
        attr: Attribute,
        label: str,
        entity: str,
        issues: list[ValidationIssue]
    ) -> None:
        values = [a.value for a in attr.args]
        if len(values) != 1 or values[0].kind != ValueKind.STRING:
            issues.append(ValidationIssue(
                f"{label} takes exactly one string argument", entity=entity, span=attr.span
            ))

    def _check_default(
        self,
        schema: Schema,
        entity: str,
        field: Field,
        attr: Attribute,
        issues: list[ValidationIssue]
    ) -> None:
        if len(attr.args) != 1:
            issues.append(ValidationIssue(
                f"@default on '{entity}' takes exactly one value", entity=entity, span=attr.span
            ))
            return
        value = attr.args[0].value
        if value.kind == ValueKind.FUNCTION:
            return
        field_type = field.field_type
        if field.is_list() and value.kind == ValueKind.ARRAY:
            return
        if field_type.is_enum:
            enum = schema.get_enum(field_type.name)
            variant = value.as_str()
            if enum is not None and (variant is None or not enum.has_variant(variant)):
                issues.append(ValidationIssue(
                    f"@default on '{entity}' must be a variant of enum '{enum.name}'",
                    entity=entity,
                    span=attr.span,
                ))
            return
        if field_type.is_scalar and value.kind not in DEFAULT_KINDS[field_type.scalar]:
            issues.append(ValidationIssue(
                f"@default on '{entity}' has a {value.kind.value} value "
                f"but the field is {field_type.name}",
                entity=entity,
                span=attr.span,
            ))

    def _check_relation(
        self,
        schema: Schema,
        model: Model,
        field: Field,
        issues: list[ValidationIssue]
    ) -> None:
        attr = field.get_attribute("relation")
        if attr is None:
            return
        entity = f"{model.name}.{field.name}"
        if not field.is_relation():
            issues.append(ValidationIssue(
                f"@relation on '{entity}' requires a model type", entity=entity, span=attr.span
            ))
            return

        for arg in attr.args:
            if arg.is_named and arg.name not in RELATION_ARGS:
                issues.append(ValidationIssue(
                    f"@relation on '{entity}' has unknown argument '{arg.name}'",
                    entity=entity,
                    span=arg.span,
                ))
        for action_name in ("onDelete", "onUpdate"):
            action = attr.get_arg(action_name)
            if action is not None and ReferentialAction.from_str(action.as_str() or "") is None:
                issues.append(ValidationIssue(
                    f"@relation on '{entity}' has invalid {action_name} action '{action}'",
                    entity=entity,
                    span=attr.span,
                ))

        fields = attr.get_arg("fields")
        for name in fields.as_field_refs() if fields else []:
            if model.get_field(name) is None:
                issues.append(ValidationIssue(
                    f"@relation on '{entity}' references unknown field '{name}'",
                    entity=entity,
                    span=attr.span,
                ))
        target = schema.get_model(field.field_type.name)
        references = attr.get_arg("references")
        if (fields is None) != (references is None):
            issues.append(ValidationIssue(
                f"@relation on '{entity}' needs both fields and references",
                entity=entity,
                span=attr.span,
            ))
        elif fields is not None and len(fields.as_field_refs()) != len(references.as_field_refs()):
            issues.append(ValidationIssue(
                f"@relation on '{entity}' has {len(fields.as_field_refs())} fields "
                f"but {len(references.as_field_refs())} references",
                entity=entity,
                span=attr.span,
            ))
        if target is None:
            return
        for name in references.as_field_refs() if references else []:
            if target.get_field(name) is None:
                issues.append(ValidationIssue(
                    f"@relation on '{entity}' references unknown field '{target.name}.{name}'",
                    entity=entity,
                    span=attr.span,
                ))

    def _check_block_attributes(
        self,
        owner: str,
        fields: dict[str, Field],
        attributes: list[Attribute],
        issues: list[ValidationIssue]
    ) -> None:
        for attr in attributes:
            if attr.name == "map":
                self._check_single_string(attr, f"@@map on '{owner}'", owner, issues)
            elif attr.name in ("index", "unique", "id", "search"):
                names = attr.field_refs()
                if len(attr.positional_args()) > 1:
                    issues.append(ValidationIssue(
                        f"@@{attr.name} on '{owner}' takes a single field list",
                        entity=owner,
                        span=attr.span,
                    ))
                if not names:
                    issues.append(ValidationIssue(
                        f"@@{attr.name} on '{owner}' requires a non-empty field list",
                        entity=owner,
                        span=attr.span,
                    ))
                for name in names:
                    field = fields.get(name)
                    if field is None:
                        issues.append(ValidationIssue(
                            f"@@{attr.name} on '{owner}' references unknown field '{name}'",
                            entity=owner,
                            span=attr.span,
                        ))
                    elif attr.name == "search" and field.field_type.scalar != ScalarType.STRING:
                        issues.append(ValidationIssue(
                            f"@@search on '{owner}' requires String fields, '{name}' is {field.field_type}",
                            entity=owner,
                            span=attr.span,
                        ))

    # === Enums ===

    def _check_enum(self, enum: EnumDef, issues: list[ValidationIssue]) -> None:
        if not enum.variants:
            issues.append(ValidationIssue(
                f"enum '{enum.name}' has no variants", entity=enum.name, span=enum.span
            ))
        seen = set()
        for variant in enum.variants:
            if variant.name in seen:
                issues.append(ValidationIssue(
                    f"duplicate variant '{enum.name}.{variant.name}'",
                    entity=enum.name,
                    span=variant.span,
                ))
            seen.add(variant.name)

    # === Policies ===

    def _check_policies(self, schema: Schema, issues: list[ValidationIssue]) -> None:
        for policy in schema.policies:
            if schema.get_model(policy.table.name) is None:
                issues.append(ValidationIssue(
                    f"policy '{policy.name}' targets unknown model '{policy.table.name}'",
                    entity=policy.name,
                    span=policy.table.span,
                ))
            for command in policy.commands:
                if command.requires_using() and not policy.using_expr:
                    issues.append(ValidationIssue(
                        f"policy '{policy.name}' for {command.value} requires a using expression",
                        entity=policy.name,
                        span=policy.span,
                    ))
                if command.requires_check() and not policy.check_expr:
                    issues.append(ValidationIssue(
                        f"policy '{policy.name}' for {command.value} requires a check expression",
                        entity=policy.name,
                        span=policy.span,
                    ))
            if len(policy.commands) > 1 and PolicyCommand.ALL not in policy.commands:
                logger.debug(
                    "Policy %s lists %d commands; PostgreSQL output uses one per policy",
                    policy.name, len(policy.commands)
                )

    # === Server groups ===

    def _check_server_groups(self, schema: Schema, issues: list[ValidationIssue]) -> None:
        for group in schema.server_groups.values():
            if group.strategy() == ServerGroupStrategy.READ_REPLICA and len(group.primaries()) > 1:
                issues.append(ValidationIssue(
                    f"server group '{group.name}' has more than one primary",
                    entity=group.name,
                    span=group.span,
                ))
            for server in group.servers.values():
                if server.url() is None:
                    issues.append(ValidationIssue(
                        f"server '{group.name}.{server.name}' has no url",
                        entity=f"{group.name}.{server.name}",
                        span=server.span,
                    ))


def validate_schema(schema: Schema, strict: Optional[bool] = None) -> Schema:
    """Validate a schema with a fresh ``SchemaValidator``."""
    return SchemaValidator(strict=strict).validate(schema)


