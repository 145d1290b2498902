# File: drxgen/templates.py
"""
drxgen - Type & Schema Emitter
===============================
Turns classified fields into TypeScript source text:

    1. A Zod validator expression and a TypeScript type expression per field
    2. Base / Create / Update / Get variants per entity, for both outputs
    3. The deferred (``z.lazy``) form of the validator variants, used for
       entities that take part in a reference cycle
    4. The shared ``file-schemas`` module (dynamic or fallback)

**Contract:**
    - All string assembly uses ``List[str]`` + ``"\\n".join()``.
    - Each field emission returns, next to its text, the singular name of
      the entity it references and whether it uses the shared file
      definitions.  The dependency graph is built from those, never from
      re-scanning the text.
    - Type text is the same in both passes; only validator text changes.
    - ``TemplateGenerator`` holds configuration only and is safe to share
      between worker threads.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import AbstractSet, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from drxgen.classifier import classify, scalar_type_for
from drxgen.models import (
    ChoiceOptions,
    CustomTypeMapping,
    DateTimeOptions,
    DateTimeVariant,
    EntityDescriptor,
    FieldClassification,
    FieldDescriptor,
    FieldKind,
    FileOptions,
    FileVariant,
    GeneratedArtifact,
    GenerationConfig,
    RelationOptions,
    RelationshipIndex,
    RepeaterOptions,
    ScalarOptions,
    ScalarType,
)
from drxgen.relationships import (
    is_self_reference,
    resolve_target,
    target_reference_name,
)
from drxgen.utils import schema_name, ts_literal, ts_string, type_name

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("drxgen.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_SCHEMA_INDENT: str = "    "  # 4-space indent inside z.object({ ... })
_TYPE_INDENT: str = "  "  # 2-space indent inside interfaces

IDENTIFIER_FIELD: str = "id"

#: Audit fields omitted from the Create variant when present on the entity.
AUDIT_FIELDS: Tuple[str, ...] = (
    "user_created",
    "date_created",
    "user_updated",
    "date_updated",
)

FILE_SCHEMA_NAMES: Tuple[str, ...] = ("DrxFileSchema", "DrxImageFileSchema")
FILE_TYPE_NAMES: Tuple[str, ...] = ("DrsFile", "DrsImageFile")

#: Reserved entity names of the shared file definitions.
FILE_ENTITY_NAMES: FrozenSet[str] = frozenset({"File", "ImageFile"})

_DEFERRED_CAST: str = "z.ZodLazy<z.ZodObject<any>>"

_TS_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

# Scalar shape -> (validator expression, type expression)
_SCALAR_EXPRESSIONS: Dict[ScalarType, Tuple[str, str]] = {
    ScalarType.UUID: ("z.string().uuid()", "string"),
    ScalarType.STRING: ("z.string()", "string"),
    ScalarType.INTEGER: ("z.number().int()", "number"),
    ScalarType.NUMBER: ("z.number()", "number"),
    ScalarType.BOOLEAN: ("z.boolean()", "boolean"),
    ScalarType.DATE: ("z.string().date()", "string"),
    ScalarType.DATETIME: ("z.string().datetime()", "string"),
    ScalarType.TIME: ("z.string().time()", "string"),
    ScalarType.JSON: ("z.any()", "any"),
    ScalarType.CSV: ("z.array(z.string())", "string[]"),
    ScalarType.ANY: ("z.any()", "any"),
}

_DATETIME_EXPRESSIONS: Dict[DateTimeVariant, str] = {
    DateTimeVariant.DATE: "z.string().date()",
    DateTimeVariant.TIME: "z.string().time()",
    DateTimeVariant.DATETIME: "z.string().datetime()",
}

_FILE_EXPRESSIONS: Dict[FileVariant, Tuple[str, str]] = {
    FileVariant.SINGLE: ("DrxFileSchema", "DrsFile"),
    FileVariant.MULTIPLE: ("z.array(DrxFileSchema)", "DrsFile[]"),
    FileVariant.IMAGE: ("DrxImageFileSchema", "DrsImageFile"),
}

_SYNTHETIC_ID_SCHEMA: str = "z.string().uuid().optional()"
_SYNTHETIC_ID_TYPE: str = "string"


# ---------------------------------------------------------------------------
# Emission records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FieldEmission:
    """Validator/type text of one field plus what that text points at."""

    name: str
    schema: str
    type: str
    optional: bool = False
    nullable: bool = False
    reference: Optional[str] = None
    uses_file_schemas: bool = False

    @property
    def property_name(self) -> str:
        return self.name if _TS_IDENTIFIER_RE.match(self.name) else ts_string(self.name)

    def schema_line(self) -> str:
        return f"{self.property_name}: {self.schema}"

    def type_line(self) -> str:
        marker: str = "?" if self.optional else ""
        suffix: str = " | null" if self.nullable else ""
        return f"{self.property_name}{marker}: {self.type}{suffix}"


def synthetic_id_emission() -> FieldEmission:
    """Identifier inserted first when an entity has no ``id`` field."""
    return FieldEmission(
        name=IDENTIFIER_FIELD,
        schema=_SYNTHETIC_ID_SCHEMA,
        type=_SYNTHETIC_ID_TYPE,
        optional=True,
    )


# ---------------------------------------------------------------------------
# Expression helpers
# ---------------------------------------------------------------------------


def _scalar_expressions(options: ScalarOptions) -> Tuple[str, str]:
    if options.scalar is ScalarType.CUSTOM and options.custom is not None:
        return options.custom.zod, options.custom.typescript
    return _SCALAR_EXPRESSIONS.get(options.scalar, _SCALAR_EXPRESSIONS[ScalarType.ANY])


def _choice_expressions(values: Sequence[object]) -> Tuple[str, str]:
    """
    ``z.enum`` for all-string values, ``z.literal`` / ``z.union`` otherwise.

    The type side is always the ``|``-joined literal union.
    """
    type_expr: str = " | ".join(ts_literal(v) for v in values)
    if all(isinstance(v, str) for v in values):
        members: str = ", ".join(ts_string(str(v)) for v in values)
        return f"z.enum([{members}])", type_expr

    literals: List[str] = [f"z.literal({ts_literal(v)})" for v in values]
    if len(literals) == 1:
        return literals[0], type_expr
    return f"z.union([{', '.join(literals)}])", type_expr


def _with_modifiers(expr: str, nullable: bool, optional: bool) -> str:
    if nullable:
        expr += ".nullable()"
    if optional:
        expr += ".optional()"
    return expr


def _object_block(lines: Sequence[str], indent: str, closing_indent: str = "") -> str:
    body: str = f",\n{indent}".join(lines)
    return f"z.object({{\n{indent}{body}\n{closing_indent}}})"


def _interface_block(lines: Sequence[str], indent: str, closing_indent: str = "") -> str:
    body: str = "".join(f"{indent}{line};\n" for line in lines)
    return f"{{\n{body}{closing_indent}}}"


# ---------------------------------------------------------------------------
# Emitter
# ---------------------------------------------------------------------------


class TemplateGenerator:
    """
    Emission engine for entity validator and type text.

    Holds only the run configuration; relationship data is passed into
    every call.
    """

    def __init__(self, config: Optional[GenerationConfig] = None) -> None:
        self._config: GenerationConfig = config or GenerationConfig()
        self._custom: Mapping[str, CustomTypeMapping] = self._config.custom_field_mappings
        logger.debug(
            "TemplateGenerator initialised (schemas=%s, types=%s, %d custom mappings).",
            self._config.generate_schemas,
            self._config.generate_types,
            len(self._custom),
        )

    # ===================================================================
    # 1. Field emission
    # ===================================================================

    def classify(self, field: FieldDescriptor) -> FieldClassification:
        return classify(field, self._custom)

    def _reduced_expressions(self, field: FieldDescriptor) -> Tuple[str, str]:
        """Scalar-only mapping by raw type, used at nested depth."""
        scalar: Optional[ScalarType] = scalar_type_for(field.raw_type)
        if scalar is not None:
            return _SCALAR_EXPRESSIONS[scalar]
        custom: Optional[CustomTypeMapping] = self._custom.get(field.raw_type)
        if custom is not None:
            return custom.zod, custom.typescript
        return _SCALAR_EXPRESSIONS[ScalarType.ANY]

    def _repeater_expressions(self, options: RepeaterOptions) -> Tuple[str, str]:
        if not options.fields:
            return "z.array(z.any())", "any[]"

        schema_lines: List[str] = []
        type_lines: List[str] = []
        for sub in options.fields:
            sub_schema, sub_type = self._reduced_expressions(sub)
            emission: FieldEmission = FieldEmission(sub.name, sub_schema, sub_type)
            schema_lines.append(emission.schema_line())
            type_lines.append(emission.type_line())

        schema_obj: str = _object_block(
            schema_lines, _SCHEMA_INDENT * 2, closing_indent=_SCHEMA_INDENT
        )
        type_obj: str = _interface_block(
            type_lines, _TYPE_INDENT * 2, closing_indent=_TYPE_INDENT
        )
        return f"z.array({schema_obj})", f"{type_obj}[]"

    def _relation_expressions(
        self,
        field: FieldDescriptor,
        classification: FieldClassification,
        entity_name: str,
        relationships: RelationshipIndex,
        generated: Optional[AbstractSet[str]] = None,
    ) -> Tuple[str, str, Optional[str]]:
        options: RelationOptions = classification.options  # type: ignore[assignment]
        target: Optional[str] = resolve_target(
            field, entity_name, relationships, classification
        )
        if target is None:
            logger.debug(
                "Relation %s.%s unresolved; falling back to raw type '%s'.",
                entity_name,
                field.name,
                field.raw_type,
            )
            schema_expr, type_expr = self._reduced_expressions(field)
            return schema_expr, type_expr, None

        self_ref: bool = is_self_reference(target, entity_name)
        if not self_ref and generated is not None and target not in generated:
            logger.debug(
                "Relation %s.%s targets '%s', which is not generated; "
                "falling back to raw type '%s'.",
                entity_name,
                field.name,
                target,
                field.raw_type,
            )
            schema_expr, type_expr = self._reduced_expressions(field)
            return schema_expr, type_expr, None

        ref: str = target_reference_name(target)
        schema_ref: str = schema_name(ref)
        type_ref: str = type_name(ref)
        if self_ref:
            schema_ref = f"z.lazy(() => {schema_ref})"

        reference: Optional[str] = None if self_ref else ref
        if options.cardinality.is_to_many:
            return f"z.array({schema_ref})", f"{type_ref}[]", reference
        return schema_ref, type_ref, reference

    def generate_field(
        self,
        field: FieldDescriptor,
        entity_name: str,
        relationships: RelationshipIndex = (),
        classification: Optional[FieldClassification] = None,
        generated: Optional[AbstractSet[str]] = None,
    ) -> Optional[FieldEmission]:
        """
        Emit one field.

        Returns ``None`` for UI-only fields, which never reach the output.
        Relations whose target is outside *generated* (when given) fall back
        to the raw type, like unresolved relations.
        """
        if classification is None:
            classification = self.classify(field)
        kind: FieldKind = classification.kind
        if kind is FieldKind.UI_ONLY:
            return None

        reference: Optional[str] = None
        uses_files: bool = False

        if kind is FieldKind.FILE:
            opts_file: FileOptions = classification.options  # type: ignore[assignment]
            schema_expr, type_expr = _FILE_EXPRESSIONS[opts_file.variant]
            uses_files = True

        elif kind in (FieldKind.CHOICE, FieldKind.AUTOCOMPLETE):
            opts_choice: ChoiceOptions = classification.options  # type: ignore[assignment]
            if opts_choice.values:
                schema_expr, type_expr = _choice_expressions(opts_choice.values)
            else:
                schema_expr, type_expr = "z.string()", "string"

        elif kind in (FieldKind.MULTI_CHOICE, FieldKind.TAG):
            opts_multi: ChoiceOptions = classification.options  # type: ignore[assignment]
            if opts_multi.values:
                item_schema, item_type = _choice_expressions(opts_multi.values)
                schema_expr, type_expr = f"z.array({item_schema})", f"({item_type})[]"
            else:
                schema_expr, type_expr = "z.array(z.string())", "string[]"

        elif kind is FieldKind.REPEATER:
            schema_expr, type_expr = self._repeater_expressions(
                classification.options  # type: ignore[arg-type]
            )

        elif kind is FieldKind.RELATION:
            schema_expr, type_expr, reference = self._relation_expressions(
                field, classification, entity_name, relationships, generated
            )

        elif kind is FieldKind.DATETIME:
            opts_dt: DateTimeOptions = classification.options  # type: ignore[assignment]
            schema_expr, type_expr = _DATETIME_EXPRESSIONS[opts_dt.variant], "string"

        else:
            schema_expr, type_expr = _scalar_expressions(
                classification.options  # type: ignore[arg-type]
            )

        optional: bool = not field.required
        nullable: bool = field.nullable and not field.required
        return FieldEmission(
            name=field.name,
            schema=_with_modifiers(schema_expr, nullable, optional),
            type=type_expr,
            optional=optional,
            nullable=nullable,
            reference=reference,
            uses_file_schemas=uses_files,
        )

    # ===================================================================
    # 2. Entity emission
    # ===================================================================

    def generate_field_emissions(
        self,
        entity: EntityDescriptor,
        relationships: RelationshipIndex = (),
        generated: Optional[AbstractSet[str]] = None,
    ) -> List[FieldEmission]:
        """Emit every kept field in order, prefixed by a synthetic id if needed."""
        emissions: List[FieldEmission] = []
        for field in entity.fields:
            emission: Optional[FieldEmission] = self.generate_field(
                field, entity.name, relationships, generated=generated
            )
            if emission is not None:
                emissions.append(emission)

        if not any(e.name == IDENTIFIER_FIELD for e in emissions):
            emissions.insert(0, synthetic_id_emission())
        return emissions

    @staticmethod
    def create_omissions(emissions: Sequence[FieldEmission]) -> List[str]:
        """``id`` plus every audit field actually present."""
        present: FrozenSet[str] = frozenset(e.name for e in emissions)
        return [IDENTIFIER_FIELD] + [f for f in AUDIT_FIELDS if f in present]

    def generate_entity_schema(
        self,
        singular: str,
        emissions: Sequence[FieldEmission],
        deferred: bool = False,
    ) -> str:
        """Validator text: base, create, update and get variants."""
        base: str = schema_name(singular)
        create: str = schema_name(f"{singular}Create")
        update: str = schema_name(f"{singular}Update")
        get: str = schema_name(f"{singular}Get")

        obj: str = _object_block([e.schema_line() for e in emissions], _SCHEMA_INDENT)
        omit_body: str = ",\n".join(
            f"{_SCHEMA_INDENT}{name}: true" for name in self.create_omissions(emissions)
        )
        required_body: str = f"{_SCHEMA_INDENT}{IDENTIFIER_FIELD}: true"

        blocks: List[str] = []
        if deferred:
            annotated: str = ": z.ZodType<any>"
            inner: str = f"({base} as {_DEFERRED_CAST}).schema"
            blocks.append(f"export const {base}{annotated} = z.lazy(() => {obj});")
            blocks.append(
                f"export const {create}{annotated} = z.lazy(() => {inner}.omit({{\n"
                f"{omit_body}\n}}));"
            )
            blocks.append(
                f"export const {update}{annotated} = z.lazy(() => {inner}.partial().required({{\n"
                f"{required_body}\n}}));"
            )
            blocks.append(f"export const {get}{annotated} = z.lazy(() => {base});")
        else:
            blocks.append(f"export const {base} = {obj};")
            blocks.append(f"export const {create} = {base}.omit({{\n{omit_body}\n}});")
            blocks.append(
                f"export const {update} = {base}.partial().required({{\n{required_body}\n}});"
            )
            blocks.append(f"export const {get} = {base};")
        return "\n\n".join(blocks)

    def generate_entity_type(
        self, singular: str, emissions: Sequence[FieldEmission]
    ) -> str:
        """Type text: base interface plus create, update and get aliases."""
        base: str = type_name(singular)
        omitted: str = " | ".join(ts_string(n) for n in self.create_omissions(emissions))
        interface: str = _interface_block([e.type_line() for e in emissions], _TYPE_INDENT)

        blocks: List[str] = [
            f"export interface {base} {interface}",
            f"export type {base}Create = Omit<{base}, {omitted}>;",
            f"export type {base}Update = Partial<{base}> & "
            f"Required<Pick<{base}, {ts_string(IDENTIFIER_FIELD)}>>;",
            f"export type {base}Get = {base};",
        ]
        return "\n\n".join(blocks)

    def generate_entity(
        self,
        entity: EntityDescriptor,
        relationships: RelationshipIndex = (),
        deferred: bool = False,
        generated: Optional[AbstractSet[str]] = None,
    ) -> GeneratedArtifact:
        """
        Emit the artifact for one entity.

        Args:
            entity: Entity to emit.
            relationships: Relationship index for this run.
            deferred: Emit the ``z.lazy`` form of the validator variants.
            generated: Collections emitted in this run; relations pointing
                elsewhere fall back to the raw type.  ``None`` trusts every
                resolved target.

        Returns:
            GeneratedArtifact with structured references.
        """
        singular: str = entity.singular_name
        emissions: List[FieldEmission] = self.generate_field_emissions(
            entity, relationships, generated
        )

        references: List[str] = []
        for emission in emissions:
            ref: Optional[str] = emission.reference
            if ref and ref != singular and ref not in FILE_ENTITY_NAMES and ref not in references:
                references.append(ref)

        artifact: GeneratedArtifact = GeneratedArtifact(
            collection_name=entity.name,
            singular_name=singular,
            namespaced=entity.namespaced,
            schema_text=(
                self.generate_entity_schema(singular, emissions, deferred)
                if self._config.generate_schemas
                else None
            ),
            type_text=(
                self.generate_entity_type(singular, emissions)
                if self._config.generate_types
                else None
            ),
            references=tuple(references),
            uses_file_schemas=any(e.uses_file_schemas for e in emissions),
            deferred=deferred,
        )
        logger.debug(
            "Emitted %r: %d fields, %d references.",
            artifact,
            len(emissions),
            len(references),
        )
        return artifact

    # ===================================================================
    # 3. Shared file definitions
    # ===================================================================

    def _file_module(
        self,
        schema_lines: Sequence[str],
        image_schema_lines: Sequence[str],
        type_lines: Sequence[str],
        image_type_lines: Sequence[str],
        label: str,
    ) -> str:
        parts: List[str] = []
        if self._config.generate_schemas:
            parts.append("import { z } from 'zod';")
            parts.append("")
            parts.append(f"/**\n * Directus file object schema ({label})\n */")
            parts.append(f"export const DrxFileSchema = {_object_block(schema_lines, _TYPE_INDENT)};")
            parts.append("")
            parts.append(f"/**\n * Directus image file object schema ({label})\n */")
            parts.append(
                f"export const DrxImageFileSchema = {_object_block(image_schema_lines, _TYPE_INDENT)};"
            )
            parts.append("")
        if self._config.generate_types:
            parts.append(f"/**\n * TypeScript interfaces for Directus file objects ({label})\n */")
            parts.append(f"export interface DrsFile {_interface_block(type_lines, _TYPE_INDENT)}")
            parts.append("")
            parts.append(
                f"export interface DrsImageFile {_interface_block(image_type_lines, _TYPE_INDENT)}"
            )
            parts.append("")
        return "\n".join(parts)

    def generate_file_schemas(self, file_fields: Sequence[FieldDescriptor]) -> str:
        """
        Build ``file-schemas.ts`` from the backend's file entity fields.

        A field is nullable per its metadata and optional when nullable and
        not the primary key.  Both file shapes share the same field list.
        """
        schema_lines: List[str] = []
        type_lines: List[str] = []
        for field in file_fields:
            schema_expr, type_expr = self._reduced_expressions(field)
            optional: bool = field.nullable and not field.primary_key
            emission: FieldEmission = FieldEmission(
                name=field.name,
                schema=_with_modifiers(schema_expr, field.nullable, optional),
                type=type_expr,
                optional=optional,
                nullable=field.nullable,
            )
            schema_lines.append(emission.schema_line())
            type_lines.append(emission.type_line())

        logger.info("Generated dynamic file schemas from %d fields.", len(file_fields))
        return self._file_module(
            schema_lines, schema_lines, type_lines, type_lines, "generated from Directus"
        )

    def generate_fallback_file_schemas(self) -> str:
        """Build ``file-schemas.ts`` from a fixed field set."""
        file_fields: List[FieldEmission] = [
            FieldEmission(name, schema, ts_type, optional=opt)
            for name, schema, ts_type, opt in _FALLBACK_FILE_FIELDS
        ]
        image_fields: List[FieldEmission] = file_fields + [
            FieldEmission(name, schema, ts_type, optional=opt)
            for name, schema, ts_type, opt in _FALLBACK_IMAGE_EXTRA_FIELDS
        ]
        return self._file_module(
            [e.schema_line() for e in file_fields],
            [e.schema_line() for e in image_fields],
            [e.type_line() for e in file_fields],
            [e.type_line() for e in image_fields],
            "fallback",
        )


# ---------------------------------------------------------------------------
# Fallback file definitions
# ---------------------------------------------------------------------------

_FALLBACK_FILE_FIELDS: Tuple[Tuple[str, str, str, bool], ...] = (
    ("id", "z.string().uuid()", "string", False),
    ("storage", "z.string()", "string", False),
    ("filename_disk", "z.string()", "string", False),
    ("filename_download", "z.string()", "string", False),
    ("title", "z.string().optional()", "string", True),
    ("type", "z.string()", "string", False),
    ("folder", "z.string().uuid().optional()", "string", True),
    ("uploaded_by", "z.string().uuid().optional()", "string", True),
    ("uploaded_on", "z.string().datetime()", "string", False),
    ("modified_by", "z.string().uuid().optional()", "string", True),
    ("modified_on", "z.string().datetime()", "string", False),
    ("charset", "z.string().optional()", "string", True),
    ("filesize", "z.number().int()", "number", False),
    ("description", "z.string().optional()", "string", True),
    ("location", "z.string().optional()", "string", True),
    ("tags", "z.array(z.string()).optional()", "string[]", True),
    ("metadata", "z.record(z.any()).optional()", "Record<string, any>", True),
)

_FALLBACK_IMAGE_EXTRA_FIELDS: Tuple[Tuple[str, str, str, bool], ...] = (
    ("width", "z.number().int().optional()", "number", True),
    ("height", "z.number().int().optional()", "number", True),
    ("duration", "z.number().int().optional()", "number", True),
    ("embed", "z.string().optional()", "string", True),
)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "IDENTIFIER_FIELD",
    "AUDIT_FIELDS",
    "FILE_SCHEMA_NAMES",
    "FILE_TYPE_NAMES",
    "FILE_ENTITY_NAMES",
    "FieldEmission",
    "synthetic_id_emission",
    "TemplateGenerator",
]

logger.debug("drxgen.templates loaded — %d public symbols.", len(__all__))
