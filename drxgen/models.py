# File: drxgen/models.py
"""
drxgen - Core Data Models
==========================
Pydantic V2 models describing the backend metadata consumed by the pipeline
and the artifacts it produces:

    Metadata (collections, fields, relations)
        → FieldDescriptor / EntityDescriptor / RelationshipRecord
        → FieldClassification (kind + kind-specific options record)
        → GeneratedArtifact (validator text + type text per entity)

Descriptors and artifacts are frozen: once an entity's metadata has been
adapted it is never mutated, and a second emission pass replaces artifacts
instead of editing them.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from drxgen.utils import NAMESPACE_PREFIX, entity_singular_name

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("drxgen.models")

# ---------------------------------------------------------------------------
# Enums: closed sets used across the entire project
# ---------------------------------------------------------------------------


class FieldKind(str, Enum):
    """Closed set of field classifications."""

    UI_ONLY = "ui_only"
    FILE = "file"
    CHOICE = "choice"
    MULTI_CHOICE = "multi_choice"
    AUTOCOMPLETE = "autocomplete"
    TAG = "tag"
    REPEATER = "repeater"
    RELATION = "relation"
    DATETIME = "datetime"
    SCALAR = "scalar"
    UNKNOWN = "unknown"


class FileVariant(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"
    IMAGE = "image"


class RelationCardinality(str, Enum):
    """Relation shapes; every variant except TO_ONE emits a collection type."""

    TO_ONE = "to_one"
    TO_MANY_ORDERED = "to_many_ordered"
    TO_MANY_UNORDERED = "to_many_unordered"
    POLYMORPHIC_TO_MANY = "polymorphic_to_many"

    @property
    def is_to_many(self) -> bool:
        return self is not RelationCardinality.TO_ONE


class DateTimeVariant(str, Enum):
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"


class ValueKind(str, Enum):
    """How enumerated option values are converted before emission."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"


class ScalarType(str, Enum):
    """Target scalar shapes shared by the validator and type emitters."""

    UUID = "uuid"
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    JSON = "json"
    CSV = "csv"
    ANY = "any"
    CUSTOM = "custom"


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=False,
    frozen=False,
    extra="forbid",
)

_FROZEN_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    use_enum_values=False,
    frozen=True,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Field & entity descriptors
# ---------------------------------------------------------------------------


class FieldDescriptor(BaseModel):
    """
    One field of one entity, adapted from the backend's ``/fields`` payload.

    ``raw_type`` is the database data type when the backend reports one and
    the backend's abstract type otherwise.  ``options`` holds the raw
    interface options; the classifier turns them into a typed record.
    """

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Field name.")
    raw_type: str = Field(default="", description="Database or abstract type.")
    nullable: bool = Field(default=True, description="Column accepts NULL.")
    required: bool = Field(default=False, description="Marked required in the UI.")
    primary_key: bool = Field(default=False, description="Primary key column?")
    foreign_key_target: Optional[str] = Field(
        default=None, description="Collection referenced by a foreign key."
    )
    interface: Optional[str] = Field(default=None, description="UI interface tag.")
    special: FrozenSet[str] = Field(
        default_factory=frozenset, description="Special tags (m2o, uuid, ...)."
    )
    options: Dict[str, Any] = Field(
        default_factory=dict, description="Raw interface options."
    )
    children: Tuple["FieldDescriptor", ...] = Field(
        default=(), description="Nested sub-fields of composite fields."
    )

    @field_validator("special", mode="before")
    @classmethod
    def _coerce_special(cls, v: Any) -> Any:
        if v is None:
            return frozenset()
        if isinstance(v, str):
            return frozenset(part.strip() for part in v.split(",") if part.strip())
        return v

    @field_validator("options", mode="before")
    @classmethod
    def _coerce_options(cls, v: Any) -> Any:
        return {} if v is None else v

    @classmethod
    def from_directus(cls, payload: Mapping[str, Any]) -> "FieldDescriptor":
        """Adapt one item of the backend's ``/fields/{collection}`` response."""
        schema: Mapping[str, Any] = payload.get("schema") or {}
        meta: Mapping[str, Any] = payload.get("meta") or {}
        options: Dict[str, Any] = dict(meta.get("options") or {})

        children: List[FieldDescriptor] = []
        for sub in options.get("fields") or []:
            if isinstance(sub, Mapping) and sub.get("field"):
                children.append(cls.from_directus(sub))

        nullable: Optional[bool] = schema.get("is_nullable")
        return cls(
            name=payload["field"],
            raw_type=schema.get("data_type") or payload.get("type") or "",
            nullable=True if nullable is None else bool(nullable),
            required=bool(meta.get("required") or False),
            primary_key=bool(schema.get("is_primary_key") or False),
            foreign_key_target=schema.get("foreign_key_table"),
            interface=meta.get("interface"),
            special=meta.get("special"),
            options=options,
            children=tuple(children),
        )

    def __repr__(self) -> str:
        return f"<Field {self.name} {self.raw_type or '?'}>"


class EntityDescriptor(BaseModel):
    """
    One collection with its ordered field list.

    Field order is emission order.  Namespaced (system) entities are routed
    to a separate output folder.
    """

    model_config = _FROZEN_CONFIG

    name: str = Field(..., min_length=1, description="Raw collection name.")
    fields: Tuple[FieldDescriptor, ...] = Field(
        default=(), description="Fields in emission order."
    )

    @computed_field  # type: ignore[misc]
    @property
    def namespaced(self) -> bool:
        return self.name.startswith(NAMESPACE_PREFIX)

    @computed_field  # type: ignore[misc]
    @property
    def singular_name(self) -> str:
        return entity_singular_name(self.name)

    @model_validator(mode="after")
    def _validate_unique_field_names(self) -> "EntityDescriptor":
        names: List[str] = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            dupes: List[str] = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(
                f"Entity '{self.name}' has duplicate field names: {dupes}"
            )
        return self

    @classmethod
    def from_directus(
        cls, collection: str, fields: List[Mapping[str, Any]]
    ) -> "EntityDescriptor":
        return cls(
            name=collection,
            fields=tuple(FieldDescriptor.from_directus(f) for f in fields),
        )

    def __repr__(self) -> str:
        return f"<Entity {self.name} ({len(self.fields)} fields)>"


# ---------------------------------------------------------------------------
# Relationship records
# ---------------------------------------------------------------------------


class RelationshipRecord(BaseModel):
    """A backend-declared link between two collections."""

    model_config = _FROZEN_CONFIG

    one_collection: Optional[str] = Field(default=None, description="One side entity.")
    one_field: Optional[str] = Field(default=None, description="One side alias field.")
    many_collection: Optional[str] = Field(default=None, description="Many side entity.")
    many_field: Optional[str] = Field(default=None, description="Many side FK field.")
    junction_collection: Optional[str] = Field(
        default=None, description="Linking entity of a many-to-many."
    )

    @classmethod
    def from_directus(cls, payload: Mapping[str, Any]) -> "RelationshipRecord":
        """
        Adapt a ``/relations`` item.

        Accepts the flat legacy layout (``one_collection`` ... at top level)
        and the current layout (``collection`` / ``field`` /
        ``related_collection`` plus ``meta``).
        """
        if "many_collection" in payload or "one_collection" in payload:
            return cls(
                one_collection=payload.get("one_collection"),
                one_field=payload.get("one_field"),
                many_collection=payload.get("many_collection"),
                many_field=payload.get("many_field"),
                junction_collection=payload.get("junction_collection"),
            )

        meta: Mapping[str, Any] = payload.get("meta") or {}
        many_collection: Optional[str] = (
            meta.get("many_collection") or payload.get("collection")
        )
        return cls(
            one_collection=meta.get("one_collection") or payload.get("related_collection"),
            one_field=meta.get("one_field"),
            many_collection=many_collection,
            many_field=meta.get("many_field") or payload.get("field"),
            junction_collection=many_collection if meta.get("junction_field") else None,
        )

    def __repr__(self) -> str:
        return (
            f"<Relation {self.one_collection}.{self.one_field} ↔ "
            f"{self.many_collection}.{self.many_field}>"
        )


#: Relationship records loaded once per run; read-only afterwards.
RelationshipIndex = Tuple[RelationshipRecord, ...]


# ---------------------------------------------------------------------------
# Kind-specific option records
# ---------------------------------------------------------------------------


class FileOptions(BaseModel):
    model_config = _FROZEN_CONFIG

    variant: FileVariant = FileVariant.SINGLE


class ChoiceOptions(BaseModel):
    """Enumerated values for choice, multi-choice, autocomplete and tag kinds."""

    model_config = _FROZEN_CONFIG

    values: Tuple[Union[bool, int, float, str], ...] = ()
    value_kind: ValueKind = ValueKind.STRING


class RepeaterOptions(BaseModel):
    model_config = _FROZEN_CONFIG

    fields: Tuple[FieldDescriptor, ...] = ()


class RelationOptions(BaseModel):
    """Cardinality plus the explicit target hints found in the options."""

    model_config = _FROZEN_CONFIG

    cardinality: RelationCardinality = RelationCardinality.TO_ONE
    junction_table: Optional[str] = None
    related_collection: Optional[str] = None
    junction_collection: Optional[str] = None
    collection: Optional[str] = None
    many_collection: Optional[str] = None
    one_collection: Optional[str] = None

    def hints(self) -> Tuple[Optional[str], ...]:
        """Option hints in resolution priority order."""
        return (
            self.junction_table,
            self.related_collection,
            self.junction_collection,
            self.collection,
            self.many_collection,
            self.one_collection,
        )


class DateTimeOptions(BaseModel):
    model_config = _FROZEN_CONFIG

    variant: DateTimeVariant = DateTimeVariant.DATETIME


class CustomTypeMapping(BaseModel):
    """User-supplied output for a raw type the built-in table does not know."""

    model_config = _FROZEN_CONFIG

    zod: str = Field(default="z.any()", min_length=1, description="Validator expression.")
    typescript: str = Field(default="any", min_length=1, description="Type expression.")


class ScalarOptions(BaseModel):
    model_config = _FROZEN_CONFIG

    scalar: ScalarType = ScalarType.ANY
    custom: Optional[CustomTypeMapping] = None


KindOptions = Union[
    FileOptions,
    ChoiceOptions,
    RepeaterOptions,
    RelationOptions,
    DateTimeOptions,
    ScalarOptions,
]


class FieldClassification(BaseModel):
    """Result of ``classify``: the kind and its typed options record."""

    model_config = _FROZEN_CONFIG

    kind: FieldKind
    options: Optional[KindOptions] = None

    @model_validator(mode="after")
    def _validate_options_match_kind(self) -> "FieldClassification":
        expected: Dict[FieldKind, type] = {
            FieldKind.FILE: FileOptions,
            FieldKind.CHOICE: ChoiceOptions,
            FieldKind.MULTI_CHOICE: ChoiceOptions,
            FieldKind.AUTOCOMPLETE: ChoiceOptions,
            FieldKind.TAG: ChoiceOptions,
            FieldKind.REPEATER: RepeaterOptions,
            FieldKind.RELATION: RelationOptions,
            FieldKind.DATETIME: DateTimeOptions,
            FieldKind.SCALAR: ScalarOptions,
            FieldKind.UNKNOWN: ScalarOptions,
        }
        required_type: Optional[type] = expected.get(self.kind)
        if required_type is not None and not isinstance(self.options, required_type):
            raise ValueError(
                f"{self.kind.value} classification requires "
                f"{required_type.__name__}, got {type(self.options).__name__}."
            )
        return self


# ---------------------------------------------------------------------------
# Generated artifacts
# ---------------------------------------------------------------------------


class GeneratedArtifact(BaseModel):
    """
    Validator text and type text produced for one entity in one pass.

    ``references`` lists the singular names of the other entities the
    emitted text points at, collected during emission; ``None`` means the
    artifact was built from text alone and references must be scanned.
    """

    model_config = _FROZEN_CONFIG

    collection_name: str = Field(..., min_length=1, description="Raw entity name.")
    singular_name: str = Field(..., min_length=1, description="Graph node name.")
    namespaced: bool = Field(default=False, description="System collection?")
    schema_text: Optional[str] = Field(default=None, description="Validator text.")
    type_text: Optional[str] = Field(default=None, description="Type text.")
    references: Optional[Tuple[str, ...]] = Field(
        default=None, description="Referenced singular entity names."
    )
    uses_file_schemas: bool = Field(
        default=False, description="Text references the shared file definitions."
    )
    deferred: bool = Field(
        default=False, description="Emitted with deferred top-level definitions."
    )

    @classmethod
    def from_text(
        cls,
        collection_name: str,
        schema_text: Optional[str] = None,
        type_text: Optional[str] = None,
    ) -> "GeneratedArtifact":
        """Build an artifact whose references will be scanned from its text."""
        return cls(
            collection_name=collection_name,
            singular_name=entity_singular_name(collection_name),
            namespaced=collection_name.startswith(NAMESPACE_PREFIX),
            schema_text=schema_text,
            type_text=type_text,
        )

    def __repr__(self) -> str:
        mode: str = " deferred" if self.deferred else ""
        return f"<Artifact {self.collection_name}{mode}>"


# ---------------------------------------------------------------------------
# Generation configuration
# ---------------------------------------------------------------------------


class GenerationConfig(BaseModel):
    """
    Settings for one generation run.

    Loaded from a YAML/JSON file and/or assembled from CLI flags; every
    field has a usable default except the metadata source.
    """

    model_config = _SHARED_CONFIG

    # -- Metadata source ----------------------------------------------------
    directus_url: Optional[str] = Field(default=None, description="Backend base URL.")
    token: Optional[str] = Field(default=None, description="Static access token.")
    email: Optional[str] = Field(default=None, description="Login email.")
    password: Optional[str] = Field(default=None, description="Login password.")
    additional_headers: Dict[str, str] = Field(
        default_factory=dict, description="Extra HTTP headers sent with every request."
    )
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds.")
    snapshot_path: Optional[str] = Field(
        default=None, description="Schema snapshot file used instead of HTTP."
    )

    # -- Collection selection -----------------------------------------------
    collections: Optional[List[str]] = Field(
        default=None, description="Only generate these collections."
    )
    exclude_collections: List[str] = Field(
        default_factory=list, description="Never generate these collections."
    )
    include_system_collections: bool = Field(
        default=False, description="Also generate directus_* collections."
    )

    # -- Output -------------------------------------------------------------
    generate_schemas: bool = Field(default=True, description="Emit Zod schemas.")
    generate_types: bool = Field(default=True, description="Emit TypeScript types.")
    output_dir: str = Field(default="./generated", description="Output root.")
    clean_output: bool = Field(
        default=False, description="Wipe the output directory before writing."
    )
    write_manifest: bool = Field(default=True, description="Write manifest.json.")
    custom_field_mappings: Dict[str, CustomTypeMapping] = Field(
        default_factory=dict,
        description="Raw type -> output mapping for types outside the built-in table.",
    )

    # -- Execution ----------------------------------------------------------
    max_workers: int = Field(
        default=1, ge=1, le=64, description="Parallel per-collection workers."
    )

    @field_validator("directus_url")
    @classmethod
    def _strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip("/") if v else v

    @field_validator("collections", mode="before")
    @classmethod
    def _split_collections(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [c.strip() for c in v.split(",") if c.strip()]
        return v

    @model_validator(mode="after")
    def _validate_outputs(self) -> "GenerationConfig":
        if not self.generate_schemas and not self.generate_types:
            raise ValueError(
                "At least one of generate_schemas / generate_types must be enabled."
            )
        return self

    @property
    def has_credentials(self) -> bool:
        return bool(self.token or (self.email and self.password))


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "FieldKind",
    "FileVariant",
    "RelationCardinality",
    "DateTimeVariant",
    "ValueKind",
    "ScalarType",
    "FieldDescriptor",
    "EntityDescriptor",
    "RelationshipRecord",
    "RelationshipIndex",
    "FileOptions",
    "ChoiceOptions",
    "RepeaterOptions",
    "RelationOptions",
    "DateTimeOptions",
    "CustomTypeMapping",
    "ScalarOptions",
    "KindOptions",
    "FieldClassification",
    "GeneratedArtifact",
    "GenerationConfig",
]

logger.debug("drxgen.models loaded — %d public symbols.", len(__all__))
