# File: drxgen/classifier.py
"""
drxgen - Field Classifier
==========================
Maps a ``FieldDescriptor`` to exactly one ``FieldKind`` and parses the raw
interface options into that kind's typed options record.

The predicates overlap (a ``tags`` interface can sit on an ``m2m`` field, a
``select-radio`` can carry ``options.choices``), so evaluation is a fixed
priority chain:

    1. UI-only (divider / notice / no-data presentation fields)
    2. File
    3. Interface-specific kinds: radio, multi-select dropdown, checkbox tree,
       autocomplete, tags, repeater
    4. Relation
    5. Choice (from a raw options list)
    6. Date / time
    7. Scalar by special tag or raw type
    8. Unknown

Every function here is total: unmatched input lands in ``UNKNOWN``.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from drxgen.models import (
    ChoiceOptions,
    CustomTypeMapping,
    DateTimeOptions,
    DateTimeVariant,
    FieldClassification,
    FieldDescriptor,
    FieldKind,
    FileOptions,
    FileVariant,
    RelationCardinality,
    RelationOptions,
    RepeaterOptions,
    ScalarOptions,
    ScalarType,
    ValueKind,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("drxgen.classifier")

# ---------------------------------------------------------------------------
# Predicate tables
# ---------------------------------------------------------------------------

_UI_ONLY_INTERFACES: FrozenSet[str] = frozenset({"divider", "notice"})
_UI_ONLY_NAME_PREFIXES: Tuple[str, ...] = ("divider-", "notice-")

_FILE_SPECIALS: FrozenSet[str] = frozenset({"file", "files"})
_FILE_INTERFACES: FrozenSet[str] = frozenset({"file", "file-image", "files"})

_RADIO_INTERFACES: FrozenSet[str] = frozenset({"select-radio", "radio-buttons"})
_MULTI_SELECT_INTERFACES: FrozenSet[str] = frozenset({
    "select-multiple-dropdown",
    "dropdown-multiple",
    "select-multiple-checkbox",
})
_CHECKBOX_TREE_INTERFACES: FrozenSet[str] = frozenset({
    "select-multiple-checkbox-tree",
    "checkbox-tree",
})
_AUTOCOMPLETE_INTERFACES: FrozenSet[str] = frozenset({"autocomplete"})
_TAG_INTERFACES: FrozenSet[str] = frozenset({"tags"})
_REPEATER_INTERFACES: FrozenSet[str] = frozenset({"list", "repeater"})

_RELATION_SPECIALS: FrozenSet[str] = frozenset({"m2o", "o2m", "m2m", "m2a"})

_DATETIME_INTERFACES: Dict[str, DateTimeVariant] = {
    "datetime": DateTimeVariant.DATETIME,
    "date": DateTimeVariant.DATE,
    "time": DateTimeVariant.TIME,
}

_DATETIME_RAW_TYPES: Dict[str, DateTimeVariant] = {
    "date": DateTimeVariant.DATE,
    "time": DateTimeVariant.TIME,
    "time without time zone": DateTimeVariant.TIME,
    "time with time zone": DateTimeVariant.TIME,
    "datetime": DateTimeVariant.DATETIME,
    "timestamp": DateTimeVariant.DATETIME,
    "timestamptz": DateTimeVariant.DATETIME,
    "timestamp with time zone": DateTimeVariant.DATETIME,
    "timestamp without time zone": DateTimeVariant.DATETIME,
}

#: Raw type -> scalar shape.  Also used for repeater sub-fields.
SCALAR_TYPES: Dict[str, ScalarType] = {
    "uuid": ScalarType.UUID,
    # strings
    "string": ScalarType.STRING,
    "varchar": ScalarType.STRING,
    "char": ScalarType.STRING,
    "character": ScalarType.STRING,
    "character varying": ScalarType.STRING,
    "text": ScalarType.STRING,
    "longtext": ScalarType.STRING,
    "mediumtext": ScalarType.STRING,
    "tinytext": ScalarType.STRING,
    "hash": ScalarType.STRING,
    "binary": ScalarType.STRING,
    # integers
    "integer": ScalarType.INTEGER,
    "int": ScalarType.INTEGER,
    "int2": ScalarType.INTEGER,
    "int4": ScalarType.INTEGER,
    "int8": ScalarType.INTEGER,
    "bigint": ScalarType.INTEGER,
    "biginteger": ScalarType.INTEGER,
    "smallint": ScalarType.INTEGER,
    "tinyint": ScalarType.INTEGER,
    "mediumint": ScalarType.INTEGER,
    # numbers
    "decimal": ScalarType.NUMBER,
    "numeric": ScalarType.NUMBER,
    "float": ScalarType.NUMBER,
    "float4": ScalarType.NUMBER,
    "float8": ScalarType.NUMBER,
    "double": ScalarType.NUMBER,
    "double precision": ScalarType.NUMBER,
    "real": ScalarType.NUMBER,
    # booleans
    "boolean": ScalarType.BOOLEAN,
    "bool": ScalarType.BOOLEAN,
    # temporal
    "date": ScalarType.DATE,
    "datetime": ScalarType.DATETIME,
    "timestamp": ScalarType.DATETIME,
    "timestamptz": ScalarType.DATETIME,
    "timestamp with time zone": ScalarType.DATETIME,
    "timestamp without time zone": ScalarType.DATETIME,
    "time": ScalarType.TIME,
    "time without time zone": ScalarType.TIME,
    "time with time zone": ScalarType.TIME,
    # structured
    "json": ScalarType.JSON,
    "jsonb": ScalarType.JSON,
    "geometry": ScalarType.JSON,
    "csv": ScalarType.CSV,
}

_SPECIAL_SCALARS: Tuple[Tuple[str, ScalarType], ...] = (
    ("uuid", ScalarType.UUID),
    ("date-created", ScalarType.DATETIME),
    ("date-updated", ScalarType.DATETIME),
    ("user-created", ScalarType.STRING),
    ("user-updated", ScalarType.STRING),
    ("sort", ScalarType.INTEGER),
)

_VALUE_KINDS: Dict[str, ValueKind] = {
    "integer": ValueKind.INTEGER,
    "int": ValueKind.INTEGER,
    "bigint": ValueKind.INTEGER,
    "smallint": ValueKind.INTEGER,
    "tinyint": ValueKind.INTEGER,
    "decimal": ValueKind.FLOAT,
    "numeric": ValueKind.FLOAT,
    "float": ValueKind.FLOAT,
    "double": ValueKind.FLOAT,
    "real": ValueKind.FLOAT,
    "boolean": ValueKind.BOOLEAN,
    "bool": ValueKind.BOOLEAN,
}

_INT_PREFIX_RE: re.Pattern[str] = re.compile(r"^\s*([+-]?\d+)")
_FLOAT_PREFIX_RE: re.Pattern[str] = re.compile(
    r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
)


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------


def _raw_type(field: FieldDescriptor) -> str:
    return (field.raw_type or "").strip().lower()


def _interface(field: FieldDescriptor) -> str:
    return (field.interface or "").strip().lower()


def _option_list(options: Mapping[str, Any], key: str) -> List[Any]:
    value: Any = options.get(key)
    return list(value) if isinstance(value, (list, tuple)) else []


def scalar_type_for(raw_type: str) -> Optional[ScalarType]:
    """Built-in scalar shape of a raw type, or ``None`` when unknown."""
    return SCALAR_TYPES.get((raw_type or "").strip().lower())


def value_kind_for(raw_type: str) -> ValueKind:
    return _VALUE_KINDS.get((raw_type or "").strip().lower(), ValueKind.STRING)


def coerce_choice_value(value: Any, kind: ValueKind) -> Any:
    """
    Convert one enumerated option value for the target kind.

    Integer and float kinds read a numeric prefix the way a lenient number
    parser would (``"12px"`` -> 12) and keep the original string when no
    number can be read.  Boolean kinds treat ``"true"`` / ``True`` as true
    and everything else as false.
    """
    if kind is ValueKind.BOOLEAN:
        return value is True or value == "true"

    if kind is ValueKind.INTEGER:
        if isinstance(value, bool):
            return str(value).lower()
        if isinstance(value, (int, float)):
            return int(value)
        match: Optional[re.Match[str]] = _INT_PREFIX_RE.match(str(value))
        return int(match.group(1)) if match else str(value)

    if kind is ValueKind.FLOAT:
        if isinstance(value, bool):
            return str(value).lower()
        if isinstance(value, (int, float)):
            return value
        match = _FLOAT_PREFIX_RE.match(str(value))
        if not match:
            return str(value)
        parsed: float = float(match.group(1))
        return int(parsed) if parsed.is_integer() else parsed

    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _unique(values: Iterable[Any]) -> Tuple[Any, ...]:
    seen: List[Any] = []
    for value in values:
        if not any(value == s and type(value) is type(s) for s in seen):
            seen.append(value)
    return tuple(seen)


def _choice_value(choice: Any) -> Any:
    """Value of one options entry: a bare value, ``{value}`` or ``{text}``."""
    if isinstance(choice, Mapping):
        value: Any = choice.get("value")
        if value is None or value == "":
            value = choice.get("text")
        return value
    return choice


def _choice_options(raw_values: Iterable[Any], kind: ValueKind) -> ChoiceOptions:
    values: List[Any] = []
    for raw in raw_values:
        value: Any = _choice_value(raw)
        if value is None:
            continue
        values.append(coerce_choice_value(value, kind))
    return ChoiceOptions(values=_unique(values), value_kind=kind)


def _flatten_choice_tree(choices: Iterable[Any]) -> List[Any]:
    """Collect values from a nested ``{value, children}`` tree, depth first."""
    flat: List[Any] = []
    for choice in choices:
        if isinstance(choice, Mapping):
            value: Any = _choice_value(choice)
            if value is not None:
                flat.append(value)
            flat.extend(_flatten_choice_tree(choice.get("children") or []))
        elif choice is not None:
            flat.append(choice)
    return flat


def _repeater_fields(field: FieldDescriptor) -> Tuple[FieldDescriptor, ...]:
    if field.children:
        return field.children
    subs: List[FieldDescriptor] = []
    for sub in _option_list(field.options, "fields"):
        if isinstance(sub, Mapping) and sub.get("field"):
            subs.append(FieldDescriptor.from_directus(sub))
    return tuple(subs)


# ---------------------------------------------------------------------------
# Predicates (in priority order)
# ---------------------------------------------------------------------------


def is_ui_only(field: FieldDescriptor) -> bool:
    """Presentation-only fields: dividers, notices and data-less groups."""
    return (
        field.name.startswith(_UI_ONLY_NAME_PREFIXES)
        or _interface(field) in _UI_ONLY_INTERFACES
        or _raw_type(field) == "divider"
        or "no-data" in field.special
    )


def is_file(field: FieldDescriptor) -> bool:
    return bool(field.special & _FILE_SPECIALS) or _interface(field) in _FILE_INTERFACES


def is_relation(field: FieldDescriptor) -> bool:
    interface: str = _interface(field)
    return (
        bool(field.special & _RELATION_SPECIALS)
        or any(marker in interface for marker in ("m2o", "o2m", "m2m", "m2a", "many-to-many"))
        or bool(field.options.get("junction_table"))
        or bool(field.foreign_key_target)
    )


def is_choice(field: FieldDescriptor) -> bool:
    return bool(_option_list(field.options, "choices") or _option_list(field.options, "options"))


def is_datetime(field: FieldDescriptor) -> bool:
    return _raw_type(field) in _DATETIME_RAW_TYPES or _interface(field) in _DATETIME_INTERFACES


# ---------------------------------------------------------------------------
# Kind-specific option parsing
# ---------------------------------------------------------------------------


def _file_options(field: FieldDescriptor) -> FileOptions:
    interface: str = _interface(field)
    if "files" in field.special or interface == "files":
        return FileOptions(variant=FileVariant.MULTIPLE)
    if interface == "file-image":
        return FileOptions(variant=FileVariant.IMAGE)
    return FileOptions(variant=FileVariant.SINGLE)


def relation_cardinality(field: FieldDescriptor) -> RelationCardinality:
    interface: str = _interface(field)
    if "m2a" in field.special or "m2a" in interface:
        return RelationCardinality.POLYMORPHIC_TO_MANY
    if "m2o" in field.special:
        return RelationCardinality.TO_ONE
    if "m2m" in field.special or "m2m" in interface or "many-to-many" in interface:
        return RelationCardinality.TO_MANY_UNORDERED
    if "o2m" in field.special or "o2m" in interface:
        return RelationCardinality.TO_MANY_ORDERED
    if "m2o" in interface:
        return RelationCardinality.TO_ONE
    if field.options.get("junction_table"):
        return RelationCardinality.TO_MANY_UNORDERED
    return RelationCardinality.TO_ONE


def _relation_options(field: FieldDescriptor) -> RelationOptions:
    opts: Mapping[str, Any] = field.options

    def _hint(key: str) -> Optional[str]:
        value: Any = opts.get(key)
        return value if isinstance(value, str) and value else None

    return RelationOptions(
        cardinality=relation_cardinality(field),
        junction_table=_hint("junction_table"),
        related_collection=_hint("related_collection"),
        junction_collection=_hint("junction_collection"),
        collection=_hint("collection"),
        many_collection=_hint("many_collection"),
        one_collection=_hint("one_collection"),
    )


def _datetime_options(field: FieldDescriptor) -> DateTimeOptions:
    variant: Optional[DateTimeVariant] = _DATETIME_RAW_TYPES.get(_raw_type(field))
    if variant is None or variant is DateTimeVariant.DATETIME:
        variant = _DATETIME_INTERFACES.get(_interface(field), variant)
    return DateTimeOptions(variant=variant or DateTimeVariant.DATETIME)


def _scalar_classification(
    field: FieldDescriptor,
    custom_field_mappings: Optional[Mapping[str, CustomTypeMapping]],
) -> FieldClassification:
    for tag, scalar in _SPECIAL_SCALARS:
        if tag in field.special:
            return FieldClassification(
                kind=FieldKind.SCALAR, options=ScalarOptions(scalar=scalar)
            )

    builtin: Optional[ScalarType] = scalar_type_for(field.raw_type)
    if builtin is not None:
        return FieldClassification(
            kind=FieldKind.SCALAR, options=ScalarOptions(scalar=builtin)
        )

    custom: Optional[CustomTypeMapping] = (custom_field_mappings or {}).get(field.raw_type)
    if custom is not None:
        return FieldClassification(
            kind=FieldKind.SCALAR,
            options=ScalarOptions(scalar=ScalarType.CUSTOM, custom=custom),
        )

    logger.debug(
        "Field '%s' has unmapped raw type '%s'; using permissive type.",
        field.name,
        field.raw_type,
    )
    return FieldClassification(
        kind=FieldKind.UNKNOWN, options=ScalarOptions(scalar=ScalarType.ANY)
    )


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def classify(
    field: FieldDescriptor,
    custom_field_mappings: Optional[Mapping[str, CustomTypeMapping]] = None,
) -> FieldClassification:
    """
    Classify *field* and parse its options into the matching record.

    Args:
        field: Descriptor to classify.
        custom_field_mappings: Output overrides for raw types outside the
            built-in table, keyed by raw type.

    Returns:
        FieldClassification whose ``options`` type matches ``kind``.
    """
    if is_ui_only(field):
        return FieldClassification(kind=FieldKind.UI_ONLY)

    if is_file(field):
        return FieldClassification(kind=FieldKind.FILE, options=_file_options(field))

    interface: str = _interface(field)
    opts: Mapping[str, Any] = field.options
    value_kind: ValueKind = value_kind_for(field.raw_type)

    if interface in _RADIO_INTERFACES:
        return FieldClassification(
            kind=FieldKind.CHOICE,
            options=_choice_options(_option_list(opts, "choices"), value_kind),
        )

    if interface in _MULTI_SELECT_INTERFACES:
        return FieldClassification(
            kind=FieldKind.MULTI_CHOICE,
            options=_choice_options(_option_list(opts, "choices"), ValueKind.STRING),
        )

    if interface in _CHECKBOX_TREE_INTERFACES:
        tree: List[Any] = _flatten_choice_tree(_option_list(opts, "choices"))
        return FieldClassification(
            kind=FieldKind.MULTI_CHOICE,
            options=_choice_options(tree, ValueKind.STRING),
        )

    if interface in _AUTOCOMPLETE_INTERFACES:
        return FieldClassification(
            kind=FieldKind.AUTOCOMPLETE,
            options=_choice_options(_option_list(opts, "suggestions"), ValueKind.STRING),
        )

    if interface in _TAG_INTERFACES:
        return FieldClassification(
            kind=FieldKind.TAG,
            options=_choice_options(_option_list(opts, "presets"), ValueKind.STRING),
        )

    if interface in _REPEATER_INTERFACES:
        return FieldClassification(
            kind=FieldKind.REPEATER,
            options=RepeaterOptions(fields=_repeater_fields(field)),
        )

    if is_relation(field):
        return FieldClassification(kind=FieldKind.RELATION, options=_relation_options(field))

    if is_choice(field):
        raw_choices: List[Any] = _option_list(opts, "choices") or _option_list(opts, "options")
        return FieldClassification(
            kind=FieldKind.CHOICE, options=_choice_options(raw_choices, value_kind)
        )

    if is_datetime(field):
        return FieldClassification(kind=FieldKind.DATETIME, options=_datetime_options(field))

    return _scalar_classification(field, custom_field_mappings)


def field_kind(field: FieldDescriptor) -> FieldKind:
    """Shortcut returning only the kind of :func:`classify`."""
    return classify(field).kind


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "SCALAR_TYPES",
    "classify",
    "field_kind",
    "coerce_choice_value",
    "scalar_type_for",
    "value_kind_for",
    "relation_cardinality",
    "is_ui_only",
    "is_file",
    "is_relation",
    "is_choice",
    "is_datetime",
]

logger.debug("drxgen.classifier loaded — %d public symbols.", len(__all__))
