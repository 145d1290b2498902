# File: drxgen/validators.py
"""
drxgen - Metadata & Configuration Validators
=============================================
Pure-function checks run by the orchestrator between loading metadata and
writing output.

Pydantic already enforces structural correctness of every descriptor.  The
functions here look across entities: relation fields whose target cannot
be resolved, targets that are not part of this run, empty entities, raw
types that end up permissive, and reference cycles.

Nothing in here aborts generation.  Findings are collected into a
``ValidationResult`` that lands in the generation report; only
``validate_config`` produces errors, and the CLI turns those into an
input-error exit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Sequence, Set

from drxgen.classifier import classify
from drxgen.models import (
    CustomTypeMapping,
    EntityDescriptor,
    FieldClassification,
    FieldKind,
    GenerationConfig,
    RelationshipIndex,
)
from drxgen.relationships import resolve_target

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("drxgen.validators")

# ---------------------------------------------------------------------------
# Findings
# ---------------------------------------------------------------------------

Level = Literal["error", "warning", "info"]

_LEVEL_ICONS: Dict[str, str] = {"error": "❌", "warning": "⚠️", "info": "ℹ️"}


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """A single finding with a stable, machine-readable ``code``."""

    level: Level
    code: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"


class ValidationResult:
    """
    Ordered collection of ``ValidationIssue`` items.

    Truthy while it holds no errors, so ``if validate_config(cfg): ...``
    reads naturally.
    """

    __slots__ = ("_issues",)

    def __init__(self) -> None:
        self._issues: List[ValidationIssue] = []

    def add(
        self, level: Level, code: str, message: str, context: Optional[Dict[str, Any]] = None
    ) -> None:
        self._issues.append(ValidationIssue(level, code, message, dict(context or {})))

    def add_error(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self.add("error", code, message, context)

    def add_warning(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self.add("warning", code, message, context)

    def add_info(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self.add("info", code, message, context)

    def merge(self, other: "ValidationResult") -> None:
        self._issues.extend(other._issues)

    def at_level(self, level: Level) -> List[ValidationIssue]:
        return [i for i in self._issues if i.level == level]

    @property
    def errors(self) -> List[ValidationIssue]:
        return self.at_level("error")

    @property
    def warnings(self) -> List[ValidationIssue]:
        return self.at_level("warning")

    @property
    def infos(self) -> List[ValidationIssue]:
        return self.at_level("info")

    @property
    def all_items(self) -> List[ValidationIssue]:
        return list(self._issues)

    @property
    def codes(self) -> List[str]:
        return [i.code for i in self._issues]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        return self.is_valid

    def __len__(self) -> int:
        return len(self._issues)

    def summary(self) -> str:
        return (
            f"Validation: {len(self.errors)} error(s), {len(self.warnings)} warning(s), "
            f"{len(self.infos)} info."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def format_report(self, include_info: bool = False) -> str:
        """Multi-line report; info items only with *include_info*."""
        out: List[str] = [self.summary()]
        shown: List[ValidationIssue] = [
            i for i in self._issues if include_info or i.level != "info"
        ]
        if shown:
            out.append("")
        for issue in shown:
            out.append(f"  {_LEVEL_ICONS[issue.level]} [{issue.code}] {issue.message}")
            out.extend(f"       {key}: {value}" for key, value in issue.context.items())
        return "\n".join(out)


# ---------------------------------------------------------------------------
# Entity validators
# ---------------------------------------------------------------------------


def validate_entity_fields(
    entities: Sequence[EntityDescriptor],
    custom_field_mappings: Optional[Mapping[str, CustomTypeMapping]] = None,
) -> ValidationResult:
    """Warn about entities with no data fields; note permissive field types."""
    result: ValidationResult = ValidationResult()

    for entity in entities:
        kinds: List[FieldKind] = [
            classify(f, custom_field_mappings).kind for f in entity.fields
        ]
        if all(k is FieldKind.UI_ONLY for k in kinds):
            result.add_warning(
                "EMPTY_ENTITY",
                f"Collection '{entity.name}' has no data fields; only a "
                f"synthetic id will be generated.",
                {"collection": entity.name},
            )

        for fd, kind in zip(entity.fields, kinds):
            if kind is FieldKind.UNKNOWN:
                result.add_info(
                    "UNMAPPED_FIELD_TYPE",
                    f"Field '{entity.name}.{fd.name}' has raw type "
                    f"'{fd.raw_type}' with no mapping; emitted as any.",
                    {"collection": entity.name, "field": fd.name},
                )
    return result


def validate_relation_targets(
    entities: Sequence[EntityDescriptor],
    relationships: RelationshipIndex = (),
    custom_field_mappings: Optional[Mapping[str, CustomTypeMapping]] = None,
) -> ValidationResult:
    """
    Check every relation field's target.

    Unresolvable targets fall back to the raw-type mapping; targets outside
    the generated set produce references with no import.  Both are warnings.
    """
    result: ValidationResult = ValidationResult()
    generated: Set[str] = {e.name for e in entities}

    for entity in entities:
        for fd in entity.fields:
            classification: FieldClassification = classify(fd, custom_field_mappings)
            if classification.kind is not FieldKind.RELATION:
                continue

            target: Optional[str] = resolve_target(
                fd, entity.name, relationships, classification
            )
            context: Dict[str, Any] = {"collection": entity.name, "field": fd.name}
            if target is None:
                result.add_warning(
                    "RELATION_UNRESOLVED",
                    f"Relation '{entity.name}.{fd.name}' has no resolvable "
                    f"target; falling back to raw type '{fd.raw_type}'.",
                    context,
                )
            elif target not in generated:
                result.add_warning(
                    "RELATION_TARGET_NOT_GENERATED",
                    f"Relation '{entity.name}.{fd.name}' points at "
                    f"'{target}', which is not part of this run; using its raw type.",
                    {**context, "target": target},
                )
    return result


def validate_cycles(cycles: Sequence[Sequence[str]]) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    for cycle in cycles:
        result.add_info(
            "CIRCULAR_REFERENCE",
            f"Circular reference {' → '.join(cycle)}; deferred definitions emitted.",
            {"cycle": list(cycle)},
        )
    return result


def validate_entities(
    entities: Sequence[EntityDescriptor],
    relationships: RelationshipIndex = (),
    cycles: Optional[Sequence[Sequence[str]]] = None,
    custom_field_mappings: Optional[Mapping[str, CustomTypeMapping]] = None,
) -> ValidationResult:
    """
    Run every entity-level validator and merge the results.

    Complexity: O(E × F) where F = fields per entity.
    """
    result: ValidationResult = ValidationResult()

    validators: List[Callable[[], ValidationResult]] = [
        lambda: validate_entity_fields(entities, custom_field_mappings),
        lambda: validate_relation_targets(entities, relationships, custom_field_mappings),
        lambda: validate_cycles(cycles or []),
    ]
    for validator_fn in validators:
        result.merge(validator_fn())

    logger.info("Metadata validation complete: %s", result.summary())
    return result


# ---------------------------------------------------------------------------
# Configuration validator
# ---------------------------------------------------------------------------


def validate_config(config: GenerationConfig) -> ValidationResult:
    """
    Semantic checks on top of the pydantic constraints.

    A run needs a metadata source: a backend URL or a snapshot file.
    """
    result: ValidationResult = ValidationResult()

    if not config.directus_url and not config.snapshot_path:
        result.add_error(
            "NO_METADATA_SOURCE",
            "Either directus_url or snapshot_path must be set.",
        )

    if config.directus_url and not config.snapshot_path:
        if not config.directus_url.startswith(("http://", "https://")):
            result.add_error(
                "INVALID_URL",
                f"directus_url '{config.directus_url}' must start with http:// or https://.",
                {"directus_url": config.directus_url},
            )
        if not config.has_credentials:
            result.add_warning(
                "NO_CREDENTIALS",
                "No token or email/password given; only public metadata will be visible.",
            )

    if config.email and not config.password:
        result.add_warning("PASSWORD_MISSING", "email given without password; it is ignored.")

    overlap: Set[str] = set(config.collections or []) & set(config.exclude_collections)
    if overlap:
        result.add_warning(
            "COLLECTION_SELECTED_AND_EXCLUDED",
            f"Collections both selected and excluded: {sorted(overlap)}.",
            {"collections": sorted(overlap)},
        )

    if not config.output_dir:
        result.add_error("EMPTY_OUTPUT_DIR", "output_dir must not be empty.")

    logger.debug("Config validation complete: %s", result.summary())
    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationIssue",
    "ValidationResult",
    "validate_entity_fields",
    "validate_relation_targets",
    "validate_cycles",
    "validate_entities",
    "validate_config",
]

logger.debug("drxgen.validators loaded — %d public symbols.", len(__all__))
