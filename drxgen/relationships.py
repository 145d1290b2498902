# File: drxgen/relationships.py
"""
drxgen - Relationship Resolver
===============================
Determines which collection a relation-kind field points at.

Resolution order (first match wins):

    1. Foreign-key metadata on the field itself (to-one fields only).
    2. Explicit hints in the relation options, in ``RelationOptions.hints``
       order.
    3. The preloaded relationship index:
         a. current entity + field is the one side  -> many side
         b. current entity + field is the many side -> one side
         c. current entity is a junction            -> the other side
    4. Naming heuristic on the field name.
    5. ``None``.

The relationship index is a plain tuple loaded once per run by the
orchestrator and passed into every call; nothing here caches it.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from drxgen.classifier import classify
from drxgen.models import (
    FieldClassification,
    FieldDescriptor,
    FieldKind,
    RelationCardinality,
    RelationOptions,
    RelationshipIndex,
)
from drxgen.utils import entity_singular_name, split_words, to_plural

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("drxgen.relationships")


# ---------------------------------------------------------------------------
# Individual strategies
# ---------------------------------------------------------------------------


def _from_foreign_key(
    field: FieldDescriptor, options: RelationOptions
) -> Optional[str]:
    if options.cardinality is RelationCardinality.TO_ONE and field.foreign_key_target:
        return field.foreign_key_target
    return None


def _from_hints(options: RelationOptions) -> Optional[str]:
    for hint in options.hints():
        if hint:
            return hint
    return None


def _from_index(
    field: FieldDescriptor,
    current_entity: str,
    relationships: RelationshipIndex,
) -> Optional[str]:
    for rec in relationships:
        if (
            rec.one_collection == current_entity
            and rec.one_field == field.name
            and rec.many_collection
            and rec.many_collection != current_entity
        ):
            return rec.many_collection

    for rec in relationships:
        if (
            rec.many_collection == current_entity
            and rec.many_field == field.name
            and rec.one_collection
            and rec.one_collection != current_entity
        ):
            return rec.one_collection

    for rec in relationships:
        if rec.junction_collection != current_entity:
            continue
        for side in (rec.one_collection, rec.many_collection):
            if side and side != current_entity:
                return side

    return None


def guess_target_from_name(field_name: str) -> Optional[str]:
    """
    Naming heuristic: the trailing word of the field name, pluralised.

        >>> guess_target_from_name("related_article")
        'articles'
        >>> guess_target_from_name("parentCategory_id")
        'categories'
        >>> guess_target_from_name("tags") is None
        True
        >>> guess_target_from_name("user_id")
        'users'

    A trailing ``id`` word marks a foreign key, so one word before it is
    enough.  Without it at least two words are needed and single-word names
    never produce a guess.
    """
    words: List[str] = list(split_words(field_name))
    has_id_suffix: bool = len(words) > 1 and words[-1].lower() == "id"
    if has_id_suffix:
        words.pop()
    if not words or (len(words) < 2 and not has_id_suffix):
        return None
    return to_plural(words[-1].lower())


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve_target(
    field: FieldDescriptor,
    current_entity: str,
    relationships: RelationshipIndex = (),
    classification: Optional[FieldClassification] = None,
) -> Optional[str]:
    """
    Resolve the collection a relation field points at.

    Args:
        field: The relation field.
        current_entity: Raw name of the collection that owns *field*.
        relationships: Relationship index for this run.
        classification: Pre-computed classification of *field*; computed
            here when omitted.

    Returns:
        Raw collection name of the target, or ``None`` when nothing matched.
    """
    if classification is None:
        classification = classify(field)
    if classification.kind is not FieldKind.RELATION:
        return None

    options: RelationOptions = classification.options  # type: ignore[assignment]

    target: Optional[str] = (
        _from_foreign_key(field, options)
        or _from_hints(options)
        or _from_index(field, current_entity, relationships)
        or guess_target_from_name(field.name)
    )

    if target is None:
        logger.debug(
            "No target resolved for relation %s.%s.", current_entity, field.name
        )
    return target


def target_reference_name(collection: str) -> str:
    """Singular entity name used in emitted references to *collection*."""
    return entity_singular_name(collection)


def is_self_reference(target: str, current_entity: str) -> bool:
    """True when *target* names the entity under construction."""
    return target == current_entity or (
        target_reference_name(target) == target_reference_name(current_entity)
    )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "resolve_target",
    "guess_target_from_name",
    "target_reference_name",
    "is_self_reference",
]

logger.debug("drxgen.relationships loaded.")
