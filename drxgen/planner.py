# File: drxgen/planner.py
"""
drxgen - Emission Planner & Import Resolution
==============================================
Everything between "every entity has a first-pass artifact" and "bytes hit
the disk":

    1. ``apply_second_pass`` re-emits cyclic entities in deferred form and
       returns a new artifact mapping (the input is never touched).
    2. ``plan_imports`` / ``render_module`` assemble each output module:
       zod import, shared file-definition import, one import per related
       entity, then the validator and type blocks.
    3. ``relative_output_path`` places modules: system collections under
       ``system/``, everything else at the root.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Mapping, Optional, Protocol, Set

from drxgen.dependencies import CycleSet, cyclic_entities, extract_references
from drxgen.models import EntityDescriptor, GeneratedArtifact, RelationshipIndex
from drxgen.templates import FILE_SCHEMA_NAMES, FILE_TYPE_NAMES
from drxgen.utils import is_namespaced, module_name, schema_name, type_name

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("drxgen.planner")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SYSTEM_DIR: str = "system"
FILE_SCHEMAS_MODULE: str = "file-schemas"
FILE_SCHEMAS_PATH: str = f"{FILE_SCHEMAS_MODULE}.ts"
ZOD_IMPORT: str = "import { z } from 'zod';"


class EntityEmitter(Protocol):
    """Anything that can (re-)emit an entity; ``TemplateGenerator`` in practice."""

    def generate_entity(
        self,
        entity: EntityDescriptor,
        relationships: RelationshipIndex = (),
        deferred: bool = False,
        generated: Optional[AbstractSet[str]] = None,
    ) -> GeneratedArtifact: ...


# ---------------------------------------------------------------------------
# Second pass
# ---------------------------------------------------------------------------


def apply_second_pass(
    first_pass: Mapping[str, GeneratedArtifact],
    entities: Mapping[str, EntityDescriptor],
    cycles: CycleSet,
    emitter: EntityEmitter,
    relationships: RelationshipIndex = (),
) -> Dict[str, GeneratedArtifact]:
    """
    Return the final artifact mapping.

    Entities whose singular name appears in any cycle get a brand new,
    deferred artifact; every other artifact is passed through as-is.  Both
    mappings are keyed by raw collection name, and the keys of *first_pass*
    are the collections re-emitted relations may point to.
    """
    cyclic: Set[str] = cyclic_entities(cycles)
    generated: FrozenSet[str] = frozenset(first_pass)
    final: Dict[str, GeneratedArtifact] = {}

    for collection, artifact in first_pass.items():
        entity: Optional[EntityDescriptor] = entities.get(collection)
        if artifact.singular_name in cyclic and entity is not None:
            final[collection] = emitter.generate_entity(
                entity, relationships, deferred=True, generated=generated
            )
            logger.debug("Re-emitted '%s' with deferred definitions.", collection)
        else:
            final[collection] = artifact

    logger.info(
        "Second pass: %d of %d entities re-emitted.",
        sum(1 for a in final.values() if a.deferred),
        len(final),
    )
    return final


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def relative_output_path(collection_name: str) -> str:
    """``system/<kebab>.ts`` for system collections, ``<kebab>.ts`` otherwise."""
    stem: str = module_name(collection_name)
    if is_namespaced(collection_name):
        return f"{SYSTEM_DIR}/{stem}.ts"
    return f"{stem}.ts"


def import_path(current_namespaced: bool, target_collection: str) -> str:
    """
    Module specifier used by one generated module to import another.

        same area               -> ./target
        system  -> regular      -> ../target
        regular -> system       -> ./system/target
    """
    stem: str = module_name(target_collection)
    target_namespaced: bool = is_namespaced(target_collection)
    if current_namespaced == target_namespaced:
        return f"./{stem}"
    if current_namespaced:
        return f"../{stem}"
    return f"./{SYSTEM_DIR}/{stem}"


def file_schemas_import_path(current_namespaced: bool) -> str:
    prefix: str = "../" if current_namespaced else "./"
    return f"{prefix}{FILE_SCHEMAS_MODULE}"


# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------


def _imported_names(artifact: GeneratedArtifact, schema: str, type_: str) -> str:
    names: List[str] = []
    if artifact.schema_text is not None:
        names.append(schema)
    if artifact.type_text is not None:
        names.append(f"type {type_}")
    return ", ".join(names)


def zod_import(artifact: GeneratedArtifact) -> Optional[str]:
    return ZOD_IMPORT if artifact.schema_text is not None else None


def _uses_file_schemas(artifact: GeneratedArtifact) -> bool:
    if artifact.uses_file_schemas:
        return True
    if artifact.references is not None:
        return False
    schema_text: str = artifact.schema_text or ""
    type_text: str = artifact.type_text or ""
    return any(n in schema_text for n in FILE_SCHEMA_NAMES) or any(
        n in type_text for n in FILE_TYPE_NAMES
    )


def file_schemas_import(artifact: GeneratedArtifact) -> Optional[str]:
    """Import of the shared file definitions, only when they are used."""
    if not _uses_file_schemas(artifact):
        return None

    names: List[str] = []
    if artifact.schema_text is not None:
        names.extend(FILE_SCHEMA_NAMES)
    if artifact.type_text is not None:
        names.extend(f"type {n}" for n in FILE_TYPE_NAMES)
    path: str = file_schemas_import_path(artifact.namespaced)
    return f"import {{ {', '.join(names)} }} from '{path}';"


def plan_imports(
    artifact: GeneratedArtifact, artifacts: Iterable[GeneratedArtifact]
) -> List[str]:
    """
    One import line per distinct entity *artifact* references.

    References with no producing artifact in *artifacts* (skipped or
    unselected collections) get no import.
    """
    producers: Dict[str, GeneratedArtifact] = {}
    for candidate in artifacts:
        producers.setdefault(candidate.singular_name, candidate)

    lines: List[str] = []
    seen: Set[str] = set()
    for ref in extract_references(artifact):
        target: Optional[GeneratedArtifact] = producers.get(ref)
        if target is None:
            logger.debug(
                "'%s' references '%s', which has no generated module.",
                artifact.collection_name,
                ref,
            )
            continue
        path: str = import_path(artifact.namespaced, target.collection_name)
        line: str = (
            f"import {{ {_imported_names(artifact, schema_name(ref), type_name(ref))} }} "
            f"from '{path}';"
        )
        if line not in seen:
            seen.add(line)
            lines.append(line)
    return lines


# ---------------------------------------------------------------------------
# Module rendering
# ---------------------------------------------------------------------------


def render_module(
    artifact: GeneratedArtifact, artifacts: Iterable[GeneratedArtifact]
) -> str:
    """
    Full text of one generated module.

    Layout: zod import, file-definition import, entity imports, a blank
    line, the validator block, a blank line, the type block.
    """
    header: List[str] = []
    zod: Optional[str] = zod_import(artifact)
    if zod:
        header.append(zod)
    files: Optional[str] = file_schemas_import(artifact)
    if files:
        header.append(files)
    header.extend(plan_imports(artifact, artifacts))

    blocks: List[str] = [b for b in (artifact.schema_text, artifact.type_text) if b]
    body: str = "\n\n".join(blocks)
    if header:
        return "\n".join(header) + "\n\n" + body + "\n"
    return body + "\n"


def render_all(artifacts: Mapping[str, GeneratedArtifact]) -> Dict[str, str]:
    """Relative output path -> module text for every artifact."""
    pool: List[GeneratedArtifact] = list(artifacts.values())
    return {
        relative_output_path(a.collection_name): render_module(a, pool) for a in pool
    }


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "SYSTEM_DIR",
    "FILE_SCHEMAS_MODULE",
    "FILE_SCHEMAS_PATH",
    "ZOD_IMPORT",
    "EntityEmitter",
    "apply_second_pass",
    "relative_output_path",
    "import_path",
    "file_schemas_import_path",
    "zod_import",
    "file_schemas_import",
    "plan_imports",
    "render_module",
    "render_all",
]

logger.debug("drxgen.planner loaded — %d public symbols.", len(__all__))
