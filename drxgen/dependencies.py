# File: drxgen/dependencies.py
"""
drxgen - Dependency Graph & Cycle Detection
============================================
Builds the entity reference graph from first-pass artifacts and finds the
reference cycles that force deferred (``z.lazy``) emission.

Graph nodes are singular entity names (``Post``, ``DirectusUser``).  An
entity only becomes a key once it references something; the shared file
definitions and derived variants (``...Create`` / ``...Update`` /
``...Get``) never count as references.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, Iterator, List, Mapping, Set, Tuple

from drxgen.models import GeneratedArtifact
from drxgen.templates import FILE_ENTITY_NAMES

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("drxgen.dependencies")

DependencyGraph = Dict[str, Set[str]]
CycleSet = List[List[str]]

_SCHEMA_REF_RE: re.Pattern[str] = re.compile(r"Drx([A-Z][a-zA-Z]*)Schema")
_TYPE_REF_RE: re.Pattern[str] = re.compile(r"Drs([A-Z][a-zA-Z]*)")
_VARIANT_SUFFIXES: Tuple[str, ...] = ("Create", "Update", "Get")


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------


def _is_entity_reference(name: str, own_name: str) -> bool:
    return (
        name != own_name
        and name not in FILE_ENTITY_NAMES
        and not name.endswith(_VARIANT_SUFFIXES)
    )


def scan_references(text: str, own_name: str) -> List[str]:
    """Lexical scan of emitted text for other entities' schema/type names."""
    found: List[str] = []
    for pattern in (_SCHEMA_REF_RE, _TYPE_REF_RE):
        for match in pattern.finditer(text):
            name: str = match.group(1)
            if _is_entity_reference(name, own_name) and name not in found:
                found.append(name)
    return found


def extract_references(artifact: GeneratedArtifact) -> List[str]:
    """
    Singular names of the entities *artifact* references, in first-seen order.

    Uses the references recorded during emission; artifacts built from text
    alone (``references is None``) are scanned instead.
    """
    own: str = artifact.singular_name
    if artifact.references is not None:
        refs: List[str] = []
        for name in artifact.references:
            if _is_entity_reference(name, own) and name not in refs:
                refs.append(name)
        return refs

    text: str = "\n".join(t for t in (artifact.schema_text, artifact.type_text) if t)
    return scan_references(text, own)


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


def build_dependency_graph(artifacts: Iterable[GeneratedArtifact]) -> DependencyGraph:
    """
    Map each referencing entity to the set of entities it references.

    Entities with no references are absent from the graph.
    """
    graph: DependencyGraph = {}
    for artifact in artifacts:
        refs: List[str] = extract_references(artifact)
        if refs:
            graph.setdefault(artifact.singular_name, set()).update(refs)

    logger.debug(
        "Dependency graph: %d nodes, %d edges.",
        len(graph),
        sum(len(v) for v in graph.values()),
    )
    return graph


def detect_circular_dependencies(graph: Mapping[str, Set[str]]) -> CycleSet:
    """
    Find reference cycles with a depth-first traversal.

    Every not-yet-visited key is used once as a root.  Reaching a node that
    is still on the current path closes a cycle: the path from that node's
    position to the end, with the node appended again.  All cycles found
    are returned; none are merged.

    The traversal keeps an explicit stack of neighbour iterators so deep
    graphs do not hit the interpreter's recursion limit.  Neighbours are
    visited in sorted order for deterministic output.

    Complexity: O(V + E).
    """
    visited: Set[str] = set()
    on_path: Set[str] = set()
    path: List[str] = []
    cycles: CycleSet = []

    def _neighbours(node: str) -> Iterator[str]:
        return iter(sorted(graph.get(node, ())))

    for root in graph:
        if root in visited:
            continue

        visited.add(root)
        on_path.add(root)
        path.append(root)
        stack: List[Tuple[str, Iterator[str]]] = [(root, _neighbours(root))]

        while stack:
            node, neighbours = stack[-1]
            neighbour: str = next(neighbours, "")
            if not neighbour:
                stack.pop()
                path.pop()
                on_path.discard(node)
                continue

            if neighbour in on_path:
                start: int = path.index(neighbour)
                cycles.append(path[start:] + [neighbour])
            elif neighbour not in visited:
                visited.add(neighbour)
                on_path.add(neighbour)
                path.append(neighbour)
                stack.append((neighbour, _neighbours(neighbour)))

    for cycle in cycles:
        logger.info("Circular dependency detected: %s", " → ".join(cycle))
    if not cycles:
        logger.debug("No circular dependencies detected.")
    return cycles


def is_circular_dependency(a: str, b: str, cycles: CycleSet) -> bool:
    """True if some recorded cycle contains both *a* and *b*."""
    return any(a in cycle and b in cycle for cycle in cycles)


def cyclic_entities(cycles: CycleSet) -> Set[str]:
    """Every entity name that appears in at least one cycle."""
    return {name for cycle in cycles for name in cycle}


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DependencyGraph",
    "CycleSet",
    "scan_references",
    "extract_references",
    "build_dependency_graph",
    "detect_circular_dependencies",
    "is_circular_dependency",
    "cyclic_entities",
]

logger.debug("drxgen.dependencies loaded — %d public symbols.", len(__all__))
