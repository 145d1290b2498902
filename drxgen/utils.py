# File: drxgen/utils.py
"""
drxgen - Naming Engine & Helpers
=================================
String transformation rules shared by every stage of the pipeline, plus a
handful of small helpers (timing, checksums, literal quoting).

Naming rules:
- ``to_pascal_case`` / ``to_kebab_case`` turn raw collection names into
  identifier fragments and module file names.
- ``to_singular`` is a heuristic rule table, not a linguistic model.  Its
  outputs for unlisted "-s" stems (``Process`` -> ``Proces``) are part of the
  contract and must stay as they are.
- All string-conversion functions are decorated with
  ``@lru_cache(maxsize=None)``; the same collection and field names are
  converted many times per run.
"""

from __future__ import annotations

import functools
import hashlib
import json
import logging
import re
import time
from typing import Dict, FrozenSet, List, Optional, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("drxgen.utils")

# ---------------------------------------------------------------------------
# Naming constants
# ---------------------------------------------------------------------------

#: Raw-name prefix of the backend's own system collections.
NAMESPACE_PREFIX: str = "directus_"

#: PascalCase form of the namespace prefix, kept intact by ``to_singular``.
NAMESPACE_WORD: str = "Directus"

#: Identifier prefixes of generated validators and types.
SCHEMA_PREFIX: str = "Drx"
TYPE_PREFIX: str = "Drs"

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns (compiled once at module load)
# ---------------------------------------------------------------------------

_PASCAL_SPLIT_RE: re.Pattern[str] = re.compile(r"[-_\s]+")
_KEBAB_LOWER_UPPER_RE: re.Pattern[str] = re.compile(r"([a-z])([A-Z])")
_KEBAB_UPPER_UPPER_RE: re.Pattern[str] = re.compile(r"([A-Z])([A-Z][a-z])")
_KEBAB_SEPARATOR_RE: re.Pattern[str] = re.compile(r"[\s_]+")
_CAPITAL_SPLIT_RE: re.Pattern[str] = re.compile(r"(?=[A-Z])")
_COMPOUND_WORD_RE: re.Pattern[str] = re.compile(r"^[A-Z][a-z]*[A-Z]")
_NAMESPACE_PLURAL_RE: re.Pattern[str] = re.compile(r"Directus([A-Z][a-z]*s?)$")
_NAMESPACE_IES_RE: re.Pattern[str] = re.compile(r"Directus([A-Z][a-z]*ies)$")
_WORD_BOUNDARY_RE: re.Pattern[str] = re.compile(r"_+|(?<=[a-z0-9])(?=[A-Z])")

# ---------------------------------------------------------------------------
# Singularization rule tables
# ---------------------------------------------------------------------------

_IRREGULAR_SINGULARS: Dict[str, str] = {
    "children": "child",
    "people": "person",
    "men": "man",
    "women": "woman",
    "feet": "foot",
    "teeth": "tooth",
    "mice": "mouse",
    "geese": "goose",
    "oxen": "ox",
    "data": "datum",
    "media": "medium",
    "criteria": "criterion",
    "phenomena": "phenomenon",
    "indices": "index",
    "vertices": "vertex",
    "matrices": "matrix",
    "analyses": "analysis",
    "bases": "base",
    "diagnoses": "diagnosis",
    "theses": "thesis",
    "crises": "crisis",
    "oases": "oasis",
}

# Singulars whose plural ends in "-ves"
_VES_SINGULARS: FrozenSet[str] = frozenset({
    "leaf", "wolf", "shelf", "calf", "half", "self", "knife", "life", "wife",
})
_VES_BARE_STEMS: FrozenSet[str] = frozenset({
    "leaf", "wolf", "shelf", "calf", "half", "self",
})

# Stem endings that take "-es" in the plural
_ES_STEM_ENDINGS: Tuple[str, ...] = ("s", "x", "z", "ss", "ch", "sh")

# Stems whose singular legitimately ends in "s"; plain "-s" removal is skipped
_S_EXCLUSION_STEMS: Tuple[str, ...] = (
    "glas", "clas", "mas", "pas", "gras", "ga", "bu", "acces",
)

_IRREGULAR_PLURALS: Dict[str, str] = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "goose": "geese",
    "tooth": "teeth",
    "foot": "feet",
    "datum": "data",
    "index": "indices",
    "matrix": "matrices",
    "vertex": "vertices",
    "crisis": "crises",
    "analysis": "analyses",
    "status": "statuses",
    "address": "addresses",
}


# ---------------------------------------------------------------------------
# Cached string transformation functions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """
    Convert a raw name to PascalCase.

    Splits on hyphens, underscores and whitespace; each segment gets an upper
    first letter and a lowercased remainder, so existing inner capitals are
    flattened.

    Examples:
        >>> to_pascal_case("directus_users")
        'DirectusUsers'
        >>> to_pascal_case("UserCreated")
        'Usercreated'
    """
    if not name:
        return ""
    segments: List[str] = _PASCAL_SPLIT_RE.split(name)
    return "".join(seg[:1].upper() + seg[1:].lower() for seg in segments)


@functools.lru_cache(maxsize=None)
def to_kebab_case(name: str) -> str:
    """
    Convert a raw name to kebab-case (used for module file names).

    Examples:
        >>> to_kebab_case("QuestionAnswers")
        'question-answers'
        >>> to_kebab_case("directus_users")
        'directus-users'
    """
    if not name:
        return ""
    s: str = _KEBAB_LOWER_UPPER_RE.sub(r"\1-\2", name)
    s = _KEBAB_UPPER_UPPER_RE.sub(r"\1-\2", s)
    s = _KEBAB_SEPARATOR_RE.sub("-", s)
    return s.lower()


def _recase(singular: str, original: str) -> str:
    """Re-apply the casing pattern of *original* to a lowercase *singular*."""
    if original == original.upper():
        return singular.upper()
    if original[0] == original[0].upper():
        lowered: str = singular.lower()
        if "directus" in lowered:
            return lowered.replace("directus", NAMESPACE_WORD, 1)
        return singular[:1].upper() + singular[1:]
    return singular


def _singularize_namespaced(word: str) -> Optional[str]:
    """Singularize the trailing segment of a ``Directus``-prefixed word."""
    if word.endswith("s") and not word.endswith("ies"):
        match: Optional[re.Match[str]] = _NAMESPACE_PLURAL_RE.search(word)
        if match:
            root: str = match.group(1)[:-1]
            return f"{word[:match.start()]}{NAMESPACE_WORD}{root}"
    if word.endswith("ies"):
        match = _NAMESPACE_IES_RE.search(word)
        if match:
            root = match.group(1)[:-3] + "y"
            return f"{word[:match.start()]}{NAMESPACE_WORD}{root}"
    return None


def _singularize_compound(word: str) -> Optional[str]:
    """Singularize only the last capitalised segment of a compound word."""
    parts: List[str] = [p for p in _CAPITAL_SPLIT_RE.split(word) if p]
    if len(parts) < 2:
        return None
    last: str = parts[-1]
    if word.endswith("s") and not word.endswith("ies"):
        if last.endswith("s") and len(last) > 1:
            parts[-1] = last[:-1]
            return "".join(parts)
    if word.endswith("ies"):
        if last.endswith("ies") and len(last) > 3:
            parts[-1] = last[:-3] + "y"
            return "".join(parts)
    return None


@functools.lru_cache(maxsize=None)
def to_singular(word: str) -> str:
    """
    Heuristic plural -> singular conversion.

    Rules, first match wins:
        1. words of length <= 1 are returned unchanged;
        2. irregular table (case pattern of the input is preserved);
        3. ``Directus`` namespace prefix: singularize the trailing segment;
        4. compound words (``DialogueQuestionAnswers``): singularize the
           last capitalised segment;
        5. plain suffix rules: ``-ies``, ``-ves``, ``-es``, then ``-s`` guarded
           by a fixed list of stems that end in "s";
        6. otherwise the word is returned unchanged.

    Examples:
        >>> to_singular("DirectusPolicies")
        'DirectusPolicy'
        >>> to_singular("CHILDREN")
        'CHILD'
        >>> to_singular("Access")
        'Access'
    """
    if not word or len(word) <= 1:
        return word

    lower: str = word.lower()

    irregular: Optional[str] = _IRREGULAR_SINGULARS.get(lower)
    if irregular is not None:
        return _recase(irregular, word)

    if word.startswith(NAMESPACE_WORD) and len(word) > len(NAMESPACE_WORD):
        namespaced: Optional[str] = _singularize_namespaced(word)
        if namespaced is not None:
            return namespaced

    if _COMPOUND_WORD_RE.match(word):
        compound: Optional[str] = _singularize_compound(word)
        if compound is not None:
            return compound

    if lower.endswith("ies") and len(lower) > 4:
        return _recase(lower[:-3] + "y", word)

    if lower.endswith("ves") and len(lower) > 4:
        stem: str = lower[:-3]
        if stem + "f" in _VES_SINGULARS:
            return _recase(stem + "f", word)
        if stem + "fe" in _VES_SINGULARS:
            return _recase(stem + "fe", word)
        if stem in _VES_BARE_STEMS:
            return _recase(stem, word)

    if (
        lower.endswith("es")
        and not lower.endswith(("ies", "ves"))
        and len(lower) > 3
    ):
        without_es: str = lower[:-2]
        if without_es.endswith(_ES_STEM_ENDINGS):
            return _recase(without_es, word)

    if lower.endswith("s") and len(lower) > 2:
        without_s: str = lower[:-1]
        if without_s.endswith(_S_EXCLUSION_STEMS):
            return word
        return _recase(without_s, word)

    return word


@functools.lru_cache(maxsize=None)
def to_plural(name: str) -> str:
    """
    Naive English pluralisation used by the relation naming heuristic.

    Words that already look plural are returned unchanged.
    """
    if not name:
        return ""

    lower: str = name.lower()

    if lower in _IRREGULAR_PLURALS:
        plural: str = _IRREGULAR_PLURALS[lower]
        if name[0].isupper():
            return plural[0].upper() + plural[1:]
        return plural

    # Already plural-looking (very naive)
    if lower.endswith("s") and not lower.endswith("ss"):
        return name

    if lower.endswith(("sh", "ch", "x", "z", "ss")):
        return name + "es"
    if lower.endswith("y") and len(name) > 1 and lower[-2] not in "aeiou":
        return name[:-1] + "ies"

    return name + "s"


@functools.lru_cache(maxsize=None)
def split_words(name: str) -> Tuple[str, ...]:
    """Split a field name on underscores and lower->upper boundaries."""
    return tuple(part for part in _WORD_BOUNDARY_RE.split(name) if part)


# ---------------------------------------------------------------------------
# Derived entity names
# ---------------------------------------------------------------------------


def is_namespaced(collection: str) -> bool:
    """True for the backend's reserved system collections."""
    return collection.startswith(NAMESPACE_PREFIX)


@functools.lru_cache(maxsize=None)
def entity_singular_name(collection: str) -> str:
    """
    Singular PascalCase name of a collection, used as the graph node name.

        >>> entity_singular_name("directus_users")
        'DirectusUser'
        >>> entity_singular_name("posts")
        'Post'
    """
    return to_singular(to_pascal_case(collection))


def schema_name(singular: str) -> str:
    return f"{SCHEMA_PREFIX}{singular}Schema"


def type_name(singular: str) -> str:
    return f"{TYPE_PREFIX}{singular}"


@functools.lru_cache(maxsize=None)
def module_name(collection: str) -> str:
    """Module (file) stem of a collection, without directory or suffix."""
    return to_kebab_case(collection)


# ---------------------------------------------------------------------------
# Literal helpers
# ---------------------------------------------------------------------------


def ts_string(value: str) -> str:
    """Quote *value* as a double-quoted TypeScript string literal."""
    return json.dumps(value, ensure_ascii=False)


def ts_literal(value: object) -> str:
    """Render a choice value (str / int / float / bool) as a TS literal."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    return ts_string(str(value))


# ---------------------------------------------------------------------------
# Checksum & metrics
# ---------------------------------------------------------------------------


def sha256_hex(content: str) -> str:
    """Return SHA-256 hex digest of a string. O(n)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def count_lines(content: str) -> int:
    """Count the number of lines in a string. O(n)."""
    if not content:
        return 0
    return content.count("\n") + (1 if not content.endswith("\n") else 0)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Simple context-manager timer for profiling pipeline steps.

    Usage:
        with Timer("fetch collections") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.info(
            "Timer [%s]: %.4f seconds",
            self.label,
            self.elapsed,
        )

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "NAMESPACE_PREFIX",
    "NAMESPACE_WORD",
    "SCHEMA_PREFIX",
    "TYPE_PREFIX",
    "to_pascal_case",
    "to_kebab_case",
    "to_singular",
    "to_plural",
    "split_words",
    "is_namespaced",
    "entity_singular_name",
    "schema_name",
    "type_name",
    "module_name",
    "ts_string",
    "ts_literal",
    "sha256_hex",
    "count_lines",
    "Timer",
]

logger.debug("drxgen.utils loaded — %d public symbols.", len(__all__))
