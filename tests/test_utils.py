"""
tests/test_utils.py
Unit tests for drxgen.utils: case conversion, singular/plural rules and
derived entity / module names.
"""

from __future__ import annotations

import pytest

from drxgen import utils
from drxgen.utils import (
    Timer,
    count_lines,
    entity_singular_name,
    is_namespaced,
    module_name,
    schema_name,
    sha256_hex,
    split_words,
    to_kebab_case,
    to_pascal_case,
    to_plural,
    to_singular,
    ts_literal,
    ts_string,
    type_name,
)


# ===========================================================================
# Case conversion
# ===========================================================================


class TestCaseConversion:
    """PascalCase and kebab-case helpers."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("directus_users", "DirectusUsers"),
            ("blog-posts", "BlogPosts"),
            ("posts", "Posts"),
            ("UserCreated", "Usercreated"),
            ("a b", "AB"),
            ("", ""),
        ],
    )
    def test_to_pascal_case(self, raw: str, expected: str) -> None:
        assert to_pascal_case(raw) == expected

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("QuestionAnswers", "question-answers"),
            ("directus_users", "directus-users"),
            ("HTTPServer", "http-server"),
            ("blog posts", "blog-posts"),
            ("", ""),
        ],
    )
    def test_to_kebab_case(self, raw: str, expected: str) -> None:
        assert to_kebab_case(raw) == expected

    def test_split_words(self) -> None:
        assert split_words("parentCategory_id") == ("parent", "Category", "id")
        assert split_words("__a__b") == ("a", "b")


# ===========================================================================
# Singular / plural
# ===========================================================================


class TestSingular:
    """Heuristic singularisation."""

    @pytest.mark.parametrize(
        "plural, singular",
        [
            ("Posts", "Post"),
            ("Categories", "Category"),
            ("Boxes", "Box"),
            ("Churches", "Church"),
            ("Wolves", "Wolf"),
            ("Knives", "Knife"),
            ("children", "child"),
            ("People", "Person"),
            ("CHILDREN", "CHILD"),
            ("Analyses", "Analysis"),
        ],
    )
    def test_rules(self, plural: str, singular: str) -> None:
        assert to_singular(plural) == singular

    def test_namespaced_words_keep_prefix(self) -> None:
        assert to_singular("DirectusUsers") == "DirectusUser"
        assert to_singular("DirectusPolicies") == "DirectusPolicy"

    def test_compound_word_singularises_last_segment(self) -> None:
        assert to_singular("DialogueQuestionAnswers") == "DialogueQuestionAnswer"

    @pytest.mark.parametrize("plural, singular", sorted(utils._IRREGULAR_SINGULARS.items()))
    def test_irregular_table_keeps_case(self, plural: str, singular: str) -> None:
        assert to_singular(plural) == singular
        assert to_singular(plural.capitalize()) == singular.capitalize()
        assert to_singular(plural.upper()) == singular.upper()

    @pytest.mark.parametrize(
        "word, expected",
        [("Process", "Proces"), ("DirectusAccess", "DirectusAcces")],
    )
    def test_double_s_loses_one_s(self, word: str, expected: str) -> None:
        assert to_singular(word) == expected

    @pytest.mark.parametrize("word", ["Access", "Glass", "Class", "Bus", "Gas"])
    def test_excluded_s_stems_unchanged(self, word: str) -> None:
        assert to_singular(word) == word

    @pytest.mark.parametrize("word", ["User", "Post", "Category", "a", ""])
    def test_idempotent_on_singulars(self, word: str) -> None:
        assert to_singular(word) == word
        assert to_singular(to_singular(word)) == to_singular(word)


class TestPlural:
    """Pluralisation used by the relation naming heuristic."""

    @pytest.mark.parametrize(
        "singular, plural",
        [
            ("article", "articles"),
            ("category", "categories"),
            ("box", "boxes"),
            ("person", "people"),
            ("Person", "People"),
            ("day", "days"),
            ("posts", "posts"),
        ],
    )
    def test_rules(self, singular: str, plural: str) -> None:
        assert to_plural(singular) == plural


# ===========================================================================
# Derived names
# ===========================================================================


class TestDerivedNames:
    """Entity, schema, type and module names."""

    @pytest.mark.parametrize(
        "collection, singular",
        [
            ("posts", "Post"),
            ("categories", "Category"),
            ("directus_users", "DirectusUser"),
            ("directus_policies", "DirectusPolicy"),
            ("blog_posts", "BlogPost"),
        ],
    )
    def test_entity_singular_name(self, collection: str, singular: str) -> None:
        assert entity_singular_name(collection) == singular

    def test_schema_and_type_names(self) -> None:
        assert schema_name("Post") == "DrxPostSchema"
        assert type_name("Post") == "DrsPost"
        assert schema_name("PostCreate") == "DrxPostCreateSchema"

    def test_module_name(self) -> None:
        assert module_name("blog_posts") == "blog-posts"
        assert module_name("directus_users") == "directus-users"

    def test_is_namespaced(self) -> None:
        assert is_namespaced("directus_users")
        assert not is_namespaced("posts")
        assert not is_namespaced("my_directus_users")


# ===========================================================================
# Literals & metrics
# ===========================================================================


class TestLiteralsAndMetrics:
    def test_ts_string_escapes(self) -> None:
        assert ts_string('say "hi"') == '"say \\"hi\\""'
        assert ts_string("café") == '"café"'

    @pytest.mark.parametrize(
        "value, expected",
        [(True, "true"), (False, "false"), (3, "3"), (1.5, "1.5"), ("a", '"a"')],
    )
    def test_ts_literal(self, value: object, expected: str) -> None:
        assert ts_literal(value) == expected

    def test_count_lines(self) -> None:
        assert count_lines("") == 0
        assert count_lines("a") == 1
        assert count_lines("a\nb\n") == 2
        assert count_lines("a\nb") == 2

    def test_sha256_hex(self) -> None:
        assert sha256_hex("") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_timer_records_elapsed(self) -> None:
        with Timer("noop") as t:
            pass
        assert t.elapsed >= 0.0
        assert t.end_time >= t.start_time
