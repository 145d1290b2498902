"""
tests/test_planner.py
Unit tests for drxgen.planner: second pass, output paths, import planning
and module rendering.
"""

from __future__ import annotations

from typing import Dict

import pytest

from conftest import make_entity, make_field
from drxgen.dependencies import build_dependency_graph, detect_circular_dependencies
from drxgen.models import EntityDescriptor, GeneratedArtifact, GenerationConfig
from drxgen.planner import (
    FILE_SCHEMAS_PATH,
    ZOD_IMPORT,
    apply_second_pass,
    file_schemas_import,
    import_path,
    plan_imports,
    relative_output_path,
    render_all,
    render_module,
)
from drxgen.templates import TemplateGenerator


@pytest.fixture()
def emitter() -> TemplateGenerator:
    return TemplateGenerator()


# ===========================================================================
# Paths
# ===========================================================================


class TestPaths:
    def test_relative_output_path(self) -> None:
        assert relative_output_path("blog_posts") == "blog-posts.ts"
        assert relative_output_path("directus_users") == "system/directus-users.ts"
        assert FILE_SCHEMAS_PATH == "file-schemas.ts"

    @pytest.mark.parametrize(
        "current_namespaced, target, expected",
        [
            (False, "posts", "./posts"),
            (True, "directus_roles", "./directus-roles"),
            (True, "posts", "../posts"),
            (False, "directus_users", "./system/directus-users"),
        ],
    )
    def test_import_path(self, current_namespaced: bool, target: str, expected: str) -> None:
        assert import_path(current_namespaced, target) == expected


# ===========================================================================
# Second pass
# ===========================================================================


class TestSecondPass:
    def test_only_cyclic_entities_are_re_emitted(
        self, emitter: TemplateGenerator, post_entity, user_entity, user_post_relationships
    ) -> None:
        tag = make_entity("tags", make_field("label"))
        entities: Dict[str, EntityDescriptor] = {
            e.name: e for e in (post_entity, user_entity, tag)
        }
        first = {
            name: emitter.generate_entity(e, user_post_relationships)
            for name, e in entities.items()
        }
        cycles = detect_circular_dependencies(build_dependency_graph(first.values()))
        assert cycles == [["Post", "User", "Post"]]

        final = apply_second_pass(first, entities, cycles, emitter, user_post_relationships)

        assert final["posts"].deferred and final["users"].deferred
        assert final["tags"] is first["tags"]
        assert not first["posts"].deferred
        assert final["posts"].schema_text.startswith(
            "export const DrxPostSchema: z.ZodType<any> = z.lazy("
        )
        assert final["posts"].type_text == first["posts"].type_text

    def test_no_cycles_is_identity(self, emitter: TemplateGenerator, post_entity) -> None:
        first = {"posts": emitter.generate_entity(post_entity)}
        final = apply_second_pass(first, {"posts": post_entity}, [], emitter)
        assert final == first
        assert final is not first


# ===========================================================================
# Imports
# ===========================================================================


class TestImports:
    def _pool(self, emitter: TemplateGenerator, *entities: EntityDescriptor):
        return [emitter.generate_entity(e) for e in entities]

    def test_entity_import_line(self, emitter: TemplateGenerator, post_entity) -> None:
        users = make_entity("users", make_field("id", "uuid"))
        post, user = self._pool(emitter, post_entity, users)
        assert plan_imports(post, [post, user]) == [
            "import { DrxUserSchema, type DrsUser } from './users';"
        ]
        assert plan_imports(user, [post, user]) == []

    def test_reference_without_producer_gets_no_import(
        self, emitter: TemplateGenerator, post_entity
    ) -> None:
        post = emitter.generate_entity(post_entity)
        assert plan_imports(post, [post]) == []

    def test_system_import_paths(self, emitter: TemplateGenerator) -> None:
        posts = make_entity(
            "posts",
            make_field("owner", "uuid", foreign_key_target="directus_users", special=["m2o"]),
        )
        users = make_entity(
            "directus_users",
            make_field("id", "uuid"),
            make_field("last_post", "integer", foreign_key_target="posts", special=["m2o"]),
        )
        post, user = self._pool(emitter, posts, users)
        assert plan_imports(post, [post, user]) == [
            "import { DrxDirectusUserSchema, type DrsDirectusUser } from './system/directus-users';"
        ]
        assert plan_imports(user, [post, user]) == [
            "import { DrxPostSchema, type DrsPost } from '../posts';"
        ]

    def test_names_limited_to_emitted_outputs(self, post_entity) -> None:
        emitter = TemplateGenerator(GenerationConfig(generate_schemas=False))
        users = make_entity("users", make_field("id", "uuid"))
        post, user = self._pool(emitter, post_entity, users)
        assert plan_imports(post, [post, user]) == [
            "import { type DrsUser } from './users';"
        ]

    def test_file_schemas_import(self, emitter: TemplateGenerator) -> None:
        posts = make_entity("posts", make_field("cover", "uuid", special=["file"]))
        users = make_entity("directus_users", make_field("avatar", "uuid", special=["file"]))
        post, user = self._pool(emitter, posts, users)
        assert file_schemas_import(post) == (
            "import { DrxFileSchema, DrxImageFileSchema, type DrsFile, type DrsImageFile } "
            "from './file-schemas';"
        )
        assert file_schemas_import(user).endswith("from '../file-schemas';")

    def test_file_schemas_import_only_when_used(self, emitter: TemplateGenerator, post_entity) -> None:
        assert file_schemas_import(emitter.generate_entity(post_entity)) is None

    def test_file_schemas_import_from_text_scan(self) -> None:
        artifact = GeneratedArtifact.from_text(
            "posts", schema_text="cover: DrxImageFileSchema", type_text="cover: DrsImageFile"
        )
        assert file_schemas_import(artifact) is not None


# ===========================================================================
# Rendering
# ===========================================================================


class TestRenderModule:
    def test_layout(self, emitter: TemplateGenerator, post_entity) -> None:
        users = make_entity("users", make_field("id", "uuid"))
        post, user = [emitter.generate_entity(e) for e in (post_entity, users)]
        text = render_module(post, [post, user])
        header, body = text.split("\n\n", 1)
        assert header.split("\n") == [
            ZOD_IMPORT,
            "import { DrxUserSchema, type DrsUser } from './users';",
        ]
        assert body == post.schema_text + "\n\n" + post.type_text + "\n"

    def test_types_only_module_has_no_zod_import(self, post_entity) -> None:
        emitter = TemplateGenerator(GenerationConfig(generate_schemas=False))
        artifact = emitter.generate_entity(post_entity)
        text = render_module(artifact, [artifact])
        assert "zod" not in text
        assert text.startswith("export interface DrsPost {")

    def test_render_all_paths(self, emitter: TemplateGenerator) -> None:
        artifacts = {
            "posts": emitter.generate_entity(make_entity("posts", make_field("id", "integer"))),
            "directus_users": emitter.generate_entity(
                make_entity("directus_users", make_field("id", "uuid"))
            ),
        }
        rendered = render_all(artifacts)
        assert sorted(rendered) == ["posts.ts", "system/directus-users.ts"]
        assert all(text.endswith("\n") for text in rendered.values())
