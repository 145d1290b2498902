"""
tests/test_generator.py
End-to-end tests for drxgen.generator.SchemaGenerator against the
reference snapshot, plus configuration loading.

Run with:
    pytest tests/ -v
"""

from __future__ import annotations

import json
import pathlib
import re
from typing import Any, Dict, List

import pytest

from drxgen.client import MetadataError, SnapshotProvider
from drxgen.generator import (
    GenerationReport,
    SchemaGenerator,
    build_config,
    load_config_file,
)
from drxgen.models import GenerationConfig
from drxgen.templates import FILE_SCHEMA_NAMES, FILE_TYPE_NAMES


class FlakyProvider(SnapshotProvider):
    """Snapshot provider whose chosen endpoints fail."""

    def __init__(
        self,
        data: Dict[str, Any],
        *,
        failing_fields: tuple = (),
        fail_collections: bool = False,
        fail_relations: bool = False,
    ) -> None:
        super().__init__(data, source="flaky")
        self.failing_fields = set(failing_fields)
        self.fail_collections = fail_collections
        self.fail_relations = fail_relations

    def get_collections(self) -> List[Dict[str, Any]]:
        if self.fail_collections:
            raise MetadataError("GET /collections failed with HTTP 503.")
        return super().get_collections()

    def get_fields(self, collection: str) -> List[Dict[str, Any]]:
        if collection in self.failing_fields:
            raise MetadataError(f"GET /fields/{collection} failed with HTTP 403.")
        return super().get_fields(collection)

    def get_relations(self) -> List[Dict[str, Any]]:
        if self.fail_relations:
            raise MetadataError("GET /relations failed with HTTP 500.")
        return super().get_relations()


def _output(report: GenerationReport) -> pathlib.Path:
    return pathlib.Path(report.output_directory)


_GENERATED_NAME_RE = re.compile(r"\b(Drx[A-Z]\w*Schema|Drs[A-Z]\w*)\b")
_DEFINED_RE = re.compile(r"^export (?:const|interface|type) (\w+)", re.MULTILINE)


def _undefined_names(module: str) -> List[str]:
    """Generated names a module uses without defining or importing them."""
    known = set(FILE_SCHEMA_NAMES) | set(FILE_TYPE_NAMES)
    known.update(_DEFINED_RE.findall(module))
    for line in module.splitlines():
        if line.startswith("import "):
            known.update(_GENERATED_NAME_RE.findall(line))
    return sorted(set(_GENERATED_NAME_RE.findall(module)) - known)


def _assert_modules_self_contained(report: GenerationReport) -> None:
    for path, text in report.files.items():
        assert _undefined_names(text) == [], path


# ===========================================================================
# Full pipeline on the reference snapshot
# ===========================================================================


class TestFullRun:
    @pytest.fixture()
    def report(self, snapshot_config: GenerationConfig) -> GenerationReport:
        return SchemaGenerator(snapshot_config).generate()

    def test_success_and_counts(self, report: GenerationReport) -> None:
        assert report.success, report.summary()
        assert report.generated_collections == ["posts", "authors", "categories"]
        assert report.total_collections == 3
        assert report.skipped_collections == []
        assert not report.used_fallback_file_schemas
        assert report.total_files == 4

    def test_files_written(self, report: GenerationReport) -> None:
        out = _output(report)
        for name in ("posts.ts", "authors.ts", "categories.ts", "file-schemas.ts", "manifest.json"):
            assert (out / name).is_file(), name
        assert not (out / "content.ts").exists()
        assert not (out / "system").exists()

        manifest = json.loads((out / "manifest.json").read_text(encoding="utf-8"))
        assert sorted(f["relative_path"] for f in manifest["files"]) == [
            "authors.ts", "categories.ts", "file-schemas.ts", "posts.ts",
        ]

    def test_cycle_is_deferred(self, report: GenerationReport) -> None:
        assert report.cycles == [["Post", "Author", "Post"]]
        assert report.deferred_collections == ["posts", "authors"]

        posts = (_output(report) / "posts.ts").read_text(encoding="utf-8")
        assert "export const DrxPostSchema: z.ZodType<any> = z.lazy(() => z.object({" in posts
        authors = (_output(report) / "authors.ts").read_text(encoding="utf-8")
        assert "export const DrxAuthorSchema: z.ZodType<any> = z.lazy(() => z.object({" in authors
        assert "posts: z.array(DrxPostSchema).nullable().optional()" in authors

    def test_self_reference_is_lazy_not_deferred(self, report: GenerationReport) -> None:
        categories = (_output(report) / "categories.ts").read_text(encoding="utf-8")
        assert "export const DrxCategorySchema = z.object({" in categories
        assert "    id: z.string().uuid().optional()," in categories
        assert "parent: z.lazy(() => DrxCategorySchema).nullable().optional()" in categories
        assert "import { DrxCategorySchema" not in categories

    def test_posts_module(self, report: GenerationReport) -> None:
        posts = (_output(report) / "posts.ts").read_text(encoding="utf-8")
        header = posts.split("\n\n", 1)[0].split("\n")
        assert header[0] == "import { z } from 'zod';"
        assert header[1].endswith("from './file-schemas';")
        assert "import { DrxAuthorSchema, type DrsAuthor } from './authors';" in header
        assert "import { DrxCategorySchema, type DrsCategory } from './categories';" in header
        assert not any("directus-users" in line for line in header)
        assert "user_created: z.string().uuid().nullable().optional()," in posts
        assert "DrxDirectusUserSchema" not in posts
        assert "DrsDirectusUser" not in posts

        assert 'status: z.enum(["published", "draft"]),' in posts
        assert "divider-meta" not in posts
        assert "export interface DrsPost {" in posts
        assert 'export type DrsPostCreate = Omit<DrsPost, "id" | "user_created" | "date_created">;' in posts

    def test_unselected_target_is_a_warning(self, report: GenerationReport) -> None:
        assert any(
            "RELATION_TARGET_NOT_GENERATED" in w and "directus_users" in w
            for w in report.validation_warnings
        )

    def test_every_module_is_self_contained(self, report: GenerationReport) -> None:
        _assert_modules_self_contained(report)

    def test_summary(self, report: GenerationReport) -> None:
        text = report.summary()
        assert "SUCCESS" in text
        assert "Collections:      3/3" in text
        assert "Cycles:           1" in text


# ===========================================================================
# Selection
# ===========================================================================


class TestSelection:
    def test_include_system(self, snapshot_config: GenerationConfig) -> None:
        config = snapshot_config.model_copy(update={"include_system_collections": True})
        report = SchemaGenerator(config).generate()
        assert report.success, report.summary()

        out = _output(report)
        assert (out / "system" / "directus-users.ts").is_file()
        assert (out / "system" / "directus-files.ts").is_file()
        posts = (out / "posts.ts").read_text(encoding="utf-8")
        assert (
            "import { DrxDirectusUserSchema, type DrsDirectusUser } "
            "from './system/directus-users';"
        ) in posts
        assert "user_created: DrxDirectusUserSchema.nullable().optional()," in posts
        _assert_modules_self_contained(report)

    def test_explicit_list_may_name_system_collections(
        self, snapshot_dict: Dict[str, Any]
    ) -> None:
        config = GenerationConfig(collections=["posts", "directus_users", "ghost"])
        generator = SchemaGenerator(config, SnapshotProvider(snapshot_dict))
        selected = generator.select_collections(snapshot_dict["collections"])
        assert selected == ["posts", "directus_users"]

    def test_exclusion_wins(self, snapshot_dict: Dict[str, Any]) -> None:
        config = GenerationConfig(
            collections=["posts", "authors"], exclude_collections=["authors"]
        )
        generator = SchemaGenerator(config, SnapshotProvider(snapshot_dict))
        assert generator.select_collections(snapshot_dict["collections"]) == ["posts"]

    def test_folders_never_selected(self, snapshot_dict: Dict[str, Any]) -> None:
        config = GenerationConfig(include_system_collections=True)
        generator = SchemaGenerator(config, SnapshotProvider(snapshot_dict))
        selected = generator.select_collections(snapshot_dict["collections"])
        assert "content" not in selected
        assert len(selected) == 5


# ===========================================================================
# Modes and degraded runs
# ===========================================================================


class TestModes:
    def test_dry_run_writes_nothing(self, snapshot_config: GenerationConfig) -> None:
        report = SchemaGenerator(snapshot_config, dry_run=True).generate()
        assert report.success
        assert report.dry_run
        assert not _output(report).exists()
        assert set(report.files) == {"posts.ts", "authors.ts", "categories.ts", "file-schemas.ts"}
        assert report.total_files == 4
        assert report.total_lines > 0
        assert "(dry run)" in report.summary()

    def test_parallel_matches_sequential(self, snapshot_config: GenerationConfig) -> None:
        sequential = SchemaGenerator(snapshot_config, dry_run=True).generate()
        config = snapshot_config.model_copy(update={"max_workers": 4})
        parallel = SchemaGenerator(config, dry_run=True).generate()
        assert parallel.generated_collections == sequential.generated_collections
        assert parallel.files == sequential.files

    def test_types_only(self, snapshot_config: GenerationConfig) -> None:
        config = snapshot_config.model_copy(update={"generate_schemas": False})
        report = SchemaGenerator(config, dry_run=True).generate()
        assert report.success
        assert all("zod" not in text for text in report.files.values())

    def test_fallback_file_schemas(
        self, snapshot_dict: Dict[str, Any], tmp_path: pathlib.Path
    ) -> None:
        snapshot_dict["fields"] = [
            f for f in snapshot_dict["fields"] if f["collection"] != "directus_files"
        ]
        config = GenerationConfig(output_dir=str(tmp_path / "out"))
        report = SchemaGenerator(config, SnapshotProvider(snapshot_dict)).generate()
        assert report.success, report.summary()
        assert report.used_fallback_file_schemas
        assert "export const DrxFileSchema" in report.files["file-schemas.ts"]

    def test_failing_collection_is_skipped(
        self, snapshot_dict: Dict[str, Any], tmp_path: pathlib.Path
    ) -> None:
        provider = FlakyProvider(snapshot_dict, failing_fields=("authors",))
        config = GenerationConfig(output_dir=str(tmp_path / "out"))
        report = SchemaGenerator(config, provider).generate()

        assert report.success
        assert report.generated_collections == ["posts", "categories"]
        assert len(report.skipped_collections) == 1
        assert report.skipped_collections[0].startswith("authors (MetadataError")
        assert report.cycles == []
        assert "./authors" not in report.files["posts.ts"]
        assert "DrxAuthorSchema" not in report.files["posts.ts"]
        assert "DrsAuthor" not in report.files["posts.ts"]
        _assert_modules_self_contained(report)

    def test_relations_failure_degrades(
        self, snapshot_dict: Dict[str, Any], tmp_path: pathlib.Path
    ) -> None:
        provider = FlakyProvider(snapshot_dict, fail_relations=True)
        config = GenerationConfig(output_dir=str(tmp_path / "out"))
        generator = SchemaGenerator(config, provider)
        report = generator.generate()
        assert report.success
        assert generator.relationships == ()
        assert report.generated_collections == ["posts", "authors", "categories"]

    def test_collection_list_failure_is_fatal(
        self, snapshot_dict: Dict[str, Any], tmp_path: pathlib.Path
    ) -> None:
        provider = FlakyProvider(snapshot_dict, fail_collections=True)
        config = GenerationConfig(output_dir=str(tmp_path / "out"))
        report = SchemaGenerator(config, provider).generate()
        assert not report.success
        assert report.generation_errors[0].startswith("Could not list collections")
        assert not (tmp_path / "out").exists()

    def test_nothing_generated(self, snapshot_dict: Dict[str, Any], tmp_path: pathlib.Path) -> None:
        config = GenerationConfig(output_dir=str(tmp_path / "out"), collections=["ghost"])
        report = SchemaGenerator(config, SnapshotProvider(snapshot_dict)).generate()
        assert not report.success
        assert any("No collections were generated" in e for e in report.generation_errors)

    def test_missing_source_is_a_validation_error(self, tmp_path: pathlib.Path) -> None:
        report = SchemaGenerator(GenerationConfig(output_dir=str(tmp_path))).generate()
        assert not report.success
        assert any("NO_METADATA_SOURCE" in e for e in report.validation_errors)

    def test_missing_snapshot_file(self, tmp_path: pathlib.Path) -> None:
        config = GenerationConfig(
            snapshot_path=str(tmp_path / "absent.yaml"), output_dir=str(tmp_path / "out")
        )
        report = SchemaGenerator(config).generate()
        assert not report.success
        assert report.generation_errors[0].startswith("Metadata source unavailable")

    def test_generate_collection(self, snapshot_config: GenerationConfig) -> None:
        artifact = SchemaGenerator(snapshot_config).generate_collection("posts")
        assert artifact.singular_name == "Post"
        assert not artifact.deferred
        assert set(artifact.references or ()) == {"Author", "Category", "DirectusUser"}


# ===========================================================================
# Configuration loading
# ===========================================================================


class TestConfigLoading:
    def test_nested_config_key(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "drxgen.yaml"
        path.write_text(
            "config:\n  snapshot_path: snap.yaml\n  exclude_collections: [tags]\n",
            encoding="utf-8",
        )
        config = load_config_file(path, {"output_dir": "out", "token": None})
        assert config.snapshot_path == "snap.yaml"
        assert config.exclude_collections == ["tags"]
        assert config.output_dir == "out"

    def test_overrides_win(self) -> None:
        config = build_config({"output_dir": "a"}, {"output_dir": "b"})
        assert config.output_dir == "b"

    def test_invalid_values(self) -> None:
        with pytest.raises(ValueError, match="Config validation failed"):
            build_config({"max_workers": 0})

    def test_unknown_key(self) -> None:
        with pytest.raises(ValueError):
            build_config({"not_a_setting": True})

    def test_missing_file(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config_file(tmp_path / "absent.yaml")
