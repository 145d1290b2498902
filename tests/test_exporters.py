"""
tests/test_exporters.py
Unit tests for drxgen.exporters (ProjectExporter) using real file I/O
inside pytest's tmp_path.
"""

from __future__ import annotations

import json
import pathlib

import pytest

from drxgen.exporters import MANIFEST_FILENAME, ProjectExporter, prune_directory, write_atomic
from drxgen.utils import sha256_hex

FILES = {
    "posts.ts": "export interface DrsPost {\n  id: number;\n}\n",
    "system/directus-users.ts": "export interface DrsDirectusUser {\n  id: string;\n}\n",
    "file-schemas.ts": "export interface DrsFile {}\n",
}


class TestProjectExporter:
    def test_writes_files_and_manifest(self, tmp_path: pathlib.Path) -> None:
        out = tmp_path / "out"
        result = ProjectExporter(out).export(FILES)

        assert result.success
        assert result.errors == ()
        for rel, content in FILES.items():
            assert (out / rel).read_text(encoding="utf-8") == content

        manifest = json.loads((out / MANIFEST_FILENAME).read_text(encoding="utf-8"))
        assert manifest["total_files"] == 3
        by_path = {f["relative_path"]: f for f in manifest["files"]}
        assert by_path["posts.ts"]["sha256"] == sha256_hex(FILES["posts.ts"])
        assert by_path["posts.ts"]["line_count"] == 3
        assert result.manifest.total_bytes == sum(len(c.encode()) for c in FILES.values())

    def test_no_manifest(self, tmp_path: pathlib.Path) -> None:
        ProjectExporter(tmp_path, generate_manifest=False).export(FILES)
        assert not (tmp_path / MANIFEST_FILENAME).exists()

    def test_no_temp_files_left(self, tmp_path: pathlib.Path) -> None:
        ProjectExporter(tmp_path).export(FILES)
        assert not list(tmp_path.rglob("*.tmp"))

    def test_overwrites_existing(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "posts.ts").write_text("old", encoding="utf-8")
        ProjectExporter(tmp_path).export({"posts.ts": "new\n"})
        assert (tmp_path / "posts.ts").read_text(encoding="utf-8") == "new\n"

    def test_clean_removes_stale_but_keeps_git(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "stale.ts").write_text("x", encoding="utf-8")
        (tmp_path / "old_dir").mkdir()
        (tmp_path / ".gitkeep").write_text("", encoding="utf-8")

        ProjectExporter(tmp_path, clean_before_export=True).export(FILES)

        assert not (tmp_path / "stale.ts").exists()
        assert not (tmp_path / "old_dir").exists()
        assert (tmp_path / ".gitkeep").exists()
        assert (tmp_path / "posts.ts").exists()

    def test_without_clean_keeps_stale(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "stale.ts").write_text("x", encoding="utf-8")
        ProjectExporter(tmp_path).export(FILES)
        assert (tmp_path / "stale.ts").exists()

    def test_path_escape_is_an_error(self, tmp_path: pathlib.Path) -> None:
        out = tmp_path / "out"
        result = ProjectExporter(out).export({"../evil.ts": "x", "ok.ts": "y\n"})
        assert not result.success
        assert any("evil.ts" in e for e in result.errors)
        assert not (tmp_path / "evil.ts").exists()
        assert (out / "ok.ts").exists()
        assert result.manifest.total_files == 1

    def test_unencodable_module_is_an_error(self, tmp_path: pathlib.Path) -> None:
        result = ProjectExporter(tmp_path, generate_manifest=False).export(
            {"bad.ts": "\ud800", "ok.ts": "y\n"}
        )
        assert not result.success
        assert any("bad.ts" in e and "UnicodeEncodeError" in e for e in result.errors)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["ok.ts"]

    def test_non_atomic_mode(self, tmp_path: pathlib.Path) -> None:
        result = ProjectExporter(tmp_path, atomic_writes=False).export({"a.ts": "a\n"})
        assert result.success
        assert (tmp_path / "a.ts").read_text(encoding="utf-8") == "a\n"


class TestPrimitives:
    def test_write_atomic_creates_parents(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "a" / "b" / "mod.ts"
        write_atomic(target, "x\n")
        assert target.read_text(encoding="utf-8") == "x\n"
        assert [p.name for p in target.parent.iterdir()] == ["mod.ts"]

    def test_write_atomic_encoding_failure_leaves_no_temp(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "mod.ts"
        with pytest.raises(UnicodeEncodeError):
            write_atomic(target, "const x = \"\ud800\";\n")
        assert list(tmp_path.iterdir()) == []

    def test_write_atomic_failure_keeps_previous_text(self, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "mod.ts"
        write_atomic(target, "old\n")
        with pytest.raises(UnicodeEncodeError):
            write_atomic(target, "\ud800")
        assert target.read_text(encoding="utf-8") == "old\n"
        assert [p.name for p in tmp_path.iterdir()] == ["mod.ts"]

    def test_prune_missing_directory(self, tmp_path: pathlib.Path) -> None:
        assert prune_directory(tmp_path / "absent") == []
