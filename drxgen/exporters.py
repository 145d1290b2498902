# File: drxgen/exporters.py
"""
drxgen - File Organizer
========================
Puts rendered TypeScript modules on disk.

The planner decides *where* each module goes (``system/`` for system
collections, ``file-schemas.ts`` at the root); this module receives the
finished ``relative path -> text`` mapping and only decides *how* to write:

    * every module is replaced atomically (temp sibling + ``os.replace``),
      so an interrupted run never leaves a half-written module;
    * paths resolving outside the output root are refused;
    * with ``clean_before_export`` stale modules from earlier runs are
      pruned first (VCS bookkeeping files survive);
    * ``manifest.json`` lists every module with its SHA-256 so downstream
      tooling can tell what changed.

One failed module does not stop the others; it lands in ``errors``.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Tuple

from drxgen.utils import Timer, count_lines, sha256_hex

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("drxgen.exporters")

MANIFEST_FILENAME: str = "manifest.json"

#: Top-level entries a clean export leaves alone.
_KEEP_ON_CLEAN: FrozenSet[str] = frozenset({".git", ".gitignore", ".gitkeep"})


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileRecord:
    """One module as it landed on disk."""

    relative_path: str
    absolute_path: str
    size_bytes: int
    line_count: int
    sha256: str

    @classmethod
    def for_text(cls, relative_path: str, target: Path, text: str) -> "FileRecord":
        return cls(
            relative_path=relative_path,
            absolute_path=str(target),
            size_bytes=len(text.encode("utf-8")),
            line_count=count_lines(text),
            sha256=sha256_hex(text),
        )


@dataclass(frozen=False, slots=True)
class ExportManifest:
    """Summary of one export; serialised as ``manifest.json``."""

    generator_version: str = ""
    export_timestamp: str = ""
    output_directory: str = ""
    files: List[FileRecord] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def total_bytes(self) -> int:
        return sum(r.size_bytes for r in self.files)

    @property
    def total_lines(self) -> int:
        return sum(r.line_count for r in self.files)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "generator_version": self.generator_version,
            "export_timestamp": self.export_timestamp,
            "output_directory": self.output_directory,
            "total_files": self.total_files,
            "total_bytes": self.total_bytes,
            "total_lines": self.total_lines,
        }
        payload["files"] = [asdict(r) for r in sorted(self.files, key=lambda r: r.relative_path)]
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"


@dataclass(frozen=True, slots=True)
class ExportResult:
    success: bool
    manifest: ExportManifest
    errors: Tuple[str, ...]
    warnings: Tuple[str, ...]
    elapsed_seconds: float


# ---------------------------------------------------------------------------
# Filesystem primitives
# ---------------------------------------------------------------------------


def write_atomic(target: Path, text: str) -> None:
    """
    Replace *target* with *text* in one step.

    The temp file is created next to *target* so ``os.replace`` never
    crosses filesystems.  On any failure (I/O or encoding) the temp file
    is removed and the error propagates.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    handle, temp_name = tempfile.mkstemp(
        dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
    )
    replaced: bool = False
    try:
        with os.fdopen(handle, "wb") as stream:
            stream.write(text.encode("utf-8"))
            stream.flush()
            os.fsync(stream.fileno())
        os.replace(temp_name, target)
        replaced = True
    finally:
        if not replaced and os.path.exists(temp_name):
            os.unlink(temp_name)


def prune_directory(root: Path) -> List[str]:
    """
    Remove everything below *root* except VCS bookkeeping entries.

    Returns one message per entry that could not be removed.
    """
    problems: List[str] = []
    if not root.is_dir():
        return problems
    for entry in sorted(root.iterdir()):
        if entry.name in _KEEP_ON_CLEAN:
            continue
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except OSError as exc:
            problems.append(f"Could not remove {entry}: {exc}")
    return problems


# ---------------------------------------------------------------------------
# Exporter
# ---------------------------------------------------------------------------


class ProjectExporter:
    """
    Writes one generation run below ``output_dir``.

    Usage::

        result = ProjectExporter(Path("./generated"), clean_before_export=True).export(files)
        if not result.success:
            print("\\n".join(result.errors))

    Single use: create a new exporter for every export.
    """

    def __init__(
        self,
        output_dir: Path,
        *,
        clean_before_export: bool = False,
        atomic_writes: bool = True,
        generate_manifest: bool = True,
    ) -> None:
        self._root: Path = Path(output_dir).resolve()
        self._clean: bool = clean_before_export
        self._atomic: bool = atomic_writes
        self._with_manifest: bool = generate_manifest

    @property
    def output_dir(self) -> Path:
        return self._root

    def export(self, generated_files: Mapping[str, str]) -> ExportResult:
        """Write every module in *generated_files* and, if enabled, the manifest."""
        from drxgen import __version__

        manifest: ExportManifest = ExportManifest(
            generator_version=__version__,
            export_timestamp=time.strftime("%Y-%m-%dT%H:%M:%S%z"),
            output_directory=str(self._root),
        )
        errors: List[str] = []
        warnings: List[str] = []

        with Timer("export") as timer:
            if self._clean:
                logger.info("Pruning %s before export.", self._root)
                warnings.extend(prune_directory(self._root))

            for rel_path in generated_files:
                text: str = generated_files[rel_path]
                try:
                    target: Path = self._target_for(rel_path)
                    self._write(target, text)
                except (OSError, ValueError) as exc:
                    errors.append(f"Failed to write {rel_path}: {type(exc).__name__}: {exc}")
                    logger.error(errors[-1])
                    continue
                manifest.files.append(FileRecord.for_text(rel_path, target, text))
                logger.debug("Wrote %s (%d lines).", rel_path, count_lines(text))

            if self._with_manifest:
                try:
                    self._write(self._root / MANIFEST_FILENAME, manifest.to_json())
                except OSError as exc:
                    warnings.append(f"Could not write manifest: {exc}")

        for warning in warnings:
            logger.warning(warning)
        if errors:
            logger.error("Export finished with %d error(s).", len(errors))
        else:
            logger.info(
                "Exported %d modules (%d bytes) to %s.",
                manifest.total_files,
                manifest.total_bytes,
                self._root,
            )

        return ExportResult(
            success=not errors,
            manifest=manifest,
            errors=tuple(errors),
            warnings=tuple(warnings),
            elapsed_seconds=timer.elapsed,
        )

    def _target_for(self, rel_path: str) -> Path:
        target: Path = (self._root / rel_path).resolve()
        if not target.is_relative_to(self._root):
            raise ValueError(f"Path escapes the output directory: {rel_path}")
        return target

    def _write(self, target: Path, text: str) -> None:
        if self._atomic:
            write_atomic(target, text)
            return
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "MANIFEST_FILENAME",
    "ExportManifest",
    "ExportResult",
    "FileRecord",
    "ProjectExporter",
    "prune_directory",
    "write_atomic",
]

logger.debug("drxgen.exporters loaded.")
