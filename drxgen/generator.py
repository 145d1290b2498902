# File: drxgen/generator.py
"""
drxgen - Generation Pipeline (Orchestrator)
============================================

Connects every phase::

    Metadata provider → Relations → Collection selection
        → per collection: fields → classify → emit        (may run in parallel)
        ── barrier ──
        → dependency graph → cycles → second pass
        → metadata validation → file schemas → render → export

The ``SchemaGenerator`` class is both the programmatic API and the backend
for the CLI.

Error handling strategy:
    - Configuration and input problems raise ``ValueError`` /
      ``FileNotFoundError`` before anything runs.
    - Authentication or collection-list failures end the run; the report
      says why.
    - Relation-list failure degrades to an empty relationship index.
    - A collection that fails to fetch or emit is skipped and listed in the
      report; the batch continues.
    - Missing file-entity metadata falls back to the fixed file schemas.
"""

from __future__ import annotations

import functools
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    AbstractSet,
    Any,
    Dict,
    FrozenSet,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from pydantic import ValidationError as PydanticValidationError

from drxgen.client import (
    DirectusClient,
    MetadataError,
    MetadataProvider,
    create_provider,
    load_data_file,
)
from drxgen.dependencies import (
    CycleSet,
    DependencyGraph,
    build_dependency_graph,
    detect_circular_dependencies,
)
from drxgen.exporters import ExportManifest, ExportResult, ProjectExporter
from drxgen.models import (
    EntityDescriptor,
    FieldDescriptor,
    GeneratedArtifact,
    GenerationConfig,
    RelationshipIndex,
    RelationshipRecord,
)
from drxgen.planner import FILE_SCHEMAS_PATH, apply_second_pass, render_all
from drxgen.templates import TemplateGenerator
from drxgen.utils import NAMESPACE_PREFIX, Timer, count_lines
from drxgen.validators import ValidationResult, validate_config, validate_entities

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("drxgen.generator")

#: Backend collection whose fields describe file objects.
FILES_COLLECTION: str = "directus_files"


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Everything ``SchemaGenerator.generate()`` has to say about one run.

    ``files`` holds the rendered modules (relative path -> text) even in
    dry-run mode, when nothing is written.
    """

    success: bool = False
    dry_run: bool = False
    output_directory: str = ""

    # Metrics
    total_collections: int = 0
    generated_collections: List[str] = field(default_factory=list)
    deferred_collections: List[str] = field(default_factory=list)
    cycles: CycleSet = field(default_factory=list)
    total_files: int = 0
    total_bytes: int = 0
    total_lines: int = 0
    total_elapsed_seconds: float = 0.0
    used_fallback_file_schemas: bool = False

    # Sub-reports
    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)
    generation_errors: List[str] = field(default_factory=list)
    export_errors: List[str] = field(default_factory=list)
    skipped_collections: List[str] = field(default_factory=list)

    files: Dict[str, str] = field(default_factory=dict)
    manifest: Optional[ExportManifest] = None

    def summary(self) -> str:
        """Human-readable summary."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        if self.dry_run:
            status += " (dry run)"
        lines.append(f"{'='*60}")
        lines.append("  drxgen — Generation Report")
        lines.append(f"{'='*60}")
        lines.append(f"  Status:           {status}")
        lines.append(f"  Output:           {self.output_directory}")
        lines.append(f"  Collections:      {len(self.generated_collections)}/{self.total_collections}")
        lines.append(f"  Deferred:         {len(self.deferred_collections)}")
        lines.append(f"  Cycles:           {len(self.cycles)}")
        lines.append(f"  Files generated:  {self.total_files}")
        lines.append(f"  Total lines:      {self.total_lines:,}")
        lines.append(f"  Total bytes:      {self.total_bytes:,}")
        lines.append(f"  File schemas:     {'fallback' if self.used_fallback_file_schemas else 'dynamic'}")
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")
        lines.append(f"{'─'*60}")

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<28s} "
                    f"{step.elapsed_seconds:>7.3f}s  "
                    f"{step.detail}"
                )

        sections: Tuple[Tuple[str, List[str], str], ...] = (
            ("Validation Errors", self.validation_errors, "✗"),
            ("Validation Warnings", self.validation_warnings, "⚠"),
            ("Generation Errors", self.generation_errors, "✗"),
            ("Export Errors", self.export_errors, "✗"),
            ("Skipped Collections", self.skipped_collections, "⊘"),
        )
        for title, items, icon in sections:
            if not items:
                continue
            lines.append(f"{'─'*60}")
            lines.append(f"  {title} ({len(items)}):")
            for item in items:
                lines.append(f"    {icon} {item}")

        lines.append(f"{'='*60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Configuration loading
# ---------------------------------------------------------------------------


def load_config_file(
    path: Path, overrides: Optional[Mapping[str, Any]] = None
) -> GenerationConfig:
    """
    Load a ``GenerationConfig`` from a JSON/YAML file.

    Settings may sit at the top level or under a ``config`` key.  Keys in
    *overrides* whose value is not ``None`` replace file values.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed or fails validation.
    """
    raw: Dict[str, Any] = load_data_file(Path(path))
    data: Dict[str, Any] = dict(raw["config"]) if isinstance(raw.get("config"), dict) else raw
    return build_config(data, overrides)


def build_config(
    data: Optional[Mapping[str, Any]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> GenerationConfig:
    """Merge *overrides* (ignoring ``None`` values) into *data* and validate."""
    merged: Dict[str, Any] = dict(data or {})
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})
    try:
        return GenerationConfig.model_validate(merged)
    except PydanticValidationError as exc:
        raise ValueError(f"Config validation failed: {exc}") from exc


# ---------------------------------------------------------------------------
# SchemaGenerator (orchestrator)
# ---------------------------------------------------------------------------


class SchemaGenerator:
    """
    Pipeline orchestrator.

    Usage::

        config = load_config_file(Path("drxgen.yaml"))
        generator = SchemaGenerator(config)
        report = generator.generate()
        print(report.summary())

    *provider* defaults to a snapshot provider when ``snapshot_path`` is
    set and an HTTP client otherwise.
    """

    def __init__(
        self,
        config: GenerationConfig,
        provider: Optional[MetadataProvider] = None,
        *,
        dry_run: bool = False,
    ) -> None:
        self._config: GenerationConfig = config
        self._provider: Optional[MetadataProvider] = provider
        self._owns_provider: bool = provider is None
        self._dry_run: bool = dry_run
        self._emitter: TemplateGenerator = TemplateGenerator(config)
        self._relationships: RelationshipIndex = ()

        logger.debug(
            "SchemaGenerator initialised: output=%s, workers=%d, dry_run=%s.",
            config.output_dir,
            config.max_workers,
            dry_run,
        )

    @property
    def provider(self) -> MetadataProvider:
        if self._provider is None:
            self._provider = create_provider(self._config)
        return self._provider

    @property
    def relationships(self) -> RelationshipIndex:
        return self._relationships

    def close(self) -> None:
        """Close the provider if this generator created it."""
        if self._owns_provider and isinstance(self._provider, DirectusClient):
            self._provider.close()
            self._provider = None

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def generate(self) -> GenerationReport:
        """Run the full pipeline and return the report."""
        try:
            return self._run_pipeline()
        finally:
            self.close()

    def _run_pipeline(self) -> GenerationReport:
        report: GenerationReport = GenerationReport(dry_run=self._dry_run)
        report.output_directory = str(Path(self._config.output_dir).resolve())
        pipeline_start: float = time.perf_counter()

        def _finish() -> GenerationReport:
            return self._finalise_report(report, time.perf_counter() - pipeline_start)

        if not self._step_validate_config(report):
            return _finish()
        if not self._step_authenticate(report):
            return _finish()

        self._step_load_relations(report)

        collections: Optional[List[str]] = self._step_select_collections(report)
        if collections is None:
            return _finish()

        entities, first_pass = self._step_emit(collections, report)
        if not first_pass:
            report.generation_errors.append("No collections were generated — aborting.")
            return _finish()

        cycles: CycleSet = self._step_detect_cycles(first_pass, report)
        final: Dict[str, GeneratedArtifact] = self._step_second_pass(
            first_pass, entities, cycles, report
        )
        self._step_validate_metadata(list(entities.values()), cycles, report)

        files: Dict[str, str] = self._step_render(final, report)
        report.files = files

        if not self._dry_run:
            self._step_export(files, report)
        else:
            report.total_files = len(files)
            report.total_lines = sum(count_lines(c) for c in files.values())
            report.total_bytes = sum(len(c.encode("utf-8")) for c in files.values())
            logger.info("Dry run: %d files rendered, nothing written.", len(files))

        return _finish()

    def generate_collection(self, collection: str) -> GeneratedArtifact:
        """
        Emit a single collection's first-pass artifact without writing.

        Every resolved relation target is trusted, since no run selection
        exists here.

        Raises:
            MetadataError: If the metadata cannot be fetched.
        """
        self.provider.authenticate()
        if not self._relationships:
            self._relationships = self._load_relationships()
        entity: EntityDescriptor = self._fetch_entity(collection)
        return self._emitter.generate_entity(entity, self._relationships)

    # -----------------------------------------------------------------
    # Pipeline step: configuration
    # -----------------------------------------------------------------

    def _step_validate_config(self, report: GenerationReport) -> bool:
        with Timer("validate_config") as t:
            result: ValidationResult = validate_config(self._config)
            if self._provider is not None:
                # An injected provider is the metadata source.
                result = self._without_source_error(result)

        report.validation_errors.extend(str(e) for e in result.errors)
        report.validation_warnings.extend(str(w) for w in result.warnings)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Validate Config",
            success=result.is_valid,
            elapsed_seconds=t.elapsed,
            detail=f"{len(result.errors)} error(s), {len(result.warnings)} warning(s)",
        ))
        for err in result.errors:
            logger.error("  ✗ %s", err)
        return result.is_valid

    @staticmethod
    def _without_source_error(result: ValidationResult) -> ValidationResult:
        filtered: ValidationResult = ValidationResult()
        for item in result.all_items:
            if item.code == "NO_METADATA_SOURCE":
                continue
            getattr(filtered, f"add_{item.level}")(item.code, item.message, item.context)
        return filtered

    # -----------------------------------------------------------------
    # Pipeline step: authentication & relations
    # -----------------------------------------------------------------

    def _step_authenticate(self, report: GenerationReport) -> bool:
        with Timer("authenticate") as t:
            try:
                self.provider.authenticate()
                ok, detail = True, "ok"
            except (MetadataError, FileNotFoundError, ValueError) as exc:
                ok, detail = False, str(exc)
                report.generation_errors.append(f"Metadata source unavailable: {exc}")
                logger.error("Metadata source unavailable: %s", exc)

        report.step_metrics.append(GenerationStepMetric(
            step_name="Authenticate",
            success=ok,
            elapsed_seconds=t.elapsed,
            detail=detail,
        ))
        return ok

    def _load_relationships(self) -> RelationshipIndex:
        """Fetch and adapt the relation list; failure yields an empty index."""
        try:
            payloads: List[Dict[str, Any]] = self.provider.get_relations()
        except MetadataError as exc:
            logger.warning("Could not load relations, continuing without: %s", exc)
            return ()

        records: List[RelationshipRecord] = []
        for payload in payloads:
            try:
                records.append(RelationshipRecord.from_directus(payload))
            except (PydanticValidationError, AttributeError) as exc:
                logger.warning("Ignoring malformed relation %r: %s", payload, exc)
        return tuple(records)

    def _step_load_relations(self, report: GenerationReport) -> None:
        with Timer("load_relations") as t:
            self._relationships = self._load_relationships()

        report.step_metrics.append(GenerationStepMetric(
            step_name="Load Relations",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{len(self._relationships)} relations",
        ))
        logger.info("Loaded %d relations.", len(self._relationships))

    # -----------------------------------------------------------------
    # Pipeline step: collection selection
    # -----------------------------------------------------------------

    def select_collections(self, payloads: Sequence[Mapping[str, Any]]) -> List[str]:
        """
        Names of the collections to generate, in backend order.

        Folder groups (no database table) are never generated.  An explicit
        ``collections`` list selects exactly those names, system ones
        included; otherwise system collections need
        ``include_system_collections``.  ``exclude_collections`` always wins.
        """
        requested: Optional[Set[str]] = (
            set(self._config.collections) if self._config.collections else None
        )
        excluded: Set[str] = set(self._config.exclude_collections)

        selected: List[str] = []
        for payload in payloads:
            name: Any = payload.get("collection")
            if not isinstance(name, str) or not name:
                continue
            if payload.get("schema") is None:
                logger.debug("Skipping folder collection '%s'.", name)
                continue
            if name in excluded:
                continue
            if requested is not None:
                if name in requested:
                    selected.append(name)
            elif self._config.include_system_collections or not name.startswith(NAMESPACE_PREFIX):
                selected.append(name)

        if requested is not None:
            missing: Set[str] = requested - set(selected) - excluded
            for name in sorted(missing):
                logger.warning("Requested collection '%s' was not found.", name)
        return selected

    def _step_select_collections(self, report: GenerationReport) -> Optional[List[str]]:
        with Timer("select_collections") as t:
            try:
                payloads: List[Dict[str, Any]] = self.provider.get_collections()
            except MetadataError as exc:
                report.generation_errors.append(f"Could not list collections: {exc}")
                logger.error("Could not list collections: %s", exc)
                report.step_metrics.append(GenerationStepMetric(
                    step_name="Select Collections",
                    success=False,
                    elapsed_seconds=t.elapsed,
                    detail=str(exc),
                ))
                return None
            selected: List[str] = self.select_collections(payloads)

        report.total_collections = len(selected)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Select Collections",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{len(selected)} of {len(payloads)} collections",
        ))
        logger.info("Selected %d collection(s): %s", len(selected), ", ".join(selected))
        return selected

    # -----------------------------------------------------------------
    # Pipeline step: first-pass emission
    # -----------------------------------------------------------------

    def _fetch_entity(self, collection: str) -> EntityDescriptor:
        fields: List[Dict[str, Any]] = self.provider.get_fields(collection)
        return EntityDescriptor.from_directus(collection, fields)

    def _emit_one(
        self, collection: str, generated: AbstractSet[str]
    ) -> Tuple[str, Optional[EntityDescriptor], Optional[GeneratedArtifact], Optional[str]]:
        """Fetch and emit one collection; errors are returned, not raised."""
        try:
            entity: EntityDescriptor = self._fetch_entity(collection)
            artifact: GeneratedArtifact = self._emitter.generate_entity(
                entity, self._relationships, generated=generated
            )
            return collection, entity, artifact, None
        except Exception as exc:
            logger.warning("Skipping collection '%s': %s", collection, exc, exc_info=True)
            return collection, None, None, f"{type(exc).__name__}: {exc}"

    def _step_emit(
        self, collections: Sequence[str], report: GenerationReport
    ) -> Tuple[Dict[str, EntityDescriptor], Dict[str, GeneratedArtifact]]:
        """
        First pass over every selected collection.

        Runs on a thread pool when ``max_workers`` > 1.  Results keep the
        selection order either way.  Relations only point at selected
        collections; when a collection fails, the artifacts that referenced
        it are emitted again without that reference.
        """
        entities: Dict[str, EntityDescriptor] = {}
        artifacts: Dict[str, GeneratedArtifact] = {}
        emit = functools.partial(self._emit_one, generated=frozenset(collections))

        with Timer("first_pass") as t:
            workers: int = min(self._config.max_workers, max(len(collections), 1))
            if workers > 1:
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="drxgen") as pool:
                    results = list(pool.map(emit, collections))
            else:
                results = [emit(c) for c in collections]

        for collection, entity, artifact, error in results:
            if error is not None or entity is None or artifact is None:
                report.skipped_collections.append(f"{collection} ({error})")
                continue
            entities[collection] = entity
            artifacts[collection] = artifact

        if report.skipped_collections:
            self._drop_skipped_references(entities, artifacts)

        report.generated_collections = list(artifacts)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Emit (first pass)",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{len(artifacts)} emitted, {len(report.skipped_collections)} skipped",
        ))
        return entities, artifacts

    def _drop_skipped_references(
        self,
        entities: Mapping[str, EntityDescriptor],
        artifacts: Dict[str, GeneratedArtifact],
    ) -> None:
        produced: FrozenSet[str] = frozenset(artifacts)
        names: Set[str] = {a.singular_name for a in artifacts.values()}
        for collection, artifact in list(artifacts.items()):
            if all(ref in names for ref in artifact.references or ()):
                continue
            artifacts[collection] = self._emitter.generate_entity(
                entities[collection], self._relationships, generated=produced
            )
            logger.debug("Re-emitted '%s' without references to skipped collections.", collection)

    # -----------------------------------------------------------------
    # Pipeline step: cycles & second pass
    # -----------------------------------------------------------------

    def _step_detect_cycles(
        self, first_pass: Mapping[str, GeneratedArtifact], report: GenerationReport
    ) -> CycleSet:
        with Timer("detect_cycles") as t:
            graph: DependencyGraph = build_dependency_graph(first_pass.values())
            cycles: CycleSet = detect_circular_dependencies(graph)

        report.cycles = cycles
        report.step_metrics.append(GenerationStepMetric(
            step_name="Detect Cycles",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{len(graph)} nodes, {len(cycles)} cycle(s)",
        ))
        return cycles

    def _step_second_pass(
        self,
        first_pass: Mapping[str, GeneratedArtifact],
        entities: Mapping[str, EntityDescriptor],
        cycles: CycleSet,
        report: GenerationReport,
    ) -> Dict[str, GeneratedArtifact]:
        with Timer("second_pass") as t:
            final: Dict[str, GeneratedArtifact] = apply_second_pass(
                first_pass, entities, cycles, self._emitter, self._relationships
            )

        report.deferred_collections = [c for c, a in final.items() if a.deferred]
        report.step_metrics.append(GenerationStepMetric(
            step_name="Emit (second pass)",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{len(report.deferred_collections)} deferred",
        ))
        return final

    def _step_validate_metadata(
        self,
        entities: Sequence[EntityDescriptor],
        cycles: CycleSet,
        report: GenerationReport,
    ) -> None:
        with Timer("validate_metadata") as t:
            result: ValidationResult = validate_entities(
                entities,
                self._relationships,
                cycles,
                self._config.custom_field_mappings,
            )

        report.validation_warnings.extend(str(w) for w in result.warnings)
        for warn in result.warnings:
            logger.warning("  ⚠ %s", warn)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Validate Metadata",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{len(result.warnings)} warning(s)",
        ))

    # -----------------------------------------------------------------
    # Pipeline step: rendering
    # -----------------------------------------------------------------

    def build_file_schemas(self) -> Tuple[str, bool]:
        """
        Text of ``file-schemas.ts`` and whether the fallback was used.

        The fallback is a normal outcome when the file entity's fields are
        unavailable or empty.
        """
        try:
            payloads: List[Dict[str, Any]] = self.provider.get_fields(FILES_COLLECTION)
            fields: List[FieldDescriptor] = [FieldDescriptor.from_directus(p) for p in payloads]
        except (MetadataError, PydanticValidationError, KeyError) as exc:
            logger.info("Could not read file metadata (%s); using fallback file schemas.", exc)
            return self._emitter.generate_fallback_file_schemas(), True

        if not fields:
            logger.info("No file metadata available; using fallback file schemas.")
            return self._emitter.generate_fallback_file_schemas(), True
        return self._emitter.generate_file_schemas(fields), False

    def _step_render(
        self, final: Mapping[str, GeneratedArtifact], report: GenerationReport
    ) -> Dict[str, str]:
        with Timer("render") as t:
            files: Dict[str, str] = {}
            file_schemas, used_fallback = self.build_file_schemas()
            files[FILE_SCHEMAS_PATH] = file_schemas
            files.update(render_all(final))

        report.used_fallback_file_schemas = used_fallback
        report.step_metrics.append(GenerationStepMetric(
            step_name="Render Modules",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{len(files)} modules",
        ))
        return files

    # -----------------------------------------------------------------
    # Pipeline step: export
    # -----------------------------------------------------------------

    def _step_export(self, files: Mapping[str, str], report: GenerationReport) -> None:
        with Timer("export") as t:
            exporter: ProjectExporter = ProjectExporter(
                Path(self._config.output_dir),
                clean_before_export=self._config.clean_output,
                generate_manifest=self._config.write_manifest,
            )
            result: ExportResult = exporter.export(files)

        report.total_files = result.manifest.total_files
        report.total_bytes = result.manifest.total_bytes
        report.total_lines = result.manifest.total_lines
        report.export_errors.extend(result.errors)
        report.manifest = result.manifest
        report.step_metrics.append(GenerationStepMetric(
            step_name="Export to Filesystem",
            success=result.success,
            elapsed_seconds=t.elapsed,
            detail=f"{result.manifest.total_files} files, {result.manifest.total_bytes:,} bytes",
        ))

    # -----------------------------------------------------------------
    # Internal: finalise report
    # -----------------------------------------------------------------

    def _finalise_report(
        self, report: GenerationReport, total_elapsed: float
    ) -> GenerationReport:
        report.total_elapsed_seconds = total_elapsed
        report.success = not (
            report.validation_errors or report.generation_errors or report.export_errors
        )
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "FILES_COLLECTION",
    "SchemaGenerator",
    "GenerationReport",
    "GenerationStepMetric",
    "load_config_file",
    "build_config",
]

logger.debug("drxgen.generator loaded.")
