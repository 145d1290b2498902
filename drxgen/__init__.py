# File: drxgen/__init__.py
"""
drxgen — Zod Schema & TypeScript Type Generator for Directus
=============================================================

Reads collection, field and relation metadata from a Directus backend (or
a schema snapshot) and writes one TypeScript module per collection, each
holding Zod validators and matching TypeScript types.

Architecture overview::

    ┌──────────────┐     ┌─────────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ SchemaGenerator │────▶│ TemplateGenerator│
    │   (cli.py)   │     │  (generator.py) │     │  (templates.py)  │
    └──────────────┘     └────────┬────────┘     └────────┬─────────┘
                                  │                       │
          ┌──────────┬────────────┼────────────┐    ┌─────┴────────┐
          ▼          ▼            ▼            ▼    ▼              ▼
     ┌────────┐ ┌──────────┐ ┌─────────┐ ┌─────────┐ ┌──────────┐ ┌─────────────┐
     │ client │ │validators│ │ planner │ │exporters│ │classifier│ │relationships│
     └────────┘ └──────────┘ └────┬────┘ └─────────┘ └──────────┘ └─────────────┘
                                  ▼
                           ┌────────────┐
                           │dependencies│
                           └────────────┘

Usage::

    # As a library
    from drxgen import SchemaGenerator, GenerationConfig
    report = SchemaGenerator(GenerationConfig(snapshot_path="snapshot.yaml")).generate()

    # From the command line
    python -m drxgen --snapshot snapshot.yaml --output ./generated -v
"""

from __future__ import annotations

__version__: str = "1.0.0"
__license__: str = "MIT"

from drxgen.models import (
    EntityDescriptor,
    FieldClassification,
    FieldDescriptor,
    FieldKind,
    GeneratedArtifact,
    GenerationConfig,
    RelationCardinality,
    RelationshipRecord,
)
from drxgen.utils import (
    Timer,
    entity_singular_name,
    module_name,
    to_kebab_case,
    to_pascal_case,
    to_plural,
    to_singular,
)
from drxgen.classifier import classify
from drxgen.relationships import resolve_target
from drxgen.templates import TemplateGenerator
from drxgen.dependencies import build_dependency_graph, detect_circular_dependencies
from drxgen.planner import apply_second_pass, plan_imports, render_all
from drxgen.validators import ValidationResult, validate_entities
from drxgen.client import DirectusClient, MetadataError, SnapshotProvider
from drxgen.exporters import ExportManifest, ExportResult, ProjectExporter
from drxgen.generator import GenerationReport, SchemaGenerator, load_config_file

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__license__",
    # Core orchestrator
    "SchemaGenerator",
    "GenerationReport",
    "load_config_file",
    # Models
    "EntityDescriptor",
    "FieldClassification",
    "FieldDescriptor",
    "FieldKind",
    "GeneratedArtifact",
    "GenerationConfig",
    "RelationCardinality",
    "RelationshipRecord",
    # Pipeline stages
    "classify",
    "resolve_target",
    "TemplateGenerator",
    "build_dependency_graph",
    "detect_circular_dependencies",
    "apply_second_pass",
    "plan_imports",
    "render_all",
    # Validation
    "ValidationResult",
    "validate_entities",
    # Metadata providers
    "DirectusClient",
    "MetadataError",
    "SnapshotProvider",
    # Exporters
    "ProjectExporter",
    "ExportManifest",
    "ExportResult",
    # Utilities
    "Timer",
    "entity_singular_name",
    "module_name",
    "to_kebab_case",
    "to_pascal_case",
    "to_plural",
    "to_singular",
]
