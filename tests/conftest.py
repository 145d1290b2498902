"""
tests/conftest.py
Shared fixtures for the drxgen test suite.

All fixtures are session-scoped or function-scoped as appropriate.
No external mocking libraries are used; HTTP is served by
``httpx.MockTransport`` and file I/O happens inside pytest's tmp_path.
"""

from __future__ import annotations

import copy
import pathlib
from typing import Any, Dict, List, Optional

import pytest
import yaml

from drxgen.client import SnapshotProvider
from drxgen.models import (
    EntityDescriptor,
    FieldDescriptor,
    GenerationConfig,
    RelationshipIndex,
    RelationshipRecord,
)


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
SNAPSHOT_EXAMPLE_PATH: pathlib.Path = ROOT_DIR / "snapshot_example.yaml"


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_field(
    name: str,
    raw_type: str = "string",
    *,
    nullable: bool = True,
    required: bool = False,
    primary_key: bool = False,
    foreign_key_target: Optional[str] = None,
    interface: Optional[str] = None,
    special: Optional[List[str]] = None,
    options: Optional[Dict[str, Any]] = None,
) -> FieldDescriptor:
    """Compact FieldDescriptor factory used throughout the suite."""
    return FieldDescriptor(
        name=name,
        raw_type=raw_type,
        nullable=nullable,
        required=required,
        primary_key=primary_key,
        foreign_key_target=foreign_key_target,
        interface=interface,
        special=frozenset(special or ()),
        options=options or {},
    )


def make_entity(name: str, *fields: FieldDescriptor) -> EntityDescriptor:
    return EntityDescriptor(name=name, fields=tuple(fields))


# ---------------------------------------------------------------------------
# Snapshot fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_snapshot_dict() -> Dict[str, Any]:
    """Load the reference snapshot_example.yaml once per session."""
    assert SNAPSHOT_EXAMPLE_PATH.exists(), (
        f"Reference snapshot not found at {SNAPSHOT_EXAMPLE_PATH}. "
        "Make sure snapshot_example.yaml is in the project root."
    )
    with open(SNAPSHOT_EXAMPLE_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def snapshot_dict(raw_snapshot_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_snapshot_dict)


@pytest.fixture()
def snapshot_yaml_path(snapshot_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the snapshot dict to a temporary YAML file and return its path."""
    path = tmp_path / "snapshot.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(snapshot_dict, fh, default_flow_style=False, allow_unicode=True)
    return path


@pytest.fixture()
def snapshot_provider(snapshot_dict: Dict[str, Any]) -> SnapshotProvider:
    return SnapshotProvider(snapshot_dict, source="snapshot_example.yaml")


@pytest.fixture()
def snapshot_entities(snapshot_provider: SnapshotProvider) -> Dict[str, EntityDescriptor]:
    """Every non-folder collection of the snapshot as an EntityDescriptor."""
    entities: Dict[str, EntityDescriptor] = {}
    for item in snapshot_provider.get_collections():
        if item.get("schema") is None:
            continue
        name = item["collection"]
        entities[name] = EntityDescriptor.from_directus(
            name, snapshot_provider.get_fields(name)
        )
    return entities


@pytest.fixture()
def snapshot_relationships(snapshot_provider: SnapshotProvider) -> RelationshipIndex:
    return tuple(
        RelationshipRecord.from_directus(r) for r in snapshot_provider.get_relations()
    )


# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def snapshot_config(tmp_path: pathlib.Path) -> GenerationConfig:
    """Config pointing at the reference snapshot and a temp output dir."""
    return GenerationConfig(
        snapshot_path=str(SNAPSHOT_EXAMPLE_PATH),
        output_dir=str(tmp_path / "generated"),
    )


@pytest.fixture()
def http_config() -> GenerationConfig:
    return GenerationConfig(
        directus_url="https://cms.example.com/",
        token="static-token",
        additional_headers={"X-Env": "test"},
    )


# ---------------------------------------------------------------------------
# Small entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def post_entity() -> EntityDescriptor:
    """posts: integer id, required title, nullable body, m2o author, audit fields."""
    return make_entity(
        "posts",
        make_field("id", "integer", nullable=False, primary_key=True),
        make_field("title", "character varying", nullable=False, required=True),
        make_field("body", "text"),
        make_field(
            "author",
            "integer",
            foreign_key_target="users",
            interface="select-dropdown-m2o",
            special=["m2o"],
        ),
        make_field("date_created", "timestamp", interface="datetime", special=["date-created"]),
    )


@pytest.fixture()
def user_entity() -> EntityDescriptor:
    """users: uuid id and an o2m alias back to posts."""
    return make_entity(
        "users",
        make_field("id", "uuid", nullable=False, primary_key=True, special=["uuid"]),
        make_field("posts", "alias", interface="list-o2m", special=["o2m"]),
    )


@pytest.fixture()
def user_post_relationships() -> RelationshipIndex:
    return (
        RelationshipRecord(
            one_collection="users",
            one_field="posts",
            many_collection="posts",
            many_field="author",
        ),
    )
