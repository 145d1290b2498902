# File: drxgen/client.py
"""
drxgen - Metadata Providers
============================
Sources of collection / field / relation metadata for the generator.

    DirectusClient    live backend over HTTP (httpx)
    SnapshotProvider  a ``directus schema snapshot`` file (YAML or JSON)

Both satisfy ``MetadataProvider``, the only interface the orchestrator
uses.  Payloads are returned exactly as the backend shapes them; adapting
them into descriptors is the job of ``drxgen.models``.

Transport and protocol failures raise ``MetadataError``.  Nothing here
retries.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol

import httpx
import yaml

from drxgen.models import GenerationConfig

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("drxgen.client")

DEFAULT_TIMEOUT: float = 30.0


class MetadataError(RuntimeError):
    """Metadata could not be fetched or had an unexpected shape."""


class MetadataProvider(Protocol):
    def authenticate(self) -> None: ...

    def get_collections(self) -> List[Dict[str, Any]]: ...

    def get_fields(self, collection: str) -> List[Dict[str, Any]]: ...

    def get_relations(self) -> List[Dict[str, Any]]: ...


# ---------------------------------------------------------------------------
# Structured file loading
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    """Load and parse a JSON file. Raises ValueError on parse errors."""
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a JSON object at top level, got {type(data).__name__}."
        )
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file. Raises ValueError on parse errors."""
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a YAML mapping at top level, got {type(data).__name__}."
        )
    return data


def load_data_file(path: Path) -> Dict[str, Any]:
    """
    Load a JSON or YAML mapping, dispatching on the file extension.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed or isn't a mapping.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    if suffix == ".json":
        return _load_json_file(path)

    logger.info("Unknown extension '%s' — trying JSON then YAML.", suffix)
    try:
        return _load_json_file(path)
    except ValueError:
        return _load_yaml_file(path)


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


class DirectusClient:
    """
    Thin synchronous client for the Directus REST API.

    Usage::

        with DirectusClient(config) as client:
            client.authenticate()
            collections = client.get_collections()

    The underlying ``httpx.Client`` is shared between threads; httpx
    clients are safe for concurrent requests.
    """

    def __init__(
        self,
        config: GenerationConfig,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not config.directus_url:
            raise ValueError("DirectusClient requires directus_url.")
        self._config: GenerationConfig = config
        self._access_token: Optional[str] = None
        self._http: httpx.Client = httpx.Client(
            base_url=config.directus_url,
            timeout=config.timeout or DEFAULT_TIMEOUT,
            headers=dict(config.additional_headers),
            transport=transport,
        )
        logger.debug("DirectusClient initialised for %s.", config.directus_url)

    # -- Lifecycle ------------------------------------------------------------

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "DirectusClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None

    # -- Transport ------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the ``data`` member of the JSON body."""
        try:
            response: httpx.Response = self._http.request(method, path, **kwargs)
            response.raise_for_status()
            body: Any = response.json()
        except httpx.HTTPStatusError as exc:
            raise MetadataError(
                f"{method} {path} failed with HTTP {exc.response.status_code}."
            ) from exc
        except httpx.HTTPError as exc:
            raise MetadataError(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise MetadataError(f"{method} {path} returned invalid JSON.") from exc

        if not isinstance(body, Mapping) or "data" not in body:
            raise MetadataError(f"{method} {path} returned no 'data' member.")
        return body["data"]

    def _get_list(self, path: str) -> List[Dict[str, Any]]:
        data: Any = self._request("GET", path)
        if data is None:
            return []
        if not isinstance(data, list):
            raise MetadataError(f"GET {path} returned {type(data).__name__}, expected a list.")
        return data

    # -- Authentication -------------------------------------------------------

    def authenticate(self) -> None:
        """
        Use the static token, or log in with email/password.

        Without credentials the client stays anonymous and only sees what
        the backend's public role exposes.
        """
        if self._config.token:
            self._access_token = self._config.token
        elif self._config.email and self._config.password:
            data: Any = self._request(
                "POST",
                "/auth/login",
                json={"email": self._config.email, "password": self._config.password},
            )
            token: Any = data.get("access_token") if isinstance(data, Mapping) else None
            if not token:
                raise MetadataError("Login response contained no access_token.")
            self._access_token = token
            logger.info("Logged in as %s.", self._config.email)
        else:
            logger.warning("No credentials configured; continuing unauthenticated.")
            return

        self._http.headers["Authorization"] = f"Bearer {self._access_token}"

    # -- Metadata endpoints ---------------------------------------------------

    def get_collections(self) -> List[Dict[str, Any]]:
        return self._get_list("/collections")

    def get_fields(self, collection: str) -> List[Dict[str, Any]]:
        return self._get_list(f"/fields/{collection}")

    def get_relations(self) -> List[Dict[str, Any]]:
        return self._get_list("/relations")

    def ping(self) -> bool:
        """True when ``/server/ping`` answers with a 2xx status."""
        try:
            response: httpx.Response = self._http.get("/server/ping")
        except httpx.HTTPError as exc:
            logger.warning("Ping failed: %s", exc)
            return False
        return response.is_success


# ---------------------------------------------------------------------------
# Snapshot provider
# ---------------------------------------------------------------------------


class SnapshotProvider:
    """
    Serves metadata from a schema snapshot instead of a live backend.

    The snapshot holds three lists: ``collections``, ``fields`` (each item
    carrying its ``collection``) and ``relations``.  Fields keep their file
    order per collection.
    """

    def __init__(self, data: Mapping[str, Any], source: str = "<memory>") -> None:
        for key in ("collections", "fields"):
            if not isinstance(data.get(key), list):
                raise ValueError(f"Snapshot {source} has no '{key}' list.")
        self._source: str = source
        self._collections: List[Dict[str, Any]] = list(data["collections"])
        self._relations: List[Dict[str, Any]] = list(data.get("relations") or [])
        self._fields: Dict[str, List[Dict[str, Any]]] = {}
        for item in data["fields"]:
            self._fields.setdefault(item.get("collection", ""), []).append(item)
        logger.debug(
            "Snapshot %s: %d collections, %d fields, %d relations.",
            source,
            len(self._collections),
            sum(len(v) for v in self._fields.values()),
            len(self._relations),
        )

    @classmethod
    def from_file(cls, path: Path) -> "SnapshotProvider":
        return cls(load_data_file(Path(path)), source=str(path))

    def authenticate(self) -> None:
        logger.debug("Snapshot provider needs no authentication.")

    def get_collections(self) -> List[Dict[str, Any]]:
        return list(self._collections)

    def get_fields(self, collection: str) -> List[Dict[str, Any]]:
        return list(self._fields.get(collection, []))

    def get_relations(self) -> List[Dict[str, Any]]:
        return list(self._relations)

    def __repr__(self) -> str:
        return f"<SnapshotProvider {self._source} ({len(self._collections)} collections)>"


def create_provider(config: GenerationConfig) -> MetadataProvider:
    """Snapshot provider when ``snapshot_path`` is set, HTTP client otherwise."""
    if config.snapshot_path:
        return SnapshotProvider.from_file(Path(config.snapshot_path))
    return DirectusClient(config)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DEFAULT_TIMEOUT",
    "MetadataError",
    "MetadataProvider",
    "DirectusClient",
    "SnapshotProvider",
    "create_provider",
    "load_data_file",
]

logger.debug("drxgen.client loaded — %d public symbols.", len(__all__))
