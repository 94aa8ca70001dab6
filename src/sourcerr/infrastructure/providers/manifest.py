"""Provider manifest model and manifest URL helpers."""

from __future__ import annotations

import re
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sourcerr.domain.entities.providers import Provider
from sourcerr.domain.exceptions import ManifestError, UnsupportedSchemeError

_SLUG_RE = re.compile(r"[^a-zA-Z0-9]")
_MANIFEST_SUFFIX = re.compile(r"manifest\.json$", re.IGNORECASE)
_MAX_SLUG = 50


class ManifestResource(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    types: list[str] = Field(default_factory=list)
    id_prefixes: list[str] = Field(default_factory=list, alias="idPrefixes")


class Manifest(BaseModel):
    """The subset of ``manifest.json`` the registry cares about."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = None
    name: str
    version: str = "0.0.0"
    description: str | None = None
    types: list[str] = Field(default_factory=list)
    resources: list[Union[str, ManifestResource]] = Field(default_factory=list)
    id_prefixes: list[str] = Field(default_factory=list, alias="idPrefixes")
    catalogs: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("types", "id_prefixes", "resources", "catalogs", mode="before")
    @classmethod
    def _none_list(cls, v: Any) -> Any:
        return [] if v is None else v

    def stream_resource(self) -> ManifestResource | None:
        """The ``stream`` resource entry; a bare string yields an empty one."""
        for resource in self.resources:
            if isinstance(resource, str):
                if resource == "stream":
                    return ManifestResource(name="stream")
            elif resource.name == "stream":
                return resource
        return None


# --- Public API ---


def ensure_http_url(url: str) -> str:
    stripped = url.strip()
    if not stripped.startswith(("http://", "https://")):
        raise UnsupportedSchemeError(
            f"Unsupported manifest URL {url!r}: only http and https are allowed"
        )
    return stripped


def manifest_fetch_url(manifest_url: str) -> str:
    """``{url}/manifest.json`` unless the URL already points at the manifest."""
    if manifest_url.endswith("manifest.json"):
        return manifest_url
    return f"{manifest_url.rstrip('/')}/manifest.json"


def split_manifest_url(manifest_url: str) -> tuple[str, str | None]:
    """Return ``(base_url, query)`` for building resource URLs.

    The query string is carried over to every resource request since
    many providers encode their configuration there.
    """
    base, _, query = manifest_url.partition("?")
    base = _MANIFEST_SUFFIX.sub("", base).rstrip("/")
    if not base.startswith("http"):
        base = f"https://{base}"
    return base, query or None


def slug_id(manifest_url: str) -> str:
    return _SLUG_RE.sub("-", manifest_url).lower()[:_MAX_SLUG]


def parse_manifest(data: Any) -> Manifest:
    if not isinstance(data, dict):
        raise ManifestError("Manifest is not a JSON object")
    try:
        return Manifest.model_validate(data)
    except ValidationError as exc:
        raise ManifestError(f"Invalid manifest: {exc.error_count()} validation error(s)") from exc


def provider_from_manifest(manifest: Manifest, manifest_url: str) -> Provider:
    stream = manifest.stream_resource()
    base_url, _ = split_manifest_url(manifest_url)
    return Provider(
        id=manifest.id or slug_id(manifest_url),
        name=manifest.name,
        version=manifest.version,
        base_url=base_url,
        original_manifest_url=manifest_url,
        supported_types=frozenset(manifest.types),
        stream_capable=stream is not None,
        id_prefixes=frozenset(manifest.id_prefixes),
        stream_id_prefixes=frozenset(stream.id_prefixes) if stream else frozenset(),
    )
