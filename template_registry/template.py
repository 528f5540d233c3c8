"""Record types stored by the template registry."""

from dataclasses import dataclass, field
from typing import Any


def _strings(data: dict[str, Any], key: str) -> tuple[str, ...]:
    value = data.get(key, ())
    if isinstance(value, str) or not all(isinstance(item, str) for item in value):
        raise TypeError(f"'{key}' must be a list of strings")
    return tuple(value)


def _flag(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise TypeError(f"'{key}' must be true or false, got {value!r}")
    return value


@dataclass(frozen=True)
class Compatibility:
    """Clarity versions and platforms a template is known to work with."""

    clarity_versions: tuple[str, ...]
    platforms: tuple[str, ...]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Compatibility":
        """Create a Compatibility record from a dictionary (e.g., parsed YAML)."""
        return cls(
            clarity_versions=_strings(data, "clarity_versions"),
            platforms=_strings(data, "platforms"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "clarity_versions": list(self.clarity_versions),
            "platforms": list(self.platforms),
        }


@dataclass(frozen=True)
class Template:
    """A registered template and its metadata.

    The template content itself lives elsewhere; the registry only tracks
    identity, ownership and the version lineage bound to content hashes.
    """

    id: int
    title: str
    description: str
    owner: str
    created_at: int
    last_updated: int
    tags: tuple[str, ...] = field(default_factory=tuple)
    documentation_url: str | None = None
    repository_url: str | None = None
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Template":
        """Create a Template from a dictionary (e.g., parsed YAML)."""
        return cls(
            id=int(data["id"]),
            title=data["title"],
            description=data["description"],
            owner=data["owner"],
            created_at=int(data["created_at"]),
            last_updated=int(data["last_updated"]),
            tags=_strings(data, "tags"),
            documentation_url=data.get("documentation_url"),
            repository_url=data.get("repository_url"),
            is_active=_flag(data, "is_active", True),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert template to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "tags": list(self.tags),
            "owner": self.owner,
            "created_at": self.created_at,
            "last_updated": self.last_updated,
            "documentation_url": self.documentation_url,
            "repository_url": self.repository_url,
            "is_active": self.is_active,
        }

    def __str__(self) -> str:
        return f"Template(id={self.id}, title={self.title})"


@dataclass(frozen=True)
class VersionRecord:
    """A published version: a label bound permanently to a content hash."""

    template_id: int
    version: str
    content_hash: bytes
    published_at: int
    release_notes: str = ""
    is_deprecated: bool = False

    @property
    def content_hash_hex(self) -> str:
        return self.content_hash.hex()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VersionRecord":
        """Create a VersionRecord from a dictionary; the hash is hex-encoded."""
        return cls(
            template_id=int(data["template_id"]),
            version=data["version"],
            content_hash=bytes.fromhex(data["content_hash"]),
            published_at=int(data["published_at"]),
            release_notes=data.get("release_notes", ""),
            is_deprecated=_flag(data, "is_deprecated", False),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "template_id": self.template_id,
            "version": self.version,
            "content_hash": self.content_hash_hex,
            "release_notes": self.release_notes,
            "published_at": self.published_at,
            "is_deprecated": self.is_deprecated,
        }

    def __str__(self) -> str:
        return f"VersionRecord(template_id={self.template_id}, version={self.version})"
