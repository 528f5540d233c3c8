"""TemplateRegistry class holding templates, compatibility and version lineage."""

import logging
import os
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterator, Sequence

import yaml

from .errors import ErrorKind, RegistryError
from .template import Compatibility, Template, VersionRecord
from .validation import (
    MAX_VERSIONS,
    is_valid_version,
    validate_compatibility,
    validate_content_hash,
    validate_metadata,
    validate_release_notes,
)

logger = logging.getLogger(__name__)


class TemplateRegistry:
    """Registry of templates, their compatibility records and version histories.

    Every mutating operation receives the calling identity and the current
    logical time explicitly. A call either applies all of its effects or
    raises RegistryError without touching any state: all checks run before
    the first write.
    """

    def __init__(self) -> None:
        self._templates: dict[int, Template] = {}
        self._compatibility: dict[int, Compatibility] = {}
        self._versions: dict[tuple[int, str], VersionRecord] = {}
        self._version_index: dict[int, list[str]] = {}
        self._template_count = 0
        self._height = 0

    @property
    def height(self) -> int:
        """Highest logical time seen by a committed operation."""
        return self._height

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check_context(self, caller: str, height: int) -> None:
        if not caller:
            raise RegistryError(ErrorKind.INVALID_CALL_CONTEXT, "caller identity is empty")
        if isinstance(height, bool) or not isinstance(height, int) or height < 0:
            raise RegistryError(
                ErrorKind.INVALID_CALL_CONTEXT, f"invalid logical time: {height!r}"
            )
        if height < self._height:
            raise RegistryError(
                ErrorKind.INVALID_CALL_CONTEXT,
                f"logical time {height} is behind current time {self._height}",
            )

    def _require_template(self, template_id: int) -> Template:
        template = self._templates.get(template_id)
        if template is None:
            raise RegistryError(
                ErrorKind.TEMPLATE_NOT_FOUND, f"template {template_id} does not exist"
            )
        return template

    @staticmethod
    def _require_owner(template: Template, caller: str) -> None:
        if template.owner != caller:
            logger.debug(f"{caller} denied on template {template.id}")
            raise RegistryError(
                ErrorKind.NOT_AUTHORIZED,
                f"{caller} is not the owner of template {template.id}",
            )

    def _owned_template(self, template_id: int, caller: str, height: int) -> Template:
        self._check_context(caller, height)
        template = self._require_template(template_id)
        self._require_owner(template, caller)
        return template

    def _commit(self, template: Template, height: int) -> None:
        self._templates[template.id] = replace(template, last_updated=height)
        self._height = height

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------

    def register_template(
        self,
        title: str,
        description: str,
        tags: Sequence[str],
        clarity_versions: Sequence[str],
        platforms: Sequence[str],
        documentation_url: str | None = None,
        repository_url: str | None = None,
        *,
        caller: str,
        height: int,
    ) -> int:
        """
        Register a new template owned by the caller.

        Args:
            title: Non-empty title, at most 50 characters.
            description: Non-empty description, at most 500 characters.
            tags: Up to 5 tags of at most 20 characters each.
            clarity_versions: 1-5 supported Clarity versions.
            platforms: 1-3 supported platforms.
            documentation_url: Optional documentation link.
            repository_url: Optional source repository link.
            caller: Identity that becomes the owner.
            height: Current logical time.

        Returns:
            The new template id (1 for the first template).
        """
        self._check_context(caller, height)
        validate_metadata(title, description, tags, documentation_url, repository_url)
        validate_compatibility(clarity_versions, platforms)

        template_id = self._template_count + 1
        self._templates[template_id] = Template(
            id=template_id,
            title=title,
            description=description,
            tags=tuple(tags),
            owner=caller,
            created_at=height,
            last_updated=height,
            documentation_url=documentation_url,
            repository_url=repository_url,
        )
        self._compatibility[template_id] = Compatibility(
            clarity_versions=tuple(clarity_versions), platforms=tuple(platforms)
        )
        self._version_index[template_id] = []
        self._template_count = template_id
        self._height = height

        logger.info(f"Registered template {template_id} '{title}' for {caller}")
        return template_id

    def update_metadata(
        self,
        template_id: int,
        title: str,
        description: str,
        tags: Sequence[str],
        documentation_url: str | None = None,
        repository_url: str | None = None,
        *,
        caller: str,
        height: int,
    ) -> None:
        """Replace title, description, tags and URLs of an owned template."""
        template = self._owned_template(template_id, caller, height)
        validate_metadata(title, description, tags, documentation_url, repository_url)

        self._commit(
            replace(
                template,
                title=title,
                description=description,
                tags=tuple(tags),
                documentation_url=documentation_url,
                repository_url=repository_url,
            ),
            height,
        )
        logger.info(f"Updated metadata of template {template_id}")

    def update_compatibility(
        self,
        template_id: int,
        clarity_versions: Sequence[str],
        platforms: Sequence[str],
        *,
        caller: str,
        height: int,
    ) -> None:
        """Replace the compatibility record of an owned template wholesale."""
        template = self._owned_template(template_id, caller, height)
        validate_compatibility(clarity_versions, platforms)

        self._compatibility[template_id] = Compatibility(
            clarity_versions=tuple(clarity_versions), platforms=tuple(platforms)
        )
        self._commit(template, height)
        logger.info(f"Updated compatibility of template {template_id}")

    def publish_version(
        self,
        template_id: int,
        version: str,
        content_hash: bytes | str,
        release_notes: str = "",
        *,
        caller: str,
        height: int,
    ) -> VersionRecord:
        """
        Publish a new version of an owned template.

        The (template, version) pair can be published only once and is
        never overwritten. The version is appended to the template's
        version list, which holds at most 20 entries.

        Args:
            template_id: Template to publish under.
            version: Version label, 3-10 characters containing a ".".
            content_hash: 32 raw bytes or their hex encoding.
            release_notes: At most 200 characters.

        Returns:
            The stored VersionRecord.
        """
        template = self._owned_template(template_id, caller, height)

        if not is_valid_version(version):
            raise RegistryError(
                ErrorKind.INVALID_VERSION, f"'{version}' is not a valid version label"
            )
        if (template_id, version) in self._versions:
            raise RegistryError(
                ErrorKind.VERSION_ALREADY_EXISTS,
                f"version {version} of template {template_id} is already published",
            )
        digest = validate_content_hash(content_hash)
        validate_release_notes(release_notes)

        index = self._version_index[template_id]
        if len(index) >= MAX_VERSIONS:
            raise RegistryError(
                ErrorKind.VERSION_LIMIT_EXCEEDED,
                f"template {template_id} already has {MAX_VERSIONS} versions",
            )

        record = VersionRecord(
            template_id=template_id,
            version=version,
            content_hash=digest,
            release_notes=release_notes,
            published_at=height,
        )
        self._versions[(template_id, version)] = record
        index.append(version)
        self._commit(template, height)

        logger.info(f"Published version {version} of template {template_id}")
        return record

    def deprecate_version(
        self, template_id: int, version: str, *, caller: str, height: int
    ) -> None:
        """
        Mark a published version as deprecated.

        Deprecation is one-way. Deprecating an already deprecated version
        succeeds and changes nothing.
        """
        self._check_context(caller, height)
        template = self._require_template(template_id)
        record = self._versions.get((template_id, version))
        if record is None:
            raise RegistryError(
                ErrorKind.VERSION_NOT_FOUND,
                f"version {version} of template {template_id} does not exist",
            )
        self._require_owner(template, caller)

        if record.is_deprecated:
            return

        self._versions[(template_id, version)] = replace(record, is_deprecated=True)
        self._commit(template, height)
        logger.info(f"Deprecated version {version} of template {template_id}")

    def transfer_ownership(
        self, template_id: int, new_owner: str, *, caller: str, height: int
    ) -> None:
        """Hand an owned template, with all its records, to another identity."""
        template = self._owned_template(template_id, caller, height)
        if not new_owner:
            raise RegistryError(ErrorKind.INVALID_CALL_CONTEXT, "new owner is empty")

        self._commit(replace(template, owner=new_owner), height)
        logger.info(f"Transferred template {template_id} from {caller} to {new_owner}")

    def _set_active(
        self, template_id: int, active: bool, caller: str, height: int
    ) -> None:
        template = self._owned_template(template_id, caller, height)
        if template.is_active == active:
            return

        self._commit(replace(template, is_active=active), height)
        logger.info(
            f"{'Reactivated' if active else 'Deactivated'} template {template_id}"
        )

    def deactivate_template(self, template_id: int, *, caller: str, height: int) -> None:
        """Mark an owned template inactive. No-op if already inactive."""
        self._set_active(template_id, False, caller, height)

    def reactivate_template(self, template_id: int, *, caller: str, height: int) -> None:
        """Mark an owned template active again. No-op if already active."""
        self._set_active(template_id, True, caller, height)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    def get_template_count(self) -> int:
        return self._template_count

    def get_template(self, template_id: int) -> Template | None:
        return self._templates.get(template_id)

    def get_compatibility(self, template_id: int) -> Compatibility | None:
        return self._compatibility.get(template_id)

    def get_version(self, template_id: int, version: str) -> VersionRecord | None:
        return self._versions.get((template_id, version))

    def get_version_list(self, template_id: int) -> list[str] | None:
        """Version labels of a template in publication order."""
        index = self._version_index.get(template_id)
        return list(index) if index is not None else None

    def is_owner(self, template_id: int, identity: str) -> bool:
        template = self._templates.get(template_id)
        return template is not None and template.owner == identity

    def list_templates(self, owner: str | None = None) -> list[Template]:
        """Get all templates ordered by id, optionally only those of one owner."""
        return [
            self._templates[template_id]
            for template_id in sorted(self._templates)
            if owner is None or self._templates[template_id].owner == owner
        ]

    def __len__(self) -> int:
        return self._template_count

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._templates

    def __iter__(self) -> Iterator[Template]:
        return iter(self.list_templates())

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Snapshot the full registry state as plain data."""
        return {
            "template_count": self._template_count,
            "height": self._height,
            "templates": [t.to_dict() for t in self.list_templates()],
            "compatibility": {
                template_id: compat.to_dict()
                for template_id, compat in sorted(self._compatibility.items())
            },
            "versions": [
                self._versions[(template_id, version)].to_dict()
                for template_id in sorted(self._version_index)
                for version in self._version_index[template_id]
            ],
            "version_index": {
                template_id: list(index)
                for template_id, index in sorted(self._version_index.items())
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TemplateRegistry":
        """
        Rebuild a registry from a snapshot produced by to_dict().

        Raises:
            ValueError: If the snapshot is malformed or inconsistent.
        """
        registry = cls()
        try:
            registry._template_count = int(data.get("template_count", 0))
            registry._height = int(data.get("height", 0))

            for item in _section(data, "templates", list):
                template = Template.from_dict(item)
                registry._templates[template.id] = template
            for key, item in _section(data, "compatibility", dict).items():
                registry._compatibility[int(key)] = Compatibility.from_dict(item)
            for item in _section(data, "versions", list):
                record = VersionRecord.from_dict(item)
                registry._versions[(record.template_id, record.version)] = record
            for key, versions in _section(data, "version_index", dict).items():
                if not isinstance(versions, list):
                    raise TypeError(f"version list of template {key} is not a list")
                registry._version_index[int(key)] = list(versions)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed registry data: {e}")

        try:
            registry._check_consistency()
        except (RegistryError, TypeError) as e:
            raise ValueError(f"Malformed registry data: {e}")
        return registry

    def _check_consistency(self) -> None:
        expected = set(range(1, self._template_count + 1))
        if set(self._templates) != expected:
            raise ValueError(
                f"Template ids {sorted(self._templates)} do not match count {self._template_count}"
            )
        if set(self._compatibility) != expected or set(self._version_index) != expected:
            raise ValueError("Every template needs a compatibility record and a version list")

        indexed = {
            (template_id, version)
            for template_id, index in self._version_index.items()
            for version in index
        }
        if indexed != set(self._versions) or sum(
            len(index) for index in self._version_index.values()
        ) != len(self._versions):
            raise ValueError("Version list does not match published versions")

        for template in self._templates.values():
            if not template.owner:
                raise ValueError(f"Template {template.id} has no owner")
            validate_metadata(
                template.title,
                template.description,
                template.tags,
                template.documentation_url,
                template.repository_url,
            )
            if not template.created_at <= template.last_updated <= self._height:
                raise ValueError(
                    f"Template {template.id} timestamps out of order "
                    f"(created {template.created_at}, updated {template.last_updated}, "
                    f"height {self._height})"
                )
            compatibility = self._compatibility[template.id]
            validate_compatibility(compatibility.clarity_versions, compatibility.platforms)
            if len(self._version_index[template.id]) > MAX_VERSIONS:
                raise ValueError(f"Template {template.id} has more than {MAX_VERSIONS} versions")

        for record in self._versions.values():
            if not is_valid_version(record.version):
                raise ValueError(f"'{record.version}' is not a valid version label")
            validate_content_hash(record.content_hash)
            validate_release_notes(record.release_notes)
            if not record.published_at <= self._templates[record.template_id].last_updated:
                raise ValueError(
                    f"Version {record.version} of template {record.template_id} "
                    f"published after the template was last updated"
                )

    def save(self, path: str | Path) -> Path:
        """
        Write the registry state to a YAML file.

        The file is written next to the target and moved into place, so an
        interrupted save leaves the previous state intact.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(
                    self.to_dict(), f, default_flow_style=False, allow_unicode=True, sort_keys=False
                )
            os.replace(tmp_name, path)
        except BaseException:
            os.unlink(tmp_name)
            raise

        logger.debug(f"Saved {self._template_count} templates to {path}")
        return path

    @classmethod
    def load(cls, path: str | Path) -> "TemplateRegistry":
        """
        Load a registry from a YAML file. A missing file yields an empty registry.

        Raises:
            ValueError: If the file cannot be parsed or is inconsistent.
        """
        path = Path(path)
        if not path.exists():
            logger.debug(f"No registry file at {path}, starting empty")
            return cls()

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing YAML in {path}: {e}")

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"Error loading registry from {path}: expected a mapping")

        registry = cls.from_dict(data)
        logger.debug(f"Loaded {registry.get_template_count()} templates from {path}")
        return registry


def _section(data: dict[str, Any], key: str, kind: type) -> Any:
    """Return one top-level section of a snapshot, checking its container type."""
    value = data.get(key)
    if value is None:
        return kind()
    if not isinstance(value, kind):
        raise TypeError(f"'{key}' must be a {kind.__name__}, got {type(value).__name__}")
    return value
