"""Field validation shared by registration and update operations."""

from typing import Sequence

from .errors import ErrorKind, RegistryError

MAX_TITLE = 50
MAX_DESCRIPTION = 500
MAX_TAGS = 5
MAX_TAG = 20
MAX_URL = 100
MAX_CLARITY_VERSIONS = 5
MAX_CLARITY_VERSION = 10
MAX_PLATFORMS = 3
MAX_PLATFORM = 20
MIN_VERSION = 3
MAX_VERSION = 10
MAX_RELEASE_NOTES = 200
MAX_VERSIONS = 20
HASH_SIZE = 32


def _check_length(field_name: str, value: str, limit: int) -> None:
    if len(value) > limit:
        raise RegistryError(
            ErrorKind.FIELD_TOO_LONG,
            f"{field_name} is {len(value)} characters, limit is {limit}",
        )


def _require_sequence(field_name: str, value: Sequence[str]) -> None:
    # a bare string would otherwise be split into single characters
    if isinstance(value, str):
        raise TypeError(f"{field_name} must be a sequence of strings, not a string")


def validate_metadata(
    title: str,
    description: str,
    tags: Sequence[str],
    documentation_url: str | None = None,
    repository_url: str | None = None,
) -> None:
    """
    Validate template metadata.

    Raises:
        RegistryError: EMPTY_FIELD, FIELD_TOO_LONG or TAG_LIMIT_EXCEEDED.
        TypeError: If tags is a bare string.
    """
    if not title:
        raise RegistryError(ErrorKind.EMPTY_FIELD, "title must not be empty")
    if not description:
        raise RegistryError(ErrorKind.EMPTY_FIELD, "description must not be empty")

    _check_length("title", title, MAX_TITLE)
    _check_length("description", description, MAX_DESCRIPTION)

    _require_sequence("tags", tags)
    if len(tags) > MAX_TAGS:
        raise RegistryError(
            ErrorKind.TAG_LIMIT_EXCEEDED,
            f"{len(tags)} tags given, limit is {MAX_TAGS}",
        )
    for tag in tags:
        _check_length(f"tag '{tag}'", tag, MAX_TAG)

    if documentation_url is not None:
        _check_length("documentation_url", documentation_url, MAX_URL)
    if repository_url is not None:
        _check_length("repository_url", repository_url, MAX_URL)


def validate_compatibility(
    clarity_versions: Sequence[str], platforms: Sequence[str]
) -> None:
    """
    Validate a compatibility record.

    Both lists must be non-empty and within their bounds.
    """
    _require_sequence("clarity_versions", clarity_versions)
    _require_sequence("platforms", platforms)
    if not clarity_versions or not platforms:
        raise RegistryError(
            ErrorKind.INVALID_COMPATIBILITY,
            "clarity versions and platforms must both be non-empty",
        )
    if len(clarity_versions) > MAX_CLARITY_VERSIONS:
        raise RegistryError(
            ErrorKind.INVALID_COMPATIBILITY,
            f"at most {MAX_CLARITY_VERSIONS} clarity versions allowed",
        )
    if len(platforms) > MAX_PLATFORMS:
        raise RegistryError(
            ErrorKind.INVALID_COMPATIBILITY,
            f"at most {MAX_PLATFORMS} platforms allowed",
        )
    for clarity_version in clarity_versions:
        _check_length(
            f"clarity version '{clarity_version}'", clarity_version, MAX_CLARITY_VERSION
        )
    for platform in platforms:
        _check_length(f"platform '{platform}'", platform, MAX_PLATFORM)


def is_valid_version(version: str) -> bool:
    """
    Shallow syntactic check of a version label.

    Only length and the presence of a "." are checked; "1.x" and "..."
    both pass. Numeric components are not parsed.
    """
    return MIN_VERSION <= len(version) <= MAX_VERSION and "." in version


def validate_content_hash(value: bytes | str) -> bytes:
    """
    Normalize a content hash to 32 raw bytes.

    Accepts raw bytes or a hex string (optionally prefixed with "0x").
    """
    if isinstance(value, str):
        text = value[2:] if value.lower().startswith("0x") else value
        try:
            value = bytes.fromhex(text)
        except ValueError:
            raise RegistryError(
                ErrorKind.INVALID_CONTENT_HASH, f"content hash is not valid hex: {text!r}"
            )

    if not isinstance(value, (bytes, bytearray)) or len(value) != HASH_SIZE:
        raise RegistryError(
            ErrorKind.INVALID_CONTENT_HASH,
            f"content hash must be exactly {HASH_SIZE} bytes",
        )
    return bytes(value)


def validate_release_notes(notes: str) -> None:
    _check_length("release notes", notes, MAX_RELEASE_NOTES)
