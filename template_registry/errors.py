"""Error kinds raised by registry operations."""

from enum import Enum


class ErrorKind(Enum):
    """Failure kinds a caller can branch on."""

    NOT_AUTHORIZED = 100
    TEMPLATE_NOT_FOUND = 101
    TEMPLATE_ALREADY_EXISTS = 102  # reserved
    INVALID_VERSION = 103
    VERSION_ALREADY_EXISTS = 104
    EMPTY_FIELD = 105
    TAG_LIMIT_EXCEEDED = 106
    INVALID_COMPATIBILITY = 107
    VERSION_NOT_FOUND = 108
    FIELD_TOO_LONG = 109
    INVALID_CONTENT_HASH = 110
    VERSION_LIMIT_EXCEEDED = 111
    INVALID_CALL_CONTEXT = 112

    @property
    def code(self) -> int:
        """Numeric code for transports that need one."""
        return self.value


class RegistryError(ValueError):
    """A registry operation was rejected. No state was changed."""

    def __init__(self, kind: ErrorKind, message: str = ""):
        self.kind = kind
        self.message = message or kind.name.replace("_", " ").lower()
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.kind.name}] {self.message}"

    def __repr__(self) -> str:
        return f"RegistryError(kind={self.kind.name}, message={self.message!r})"
