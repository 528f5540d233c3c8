"""template-registry - Ownable templates with an append-only version history."""

from .errors import ErrorKind, RegistryError
from .template import Compatibility, Template, VersionRecord
from .registry import TemplateRegistry

__version__ = "0.1.0"
__all__ = [
    "Compatibility",
    "ErrorKind",
    "RegistryError",
    "Template",
    "TemplateRegistry",
    "VersionRecord",
]
