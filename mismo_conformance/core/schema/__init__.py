"""
Schema pack registry, MISMO content model, and structural validation.
"""

from .pack_validator import SchemaPackValidator, is_version_compatible
from .registry import SchemaPackRegistry, read_declared_ldd

__all__ = [
    "SchemaPackRegistry",
    "SchemaPackValidator",
    "is_version_compatible",
    "read_declared_ldd",
]
