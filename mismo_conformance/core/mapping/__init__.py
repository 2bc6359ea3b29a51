"""
Canonical field mapping between CanonicalDeal and MISMO element paths.
"""

from .field_mapper import collect_extensions, from_wire_fields, to_canonical, to_wire_fields
from .formatting import format_wire, parse_wire

__all__ = [
    "to_wire_fields",
    "from_wire_fields",
    "to_canonical",
    "collect_extensions",
    "format_wire",
    "parse_wire",
]
