"""Namespace URIs and qualified-name helpers shared by the generator and parser."""

XLINK_NS = "http://www.w3.org/1999/xlink"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

# Attributes written on every repeating container
SEQUENCE_ATTR = "SequenceNumber"
XLINK_LABEL = f"{{{XLINK_NS}}}label"
XLINK_FROM = f"{{{XLINK_NS}}}from"
XLINK_TO = f"{{{XLINK_NS}}}to"
XLINK_ARCROLE = f"{{{XLINK_NS}}}arcrole"

ARCROLE_BASE = "urn:fdc:mismo.org:2009:residential/"


def qname(namespace: str | None, local: str) -> str:
    return f"{{{namespace}}}{local}" if namespace else local


def split_qname(tag: str) -> tuple[str | None, str]:
    """Split an lxml Clark-notation tag into (namespace, local name)."""
    if tag.startswith("{"):
        namespace, _, local = tag[1:].partition("}")
        return namespace, local
    return None, tag
