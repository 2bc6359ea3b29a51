"""
Hardened XML parsing for inbound MISMO documents.

Any well-formed document parses, whatever version or build it declares;
semantic problems are left to the schema-pack validator.
"""

from lxml import etree

from mismo_conformance.errors import XmlParseError


def _make_parser() -> etree.XMLParser:
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        huge_tree=False,
        remove_comments=True,
        remove_pis=True,
        recover=False,
    )


def parse_document(xml_bytes: bytes) -> etree._Element:
    """
    Parse a document and return its root element.

    Args:
        xml_bytes: Raw document bytes

    Returns:
        Root element

    Raises:
        XmlParseError: If the input is empty or not well-formed
    """
    if not xml_bytes or not xml_bytes.strip():
        raise XmlParseError("Document is empty")

    try:
        return etree.fromstring(xml_bytes, parser=_make_parser())
    except etree.XMLSyntaxError as e:
        raise XmlParseError(f"Document is not well-formed XML: {e.msg or e}", line=e.lineno) from e


def element_children(element: etree._Element) -> list[etree._Element]:
    """Child elements only (comments and processing instructions are skipped)."""
    return [child for child in element if isinstance(child.tag, str)]


def local_name(element: etree._Element) -> str:
    return etree.QName(element).localname


def namespace_of(element: etree._Element) -> str | None:
    return etree.QName(element).namespace


def element_xpath(element: etree._Element) -> str:
    """
    Absolute path of an element by local name.

    Siblings sharing a name are told apart with a 1-based index
    (``PARTY[2]``); a lone element carries no index. Elements outside the
    default namespace keep their document prefix (``ULAD:HousingExpense``).
    """
    steps = []
    current = element
    while current is not None:
        name = local_name(current)
        if current.prefix:
            name = f"{current.prefix}:{name}"

        parent = current.getparent()
        if parent is not None:
            same = [c for c in element_children(parent) if c.tag == current.tag]
            if len(same) > 1:
                name = f"{name}[{same.index(current) + 1}]"
        steps.append(name)
        current = parent

    return "/" + "/".join(reversed(steps))
