"""
Deterministic MISMO XML generation.

The same MappingResult and SchemaPack always produce the same bytes: no
timestamps, no random identifiers, and children ordered by the content model.
"""

import hashlib

from lxml import etree

from mismo_conformance.core.mapping.formatting import format_boolean, format_structured, format_wire, is_structured
from mismo_conformance.core.mapping.path_table import (
    EXTENSION_CONTAINER,
    EXTENSION_FIELDS,
    EXTENSION_PATH,
    GENERIC_EXTENSION_ELEMENT,
)
from mismo_conformance.core.models import MappingResult, SchemaPack
from mismo_conformance.core.schema.grammar import CONTENT_MODEL, REPEATING_CONTAINERS, child_rank
from mismo_conformance.observability.logger import get_logger

from .namespaces import (
    ARCROLE_BASE,
    SEQUENCE_ATTR,
    XLINK_ARCROLE,
    XLINK_FROM,
    XLINK_LABEL,
    XLINK_NS,
    XLINK_TO,
    XSI_NS,
    qname,
    split_qname,
)
from .parser import local_name

logger = get_logger(__name__)

DATA_VERSION_NAME = "MISMO Reference Model"
LOAN_LABEL = "LOAN_1"


def message_identifier(pack: SchemaPack, deal_reference: str) -> str:
    """Stable message id derived from the pack and deal reference."""
    digest = hashlib.sha256(f"{pack.pack_id}:{deal_reference}".encode("utf-8")).hexdigest()
    return f"MSG-{digest[:32]}"


class MismoXmlGenerator:
    """
    Builds a MISMO MESSAGE document from wire fields.

    Stateless; the pack supplies the root element, namespaces, version,
    build and LDD identifier.
    """

    def generate(self, mapping: MappingResult, pack: SchemaPack, deal_reference: str) -> bytes:
        """
        Render a mapping as UTF-8 XML with an XML declaration.

        Args:
            mapping: Core and extension fields from the field mapper
            pack: Target schema pack
            deal_reference: Used for the message identifier

        Returns:
            Document bytes
        """
        root = self.build_tree(mapping, pack, deal_reference)
        xml_bytes = etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)
        logger.debug(
            "Document generated",
            extra={"pack_id": pack.pack_id, "deal_reference": deal_reference, "byte_size": len(xml_bytes)},
        )
        return xml_bytes

    def build_tree(self, mapping: MappingResult, pack: SchemaPack, deal_reference: str) -> etree._Element:
        ns = pack.namespace
        nsmap = {None: ns, "xlink": XLINK_NS, pack.vendor_prefix: pack.vendor_namespace}
        if pack.schema_location:
            nsmap["xsi"] = XSI_NS

        root = etree.Element(qname(ns, pack.root_element), nsmap=nsmap)
        root.set("MISMOVersionID", pack.version_id)
        if pack.schema_location:
            root.set(qname(XSI_NS, "schemaLocation"), pack.schema_location)

        about = _path(root, ns, "ABOUT_VERSIONS/ABOUT_VERSION")
        _leaf(about, ns, "DataVersionIdentifier", pack.build)
        _leaf(about, ns, "DataVersionName", DATA_VERSION_NAME)

        header = _path(root, ns, "MESSAGE_HEADER")
        _leaf(header, ns, "MISMOLogicalDataDictionaryIdentifier", pack.ldd_identifier)
        _leaf(header, ns, "MessageIdentifier", message_identifier(pack, deal_reference))

        deal = _path(root, ns, "DEAL_SETS/DEAL_SET/DEALS/DEAL")
        for path, text in mapping.core_fields.items():
            parent_path, _, leaf_name = path.rpartition("/")
            parent = _path(deal, ns, parent_path) if parent_path else deal
            _leaf(parent, ns, leaf_name, text)

        # Every deal carries a loan, even when no loan field was mapped
        loan = _path(deal, ns, "LOANS/LOAN")
        if mapping.extension_fields:
            self._write_extensions(_path(deal, ns, EXTENSION_PATH), mapping, pack)

        self._label_containers(deal, ns)
        loan.set(XLINK_LABEL, LOAN_LABEL)
        self._write_relationships(deal, ns)

        _sort_children(root, ns)
        return root

    def _write_extensions(self, other: etree._Element, mapping: MappingResult, pack: SchemaPack) -> None:
        vendor = pack.vendor_namespace
        container = etree.SubElement(other, qname(vendor, EXTENSION_CONTAINER))

        for key in sorted(mapping.extension_fields):
            value = mapping.extension_fields[key]
            registered = EXTENSION_FIELDS.get(key)

            if registered is not None and not is_structured(value):
                element_name, value_type = registered
                element = etree.SubElement(container, qname(vendor, element_name))
                try:
                    element.text = format_wire(value, value_type)
                except (ValueError, TypeError, ArithmeticError):
                    logger.warning("Extension value kept as text", extra={"field_name": key, "value_type": value_type})
                    element.text = str(value)
                continue

            element = etree.SubElement(container, qname(vendor, GENERIC_EXTENSION_ELEMENT))
            element.set("FieldName", key)
            if is_structured(value):
                element.set("ValueFormat", "json")
                element.text = format_structured(value)
            elif isinstance(value, bool):
                element.text = format_boolean(value)
            else:
                element.text = str(value)

    def _label_containers(self, deal: etree._Element, ns: str) -> None:
        for name in sorted(REPEATING_CONTAINERS):
            for element in deal.iter(qname(ns, name)):
                siblings = list(element.getparent().iterchildren(element.tag))
                position = siblings.index(element) + 1
                element.set(SEQUENCE_ATTR, str(position))
                element.set(XLINK_LABEL, f"{name}_{position}")

    def _write_relationships(self, deal: etree._Element, ns: str) -> None:
        links = []
        for party in deal.iterfind(f"{{{ns}}}PARTIES/{{{ns}}}PARTY"):
            links.append((LOAN_LABEL, party.get(XLINK_LABEL), "LOAN_IsAssociatedWith_PARTY"))
        for collateral in deal.iterfind(f"{{{ns}}}COLLATERALS/{{{ns}}}COLLATERAL"):
            links.append((collateral.get(XLINK_LABEL), LOAN_LABEL, "COLLATERAL_IsCollateralFor_LOAN"))

        if not links:
            return

        relationships = etree.SubElement(deal, qname(ns, "RELATIONSHIPS"))
        for position, (source, target, arcrole) in enumerate(links, start=1):
            relationship = etree.SubElement(relationships, qname(ns, "RELATIONSHIP"))
            relationship.set(SEQUENCE_ATTR, str(position))
            relationship.set(XLINK_ARCROLE, ARCROLE_BASE + arcrole)
            relationship.set(XLINK_FROM, source)
            relationship.set(XLINK_TO, target)


def _parse_step(step: str) -> tuple[str, int]:
    if step.endswith("]"):
        name, _, index = step[:-1].partition("[")
        return name, int(index)
    return step, 1


def _path(parent: etree._Element, ns: str, path: str) -> etree._Element:
    """Find or create each step of path below parent; ``NAME[i]`` pads to i occurrences."""
    current = parent
    for step in path.split("/"):
        name, index = _parse_step(step)
        tag = qname(ns, name)
        existing = list(current.iterchildren(tag))
        while len(existing) < index:
            existing.append(etree.SubElement(current, tag))
        current = existing[index - 1]
    return current


def _leaf(parent: etree._Element, ns: str, name: str, text: str) -> etree._Element:
    element = etree.SubElement(parent, qname(ns, name))
    element.text = text
    return element


def _sort_children(element: etree._Element, ns: str) -> None:
    """Order MISMO children by the content model; vendor content keeps its order."""
    namespace, name = split_qname(element.tag)
    if namespace != ns or name not in CONTENT_MODEL:
        return

    children = list(element)
    children.sort(key=lambda child: child_rank(name, local_name(child)))
    element[:] = children
    for child in children:
        _sort_children(child, ns)
