"""
Canonical field mapper.

Translates between a CanonicalDeal and the DEAL-relative MISMO element paths
of the fixed path table, in both directions. Anything without a path is an
extension field on the way out, and an unmapped node on the way in.
"""

import json
import re
from typing import Any

from lxml import etree

from mismo_conformance.codec.namespaces import XLINK_ARCROLE, XLINK_FROM, XLINK_LABEL, XLINK_TO, split_qname
from mismo_conformance.codec.parser import element_children, element_xpath, local_name, namespace_of
from mismo_conformance.core.models import CanonicalDeal, MappingResult, SchemaPack, UnmappedNode
from mismo_conformance.core.schema.grammar import CONTENT_MODEL, REPEATING_CONTAINERS
from mismo_conformance.observability.logger import get_logger

from .formatting import format_wire, parse_wire
from .path_table import (
    EXTENSION_CONTAINER,
    EXTENSION_ELEMENTS,
    EXTENSION_FIELDS,
    EXTENSION_PATH,
    GENERIC_EXTENSION_ELEMENT,
    LIST_SCOPES,
    SCOPES,
    PathEntry,
    match_path,
    mapped_fields,
)

logger = get_logger(__name__)

DEAL_STEPS = ("DEAL_SETS", "DEAL_SET", "DEALS", "DEAL")

# Header data points the generator writes; they carry no deal data.
HEADER_PATHS = frozenset({
    "ABOUT_VERSIONS/ABOUT_VERSION/CreatedDatetime",
    "ABOUT_VERSIONS/ABOUT_VERSION/DataVersionIdentifier",
    "ABOUT_VERSIONS/ABOUT_VERSION/DataVersionName",
    "MESSAGE_HEADER/MISMOLogicalDataDictionaryIdentifier",
    "MESSAGE_HEADER/MessageIdentifier",
})

PARTY_ROLE_PATH = "ROLES/ROLE/ROLE_DETAIL/PartyRoleType"
BORROWER_ROLE = "Borrower"

# Arcs the generator writes for every mapped borrower and collateral
PARTY_ARCROLE = "LOAN_IsAssociatedWith_PARTY"
COLLATERAL_ARCROLE = "COLLATERAL_IsCollateralFor_LOAN"

_LIST_EXTENSION_KEY = re.compile(r"^(borrowers|properties|fees)\.(\d+)\.(.+)$")


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _format(value: Any, entry: PathEntry, path: str) -> str:
    try:
        return format_wire(value, entry.value_type)
    except (ValueError, TypeError, ArithmeticError):
        # Preflight reports the bad value; the raw text is still emitted
        logger.warning(
            "Value could not be formatted for the wire",
            extra={"path": path, "value_type": entry.value_type},
        )
        return str(value)


# ---- export direction -----------------------------------------------------


def to_wire_fields(deal: CanonicalDeal) -> MappingResult:
    """
    Map a canonical deal to MISMO wire fields.

    Core fields come out in path table order (loan first, then each PARTY,
    COLLATERAL and FEE in list order). Constants are written only when their
    companion field holds a value.

    Args:
        deal: Deal to map

    Returns:
        MappingResult with core_fields and extension_fields
    """
    core_fields: dict[str, str] = {}

    for scope in SCOPES:
        for index, record in scope.records(deal):
            for entry in scope.entries:
                path = scope.concrete(entry, index)
                if entry.constant is not None:
                    if entry.companion is None or _present(getattr(record, entry.companion, None)):
                        core_fields[path] = entry.constant
                    continue

                value = getattr(record, entry.field, None)
                if _present(value):
                    core_fields[path] = _format(value, entry, path)

    return MappingResult(core_fields=core_fields, extension_fields=collect_extensions(deal))


def collect_extensions(deal: CanonicalDeal) -> dict[str, Any]:
    """
    Gather every value without a MISMO path.

    The deal's extension bag wins over loan-level extras of the same name.
    Extras on list records are keyed ``<list>.<position>.<key>`` (0-based).
    """
    extensions: dict[str, Any] = {}

    for key, value in deal.loan.extra_fields.items():
        extensions[key] = value
    extensions.update(deal.extensions)

    for scope_name in LIST_SCOPES:
        for position, record in enumerate(getattr(deal, scope_name)):
            for key, value in record.extra_fields.items():
                extensions[f"{scope_name}.{position}.{key}"] = value

    return {key: extensions[key] for key in sorted(extensions) if extensions[key] is not None}


# ---- import direction -----------------------------------------------------


class _WireReader:
    """Single-use walker collecting core, extension and unmapped content."""

    def __init__(self, pack: SchemaPack):
        self.pack = pack
        self.ns = {"m": pack.namespace}
        self.core_fields: dict[str, str] = {}
        self.extension_fields: dict[str, Any] = {}
        self.unmapped: list[UnmappedNode] = []
        self.relationships: list[etree._Element] = []
        self.loan_label: str | None = None
        self.party_labels: set[str] = set()
        self.collateral_labels: set[str] = set()

    def read(self, root: etree._Element) -> MappingResult:
        self._walk(root, (), None)
        for relationship in self.relationships:
            if not self._derivable(relationship):
                self.unmapped.append(UnmappedNode(xpath=element_xpath(relationship), raw_value=_node_text(relationship)))
        return MappingResult(
            core_fields=dict(sorted(self.core_fields.items(), key=lambda item: _table_rank(item[0]))),
            extension_fields=self.extension_fields,
            unmapped_nodes=self.unmapped,
        )

    def _walk(self, element: etree._Element, steps: tuple[str, ...], rel: str | None) -> None:
        """
        steps is the index-free path below the root; rel is the DEAL-relative
        path when the element lies inside the mapped (first) DEAL.
        """
        children = element_children(element)
        for child in children:
            name = local_name(child)
            child_ns = namespace_of(child)

            if child_ns != self.pack.namespace:
                if (
                    rel == EXTENSION_PATH
                    and child_ns == self.pack.vendor_namespace
                    and name == EXTENSION_CONTAINER
                ):
                    self._read_extension(child)
                else:
                    self._retain(child)
                continue

            position = [c for c in children if c.tag == child.tag].index(child) + 1
            child_steps = steps + (name,)

            if rel is not None and name in REPEATING_CONTAINERS:
                child_rel = _join(rel, f"{name}[{position}]")
            elif position > 1:
                # Only the first LOAN, DEAL, ... of a non-repeating slot maps
                self._retain(child)
                continue
            elif rel is not None:
                child_rel = _join(rel, name)
            else:
                child_rel = "" if child_steps == DEAL_STEPS else None

            if child_rel == "RELATIONSHIPS":
                self._collect_relationships(child)
                continue

            if name == "PARTY" and child_rel is not None:
                role = self._party_role(child)
                if role is not None and role != BORROWER_ROLE:
                    self._retain(child)
                    continue
                self._remember_label(self.party_labels, child)
            elif name == "COLLATERAL" and child_rel is not None:
                self._remember_label(self.collateral_labels, child)
            elif child_rel == "LOANS/LOAN":
                self.loan_label = child.get(XLINK_LABEL)

            if element_children(child):
                self._walk(child, child_steps, child_rel)
                continue

            if name in CONTENT_MODEL:
                continue
            self._read_leaf(child, child_steps, child_rel)

    def _read_leaf(self, leaf: etree._Element, steps: tuple[str, ...], rel: str | None) -> None:
        text = leaf.text or ""

        if rel is not None:
            matched = match_path(rel)
            if matched is not None:
                _, _, entry = matched
                if entry.constant is None:
                    if text.strip():
                        self.core_fields[rel] = text.strip()
                    return
                if text.strip() == entry.constant:
                    self.core_fields[rel] = entry.constant
                    return
        elif "/".join(steps) in HEADER_PATHS:
            return

        self.unmapped.append(UnmappedNode(xpath=element_xpath(leaf), raw_value=text))

    def _read_extension(self, container: etree._Element) -> None:
        for child in element_children(container):
            name = local_name(child)
            if namespace_of(child) != self.pack.vendor_namespace or element_children(child):
                self._retain(child)
                continue

            text = child.text or ""
            if name == GENERIC_EXTENSION_ELEMENT:
                key = child.get("FieldName")
                if not key:
                    self._retain(child)
                    continue
                if child.get("ValueFormat") == "json":
                    try:
                        value = json.loads(text)
                    except ValueError:
                        self._retain(child)
                        continue
                else:
                    value = text
            elif name in EXTENSION_ELEMENTS:
                key = EXTENSION_ELEMENTS[name]
                value = parse_wire(text.strip(), EXTENSION_FIELDS[key][1])
            else:
                key, value = name, text

            self.extension_fields[key] = value

    def _party_role(self, party: etree._Element) -> str | None:
        found = party.xpath("/".join(f"m:{step}" for step in PARTY_ROLE_PATH.split("/")), namespaces=self.ns)
        if not found:
            return None
        return (found[0].text or "").strip()

    def _retain(self, element: etree._Element) -> None:
        """Keep every leaf of a subtree verbatim."""
        for node in element.iter(etree.Element):
            if not element_children(node):
                self.unmapped.append(UnmappedNode(xpath=element_xpath(node), raw_value=_node_text(node)))

    @staticmethod
    def _remember_label(labels: set[str], element: etree._Element) -> None:
        label = element.get(XLINK_LABEL)
        if label:
            labels.add(label)

    def _collect_relationships(self, relationships: etree._Element) -> None:
        for child in element_children(relationships):
            is_arc = namespace_of(child) == self.pack.namespace and local_name(child) == "RELATIONSHIP"
            if is_arc and not element_children(child):
                self.relationships.append(child)
            else:
                self._retain(child)

    def _derivable(self, relationship: etree._Element) -> bool:
        """True for the loan-borrower and collateral-loan arcs the generator rewrites."""
        arcrole = relationship.get(XLINK_ARCROLE) or ""
        source, target = relationship.get(XLINK_FROM), relationship.get(XLINK_TO)
        if self.loan_label is None:
            return False
        if arcrole.endswith("/" + PARTY_ARCROLE):
            return source == self.loan_label and target in self.party_labels
        if arcrole.endswith("/" + COLLATERAL_ARCROLE):
            return source in self.collateral_labels and target == self.loan_label
        return False


def _node_text(node: etree._Element) -> str:
    """Verbatim text of a leaf, prefixed by its attributes when it has any."""
    text = node.text or ""
    if not node.attrib:
        return text

    prefixes = {uri: prefix for prefix, uri in node.nsmap.items() if prefix}
    attributes = []
    for key, value in node.attrib.items():
        namespace, local = split_qname(key)
        name = f"{prefixes[namespace]}:{local}" if namespace in prefixes else local
        attributes.append(f'{name}="{value}"')
    return " ".join(attributes) + (f" {text}" if text else "")


def _join(rel: str, step: str) -> str:
    return step if not rel else f"{rel}/{step}"


def _table_rank(path: str) -> tuple[int, int, int]:
    scope, index, entry = match_path(path)
    return SCOPES.index(scope), index or 0, scope.entries.index(entry)


def from_wire_fields(root: etree._Element, pack: SchemaPack) -> MappingResult:
    """
    Read wire fields out of a parsed MISMO document.

    Only the first DEAL is mapped; PARTY entries whose role is not Borrower,
    foreign-namespace content, and any data point outside the path table are
    returned as unmapped nodes with their absolute xpath and verbatim text.

    Args:
        root: Parsed document root
        pack: Pack the document was validated against

    Returns:
        MappingResult with core_fields, extension_fields and unmapped_nodes
    """
    result = _WireReader(pack).read(root)
    logger.debug(
        "Wire fields read",
        extra={
            "pack_id": pack.pack_id,
            "core_fields": len(result.core_fields),
            "extension_fields": len(result.extension_fields),
            "unmapped_nodes": len(result.unmapped_nodes),
        },
    )
    return result


def to_canonical(mapping: MappingResult, fallback_reference: str | None = None) -> CanonicalDeal:
    """
    Rebuild a CanonicalDeal from wire fields.

    Repeating containers are compacted in document order, so PARTY[1] and
    PARTY[3] become the first and second borrower.

    Args:
        mapping: Result of from_wire_fields (or to_wire_fields)
        fallback_reference: deal_reference used when the document has no loan identifier

    Raises:
        ValueError: If no deal reference is available
    """
    deal_reference = None
    loan: dict[str, Any] = {}
    records: dict[str, dict[int, dict[str, Any]]] = {name: {} for name in LIST_SCOPES}

    for path, text in mapping.core_fields.items():
        matched = match_path(path)
        if matched is None:
            continue
        scope, index, entry = matched
        if entry.field is None:
            continue

        value = parse_wire(text, entry.value_type)
        if scope.name == "deal":
            deal_reference = value
        elif scope.name == "loan":
            loan[entry.field] = value
        else:
            records[scope.name].setdefault(index, {})[entry.field] = value

    extensions: dict[str, Any] = {}
    for key, value in mapping.extension_fields.items():
        match = _LIST_EXTENSION_KEY.match(key)
        if match and match.group(3) not in mapped_fields(match.group(1)):
            scope_name, position, field = match.group(1), int(match.group(2)), match.group(3)
            records[scope_name].setdefault(position + 1, {})[field] = value
        else:
            extensions[key] = value

    deal_reference = deal_reference or fallback_reference
    if not deal_reference:
        raise ValueError("Document carries no loan identifier and no fallback reference was given")

    return CanonicalDeal(
        deal_reference=deal_reference,
        loan=loan,
        extensions=extensions,
        **{name: [records[name][i] for i in sorted(records[name])] for name in LIST_SCOPES},
    )
