"""
Structural validation of a MISMO document against a schema pack.

Checks run in increasing strictness: well-formedness, root element,
namespace declarations, version, build and LDD identifier, extension
namespaces, and (strict profile only) the full content model.
"""

import re

from lxml import etree

from mismo_conformance.codec.parser import (
    element_children,
    element_xpath,
    local_name,
    namespace_of,
    parse_document,
)
from mismo_conformance.core.models import (
    FindingCategory,
    SchemaPack,
    Severity,
    ValidationFinding,
    ValidationReport,
)
from mismo_conformance.errors import XmlParseError
from mismo_conformance.observability.logger import get_logger

from .grammar import (
    CONTENT_MODEL,
    DATATYPE_PATTERNS,
    ELEMENT_DATATYPES,
    LDD_ENUMS,
    child_rules,
)

logger = get_logger(__name__)

VERSION_ATTR = "MISMOVersionID"
_PATTERNS = {name: re.compile(pattern) for name, pattern in DATATYPE_PATTERNS.items()}


def is_version_compatible(declared: str, pack: SchemaPack) -> bool:
    """A declared version is compatible when it is the pack version or extends it."""
    return declared == pack.mismo_version or declared.startswith(pack.mismo_version + ".")


class SchemaPackValidator:
    """
    Validates generated or received XML against a SchemaPack.

    Stateless; one instance can serve concurrent runs.
    """

    def validate(self, xml_bytes: bytes, pack: SchemaPack) -> ValidationReport:
        """
        Validate a document.

        Args:
            xml_bytes: Raw document
            pack: Pack to validate against

        Returns:
            ValidationReport with structural and version findings
        """
        try:
            root = parse_document(xml_bytes)
        except XmlParseError as e:
            return ValidationReport(findings=(
                _finding("XML_MALFORMED", str(e), Severity.ERROR, FindingCategory.STRUCTURAL, field="/"),
            ))

        report = ValidationReport(findings=tuple(self.validate_tree(root, pack)))
        logger.info(
            "Schema-pack validation complete",
            extra={"pack_id": pack.pack_id, "profile": pack.profile.value, "status": report.status.value, **report.summary},
        )
        return report

    def validate_tree(self, root: etree._Element, pack: SchemaPack) -> list[ValidationFinding]:
        """Run every check on an already parsed document."""
        findings = self._check_root(root, pack)
        if any(f.rule == "INVALID_ROOT" for f in findings):
            return findings

        findings.extend(self._check_namespaces(root, pack))
        findings.extend(self._check_version(root, pack))
        findings.extend(self._check_identifiers(root, pack))
        findings.extend(self._check_extension_placement(root, pack))

        if pack.is_strict:
            findings.extend(self._check_grammar(root, pack))
            findings.extend(self._check_required_elements(root, pack))

        return findings

    # ---- header checks --------------------------------------------------

    def _check_root(self, root: etree._Element, pack: SchemaPack) -> list[ValidationFinding]:
        name = local_name(root)
        if name != pack.root_element:
            return [_finding(
                "INVALID_ROOT",
                f"Root element must be {pack.root_element}, found {name}",
                Severity.ERROR, FindingCategory.STRUCTURAL, field=f"/{name}",
            )]

        if namespace_of(root) != pack.namespace:
            return [_finding(
                "INVALID_ROOT_NAMESPACE",
                f"Root element must be in namespace {pack.namespace}, found {namespace_of(root) or 'no namespace'}",
                Severity.ERROR, FindingCategory.STRUCTURAL, field=f"/{name}",
            )]
        return []

    def _check_namespaces(self, root: etree._Element, pack: SchemaPack) -> list[ValidationFinding]:
        declared = set(root.nsmap.values())
        return [
            _finding(
                "MISSING_NAMESPACE",
                f"Required namespace {uri} is not declared on the root element",
                Severity.ERROR, FindingCategory.STRUCTURAL, field=f"/{pack.root_element}",
            )
            for uri in pack.required_namespaces
            if uri not in declared
        ]

    def _check_version(self, root: etree._Element, pack: SchemaPack) -> list[ValidationFinding]:
        declared = root.get(VERSION_ATTR)
        field = f"/{pack.root_element}/@{VERSION_ATTR}"

        if not declared:
            return [_finding(
                "MISSING_VERSION",
                f"{VERSION_ATTR} attribute is missing",
                Severity.ERROR, FindingCategory.VERSION, field=field,
            )]

        if not is_version_compatible(declared, pack):
            return [_finding(
                "VERSION_MISMATCH",
                f"Declared version {declared} is not compatible with MISMO {pack.mismo_version}",
                Severity.ERROR, FindingCategory.VERSION, field=field,
            )]
        return []

    def _check_identifiers(self, root: etree._Element, pack: SchemaPack) -> list[ValidationFinding]:
        findings = []
        ns = {"m": pack.namespace}

        build_path = f"/{pack.root_element}/ABOUT_VERSIONS/ABOUT_VERSION/DataVersionIdentifier"
        builds = root.xpath("m:ABOUT_VERSIONS/m:ABOUT_VERSION/m:DataVersionIdentifier", namespaces=ns)
        if not builds:
            findings.append(_finding(
                "MISSING_BUILD",
                f"Build identifier not declared; expected {pack.build}",
                Severity.WARNING, FindingCategory.VERSION, field=build_path,
            ))
        elif (builds[0].text or "").strip() != pack.build:
            findings.append(_finding(
                "BUILD_MISMATCH",
                f"Declared build {(builds[0].text or '').strip()} differs from pack build {pack.build}",
                Severity.WARNING, FindingCategory.VERSION, field=build_path,
            ))

        ldd_path = f"/{pack.root_element}/MESSAGE_HEADER/MISMOLogicalDataDictionaryIdentifier"
        ldds = root.xpath("m:MESSAGE_HEADER/m:MISMOLogicalDataDictionaryIdentifier", namespaces=ns)
        if not ldds:
            findings.append(_finding(
                "MISSING_LDD",
                f"MISMOLogicalDataDictionaryIdentifier not declared; expected {pack.ldd_identifier}",
                Severity.WARNING, FindingCategory.VERSION, field=ldd_path,
            ))
        elif (ldds[0].text or "").strip() != pack.ldd_identifier:
            findings.append(_finding(
                "LDD_MISMATCH",
                f"LDD identifier should be {pack.ldd_identifier}, found {(ldds[0].text or '').strip()}",
                Severity.WARNING, FindingCategory.VERSION, field=ldd_path,
            ))

        return findings

    # ---- extension placement ---------------------------------------------

    def _check_extension_placement(self, root: etree._Element, pack: SchemaPack) -> list[ValidationFinding]:
        """Non-MISMO content may only appear under EXTENSION/OTHER, in an allowed namespace."""
        severity = Severity.ERROR if pack.is_strict else Severity.WARNING
        allowed = set(pack.allowed_extension_namespaces)
        findings = []

        def walk(element: etree._Element) -> None:
            for child in element_children(element):
                child_ns = namespace_of(child)
                if child_ns == pack.namespace:
                    walk(child)
                    continue

                if _is_extension_slot(element, pack):
                    if child_ns not in allowed:
                        findings.append(_finding(
                            "UNDECLARED_EXTENSION_NAMESPACE",
                            f"Extension content in namespace {child_ns or 'none'} is not allowed by pack {pack.pack_id}",
                            severity, FindingCategory.STRUCTURAL, field=element_xpath(child),
                        ))
                else:
                    findings.append(_finding(
                        "FOREIGN_ELEMENT_OUTSIDE_EXTENSION",
                        f"Element {local_name(child)} in namespace {child_ns or 'none'} must be carried under EXTENSION/OTHER",
                        severity, FindingCategory.STRUCTURAL, field=element_xpath(child),
                    ))

        walk(root)
        return findings

    # ---- strict grammar --------------------------------------------------

    def _check_grammar(self, root: etree._Element, pack: SchemaPack) -> list[ValidationFinding]:
        findings: list[ValidationFinding] = []
        self._check_container(root, pack, findings)
        return findings

    def _check_container(self, element: etree._Element, pack: SchemaPack, findings: list[ValidationFinding]) -> None:
        name = local_name(element)
        rules = child_rules(name)
        if rules is None:
            return

        index = {rule.name: pos for pos, rule in enumerate(rules)}
        counts = {rule.name: 0 for rule in rules}
        furthest = -1
        furthest_name = None

        for child in element_children(element):
            if namespace_of(child) != pack.namespace:
                continue

            child_name = local_name(child)
            if child_name not in index:
                findings.append(_finding(
                    "UNKNOWN_ELEMENT",
                    f"{child_name} is not part of the {name} content model",
                    Severity.WARNING, FindingCategory.STRUCTURAL, field=element_xpath(child),
                ))
                continue

            position = index[child_name]
            if position < furthest:
                findings.append(_finding(
                    "ELEMENT_OUT_OF_ORDER",
                    f"{child_name} must appear before {furthest_name} in {name}",
                    Severity.ERROR, FindingCategory.STRUCTURAL, field=element_xpath(child),
                ))
            else:
                furthest, furthest_name = position, child_name
            counts[child_name] += 1

            if child_name in CONTENT_MODEL:
                if child_name != "EXTENSION":
                    self._check_container(child, pack, findings)
            else:
                findings.extend(_check_data_point(child))

        element_path = element_xpath(element)
        for rule in rules:
            seen = counts[rule.name]
            if seen < rule.min_occurs:
                findings.append(_finding(
                    "MISSING_ELEMENT",
                    f"{name} requires {rule.name}",
                    Severity.ERROR, FindingCategory.STRUCTURAL, field=f"{element_path}/{rule.name}",
                ))
            if rule.max_occurs is not None and seen > rule.max_occurs:
                findings.append(_finding(
                    "TOO_MANY_OCCURRENCES",
                    f"{rule.name} occurs {seen} times in {name}; at most {rule.max_occurs} allowed",
                    Severity.ERROR, FindingCategory.STRUCTURAL, field=f"{element_path}/{rule.name}",
                ))

    def _check_required_elements(self, root: etree._Element, pack: SchemaPack) -> list[ValidationFinding]:
        present = {local_name(el) for el in root.iter(etree.Element) if namespace_of(el) == pack.namespace}
        return [
            _finding(
                "MISSING_REQUIRED_ELEMENT",
                f"Pack {pack.pack_id} requires a {name} element",
                Severity.ERROR, FindingCategory.STRUCTURAL, field=name,
            )
            for name in pack.required_elements
            if name not in present
        ]


def _check_data_point(element: etree._Element) -> list[ValidationFinding]:
    name = local_name(element)
    value = (element.text or "").strip()
    findings = []

    datatype = ELEMENT_DATATYPES.get(name)
    if datatype and not _PATTERNS[datatype].fullmatch(value):
        findings.append(_finding(
            "INVALID_FORMAT",
            f"{name} value '{value}' is not a valid {datatype}",
            Severity.ERROR, FindingCategory.STRUCTURAL, field=element_xpath(element),
        ))

    allowed = LDD_ENUMS.get(name)
    if allowed and value not in allowed:
        findings.append(_finding(
            "INVALID_LDD_ENUM",
            f"{name} value '{value}' is not in the logical data dictionary",
            Severity.ERROR, FindingCategory.STRUCTURAL, field=element_xpath(element),
        ))

    return findings


def _is_extension_slot(element: etree._Element, pack: SchemaPack) -> bool:
    """True for an OTHER element directly under a MISMO EXTENSION."""
    parent = element.getparent()
    return (
        local_name(element) == "OTHER"
        and namespace_of(element) == pack.namespace
        and parent is not None
        and local_name(parent) == "EXTENSION"
    )


def _finding(
    rule: str,
    message: str,
    severity: Severity,
    category: FindingCategory,
    field: str,
) -> ValidationFinding:
    return ValidationFinding(
        field=field,
        message=message,
        severity=severity,
        category=category,
        rule=rule,
        xpath=field if field.startswith("/") else None,
    )
