"""
Unit tests for the schema pack registry and pack detection.
"""

import pytest

from mismo_conformance.core.models import StrictnessProfile
from mismo_conformance.core.schema import SchemaPackRegistry, read_declared_ldd
from mismo_conformance.errors import ConfigurationError, UnknownPackError

STANDARD = "PACK_A_GENERIC_MISMO_34_B324"
STRICT = "PACK_B_DU_ULAD_STRICT_34_B324"


def document_with_ldd(ldd: str | None) -> bytes:
    header = (
        f"<MESSAGE_HEADER><MISMOLogicalDataDictionaryIdentifier>{ldd}"
        f"</MISMOLogicalDataDictionaryIdentifier></MESSAGE_HEADER>"
        if ldd is not None else ""
    )
    return (
        '<MESSAGE xmlns="http://www.mismo.org/residential/2009/schemas" MISMOVersionID="3.4.0">'
        f"<DEAL_SETS/>{header}</MESSAGE>"
    ).encode("utf-8")


class TestSchemaPackRegistry:
    """Tests for SchemaPackRegistry"""

    def test_bundled_packs(self, registry):
        """Test that both bundled packs load with the standard pack as default"""
        assert registry.pack_ids == [STANDARD, STRICT]
        assert registry.default_pack_id == STANDARD

    def test_pack_definitions(self, registry):
        """Test the loaded pack attributes"""
        standard = registry.resolve(STANDARD)
        strict = registry.resolve(STRICT)

        assert standard.version_id == "3.4.0"
        assert standard.build == "324"
        assert standard.profile == StrictnessProfile.STANDARD
        assert strict.is_strict
        assert "http://www.w3.org/1999/xlink" in strict.required_namespaces
        assert "LOAN_DETAIL" in strict.required_elements

    def test_unknown_pack(self, registry):
        """Test that resolving an unknown id raises"""
        with pytest.raises(UnknownPackError) as exc_info:
            registry.resolve("PACK_Z")

        assert exc_info.value.pack_id == "PACK_Z"
        assert STANDARD in str(exc_info.value)

    def test_resolve_or_default(self, registry):
        """Test that None resolves to the default pack"""
        assert registry.resolve_or_default(None).pack_id == STANDARD
        assert registry.resolve_or_default(STRICT).pack_id == STRICT

    def test_default_override(self):
        """Test overriding the file's default pack"""
        registry = SchemaPackRegistry.from_yaml(default_pack_id=STRICT)

        assert registry.default_pack_id == STRICT

    def test_unregistered_default(self):
        """Test that the default pack must be registered"""
        with pytest.raises(ConfigurationError, match="not registered"):
            SchemaPackRegistry.from_yaml(default_pack_id="PACK_Z")

    def test_duplicate_ids(self, standard_pack):
        """Test that pack ids must be unique"""
        with pytest.raises(ConfigurationError, match="Duplicate"):
            SchemaPackRegistry([standard_pack, standard_pack], STANDARD)

    def test_missing_file(self, tmp_path):
        """Test that a missing packs file is a configuration error"""
        with pytest.raises(ConfigurationError, match="not found"):
            SchemaPackRegistry.from_yaml(tmp_path / "packs.yaml")

    def test_invalid_pack_definition(self, tmp_path):
        """Test that an invalid pack is reported with its id"""
        path = tmp_path / "packs.yaml"
        path.write_text(
            "packs:\n"
            "  BROKEN:\n"
            "    name: Broken\n"
            "    mismo_version: '3.4'\n"
            "    version_id: '3.3.0'\n"
            "    build: '1'\n"
            "    namespace: urn:x\n"
            "    required_namespaces: [urn:x]\n"
            "    vendor_namespace: urn:v\n"
            "    ldd_identifier: urn:l\n"
        )

        with pytest.raises(ConfigurationError, match="BROKEN"):
            SchemaPackRegistry.from_yaml(path)

    def test_registry_is_read_only(self, registry):
        """Test that list_packs returns a copy"""
        registry.list_packs().clear()

        assert len(registry.list_packs()) == 2


class TestPackDetection:
    """Tests for detecting the pack of an inbound document"""

    def test_detect_standard(self, registry):
        """Test exact LDD match for the standard pack"""
        assert registry.detect(document_with_ldd("urn:fdc:mismo.org:ldd:3.4.324")) == STANDARD

    def test_detect_strict(self, registry):
        """Test exact LDD match for the strict pack"""
        assert registry.detect(document_with_ldd("urn:fdc:mismo.org:ldd:3.4.324:ULAD-DU")) == STRICT

    def test_unknown_ldd_falls_back_to_default(self, registry):
        """Test that an unmatched LDD uses the default pack"""
        assert registry.detect(document_with_ldd("urn:fdc:mismo.org:ldd:3.4.999")) == STANDARD

    def test_no_ldd_falls_back_to_default(self, registry):
        """Test that a document without LDD uses the default pack"""
        assert registry.detect(document_with_ldd(None)) == STANDARD

    def test_malformed_document_falls_back_to_default(self, registry):
        """Test that detection never raises on broken input"""
        assert registry.detect(b"<MESSAGE><unclosed>") == STANDARD

    def test_read_declared_ldd(self):
        """Test reading the declared LDD with surrounding whitespace"""
        assert read_declared_ldd(document_with_ldd("  urn:test  ")) == "urn:test"
        assert read_declared_ldd(document_with_ldd(None)) is None
        assert read_declared_ldd(b"not xml") is None
