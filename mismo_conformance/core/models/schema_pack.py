"""
SchemaPack model describing one supported MISMO version/build combination.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StrictnessProfile(str, Enum):
    """How much of the pack's grammar the structural validator enforces."""

    STANDARD = "standard"
    STRICT = "strict"


class SchemaPack(BaseModel):
    """
    Immutable description of one MISMO edition the pipeline can emit or accept.

    Attributes:
        pack_id: Registry key (e.g., "PACK_A_GENERIC_MISMO_34_B324")
        name: Human readable name
        mismo_version: Target version prefix (e.g., "3.4")
        version_id: Value written to the root MISMOVersionID attribute
        build: Build number written to ABOUT_VERSION/DataVersionIdentifier
        root_element: Local name of the document root
        namespace: The standard MISMO namespace URI
        required_namespaces: Namespace URIs that must be declared on the root
        vendor_namespace: Namespace that carries proprietary extension fields
        vendor_prefix: Prefix bound to vendor_namespace in generated documents
        extension_namespaces: Namespaces allowed inside EXTENSION/OTHER
        ldd_identifier: Logical data dictionary identifier in MESSAGE_HEADER
        profile: Strictness profile (standard or strict)
        required_elements: Element names that must occur somewhere (strict only)
        schema_location: Optional xsi:schemaLocation value
    """

    model_config = ConfigDict(frozen=True)

    pack_id: str = Field(..., min_length=1)
    name: str
    mismo_version: str
    version_id: str
    build: str
    root_element: str = "MESSAGE"
    namespace: str
    required_namespaces: tuple[str, ...]
    vendor_namespace: str
    vendor_prefix: str = "LG"
    extension_namespaces: tuple[str, ...] = ()
    ldd_identifier: str
    profile: StrictnessProfile = StrictnessProfile.STANDARD
    required_elements: tuple[str, ...] = ()
    schema_location: str | None = None

    @field_validator("version_id")
    @classmethod
    def check_version_prefix(cls, v, info):
        """version_id must belong to the pack's version line."""
        mismo_version = info.data.get("mismo_version")
        if mismo_version and not (v == mismo_version or v.startswith(mismo_version + ".")):
            raise ValueError(f"version_id '{v}' is not compatible with mismo_version '{mismo_version}'")
        return v

    @property
    def is_strict(self) -> bool:
        return self.profile == StrictnessProfile.STRICT

    @property
    def allowed_extension_namespaces(self) -> tuple[str, ...]:
        """Vendor namespace first, then any other namespaces the pack admits."""
        others = tuple(ns for ns in self.extension_namespaces if ns != self.vendor_namespace)
        return (self.vendor_namespace,) + others
