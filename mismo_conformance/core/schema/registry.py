"""
Schema pack registry.

Holds the immutable SchemaPack definitions loaded from YAML at startup and
detects which pack an inbound document targets from its declared logical
data dictionary identifier.
"""

from io import BytesIO
from pathlib import Path
from types import MappingProxyType

import yaml
from lxml import etree
from pydantic import ValidationError as PydanticValidationError

from mismo_conformance.core.models import SchemaPack
from mismo_conformance.errors import ConfigurationError, UnknownPackError
from mismo_conformance.observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_PACKS_PATH = Path(__file__).resolve().parents[2] / "config" / "schema_packs.yaml"
LDD_ELEMENT = "MISMOLogicalDataDictionaryIdentifier"


def read_declared_ldd(xml_bytes: bytes) -> str | None:
    """
    Stream the document until the first LDD identifier element.

    Returns None when the element is absent or the document is not
    well-formed before it is reached.
    """
    try:
        for _, element in etree.iterparse(
            BytesIO(xml_bytes),
            events=("end",),
            tag=f"{{*}}{LDD_ELEMENT}",
            resolve_entities=False,
            no_network=True,
            load_dtd=False,
        ):
            return (element.text or "").strip() or None
    except etree.XMLSyntaxError:
        return None
    return None


class SchemaPackRegistry:
    """
    Read-only registry of supported schema packs.

    Safe to share between concurrent runs: nothing is mutated after
    construction.
    """

    def __init__(self, packs: list[SchemaPack], default_pack_id: str):
        """
        Args:
            packs: Pack definitions, in detection priority order
            default_pack_id: Pack used when detection is inconclusive

        Raises:
            ConfigurationError: On duplicate ids or an unregistered default
        """
        by_id: dict[str, SchemaPack] = {}
        for pack in packs:
            if pack.pack_id in by_id:
                raise ConfigurationError(f"Duplicate schema pack id: {pack.pack_id}")
            by_id[pack.pack_id] = pack

        if default_pack_id not in by_id:
            raise ConfigurationError(f"Default pack '{default_pack_id}' is not registered")

        self._packs = MappingProxyType(by_id)
        self._default_pack_id = default_pack_id

    @classmethod
    def from_yaml(cls, config_path: str | Path | None = None, default_pack_id: str | None = None) -> "SchemaPackRegistry":
        """
        Load packs from a YAML file (the bundled packs by default).

        Args:
            config_path: Path to the packs file
            default_pack_id: Overrides the file's ``default_pack``

        Raises:
            ConfigurationError: If the file is missing, malformed or inconsistent
        """
        path = Path(config_path) if config_path else DEFAULT_PACKS_PATH
        if not path.exists():
            raise ConfigurationError(f"Schema pack file not found: {path}")

        try:
            with open(path) as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if not config or not isinstance(config.get("packs"), dict):
            raise ConfigurationError("Schema pack file must contain a 'packs' mapping")

        packs = []
        for pack_id, definition in config["packs"].items():
            try:
                packs.append(SchemaPack(pack_id=pack_id, **definition))
            except (PydanticValidationError, TypeError) as e:
                raise ConfigurationError(f"Invalid schema pack '{pack_id}': {e}") from e

        default = default_pack_id or config.get("default_pack") or packs[0].pack_id
        registry = cls(packs, default)
        logger.info(
            "Schema packs loaded",
            extra={"pack_ids": registry.pack_ids, "default_pack": default, "path": str(path)},
        )
        return registry

    @property
    def default_pack_id(self) -> str:
        return self._default_pack_id

    @property
    def pack_ids(self) -> list[str]:
        return list(self._packs)

    def list_packs(self) -> list[SchemaPack]:
        return list(self._packs.values())

    def resolve(self, pack_id: str) -> SchemaPack:
        """
        Look up a pack by id.

        Raises:
            UnknownPackError: If the id is not registered
        """
        try:
            return self._packs[pack_id]
        except KeyError:
            raise UnknownPackError(pack_id, self.pack_ids) from None

    def resolve_or_default(self, pack_id: str | None) -> SchemaPack:
        return self.resolve(pack_id or self._default_pack_id)

    def detect(self, xml_bytes: bytes) -> str:
        """
        Pick the pack an inbound document targets.

        The first pack whose LDD identifier equals the document's declared
        identifier wins; otherwise the default pack is returned.
        """
        declared = read_declared_ldd(xml_bytes)
        if declared:
            for pack in self._packs.values():
                if pack.ldd_identifier == declared:
                    return pack.pack_id

        logger.info(
            "Pack detection inconclusive, using default",
            extra={"declared_ldd": declared, "default_pack": self._default_pack_id},
        )
        return self._default_pack_id
