"""
Entity store: the system of record for canonical deals.

The pipelines only depend on the EntityStore contract. The bundled
implementations cover tests (in memory) and the CLI (a directory of JSON
files, one per deal).
"""

import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from mismo_conformance.core.models import CanonicalDeal, UnmappedNode
from mismo_conformance.errors import DealExistsError, EntityNotFoundError, EntityStoreError
from mismo_conformance.observability.logger import get_logger

logger = get_logger(__name__)


class EntityStore(ABC):
    """Contract for reading and creating deals."""

    @abstractmethod
    def fetch_deal(self, deal_reference: str, timeout: float | None = None) -> CanonicalDeal:
        """
        Load a deal.

        Raises:
            EntityNotFoundError: If no deal has this reference
            EntityStoreError: On a transient failure (safe to retry)
            EntityStoreTimeout: If the call exceeds timeout
        """

    @abstractmethod
    def create_deal(self, deal: CanonicalDeal) -> str:
        """
        Persist a new deal and return its reference.

        Raises:
            DealExistsError: If a deal with this reference is already stored
            EntityStoreError: On a transient failure (safe to retry)
        """

    @abstractmethod
    def save_unmapped_nodes(self, deal_reference: str | None, run_id: str, nodes: list[UnmappedNode]) -> None:
        """Keep nodes the mapper could not place, keyed by run and (optionally) deal."""


class InMemoryEntityStore(EntityStore):
    """Dict-backed entity store."""

    def __init__(self, deals: list[CanonicalDeal] | None = None):
        self._lock = threading.Lock()
        self._deals: dict[str, CanonicalDeal] = {deal.deal_reference: deal for deal in deals or []}
        self.unmapped: dict[str, list[UnmappedNode]] = {}

    def fetch_deal(self, deal_reference: str, timeout: float | None = None) -> CanonicalDeal:
        try:
            return self._deals[deal_reference]
        except KeyError:
            raise EntityNotFoundError(deal_reference) from None

    def create_deal(self, deal: CanonicalDeal) -> str:
        with self._lock:
            if deal.deal_reference in self._deals:
                raise DealExistsError(deal.deal_reference)
            self._deals[deal.deal_reference] = deal
        return deal.deal_reference

    def save_unmapped_nodes(self, deal_reference: str | None, run_id: str, nodes: list[UnmappedNode]) -> None:
        with self._lock:
            self.unmapped[run_id] = list(nodes)

    def __contains__(self, deal_reference: str) -> bool:
        return deal_reference in self._deals


class JsonFileEntityStore(EntityStore):
    """
    Deals stored as ``<root>/<deal_reference>.json``.

    Unmapped nodes of a run go to ``<root>/unmapped/<run_id>.json``.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _deal_path(self, deal_reference: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in deal_reference)
        return self.root / f"{safe}.json"

    def fetch_deal(self, deal_reference: str, timeout: float | None = None) -> CanonicalDeal:
        path = self._deal_path(deal_reference)
        if not path.exists():
            raise EntityNotFoundError(deal_reference)

        try:
            with open(path) as f:
                return CanonicalDeal.model_validate(json.load(f))
        except OSError as e:
            raise EntityStoreError(f"Failed to read {path}: {e}") from e
        except (ValueError, PydanticValidationError) as e:
            raise EntityStoreError(f"Deal file {path} is not a valid deal: {e}") from e

    def create_deal(self, deal: CanonicalDeal) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._deal_path(deal.deal_reference)
        try:
            with open(path, "x") as f:
                f.write(deal.model_dump_json(indent=2))
        except FileExistsError:
            raise DealExistsError(deal.deal_reference) from None
        except OSError as e:
            raise EntityStoreError(f"Failed to write {path}: {e}") from e

        logger.info("Deal written", extra={"deal_reference": deal.deal_reference, "file": str(path)})
        return deal.deal_reference

    def save_unmapped_nodes(self, deal_reference: str | None, run_id: str, nodes: list[UnmappedNode]) -> None:
        directory = self.root / "unmapped"
        directory.mkdir(parents=True, exist_ok=True)
        payload = {
            "run_id": run_id,
            "deal_reference": deal_reference,
            "nodes": [node.model_dump() for node in nodes],
        }
        try:
            with open(directory / f"{run_id}.json", "w") as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            raise EntityStoreError(f"Failed to write unmapped nodes for run {run_id}: {e}") from e
