"""
Exceptions raised outside of a pipeline run.

Validation problems never surface as exceptions; they become findings on a
ValidationReport. The classes below cover configuration mistakes, programmer
errors and the external collaborator contracts.
"""


class ConformanceError(Exception):
    """Base class for all pipeline exceptions."""


class UnknownPackError(ConformanceError):
    """Raised when a schema pack id is not registered."""

    def __init__(self, pack_id: str, known: list[str] | None = None):
        self.pack_id = pack_id
        self.known = known or []
        message = f"Unknown schema pack: {pack_id}"
        if self.known:
            message += f" (registered: {', '.join(self.known)})"
        super().__init__(message)


class ConfigurationError(ConformanceError):
    """Raised when a YAML configuration file is missing or malformed."""


class XmlParseError(ConformanceError):
    """Raised when a document is not well-formed XML."""

    def __init__(self, message: str, line: int | None = None):
        self.line = line
        super().__init__(message if line is None else f"{message} (line {line})")


class RunStateError(ConformanceError):
    """Raised on an attempt to move a run out of a terminal status."""

    def __init__(self, run_id: str, status: str):
        self.run_id = run_id
        self.status = status
        super().__init__(f"Run {run_id} is already terminal with status '{status}'")


class EntityStoreError(ConformanceError):
    """Raised by an entity store on a transient failure; safe to retry."""


class EntityStoreTimeout(EntityStoreError):
    """Raised by an entity store when a call exceeds its timeout."""


class EntityNotFoundError(ConformanceError):
    """Raised when the entity store has no deal for a reference."""

    def __init__(self, deal_reference: str):
        self.deal_reference = deal_reference
        super().__init__(f"Deal not found: {deal_reference}")


class DealExistsError(ConformanceError):
    """Raised when a deal is created under a reference the entity store already holds."""

    def __init__(self, deal_reference: str):
        self.deal_reference = deal_reference
        super().__init__(f"Deal already exists: {deal_reference}")


class PipelineCancelled(ConformanceError):
    """Raised inside a run when the caller signals cancellation."""


class SubmissionRefusedError(ConformanceError):
    """Raised when an export result may not be handed to a counterparty."""

    def __init__(self, run_id: str, reason: str):
        self.run_id = run_id
        self.reason = reason
        super().__init__(f"Submission refused for run {run_id}: {reason}")
