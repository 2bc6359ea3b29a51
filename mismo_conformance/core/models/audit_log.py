"""
AuditLog model representing one stage transition of a pipeline run.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class AuditLog(BaseModel):
    """
    Stage-level audit entry.

    Attributes:
        log_id: Auto-increment primary key (set by the store)
        run_id: Run the entry belongs to
        direction: export or import
        stage: Pipeline stage (e.g., "preflight", "structural_validation")
        outcome: Stage outcome (e.g., "PASS", "FAIL", "blocked")
        detail: Optional free text (finding counts, error type)
        created_at: When the transition happened
    """

    log_id: int | None = None
    run_id: str
    direction: str
    stage: str
    outcome: str
    detail: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "log_id": 1,
                "run_id": "3f1c9f0e-7a55-4a53-9a53-8d8b5a1c2f10",
                "direction": "export",
                "stage": "preflight",
                "outcome": "PASS_WITH_WARNINGS",
                "detail": "errors=0 warnings=1",
            }
        }
    )
