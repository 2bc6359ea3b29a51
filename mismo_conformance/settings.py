"""
Runtime settings read from environment variables.
"""

import os

from pydantic import BaseModel, Field


class PipelineSettings(BaseModel):
    """
    Settings shared by the pipelines and the CLI.

    Attributes:
        default_pack: Overrides the default pack of the packs file
        schema_packs_path: YAML file with the schema pack definitions
        preflight_rules_path: YAML file with the preflight rules
        fetch_timeout: Seconds allowed per entity store call
        fetch_retries: Attempts per entity store call
        retry_delay: Seconds between attempts
        log_level: Logging level name
        log_format: "json" or "text"
    """

    default_pack: str | None = None
    schema_packs_path: str | None = None
    preflight_rules_path: str | None = None
    fetch_timeout: float = Field(10.0, gt=0)
    fetch_retries: int = Field(3, ge=1)
    retry_delay: float = Field(0.5, ge=0)
    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        return cls(
            default_pack=os.getenv("MISMO_DEFAULT_PACK") or None,
            schema_packs_path=os.getenv("MISMO_SCHEMA_PACKS_PATH") or None,
            preflight_rules_path=os.getenv("MISMO_PREFLIGHT_RULES_PATH") or None,
            fetch_timeout=float(os.getenv("MISMO_FETCH_TIMEOUT", "10")),
            fetch_retries=int(os.getenv("MISMO_FETCH_RETRIES", "3")),
            retry_delay=float(os.getenv("MISMO_RETRY_DELAY", "0.5")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )
