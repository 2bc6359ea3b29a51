"""
Export and import orchestrators.
"""

from .base import BasePipeline, RunOutcome
from .export_pipeline import ExportPipeline
from .import_pipeline import ImportPipeline

__all__ = [
    "BasePipeline",
    "RunOutcome",
    "ExportPipeline",
    "ImportPipeline",
]
