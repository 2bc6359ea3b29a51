"""
Preflight rule engine and configuration management.
"""

from .preflight import PreflightValidator
from .rule_config import DEFAULT_RULES_PATH, RuleConfigBuilder, RuleConfigLoader
from .rule_engine import CATEGORY_ORDER, RuleEngine

__all__ = [
    "RuleEngine",
    "RuleConfigLoader",
    "RuleConfigBuilder",
    "PreflightValidator",
    "CATEGORY_ORDER",
    "DEFAULT_RULES_PATH",
]
