"""
Preflight rule implementations.

Provides validators for required fields, enumerated values, datatypes,
numeric ranges, regex formats and cross-field conditional rules.
"""

from .base_validator import BaseValidator, ValidationError
from .conditional_validator import ConditionalValidator
from .enum_validator import EnumValidator
from .range_validator import RangeValidator
from .regex_validator import RegexValidator
from .required_field_validator import RequiredFieldValidator
from .type_validator import TypeValidator

__all__ = [
    "BaseValidator",
    "ValidationError",
    "RequiredFieldValidator",
    "EnumValidator",
    "TypeValidator",
    "RangeValidator",
    "RegexValidator",
    "ConditionalValidator",
]
