"""Healthcare Coding Systems Module.

This module provides the read-only code system registry together with the
built-in HL7 tables and the LOINC subset used by the assessment instruments.
"""

from .hl7_code_systems import HL7_CONCEPTS, UCUM_TIME_UNITS, builtin_hl7_code_systems
from .loinc_implementation import (
    LOINC_SYSTEM,
    AssessmentLOINCCodes,
    LOINCCode,
    LOINCRepository,
    LOINCValidator,
    loinc_repository,
    loinc_validator,
)
from .registry import (
    BindingStrength,
    CodeSystem,
    CodeSystemRegistry,
    TerminologySource,
    ValueSetBinding,
    contains_code,
    get_registry,
    initialize_registry,
    reset_registry,
)

__all__ = [
    "BindingStrength",
    "CodeSystem",
    "CodeSystemRegistry",
    "TerminologySource",
    "ValueSetBinding",
    "contains_code",
    "get_registry",
    "initialize_registry",
    "reset_registry",
    "HL7_CONCEPTS",
    "UCUM_TIME_UNITS",
    "builtin_hl7_code_systems",
    "LOINC_SYSTEM",
    "AssessmentLOINCCodes",
    "LOINCCode",
    "LOINCRepository",
    "LOINCValidator",
    "loinc_repository",
    "loinc_validator",
]
