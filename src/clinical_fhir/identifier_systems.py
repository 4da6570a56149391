"""Identifier Systems.

Builders and lookups for FHIR Identifier values: medical record numbers,
provider numbers and the other business identifiers resources carry.
"""

from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from clinical_fhir.coding_systems import hl7_code_systems as hl7
from clinical_fhir.config import get_settings
from clinical_fhir.core.exceptions import CardinalityError
from clinical_fhir.fhir_types import CodeableConcept, Coding, Identifier, IdentifierUse, Period, Reference

# FHIR resource type for this module
__fhir_resource__ = "Identifier"


class IdentifierSystem(str, Enum):
    """Well-known identifier namespaces."""

    NPI = "http://hl7.org/fhir/sid/us-npi"
    SSN = "http://hl7.org/fhir/sid/us-ssn"
    EIN = "urn:oid:2.16.840.1.113883.4.4"
    MEDICARE = "http://hl7.org/fhir/sid/us-mbi"


class IdentifierTypeCode(str, Enum):
    """Identifier type codes from HL7 v2 table 0203."""

    MEDICAL_RECORD = "MR"
    SOCIAL_SECURITY = "SS"
    PROVIDER_NUMBER = "PRN"
    NATIONAL_PROVIDER = "NPI"
    TAX_ID = "TAX"
    DRIVERS_LICENSE = "DL"
    PASSPORT = "PPN"


def identifier_type(code: Union[IdentifierTypeCode, str]) -> CodeableConcept:
    """Build an Identifier.type concept from a v2-0203 code."""
    code_value = getattr(code, "value", code)
    display = hl7.HL7_CONCEPTS[hl7.IDENTIFIER_TYPE].get(code_value)
    return CodeableConcept(
        coding=[Coding(system=hl7.IDENTIFIER_TYPE, code=code_value, display=display)],
        text=display,
    )


def create_identifier(
    system: Union[IdentifierSystem, str, None],
    value: str,
    use: Union[IdentifierUse, str, None] = IdentifierUse.OFFICIAL,
    type_code: Union[IdentifierTypeCode, str, None] = None,
    period: Optional[Period] = None,
    assigner: Optional[Reference] = None,
) -> Identifier:
    """Create an Identifier.

    Args:
        system: Namespace of the value
        value: The identifier itself
        use: Identifier use, ``official`` unless given
        type_code: Optional v2-0203 type code
        period: When the identifier was valid
        assigner: Organization that issued the identifier

    Raises:
        CardinalityError: If ``value`` is empty
    """
    if not value:
        raise CardinalityError("an identifier requires a value", path="Identifier.value")
    return Identifier(
        use=use,
        system=getattr(system, "value", system),
        value=value,
        type=identifier_type(type_code) if type_code is not None else None,
        period=period,
        assigner=assigner,
    )


def create_mrn(value: str, use: Union[IdentifierUse, str] = IdentifierUse.USUAL) -> Identifier:
    """Medical record number in the configured MRN namespace."""
    return create_identifier(
        get_settings().mrn_identifier_system, value, use=use, type_code=IdentifierTypeCode.MEDICAL_RECORD
    )


def create_npi(value: str) -> Identifier:
    """National Provider Identifier in the configured NPI namespace."""
    return create_identifier(
        get_settings().npi_identifier_system, value, type_code=IdentifierTypeCode.NATIONAL_PROVIDER
    )


def identifiers_by_system(identifiers: Optional[Sequence[Identifier]]) -> Dict[Optional[str], List[str]]:
    """Group identifier values by system, keeping their order."""
    grouped: Dict[Optional[str], List[str]] = {}
    for identifier in identifiers or []:
        if identifier.value is None:
            continue
        system = str(identifier.system) if identifier.system is not None else None
        grouped.setdefault(system, []).append(str(identifier.value))
    return grouped


def get_identifier_value(
    identifiers: Optional[Sequence[Identifier]],
    system: Union[IdentifierSystem, str, None] = None,
    type_code: Union[IdentifierTypeCode, str, None] = None,
) -> Optional[str]:
    """Return the first identifier value matching ``system`` and/or ``type_code``."""
    system_value = getattr(system, "value", system)
    code_value = getattr(type_code, "value", type_code)
    for identifier in identifiers or []:
        if system_value is not None and identifier.system != system_value:
            continue
        if code_value is not None and (
            identifier.type is None or not identifier.type.has_coding(hl7.IDENTIFIER_TYPE, code_value)
        ):
            continue
        if identifier.value is not None:
            return str(identifier.value)
    return None
