"""Medical terminology sources.

Supplies the code systems the registry is built from. The built-in source
carries the HL7 tables and the LOINC subset; applications that load larger
terminologies (for example a full LOINC release or a SNOMED CT extract) hand
them in through ``StaticTerminologySource`` or ``code_system_from_fhir``.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from clinical_fhir.coding_systems import hl7_code_systems as hl7
from clinical_fhir.coding_systems.loinc_implementation import LOINC_SYSTEM, LOINCRepository
from clinical_fhir.coding_systems.registry import CodeSystem
from clinical_fhir.core.exceptions import CardinalityError, FormatError

# FHIR resource type for this module
__fhir_resource__ = "CodeSystem"


class CodingSystem(str, Enum):
    """Standard coding system URLs used across the resource models."""

    LOINC = LOINC_SYSTEM
    SNOMED_CT = "http://snomed.info/sct"
    ICD10_CM = "http://hl7.org/fhir/sid/icd-10-cm"
    UCUM = hl7.UCUM
    NUCC_TAXONOMY = hl7.PROVIDER_TAXONOMY
    BCP47 = hl7.LANGUAGES
    IDENTIFIER_TYPE = hl7.IDENTIFIER_TYPE
    CONTACT_POINT_SYSTEM = hl7.CONTACT_POINT_SYSTEM
    ADMINISTRATIVE_GENDER = hl7.ADMINISTRATIVE_GENDER
    ACT_CODE = hl7.ACT_CODE
    ENCOUNTER_STATUS = hl7.ENCOUNTER_STATUS
    APPOINTMENT_STATUS = hl7.APPOINTMENT_STATUS
    PARTICIPANT_TYPE = hl7.PARTICIPATION_TYPE
    QUESTIONNAIRE_RESPONSE_STATUS = hl7.QUESTIONNAIRE_ANSWERS_STATUS
    US_CORE_RACE = "urn:oid:2.16.840.1.113883.6.238"


class BuiltinTerminologySource:
    """HL7 tables plus the LOINC subset shipped with the library."""

    def __init__(self, loinc: Optional[LOINCRepository] = None):
        """Initialize source.

        Args:
            loinc: LOINC repository to export; a fresh one by default
        """
        self.loinc = loinc or LOINCRepository()

    def load_code_systems(self) -> List[CodeSystem]:
        """Return built-in code systems."""
        return [*hl7.builtin_hl7_code_systems(), self.loinc.to_code_system()]


class StaticTerminologySource:
    """Code systems supplied as plain ``{url: {code: display}}`` mappings."""

    def __init__(
        self,
        code_systems: Mapping[str, Mapping[str, str]],
        include_builtin: bool = True,
    ):
        """Initialize source.

        Args:
            code_systems: System URL to concept table
            include_builtin: Also register the built-in tables
        """
        self.code_systems = {url: dict(concepts) for url, concepts in code_systems.items()}
        self.include_builtin = include_builtin

    def load_code_systems(self) -> List[CodeSystem]:
        """Return the supplied code systems, after the built-ins when enabled."""
        systems: List[CodeSystem] = []
        if self.include_builtin:
            systems.extend(BuiltinTerminologySource().load_code_systems())
        for url, concepts in self.code_systems.items():
            systems.append(CodeSystem(url=url, name=url.rsplit("/", 1)[-1], concepts=concepts))
        return systems


def code_system_from_fhir(resource: Dict[str, Any]) -> CodeSystem:
    """Convert a FHIR CodeSystem resource dict into a registry code system.

    Nested concepts are flattened.

    Raises:
        FormatError: If the input is not a CodeSystem
        CardinalityError: If ``url`` or a concept code is missing
    """
    if resource.get("resourceType") != "CodeSystem":
        raise FormatError("CodeSystem", resource.get("resourceType"), path="resourceType",
                          message="expected a CodeSystem resource")
    url = resource.get("url")
    if not url:
        raise CardinalityError("CodeSystem.url is required", path="CodeSystem.url")

    concepts: Dict[str, str] = {}

    def collect(entries: Iterable[Dict[str, Any]], path: str) -> None:
        for index, entry in enumerate(entries):
            code = entry.get("code")
            if not code:
                raise CardinalityError("concept code is required", path=f"{path}[{index}].code")
            concepts[code] = entry.get("display", code)
            collect(entry.get("concept", []), f"{path}[{index}].concept")

    collect(resource.get("concept", []), "CodeSystem.concept")
    return CodeSystem(
        url=url,
        name=resource.get("name") or url.rsplit("/", 1)[-1],
        concepts=concepts,
        version=resource.get("version"),
    )
