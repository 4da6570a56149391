"""Reference Shape Contract.

Parses literal FHIR reference strings and checks their shape. References are
weak pointers: nothing here ever dereferences one. Applications that store
resources implement ``ReferenceResolver`` to follow them.
"""

import re
from typing import Any, NamedTuple, Optional, Protocol, runtime_checkable

from clinical_fhir.core.exceptions import ReferenceShapeError
from clinical_fhir.primitives import ID_PATTERN

# FHIR R4 resource type names
R4_RESOURCE_TYPES = frozenset(
    {
        "Account", "ActivityDefinition", "AdverseEvent", "AllergyIntolerance", "Appointment",
        "AppointmentResponse", "AuditEvent", "Basic", "Binary", "BiologicallyDerivedProduct",
        "BodyStructure", "Bundle", "CapabilityStatement", "CarePlan", "CareTeam", "CatalogEntry",
        "ChargeItem", "ChargeItemDefinition", "Claim", "ClaimResponse", "ClinicalImpression",
        "CodeSystem", "Communication", "CommunicationRequest", "CompartmentDefinition",
        "Composition", "ConceptMap", "Condition", "Consent", "Contract", "Coverage",
        "CoverageEligibilityRequest", "CoverageEligibilityResponse", "DetectedIssue", "Device",
        "DeviceDefinition", "DeviceMetric", "DeviceRequest", "DeviceUseStatement",
        "DiagnosticReport", "DocumentManifest", "DocumentReference", "EffectEvidenceSynthesis",
        "Encounter", "Endpoint", "EnrollmentRequest", "EnrollmentResponse", "EpisodeOfCare",
        "EventDefinition", "Evidence", "EvidenceVariable", "ExampleScenario",
        "ExplanationOfBenefit", "FamilyMemberHistory", "Flag", "Goal", "GraphDefinition", "Group",
        "GuidanceResponse", "HealthcareService", "ImagingStudy", "Immunization",
        "ImmunizationEvaluation", "ImmunizationRecommendation", "ImplementationGuide",
        "InsurancePlan", "Invoice", "Library", "Linkage", "List", "Location", "Measure",
        "MeasureReport", "Media", "Medication", "MedicationAdministration", "MedicationDispense",
        "MedicationKnowledge", "MedicationRequest", "MedicationStatement", "MedicinalProduct",
        "MedicinalProductAuthorization", "MedicinalProductContraindication",
        "MedicinalProductIndication", "MedicinalProductIngredient", "MedicinalProductInteraction",
        "MedicinalProductManufactured", "MedicinalProductPackaged", "MedicinalProductPharmaceutical",
        "MedicinalProductUndesirableEffect", "MessageDefinition", "MessageHeader",
        "MolecularSequence", "NamingSystem", "NutritionOrder", "Observation",
        "ObservationDefinition", "OperationDefinition", "OperationOutcome", "Organization",
        "OrganizationAffiliation", "Parameters", "Patient", "PaymentNotice",
        "PaymentReconciliation", "Person", "PlanDefinition", "Practitioner", "PractitionerRole",
        "Procedure", "Provenance", "Questionnaire", "QuestionnaireResponse", "RelatedPerson",
        "RequestGroup", "ResearchDefinition", "ResearchElementDefinition", "ResearchStudy",
        "ResearchSubject", "RiskAssessment", "RiskEvidenceSynthesis", "Schedule", "SearchParameter",
        "ServiceRequest", "Slot", "Specimen", "SpecimenDefinition", "StructureDefinition",
        "StructureMap", "Subscription", "Substance", "SubstanceNucleicAcid", "SubstancePolymer",
        "SubstanceProtein", "SubstanceReferenceInformation", "SubstanceSourceMaterial",
        "SubstanceSpecification", "SupplyDelivery", "SupplyRequest", "Task",
        "TerminologyCapabilities", "TestReport", "TestScript", "ValueSet", "VerificationResult",
        "VisionPrescription",
    }
)

_ID = r"[A-Za-z0-9\-.]{1,64}"
_TYPE = r"[A-Z][A-Za-z]+"
RELATIVE_REFERENCE = re.compile(rf"(?P<type>{_TYPE})/(?P<id>{_ID})(/_history/(?P<version>{_ID}))?")
ABSOLUTE_REFERENCE = re.compile(
    rf"(?P<base>https?://\S+?)/(?P<type>{_TYPE})/(?P<id>{_ID})(/_history/(?P<version>{_ID}))?"
)
CONTAINED_REFERENCE = re.compile(rf"#(?P<id>{_ID})?")
UUID_REFERENCE = re.compile(r"urn:uuid:[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")
OID_REFERENCE = re.compile(r"urn:oid:[0-2](\.(0|[1-9][0-9]*))+")


class ReferenceParts(NamedTuple):
    """Components of a literal reference."""

    kind: str  # relative, absolute, contained or urn
    resource_type: Optional[str]
    id: Optional[str]
    version: Optional[str] = None
    base: Optional[str] = None

    @property
    def is_local(self) -> bool:
        """Return True for references into the same server or resource."""
        return self.kind in ("relative", "contained")


def parse_reference(reference: str) -> ReferenceParts:
    """Parse a literal reference string.

    Args:
        reference: ``Type/id``, ``Type/id/_history/vid``, an absolute URL ending
            in ``Type/id``, ``#id`` (a bare ``#`` points at the container) or a
            ``urn:uuid:``/``urn:oid:`` value

    Returns:
        ReferenceParts

    Raises:
        ReferenceShapeError: If the string has none of the accepted shapes or
            names an unknown resource type
    """
    if not isinstance(reference, str):
        raise ReferenceShapeError(f"reference must be a string, got {type(reference).__name__}")

    match = CONTAINED_REFERENCE.fullmatch(reference)
    if match:
        return ReferenceParts("contained", None, match.group("id"))

    if UUID_REFERENCE.fullmatch(reference) or OID_REFERENCE.fullmatch(reference):
        return ReferenceParts("urn", None, None)

    for kind, pattern in (("relative", RELATIVE_REFERENCE), ("absolute", ABSOLUTE_REFERENCE)):
        match = pattern.fullmatch(reference)
        if match:
            resource_type = match.group("type")
            check_resource_type(resource_type)
            return ReferenceParts(
                kind,
                resource_type,
                match.group("id"),
                match.group("version"),
                match.groupdict().get("base"),
            )

    raise ReferenceShapeError(f"malformed reference {reference!r}")


def check_resource_type(resource_type: str) -> str:
    """Return ``resource_type`` if it names an R4 resource type."""
    if resource_type not in R4_RESOURCE_TYPES:
        raise ReferenceShapeError(f"unknown resource type {resource_type!r}")
    return resource_type


def format_reference(resource_type: str, resource_id: str) -> str:
    """Build a relative reference string after checking both parts."""
    check_resource_type(resource_type)
    if not isinstance(resource_id, str) or not ID_PATTERN.fullmatch(resource_id):
        raise ReferenceShapeError(f"invalid resource id {resource_id!r}")
    return f"{resource_type}/{resource_id}"


@runtime_checkable
class ReferenceResolver(Protocol):
    """Looks up the resource a literal reference points to.

    Implemented by storage layers outside this library.
    """

    def resolve(self, reference: str) -> Optional[Any]:
        """Return the referenced resource, or None when it does not exist."""
        ...
