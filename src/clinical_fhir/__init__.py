"""Clinical FHIR Package.

HL7 FHIR R4 models for patients, encounters, appointments, questionnaires
and providers, with validating construction, status workflows, terminology
bindings and a lossless FHIR JSON codec.
"""

from .appointment_resource import (
    APPOINTMENT_PARTICIPANT_TYPES,
    APPOINTMENT_TRANSITIONS,
    APPOINTMENT_TYPES,
    CANCELLATION_REASONS,
    Appointment,
    AppointmentInput,
    AppointmentParticipant,
    AppointmentStatus,
    ParticipantRequired,
    ParticipationStatus,
    appointment_to_encounter_input,
    can_transition_appointment_to,
    cancellation_reason,
    create_appointment,
    get_appointment_status_display,
    get_appointment_type_display,
    transition_appointment,
)
from .assessments import (
    ASSESSMENT_QUESTIONNAIRES,
    GAD7_QUESTIONNAIRE,
    PHQ9_QUESTIONNAIRE,
    RIVERMEAD_PCS_QUESTIONNAIRE,
    VAS_PAIN_QUESTIONNAIRE,
    ScoreInterpretation,
    interpret_gad7_score,
    interpret_phq9_score,
    interpret_rivermead_score,
    interpret_vas_pain_score,
    score_assessment,
)
from .coding_systems import (
    BindingStrength,
    CodeSystem,
    CodeSystemRegistry,
    ValueSetBinding,
    get_registry,
    initialize_registry,
    reset_registry,
)
from .config import Settings, get_settings
from .contact_information import (
    ContactValidator,
    create_address,
    create_contact_point,
    get_primary_contact,
    get_primary_email,
    get_primary_phone,
)
from .core.exceptions import (
    BindingError,
    CardinalityError,
    ConfigurationError,
    FHIRError,
    FHIRValidationError,
    FormatError,
    ReferenceShapeError,
    TransitionError,
)
from .encounter_resource import (
    ADMIT_SOURCES,
    DISCHARGE_DISPOSITIONS,
    ENCOUNTER_PRIORITIES,
    ENCOUNTER_TRANSITIONS,
    ENCOUNTER_TYPES,
    Encounter,
    EncounterClass,
    EncounterInput,
    EncounterStatus,
    can_transition_to,
    create_encounter,
    get_encounter_class_display,
    get_encounter_status_display,
    transition_encounter,
)
from .factories import (
    codeable_concept,
    create_codeable_concept,
    create_coding,
    create_contained_reference,
    create_duration,
    create_period,
    create_quantity,
    create_reference,
)
from .fhir_base import DomainResource, Resource, get_resource_class, register_resource
from .fhir_types import (
    Address,
    AdministrativeGender,
    Annotation,
    Attachment,
    CodeableConcept,
    Coding,
    ContactPoint,
    Duration,
    Extension,
    HumanName,
    Identifier,
    Meta,
    Narrative,
    Period,
    Quantity,
    Range,
    Reference,
)
from .identifier_systems import IdentifierSystem, IdentifierTypeCode, create_identifier, create_mrn, create_npi
from .name_structures import NameBuilder, create_human_name, format_name, get_display_name
from .patient_resource import (
    CONTACT_RELATIONSHIPS,
    MARITAL_STATUS,
    Patient,
    PatientInput,
    calculate_age,
    create_patient,
    extract_patient_data,
    get_patient_display_name,
)
from .practitioner_resource import (
    PRACTITIONER_ROLE_CODES,
    PRACTITIONER_SPECIALTIES,
    TAXONOMY_CODE_SYSTEM,
    Organization,
    OrganizationInput,
    Practitioner,
    PractitionerInput,
    PractitionerRole,
    create_organization,
    create_practitioner,
    create_practitioner_role,
    get_organization_type_display,
    get_practitioner_display_name,
)
from .primitives import (
    FhirCanonical,
    FhirCode,
    FhirDate,
    FhirDateTime,
    FhirDecimal,
    FhirId,
    FhirInstant,
    FhirInteger,
    FhirPositiveInt,
    FhirString,
    FhirTime,
    FhirUnsignedInt,
    FhirUri,
    parse_primitive,
)
from .questionnaire_resource import (
    Questionnaire,
    QuestionnaireItem,
    QuestionnaireItemType,
    QuestionnaireResponse,
    QuestionnaireResponseInput,
    QuestionnaireResponseStatus,
    calculate_questionnaire_score,
    create_questionnaire_response,
    validate_response,
)
from .references import ReferenceParts, ReferenceResolver, parse_reference
from .terminology import CodingSystem, StaticTerminologySource, code_system_from_fhir
from .validation import ValidationIssue, ValidationOutcome, validate_resource
from .workflow import TransitionTable

# Imported last: the codec builds its dispatch table from the registered resources
from .fhir_converter import RESOURCE_TYPES, AnyResource, FHIRResourceType, dumps, loads, parse_resource, to_fhir_dict
from .fhirclient_bridge import from_fhirclient, to_fhirclient

__version__ = "1.0.0"

__all__ = [
    # errors
    "FHIRError",
    "ConfigurationError",
    "FHIRValidationError",
    "FormatError",
    "CardinalityError",
    "BindingError",
    "ReferenceShapeError",
    "TransitionError",
    # configuration
    "Settings",
    "get_settings",
    # primitives
    "FhirString",
    "FhirCode",
    "FhirUri",
    "FhirCanonical",
    "FhirId",
    "FhirDate",
    "FhirDateTime",
    "FhirInstant",
    "FhirTime",
    "FhirDecimal",
    "FhirInteger",
    "FhirPositiveInt",
    "FhirUnsignedInt",
    "parse_primitive",
    # data types
    "Address",
    "AdministrativeGender",
    "Annotation",
    "Attachment",
    "CodeableConcept",
    "Coding",
    "ContactPoint",
    "Duration",
    "Extension",
    "HumanName",
    "Identifier",
    "Meta",
    "Narrative",
    "Period",
    "Quantity",
    "Range",
    "Reference",
    "ReferenceParts",
    "ReferenceResolver",
    "parse_reference",
    # factories
    "codeable_concept",
    "create_codeable_concept",
    "create_coding",
    "create_contained_reference",
    "create_duration",
    "create_period",
    "create_quantity",
    "create_reference",
    "create_human_name",
    "format_name",
    "get_display_name",
    "NameBuilder",
    "ContactValidator",
    "create_address",
    "create_contact_point",
    "get_primary_contact",
    "get_primary_email",
    "get_primary_phone",
    "IdentifierSystem",
    "IdentifierTypeCode",
    "create_identifier",
    "create_mrn",
    "create_npi",
    # terminology
    "BindingStrength",
    "CodeSystem",
    "CodeSystemRegistry",
    "CodingSystem",
    "StaticTerminologySource",
    "ValueSetBinding",
    "code_system_from_fhir",
    "get_registry",
    "initialize_registry",
    "reset_registry",
    # validation
    "ValidationIssue",
    "ValidationOutcome",
    "validate_resource",
    "TransitionTable",
    # resources
    "Resource",
    "DomainResource",
    "get_resource_class",
    "register_resource",
    "Patient",
    "PatientInput",
    "CONTACT_RELATIONSHIPS",
    "MARITAL_STATUS",
    "calculate_age",
    "create_patient",
    "extract_patient_data",
    "get_patient_display_name",
    "Encounter",
    "EncounterClass",
    "EncounterInput",
    "EncounterStatus",
    "ENCOUNTER_TRANSITIONS",
    "ENCOUNTER_TYPES",
    "ADMIT_SOURCES",
    "DISCHARGE_DISPOSITIONS",
    "ENCOUNTER_PRIORITIES",
    "can_transition_to",
    "create_encounter",
    "get_encounter_class_display",
    "get_encounter_status_display",
    "transition_encounter",
    "Appointment",
    "AppointmentInput",
    "AppointmentParticipant",
    "AppointmentStatus",
    "ParticipantRequired",
    "ParticipationStatus",
    "APPOINTMENT_TRANSITIONS",
    "APPOINTMENT_TYPES",
    "APPOINTMENT_PARTICIPANT_TYPES",
    "CANCELLATION_REASONS",
    "appointment_to_encounter_input",
    "can_transition_appointment_to",
    "cancellation_reason",
    "create_appointment",
    "get_appointment_status_display",
    "get_appointment_type_display",
    "transition_appointment",
    "Questionnaire",
    "QuestionnaireItem",
    "QuestionnaireItemType",
    "QuestionnaireResponse",
    "QuestionnaireResponseInput",
    "QuestionnaireResponseStatus",
    "calculate_questionnaire_score",
    "create_questionnaire_response",
    "validate_response",
    "ASSESSMENT_QUESTIONNAIRES",
    "PHQ9_QUESTIONNAIRE",
    "GAD7_QUESTIONNAIRE",
    "RIVERMEAD_PCS_QUESTIONNAIRE",
    "VAS_PAIN_QUESTIONNAIRE",
    "ScoreInterpretation",
    "interpret_phq9_score",
    "interpret_gad7_score",
    "interpret_rivermead_score",
    "interpret_vas_pain_score",
    "score_assessment",
    "Practitioner",
    "PractitionerInput",
    "PractitionerRole",
    "Organization",
    "OrganizationInput",
    "PRACTITIONER_SPECIALTIES",
    "PRACTITIONER_ROLE_CODES",
    "TAXONOMY_CODE_SYSTEM",
    "create_organization",
    "create_practitioner",
    "create_practitioner_role",
    "get_organization_type_display",
    "get_practitioner_display_name",
    # wire format
    "FHIRResourceType",
    "RESOURCE_TYPES",
    "AnyResource",
    "dumps",
    "loads",
    "parse_resource",
    "to_fhir_dict",
    "from_fhirclient",
    "to_fhirclient",
]
