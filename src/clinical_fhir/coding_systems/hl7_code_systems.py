"""HL7 Code Systems.

Concept tables for the HL7 FHIR and terminology.hl7.org code systems the
resource models bind to. Tables map code to display text.
"""

from typing import Dict, List

from .registry import CodeSystem

# Code system URLs
ADMINISTRATIVE_GENDER = "http://hl7.org/fhir/administrative-gender"
NAME_USE = "http://hl7.org/fhir/name-use"
CONTACT_POINT_SYSTEM = "http://hl7.org/fhir/contact-point-system"
CONTACT_POINT_USE = "http://hl7.org/fhir/contact-point-use"
ADDRESS_USE = "http://hl7.org/fhir/address-use"
ADDRESS_TYPE = "http://hl7.org/fhir/address-type"
IDENTIFIER_USE = "http://hl7.org/fhir/identifier-use"
IDENTIFIER_TYPE = "http://terminology.hl7.org/CodeSystem/v2-0203"
MARITAL_STATUS = "http://terminology.hl7.org/CodeSystem/v3-MaritalStatus"
NULL_FLAVOR = "http://terminology.hl7.org/CodeSystem/v3-NullFlavor"
CONTACT_ROLE = "http://terminology.hl7.org/CodeSystem/v2-0131"
LINK_TYPE = "http://hl7.org/fhir/link-type"
LANGUAGES = "urn:ietf:bcp:47"
ENCOUNTER_STATUS = "http://hl7.org/fhir/encounter-status"
ENCOUNTER_LOCATION_STATUS = "http://hl7.org/fhir/encounter-location-status"
ACT_CODE = "http://terminology.hl7.org/CodeSystem/v3-ActCode"
ACT_PRIORITY = "http://terminology.hl7.org/CodeSystem/v3-ActPriority"
PARTICIPATION_TYPE = "http://terminology.hl7.org/CodeSystem/v3-ParticipationType"
ADMIT_SOURCE = "http://terminology.hl7.org/CodeSystem/admit-source"
DISCHARGE_DISPOSITION = "http://terminology.hl7.org/CodeSystem/discharge-disposition"
DIAGNOSIS_ROLE = "http://terminology.hl7.org/CodeSystem/diagnosis-role"
APPOINTMENT_STATUS = "http://hl7.org/fhir/appointmentstatus"
PARTICIPATION_STATUS = "http://hl7.org/fhir/participationstatus"
PARTICIPANT_REQUIRED = "http://hl7.org/fhir/participantrequired"
APPOINTMENT_REASON = "http://terminology.hl7.org/CodeSystem/v2-0276"
APPOINTMENT_CANCELLATION_REASON = (
    "http://terminology.hl7.org/CodeSystem/appointment-cancellation-reason"
)
PUBLICATION_STATUS = "http://hl7.org/fhir/publication-status"
QUESTIONNAIRE_ITEM_TYPE = "http://hl7.org/fhir/item-type"
QUESTIONNAIRE_ANSWERS_STATUS = "http://hl7.org/fhir/questionnaire-answers-status"
QUESTIONNAIRE_ENABLE_OPERATOR = "http://hl7.org/fhir/questionnaire-enable-operator"
QUESTIONNAIRE_ENABLE_BEHAVIOR = "http://hl7.org/fhir/questionnaire-enable-behavior"
PRACTITIONER_ROLE = "http://terminology.hl7.org/CodeSystem/practitioner-role"
DEGREE_LICENSE = "http://terminology.hl7.org/CodeSystem/v2-0360"
ORGANIZATION_TYPE = "http://terminology.hl7.org/CodeSystem/organization-type"
CONTACT_ENTITY_TYPE = "http://terminology.hl7.org/CodeSystem/contactentity-type"
DAYS_OF_WEEK = "http://hl7.org/fhir/days-of-week"
PROVIDER_TAXONOMY = "http://nucc.org/provider-taxonomy"
UCUM = "http://unitsofmeasure.org"

HL7_CONCEPTS: Dict[str, Dict[str, str]] = {
    ADMINISTRATIVE_GENDER: {
        "male": "Male",
        "female": "Female",
        "other": "Other",
        "unknown": "Unknown",
    },
    NAME_USE: {
        "usual": "Usual",
        "official": "Official",
        "temp": "Temp",
        "nickname": "Nickname",
        "anonymous": "Anonymous",
        "old": "Old",
        "maiden": "Name changed for Marriage",
    },
    CONTACT_POINT_SYSTEM: {
        "phone": "Phone",
        "fax": "Fax",
        "email": "Email",
        "pager": "Pager",
        "url": "URL",
        "sms": "SMS",
        "other": "Other",
    },
    CONTACT_POINT_USE: {
        "home": "Home",
        "work": "Work",
        "temp": "Temp",
        "old": "Old",
        "mobile": "Mobile",
    },
    ADDRESS_USE: {
        "home": "Home",
        "work": "Work",
        "temp": "Temporary",
        "old": "Old / Incorrect",
        "billing": "Billing",
    },
    ADDRESS_TYPE: {"postal": "Postal", "physical": "Physical", "both": "Postal & Physical"},
    IDENTIFIER_USE: {
        "usual": "Usual",
        "official": "Official",
        "temp": "Temp",
        "secondary": "Secondary",
        "old": "Old",
    },
    IDENTIFIER_TYPE: {
        "DL": "Driver's license number",
        "PPN": "Passport number",
        "BRN": "Breed Registry Number",
        "MR": "Medical record number",
        "MCN": "Microchip Number",
        "EN": "Employer number",
        "TAX": "Tax ID number",
        "NIIP": "National Insurance Payor Identifier (Payor)",
        "PRN": "Provider number",
        "MD": "Medical License number",
        "DR": "Donor Registration Number",
        "ACSN": "Accession ID",
        "UDI": "Universal Device Identifier",
        "SNO": "Serial Number",
        "SB": "Social Beneficiary Identifier",
        "PLAC": "Placer Identifier",
        "FILL": "Filler Identifier",
        "JHN": "Jurisdictional health number (Canada)",
        "SS": "Social Security number",
        "NPI": "National provider identifier",
    },
    MARITAL_STATUS: {
        "A": "Annulled",
        "D": "Divorced",
        "I": "Interlocutory",
        "L": "Legally Separated",
        "M": "Married",
        "P": "Polygamous",
        "S": "Never Married",
        "T": "Domestic partner",
        "U": "unmarried",
        "W": "Widowed",
    },
    NULL_FLAVOR: {"UNK": "unknown", "ASKU": "asked but unknown", "NASK": "not asked"},
    CONTACT_ROLE: {
        "BP": "Billing contact person",
        "CP": "Contact person",
        "EP": "Emergency contact person",
        "PR": "Person preparing referral",
        "E": "Employer",
        "C": "Emergency Contact",
        "F": "Federal Agency",
        "I": "Insurance Company",
        "N": "Next-of-Kin",
        "S": "State Agency",
        "U": "Unknown",
    },
    LINK_TYPE: {
        "replaced-by": "Replaced-by",
        "replaces": "Replaces",
        "refer": "Refer",
        "seealso": "See also",
    },
    LANGUAGES: {
        "ar": "Arabic",
        "de": "German",
        "en": "English",
        "en-GB": "English (Great Britain)",
        "en-US": "English (United States)",
        "es": "Spanish",
        "fr": "French",
        "it": "Italian",
        "ja": "Japanese",
        "ko": "Korean",
        "pt": "Portuguese",
        "pt-BR": "Portuguese (Brazil)",
        "ru": "Russian",
        "vi": "Vietnamese",
        "zh": "Chinese",
    },
    ENCOUNTER_STATUS: {
        "planned": "Planned",
        "arrived": "Arrived",
        "triaged": "Triaged",
        "in-progress": "In Progress",
        "onleave": "On Leave",
        "finished": "Finished",
        "cancelled": "Cancelled",
        "entered-in-error": "Entered in Error",
        "unknown": "Unknown",
    },
    ENCOUNTER_LOCATION_STATUS: {
        "planned": "Planned",
        "active": "Active",
        "reserved": "Reserved",
        "completed": "Completed",
    },
    ACT_CODE: {
        "AMB": "ambulatory",
        "EMER": "emergency",
        "FLD": "field",
        "HH": "home health",
        "IMP": "inpatient encounter",
        "ACUTE": "inpatient acute",
        "NONAC": "inpatient non-acute",
        "OBSENC": "observation encounter",
        "PRENC": "pre-admission",
        "SS": "short stay",
        "VR": "virtual",
    },
    ACT_PRIORITY: {
        "A": "ASAP",
        "CR": "callback results",
        "CS": "callback for scheduling",
        "CSP": "callback placer for scheduling",
        "CSR": "contact recipient for scheduling",
        "EL": "elective",
        "EM": "emergency",
        "P": "preop",
        "PRN": "as needed",
        "R": "routine",
        "RR": "rush reporting",
        "S": "stat",
        "T": "timing critical",
        "UD": "use as directed",
        "UR": "urgent",
    },
    PARTICIPATION_TYPE: {
        "ADM": "admitter",
        "ATND": "attender",
        "CALLBCK": "callback contact",
        "CON": "consultant",
        "DIS": "discharger",
        "ESC": "escort",
        "REF": "referrer",
        "SPRF": "secondary performer",
        "PPRF": "primary performer",
        "PART": "Participation",
        "LOC": "location",
        "translator": "Translator",
        "emergency": "Emergency",
    },
    ADMIT_SOURCE: {
        "hosp-trans": "Transferred from other hospital",
        "emd": "From accident/emergency department",
        "outp": "From outpatient department",
        "born": "Born in hospital",
        "gp": "General Practitioner referral",
        "mp": "Medical Practitioner/physician referral",
        "nursing": "From nursing home",
        "psych": "From psychiatric hospital",
        "rehab": "From rehabilitation facility",
        "other": "Other",
    },
    DISCHARGE_DISPOSITION: {
        "home": "Home",
        "alt-home": "Alternative home",
        "other-hcf": "Other healthcare facility",
        "hosp": "Hospice",
        "long": "Long-term care",
        "aadvice": "Left against advice",
        "exp": "Expired",
        "psy": "Psychiatric hospital",
        "rehab": "Rehabilitation",
        "snf": "Skilled nursing facility",
        "oth": "Other",
    },
    DIAGNOSIS_ROLE: {
        "AD": "Admission diagnosis",
        "DD": "Discharge diagnosis",
        "CC": "Chief complaint",
        "CM": "Comorbidity diagnosis",
        "pre-op": "pre-op diagnosis",
        "post-op": "post-op diagnosis",
        "billing": "Billing",
    },
    APPOINTMENT_STATUS: {
        "proposed": "Proposed",
        "pending": "Pending",
        "booked": "Booked",
        "arrived": "Arrived",
        "fulfilled": "Fulfilled",
        "cancelled": "Cancelled",
        "noshow": "No Show",
        "entered-in-error": "Entered in error",
        "checked-in": "Checked In",
        "waitlist": "Waitlisted",
    },
    PARTICIPATION_STATUS: {
        "accepted": "Accepted",
        "declined": "Declined",
        "tentative": "Tentative",
        "needs-action": "Needs Action",
    },
    PARTICIPANT_REQUIRED: {
        "required": "Required",
        "optional": "Optional",
        "information-only": "Information Only",
    },
    APPOINTMENT_REASON: {
        "CHECKUP": "A routine check-up, such as an annual physical",
        "EMERGENCY": "Emergency appointment",
        "FOLLOWUP": "A follow up visit from a previous appointment",
        "ROUTINE": "Routine appointment - default if not valued",
        "WALKIN": "A previously unscheduled walk-in visit",
    },
    APPOINTMENT_CANCELLATION_REASON: {
        "pat": "Patient",
        "pat-crs": "Patient: Canceled via automated reminder system",
        "pat-cpp": "Patient: Canceled via Patient Portal",
        "pat-dec": "Patient: Deceased",
        "pat-fb": "Patient: Feeling Better",
        "pat-lt": "Patient: Lack of Transportation",
        "prov": "Provider",
        "prov-pers": "Provider: Personal",
        "prov-dch": "Provider: Discharged",
        "prov-edu": "Provider: Edu/Meeting",
        "prov-hosp": "Provider: Hospitalized",
        "maint": "Equipment Maintenance/Repair",
        "meds-inc": "Prep/Med Incomplete",
        "other": "Other",
        "oth-err": "Other: Error",
        "oth-weath": "Other: Weather",
    },
    PUBLICATION_STATUS: {
        "draft": "Draft",
        "active": "Active",
        "retired": "Retired",
        "unknown": "Unknown",
    },
    QUESTIONNAIRE_ITEM_TYPE: {
        "group": "Group",
        "display": "Display",
        "boolean": "Boolean",
        "decimal": "Decimal",
        "integer": "Integer",
        "date": "Date",
        "dateTime": "Date Time",
        "time": "Time",
        "string": "String",
        "text": "Text",
        "url": "Url",
        "choice": "Choice",
        "open-choice": "Open Choice",
        "attachment": "Attachment",
        "reference": "Reference",
        "quantity": "Quantity",
    },
    QUESTIONNAIRE_ANSWERS_STATUS: {
        "in-progress": "In Progress",
        "completed": "Completed",
        "amended": "Amended",
        "entered-in-error": "Entered in Error",
        "stopped": "Stopped",
    },
    QUESTIONNAIRE_ENABLE_OPERATOR: {
        "exists": "Exists",
        "=": "Equals",
        "!=": "Not Equals",
        ">": "Greater Than",
        "<": "Less Than",
        ">=": "Greater or Equals",
        "<=": "Less or Equals",
    },
    QUESTIONNAIRE_ENABLE_BEHAVIOR: {"all": "All", "any": "Any"},
    PRACTITIONER_ROLE: {
        "doctor": "Doctor",
        "nurse": "Nurse",
        "pharmacist": "Pharmacist",
        "researcher": "Researcher",
        "teacher": "Teacher/educator",
        "ict": "ICT professional",
    },
    DEGREE_LICENSE: {
        "BSN": "Bachelor of Science in Nursing",
        "DC": "Doctor of Chiropractic",
        "DDS": "Doctor of Dental Surgery",
        "DO": "Doctor of Osteopathy",
        "DPM": "Doctor of Podiatric Medicine",
        "MD": "Doctor of Medicine",
        "MSN": "Master of Science - Nursing",
        "NP": "Nurse Practitioner",
        "PA": "Physician Assistant",
        "PharmD": "Doctor of Pharmacy",
        "PhD": "Doctor of Philosophy",
        "PN": "Advanced Practice Nurse",
        "RN": "Registered Nurse",
    },
    ORGANIZATION_TYPE: {
        "prov": "Healthcare Provider",
        "dept": "Hospital Department",
        "team": "Organizational team",
        "govt": "Government",
        "ins": "Insurance Company",
        "pay": "Payer",
        "edu": "Educational Institute",
        "reli": "Religious Institution",
        "crs": "Clinical Research Sponsor",
        "cg": "Community Group",
        "bus": "Non-Healthcare Business or Corporation",
        "other": "Other",
    },
    CONTACT_ENTITY_TYPE: {
        "BILL": "Billing",
        "ADMIN": "Administrative",
        "HR": "Human Resource",
        "PAYOR": "Payor",
        "PATINF": "Patient",
        "PRESS": "Press",
    },
    DAYS_OF_WEEK: {
        "mon": "Monday",
        "tue": "Tuesday",
        "wed": "Wednesday",
        "thu": "Thursday",
        "fri": "Friday",
        "sat": "Saturday",
        "sun": "Sunday",
    },
    PROVIDER_TAXONOMY: {
        "207Q00000X": "Family Medicine",
        "207R00000X": "Internal Medicine",
        "208000000X": "Pediatrics",
        "208600000X": "Surgery",
        "207X00000X": "Orthopedic Surgery",
        "207T00000X": "Neurological Surgery",
        "207RC0000X": "Cardiovascular Disease",
        "2084N0400X": "Neurology",
        "2084P0800X": "Psychiatry",
        "2081P2900X": "Physical Medicine & Rehabilitation",
        "111N00000X": "Chiropractor",
        "225100000X": "Physical Therapist",
        "225X00000X": "Occupational Therapist",
        "235Z00000X": "Speech-Language Pathologist",
        "363L00000X": "Nurse Practitioner",
        "363A00000X": "Physician Assistant",
        "163W00000X": "Registered Nurse",
        "103T00000X": "Psychologist",
        "104100000X": "Social Worker",
        "225700000X": "Massage Therapist",
        "171100000X": "Acupuncturist",
    },
    UCUM: {
        "ms": "millisecond",
        "s": "second",
        "min": "minute",
        "h": "hour",
        "d": "day",
        "wk": "week",
        "mo": "month",
        "a": "year",
        "kg": "kilogram",
        "g": "gram",
        "cm": "centimeter",
        "m": "meter",
        "kg/m2": "kilogram per square meter",
        "mm[Hg]": "millimeter of mercury",
        "/min": "per minute",
        "Cel": "degree Celsius",
        "[degF]": "degree Fahrenheit",
        "%": "percent",
        "{score}": "score",
    },
}

# UCUM codes valid as a Duration unit
UCUM_TIME_UNITS = frozenset({"ms", "s", "min", "h", "d", "wk", "mo", "a"})

_SYSTEM_NAMES = {
    ADMINISTRATIVE_GENDER: "AdministrativeGender",
    NAME_USE: "NameUse",
    CONTACT_POINT_SYSTEM: "ContactPointSystem",
    CONTACT_POINT_USE: "ContactPointUse",
    ADDRESS_USE: "AddressUse",
    ADDRESS_TYPE: "AddressType",
    IDENTIFIER_USE: "IdentifierUse",
    IDENTIFIER_TYPE: "IdentifierType",
    MARITAL_STATUS: "MaritalStatus",
    NULL_FLAVOR: "NullFlavor",
    CONTACT_ROLE: "ContactRole",
    LINK_TYPE: "LinkType",
    LANGUAGES: "Languages",
    ENCOUNTER_STATUS: "EncounterStatus",
    ENCOUNTER_LOCATION_STATUS: "EncounterLocationStatus",
    ACT_CODE: "ActCode",
    ACT_PRIORITY: "ActPriority",
    PARTICIPATION_TYPE: "ParticipationType",
    ADMIT_SOURCE: "AdmitSource",
    DISCHARGE_DISPOSITION: "DischargeDisposition",
    DIAGNOSIS_ROLE: "DiagnosisRole",
    APPOINTMENT_STATUS: "AppointmentStatus",
    PARTICIPATION_STATUS: "ParticipationStatus",
    PARTICIPANT_REQUIRED: "ParticipantRequired",
    APPOINTMENT_REASON: "AppointmentReasonCodes",
    APPOINTMENT_CANCELLATION_REASON: "AppointmentCancellationReason",
    PUBLICATION_STATUS: "PublicationStatus",
    QUESTIONNAIRE_ITEM_TYPE: "QuestionnaireItemType",
    QUESTIONNAIRE_ANSWERS_STATUS: "QuestionnaireResponseStatus",
    QUESTIONNAIRE_ENABLE_OPERATOR: "QuestionnaireItemOperator",
    QUESTIONNAIRE_ENABLE_BEHAVIOR: "EnableWhenBehavior",
    PRACTITIONER_ROLE: "PractitionerRole",
    DEGREE_LICENSE: "DegreeLicenseCertificate",
    ORGANIZATION_TYPE: "OrganizationType",
    CONTACT_ENTITY_TYPE: "ContactEntityType",
    DAYS_OF_WEEK: "DaysOfWeek",
    PROVIDER_TAXONOMY: "ProviderTaxonomy",
    UCUM: "UCUM",
}


def builtin_hl7_code_systems() -> List[CodeSystem]:
    """Build CodeSystem objects for every built-in HL7 table."""
    return [
        CodeSystem(url=url, name=_SYSTEM_NAMES.get(url, url.rsplit("/", 1)[-1]), concepts=concepts)
        for url, concepts in HL7_CONCEPTS.items()
    ]
