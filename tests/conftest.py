"""Shared test configuration and fixtures.

Every test starts with a fresh code system registry and freshly read
settings so environment overrides in one test never leak into another.
"""

from datetime import datetime, timezone

import pytest

from clinical_fhir.appointment_resource import AppointmentInput, create_appointment
from clinical_fhir.coding_systems.registry import reset_registry
from clinical_fhir.config import get_settings
from clinical_fhir.encounter_resource import EncounterInput, create_encounter
from clinical_fhir.fhir_types import Coding
from clinical_fhir.patient_resource import PatientInput, create_patient
from clinical_fhir.questionnaire_resource import (
    PublicationStatus,
    Questionnaire,
    QuestionnaireItem,
    QuestionnaireItemAnswerOption,
    QuestionnaireItemEnableWhen,
    QuestionnaireItemType,
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "fhir_compliance: mark test as requiring FHIR compliance")
    config.addinivalue_line("markers", "terminology: mark test as exercising code system bindings")
    config.addinivalue_line("markers", "workflow: mark test as exercising status transitions")


@pytest.fixture(autouse=True)
def fresh_registry_and_settings():
    """Reset process-wide registry and settings around each test."""
    reset_registry()
    get_settings.cache_clear()
    yield
    reset_registry()
    get_settings.cache_clear()


@pytest.fixture
def fixed_now():
    """A fixed, timezone aware moment used instead of the wall clock."""
    return datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def patient_input():
    """Complete flat demographics for one patient."""
    return PatientInput(
        id="pat-001",
        mrn="MRN12345",
        first_name="John",
        middle_name="Michael",
        last_name="Smith",
        preferred_name="Johnny",
        gender="male",
        birth_date="1980-05-15",
        phone="555-123-4567",
        email="john.smith@example.com",
        address_line1="123 Main St",
        address_line2="Apt 4B",
        city="Springfield",
        state="IL",
        postal_code="62701",
        emergency_contact_name="Jane Smith",
        emergency_contact_phone="555-987-6543",
        emergency_contact_relationship="spouse",
        preferred_language="en",
        managing_organization_id="org-001",
    )


@pytest.fixture
def patient(patient_input):
    """A Patient built from ``patient_input``."""
    return create_patient(patient_input)


@pytest.fixture
def encounter():
    """A planned ambulatory encounter."""
    return create_encounter(
        EncounterInput(
            id="enc-001",
            status="planned",
            class_code="AMB",
            patient_id="pat-001",
            patient_display="John Smith",
            practitioner_id="prac-001",
            practitioner_display="Dr. Jane Doe",
            organization_id="org-001",
            start_time="2024-03-15T14:00:00Z",
            type="Initial Visit",
            reason_code="M54.5",
            reason_display="Low back pain",
        )
    )


@pytest.fixture
def appointment():
    """A booked one hour appointment."""
    return create_appointment(
        AppointmentInput(
            id="appt-001",
            status="booked",
            patient_id="pat-001",
            patient_display="John Smith",
            practitioner_id="prac-001",
            practitioner_display="Dr. Jane Doe",
            location_id="loc-001",
            start="2024-03-15T14:00:00Z",
            end="2024-03-15T15:00:00Z",
            appointment_type="CHECKUP",
            reason_code="M54.5",
            reason_display="Low back pain",
            created=datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
        )
    )


@pytest.fixture
def questionnaire():
    """A small intake questionnaire with a conditional follow-up question."""
    return Questionnaire(
        id="intake",
        url="http://example.org/Questionnaire/intake",
        status=PublicationStatus.ACTIVE,
        item=[
            QuestionnaireItem(
                linkId="smoker",
                text="Do you smoke?",
                type=QuestionnaireItemType.BOOLEAN,
                required=True,
            ),
            QuestionnaireItem(
                linkId="packs",
                text="Packs per day",
                type=QuestionnaireItemType.INTEGER,
                required=True,
                enableWhen=[
                    QuestionnaireItemEnableWhen(question="smoker", operator="=", answerBoolean=True)
                ],
            ),
            QuestionnaireItem(
                linkId="pain",
                text="Where is the pain?",
                type=QuestionnaireItemType.CHOICE,
                answerOption=[
                    QuestionnaireItemAnswerOption(valueCoding=Coding(code="back", display="Back")),
                    QuestionnaireItemAnswerOption(valueCoding=Coding(code="neck", display="Neck")),
                ],
            ),
            QuestionnaireItem(
                linkId="notes",
                text="Anything else?",
                type=QuestionnaireItemType.STRING,
                maxLength=20,
            ),
        ],
    )
