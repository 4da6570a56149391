"""Tests for Practitioner, PractitionerRole and Organization resources."""

import pytest

from clinical_fhir.coding_systems import hl7_code_systems as hl7
from clinical_fhir.config import get_settings
from clinical_fhir.core.exceptions import CardinalityError, FormatError, ReferenceShapeError
from clinical_fhir.fhir_types import AddressUse, ContactPointSystem, ContactPointUse
from clinical_fhir.identifier_systems import IdentifierSystem
from clinical_fhir.practitioner_resource import (
    OTHER_QUALIFICATION,
    PRACTITIONER_SPECIALTIES,
    TAXONOMY_CODE_SYSTEM,
    DaysOfWeek,
    Organization,
    OrganizationInput,
    OrganizationType,
    Practitioner,
    PractitionerInput,
    PractitionerRole,
    PractitionerRoleAvailableTime,
    create_organization,
    create_practitioner,
    create_practitioner_role,
    get_organization_type_display,
    get_practitioner_display_name,
)
from clinical_fhir.validation import validate_resource


@pytest.fixture
def practitioner():
    """A chiropractor with NPI and work contacts."""
    return create_practitioner(
        PractitionerInput(
            id="prac-001",
            first_name="Jane",
            last_name="Doe",
            npi="1234567893",
            credentials="DC",
            gender="female",
            phone="555-222-3333",
            email="jane.doe@clinic.example.com",
        )
    )


@pytest.fixture
def organization():
    """A provider organization with an address."""
    return create_organization(
        OrganizationInput(
            id="org-001",
            name="Springfield Spine Clinic",
            npi="1234567893",
            ein="12-3456789",
            type=OrganizationType.PROVIDER,
            phone="555-444-5555",
            fax="555-444-5556",
            website="https://spine.example.com",
            address_line1="1 Clinic Way",
            city="Springfield",
            state="IL",
            postal_code="62701",
            aliases=["SSC"],
        )
    )


class TestPractitioner:
    """Test building practitioners."""

    @pytest.mark.fhir_compliance
    def test_name_and_credentials(self, practitioner):
        """Test that credentials become a suffix and a qualification."""
        name = practitioner.name[0]
        assert name.given == ["Jane"]
        assert name.suffix == ["DC"]
        qualification = practitioner.qualification[0]
        assert qualification.code.has_coding(hl7.DEGREE_LICENSE, "DC")
        assert get_practitioner_display_name(practitioner) == "Jane Doe, DC"

    def test_identifier_and_telecom(self, practitioner):
        """Test the NPI and work contact points."""
        assert practitioner.identifier[0].system == get_settings().npi_identifier_system
        assert practitioner.identifier[0].value == "1234567893"
        assert [(point.system, point.use) for point in practitioner.telecom] == [
            (ContactPointSystem.PHONE, ContactPointUse.WORK),
            (ContactPointSystem.EMAIL, ContactPointUse.WORK),
        ]
        assert practitioner.active is True

    def test_specialty_only_qualification(self):
        """Test that a specialty without credentials is an OTH qualification."""
        practitioner = create_practitioner(
            PractitionerInput(first_name="Sam", last_name="Lee", specialty="Physical Therapist")
        )
        coding = practitioner.qualification[0].code.coding[0]
        assert coding.code == OTHER_QUALIFICATION
        assert coding.display == "Physical Therapist"
        assert practitioner.name[0].suffix is None

    def test_display_name_fallback(self):
        """Test display without a name."""
        assert get_practitioner_display_name(Practitioner()) == "Unknown Practitioner"
        plain = create_practitioner(PractitionerInput(first_name="Sam", last_name="Lee"))
        assert get_practitioner_display_name(plain) == "Sam Lee"
        assert plain.qualification is None

    def test_invalid_email(self):
        """Test that contact details are checked."""
        with pytest.raises(FormatError):
            create_practitioner(PractitionerInput(first_name="Sam", last_name="Lee", email="sam"))


class TestPractitionerRole:
    """Test practitioner roles."""

    @pytest.mark.terminology
    def test_role_and_specialties(self):
        """Test that role and specialty keys are coded."""
        role = create_practitioner_role(
            "prac-001",
            "org-001",
            role="DOCTOR",
            specialties=["CHIROPRACTIC", "207Q00000X"],
            id="role-001",
            period_start="2024-01-01",
        )
        assert role.practitioner.reference == "Practitioner/prac-001"
        assert role.organization.reference == "Organization/org-001"
        assert role.code[0].has_coding(hl7.PRACTITIONER_ROLE, "doctor")
        assert role.specialty[0].has_coding(TAXONOMY_CODE_SYSTEM, PRACTITIONER_SPECIALTIES["CHIROPRACTIC"]["code"])
        assert role.specialty[0].text == "Chiropractor"
        assert role.specialty[1].has_coding(TAXONOMY_CODE_SYSTEM, "207Q00000X")
        assert role.period.start == "2024-01-01"

    def test_available_time(self):
        """Test recurring availability."""
        hours = PractitionerRoleAvailableTime(
            daysOfWeek=["mon", "wed"], availableStartTime="09:00:00", availableEndTime="17:00:00"
        )
        role = create_practitioner_role("prac-001", available_time=[hours])
        assert role.availableTime[0].daysOfWeek == [DaysOfWeek.MON, DaysOfWeek.WED]
        assert role.organization is None

    def test_available_time_order(self):
        """Test that availability ends after it starts."""
        with pytest.raises(CardinalityError) as exc_info:
            PractitionerRoleAvailableTime(availableStartTime="17:00:00", availableEndTime="09:00:00")
        assert exc_info.value.path == "PractitionerRoleAvailableTime.availableEndTime"

    def test_practitioner_target(self):
        """Test that the practitioner reference names a Practitioner."""
        with pytest.raises(ReferenceShapeError) as exc_info:
            PractitionerRole(practitioner={"reference": "Patient/pat-001"})
        assert exc_info.value.path == "PractitionerRole.practitioner"


class TestOrganization:
    """Test organizations."""

    @pytest.mark.fhir_compliance
    def test_identifiers(self, organization):
        """Test NPI and EIN identifiers."""
        npi, ein = organization.identifier
        assert npi.value == "1234567893"
        assert ein.system == IdentifierSystem.EIN.value
        assert ein.type.has_coding(None, "TAX")

    def test_contacts_and_address(self, organization):
        """Test work contacts and address."""
        assert [point.system for point in organization.telecom] == [
            ContactPointSystem.PHONE,
            ContactPointSystem.FAX,
            ContactPointSystem.URL,
        ]
        assert all(point.use == ContactPointUse.WORK for point in organization.telecom)
        assert organization.address[0].use == AddressUse.WORK
        assert organization.alias == ["SSC"]

    def test_type(self, organization):
        """Test the coded organization type."""
        assert organization.type[0].has_coding(hl7.ORGANIZATION_TYPE, "prov")
        assert organization.type[0].text == "Healthcare Provider"
        assert get_organization_type_display("ins") == "Insurance Company"
        assert get_organization_type_display("zzz") == "zzz"

    def test_parent_organization(self):
        """Test the partOf reference."""
        department = create_organization(
            OrganizationInput(name="Radiology", type="dept", parent_organization_id="org-001")
        )
        assert department.partOf.reference == "Organization/org-001"
        assert validate_resource(department).ok

    @pytest.mark.fhir_compliance
    def test_name_or_identifier(self):
        """Test that an organization is named or identified."""
        with pytest.raises(CardinalityError) as exc_info:
            Organization(active=True)
        assert exc_info.value.path == "Organization.name"
        assert Organization(identifier=[{"value": "X1"}]).name is None

    @pytest.mark.fhir_compliance
    def test_no_home_address(self):
        """Test that organization addresses are never home addresses."""
        with pytest.raises(CardinalityError) as exc_info:
            Organization(name="Acme", address=[{"use": "work"}, {"use": "home", "city": "Springfield"}])
        assert exc_info.value.path == "Organization.address[1].use"
