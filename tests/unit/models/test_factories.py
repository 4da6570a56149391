"""Tests for data type factories, names, contact details and identifiers."""

from datetime import datetime, timezone

import pytest

from clinical_fhir.coding_systems.hl7_code_systems import IDENTIFIER_TYPE, UCUM
from clinical_fhir.config import get_settings
from clinical_fhir.contact_information import (
    ContactValidator,
    create_address,
    create_contact_point,
    get_primary_contact,
    get_primary_email,
    get_primary_phone,
)
from clinical_fhir.core.exceptions import CardinalityError, FormatError, ReferenceShapeError
from clinical_fhir.factories import (
    codeable_concept,
    create_codeable_concept,
    create_contained_reference,
    create_duration,
    create_period,
    create_quantity,
    create_reference,
    hl7_codeable_concept,
)
from clinical_fhir.fhir_types import ContactPointSystem, ContactPointUse, HumanName, NameUse
from clinical_fhir.identifier_systems import (
    IdentifierSystem,
    IdentifierTypeCode,
    create_identifier,
    create_mrn,
    create_npi,
    get_identifier_value,
    identifiers_by_system,
)
from clinical_fhir.name_structures import NameBuilder, create_human_name, format_name, get_display_name


class TestReferenceFactories:
    """Test reference construction helpers."""

    @pytest.mark.fhir_compliance
    def test_reference_has_only_reference(self):
        """Test that a plain reference carries nothing but the literal."""
        reference = create_reference("Patient", "123")
        assert reference.model_dump(exclude_none=True) == {"reference": "Patient/123"}

    def test_reference_with_display(self):
        """Test that display is set when given."""
        reference = create_reference("Practitioner", "prac-1", "Dr. Jane Doe")
        assert reference.display == "Dr. Jane Doe"
        assert reference.resource_type == "Practitioner"
        assert reference.resource_id == "prac-1"

    @pytest.mark.fhir_compliance
    @pytest.mark.parametrize("resource_type,resource_id", [("Patient", "12 3"), ("Pationt", "1"), ("Patient", "")])
    def test_reference_rejects_bad_parts(self, resource_type, resource_id):
        """Test that unknown types and malformed ids are refused."""
        with pytest.raises(ReferenceShapeError):
            create_reference(resource_type, resource_id)

    def test_contained_reference(self):
        """Test building a local reference."""
        assert create_contained_reference("med1").reference == "#med1"
        with pytest.raises(ReferenceShapeError):
            create_contained_reference("bad id")


class TestConceptFactories:
    """Test coding and concept helpers."""

    def test_text_defaults_to_display(self):
        """Test that concept text falls back to the display."""
        concept = create_codeable_concept("http://snomed.info/sct", "279039007", "Low back pain")
        assert concept.text == "Low back pain"
        assert concept.coding[0].code == "279039007"

    def test_explicit_text_wins(self):
        """Test that explicit text is kept."""
        concept = create_codeable_concept("http://snomed.info/sct", "279039007", "Low back pain", text="LBP")
        assert concept.text == "LBP"

    @pytest.mark.fhir_compliance
    def test_empty_concept(self):
        """Test that a concept with no coding and no text is refused."""
        with pytest.raises(CardinalityError):
            codeable_concept([])

    def test_concept_from_dicts(self):
        """Test building a concept from coding dicts."""
        concept = codeable_concept([{"system": "http://loinc.org", "code": "44249-1"}], text="PHQ-9")
        assert concept.first_coding("http://loinc.org").code == "44249-1"

    def test_hl7_display_lookup(self):
        """Test that displays come from the built-in tables."""
        concept = hl7_codeable_concept(IDENTIFIER_TYPE, "MR")
        assert concept.coding[0].display == "Medical record number"


class TestTemporalAndQuantityFactories:
    """Test period, quantity and duration helpers."""

    @pytest.mark.fhir_compliance
    def test_period_order_checked(self):
        """Test that factories enforce period ordering."""
        with pytest.raises(CardinalityError) as exc_info:
            create_period("2024-01-02", "2024-01-01")
        assert exc_info.value.path == "Period.end"

    def test_period_from_datetime(self):
        """Test that datetimes become FHIR dateTimes."""
        period = create_period(datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc))
        assert period.start == "2024-03-15T09:00:00Z"
        assert period.end is None

    def test_quantity_system_only_with_code(self):
        """Test that UCUM is only named for coded quantities."""
        coded = create_quantity(72.5, "kg", "kg")
        assert coded.system == UCUM
        plain = create_quantity("1.50", "tablets")
        assert plain.system is None
        assert plain.value.literal == "1.50"

    def test_duration(self):
        """Test duration display and system."""
        duration = create_duration(45, "min")
        assert duration.unit == "minute"
        assert duration.system == UCUM
        with pytest.raises(FormatError):
            create_duration(45, "kg")


class TestHumanNames:
    """Test name building and display selection."""

    def test_create_name_text(self):
        """Test that text is assembled from parts."""
        name = create_human_name("Smith", ["John", "Michael"], prefix=["Dr."], suffix=["Jr."])
        assert name.text == "Dr. John Michael Smith Jr."
        assert name.use == NameUse.OFFICIAL

    def test_name_requires_a_part(self):
        """Test that a name needs a family or given part."""
        with pytest.raises(CardinalityError):
            create_human_name(None, ["", None])

    @pytest.mark.fhir_compliance
    def test_official_name_preferred(self):
        """Test display name precedence official over usual."""
        names = [
            create_human_name("Smith", ["Johnny"], use=NameUse.USUAL),
            create_human_name("Smith", ["John"], use=NameUse.OFFICIAL),
        ]
        assert get_display_name(names) == "John Smith"

    def test_usual_then_first(self):
        """Test fallbacks when no official name exists."""
        nickname = HumanName(use=NameUse.NICKNAME, given=["JJ"])
        usual = HumanName(use=NameUse.USUAL, given=["Jack"], family="Jones")
        assert get_display_name([nickname, usual]) == "Jack Jones"
        assert get_display_name([nickname]) == "JJ"
        assert get_display_name([]) is None
        assert get_display_name(None) is None

    def test_format_falls_back_to_text(self):
        """Test that a text-only name is displayed as its text."""
        assert format_name(HumanName(text="Cher")) == "Cher"

    def test_builder(self):
        """Test the fluent name builder."""
        name = (
            NameBuilder()
            .with_given_names("Mary", "Ann")
            .with_family_name("Lee")
            .with_prefix("Ms.")
            .with_use(NameUse.MAIDEN)
            .build()
        )
        assert name.family == "Lee"
        assert name.given == ["Mary", "Ann"]
        assert name.use == NameUse.MAIDEN
        assert name.text == "Ms. Mary Ann Lee"


class TestContactInformation:
    """Test contact points and addresses."""

    @pytest.mark.parametrize(
        "email,valid",
        [("jane@example.com", True), ("jane@@example.com", False), ("jane", False), ("a@b.c", False)],
    )
    def test_validate_email(self, email, valid):
        """Test email shape checks."""
        assert ContactValidator.validate_email(email)[0] is valid

    def test_validate_phone(self):
        """Test phone number checks."""
        assert ContactValidator.validate_phone_number("+1 (555) 123-4567") == (True, None)
        assert ContactValidator.validate_phone_number("1234") == (False, "Phone number too short")
        assert ContactValidator.validate_phone_number("call me")[0] is False

    @pytest.mark.fhir_compliance
    def test_create_contact_point_checks_value(self):
        """Test that malformed emails and phones are refused."""
        with pytest.raises(FormatError) as exc_info:
            create_contact_point(ContactPointSystem.EMAIL, "not-an-email")
        assert exc_info.value.path == "ContactPoint.value"
        with pytest.raises(FormatError):
            create_contact_point("phone", "12")

    def test_other_systems_not_checked(self):
        """Test that url and other values are passed through."""
        point = create_contact_point(ContactPointSystem.URL, "https://clinic.example.org", ContactPointUse.WORK)
        assert point.value == "https://clinic.example.org"

    def test_primary_contact_by_rank_then_use(self):
        """Test selection of the preferred phone and email."""
        telecom = [
            create_contact_point("phone", "555-000-1111", "work"),
            create_contact_point("phone", "555-000-2222", "home"),
            create_contact_point("email", "a@example.com", "work"),
        ]
        assert get_primary_phone(telecom) == "555-000-2222"
        assert get_primary_email(telecom) == "a@example.com"

        telecom.append(create_contact_point("phone", "555-000-3333", "mobile", rank=1))
        assert get_primary_phone(telecom) == "555-000-3333"
        assert get_primary_contact(telecom, "fax") is None
        assert get_primary_phone(None) is None

    def test_address_text_and_default_country(self):
        """Test address rendering with the configured country."""
        address = create_address(["123 Main St", ""], "Springfield", "IL", "62701")
        assert address.line == ["123 Main St"]
        assert address.country == "US"
        assert address.text == "123 Main St, Springfield, IL 62701, US"

    def test_default_country_from_environment(self, monkeypatch):
        """Test that the default country follows settings."""
        monkeypatch.setenv("CLINICAL_FHIR_DEFAULT_COUNTRY", "ca")
        get_settings.cache_clear()
        address = create_address(["1 Rue"], "Montreal", "QC", "H2X 1Y4")
        assert address.country == "CA"


class TestIdentifiers:
    """Test identifier helpers."""

    def test_identifier_requires_value(self):
        """Test that an identifier needs a value."""
        with pytest.raises(CardinalityError) as exc_info:
            create_identifier(IdentifierSystem.SSN, "")
        assert exc_info.value.path == "Identifier.value"

    @pytest.mark.fhir_compliance
    def test_mrn(self):
        """Test medical record numbers in the configured namespace."""
        mrn = create_mrn("MRN12345")
        assert mrn.system == get_settings().mrn_identifier_system
        assert mrn.use.value == "usual"
        assert mrn.type.has_coding(IDENTIFIER_TYPE, "MR")

    def test_npi(self):
        """Test national provider identifiers."""
        npi = create_npi("1234567893")
        assert npi.system == "http://hl7.org/fhir/sid/us-npi"
        assert npi.type.coding[0].display == "National provider identifier"

    def test_lookup(self):
        """Test finding identifier values by system and type."""
        identifiers = [
            create_mrn("MRN1"),
            create_identifier(IdentifierSystem.SSN, "123-45-6789", type_code=IdentifierTypeCode.SOCIAL_SECURITY),
            create_mrn("MRN2"),
        ]
        assert get_identifier_value(identifiers, type_code=IdentifierTypeCode.MEDICAL_RECORD) == "MRN1"
        assert get_identifier_value(identifiers, system=IdentifierSystem.SSN) == "123-45-6789"
        assert get_identifier_value(identifiers, system=IdentifierSystem.NPI) is None
        grouped = identifiers_by_system(identifiers)
        assert grouped[get_settings().mrn_identifier_system] == ["MRN1", "MRN2"]
