"""Tests for FHIR complex data types and literal references."""

import pytest
from pydantic import ValidationError

from clinical_fhir.coding_systems.hl7_code_systems import UCUM
from clinical_fhir.core.exceptions import CardinalityError, FormatError, ReferenceShapeError
from clinical_fhir.fhir_types import (
    Attachment,
    CodeableConcept,
    Coding,
    ContactPoint,
    Duration,
    Extension,
    HumanName,
    Identifier,
    Narrative,
    Period,
    Quantity,
    Range,
    Reference,
)
from clinical_fhir.primitives import FhirDateTime
from clinical_fhir.references import ReferenceResolver, format_reference, parse_reference


class TestElementRules:
    """Test rules shared by every element."""

    @pytest.mark.fhir_compliance
    def test_empty_element_rejected(self):
        """Test that an element needs a value or children."""
        with pytest.raises(CardinalityError):
            Coding()

    @pytest.mark.fhir_compliance
    def test_unknown_element_rejected(self):
        """Test that undeclared elements are refused with their path."""
        with pytest.raises(CardinalityError) as exc_info:
            Coding(code="a", colour="red")
        assert exc_info.value.path == "Coding.colour"
        assert exc_info.value.message == "unknown element"

    def test_nested_path_reported(self):
        """Test that errors inside lists carry the index."""
        with pytest.raises(FormatError) as exc_info:
            HumanName(given=["John", "  "])
        assert exc_info.value.path == "HumanName.given[1]"

    def test_models_are_immutable(self):
        """Test that constructed values cannot be changed."""
        coding = Coding(code="a")
        with pytest.raises(ValidationError):
            coding.code = "b"

    def test_empty_lists_are_absent(self):
        """Test that empty repeating elements are treated as absent."""
        name = HumanName(family="Smith", given=[])
        assert name.given is None


class TestCodeableConcept:
    """Test CodeableConcept and Coding."""

    @pytest.mark.fhir_compliance
    def test_requires_coding_or_text(self):
        """Test that an empty concept is a cardinality error."""
        with pytest.raises(CardinalityError):
            CodeableConcept()
        with pytest.raises(CardinalityError):
            CodeableConcept(coding=[])

    def test_text_only(self):
        """Test that text alone is enough."""
        assert CodeableConcept(text="Back pain").display_text == "Back pain"

    def test_display_text_falls_back_to_coding(self):
        """Test display text taken from the first coding."""
        concept = CodeableConcept(coding=[Coding(system="http://loinc.org", code="44249-1")])
        assert concept.display_text == "44249-1"
        assert concept.has_coding("http://loinc.org", "44249-1")
        assert concept.has_coding(None, "44249-1")
        assert not concept.has_coding("http://snomed.info/sct", "44249-1")


class TestPeriodAndQuantities:
    """Test Period, Quantity, Duration and Range invariants."""

    @pytest.mark.fhir_compliance
    def test_period_end_before_start(self):
        """Test that a period cannot end before it starts."""
        with pytest.raises(CardinalityError) as exc_info:
            Period(start="2024-01-02", end="2024-01-01")
        assert exc_info.value.path == "Period.end"

    def test_period_partial_bounds_overlap(self):
        """Test that partial dates compare by the interval they cover."""
        period = Period(start="2024-01-15T10:00:00Z", end="2024-01")
        assert period.end == "2024-01"

    def test_period_contains(self):
        """Test membership of a moment in a period."""
        period = Period(start="2024-01-01", end="2024-01-31")
        assert period.contains(FhirDateTime("2024-01-15T12:00:00Z"))
        assert not period.contains(FhirDateTime("2024-02-01"))
        assert Period(start="2024-01-01").contains(FhirDateTime("2030"))

    @pytest.mark.fhir_compliance
    def test_quantity_code_requires_system(self):
        """Test that a coded quantity names its system."""
        with pytest.raises(CardinalityError) as exc_info:
            Quantity(value=5, code="mg")
        assert exc_info.value.path == "Quantity.system"

    def test_quantity_rejects_string_value(self):
        """Test that JSON strings are not decimals."""
        with pytest.raises(FormatError) as exc_info:
            Quantity(value="5")
        assert exc_info.value.path == "Quantity.value"

    @pytest.mark.fhir_compliance
    def test_duration_time_units(self):
        """Test that durations use UCUM units of time."""
        duration = Duration(value=30, unit="minutes", system=UCUM, code="min")
        assert duration.code == "min"
        with pytest.raises(FormatError) as exc_info:
            Duration(value=30, system=UCUM, code="kg")
        assert exc_info.value.path == "Duration.code"

    def test_duration_value_requires_code(self):
        """Test that a duration value needs a unit code."""
        with pytest.raises(CardinalityError) as exc_info:
            Duration(value=30, system=UCUM)
        assert exc_info.value.path == "Duration.code"

    def test_duration_system_must_be_ucum(self):
        """Test that only UCUM codes are accepted."""
        with pytest.raises(FormatError) as exc_info:
            Duration(value=30, system="http://example.org/units", code="min")
        assert exc_info.value.path == "Duration.system"

    def test_range_order(self):
        """Test that range low may not exceed high."""
        Range(low=Quantity(value=1), high=Quantity(value=1))
        with pytest.raises(CardinalityError) as exc_info:
            Range(low=Quantity(value=5), high=Quantity(value=1))
        assert exc_info.value.path == "Range.low"


class TestOtherDataTypes:
    """Test ContactPoint, Attachment, Extension and Narrative."""

    @pytest.mark.fhir_compliance
    def test_contact_point_value_requires_system(self):
        """Test that a contact value must say what kind of value it is."""
        with pytest.raises(CardinalityError) as exc_info:
            ContactPoint(value="555-1234")
        assert exc_info.value.path == "ContactPoint.system"

    def test_contact_point_rank_positive(self):
        """Test that rank is a positiveInt."""
        with pytest.raises(FormatError):
            ContactPoint(system="phone", value="555-1234", rank=0)

    def test_attachment_data_requires_content_type(self):
        """Test that inline data needs a content type."""
        with pytest.raises(CardinalityError) as exc_info:
            Attachment(data="aGVsbG8=")
        assert exc_info.value.path == "Attachment.contentType"
        assert Attachment(data="aGVsbG8=", contentType="text/plain").data == "aGVsbG8="

    def test_extension_value_or_children(self):
        """Test that an extension has a value or nested extensions, not both."""
        with pytest.raises(CardinalityError):
            Extension(url="http://example.org/ext")
        nested = Extension(url="http://example.org/child", valueString="x")
        with pytest.raises(CardinalityError):
            Extension(url="http://example.org/ext", valueBoolean=True, extension=[nested])
        assert Extension(url="http://example.org/ext", extension=[nested]).value is None

    @pytest.mark.fhir_compliance
    def test_extension_single_value(self):
        """Test that only one value[x] variant may be present."""
        with pytest.raises(CardinalityError) as exc_info:
            Extension(url="http://example.org/ext", valueInteger=1, valueString="one")
        assert exc_info.value.path == "Extension.valueString"
        assert Extension(url="http://example.org/ext", valueInteger=1).value == 1

    def test_narrative_div(self):
        """Test that narrative content is a single div."""
        Narrative(status="generated", div='<div xmlns="http://www.w3.org/1999/xhtml">Hi</div>')
        with pytest.raises(FormatError) as exc_info:
            Narrative(status="generated", div="<p>Hi</p>")
        assert exc_info.value.path == "Narrative.div"


class TestReferences:
    """Test reference parsing and the Reference data type."""

    @pytest.mark.fhir_compliance
    def test_parse_relative(self):
        """Test relative references with and without version."""
        parts = parse_reference("Patient/123")
        assert (parts.kind, parts.resource_type, parts.id, parts.version) == ("relative", "Patient", "123", None)
        assert parse_reference("Patient/123/_history/2").version == "2"
        assert parts.is_local

    def test_parse_absolute(self):
        """Test absolute references keep their base."""
        parts = parse_reference("https://fhir.example.org/r4/Encounter/e-1")
        assert parts.kind == "absolute"
        assert parts.base == "https://fhir.example.org/r4"
        assert parts.resource_type == "Encounter"
        assert not parts.is_local

    def test_parse_contained_and_urn(self):
        """Test contained and urn references."""
        assert parse_reference("#med1").id == "med1"
        assert parse_reference("#").id is None
        assert parse_reference("urn:uuid:9d1b5c4e-7c8a-4f19-9d2d-0b3f6a4c1e22").kind == "urn"
        assert parse_reference("urn:oid:2.16.840.1.113883").kind == "urn"

    @pytest.mark.fhir_compliance
    @pytest.mark.parametrize(
        "reference",
        ["patient/123", "Patient/", "Patient/12 3", "Unicorn/1", "urn:uuid:not-a-uuid", "Patient/123/extra"],
    )
    def test_malformed_references(self, reference):
        """Test references with no accepted shape."""
        with pytest.raises(ReferenceShapeError):
            parse_reference(reference)

    def test_format_reference(self):
        """Test building a relative reference string."""
        assert format_reference("Practitioner", "prac-1") == "Practitioner/prac-1"
        with pytest.raises(ReferenceShapeError):
            format_reference("Practitioner", "prac 1")

    @pytest.mark.fhir_compliance
    def test_reference_requires_content(self):
        """Test that an empty reference is a cardinality error."""
        with pytest.raises(CardinalityError):
            Reference()

    def test_reference_shape_error_path(self):
        """Test that malformed literals are reported at reference."""
        with pytest.raises(ReferenceShapeError) as exc_info:
            Reference(reference="patient/123")
        assert exc_info.value.path == "Reference.reference"

    def test_reference_type_must_match(self):
        """Test that type agrees with the literal reference."""
        with pytest.raises(ReferenceShapeError) as exc_info:
            Reference(reference="Patient/123", type="Practitioner")
        assert exc_info.value.path == "Reference.type"
        with pytest.raises(ReferenceShapeError):
            Reference(display="x", type="Unicorn")

    def test_logical_reference(self):
        """Test references by identifier only."""
        reference = Reference(type="Patient", identifier=Identifier(system="urn:mrn", value="42"))
        assert reference.resource_type == "Patient"
        assert reference.resource_id is None
        assert reference.parts is None

    def test_display_only_reference(self):
        """Test that display alone is a valid reference."""
        assert Reference(display="Walk-in patient").resource_type is None

    def test_resolver_protocol(self):
        """Test that any object with resolve() is a ReferenceResolver."""

        class DictResolver:
            def __init__(self, resources):
                self.resources = resources

            def resolve(self, reference):
                return self.resources.get(reference)

        resolver = DictResolver({"Patient/1": {"resourceType": "Patient", "id": "1"}})
        assert isinstance(resolver, ReferenceResolver)
        assert resolver.resolve("Patient/1")["id"] == "1"
