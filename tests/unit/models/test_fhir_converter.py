"""Tests for FHIR JSON encoding and parsing."""

import json

import pytest
from pydantic import TypeAdapter

from clinical_fhir.core.exceptions import BindingError, CardinalityError, FormatError
from clinical_fhir.fhir_converter import (
    RESOURCE_TYPES,
    AnyResource,
    FHIRResourceType,
    dumps,
    loads,
    parse_resource,
    to_fhir_dict,
)
from clinical_fhir.patient_resource import Patient
from clinical_fhir.practitioner_resource import OrganizationInput, create_organization
from clinical_fhir.questionnaire_resource import QuestionnaireResponse

RESPONSE_JSON = (
    '{"resourceType":"QuestionnaireResponse","status":"completed",'
    '"item":[{"linkId":"weight","answer":[{"valueDecimal":72.50}]}]}'
)


class TestEncoding:
    """Test rendering resources as FHIR JSON."""

    @pytest.mark.fhir_compliance
    def test_resource_type_first(self, patient):
        """Test that resourceType leads the object."""
        data = to_fhir_dict(patient)
        assert next(iter(data)) == "resourceType"
        assert data["gender"] == "male"
        assert data["name"][0]["use"] == "official"

    def test_absent_elements_omitted(self, patient):
        """Test that None and empty values are not written."""
        data = to_fhir_dict(patient)
        assert "deceasedBoolean" not in data
        assert "suffix" not in data["name"][0]

    def test_aliases_used(self, encounter):
        """Test that element names follow FHIR, not Python."""
        data = to_fhir_dict(encounter)
        assert data["class"]["code"] == "AMB"
        assert "class_" not in data

    def test_compact_and_unicode(self):
        """Test compact separators and unescaped text."""
        organization = create_organization(OrganizationInput(name="Clínica São José"))
        text = dumps(organization)
        assert "Clínica São José" in text
        assert ", " not in text and ": " not in text

    @pytest.mark.fhir_compliance
    def test_decimal_literal_kept(self):
        """Test that decimals keep their trailing zeros."""
        assert '"valueDecimal":72.50' in dumps(loads(RESPONSE_JSON))


class TestParsing:
    """Test reading FHIR JSON."""

    @pytest.mark.fhir_compliance
    @pytest.mark.parametrize("fixture_name", ["patient", "encounter", "appointment", "questionnaire"])
    def test_round_trip(self, fixture_name, request):
        """Test that parse then encode reproduces the same JSON."""
        resource = request.getfixturevalue(fixture_name)
        text = dumps(resource)
        parsed = loads(text)
        assert type(parsed) is type(resource)
        assert parsed == resource
        assert dumps(parsed) == text

    def test_parse_dict(self):
        """Test building a resource from a mapping."""
        response = parse_resource(json.loads(RESPONSE_JSON))
        assert isinstance(response, QuestionnaireResponse)

    def test_invalid_json(self):
        """Test that malformed text is a format error."""
        with pytest.raises(FormatError):
            loads('{"resourceType": "Patient",')

    def test_invalid_utf8(self):
        """Test that undecodable bytes are a format error."""
        with pytest.raises(FormatError) as exc_info:
            loads(b'{"resourceType": "Patient", "gender": "\xff"}')
        assert "UTF-8" in exc_info.value.message

    def test_not_an_object(self):
        """Test that top level arrays are refused."""
        with pytest.raises(FormatError):
            loads("[1]")

    def test_missing_resource_type(self):
        """Test that resourceType is required."""
        with pytest.raises(CardinalityError) as exc_info:
            loads('{"id": "x"}')
        assert exc_info.value.path == "resourceType"

    def test_unsupported_resource_type(self):
        """Test that unknown resource types are binding errors."""
        with pytest.raises(BindingError) as exc_info:
            loads('{"resourceType": "Unicorn"}')
        assert exc_info.value.path == "resourceType"

    def test_invalid_content(self):
        """Test that content errors carry the element path."""
        with pytest.raises(BindingError) as exc_info:
            loads('{"resourceType": "Patient", "gender": "f"}')
        assert exc_info.value.path == "Patient.gender"

    def test_invalid_primitive(self):
        """Test that lexical errors are format errors."""
        with pytest.raises(FormatError) as exc_info:
            loads('{"resourceType": "Patient", "birthDate": "15/05/1980"}')
        assert exc_info.value.path == "Patient.birthDate"

    @pytest.mark.fhir_compliance
    def test_nested_element_path(self):
        """Test that errors in nested elements carry a single resource root."""
        with pytest.raises(FormatError) as exc_info:
            parse_resource({"resourceType": "Patient", "name": [{"family": "X", "given": ["A", 5]}]})
        assert exc_info.value.path == "Patient.name[0].given[1]"
        assert [error.path for error in exc_info.value.issues] == ["Patient.name[0].given[1]"]

    def test_contained_element_path(self):
        """Test that errors inside contained resources are indexed once."""
        with pytest.raises(CardinalityError) as exc_info:
            parse_resource(
                {
                    "resourceType": "Patient",
                    "contained": [{"resourceType": "Organization", "id": "o1", "name": "Acme", "colour": "red"}],
                }
            )
        assert exc_info.value.path == "Patient.contained[0].colour"


class TestResourceTypes:
    """Test the supported resource type table."""

    def test_every_type_registered(self):
        """Test that every enum member maps to its class."""
        assert set(RESOURCE_TYPES) == {member.value for member in FHIRResourceType}
        assert RESOURCE_TYPES["Patient"] is Patient

    def test_discriminated_union(self):
        """Test validation through the AnyResource union."""
        adapter = TypeAdapter(AnyResource)
        resource = adapter.validate_python({"resourceType": "Organization", "name": "Acme"})
        assert resource.resourceType == "Organization"
