"""Tests for the code system registry, terminology sources and bindings."""

import pytest

from clinical_fhir.coding_systems import hl7_code_systems as hl7
from clinical_fhir.coding_systems.loinc_implementation import (
    LOINC_SYSTEM,
    AssessmentLOINCCodes,
    LOINCRepository,
    LOINCValidator,
)
from clinical_fhir.coding_systems.registry import (
    BindingStrength,
    CodeSystem,
    CodeSystemRegistry,
    ValueSetBinding,
    contains_code,
    get_registry,
    initialize_registry,
)
from clinical_fhir.config import get_settings
from clinical_fhir.core.exceptions import BindingError, CardinalityError, ConfigurationError, FormatError
from clinical_fhir.factories import create_codeable_concept
from clinical_fhir.patient_resource import Patient
from clinical_fhir.terminology import (
    BuiltinTerminologySource,
    CodingSystem,
    StaticTerminologySource,
    code_system_from_fhir,
)
from clinical_fhir.validation import ValidationSeverity, evaluate_binding, validate_resource

EXAMPLE_SYSTEM = "http://example.org/CodeSystem/colours"


@pytest.fixture
def colour_source():
    """A terminology source adding one small code system to the built-ins."""
    return StaticTerminologySource({EXAMPLE_SYSTEM: {"red": "Red", "blue": "Blue"}})


class TestCodeSystemRegistry:
    """Test the shared registry."""

    @pytest.mark.terminology
    def test_builtin_tables_loaded(self):
        """Test that HL7 tables and LOINC are registered by default."""
        registry = get_registry()
        assert registry.contains_code(hl7.ADMINISTRATIVE_GENDER, "female")
        assert not registry.contains_code(hl7.ADMINISTRATIVE_GENDER, "f")
        assert registry.has_system(LOINC_SYSTEM)
        assert contains_code(LOINC_SYSTEM, AssessmentLOINCCodes.PHQ9_PANEL)
        assert registry.display(hl7.ENCOUNTER_STATUS, "in-progress") is not None
        assert registry.get(hl7.UCUM).name == "UCUM"
        assert hl7.LANGUAGES in registry.systems
        assert len(registry) == len(list(registry))

    def test_unknown_system(self):
        """Test lookups against an unregistered system."""
        registry = get_registry()
        assert not registry.has_system("http://example.org/unknown")
        assert registry.codes("http://example.org/unknown") == frozenset()
        assert registry.display("http://example.org/unknown", "x") is None

    def test_same_url_entries_merge(self):
        """Test that later code systems with the same URL extend earlier ones."""
        registry = CodeSystemRegistry(
            [
                CodeSystem(EXAMPLE_SYSTEM, "first", {"red": "Red"}),
                CodeSystem(EXAMPLE_SYSTEM, "second", {"blue": "Blue"}),
            ]
        )
        assert registry.codes(EXAMPLE_SYSTEM) == frozenset({"red", "blue"})
        assert registry.get(EXAMPLE_SYSTEM).name == "first"

    def test_code_system_is_read_only(self):
        """Test that concept tables cannot be modified after construction."""
        system = CodeSystem(EXAMPLE_SYSTEM, "colours", {"red": "Red"})
        assert "red" in system
        with pytest.raises(TypeError):
            system.concepts["green"] = "Green"

    @pytest.mark.terminology
    def test_initialize_once(self, colour_source):
        """Test that the registry is built from one source only."""
        registry = initialize_registry(colour_source)
        assert registry.contains_code(EXAMPLE_SYSTEM, "red")
        assert registry.contains_code(hl7.ADMINISTRATIVE_GENDER, "male")
        assert initialize_registry(colour_source) is registry
        assert initialize_registry() is registry
        with pytest.raises(ConfigurationError) as exc_info:
            initialize_registry(StaticTerminologySource({}))
        assert exc_info.value.code == "CONFIGURATION_ERROR"

    def test_without_builtins(self):
        """Test a registry limited to supplied code systems."""
        registry = initialize_registry(StaticTerminologySource({EXAMPLE_SYSTEM: {"red": "Red"}}, include_builtin=False))
        assert registry.systems == (EXAMPLE_SYSTEM,)

    def test_builtin_source(self):
        """Test that the built-in source exports LOINC last."""
        systems = BuiltinTerminologySource().load_code_systems()
        assert systems[-1].url == LOINC_SYSTEM
        assert any(system.url == hl7.APPOINTMENT_STATUS for system in systems)


class TestCodeSystemFromFhir:
    """Test loading FHIR CodeSystem resources."""

    def test_nested_concepts_flattened(self):
        """Test that hierarchical concepts become one table."""
        system = code_system_from_fhir(
            {
                "resourceType": "CodeSystem",
                "url": EXAMPLE_SYSTEM,
                "version": "1.0",
                "concept": [
                    {"code": "warm", "display": "Warm", "concept": [{"code": "red", "display": "Red"}]},
                    {"code": "blue"},
                ],
            }
        )
        assert dict(system.concepts) == {"warm": "Warm", "red": "Red", "blue": "blue"}
        assert system.name == "colours"
        assert system.version == "1.0"

    def test_wrong_resource_type(self):
        """Test that only CodeSystem resources are accepted."""
        with pytest.raises(FormatError):
            code_system_from_fhir({"resourceType": "ValueSet", "url": EXAMPLE_SYSTEM})

    def test_missing_url(self):
        """Test that a CodeSystem needs a url."""
        with pytest.raises(CardinalityError):
            code_system_from_fhir({"resourceType": "CodeSystem", "concept": []})

    def test_concept_without_code(self):
        """Test that every concept needs a code, nested ones included."""
        with pytest.raises(CardinalityError) as exc_info:
            code_system_from_fhir(
                {
                    "resourceType": "CodeSystem",
                    "url": EXAMPLE_SYSTEM,
                    "concept": [{"code": "warm", "concept": [{"code": "red"}, {"display": "Orange"}]}],
                }
            )
        assert exc_info.value.path == "CodeSystem.concept[0].concept[1].code"

    def test_standard_system_urls(self):
        """Test well-known system URLs."""
        assert CodingSystem.LOINC.value == "http://loinc.org"
        assert CodingSystem.SNOMED_CT.value == "http://snomed.info/sct"
        assert CodingSystem.UCUM.value == "http://unitsofmeasure.org"


class TestLOINC:
    """Test the LOINC subset."""

    @pytest.mark.parametrize("number,valid", [("44249-1", True), ("8480-6", True), ("44249", False), ("A4249-1", False)])
    def test_format(self, number, valid):
        """Test LOINC number shape."""
        assert LOINCValidator.validate_loinc_format(number)[0] is valid

    def test_check_digit(self):
        """Test the mod 10 check digit."""
        assert LOINCValidator.validate_check_digit("44249-1")
        assert not LOINCValidator.validate_check_digit("44249-2")

    def test_panel_members(self):
        """Test that PHQ-9 items and total belong to the panel."""
        repository = LOINCRepository()
        members = repository.get_panel_members(AssessmentLOINCCodes.PHQ9_PANEL)
        assert len(members) == 10
        assert members[-1].loinc_num == AssessmentLOINCCodes.PHQ9_TOTAL_SCORE
        assert repository.get_code(AssessmentLOINCCodes.BODY_WEIGHT).is_quantitative()
        assert repository.search_by_component("anxiety")

    def test_bad_number_refused(self):
        """Test that malformed numbers cannot be added."""
        repository = LOINCRepository()
        code = repository.get_code(AssessmentLOINCCodes.HEART_RATE)
        code.loinc_num = "bad"
        with pytest.raises(ValueError):
            repository.add_code(code)


class TestBindings:
    """Test binding evaluation."""

    @pytest.mark.terminology
    def test_required_binding_miss_is_error(self):
        """Test that a code outside a required binding is an error."""
        issue = evaluate_binding(
            [(hl7.ADMINISTRATIVE_GENDER, "f")],
            ValueSetBinding(hl7.ADMINISTRATIVE_GENDER),
            "Patient.gender",
            get_registry(),
        )
        assert issue.severity is ValidationSeverity.ERROR
        assert "'f'" in issue.message

    def test_extensible_binding_miss_is_warning(self):
        """Test extensible misses, lenient and strict."""
        binding = ValueSetBinding(hl7.MARITAL_STATUS, BindingStrength.EXTENSIBLE)
        codings = [("http://example.org/local", "X")]
        lenient = evaluate_binding(codings, binding, "maritalStatus", get_registry())
        strict = evaluate_binding(codings, binding, "maritalStatus", get_registry(), strict_extensible=True)
        assert lenient.severity is ValidationSeverity.WARNING
        assert strict.severity is ValidationSeverity.ERROR

    def test_skipped_bindings(self):
        """Test that example bindings and unknown systems are not checked."""
        registry = get_registry()
        example = ValueSetBinding(hl7.ORGANIZATION_TYPE, BindingStrength.EXAMPLE)
        assert evaluate_binding([(hl7.ORGANIZATION_TYPE, "zzz")], example, "type", registry) is None
        unknown = ValueSetBinding("http://example.org/unknown")
        assert evaluate_binding([("http://example.org/unknown", "zzz")], unknown, "x", registry) is None

    def test_required_binding_without_code(self):
        """Test that text-only concepts fail required bindings."""
        binding = ValueSetBinding(hl7.MARITAL_STATUS)
        issue = evaluate_binding([], binding, "maritalStatus", get_registry())
        assert issue.is_error

    @pytest.mark.terminology
    def test_registry_drives_required_bindings(self):
        """Test that required bindings are checked against the active registry."""
        initialize_registry(
            StaticTerminologySource({hl7.ADMINISTRATIVE_GENDER: {"male": "Male"}}, include_builtin=False)
        )
        Patient(gender="male")
        with pytest.raises(BindingError) as exc_info:
            Patient(gender="female")
        assert exc_info.value.path == "Patient.gender"

    @pytest.mark.terminology
    def test_extensible_binding_on_resource(self):
        """Test an unknown marital status code is a warning by default."""
        patient = Patient(maritalStatus=create_codeable_concept(hl7.MARITAL_STATUS, "ZZ", "Unlisted"))
        outcome = validate_resource(patient)
        assert outcome.ok
        assert [issue.location for issue in outcome.warnings] == ["Patient.maritalStatus"]

    def test_strict_extensible_bindings(self, monkeypatch):
        """Test that strict mode turns extensible misses into errors."""
        monkeypatch.setenv("CLINICAL_FHIR_STRICT_EXTENSIBLE_BINDINGS", "true")
        get_settings.cache_clear()
        with pytest.raises(BindingError) as exc_info:
            Patient(maritalStatus=create_codeable_concept(hl7.MARITAL_STATUS, "ZZ", "Unlisted"))
        assert exc_info.value.path == "Patient.maritalStatus"
