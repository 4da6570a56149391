"""Tests for the top-level package exports."""

import types

import pytest

import clinical_fhir


class TestPackageExports:
    """Test the public API surface."""

    def test_all_names_resolve(self):
        """Test that every exported name exists."""
        missing = [name for name in clinical_fhir.__all__ if not hasattr(clinical_fhir, name)]
        assert missing == []

    @pytest.mark.terminology
    def test_hl7_tables_module_reachable(self):
        """Test that the coding systems package exposes the HL7 tables module."""
        from clinical_fhir.coding_systems import builtin_hl7_code_systems
        from clinical_fhir.coding_systems import hl7_code_systems as hl7

        assert isinstance(hl7, types.ModuleType)
        assert hl7.IDENTIFIER_TYPE == "http://terminology.hl7.org/CodeSystem/v2-0203"
        assert hl7.IDENTIFIER_TYPE in {system.url for system in builtin_hl7_code_systems()}

    @pytest.mark.workflow
    def test_visit_through_package(self):
        """Test a booked appointment turned into a finished encounter."""
        appointment = clinical_fhir.create_appointment(
            clinical_fhir.AppointmentInput(
                id="appt-9",
                status="booked",
                patient_id="pat-9",
                start="2024-06-01T09:00:00Z",
                end="2024-06-01T09:30:00Z",
            )
        )
        arrived = clinical_fhir.transition_appointment(appointment, "arrived")
        encounter = clinical_fhir.create_encounter(clinical_fhir.appointment_to_encounter_input(arrived))
        encounter = clinical_fhir.transition_encounter(encounter, "in-progress")
        encounter = clinical_fhir.transition_encounter(encounter, "finished")

        assert encounter.status is clinical_fhir.EncounterStatus.FINISHED
        assert clinical_fhir.loads(clinical_fhir.dumps(encounter)) == encounter
