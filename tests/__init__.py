"""clinical-fhir test suite.

Tests are grouped by marker:
- fhir_compliance: R4 element rules and JSON conformance
- terminology: code system bindings and the LOINC subset
- workflow: Encounter and Appointment status transitions
"""
