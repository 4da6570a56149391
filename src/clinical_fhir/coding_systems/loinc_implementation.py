"""LOINC Implementation.

This module implements the subset of LOINC (Logical Observation Identifiers
Names and Codes) the assessment instruments and vital-sign observations of
this library rely on: the PHQ-9 and GAD-7 panels with their items and totals,
the Rivermead post-concussion inventory, the pain severity scale and the core
vital signs.
"""

import re
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from clinical_fhir.utils.logging import get_logger

from .registry import CodeSystem

LOINC_SYSTEM = "http://loinc.org"

logger = get_logger(__name__)


class LOINCProperty(Enum):
    """LOINC property types (characteristics of what is measured)."""

    MASS = "Mass"  # Body weight
    LENGTH = "Len"  # Body height
    RATIO = "Ratio"  # BMI
    PRESSURE = "Pres"  # Blood pressure
    RATE = "NRat"  # Number rate (per time)
    TEMPERATURE = "Temp"  # Temperature
    MASS_FRACTION = "MFr"  # Oxygen saturation
    FINDING = "Find"  # Questionnaire answers
    SCORE = "Score"  # Instrument totals


class LOINCTiming(Enum):
    """LOINC timing aspects."""

    POINT = "PT"  # Point in time
    TWO_WEEKS = "2W"  # Look-back window of PHQ/GAD items


class LOINCSystem(Enum):
    """LOINC system types."""

    PATIENT = "^Patient"  # Patient as specimen
    ARTERIAL_BLOOD = "BldA"


class LOINCScale(Enum):
    """LOINC scale types."""

    QUANTITATIVE = "Qn"  # Quantitative
    ORDINAL = "Ord"  # Ordinal
    NOMINAL = "Nom"  # Nominal
    NARRATIVE = "Nar"  # Narrative
    DOCUMENT = "Doc"  # Document


class LOINCCode:
    """Represents a LOINC code with its components."""

    def __init__(
        self,
        loinc_num: str,
        component: str,
        property_measured: str,
        timing: str,
        system: str,
        scale: str,
        method: Optional[str] = None,
        long_name: Optional[str] = None,
        short_name: Optional[str] = None,
        units: Optional[str] = None,
        panel: Optional[str] = None,
    ):
        """Initialize LOINC code.

        Args:
            loinc_num: LOINC number
            component: What is measured
            property_measured: Property measured
            timing: Time aspect
            system: System/specimen
            scale: Scale of measurement
            method: Method (optional)
            long_name: Long display name
            short_name: Short display name
            units: UCUM units for quantitative observations
            panel: LOINC number of the panel this code belongs to
        """
        self.loinc_num = loinc_num
        self.component = component
        self.property = property_measured
        self.timing = timing
        self.system = system
        self.scale = scale
        self.method = method
        self.long_name = long_name or self._generate_long_name()
        self.short_name = short_name
        self.units = units
        self.panel = panel

    def _generate_long_name(self) -> str:
        """Generate long name from components."""
        parts = [self.component, self.property, self.timing, self.system, self.scale]
        if self.method:
            parts.append(self.method)
        return ":".join(parts)

    def is_quantitative(self) -> bool:
        """Check if this is a quantitative observation."""
        return self.scale == LOINCScale.QUANTITATIVE.value

    def is_panel(self) -> bool:
        """Check if this is a panel/battery."""
        return "panel" in self.component.lower()

    @property
    def display(self) -> str:
        """Display text used in Coding.display."""
        return self.short_name or self.long_name


class LOINCRepository:
    """Repository for the LOINC codes known to the library."""

    def __init__(self) -> None:
        """Initialize LOINC repository."""
        self.codes: Dict[str, LOINCCode] = {}
        self.component_index: Dict[str, Set[str]] = {}
        self.panel_index: Dict[str, List[str]] = {}
        self._initialize_assessment_codes()
        self._initialize_vital_signs()

    def _initialize_assessment_codes(self) -> None:
        """Initialize assessment instrument panels, items and totals."""
        panels = [
            ("44249-1", "PHQ-9 quick depression assessment panel", "PHQ-9 quick depression assessment panel"),
            ("69737-5", "Generalized anxiety disorder 7 item (GAD-7) panel", "GAD-7"),
            ("72170-4", "Rivermead post-concussion symptoms questionnaire panel", "Rivermead Post-Concussion Symptoms"),
        ]
        for loinc_num, component, short_name in panels:
            self.add_code(
                LOINCCode(loinc_num, component, "-", LOINCTiming.POINT.value, LOINCSystem.PATIENT.value,
                          LOINCScale.NOMINAL.value, short_name=short_name)
            )

        phq9_items = [
            ("44250-9", "Little interest or pleasure in doing things"),
            ("44255-8", "Feeling down, depressed, or hopeless"),
            ("44259-0", "Trouble falling or staying asleep, or sleeping too much"),
            ("44254-1", "Feeling tired or having little energy"),
            ("44251-7", "Poor appetite or overeating"),
            ("44258-2", "Feeling bad about yourself"),
            ("44252-5", "Trouble concentrating on things"),
            ("44253-3", "Moving or speaking slowly, or being fidgety"),
            ("44260-8", "Thoughts of self-harm"),
        ]
        gad7_items = [
            ("69725-0", "Feeling nervous, anxious, or on edge"),
            ("68509-9", "Not being able to stop or control worrying"),
            ("69733-4", "Worrying too much about different things"),
            ("69734-2", "Trouble relaxing"),
            ("69735-9", "Being so restless that it is hard to sit still"),
            ("69689-6", "Becoming easily annoyed or irritable"),
            ("69736-7", "Feeling afraid as if something awful might happen"),
        ]
        for panel, items in (("44249-1", phq9_items), ("69737-5", gad7_items)):
            for loinc_num, component in items:
                self.add_code(
                    LOINCCode(loinc_num, component, LOINCProperty.FINDING.value, LOINCTiming.TWO_WEEKS.value,
                              LOINCSystem.PATIENT.value, LOINCScale.ORDINAL.value, short_name=component,
                              panel=panel)
                )

        self.add_code(
            LOINCCode("44261-6", "Patient Health Questionnaire 9 item (PHQ-9) total score",
                      LOINCProperty.SCORE.value, LOINCTiming.TWO_WEEKS.value, LOINCSystem.PATIENT.value,
                      LOINCScale.QUANTITATIVE.value, short_name="PHQ-9 Total Score", units="{score}",
                      panel="44249-1")
        )
        self.add_code(
            LOINCCode("70274-6", "Generalized anxiety disorder 7 item (GAD-7) total score",
                      LOINCProperty.SCORE.value, LOINCTiming.TWO_WEEKS.value, LOINCSystem.PATIENT.value,
                      LOINCScale.QUANTITATIVE.value, short_name="GAD-7 Total Score", units="{score}",
                      panel="69737-5")
        )
        self.add_code(
            LOINCCode("72514-3", "Pain severity - 0-10 verbal numeric rating [Score] - Reported",
                      LOINCProperty.SCORE.value, LOINCTiming.POINT.value, LOINCSystem.PATIENT.value,
                      LOINCScale.QUANTITATIVE.value, short_name="Pain severity - 0-10 verbal numeric rating",
                      units="{score}")
        )

    def _initialize_vital_signs(self) -> None:
        """Initialize core vital sign observation codes."""
        vitals = [
            ("29463-7", "Body weight", LOINCProperty.MASS, "kg"),
            ("8302-2", "Body height", LOINCProperty.LENGTH, "cm"),
            ("39156-5", "Body mass index (BMI)", LOINCProperty.RATIO, "kg/m2"),
            ("8480-6", "Systolic blood pressure", LOINCProperty.PRESSURE, "mm[Hg]"),
            ("8462-4", "Diastolic blood pressure", LOINCProperty.PRESSURE, "mm[Hg]"),
            ("8867-4", "Heart rate", LOINCProperty.RATE, "/min"),
            ("9279-1", "Respiratory rate", LOINCProperty.RATE, "/min"),
            ("8310-5", "Body temperature", LOINCProperty.TEMPERATURE, "Cel"),
        ]
        for loinc_num, component, prop, units in vitals:
            self.add_code(
                LOINCCode(loinc_num, component, prop.value, LOINCTiming.POINT.value, LOINCSystem.PATIENT.value,
                          LOINCScale.QUANTITATIVE.value, short_name=component, units=units)
            )
        self.add_code(
            LOINCCode("2708-6", "Oxygen saturation", LOINCProperty.MASS_FRACTION.value, LOINCTiming.POINT.value,
                      LOINCSystem.ARTERIAL_BLOOD.value, LOINCScale.QUANTITATIVE.value,
                      short_name="Oxygen saturation in Arterial blood", units="%")
        )

    def add_code(self, code: LOINCCode) -> None:
        """Add a LOINC code to the repository.

        Args:
            code: LOINCCode to add

        Raises:
            ValueError: If the LOINC number is malformed
        """
        valid, error = LOINCValidator.validate_loinc_format(code.loinc_num)
        if not valid:
            raise ValueError(f"{code.loinc_num}: {error}")
        self.codes[code.loinc_num] = code

        # Update component index
        component_key = code.component.lower()
        self.component_index.setdefault(component_key, set()).add(code.loinc_num)

        if code.panel:
            self.panel_index.setdefault(code.panel, []).append(code.loinc_num)

    def get_code(self, loinc_num: str) -> Optional[LOINCCode]:
        """Get a LOINC code by number.

        Args:
            loinc_num: LOINC number

        Returns:
            LOINCCode or None
        """
        return self.codes.get(loinc_num)

    def search_by_component(self, component: str) -> List[LOINCCode]:
        """Search for LOINC codes whose component contains ``component``."""
        component_lower = component.lower()
        return [
            self.codes[code_num]
            for comp_key, code_nums in self.component_index.items()
            if component_lower in comp_key
            for code_num in sorted(code_nums)
        ]

    def get_panel_members(self, panel_loinc: str) -> List[LOINCCode]:
        """Get member codes of a panel in registration order."""
        return [self.codes[num] for num in self.panel_index.get(panel_loinc, [])]

    def to_code_system(self) -> CodeSystem:
        """Export the repository as a registry code system."""
        return CodeSystem(
            url=LOINC_SYSTEM,
            name="LOINC",
            concepts={num: code.display for num, code in self.codes.items()},
        )


class LOINCValidator:
    """Validates LOINC numbers."""

    @staticmethod
    def validate_loinc_format(loinc_num: str) -> Tuple[bool, Optional[str]]:
        """Validate LOINC number format.

        Args:
            loinc_num: LOINC number to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        # LOINC format: 1-5 digits, hyphen, 1 digit (check digit)
        if not re.fullmatch(r"\d{1,5}-\d", loinc_num):
            return False, "Invalid LOINC format. Expected: #####-#"
        return True, None

    @staticmethod
    def validate_check_digit(loinc_num: str) -> bool:
        """Validate the mod 10 check digit of a LOINC number.

        Digits are weighted from the right: every odd position is doubled
        and the digits of the products are summed.
        """
        main_part, _, check_digit = loinc_num.partition("-")
        total = 0
        for position, digit in enumerate(reversed(main_part)):
            value = int(digit)
            if position % 2 == 0:
                value *= 2
                if value > 9:
                    value = value // 10 + value % 10
            total += value
        return str((10 - total % 10) % 10) == check_digit


class AssessmentLOINCCodes:
    """Named LOINC numbers used by the assessment instruments and vitals."""

    PHQ9_PANEL = "44249-1"
    PHQ9_TOTAL_SCORE = "44261-6"
    GAD7_PANEL = "69737-5"
    GAD7_TOTAL_SCORE = "70274-6"
    RIVERMEAD_PCS = "72170-4"
    VAS_PAIN = "72514-3"
    BODY_WEIGHT = "29463-7"
    BODY_HEIGHT = "8302-2"
    BMI = "39156-5"
    BLOOD_PRESSURE_SYSTOLIC = "8480-6"
    BLOOD_PRESSURE_DIASTOLIC = "8462-4"
    HEART_RATE = "8867-4"
    RESPIRATORY_RATE = "9279-1"
    BODY_TEMPERATURE = "8310-5"
    OXYGEN_SATURATION = "2708-6"


loinc_repository = LOINCRepository()
loinc_validator = LOINCValidator()
