"""Standardized assessment instruments.

Questionnaire definitions for PHQ-9, GAD-7, the Rivermead Post-Concussion
Symptoms Questionnaire and the visual analog pain scale, with scoring and
severity interpretation for each.
"""

from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

from clinical_fhir.coding_systems.loinc_implementation import LOINC_SYSTEM, AssessmentLOINCCodes
from clinical_fhir.fhir_types import Coding
from clinical_fhir.questionnaire_resource import (
    PublicationStatus,
    Questionnaire,
    QuestionnaireItem,
    QuestionnaireItemAnswerOption,
    QuestionnaireItemType,
    QuestionnaireResponse,
    calculate_questionnaire_score,
)

# FHIR resource type for this module
__fhir_resource__ = "Questionnaire"


class ScoreInterpretation(NamedTuple):
    """Severity band of an assessment score."""

    severity: str
    interpretation: str


FREQUENCY_OPTIONS = (
    ("0", "Not at all"),
    ("1", "Several days"),
    ("2", "More than half the days"),
    ("3", "Nearly every day"),
)

RIVERMEAD_OPTIONS = (
    ("0", "Not experienced at all"),
    ("1", "No more of a problem"),
    ("2", "A mild problem"),
    ("3", "A moderate problem"),
    ("4", "A severe problem"),
)


def _loinc(code: str, display: Optional[str] = None) -> Coding:
    return Coding(system=LOINC_SYSTEM, code=code, display=display)


def _scored_item(
    link_id: str, text: str, options: Sequence[Tuple[str, str]], loinc_code: Optional[str] = None
) -> QuestionnaireItem:
    return QuestionnaireItem(
        linkId=link_id,
        code=[_loinc(loinc_code)] if loinc_code else None,
        text=text,
        type=QuestionnaireItemType.CHOICE,
        required=True,
        answerOption=[
            QuestionnaireItemAnswerOption(valueCoding=Coding(code=code, display=display))
            for code, display in options
        ],
    )


def _total_item(link_id: str, loinc_code: str, text: str) -> QuestionnaireItem:
    return QuestionnaireItem(
        linkId=link_id,
        code=[_loinc(loinc_code, text)],
        text=text,
        type=QuestionnaireItemType.INTEGER,
        readOnly=True,
    )


_PHQ9_QUESTIONS = (
    ("phq9-1", "44250-9", "Little interest or pleasure in doing things"),
    ("phq9-2", "44255-8", "Feeling down, depressed, or hopeless"),
    ("phq9-3", "44259-0", "Trouble falling or staying asleep, or sleeping too much"),
    ("phq9-4", "44254-1", "Feeling tired or having little energy"),
    ("phq9-5", "44251-7", "Poor appetite or overeating"),
    ("phq9-6", "44258-2", "Feeling bad about yourself"),
    ("phq9-7", "44252-5", "Trouble concentrating on things"),
    ("phq9-8", "44253-3", "Moving or speaking slowly, or being fidgety"),
    ("phq9-9", "44260-8", "Thoughts of self-harm"),
)

_GAD7_QUESTIONS = (
    ("gad7-1", "69725-0", "Feeling nervous, anxious, or on edge"),
    ("gad7-2", "68509-9", "Not being able to stop or control worrying"),
    ("gad7-3", "69733-4", "Worrying too much about different things"),
    ("gad7-4", "69734-2", "Trouble relaxing"),
    ("gad7-5", "69735-9", "Being so restless that it is hard to sit still"),
    ("gad7-6", "69689-6", "Becoming easily annoyed or irritable"),
    ("gad7-7", "69736-7", "Feeling afraid as if something awful might happen"),
)

_RIVERMEAD_SYMPTOMS = (
    "Headaches",
    "Feelings of dizziness",
    "Nausea and/or vomiting",
    "Noise sensitivity",
    "Sleep disturbance",
    "Fatigue, tiring more easily",
    "Being irritable, easily angered",
    "Feeling depressed or tearful",
    "Feeling frustrated or impatient",
    "Forgetfulness, poor memory",
    "Poor concentration",
    "Taking longer to think",
    "Blurred vision",
    "Light sensitivity",
    "Double vision",
    "Restlessness",
)

PHQ9_ITEM_LINK_IDS = tuple(link_id for link_id, _, _ in _PHQ9_QUESTIONS)
GAD7_ITEM_LINK_IDS = tuple(link_id for link_id, _, _ in _GAD7_QUESTIONS)
RIVERMEAD_ITEM_LINK_IDS = tuple(f"riv-{number}" for number in range(1, len(_RIVERMEAD_SYMPTOMS) + 1))
VAS_PAIN_LINK_ID = "vas-pain-score"

PHQ9_QUESTIONNAIRE = Questionnaire(
    id="phq-9",
    url="http://hl7.org/fhir/us/core/Questionnaire/phq-9",
    name="PHQ9",
    title="Patient Health Questionnaire-9",
    status=PublicationStatus.ACTIVE,
    subjectType=["Patient"],
    code=[_loinc(AssessmentLOINCCodes.PHQ9_PANEL, "Patient Health Questionnaire-9")],
    item=[
        *(_scored_item(link_id, text, FREQUENCY_OPTIONS, code) for link_id, code, text in _PHQ9_QUESTIONS),
        _total_item("phq9-total", AssessmentLOINCCodes.PHQ9_TOTAL_SCORE, "PHQ-9 Total Score"),
    ],
)

GAD7_QUESTIONNAIRE = Questionnaire(
    id="gad-7",
    url="http://hl7.org/fhir/us/core/Questionnaire/gad-7",
    name="GAD7",
    title="Generalized Anxiety Disorder 7-item",
    status=PublicationStatus.ACTIVE,
    subjectType=["Patient"],
    code=[_loinc(AssessmentLOINCCodes.GAD7_PANEL, "GAD-7")],
    item=[
        *(_scored_item(link_id, text, FREQUENCY_OPTIONS, code) for link_id, code, text in _GAD7_QUESTIONS),
        _total_item("gad7-total", AssessmentLOINCCodes.GAD7_TOTAL_SCORE, "GAD-7 Total Score"),
    ],
)

RIVERMEAD_PCS_QUESTIONNAIRE = Questionnaire(
    id="rivermead-pcs",
    name="RivermeadPCS",
    title="Rivermead Post-Concussion Symptoms Questionnaire",
    status=PublicationStatus.ACTIVE,
    subjectType=["Patient"],
    code=[_loinc(AssessmentLOINCCodes.RIVERMEAD_PCS, "Rivermead Post-Concussion Symptoms")],
    item=[
        _scored_item(link_id, symptom, RIVERMEAD_OPTIONS)
        for link_id, symptom in zip(RIVERMEAD_ITEM_LINK_IDS, _RIVERMEAD_SYMPTOMS)
    ],
)

VAS_PAIN_QUESTIONNAIRE = Questionnaire(
    id="vas-pain",
    name="VASPain",
    title="Visual Analog Scale - Pain",
    status=PublicationStatus.ACTIVE,
    subjectType=["Patient"],
    code=[_loinc(AssessmentLOINCCodes.VAS_PAIN, "Pain severity - 0-10 verbal numeric rating")],
    item=[
        QuestionnaireItem(
            linkId=VAS_PAIN_LINK_ID,
            code=[_loinc(AssessmentLOINCCodes.VAS_PAIN)],
            text=(
                "On a scale of 0 to 10, where 0 is no pain and 10 is the worst pain imaginable, "
                "how would you rate your pain right now?"
            ),
            type=QuestionnaireItemType.INTEGER,
            required=True,
        )
    ],
)

ASSESSMENT_QUESTIONNAIRES = {
    "phq-9": PHQ9_QUESTIONNAIRE,
    "gad-7": GAD7_QUESTIONNAIRE,
    "rivermead-pcs": RIVERMEAD_PCS_QUESTIONNAIRE,
    "vas-pain": VAS_PAIN_QUESTIONNAIRE,
}


def _band(score: int, bands: Sequence[Tuple[int, str, str]], top: Tuple[str, str]) -> ScoreInterpretation:
    for upper, severity, interpretation in bands:
        if score <= upper:
            return ScoreInterpretation(severity, interpretation)
    return ScoreInterpretation(*top)


def interpret_phq9_score(score: int) -> ScoreInterpretation:
    """Depression severity for a PHQ-9 total (0-27)."""
    return _band(
        score,
        (
            (4, "minimal", "Minimal depression"),
            (9, "mild", "Mild depression"),
            (14, "moderate", "Moderate depression"),
            (19, "moderately-severe", "Moderately severe depression"),
        ),
        ("severe", "Severe depression"),
    )


def interpret_gad7_score(score: int) -> ScoreInterpretation:
    """Anxiety severity for a GAD-7 total (0-21)."""
    return _band(
        score,
        (
            (4, "minimal", "Minimal anxiety"),
            (9, "mild", "Mild anxiety"),
            (14, "moderate", "Moderate anxiety"),
        ),
        ("severe", "Severe anxiety"),
    )


def interpret_rivermead_score(score: int) -> ScoreInterpretation:
    """Symptom burden for a Rivermead PCS total (0-64)."""
    return _band(
        score,
        (
            (12, "minimal", "Minimal post-concussion symptoms"),
            (24, "mild", "Mild post-concussion symptoms"),
            (36, "moderate", "Moderate post-concussion symptoms"),
        ),
        ("severe", "Severe post-concussion symptoms"),
    )


def interpret_vas_pain_score(score: int) -> ScoreInterpretation:
    """Pain severity for a 0-10 rating."""
    if score == 0:
        return ScoreInterpretation("none", "No pain")
    return _band(
        score,
        ((3, "mild", "Mild pain"), (6, "moderate", "Moderate pain")),
        ("severe", "Severe pain"),
    )


_SCORING: List[Tuple[Questionnaire, Sequence[str], Callable[[int], ScoreInterpretation]]] = [
    (PHQ9_QUESTIONNAIRE, PHQ9_ITEM_LINK_IDS, interpret_phq9_score),
    (GAD7_QUESTIONNAIRE, GAD7_ITEM_LINK_IDS, interpret_gad7_score),
    (RIVERMEAD_PCS_QUESTIONNAIRE, RIVERMEAD_ITEM_LINK_IDS, interpret_rivermead_score),
    (VAS_PAIN_QUESTIONNAIRE, (VAS_PAIN_LINK_ID,), interpret_vas_pain_score),
]


def score_assessment(questionnaire: Questionnaire, response: QuestionnaireResponse) -> Tuple[int, ScoreInterpretation]:
    """Score a response to one of the built-in instruments.

    Only the instrument's scored items count; read-only totals are ignored.

    Raises:
        KeyError: If ``questionnaire`` is not a built-in instrument
    """
    for instrument, link_ids, interpret in _SCORING:
        if instrument.id == questionnaire.id:
            score = calculate_questionnaire_score(response, link_ids)
            return score, interpret(score)
    raise KeyError(f"no scoring defined for questionnaire {questionnaire.id!s}")
