"""Tests for the standard assessment questionnaires and their scoring."""

import pytest

from clinical_fhir.assessments import (
    ASSESSMENT_QUESTIONNAIRES,
    GAD7_ITEM_LINK_IDS,
    GAD7_QUESTIONNAIRE,
    PHQ9_ITEM_LINK_IDS,
    PHQ9_QUESTIONNAIRE,
    RIVERMEAD_ITEM_LINK_IDS,
    RIVERMEAD_PCS_QUESTIONNAIRE,
    VAS_PAIN_LINK_ID,
    VAS_PAIN_QUESTIONNAIRE,
    ScoreInterpretation,
    interpret_gad7_score,
    interpret_phq9_score,
    interpret_rivermead_score,
    interpret_vas_pain_score,
    score_assessment,
)
from clinical_fhir.coding_systems.loinc_implementation import AssessmentLOINCCodes
from clinical_fhir.core.exceptions import BindingError, CardinalityError
from clinical_fhir.questionnaire_resource import (
    Questionnaire,
    QuestionnaireResponseInput,
    create_questionnaire_response,
)


def respond(questionnaire, answers):
    """Build and validate a completed response."""
    return create_questionnaire_response(
        QuestionnaireResponseInput(
            patient_id="pat-001",
            answers=answers,
            questionnaire=questionnaire,
            authored="2024-03-15T14:30:00Z",
        )
    )


class TestInstrumentDefinitions:
    """Test the built-in questionnaires."""

    @pytest.mark.terminology
    def test_phq9_codes(self):
        """Test that PHQ-9 carries its LOINC panel code."""
        assert PHQ9_QUESTIONNAIRE.code[0].code == AssessmentLOINCCodes.PHQ9_PANEL
        assert len(PHQ9_ITEM_LINK_IDS) == 9
        assert PHQ9_QUESTIONNAIRE.find_item("phq9-total").readOnly is True

    def test_item_counts(self):
        """Test the number of scored items per instrument."""
        assert len(GAD7_ITEM_LINK_IDS) == 7
        assert len(RIVERMEAD_ITEM_LINK_IDS) == 16
        assert RIVERMEAD_ITEM_LINK_IDS[-1] == "riv-16"
        assert VAS_PAIN_QUESTIONNAIRE.find_item(VAS_PAIN_LINK_ID).required is True

    def test_registry_by_id(self):
        """Test lookup of instruments by id."""
        assert ASSESSMENT_QUESTIONNAIRES["gad-7"] is GAD7_QUESTIONNAIRE
        assert set(ASSESSMENT_QUESTIONNAIRES) == {"phq-9", "gad-7", "rivermead-pcs", "vas-pain"}


class TestScoreBands:
    """Test interpretation of totals."""

    @pytest.mark.parametrize(
        "score,severity",
        [(0, "minimal"), (4, "minimal"), (5, "mild"), (10, "moderate"), (15, "moderately-severe"), (20, "severe")],
    )
    def test_phq9(self, score, severity):
        """Test PHQ-9 severity bands."""
        assert interpret_phq9_score(score).severity == severity

    @pytest.mark.parametrize("score,severity", [(4, "minimal"), (9, "mild"), (14, "moderate"), (15, "severe")])
    def test_gad7(self, score, severity):
        """Test GAD-7 severity bands."""
        assert interpret_gad7_score(score).severity == severity

    @pytest.mark.parametrize("score,severity", [(12, "minimal"), (13, "mild"), (36, "moderate"), (37, "severe")])
    def test_rivermead(self, score, severity):
        """Test Rivermead severity bands."""
        assert interpret_rivermead_score(score).severity == severity

    @pytest.mark.parametrize("score,severity", [(0, "none"), (3, "mild"), (6, "moderate"), (7, "severe")])
    def test_vas_pain(self, score, severity):
        """Test pain rating bands."""
        assert interpret_vas_pain_score(score).severity == severity

    def test_interpretation_text(self):
        """Test the readable interpretation."""
        assert interpret_phq9_score(12) == ScoreInterpretation("moderate", "Moderate depression")


class TestScoreAssessment:
    """Test scoring completed responses."""

    @pytest.mark.fhir_compliance
    def test_phq9_response(self):
        """Test a PHQ-9 response scored from its option codes."""
        answers = dict(zip(PHQ9_ITEM_LINK_IDS, ["0", "1", "2", "3", "1", "2", "0", "1", "2"]))
        answers["phq9-total"] = 12
        response = respond(PHQ9_QUESTIONNAIRE, answers)

        assert response.answers_for("phq9-3")[0].valueCoding.display == "More than half the days"
        score, interpretation = score_assessment(PHQ9_QUESTIONNAIRE, response)
        assert score == 12
        assert interpretation.severity == "moderate"

    def test_gad7_response(self):
        """Test a GAD-7 response with integer answers."""
        response = respond(GAD7_QUESTIONNAIRE, dict.fromkeys(GAD7_ITEM_LINK_IDS, 3))
        assert score_assessment(GAD7_QUESTIONNAIRE, response) == (21, interpret_gad7_score(21))

    def test_rivermead_response(self):
        """Test a Rivermead response."""
        response = respond(RIVERMEAD_PCS_QUESTIONNAIRE, dict.fromkeys(RIVERMEAD_ITEM_LINK_IDS, "1"))
        score, interpretation = score_assessment(RIVERMEAD_PCS_QUESTIONNAIRE, response)
        assert score == 16
        assert interpretation.severity == "mild"

    def test_vas_pain_response(self):
        """Test a single pain rating."""
        response = respond(VAS_PAIN_QUESTIONNAIRE, {VAS_PAIN_LINK_ID: 0})
        assert score_assessment(VAS_PAIN_QUESTIONNAIRE, response)[1].interpretation == "No pain"

    def test_incomplete_response(self):
        """Test that every PHQ-9 item is required."""
        answers = dict(zip(PHQ9_ITEM_LINK_IDS[:8], ["0"] * 8))
        with pytest.raises(CardinalityError) as exc_info:
            respond(PHQ9_QUESTIONNAIRE, answers)
        assert "'phq9-9'" in exc_info.value.message

    def test_answer_outside_options(self):
        """Test that frequency answers are limited to 0-3."""
        answers = dict.fromkeys(PHQ9_ITEM_LINK_IDS, "0")
        answers["phq9-1"] = "4"
        with pytest.raises(BindingError) as exc_info:
            respond(PHQ9_QUESTIONNAIRE, answers)
        assert exc_info.value.path == "QuestionnaireResponse.item[0].answer[0].valueCoding"

    def test_unknown_questionnaire(self, questionnaire):
        """Test that only built-in instruments can be scored."""
        response = respond(questionnaire, {"smoker": False})
        with pytest.raises(KeyError):
            score_assessment(questionnaire, response)
        with pytest.raises(KeyError):
            score_assessment(Questionnaire(status="draft"), response)
