"""
Unit tests for the diagnosis record transforms.

Tests cover record creation, folding in an assessment, answering the
diagnostic question and user updates.
"""

import pytest

from plantcare.models.diagnosis import (
    Category,
    DetectionThresholds,
    DiagnoseRequest,
    DiagnosisUpdate,
    HealthAssessment,
    PrimaryDisease,
    RiskLevel,
)
from plantcare.services import diagnosis_service
from plantcare.services.diagnosis_service import InvalidAnswerError

IMAGE_URL = "https://cdn.example.com/uploads/tomato-leaf.jpg"


def make_assessment(suggestions=None, question=None, **result_overrides):
    result = {
        "is_plant": {"binary": True, "probability": 0.98, "threshold": 0.5},
        "is_healthy": {"binary": False, "probability": 0.08, "threshold": 0.525},
        "disease": {"suggestions": suggestions or [], "question": question},
    }
    result.update(result_overrides)
    return HealthAssessment.model_validate(
        {
            "access_token": "tok-123",
            "model_version": "plant_id:5.0",
            "status": "COMPLETED",
            "created": 1700000000.1,
            "completed": 1700000001.2,
            "result": result,
        }
    )


REFINE_SUGGESTIONS = [
    {"id": "a", "name": "Aphid Infestation", "probability": 0.3},
    {"id": "b", "name": "Mosaic Virus", "probability": 0.9},
]

REFINE_QUESTION = {
    "text": "Do the leaves show a mottled pattern?",
    "translation": "Do the leaves show a mottled pattern?",
    "options": {
        "yes": {"suggestion_index": 1, "entity_id": "e-b", "name": "Mosaic Virus"},
        "no": {"suggestion_index": 0, "entity_id": "e-a", "name": "Aphid Infestation"},
    },
}


@pytest.fixture
def request_data():
    return DiagnoseRequest(
        image_url=IMAGE_URL, latitude=51.5, longitude=-0.12, plant_name="Tomato"
    )


@pytest.fixture
def record(request_data):
    return diagnosis_service.new_record("user-1", request_data)


@pytest.fixture
def refinable(record):
    return diagnosis_service.apply_assessment(
        record, make_assessment(REFINE_SUGGESTIONS, REFINE_QUESTION)
    )


# --- new_record ---


def test_new_record_defaults(record):
    """Test the initial record before the assessment."""
    assert record.user_id == "user-1"
    assert record.image_url == IMAGE_URL
    assert record.plant_name == "Tomato"
    assert record.plant_type is None
    assert record.plant_detection_threshold == 0.5
    assert record.health_threshold == 0.525
    assert record.primary_disease == PrimaryDisease()
    assert record.disease_suggestions == []
    assert record.severity_score == 0
    assert record.question_answered is False
    assert record.user_answer is None
    assert record.location.latitude == 51.5


def test_new_record_custom_thresholds(request_data):
    """Test that configured thresholds are stored."""
    thresholds = DetectionThresholds(plant_detection=0.6, health=0.4)
    record = diagnosis_service.new_record("user-1", request_data, thresholds)
    assert record.plant_detection_threshold == 0.6
    assert record.health_threshold == 0.4


# --- apply_assessment ---


def test_apply_assessment_with_disease(record):
    """Test that the top suggestion drives the primary disease."""
    suggestions = [
        {"id": "d1", "name": "Early Blight", "probability": 0.82},
        {"id": "d2", "name": "Leaf Spot", "probability": 0.11},
    ]
    updated = diagnosis_service.apply_assessment(record, make_assessment(suggestions))

    assert updated.is_plant_detected is True
    assert updated.plant_detection_probability == 0.98
    assert updated.is_healthy is False
    assert updated.health_probability == 0.08
    assert [s.id for s in updated.disease_suggestions] == ["d1", "d2"]
    assert updated.primary_disease.disease_name == "Early Blight"
    assert updated.primary_disease.category == Category.FUNGAL
    assert updated.primary_disease.risk_level == RiskLevel.HIGH
    assert updated.severity_score == 98
    assert updated.disease_percentage == 82
    assert updated.api_response.model_version == "plant_id:5.0"
    assert updated.api_response.status == "COMPLETED"


def test_apply_assessment_does_not_mutate_input(record):
    """Test that the original record is left untouched."""
    diagnosis_service.apply_assessment(
        record, make_assessment([{"id": "d1", "name": "Rust", "probability": 0.5}])
    )
    assert record.primary_disease == PrimaryDisease()
    assert record.disease_suggestions == []


def test_apply_assessment_healthy_plant(record):
    """Test that no suggestions is a valid no-disease result."""
    updated = diagnosis_service.apply_assessment(record, make_assessment([]))

    assert updated.primary_disease.disease_detected is False
    assert updated.primary_disease.risk_level == RiskLevel.LOW
    assert updated.severity_score == 0


def test_apply_assessment_missing_detection_fields(record):
    """Test defaults when the upstream omits detection blocks."""
    assessment = HealthAssessment.model_validate({"result": {"disease": None}})
    thresholds = DetectionThresholds(plant_detection=0.55, health=0.6)
    updated = diagnosis_service.apply_assessment(record, assessment, thresholds)

    assert updated.is_plant_detected is False
    assert updated.plant_detection_probability == 0.0
    assert updated.plant_detection_threshold == 0.55
    assert updated.health_threshold == 0.6
    assert updated.disease_suggestions == []
    assert updated.diagnostic_question is None


def test_apply_assessment_without_result(record):
    """Test that a response without result stores an empty diagnosis."""
    assessment = HealthAssessment.model_validate({"access_token": "tok"})
    updated = diagnosis_service.apply_assessment(record, assessment)

    assert updated.primary_disease == PrimaryDisease()
    assert updated.severity_score == 0
    assert updated.api_response.status == "no_result"
    assert updated.api_response.access_token == "tok"


def test_apply_assessment_malformed_upstream_fields(record):
    """Test that wrongly typed upstream fields are read as missing."""
    assessment = make_assessment(
        [{"id": 7, "name": 123, "probability": "high"}],
        is_plant={"binary": "yes", "probability": "0.9", "threshold": [0.5]},
        is_healthy={"binary": 1, "probability": None},
    )
    updated = diagnosis_service.apply_assessment(record, assessment)

    assert updated.is_plant_detected is False
    assert updated.plant_detection_probability == 0.0
    assert updated.plant_detection_threshold == 0.5
    assert updated.is_healthy is False
    assert updated.primary_disease.disease_detected is True
    assert updated.primary_disease.disease_id is None
    assert updated.primary_disease.disease_name is None
    assert updated.primary_disease.category == Category.OTHER
    assert updated.primary_disease.probability == 0.0
    assert updated.severity_score == 0


def test_apply_assessment_huge_probability_is_bounded(record):
    """Test that an out-of-range upstream probability still yields 0-100 scores."""
    assessment = make_assessment([{"id": "x", "name": "Leaf Rust", "probability": 1e308}])
    updated = diagnosis_service.apply_assessment(record, assessment)

    assert updated.severity_score == 100
    assert updated.disease_percentage == 100
    assert updated.model_dump(mode="json")["disease_percentage"] == 100


def test_apply_assessment_infinite_probability_dropped(record):
    """Test that an infinite upstream probability counts as missing."""
    assessment = make_assessment(
        [{"id": "x", "name": "Leaf Rust", "probability": float("inf")}],
        is_plant={"binary": True, "probability": float("-inf")},
    )
    updated = diagnosis_service.apply_assessment(record, assessment)

    assert updated.disease_suggestions[0].probability is None
    assert updated.plant_detection_probability == 0.0
    assert updated.severity_score == 0
    assert updated.disease_percentage == 0


def test_apply_assessment_stores_question(refinable):
    """Test that the diagnostic question is kept."""
    assert refinable.diagnostic_question.options.yes.suggestion_index == 1
    assert refinable.primary_disease.disease_name == "Aphid Infestation"
    assert refinable.severity_score == 30


# --- answer_question ---


def test_answer_yes_refines_primary(refinable):
    """Test the answer round trip from the reference scenario."""
    answered = diagnosis_service.answer_question(refinable, "yes")

    assert answered.question_answered is True
    assert answered.user_answer == "yes"
    assert answered.primary_disease.disease_name == "Mosaic Virus"
    assert answered.primary_disease.category == Category.VIRAL
    assert answered.primary_disease.risk_level == RiskLevel.HIGH
    assert answered.severity_score == 100
    # The suggestion list itself never changes
    assert answered.disease_suggestions == refinable.disease_suggestions


def test_answer_can_be_changed(refinable):
    """Test that answering again re-runs the refinement."""
    answered = diagnosis_service.answer_question(refinable, "yes")
    answered = diagnosis_service.answer_question(answered, "no")

    assert answered.user_answer == "no"
    assert answered.primary_disease.disease_name == "Aphid Infestation"
    assert answered.severity_score == 30


def test_answer_out_of_bounds_keeps_primary(record):
    """Test that an index past the suggestions leaves the primary as is."""
    question = {"options": {"yes": {"suggestion_index": 5}}}
    diagnosis = diagnosis_service.apply_assessment(
        record, make_assessment(REFINE_SUGGESTIONS, question)
    )
    answered = diagnosis_service.answer_question(diagnosis, "yes")

    assert answered.question_answered is True
    assert answered.primary_disease == diagnosis.primary_disease
    assert answered.severity_score == diagnosis.severity_score


def test_answer_without_question(record):
    """Test that answering with no question only records the answer."""
    answered = diagnosis_service.answer_question(record, "no")
    assert answered.question_answered is True
    assert answered.primary_disease == PrimaryDisease()


def test_answer_invalid(refinable):
    """Test that anything but yes/no is rejected."""
    with pytest.raises(InvalidAnswerError):
        diagnosis_service.answer_question(refinable, "maybe")


# --- apply_update ---


def test_update_orthogonal_fields(refinable):
    """Test that dashboard and plant fields do not touch the diagnosis."""
    update = DiagnosisUpdate(added_to_dashboard=True, plant_type="Vegetable")
    updated = diagnosis_service.apply_update(refinable, update)

    assert updated.added_to_dashboard is True
    assert updated.plant_type == "Vegetable"
    assert updated.plant_name == "Tomato"
    assert updated.question_answered is False
    assert updated.primary_disease == refinable.primary_disease


def test_update_can_clear_plant_name(refinable):
    """Test that an explicit null clears the plant name."""
    updated = diagnosis_service.apply_update(
        refinable, DiagnosisUpdate.model_validate({"plant_name": None})
    )
    assert updated.plant_name is None


def test_update_with_answer(refinable):
    """Test that an answer in an update refines the diagnosis."""
    updated = diagnosis_service.apply_update(
        refinable, DiagnosisUpdate(answer="yes", added_to_dashboard=True)
    )
    assert updated.primary_disease.disease_name == "Mosaic Virus"
    assert updated.added_to_dashboard is True
    assert updated.updated_at >= refinable.updated_at


# --- to_response ---


def test_to_response_shape(refinable):
    """Test the create response built from a record."""
    response = diagnosis_service.to_response(refinable)

    assert response.diagnosis_id == refinable.id
    assert response.is_plant.binary is True
    assert response.is_plant.threshold == 0.5
    assert response.is_healthy.probability == 0.08
    assert response.is_plant_probability == 0.98
    assert len(response.disease.suggestions) == 2
    assert response.disease.question.text == REFINE_QUESTION["text"]
    assert response.severity_score == 30
