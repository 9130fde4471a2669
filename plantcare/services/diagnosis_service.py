"""
Diagnosis record transforms for the Plant Care service.

Each function takes a DiagnosisRecord and returns a new one; persisting
the result is left to the repository. The classifier does the actual
disease selection and scoring.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from plantcare.models.diagnosis import (
    DEFAULT_THRESHOLDS,
    ApiMetadata,
    BinaryPrediction,
    DetectionThresholds,
    DiagnoseRequest,
    DiagnosisRecord,
    DiagnosisResponse,
    DiagnosisUpdate,
    DiseaseBlock,
    HealthAssessment,
    Location,
    PrimaryDisease,
)
from plantcare.services.classifier import (
    compute_severity_score,
    refine_primary_disease,
    select_primary_disease,
)

logger = logging.getLogger(__name__)

VALID_ANSWERS = ("yes", "no")


class InvalidAnswerError(ValueError):
    """Raised when a diagnostic question answer is not 'yes' or 'no'."""

    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_record(
    user_id: str,
    request: DiagnoseRequest,
    thresholds: DetectionThresholds = DEFAULT_THRESHOLDS,
) -> DiagnosisRecord:
    """
    Build the initial diagnosis stored before the assessment runs.

    Args:
        user_id: Owning user
        request: Validated diagnosis request
        thresholds: Detection thresholds to store on the record

    Returns:
        DiagnosisRecord with no disease and zeroed detection fields
    """
    return DiagnosisRecord(
        user_id=user_id,
        image_url=request.image_url,
        plant_name=request.plant_name or None,
        plant_type=request.plant_type or None,
        plant_detection_threshold=thresholds.plant_detection,
        health_threshold=thresholds.health,
        location=Location(latitude=request.latitude, longitude=request.longitude),
    )


def _metadata(assessment: HealthAssessment, default_status: Optional[str] = None) -> ApiMetadata:
    return ApiMetadata(
        access_token=assessment.access_token,
        model_version=assessment.model_version,
        custom_id=assessment.custom_id,
        status=assessment.status or default_status,
        sla_compliant_client=assessment.sla_compliant_client,
        sla_compliant_system=assessment.sla_compliant_system,
        created=assessment.created,
        completed=assessment.completed,
    )


def apply_assessment(
    record: DiagnosisRecord,
    assessment: HealthAssessment,
    thresholds: DetectionThresholds = DEFAULT_THRESHOLDS,
) -> DiagnosisRecord:
    """
    Fold an upstream health assessment into a diagnosis.

    Suggestions keep the upstream ranking. The top suggestion becomes the
    primary disease and the severity score is recomputed from it.

    Args:
        record: Diagnosis created by new_record()
        assessment: Parsed upstream response
        thresholds: Fallbacks for thresholds the upstream omits

    Returns:
        Updated copy of the record
    """
    result = assessment.result

    if result is None:
        logger.warning(f"[Diagnosis {record.id}] Assessment returned no result")
        return record.model_copy(
            update={
                "is_plant_detected": False,
                "plant_detection_probability": 0.0,
                "plant_detection_threshold": thresholds.plant_detection,
                "is_healthy": False,
                "health_probability": 0.0,
                "health_threshold": thresholds.health,
                "disease_suggestions": [],
                "diagnostic_question": None,
                "primary_disease": PrimaryDisease(),
                "severity_score": 0,
                "api_response": _metadata(assessment, default_status="no_result"),
                "updated_at": _now(),
            }
        )

    is_plant = result.is_plant or BinaryPrediction()
    is_healthy = result.is_healthy or BinaryPrediction()
    disease = result.disease
    suggestions = list(disease.suggestions) if disease else []
    question = disease.question if disease else None

    primary = select_primary_disease(suggestions)
    if primary.disease_detected:
        logger.info(
            f"[Diagnosis {record.id}] Disease detected: {primary.disease_name} "
            f"(confidence: {primary.probability}, category: {primary.category.value})"
        )
    else:
        logger.info(f"[Diagnosis {record.id}] No disease detected")

    return record.model_copy(
        update={
            "is_plant_detected": bool(is_plant.binary),
            "plant_detection_probability": is_plant.probability or 0.0,
            "plant_detection_threshold": is_plant.threshold or thresholds.plant_detection,
            "is_healthy": bool(is_healthy.binary),
            "health_probability": is_healthy.probability or 0.0,
            "health_threshold": is_healthy.threshold or thresholds.health,
            "disease_suggestions": suggestions,
            "diagnostic_question": question,
            "primary_disease": primary,
            "severity_score": compute_severity_score(primary),
            "api_response": _metadata(assessment),
            "updated_at": _now(),
        }
    )


def answer_question(record: DiagnosisRecord, answer: str) -> DiagnosisRecord:
    """
    Record the user's answer and refine the primary disease from it.

    Answering again is allowed and simply refines again. When the chosen
    option does not point at an existing suggestion the primary disease
    is left as it was.

    Args:
        record: Diagnosis to answer
        answer: "yes" or "no"

    Returns:
        Updated copy of the record

    Raises:
        InvalidAnswerError: If answer is not "yes" or "no"
    """
    if answer not in VALID_ANSWERS:
        raise InvalidAnswerError(f"Answer must be 'yes' or 'no', got {answer!r}")

    primary = refine_primary_disease(
        record.disease_suggestions,
        record.diagnostic_question,
        answer,
        record.primary_disease,
    )
    if primary is record.primary_disease:
        logger.info(f"[Diagnosis {record.id}] Answer '{answer}' left primary disease unchanged")
    else:
        logger.info(
            f"[Diagnosis {record.id}] Answer '{answer}' refined primary disease to "
            f"{primary.disease_name}"
        )

    return record.model_copy(
        update={
            "question_answered": True,
            "user_answer": answer,
            "primary_disease": primary,
            "severity_score": compute_severity_score(primary),
            "updated_at": _now(),
        }
    )


def apply_update(record: DiagnosisRecord, update: DiagnosisUpdate) -> DiagnosisRecord:
    """
    Apply a user update: an optional answer plus the plain editable fields.

    Fields left unset in the update are not touched.
    """
    if update.answer is not None:
        record = answer_question(record, update.answer)

    changes = {}
    if update.added_to_dashboard is not None:
        changes["added_to_dashboard"] = update.added_to_dashboard
    if "plant_name" in update.model_fields_set:
        changes["plant_name"] = update.plant_name
    if "plant_type" in update.model_fields_set:
        changes["plant_type"] = update.plant_type

    changes["updated_at"] = _now()
    return record.model_copy(update=changes)


def to_response(record: DiagnosisRecord) -> DiagnosisResponse:
    """Shape a diagnosis the way the create endpoint returns it."""
    return DiagnosisResponse(
        diagnosis_id=record.id,
        image_url=record.image_url,
        is_plant=BinaryPrediction(
            binary=record.is_plant_detected,
            probability=record.plant_detection_probability,
            threshold=record.plant_detection_threshold,
        ),
        is_healthy=BinaryPrediction(
            binary=record.is_healthy,
            probability=record.health_probability,
            threshold=record.health_threshold,
        ),
        is_plant_detected=record.is_plant_detected,
        is_plant_probability=record.plant_detection_probability,
        disease=DiseaseBlock(
            suggestions=record.disease_suggestions,
            question=record.diagnostic_question,
        ),
        primary_disease=record.primary_disease,
        severity_score=record.severity_score,
        plant_name=record.plant_name,
        plant_type=record.plant_type,
        location=record.location,
        created_at=record.created_at,
    )
