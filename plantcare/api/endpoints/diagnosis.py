"""
Diagnosis API endpoints for the Plant Care service.

This module provides diagnosis submission, retrieval, answer refinement
and deletion.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from plantcare.core import (
    depends_health_client,
    depends_repository,
    depends_settings,
    depends_user_id,
)
from plantcare.core.config import Settings
from plantcare.models.diagnosis import (
    DiagnoseRequest,
    DiagnosisRecord,
    DiagnosisResponse,
    DiagnosisUpdate,
    DiagnosisUpdateResponse,
    MessageResponse,
)
from plantcare.services import diagnosis_service
from plantcare.services.health_assessment import HealthAssessmentClient, HealthAssessmentError
from plantcare.services.repository import DiagnosisNotFoundError, DiagnosisRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/diagnosis", tags=["diagnosis"])


@router.post("", response_model=DiagnosisResponse)
async def create_diagnosis(
    request: DiagnoseRequest,
    user_id: str = Depends(depends_user_id),
    repository: DiagnosisRepository = Depends(depends_repository),
    client: HealthAssessmentClient = Depends(depends_health_client),
    settings: Settings = Depends(depends_settings),
) -> DiagnosisResponse:
    """
    Diagnose a plant image.

    The diagnosis is stored first, then the image is sent to the health
    assessment service and the stored record is updated with the
    normalized result. If the assessment fails the record is discarded.

    Args:
        request: Image URL plus optional location and plant info
        user_id: Calling user (X-User-Id header)

    Returns:
        The created diagnosis

    Raises:
        HTTPException: With the upstream status when the assessment fails

    Example:
        POST /api/v1/diagnosis
        {
            "image_url": "https://cdn.example.com/uploads/monstera-leaf.jpg",
            "plant_name": "Monstera"
        }

        Response:
        {
            "diagnosis_id": "3f1c...",
            "primary_disease": {
                "disease_detected": true,
                "disease_name": "Early Blight",
                "category": "Fungal",
                "probability": 0.82,
                "risk_level": "High"
            },
            "severity_score": 98,
            ...
        }
    """
    thresholds = settings.detection_thresholds()
    record = diagnosis_service.new_record(user_id, request, thresholds)
    repository.save(record)
    logger.info(f"[Diagnosis {record.id}] Created for user {user_id}: {record.image_url}")

    try:
        assessment = await client.assess(
            record.image_url,
            latitude=request.latitude,
            longitude=request.longitude,
        )
    except HealthAssessmentError as e:
        repository.discard(record.id)
        logger.warning(f"[Diagnosis {record.id}] Discarded after assessment failure: {e}")
        raise HTTPException(
            status_code=e.status_code,
            detail={
                "message": "Plant health assessment service error",
                "error": e.detail,
            },
        )
    except Exception:
        repository.discard(record.id)
        raise

    record = diagnosis_service.apply_assessment(record, assessment, thresholds)
    repository.save(record)

    logger.info(
        f"[Diagnosis {record.id}] Completed "
        f"(disease: {record.primary_disease.disease_name}, "
        f"severity: {record.severity_score})"
    )
    return diagnosis_service.to_response(record)


@router.get("", response_model=List[DiagnosisRecord])
async def list_diagnoses(
    limit: Optional[int] = Query(None, ge=1, le=100, description="Maximum number of results"),
    user_id: str = Depends(depends_user_id),
    repository: DiagnosisRepository = Depends(depends_repository),
) -> List[DiagnosisRecord]:
    """List the caller's diagnoses, newest first."""
    return repository.list_for_user(user_id, limit=limit)


@router.get("/{diagnosis_id}", response_model=DiagnosisRecord)
async def get_diagnosis(
    diagnosis_id: str,
    user_id: str = Depends(depends_user_id),
    repository: DiagnosisRepository = Depends(depends_repository),
) -> DiagnosisRecord:
    """
    Get one of the caller's diagnoses as stored.

    Raises:
        HTTPException: 404 when the diagnosis does not exist
    """
    try:
        return repository.get(diagnosis_id, user_id)
    except DiagnosisNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{diagnosis_id}", response_model=DiagnosisUpdateResponse)
async def update_diagnosis(
    diagnosis_id: str,
    update: DiagnosisUpdate,
    user_id: str = Depends(depends_user_id),
    repository: DiagnosisRepository = Depends(depends_repository),
) -> DiagnosisUpdateResponse:
    """
    Answer the diagnostic question and/or edit dashboard and plant fields.

    An answer re-derives the primary disease from the suggestion the
    chosen option points at, and recomputes the severity score.

    Example:
        PUT /api/v1/diagnosis/3f1c...
        {"answer": "yes", "added_to_dashboard": true}

        Response:
        {
            "message": "Diagnosis updated successfully",
            "diagnosis": {...}
        }
    """
    try:
        record = repository.get(diagnosis_id, user_id)
    except DiagnosisNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    try:
        record = diagnosis_service.apply_update(record, update)
    except diagnosis_service.InvalidAnswerError as e:
        raise HTTPException(status_code=422, detail=str(e))

    repository.save(record)
    logger.info(f"[Diagnosis {record.id}] Updated")

    return DiagnosisUpdateResponse(
        message="Diagnosis updated successfully",
        diagnosis=record,
    )


@router.delete("/{diagnosis_id}", response_model=MessageResponse)
async def delete_diagnosis(
    diagnosis_id: str,
    user_id: str = Depends(depends_user_id),
    repository: DiagnosisRepository = Depends(depends_repository),
) -> MessageResponse:
    """Delete one of the caller's diagnoses."""
    try:
        repository.delete(diagnosis_id, user_id)
    except DiagnosisNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    logger.info(f"[Diagnosis {diagnosis_id}] Deleted")
    return MessageResponse(message="Diagnosis deleted successfully")
