"""
FastAPI dependency injection utilities for the Plant Care service.

This module provides dependency injection functions for FastAPI routes.
"""

from typing import TYPE_CHECKING, Optional

from fastapi import Depends, Header, HTTPException

from plantcare.core.config import Settings, get_settings

if TYPE_CHECKING:
    from plantcare.services.health_assessment import HealthAssessmentClient
    from plantcare.services.repository import DiagnosisRepository

USER_ID_HEADER = "X-User-Id"


# Lazy imports to avoid circular dependency
def _get_diagnosis_repository() -> "DiagnosisRepository":
    from plantcare.services.repository import get_diagnosis_repository
    return get_diagnosis_repository()


def _get_health_assessment_client() -> "HealthAssessmentClient":
    from plantcare.services.health_assessment import get_health_assessment_client
    return get_health_assessment_client()


async def depends_settings(
    settings: Settings = Depends(get_settings),
) -> Settings:
    """FastAPI dependency injection for the application Settings."""
    return settings


async def depends_repository(
    repository: "DiagnosisRepository" = Depends(_get_diagnosis_repository),
) -> "DiagnosisRepository":
    """
    FastAPI dependency injection for DiagnosisRepository.

    Usage in routes:
        @router.get("/{diagnosis_id}")
        async def get_diagnosis(
            diagnosis_id: str,
            repository: DiagnosisRepository = Depends(depends_repository)
        ):
            return repository.get(diagnosis_id, user_id)

    Returns:
        DiagnosisRepository: The singleton repository instance
    """
    return repository


async def depends_health_client(
    client: "HealthAssessmentClient" = Depends(_get_health_assessment_client),
) -> "HealthAssessmentClient":
    """
    FastAPI dependency injection for HealthAssessmentClient.

    Tests replace this dependency with a stub through
    app.dependency_overrides.

    Returns:
        HealthAssessmentClient: The singleton upstream client
    """
    return client


async def depends_user_id(
    x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
) -> str:
    """
    Resolve the calling user from the X-User-Id header.

    Authentication happens in front of this service; the header carries
    the already-authenticated user ID.

    Raises:
        HTTPException: 401 when the header is missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id.strip()
