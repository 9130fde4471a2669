"""
Health assessment adapter for the Plant Care service.

Thin async wrapper around the external plant health-assessment API: it
sends one image URL and returns the parsed response. Classification of
the response happens elsewhere.
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from plantcare.core.config import Settings, get_settings
from plantcare.models.diagnosis import HealthAssessment

logger = logging.getLogger(__name__)

# HTTP connection pool configuration
POOL_MAX_KEEPALIVE = 10
POOL_MAX_CONNECTIONS = 50


class HealthAssessmentError(Exception):
    """
    Raised when the health assessment service cannot produce a result.

    Attributes:
        status_code: HTTP status to surface to the API caller
        detail: Upstream error text
    """

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"Health assessment failed ({status_code}): {detail}")
        self.status_code = status_code
        self.detail = detail


class HealthAssessmentClient:
    """
    Async client for the plant health-assessment endpoint.

    Example:
        >>> client = get_health_assessment_client()
        >>> assessment = await client.assess("https://cdn.example.com/leaf.jpg")
        >>> assessment.result.is_healthy.probability
        0.12
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or get_settings()
        self._client = http_client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            limits = httpx.Limits(
                max_keepalive_connections=POOL_MAX_KEEPALIVE,
                max_connections=POOL_MAX_CONNECTIONS,
            )
            self._client = httpx.AsyncClient(
                limits=limits,
                timeout=self._settings.plant_id_timeout,
            )
            logger.info(
                f"Health assessment HTTP client initialized "
                f"(pool: {POOL_MAX_KEEPALIVE}/{POOL_MAX_CONNECTIONS})"
            )
        return self._client

    def build_payload(
        self,
        image_url: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> dict:
        """Request body for a health-only assessment of one image."""
        return {
            "images": [image_url],
            "latitude": latitude if latitude is not None else self._settings.default_latitude,
            "longitude": longitude if longitude is not None else self._settings.default_longitude,
            "similar_images": True,
            "health": "only",
        }

    async def assess(
        self,
        image_url: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> HealthAssessment:
        """
        Run a health assessment for an image.

        Args:
            image_url: Publicly reachable image URL
            latitude: Optional latitude, defaults to the configured one
            longitude: Optional longitude, defaults to the configured one

        Returns:
            Parsed HealthAssessment

        Raises:
            HealthAssessmentError: On transport failure (503), non-2xx
                responses (upstream status) or an unreadable body (502)
        """
        payload = self.build_payload(image_url, latitude, longitude)
        headers = {
            "Api-Key": self._settings.plant_id_api_key,
            "Content-Type": "application/json",
        }

        logger.info(f"Sending health assessment request for {image_url}")
        try:
            response = await self._get_client().post(
                self._settings.plant_id_api_url, json=payload, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error(f"Health assessment request failed: {e}")
            raise HealthAssessmentError(503, str(e)) from e

        if not response.is_success:
            logger.error(
                f"Health assessment API error {response.status_code}: {response.text}"
            )
            raise HealthAssessmentError(response.status_code, response.text)

        try:
            assessment = HealthAssessment.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Health assessment response could not be parsed: {e}")
            raise HealthAssessmentError(502, f"Malformed assessment response: {e}") from e

        result = assessment.result
        logger.info(
            "Health assessment received "
            f"(is_plant: {result.is_plant.probability if result and result.is_plant else None}, "
            f"is_healthy: {result.is_healthy.probability if result and result.is_healthy else None})"
        )
        return assessment

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Module-level singleton instance
_health_assessment_client: Optional[HealthAssessmentClient] = None


def get_health_assessment_client() -> HealthAssessmentClient:
    """
    Get the singleton HealthAssessmentClient instance.

    Returns:
        HealthAssessmentClient instance
    """
    global _health_assessment_client
    if _health_assessment_client is None:
        _health_assessment_client = HealthAssessmentClient()
    return _health_assessment_client


async def close_health_assessment_client() -> None:
    """Close and drop the singleton client (application shutdown)."""
    global _health_assessment_client
    if _health_assessment_client is not None:
        await _health_assessment_client.close()
        _health_assessment_client = None
