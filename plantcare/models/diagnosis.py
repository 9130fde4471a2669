"""
Diagnosis data models for the Plant Care service.

This module contains Pydantic models for the disease diagnosis workflow:
the upstream health-assessment payload, the stored diagnosis record and
the API requests and responses built around it.
"""

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, computed_field, field_validator


class Category(str, Enum):
    """Disease category derived from the disease name."""

    FUNGAL = "Fungal"
    BACTERIAL = "Bacterial"
    VIRAL = "Viral"
    NUTRITIONAL = "Nutritional"
    ENVIRONMENTAL = "Environmental"
    PEST = "Pest"
    PHYSICAL = "Physical"
    OTHER = "Other"


class RiskLevel(str, Enum):
    """Coarse risk bucket derived from a probability."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


Answer = Literal["yes", "no"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


DEFAULT_PLANT_DETECTION_THRESHOLD = 0.5
DEFAULT_HEALTH_THRESHOLD = 0.525


@dataclass(frozen=True)
class DetectionThresholds:
    """Cut-offs applied to the upstream is_plant / is_healthy probabilities."""

    plant_detection: float = DEFAULT_PLANT_DETECTION_THRESHOLD
    health: float = DEFAULT_HEALTH_THRESHOLD


DEFAULT_THRESHOLDS = DetectionThresholds()


def _coerce_probability(v: Any) -> Optional[float]:
    """Keep finite real numbers, turn anything else into None."""
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    try:
        v = float(v)
    except OverflowError:
        return None
    if not math.isfinite(v):
        return None
    return v


def _coerce_text(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None


def _coerce_flag(v: Any) -> Optional[bool]:
    return v if isinstance(v, bool) else None


# --- Upstream health assessment payload ---


class SimilarImage(BaseModel):
    """Reference image attached to a disease suggestion."""

    model_config = {"extra": "ignore"}

    id: Optional[str] = None
    url: Optional[str] = None
    url_small: Optional[str] = None
    similarity: Optional[float] = None
    license_name: Optional[str] = None
    license_url: Optional[str] = None
    citation: Optional[str] = None


class DiseaseDetails(BaseModel):
    model_config = {"extra": "ignore"}

    language: Optional[str] = None
    entity_id: Optional[str] = None


class DiseaseSuggestion(BaseModel):
    """One candidate disease, as ranked by the upstream classifier."""

    model_config = {"extra": "ignore"}

    id: Optional[str] = Field(None, description="Opaque upstream identifier")
    name: Optional[str] = Field(None, description="Human-readable disease name")
    probability: Optional[float] = Field(None, description="Confidence (0-1)")
    similar_images: List[SimilarImage] = Field(default_factory=list)
    details: Optional[DiseaseDetails] = None

    @field_validator("id", "name", mode="before")
    @classmethod
    def drop_non_text(cls, v: Any) -> Optional[str]:
        return _coerce_text(v)

    @field_validator("probability", mode="before")
    @classmethod
    def drop_invalid_probability(cls, v: Any) -> Optional[float]:
        return _coerce_probability(v)


class QuestionOption(BaseModel):
    """Answer option of a diagnostic question, pointing at a suggestion."""

    model_config = {"extra": "ignore"}

    suggestion_index: Optional[int] = None
    entity_id: Optional[str] = None
    name: Optional[str] = None
    translation: Optional[str] = None

    @field_validator("suggestion_index", mode="before")
    @classmethod
    def drop_non_integer_index(cls, v: Any) -> Optional[int]:
        if isinstance(v, bool) or not isinstance(v, int):
            return None
        return v


class QuestionOptions(BaseModel):
    model_config = {"extra": "ignore"}

    yes: Optional[QuestionOption] = None
    no: Optional[QuestionOption] = None


class DiagnosticQuestion(BaseModel):
    """Yes/no prompt used to pick between two candidate diseases."""

    model_config = {"extra": "ignore"}

    text: Optional[str] = None
    translation: Optional[str] = None
    options: Optional[QuestionOptions] = None


class BinaryPrediction(BaseModel):
    model_config = {"extra": "ignore"}

    binary: Optional[bool] = None
    probability: Optional[float] = None
    threshold: Optional[float] = None

    @field_validator("binary", mode="before")
    @classmethod
    def drop_non_bool(cls, v: Any) -> Optional[bool]:
        return _coerce_flag(v)

    @field_validator("probability", "threshold", mode="before")
    @classmethod
    def drop_invalid_number(cls, v: Any) -> Optional[float]:
        return _coerce_probability(v)


class DiseaseResult(BaseModel):
    model_config = {"extra": "ignore"}

    suggestions: List[DiseaseSuggestion] = Field(default_factory=list)
    question: Optional[DiagnosticQuestion] = None

    @field_validator("suggestions", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class AssessmentResult(BaseModel):
    model_config = {"extra": "ignore"}

    is_plant: Optional[BinaryPrediction] = None
    is_healthy: Optional[BinaryPrediction] = None
    disease: Optional[DiseaseResult] = None


class HealthAssessment(BaseModel):
    """Response of the upstream health-assessment service."""

    model_config = {"extra": "ignore", "protected_namespaces": ()}

    access_token: Optional[str] = None
    model_version: Optional[str] = None
    custom_id: Optional[str] = None
    status: Optional[str] = None
    sla_compliant_client: Optional[bool] = None
    sla_compliant_system: Optional[bool] = None
    created: Optional[float] = None
    completed: Optional[float] = None
    result: Optional[AssessmentResult] = None


# --- Stored diagnosis ---


class PrimaryDisease(BaseModel):
    """The suggestion promoted to drive category, risk and severity."""

    disease_detected: bool = Field(False, description="True iff a suggestion exists")
    disease_id: Optional[str] = None
    disease_name: Optional[str] = None
    category: Category = Category.OTHER
    probability: float = Field(0.0, description="Confidence of the chosen suggestion")
    risk_level: RiskLevel = RiskLevel.LOW


class Location(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ApiMetadata(BaseModel):
    """Bookkeeping fields copied from the upstream response."""

    model_config = {"protected_namespaces": ()}

    access_token: Optional[str] = None
    model_version: Optional[str] = None
    custom_id: Optional[str] = None
    status: Optional[str] = None
    sla_compliant_client: Optional[bool] = None
    sla_compliant_system: Optional[bool] = None
    created: Optional[float] = None
    completed: Optional[float] = None


class DiagnosisRecord(BaseModel):
    """A user's diagnosis of one plant image."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Diagnosis ID")
    user_id: str = Field(..., min_length=1, description="Owning user")
    image_url: str = Field(..., min_length=1, description="Source image URL")
    plant_name: Optional[str] = None
    plant_type: Optional[str] = None

    # Plant detection
    is_plant_detected: bool = False
    plant_detection_probability: float = 0.0
    plant_detection_threshold: float = DEFAULT_PLANT_DETECTION_THRESHOLD

    # Health status
    is_healthy: bool = False
    health_probability: float = 0.0
    health_threshold: float = DEFAULT_HEALTH_THRESHOLD

    primary_disease: PrimaryDisease = Field(default_factory=PrimaryDisease)
    disease_suggestions: List[DiseaseSuggestion] = Field(default_factory=list)
    diagnostic_question: Optional[DiagnosticQuestion] = None

    question_answered: bool = False
    user_answer: Optional[Answer] = None

    added_to_dashboard: bool = False
    severity_score: int = Field(0, ge=0, le=100)

    api_response: ApiMetadata = Field(default_factory=ApiMetadata)
    location: Location = Field(default_factory=Location)

    diagnosed_at: datetime = Field(default_factory=_utcnow)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @computed_field
    @property
    def disease_percentage(self) -> int:
        """Primary disease confidence as a whole percentage."""
        from plantcare.services.classifier import disease_percentage

        return disease_percentage(self.primary_disease)


# --- API requests and responses ---


class DiagnoseRequest(BaseModel):
    """Diagnosis request model"""

    image_url: str = Field(..., min_length=1, description="Plant image URL")
    latitude: Optional[float] = Field(None, ge=-90, le=90, description="Latitude (optional)")
    longitude: Optional[float] = Field(None, ge=-180, le=180, description="Longitude (optional)")
    plant_name: Optional[str] = Field(None, max_length=200, description="Plant name (optional)")
    plant_type: Optional[str] = Field(None, max_length=200, description="Plant type (optional)")

    @field_validator("image_url")
    @classmethod
    def reject_blank_url(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("image_url must not be blank")
        return v

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "image_url": "https://cdn.example.com/uploads/monstera-leaf.jpg",
                    "latitude": 43.6532,
                    "longitude": -79.3832,
                    "plant_name": "Monstera",
                }
            ]
        }
    }


class DiagnosisUpdate(BaseModel):
    """Fields a user may change on an existing diagnosis."""

    answer: Optional[Answer] = Field(None, description="Answer to the diagnostic question")
    added_to_dashboard: Optional[bool] = None
    plant_name: Optional[str] = Field(None, max_length=200)
    plant_type: Optional[str] = Field(None, max_length=200)


class DiseaseBlock(BaseModel):
    suggestions: List[DiseaseSuggestion] = Field(default_factory=list)
    question: Optional[DiagnosticQuestion] = None


class DiagnosisResponse(BaseModel):
    """Response returned when a diagnosis is created"""

    diagnosis_id: str
    image_url: str
    is_plant: BinaryPrediction
    is_healthy: BinaryPrediction
    is_plant_detected: bool
    is_plant_probability: float
    disease: DiseaseBlock
    primary_disease: PrimaryDisease
    severity_score: int
    plant_name: Optional[str] = None
    plant_type: Optional[str] = None
    location: Location
    created_at: datetime


class DiagnosisUpdateResponse(BaseModel):
    message: str
    diagnosis: DiagnosisRecord


class MessageResponse(BaseModel):
    message: str
