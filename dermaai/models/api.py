"""
API Request/Response Models
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dermaai.core.case import AnalysisContext, Case, Language, MAX_IMAGES


class AnalyzeCaseRequest(BaseModel):
    """Request body for POST /api/cases/analyze."""
    model_config = ConfigDict(populate_by_name=True)

    case_id: Optional[str] = Field(default=None, alias="caseId")
    image_urls: List[str] = Field(default_factory=list, alias="imageUrls")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    symptoms: Union[str, List[str], None] = None
    lesion_location: Optional[str] = Field(default=None, alias="lesionLocation")
    medical_history: List[str] = Field(default_factory=list, alias="medicalHistory")
    language: Language = Language.ENGLISH
    is_health_professional: bool = Field(default=False, alias="isHealthProfessional")

    @model_validator(mode="after")
    def resolve_images(self) -> "AnalyzeCaseRequest":
        # Single imageUrl is still accepted; anything past three images is dropped
        images = [url for url in self.image_urls if url] or ([self.image_url] if self.image_url else [])
        if not images:
            raise ValueError("At least one image is required")
        self.image_urls = images[:MAX_IMAGES]
        return self

    def to_case(self) -> Case:
        kwargs = {}
        if self.case_id:
            kwargs["id"] = self.case_id
        return Case(
            images=self.image_urls,
            symptoms=self.symptoms or "",
            context=AnalysisContext(
                lesion_location=self.lesion_location,
                medical_history=list(self.medical_history),
                language=self.language,
                is_health_professional=self.is_health_professional,
            ),
            **kwargs,
        )


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str
    providers: List[str]


class ErrorResponse(BaseModel):
    """Structured error body."""
    error: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
