"""Pydantic models and enums for the Lean Canvas task pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TaskName(str, Enum):
    """Enumerate the Dify workflow tasks."""

    PERSONA = "persona"
    BUSINESS_IDEA = "businessidea"
    PRODUCT_NAME = "productname"
    CANVAS = "canvas"


class CreativityLevel(str, Enum):
    """How far business ideas may stray from proven models."""

    REALISTIC = "realistic"
    CREATIVE = "creative"
    VISIONARY = "visionary"


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class Persona(_Record):
    """One synthetic target-customer profile."""

    id: int
    description: str
    explicit_needs: str = ""
    implicit_needs: str = ""


class BusinessIdea(_Record):
    """Candidate business concept derived from a persona."""

    id: int
    idea_text: str
    osborn_hint: str = ""


class ProductDetails(BaseModel):
    """User-authored product details; every field must be filled in."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=True)

    category: str = Field(..., min_length=1)
    feature: str = Field(..., min_length=1)
    brand_image: str = Field(..., min_length=1, alias="brandImage")


class ProductName(_Record):
    """Candidate product name with its rationale."""

    id: int
    name: str
    reason: str = ""
    pros: str = ""
    cons: str = ""


class LeanCanvasData(BaseModel):
    """The nine Lean Canvas blocks, each a list of short bullet strings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    problem: List[str] = Field(default_factory=list)
    solution: List[str] = Field(default_factory=list)
    key_metrics: List[str] = Field(default_factory=list, alias="keyMetrics")
    unique_value_proposition: List[str] = Field(default_factory=list, alias="uniqueValueProposition")
    unfair_advantage: List[str] = Field(default_factory=list, alias="unfairAdvantage")
    channels: List[str] = Field(default_factory=list)
    customer_segments: List[str] = Field(default_factory=list, alias="customerSegments")
    cost_structure: List[str] = Field(default_factory=list, alias="costStructure")
    revenue_streams: List[str] = Field(default_factory=list, alias="revenueStreams")

    def blocks(self) -> Dict[str, List[str]]:
        """Return the canvas keyed by wire (camelCase) block names."""

        return self.model_dump(by_alias=True)


class PersonaTaskRequest(BaseModel):
    """Input for persona generation."""

    model_config = ConfigDict(str_strip_whitespace=True)

    keyword: str = Field(..., min_length=1, description="Seed keyword for persona generation.")
    challenges: Optional[str] = Field(default=None, description="Optional problems the user wants addressed.")
    notes: Optional[str] = Field(default=None, description="Optional free-form notes.")


class BusinessIdeaTaskRequest(BaseModel):
    """Input for business idea generation."""

    persona: Persona
    creativity_level: Optional[CreativityLevel] = Field(
        default=None,
        description="Optional creativity level steering the ideas.",
    )


class ProductNameTaskRequest(BaseModel):
    """Input for product name generation."""

    persona: Persona
    business_idea: BusinessIdea
    product_details: ProductDetails


class CanvasTaskRequest(BaseModel):
    """Input for Lean Canvas generation."""

    persona: Persona
    business_idea: BusinessIdea
    product_name: ProductName


class PersonaTaskResponse(BaseModel):
    personas: List[Persona]


class BusinessIdeaTaskResponse(BaseModel):
    business_ideas: List[BusinessIdea]


class ProductNameTaskResponse(BaseModel):
    product_names: List[ProductName]


class DifyRequest(BaseModel):
    """Provider-agnostic request assembled by a task processor."""

    model_config = ConfigDict(frozen=True)

    task: TaskName
    inputs: Dict[str, Any] = Field(default_factory=dict)
    query: Optional[str] = None


class ApiError(BaseModel):
    message: str
    error_id: Optional[str] = None


class ApiResponse(BaseModel):
    """Envelope returned by the blocking task endpoint."""

    success: bool
    data: Optional[Any] = None
    error: Optional[ApiError] = None


class DonationRequest(BaseModel):
    amount: Any = None


class DonationResponse(BaseModel):
    session_id: str = Field(..., alias="sessionId")

    model_config = ConfigDict(populate_by_name=True)
