"""Result bundle returned by ``GET /results/{jobId}`` once a job has completed."""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _FrozenWireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ImpactLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Phase(_FrozenWireModel):
    id: str
    name: str
    start_date: str = Field(..., alias="startDate")
    end_date: str = Field(..., alias="endDate")
    description: str = ""
    color: str = ""
    dominant_categories: tuple[str, ...] = Field(default=(), alias="dominantCategories")
    confidence_score: float = Field(default=0.0, alias="confidenceScore")


class TrajectoryPoint(_FrozenWireModel):
    date: str
    value: float
    label: str = ""


class Intervention(_FrozenWireModel):
    id: str
    title: str
    description: str = ""
    impact: ImpactLevel = ImpactLevel.MEDIUM
    category: str = ""


class ResultBundle(_FrozenWireModel):
    """Immutable final payload of an analysis job."""

    phases: tuple[Phase, ...] = ()
    trajectory: tuple[TrajectoryPoint, ...] = ()
    interventions: tuple[Intervention, ...] = ()
    narrative_audio_url: Optional[str] = Field(default=None, alias="narrativeAudioUrl")
    identity_statement: Optional[str] = Field(default=None, alias="identityStatement")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
