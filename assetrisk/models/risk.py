"""Risk scoring result models and classifications."""
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

class RiskLevel(str, Enum):
    """Risk matrix levels, lowest first."""

    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

class CriticalityLevel(str, Enum):
    """Consequence criticality of a component."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

class AssessmentStatus(str, Enum):
    """Review status of a stored risk assessment."""

    DRAFT = "draft"
    APPROVED = "approved"
    ARCHIVED = "archived"


class ContributingFactors(BaseModel):
    """PoF sub-factors on the 1-5 scale. ``None`` means no supporting input."""

    age_factor: Optional[float] = None
    condition_factor: Optional[float] = None
    maintenance_factor: Optional[float] = None
    environment_factor: Optional[float] = None
    utilization_factor: Optional[float] = None


class PofResult(BaseModel):
    """Output of the reliability model."""

    pof: float
    contributing_factors: ContributingFactors
    remaining_life_percent: float
    justification: str


class ConsequenceDimensions(BaseModel):
    """CoF dimension scores on the 1-5 scale."""

    safety: float
    operational: float
    financial: float
    environmental: float
    reputational: float


class CofResult(BaseModel):
    """Output of the consequence model."""

    cof: float
    dimensions: ConsequenceDimensions
    justification: str
    criticality_level: CriticalityLevel


class RiskScore(BaseModel):
    """A single cell of the risk matrix."""

    pof: float
    cof: float
    risk_score: float
    risk_level: RiskLevel
    color: str
    priority: int

    model_config = ConfigDict(frozen=True)


class RiskAssessment(BaseModel):
    """Immutable stored result of one component risk assessment."""

    asset_id: Optional[int] = None
    pof: float = Field(ge=1, le=5)
    cof: float = Field(ge=1, le=5)
    risk_score: float = Field(ge=1, le=25)
    risk_level: RiskLevel
    criticality_level: Optional[CriticalityLevel] = None
    remaining_life_percent: Optional[float] = None
    justification: str
    pof_justification: str = ""
    cof_justification: str = ""
    status: AssessmentStatus = AssessmentStatus.DRAFT
    assessed_by: Optional[str] = None
    status_changed_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "asset_id": 42,
                "pof": 3.4,
                "cof": 2.6,
                "risk_score": 8.84,
                "risk_level": "medium",
                "criticality_level": "medium",
                "justification": "PoF 3.40 x CoF 2.60 = 8.84 (medium)",
                "status": "draft"
            }
        }
    )

    def to_risk_score(self) -> RiskScore:
        """Re-derive the matrix cell for this assessment."""
        # pylint: disable=import-outside-toplevel
        from assetrisk.core.risk import classify_risk
        return classify_risk(self.pof, self.cof)


class PortfolioMetrics(BaseModel):
    """Portfolio-wide risk statistics."""

    total_assessments: int = 0
    average_risk_score: float = 0.0
    highest_risk_score: float = 0.0
    counts: Dict[RiskLevel, int] = Field(
        default_factory=lambda: {level: 0 for level in RiskLevel}
    )
    distribution: Dict[RiskLevel, float] = Field(
        default_factory=lambda: {level: 0.0 for level in RiskLevel}
    )
