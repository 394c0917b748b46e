"""Raw factor inputs for probability and consequence of failure."""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DefectSeverity(str, Enum):
    """Worst observed defect on the component."""

    NONE = "none"
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CRITICAL = "critical"


class MaintenanceFrequency(str, Enum):
    """Maintenance regime applied to the component."""

    NONE = "none"
    REACTIVE = "reactive"
    SCHEDULED = "scheduled"
    PREVENTIVE = "preventive"
    PREDICTIVE = "predictive"


class OperatingEnvironment(str, Enum):
    """Operating conditions the component is exposed to."""

    CONTROLLED = "controlled"
    NORMAL = "normal"
    HARSH = "harsh"
    EXTREME = "extreme"


class PofInputs(BaseModel):
    """Inputs to the reliability model. Every field is optional."""

    age: Optional[float] = Field(default=None, ge=0)
    expected_useful_life: Optional[float] = Field(default=None, gt=0)
    condition_index: Optional[float] = Field(default=None, ge=0, le=100)
    defect_severity: Optional[DefectSeverity] = None
    maintenance_frequency: Optional[MaintenanceFrequency] = None
    deferred_maintenance_years: Optional[float] = Field(default=None, ge=0)
    operating_environment: Optional[OperatingEnvironment] = None
    utilization_rate: Optional[float] = Field(default=None, ge=0)
    equipment_type: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "age": 18,
                "expected_useful_life": 25,
                "condition_index": 55,
                "defect_severity": "moderate",
                "maintenance_frequency": "scheduled",
                "deferred_maintenance_years": 2,
                "operating_environment": "normal",
                "utilization_rate": 85,
                "equipment_type": "boiler"
            }
        }
    )


class SafetyConsequence(BaseModel):
    """Operator-declared safety impact."""

    impact: Optional[float] = None
    notes: Optional[str] = None


class OperationalConsequence(BaseModel):
    """Service disruption caused by a failure."""

    impact: Optional[float] = None
    downtime_days: Optional[float] = Field(default=None, ge=0)
    affected_systems: List[str] = []
    notes: Optional[str] = None


class FinancialConsequence(BaseModel):
    """Direct and indirect cost of a failure."""

    impact: Optional[float] = None
    repair_cost: Optional[float] = Field(default=None, ge=0)
    revenue_loss: Optional[float] = Field(default=None, ge=0)
    penalty_cost: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None

    @property
    def total_cost(self) -> float:
        """Sum of all declared cost components."""
        return (self.repair_cost or 0) + (self.revenue_loss or 0) + (self.penalty_cost or 0)


class EnvironmentalConsequence(BaseModel):
    """Spills, emissions and regulatory exposure."""

    impact: Optional[float] = None
    notes: Optional[str] = None


class ReputationalConsequence(BaseModel):
    """Public perception and client satisfaction."""

    impact: Optional[float] = None
    notes: Optional[str] = None


class CofInputs(BaseModel):
    """Inputs to the consequence model, one sub-record per dimension."""

    safety: SafetyConsequence = Field(default_factory=SafetyConsequence)
    operational: OperationalConsequence = Field(default_factory=OperationalConsequence)
    financial: FinancialConsequence = Field(default_factory=FinancialConsequence)
    environmental: EnvironmentalConsequence = Field(default_factory=EnvironmentalConsequence)
    reputational: ReputationalConsequence = Field(default_factory=ReputationalConsequence)

    @classmethod
    def from_flat(cls, data: Dict[str, Any]) -> "CofInputs":
        """Build from flat field names such as ``safety_impact`` or ``downtime_days``.

        Unknown keys are ignored.
        """
        return cls(
            safety=SafetyConsequence(
                impact=data.get("safety_impact"),
                notes=data.get("safety_notes"),
            ),
            operational=OperationalConsequence(
                impact=data.get("operational_impact"),
                downtime_days=data.get("downtime_days"),
                affected_systems=data.get("affected_systems") or [],
                notes=data.get("operational_notes"),
            ),
            financial=FinancialConsequence(
                impact=data.get("financial_impact"),
                repair_cost=data.get("repair_cost"),
                revenue_loss=data.get("revenue_loss"),
                penalty_cost=data.get("penalty_cost"),
                notes=data.get("financial_notes"),
            ),
            environmental=EnvironmentalConsequence(
                impact=data.get("environmental_impact"),
                notes=data.get("environmental_notes"),
            ),
            reputational=ReputationalConsequence(
                impact=data.get("reputational_impact"),
                notes=data.get("reputational_notes"),
            ),
        )
