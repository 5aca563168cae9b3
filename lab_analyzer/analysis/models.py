from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from lab_analyzer.parsers.models import Patient


class Severity(str, Enum):
    NORMAL = "normal"
    ABNORMAL = "abnormal"
    CRITICAL = "critical"


class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


@dataclass(frozen=True)
class AnalyzedResult:
    test_name: str
    value: str
    units: str
    reference_range: str
    severity: Severity
    related_conditions: List[str] = field(default_factory=list)
    related_groups: List[str] = field(default_factory=list)
    related_diagnostics: List[str] = field(default_factory=list)
    interpretations: Optional[List[str]] = None  # None = sin interpretaciones
    risk_level: Optional[RiskLevel] = None


@dataclass(frozen=True)
class PatientInfo:
    age: Optional[int] = None
    gender: Optional[str] = None


@dataclass(frozen=True)
class ResultsSummary:
    total: int
    critical: int
    abnormal: int
    normal: int
    patient_info: Optional[PatientInfo] = None


@dataclass(frozen=True)
class AnalysisResponse:
    patient: Patient
    results: List[AnalyzedResult]
    summary: ResultsSummary
    grouped: Dict[Severity, List[AnalyzedResult]]
