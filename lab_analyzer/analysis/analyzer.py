from concurrent.futures import Executor
from datetime import date
from typing import Dict, List, Optional, Sequence

from lab_analyzer.knowledge.models import (
    Condition,
    Diagnostic,
    DiagnosticGroup,
    DiagnosticMetric,
    KnowledgeBase,
)
from lab_analyzer.parsers.models import ObservationRecord, Patient

from .matching import find_matching_metric, find_related
from .models import AnalysisResponse, AnalyzedResult, PatientInfo, ResultsSummary, Severity
from .severity import determine_severity, interpretations, risk_level


def analyze(
    record: ObservationRecord,
    metrics: Sequence[DiagnosticMetric],
    conditions: Sequence[Condition],
    groups: Sequence[DiagnosticGroup],
    diagnostics: Sequence[Diagnostic],
    units: Optional[str] = None,
    gender: Optional[str] = None,
) -> AnalyzedResult:
    """Classify one observation and cross-reference it with the knowledge base.

    ``units`` is an optional hint that makes the exact-name metric lookup
    also require equal units. ``gender`` selects sex-specific thresholds for
    the interpretation sentences.
    """
    metric = find_matching_metric(record.test_name, metrics, units)
    related = find_related(metric, record.test_name, conditions, groups, diagnostics)

    severity = determine_severity(record.value, record.reference_range, record.abnormal_flag)
    notes = interpretations(record.test_name, record.value, severity, gender)

    return AnalyzedResult(
        test_name=record.test_name,
        value=record.value.display(),
        units=record.units,
        reference_range=record.reference_range,
        severity=severity,
        related_conditions=related.conditions,
        related_groups=related.groups,
        related_diagnostics=related.diagnostics,
        interpretations=notes or None,
        risk_level=risk_level(record.test_name, severity),
    )


def analyze_all(
    records: Sequence[ObservationRecord],
    kb: KnowledgeBase,
    gender: Optional[str] = None,
    strict_units: bool = True,
    executor: Optional[Executor] = None,
) -> List[AnalyzedResult]:
    """Analyze every record; output keeps input order whatever the executor."""

    def _one(record: ObservationRecord) -> AnalyzedResult:
        return analyze(
            record,
            kb.metrics,
            kb.conditions,
            kb.groups,
            kb.diagnostics,
            units=record.units if strict_units else None,
            gender=gender,
        )

    if executor is None:
        return [_one(r) for r in records]
    return list(executor.map(_one, records))


def patient_age(date_of_birth: str, today: Optional[date] = None) -> Optional[int]:
    """Whole years between the birth year and the current year."""
    year = date_of_birth[:4] if date_of_birth else ""
    if not year.isdigit():
        return None
    return (today or date.today()).year - int(year)


def group_by_severity(results: Sequence[AnalyzedResult]) -> Dict[Severity, List[AnalyzedResult]]:
    grouped: Dict[Severity, List[AnalyzedResult]] = {
        Severity.CRITICAL: [],
        Severity.ABNORMAL: [],
        Severity.NORMAL: [],
    }
    for r in results:
        grouped[r.severity].append(r)
    return grouped


def build_response(
    patient: Patient, results: List[AnalyzedResult], today: Optional[date] = None
) -> AnalysisResponse:
    grouped = group_by_severity(results)
    info = PatientInfo(age=patient_age(patient.date_of_birth, today), gender=patient.gender or None)
    summary = ResultsSummary(
        total=len(results),
        critical=len(grouped[Severity.CRITICAL]),
        abnormal=len(grouped[Severity.ABNORMAL]),
        normal=len(grouped[Severity.NORMAL]),
        patient_info=info if results else None,
    )
    return AnalysisResponse(patient=patient, results=results, summary=summary, grouped=grouped)
