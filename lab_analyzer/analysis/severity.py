import math
from typing import List, Optional, Union

from lab_analyzer.parsers.base import parse_decimal_prefix
from lab_analyzer.parsers.models import ObservationValue

from .models import RiskLevel, Severity
from .ranges import RangeKind, parse_reference_range

CRITICAL_FLAGS = {"C", "HH", "LL", "CC", "CL", "CH"}
ABNORMAL_FLAGS = {"H", "L", "A", "AA", "W"}

RANGE_CRITICAL_DEVIATION = 0.3
UPPER_LIMIT_CRITICAL_DEVIATION = 0.5
LOWER_LIMIT_CRITICAL_DEVIATION = 0.3

CHOLESTEROL_LIMIT = 5.5  # mmol/L
GLUCOSE_LIMIT = 7.0  # mmol/L, ayunas
HAEMOGLOBIN_LIMITS = {"F": 120.0, "M": 130.0}  # g/L

RISK_TESTS = ("Cholesterol", "Glucose", "Blood Pressure", "HbA1c")

ValueLike = Union[ObservationValue, str, float, int, None]


def as_number(value: ValueLike) -> Optional[float]:
    """Numeric reading of a result value; text falls back to its leading number.

    "12 (repeat)" reads as 12, "<30" and "See note" have no number.
    """
    if value is None:
        return None
    if isinstance(value, ObservationValue):
        if value.number is not None:
            return value.number
        return parse_decimal_prefix(value.text)
    if isinstance(value, (int, float)):
        return float(value)
    return parse_decimal_prefix(value)


def _div(a: float, b: float) -> float:
    # División IEEE: un límite en cero no debe tumbar la clasificación
    if b == 0:
        if a == 0:
            return math.nan
        return math.copysign(math.inf, a)
    return a / b


def _grade(deviation: float, limit: float) -> Severity:
    return Severity.CRITICAL if deviation > limit else Severity.ABNORMAL


def determine_severity(
    value: ValueLike, reference_range: Optional[str] = None, abnormal_flag: Optional[str] = None
) -> Severity:
    """Flag first, reference range second; anything undecided is normal."""
    if abnormal_flag:
        flag = abnormal_flag.upper()
        if flag in CRITICAL_FLAGS:
            return Severity.CRITICAL
        if flag in ABNORMAL_FLAGS:
            return Severity.ABNORMAL

    if not reference_range:
        return Severity.NORMAL
    v = as_number(value)
    if v is None:
        return Severity.NORMAL

    rng = parse_reference_range(reference_range)
    if rng.kind == RangeKind.RANGE:
        width = rng.max - rng.min
        if v < rng.min:
            return _grade(_div(rng.min - v, width), RANGE_CRITICAL_DEVIATION)
        if v > rng.max:
            return _grade(_div(v - rng.max, width), RANGE_CRITICAL_DEVIATION)
    elif rng.kind == RangeKind.LESS_THAN:
        if v >= rng.max:
            return _grade(_div(v, rng.max) - 1, UPPER_LIMIT_CRITICAL_DEVIATION)
    elif rng.kind == RangeKind.LESS_THAN_EQUAL:
        if v > rng.max:
            return _grade(_div(v, rng.max) - 1, UPPER_LIMIT_CRITICAL_DEVIATION)
    elif rng.kind == RangeKind.GREATER_THAN:
        if v <= rng.min:
            return _grade(1 - _div(v, rng.min), LOWER_LIMIT_CRITICAL_DEVIATION)
    elif rng.kind == RangeKind.GREATER_THAN_EQUAL:
        if v < rng.min:
            return _grade(1 - _div(v, rng.min), LOWER_LIMIT_CRITICAL_DEVIATION)

    return Severity.NORMAL


def interpretations(
    test_name: str, value: ValueLike, severity: Severity, gender: Optional[str] = None
) -> List[str]:
    out: List[str] = []
    v = as_number(value)

    if severity == Severity.CRITICAL:
        out.append(f"Critical {test_name} level detected.")
        out.append("Immediate clinical attention may be required.")
    elif severity == Severity.ABNORMAL:
        out.append(f"Abnormal {test_name} level detected.")

    if v is None:
        return out

    if "Cholesterol" in test_name and v > CHOLESTEROL_LIMIT:
        out.append("Elevated cholesterol increases risk of cardiovascular disease.")
    if "Glucose" in test_name and v > GLUCOSE_LIMIT:
        out.append("Elevated fasting glucose may indicate diabetes.")
    if "Haemoglobin" in test_name:
        limit = HAEMOGLOBIN_LIMITS.get(gender or "")
        if limit is not None and v < limit:
            out.append("Low hemoglobin may indicate anemia.")
    return out


def risk_level(test_name: str, severity: Severity) -> Optional[RiskLevel]:
    if not any(t in test_name for t in RISK_TESTS):
        return None
    if severity == Severity.CRITICAL:
        return RiskLevel.HIGH
    if severity == Severity.ABNORMAL:
        return RiskLevel.MODERATE
    return RiskLevel.LOW
