"""Fuzzy name resolution against the knowledge base.

Names across the four tables reference each other by free text, so every
join here goes through ``names_match``: normalized equality or a substring
relation in either direction. This favours recall over precision (a short
name such as "Na" will match "Sodium, Na" and "Hemoglobin A1c (HbA1c) Na"
alike) and callers rely on that behaviour.

Table scans are linear and return the first hit in table order.
"""
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from lab_analyzer.knowledge.models import Condition, Diagnostic, DiagnosticGroup, DiagnosticMetric

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize(name: Optional[str]) -> str:
    if not name:
        return ""
    return _NON_ALNUM.sub("", name.lower())


def _match_normalized(a: str, b: str) -> bool:
    # "" es subcadena de todo: un nombre vacío tras normalizar coincide siempre
    return a == b or a in b or b in a


def names_match(a: Optional[str], b: Optional[str]) -> bool:
    return _match_normalized(normalize(a), normalize(b))


def _code_matches(code: str, wanted: str) -> bool:
    # Los alias vacíos se ignoran
    return bool(code) and _match_normalized(code, wanted)


def find_matching_metric(
    test_name: str, metrics: Sequence[DiagnosticMetric], units: Optional[str] = None
) -> Optional[DiagnosticMetric]:
    if not test_name:
        return None
    wanted = normalize(test_name)

    # 1) nombre exacto (normalizado) y, si hay pista, unidades exactas
    for metric in metrics:
        if not metric.name:
            continue
        if normalize(metric.name) == wanted and (not units or metric.units == units):
            return metric

    # 2) alias ORU o coincidencia parcial del nombre
    for metric in metrics:
        if not metric.name:
            continue
        if any(_code_matches(normalize(code), wanted) for code in metric.oru_codes):
            return metric
        if _match_normalized(normalize(metric.name), wanted):
            return metric
    return None


def _references(names: Iterable[str], targets: List[str]) -> bool:
    return any(_match_normalized(normalize(n), t) for n in names for t in targets)


def _unique(names: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(names))


@dataclass(frozen=True)
class Related:
    conditions: List[str] = field(default_factory=list)
    groups: List[str] = field(default_factory=list)
    diagnostics: List[str] = field(default_factory=list)


def find_related(
    metric: Optional[DiagnosticMetric],
    test_name: str,
    conditions: Sequence[Condition],
    groups: Sequence[DiagnosticGroup],
    diagnostics: Sequence[Diagnostic],
) -> Related:
    """Entities whose metric list references the resolved metric or the raw test name.

    Groups also pick up, one hop away, every group declared on a matched
    condition.
    """
    if metric is None:
        return Related()

    targets = [normalize(metric.name), normalize(test_name)]

    matched_conditions = [c for c in conditions if _references(c.metric_names, targets)]
    group_names = [g.name for g in groups if _references(g.metric_names, targets)]
    for c in matched_conditions:
        group_names.extend(c.group_names)

    return Related(
        conditions=_unique(c.name for c in matched_conditions),
        groups=_unique(group_names),
        diagnostics=_unique(d.name for d in diagnostics if _references(d.metric_names, targets)),
    )
