import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from lab_analyzer.parsers.base import parse_decimal_prefix


class RangeKind(str, Enum):
    LESS_THAN = "less_than"
    LESS_THAN_EQUAL = "less_than_equal"
    GREATER_THAN = "greater_than"
    GREATER_THAN_EQUAL = "greater_than_equal"
    RANGE = "range"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ReferenceRange:
    kind: RangeKind = RangeKind.UNKNOWN
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def is_known(self) -> bool:
        return self.kind != RangeKind.UNKNOWN


UNKNOWN_RANGE = ReferenceRange()

# Orden de evaluación: "<" antes que "<=" y ambos antes del guion,
# así "<5" nunca cae en la rama de rango
_OPERATORS = (
    (re.compile(r"^<\s*(?=\d)"), RangeKind.LESS_THAN),
    (re.compile(r"^<=\s*(?=\d)"), RangeKind.LESS_THAN_EQUAL),
    (re.compile(r"^>\s*(?=\d)"), RangeKind.GREATER_THAN),
    (re.compile(r"^>=\s*(?=\d)"), RangeKind.GREATER_THAN_EQUAL),
)


def parse_reference_range(reference_range: Optional[str]) -> ReferenceRange:
    """Classify a free-text OBX-7 range ("<5", ">= 60", "3.5-5.5", ...)."""
    if not reference_range or not isinstance(reference_range, str):
        return UNKNOWN_RANGE
    text = reference_range.strip()

    for pattern, kind in _OPERATORS:
        m = pattern.match(text)
        if not m:
            continue
        bound = parse_decimal_prefix(text[m.end():])
        if bound is None:
            continue
        if kind in (RangeKind.LESS_THAN, RangeKind.LESS_THAN_EQUAL):
            return ReferenceRange(kind=kind, max=bound)
        return ReferenceRange(kind=kind, min=bound)

    if "-" in text:
        parts = [s.strip() for s in text.split("-")]
        lo = parse_decimal_prefix(parts[0])
        hi = parse_decimal_prefix(parts[1])
        if lo is not None and hi is not None:
            return ReferenceRange(kind=RangeKind.RANGE, min=lo, max=hi)

    return UNKNOWN_RANGE
