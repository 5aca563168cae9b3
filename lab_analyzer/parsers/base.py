import re
from typing import List, Optional

SEGMENT_SEP = "\n"
FIELD_SEP = "|"
COMPONENT_SEP = "^"

# Locale-free decimal: sign, digits, optional fraction and exponent
_DECIMAL_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def _split_segments(text: str) -> List[str]:
    """Lines of an already newline-normalized message, blanks dropped."""
    return [line for line in (text or "").split(SEGMENT_SEP) if line.strip()]


def _split_fields(seg: str) -> List[str]:
    return seg.split(FIELD_SEP)


def _split_comp(val: str) -> List[str]:
    return val.split(COMPONENT_SEP) if val else []


def _field(fields: List[str], idx: int) -> str:
    return fields[idx] if len(fields) > idx else ""


def _component(val: str, idx: int) -> str:
    comp = _split_comp(val)
    return comp[idx] if len(comp) > idx else ""


def _segment_type(seg: str) -> str:
    return _split_fields(seg)[0]


def parse_decimal(raw: Optional[str]) -> Optional[float]:
    """Parse the whole string as a decimal number or return None."""
    if raw is None:
        return None
    candidate = raw.strip()
    if not candidate or not _DECIMAL_RE.fullmatch(candidate):
        return None
    return float(candidate)


def parse_decimal_prefix(raw: Optional[str]) -> Optional[float]:
    """Parse the leading number of a string ("3.5 mmol/L" -> 3.5)."""
    if raw is None:
        return None
    m = _DECIMAL_RE.match(raw.strip())
    return float(m.group(0)) if m else None
