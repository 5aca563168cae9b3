from typing import Iterable, List, Optional

from loguru import logger

from .base import (
    _component,
    _field,
    _segment_type,
    _split_comp,
    _split_fields,
    _split_segments,
    parse_decimal,
)
from .errors import MissingPatientSegment
from .models import FlagSeverity, ObservationRecord, ObservationValue, ParsedMessage, Patient

_CRITICAL_FLAGS = {"HH", "CH", "LL", "CL"}


def flag_severity(flag: Optional[str]) -> FlagSeverity:
    if not flag:
        return FlagSeverity.NORMAL
    f = flag.upper()
    if f == "H":
        return FlagSeverity.HIGH
    if f == "L":
        return FlagSeverity.LOW
    if f in _CRITICAL_FLAGS:
        return FlagSeverity.CRITICAL
    return FlagSeverity.NORMAL


def format_date(raw: str) -> str:
    # YYYYMMDD -> YYYY-MM-DD; cualquier otro formato pasa tal cual
    if len(raw) == 8:
        return f"{raw[0:4]}-{raw[4:6]}-{raw[6:8]}"
    return raw


def format_name(raw: str) -> str:
    # family^given -> "given family"
    return f"{_component(raw, 1)} {_component(raw, 0)}".strip()


def format_address(raw: str) -> str:
    return ", ".join(c for c in _split_comp(raw) if c)


def parse_value(raw: str) -> ObservationValue:
    return ObservationValue(text=raw, number=parse_decimal(raw))


def parse_patient(pid: str) -> Patient:
    p = _split_fields(pid)
    return Patient(
        patient_id=_component(_field(p, 3), 0),
        name=format_name(_field(p, 5)),
        date_of_birth=format_date(_field(p, 7)),
        gender=_field(p, 8),
        address=format_address(_field(p, 11)),
        phone=_component(_field(p, 13), 0),
    )


def parse_observation(obx: str) -> Optional[ObservationRecord]:
    """Build a record from one OBX line, or None when name or value is missing."""
    o = _split_fields(obx)

    # OBX-3: code^text; se prefiere el texto
    ident = _split_comp(_field(o, 3))
    test_name = (ident[1] if len(ident) > 1 and ident[1] else "") or (ident[0] if ident else "")
    raw_value = _field(o, 5)
    if not test_name or not raw_value:
        return None

    flag = _field(o, 8)
    return ObservationRecord(
        test_name=test_name.replace(":", ""),
        value=parse_value(raw_value),
        units=_component(_field(o, 6), 0),
        reference_range=_field(o, 7),
        abnormal_flag=flag,
        severity=flag_severity(flag),
    )


def parse_message(text: str) -> ParsedMessage:
    """Parse a newline-normalized ORU message into patient and observations.

    Raises MissingPatientSegment when no PID line exists; every other
    malformed field degrades to an empty string or a skipped OBX line.
    """
    lines = _split_segments(text)

    pid = next((line for line in lines if _segment_type(line) == "PID"), None)
    if pid is None:
        raise MissingPatientSegment()
    patient = parse_patient(pid)

    observations: List[ObservationRecord] = []
    for line in lines:
        if _segment_type(line) != "OBX":
            continue
        record = parse_observation(line)
        if record is None:
            logger.debug(f"OBX sin nombre o valor, omitido: {line}")
            continue
        observations.append(record)

    return ParsedMessage(patient=patient, observations=observations)


def abnormal_records(records: Iterable[ObservationRecord]) -> List[ObservationRecord]:
    """Records flagged abnormal, or unflagged numeric values outside a min-max range."""
    out = []
    for r in records:
        if r.abnormal_flag:
            if r.severity != FlagSeverity.NORMAL:
                out.append(r)
            continue
        if r.value.is_numeric and r.reference_range:
            parts = r.reference_range.split("-")
            lo = parse_decimal(parts[0]) if parts else None
            hi = parse_decimal(parts[1]) if len(parts) > 1 else None
            if lo is not None and hi is not None and not (lo <= r.value.number <= hi):
                out.append(r)
    return out
