# ===============================
# File: lab_analyzer/parsers/models.py
# ===============================
import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional


def format_number(x: float) -> str:
    """Shortest round-trip text, plain from 1e-6 up to 1e21, exponent outside.

    0.5 -> "0.5", 100.0 -> "100", 1e-07 -> "1e-7", 1e21 -> "1e+21".
    """
    if math.isnan(x):
        return "NaN"
    if math.isinf(x):
        return "Infinity" if x > 0 else "-Infinity"
    if x == 0:
        return "0"
    sign = "-" if x < 0 else ""
    # repr() ya da los dígitos mínimos que reconstruyen el float
    _, digit_tuple, exp = Decimal(repr(abs(x))).as_tuple()
    digits = "".join(map(str, digit_tuple)).rstrip("0")
    exp += len(digit_tuple) - len(digits)
    k = len(digits)
    n = exp + k  # posición del punto decimal

    if k <= n <= 21:
        return sign + digits + "0" * (n - k)
    if 0 < n <= 21:
        return sign + digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return sign + "0." + "0" * (-n) + digits
    e = n - 1
    mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
    return f"{sign}{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"


class FlagSeverity(str, Enum):
    """Coarse severity derived from the OBX-8 abnormal flag alone."""

    NORMAL = "normal"
    LOW = "low"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Patient:
    patient_id: str = ""
    name: str = ""
    date_of_birth: str = ""  # YYYY-MM-DD when PID-7 was YYYYMMDD
    gender: str = ""
    address: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class ObservationValue:
    """OBX-5 as either a number or free text.

    The display string is produced on demand so numeric values are never
    round-tripped through text while the message is being analyzed.
    """

    text: str
    number: Optional[float] = None

    @property
    def is_numeric(self) -> bool:
        return self.number is not None

    def display(self) -> str:
        if self.number is None:
            return self.text
        return format_number(self.number)

    def __str__(self) -> str:
        return self.display()


@dataclass(frozen=True)
class ObservationRecord:
    test_name: str
    value: ObservationValue
    units: str = ""
    reference_range: str = ""
    abnormal_flag: str = ""
    severity: FlagSeverity = FlagSeverity.NORMAL


@dataclass(frozen=True)
class ParsedMessage:
    patient: Patient
    observations: List[ObservationRecord] = field(default_factory=list)
