import re
from typing import Dict

from lab_analyzer.analysis.models import AnalysisResponse, AnalyzedResult
from lab_analyzer.parsers.models import ParsedMessage, Patient

_LINE_BREAKS = re.compile(r"\r\n|\r|\n")


class HL7Normalizer:
    """Boundary helpers: line-ending cleanup on the way in, plain dicts on the way out."""

    def normalize_line_endings(self, hl7_text: str) -> str:
        return _LINE_BREAKS.sub("\n", hl7_text or "")

    def patient_payload(self, patient: Patient) -> Dict:
        return {
            "patient_id": patient.patient_id,
            "name": patient.name,
            "date_of_birth": patient.date_of_birth,
            "gender": patient.gender,
            "address": patient.address,
            "phone": patient.phone,
        }

    def result_payload(self, r: AnalyzedResult) -> Dict:
        return {
            "test_name": r.test_name,
            "value": r.value,
            "units": r.units,
            "reference_range": r.reference_range,
            "severity": r.severity.value,
            "related_conditions": list(r.related_conditions),
            "related_diagnostic_groups": list(r.related_groups),
            "related_diagnostics": list(r.related_diagnostics),
            "interpretations": list(r.interpretations) if r.interpretations else None,
            "risk_level": r.risk_level.value if r.risk_level else None,
        }

    def to_payload(self, response: AnalysisResponse) -> Dict:
        """Map an AnalysisResponse into JSON-ready dicts."""
        s = response.summary
        info = None
        if s.patient_info is not None:
            info = {"age": s.patient_info.age, "gender": s.patient_info.gender}
        return {
            "patient": self.patient_payload(response.patient),
            "results": [self.result_payload(r) for r in response.results],
            "summary": {
                "total_results": s.total,
                "critical_count": s.critical,
                "abnormal_count": s.abnormal,
                "normal_count": s.normal,
                "patient_info": info,
            },
            "grouped_results": {
                sev.value: [self.result_payload(r) for r in items]
                for sev, items in response.grouped.items()
            },
        }

    def parsed_payload(self, parsed: ParsedMessage) -> Dict:
        return {
            "patient": self.patient_payload(parsed.patient),
            "observations": [
                {
                    "test_name": o.test_name,
                    "value": o.value.display(),
                    "numeric": o.value.is_numeric,
                    "units": o.units,
                    "reference_range": o.reference_range,
                    "abnormal_flag": o.abnormal_flag,
                    "severity": o.severity.value,
                }
                for o in parsed.observations
            ],
        }
