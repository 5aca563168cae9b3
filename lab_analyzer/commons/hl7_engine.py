from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

from loguru import logger

from lab_analyzer.analysis.analyzer import analyze_all, build_response
from lab_analyzer.analysis.models import AnalysisResponse
from lab_analyzer.commons.hl7_normalizer import HL7Normalizer
from lab_analyzer.commons.types import load_settings
from lab_analyzer.knowledge.loader import load_knowledge_base
from lab_analyzer.knowledge.models import KnowledgeBase
from lab_analyzer.parsers.models import ParsedMessage
from lab_analyzer.parsers.oru import parse_message


class HL7Engine:
    """Engine facade: loads config and knowledge base, exposes parse/analyze/map.

    ``HL7Engine(settings_path)`` reads the knowledge base from the configured
    CSV directory; pass ``knowledge_base`` to use tables already in memory.
    """

    def __init__(
        self, config_path_or_obj: Any = None, knowledge_base: Optional[KnowledgeBase] = None
    ):
        # Soportar rutas, dict ya cargado o Settings
        self.settings = load_settings(config_path_or_obj)
        self.normalizer = HL7Normalizer()
        if knowledge_base is None:
            knowledge_base = load_knowledge_base(self.settings.knowledge_base)
        self.kb = knowledge_base

    def parse(self, hl7_text: str) -> ParsedMessage:
        return parse_message(self.normalizer.normalize_line_endings(hl7_text))

    def analyze(self, hl7_text: str) -> AnalysisResponse:
        parsed = self.parse(hl7_text)
        cfg = self.settings.analysis
        logger.debug(f"{len(parsed.observations)} observaciones para {parsed.patient.patient_id}")

        if cfg.workers > 0:
            with ThreadPoolExecutor(max_workers=cfg.workers) as pool:
                results = analyze_all(
                    parsed.observations, self.kb, parsed.patient.gender, cfg.strict_units, pool
                )
        else:
            results = analyze_all(
                parsed.observations, self.kb, parsed.patient.gender, cfg.strict_units
            )
        return build_response(parsed.patient, results)

    def to_payload(self, response: AnalysisResponse) -> Dict:
        return self.normalizer.to_payload(response)

    def parse_and_map(self, hl7_text: str) -> Dict:
        return self.to_payload(self.analyze(hl7_text))
