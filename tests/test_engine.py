"""
test_engine.py

Engine facade, configuration loading and the inbox results service.
"""
import asyncio
import json
from pathlib import Path

import pytest
from watchdog.events import FileCreatedEvent, FileDeletedEvent, FileModifiedEvent, FileMovedEvent

from lab_analyzer.commons.hl7_engine import HL7Engine
from lab_analyzer.commons.types import PathsCfg, Settings, load_settings
from lab_analyzer.helpers.file_transport import FileWatcher
from lab_analyzer.knowledge.models import KnowledgeBase
from lab_analyzer.parsers.errors import MissingPatientSegment
from lab_analyzer.services.results_service import ResultsService, generate_result_filename

ROOT = Path(__file__).resolve().parent.parent
SETTINGS_YAML = ROOT / "lab_analyzer" / "configs" / "settings.yaml"

# CR como separador de segmentos, tal como llega de los analizadores
ORU_CR = (
    "MSH|^~\\&|LAB|HOSP|APP|HOSP|20250817141000||ORU^R01|MSG0001|P|2.4\r"
    "PID|1||PAT042^^^HOSP||Smith^Jane||19800512|F|||12 High St^^Springfield||555-0101\r"
    "OBX|1|NM|GLU^Glucose||8.5|mmol/L|3.5-5.5|H|||F\r"
    "OBX|2|NM|CHOL^Total Cholesterol||6.2|mmol/L|<5.5||||F\r"
    "OBX|3|NM|K^Potassium||4.1|mmol/L|3.5-5.2||||F\r"
)

NO_PID = "MSH|^~\\&|LAB|HOSP|APP|HOSP|20250817141000||ORU^R01|X|P|2.4\rOBX|1|NM|GLU^Glucose||5|mmol/L\r"


def make_engine(**analysis):
    cfg = {"knowledge_base": {"directory": str(ROOT / "data")}, "analysis": analysis}
    return HL7Engine(cfg)


def test_settings_yaml_loads():
    s = load_settings(str(SETTINGS_YAML))
    assert s.analysis.strict_units is True
    assert s.analysis.workers == 0
    assert s.transport.results.file.filename_glob == "*.hl7"


def test_settings_defaults():
    s = load_settings(None)
    assert isinstance(s, Settings)
    assert s.paths.archive == "archive"
    assert load_settings(s) is s


def test_engine_payload_shape():
    payload = make_engine().parse_and_map(ORU_CR)
    assert payload["patient"]["name"] == "Jane Smith"
    assert payload["patient"]["date_of_birth"] == "1980-05-12"
    assert payload["summary"]["total_results"] == 3
    assert payload["summary"]["patient_info"]["gender"] == "F"
    assert set(payload["grouped_results"]) == {"critical", "abnormal", "normal"}

    glu = payload["results"][0]
    assert glu["severity"] == "abnormal"
    assert glu["risk_level"] == "moderate"
    assert "Diabetes Mellitus" in glu["related_conditions"]
    assert "Metabolic Panel" in glu["related_diagnostic_groups"]
    assert "Fasting Glucose Test" in glu["related_diagnostics"]

    k = payload["results"][2]
    assert k["severity"] == "normal"
    assert k["interpretations"] is None
    assert k["risk_level"] is None
    # serializable tal cual
    json.dumps(payload)


def test_cholesterol_upper_limit():
    resp = make_engine().analyze(ORU_CR)
    chol = resp.results[1]
    # 6.2/5.5 - 1 = 0.127 -> anormal
    assert chol.severity == "abnormal"
    assert "Elevated cholesterol increases risk of cardiovascular disease." in chol.interpretations


def test_engine_with_thread_pool_matches_sequential():
    seq = make_engine().analyze(ORU_CR)
    par = make_engine(workers=3).analyze(ORU_CR)
    assert par.results == seq.results


def test_engine_with_in_memory_knowledge_base():
    engine = HL7Engine(None, knowledge_base=KnowledgeBase())
    resp = engine.analyze(ORU_CR)
    assert all(r.related_conditions == [] for r in resp.results)


def test_engine_missing_pid():
    with pytest.raises(MissingPatientSegment):
        make_engine().analyze(NO_PID)


def test_generate_result_filename():
    name = generate_result_filename("/tmp/in box/patient 042.hl7")
    assert name.endswith("_file_patient_042.json")
    with pytest.raises(TypeError):
        generate_result_filename(("127.0.0.1", 5000))


def _paths(tmp_path: Path) -> PathsCfg:
    return PathsCfg(
        logs_root=str(tmp_path / "logs"),
        inbox=str(tmp_path / "inbox"),
        archive=str(tmp_path / "archive"),
        error=str(tmp_path / "error"),
    )


@pytest.mark.asyncio
async def test_results_service_archives_json(tmp_path):
    paths = _paths(tmp_path)
    Path(paths.inbox).mkdir()
    src = Path(paths.inbox) / "msg1.hl7"
    src.write_text(ORU_CR, encoding="utf-8")

    svc = ResultsService(make_engine(), paths)
    processed = await svc.process_backlog("*.hl7")

    assert processed == 1
    outputs = list(Path(paths.archive).glob("*.json"))
    assert len(outputs) == 1
    data = json.loads(outputs[0].read_text(encoding="utf-8"))
    assert data["summary"]["abnormal_count"] == 2
    assert not src.exists()
    assert (Path(paths.archive) / "hl7" / "msg1.hl7").exists()


@pytest.mark.asyncio
async def test_results_service_moves_bad_message_to_error(tmp_path):
    paths = _paths(tmp_path)
    Path(paths.inbox).mkdir()
    src = Path(paths.inbox) / "bad.hl7"
    src.write_text(NO_PID, encoding="utf-8")

    svc = ResultsService(make_engine(), paths)
    out = await svc.process_text(NO_PID, str(src))

    assert out is None
    assert (Path(paths.error) / "bad.hl7").read_text(encoding="utf-8") == NO_PID
    assert not src.exists()
    assert list(Path(paths.archive).glob("*.json")) == []


@pytest.mark.asyncio
async def test_watcher_dispatches_once_and_forgets_files_that_leave(tmp_path):
    received = []

    async def on_message(text, src):
        received.append(src)

    inbox = tmp_path / "inbox"
    watcher = FileWatcher(str(inbox), "*.hl7", on_message, asyncio.get_running_loop())
    msg = inbox / "a.hl7"
    msg.write_text(ORU_CR, encoding="utf-8")

    # created + modified del mismo archivo: un solo despacho
    watcher.handler.dispatch(FileCreatedEvent(str(msg)))
    watcher.handler.dispatch(FileModifiedEvent(str(msg)))
    await asyncio.sleep(0.05)
    assert received == [str(msg)]
    assert list(watcher._seen) == [str(msg)]

    msg.unlink()
    watcher.handler.dispatch(FileDeletedEvent(str(msg)))
    assert watcher._seen == {}

    tmp = inbox / "b.hl7"
    tmp.write_text(ORU_CR, encoding="utf-8")
    watcher.handler.dispatch(FileCreatedEvent(str(tmp)))
    renamed = inbox / "c.hl7"
    tmp.rename(renamed)
    watcher.handler.dispatch(FileMovedEvent(str(tmp), str(renamed)))
    await asyncio.sleep(0.05)
    assert received == [str(msg), str(tmp), str(renamed)]
    assert list(watcher._seen) == [str(renamed)]
