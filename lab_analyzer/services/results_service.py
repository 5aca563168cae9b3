# lab_analyzer/services/results_service.py
import asyncio
import json
import os
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from lab_analyzer.commons.hl7_engine import HL7Engine
from lab_analyzer.commons.types import PathsCfg
from lab_analyzer.helpers.file_transport import FileWatcher
from lab_analyzer.parsers.errors import ParseError


def generate_result_filename(source: str, origin: str = "file", extension: str = "json") -> str:
    """
    Nombre de salida con timestamp y origen, p.ej.
    20250821-170605-123456_file_patient_042.json
    """
    if not isinstance(source, str):
        raise TypeError(f"Invalid type for source: expected str, got {type(source).__name__}")

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S-%f")  # Para orden natural
    base_name = os.path.splitext(os.path.basename(source))[0] or "message"
    safe_base = re.sub(r"[^a-zA-Z0-9_\-]", "_", base_name)
    return f"{ts}_{origin}_{safe_base}.{extension}"


class ResultsService:
    def __init__(self, engine: HL7Engine, paths: PathsCfg):
        self.engine = engine
        self.paths = paths
        for p in (paths.archive, paths.error):
            Path(p).mkdir(parents=True, exist_ok=True)

    def _move_to_error(self, hl7_text: str, src: Optional[str]) -> Path:
        err_name = Path(src).name if src else "result.err.hl7"
        errp = Path(self.paths.error) / err_name
        errp.write_text(hl7_text, encoding="utf-8")
        if src and Path(src).exists():
            Path(src).unlink()
        return errp

    async def process_text(self, hl7_text: str, src: Optional[str] = None) -> Optional[Path]:
        try:
            # 1) parsea y analiza
            data = self.engine.parse_and_map(hl7_text)
            # 2) escribe JSON
            filename = generate_result_filename(src or "manual", origin="file" if src else "manual")
            out_json = Path(self.paths.archive) / filename
            out_json.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            summary = data["summary"]
            logger.info(
                f"Resultado procesado: {out_json} "
                f"({summary['critical_count']} críticos, {summary['abnormal_count']} anormales)"
            )

            # 3) mueve el mensaje procesado a archive/hl7/
            if src and Path(src).exists():
                dst_dir = Path(self.paths.archive) / "hl7"
                dst_dir.mkdir(parents=True, exist_ok=True)
                shutil.move(src, dst_dir / Path(src).name)
            return out_json

        except ParseError as pe:
            # Mensaje inválido: a error/ sin tumbar el servicio
            errp = self._move_to_error(hl7_text, src)
            logger.error(f"Mensaje rechazado ({pe}). Movido a {errp}")
            return None
        except Exception as ex:
            errp = self._move_to_error(hl7_text, src)
            logger.exception(f"Error procesando resultado: {ex}. Movido a {errp}")
            return None

    async def process_backlog(self, glob_pat: str) -> int:
        inbox = Path(self.paths.inbox)
        files = sorted(inbox.glob(glob_pat))
        if not files:
            return 0
        logger.info(f"Backlog detectado: {len(files)} archivo(s) en {inbox}")
        for f in files:
            try:
                text = f.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning(f"No se pudo leer {f}: {e}; reintento breve...")
                await asyncio.sleep(0.1)
                text = f.read_text(encoding="utf-8")
            await self.process_text(text, str(f))
        return len(files)

    async def run_file_mode(self, glob_pat: str, stop_event: Optional[asyncio.Event] = None):
        loop = asyncio.get_running_loop()

        # 1) Procesar backlog existente
        await self.process_backlog(glob_pat)

        # 2) Arrancar watcher para nuevos archivos
        watcher = FileWatcher(self.paths.inbox, glob_pat, self.process_text, loop)
        watcher.start()
        logger.info(f"Escuchando carpeta de resultados {self.paths.inbox} ({glob_pat})...")
        try:
            await (stop_event or asyncio.Event()).wait()
        finally:
            watcher.stop()
