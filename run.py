import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Optional

import typer

from lab_analyzer.commons.hl7_engine import HL7Engine
from lab_analyzer.commons.logger import setup_logging
from lab_analyzer.commons.types import Settings, load_settings
from lab_analyzer.knowledge.loader import KnowledgeBaseError
from lab_analyzer.knowledge.models import KnowledgeBase
from lab_analyzer.parsers.errors import ParseError
from lab_analyzer.services.results_service import ResultsService

app = typer.Typer(add_completion=False, help="Lab Result Analyzer")

DEFAULT_CONFIG = "lab_analyzer/configs/settings.yaml"


def resource_path(relative_path: str) -> str:
    """Devuelve la ruta absoluta a un recurso, ya sea ejecutando como .exe o en desarrollo"""
    if hasattr(sys, "_MEIPASS"):
        # Si es un ejecutable generado por PyInstaller
        base_path = sys._MEIPASS
    else:
        base_path = os.path.abspath(".")

    return os.path.join(base_path, relative_path)


def load_cfg(path: Optional[str] = None) -> Settings:
    config_path = path or resource_path(DEFAULT_CONFIG)
    if not Path(config_path).exists():
        # Sin archivo: valores por defecto
        return load_settings(None)
    return load_settings(config_path)


def _bootstrap(config: Optional[str]):
    cfg = load_cfg(config)
    logger = setup_logging(cfg.paths.logs_root, os.getenv("LOG_LEVEL", cfg.logging.level))
    return cfg, logger


def _emit(data: dict, output: Optional[Path]):
    text = json.dumps(data, ensure_ascii=False, indent=2)
    if output:
        output.write_text(text, encoding="utf-8")
    else:
        typer.echo(text)


@app.command()
def analyze(
    message: Path = typer.Argument(..., exists=True, dir_okay=False, help="Mensaje ORU"),
    config: Optional[str] = typer.Option(None, help="Ruta a settings.yaml"),
    output: Optional[Path] = typer.Option(None, help="Escribe el JSON en este archivo"),
):
    """Parse and analyze one message, print the JSON result."""
    cfg, logger = _bootstrap(config)
    try:
        engine = HL7Engine(cfg)
        data = engine.parse_and_map(message.read_text(encoding="utf-8"))
    except (ParseError, KnowledgeBaseError) as ex:
        logger.error(f"No se pudo analizar {message}: {ex}")
        raise typer.Exit(code=1)
    _emit(data, output)


@app.command()
def parse(
    message: Path = typer.Argument(..., exists=True, dir_okay=False, help="Mensaje ORU"),
    config: Optional[str] = typer.Option(None, help="Ruta a settings.yaml"),
):
    """Print patient and observation records without analysis."""
    cfg, logger = _bootstrap(config)
    engine = HL7Engine(cfg, knowledge_base=KnowledgeBase())
    try:
        parsed = engine.parse(message.read_text(encoding="utf-8"))
    except ParseError as ex:
        logger.error(f"No se pudo parsear {message}: {ex}")
        raise typer.Exit(code=1)
    _emit(engine.normalizer.parsed_payload(parsed), None)


@app.command()
def results(config: Optional[str] = typer.Option(None, help="Ruta a settings.yaml")):
    """Process the inbox backlog, then keep watching the inbox folder."""
    cfg, logger = _bootstrap(config)
    logger.log("INFO", "Iniciando lectura de resultados pendientes por procesar")
    engine = HL7Engine(cfg)
    svc = ResultsService(engine, cfg.paths)

    transport = cfg.transport.results
    if transport.type != "file":
        logger.error(f"Transporte no soportado: {transport.type}")
        raise typer.Exit(code=2)
    asyncio.run(svc.run_file_mode(transport.file.filename_glob))


if __name__ == "__main__":
    app()
