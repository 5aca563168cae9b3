import csv
from pathlib import Path
from typing import List, Type, TypeVar, Union

import yaml
from loguru import logger
from pydantic import BaseModel, ValidationError

from lab_analyzer.commons.types import KnowledgeBaseCfg

from .models import Condition, Diagnostic, DiagnosticGroup, DiagnosticMetric, KnowledgeBase

T = TypeVar("T", bound=BaseModel)


class KnowledgeBaseError(Exception):
    pass


def read_table(path: Union[str, Path], model: Type[T], encoding: str = "utf-8") -> List[T]:
    """Read one CSV table (header row first) into validated models."""
    p = Path(path)
    if not p.exists():
        raise KnowledgeBaseError(f"Knowledge base file not found: {p}")

    rows: List[T] = []
    with p.open("r", encoding=encoding, newline="") as f:
        reader = csv.DictReader(f, skipinitialspace=True)
        if reader.fieldnames:
            reader.fieldnames = [h.strip() for h in reader.fieldnames]
        # La línea 1 es el encabezado
        for lineno, record in enumerate(reader, start=2):
            if not any((v or "").strip() for v in record.values() if isinstance(v, str)):
                continue
            try:
                rows.append(model.model_validate({k: v for k, v in record.items() if k}))
            except ValidationError as ve:
                raise KnowledgeBaseError(f"{p.name}:{lineno}: {ve}") from ve
    return rows


def load_knowledge_base(cfg: KnowledgeBaseCfg) -> KnowledgeBase:
    if cfg.yaml_file:
        kb = load_knowledge_base_yaml(Path(cfg.directory) / cfg.yaml_file)
        logger.info(f"Base de conocimiento cargada desde {cfg.yaml_file}: {len(kb.metrics)} métricas")
        return kb
    base = Path(cfg.directory)
    kb = KnowledgeBase(
        metrics=read_table(base / cfg.metrics_file, DiagnosticMetric, cfg.encoding),
        conditions=read_table(base / cfg.conditions_file, Condition, cfg.encoding),
        groups=read_table(base / cfg.groups_file, DiagnosticGroup, cfg.encoding),
        diagnostics=read_table(base / cfg.diagnostics_file, Diagnostic, cfg.encoding),
    )
    logger.info(
        f"Base de conocimiento cargada desde {base}: {len(kb.metrics)} métricas, "
        f"{len(kb.conditions)} condiciones, {len(kb.groups)} grupos, "
        f"{len(kb.diagnostics)} diagnósticos"
    )
    return kb


def load_knowledge_base_yaml(path: Union[str, Path]) -> KnowledgeBase:
    """Single YAML document with metrics/conditions/groups/diagnostics keys."""
    if not Path(path).exists():
        raise KnowledgeBaseError(f"Knowledge base file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    try:
        return KnowledgeBase.from_dict(data)
    except ValidationError as ve:
        raise KnowledgeBaseError(f"{path}: {ve}") from ve
