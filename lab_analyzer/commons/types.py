from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field


class AppCfg(BaseModel):
    name: str = "lab-analyzer"


class PathsCfg(BaseModel):
    logs_root: str = "logs"
    inbox: str = "inbox"
    archive: str = "archive"
    error: str = "error"


class KnowledgeBaseCfg(BaseModel):
    directory: str = "data"
    metrics_file: str = "diagnostic_metrics.csv"
    conditions_file: str = "conditions.csv"
    groups_file: str = "diagnostic_groups.csv"
    diagnostics_file: str = "diagnostics.csv"
    encoding: str = "utf-8"
    yaml_file: Optional[str] = None  # si se define, reemplaza los CSV


class AnalysisCfg(BaseModel):
    strict_units: bool = True  # usa las unidades del OBX como pista al buscar la métrica
    workers: int = Field(default=0, ge=0)  # 0 = secuencial


class FileTransportCfg(BaseModel):
    filename_glob: str = "*.hl7"


class ResultsTransportCfg(BaseModel):
    type: str = "file"
    file: FileTransportCfg = FileTransportCfg()


class TransportCfg(BaseModel):
    results: ResultsTransportCfg = ResultsTransportCfg()


class LoggingCfg(BaseModel):
    level: str = "INFO"


class Settings(BaseModel):
    app: AppCfg = AppCfg()
    paths: PathsCfg = PathsCfg()
    knowledge_base: KnowledgeBaseCfg = KnowledgeBaseCfg()
    analysis: AnalysisCfg = AnalysisCfg()
    transport: TransportCfg = TransportCfg()
    logging: LoggingCfg = LoggingCfg()


def load_settings(config: Union[str, Dict[str, Any], Settings, None] = None) -> Settings:
    """Accept a YAML path, an already loaded dict or a Settings instance."""
    if isinstance(config, Settings):
        return config
    if isinstance(config, str):
        with open(config, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    return Settings.model_validate(config or {})
