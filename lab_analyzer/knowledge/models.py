from typing import Any, List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def split_names(value: Any) -> List[str]:
    """Comma-separated cell -> list of trimmed names ("a, b" -> ["a", "b"])."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.strip().strip("\"'")
        items = value.split(",")
    else:
        items = list(value)
    return [str(s).strip() for s in items if str(s).strip()]


class _Table(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _name_str(cls, v):
        return "" if v is None else str(v)


class DiagnosticMetric(_Table):
    oru_codes: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("oru_codes", "oru_sonic_codes")
    )
    group_names: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("group_names", "diagnostic_groups")
    )
    units: str = ""
    age_ranges: List[str] = Field(default_factory=list)
    gender: str = ""
    reference_ranges: List[str] = Field(default_factory=list)

    @field_validator("oru_codes", "group_names", "age_ranges", "reference_ranges", mode="before")
    @classmethod
    def _split(cls, v):
        return split_names(v)

    @field_validator("units", "gender", mode="before")
    @classmethod
    def _str(cls, v):
        return "" if v is None else str(v)


class Condition(_Table):
    metric_names: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("metric_names", "diagnostic_metrics")
    )
    group_names: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("group_names", "diagnostic_groups")
    )
    diagnostic_names: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("diagnostic_names", "diagnostics")
    )

    @field_validator("metric_names", "group_names", "diagnostic_names", mode="before")
    @classmethod
    def _split(cls, v):
        return split_names(v)


class DiagnosticGroup(_Table):
    metric_names: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("metric_names", "diagnostic_metrics")
    )
    diagnostic_names: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("diagnostic_names", "diagnostics")
    )

    @field_validator("metric_names", "diagnostic_names", mode="before")
    @classmethod
    def _split(cls, v):
        return split_names(v)


class Diagnostic(_Table):
    metric_names: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("metric_names", "diagnostic_metrics")
    )

    @field_validator("metric_names", mode="before")
    @classmethod
    def _split(cls, v):
        return split_names(v)


class KnowledgeBase(BaseModel):
    """The four reference tables, read-only once loaded."""

    model_config = ConfigDict(frozen=True)

    metrics: List[DiagnosticMetric] = Field(
        default_factory=list, validation_alias=AliasChoices("metrics", "diagnostic_metrics")
    )
    conditions: List[Condition] = Field(default_factory=list)
    groups: List[DiagnosticGroup] = Field(
        default_factory=list, validation_alias=AliasChoices("groups", "diagnostic_groups")
    )
    diagnostics: List[Diagnostic] = Field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "KnowledgeBase":
        return cls.model_validate(data or {})
