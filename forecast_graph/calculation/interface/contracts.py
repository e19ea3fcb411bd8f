from __future__ import annotations

import datetime as dt
import math
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def coerce_date(value: object, context: str) -> dt.date:
    """Accept ISO strings, dates and datetimes; keep only the date part."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        token = value.strip()
        try:
            return dt.datetime.fromisoformat(token).date()
        except ValueError:
            return dt.date.fromisoformat(token[:10])
    raise ValueError(f"{context} must be an ISO date string, date or datetime")


def coerce_optional_number(value: object, context: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"{context} cannot be boolean")
    if isinstance(value, str):
        token = value.strip()
        if not token:
            return None
        value = float(token)
    if not isinstance(value, int | float):
        raise ValueError(f"{context} must be a number")
    number = float(value)
    if not math.isfinite(number):
        return None
    return number


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class DataAttributesModel(_CamelModel):
    variable_id: str | None = None
    offset_months: int = 0
    name: str | None = None

    @field_validator("offset_months", mode="before")
    @classmethod
    def _offset_months(cls, value: object) -> object:
        return 0 if value is None else value


class ConstantAttributesModel(_CamelModel):
    value: float | None = None
    name: str | None = None

    @field_validator("value", mode="before")
    @classmethod
    def _value(cls, value: object) -> float | None:
        return coerce_optional_number(value, "constant.value")


class OperatorAttributesModel(_CamelModel):
    op: str | None = None
    input_order: list[str] | None = None

    @field_validator("op", mode="before")
    @classmethod
    def _op(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class MetricAttributesModel(_CamelModel):
    label: str | None = None
    budget_variable_id: str | None = None
    historical_variable_id: str | None = None
    use_calculated: bool = False

    @field_validator("use_calculated", mode="before")
    @classmethod
    def _use_calculated(cls, value: object) -> object:
        return False if value is None else value


class SeedAttributesModel(_CamelModel):
    source_metric_id: str | None = None


class GraphNodeModel(BaseModel):
    """Node as authored in the editor (``type``/``data``) or as stored
    (``kind``/``attributes``)."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str = Field(validation_alias=AliasChoices("type", "kind", "nodeType"))
    data: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("data", "attributes", "nodeData"),
    )

    @field_validator("data", mode="before")
    @classmethod
    def _data(cls, value: object) -> object:
        return {} if value is None else value


class GraphEdgeModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    source: str = Field(validation_alias=AliasChoices("source", "sourceNodeId"))
    target: str = Field(validation_alias=AliasChoices("target", "targetNodeId"))


class TimeSeriesPointModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    date: dt.date
    value: float | None = None

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, value: object) -> dt.date:
        return coerce_date(value, "timeSeries.date")

    @field_validator("value", mode="before")
    @classmethod
    def _value(cls, value: object) -> float | None:
        return coerce_optional_number(value, "timeSeries.value")


class VariableModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str | None = None
    type: str = "UNKNOWN"
    time_series: list[TimeSeriesPointModel] = Field(
        default_factory=list,
        validation_alias=AliasChoices("timeSeries", "time_series", "values"),
    )

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, value: object) -> object:
        return "UNKNOWN" if value is None else value


class ForecastRequestModel(_CamelModel):
    forecast_id: str = ""
    nodes: list[GraphNodeModel]
    edges: list[GraphEdgeModel] = Field(default_factory=list)
    forecast_start_date: dt.date
    forecast_end_date: dt.date
    variables: list[VariableModel] = Field(default_factory=list)

    @field_validator("forecast_start_date", "forecast_end_date", mode="before")
    @classmethod
    def _dates(cls, value: object) -> dt.date:
        return coerce_date(value, "forecast date")


class MonthlyForecastValueModel(_CamelModel):
    date: dt.date
    forecast: float | None
    budget: float | None
    historical: float | None

    @field_validator("forecast", "budget", "historical", mode="before")
    @classmethod
    def _series_value(cls, value: object) -> float | None:
        return coerce_optional_number(value, "monthly value")


class MetricCalculationResultModel(_CamelModel):
    metric_node_id: str
    values: list[MonthlyForecastValueModel]


class ForecastCalculationResultModel(_CamelModel):
    forecast_id: str
    calculated_at: dt.datetime
    metrics: list[MetricCalculationResultModel]


class GraphValidationResultModel(_CamelModel):
    is_valid: bool
    errors: list[str]
    warnings: list[str]
