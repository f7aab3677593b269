from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ChartType(str, Enum):
    LINE = "line"
    BAR = "bar"
    PIE = "pie"
    DOUGHNUT = "doughnut"
    RADAR = "radar"
    POLAR_AREA = "polarArea"


class StatTrend(str, Enum):
    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


class StatVariant(str, Enum):
    DEFAULT = "default"
    OUTLINE = "outline"
    SOLID = "solid"


def _merge(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    out = deepcopy(base)
    for key, value in (extra or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = deepcopy(value)
    return out


@dataclass(frozen=True)
class ChartDataset:
    label: str
    data: list[Any]
    options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {**self.options, "label": self.label, "data": list(self.data)}


@dataclass(frozen=True)
class ChartPayload:
    type: ChartType
    labels: list[Any]
    datasets: list[ChartDataset]
    options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        # chart.js shape
        return {
            "type": self.type.value,
            "data": {
                "labels": list(self.labels),
                "datasets": [d.to_dict() for d in self.datasets],
            },
            "options": deepcopy(self.options),
        }


@dataclass(frozen=True)
class MetricPayload:
    label: str
    value: int | float | str
    trend_value: float | None = None
    trend: StatTrend | None = None
    icon: str | None = None
    color: str | None = None
    variant: StatVariant = StatVariant.DEFAULT

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "value": self.value,
            "trend_value": self.trend_value,
            "trend": self.trend.value if self.trend else None,
            "icon": self.icon,
            "color": self.color,
            "variant": self.variant.value,
        }


class ChartBuilder:
    def __init__(self):
        self._type: ChartType | None = None
        self._labels: list[Any] = []
        self._datasets: list[ChartDataset] = []
        self._options: dict[str, Any] = {}

    @classmethod
    def make(cls) -> "ChartBuilder":
        return cls()

    def type(self, chart_type: ChartType | str) -> "ChartBuilder":
        self._type = ChartType(chart_type)
        return self

    def labels(self, labels: list[Any]) -> "ChartBuilder":
        self._labels = list(labels)
        return self

    def dataset(self, label: str, data: list[Any], options: dict[str, Any] | None = None) -> "ChartBuilder":
        self._datasets.append(ChartDataset(label, list(data), dict(options or {})))
        return self

    def options(self, options: dict[str, Any]) -> "ChartBuilder":
        """Deep-merge into the chart options."""
        self._options = _merge(self._options, options)
        return self

    def title(self, title: str) -> "ChartBuilder":
        return self.options({"plugins": {"title": {"display": True, "text": title}}})

    def build(self) -> ChartPayload:
        if self._type is None:
            raise ValueError("Chart type must be set.")
        return ChartPayload(
            type=self._type,
            labels=list(self._labels),
            datasets=list(self._datasets),
            options=deepcopy(self._options),
        )


class MetricBuilder:
    def __init__(self):
        self._label: str | None = None
        self._value: int | float | str | None = None
        self._trend_value: float | None = None
        self._trend: StatTrend | None = None
        self._icon: str | None = None
        self._color: str | None = None
        self._variant = StatVariant.DEFAULT

    @classmethod
    def make(cls) -> "MetricBuilder":
        return cls()

    def label(self, label: str) -> "MetricBuilder":
        self._label = label
        return self

    def value(self, value: int | float | str) -> "MetricBuilder":
        self._value = value
        return self

    def trend(self, value: float, direction: StatTrend | str) -> "MetricBuilder":
        self._trend_value = float(value)
        self._trend = StatTrend(direction)
        return self

    def icon(self, icon: str) -> "MetricBuilder":
        self._icon = icon
        return self

    def color(self, color: str) -> "MetricBuilder":
        self._color = color
        return self

    def variant(self, variant: StatVariant | str) -> "MetricBuilder":
        self._variant = StatVariant(variant)
        return self

    def build(self) -> MetricPayload:
        if self._label is None:
            raise ValueError("Metric label is required.")
        if self._value is None:
            raise ValueError("Metric value is required.")
        return MetricPayload(
            label=self._label,
            value=self._value,
            trend_value=self._trend_value,
            trend=self._trend,
            icon=self._icon,
            color=self._color,
            variant=self._variant,
        )
