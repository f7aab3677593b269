from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

from sqlalchemy.orm import Session

from tenant_admin.services.datatable.types import FilterType


class OptionsProvider(Protocol):
    def get_options(self, db: Session) -> list[dict[str, Any]]: ...


class ModelOptionsProvider:
    """Builds ``{value, label}`` choices from the rows of a model."""

    def __init__(self, model, value_attr: str = "id", label_attr: str = "name", order_by: str | None = None):
        self.model = model
        self.value_attr = value_attr
        self.label_attr = label_attr
        self.order_by = order_by or label_attr

    def get_options(self, db: Session) -> list[dict[str, Any]]:
        q = db.query(self.model)
        if hasattr(self.model, "deleted_at"):
            q = q.filter(self.model.deleted_at.is_(None))
        rows = q.order_by(getattr(self.model, self.order_by).asc()).all()
        options = []
        for row in rows:
            label = row.label() if hasattr(row, "label") and callable(row.label) else getattr(row, self.label_attr)
            options.append({"value": getattr(row, self.value_attr), "label": label})
        return options


@dataclass(frozen=True)
class FilterDefinition:
    key: str
    label: str
    type: FilterType = FilterType.SELECT
    options: tuple[Mapping[str, Any], ...] = ()
    options_provider: OptionsProvider | None = None
    field: str | None = None
    relationship: tuple[str, str] | None = None
    value_mapping: Mapping[str, Any] | None = None
    apply: Callable[..., Any] | None = None
    placeholder: str | None = None

    @property
    def from_key(self) -> str:
        return f"{self.key}_from"

    @property
    def to_key(self) -> str:
        return f"{self.key}_to"

    @property
    def relationship_path(self) -> tuple[str, ...]:
        if self.relationship is None:
            return ()
        return tuple(self.relationship[0].split("."))

    def resolve_options(self, db: Session | None = None) -> list[dict[str, Any]]:
        if self.options_provider is not None:
            if db is None:
                return []
            return list(self.options_provider.get_options(db))
        return [dict(option) for option in self.options]


class Filter:
    """Fluent builder for :class:`FilterDefinition`."""

    def __init__(self, key: str, label: str):
        self._key = key
        self._label = label
        self._type = FilterType.SELECT
        self._options: list[dict[str, Any]] = []
        self._provider = None
        self._field: str | None = None
        self._relationship: tuple[str, str] | None = None
        self._value_mapping: dict[str, Any] | None = None
        self._apply = None
        self._placeholder: str | None = None

    @classmethod
    def make(cls, key: str, label: str | None = None) -> "Filter":
        return cls(key, label if label is not None else key.replace("_", " ").capitalize())

    def type(self, filter_type: FilterType | str) -> "Filter":
        self._type = FilterType(filter_type)
        return self

    def select(self) -> "Filter":
        return self.type(FilterType.SELECT)

    def multiselect(self) -> "Filter":
        return self.type(FilterType.MULTISELECT)

    def boolean(self) -> "Filter":
        return self.type(FilterType.BOOLEAN)

    def date_range(self) -> "Filter":
        return self.type(FilterType.DATE_RANGE)

    def options(self, options: list[dict[str, Any]] | dict[Any, str]) -> "Filter":
        if isinstance(options, dict):
            self._options = [{"value": value, "label": label} for value, label in options.items()]
        else:
            self._options = [dict(option) for option in options]
        return self

    def options_provider(self, provider: OptionsProvider) -> "Filter":
        self._provider = provider
        return self

    def field(self, name: str) -> "Filter":
        self._field = name
        return self

    def relationship(self, path: str, column: str) -> "Filter":
        self._relationship = (path, column)
        if self._type == FilterType.SELECT:
            self._type = FilterType.RELATIONSHIP
        return self

    def value_mapping(self, mapping: dict[str, Any]) -> "Filter":
        self._value_mapping = dict(mapping)
        return self

    def apply(self, callback: Callable[..., Any]) -> "Filter":
        self._apply = callback
        return self

    def placeholder(self, text: str) -> "Filter":
        self._placeholder = text
        return self

    def build(self) -> FilterDefinition:
        return FilterDefinition(
            key=self._key,
            label=self._label,
            type=self._type,
            options=tuple(self._options),
            options_provider=self._provider,
            field=self._field,
            relationship=self._relationship,
            value_mapping=self._value_mapping,
            apply=self._apply,
            placeholder=self._placeholder,
        )
