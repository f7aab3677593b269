from __future__ import annotations

from enum import Enum
from typing import Generic, Mapping, TypeVar

from tenant_admin.core.exceptions import DataTableConfigError
from tenant_admin.services.datatable.types import ColumnType, FilterType

COMPONENT_CELL_TEXT = "datatable.cells.text"
COMPONENT_CELL_BADGE = "datatable.cells.badge"
COMPONENT_CELL_BOOLEAN = "datatable.cells.boolean"
COMPONENT_CELL_DATE = "datatable.cells.date"
COMPONENT_CELL_DATETIME = "datatable.cells.datetime"
COMPONENT_CELL_CURRENCY = "datatable.cells.currency"
COMPONENT_CELL_NUMBER = "datatable.cells.number"
COMPONENT_CELL_LINK = "datatable.cells.link"
COMPONENT_CELL_AVATAR = "datatable.cells.avatar"
COMPONENT_CELL_SAFE_HTML = "datatable.cells.safe-html"

COMPONENT_FILTER_SELECT = "datatable.filters.select"
COMPONENT_FILTER_MULTISELECT = "datatable.filters.multiselect"
COMPONENT_FILTER_BOOLEAN = "datatable.filters.boolean"
COMPONENT_FILTER_DATE_RANGE = "datatable.filters.date-range"
COMPONENT_FILTER_RELATIONSHIP = "datatable.filters.relationship"

DEFAULT_COLUMN_COMPONENTS: dict[ColumnType, str] = {
    ColumnType.TEXT: COMPONENT_CELL_TEXT,
    ColumnType.BADGE: COMPONENT_CELL_BADGE,
    ColumnType.BOOLEAN: COMPONENT_CELL_BOOLEAN,
    ColumnType.DATE: COMPONENT_CELL_DATE,
    ColumnType.DATETIME: COMPONENT_CELL_DATETIME,
    ColumnType.CURRENCY: COMPONENT_CELL_CURRENCY,
    ColumnType.NUMBER: COMPONENT_CELL_NUMBER,
    ColumnType.LINK: COMPONENT_CELL_LINK,
    ColumnType.AVATAR: COMPONENT_CELL_AVATAR,
    ColumnType.SAFE_HTML: COMPONENT_CELL_SAFE_HTML,
}

DEFAULT_FILTER_COMPONENTS: dict[FilterType, str] = {
    FilterType.SELECT: COMPONENT_FILTER_SELECT,
    FilterType.MULTISELECT: COMPONENT_FILTER_MULTISELECT,
    FilterType.BOOLEAN: COMPONENT_FILTER_BOOLEAN,
    FilterType.DATE_RANGE: COMPONENT_FILTER_DATE_RANGE,
    FilterType.RELATIONSHIP: COMPONENT_FILTER_RELATIONSHIP,
}

E = TypeVar("E", bound=Enum)


class ComponentRegistry(Generic[E]):
    """Closed enum -> component name map.

    ``register`` never overwrites, ``get_component`` never falls back.
    """

    kind = "component"
    enum_type: type[Enum]

    def __init__(self, components: Mapping[E, str] | None = None):
        self._components: dict[E, str] = {}
        for component_type, name in (components or {}).items():
            self.register(component_type, name)

    def _normalize(self, component_type: E | str) -> E:
        try:
            return self.enum_type(component_type)
        except ValueError:
            raise DataTableConfigError(f"Unknown {self.kind} type '{component_type}'") from None

    def register(self, component_type: E | str, component: str) -> None:
        key = self._normalize(component_type)
        if key in self._components:
            raise DataTableConfigError(f"{self.kind.capitalize()} type '{key.value}' is already registered")
        self._components[key] = component

    def get_component(self, component_type: E | str) -> str:
        key = self._normalize(component_type)
        component = self._components.get(key)
        if component is None:
            raise DataTableConfigError(
                f"{self.kind.capitalize()} type '{key.value}' is not registered in {type(self).__name__}"
            )
        return component

    def has_component(self, component_type: E | str) -> bool:
        try:
            key = self.enum_type(component_type)
        except ValueError:
            return False
        return key in self._components

    def all(self) -> dict[str, str]:
        return {key.value: name for key, name in self._components.items()}

    def missing(self) -> list[E]:
        return [member for member in self.enum_type if member not in self._components]

    def validate_complete(self) -> None:
        missing = self.missing()
        if missing:
            names = ", ".join(member.value for member in missing)
            raise DataTableConfigError(f"{type(self).__name__} has no component for: {names}")


class ColumnComponentRegistry(ComponentRegistry[ColumnType]):
    kind = "column"
    enum_type = ColumnType

    @classmethod
    def with_defaults(cls) -> "ColumnComponentRegistry":
        return cls(DEFAULT_COLUMN_COMPONENTS)


class FilterComponentRegistry(ComponentRegistry[FilterType]):
    kind = "filter"
    enum_type = FilterType

    @classmethod
    def with_defaults(cls) -> "FilterComponentRegistry":
        return cls(DEFAULT_FILTER_COMPONENTS)


column_components = ColumnComponentRegistry.with_defaults()
filter_components = FilterComponentRegistry.with_defaults()


def validate_registries() -> None:
    column_components.validate_complete()
    filter_components.validate_complete()
