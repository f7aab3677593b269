from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import ColumnProperty, RelationshipProperty

from tenant_admin.core.config import settings
from tenant_admin.core.exceptions import DataTableConfigError
from tenant_admin.services.datatable.actions import ActionDefinition, BulkActionDefinition
from tenant_admin.services.datatable.columns import ColumnDefinition
from tenant_admin.services.datatable.filters import FilterDefinition
from tenant_admin.services.datatable.registry import (
    ColumnComponentRegistry,
    FilterComponentRegistry,
    column_components,
    filter_components,
)
from tenant_admin.services.datatable.types import SortDirection


@dataclass(frozen=True)
class RelationshipHop:
    name: str
    parent: type
    target: type
    to_many: bool


def resolve_relationship_path(model, path: tuple[str, ...]) -> list[RelationshipHop]:
    hops: list[RelationshipHop] = []
    current = model
    for name in path:
        relationships = sa_inspect(current).relationships
        if name not in relationships:
            raise DataTableConfigError(f"Unknown relationship '{name}' on {current.__name__}")
        prop: RelationshipProperty = relationships[name]
        hops.append(RelationshipHop(name=name, parent=current, target=prop.mapper.class_, to_many=bool(prop.uselist)))
        current = prop.mapper.class_
    return hops


def is_column_attribute(model, name: str) -> bool:
    prop = sa_inspect(model).attrs.get(name)
    return isinstance(prop, ColumnProperty)


def alias_name(path: tuple[str, ...]) -> str:
    return "__".join(path)


class TableDefinition:
    """Validated, read-only description of one datatable.

    Every configuration error surfaces here, when the definition is built,
    never when a request runs.
    """

    def __init__(
        self,
        model,
        columns: list[ColumnDefinition],
        filters: list[FilterDefinition] | None = None,
        default_sort: tuple[str, SortDirection | str] | None = None,
        per_page: int | None = None,
        eager_load: list[str] | None = None,
        base_query: Callable[[Any], Any] | None = None,
        exclude_trashed: bool = True,
        stats: Callable[[Any], dict] | None = None,
        column_registry: ColumnComponentRegistry | None = None,
        filter_registry: FilterComponentRegistry | None = None,
        name: str | None = None,
        actions: list[ActionDefinition] | None = None,
        bulk_actions: list[BulkActionDefinition] | None = None,
    ):
        self.model = model
        self.name = name
        self.columns = tuple(columns)
        self.filters = tuple(filters or ())
        self.default_sort = None
        if default_sort is not None:
            self.default_sort = (default_sort[0], SortDirection.parse(default_sort[1]))
        self.per_page = per_page or settings.DATATABLE_DEFAULT_PER_PAGE
        self.eager_load = tuple(eager_load or ())
        self.base_query = base_query
        self.stats = stats
        self.exclude_trashed = exclude_trashed and hasattr(model, "deleted_at")
        self.column_registry = column_registry or column_components
        self.filter_registry = filter_registry or filter_components
        self.actions = tuple(actions or ())
        self.bulk_actions = tuple(bulk_actions or ())
        self._validate()

    @property
    def primary_key(self):
        return sa_inspect(self.model).primary_key[0]

    def column(self, key: str) -> ColumnDefinition | None:
        for column in self.columns:
            if column.key == key:
                return column
        return None

    def filter(self, key: str) -> FilterDefinition | None:
        for item in self.filters:
            if item.key == key:
                return item
        return None

    def bulk_action(self, key: str) -> BulkActionDefinition | None:
        for action in self.bulk_actions:
            if action.key == key:
                return action
        return None

    def sortable_keys(self) -> list[str]:
        return [c.key for c in self.columns if c.sortable]

    def searchable_columns(self) -> list[ColumnDefinition]:
        return [c for c in self.columns if c.searchable]

    def relationship_paths(self) -> list[tuple[str, ...]]:
        """Every relationship path (and each of its prefixes) a column or filter
        touches, in definition order without duplicates."""
        seen: list[tuple[str, ...]] = []
        paths = [c.relationship_path for c in self.columns if c.content is None or c.field]
        paths += [f.relationship_path for f in self.filters]
        for path in paths:
            for i in range(1, len(path) + 1):
                prefix = path[:i]
                if prefix not in seen:
                    seen.append(prefix)
        return seen

    def is_to_many(self, path: tuple[str, ...]) -> bool:
        return any(hop.to_many for hop in resolve_relationship_path(self.model, path))

    def _validate(self) -> None:
        self._validate_unique([c.key for c in self.columns], "column")
        self._validate_unique([f.key for f in self.filters], "filter")
        self._validate_unique([a.key for a in self.actions], "action")
        self._validate_unique([a.key for a in self.bulk_actions], "bulk action")
        for action in self.bulk_actions:
            if not callable(action.handler):
                raise DataTableConfigError(f"Bulk action '{action.key}' has no handler")
        for column in self.columns:
            self._validate_column(column)
        for item in self.filters:
            self._validate_filter(item)
        for path in self.eager_load:
            resolve_relationship_path(self.model, tuple(path.split(".")))
        if self.default_sort is not None:
            key = self.default_sort[0]
            column = self.column(key)
            if column is None and not is_column_attribute(self.model, key):
                raise DataTableConfigError(f"Default sort '{key}' is neither a column key nor a model column")

    @staticmethod
    def _validate_unique(keys: list[str], kind: str) -> None:
        seen: set[str] = set()
        for key in keys:
            if key in seen:
                raise DataTableConfigError(f"Duplicate {kind} key '{key}'")
            seen.add(key)

    def _validate_column(self, column: ColumnDefinition) -> None:
        if not self.column_registry.has_component(column.type):
            raise DataTableConfigError(
                f"Column '{column.key}' uses type '{column.type.value}' which has no registered component"
            )
        if column.content is not None and not column.field:
            if column.sortable and column.sort is None:
                raise DataTableConfigError(f"Column '{column.key}' is sortable but has no field or sort callback")
            if column.searchable and column.search is None:
                raise DataTableConfigError(f"Column '{column.key}' is searchable but has no field or search callback")
            return
        hops = resolve_relationship_path(self.model, column.relationship_path)
        target = hops[-1].target if hops else self.model
        if not hasattr(target, column.attribute):
            raise DataTableConfigError(f"Column '{column.key}' points to unknown attribute '{column.path}'")
        needs_column = (column.sortable and column.sort is None) or (column.searchable and column.search is None)
        if needs_column and not is_column_attribute(target, column.attribute):
            raise DataTableConfigError(f"Column '{column.key}' is sortable/searchable but '{column.path}' is not a column")
        if column.sortable and column.sort is None and any(hop.to_many for hop in hops):
            raise DataTableConfigError(f"Column '{column.key}' cannot be sorted across a to-many relationship")

    def _validate_filter(self, item: FilterDefinition) -> None:
        if not self.filter_registry.has_component(item.type):
            raise DataTableConfigError(
                f"Filter '{item.key}' uses type '{item.type.value}' which has no registered component"
            )
        if item.field and item.relationship:
            raise DataTableConfigError(f"Filter '{item.key}' is ambiguous: both field and relationship are set")
        if item.relationship is not None:
            hops = resolve_relationship_path(self.model, item.relationship_path)
            target = hops[-1].target
            if not is_column_attribute(target, item.relationship[1]):
                raise DataTableConfigError(
                    f"Filter '{item.key}' points to unknown column '{item.relationship[1]}' on {target.__name__}"
                )
            return
        if item.apply is not None and not item.field:
            return
        name = item.field or item.key
        if not is_column_attribute(self.model, name):
            raise DataTableConfigError(
                f"Filter '{item.key}' does not map to a column of {self.model.__name__}"
            )
