from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping

from sqlalchemy import String, asc, cast, desc, or_
from sqlalchemy.orm import Query, Session, aliased, raiseload, selectinload

from tenant_admin.core.config import settings
from tenant_admin.services.datatable.coercion import (
    InvalidFilterValue,
    coerce_bool,
    coerce_for_column,
    column_python_type,
    is_date_only_literal,
)
from tenant_admin.services.datatable.columns import ColumnDefinition
from tenant_admin.services.datatable.definition import TableDefinition, alias_name, resolve_relationship_path
from tenant_admin.services.datatable.filters import FilterDefinition
from tenant_admin.services.datatable.types import FILTER_NOT_NULL, FILTER_NULL, FilterType, SortDirection

_LOG = logging.getLogger("tenant_admin.datatable")


@dataclass
class QueryOptions:
    db: Session
    definition: TableDefinition
    filters: Mapping[str, Any] = field(default_factory=dict)
    search: str | None = None
    sort_by: str | None = None
    sort_direction: SortDirection = SortDirection.ASC
    page: int = 1
    per_page: int | None = None

    @classmethod
    def from_params(cls, db: Session, definition: TableDefinition, params: Mapping[str, Any]) -> "QueryOptions":
        """Build options from flat request parameters (query string or form)."""
        filter_values: dict[str, Any] = {}
        for item in definition.filters:
            if item.type == FilterType.DATE_RANGE:
                for key in (item.from_key, item.to_key):
                    if key in params:
                        filter_values[key] = params[key]
            elif hasattr(params, "getlist") and len(params.getlist(item.key)) > 1:
                filter_values[item.key] = params.getlist(item.key)
            elif item.key in params:
                filter_values[item.key] = params[item.key]
        return cls(
            db=db,
            definition=definition,
            filters=filter_values,
            search=params.get("search"),
            sort_by=params.get("sort_by"),
            sort_direction=SortDirection.parse(params.get("sort_dir") or params.get("sort_direction")),
            page=_positive_int(params.get("page"), 1),
            per_page=_positive_int(params.get("per_page"), None),
        )


@dataclass(frozen=True)
class JoinOptions:
    query: Query
    path: tuple[str, ...]
    alias: Any
    parent: Any
    relationship: str


@dataclass(frozen=True)
class SortOptions:
    query: Query
    column: ColumnDefinition | None
    target: Any
    direction: SortDirection


@dataclass
class DataTablePage:
    rows: list
    total: int
    page: int
    per_page: int
    last_page: int
    has_more: bool
    filters_applied: int = 0
    query: Any = None
    search: str = ""


def _positive_int(raw, default):
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set)):
        return not any(not _is_blank(v) for v in value)
    return False


def _as_list(value) -> list:
    if isinstance(value, (list, tuple, set)):
        return [v for v in value if not _is_blank(v)]
    if isinstance(value, str) and "," in value:
        return [part.strip() for part in value.split(",") if part.strip()]
    return [value]


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DataTableQueryBuilder:
    """Turns a :class:`TableDefinition` plus request state into a page of rows.

    Steps run in a fixed order and each one narrows the query built by the
    previous: joins, search, filters, sort, pagination.
    """

    def __init__(self, definition: TableDefinition, scope: Callable[[Query], Query] | None = None):
        self.definition = definition
        self.model = definition.model
        self.scope = scope
        self._aliases: dict[tuple[str, ...], Any] = {}

    # joins

    def entity_for(self, path: tuple[str, ...]):
        if not path:
            return self.model
        return self._aliases[path]

    def _alias_for(self, path: tuple[str, ...]):
        alias = self._aliases.get(path)
        if alias is None:
            hop = resolve_relationship_path(self.model, path)[-1]
            alias = aliased(hop.target, name=alias_name(path))
            self._aliases[path] = alias
        return alias

    def apply_join(self, options: JoinOptions) -> Query:
        return options.query.outerjoin(getattr(options.parent, options.relationship).of_type(options.alias))

    def apply_joins(self, q: Query, paths: list[tuple[str, ...]]) -> Query:
        joined: set[tuple[str, ...]] = set()
        for path in paths:
            for i in range(1, len(path) + 1):
                prefix = path[:i]
                if prefix in joined:
                    continue
                parent = self.entity_for(prefix[:-1])
                q = self.apply_join(
                    JoinOptions(query=q, path=prefix, alias=self._alias_for(prefix), parent=parent, relationship=prefix[-1])
                )
                joined.add(prefix)
        return q

    def eager_load_options(self) -> list:
        paths: list[tuple[str, ...]] = []
        for column in self.definition.columns:
            if column.relationship_path and (column.content is None or column.field):
                paths.append(column.relationship_path)
        paths += [tuple(p.split(".")) for p in self.definition.eager_load]
        options = []
        seen: set[tuple[str, ...]] = set()
        for path in paths:
            if path in seen:
                continue
            seen.add(path)
            loader = None
            for hop in resolve_relationship_path(self.model, path):
                attr = getattr(hop.parent, hop.name)
                loader = selectinload(attr) if loader is None else loader.selectinload(attr)
            options.append(loader)
        # Anything not listed above must not lazy-load while rows are transformed.
        options.append(raiseload("*"))
        return options

    # search

    def column_expression(self, column: ColumnDefinition):
        return getattr(self.entity_for(column.relationship_path), column.attribute)

    def apply_search(self, q: Query, term: str | None) -> Query:
        text = str(term or "").strip()
        if not text:
            return q
        clauses = []
        for column in self.definition.searchable_columns():
            if column.search is not None:
                clause = column.search(text, self.entity_for(column.relationship_path))
                if clause is not None:
                    clauses.append(clause)
                continue
            expr = self.column_expression(column)
            clauses.append(cast(expr, String).ilike(f"%{_escape_like(text)}%", escape="\\"))
        if not clauses:
            return q
        return q.filter(or_(*clauses))

    # filters

    def filter_target(self, item: FilterDefinition):
        if item.relationship is not None:
            return getattr(self.entity_for(item.relationship_path), item.relationship[1])
        return getattr(self.model, item.field or item.key)

    def is_filter_active(self, item: FilterDefinition, values: Mapping[str, Any]) -> bool:
        if item.type == FilterType.DATE_RANGE:
            return not _is_blank(values.get(item.from_key)) or not _is_blank(values.get(item.to_key))
        return not _is_blank(values.get(item.key))

    def _map_value(self, item: FilterDefinition, value):
        if item.value_mapping and isinstance(value, (str, int)) and str(value) in item.value_mapping:
            return item.value_mapping[str(value)]
        return value

    def _equality(self, item: FilterDefinition, target, raw):
        values = [self._map_value(item, v) for v in _as_list(raw)]
        if len(values) == 1:
            value = values[0]
            if value == FILTER_NULL:
                return target.is_(None)
            if value == FILTER_NOT_NULL:
                return target.is_not(None)
            if value is None:
                return target.is_(None)
            return target == coerce_for_column(item.key, target, value)
        coerced = [coerce_for_column(item.key, target, v) for v in values if v is not None]
        if not coerced:
            return None
        return target.in_(coerced)

    def _in_set(self, item: FilterDefinition, target, raw):
        values = [self._map_value(item, v) for v in _as_list(raw)]
        coerced = [coerce_for_column(item.key, target, v) for v in values if v is not None]
        if not coerced:
            return None
        return target.in_(coerced)

    def _boolean(self, item: FilterDefinition, target, raw):
        mapped = self._map_value(item, raw)
        return target == coerce_bool(item.key, mapped)

    def _date_range(self, item: FilterDefinition, target, values: Mapping[str, Any]):
        clauses = []
        raw_from = values.get(item.from_key)
        raw_to = values.get(item.to_key)
        is_timestamp = column_python_type(target) is datetime
        if not _is_blank(raw_from):
            clauses.append(target >= coerce_for_column(item.from_key, target, raw_from))
        if not _is_blank(raw_to):
            upper = coerce_for_column(item.to_key, target, raw_to)
            if is_timestamp and is_date_only_literal(raw_to):
                # A date-only upper bound covers the whole day.
                clauses.append(target < upper + timedelta(days=1))
            else:
                clauses.append(target <= upper)
        return clauses

    def apply_filter(self, q: Query, item: FilterDefinition, values: Mapping[str, Any]) -> Query:
        if item.apply is not None:
            raw = values if item.type == FilterType.DATE_RANGE else values.get(item.key)
            return item.apply(q, raw, self)
        target = self.filter_target(item)
        if item.type == FilterType.DATE_RANGE:
            clauses = self._date_range(item, target, values)
            return q.filter(*clauses) if clauses else q
        raw = values.get(item.key)
        if item.type == FilterType.MULTISELECT:
            clause = self._in_set(item, target, raw)
        elif item.type == FilterType.BOOLEAN:
            clause = self._boolean(item, target, raw)
        else:
            clause = self._equality(item, target, raw)
        if clause is None:
            return q
        return q.filter(clause)

    def apply_filters(self, q: Query, values: Mapping[str, Any]) -> tuple[Query, int]:
        applied = 0
        for item in self.definition.filters:
            if not self.is_filter_active(item, values):
                continue
            try:
                q = self.apply_filter(q, item, values)
            except InvalidFilterValue as exc:
                _LOG.debug("ignoring filter %s: %s", item.key, exc)
                continue
            applied += 1
        return q, applied

    # sort

    def apply_sort(self, options: SortOptions) -> Query:
        q = options.query
        column = options.column
        if column is not None and column.sort is not None:
            q = column.sort(q, options.direction, self)
        elif options.target is not None:
            q = q.order_by(desc(options.target) if options.direction == SortDirection.DESC else asc(options.target))
        # Primary key tie-break keeps pagination reproducible.
        return q.order_by(asc(self.definition.primary_key))

    def sort_options(self, q: Query, sort_by: str | None, direction: SortDirection) -> SortOptions:
        column = self.definition.column(sort_by) if sort_by else None
        if column is not None and column.sortable:
            target = None if column.sort is not None else self.column_expression(column)
            return SortOptions(query=q, column=column, target=target, direction=direction)
        if self.definition.default_sort is not None:
            key, default_direction = self.definition.default_sort
            default_column = self.definition.column(key)
            if default_column is not None:
                target = None if default_column.sort is not None else self.column_expression(default_column)
                return SortOptions(query=q, column=default_column, target=target, direction=default_direction)
            return SortOptions(query=q, column=None, target=getattr(self.model, key), direction=default_direction)
        return SortOptions(query=q, column=None, target=None, direction=SortDirection.ASC)

    # pipeline

    def base_query(self, db: Session) -> Query:
        q = db.query(self.model)
        if self.definition.exclude_trashed:
            q = q.filter(self.model.deleted_at.is_(None))
        if self.definition.base_query is not None:
            q = self.definition.base_query(q)
        if self.scope is not None:
            q = self.scope(q)
        return q

    def clamp_per_page(self, per_page: int | None) -> int:
        value = per_page or self.definition.per_page
        return max(1, min(int(value), settings.DATATABLE_MAX_PER_PAGE))

    def build(self, options: QueryOptions) -> DataTablePage:
        paths = self.definition.relationship_paths()
        to_many = any(self.definition.is_to_many(path) for path in paths)

        q = self.apply_joins(self.base_query(options.db), paths)
        q = self.apply_search(q, options.search)
        q, applied = self.apply_filters(q, options.filters)

        if to_many:
            # Collapse duplicated parent rows before sorting and paging.
            pk = self.definition.primary_key
            ids = q.with_entities(pk).distinct().statement.correlate(None)
            to_one_paths = [p for p in paths if not self.definition.is_to_many(p)]
            q = self.apply_joins(options.db.query(self.model), to_one_paths)
            q = q.filter(pk.in_(ids))

        filtered = q
        total = q.order_by(None).count()
        per_page = self.clamp_per_page(options.per_page)
        page = max(1, int(options.page or 1))
        last_page = max(1, math.ceil(total / per_page))

        q = self.apply_sort(self.sort_options(q, options.sort_by, options.sort_direction))
        rows = q.options(*self.eager_load_options()).offset((page - 1) * per_page).limit(per_page).all()
        return DataTablePage(
            rows=rows,
            total=total,
            page=page,
            per_page=per_page,
            last_page=last_page,
            has_more=page < last_page,
            filters_applied=applied,
            search=str(options.search or "").strip(),
            query=filtered,
        )

    def count_all(self, db: Session) -> int:
        return self.base_query(db).count()
