from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy.orm import Session

from tenant_admin.services.datatable.actions import AbilityCheck
from tenant_admin.services.datatable.definition import TableDefinition
from tenant_admin.services.datatable.preferences import DataTablePreferencesService
from tenant_admin.services.datatable.query_builder import DataTablePage, DataTableQueryBuilder, QueryOptions
from tenant_admin.services.datatable.rendering import render_cell, render_filter
from tenant_admin.services.datatable.transformer import DataTableTransformer
from tenant_admin.services.datatable.types import FilterType


def _headers(definition: TableDefinition, sort_by: str | None, direction: str) -> list[dict[str, Any]]:
    headers = []
    for column in definition.columns:
        if column.hidden:
            continue
        headers.append(
            {
                "key": column.key,
                "label": column.label,
                "type": column.type.value,
                "sortable": column.sortable,
                "sorted": column.key == sort_by and column.sortable,
                "direction": direction if column.key == sort_by and column.sortable else None,
            }
        )
    return headers


def _filter_state(definition: TableDefinition, values: Mapping[str, Any]) -> dict[str, Any]:
    state: dict[str, Any] = {}
    for item in definition.filters:
        if item.type == FilterType.DATE_RANGE:
            state[item.key] = {"from": values.get(item.from_key), "to": values.get(item.to_key)}
        else:
            state[item.key] = values.get(item.key)
    return state


def build_stats(db: Session, builder: DataTableQueryBuilder, page: DataTablePage) -> dict[str, Any]:
    has_filters = bool(page.filters_applied or page.search)
    query = page.query if has_filters else builder.base_query(db)
    stats: dict[str, Any] = {
        "total": page.total if has_filters else builder.count_all(db),
        "context": "filtered" if has_filters else "all",
        "filters_applied": has_filters,
    }
    if builder.definition.stats is not None:
        stats.update(builder.definition.stats(query.order_by(None)))
    return stats


def datatable_response(
    db: Session,
    definition: TableDefinition,
    params: Mapping[str, Any],
    locale: str | None = None,
    timezone: str | None = None,
    render: bool = False,
    scope=None,
    can: AbilityCheck | None = None,
    preferences: DataTablePreferencesService | None = None,
) -> dict[str, Any]:
    """Run the whole pipeline for one request and return the JSON payload.

    With ``preferences``, missing sort, page size and filter parameters are
    restored from the saved state of the table. ``can`` gates row and bulk
    actions that name an ability.
    """
    if preferences is not None:
        params = preferences.resolve(definition, params)
    options = QueryOptions.from_params(db, definition, params)
    builder = DataTableQueryBuilder(definition, scope=scope)
    page = builder.build(options)
    transformer = DataTableTransformer(definition, locale=locale, timezone=timezone)
    rows = transformer.transform(page.rows)
    if definition.actions:
        for row, obj in zip(rows, page.rows):
            row["uuid"] = getattr(obj, "uuid", None)
            row["actions"] = [action.to_dict(obj) for action in definition.actions if action.is_visible(obj, can)]

    sort_column = definition.column(options.sort_by) if options.sort_by else None
    sort_by = sort_column.key if sort_column is not None and sort_column.sortable else None

    payload: dict[str, Any] = {
        "columns": _headers(definition, sort_by, options.sort_direction.value),
        "rows": rows,
        "meta": {
            "page": page.page,
            "per_page": page.per_page,
            "total": page.total,
            "last_page": page.last_page,
            "has_more": page.has_more,
            "sort_by": sort_by,
            "sort_dir": options.sort_direction.value if sort_by else None,
            "search": page.search,
        },
        "filters": _filter_state(definition, options.filters),
        "stats": build_stats(db, builder, page),
    }
    if definition.bulk_actions:
        payload["bulk_actions"] = [
            action.to_dict() for action in definition.bulk_actions if action.is_available(page.rows, can)
        ]
    if render:
        payload["html"] = {
            "rows": [
                {column.key: str(render_cell(column, row[column.key])) for column in definition.columns if not column.hidden}
                for row in rows
            ],
            "filters": {
                item.key: str(
                    render_filter(
                        item,
                        payload["filters"][item.key],
                        choices=item.resolve_options(db),
                        locale=locale,
                    )
                )
                for item in definition.filters
            },
        }
    return payload
