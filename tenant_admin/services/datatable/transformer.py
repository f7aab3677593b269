from __future__ import annotations

from typing import Any

from tenant_admin.core import i18n
from tenant_admin.core.config import settings
from tenant_admin.services.datatable.columns import ColumnDefinition
from tenant_admin.services.datatable.definition import TableDefinition
from tenant_admin.services.datatable.types import ColumnType


def _primary_key(obj) -> Any:
    return getattr(obj, "id", None)


def resolve_path(obj, parts: list[str]) -> Any:
    """Walk ``parts`` from ``obj``. Collections flatten into
    ``[{"value": pk, "label": value}]`` and soft-deleted members are skipped."""
    if obj is None:
        return None
    if not parts:
        return obj
    head, rest = parts[0], parts[1:]
    value = getattr(obj, head, None)
    if isinstance(value, (list, tuple, set)):
        items = [item for item in value if getattr(item, "deleted_at", None) is None]
        if not rest:
            return [{"value": _primary_key(item), "label": item} for item in items]
        flattened = []
        for item in items:
            resolved = resolve_path(item, rest)
            if isinstance(resolved, list):
                flattened.extend(resolved)
            else:
                flattened.append({"value": _primary_key(item), "label": resolved})
        return flattened
    return resolve_path(value, rest)


class DataTableTransformer:
    """Maps ORM rows to flat dicts keyed by column key.

    Only touches attributes the query builder eager-loaded.
    """

    def __init__(self, definition: TableDefinition, locale: str | None = None, timezone: str | None = None):
        self.definition = definition
        self.locale = i18n.valid_locale(locale)
        self.timezone = timezone or settings.DEFAULT_TIMEZONE

    def transform(self, rows: list) -> list[dict[str, Any]]:
        return [self.transform_row(row) for row in rows]

    def transform_row(self, row) -> dict[str, Any]:
        data: dict[str, Any] = {"id": _primary_key(row)}
        for column in self.definition.columns:
            data[column.key] = self.value_for(column, row)
        return data

    def value_for(self, column: ColumnDefinition, row) -> Any:
        if column.content is not None:
            value = column.content(row)
        else:
            value = resolve_path(row, column.path.split("."))
        if isinstance(value, list):
            value = [self._format_item(column, item) for item in value]
        else:
            value = self.format_value(column, value)
        if column.formatter is not None:
            value = column.formatter(value, row)
        return value

    def _format_item(self, column: ColumnDefinition, item) -> Any:
        if isinstance(item, dict) and "label" in item:
            return {"value": item.get("value"), "label": self.format_value(column, item["label"])}
        return self.format_value(column, item)

    def format_value(self, column: ColumnDefinition, value) -> Any:
        if value is None:
            return None
        kind = column.type
        if kind == ColumnType.DATE:
            return i18n.format_date(value, self.locale, column.option("format"), tz=self.timezone)
        if kind == ColumnType.DATETIME:
            return i18n.format_datetime(value, self.locale, self.timezone, column.option("format"))
        if kind == ColumnType.CURRENCY:
            return i18n.format_currency(
                value,
                self.locale,
                column.option("currency"),
                column.option("decimals"),
                decimal_separator=column.option("decimal_separator"),
                thousands_separator=column.option("thousands_separator"),
            )
        if kind == ColumnType.NUMBER:
            separators = i18n.locale_metadata(self.locale)["currency"]
            return i18n.format_number(
                value,
                int(column.option("decimals", 0)),
                column.option("decimal_separator", separators["decimal_separator"]),
                column.option("thousands_separator", separators["thousands_separator"]),
            )
        if kind == ColumnType.BOOLEAN:
            return bool(value)
        if hasattr(value, "label") and callable(value.label):
            return value.label()
        return value
